"""Unit tests for LocalIdentityProvider and AccountService."""

from __future__ import annotations

import asyncio

import aiosqlite
import bcrypt
import pytest

from encore.providers.identity.local_identity_provider import LocalIdentityProvider
from encore.services.account_service import display_name_from_email
from encore.utils.errors import AuthenticationError


# ─── Identity provider ────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_sign_up_then_token_resolves_to_user(identity):
    session = await identity.sign_up("Ana@Example.com ", "secret1")

    assert session.email == "ana@example.com"
    assert await identity.verify_token(session.token) == session.user_id


@pytest.mark.asyncio
async def test_sign_in_issues_a_fresh_token(identity):
    created = await identity.sign_up("ana@example.com", "secret1")

    session = await identity.sign_in("ana@example.com", "secret1")

    assert session.user_id == created.user_id
    assert session.token != created.token
    assert await identity.verify_token(session.token) == created.user_id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("email", "password"),
    [
        ("not-an-email", "secret1"),
        ("ana@example.com", "short"),
        ("ana@example.com", "x" * 73),
    ],
)
async def test_sign_up_rejects_bad_credentials(identity, email, password):
    with pytest.raises(AuthenticationError):
        await identity.sign_up(email, password)


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(identity):
    await identity.sign_up("ana@example.com", "secret1")

    with pytest.raises(AuthenticationError, match="already in use"):
        await identity.sign_up("ANA@example.com", "secret2")


@pytest.mark.asyncio
async def test_wrong_password_and_unknown_email_look_the_same(identity):
    await identity.sign_up("ana@example.com", "secret1")

    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        await identity.sign_in("ana@example.com", "wrong-pass")
    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        await identity.sign_in("bob@example.com", "secret1")


@pytest.mark.asyncio
async def test_password_is_stored_as_a_bcrypt_hash(identity, tmp_path):
    session = await identity.sign_up("ana@example.com", "secret1")

    async with aiosqlite.connect(str(tmp_path / "identity.db")) as db:
        db.row_factory = aiosqlite.Row
        cursor = await db.execute("PRAGMA table_info(accounts)")
        columns = {row["name"] for row in await cursor.fetchall()}
        cursor = await db.execute(
            "SELECT password_hash FROM accounts WHERE user_id = ?", (session.user_id,)
        )
        stored = (await cursor.fetchone())["password_hash"]

    assert "password_salt" not in columns
    assert stored.startswith("$2")
    assert bcrypt.checkpw(b"secret1", stored.encode())
    assert not bcrypt.checkpw(b"secret2", stored.encode())


@pytest.mark.asyncio
async def test_sign_out_invalidates_every_session(identity):
    first = await identity.sign_up("ana@example.com", "secret1")
    second = await identity.sign_in("ana@example.com", "secret1")

    await identity.sign_out(first.user_id)

    assert await identity.verify_token(first.token) is None
    assert await identity.verify_token(second.token) is None


@pytest.mark.asyncio
async def test_unknown_empty_and_expired_tokens_are_rejected(tmp_path):
    provider = LocalIdentityProvider(db_path=tmp_path / "expired.db", token_ttl_seconds=-1)
    await provider.initialize()
    session = await provider.sign_up("ana@example.com", "secret1")

    assert await provider.verify_token(session.token) is None
    assert await provider.verify_token("") is None
    assert await provider.verify_token("forged") is None


@pytest.mark.asyncio
async def test_tokens_are_bound_to_the_secret(tmp_path):
    db_path = tmp_path / "shared.db"
    original = LocalIdentityProvider(db_path=db_path, token_secret="one")
    await original.initialize()
    session = await original.sign_up("ana@example.com", "secret1")

    rotated = LocalIdentityProvider(db_path=db_path, token_secret="two")

    assert await rotated.verify_token(session.token) is None


@pytest.mark.asyncio
async def test_auth_state_listeners(identity):
    seen: list[str | None] = []
    unsubscribe = identity.on_auth_state_changed(seen.append)

    session = await identity.sign_up("ana@example.com", "secret1")
    await identity.sign_out(session.user_id)
    unsubscribe()
    await identity.sign_in("ana@example.com", "secret1")

    assert seen == [session.user_id, None]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_sign_in(identity):
    def _broken(_user_id: str | None) -> None:
        raise RuntimeError("listener down")

    identity.on_auth_state_changed(_broken)

    session = await identity.sign_up("ana@example.com", "secret1")

    assert session.user_id


# ─── Account service ──────────────────────────────────────────────────

@pytest.mark.parametrize(
    ("email", "expected"),
    [("jane.doe@example.com", "jane.doe"), ("@example.com", "User"), ("", "User")],
)
def test_display_name_from_email(email, expected):
    assert display_name_from_email(email) == expected


@pytest.mark.asyncio
async def test_sign_up_writes_profile(account_service, store):
    session = await account_service.sign_up("jane.doe@example.com", "secret1")

    profile = await store.get("users", session.user_id)

    assert profile["displayName"] == "jane.doe"
    assert profile["email"] == "jane.doe@example.com"
    assert profile["loggedConcertsCount"] == 0


@pytest.mark.asyncio
async def test_account_events(account_service, analytics, analytics_provider):
    session = await account_service.sign_up("ana@example.com", "secret1")
    await account_service.sign_in("ana@example.com", "secret1")
    await account_service.sign_out(session.user_id)
    await analytics.flush()

    assert analytics_provider.names() == ["sign_up", "login", "logout"]
    assert analytics_provider.user_id is None


@pytest.mark.asyncio
async def test_failed_sign_up_writes_no_profile(account_service, store):
    with pytest.raises(AuthenticationError):
        await account_service.sign_up("ana@example.com", "123")

    assert await store.query("users") == []


@pytest.mark.asyncio
async def test_get_user_creates_default_profile_once(account_service, store):
    created = await account_service.get_user("u1")
    await store.update("users", "u1", {"displayName": "Ana"})

    again = await account_service.get_user("u1")

    assert created.display_name == "User"
    assert created.logged_concerts_count == 0
    assert again.display_name == "Ana"


@pytest.mark.asyncio
async def test_concurrent_first_reads_create_one_profile(account_service, store):
    users = await asyncio.gather(*(account_service.get_user("u1") for _ in range(5)))

    assert {u.uid for u in users} == {"u1"}
    assert len(await store.query("users")) == 1


@pytest.mark.asyncio
async def test_verify_token_and_display_name(account_service):
    session = await account_service.sign_up("ana@example.com", "secret1")

    assert await account_service.verify_token(session.token) == session.user_id
    assert await account_service.get_display_name(session.user_id) == "ana"
