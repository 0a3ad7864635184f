"""SQLite-backed identity provider for local development and tests.

Stands in for the hosted authentication service: accounts and sessions
live in their own SQLite database (``data/identity.db``), separate from the
document store, the way a hosted identity service keeps credentials out of
application data.

Passwords are stored as bcrypt hashes, which carry their own salt.
Session tokens are random URL-safe strings handed to the client once; the
database only keeps an HMAC of each token keyed by the configured secret,
so a copy of the database cannot be replayed as live sessions.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import re
import secrets
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Callable

import aiosqlite
import bcrypt
import structlog

from encore.interfaces.identity_provider import AuthSession, AuthStateCallback, IIdentityProvider
from encore.utils.clock import now_timestamp, to_timestamp, utc_now
from encore.utils.errors import AuthenticationError

logger = structlog.get_logger(logger_name=__name__)

_PROVIDER = "local_identity"
_DEFAULT_DB_PATH = Path("data/identity.db")
_MIN_PASSWORD_LENGTH = 6
# bcrypt only reads the first 72 bytes of its input.
_MAX_PASSWORD_BYTES = 72
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS accounts (
    user_id        TEXT PRIMARY KEY,
    email          TEXT NOT NULL UNIQUE,
    password_hash  TEXT NOT NULL,
    created_at     TEXT NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS sessions (
    token_digest  TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    expires_at    TEXT NOT NULL
);
""",
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id);",
]


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def _verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


class LocalIdentityProvider(IIdentityProvider):
    """Email/password identity provider persisted in SQLite.

    Parameters
    ----------
    db_path:
        Credentials database file.
    token_secret:
        Key for the HMAC under which session tokens are stored.
    token_ttl_seconds:
        Lifetime of a session token.
    """

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        token_secret: str = "dev-only-change-me",
        token_ttl_seconds: int = 7 * 24 * 3600,
    ) -> None:
        self._db_path = Path(db_path)
        self._secret = token_secret.encode()
        self._token_ttl = timedelta(seconds=token_ttl_seconds)
        self._listeners: list[AuthStateCallback] = []

    def get_provider_name(self) -> str:
        return _PROVIDER

    async def initialize(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            await db.commit()
        logger.info("identity_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Sign-up / sign-in / sign-out
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        if not _EMAIL_RE.match(email):
            raise AuthenticationError("The email address is badly formatted", provider_name=_PROVIDER)
        if len(password) < _MIN_PASSWORD_LENGTH:
            msg = f"Password should be at least {_MIN_PASSWORD_LENGTH} characters"
            raise AuthenticationError(msg, provider_name=_PROVIDER)
        if len(password.encode()) > _MAX_PASSWORD_BYTES:
            msg = f"Password should be at most {_MAX_PASSWORD_BYTES} bytes"
            raise AuthenticationError(msg, provider_name=_PROVIDER)

        user_id = uuid.uuid4().hex
        password_hash = await asyncio.to_thread(_hash_password, password)
        async with aiosqlite.connect(str(self._db_path)) as db:
            try:
                await db.execute(
                    "INSERT INTO accounts (user_id, email, password_hash, created_at) "
                    "VALUES (?, ?, ?, ?)",
                    (user_id, email, password_hash, now_timestamp()),
                )
            except aiosqlite.IntegrityError as exc:
                raise AuthenticationError(
                    "The email address is already in use", provider_name=_PROVIDER
                ) from exc
            token = await self._create_session(db, user_id)
            await db.commit()

        logger.info("account_created", user_id=user_id)
        self._notify(user_id)
        return AuthSession(user_id=user_id, email=email, token=token)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT user_id, password_hash FROM accounts WHERE email = ?",
                (email,),
            )
            row = await cursor.fetchone()
            if row is None or len(password.encode()) > _MAX_PASSWORD_BYTES:
                raise AuthenticationError("Invalid email or password", provider_name=_PROVIDER)
            if not await asyncio.to_thread(_verify_password, password, row["password_hash"]):
                raise AuthenticationError("Invalid email or password", provider_name=_PROVIDER)
            user_id = row["user_id"]
            token = await self._create_session(db, user_id)
            await db.commit()

        logger.info("account_signed_in", user_id=user_id)
        self._notify(user_id)
        return AuthSession(user_id=user_id, email=email, token=token)

    async def sign_out(self, user_id: str) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))
            await db.commit()
        logger.info("account_signed_out", user_id=user_id)
        self._notify(None)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def verify_token(self, token: str) -> str | None:
        if not token:
            return None
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT user_id, expires_at FROM sessions WHERE token_digest = ?",
                (self._digest(token),),
            )
            row = await cursor.fetchone()
        if row is None or row["expires_at"] < now_timestamp():
            return None
        return row["user_id"]

    def _digest(self, token: str) -> str:
        return hmac.new(self._secret, token.encode(), hashlib.sha256).hexdigest()

    async def _create_session(self, db: aiosqlite.Connection, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        expires_at = to_timestamp(utc_now() + self._token_ttl)
        await db.execute(
            "INSERT INTO sessions (token_digest, user_id, expires_at) VALUES (?, ?, ?)",
            (self._digest(token), user_id, expires_at),
        )
        return token

    # ------------------------------------------------------------------
    # Auth-state listeners
    # ------------------------------------------------------------------

    def on_auth_state_changed(self, callback: AuthStateCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _notify(self, user_id: str | None) -> None:
        for callback in list(self._listeners):
            try:
                callback(user_id)
            except Exception as exc:
                logger.warning("auth_listener_failed", error=str(exc))
