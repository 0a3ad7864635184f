"""Unit tests for EntityResolver and ConcertService against a temporary store."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest

from encore.interfaces.document_store import FieldFilter
from encore.models.entities import UNKNOWN_LOCATION
from encore.models.refs import EntityKind, EntityRef
from encore.services.concert_service import validate_rating
from encore.utils.errors import InvalidInputError, StoreUnavailableError

# ─── Entity resolution ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_find_or_create_reuses_existing_artist(resolver, store):
    first = await resolver.find_or_create_artist("Radiohead")
    second = await resolver.find_or_create_artist("Radiohead")

    assert first == second
    assert first.kind == EntityKind.ARTISTS
    assert len(await store.query("artists")) == 1


@pytest.mark.asyncio
async def test_names_are_matched_exactly(resolver, store):
    await resolver.find_or_create_artist("Radiohead")
    await resolver.find_or_create_artist("radiohead")

    assert len(await store.query("artists")) == 2


@pytest.mark.asyncio
async def test_new_venue_gets_unknown_location(resolver, store):
    ref = await resolver.find_or_create_venue("Madison Square Garden")

    venue = await store.get("venues", ref.id)

    assert venue["name"] == "Madison Square Garden"
    assert venue["city"] == UNKNOWN_LOCATION
    assert venue["state"] == UNKNOWN_LOCATION
    assert venue["country"] == UNKNOWN_LOCATION
    assert venue["createdAt"]


@pytest.mark.asyncio
async def test_resolver_rejects_blank_names_and_other_kinds(resolver):
    with pytest.raises(InvalidInputError):
        await resolver.find_or_create_artist("   ")
    with pytest.raises(InvalidInputError):
        await resolver.resolve(EntityKind.CONCERTS, "anything")


# ─── Rating validation ────────────────────────────────────────────────


@pytest.mark.parametrize("rating", [1, 3, 5])
def test_valid_ratings(rating):
    assert validate_rating(rating) == rating


@pytest.mark.parametrize("rating", [0, 6, -1, 3.5, "4", True, None])
def test_invalid_ratings(rating):
    with pytest.raises(InvalidInputError):
        validate_rating(rating)


# ─── Logging a concert ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_concert_logging_scenario(concert_service, store, analytics, analytics_provider):
    """First concert of a fresh user: entities created, counter 1, event emitted."""
    concert_id = await concert_service.log_concert(
        "u1", "Radiohead", "Madison Square Garden", "2024-03-15", 5, "Incredible show"
    )

    artists = await store.query("artists")
    venues = await store.query("venues")
    assert [a["name"] for a in artists] == ["Radiohead"]
    assert [v["name"] for v in venues] == ["Madison Square Garden"]

    concert = await concert_service.get_concert_by_id(concert_id)
    assert concert is not None
    assert concert.artist_ref == EntityRef.artist(artists[0]["id"])
    assert concert.venue_ref == EntityRef.venue(venues[0]["id"])
    assert concert.user_ref == EntityRef.user("u1")
    assert concert.date == date(2024, 3, 15)
    assert concert.rating == 5
    assert concert.notes == "Incredible show"
    assert concert.artist_name == "Radiohead"
    assert concert.created_at is not None

    user = await store.get("users", "u1")
    assert user["loggedConcertsCount"] == 1

    await analytics.flush()
    assert analytics_provider.events == [
        (
            "concert_logged",
            {
                "concert_id": concert_id,
                "artist_name": "Radiohead",
                "venue_name": "Madison Square Garden",
            },
            "u1",
        )
    ]


@pytest.mark.asyncio
async def test_second_concert_reuses_entities_and_increments_counter(concert_service, store):
    await store.set("users", "u1", {"displayName": "Ana", "loggedConcertsCount": 4})

    await concert_service.log_concert("u1", "Radiohead", "MSG", date(2024, 1, 1), 4)
    await concert_service.log_concert("u1", "Radiohead", "MSG", date(2024, 2, 1), 5)

    assert len(await store.query("artists")) == 1
    assert len(await store.query("venues")) == 1
    user = await store.get("users", "u1")
    assert user["loggedConcertsCount"] == 6
    assert user["displayName"] == "Ana"


@pytest.mark.asyncio
async def test_concurrent_logs_keep_counter_exact(concert_service, store):
    await asyncio.gather(
        *(
            concert_service.log_concert("u1", f"Band {i}", "Venue", date(2024, 1, 1), 3)
            for i in range(5)
        )
    )

    assert (await store.get("users", "u1"))["loggedConcertsCount"] == 5


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("artist", "venue", "concert_date", "rating"),
    [
        ("", "MSG", "2024-01-01", 5),
        ("Radiohead", "  ", "2024-01-01", 5),
        ("Radiohead", "MSG", "2024-01-01", 0),
        ("Radiohead", "MSG", "2024-01-01", 6),
        ("Radiohead", "MSG", "not-a-date", 5),
        ("Radiohead", "MSG", date.today() + timedelta(days=2), 5),
    ],
)
async def test_invalid_input_writes_nothing(concert_service, store, artist, venue, concert_date, rating):
    with pytest.raises(InvalidInputError):
        await concert_service.log_concert("u1", artist, venue, concert_date, rating)

    assert await store.query("artists") == []
    assert await store.query("concerts") == []
    assert await store.get("users", "u1") is None


@pytest.mark.asyncio
async def test_log_concert_retries_transient_failures(concert_service, store, monkeypatch):
    real_add = store.add
    calls = {"n": 0}

    async def _flaky_add(collection, data):
        if collection == "concerts" and calls["n"] == 0:
            calls["n"] += 1
            raise StoreUnavailableError("database is locked")
        return await real_add(collection, data)

    monkeypatch.setattr(store, "add", _flaky_add)

    concert_id = await concert_service.log_concert("u1", "Radiohead", "MSG", "2024-01-01", 5)

    assert await concert_service.get_concert_by_id(concert_id) is not None
    # The resolved entities from the failed attempt are reused, not duplicated.
    assert len(await store.query("artists")) == 1
    assert (await store.get("users", "u1"))["loggedConcertsCount"] == 1


# ─── Reads ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_get_user_concerts_sorted_by_concert_date(concert_service):
    await concert_service.log_concert("u1", "A", "V", "2023-05-01", 3)
    await concert_service.log_concert("u1", "B", "V", "2024-05-01", 3)
    await concert_service.log_concert("u1", "C", "V", "2022-05-01", 3)
    await concert_service.log_concert("u2", "D", "V", "2024-06-01", 3)

    concerts = await concert_service.get_user_concerts("u1")

    assert [c.artist_name for c in concerts] == ["B", "A", "C"]


@pytest.mark.asyncio
async def test_get_concert_by_id_missing_returns_none(concert_service):
    assert await concert_service.get_concert_by_id("missing") is None


@pytest.mark.asyncio
async def test_concert_details_join_artist_and_venue(concert_service):
    concert_id = await concert_service.log_concert("u1", "Radiohead", "MSG", "2024-01-01", 5)

    details = await concert_service.get_concert_details(concert_id)

    assert details.artist.name == "Radiohead"
    assert details.venue.name == "MSG"
    assert details.concert.display_name == "Radiohead at MSG"


@pytest.mark.asyncio
async def test_concert_details_with_dangling_refs_use_denormalized_names(concert_service, store):
    concert_id = await concert_service.log_concert("u1", "Radiohead", "MSG", "2024-01-01", 5)
    concert = await concert_service.get_concert_by_id(concert_id)
    await store.delete("artists", concert.artist_ref.id)

    details = await concert_service.get_concert_details(concert_id)

    assert details.artist is None
    assert details.artist_name == "Radiohead"


@pytest.mark.asyncio
async def test_artist_lookup_failure_returns_none(concert_service, store, monkeypatch):
    monkeypatch.setattr(store, "get", AsyncMock(side_effect=StoreUnavailableError("down")))

    assert await concert_service.get_artist("a1") is None
    assert await concert_service.get_venue(EntityRef.venue("v1")) is None


@pytest.mark.asyncio
async def test_user_concerts_query_uses_user_ref(store, concert_service):
    await concert_service.log_concert("u1", "A", "V", "2023-05-01", 3)

    docs = await store.query(
        "concerts", filters=[FieldFilter(field="userRef", op="==", value="users/u1")]
    )

    assert len(docs) == 1
