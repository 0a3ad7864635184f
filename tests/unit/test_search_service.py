"""Unit tests for SearchService prefix search and discovery lists."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from encore.services.search_service import DISCOVERY_LIMIT, MAX_RESULTS, PREFIX_SENTINEL
from encore.utils.errors import StoreUnavailableError


def _stamp(day: int, minute: int = 0) -> str:
    return f"2024-02-{day:02d}T00:{minute:02d}:00.000000+00:00"


async def _artist(store, name: str, created_at: str = _stamp(1)) -> str:
    return await store.add("artists", {"name": name, "genre": [], "createdAt": created_at})


async def _concert(store, artist: str, venue: str, created_at: str = _stamp(1)) -> str:
    return await store.add(
        "concerts",
        {
            "artistRef": "artists/a1",
            "venueRef": "venues/v1",
            "userRef": "users/u1",
            "date": "2024-01-01",
            "rating": 4,
            "notes": "",
            "artistName": artist,
            "venueName": venue,
            "createdAt": created_at,
            "updatedAt": created_at,
        },
    )


# ─── Prefix matching ──────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_artist_search_is_prefix_only_and_case_sensitive(search_service, store):
    for name in ("Radiohead", "Radio Dept", "radiohead", "Thom Yorke Radio"):
        await _artist(store, name)

    results = await search_service.search_artists("Radio")

    assert [a.name for a in results] == ["Radio Dept", "Radiohead"]
    assert await search_service.search_artists("head") == []


@pytest.mark.asyncio
async def test_concert_search_merges_artist_and_venue_matches(search_service, store):
    by_artist = await _concert(store, "Madonna", "Forum")
    by_venue = await _concert(store, "Blur", "Madison Square Garden")
    both = await _concert(store, "Mad Season", "Madison Square Garden")
    await _concert(store, "Oasis", "Wembley")

    results = await search_service.search_concerts("Mad")

    ids = [c.id for c in results]
    assert sorted(ids) == sorted([by_artist, by_venue, both])
    # A concert matching on both fields appears once.
    assert len(ids) == len(set(ids))


@pytest.mark.asyncio
async def test_venue_search_covers_city(search_service, store):
    await store.add("venues", {"name": "Harpa", "city": "Reykjavik", "createdAt": _stamp(1)})
    await store.add("venues", {"name": "Reykjavik Arena", "city": "Reykjavik", "createdAt": _stamp(1)})

    results = await search_service.search_venues("Reyk")

    assert sorted(v.name for v in results) == ["Harpa", "Reykjavik Arena"]


@pytest.mark.asyncio
async def test_results_are_capped(search_service, store):
    for i in range(15):
        await _concert(store, f"Band {i:02d}", f"Bandstand {i:02d}")

    results = await search_service.search_concerts("Band")

    assert len(results) == MAX_RESULTS


@pytest.mark.asyncio
async def test_sentinel_sorts_after_ordinary_suffixes(search_service, store):
    await _artist(store, "Radio" + "~~~")
    await _artist(store, "Radio" + "ÿ")

    results = await search_service.search_artists("Radio")

    assert len(results) == 2
    assert "Radio" + PREFIX_SENTINEL > "Radio" + "ÿ"


# ─── Blank terms and failures ─────────────────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("term", ["", "   "])
async def test_blank_term_never_queries(search_service, store, monkeypatch, term):
    query = AsyncMock(return_value=[])
    monkeypatch.setattr(store, "query", query)

    assert await search_service.search_concerts(term) == []
    query.assert_not_awaited()


@pytest.mark.asyncio
async def test_store_failure_yields_empty_results(search_service, store, monkeypatch):
    monkeypatch.setattr(store, "query", AsyncMock(side_effect=StoreUnavailableError("down")))

    assert await search_service.search_artists("Radio") == []
    assert await search_service.get_trending_concerts() == []
    assert await search_service.get_popular_artists() == []


@pytest.mark.asyncio
async def test_search_performed_event(search_service, store, analytics, analytics_provider):
    await _artist(store, "Radiohead")

    await search_service.search_artists("Radio")
    await analytics.flush()

    assert analytics_provider.events == [
        (
            "search_performed",
            {"search_term": "Radio", "results_count": 1, "scope": "artists"},
            None,
        )
    ]


# ─── Discovery ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_trending_concerts_are_the_newest_five(search_service, store):
    ids = [await _concert(store, f"Band {i}", "Venue", _stamp(1 + i)) for i in range(7)]

    trending = await search_service.get_trending_concerts()

    assert len(trending) == DISCOVERY_LIMIT
    assert [c.id for c in trending] == list(reversed(ids))[:DISCOVERY_LIMIT]


@pytest.mark.asyncio
async def test_popular_artists_are_the_newest_five(search_service, store):
    for i in range(6):
        await _artist(store, f"Artist {i}", _stamp(1 + i))

    popular = await search_service.get_popular_artists()

    assert [a.name for a in popular] == [f"Artist {i}" for i in (5, 4, 3, 2, 1)]


# ─── Debounced search ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_debounced_search_runs_only_the_last_term(search_service, store, analytics, analytics_provider):
    await _artist(store, "Radiohead")
    search = search_service.debounced("artists", delay_ms=20)

    first = asyncio.create_task(search("R"))
    await asyncio.sleep(0)
    second = asyncio.create_task(search("Ra"))
    await asyncio.sleep(0)
    last = await search("Radio")

    assert await first is None
    assert await second is None
    assert [a.name for a in last] == ["Radiohead"]
    await analytics.flush()
    assert analytics_provider.names() == ["search_performed"]


@pytest.mark.asyncio
async def test_debounced_unknown_scope_raises(search_service):
    with pytest.raises(ValueError):
        search_service.debounced("users")
