"""Tests for the advisory search helper."""

import pytest

from notesync.search import search_notes


@pytest.fixture()
def vault(github):
    github.seed("00_Inbox/searchable.md", "# Searchable Note\n\nThe quick brown fox.\n")
    github.seed("00_Inbox/other.md", "# Other\n\nNothing to see.\n")
    github.seed("04_Resources/fox.png", "brown fox pixels")
    return github


@pytest.mark.asyncio
async def test_search_returns_matching_notes(store, vault):
    results = await search_notes(store, "brown")
    assert results == [{"name": "searchable.md", "path": "00_Inbox/searchable.md"}]


@pytest.mark.asyncio
async def test_query_is_scoped_to_repo_and_markdown(store, vault):
    await search_notes(store, "  brown ")
    q = vault.requests[-1].url.params["q"]
    assert q == "brown repo:octo/notes extension:md"


@pytest.mark.asyncio
async def test_empty_query_returns_empty(store, vault):
    assert await search_notes(store, "   ") == []
    assert vault.requests == []


@pytest.mark.asyncio
async def test_backend_failure_returns_empty(store, vault, caplog):
    vault.fail[("GET", "search")] = 403
    assert await search_notes(store, "brown") == []
    assert "Search query failed" in caplog.text


@pytest.mark.asyncio
async def test_malformed_items_are_skipped(store, vault):
    vault.search_results = [
        {"path": "x.md"},
        {"name": "y.md", "path": None},
        "not a dict",
        {"name": "ok.md", "path": "Notes/ok.md"},
    ]
    assert await search_notes(store, "x") == [{"name": "ok.md", "path": "Notes/ok.md"}]


@pytest.mark.asyncio
async def test_malformed_payload_returns_empty(settings):
    import httpx

    from notesync.store import RemoteFileStore

    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"items": "nope"}))
    store = RemoteFileStore(settings, transport=transport)
    assert await search_notes(store, "x") == []


@pytest.mark.asyncio
async def test_backend_ranking_is_preserved(store, vault):
    vault.search_results = [
        {"name": "b.md", "path": "b.md", "score": 1.0},
        {"name": "a.md", "path": "x/a.md", "score": 0.5},
    ]
    results = await search_notes(store, "anything")
    assert [r["path"] for r in results] == ["b.md", "x/a.md"]
