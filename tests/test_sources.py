"""Tests for resolving profile sources into video ids."""

from __future__ import annotations

import httpx
import pytest

from app.errors import BadStatus
from app.services.sources import SourceResolver
from app.services.youtube import YouTubeClient, static_token_provider
from fakes import FakeYouTube, build_settings


def _resolver(http_client: httpx.AsyncClient, **overrides) -> SourceResolver:
    settings = build_settings(**overrides)
    client = YouTubeClient(settings, http_client, static_token_provider("test-token"))
    return SourceResolver(settings, client)


@pytest.mark.anyio("asyncio")
async def test_union_collapses_ids_shared_between_sources(fake_youtube: FakeYouTube) -> None:
    fake_youtube.add_channel("c1", ["v1", "v2"])
    fake_youtube.add_playlist("p1", ["v2", "v3"])
    fake_youtube.liked_ids = ["v3", "v4"]

    async with fake_youtube.http_client() as http_client:
        ids = await _resolver(http_client).resolve(["c1"], ["p1"], True)

    assert ids == {"v1", "v2", "v3", "v4"}


@pytest.mark.anyio("asyncio")
async def test_liked_source_is_skipped_when_disabled(fake_youtube: FakeYouTube) -> None:
    fake_youtube.add_channel("c1", ["v1"])
    fake_youtube.liked_ids = ["v9"]

    async with fake_youtube.http_client() as http_client:
        ids = await _resolver(http_client).resolve(["c1"], [], False)

    assert ids == {"v1"}
    assert fake_youtube.requests_to("videos") == []


@pytest.mark.anyio("asyncio")
async def test_no_sources_issue_no_requests(fake_youtube: FakeYouTube) -> None:
    async with fake_youtube.http_client() as http_client:
        ids = await _resolver(http_client).resolve([], [], False)

    assert ids == set()
    assert fake_youtube.requests == []


@pytest.mark.anyio("asyncio")
async def test_each_source_is_fetched_once_with_configured_limits(
    fake_youtube: FakeYouTube,
) -> None:
    fake_youtube.add_channel("c1", [f"c1v{i}" for i in range(10)])
    fake_youtube.add_channel("c2", ["c2v0"])
    fake_youtube.add_playlist("p1", [f"p1v{i}" for i in range(10)])
    fake_youtube.liked_ids = [f"l{i}" for i in range(10)]

    async with fake_youtube.http_client() as http_client:
        ids = await _resolver(
            http_client,
            FEED_RECENT_PER_CHANNEL=3,
            FEED_RECENT_PER_PLAYLIST=4,
            FEED_RECENT_LIKED=2,
        ).resolve(["c1", "c2", "c1"], ["p1"], True)

    searches = fake_youtube.requests_to("search")
    assert sorted(r.url.params["channelId"] for r in searches) == ["c1", "c2"]
    assert {r.url.params["maxResults"] for r in searches} == {"3"}
    assert fake_youtube.requests_to("playlistItems")[0].url.params["maxResults"] == "4"
    assert fake_youtube.requests_to("videos")[0].url.params["maxResults"] == "2"
    assert ids == {"c1v0", "c1v1", "c1v2", "c2v0", "p1v0", "p1v1", "p1v2", "p1v3", "l0", "l1"}


@pytest.mark.anyio("asyncio")
async def test_failing_source_aborts_resolution(fake_youtube: FakeYouTube) -> None:
    fake_youtube.add_channel("c1", ["v1"])
    fake_youtube.failures["playlistItems"] = httpx.Response(404, text="playlistNotFound")

    async with fake_youtube.http_client() as http_client:
        with pytest.raises(BadStatus) as excinfo:
            await _resolver(http_client).resolve(["c1"], ["missing"], False)

    assert excinfo.value.status_code == 404
