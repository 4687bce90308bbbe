"""End-to-end tests for feed building, refreshing and caching."""

from __future__ import annotations

import random
from pathlib import Path

import httpx
import pytest

from app.database import Database
from app.errors import BadStatus, NoAccessToken
from app.services.feed import FeedBuilder, FeedService
from app.services.profiles import ProfileStore
from app.services.youtube import YouTubeClient, static_token_provider
from fakes import FakeYouTube, build_settings


def _builder(http_client: httpx.AsyncClient, **overrides) -> FeedBuilder:
    settings = build_settings(**overrides)
    client = YouTubeClient(settings, http_client, static_token_provider("test-token"))
    return FeedBuilder(settings, client)


@pytest.mark.anyio("asyncio")
async def test_channel_feed_is_sorted_newest_first(fake_youtube: FakeYouTube) -> None:
    fake_youtube.add_channel("c1", ["v2", "v1"])
    fake_youtube.add_video("v1", published_at="2024-01-02T00:00:00Z")
    fake_youtube.add_video("v2", published_at="2024-01-01T00:00:00Z")

    async with fake_youtube.http_client() as http_client:
        feed = await _builder(http_client).build_feed(["c1"], [], False)

    assert [video.id for video in feed] == ["v1", "v2"]


@pytest.mark.anyio("asyncio")
async def test_video_found_in_several_sources_appears_once(fake_youtube: FakeYouTube) -> None:
    fake_youtube.add_channel("c1", ["shared", "only-channel"])
    fake_youtube.add_playlist("p1", ["shared"])
    fake_youtube.liked_ids = ["shared", "only-liked"]
    for video_id in ("shared", "only-channel", "only-liked"):
        fake_youtube.add_video(video_id)

    async with fake_youtube.http_client() as http_client:
        feed = await _builder(http_client).build_feed(["c1"], ["p1"], True)

    ids = [video.id for video in feed]
    assert sorted(ids) == ["only-channel", "only-liked", "shared"]
    assert ids.count("shared") == 1
    hydrated = [
        video_id
        for request in fake_youtube.requests_to("videos")
        if "id" in request.url.params
        for video_id in request.url.params["id"].split(",")
    ]
    assert hydrated.count("shared") == 1


@pytest.mark.anyio("asyncio")
async def test_large_feed_is_ordered_by_publish_time(fake_youtube: FakeYouTube) -> None:
    rng = random.Random(7)
    ids = [f"v{i}" for i in range(130)]
    fake_youtube.add_playlist("p1", ids)
    for video_id in ids:
        fake_youtube.add_video(
            video_id,
            published_at=f"2023-{rng.randint(1, 12):02d}-{rng.randint(1, 28):02d}T"
            f"{rng.randint(0, 23):02d}:00:00Z",
        )

    async with fake_youtube.http_client() as http_client:
        feed = await _builder(http_client, FEED_RECENT_PER_PLAYLIST=130).build_feed(
            [], ["p1"], False
        )

    assert len(feed) == 130
    assert all(a.published_at >= b.published_at for a, b in zip(feed, feed[1:]))


@pytest.mark.anyio("asyncio")
async def test_shorts_never_reach_the_feed(fake_youtube: FakeYouTube) -> None:
    fake_youtube.add_channel("c1", ["short", "long"])
    fake_youtube.add_video("short", duration="PT45S")
    fake_youtube.add_video("long", duration="PT1H3M5S")

    async with fake_youtube.http_client() as http_client:
        feed = await _builder(http_client).build_feed(["c1"], [], False)

    assert [video.id for video in feed] == ["long"]


@pytest.mark.anyio("asyncio")
async def test_first_failure_propagates(fake_youtube: FakeYouTube) -> None:
    fake_youtube.add_channel("c1", ["v1"])
    fake_youtube.failures["search"] = httpx.Response(403, text="forbidden")

    async with fake_youtube.http_client() as http_client:
        with pytest.raises(BadStatus) as excinfo:
            await _builder(http_client).build_feed(["c1"], [], False)

    assert excinfo.value.status_code == 403
    assert fake_youtube.requests_to("videos") == []


async def _service(tmp_path: Path, http_client: httpx.AsyncClient) -> tuple[Database, FeedService]:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'feed.db'}")
    await database.create_all()
    store = ProfileStore(database.session_factory)
    return database, FeedService(build_settings(), store, http_client)


@pytest.mark.anyio("asyncio")
async def test_refresh_profile_persists_snapshot(tmp_path: Path, fake_youtube: FakeYouTube) -> None:
    fake_youtube.add_channel("c1", ["v1", "v2"])
    fake_youtube.add_video("v1", published_at="2024-01-02T00:00:00Z")
    fake_youtube.add_video("v2", published_at="2024-01-01T00:00:00Z")

    async with fake_youtube.http_client() as http_client:
        database, service = await _service(tmp_path, http_client)
        try:
            profile = await service.store.create_profile("Me", False, ["c1"], [], [])
            snapshot = await service.refresh_profile(
                profile.id, token_provider=static_token_provider("token")
            )
            cached = await service.load_cached_feed(profile.id)
        finally:
            await database.dispose()

    assert [video.id for video in snapshot.videos] == ["v1", "v2"]
    assert cached is not None
    assert cached.videos == snapshot.videos


@pytest.mark.anyio("asyncio")
async def test_failed_refresh_keeps_previous_snapshot(
    tmp_path: Path, fake_youtube: FakeYouTube
) -> None:
    fake_youtube.add_channel("c1", ["v1"])
    fake_youtube.add_video("v1")

    async with fake_youtube.http_client() as http_client:
        database, service = await _service(tmp_path, http_client)
        try:
            profile = await service.store.create_profile("Me", False, ["c1"], [], [])
            first = await service.refresh_profile(
                profile.id, token_provider=static_token_provider("token")
            )

            fake_youtube.failures["videos"] = httpx.Response(500, text="backendError")
            with pytest.raises(BadStatus):
                await service.refresh_profile(
                    profile.id, token_provider=static_token_provider("token")
                )
            with pytest.raises(NoAccessToken):
                await service.refresh_profile(
                    profile.id, token_provider=static_token_provider(None)
                )

            cached = await service.load_cached_feed(profile.id)
        finally:
            await database.dispose()

    assert cached is not None
    assert cached.videos == first.videos
    assert cached.fetched_at == first.fetched_at


@pytest.mark.anyio("asyncio")
async def test_refresh_unknown_profile_raises_key_error(
    tmp_path: Path, fake_youtube: FakeYouTube
) -> None:
    async with fake_youtube.http_client() as http_client:
        database, service = await _service(tmp_path, http_client)
        try:
            with pytest.raises(KeyError):
                await service.refresh_profile(
                    "missing", token_provider=static_token_provider("token")
                )
        finally:
            await database.dispose()

    assert fake_youtube.requests == []
