"""High level orchestration for feed building and caching."""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from ..config import Settings
from ..models import FeedSnapshot, FeedVideo, Library
from .hydration import VideoHydrator
from .profiles import ProfileStore
from .sources import SourceResolver
from .youtube import TokenProvider, YouTubeClient

logger = logging.getLogger(__name__)


class FeedBuilder:
    """Resolve, hydrate and sort the feed for one set of sources."""

    def __init__(self, settings: Settings, client: YouTubeClient):
        self._resolver = SourceResolver(settings, client)
        self._hydrator = VideoHydrator(settings, client)

    async def build_feed(
        self,
        channel_ids: Sequence[str],
        playlist_ids: Sequence[str],
        include_liked: bool,
    ) -> list[FeedVideo]:
        """Return the deduplicated feed, newest first.

        The first failure from any source or batch propagates unchanged.
        """

        video_ids = await self._resolver.resolve(channel_ids, playlist_ids, include_liked)
        hydrated = await self._hydrator.hydrate(sorted(video_ids))
        return sorted(hydrated, key=lambda video: video.published_at, reverse=True)


class FeedService:
    """Entry point used by the HTTP layer to refresh and read feeds."""

    def __init__(
        self,
        settings: Settings,
        store: ProfileStore,
        http_client: httpx.AsyncClient,
    ):
        self._settings = settings
        self._store = store
        self._http_client = http_client

    @property
    def store(self) -> ProfileStore:
        return self._store

    def client_for(self, token_provider: TokenProvider) -> YouTubeClient:
        """Create a YouTube client scoped to a single operation."""

        return YouTubeClient(self._settings, self._http_client, token_provider)

    async def build_feed(
        self,
        channel_ids: Sequence[str],
        playlist_ids: Sequence[str],
        include_liked: bool,
        *,
        token_provider: TokenProvider,
    ) -> list[FeedVideo]:
        builder = FeedBuilder(self._settings, self.client_for(token_provider))
        return await builder.build_feed(channel_ids, playlist_ids, include_liked)

    async def refresh_profile(
        self, profile_id: str, *, token_provider: TokenProvider
    ) -> FeedSnapshot:
        """Rebuild a profile's feed and store it as the new snapshot.

        The previous snapshot is only replaced once the build succeeded.
        """

        sources = await self._store.load_profile_sources(profile_id)
        logger.info(
            "Refreshing feed for profile %s (%d channels, %d playlists, likes=%s)",
            profile_id,
            len(sources.channel_ids),
            len(sources.playlist_ids),
            sources.include_likes,
        )
        try:
            videos = await self.build_feed(
                sources.channel_ids,
                sources.playlist_ids,
                sources.include_likes,
                token_provider=token_provider,
            )
        except Exception as exc:
            logger.warning("Feed refresh for profile %s failed: %s", profile_id, exc)
            raise
        return await self._store.save_feed_cache(profile_id, videos)

    async def load_cached_feed(self, profile_id: str) -> FeedSnapshot | None:
        return await self._store.load_feed_cache(profile_id)

    async def fetch_library(self, *, token_provider: TokenProvider) -> Library:
        """List everything the signed-in user could add to a profile."""

        return await self.client_for(token_provider).fetch_library()
