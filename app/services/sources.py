"""Resolve a profile's configured sources into raw video identifiers."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from ..config import Settings
from ..utils import unique_in_order
from .youtube import YouTubeClient

logger = logging.getLogger(__name__)


class SourceResolver:
    """Fan out one fetch per channel, playlist and the liked list."""

    def __init__(self, settings: Settings, client: YouTubeClient):
        self._settings = settings
        self._client = client

    async def resolve(
        self,
        channel_ids: Sequence[str],
        playlist_ids: Sequence[str],
        include_liked: bool,
    ) -> set[str]:
        """Return the union of video ids found across every source."""

        from_channels, from_playlists, from_likes = await asyncio.gather(
            self._ids_from_channels(channel_ids),
            self._ids_from_playlists(playlist_ids),
            self._ids_from_likes(include_liked),
        )

        unique: set[str] = set()
        unique.update(from_channels)
        unique.update(from_playlists)
        unique.update(from_likes)
        logger.info(
            "Resolved %d unique videos (channels=%d, playlists=%d, liked=%d)",
            len(unique),
            len(from_channels),
            len(from_playlists),
            len(from_likes),
        )
        return unique

    async def _ids_from_channels(self, channel_ids: Sequence[str]) -> list[str]:
        channel_ids = unique_in_order(channel_ids)
        if not channel_ids:
            return []
        parts = await asyncio.gather(
            *(
                self._client.fetch_recent_video_ids_for_channel(
                    channel_id, self._settings.recent_per_channel
                )
                for channel_id in channel_ids
            )
        )
        return [video_id for part in parts for video_id in part]

    async def _ids_from_playlists(self, playlist_ids: Sequence[str]) -> list[str]:
        playlist_ids = unique_in_order(playlist_ids)
        if not playlist_ids:
            return []
        parts = await asyncio.gather(
            *(
                self._client.fetch_recent_playlist_video_ids(
                    playlist_id, self._settings.recent_per_playlist
                )
                for playlist_id in playlist_ids
            )
        )
        return [video_id for part in parts for video_id in part]

    async def _ids_from_likes(self, include_liked: bool) -> list[str]:
        if not include_liked:
            return []
        return await self._client.fetch_recent_liked_video_ids(
            self._settings.recent_liked_limit
        )
