"""Turn bare video ids into filtered, display-ready feed entries."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ..config import Settings
from ..models import FeedVideo
from ..utils import chunked, parse_iso8601_duration, parse_published_at, unique_in_order
from .youtube import VideoResource, YouTubeClient

logger = logging.getLogger(__name__)

THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")


class VideoHydrator:
    """Hydrate ids in fixed-size batches and drop unusable items."""

    def __init__(self, settings: Settings, client: YouTubeClient):
        self._settings = settings
        self._client = client

    async def hydrate(self, video_ids: Iterable[str]) -> list[FeedVideo]:
        """Return one ``FeedVideo`` per surviving id.

        Batches are requested concurrently; a failing batch fails the call.
        """

        ordered_ids = unique_in_order(video_ids)
        if not ordered_ids:
            return []

        batches = list(chunked(ordered_ids, self._settings.hydration_batch_size))
        results = await asyncio.gather(
            *(self._client.fetch_videos(batch) for batch in batches)
        )

        merged: dict[str, FeedVideo] = {}
        for resources in results:
            for resource in resources:
                video = self.to_feed_video(resource)
                if video is not None and video.id not in merged:
                    merged[video.id] = video
        logger.info(
            "Hydrated %d of %d videos in %d batches",
            len(merged),
            len(ordered_ids),
            len(batches),
        )
        return list(merged.values())

    def to_feed_video(self, resource: VideoResource) -> FeedVideo | None:
        """Convert a hydrated resource, or ``None`` when it should be dropped."""

        if not resource.id or resource.snippet is None:
            logger.debug("Dropping video without id or snippet: %r", resource.id)
            return None

        if self._settings.exclude_shorts and self._is_short(resource):
            logger.debug("Dropping short-form video %s", resource.id)
            return None

        published_at = parse_published_at(resource.snippet.published_at)
        if published_at is None:
            logger.debug(
                "Dropping video %s with unparseable publish time %r",
                resource.id,
                resource.snippet.published_at,
            )
            return None

        return FeedVideo(
            id=resource.id,
            title=resource.snippet.title,
            channel_title=resource.snippet.channel_title,
            published_at=published_at,
            thumbnail_url=best_thumbnail_url(resource),
        )

    def _is_short(self, resource: VideoResource) -> bool:
        details = resource.content_details
        seconds = parse_iso8601_duration(details.duration if details else None)
        return seconds is not None and seconds <= self._settings.shorts_max_seconds


def best_thumbnail_url(resource: VideoResource) -> str | None:
    """Return the highest-resolution thumbnail URL available."""

    if resource.snippet is None:
        return None
    thumbnails = resource.snippet.thumbnails
    for key in THUMBNAIL_PREFERENCE:
        thumbnail = thumbnails.get(key)
        if thumbnail is not None and thumbnail.url:
            return thumbnail.url
    return None
