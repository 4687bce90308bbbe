"""Utilities for communicating with the YouTube Data API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Mapping, Sequence, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import Settings
from ..errors import BadStatus, DecodeFailed, NoAccessToken
from ..models import ChannelItem, Library, LikedVideoItem, PlaylistItem

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], "str | None"]

MAX_PAGE_SIZE = 50
MAX_VIDEO_IDS_PER_CALL = 50

ItemT = TypeVar("ItemT", bound=BaseModel)


def static_token_provider(token: str | None) -> TokenProvider:
    """Return a provider that always yields ``token``."""

    def _provider() -> str | None:
        return token

    return _provider


class _Resource(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ListResponse(_Resource, Generic[ItemT]):
    """Envelope shared by every paginated list endpoint."""

    next_page_token: str | None = Field(default=None, alias="nextPageToken")
    items: list[ItemT] = Field(default_factory=list)


class TitleSnippet(_Resource):
    title: str = ""


class ResourceId(_Resource):
    channel_id: str | None = Field(default=None, alias="channelId")
    video_id: str | None = Field(default=None, alias="videoId")


class SubscriptionSnippet(_Resource):
    title: str = ""
    resource_id: ResourceId = Field(alias="resourceId")


class SubscriptionResource(_Resource):
    snippet: SubscriptionSnippet


class TitledResource(_Resource):
    """A video or playlist listed with its snippet."""

    id: str
    snippet: TitleSnippet


class IdResource(_Resource):
    id: str | None = None


class SearchResult(_Resource):
    id: ResourceId | None = None


class PlaylistItemDetails(_Resource):
    video_id: str | None = Field(default=None, alias="videoId")


class PlaylistItemResource(_Resource):
    content_details: PlaylistItemDetails | None = Field(
        default=None, alias="contentDetails"
    )


class Thumbnail(_Resource):
    url: str | None = None
    width: int | None = None
    height: int | None = None


class VideoSnippet(_Resource):
    title: str = ""
    channel_title: str = Field(default="", alias="channelTitle")
    published_at: str | None = Field(default=None, alias="publishedAt")
    thumbnails: dict[str, Thumbnail] = Field(default_factory=dict)


class VideoContentDetails(_Resource):
    duration: str | None = None


class VideoResource(_Resource):
    """Full metadata for a single video as returned by ``videos.list``."""

    id: str | None = None
    snippet: VideoSnippet | None = None
    content_details: VideoContentDetails | None = Field(
        default=None, alias="contentDetails"
    )


@dataclass(slots=True)
class Page(Generic[ItemT]):
    """A single decoded page and the token pointing at the next one."""

    items: list[ItemT] = field(default_factory=list)
    next_page_token: str | None = None


class YouTubeClient:
    """Thin wrapper around the paginated YouTube Data API.

    Every request asks ``token_provider`` for a bearer token. The client never
    retries; callers decide what to do with a failure.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        token_provider: TokenProvider,
    ):
        self._settings = settings
        self._client = http_client
        self._token_provider = token_provider

    def _headers(self) -> dict[str, str]:
        token = self._token_provider()
        if not token:
            raise NoAccessToken()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "User-Agent": f"{self._settings.app_name} (tubefeed)",
        }

    async def _get(self, endpoint: str, params: Mapping[str, Any]) -> Any:
        headers = self._headers()
        try:
            response = await self._client.get(endpoint, headers=headers, params=params)
        except httpx.TransportError as exc:
            logger.warning("YouTube request to %s failed: %s", endpoint, exc)
            raise BadStatus(-1, str(exc) or exc.__class__.__name__) from exc

        if not 200 <= response.status_code < 300:
            logger.warning(
                "YouTube request to %s returned HTTP %s",
                endpoint,
                response.status_code,
            )
            raise BadStatus(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as exc:
            raise DecodeFailed(f"Non-JSON response from {endpoint}") from exc

    async def list_page(
        self,
        endpoint: str,
        params: Mapping[str, Any],
        page_token: str | None = None,
        *,
        schema: type[ItemT],
    ) -> Page[ItemT]:
        """Fetch and decode one page of a list endpoint."""

        query = dict(params)
        if "maxResults" in query:
            query["maxResults"] = max(1, min(int(query["maxResults"]), MAX_PAGE_SIZE))
        if page_token:
            query["pageToken"] = page_token

        data = await self._get(endpoint, query)
        try:
            decoded = ListResponse[schema].model_validate(data)  # type: ignore[valid-type]
        except ValidationError as exc:
            raise DecodeFailed(f"Unexpected response structure from {endpoint}") from exc
        return Page(items=list(decoded.items), next_page_token=decoded.next_page_token)

    async def drain_all(
        self,
        endpoint: str,
        params: Mapping[str, Any],
        *,
        schema: type[ItemT],
        limit: int | None = None,
        max_per_page: int = MAX_PAGE_SIZE,
    ) -> list[ItemT]:
        """Follow ``nextPageToken`` until exhausted or ``limit`` items are collected."""

        if limit is not None and limit <= 0:
            return []

        collected: list[ItemT] = []
        page_token: str | None = None
        per_page = max(1, min(int(max_per_page), MAX_PAGE_SIZE))

        while True:
            page_size = per_page
            if limit is not None:
                page_size = min(page_size, limit - len(collected))
            page = await self.list_page(
                endpoint,
                {**params, "maxResults": page_size},
                page_token,
                schema=schema,
            )
            collected.extend(page.items)
            page_token = page.next_page_token
            if not page_token:
                break
            if limit is not None and len(collected) >= limit:
                break

        if limit is not None:
            return collected[:limit]
        return collected

    async def fetch_all_subscriptions(
        self, max_per_page: int = MAX_PAGE_SIZE
    ) -> list[ChannelItem]:
        """Return every channel the user subscribes to."""

        items = await self.drain_all(
            "/subscriptions",
            {"part": "snippet", "mine": "true"},
            schema=SubscriptionResource,
            max_per_page=max_per_page,
        )
        channels: list[ChannelItem] = []
        for item in items:
            channel_id = item.snippet.resource_id.channel_id
            if channel_id:
                channels.append(ChannelItem(id=channel_id, title=item.snippet.title))
        return channels

    async def fetch_all_liked_videos(
        self, max_per_page: int = MAX_PAGE_SIZE
    ) -> list[LikedVideoItem]:
        """Return every video the user liked."""

        items = await self.drain_all(
            "/videos",
            {"part": "snippet", "myRating": "like"},
            schema=TitledResource,
            max_per_page=max_per_page,
        )
        return [LikedVideoItem(id=item.id, title=item.snippet.title) for item in items]

    async def fetch_all_playlists(
        self, max_per_page: int = MAX_PAGE_SIZE
    ) -> list[PlaylistItem]:
        """Return every playlist owned by the user."""

        items = await self.drain_all(
            "/playlists",
            {"part": "snippet", "mine": "true"},
            schema=TitledResource,
            max_per_page=max_per_page,
        )
        return [PlaylistItem(id=item.id, title=item.snippet.title) for item in items]

    async def fetch_library(self) -> Library:
        """Load subscriptions, liked videos and playlists concurrently."""

        subscriptions, liked_videos, playlists = await asyncio.gather(
            self.fetch_all_subscriptions(),
            self.fetch_all_liked_videos(),
            self.fetch_all_playlists(),
        )
        return Library(
            subscriptions=subscriptions,
            liked_videos=liked_videos,
            playlists=playlists,
        )

    async def fetch_recent_liked_video_ids(self, limit: int) -> list[str]:
        """Return up to ``limit`` ids of the most recently liked videos."""

        items = await self.drain_all(
            "/videos",
            {"part": "id", "myRating": "like"},
            schema=IdResource,
            limit=limit,
        )
        return [item.id for item in items if item.id]

    async def fetch_recent_video_ids_for_channel(
        self, channel_id: str, max_results: int
    ) -> list[str]:
        """Return the newest video ids uploaded to ``channel_id``."""

        items = await self.drain_all(
            "/search",
            {
                "part": "id",
                "channelId": channel_id,
                "order": "date",
                "type": "video",
            },
            schema=SearchResult,
            limit=max_results,
        )
        return [item.id.video_id for item in items if item.id and item.id.video_id]

    async def fetch_recent_playlist_video_ids(
        self, playlist_id: str, max_results: int
    ) -> list[str]:
        """Return up to ``max_results`` video ids in playlist order."""

        items = await self.drain_all(
            "/playlistItems",
            {"part": "contentDetails", "playlistId": playlist_id},
            schema=PlaylistItemResource,
            limit=max_results,
        )
        return [
            item.content_details.video_id
            for item in items
            if item.content_details and item.content_details.video_id
        ]

    async def fetch_videos(self, video_ids: Sequence[str]) -> list[VideoResource]:
        """Hydrate up to fifty video ids in a single request."""

        if not video_ids:
            return []
        if len(video_ids) > MAX_VIDEO_IDS_PER_CALL:
            raise ValueError(
                f"At most {MAX_VIDEO_IDS_PER_CALL} video ids can be hydrated per call"
            )
        page = await self.list_page(
            "/videos",
            {
                "part": "snippet,contentDetails",
                "id": ",".join(video_ids),
                "maxResults": len(video_ids),
            },
            schema=VideoResource,
        )
        return page.items
