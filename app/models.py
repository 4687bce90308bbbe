"""Pydantic models describing feed payloads and profile views."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean_ids(value: object) -> object:
    """Strip identifiers and drop blank strings from a request list.

    Entries that are not strings are left in place so validation rejects them.
    """

    if isinstance(value, list):
        cleaned: list[object] = []
        for entry in value:
            if isinstance(entry, str):
                entry = entry.strip()
                if not entry:
                    continue
            cleaned.append(entry)
        return cleaned
    return value


class FeedVideo(BaseModel):
    """A hydrated video entry ready for display."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str
    channel_title: str = Field(alias="channelTitle")
    published_at: datetime = Field(alias="publishedAt")
    thumbnail_url: str | None = Field(default=None, alias="thumbnailURL")


class FeedSnapshot(BaseModel):
    """The cached, sorted feed of a single profile."""

    model_config = ConfigDict(populate_by_name=True)

    profile_id: str = Field(alias="profileId")
    fetched_at: datetime = Field(alias="fetchedAt")
    videos: list[FeedVideo] = Field(default_factory=list)


class ProfileSummary(BaseModel):
    """Public view of a stored profile."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    is_kid: bool = Field(default=False, alias="isKid")


class ProfileSources(BaseModel):
    """Feed inputs configured on a profile."""

    model_config = ConfigDict(populate_by_name=True)

    channel_ids: list[str] = Field(default_factory=list, alias="channelIds")
    playlist_ids: list[str] = Field(default_factory=list, alias="playlistIds")
    include_likes: bool = Field(default=False, alias="includeLikes")


class ChannelItem(BaseModel):
    """A subscribed channel."""

    id: str
    title: str


class LikedVideoItem(BaseModel):
    """A video the user rated with a like."""

    id: str
    title: str


class PlaylistItem(BaseModel):
    """A playlist owned by the user."""

    id: str
    title: str


class Library(BaseModel):
    """Everything a profile can be built from."""

    subscriptions: list[ChannelItem] = Field(default_factory=list)
    liked_videos: list[LikedVideoItem] = Field(
        default_factory=list, alias="likedVideos"
    )
    playlists: list[PlaylistItem] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class ProfileCreate(BaseModel):
    """Request body for creating a profile."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(max_length=120)
    is_kid: bool = Field(default=False, alias="isKid")
    channel_ids: list[str] = Field(default_factory=list, alias="channelIds")
    video_ids: list[str] = Field(default_factory=list, alias="videoIds")
    playlist_ids: list[str] = Field(default_factory=list, alias="playlistIds")

    @field_validator("channel_ids", "video_ids", "playlist_ids", mode="before")
    @classmethod
    def _drop_blank_ids(cls, value: object) -> object:
        return _clean_ids(value)


class ProfileUpdate(BaseModel):
    """Request body for renaming a profile or toggling its kid flag."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(max_length=120)
    is_kid: bool = Field(default=False, alias="isKid")


class SourcesUpdate(BaseModel):
    """Request body replacing every source of a profile."""

    model_config = ConfigDict(populate_by_name=True)

    channel_ids: list[str] = Field(default_factory=list, alias="channelIds")
    video_ids: list[str] = Field(default_factory=list, alias="videoIds")
    playlist_ids: list[str] = Field(default_factory=list, alias="playlistIds")

    @field_validator("channel_ids", "video_ids", "playlist_ids", mode="before")
    @classmethod
    def _drop_blank_ids(cls, value: object) -> object:
        return _clean_ids(value)
