"""SQLAlchemy ORM models backing the persistent state."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _naive_utcnow() -> datetime:
    # DateTime columns hold UTC without a zone.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Profile(Base):
    """A named feed configuration."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    is_kid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_naive_utcnow
    )

    subscriptions: Mapped[list["ProfileSubscription"]] = relationship(
        back_populates="profile", cascade="all, delete-orphan", passive_deletes=True
    )
    playlists: Mapped[list["ProfilePlaylist"]] = relationship(
        back_populates="profile", cascade="all, delete-orphan", passive_deletes=True
    )
    liked_videos: Mapped[list["ProfileLikedVideo"]] = relationship(
        back_populates="profile", cascade="all, delete-orphan", passive_deletes=True
    )
    feed_cache: Mapped["FeedCacheRecord"] = relationship(
        back_populates="profile",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )


class ProfileSubscription(Base):
    """Channel membership of a profile."""

    __tablename__ = "profile_subscriptions"
    __table_args__ = (
        UniqueConstraint("profile_id", "channel_id", name="uq_profile_subscription"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    profile_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.id", ondelete="CASCADE"), index=True
    )
    channel_id: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_naive_utcnow
    )

    profile: Mapped[Profile] = relationship(back_populates="subscriptions")


class ProfilePlaylist(Base):
    """Playlist membership of a profile."""

    __tablename__ = "profile_playlists"
    __table_args__ = (
        UniqueConstraint("profile_id", "playlist_id", name="uq_profile_playlist"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    profile_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.id", ondelete="CASCADE"), index=True
    )
    playlist_id: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_naive_utcnow
    )

    profile: Mapped[Profile] = relationship(back_populates="playlists")


class ProfileLikedVideo(Base):
    """Liked-video membership; any row enables the liked source."""

    __tablename__ = "profile_liked_videos"
    __table_args__ = (
        UniqueConstraint("profile_id", "video_id", name="uq_profile_liked_video"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    profile_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.id", ondelete="CASCADE"), index=True
    )
    video_id: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_naive_utcnow
    )

    profile: Mapped[Profile] = relationship(back_populates="liked_videos")


class FeedCacheRecord(Base):
    """Most recent feed snapshot of a profile."""

    __tablename__ = "feed_cache"

    profile_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True
    )
    fetched_at: Mapped[datetime] = mapped_column(DateTime)
    payload: Mapped[list[dict[str, Any]]] = mapped_column(JSON)

    profile: Mapped[Profile] = relationship(back_populates="feed_cache")
