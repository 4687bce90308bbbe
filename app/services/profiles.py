"""Persistence for profiles, their feed sources and cached feeds."""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, Sequence

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import (
    FeedCacheRecord,
    Profile,
    ProfileLikedVideo,
    ProfilePlaylist,
    ProfileSubscription,
)
from ..errors import StorageFailure, ValidationFailure
from ..models import FeedSnapshot, FeedVideo, ProfileSources, ProfileSummary

logger = logging.getLogger(__name__)

_FEED_ADAPTER = TypeAdapter(list[FeedVideo])


@dataclass
class _ProfileLock:
    """Write lock of one profile plus the number of holders and waiters."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class ProfileStore:
    """Transactional access to profiles, source membership and feed snapshots.

    Each public method runs in its own session and commits or rolls back as a
    whole. Writes touching the same profile are serialized in-process.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._write_locks: dict[str, _ProfileLock] = {}

    async def create_profile(
        self,
        name: str,
        is_kid: bool,
        channel_ids: Iterable[str] = (),
        video_ids: Iterable[str] = (),
        playlist_ids: Iterable[str] = (),
    ) -> ProfileSummary:
        """Insert a profile together with its initial sources."""

        cleaned_name = _validate_name(name)
        profile_id = str(uuid.uuid4())
        async with self._profile_lock(profile_id):
            try:
                async with self._session_factory() as session:
                    session.add(
                        Profile(
                            id=profile_id,
                            name=cleaned_name,
                            is_kid=bool(is_kid),
                            created_at=_naive_utc(_utcnow()),
                        )
                    )
                    await session.flush()
                    await self._insert_sources(
                        session, profile_id, channel_ids, video_ids, playlist_ids
                    )
                    await session.commit()
            except SQLAlchemyError as exc:
                raise StorageFailure(f"Could not create profile {cleaned_name!r}") from exc

        logger.info("Created profile %s (%s)", profile_id, cleaned_name)
        return ProfileSummary(id=profile_id, name=cleaned_name, is_kid=bool(is_kid))

    async def replace_profile_sources(
        self,
        profile_id: str,
        channel_ids: Iterable[str] = (),
        video_ids: Iterable[str] = (),
        playlist_ids: Iterable[str] = (),
    ) -> None:
        """Overwrite every source of a profile in one transaction."""

        async with self._profile_lock(profile_id):
            try:
                async with self._session_factory() as session:
                    await self._require_profile(session, profile_id)
                    for model in (ProfileSubscription, ProfilePlaylist, ProfileLikedVideo):
                        await session.execute(
                            delete(model).where(model.profile_id == profile_id)
                        )
                    await self._insert_sources(
                        session, profile_id, channel_ids, video_ids, playlist_ids
                    )
                    await session.commit()
            except SQLAlchemyError as exc:
                raise StorageFailure(
                    f"Could not replace sources of profile {profile_id}"
                ) from exc

    async def load_profile_sources(self, profile_id: str) -> ProfileSources:
        """Return the channels, playlists and liked flag of a profile."""

        try:
            async with self._session_factory() as session:
                await self._require_profile(session, profile_id)
                channel_rows = await session.execute(
                    select(ProfileSubscription.channel_id)
                    .where(ProfileSubscription.profile_id == profile_id)
                    .order_by(ProfileSubscription.created_at, ProfileSubscription.channel_id)
                )
                playlist_rows = await session.execute(
                    select(ProfilePlaylist.playlist_id)
                    .where(ProfilePlaylist.profile_id == profile_id)
                    .order_by(ProfilePlaylist.created_at, ProfilePlaylist.playlist_id)
                )
                include_likes = await session.scalar(
                    select(
                        exists().where(ProfileLikedVideo.profile_id == profile_id)
                    )
                )
                sources = ProfileSources(
                    channel_ids=list(channel_rows.scalars().all()),
                    playlist_ids=list(playlist_rows.scalars().all()),
                    include_likes=bool(include_likes),
                )
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Could not load sources of profile {profile_id}") from exc
        return sources

    async def fetch_profiles(self) -> list[ProfileSummary]:
        """Return every profile ordered by case-insensitive name."""

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Profile).order_by(func.lower(Profile.name), Profile.id)
                )
                profiles = result.scalars().all()
        except SQLAlchemyError as exc:
            raise StorageFailure("Could not list profiles") from exc
        return [_to_summary(profile) for profile in profiles]

    async def get_profile(self, profile_id: str) -> ProfileSummary | None:
        try:
            async with self._session_factory() as session:
                profile = await session.get(Profile, profile_id)
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Could not load profile {profile_id}") from exc
        return _to_summary(profile) if profile is not None else None

    async def update_profile(self, profile_id: str, name: str, is_kid: bool) -> ProfileSummary:
        """Rename a profile and set its kid flag."""

        cleaned_name = _validate_name(name)
        async with self._profile_lock(profile_id):
            try:
                async with self._session_factory() as session:
                    result = await session.execute(
                        update(Profile)
                        .where(Profile.id == profile_id)
                        .values(name=cleaned_name, is_kid=bool(is_kid))
                    )
                    if result.rowcount == 0:
                        raise KeyError(f"Unknown profile: {profile_id}")
                    await session.commit()
            except SQLAlchemyError as exc:
                raise StorageFailure(f"Could not update profile {profile_id}") from exc
        return ProfileSummary(id=profile_id, name=cleaned_name, is_kid=bool(is_kid))

    async def delete_profile(self, profile_id: str) -> None:
        """Remove a profile; memberships and its snapshot cascade."""

        async with self._profile_lock(profile_id):
            try:
                async with self._session_factory() as session:
                    await session.execute(delete(Profile).where(Profile.id == profile_id))
                    await session.commit()
            except SQLAlchemyError as exc:
                raise StorageFailure(f"Could not delete profile {profile_id}") from exc
        logger.info("Deleted profile %s", profile_id)

    async def save_feed_cache(
        self,
        profile_id: str,
        videos: Sequence[FeedVideo],
        fetched_at: datetime | None = None,
    ) -> FeedSnapshot:
        """Replace the cached snapshot of a profile."""

        fetched_at = fetched_at or _utcnow()
        payload = _FEED_ADAPTER.dump_python(list(videos), mode="json", by_alias=True)
        async with self._profile_lock(profile_id):
            try:
                async with self._session_factory() as session:
                    await self._require_profile(session, profile_id)
                    record = await session.get(FeedCacheRecord, profile_id)
                    if record is None:
                        session.add(
                            FeedCacheRecord(
                                profile_id=profile_id,
                                fetched_at=_naive_utc(fetched_at),
                                payload=payload,
                            )
                        )
                    else:
                        record.fetched_at = _naive_utc(fetched_at)
                        record.payload = payload
                    await session.commit()
            except SQLAlchemyError as exc:
                raise StorageFailure(
                    f"Could not save feed cache of profile {profile_id}"
                ) from exc

        logger.info("Cached %d videos for profile %s", len(videos), profile_id)
        return FeedSnapshot(
            profile_id=profile_id, fetched_at=fetched_at, videos=list(videos)
        )

    async def load_feed_cache(self, profile_id: str) -> FeedSnapshot | None:
        """Return the cached snapshot of a profile, if one was stored."""

        try:
            async with self._session_factory() as session:
                record = await session.get(FeedCacheRecord, profile_id)
                if record is None:
                    return None
                fetched_at = record.fetched_at
                payload = record.payload
        except SQLAlchemyError as exc:
            raise StorageFailure(
                f"Could not load feed cache of profile {profile_id}"
            ) from exc

        try:
            videos = _FEED_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            logger.warning(
                "Stored feed for profile %s could not be validated: %s",
                profile_id,
                exc,
            )
            return None
        return FeedSnapshot(
            profile_id=profile_id,
            fetched_at=fetched_at.replace(tzinfo=timezone.utc),
            videos=videos,
        )

    @asynccontextmanager
    async def _profile_lock(self, profile_id: str) -> AsyncIterator[None]:
        """Serialize writes on ``profile_id``; the entry lives only while in use."""

        entry = self._write_locks.get(profile_id)
        if entry is None:
            entry = self._write_locks[profile_id] = _ProfileLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._write_locks.get(profile_id) is entry:
                del self._write_locks[profile_id]

    async def _require_profile(self, session: AsyncSession, profile_id: str) -> None:
        found = await session.scalar(select(Profile.id).where(Profile.id == profile_id))
        if found is None:
            raise KeyError(f"Unknown profile: {profile_id}")

    async def _insert_sources(
        self,
        session: AsyncSession,
        profile_id: str,
        channel_ids: Iterable[str],
        video_ids: Iterable[str],
        playlist_ids: Iterable[str],
    ) -> None:
        now = _naive_utc(_utcnow())
        memberships: tuple[tuple[type[Any], str, Iterable[str]], ...] = (
            (ProfileSubscription, "channel_id", channel_ids),
            (ProfileLikedVideo, "video_id", video_ids),
            (ProfilePlaylist, "playlist_id", playlist_ids),
        )
        for model, column, external_ids in memberships:
            rows = [
                {
                    "id": str(uuid.uuid4()),
                    "profile_id": profile_id,
                    column: external_id,
                    "created_at": now,
                }
                for external_id in sorted(set(external_ids))
                if external_id
            ]
            if not rows:
                continue
            stmt = self._insert(session, model).values(rows)
            stmt = stmt.on_conflict_do_nothing(index_elements=["profile_id", column])
            await session.execute(stmt)

    @staticmethod
    def _insert(session: AsyncSession, model: type[Any]):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(model)
        if dialect == "sqlite":
            return sqlite_insert(model)
        raise StorageFailure(f"Unsupported database dialect: {dialect}")


def _validate_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationFailure("Profile name must not be empty")
    return cleaned


def _to_summary(profile: Profile) -> ProfileSummary:
    return ProfileSummary(id=profile.id, name=profile.name, is_kid=profile.is_kid)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive_utc(value: datetime) -> datetime:
    # DateTime columns are stored without a zone.
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
