"""
Content catalog: song records and the listing queries over them.

Listings that depend on who is looking take a `ContentFilter` produced by
`audioly.social.visibility`; a denied filter short-circuits without touching
the database.
"""

import asyncio
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from audioly.core.errors import NotFoundError, StorageError, StoreTimeoutError
from audioly.core.logging import get_logger
from audioly.infra.storage import StoredObject
from audioly.models.song import Song
from audioly.models.user import User
from audioly.social.store import retry_once
from audioly.social.visibility import ContentFilter

logger = get_logger(__name__)


class ContentCatalog:
    def __init__(self, session: AsyncSession, timeout: float = 5.0):
        self.session = session
        self.timeout = timeout

    async def guard(self, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            await self.session.rollback()
            raise StoreTimeoutError(details={"timeout_seconds": self.timeout})
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("catalog.error", error=str(exc))
            raise StorageError() from exc

    async def create_song(
        self,
        owner: User,
        title: str,
        audio: StoredObject,
        category: Optional[str] = None,
        is_public: bool = True,
        cover: Optional[StoredObject] = None,
    ) -> Song:
        """Songs of a private account are always stored private."""
        song = Song(
            id=str(uuid4()),
            owner_id=owner.id,
            title=title.strip(),
            category=category.strip() if category else None,
            audio_url=audio.url,
            audio_storage_id=audio.storage_id,
            cover_url=cover.url if cover else None,
            cover_storage_id=cover.storage_id if cover else None,
            is_public=False if owner.is_private else is_public,
            play_count=0,
        )
        self.session.add(song)
        await self.guard(self.session.commit())
        logger.info("song.created", song_id=song.id, owner_id=owner.id, is_public=song.is_public)
        return song

    @retry_once
    async def list_visible(self, content_filter: ContentFilter) -> List[Song]:
        if not content_filter.allowed:
            return []
        stmt = select(Song).where(Song.owner_id == content_filter.owner_id)
        if content_filter.public_only:
            stmt = stmt.where(Song.is_public.is_(True))
        stmt = stmt.order_by(Song.created_at.desc())
        rows = await self.guard(self.session.scalars(stmt))
        return list(rows.all())

    @retry_once
    async def count_public(self, owner_ids: Iterable[str]) -> Dict[str, int]:
        owner_ids = list(owner_ids)
        counts = {owner_id: 0 for owner_id in owner_ids}
        if not owner_ids:
            return counts
        stmt = (
            select(Song.owner_id, func.count(Song.id))
            .where(Song.owner_id.in_(owner_ids), Song.is_public.is_(True))
            .group_by(Song.owner_id)
        )
        rows = await self.guard(self.session.execute(stmt))
        for owner_id, count in rows.all():
            counts[owner_id] = count
        return counts

    @retry_once
    async def explore(self, limit: int) -> List[Song]:
        """
        Public songs of public accounts, newest first. This is the anonymous
        viewer rule of `select_visible_content` applied to every owner at once.
        """
        stmt = (
            select(Song)
            .join(User, Song.owner_id == User.id)
            .where(Song.is_public.is_(True), User.is_private.is_(False))
            .options(selectinload(Song.owner))
            .order_by(Song.created_at.desc())
            .limit(limit)
        )
        rows = await self.guard(self.session.scalars(stmt))
        return list(rows.all())

    @retry_once
    async def list_visible_many(self, filters: Iterable[ContentFilter], limit: int) -> List[Song]:
        """Merge several owners' visible songs into one newest-first listing."""
        full_owners = []
        public_owners = []
        for content_filter in filters:
            if not content_filter.allowed:
                continue
            if content_filter.public_only:
                public_owners.append(content_filter.owner_id)
            else:
                full_owners.append(content_filter.owner_id)

        conditions = []
        if full_owners:
            conditions.append(Song.owner_id.in_(full_owners))
        if public_owners:
            conditions.append(and_(Song.owner_id.in_(public_owners), Song.is_public.is_(True)))
        if not conditions:
            return []

        stmt = (
            select(Song)
            .where(or_(*conditions))
            .options(selectinload(Song.owner))
            .order_by(Song.created_at.desc())
            .limit(limit)
        )
        rows = await self.guard(self.session.scalars(stmt))
        return list(rows.all())

    @retry_once
    async def get_song(self, song_id: str) -> Song:
        song = await self.guard(self.session.get(Song, song_id))
        if song is None:
            raise NotFoundError("Song not found", details={"song_id": song_id})
        return song

    async def record_play(self, song: Song) -> int:
        await self.guard(
            self.session.execute(
                update(Song)
                .where(Song.id == song.id)
                .values(play_count=Song.play_count + 1)
                .execution_options(synchronize_session=False)
            )
        )
        await self.guard(self.session.commit())
        await self.guard(self.session.refresh(song))
        return song.play_count
