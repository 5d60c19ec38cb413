"""
Directory

User listings and profile views annotated with the caller's relationship to
each user. Relationship state comes from the store, the decision about what
the caller sees comes from the visibility rules, songs come from the catalog.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func, or_, select

from audioly.core.logging import get_logger, timed
from audioly.models.song import Song
from audioly.models.user import User
from audioly.social.store import RelationshipStore, retry_once
from audioly.social.visibility import (
    ConnectionStatus,
    can_access_uploads,
    classify,
    select_visible_content,
)
from audioly.songs.catalog import ContentCatalog

logger = get_logger(__name__)


@dataclass
class DirectoryEntry:
    user: User
    status: ConnectionStatus
    songs_count: int

    @property
    def is_friend(self) -> bool:
        return self.status == ConnectionStatus.FRIEND

    @property
    def sent_request(self) -> bool:
        return self.status == ConnectionStatus.SENT

    @property
    def incoming_request(self) -> bool:
        return self.status == ConnectionStatus.RECEIVED


@dataclass
class ProfileView:
    user: User
    friends_count: int
    connection_status: ConnectionStatus
    can_see_uploads: bool
    uploads: List[Song] = field(default_factory=list)

    @property
    def uploads_count(self) -> int:
        return len(self.uploads)


@dataclass
class FriendsOverview:
    friends: List[User]
    incoming_requests: List[User]


class Directory:
    def __init__(
        self,
        store: RelationshipStore,
        catalog: ContentCatalog,
        limit: int = 50,
    ):
        self.store = store
        self.catalog = catalog
        self.limit = limit

    @retry_once
    async def _candidates(self, exclude_id: Optional[str], query: Optional[str]) -> List[User]:
        stmt = select(User)
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        if query and query.strip():
            needle = query.strip().lower()
            stmt = stmt.where(
                or_(
                    func.lower(User.name).contains(needle, autoescape=True),
                    func.lower(User.username).contains(needle, autoescape=True),
                )
            )
        stmt = stmt.order_by(User.created_at.desc(), User.id).limit(self.limit)
        rows = await self.store.guard(self.store.session.scalars(stmt))
        return list(rows.all())

    async def search(
        self, caller_id: Optional[str], query: Optional[str] = None
    ) -> List[DirectoryEntry]:
        with timed("directory.search", logger, query=query or "") as result:
            candidates = await self._candidates(caller_id, query)
            result["results"] = len(candidates)
            edges = await self.store.edges_for_many(candidates)
            counts = await self.catalog.count_public(u.id for u in candidates)

            caller_requests = None
            if caller_id is not None:
                caller_requests = await self.store.pending_requests_of(caller_id)

            return [
                DirectoryEntry(
                    user=user,
                    status=classify(caller_id, edges[user.id], caller_requests),
                    songs_count=counts[user.id],
                )
                for user in candidates
            ]

    async def profile(self, viewer_id: Optional[str], target_id: str) -> ProfileView:
        target_user = await self.store.get_user(target_id)
        target = await self.store.edges_for(target_user)

        status = await self.store.connection_status(viewer_id, target)
        content_filter = select_visible_content(status, target.is_private, target.id)
        uploads = await self.catalog.list_visible(content_filter)

        return ProfileView(
            user=target_user,
            friends_count=len(target.friends),
            connection_status=status,
            can_see_uploads=can_access_uploads(status, target.is_private),
            uploads=uploads,
        )

    async def friends_overview(self, user_id: str) -> FriendsOverview:
        me = await self.store.snapshot(user_id)
        return FriendsOverview(
            friends=await self.store.users_by_ids(me.friends),
            incoming_requests=await self.store.users_by_ids(me.friend_requests),
        )

    async def feed(self, user_id: str) -> List[Song]:
        """Own songs plus whatever each friend's profile would show this user."""
        me = await self.store.snapshot(user_id)
        friends = await self.store.users_by_ids(me.friends)

        filters = [select_visible_content(ConnectionStatus.SELF, me.is_private, me.id)]
        for friend in friends:
            filters.append(
                select_visible_content(ConnectionStatus.FRIEND, friend.is_private, friend.id)
            )
        return await self.catalog.list_visible_many(filters, limit=self.limit)
