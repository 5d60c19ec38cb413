"""
Relationship store

Owns the friendship and pending-request edges. A friendship is stored as two
directed rows written in the same transaction; a pending request is one row
keyed by (requester, target).

Mutations on a pair of users are serialized twice over: an in-process
`asyncio.Lock` per unordered pair, and row locks (`SELECT ... FOR UPDATE`)
on both user records taken in id order for deployments running several
worker processes against one database.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import and_, delete, exists, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from audioly.core.errors import (
    AppError,
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    StorageError,
    StoreTimeoutError,
)
from audioly.core.logging import get_logger
from audioly.models.friend import FriendRequest, UserFriend
from audioly.models.user import User
from audioly.social.visibility import (
    ConnectionStatus,
    UserEdges,
    classify,
    needs_viewer_requests,
)

logger = get_logger(__name__)

# Reads and idempotent writes get one extra attempt; send_request gets none.
retry_once = retry(
    reraise=True,
    stop=stop_after_attempt(2),
    retry=retry_if_exception_type(StorageError),
)


class PairLocks:
    """Registry of per-pair locks. Unused locks are dropped automatically."""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    @staticmethod
    def key(a: str, b: str) -> Tuple[str, str]:
        return (a, b) if a <= b else (b, a)

    @asynccontextmanager
    async def hold(self, a: str, b: str) -> AsyncIterator[None]:
        key = self.key(a, b)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


class RelationshipStore:
    def __init__(
        self,
        session: AsyncSession,
        locks: PairLocks,
        timeout: float = 5.0,
    ):
        self.session = session
        self.locks = locks
        self.timeout = timeout

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    async def guard(self, awaitable):
        """Bound a unit of store work in time and translate driver errors."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            await self.session.rollback()
            raise StoreTimeoutError(details={"timeout_seconds": self.timeout})
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("Relationship changed concurrently, try again") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("relationship_store.error", error=str(exc))
            raise StorageError() from exc
        except AppError:
            await self.session.rollback()
            raise

    async def _lock_pair(self, a: str, b: str) -> Dict[str, User]:
        stmt = (
            select(User)
            .where(User.id.in_([a, b]))
            .order_by(User.id)
            .with_for_update()
        )
        users = (await self.session.scalars(stmt)).all()
        found = {u.id: u for u in users}
        for user_id in (a, b):
            if user_id not in found:
                raise NotFoundError("User not found", details={"user_id": user_id})
        return found

    @staticmethod
    def _pending_between(a: str, b: str):
        return or_(
            and_(FriendRequest.requester_id == a, FriendRequest.target_id == b),
            and_(FriendRequest.requester_id == b, FriendRequest.target_id == a),
        )

    @staticmethod
    def _friendship_between(a: str, b: str):
        return or_(
            and_(UserFriend.user_id == a, UserFriend.friend_id == b),
            and_(UserFriend.user_id == b, UserFriend.friend_id == a),
        )

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    async def send_request(self, requester_id: str, target_id: str) -> None:
        if requester_id == target_id:
            raise InvalidOperationError("Cannot send request to yourself")
        async with self.locks.hold(requester_id, target_id):
            await self.guard(self._send(requester_id, target_id))
        logger.info("friend_request.sent", requester_id=requester_id, target_id=target_id)

    async def _send(self, requester_id: str, target_id: str) -> None:
        await self._lock_pair(requester_id, target_id)

        already_friends = await self.session.scalar(
            select(exists().where(self._friendship_between(requester_id, target_id)))
        )
        if already_friends:
            raise ConflictError("Already friends")

        pending = (
            await self.session.scalars(
                select(FriendRequest).where(self._pending_between(requester_id, target_id))
            )
        ).all()
        for row in pending:
            if row.requester_id == requester_id:
                raise ConflictError("Request already sent")
            raise ConflictError("This user has already sent you a request")

        self.session.add(FriendRequest(requester_id=requester_id, target_id=target_id))
        await self.session.commit()

    @retry_once
    async def accept_request(self, target_id: str, requester_id: str) -> None:
        """
        `target_id` accepts the request `requester_id` sent. Succeeds even when
        the request row is already gone, so a repeated accept is harmless.
        """
        if requester_id == target_id:
            raise InvalidOperationError("Cannot befriend yourself")
        async with self.locks.hold(requester_id, target_id):
            was_pending = await self.guard(self._accept(target_id, requester_id))
        logger.info(
            "friend_request.accepted",
            target_id=target_id,
            requester_id=requester_id,
            was_pending=was_pending,
        )

    async def _accept(self, target_id: str, requester_id: str) -> bool:
        await self._lock_pair(target_id, requester_id)

        # drop the request and any stale reverse one
        result = await self.session.execute(
            delete(FriendRequest)
            .where(self._pending_between(target_id, requester_id))
            .execution_options(synchronize_session=False)
        )

        existing = set(
            (
                await self.session.scalars(
                    select(UserFriend.user_id).where(
                        self._friendship_between(target_id, requester_id)
                    )
                )
            ).all()
        )
        if target_id not in existing:
            self.session.add(UserFriend(user_id=target_id, friend_id=requester_id))
        if requester_id not in existing:
            self.session.add(UserFriend(user_id=requester_id, friend_id=target_id))

        # both directions land in one commit
        await self.session.commit()
        return result.rowcount > 0

    @retry_once
    async def decline_or_cancel_request(self, a: str, b: str) -> bool:
        """Remove a pending request between `a` and `b` in either direction."""
        if a == b:
            raise InvalidOperationError("No request can exist with yourself")
        async with self.locks.hold(a, b):
            removed = await self.guard(self._remove_pending(a, b))
        logger.info("friend_request.removed", user_id=a, other_id=b, removed=removed)
        return removed

    async def _remove_pending(self, a: str, b: str) -> bool:
        await self._lock_pair(a, b)
        result = await self.session.execute(
            delete(FriendRequest)
            .where(self._pending_between(a, b))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount > 0

    @retry_once
    async def remove_friend(self, a: str, b: str) -> bool:
        if a == b:
            raise InvalidOperationError("Cannot unfriend yourself")
        async with self.locks.hold(a, b):
            removed = await self.guard(self._remove_friendship(a, b))
        logger.info("friendship.removed", user_id=a, other_id=b, removed=removed)
        return removed

    async def _remove_friendship(self, a: str, b: str) -> bool:
        await self._lock_pair(a, b)
        result = await self.session.execute(
            delete(UserFriend)
            .where(self._friendship_between(a, b))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    @retry_once
    async def is_friend(self, a: str, b: str) -> bool:
        stmt = select(
            exists().where(UserFriend.user_id == a, UserFriend.friend_id == b)
        )
        return bool(await self.guard(self.session.scalar(stmt)))

    @retry_once
    async def has_pending_request_from(self, a: str, to: str) -> bool:
        stmt = select(
            exists().where(FriendRequest.requester_id == a, FriendRequest.target_id == to)
        )
        return bool(await self.guard(self.session.scalar(stmt)))

    @retry_once
    async def friends_of(self, user_id: str) -> Set[str]:
        stmt = select(UserFriend.friend_id).where(UserFriend.user_id == user_id)
        rows = await self.guard(self.session.scalars(stmt))
        return set(rows.all())

    @retry_once
    async def pending_requests_of(self, user_id: str) -> Set[str]:
        """Ids of users with a pending request to `user_id`."""
        stmt = select(FriendRequest.requester_id).where(FriendRequest.target_id == user_id)
        rows = await self.guard(self.session.scalars(stmt))
        return set(rows.all())

    @retry_once
    async def get_user(self, user_id: str) -> User:
        user = await self.guard(self.session.get(User, user_id))
        if user is None:
            raise NotFoundError("User not found", details={"user_id": user_id})
        return user

    async def snapshot(self, user_id: str) -> UserEdges:
        user = await self.get_user(user_id)
        return await self.edges_for(user)

    async def edges_for(self, user: User) -> UserEdges:
        return UserEdges(
            id=user.id,
            is_private=user.is_private,
            friends=frozenset(await self.friends_of(user.id)),
            friend_requests=frozenset(await self.pending_requests_of(user.id)),
        )

    @retry_once
    async def edges_for_many(self, users: Iterable[User]) -> Dict[str, UserEdges]:
        """Batch variant of `edges_for`, two queries regardless of list size."""
        users = list(users)
        ids = [u.id for u in users]
        if not ids:
            return {}

        friends: Dict[str, Set[str]] = {i: set() for i in ids}
        requests: Dict[str, Set[str]] = {i: set() for i in ids}

        friend_rows = await self.guard(
            self.session.execute(
                select(UserFriend.user_id, UserFriend.friend_id).where(
                    UserFriend.user_id.in_(ids)
                )
            )
        )
        for user_id, friend_id in friend_rows.all():
            friends[user_id].add(friend_id)

        request_rows = await self.guard(
            self.session.execute(
                select(FriendRequest.target_id, FriendRequest.requester_id).where(
                    FriendRequest.target_id.in_(ids)
                )
            )
        )
        for target_id, requester_id in request_rows.all():
            requests[target_id].add(requester_id)

        return {
            u.id: UserEdges(
                id=u.id,
                is_private=u.is_private,
                friends=frozenset(friends[u.id]),
                friend_requests=frozenset(requests[u.id]),
            )
            for u in users
        }

    async def connection_status(
        self, viewer_id: Optional[str], target: UserEdges
    ) -> ConnectionStatus:
        viewer_requests = None
        if needs_viewer_requests(viewer_id, target):
            viewer_requests = await self.pending_requests_of(viewer_id)
        return classify(viewer_id, target, viewer_requests)

    @retry_once
    async def users_by_ids(self, ids: Iterable[str]) -> List[User]:
        ids = list(ids)
        if not ids:
            return []
        stmt = select(User).where(User.id.in_(ids)).order_by(User.name)
        rows = await self.guard(self.session.scalars(stmt))
        return list(rows.all())
