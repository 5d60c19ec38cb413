"""
Visibility rules

Every call site that needs to know how a viewer relates to another user, or
which of that user's songs the viewer may see, goes through this module:
the profile view, the directory, the feed and explore. The functions here
are pure; callers hand in edge state they already loaded.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import AbstractSet, FrozenSet, Optional


class ConnectionStatus(str, Enum):
    SELF = "self"
    FRIEND = "friend"
    SENT = "sent"
    RECEIVED = "received"
    NONE = "none"


@dataclass(frozen=True)
class UserEdges:
    """Snapshot of one user's privacy flag and edge sets."""

    id: str
    is_private: bool = False
    friends: FrozenSet[str] = field(default_factory=frozenset)
    # incoming pending requests: ids of users who asked this user
    friend_requests: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ContentFilter:
    """Which songs of `owner_id` a catalog query may return."""

    owner_id: str
    allowed: bool = True
    public_only: bool = True

    @classmethod
    def deny(cls, owner_id: str) -> "ContentFilter":
        return cls(owner_id=owner_id, allowed=False)

    def permits(self, is_public: bool) -> bool:
        """Whether a single item with the given flag passes this filter."""
        return self.allowed and (is_public or not self.public_only)


def needs_viewer_requests(viewer_id: Optional[str], target: UserEdges) -> bool:
    """True when `classify` can only decide by looking at the viewer's own inbox."""
    return (
        viewer_id is not None
        and viewer_id != target.id
        and viewer_id not in target.friends
        and viewer_id not in target.friend_requests
    )


def classify(
    viewer_id: Optional[str],
    target: UserEdges,
    viewer_requests: Optional[AbstractSet[str]] = None,
) -> ConnectionStatus:
    """
    Relationship of `viewer_id` towards `target`.

    The checks run in a fixed order: self and friend come before any request
    check, so a friendship is never reported as pending even if a stale
    request row survived. `viewer_requests` is the viewer's incoming request
    set; it is only consulted for the final "received" check.
    """
    if viewer_id is None:
        return ConnectionStatus.NONE
    if viewer_id == target.id:
        return ConnectionStatus.SELF
    if viewer_id in target.friends:
        return ConnectionStatus.FRIEND
    if viewer_id in target.friend_requests:
        return ConnectionStatus.SENT
    if viewer_requests is not None and target.id in viewer_requests:
        return ConnectionStatus.RECEIVED
    return ConnectionStatus.NONE


def can_access_uploads(status: ConnectionStatus, target_is_private: bool) -> bool:
    """Private accounts show uploads to themselves and confirmed friends only."""
    return (
        not target_is_private
        or status == ConnectionStatus.SELF
        or status == ConnectionStatus.FRIEND
    )


def select_visible_content(
    status: ConnectionStatus, target_is_private: bool, owner_id: str
) -> ContentFilter:
    if not can_access_uploads(status, target_is_private):
        return ContentFilter.deny(owner_id)
    if status == ConnectionStatus.SELF:
        return ContentFilter(owner_id=owner_id, public_only=False)
    # friends and strangers alike only get items flagged public
    return ContentFilter(owner_id=owner_id, public_only=True)
