from audioly.models.base import Base
from audioly.models.friend import FriendRequest, UserFriend
from audioly.models.song import Song
from audioly.models.user import User

__all__ = [
    "Base",
    "User",
    "UserFriend",
    "FriendRequest",
    "Song",
]
