"""
Pydantic schemas shared by the user and song routes.

Responses are serialized with camelCase keys.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from audioly.models.song import Song
from audioly.models.user import User
from audioly.social.visibility import ConnectionStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============ User Schemas ============

class ProfileImage(CamelModel):
    url: str
    public_id: Optional[str] = None


class UserSummary(CamelModel):
    id: str
    name: str
    username: str
    is_private: bool
    profile_image: Optional[ProfileImage] = None

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            id=user.id,
            name=user.name,
            username=user.username,
            is_private=user.is_private,
            profile_image=_profile_image(user),
        )


class MeResponse(UserSummary):
    email: EmailStr
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "MeResponse":
        return cls(
            id=user.id,
            name=user.name,
            username=user.username,
            email=user.email,
            is_private=user.is_private,
            profile_image=_profile_image(user),
            created_at=user.created_at,
        )


class MeUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, max_length=128)
    username: Optional[str] = Field(None, max_length=64)
    is_private: Optional[bool] = None


class DirectoryUser(UserSummary):
    is_friend: bool
    sent_request: bool
    incoming_request: bool
    songs_count: int


class FriendsResponse(CamelModel):
    friends: List[UserSummary]
    incoming_requests: List[UserSummary]


class MessageResponse(BaseModel):
    """Generic message response"""
    message: str


# ============ Song Schemas ============

class SongOwner(CamelModel):
    id: str
    name: str


class SongResponse(CamelModel):
    id: str
    owner_id: str
    owner: Optional[SongOwner] = None
    title: str
    category: Optional[str] = None
    audio_url: str
    audio_public_id: Optional[str] = None
    cover_url: Optional[str] = None
    cover_public_id: Optional[str] = None
    is_public: bool
    play_count: int
    created_at: datetime

    @classmethod
    def from_song(cls, song: Song, with_owner: bool = False) -> "SongResponse":
        owner = None
        if with_owner and song.owner is not None:
            owner = SongOwner(id=song.owner.id, name=song.owner.name)
        return cls(
            id=song.id,
            owner_id=song.owner_id,
            owner=owner,
            title=song.title,
            category=song.category,
            audio_url=song.audio_url,
            audio_public_id=song.audio_storage_id,
            cover_url=song.cover_url,
            cover_public_id=song.cover_storage_id,
            is_public=song.is_public,
            play_count=song.play_count,
            created_at=song.created_at,
        )


class PlayCountResponse(CamelModel):
    id: str
    play_count: int


class ProfileResponse(UserSummary):
    friends_count: int
    uploads_count: int
    connection_status: ConnectionStatus
    can_see_uploads: bool
    uploads: List[SongResponse]


def _profile_image(user: User) -> Optional[ProfileImage]:
    if not user.profile_image_url:
        return None
    return ProfileImage(url=user.profile_image_url, public_id=user.profile_image_id)
