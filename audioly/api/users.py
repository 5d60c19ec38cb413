from typing import List, Optional

from fastapi import APIRouter, File, Form, Path, Query, UploadFile
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from audioly.api.auth import normalize_username
from audioly.api.schemas import (
    DirectoryUser,
    FriendsResponse,
    MeResponse,
    MeUpdateRequest,
    MessageResponse,
    ProfileResponse,
    SongResponse,
    UserSummary,
)
from audioly.core.deps import (
    CurrentUserDep,
    DirectoryDep,
    OptionalUserDep,
    SessionDep,
    StorageDep,
    StoreDep,
)
from audioly.core.errors import ConflictError, InvalidOperationError
from audioly.infra.storage import AVATAR_FOLDER
from audioly.models.user import User

router = APIRouter(prefix="/users", tags=["users"])


# ============ Current user ============

@router.get("/me", response_model=MeResponse)
async def read_me(user_id: CurrentUserDep, store: StoreDep):
    return MeResponse.from_user(await store.get_user(user_id))


@router.patch("/me", response_model=MeResponse)
async def update_me(
    data: MeUpdateRequest,
    user_id: CurrentUserDep,
    store: StoreDep,
    db: SessionDep,
):
    """Update name, username or account privacy"""
    user = await store.get_user(user_id)

    if data.name is not None:
        if not data.name.strip():
            raise InvalidOperationError("name cannot be empty")
        user.name = data.name.strip()

    if data.is_private is not None:
        user.is_private = data.is_private

    if data.username is not None:
        username = normalize_username(data.username)
        if not username:
            raise InvalidOperationError("username cannot be empty")
        taken = await db.scalar(
            select(User.id).where(User.username == username, User.id != user_id)
        )
        if taken:
            raise ConflictError("Username already taken")
        user.username = username

    try:
        await db.commit()
    except IntegrityError:
        # a concurrent rename claimed the username after the check above
        await db.rollback()
        raise ConflictError("Username already taken")
    return MeResponse.from_user(user)


@router.patch("/me/profile", response_model=MeResponse)
async def update_my_profile(
    user_id: CurrentUserDep,
    store: StoreDep,
    storage: StorageDep,
    db: SessionDep,
    name: Optional[str] = Form(None),
    is_private: Optional[str] = Form(None, alias="isPrivate"),
    avatar: Optional[UploadFile] = File(None),
):
    """Multipart variant of PATCH /me that also takes an avatar image"""
    user = await store.get_user(user_id)

    if name:
        user.name = name.strip()
    if is_private is not None:
        user.is_private = is_private.strip().lower() == "true"

    if avatar is not None:
        stored = await storage.upload(
            await avatar.read(),
            AVATAR_FOLDER,
            filename=avatar.filename,
            content_type=avatar.content_type,
        )
        user.profile_image_url = stored.url
        user.profile_image_id = stored.storage_id

    await db.commit()
    return MeResponse.from_user(user)


# ============ Directory & friends ============

@router.get("", response_model=List[DirectoryUser])
async def list_users(
    directory: DirectoryDep,
    viewer_id: OptionalUserDep,
    q: Optional[str] = Query(None, description="Case-insensitive match on name or username"),
):
    entries = await directory.search(viewer_id, q)
    return [
        DirectoryUser(
            **UserSummary.from_user(entry.user).model_dump(),
            is_friend=entry.is_friend,
            sent_request=entry.sent_request,
            incoming_request=entry.incoming_request,
            songs_count=entry.songs_count,
        )
        for entry in entries
    ]


@router.get("/friends", response_model=FriendsResponse)
async def list_friends(user_id: CurrentUserDep, directory: DirectoryDep):
    overview = await directory.friends_overview(user_id)
    return FriendsResponse(
        friends=[UserSummary.from_user(u) for u in overview.friends],
        incoming_requests=[UserSummary.from_user(u) for u in overview.incoming_requests],
    )


@router.post("/request/{target_id}", response_model=MessageResponse)
async def send_request(
    user_id: CurrentUserDep,
    store: StoreDep,
    target_id: str = Path(..., description="User to send the request to"),
):
    await store.send_request(user_id, target_id)
    return MessageResponse(message="Request sent")


@router.post("/request/{requester_id}/accept", response_model=MessageResponse)
async def accept_request(
    user_id: CurrentUserDep,
    store: StoreDep,
    requester_id: str = Path(..., description="User whose request is accepted"),
):
    await store.accept_request(user_id, requester_id)
    return MessageResponse(message="Request accepted")


@router.delete("/request/{other_id}", response_model=MessageResponse)
async def remove_request(
    user_id: CurrentUserDep,
    store: StoreDep,
    other_id: str = Path(..., description="Requester to decline, or target to cancel"),
):
    await store.decline_or_cancel_request(user_id, other_id)
    return MessageResponse(message="Request removed")


@router.delete("/friends/{friend_id}", response_model=MessageResponse)
async def remove_friend(
    user_id: CurrentUserDep,
    store: StoreDep,
    friend_id: str = Path(...),
):
    await store.remove_friend(user_id, friend_id)
    return MessageResponse(message="Friend removed")


# ============ Profiles ============

@router.get("/{target_id}/profile", response_model=ProfileResponse)
async def read_profile(
    viewer_id: OptionalUserDep,
    directory: DirectoryDep,
    target_id: str = Path(...),
):
    """Public profile of a user, with uploads filtered by privacy rules"""
    view = await directory.profile(viewer_id, target_id)
    return ProfileResponse(
        **UserSummary.from_user(view.user).model_dump(),
        friends_count=view.friends_count,
        uploads_count=view.uploads_count,
        connection_status=view.connection_status,
        can_see_uploads=view.can_see_uploads,
        uploads=[SongResponse.from_song(song) for song in view.uploads],
    )
