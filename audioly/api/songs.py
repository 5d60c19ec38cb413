import asyncio
from typing import List, Optional

from fastapi import APIRouter, File, Form, Path, UploadFile, status

from audioly.api.schemas import PlayCountResponse, SongResponse
from audioly.core.config import settings
from audioly.core.deps import (
    CatalogDep,
    CurrentUserDep,
    DirectoryDep,
    OptionalUserDep,
    StorageDep,
    StoreDep,
)
from audioly.core.errors import AppError, InvalidOperationError, NotFoundError
from audioly.core.logging import get_logger
from audioly.infra.storage import AUDIO_FOLDER, COVER_FOLDER, StoredObject
from audioly.social.visibility import ConnectionStatus, select_visible_content

router = APIRouter(prefix="/songs", tags=["songs"])

logger = get_logger(__name__)


def _log_orphans(stored: List[StoredObject], owner_id: str) -> None:
    # objects already in the bucket with no song row pointing at them
    if stored:
        logger.warning(
            "song.upload_orphaned",
            owner_id=owner_id,
            storage_ids=[obj.storage_id for obj in stored],
        )


def _parse_flag(value: Optional[str]) -> bool:
    # absent means public, anything but "true" means private
    if value is None or value == "":
        return True
    return value.strip().lower() == "true"


@router.post("/upload", response_model=SongResponse, status_code=status.HTTP_201_CREATED)
async def upload_song(
    user_id: CurrentUserDep,
    store: StoreDep,
    catalog: CatalogDep,
    storage: StorageDep,
    title: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    is_public: Optional[str] = Form(None, alias="isPublic"),
    audio: Optional[UploadFile] = File(None),
    cover: Optional[UploadFile] = File(None),
):
    """
    Upload audio (and an optional cover) and create the song record.
    Songs of private accounts are always stored private.
    """
    if not title or not title.strip():
        raise InvalidOperationError("Title is required")
    if audio is None:
        raise InvalidOperationError("Audio file is required")

    owner = await store.get_user(user_id)

    audio_payload = await audio.read()
    cover_payload = await cover.read() if cover is not None else None

    uploads = [
        storage.upload(audio_payload, AUDIO_FOLDER, audio.filename, audio.content_type)
    ]
    if cover is not None:
        uploads.append(
            storage.upload(cover_payload, COVER_FOLDER, cover.filename, cover.content_type)
        )
    results = await asyncio.gather(*uploads, return_exceptions=True)
    stored = [r for r in results if isinstance(r, StoredObject)]
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        _log_orphans(stored, owner_id=user_id)
        raise failures[0]

    try:
        song = await catalog.create_song(
            owner,
            title=title,
            audio=stored[0],
            category=category,
            is_public=_parse_flag(is_public),
            cover=stored[1] if len(stored) > 1 else None,
        )
    except AppError:
        _log_orphans(stored, owner_id=user_id)
        raise
    return SongResponse.from_song(song)


@router.get("/explore", response_model=List[SongResponse])
async def explore(catalog: CatalogDep):
    songs = await catalog.explore(limit=settings.directory_limit)
    return [SongResponse.from_song(song, with_owner=True) for song in songs]


@router.get("/feed", response_model=List[SongResponse])
async def feed(user_id: CurrentUserDep, directory: DirectoryDep):
    songs = await directory.feed(user_id)
    return [SongResponse.from_song(song, with_owner=True) for song in songs]


@router.get("/mine", response_model=List[SongResponse])
async def my_songs(user_id: CurrentUserDep, store: StoreDep, catalog: CatalogDep):
    me = await store.get_user(user_id)
    content_filter = select_visible_content(ConnectionStatus.SELF, me.is_private, me.id)
    songs = await catalog.list_visible(content_filter)
    return [SongResponse.from_song(song) for song in songs]


@router.post("/{song_id}/play", response_model=PlayCountResponse)
async def record_play(
    viewer_id: OptionalUserDep,
    store: StoreDep,
    catalog: CatalogDep,
    song_id: str = Path(...),
):
    """Count a play; songs the viewer may not see are reported as missing"""
    song = await catalog.get_song(song_id)
    owner = await store.snapshot(song.owner_id)
    status_ = await store.connection_status(viewer_id, owner)
    content_filter = select_visible_content(status_, owner.is_private, owner.id)
    if not content_filter.permits(song.is_public):
        raise NotFoundError("Song not found", details={"song_id": song_id})

    play_count = await catalog.record_play(song)
    return PlayCountResponse(id=song.id, play_count=play_count)
