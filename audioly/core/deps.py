"""
Dependency Injection

FastAPI dependencies for routes. Every component gets its session, lock
registry and storage handle from here instead of reaching for globals.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from audioly.core.config import settings
from audioly.core.token import CurrentUserDep, OptionalUserDep
from audioly.infra.db import get_db
from audioly.infra.storage import ObjectStorage, get_storage
from audioly.social.directory import Directory
from audioly.social.store import PairLocks, RelationshipStore
from audioly.songs.catalog import ContentCatalog

# Type aliases for common dependencies
SessionDep = Annotated[AsyncSession, Depends(get_db)]
StorageDep = Annotated[ObjectStorage, Depends(get_storage)]


def get_pair_locks(request: Request) -> PairLocks:
    return request.app.state.pair_locks


def get_relationship_store(
    db: SessionDep,
    locks: Annotated[PairLocks, Depends(get_pair_locks)],
) -> RelationshipStore:
    return RelationshipStore(db, locks, timeout=settings.store_timeout_seconds)


def get_catalog(db: SessionDep) -> ContentCatalog:
    return ContentCatalog(db, timeout=settings.store_timeout_seconds)


StoreDep = Annotated[RelationshipStore, Depends(get_relationship_store)]
CatalogDep = Annotated[ContentCatalog, Depends(get_catalog)]


def get_directory(store: StoreDep, catalog: CatalogDep) -> Directory:
    return Directory(store, catalog, limit=settings.directory_limit)


DirectoryDep = Annotated[Directory, Depends(get_directory)]

__all__ = [
    "SessionDep",
    "StorageDep",
    "StoreDep",
    "CatalogDep",
    "DirectoryDep",
    "CurrentUserDep",
    "OptionalUserDep",
]
