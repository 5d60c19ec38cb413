"""
API Router
"""

from fastapi import APIRouter

from audioly.api.auth import router as auth_router
from audioly.api.songs import router as songs_router
from audioly.api.users import router as users_router

api_router = APIRouter()

# Identity is resolved per route: required, optional (anonymous allowed) or none
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(songs_router)
