"""
FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from audioly.api.router import api_router
from audioly.core.config import settings
from audioly.core.errors import (
    AppError,
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from audioly.core.logging import RequestContextMiddleware, setup_logging
from audioly.infra.db import close_db_connection
from audioly.social.store import PairLocks


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    yield
    # Shutdown
    await close_db_connection()


tags_metadata = [
    {
        "name": "auth",
        "description": "Registration, login and token refresh.",
    },
    {
        "name": "users",
        "description": "Profiles, directory search and friend requests.",
    },
    {
        "name": "songs",
        "description": "Uploads, explore, feed and play counts.",
    },
    {
        "name": "health",
        "description": "System health check.",
    },
]


def create_app() -> FastAPI:
    app = FastAPI(
        title="Audioly Backend",
        description="""
Audioly lets people upload songs, befriend each other and browse what their
friends and public accounts share.

## Features
* **Friend requests**: send, accept, decline or cancel; friendships are always mutual.
* **Privacy**: private accounts show uploads to friends only.
* **Directory**: search people by name or username.
""",
        version="0.1.0",
        openapi_tags=tags_metadata,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # one lock registry per application; shared by every request
    app.state.pair_locks = PairLocks()

    # Middleware
    app.add_middleware(RequestContextMiddleware)

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    # Routes
    app.include_router(api_router, prefix=settings.api_prefix)

    # Exception Handlers
    app.add_exception_handler(AppError, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app


app = create_app()
