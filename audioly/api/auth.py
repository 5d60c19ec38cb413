import re
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select

from audioly.core.deps import SessionDep
from audioly.core.errors import AuthenticationError, ConflictError, InvalidOperationError
from audioly.core.logging import get_logger
from audioly.core.security import get_password_hash, verify_password
from audioly.core.token import create_access_token, create_refresh_token, verify_refresh_token
from audioly.models.user import User

router = APIRouter(prefix="/auth", tags=["auth"])

logger = get_logger(__name__)

# ============ Schemas ============

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    password: str = Field(..., min_length=1)
    username: Optional[str] = Field(None, max_length=64)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class AuthUser(BaseModel):
    id: str
    name: str
    username: str
    email: EmailStr


class Tokens(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AuthResponse(BaseModel):
    user: AuthUser
    tokens: Tokens


def _issue_tokens(user_id: str) -> Tokens:
    return Tokens(
        access_token=create_access_token(data={"sub": user_id}),
        refresh_token=create_refresh_token(data={"sub": user_id}),
    )


def normalize_username(value: str) -> str:
    return value.strip().lower()


async def _free_username(db: SessionDep, email: str) -> str:
    base = re.sub(r"[^a-z0-9_.]", "", email.split("@", 1)[0].lower()) or "user"
    candidate = base
    while await db.scalar(select(User.id).where(User.username == candidate)):
        candidate = f"{base}{uuid4().hex[:4]}"
    return candidate

# ============ Endpoints ============

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, db: SessionDep):
    """
    Create an account and sign it in
    """
    existing = await db.scalar(select(User.id).where(User.email == data.email))
    if existing:
        raise ConflictError("Email already in use")

    if data.username is not None:
        username = normalize_username(data.username)
        if not username:
            raise InvalidOperationError("username cannot be empty")
        if await db.scalar(select(User.id).where(User.username == username)):
            raise ConflictError("Username already taken")
    else:
        username = await _free_username(db, data.email)

    user = User(
        id=str(uuid4()),
        email=data.email,
        name=data.name.strip(),
        username=username,
        hashed_password=get_password_hash(data.password),
        is_private=False,
    )
    db.add(user)
    await db.commit()
    logger.info("user.registered", user_id=user.id)

    return AuthResponse(
        user=AuthUser(id=user.id, name=user.name, username=user.username, email=user.email),
        tokens=_issue_tokens(user.id),
    )


@router.post("/login", response_model=AuthResponse)
async def login(data: LoginRequest, db: SessionDep):
    user = await db.scalar(select(User).where(User.email == data.email))
    if not user or not verify_password(data.password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")

    return AuthResponse(
        user=AuthUser(id=user.id, name=user.name, username=user.username, email=user.email),
        tokens=_issue_tokens(user.id),
    )


@router.post("/refresh", response_model=Tokens)
async def refresh(data: RefreshRequest, db: SessionDep):
    user_id = verify_refresh_token(data.refresh_token)
    if not user_id or await db.get(User, user_id) is None:
        raise AuthenticationError("Invalid refresh token")
    return _issue_tokens(user_id)
