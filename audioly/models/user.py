from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from audioly.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from audioly.models.song import Song


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    # always stored lower-cased, which makes the unique index case-insensitive
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    profile_image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    profile_image_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("idx_users_created", "created_at"),
    )

    # Relationships
    songs: Mapped[List["Song"]] = relationship("Song", back_populates="owner")
