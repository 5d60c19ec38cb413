from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from audioly.models.base import Base

if TYPE_CHECKING:
    from audioly.models.user import User


class Song(Base):
    __tablename__ = "songs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    audio_url: Mapped[str] = mapped_column(String(512), nullable=False)
    audio_storage_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cover_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    cover_storage_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    play_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_songs_owner_public", "owner_id", "is_public", "created_at"),
        Index("idx_songs_public_created", "is_public", "created_at"),
    )

    # Relationships
    owner: Mapped["User"] = relationship("User", back_populates="songs")
