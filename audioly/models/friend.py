from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from audioly.models.base import Base


class UserFriend(Base):
    """
    One row per direction: a friendship between A and B is the pair of rows
    (A, B) and (B, A), always written and deleted together.
    """

    __tablename__ = "user_friends"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    friend_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint("user_id <> friend_id", name="chk_user_friends_not_self"),
        Index("idx_user_friends_friend", "friend_id"),
    )


class FriendRequest(Base):
    """Pending request edge, stored on the target's side (requester -> target)."""

    __tablename__ = "friend_requests"

    requester_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    target_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint("requester_id <> target_id", name="chk_friend_requests_not_self"),
        Index("idx_friend_requests_target", "target_id", "requested_at"),
    )
