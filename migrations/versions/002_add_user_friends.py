"""add user_friends and friend_requests tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 01:28:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- user_friends (one row per direction) ---
    op.create_table(
        'user_friends',
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('friend_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('user_id <> friend_id', name='chk_user_friends_not_self'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_friends_user', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['friend_id'], ['users.id'], name='fk_friends_friend', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id', 'friend_id'),
    )
    op.create_index('idx_user_friends_friend', 'user_friends', ['friend_id'], unique=False)

    # --- friend_requests (requester -> target) ---
    op.create_table(
        'friend_requests',
        sa.Column('requester_id', sa.String(length=64), nullable=False),
        sa.Column('target_id', sa.String(length=64), nullable=False),
        sa.Column('requested_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('requester_id <> target_id', name='chk_friend_requests_not_self'),
        sa.ForeignKeyConstraint(['requester_id'], ['users.id'], name='fk_requests_requester', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['target_id'], ['users.id'], name='fk_requests_target', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('requester_id', 'target_id'),
    )
    op.create_index('idx_friend_requests_target', 'friend_requests', ['target_id', 'requested_at'], unique=False)


def downgrade() -> None:
    op.drop_table('friend_requests')
    op.drop_table('user_friends')
