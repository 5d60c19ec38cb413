"""initial schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18 01:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('is_private', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('profile_image_url', sa.String(length=512), nullable=True),
        sa.Column('profile_image_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('username'),
    )
    op.create_index('idx_users_created', 'users', ['created_at'], unique=False)

    # --- songs ---
    op.create_table(
        'songs',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('owner_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('audio_url', sa.String(length=512), nullable=False),
        sa.Column('audio_storage_id', sa.String(length=255), nullable=True),
        sa.Column('cover_url', sa.String(length=512), nullable=True),
        sa.Column('cover_storage_id', sa.String(length=255), nullable=True),
        sa.Column('is_public', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('play_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], name='fk_songs_owner', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_songs_owner_public', 'songs', ['owner_id', 'is_public', 'created_at'], unique=False)
    op.create_index('idx_songs_public_created', 'songs', ['is_public', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('songs')
    op.drop_table('users')
