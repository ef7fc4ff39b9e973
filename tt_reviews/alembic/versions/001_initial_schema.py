"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

Initial TT Reviews schema:
- Accounts: users, moderators
- Catalog: players, equipment
- Submissions: equipment_reviews, player_edits, equipment_submissions
- Moderation ledger: moderator_approvals
- Configuration: settings
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps(with_updated: bool = True):
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())]
    if with_updated:
        columns.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now())
        )
    return columns


def _moderation_columns():
    return [
        sa.Column(
            'moderator_id',
            sa.Integer(),
            sa.ForeignKey('moderators.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('moderator_notes', sa.Text(), nullable=True),
    ]


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('display_name', sa.String(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'moderators',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'user_id',
            sa.Integer(),
            sa.ForeignKey('users.id', ondelete='SET NULL'),
            nullable=True,
            unique=True,
        ),
        sa.Column('discord_user_id', sa.String(32), nullable=True, unique=True),
        sa.Column('display_name', sa.String(), nullable=True),
        *_timestamps(with_updated=False),
        sa.CheckConstraint(
            'user_id IS NOT NULL OR discord_user_id IS NOT NULL',
            name='ck_moderators_identity',
        ),
    )

    op.create_table(
        'players',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(200), nullable=False, unique=True),
        sa.Column('highest_rating', sa.String(), nullable=True),
        sa.Column('active_years', sa.String(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('playing_style', sa.String(30), nullable=True),
        sa.Column('birth_country', sa.String(3), nullable=True),
        sa.Column('represents', sa.String(3), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_players_name', 'players', ['name'])

    op.create_table(
        'equipment',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(200), nullable=False, unique=True),
        sa.Column('manufacturer', sa.String(), nullable=False),
        sa.Column('category', sa.String(20), nullable=False),
        sa.Column('subcategory', sa.String(20), nullable=True),
        sa.Column('specifications', JSONType, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "category IN ('blade', 'rubber', 'ball')", name='ck_equipment_category'
        ),
    )
    op.create_index('idx_equipment_name', 'equipment', ['name'])
    op.create_index('idx_equipment_category', 'equipment', ['category'])

    op.create_table(
        'equipment_reviews',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'equipment_id',
            sa.Integer(),
            sa.ForeignKey('equipment.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('overall_rating', sa.Float(), nullable=False),
        sa.Column('category_ratings', JSONType, nullable=False),
        sa.Column('review_text', sa.Text(), nullable=True),
        sa.Column('reviewer_context', JSONType, nullable=False),
        *_moderation_columns(),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'equipment_id', name='uq_equipment_reviews_user_equipment'),
        sa.CheckConstraint(
            'overall_rating >= 1 AND overall_rating <= 10',
            name='ck_equipment_reviews_rating_range',
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name='ck_equipment_reviews_status',
        ),
    )
    op.create_index(
        'idx_equipment_reviews_status_created', 'equipment_reviews', ['status', 'created_at']
    )
    op.create_index('idx_equipment_reviews_equipment', 'equipment_reviews', ['equipment_id'])

    op.create_table(
        'player_edits',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'player_id',
            sa.Integer(),
            sa.ForeignKey('players.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('edit_data', JSONType, nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        *_moderation_columns(),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'awaiting_second_approval')",
            name='ck_player_edits_status',
        ),
    )
    op.create_index('idx_player_edits_status_created', 'player_edits', ['status', 'created_at'])

    op.create_table(
        'equipment_submissions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('manufacturer', sa.String(), nullable=True),
        sa.Column('category', sa.String(20), nullable=True),
        sa.Column('subcategory', sa.String(20), nullable=True),
        sa.Column('specifications', JSONType, nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        *_moderation_columns(),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name='ck_equipment_submissions_status',
        ),
    )
    op.create_index(
        'idx_equipment_submissions_status_created',
        'equipment_submissions',
        ['status', 'created_at'],
    )

    op.create_table(
        'moderator_approvals',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('submission_type', sa.String(30), nullable=False),
        sa.Column('submission_id', sa.Integer(), nullable=False),
        sa.Column(
            'moderator_id',
            sa.Integer(),
            sa.ForeignKey('moderators.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('source', sa.String(20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint(
            'submission_type',
            'submission_id',
            'moderator_id',
            'action',
            name='uq_moderator_approvals_once',
        ),
        sa.CheckConstraint(
            "action IN ('approved', 'rejected')", name='ck_moderator_approvals_action'
        ),
        sa.CheckConstraint(
            "source IN ('admin', 'discord')", name='ck_moderator_approvals_source'
        ),
    )
    op.create_index(
        'idx_moderator_approvals_submission',
        'moderator_approvals',
        ['submission_type', 'submission_id'],
    )

    op.create_table(
        'settings',
        sa.Column('key', sa.String(), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('settings')
    op.drop_index('idx_moderator_approvals_submission', table_name='moderator_approvals')
    op.drop_table('moderator_approvals')
    op.drop_index('idx_equipment_submissions_status_created', table_name='equipment_submissions')
    op.drop_table('equipment_submissions')
    op.drop_index('idx_player_edits_status_created', table_name='player_edits')
    op.drop_table('player_edits')
    op.drop_index('idx_equipment_reviews_equipment', table_name='equipment_reviews')
    op.drop_index('idx_equipment_reviews_status_created', table_name='equipment_reviews')
    op.drop_table('equipment_reviews')
    op.drop_index('idx_equipment_category', table_name='equipment')
    op.drop_index('idx_equipment_name', table_name='equipment')
    op.drop_table('equipment')
    op.drop_index('idx_players_name', table_name='players')
    op.drop_table('players')
    op.drop_table('moderators')
    op.drop_table('users')
