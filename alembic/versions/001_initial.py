"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-02-20 00:00:00.000000

Users and sessions, workspaces with their members, invitations, rooms and
bookings. Overlapping ACTIVE bookings are excluded per room and per
(workspace, user) with GiST exclusion constraints, which need btree_gist
for the equality part on uuid columns.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')

    # Users table
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('email_verified_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'email_verification_tokens',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False, unique=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_email_verification_tokens_user_id', 'email_verification_tokens', ['user_id'])

    op.create_table(
        'user_sessions',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_agent', sa.Text, nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_user_sessions_user_id', 'user_sessions', ['user_id'])
    op.create_index('ix_user_sessions_token_hash', 'user_sessions', ['token_hash'], unique=True)

    # Workspaces table
    op.create_table(
        'workspaces',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('schedule_start_hour', sa.Integer, nullable=False, server_default='8'),
        sa.Column('schedule_end_hour', sa.Integer, nullable=False, server_default='18'),
        sa.Column('created_by_user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            'schedule_start_hour >= 0 AND schedule_end_hour <= 24 '
            'AND schedule_end_hour > schedule_start_hour',
            name='ck_workspace_schedule_hours',
        ),
    )
    op.create_index('ix_workspaces_created_by_user_id', 'workspaces', ['created_by_user_id'])

    op.create_table(
        'workspace_members',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('workspace_id', sa.Uuid, sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='MEMBER'),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        *_timestamps(),
        sa.UniqueConstraint('workspace_id', 'user_id', name='uq_workspace_member_workspace_user'),
    )
    op.create_index('ix_workspace_members_user_status', 'workspace_members', ['user_id', 'status'])

    op.create_table(
        'user_workspace_preferences',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('workspace_id', sa.Uuid, sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sort_order', sa.Integer, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'workspace_id', name='uq_workspace_preference_user_workspace'),
    )
    op.create_index('ix_user_workspace_preferences_user_id', 'user_workspace_preferences', ['user_id'])
    op.create_index('ix_user_workspace_preferences_workspace_id', 'user_workspace_preferences', ['workspace_id'])

    # Invitations table
    op.create_table(
        'invitations',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('workspace_id', sa.Uuid, sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('invited_by_user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_invitations_email', 'invitations', ['email'])
    op.create_index(
        'ix_invitations_workspace_email_status', 'invitations', ['workspace_id', 'email', 'status']
    )
    # At most one PENDING invitation per workspace and email
    op.create_index(
        'uq_invitations_pending_workspace_email',
        'invitations',
        ['workspace_id', 'email'],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    # Rooms table
    op.create_table(
        'rooms',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('workspace_id', sa.Uuid, sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('workspace_id', 'name', name='uq_room_workspace_name'),
    )
    op.create_index('ix_rooms_workspace_id', 'rooms', ['workspace_id'])

    # Bookings table
    op.create_table(
        'bookings',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('workspace_id', sa.Uuid, sa.ForeignKey('workspaces.id', ondelete='CASCADE'), nullable=False),
        sa.Column('room_id', sa.Uuid, sa.ForeignKey('rooms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_by_user_id', sa.Uuid, sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('subject', sa.Text, nullable=False),
        sa.Column('criticality', sa.String(10), nullable=False, server_default='MEDIUM'),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE'),
        *_timestamps(),
        sa.CheckConstraint('end_at > start_at', name='ck_booking_valid_range'),
    )
    op.create_index('ix_bookings_created_by_user_id', 'bookings', ['created_by_user_id'])
    op.create_index('ix_bookings_room_start', 'bookings', ['room_id', 'start_at'])
    op.create_index('ix_bookings_workspace_status', 'bookings', ['workspace_id', 'status'])

    op.execute(
        "ALTER TABLE bookings ADD CONSTRAINT bookings_active_room_overlap "
        "EXCLUDE USING gist (room_id WITH =, tstzrange(start_at, end_at, '[)') WITH &&) "
        "WHERE (status = 'ACTIVE')"
    )
    op.execute(
        "ALTER TABLE bookings ADD CONSTRAINT bookings_active_user_overlap "
        "EXCLUDE USING gist (workspace_id WITH =, created_by_user_id WITH =, "
        "tstzrange(start_at, end_at, '[)') WITH &&) "
        "WHERE (status = 'ACTIVE')"
    )


def downgrade() -> None:
    op.drop_table('bookings')
    op.drop_table('rooms')
    op.drop_table('invitations')
    op.drop_table('user_workspace_preferences')
    op.drop_table('workspace_members')
    op.drop_table('workspaces')
    op.drop_table('user_sessions')
    op.drop_table('email_verification_tokens')
    op.drop_table('users')
