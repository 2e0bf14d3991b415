"""initial schema: users, issues, issue_status_logs, flags

Creates the issue store, its append-only status log, and the flag store
with its one-flag-per-user-and-issue constraint.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ISSUE_CATEGORY = sa.Enum('pothole', 'garbage', 'streetlight', 'traffic', 'parks', 'other', name='issue_category')
ISSUE_STATUS = sa.Enum('pending', 'in-progress', 'resolved', 'rejected', name='issue_status')
USER_ROLE = sa.Enum('user', 'admin', name='user_role')
FLAG_REASON = sa.Enum('inappropriate', 'spam', 'duplicate', 'other', name='flag_reason')
FLAG_REVIEW_STATUS = sa.Enum('pending', 'valid', 'spam', name='flag_review_status')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('role', USER_ROLE, nullable=False),
        sa.Column('is_banned', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_name', 'users', ['name'])
    op.create_index('ix_users_is_banned', 'users', ['is_banned'])

    op.create_table(
        'issues',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=1000), nullable=False),
        sa.Column('category', ISSUE_CATEGORY, nullable=False),
        sa.Column('status', ISSUE_STATUS, nullable=False),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lng', sa.Float(), nullable=False),
        sa.Column('address', sa.String(length=300), nullable=False),
        sa.Column('photos', sa.JSON(), nullable=True),
        sa.Column('anonymous', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_issues_title', 'issues', ['title'])
    op.create_index('ix_issues_created_by_id', 'issues', ['created_by_id'])
    op.create_index('ix_issues_created_at', 'issues', ['created_at'])
    op.create_index('ix_issues_lat_lng', 'issues', ['lat', 'lng'])
    op.create_index('ix_issues_status_category', 'issues', ['status', 'category'])

    op.create_table(
        'issue_status_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', ISSUE_STATUS, nullable=False),
        sa.Column('comment', sa.String(length=500), nullable=True),
        sa.Column('actor_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_issue_status_logs_issue_created', 'issue_status_logs', ['issue_id', 'created_at'])

    op.create_table(
        'flags',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reason', FLAG_REASON, nullable=False),
        sa.Column('description', sa.String(length=200), nullable=True),
        sa.Column('review_status', FLAG_REVIEW_STATUS, nullable=False),
        sa.Column('admin_note', sa.String(length=500), nullable=True),
        sa.Column('reviewed_by_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'issue_id', name='uq_flag_user_issue'),
    )
    op.create_index('ix_flags_user_id', 'flags', ['user_id'])
    op.create_index('ix_flags_issue_id', 'flags', ['issue_id'])
    op.create_index('ix_flags_review_status', 'flags', ['review_status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('flags')
    op.drop_table('issue_status_logs')
    op.drop_table('issues')
    op.drop_table('users')
    bind = op.get_bind()
    for enum in (FLAG_REVIEW_STATUS, FLAG_REASON, USER_ROLE, ISSUE_STATUS, ISSUE_CATEGORY):
        enum.drop(bind, checkfirst=True)
