"""Initial schema - exam paper approval

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Departments table
    op.create_table(
        'departments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('code', sa.String(50), unique=True, nullable=True),
        sa.Column('hos_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('hos_name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Users table
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False, default='pending', index=True),
        sa.Column(
            'department_id',
            sa.Uuid(),
            sa.ForeignKey('departments.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        sa.Column('email_notifications_enabled', sa.Boolean(), nullable=False, default=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Subjects table
    op.create_table(
        'subjects',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'department_id',
            sa.Uuid(),
            sa.ForeignKey('departments.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('lecturer_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('lecturer_name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_subjects_department_code', 'subjects', ['department_id', 'code'], unique=True)

    # Files table (one row per logical exam document)
    op.create_table(
        'files',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('file_name', sa.String(500), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('file_type', sa.String(255), nullable=False),
        sa.Column('category', sa.String(50), nullable=False, default='question-paper'),
        sa.Column('encryption_key', sa.String(64), nullable=False),
        sa.Column('storage_path', sa.String(1024), nullable=False),
        sa.Column('encrypted', sa.Boolean(), nullable=False, default=True),
        sa.Column('version', sa.Integer(), nullable=False, default=1),
        sa.Column('version_description', sa.Text(), nullable=True),
        sa.Column('owner_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('owner_name', sa.String(255), nullable=True),
        sa.Column('department_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('department_name', sa.String(255), nullable=True),
        sa.Column('subject_id', sa.Uuid(), nullable=True),
        sa.Column('subject_code', sa.String(50), nullable=True),
        sa.Column('subject_name', sa.String(255), nullable=True),
        sa.Column('workflow_status', sa.String(50), nullable=False, default='DRAFT'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submitted_by', sa.Uuid(), nullable=True),
        sa.Column('submitted_by_name', sa.String(255), nullable=True),
        sa.Column('hos_approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hos_approved_by', sa.Uuid(), nullable=True),
        sa.Column('hos_approved_by_name', sa.String(255), nullable=True),
        sa.Column('hos_comments', sa.Text(), nullable=True),
        sa.Column('hos_rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hos_rejected_by', sa.Uuid(), nullable=True),
        sa.Column('hos_rejected_by_name', sa.String(255), nullable=True),
        sa.Column('hos_rejection_reason', sa.Text(), nullable=True),
        sa.Column('exam_unit_approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('exam_unit_approved_by', sa.Uuid(), nullable=True),
        sa.Column('exam_unit_approved_by_name', sa.String(255), nullable=True),
        sa.Column('exam_unit_comments', sa.Text(), nullable=True),
        sa.Column('exam_unit_rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('exam_unit_rejected_by', sa.Uuid(), nullable=True),
        sa.Column('exam_unit_rejected_by_name', sa.String(255), nullable=True),
        sa.Column('exam_unit_rejection_reason', sa.Text(), nullable=True),
        sa.Column('downloads', sa.Integer(), nullable=False, default=0),
        sa.Column('last_downloaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('download_history', sa.JSON(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_files_department_status', 'files', ['department_id', 'workflow_status'])
    op.create_index('ix_files_status', 'files', ['workflow_status'])

    # File versions table (append-only)
    op.create_table(
        'file_versions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('file_id', sa.Uuid(), sa.ForeignKey('files.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('encryption_key', sa.String(64), nullable=False),
        sa.Column('storage_path', sa.String(1024), nullable=False),
        sa.Column('file_name', sa.String(500), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('file_type', sa.String(255), nullable=True),
        sa.Column('uploaded_by', sa.Uuid(), nullable=False),
        sa.Column('uploaded_by_name', sa.String(255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_file_versions_file_version', 'file_versions', ['file_id', 'version'], unique=True)

    # Review feedback table (append-only)
    op.create_table(
        'feedback',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'file_id',
            sa.Uuid(),
            sa.ForeignKey('files.id', ondelete='CASCADE'),
            nullable=False,
            index=True,
        ),
        sa.Column('reviewer_role', sa.String(50), nullable=False),
        sa.Column('reviewer_id', sa.Uuid(), nullable=False),
        sa.Column('reviewer_name', sa.String(255), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('file_version', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    # Notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('file_id', sa.Uuid(), nullable=True),
        sa.Column('action_path', sa.String(500), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False, default=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email_sent', sa.Boolean(), nullable=False, default=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'read'])
    op.create_index('ix_notifications_user_time', 'notifications', ['user_id', 'created_at'])

    # Event logs table (append-only audit trail)
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_type_time', 'event_logs', ['event_type', 'created_at'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('notifications')
    op.drop_table('feedback')
    op.drop_table('file_versions')
    op.drop_table('files')
    op.drop_table('subjects')
    op.drop_table('users')
    op.drop_table('departments')
