"""Courses between departments and subjects

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Courses table
    op.create_table(
        'courses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'department_id',
            sa.Uuid(),
            sa.ForeignKey('departments.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_courses_department_code', 'courses', ['department_id', 'code'], unique=True)

    # Subjects may sit under a course
    op.add_column('subjects', sa.Column('course_id', sa.Uuid(), nullable=True))
    op.create_foreign_key(
        'fk_subjects_course_id',
        'subjects',
        'courses',
        ['course_id'],
        ['id'],
        ondelete='CASCADE',
    )
    op.create_index('ix_subjects_course_id', 'subjects', ['course_id'])


def downgrade() -> None:
    op.drop_index('ix_subjects_course_id', table_name='subjects')
    op.drop_constraint('fk_subjects_course_id', 'subjects', type_='foreignkey')
    op.drop_column('subjects', 'course_id')
    op.drop_index('ix_courses_department_code', table_name='courses')
    op.drop_table('courses')
