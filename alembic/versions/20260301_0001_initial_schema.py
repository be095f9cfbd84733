"""Initial schema - modality workflow

Revision ID: 0001
Revises:
Create Date: 2026-03-01

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
    # Modality type catalog
    op.create_table(
        'modality_types',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), unique=True, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'required_documents',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('modality_type_id', sa.Uuid(), sa.ForeignKey('modality_types.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('mandatory', sa.Boolean(), nullable=False, default=True),
        sa.Column('examiner_reviewable', sa.Boolean(), nullable=False, default=False),
        sa.Column('position', sa.Integer(), nullable=False, default=0),
    )

    # Modality records and membership
    op.create_table(
        'modality_records',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('modality_type_id', sa.Uuid(), sa.ForeignKey('modality_types.id'), nullable=False, index=True),
        sa.Column('status', sa.String(64), nullable=False),
        sa.Column('is_group', sa.Boolean(), nullable=False, default=False),
        sa.Column('project_director_id', sa.Uuid(), nullable=True),
        sa.Column('defense_datetime', sa.DateTime(timezone=True), nullable=True),
        sa.Column('defense_location', sa.String(255), nullable=True),
        sa.Column('status_changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status_changed_by', sa.Uuid(), nullable=True),
        sa.Column('status_reason', sa.Text(), nullable=True),
        sa.Column('status_before_cancellation', sa.String(64), nullable=True),
        sa.Column('cancellation_rejection_reason', sa.Text(), nullable=True),
        sa.Column('final_grade', sa.Numeric(3, 2), nullable=True),
        sa.Column('final_decision', sa.String(50), nullable=True),
        sa.Column('final_observations', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('last_updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_modality_records_status', 'modality_records', ['status'])

    op.create_table(
        'modality_members',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('modality_record_id', sa.Uuid(), sa.ForeignKey('modality_records.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('modality_record_id', 'user_id', name='uq_modality_members_record_user'),
    )

    # Document submissions
    op.create_table(
        'student_document_submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('required_document_id', sa.Uuid(), sa.ForeignKey('required_documents.id'), nullable=False),
        sa.Column('modality_record_id', sa.Uuid(), sa.ForeignKey('modality_records.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('uploaded', sa.Boolean(), nullable=False, default=False),
        sa.Column('storage_ref', sa.String(1024), nullable=True),
        sa.Column('status', sa.String(64), nullable=False),
        sa.Column('review_tier', sa.String(64), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), nullable=True),
        sa.Column('last_update', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('modality_record_id', 'required_document_id', name='uq_submissions_record_document'),
    )

    # Examiner panel and evaluations
    op.create_table(
        'examiner_assignments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('modality_record_id', sa.Uuid(), sa.ForeignKey('modality_records.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('examiner_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('role', sa.String(32), nullable=False),
        sa.Column('assigned_by', sa.Uuid(), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('modality_record_id', 'role', name='uq_examiner_assignments_record_role'),
    )

    op.create_table(
        'evaluations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('assignment_id', sa.Uuid(), sa.ForeignKey('examiner_assignments.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('modality_record_id', sa.Uuid(), sa.ForeignKey('modality_records.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('grade', sa.Numeric(3, 2), nullable=False),
        sa.Column('decision', sa.String(32), nullable=False),
        sa.Column('observations', sa.Text(), nullable=False, default=''),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
    )

    # Group invitations
    op.create_table(
        'group_invitations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('modality_record_id', sa.Uuid(), sa.ForeignKey('modality_records.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('inviter_id', sa.Uuid(), nullable=False),
        sa.Column('invitee_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_group_invitations_invitee_status', 'group_invitations', ['invitee_id', 'status'])

    # Workflow event log (append-only)
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('group_invitations')
    op.drop_table('evaluations')
    op.drop_table('examiner_assignments')
    op.drop_table('student_document_submissions')
    op.drop_table('modality_members')
    op.drop_table('modality_records')
    op.drop_table('required_documents')
    op.drop_table('modality_types')
