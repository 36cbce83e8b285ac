"""Baseline clinicnotes schema

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('therapist_role', sa.String(), nullable=True),
        sa.Column('license_number', sa.String(), nullable=True),
        sa.Column('organization', sa.String(), nullable=False),
        _ts('created_at'),
        _ts('last_login'),
        sa.CheckConstraint("role in ('therapist','admin','supervisor')", name='ck_users_role'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'patients',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('patient_code', sa.String(), nullable=False),
        sa.Column('id_number_hash', sa.String(), nullable=False),
        sa.Column('encrypted_data', sa.Text(), nullable=False),
        sa.Column('gender', sa.String(), nullable=False),
        sa.Column('primary_diagnosis', sa.Text(), nullable=True),
        sa.Column('referral_source', sa.String(), nullable=True),
        sa.Column('insurance_provider', sa.String(), nullable=True),
        sa.Column('assigned_therapists', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint("status in ('active','inactive','discharged')", name='ck_patients_status'),
        sa.CheckConstraint(
            "gender in ('male','female','other','prefer_not_to_say')", name='ck_patients_gender'
        ),
    )
    op.create_index('ix_patients_patient_code', 'patients', ['patient_code'], unique=True)
    op.create_index('ix_patients_id_number_hash', 'patients', ['id_number_hash'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('patient_id', sa.String(64), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('therapist_id', sa.String(64), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('therapist_role', sa.String(), nullable=False),
        sa.Column('session_type', sa.String(), nullable=False),
        _ts('scheduled_at', nullable=False),
        _ts('started_at'),
        _ts('ended_at'),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('location', sa.String(), nullable=False),
        sa.Column('notes', sa.JSON(), nullable=False),
        sa.Column('ai_summary', sa.JSON(), nullable=True),
        _ts('signed_at'),
        sa.Column('signed_by', sa.String(64), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint(
            "status in ('scheduled','in_progress','completed','cancelled','no_show')",
            name='ck_sessions_status',
        ),
        sa.CheckConstraint("location in ('in_person','telehealth','home_visit')", name='ck_sessions_location'),
        sa.CheckConstraint("duration >= 15 and duration <= 180", name='ck_sessions_duration'),
    )
    op.create_index('idx_sessions_therapist_time', 'sessions', ['therapist_id', 'scheduled_at'])
    op.create_index('idx_sessions_patient', 'sessions', ['patient_id'])

    op.create_table(
        'treatment_goals',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('patient_id', sa.String(64), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        _ts('target_date'),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('measurement_criteria', sa.Text(), nullable=False),
        sa.Column('created_by', sa.String(64), nullable=False),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint(
            "status in ('active','achieved','modified','discontinued')", name='ck_goals_status'
        ),
        sa.CheckConstraint("progress >= 0 and progress <= 100", name='ck_goals_progress'),
    )
    op.create_index('idx_goals_patient', 'treatment_goals', ['patient_id'])

    op.create_table(
        'reports',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('patient_id', sa.String(64), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('report_type', sa.String(), nullable=False),
        sa.Column('generated_by', sa.String(64), nullable=False),
        _ts('generated_at'),
        _ts('date_start', nullable=False),
        _ts('date_end', nullable=False),
        sa.Column('content', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('signed_by', sa.String(64), nullable=True),
        _ts('signed_at'),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint("status in ('draft','finalized','signed')", name='ck_reports_status'),
    )
    op.create_index('idx_reports_patient', 'reports', ['patient_id'])

    op.create_table(
        'voice_recordings',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('session_id', sa.String(64), sa.ForeignKey('sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('patient_id', sa.String(64), nullable=False),
        sa.Column('duration', sa.Float(), nullable=False),
        sa.Column('encrypted_audio', sa.Text(), nullable=False),
        sa.Column('transcription_status', sa.String(), nullable=False),
        sa.Column('encrypted_transcript', sa.Text(), nullable=True),
        sa.Column('diarized_transcript', sa.JSON(), nullable=True),
        sa.Column('consent_obtained', sa.Boolean(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
        sa.CheckConstraint(
            "transcription_status in ('pending','processing','completed','failed')",
            name='ck_recordings_status',
        ),
    )
    op.create_index('idx_recordings_session', 'voice_recordings', ['session_id'])
    op.create_index('idx_recordings_patient', 'voice_recordings', ['patient_id'])

    op.create_table(
        'patient_insights',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column(
            'patient_id', sa.String(64), sa.ForeignKey('patients.id', ondelete='CASCADE'),
            nullable=False, unique=True,
        ),
        sa.Column('patterns', sa.JSON(), nullable=False),
        sa.Column('progress_trends', sa.JSON(), nullable=False),
        sa.Column('risk_indicators', sa.JSON(), nullable=False),
        sa.Column('treatment_gaps', sa.JSON(), nullable=False),
        sa.Column('session_count', sa.Integer(), nullable=False),
        sa.Column('mode', sa.String(), nullable=False),
        sa.Column('model', sa.String(), nullable=True),
        _ts('generated_at'),
        _ts('saved_at'),
    )


def downgrade() -> None:
    op.drop_table('patient_insights')
    op.drop_table('voice_recordings')
    op.drop_table('reports')
    op.drop_table('treatment_goals')
    op.drop_table('sessions')
    op.drop_table('patients')
    op.drop_table('users')
