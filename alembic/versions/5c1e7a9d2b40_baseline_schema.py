"""baseline_schema

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2026-03-02 09:14:27.118402

Creates companies, job postings, scrape/match sessions with their logs,
settings and the candidate profile. Tables that already exist are left alone.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '5c1e7a9d2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists('companies'):
        op.create_table('companies',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('careers_url', sa.String(), nullable=False),
            sa.Column('platform', sa.String(), nullable=True),
            sa.Column('board_token', sa.String(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('last_scraped_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_companies_active', 'companies', ['is_active'], unique=False)
        op.create_index(op.f('ix_companies_id'), 'companies', ['id'], unique=False)

    if not table_exists('job_postings'):
        op.create_table('job_postings',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('company_id', sa.Integer(), nullable=False),
            sa.Column('external_id', sa.String(), nullable=False),
            sa.Column('title', sa.String(), nullable=False),
            sa.Column('url', sa.String(), nullable=True),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('description_format', sa.String(), nullable=False),
            sa.Column('location', sa.String(), nullable=True),
            sa.Column('location_type', sa.String(), nullable=True),
            sa.Column('department', sa.String(), nullable=True),
            sa.Column('salary', sa.String(), nullable=True),
            sa.Column('employment_type', sa.String(), nullable=True),
            sa.Column('posted_date', sa.DateTime(), nullable=True),
            sa.Column('content_hash', sa.String(), nullable=False),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('status_before_archive', sa.String(), nullable=True),
            sa.Column('archived_at', sa.DateTime(), nullable=True),
            sa.Column('match_score', sa.Float(), nullable=True),
            sa.Column('match_reasons', sa.JSON(), nullable=True),
            sa.Column('matched_skills', sa.JSON(), nullable=True),
            sa.Column('missing_skills', sa.JSON(), nullable=True),
            sa.Column('recommendations', sa.JSON(), nullable=True),
            sa.Column('matched_at', sa.DateTime(), nullable=True),
            sa.Column('discovered_at', sa.DateTime(), nullable=False),
            sa.Column('last_seen_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('company_id', 'external_id', name='uq_job_company_external')
        )
        op.create_index('idx_job_company_status', 'job_postings', ['company_id', 'status'], unique=False)
        op.create_index(op.f('ix_job_postings_company_id'), 'job_postings', ['company_id'], unique=False)
        op.create_index(op.f('ix_job_postings_discovered_at'), 'job_postings', ['discovered_at'], unique=False)
        op.create_index(op.f('ix_job_postings_id'), 'job_postings', ['id'], unique=False)
        op.create_index(op.f('ix_job_postings_match_score'), 'job_postings', ['match_score'], unique=False)
        op.create_index(op.f('ix_job_postings_status'), 'job_postings', ['status'], unique=False)

    if not table_exists('scrape_sessions'):
        op.create_table('scrape_sessions',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('trigger', sa.String(), nullable=False),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('company_ids', sa.JSON(), nullable=True),
            sa.Column('companies_total', sa.Integer(), nullable=False),
            sa.Column('companies_completed', sa.Integer(), nullable=False),
            sa.Column('jobs_found', sa.Integer(), nullable=False),
            sa.Column('jobs_added', sa.Integer(), nullable=False),
            sa.Column('jobs_updated', sa.Integer(), nullable=False),
            sa.Column('jobs_filtered', sa.Integer(), nullable=False),
            sa.Column('jobs_archived', sa.Integer(), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('started_at', sa.DateTime(), nullable=True),
            sa.Column('completed_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_scrape_sessions_created_at'), 'scrape_sessions', ['created_at'], unique=False)
        op.create_index(op.f('ix_scrape_sessions_status'), 'scrape_sessions', ['status'], unique=False)

    if not table_exists('scrape_logs'):
        op.create_table('scrape_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.String(), nullable=False),
            sa.Column('company_id', sa.Integer(), nullable=True),
            sa.Column('company_name', sa.String(), nullable=True),
            sa.Column('platform', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('jobs_found', sa.Integer(), nullable=False),
            sa.Column('jobs_added', sa.Integer(), nullable=False),
            sa.Column('jobs_updated', sa.Integer(), nullable=False),
            sa.Column('jobs_filtered', sa.Integer(), nullable=False),
            sa.Column('jobs_archived', sa.Integer(), nullable=False),
            sa.Column('added_job_ids', sa.JSON(), nullable=True),
            sa.Column('error_type', sa.String(), nullable=True),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('duration_ms', sa.Integer(), nullable=True),
            sa.Column('started_at', sa.DateTime(), nullable=True),
            sa.Column('completed_at', sa.DateTime(), nullable=False),
            sa.Column('matcher_status', sa.String(), nullable=True),
            sa.Column('matcher_jobs_total', sa.Integer(), nullable=True),
            sa.Column('matcher_jobs_completed', sa.Integer(), nullable=True),
            sa.Column('matcher_error_count', sa.Integer(), nullable=True),
            sa.Column('matcher_duration_ms', sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['session_id'], ['scrape_sessions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_scrape_logs_session_company', 'scrape_logs', ['session_id', 'company_id'], unique=False)
        op.create_index(op.f('ix_scrape_logs_company_id'), 'scrape_logs', ['company_id'], unique=False)
        op.create_index(op.f('ix_scrape_logs_id'), 'scrape_logs', ['id'], unique=False)
        op.create_index(op.f('ix_scrape_logs_session_id'), 'scrape_logs', ['session_id'], unique=False)

    if not table_exists('match_sessions'):
        op.create_table('match_sessions',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('trigger', sa.String(), nullable=False),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('company_id', sa.Integer(), nullable=True),
            sa.Column('scrape_session_id', sa.String(), nullable=True),
            sa.Column('job_ids', sa.JSON(), nullable=True),
            sa.Column('jobs_total', sa.Integer(), nullable=False),
            sa.Column('jobs_completed', sa.Integer(), nullable=False),
            sa.Column('jobs_succeeded', sa.Integer(), nullable=False),
            sa.Column('jobs_failed', sa.Integer(), nullable=False),
            sa.Column('error_count', sa.Integer(), nullable=False),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('started_at', sa.DateTime(), nullable=True),
            sa.Column('completed_at', sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['scrape_session_id'], ['scrape_sessions.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_match_sessions_created_at'), 'match_sessions', ['created_at'], unique=False)
        op.create_index(op.f('ix_match_sessions_scrape_session_id'), 'match_sessions', ['scrape_session_id'], unique=False)
        op.create_index(op.f('ix_match_sessions_status'), 'match_sessions', ['status'], unique=False)

    if not table_exists('match_logs'):
        op.create_table('match_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.String(), nullable=False),
            sa.Column('job_id', sa.Integer(), nullable=True),
            sa.Column('job_title', sa.String(), nullable=True),
            sa.Column('company_name', sa.String(), nullable=True),
            sa.Column('status', sa.String(), nullable=False),
            sa.Column('score', sa.Float(), nullable=True),
            sa.Column('attempts', sa.Integer(), nullable=False),
            sa.Column('error_type', sa.String(), nullable=True),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('duration_ms', sa.Integer(), nullable=True),
            sa.Column('model_used', sa.String(), nullable=True),
            sa.Column('completed_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['job_id'], ['job_postings.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['session_id'], ['match_sessions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('idx_match_logs_session_status', 'match_logs', ['session_id', 'status'], unique=False)
        op.create_index(op.f('ix_match_logs_id'), 'match_logs', ['id'], unique=False)
        op.create_index(op.f('ix_match_logs_job_id'), 'match_logs', ['job_id'], unique=False)
        op.create_index(op.f('ix_match_logs_session_id'), 'match_logs', ['session_id'], unique=False)

    if not table_exists('settings'):
        op.create_table('settings',
            sa.Column('key', sa.String(), nullable=False),
            sa.Column('value', sa.Text(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('key')
        )

    if not table_exists('candidate_profiles'):
        op.create_table('candidate_profiles',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=True),
            sa.Column('headline', sa.String(), nullable=True),
            sa.Column('summary', sa.Text(), nullable=True),
            sa.Column('skills', sa.JSON(), nullable=True),
            sa.Column('experience', sa.Text(), nullable=True),
            sa.Column('preferences', sa.Text(), nullable=True),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_candidate_profiles_id'), 'candidate_profiles', ['id'], unique=False)


def downgrade() -> None:
    op.drop_table('candidate_profiles')
    op.drop_table('settings')
    op.drop_table('match_logs')
    op.drop_table('match_sessions')
    op.drop_table('scrape_logs')
    op.drop_table('scrape_sessions')
    op.drop_table('job_postings')
    op.drop_table('companies')
