"""initial_sync_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'item_mappings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('natural_key', sa.Integer(), nullable=False, unique=True),
        sa.Column('display_key', sa.String(100), nullable=True),
        sa.Column('container_scope', sa.BigInteger(), nullable=False),
        sa.Column('remote_item_id', sa.BigInteger(), nullable=False),
        sa.Column('version_watermark', sa.String(64), nullable=False, server_default=''),
        sa.Column('checksum', sa.String(500), nullable=False, server_default=''),
        sa.Column('is_test', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_item_mappings_scope_natural_key', 'item_mappings', ['container_scope', 'natural_key'])
    op.create_index('ix_item_mappings_scope_display_key', 'item_mappings', ['container_scope', 'display_key'])

    op.create_table(
        'hearing_snapshots',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('natural_key', sa.Integer(), nullable=False),
        sa.Column('board_id', sa.BigInteger(), nullable=False),
        sa.Column('remote_item_id', sa.BigInteger(), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('meet_status', sa.Integer(), nullable=True),
        sa.Column('judge_name', sa.String(255), nullable=True),
        sa.Column('city', sa.String(255), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ux_hearing_snapshots_key_board', 'hearing_snapshots', ['natural_key', 'board_id'], unique=True)

    op.create_table(
        'sync_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('run_id', sa.String(64), nullable=True),
        sa.Column('source', sa.String(100), nullable=False),
        sa.Column('level', sa.String(20), nullable=False, server_default='Info'),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
    )
    op.create_index('ix_sync_logs_created_at', 'sync_logs', ['created_at'])
    op.create_index('ix_sync_logs_run_id', 'sync_logs', ['run_id'])

    op.create_table(
        'sync_failures',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('run_id', sa.String(64), nullable=False),
        sa.Column('natural_key', sa.Integer(), nullable=False),
        sa.Column('display_key', sa.String(100), nullable=True),
        sa.Column('board_id', sa.BigInteger(), nullable=False),
        sa.Column('operation', sa.String(50), nullable=False),
        sa.Column('error_type', sa.String(200), nullable=False),
        sa.Column('error_message', sa.String(2000), nullable=False),
        sa.Column('stack_trace', sa.Text(), nullable=True),
        sa.Column('retry_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_sync_failures_run_id', 'sync_failures', ['run_id'])
    op.create_index('ix_sync_failures_natural_key', 'sync_failures', ['natural_key'])

    op.create_table(
        'sync_run_metrics',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('run_id', sa.String(64), nullable=False, unique=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='running'),
        sa.Column('created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('skipped', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('watermark_used', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
    )
    op.create_index('ix_sync_run_metrics_started_at', 'sync_run_metrics', ['started_at'])

    op.create_table(
        'sync_run_locks',
        sa.Column('name', sa.String(100), primary_key=True),
        sa.Column('locked_by', sa.String(100), nullable=True),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Tablas origen: en produccion suelen ser vistas/replicas del sistema de casos
    op.create_table(
        'source_cases',
        sa.Column('natural_key', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('case_number', sa.String(100), nullable=True),
        sa.Column('case_name', sa.String(500), nullable=True),
        sa.Column('client_name', sa.String(255), nullable=True),
        sa.Column('status_name', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('modified_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_source_cases_case_number', 'source_cases', ['case_number'])
    op.create_index('ix_source_cases_created_at', 'source_cases', ['created_at'])
    op.create_index('ix_source_cases_modified_at', 'source_cases', ['modified_at'])

    op.create_table(
        'source_hearings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('natural_key', sa.Integer(), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('meet_status', sa.Integer(), nullable=True),
        sa.Column('judge_name', sa.String(255), nullable=True),
        sa.Column('city', sa.String(255), nullable=True),
        sa.Column('court_name', sa.String(255), nullable=True),
        sa.Column('modified_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_source_hearings_natural_key', 'source_hearings', ['natural_key'])
    op.create_index('ix_source_hearings_modified_at', 'source_hearings', ['modified_at'])


def downgrade() -> None:
    op.drop_table('source_hearings')
    op.drop_table('source_cases')
    op.drop_table('sync_run_locks')
    op.drop_table('sync_run_metrics')
    op.drop_table('sync_failures')
    op.drop_table('sync_logs')
    op.drop_table('hearing_snapshots')
    op.drop_table('item_mappings')
