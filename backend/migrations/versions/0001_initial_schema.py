"""initial schema: authz, overrides, activity logs, webhooks, records

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('roles',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('display_name', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('description', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('is_system', sa.Boolean(), nullable=True, server_default=sa.text('0')),
        sa.Column('permissions', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table('permissions',
        sa.Column('id', sa.String(length=128), primary_key=True),
        sa.Column('role_id', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('allowed', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.UniqueConstraint('role_id', 'resource', 'action', name='uq_role_resource_action'),
    )
    op.create_index('ix_permissions_role_id', 'permissions', ['role_id'])
    op.create_index('ix_permissions_resource', 'permissions', ['resource'])

    op.create_table('user_permission_overrides',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('permissions', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('created_by', sa.String(length=64), nullable=True),
    )
    op.create_index('ix_user_permission_overrides_user_id', 'user_permission_overrides', ['user_id'], unique=True)

    op.create_table('users',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False),
        sa.Column('role', sa.String(length=64), nullable=False, server_default='agent'),
        sa.Column('password_hash', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text('1')),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('activity_logs',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('user_email', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('user_name', sa.String(length=128), nullable=False, server_default=''),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('resource', sa.String(length=64), nullable=False),
        sa.Column('resource_id', sa.String(length=128), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
    )
    for col in ('user_id', 'action', 'resource', 'resource_id', 'timestamp'):
        op.create_index(f'ix_activity_logs_{col}', 'activity_logs', [col])

    op.create_table('webhooks',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('event', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('headers', sa.JSON(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('response', sa.JSON(), nullable=True),
        sa.Column('error', sa.JSON(), nullable=True),
    )
    for col in ('source', 'event', 'status', 'received_at'):
        op.create_index(f'ix_webhooks_{col}', 'webhooks', [col])

    op.create_table('webhook_events',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('event', sa.String(length=128), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=True, server_default=sa.text('1')),
        sa.Column('endpoint', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('description', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('retry_policy', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('source', 'event', name='uq_webhook_event_source_event'),
    )

    op.create_table('records',
        sa.Column('pk', sa.Integer(), primary_key=True),
        sa.Column('collection', sa.String(length=64), nullable=False),
        sa.Column('record_id', sa.String(length=128), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('collection', 'record_id', name='uq_record_collection_id'),
    )
    op.create_index('ix_records_collection', 'records', ['collection'])


def downgrade():
    op.drop_index('ix_records_collection', table_name='records')
    op.drop_table('records')
    op.drop_table('webhook_events')
    for col in ('source', 'event', 'status', 'received_at'):
        op.drop_index(f'ix_webhooks_{col}', table_name='webhooks')
    op.drop_table('webhooks')
    for col in ('user_id', 'action', 'resource', 'resource_id', 'timestamp'):
        op.drop_index(f'ix_activity_logs_{col}', table_name='activity_logs')
    op.drop_table('activity_logs')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_index('ix_user_permission_overrides_user_id', table_name='user_permission_overrides')
    op.drop_table('user_permission_overrides')
    op.drop_index('ix_permissions_resource', table_name='permissions')
    op.drop_index('ix_permissions_role_id', table_name='permissions')
    op.drop_table('permissions')
    op.drop_table('roles')
