"""notification_delivery

Revision ID: 20260301_0001
Revises: None
Create Date: 2026-03-01 09:00:00

"""
import uuid

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20260301_0001'
down_revision = None
branch_labels = None
depends_on = None

# Default platform reminder schedules (event_type, offset_days)
DEFAULT_SCHEDULES = [
    ('trial.expiry', 7),
    ('trial.expiry', 3),
    ('trial.expiry', 1),
    ('subscription.renewal', 3),
    ('subscription.renewal', 1),
]


def upgrade() -> None:
    """
    Create outbox, reminder schedule, notification, settings and tenant directory tables.
    """
    op.create_table(
        'platform_settings',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('updated_by_email', sa.String(length=320), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_platform_settings_key', 'platform_settings', ['key'], unique=True)

    op.create_table(
        'tenants',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('domain', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=50), server_default='Active', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'tenant_users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=50), server_default='Active', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tenant_users_tenant_id_role', 'tenant_users', ['tenant_id', 'role'])

    op.create_table(
        'outbox_messages',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=True),
        sa.Column('template_id', sa.String(length=255), nullable=False),
        sa.Column('recipient', sa.String(length=320), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='Pending', nullable=False),
        sa.Column('retry_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_outbox_messages_status_created_at', 'outbox_messages', ['status', 'created_at'])
    op.create_index('ix_outbox_messages_tenant_id_status', 'outbox_messages', ['tenant_id', 'status'])

    reminder_schedules = op.create_table(
        'reminder_schedules',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('scope', sa.String(length=50), server_default='platform', nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('trigger_offset_days', sa.Integer(), nullable=True),
        sa.Column('cadence', sa.String(length=50), server_default='daily', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('last_triggered_at', sa.DateTime(), nullable=True),
        sa.Column('next_trigger_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_reminder_schedules_scope_event_active',
        'reminder_schedules',
        ['scope', 'event_type', 'is_active']
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=36), nullable=True),
        sa.Column('scope', sa.String(length=50), server_default='tenant', nullable=False),
        sa.Column('type', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('severity', sa.String(length=20), server_default='info', nullable=False),
        sa.Column('target_user_id', sa.String(length=36), nullable=True),
        sa.Column('target_email', sa.String(length=320), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['target_user_id'], ['tenant_users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_scope_created_at', 'notifications', ['scope', 'created_at'])
    op.create_index('ix_notifications_tenant_id_created_at', 'notifications', ['tenant_id', 'created_at'])
    op.create_index('ix_notifications_target_email_created_at', 'notifications', ['target_email', 'created_at'])

    # Seed default platform schedules; reconciliation adds any others policy asks for
    op.bulk_insert(reminder_schedules, [
        {
            'id': str(uuid.uuid4()),
            'scope': 'platform',
            'event_type': event_type,
            'trigger_offset_days': offset,
            'cadence': 'daily',
            'is_active': True,
        }
        for event_type, offset in DEFAULT_SCHEDULES
    ])


def downgrade() -> None:
    """
    Drop all notification delivery tables.
    """
    op.drop_index('ix_notifications_target_email_created_at', table_name='notifications')
    op.drop_index('ix_notifications_tenant_id_created_at', table_name='notifications')
    op.drop_index('ix_notifications_scope_created_at', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('ix_reminder_schedules_scope_event_active', table_name='reminder_schedules')
    op.drop_table('reminder_schedules')

    op.drop_index('ix_outbox_messages_tenant_id_status', table_name='outbox_messages')
    op.drop_index('ix_outbox_messages_status_created_at', table_name='outbox_messages')
    op.drop_table('outbox_messages')

    op.drop_index('ix_tenant_users_tenant_id_role', table_name='tenant_users')
    op.drop_table('tenant_users')

    op.drop_table('tenants')

    op.drop_index('ix_platform_settings_key', table_name='platform_settings')
    op.drop_table('platform_settings')
