"""initial schema: users, subscriptions, usage_logs, hand_histories

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

JSONPayload = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('auth_provider', sa.String(length=50), nullable=False, server_default='google'),
        sa.Column('google_sub', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_active_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=False)
    op.create_index(op.f('ix_users_google_sub'), 'users', ['google_sub'], unique=True)

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('plan', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('store', sa.String(length=50), nullable=True),
        sa.Column('limit_per_month', sa.Integer(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('purchase_token', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'], unique=False)
    op.create_index(op.f('ix_subscriptions_purchase_token'), 'subscriptions', ['purchase_token'], unique=False)
    op.create_index(
        'ix_subscriptions_user_status_started',
        'subscriptions',
        ['user_id', 'status', 'started_at'],
        unique=False,
    )

    op.create_table(
        'usage_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('action_type', sa.String(length=50), nullable=False),
        sa.Column('hand_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index(
        'ix_usage_logs_user_action_created',
        'usage_logs',
        ['user_id', 'action_type', 'created_at'],
        unique=False,
    )
    op.create_index(
        'ix_usage_logs_user_action_hand',
        'usage_logs',
        ['user_id', 'action_type', 'hand_id'],
        unique=False,
    )

    op.create_table(
        'hand_histories',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('hand_id', sa.String(length=255), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('snapshot', JSONPayload, nullable=True),
        sa.Column('evaluation', JSONPayload, nullable=True),
        sa.Column('conversation', JSONPayload, nullable=True),
        sa.Column('markdown', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index(op.f('ix_hand_histories_user_id'), 'hand_histories', ['user_id'], unique=False)
    op.create_index(op.f('ix_hand_histories_hand_id'), 'hand_histories', ['hand_id'], unique=False)
    op.create_index(op.f('ix_hand_histories_created_at'), 'hand_histories', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_hand_histories_created_at'), table_name='hand_histories')
    op.drop_index(op.f('ix_hand_histories_hand_id'), table_name='hand_histories')
    op.drop_index(op.f('ix_hand_histories_user_id'), table_name='hand_histories')
    op.drop_table('hand_histories')

    op.drop_index('ix_usage_logs_user_action_hand', table_name='usage_logs')
    op.drop_index('ix_usage_logs_user_action_created', table_name='usage_logs')
    op.drop_table('usage_logs')

    op.drop_index('ix_subscriptions_user_status_started', table_name='subscriptions')
    op.drop_index(op.f('ix_subscriptions_purchase_token'), table_name='subscriptions')
    op.drop_index(op.f('ix_subscriptions_user_id'), table_name='subscriptions')
    op.drop_table('subscriptions')

    op.drop_index(op.f('ix_users_google_sub'), table_name='users')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
