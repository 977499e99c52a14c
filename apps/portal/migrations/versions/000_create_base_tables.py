"""Create base tables

Revision ID: 000
Revises:
Create Date: 2025-01-06 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '000'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create subscribers table
    op.create_table('subscribers',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('phone_number', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='subscriber'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_subscribers_phone_number'), 'subscribers', ['phone_number'], unique=True)

    # Create subscriptions table
    op.create_table('subscriptions',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('subscriber_id', sa.String(length=32), nullable=False),
        sa.Column('plan_id', sa.String(), nullable=False),
        sa.Column('plan_name', sa.String(), nullable=False),
        sa.Column('starts_at', sa.DateTime(), nullable=False),
        sa.Column('ends_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('last_payment_at', sa.DateTime(), nullable=True),
        sa.Column('last_payment_amount', sa.BigInteger(), nullable=True),
        sa.CheckConstraint('ends_at > starts_at', name='ck_subscriptions_ends_after_start'),
        sa.ForeignKeyConstraint(['subscriber_id'], ['subscribers.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_subscriptions_subscriber_id'), 'subscriptions', ['subscriber_id'])
    op.create_index(op.f('ix_subscriptions_status'), 'subscriptions', ['status'])

    # Create deliveries table
    op.create_table('deliveries',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('subscriber_id', sa.String(length=32), nullable=False),
        sa.Column('subscriber_phone', sa.String(), nullable=False),
        sa.Column('delivery_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('corrected_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['subscriber_id'], ['subscribers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('subscriber_id', 'delivery_date', name='uq_deliveries_subscriber_date')
    )
    op.create_index(op.f('ix_deliveries_subscriber_id'), 'deliveries', ['subscriber_id'])
    op.create_index(op.f('ix_deliveries_delivery_date'), 'deliveries', ['delivery_date'])
    op.create_index(op.f('ix_deliveries_status'), 'deliveries', ['status'])

    # Create payments table
    op.create_table('payments',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('subscriber_id', sa.String(length=32), nullable=False),
        sa.Column('subscriber_phone', sa.String(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(), nullable=False),
        sa.Column('capture_reference', sa.String(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=False),
        sa.Column('method', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('subscription_id', sa.String(length=32), nullable=True),
        sa.Column('requested_subscription_id', sa.String(length=32), nullable=True),
        sa.Column('needs_reconciliation', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reconciliation_note', sa.Text(), nullable=True),
        sa.Column('reconciled_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['subscriber_id'], ['subscribers.id'], ),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payments_subscriber_id'), 'payments', ['subscriber_id'])
    op.create_index(op.f('ix_payments_capture_reference'), 'payments', ['capture_reference'], unique=True)
    op.create_index(op.f('ix_payments_paid_at'), 'payments', ['paid_at'])
    op.create_index(op.f('ix_payments_needs_reconciliation'), 'payments', ['needs_reconciliation'])


def downgrade():
    op.drop_table('payments')
    op.drop_table('deliveries')
    op.drop_table('subscriptions')
    op.drop_table('subscribers')
