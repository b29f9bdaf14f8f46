"""Create order lifecycle schema

Revision ID: 3c9e1f2a7b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c9e1f2a7b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Chefs, drivers, orders with history, assignments, ledger, refunds and outbox"""

    op.create_table('chefs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('business_name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('verification_status', sa.String(length=32), server_default='pending', nullable=False),
        sa.Column('payment_account_id', sa.String(), nullable=True),
        sa.Column('payment_onboarding_complete', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('minimum_order_cents', sa.Integer(), server_default='0', nullable=False),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('delivery_radius_km', sa.Float(), server_default='8.0', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index('ix_chefs_user_id', 'chefs', ['user_id'])

    op.create_table('menu_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('chef_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('is_available', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['chef_id'], ['chefs.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_menu_items_chef_id', 'menu_items', ['chef_id'])

    op.create_table('drivers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), server_default='', nullable=False),
        sa.Column('vehicle_type', sa.String(length=50), server_default='car', nullable=False),
        sa.Column('is_available', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('verification_status', sa.String(length=32), server_default='pending', nullable=False),
        sa.Column('current_latitude', sa.Float(), nullable=True),
        sa.Column('current_longitude', sa.Float(), nullable=True),
        sa.Column('location_updated_at', sa.DateTime(), nullable=True),
        sa.Column('average_rating', sa.Float(), server_default='0', nullable=False),
        sa.Column('total_deliveries', sa.Integer(), server_default='0', nullable=False),
        sa.Column('successful_deliveries', sa.Integer(), server_default='0', nullable=False),
        sa.Column('cancelled_deliveries', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_earnings_cents', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )
    op.create_index('ix_drivers_user_id', 'drivers', ['user_id'])
    op.create_index('idx_drivers_available_location', 'drivers', ['is_available', 'current_latitude', 'current_longitude'])

    op.create_table('orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.Uuid(), nullable=False),
        sa.Column('chef_id', sa.Uuid(), nullable=False),
        sa.Column('assigned_driver_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(length=32), server_default='pending', nullable=False),

        # Money snapshot, all in cents
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('tax_cents', sa.Integer(), nullable=False),
        sa.Column('delivery_fee_cents', sa.Integer(), nullable=False),
        sa.Column('platform_fee_cents', sa.Integer(), nullable=False),
        sa.Column('chef_earnings_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('refunded_cents', sa.Integer(), server_default='0', nullable=False),
        sa.Column('currency', sa.String(length=3), server_default='USD', nullable=False),
        sa.Column('payment_reference', sa.String(), nullable=True),

        sa.Column('pickup_latitude', sa.Float(), nullable=True),
        sa.Column('pickup_longitude', sa.Float(), nullable=True),
        sa.Column('delivery_latitude', sa.Float(), nullable=True),
        sa.Column('delivery_longitude', sa.Float(), nullable=True),
        sa.Column('delivery_address', sa.String(length=500), nullable=False),
        sa.Column('delivery_instructions', sa.String(length=500), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=500), nullable=True),
        sa.Column('rejection_reason', sa.String(length=500), nullable=True),

        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('ready_at', sa.DateTime(), nullable=True),
        sa.Column('picked_up_at', sa.DateTime(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('estimated_delivery_at', sa.DateTime(), nullable=True),

        sa.Column('history_sequence', sa.Integer(), server_default='0', nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['chef_id'], ['chefs.id']),
        sa.ForeignKeyConstraint(['assigned_driver_id'], ['drivers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
        sa.CheckConstraint('total_cents = subtotal_cents + tax_cents + delivery_fee_cents', name='ck_orders_total'),
        sa.CheckConstraint('refunded_cents >= 0 AND refunded_cents <= total_cents', name='ck_orders_refunded')
    )
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_chef_id', 'orders', ['chef_id'])
    op.create_index('ix_orders_assigned_driver_id', 'orders', ['assigned_driver_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_reference', 'orders', ['payment_reference'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table('order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('menu_item_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['menu_item_id'], ['menu_items.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table('order_status_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('from_status', sa.String(length=32), nullable=True),
        sa.Column('to_status', sa.String(length=32), nullable=False),
        sa.Column('event', sa.String(length=64), nullable=False),
        sa.Column('changed_by', sa.String(length=64), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'sequence', name='uq_order_status_history_sequence')
    )
    op.create_index('idx_order_status_history_order', 'order_status_history', ['order_id', 'sequence'])

    op.create_table('driver_assignments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('driver_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(length=32), server_default='pending', nullable=False),
        sa.Column('distance_km', sa.Float(), nullable=False),
        sa.Column('estimated_pickup_minutes', sa.Integer(), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('declined_at', sa.DateTime(), nullable=True),
        sa.Column('decline_reason', sa.String(length=500), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['driver_id'], ['drivers.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_driver_assignments_order_id', 'driver_assignments', ['order_id'])
    op.create_index('ix_driver_assignments_driver_id', 'driver_assignments', ['driver_id'])
    op.create_index('idx_driver_assignments_status_assigned_at', 'driver_assignments', ['status', 'assigned_at'])
    # At most one pending assignment per order
    op.create_index(
        'uq_driver_assignments_one_pending',
        'driver_assignments',
        ['order_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    op.create_table('ledger_entries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('actor_type', sa.String(length=32), nullable=False),
        sa.Column('actor_id', sa.Uuid(), nullable=True),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ledger_entries_order_id', 'ledger_entries', ['order_id'])
    op.create_index('idx_ledger_entries_actor', 'ledger_entries', ['actor_type', 'actor_id'])

    op.create_table('refunds',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('chef_refund_cents', sa.Integer(), nullable=False),
        sa.Column('platform_refund_cents', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=False),
        sa.Column('requested_by', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=32), server_default='pending', nullable=False),
        sa.Column('gateway_refund_id', sa.String(), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_refunds_order_id', 'refunds', ['order_id'])
    op.create_index('ix_refunds_status', 'refunds', ['status'])

    op.create_table('outbox_messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('topic', sa.String(length=64), nullable=False),
        sa.Column('aggregate_id', sa.Uuid(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=32), server_default='pending', nullable=False),
        sa.Column('attempts', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('next_attempt_at', sa.DateTime(), nullable=False),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_outbox_messages_aggregate_id', 'outbox_messages', ['aggregate_id'])
    op.create_index('idx_outbox_messages_due', 'outbox_messages', ['status', 'next_attempt_at'])


def downgrade() -> None:
    op.drop_table('outbox_messages')
    op.drop_table('refunds')
    op.drop_table('ledger_entries')
    op.drop_index('uq_driver_assignments_one_pending', table_name='driver_assignments')
    op.drop_table('driver_assignments')
    op.drop_table('order_status_history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('drivers')
    op.drop_table('menu_items')
    op.drop_table('chefs')
