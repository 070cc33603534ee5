"""Initial migration

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create extensions
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto;')

    # Create contests table
    op.create_table('contests',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('category_group', sa.String(length=128), nullable=True),
        sa.Column('category', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('prize_title', sa.String(length=255), nullable=True),
        sa.Column('prize_pool', sa.Numeric(precision=30, scale=8), nullable=False, server_default='0'),
        sa.Column('place_percentages', sa.JSON(), nullable=False),
        sa.Column('min_prediction', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('max_prediction', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('increment', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('unit', sa.String(length=64), nullable=True),
        sa.Column('entries_per_prediction', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('generated_predictions', sa.JSON(), nullable=False),
        sa.Column('pricing_model', sa.String(length=32), nullable=False, server_default='tier'),
        sa.Column('flat_price', sa.Numeric(precision=30, scale=8), nullable=False, server_default='0'),
        sa.Column('tiers', sa.JSON(), nullable=False),
        sa.Column('start_time', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('end_time', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('end_offset_time', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Draft'),
        sa.Column('total_entries', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_entries', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('actual_value', sa.Numeric(precision=30, scale=8), nullable=True),
        sa.Column('winning_order_ids', sa.JSON(), nullable=False),
        sa.Column('prize_distributed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('ended_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_contests_status_end_time', 'contests', ['status', 'end_time'])

    # Create orders table
    op.create_table('orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('order_code', sa.String(length=64), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('contest_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('contest_name', sa.String(length=200), nullable=True),
        sa.Column('predictions', sa.JSON(), nullable=False),
        sa.Column('custom_predictions', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=30, scale=8), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('paid_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_code'),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id'], ondelete='CASCADE')
    )
    op.create_index('ix_orders_contest_id', 'orders', ['contest_id'])

    # Create wallets table
    op.create_table('wallets',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('points_balance', sa.Numeric(precision=30, scale=8), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sa.CheckConstraint('points_balance >= 0', name='chk_points_nonneg')
    )

    # Create withdrawals table
    op.create_table('withdrawals',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('points_deducted', sa.Numeric(precision=30, scale=8), nullable=False),
        sa.Column('currency', sa.String(length=16), nullable=False, server_default='usd'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('withdrawal_method', sa.String(length=16), nullable=False, server_default='card'),
        sa.Column('card_id', sa.String(length=128), nullable=True),
        sa.Column('payout_method', sa.String(length=16), nullable=True),
        sa.Column('fee', sa.Numeric(precision=30, scale=8), nullable=True),
        sa.Column('net_amount', sa.Numeric(precision=30, scale=8), nullable=True),
        sa.Column('payout_id', sa.String(length=128), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('admin_note', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('processed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_withdrawals_user_id', 'withdrawals', ['user_id'])

    # Create audit_logs table
    op.create_table('audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('admin_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('actor', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=128), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_index('ix_withdrawals_user_id', table_name='withdrawals')
    op.drop_table('withdrawals')
    op.drop_table('wallets')
    op.drop_index('ix_orders_contest_id', table_name='orders')
    op.drop_table('orders')
    op.drop_index('idx_contests_status_end_time', table_name='contests')
    op.drop_table('contests')
