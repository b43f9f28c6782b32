"""create_payment_transactions_table

Revision ID: 3f1c2a7b9d10
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c2a7b9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.String(length=36), nullable=False, comment='Internal transaction id (uuid4)'),
        sa.Column('user_id', sa.String(length=100), nullable=False, comment='Host application user id'),
        sa.Column('plan_id', sa.String(length=100), nullable=False, comment='Host application plan / product id'),
        sa.Column('provider', sa.String(length=20), nullable=False, comment='payme/click/paynet'),
        sa.Column('amount', sa.BigInteger(), nullable=False, comment='Amount in minor units (tiyin)'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='PENDING/PREPARED/COMPLETED/FAILED'),
        sa.Column('provider_transaction_id', sa.String(length=100), nullable=True, comment="Provider's transaction id"),
        sa.Column('provider_create_time', sa.BigInteger(), nullable=True, comment='epoch ms'),
        sa.Column('provider_perform_time', sa.BigInteger(), nullable=True, comment='epoch ms'),
        sa.Column('provider_cancel_time', sa.BigInteger(), nullable=True, comment='epoch ms'),
        sa.Column('cancel_reason', sa.Integer(), nullable=True),
        sa.Column('short_id', sa.String(length=10), nullable=True, comment='5-digit reference for Click/Paynet'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_payment_transactions'),
    )

    op.create_index('ix_payment_transactions_provider', 'payment_transactions', ['provider'], unique=False)
    op.create_index('ix_payment_transactions_status', 'payment_transactions', ['status'], unique=False)
    op.create_index('ix_payment_transactions_short_id', 'payment_transactions', ['short_id'], unique=False)
    op.create_index('ix_payment_transactions_created_at', 'payment_transactions', ['created_at'], unique=False)
    op.create_index(
        'ix_payment_transactions_provider_ref',
        'payment_transactions',
        ['provider', 'provider_transaction_id'],
        unique=False,
    )
    op.create_index('ix_payment_transactions_user_plan', 'payment_transactions', ['user_id', 'plan_id'], unique=False)
    # One PENDING transaction per (user, plan)
    op.create_index(
        'uq_payment_transactions_pending_pair',
        'payment_transactions',
        ['user_id', 'plan_id'],
        unique=True,
        sqlite_where=sa.text("status = 'PENDING'"),
        postgresql_where=sa.text("status = 'PENDING'"),
    )


def downgrade() -> None:
    op.drop_index('uq_payment_transactions_pending_pair', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_user_plan', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_provider_ref', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_created_at', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_short_id', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_status', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_provider', table_name='payment_transactions')
    op.drop_table('payment_transactions')
