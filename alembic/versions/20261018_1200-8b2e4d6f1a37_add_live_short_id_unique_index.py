"""add_live_short_id_unique_index

Revision ID: 8b2e4d6f1a37
Revises: 3f1c2a7b9d10
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8b2e4d6f1a37'
down_revision: Union[str, None] = '3f1c2a7b9d10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # A short id may be reused once its holder is COMPLETED/FAILED
    op.create_index(
        'uq_payment_transactions_live_short_id',
        'payment_transactions',
        ['short_id'],
        unique=True,
        sqlite_where=sa.text("status IN ('PENDING', 'PREPARED')"),
        postgresql_where=sa.text("status IN ('PENDING', 'PREPARED')"),
    )


def downgrade() -> None:
    op.drop_index('uq_payment_transactions_live_short_id', table_name='payment_transactions')
