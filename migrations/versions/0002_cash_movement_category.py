"""cash movement categories

Revision ID: 0002_cash_movement_category
Revises: 0001_initial
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_cash_movement_category"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("pos_cash_movements") as batch_op:
        batch_op.add_column(sa.Column("category", sa.String(length=30), nullable=True))
        batch_op.create_index("ix_pos_cash_movements_category", ["category"])

    op.execute("UPDATE pos_cash_movements SET category = 'SALE' WHERE movement_type = 'SALE'")
    op.execute("UPDATE pos_cash_movements SET category = 'OTHER_INCOME' WHERE movement_type = 'CASH_IN'")
    op.execute("UPDATE pos_cash_movements SET category = 'WITHDRAWAL' WHERE movement_type = 'CASH_OUT'")


def downgrade() -> None:
    with op.batch_alter_table("pos_cash_movements") as batch_op:
        batch_op.drop_index("ix_pos_cash_movements_category")
        batch_op.drop_column("category")
