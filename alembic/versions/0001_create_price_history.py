"""create price_history table

Revision ID: 0001_create_price_history
Revises: 
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_create_price_history'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'price_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('symbol', sa.String(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        'ix_price_history_symbol_timestamp', 'price_history', ['symbol', 'timestamp']
    )


def downgrade():
    op.drop_index('ix_price_history_symbol_timestamp', table_name='price_history')
    op.drop_table('price_history')
