"""create sku_sequences table and seed it from existing codes

Revision ID: 0002
Revises: 0001
Create Date: 2024-06-10 09:00:00.000000

"""
from alembic import context, op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002'
down_revision = '0001'
branch_labels = None
depends_on = None


def upgrade():
    sequences = op.create_table('sku_sequences',
    sa.Column('prefix', sa.String(length=40), nullable=False),
    sa.Column('last_value', sa.Integer(), nullable=False, server_default='0'),
    sa.PrimaryKeyConstraint('prefix')
    )

    if context.is_offline_mode():
        return

    # Счетчики продолжают нумерацию после последнего существующего кода
    skus = sa.table('skus', sa.column('sku_code', sa.String))
    latest = {}
    for (sku_code,) in op.get_bind().execute(sa.select(skus.c.sku_code)):
        prefix, _, tail = sku_code.rpartition('-')
        if prefix and tail.isdigit():
            latest[prefix] = max(latest.get(prefix, 0), int(tail))

    if latest:
        op.bulk_insert(sequences, [
            {'prefix': prefix, 'last_value': last_value}
            for prefix, last_value in sorted(latest.items())
        ])


def downgrade():
    op.drop_table('sku_sequences')
