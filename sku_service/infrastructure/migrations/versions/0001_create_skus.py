"""create skus table

Revision ID: 0001
Revises:
Create Date: 2024-06-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

JsonType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table('skus',
    sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),
    sa.Column('sku_code', sa.String(length=50), nullable=False),
    sa.Column('upc', sa.String(length=12), nullable=True),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('brand', sa.String(length=100), nullable=True),
    sa.Column('category', sa.String(length=50), nullable=False),
    sa.Column('subcategory', sa.String(length=50), nullable=True),
    sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('cost', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('unit_of_measure', sa.String(length=20), nullable=True),
    sa.Column('quantity_per_unit', sa.Integer(), nullable=True),
    sa.Column('weight', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('dimension_length', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('dimension_width', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('dimension_height', sa.Numeric(precision=10, scale=2), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='ACTIVE'),
    sa.Column('tags', JsonType, nullable=True),
    sa.Column('attributes', JsonType, nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_sku_code', 'skus', ['sku_code'], unique=True)
    op.create_index('idx_sku_upc', 'skus', ['upc'], unique=True)
    op.create_index('idx_sku_category', 'skus', ['category'], unique=False)
    op.create_index('idx_sku_status', 'skus', ['status'], unique=False)
    op.create_index('idx_sku_brand', 'skus', ['brand'], unique=False)


def downgrade():
    op.drop_index('idx_sku_brand', table_name='skus')
    op.drop_index('idx_sku_status', table_name='skus')
    op.drop_index('idx_sku_category', table_name='skus')
    op.drop_index('idx_sku_upc', table_name='skus')
    op.drop_index('idx_sku_code', table_name='skus')
    op.drop_table('skus')
