"""Create product search cache table

Revision ID: 001_product_search_cache
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_product_search_cache'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the product_search_cache table"""

    op.create_table('product_search_cache',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('query_key', sa.String(length=500), nullable=False),
        sa.Column('query_text', sa.Text(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('result', sa.JSON(), nullable=False),
        sa.Column('validation', sa.JSON(), nullable=True),
        sa.Column('query_intent', sa.String(length=50), nullable=True),
        sa.Column('total_sources_analyzed', sa.Integer(), nullable=True),
        sa.Column('processing_method', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('position >= 0', name='check_position'),
        sa.CheckConstraint('total_sources_analyzed >= 0', name='check_total_sources'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_product_search_cache_query_key'), 'product_search_cache', ['query_key'], unique=False)
    op.create_index('ix_product_search_cache_key_created', 'product_search_cache',
                    ['query_key', 'created_at'], unique=False)


def downgrade() -> None:
    """Drop the product_search_cache table"""
    op.drop_index('ix_product_search_cache_key_created', table_name='product_search_cache')
    op.drop_index(op.f('ix_product_search_cache_query_key'), table_name='product_search_cache')
    op.drop_table('product_search_cache')
