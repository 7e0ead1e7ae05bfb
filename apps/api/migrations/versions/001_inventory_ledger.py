"""Inventory and cost ledger schema

Revision ID: 001_inventory_ledger
Revises:
Create Date: 2026-03-02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_inventory_ledger'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'restaurants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    # Catalogue
    op.create_table(
        'ingredients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('unit', sa.String(50), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 4), nullable=False),
        sa.Column('format_quantity', sa.Numeric(12, 4), nullable=True),
        sa.Column('yield_percent', sa.Numeric(5, 2), nullable=False, server_default='100'),
        sa.Column('virtual_stock', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('physical_stock', sa.Numeric(14, 4), nullable=True),
        sa.Column('min_stock', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('stock_updated_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_ingredients_restaurant', 'ingredients', ['restaurant_id'])

    op.create_table(
        'recipes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('code', sa.String(50), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('portions', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('sell_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('cost_per_portion', sa.Numeric(12, 4), nullable=True),
        sa.Column('margin_percent', sa.Numeric(6, 2), nullable=True),
        sa.Column('food_cost_percent', sa.Numeric(6, 2), nullable=True),
        sa.Column('cost_calculated_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_recipes_restaurant', 'recipes', ['restaurant_id'])
    op.create_index('idx_recipes_code', 'recipes', ['restaurant_id', 'code'])

    op.create_table(
        'recipe_lines',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('recipe_id', sa.Uuid(), sa.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ingredient_id', sa.Uuid(), sa.ForeignKey('ingredients.id', ondelete='SET NULL'), nullable=True),
        sa.Column('quantity', sa.Numeric(12, 4), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'recipe_variants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('recipe_id', sa.Uuid(), sa.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('code', sa.String(50), nullable=True),
        sa.Column('price_factor', sa.Numeric(8, 4), nullable=False, server_default='1'),
        sa.Column('sell_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )

    # Write records
    op.create_table(
        'sales',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('recipe_id', sa.Uuid(), sa.ForeignKey('recipes.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('variant_id', sa.Uuid(), sa.ForeignKey('recipe_variants.id', ondelete='SET NULL'), nullable=True),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('ingredient_cost', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('price_factor', sa.Numeric(8, 4), nullable=False, server_default='1'),
        sa.Column('sold_at', sa.DateTime(), nullable=False),
        sa.Column('source', sa.String(20), nullable=False, server_default='manual'),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index('idx_sales_restaurant_date', 'sales', ['restaurant_id', 'sold_at'])

    op.create_table(
        'sale_stock_deductions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('sale_id', sa.Uuid(), sa.ForeignKey('sales.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ingredient_id', sa.Uuid(), sa.ForeignKey('ingredients.id', ondelete='SET NULL'), nullable=True),
        sa.Column('requested', sa.Numeric(14, 4), nullable=False),
        sa.Column('applied', sa.Numeric(14, 4), nullable=False),
    )

    op.create_table(
        'purchase_orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('supplier_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('order_date', sa.Date(), nullable=False),
        sa.Column('total', sa.Numeric(12, 2), nullable=True),
        sa.Column('received_total', sa.Numeric(12, 2), nullable=True),
        sa.Column('received_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.String(500), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_purchase_orders_restaurant_date', 'purchase_orders', ['restaurant_id', 'order_date'])

    op.create_table(
        'purchase_order_lines',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ingredient_id', sa.Uuid(), sa.ForeignKey('ingredients.id', ondelete='SET NULL'), nullable=True),
        sa.Column('ordered_quantity', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('received_quantity', sa.Numeric(14, 4), nullable=True),
        sa.Column('unit_price', sa.Numeric(12, 4), nullable=False, server_default='0'),
        sa.Column('stock_added', sa.Numeric(14, 4), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
    )

    op.create_table(
        'waste_records',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ingredient_id', sa.Uuid(), sa.ForeignKey('ingredients.id', ondelete='SET NULL'), nullable=True),
        sa.Column('ingredient_name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 4), nullable=False),
        sa.Column('unit', sa.String(50), nullable=False),
        sa.Column('value_lost', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('reason', sa.String(100), nullable=False),
        sa.Column('note', sa.String(500), nullable=True),
        sa.Column('stock_deducted', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('recorded_at', sa.DateTime(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_waste_restaurant_period', 'waste_records', ['restaurant_id', 'period_id'])

    # Accumulators
    op.create_table(
        'daily_purchase_records',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ingredient_id', sa.Uuid(), sa.ForeignKey('ingredients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('purchase_date', sa.Date(), nullable=False),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('purchase_orders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('supplier_id', sa.Uuid(), nullable=True),
        sa.Column('quantity_bought', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('unit_price', sa.Numeric(12, 4), nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('ingredient_id', 'purchase_date', 'restaurant_id', 'order_id', name='uq_daily_purchase_key'),
    )
    op.create_index('idx_daily_purchase_restaurant_date', 'daily_purchase_records', ['restaurant_id', 'purchase_date'])

    op.create_table(
        'daily_sales_summaries',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('recipe_id', sa.Uuid(), sa.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('units_sold', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('unit_sell_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('revenue', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('ingredient_cost', sa.Numeric(14, 4), nullable=False, server_default='0'),
        sa.Column('gross_profit', sa.Numeric(14, 4), nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('recipe_id', 'sale_date', 'restaurant_id', name='uq_daily_sales_key'),
    )
    op.create_index('idx_daily_sales_restaurant_date', 'daily_sales_summaries', ['restaurant_id', 'sale_date'])

    # Audit trail
    op.create_table(
        'stock_snapshots',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ingredient_id', sa.Uuid(), sa.ForeignKey('ingredients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('virtual_stock', sa.Numeric(14, 4), nullable=False),
        sa.Column('physical_stock', sa.Numeric(14, 4), nullable=False),
        sa.Column('difference', sa.Numeric(14, 4), nullable=False),
        sa.Column('taken_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_stock_snapshots_ingredient', 'stock_snapshots', ['ingredient_id', 'taken_at'])

    op.create_table(
        'stock_adjustments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('ingredient_id', sa.Uuid(), sa.ForeignKey('ingredients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 4), nullable=False),
        sa.Column('reason', sa.String(100), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    # Alerts
    op.create_table(
        'alerts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('restaurant_id', sa.Uuid(), sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_alerts_entity', 'alerts', ['restaurant_id', 'entity_type', 'entity_id'])


def downgrade() -> None:
    op.drop_table('alerts')
    op.drop_table('stock_adjustments')
    op.drop_table('stock_snapshots')
    op.drop_table('daily_sales_summaries')
    op.drop_table('daily_purchase_records')
    op.drop_table('waste_records')
    op.drop_table('purchase_order_lines')
    op.drop_table('purchase_orders')
    op.drop_table('sale_stock_deductions')
    op.drop_table('sales')
    op.drop_table('recipe_variants')
    op.drop_table('recipe_lines')
    op.drop_table('recipes')
    op.drop_table('ingredients')
    op.drop_table('restaurants')
