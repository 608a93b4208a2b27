"""initial_marketplace_schema

Revision ID: 0001_initial
Revises:
Create Date: 2025-01-10 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

payment_gateway_type_enum = postgresql.ENUM(
    'pagarme', name='payment_gateway_type_enum', create_type=False
)
affiliation_status_enum = postgresql.ENUM(
    'pending', 'approved', 'refused', name='affiliation_status_enum', create_type=False
)
store_payment_method_enum = postgresql.ENUM(
    'pix', 'boleto', 'credit_card', name='store_payment_method_enum', create_type=False
)
store_sale_status_enum = postgresql.ENUM(
    'waiting_payment', 'paid', 'processing', 'transport', 'delivered', 'canceled', 'refunded',
    name='store_sale_status_enum',
    create_type=False,
)

ENUMS = (
    payment_gateway_type_enum,
    affiliation_status_enum,
    store_payment_method_enum,
    store_sale_status_enum,
)


def upgrade() -> None:
    """Upgrade schema - affiliation accounts, catalog, cart and purchases."""
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    # Payments: gateway affiliation (KYC)
    op.create_table(
        'account_gateway',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('payment_gateway', payment_gateway_type_enum, nullable=False),
        sa.Column('external_id', sa.String(length=128), nullable=False),
        sa.Column('status', affiliation_status_enum, nullable=False),
        sa.Column('store_profile_id', sa.Uuid(), nullable=True),
        sa.Column('professional_profile_id', sa.Uuid(), nullable=True),
        sa.Column('affiliation_url', sa.Text(), nullable=True),
        sa.Column('last_webhook_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_account_gateway_user_id', 'account_gateway', ['user_id'])
    op.create_index(
        'ix_account_gateway_external_id', 'account_gateway', ['external_id'], unique=True
    )

    op.create_table(
        'account_gateway_data',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_gateway_id', sa.Uuid(), nullable=False),
        sa.Column('external_id', sa.String(length=128), nullable=False),
        sa.Column('payment_gateway', payment_gateway_type_enum, nullable=False),
        sa.Column('register_information', postgresql.JSONB(), nullable=False),
        sa.Column('raw_response', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['account_gateway_id'], ['account_gateway.id'], ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_gateway_id'),
    )

    op.create_table(
        'gateway_webhook_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.String(length=128), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('external_id', sa.String(length=128), nullable=False),
        sa.Column('external_status', sa.String(length=32), nullable=True),
        sa.Column('mapped_status', affiliation_status_enum, nullable=False),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id'),
    )
    op.create_index(
        'ix_gateway_webhook_events_external_id',
        'gateway_webhook_events',
        ['external_id', 'received_at'],
    )

    # Store: sellers and catalog
    op.create_table(
        'store_profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_user_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('origin_postal_code', sa.String(length=8), nullable=True),
        sa.Column('allow_pickup', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_profiles_owner_user_id', 'store_profiles', ['owner_user_id'])

    op.create_table(
        'store_products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('store_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=100), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=True),
        sa.Column('weight_kg', sa.Float(), nullable=True),
        sa.Column('height_cm', sa.Float(), nullable=True),
        sa.Column('width_cm', sa.Float(), nullable=True),
        sa.Column('length_cm', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('price >= 0', name='product_price_non_negative'),
        sa.CheckConstraint('stock >= 0', name='product_stock_non_negative'),
        sa.ForeignKeyConstraint(['store_id'], ['store_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_products_store_id', 'store_products', ['store_id'])

    # Store: buyers
    op.create_table(
        'store_user_addresses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('recipient_name', sa.String(length=200), nullable=False),
        sa.Column('street', sa.String(length=255), nullable=False),
        sa.Column('number', sa.String(length=20), nullable=False),
        sa.Column('neighborhood', sa.String(length=100), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('postal_code', sa.String(length=8), nullable=False),
        sa.Column('complement', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_user_addresses_user_id', 'store_user_addresses', ['user_id'])

    op.create_table(
        'store_customer_profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('document', sa.String(length=11), nullable=False),
        sa.Column('phone_area_code', sa.String(length=2), nullable=True),
        sa.Column('phone_number', sa.String(length=9), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )

    # Store: purchases
    op.create_table(
        'store_purchases',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.String(length=255), nullable=False),
        sa.Column('product_amount', sa.Integer(), nullable=False),
        sa.Column('shipping_fee', sa.Integer(), nullable=False),
        sa.Column('payment_method', store_payment_method_enum, nullable=False),
        sa.Column('installments', sa.Integer(), nullable=True),
        sa.Column('address_id', sa.Uuid(), nullable=False),
        sa.Column('status', store_sale_status_enum, nullable=False),
        sa.Column('gateway_order_id', sa.String(length=128), nullable=True),
        sa.Column('pix_qr_code', sa.Text(), nullable=True),
        sa.Column('pix_qr_code_url', sa.Text(), nullable=True),
        sa.Column('pix_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('product_amount >= 0', name='purchase_amount_non_negative'),
        sa.CheckConstraint('shipping_fee >= 0', name='purchase_shipping_non_negative'),
        sa.ForeignKeyConstraint(['address_id'], ['store_user_addresses.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_purchases_buyer_id', 'store_purchases', ['buyer_id'])
    op.create_index(
        'ix_store_purchases_gateway_order_id', 'store_purchases', ['gateway_order_id']
    )

    op.create_table(
        'store_cart_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.String(length=255), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('quantity > 0', name='positive_quantity'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['purchase_id'], ['store_purchases.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_store_cart_items_buyer_purchase', 'store_cart_items', ['buyer_id', 'purchase_id']
    )

    op.create_table(
        'store_sales',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('purchase_id', sa.Uuid(), nullable=False),
        sa.Column('store_id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.String(length=255), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('cart_item_id', sa.Uuid(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('payment_method', store_payment_method_enum, nullable=False),
        sa.Column('installments', sa.Integer(), nullable=True),
        sa.Column('address_id', sa.Uuid(), nullable=True),
        sa.Column('status', store_sale_status_enum, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['purchase_id'], ['store_purchases.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['store_id'], ['store_profiles.id']),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_sales_purchase_id', 'store_sales', ['purchase_id'])
    op.create_index('ix_store_sales_store_id', 'store_sales', ['store_id'])


def downgrade() -> None:
    """Downgrade schema - drop every marketplace table and enum."""
    op.drop_table('store_sales')
    op.drop_table('store_cart_items')
    op.drop_table('store_purchases')
    op.drop_table('store_customer_profiles')
    op.drop_table('store_user_addresses')
    op.drop_table('store_products')
    op.drop_table('store_profiles')
    op.drop_table('gateway_webhook_events')
    op.drop_table('account_gateway_data')
    op.drop_table('account_gateway')

    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
