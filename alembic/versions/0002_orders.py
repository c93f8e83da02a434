from alembic import op
import sqlalchemy as sa

revision = '0002_orders'
down_revision = '0001_init'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'addresses',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('street', sa.String(500), nullable=False),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(100), nullable=False)
    )
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('tracking_number', sa.String(50), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('coupon_code', sa.String(50), nullable=True),
        sa.Column('discount', sa.Numeric(10, 2), nullable=True),
        sa.Column('payment_method', sa.String(30), nullable=False),
        # Guest checkout leaves customer_id empty
        sa.Column('customer_id', sa.Integer, sa.ForeignKey('users.id'), nullable=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('order_status', sa.String(30), nullable=False),
        sa.Column('payment_status', sa.String(30), nullable=False),
        sa.Column('shipping_address_id', sa.Integer, sa.ForeignKey('addresses.id'), nullable=False),
        sa.Column('billing_address_id', sa.Integer, sa.ForeignKey('addresses.id'), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False)
    )
    op.create_index('ix_orders_tracking_number', 'orders', ['tracking_number'], unique=True)
    op.create_index('ix_orders_order_status', 'orders', ['order_status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer,
                  sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer,
                  sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('item_total', sa.Numeric(12, 2), nullable=False)
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

def downgrade():
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('addresses')
