from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('profile_image', sa.String(255), nullable=True),
        sa.Column('is_email_verified', sa.Boolean, nullable=False),
        sa.Column('last_login_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now(), nullable=False)
    )
    op.create_index('ix_users_name', 'users', ['name'])
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('slug', sa.String(200), nullable=False, unique=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('image', sa.String(255), nullable=False),
        sa.Column('parent_category_id', sa.Integer,
                  sa.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by_id', sa.Integer, sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now(), nullable=False)
    )
    op.create_index('ix_categories_name', 'categories', ['name'])
    op.create_index('ix_categories_parent_category_id', 'categories', ['parent_category_id'])
    op.create_table(
        'products',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('stock', sa.Integer, nullable=False),
        sa.Column('images', sa.JSON, nullable=False),
        sa.Column('category_id', sa.Integer,
                  sa.ForeignKey('categories.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now(), nullable=False)
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])

def downgrade():
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('users')
