from alembic import context
from sqlalchemy import engine_from_config, pool

from storefront.core_settings import get_settings
from storefront.domain.models import Base

config = context.config
target_metadata = Base.metadata

# The environment decides where the database lives, as it does for the app
config.set_main_option("sqlalchemy.url", get_settings().database_url)

def run_migrations_offline():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
