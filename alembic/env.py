from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from ledgerpos.core.config import settings
from ledgerpos.database.database import Base

# Register every model on Base.metadata
import ledgerpos.modules.auth.models
import ledgerpos.modules.customers.models
import ledgerpos.modules.suppliers.models
import ledgerpos.modules.inventory.models
import ledgerpos.modules.invoices.models
import ledgerpos.modules.supplier_bills.models
import ledgerpos.modules.payroll.models

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option("sqlalchemy.url", settings.database_url)
target_metadata = Base.metadata


def run_migrations_offline():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
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
