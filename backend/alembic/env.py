# backend/alembic/env.py
from logging.config import fileConfig

from alembic import context

# prepend_sys_path in alembic.ini puts backend/ on the path
from workshop.core.db import engine as app_engine, Base
from workshop import models  # noqa: F401  (registers every table on Base.metadata)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure_options() -> dict:
    # SQLite cannot ALTER constraints in place; batch mode rebuilds the table
    return dict(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=False,
        render_as_batch=(app_engine.dialect.name == "sqlite"),
    )


def run_migrations_offline():
    """Emit the workshop schema as SQL against DATABASE_URL without connecting."""
    context.configure(url=app_engine.url, literal_binds=True, **_configure_options())
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    with app_engine.connect() as connection:
        context.configure(connection=connection, **_configure_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
