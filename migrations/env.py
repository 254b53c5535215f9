import os
from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool
from sqlalchemy.engine import make_url
from alembic import context

from tablebook.app.core.config import settings
from tablebook.app.db.tables import ALL_TABLE_NAMES, metadata

assert set(metadata.tables) == set(ALL_TABLE_NAMES), (
    f"Tables {set(metadata.tables)} must match ALL_TABLE_NAMES {set(ALL_TABLE_NAMES)}"
)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = metadata


def _sync_url() -> str:
    # Migrations run on psycopg2; the app itself talks asyncpg.
    explicit = os.getenv("ALEMBIC_DATABASE_URL")
    if explicit:
        return explicit
    url = make_url(settings.DATABASE_URL).set(drivername="postgresql+psycopg2")
    return url.render_as_string(hide_password=False)


config.set_main_option("sqlalchemy.url", _sync_url().replace("%", "%%"))


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
