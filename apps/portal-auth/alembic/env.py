from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from devkit.db import Base, normalize_postgres_dsn
from sqlalchemy import engine_from_config, pool, text

import portal_auth.store  # noqa: F401  registers auth.users and auth.accounts

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

AUTH_SCHEMA = "auth"
VERSION_TABLE = "alembic_version_auth"


def _database_url() -> str:
    return normalize_postgres_dsn(os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url"))


def _include_name(name, type_, parent_names) -> bool:
    if type_ == "schema":
        return name == AUTH_SCHEMA
    return True


target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_schemas=True,
        include_name=_include_name,
        version_table=VERSION_TABLE,
        version_table_schema=AUTH_SCHEMA,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _database_url()
    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {AUTH_SCHEMA}"))
        connection.commit()
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_schemas=True,
            include_name=_include_name,
            version_table=VERSION_TABLE,
            version_table_schema=AUTH_SCHEMA,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
