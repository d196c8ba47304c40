"""
Alembic migration environment for the EventEase schema.

The target database is DATABASE_URL_SYNC unless overridden on the command
line, e.g. `alembic -x dburl=sqlite:///./local.db upgrade head`. Async URLs
are accepted and mapped to their sync driver, since Alembic runs blocking.
"""

from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url
from alembic import context

from eventease.db.base import Base
from eventease.models import User, Event, Registration  # noqa: F401 - register tables for autogenerate
from eventease.core.config import get_settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

_SYNC_DRIVERS = {"postgresql+asyncpg": "postgresql+psycopg2", "sqlite+aiosqlite": "sqlite"}


def _database_url() -> str:
    url = make_url(context.get_x_argument(as_dictionary=True).get("dburl") or get_settings().DATABASE_URL_SYNC)
    sync_driver = _SYNC_DRIVERS.get(url.drivername)
    if sync_driver:
        url = url.set(drivername=sync_driver)
    return url.render_as_string(hide_password=False)


config.set_main_option("sqlalchemy.url", _database_url().replace("%", "%%"))
target_metadata = Base.metadata


def _skip_empty_autogenerate(context, revision, directives):
    # `alembic revision --autogenerate` with no model changes writes nothing
    if config.cmd_opts and getattr(config.cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []


def _configure_kwargs(url) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        # SQLite cannot ALTER constraints in place; batch mode rebuilds the table
        "render_as_batch": make_url(url).get_backend_name() == "sqlite",
        "process_revision_directives": _skip_empty_autogenerate,
    }


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
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
        context.configure(connection=connection, **_configure_kwargs(str(connection.engine.url)))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
