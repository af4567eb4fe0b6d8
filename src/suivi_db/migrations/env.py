"""Alembic environment for the review-session table.

The database is shared with the portal, so this environment only ever
looks at tables declared on ``Base.metadata`` and records its revisions in
``suivi_alembic_version``.  Autogenerate therefore never proposes dropping
portal tables.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from suivi_db.config import VERSION_TABLE, get_sync_url
from suivi_db.models.base import Base

import suivi_db.models.review_session  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    """Skip reflected tables (and their children) that this package does not own."""
    if type_ == "table":
        return name in target_metadata.tables
    table = getattr(obj, "table", None)
    if table is not None:
        return table.name in target_metadata.tables
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        include_object=include_object,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(url=get_sync_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(get_sync_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
