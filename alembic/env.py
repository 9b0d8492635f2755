from __future__ import annotations

import re
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context  # type: ignore[attr-defined]
from alembic.script import ScriptDirectory
from sqlalchemy import engine_from_config, pool

sys.path.append(str(Path(__file__).resolve().parents[1]))

from talentgrid.infrastructure.config import get_settings  # noqa: E402
from talentgrid.infrastructure.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# DB_* settings apply unless alembic.ini names a URL; % is configparser syntax
if not config.get_main_option("sqlalchemy.url"):
    url = get_settings().database.get_connection_url()
    config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))

target_metadata = Base.metadata

REVISION_PREFIX = re.compile(r"^(\d+)_")


def _numbered_revision_id(message: str | None) -> str:
    """``0002_add_pdi_history`` style ids, one higher than the newest revision."""
    slug = re.sub(r"[^a-z0-9]+", "_", (message or "").lower()).strip("_") or "revision"
    numbers = [
        int(match.group(1))
        for revision in ScriptDirectory.from_config(config).walk_revisions()
        if (match := REVISION_PREFIX.match(revision.revision or ""))
    ]
    return f"{max(numbers, default=0) + 1:04d}_{slug}"


def _process_revision_directives(context, revision, directives):  # type: ignore[unused-argument]
    # An explicit --rev-id wins
    if getattr(getattr(config, "cmd_opts", None), "rev_id", None) or not directives:
        return
    directives[0].rev_id = _numbered_revision_id(getattr(directives[0], "message", None))


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        process_revision_directives=_process_revision_directives,
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
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
        # SQLite cannot ALTER constraints in place
        _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
