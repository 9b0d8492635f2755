from __future__ import annotations

import argparse
from collections.abc import Sequence

import uvicorn

from talentgrid.infrastructure.config import get_settings
from talentgrid.infrastructure.db import create_database_engine, initialise_database
from talentgrid.infrastructure.logging import get_logger

logger = get_logger("run_server")


def ensure_database() -> bool:
    """Create missing tables before the server accepts requests."""
    engine = create_database_engine(get_settings().database)
    try:
        return initialise_database(engine)
    finally:
        engine.dispose()


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the TalentGrid API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--no-reload", dest="reload", action="store_false")
    parser.add_argument("--skip-db-init", action="store_true")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    if not args.skip_db_init:
        existed = ensure_database()
        logger.info("Database %s", "ready" if existed else "tables created")

    uvicorn.run(
        "talentgrid.web.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
