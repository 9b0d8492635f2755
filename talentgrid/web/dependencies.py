from __future__ import annotations

import threading
from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker

from talentgrid.infrastructure.config import DatabaseConfig, get_database_config
from talentgrid.infrastructure.db import (
    create_database_engine,
    create_session_factory,
    initialise_database,
)

_factory_lock = threading.Lock()


def get_db_config(request: Request) -> DatabaseConfig:
    state = request.app.state
    if getattr(state, "db_config", None) is None:
        state.db_config = get_database_config()
    return state.db_config


def get_session_factory(request: Request) -> sessionmaker[Session]:
    """
    Session factory bound to the app's database.

    The engine is built, and its tables created, the first time a request
    needs it. Replacing ``app.state.db_config`` with a config for another
    database disposes the old engine and builds a new one.
    """
    state = request.app.state
    # Concurrent first requests must not build, or dispose, engines twice
    with _factory_lock:
        config = get_db_config(request)
        url = config.get_connection_url()

        if getattr(state, "db_url", None) == url:
            return state.session_factory

        previous = getattr(state, "session_factory", None)
        if previous is not None:
            previous.kw["bind"].dispose()

        engine = create_database_engine(config)
        initialise_database(engine)

        state.session_factory = create_session_factory(engine)
        state.db_url = url
        return state.session_factory


def get_db_session(request: Request) -> Generator[Session, None, None]:
    session = get_session_factory(request)()
    try:
        yield session
    finally:
        session.close()
