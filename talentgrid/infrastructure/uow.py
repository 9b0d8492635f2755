from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session, sessionmaker


class UnitOfWork:
    def __init__(self, SessionLocal: sessionmaker[Session]):
        self.SessionLocal = SessionLocal

    @contextmanager
    def begin(self) -> Iterator[Session]:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()


@contextmanager
def savepoint(s: Session) -> Iterator[Session]:
    """
    Run a block inside a SAVEPOINT of the current transaction.

    On error only the block's writes are rolled back; the exception still
    propagates so the caller can record it and carry on.
    """
    nested = s.begin_nested()
    try:
        yield s
        s.flush()
    except Exception:
        nested.rollback()
        raise
    else:
        nested.commit()
