"""Transaction scope shared by the role and rule stores.

A StorageUnit owns one Session and the lock that serializes access to it.
Every mutation runs inside :meth:`StorageUnit.transaction`, so it either
commits as a whole or is rolled back.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from wekan_rules.exceptions import StorageError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class StorageUnit:
    """One Session guarded by a re-entrant lock."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._lock = threading.RLock()
        self._depth = 0

    @property
    def session(self) -> Session:
        return self._session

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run the block atomically.

        Nested calls join the outermost transaction; only the outermost
        commits. Domain errors raised inside the block roll back and
        propagate unchanged; database errors are wrapped in StorageError.
        """
        with self._lock:
            self._depth += 1
            try:
                yield self._session
                if self._depth == 1:
                    self._session.commit()
            except SQLAlchemyError as exc:
                if self._depth == 1:
                    self._session.rollback()
                logger.error("Storage transaction failed: %s", exc)
                raise StorageError(str(exc)) from exc
            except BaseException:
                if self._depth == 1:
                    self._session.rollback()
                raise
            finally:
                self._depth -= 1

    @contextmanager
    def reading(self) -> Iterator[Session]:
        """Hold the lock for a read-only block.

        Outside a transaction the read is ended afterwards, so the next read
        sees rows committed by other connections to the same file.
        """
        with self._lock:
            yield self._session
            if self._depth == 0:
                self._session.commit()

    def close(self) -> None:
        with self._lock:
            self._session.close()
