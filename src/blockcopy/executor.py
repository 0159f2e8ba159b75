from __future__ import annotations

import logging
import math

import sqlalchemy as sa

from blockcopy.dialects import DialectProfile, begin_if_idle
from blockcopy.errors import EngineError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60  # seconds

_UNSET = object()


class BatchExecutor:
    """Runs finished batch statements inside the engine's atomic block, one round trip each.

    Nothing is retried: a rejected batch raises EngineError and batches executed before it
    stay committed. When the connection has no transaction open, every batch commits on its
    own; otherwise batches join the caller's transaction.

    Engines with a session-level statement timeout get it set before each batch; call
    ``restore_timeout`` afterwards to hand the session back with its previous setting.
    """

    def __init__(self, conn: sa.Connection, profile: DialectProfile, *, timeout: float = DEFAULT_TIMEOUT):
        self._conn = conn
        self._profile = profile
        self.timeout = timeout
        self.batches = 0
        self.rows_written = 0
        self._previous_timeout: object = _UNSET
        self._timeout_skipped = False

    def execute(self, statement: str, rows: int) -> None:
        dml = self._profile.wrap(statement)
        batch = self.batches + 1
        try:
            with begin_if_idle(self._conn):
                self._apply_timeout()
                # exec_driver_sql: inline literals must not be parsed for bind parameters
                self._conn.exec_driver_sql(dml)
        except sa.exc.DBAPIError as exc:
            raise EngineError(
                f'Batch {batch} ({rows} rows) rejected by {self._profile.name}: {exc.orig}',
                statement=dml,
                batch=batch,
                rows_written=self.rows_written,
            ) from exc
        self.batches = batch
        self.rows_written += rows
        logger.debug('Batch %d: %d rows, %d bytes', batch, rows, len(dml.encode('utf-8')))

    def _apply_timeout(self) -> None:
        if not self.timeout:
            return
        version = getattr(self._conn.dialect, 'server_version_info', None)
        if not self._profile.supports_timeout(version):
            if not self._timeout_skipped:
                logger.debug('%s %s has no statement timeout; ignoring timeout=%s',
                             self._profile.name, version, self.timeout)
                self._timeout_skipped = True
            return
        if self._previous_timeout is _UNSET and self._profile.timeout_query and self._profile.timeout_restore:
            self._previous_timeout = self._conn.exec_driver_sql(self._profile.timeout_query).scalar()
        # fractions round up; 0 would switch the timeout off
        seconds = math.ceil(self.timeout)
        self._conn.exec_driver_sql(self._profile.timeout_statement.format(seconds))

    def restore_timeout(self) -> None:
        """Put back the session timeout that was in effect before the first batch."""
        if self._previous_timeout is _UNSET:
            return
        previous, self._previous_timeout = self._previous_timeout, _UNSET
        with begin_if_idle(self._conn):
            self._conn.exec_driver_sql(self._profile.timeout_restore.format(int(previous or 0)))
