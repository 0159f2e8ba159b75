from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Mapping

import sqlalchemy as sa

from blockcopy.batch import DEFAULT_BATCH_SIZE, DEFAULT_MAX_STATEMENT_BYTES, BatchBuilder, insert_clause
from blockcopy.dialects import DialectProfile, profile_for
from blockcopy.errors import ArgumentError, BulkCopyError, MissingSourceColumnError
from blockcopy.executor import DEFAULT_TIMEOUT, BatchExecutor
from blockcopy.literals import to_literal
from blockcopy.schema import Schema, resolve_schema
from blockcopy.sources import close_source, iter_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyOptions:
    """Bulk copy settings.

    Attributes:
        batch_size: rows per statement
        max_statement_bytes: flush once the pending statement grows past this many bytes
        timeout: per-batch statement timeout in seconds, fractions rounded up; 0 disables it
        close_source: close the source cursor once it is exhausted; turn off to keep reading
            further result sets from the same cursor
        strict_types: fail on destination columns of unsupported types instead of skipping them
    """
    batch_size: int = DEFAULT_BATCH_SIZE
    max_statement_bytes: int = DEFAULT_MAX_STATEMENT_BYTES
    timeout: float = DEFAULT_TIMEOUT
    close_source: bool = True
    strict_types: bool = False

    def __post_init__(self):
        for name in ('batch_size', 'max_statement_bytes'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ArgumentError(f'{name} must be a positive integer')
        if not isinstance(self.timeout, (int, float)) or self.timeout < 0:
            raise ArgumentError('timeout must be a non-negative number of seconds')


@dataclass(frozen=True)
class CopyResult:
    rows: int
    batches: int


def _options(base: CopyOptions, settings: Mapping[str, Any]) -> CopyOptions:
    unknown = set(settings) - {f.name for f in dataclasses.fields(CopyOptions)}
    if unknown:
        raise ArgumentError(f'unknown option(s): {sorted(unknown)}')
    return dataclasses.replace(base, **settings)


class _ColumnLocator:
    """Finds each schema column in source records: exact name first, then case-insensitive."""

    def __init__(self, columns: tuple[str, ...]):
        self._columns = columns
        self._keys: dict[str, Any] = {}

    def _find(self, record: Mapping[str, Any], column: str) -> Any:
        if column in record:
            return column
        folded = column.casefold()
        for key in record.keys():
            if isinstance(key, str) and key.casefold() == folded:
                return key
        raise MissingSourceColumnError(column, [str(k) for k in record.keys()])

    def values(self, record: Mapping[str, Any]):
        for column in self._columns:
            key = self._keys.get(column)
            if key is None or key not in record:
                key = self._keys[column] = self._find(record, column)
            yield column, record[key]


class BulkCopy:
    """Copies rows from a source cursor into a destination table with batched tableless inserts.

    Construction
    ------------
    ``connection`` may be:
        - an open sqlalchemy Connection: borrowed, never closed by the session
        - a sqlalchemy Engine: the session opens a connection and closes it on ``close()``
        - a database URL (str or sqlalchemy URL): the session creates an engine and a
          connection and disposes of both on ``close()``

    Example::

        with BulkCopy(engine, destination_table='D') as bc:
            bc.copy(conn.execute(sa.text('SELECT * FROM src')))
    """

    def __init__(
            self,
            connection: sa.Connection | sa.Engine | sa.URL | str,
            *,
            destination_table: str | None = None,
            options: CopyOptions | None = None,
            **settings: Any,
    ):
        if options is not None and settings:
            raise ArgumentError('pass either options= or individual settings, not both')
        self.options = options if options is not None else _options(CopyOptions(), settings)
        self._owned_engine: sa.Engine | None = None
        if isinstance(connection, sa.Connection):
            if connection.closed:
                raise ArgumentError('connection is closed; pass the Engine instead to have the session open one')
            self._conn = connection
            self._owns_connection = False
        elif isinstance(connection, sa.Engine):
            self._conn = connection.connect()
            self._owns_connection = True
        elif isinstance(connection, (str, sa.URL)):
            self._owned_engine = sa.create_engine(connection)
            self._conn = self._owned_engine.connect()
            self._owns_connection = True
        else:
            raise ArgumentError(f'connection must be a Connection, Engine or URL, not {type(connection).__name__}')
        self._table: str | None = None
        self._schema: Schema | None = None
        try:
            self._profile: DialectProfile = profile_for(self._conn)
            if destination_table:
                self.destination_table = destination_table
        except BaseException:
            self.close()
            raise

    @property
    def connection(self) -> sa.Connection:
        return self._conn

    @property
    def destination_table(self) -> str | None:
        return self._table

    @destination_table.setter
    def destination_table(self, value: str | None) -> None:
        """Assigning a table resolves its schema right away; None clears it."""
        if not value:
            self._table = None
            self._schema = None
            return
        schema = resolve_schema(self._conn, value, strict=self.options.strict_types, profile=self._profile)
        self._table = value
        self._schema = schema

    @property
    def schema(self) -> Schema | None:
        return self._schema

    def configure(self, **settings: Any) -> CopyOptions:
        """Replace some options. Toggling strict_types re-resolves the destination schema."""
        previous = self.options
        options = _options(previous, settings)
        self.options = options
        if self._table and options.strict_types != previous.strict_types:
            try:
                self.destination_table = self._table
            except BulkCopyError:
                self.options = previous
                raise
        return self.options

    def _builder(self, schema: Schema) -> BatchBuilder:
        batch_size = self.options.batch_size
        cap = self._profile.max_rows
        if cap is not None and batch_size > cap:
            logger.warning('%s allows at most %d rows per statement; batch_size %d lowered',
                           self._profile.name, cap, batch_size)
            batch_size = cap
        quote = self._conn.dialect.identifier_preparer.quote
        return BatchBuilder(
            insert_clause(schema, quote),
            self._profile.single_row_source,
            width=len(schema),
            batch_size=batch_size,
            max_bytes=self.options.max_statement_bytes,
        )

    def copy(self, source: Any) -> CopyResult:
        """Copy every row of ``source`` into the destination table.

        ``source`` is a sqlalchemy Result, a DB-API cursor, a polars DataFrame or an iterable of
        mappings. Source columns are matched to destination columns by name.
        """
        if source is None:
            raise ArgumentError('source must not be None')
        schema = self._schema
        if schema is None:
            raise ArgumentError('destination_table must be set before copying')

        builder = self._builder(schema)
        executor = BatchExecutor(self._conn, self._profile, timeout=self.options.timeout)
        locator = _ColumnLocator(schema.columns)
        table = schema.table
        try:
            try:
                for record in iter_records(source):
                    literals = [
                        to_literal(value, schema[column], column=column, table=table)
                        for column, value in locator.values(record)
                    ]
                    pending = builder.rows + 1
                    statement = builder.add_row(literals)
                    if statement is not None:
                        executor.execute(statement, pending)
            finally:
                if self.options.close_source:
                    close_source(source)

            pending = builder.rows
            statement = builder.finalize()
            if statement is not None:
                executor.execute(statement, pending)
        finally:
            executor.restore_timeout()

        logger.info('Copied %d rows into %s in %d batches', executor.rows_written, table, executor.batches)
        return CopyResult(rows=executor.rows_written, batches=executor.batches)

    def close(self) -> None:
        """Close the connection (and engine) if this session created it."""
        if self._owns_connection and not self._conn.closed:
            self._conn.close()
        if self._owned_engine is not None:
            self._owned_engine.dispose()
            self._owned_engine = None

    def __enter__(self) -> 'BulkCopy':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def bulk_copy(
        connection: sa.Connection | sa.Engine | sa.URL | str,
        source: Any,
        table_name: str,
        **settings: Any,
) -> CopyResult:
    """Copy ``source`` into ``table_name`` in one call; see BulkCopy and CopyOptions."""
    with BulkCopy(connection, destination_table=table_name, **settings) as bc:
        return bc.copy(source)
