from __future__ import annotations

from typing import Any, Iterator, Mapping

import polars as pl
import sqlalchemy as sa

from blockcopy.errors import ArgumentError


def _dbapi_records(cursor: Any, chunk_size: int) -> Iterator[Mapping[str, Any]]:
    if cursor.description is None:
        raise ArgumentError('DB-API cursor has no result set to copy from')
    names = [d[0] for d in cursor.description]
    while True:
        rows = cursor.fetchmany(chunk_size)
        if not rows:
            break
        for row in rows:
            yield dict(zip(names, row))


def _mappings(rows: Any) -> Iterator[Mapping[str, Any]]:
    for row in rows:
        if not isinstance(row, Mapping):
            raise ArgumentError(f'source rows must be mappings of column name to value, got {type(row).__name__}')
        yield row


def iter_records(source: Any, *, chunk_size: int = 1000) -> Iterator[Mapping[str, Any]]:
    """Iterate a source cursor as name -> value mappings.

    Supported sources:
        - sqlalchemy Result (e.g. from ``conn.execute(...)``)
        - DB-API cursors (``description`` + ``fetchmany``)
        - polars DataFrame
        - any iterable of mappings
    """
    if isinstance(source, pl.DataFrame):
        return source.iter_rows(named=True)
    if isinstance(source, sa.Result):
        return (row._mapping for row in source)
    if hasattr(source, 'description') and hasattr(source, 'fetchmany'):
        return _dbapi_records(source, chunk_size)
    if isinstance(source, (str, bytes)) or not hasattr(source, '__iter__'):
        raise ArgumentError(f'cannot copy from {type(source).__name__}')
    return _mappings(source)


def close_source(source: Any) -> None:
    """Close a source cursor that holds a resource; data frames and plain iterables are left alone."""
    if isinstance(source, (pl.DataFrame, list, tuple)):
        return
    close = getattr(source, 'close', None)
    if callable(close):
        close()
