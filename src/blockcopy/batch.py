from __future__ import annotations

from typing import Callable, Sequence

from blockcopy.schema import Schema

SEPARATOR = ' UNION ALL '
DEFAULT_BATCH_SIZE = 1000
# Firebird rejects statements over 64KB
DEFAULT_MAX_STATEMENT_BYTES = 60_000


def _nbytes(text: str) -> int:
    return len(text.encode('utf-8'))


def insert_clause(schema: Schema, quote: Callable[[str], str] = str) -> str:
    col_list = ','.join(quote(c) for c in schema.columns)
    return f'INSERT INTO {quote(schema.table)} ({col_list})'


class BatchBuilder:
    """Accumulates literal rows into one ``INSERT ... SELECT ... UNION ALL SELECT ...`` statement.

    Each row becomes ``SELECT v1,...,vn FROM <single_row_source>``. After a row is appended the
    builder hands back the finished statement when either:

    - the statement size (insert clause, fragments and one separator per row, UTF-8 bytes)
      is over ``max_bytes``, or
    - the row count has reached ``batch_size``.

    The row that crossed the limit is part of the returned statement. A new empty batch starts
    right after.
    """

    def __init__(
            self,
            insert: str,
            single_row_source: str,
            *,
            width: int | None = None,
            batch_size: int = DEFAULT_BATCH_SIZE,
            max_bytes: int = DEFAULT_MAX_STATEMENT_BYTES,
    ):
        if batch_size <= 0:
            raise ValueError('batch_size must be a positive integer')
        if max_bytes <= 0:
            raise ValueError('max_bytes must be a positive integer')
        self._insert = insert
        self._from = f' FROM {single_row_source}'
        self._width = width
        self.batch_size = batch_size
        self.max_bytes = max_bytes
        self._fragments: list[str] = []
        self._size = _nbytes(insert)

    @property
    def rows(self) -> int:
        return len(self._fragments)

    @property
    def size(self) -> int:
        """Running byte length of the pending statement, trailing separator included."""
        return self._size

    def add_row(self, literals: Sequence[str]) -> str | None:
        if self._width is not None and len(literals) != self._width:
            raise ValueError(f'expected {self._width} values per row, got {len(literals)}')
        fragment = 'SELECT ' + ','.join(literals) + self._from
        self._fragments.append(fragment)
        self._size += _nbytes(fragment) + len(SEPARATOR)
        if self._size > self.max_bytes or len(self._fragments) >= self.batch_size:
            return self._flush()
        return None

    def finalize(self) -> str | None:
        if not self._fragments:
            return None
        return self._flush()

    def _flush(self) -> str:
        statement = f'{self._insert} {SEPARATOR.join(self._fragments)}'
        self._fragments = []
        self._size = _nbytes(self._insert)
        return statement
