from __future__ import annotations

from typing import Any


class BulkCopyError(Exception):
    """Base class for all blockcopy failures."""


class ArgumentError(BulkCopyError, ValueError):
    pass


class UnsupportedDialectError(BulkCopyError, NotImplementedError):
    pass


class TableNotFoundError(BulkCopyError, LookupError):
    def __init__(self, table: str):
        super().__init__(f'{table} could not be found in the database')
        self.table = table


class UnsupportedColumnTypeError(BulkCopyError, TypeError):
    def __init__(self, table: str, column: str, type_name: str):
        super().__init__(f'Column {column!r} in table {table!r} has unsupported type {type_name!r}')
        self.table = table
        self.column = column
        self.type_name = type_name


class ValueFormatError(BulkCopyError, ValueError):
    """A cell value cannot be rendered as a literal of its column's kind."""

    def __init__(self, value: Any, *, column: str | None = None, table: str | None = None, reason: str = ''):
        msg = f'Invalid value for column [{column}] in table [{table}]: {value!r}'
        if reason:
            msg = f'{msg} ({reason})'
        super().__init__(msg)
        self.value = value
        self.column = column
        self.table = table


class MissingSourceColumnError(BulkCopyError, KeyError):
    def __init__(self, column: str, available: list[str]):
        super().__init__(f'Column {column!r} not found in source row. Available: {sorted(available)}')
        self.column = column

    def __str__(self) -> str:
        # KeyError repr()s its message otherwise
        return self.args[0]


class EngineError(BulkCopyError):
    """The engine rejected a batch. Earlier batches stay committed."""

    def __init__(self, message: str, *, statement: str, batch: int, rows_written: int):
        super().__init__(message)
        self.statement = statement
        self.batch = batch
        self.rows_written = rows_written
