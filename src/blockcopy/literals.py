from __future__ import annotations

import datetime as dt
import re
from decimal import Decimal
from typing import Any

from dateutil import parser as date_parser

from blockcopy.errors import ValueFormatError
from blockcopy.schema import ColumnKind

NULL = 'NULL'

_NUMERIC = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')
_HEX = re.compile(r'^[0-9A-Fa-f]*$')


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, bytearray, memoryview)):
        return len(value) == 0
    return False


def _hex(value: bytes | bytearray | memoryview) -> str:
    return bytes(value).hex().upper()


def _number(value: Any, column: str | None, table: str | None) -> str:
    if isinstance(value, bool):
        return '1' if value else '0'
    if isinstance(value, (int, float, Decimal)):
        text = str(value)
    else:
        text = str(value).strip()
    if not _NUMERIC.match(text):
        raise ValueFormatError(value, column=column, table=table, reason='not a number')
    return text


def parse_datetime(text: str) -> dt.datetime:
    """Parse a date/time string permissively (ISO 8601, RFC 2822, spelled months, 12-hour clock...).

    Ambiguous numeric dates are read month first. Missing parts default to midnight of the
    current day. Raises ValueError when the text holds no recognizable date/time.
    """
    try:
        return date_parser.parse(text.strip())
    except OverflowError as exc:
        raise ValueError(f'date/time out of range: {text!r}') from exc


def _date(value: Any, column: str | None, table: str | None) -> str:
    if isinstance(value, dt.datetime):
        ts = value.replace(tzinfo=None)
    elif isinstance(value, dt.date):
        ts = dt.datetime(value.year, value.month, value.day)
    else:
        try:
            ts = parse_datetime(str(value)).replace(tzinfo=None)
        except ValueError as exc:
            raise ValueFormatError(
                value, column=column, table=table,
                reason=f'incoming values must be a recognizable date/time; {exc}',
            ) from exc
    # four-digit, zero-padded year
    return f"'{ts.isoformat(sep=' ', timespec='seconds')}'"


def _blob(value: Any, column: str | None, table: str | None) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"X'{_hex(value)}'"
    text = str(value)
    if not _HEX.match(text) or len(text) % 2:
        raise ValueFormatError(value, column=column, table=table, reason='not a hex string')
    return f"X'{text}'"


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        s = _hex(value)
    else:
        s = str(value)
    s = s.replace("'", "''")
    return f"'{s}'"


def to_literal(value: Any, kind: ColumnKind, *, column: str | None = None, table: str | None = None) -> str:
    """Render one cell as inline SQL literal text for a column of the given kind.

    All quoting and escaping of row data happens here. ``column`` and ``table`` only
    feed error messages.
    """
    if _is_empty(value):
        return NULL
    if kind is ColumnKind.INTEGER or kind is ColumnKind.REAL:
        return _number(value, column, table)
    if kind is ColumnKind.DATE:
        return _date(value, column, table)
    if kind is ColumnKind.BLOB:
        return _blob(value, column, table)
    if kind is ColumnKind.TEXT:
        return _text(value)
    raise TypeError(f'unknown column kind: {kind!r}')
