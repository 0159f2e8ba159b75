from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator, Mapping

import sqlalchemy as sa

from blockcopy.errors import TableNotFoundError, UnsupportedColumnTypeError

if TYPE_CHECKING:
    from blockcopy.dialects import DialectProfile

logger = logging.getLogger(__name__)


class ColumnKind(enum.Enum):
    """Semantic column category; decides how a cell is rendered as a literal."""
    INTEGER = 1
    REAL = 2
    TEXT = 3
    BLOB = 4
    DATE = 5


# RDB$FIELDS.RDB$FIELD_TYPE -> type name
TYPE_CODES: dict[int, str] = {
    7: 'SMALLINT',
    8: 'INTEGER',
    10: 'FLOAT',
    12: 'DATE',
    13: 'TIME',
    14: 'CHAR',
    16: 'INT64',
    27: 'DOUBLE',
    35: 'TIMESTAMP',
    37: 'VARCHAR',
    261: 'BLOB',
}
UNKNOWN = 'UNKNOWN'

_KINDS_BY_TYPE_NAME: dict[str, ColumnKind] = {
    'INTEGER': ColumnKind.INTEGER,
    'SMALLINT': ColumnKind.INTEGER,
    'BIGINT': ColumnKind.INTEGER,
    'INT64': ColumnKind.INTEGER,
    'DOUBLE': ColumnKind.REAL,
    'FLOAT': ColumnKind.REAL,
    'CLOB': ColumnKind.TEXT,
    'BLOB': ColumnKind.BLOB,
    'DATE': ColumnKind.DATE,
    'TIMESTAMP': ColumnKind.DATE,
}
_TEXT_PREFIXES = ('CHAR', 'VARCHAR', 'NCHAR')


def type_name_for_code(code: int | None, sub_type: int | None = None) -> str:
    name = TYPE_CODES.get(code, UNKNOWN) if code is not None else UNKNOWN
    if name == 'BLOB' and sub_type == 1:
        # sub_type 1 is a text blob
        return 'CLOB'
    return name


def kind_for_type_name(type_name: str) -> ColumnKind | None:
    """Map a catalog type name to a column kind, or None when it has no mapping."""
    name = type_name.strip().upper()
    kind = _KINDS_BY_TYPE_NAME.get(name)
    if kind is not None:
        return kind
    if name.startswith(_TEXT_PREFIXES):
        return ColumnKind.TEXT
    return None


@dataclass(frozen=True)
class CatalogField:
    name: str
    type_name: str
    length: int | None = None
    charset: str | None = None


class Schema(Mapping[str, ColumnKind]):
    """Immutable, ordered column name -> kind mapping for one destination table.

    Iteration order is the catalog field-position order and fixes both the insert column
    list and the value order of every generated row.
    """

    __slots__ = ('_table', '_columns', '_kinds')

    def __init__(self, table: str, columns: Iterable[tuple[str, ColumnKind]]):
        items = tuple(columns)
        kinds = dict(items)
        if len(kinds) != len(items):
            raise ValueError(f'duplicate column names in schema for {table!r}')
        self._table = table
        self._columns = tuple(name for name, _ in items)
        self._kinds = kinds

    @property
    def table(self) -> str:
        return self._table

    @property
    def columns(self) -> tuple[str, ...]:
        return self._columns

    def __getitem__(self, name: str) -> ColumnKind:
        return self._kinds[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Schema):
            return self._table == other._table and list(self.items()) == list(other.items())
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self._table, tuple(self.items())))

    def __repr__(self) -> str:
        cols = ', '.join(f'{n}:{k.name}' for n, k in self.items())
        return f'Schema({self._table!r}, {{{cols}}})'


def build_schema(table: str, fields: Iterable[CatalogField], *, strict: bool = False) -> Schema:
    columns: list[tuple[str, ColumnKind]] = []
    for field in fields:
        kind = kind_for_type_name(field.type_name)
        if kind is None:
            if strict:
                raise UnsupportedColumnTypeError(table, field.name, field.type_name)
            logger.warning('Excluding column %s.%s: no kind for type %s', table, field.name, field.type_name)
            continue
        columns.append((field.name, kind))
    if not columns:
        raise TableNotFoundError(table)
    schema = Schema(table, columns)
    logger.debug('Resolved %r', schema)
    return schema


def resolve_schema(
        conn: sa.Connection,
        table_name: str,
        *,
        strict: bool = False,
        profile: 'DialectProfile | None' = None,
) -> Schema:
    """Read the destination table's columns from the system catalog and classify them.

    Parameters:
        conn : sqlalchemy.Connection
            An open connection to the destination database.
        table_name : str
            Destination table, as stored in the catalog.
        strict : bool, default False
            Raise UnsupportedColumnTypeError for columns without a kind instead of
            leaving them out of the schema.
        profile : DialectProfile | None
            Engine profile; looked up from the connection's dialect when omitted.
    """
    if profile is None:
        from blockcopy.dialects import profile_for
        profile = profile_for(conn)
    fields = profile.read_catalog(conn, table_name)
    return build_schema(table_name, fields, strict=strict)
