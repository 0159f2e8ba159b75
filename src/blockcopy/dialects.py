from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import Callable, ContextManager

import sqlalchemy as sa

from blockcopy.errors import UnsupportedDialectError
from blockcopy.schema import UNKNOWN, CatalogField, type_name_for_code

logger = logging.getLogger(__name__)


def begin_if_idle(conn: sa.Connection) -> ContextManager:
    """Run in a transaction of our own unless the caller already has one open."""
    if conn.in_transaction():
        return contextlib.nullcontext()
    return conn.begin()


@dataclass(frozen=True)
class DialectProfile:
    """What an engine needs to take tableless UNION ALL batches.

    - single_row_source: always-present one-row relation for the FROM of each literal SELECT
    - read_catalog: (conn, table) -> fields ordered by field position
    - block: template wrapping one statement into an all-or-nothing block
    - timeout_statement: template setting a per-statement timeout in seconds, or None
    - timeout_query: query returning the session's current timeout, as taken by timeout_restore
    - timeout_restore: template putting that value back once a copy is done
    - timeout_since: lowest server version that understands timeout_statement
    - max_rows: engine cap on SELECTs per compound statement, or None
    """
    name: str
    single_row_source: str
    read_catalog: Callable[[sa.Connection, str], list[CatalogField]]
    block: str = '{}'
    timeout_statement: str | None = None
    timeout_query: str | None = None
    timeout_restore: str | None = None
    timeout_since: tuple[int, ...] | None = None
    max_rows: int | None = None

    def wrap(self, statement: str) -> str:
        return self.block.format(statement)

    def supports_timeout(self, server_version: tuple[int, ...] | None) -> bool:
        if self.timeout_statement is None:
            return False
        if self.timeout_since is None:
            return True
        return server_version is not None and tuple(server_version) >= self.timeout_since


_FIREBIRD_CATALOG = sa.text(
    """
    SELECT R.RDB$FIELD_NAME AS name,
           F.RDB$FIELD_TYPE AS type_code,
           F.RDB$FIELD_SUB_TYPE AS sub_type,
           F.RDB$FIELD_LENGTH AS field_length,
           CSET.RDB$CHARACTER_SET_NAME AS field_charset
    FROM RDB$RELATION_FIELDS R
    LEFT JOIN RDB$FIELDS F ON R.RDB$FIELD_SOURCE = F.RDB$FIELD_NAME
    LEFT JOIN RDB$CHARACTER_SETS CSET ON F.RDB$CHARACTER_SET_ID = CSET.RDB$CHARACTER_SET_ID
    WHERE R.RDB$RELATION_NAME = :table_name
    ORDER BY R.RDB$FIELD_POSITION
    """
)


def firebird_fields(rows) -> list[CatalogField]:
    """Convert RDB$ catalog rows (name, type_code, sub_type, length, charset) to fields."""
    fields = []
    for name, type_code, sub_type, length, charset in rows:
        fields.append(CatalogField(
            name=name.strip(),
            type_name=type_name_for_code(type_code, sub_type),
            length=length,
            charset=charset.strip() if charset else None,
        ))
    return fields


def _read_firebird_catalog(conn: sa.Connection, table_name: str) -> list[CatalogField]:
    with begin_if_idle(conn):
        rows = conn.execute(_FIREBIRD_CATALOG, {'table_name': table_name}).all()
    return firebird_fields(rows)


_SQLITE_KNOWN = frozenset({
    'SMALLINT', 'INTEGER', 'BIGINT', 'INT64', 'FLOAT', 'DOUBLE', 'DATE', 'TIME', 'TIMESTAMP',
    'CHAR', 'VARCHAR', 'NCHAR', 'BLOB', 'CLOB',
})


def sqlite_type_name(declared: str | None) -> str:
    """Normalize a SQLite declared column type to a catalog type name.

    Follows SQLite's affinity rules for anything not spelled as a known type.
    """
    base = (declared or '').upper().split('(')[0].strip()
    if base in _SQLITE_KNOWN:
        return base
    if 'INT' in base:
        return 'INTEGER'
    if 'CHAR' in base or 'CLOB' in base or 'TEXT' in base:
        return 'CLOB'
    if 'BLOB' in base or not base:
        return 'BLOB'
    if 'REAL' in base or 'FLOA' in base or 'DOUB' in base:
        return 'DOUBLE'
    if base.startswith('DATE'):
        return 'TIMESTAMP'
    return UNKNOWN


def _read_sqlite_catalog(conn: sa.Connection, table_name: str) -> list[CatalogField]:
    quoted = conn.dialect.identifier_preparer.quote_identifier(table_name)
    with begin_if_idle(conn):
        rows = conn.exec_driver_sql(f'PRAGMA table_info({quoted})').all()
    # cid, name, type, notnull, dflt_value, pk
    rows = sorted(rows, key=lambda r: r[0])
    return [CatalogField(name=r[1], type_name=sqlite_type_name(r[2])) for r in rows]


FIREBIRD = DialectProfile(
    name='firebird',
    single_row_source='RDB$DATABASE',
    read_catalog=_read_firebird_catalog,
    block='EXECUTE BLOCK AS BEGIN {}; END',
    timeout_statement='SET STATEMENT TIMEOUT {} SECOND',
    # session-level setting, so the previous value is read back and restored
    timeout_query=(
        'SELECT MON$STATEMENT_TIMEOUT FROM MON$ATTACHMENTS '
        'WHERE MON$ATTACHMENT_ID = CURRENT_CONNECTION'
    ),
    timeout_restore='SET STATEMENT TIMEOUT {} MILLISECOND',
    timeout_since=(4,),
)

# a single INSERT ... SELECT is already atomic in SQLite
SQLITE = DialectProfile(
    name='sqlite',
    single_row_source='(SELECT 1)',
    read_catalog=_read_sqlite_catalog,
    max_rows=500,  # SQLITE_MAX_COMPOUND_SELECT default
)

PROFILES: dict[str, DialectProfile] = {p.name: p for p in (FIREBIRD, SQLITE)}


def profile_for(conn: sa.Connection | sa.Engine) -> DialectProfile:
    dialect = conn.dialect.name
    driver = getattr(conn.dialect, 'driver', '')
    profile = PROFILES.get(dialect)
    if profile is None:
        raise UnsupportedDialectError(f'No bulk copy profile for {dialect}+{driver}')
    return profile
