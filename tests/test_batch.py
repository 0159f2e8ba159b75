import pytest

from blockcopy import FIREBIRD, BatchBuilder, ColumnKind, Schema, to_literal
from blockcopy.batch import SEPARATOR, insert_clause

INSERT = 'INSERT INTO T (A)'


def _fragment_size(literal='1'):
    return len(f'SELECT {literal} FROM RDB$DATABASE') + len(SEPARATOR)


def test_insert_clause():
    schema = Schema('D', [('A', ColumnKind.INTEGER), ('B', ColumnKind.TEXT), ('C', ColumnKind.BLOB)])
    assert insert_clause(schema) == 'INSERT INTO D (A,B,C)'
    assert insert_clause(schema, lambda s: f'"{s}"') == 'INSERT INTO "D" ("A","B","C")'


def test_flush_on_row_count():
    builder = BatchBuilder(INSERT, 'RDB$DATABASE', batch_size=3)
    assert builder.add_row(['1']) is None
    assert builder.add_row(['2']) is None
    stmt = builder.add_row(['3'])
    assert stmt == (
        'INSERT INTO T (A) SELECT 1 FROM RDB$DATABASE UNION ALL SELECT 2 FROM RDB$DATABASE'
        ' UNION ALL SELECT 3 FROM RDB$DATABASE'
    )
    assert builder.rows == 0
    assert builder.size == len(INSERT)
    assert builder.finalize() is None


def test_flush_on_size_boundary():
    rows = 4
    limit = len(INSERT) + rows * _fragment_size()
    builder = BatchBuilder(INSERT, 'RDB$DATABASE', batch_size=1000, max_bytes=limit)
    for _ in range(rows):
        # equal to the ceiling is not over it
        assert builder.add_row(['1']) is None
    assert builder.size == limit
    stmt = builder.add_row(['1'])
    assert stmt is not None
    assert stmt.count('SELECT') == rows + 1
    assert not stmt.endswith(SEPARATOR.rstrip())


def test_size_counts_utf8_bytes():
    builder = BatchBuilder(INSERT, 'RDB$DATABASE')
    builder.add_row(["'ä'"])
    assert builder.size == len(INSERT) + _fragment_size("'ä'") + 1


def test_finalize_partial_batch_once():
    builder = BatchBuilder(INSERT, 'RDB$DATABASE', batch_size=10)
    for i in range(4):
        assert builder.add_row([str(i)]) is None
    stmt = builder.finalize()
    assert stmt.count('UNION ALL') == 3
    assert builder.finalize() is None


def test_empty_builder_finalizes_to_nothing():
    assert BatchBuilder(INSERT, 'RDB$DATABASE').finalize() is None


def test_row_width_checked():
    builder = BatchBuilder('INSERT INTO T (A,B)', 'RDB$DATABASE', width=2)
    with pytest.raises(ValueError):
        builder.add_row(['1'])


@pytest.mark.parametrize('kwargs', [{'batch_size': 0}, {'max_bytes': 0}])
def test_invalid_limits(kwargs):
    with pytest.raises(ValueError):
        BatchBuilder(INSERT, 'RDB$DATABASE', **kwargs)


def test_firebird_statement_shape():
    schema = Schema('D', [('A', ColumnKind.INTEGER), ('B', ColumnKind.TEXT), ('C', ColumnKind.BLOB)])
    builder = BatchBuilder(insert_clause(schema), FIREBIRD.single_row_source, width=3)
    for i in range(2):
        row = [to_literal(v, schema[c]) for c, v in zip(schema, [i, str(i), b'\xca\xfe'])]
        assert builder.add_row(row) is None
    dml = FIREBIRD.wrap(builder.finalize())
    assert dml == (
        "EXECUTE BLOCK AS BEGIN INSERT INTO D (A,B,C) "
        "SELECT 0,'0',X'CAFE' FROM RDB$DATABASE UNION ALL "
        "SELECT 1,'1',X'CAFE' FROM RDB$DATABASE; END"
    )
