import datetime as dt

import polars as pl
import pytest
import sqlalchemy as sa

BLOB = bytes([0xCA, 0xFE, 0x00, 0x7F])


@pytest.fixture()
def rows_df():
    return pl.DataFrame({
        'A': [0, 1, 2, 3, 4],
        'B': ['0', '1', '2', '3', '4'],
        'C': [BLOB] * 5,
    })


@pytest.fixture()
def sqlite_engine():
    eng = sa.create_engine('sqlite:///:memory:')
    with eng.begin() as conn:
        conn.execute(sa.text('CREATE TABLE "D" ("A" int, "B" varchar(20), "C" blob)'))
        conn.execute(sa.text('CREATE TABLE events (id integer, happened_at timestamp, note text)'))
        conn.execute(sa.text('CREATE TABLE strict_ids (id integer not null, name varchar(10))'))
        conn.execute(sa.text('CREATE TABLE priced (id integer, price numeric(10, 2), label varchar(5))'))
    yield eng
    eng.dispose()


@pytest.fixture()
def statements(sqlite_engine):
    """Every statement text sent to the driver."""
    captured: list[str] = []

    @sa.event.listens_for(sqlite_engine, 'before_cursor_execute')
    def _capture(conn, cursor, statement, parameters, context, executemany):
        captured.append(statement)

    yield captured
    sa.event.remove(sqlite_engine, 'before_cursor_execute', _capture)


@pytest.fixture()
def inserts(statements):
    class _Inserts:
        def __iter__(self):
            return iter(self._list())

        def __len__(self):
            return len(self._list())

        def __getitem__(self, i):
            return self._list()[i]

        @staticmethod
        def _list():
            return [s for s in statements if s.startswith('INSERT')]

    return _Inserts()


def fetch(engine, sql):
    with engine.connect() as conn:
        return conn.execute(sa.text(sql)).all()


@pytest.fixture()
def events():
    return [
        {'id': 1, 'happened_at': dt.datetime(2018, 8, 12, 9, 30, 15), 'note': "it's"},
        {'id': 2, 'happened_at': '2018-08-13T10:00:00', 'note': None},
        {'id': 3, 'happened_at': dt.date(2018, 8, 14), 'note': ''},
    ]
