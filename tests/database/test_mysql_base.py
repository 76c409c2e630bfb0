from __future__ import annotations

import mysql.connector
import pytest
from mysql.connector import errorcode

from roster_system.core.exceptions import DuplicateKeyError, StoreError, StoreUnavailableError
from roster_system.database.bootstrap import SCHEMA_PATH, _iter_sql_statements, _strip_create_db_and_use
from roster_system.database.mysql_base import db_cursor, escape_like, translate_error


class FakeCursor:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class FakeConn:
    def __init__(self):
        self.committed = False
        self.rolled_back = False
        self.cursor_obj = FakeCursor()

    def cursor(self, dictionary=True):
        return self.cursor_obj

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True


class FakeConnFactory:
    def __init__(self, acquire_error=None):
        self.conn = FakeConn()
        self.released = []
        self._acquire_error = acquire_error

    def acquire(self):
        if self._acquire_error is not None:
            raise self._acquire_error
        return self.conn

    def release(self, conn):
        self.released.append(conn)


def test_translate_duplicate_entry():
    exc = mysql.connector.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)
    assert isinstance(translate_error(exc), DuplicateKeyError)


def test_translate_unreachable_store():
    assert isinstance(translate_error(mysql.connector.InterfaceError(msg="gone", errno=2013)), StoreUnavailableError)
    assert isinstance(translate_error(mysql.connector.PoolError(msg="exhausted")), StoreUnavailableError)


def test_translate_other_errors_hide_driver_message():
    err = translate_error(mysql.connector.ProgrammingError(msg="syntax near 'secret'", errno=1064))
    assert isinstance(err, StoreError)
    assert "secret" not in err.message


def test_db_cursor_commits_and_releases():
    factory = FakeConnFactory()
    with db_cursor(factory) as (conn, cur):
        assert cur is factory.conn.cursor_obj

    assert factory.conn.committed is True
    assert factory.conn.cursor_obj.closed is True
    assert factory.released == [factory.conn]


def test_db_cursor_rolls_back_and_translates():
    factory = FakeConnFactory()
    with pytest.raises(DuplicateKeyError):
        with db_cursor(factory):
            raise mysql.connector.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY)

    assert factory.conn.rolled_back is True
    assert factory.conn.committed is False
    assert factory.released == [factory.conn]


def test_db_cursor_acquire_failure():
    factory = FakeConnFactory(acquire_error=mysql.connector.PoolError(msg="timeout"))
    with pytest.raises(StoreUnavailableError):
        with db_cursor(factory):
            pass
    assert factory.released == []


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


def test_schema_splits_into_statements():
    sql = _strip_create_db_and_use(SCHEMA_PATH.read_text(encoding="utf-8"))
    statements = list(_iter_sql_statements(sql))

    tables = [s for s in statements if s.upper().startswith("CREATE TABLE")]
    assert len(tables) == 5
    assert not any(s.upper().startswith("USE ") for s in statements)
