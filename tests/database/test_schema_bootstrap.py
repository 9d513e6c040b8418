from __future__ import annotations

from site_attendance.database.bootstrap import SCHEMA_PATH, apply_schema, iter_sql_statements
from site_attendance.database.connection import DBConfig


class FakeCursor:
    def __init__(self, log):
        self.log = log

    def execute(self, sql, params=None):
        self.log.append(sql)


class FakeConn:
    def __init__(self, log):
        self.log = log
        self.committed = False
        self.closed = False

    def cursor(self, dictionary=False):
        return FakeCursor(self.log)

    def commit(self):
        self.committed = True

    def close(self):
        self.closed = True


class FakeConnFactory:
    def __init__(self):
        self.config = DBConfig(host="h", port=3306, user="u", password="", database="site_attendance_test")
        self.log: list[str] = []
        self.connections: list[tuple[bool, FakeConn]] = []

    def connect(self, *, with_database: bool = True):
        conn = FakeConn(self.log)
        self.connections.append((with_database, conn))
        return conn


def test_split_ignores_semicolons_in_quotes():
    sql = "INSERT INTO t VALUES ('a;b');\nINSERT INTO t VALUES (\"c;d\");  \n  SELECT 1"

    assert list(iter_sql_statements(sql)) == [
        "INSERT INTO t VALUES ('a;b')",
        'INSERT INTO t VALUES ("c;d")',
        "SELECT 1",
    ]


def test_apply_schema_creates_database_then_tables():
    factory = FakeConnFactory()

    count = apply_schema(factory, schema_path=SCHEMA_PATH)

    assert factory.log[0].startswith("CREATE DATABASE IF NOT EXISTS `site_attendance_test`")
    statements = factory.log[1:]
    assert count == len(statements) == 5
    assert all(s.startswith("CREATE TABLE IF NOT EXISTS") for s in statements)
    assert not any(s.upper().startswith("USE ") for s in statements)
    assert [w for w, _ in factory.connections] == [False, True]
    assert all(c.committed and c.closed for _, c in factory.connections)
