from __future__ import annotations

import os
import re
from types import SimpleNamespace
from typing import Any

import pytest

from qdbnode.errors import QdbConnectionError
from qdbnode.questdb.client import ConnectionConfig, Credential


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: requires a running QuestDB (PGWire)")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get("QDBNODE_RUN_QUESTDB_TESTS", "false").lower() != "true":
        skip_integration = pytest.mark.skip(reason="Set QDBNODE_RUN_QUESTDB_TESTS=true to run against a live QuestDB")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


class FakePgError(Exception):
    pass


_INSERT_RE = re.compile(r"^INSERT INTO (\w+) \(([^)]*)\) VALUES \((.*)\)$", flags=re.IGNORECASE | re.DOTALL)
_SELECT_RE = re.compile(r"^SELECT (.+?) from (\w+)(?: WHERE (\w+) < (\d+))?$", flags=re.IGNORECASE | re.DOTALL)


def _split_outside_quotes(text: str, sep: str) -> list[str]:
    parts: list[str] = []
    buf = ""
    quoted = False
    for ch in text:
        if ch == "'":
            quoted = not quoted
        if ch == sep and not quoted:
            parts.append(buf)
            buf = ""
            continue
        buf += ch
    parts.append(buf)
    return parts


def _parse_literal(tok: str) -> Any:
    t = tok.strip()
    if t.startswith("'") and t.endswith("'") and len(t) >= 2:
        return t[1:-1]
    if t.lower() in {"true", "false"}:
        return t.lower() == "true"
    if t.lower() == "null":
        return None
    try:
        return int(t)
    except ValueError:
        pass
    try:
        return float(t)
    except ValueError:
        raise FakePgError(f"unexpected token [{t}]") from None


class FakeDatabase:
    """
    Tiny PGWire stand-in: understands the INSERT/SELECT shapes the connector emits.

    Tables are lists of dict rows. A command with unbalanced single quotes is rejected
    as a whole, before any statement in it runs.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.executed: list[str] = []
        self.executemany_calls: list[tuple[str, list[Any]]] = []
        self.connections: list[FakeConn] = []
        self.configs: list[Any] = []
        self.connect_error: Exception | None = None
        self.close_error: Exception | None = None

    def connect(self, cfg: Any, connect_timeout_s: int = 10) -> FakeConn:
        _ = connect_timeout_s
        self.configs.append(cfg)
        if self.connect_error is not None:
            raise QdbConnectionError(str(self.connect_error)) from self.connect_error
        conn = FakeConn(self)
        self.connections.append(conn)
        return conn

    def run(self, sql: str, params: Any = None) -> tuple[list[str], list[tuple[Any, ...]]] | None:
        self.executed.append(sql)
        if sql.count("'") % 2:
            raise FakePgError("unterminated quoted string")
        result = None
        for stmt in _split_outside_quotes(sql, ";"):
            stmt = stmt.strip()
            if stmt:
                result = self._run_one(stmt, params)
        return result

    def _run_one(self, stmt: str, params: Any) -> tuple[list[str], list[tuple[Any, ...]]] | None:
        if stmt.upper() == "SELECT 1":
            return ["1"], [(1,)]
        m = _INSERT_RE.match(stmt)
        if m:
            table, cols_raw, vals_raw = m.groups()
            cols = [c.strip() for c in cols_raw.split(",")]
            if params is not None:
                vals = list(params)
            else:
                vals = [_parse_literal(v) for v in _split_outside_quotes(vals_raw, ",")]
            if len(cols) != len(vals):
                raise FakePgError("column count does not match value count")
            self.tables.setdefault(table, []).append(dict(zip(cols, vals)))
            return None
        m = _SELECT_RE.match(stmt)
        if m:
            fields, table, where_col, where_lt = m.groups()
            if table not in self.tables:
                raise FakePgError(f"table does not exist [table={table}]")
            rows = self.tables[table]
            if where_col:
                rows = [r for r in rows if r.get(where_col) is not None and r[where_col] < int(where_lt)]
            if fields.strip() == "*":
                cols: list[str] = []
                for r in self.tables[table]:
                    cols.extend(c for c in r if c not in cols)
            else:
                cols = [f.strip() for f in fields.split(",")]
            return cols, [tuple(r.get(c) for c in cols) for r in rows]
        raise FakePgError(f"unexpected statement [{stmt}]")


class FakeCursor:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self.description: list[Any] | None = None
        self._rows: list[tuple[Any, ...]] = []

    def execute(self, sql, params=None) -> None:
        result = self._db.run(sql, params)
        if result is None:
            self.description = None
            self._rows = []
        else:
            cols, rows = result
            self.description = [SimpleNamespace(name=c) for c in cols]
            self._rows = rows

    def executemany(self, sql, params_seq) -> None:
        seq = list(params_seq)
        self._db.executemany_calls.append((sql, seq))
        for p in seq:
            self._db.run(sql, p)
        self.description = None
        self._rows = []

    def fetchall(self):
        return list(self._rows)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class FakeConn:
    def __init__(self, db: FakeDatabase) -> None:
        self._db = db
        self.closed = False

    def cursor(self) -> FakeCursor:
        return FakeCursor(self._db)

    def close(self) -> None:
        self.closed = True
        if self._db.close_error is not None:
            raise self._db.close_error


@pytest.fixture()
def fake_db(monkeypatch: pytest.MonkeyPatch) -> FakeDatabase:
    from qdbnode.questdb import client

    db = FakeDatabase()
    monkeypatch.setattr(client, "connect_pg", db.connect)
    return db


@pytest.fixture()
def credential() -> Credential:
    return Credential(host="localhost", port=8812, database="qdb", user="admin", password="quest")


@pytest.fixture()
def connection_config() -> ConnectionConfig:
    return ConnectionConfig(
        host="localhost",
        port=8812,
        database="qdb",
        user="admin",
        password="quest",
        ssl=False,
        ssl_mode="disable",
    )
