from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
import time
from typing import Any, Literal

import structlog

from qdbnode.errors import ConfigurationError, ConnectorError, DriverError, UnsupportedOperationError

from .client import ConnectionConfig, open_connection
from .statements import (
    build_insert_statements,
    build_parameterized_insert,
    build_select_statement,
    concat_statements,
)

log = structlog.get_logger()

InsertMode = Literal["literal", "parameterized"]
INSERT_MODES: tuple[str, ...] = ("literal", "parameterized")


def check_insert_mode(mode: str) -> str:
    if mode not in INSERT_MODES:
        raise ConfigurationError(f"Invalid insert_mode: {mode!r} (expected one of {', '.join(INSERT_MODES)})")
    return mode


class Operation(str, Enum):
    EXECUTE_QUERY = "executeQuery"
    INSERT = "insert"


@dataclass(frozen=True)
class OperationParams:
    """
    Per-invocation parameters. `query` is used by executeQuery; `table`/`return_fields` by insert.
    """

    query: str = ""
    table: str = ""
    return_fields: str = "*"
    insert_mode: InsertMode = "literal"

    def __post_init__(self) -> None:
        check_insert_mode(self.insert_mode)


def parse_operation(name: str | Operation) -> Operation:
    if isinstance(name, Operation):
        return name
    try:
        return Operation(str(name))
    except ValueError:
        raise UnsupportedOperationError(str(name)) from None


def _rows_from_cursor(cur: Any) -> list[dict[str, Any]]:
    desc = cur.description or []
    if not desc:
        # Statement without a result set (INSERT, DDL).
        return []
    cols = [str(d.name) for d in desc]
    return [dict(zip(cols, r)) for r in (cur.fetchall() or [])]


def run_query(conn: Any, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
    """
    Execute one SQL command and return its rows as dicts keyed by column name.

    Driver failures are re-raised as DriverError with the driver's message.
    """
    try:
        with conn.cursor() as cur:
            if params is None:
                cur.execute(sql)
            else:
                cur.execute(sql, params)
            return _rows_from_cursor(cur)
    except ConnectorError:
        raise
    except Exception as e:
        raise DriverError(str(e)) from e


def _runs_by_columns(records: Sequence[Mapping[str, Any]]) -> list[tuple[tuple[str, ...], list[Mapping[str, Any]]]]:
    runs: list[tuple[tuple[str, ...], list[Mapping[str, Any]]]] = []
    for r in records:
        cols = tuple(r.keys())
        if runs and runs[-1][0] == cols:
            runs[-1][1].append(r)
        else:
            runs.append((cols, [r]))
    return runs


def _insert_parameterized(conn: Any, table: str, records: Sequence[Mapping[str, Any]]) -> None:
    # Consecutive records sharing a column list go through one executemany.
    try:
        with conn.cursor() as cur:
            for _cols, run in _runs_by_columns(records):
                sql, _ = build_parameterized_insert(table, run[0])
                cur.executemany(sql, [build_parameterized_insert(table, r)[1] for r in run])
    except ConnectorError:
        raise
    except Exception as e:
        raise DriverError(str(e)) from e


def insert_records(
    conn: Any,
    *,
    table: str,
    records: Iterable[Mapping[str, Any]],
    return_fields: str = "*",
    insert_mode: InsertMode = "literal",
) -> list[dict[str, Any]]:
    """
    Insert every record into `table`, then return `SELECT {return_fields} from {table}`.

    The follow-up SELECT has no filter: it returns the whole table, not just the inserted rows.
    """
    check_insert_mode(insert_mode)
    rs = list(records)
    if insert_mode == "parameterized":
        if rs:
            _insert_parameterized(conn, table, rs)
    else:
        command = concat_statements(build_insert_statements(table, rs))
        if command:
            run_query(conn, command)
    log.info("questdb.insert", table=table, rows=len(rs), insert_mode=insert_mode)
    return run_query(conn, build_select_statement(table, return_fields))


def execute(
    operation: str | Operation,
    config: ConnectionConfig,
    items: Sequence[Mapping[str, Any]],
    params: OperationParams,
    *,
    connect_timeout_s: int = 10,
) -> list[dict[str, Any]]:
    """
    Run one invocation: connect, dispatch on `operation`, normalize rows, close.

    The connection is closed before any error propagates, including UnsupportedOperationError
    (the operation name is only resolved once the connection is open).
    """
    t0 = time.time()
    with open_connection(config, connect_timeout_s=connect_timeout_s) as conn:
        op = parse_operation(operation)
        if op is Operation.EXECUTE_QUERY:
            rows = run_query(conn, params.query)
        else:
            rows = insert_records(
                conn,
                table=params.table,
                records=items,
                return_fields=params.return_fields,
                insert_mode=params.insert_mode,
            )
    log.debug(
        "questdb.execute_done",
        operation=op.value,
        rows=len(rows),
        latency_ms=int((time.time() - t0) * 1000.0),
    )
    return rows
