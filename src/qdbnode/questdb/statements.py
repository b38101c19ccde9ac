"""
SQL text builders for the insert/select paths.

Literal rendering does NOT escape embedded quotes: a value such as `O'Brien`
produces a statement the database will reject. Values are interpolated as-is,
so tables and records must come from a trusted source. `build_parameterized_insert`
is the bound-parameter alternative.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any


def render_value(value: Any) -> str:
    """
    Render one value as a SQL literal according to its runtime type.

    str -> single-quoted (unescaped); bool -> true/false; None -> null; anything else -> str(value).
    """
    if isinstance(value, str):
        return f"'{value}'"
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def build_insert_statement(table: str, record: Mapping[str, Any]) -> str:
    """
    One INSERT for one record, using the record's own keys (in order) as the column list.
    """
    columns = list(record.keys())
    values = ",".join(render_value(record[c]) for c in columns)
    return f"INSERT INTO {table} ({','.join(columns)}) VALUES ({values});"


def build_insert_statements(table: str, records: Iterable[Mapping[str, Any]]) -> list[str]:
    # Records are not unified to a common schema; each keeps its own column set.
    return [build_insert_statement(table, r) for r in records]


def concat_statements(statements: Iterable[str]) -> str:
    """
    Join statements into one multi-statement command.

    Surrounding whitespace and trailing semicolons are stripped per statement; blank ones are dropped.
    """
    parts: list[str] = []
    for s in statements:
        q = str(s or "").strip()
        while q.endswith(";"):
            q = q[:-1].rstrip()
        if q:
            parts.append(q)
    return ";".join(parts)


def build_select_statement(table: str, return_fields: str = "*") -> str:
    fields = str(return_fields or "").strip() or "*"
    return f"SELECT {fields} from {table}"


def build_parameterized_insert(table: str, record: Mapping[str, Any]) -> tuple[str, list[Any]]:
    """
    INSERT with `%s` placeholders and a bound-value list (psycopg paramstyle).
    """
    columns = list(record.keys())
    placeholders = ",".join(["%s"] * len(columns))
    sql = f"INSERT INTO {table} ({','.join(columns)}) VALUES ({placeholders})"
    return sql, [record[c] for c in columns]
