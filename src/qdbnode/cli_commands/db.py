from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

import click
import structlog

log = structlog.get_logger()


def _connection_options(f: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option("--host", default="", help="QuestDB host (default: env/config)"),
        click.option("--pg-port", default=0, type=int, help="QuestDB PGWire port (default: env/config)"),
        click.option("--pg-user", default="", help="QuestDB PGWire user (default: env/config)"),
        click.option("--pg-password", default="", help="QuestDB PGWire password (default: env/config)"),
        click.option("--pg-dbname", default="", help="QuestDB PGWire dbname (default: env/config)"),
        click.option("--ssl-mode", default="", help="libpq sslmode, e.g. require (default: env/config, else disable)"),
    ]
    for opt in reversed(options):
        f = opt(f)
    return f


def _credential(host: str, pg_port: int, pg_user: str, pg_password: str, pg_dbname: str, ssl_mode: str):
    from qdbnode.config import credential_from_env
    from qdbnode.questdb.client import Credential

    base = credential_from_env()
    return Credential(
        host=str(host).strip() or base.host,
        port=int(pg_port) if int(pg_port) > 0 else base.port,
        database=str(pg_dbname).strip() or base.database,
        user=str(pg_user).strip() or base.user,
        password=str(pg_password) or base.password,
        ssl_mode=str(ssl_mode).strip() or base.ssl_mode,
    )


def _parse_records(text: str) -> list[dict[str, Any]]:
    """
    Parse a JSON array of objects, a single object, or JSON Lines.
    """
    raw = str(text or "").strip()
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        # Not one JSON document: JSON Lines.
        try:
            data = [json.loads(line) for line in raw.splitlines() if line.strip()]
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"invalid JSON input: {e}") from e
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise click.BadParameter("input must be a JSON array of objects (or JSON Lines)")
    return data


def _run_node(cred: Any, parameters: dict[str, Any], records: list[dict[str, Any]]) -> None:
    from qdbnode.errors import ConnectorError
    from qdbnode.node import QuestDbNode, StaticExecutionContext

    ctx = StaticExecutionContext(
        credentials=cred,
        parameters=parameters,
        items=[{"json": r} for r in records],
    )
    try:
        out = QuestDbNode().execute(ctx)
    except ConnectorError as e:
        click.echo(json.dumps({"ok": False, "error": str(e), "error_type": type(e).__name__}))
        raise SystemExit(1)
    for item in out[0]:
        click.echo(json.dumps(item["json"], default=str))


def register(main: click.Group) -> None:
    """
    Register `qdbnode query|insert|health` commands onto the root CLI group.
    """

    @main.command("query")
    @_connection_options
    @click.argument("sql")
    def db_query(
        host: str,
        pg_port: int,
        pg_user: str,
        pg_password: str,
        pg_dbname: str,
        ssl_mode: str,
        sql: str,
    ) -> None:
        """Run one SQL query and print each row as a JSON line."""
        cred = _credential(host, pg_port, pg_user, pg_password, pg_dbname, ssl_mode)
        _run_node(cred, {"operation": "executeQuery", "query": sql}, [])

    @main.command("insert")
    @_connection_options
    @click.option("--table", required=True, help="Target table")
    @click.option("--return-fields", default="*", show_default=True, help="Comma separated fields returned after insert")
    @click.option("--input", "input_file", type=click.File("r"), default="-", show_default=True, help="JSON array or JSON Lines of records")
    @click.option("--parameterized", is_flag=True, help="Bind values as parameters instead of SQL literals")
    def db_insert(
        host: str,
        pg_port: int,
        pg_user: str,
        pg_password: str,
        pg_dbname: str,
        ssl_mode: str,
        table: str,
        return_fields: str,
        input_file: Any,
        parameterized: bool,
    ) -> None:
        """Insert records into a table and print the table's rows (all of them) afterwards."""
        records = _parse_records(input_file.read())
        cred = _credential(host, pg_port, pg_user, pg_password, pg_dbname, ssl_mode)
        params = {
            "operation": "insert",
            "table": table,
            "returnFields": return_fields,
            "insertMode": "parameterized" if parameterized else "literal",
        }
        _run_node(cred, params, records)

    @main.command("health")
    @_connection_options
    def db_health(
        host: str,
        pg_port: int,
        pg_user: str,
        pg_password: str,
        pg_dbname: str,
        ssl_mode: str,
    ) -> None:
        """Check QuestDB reachability via PGWire (SELECT 1)."""
        from qdbnode.config import get_connect_timeout_s
        from qdbnode.errors import ConnectorError
        from qdbnode.questdb.client import build_connection_config, open_connection
        from qdbnode.questdb.executor import run_query

        cred = _credential(host, pg_port, pg_user, pg_password, pg_dbname, ssl_mode)
        cfg = build_connection_config(cred)
        t0 = time.time()
        try:
            with open_connection(cfg, connect_timeout_s=get_connect_timeout_s()) as conn:
                run_query(conn, "SELECT 1")
            dt_ms = int((time.time() - t0) * 1000.0)
            click.echo(json.dumps({"ok": True, "host": cfg.host, "pg_port": cfg.port, "ssl": cfg.ssl, "latency_ms": dt_ms}))
        except ConnectorError as e:
            dt_ms = int((time.time() - t0) * 1000.0)
            log.warning("questdb.health_failed", host=cfg.host, error=str(e))
            click.echo(
                json.dumps(
                    {"ok": False, "host": cfg.host, "pg_port": cfg.port, "ssl": cfg.ssl, "latency_ms": dt_ms, "error": str(e)}
                )
            )
            raise SystemExit(1)
