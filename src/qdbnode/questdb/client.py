from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import structlog

from qdbnode.errors import ConfigurationError, QdbConnectionError

log = structlog.get_logger()

SSL_DISABLED = "disable"


@dataclass(frozen=True)
class Credential:
    """
    Host-supplied connection parameters for QuestDB (or any PGWire database).

    `ssl_mode` is a libpq sslmode string (`disable`, `require`, `verify-full`, ...) or None.
    """

    host: str
    port: int
    database: str
    user: str
    password: str
    ssl_mode: str | None = None


def credential_from_record(record: Mapping[str, Any]) -> Credential:
    """
    Build a Credential from a host credential record.

    Accepts `sslMode` or the legacy `ssl` key for the SSL mode; a missing or non-integer port is a
    configuration error.
    """
    raw_port = record.get("port")
    try:
        port = int(raw_port)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid port: {raw_port!r}") from e
    mode = record.get("sslMode", record.get("ssl"))
    return Credential(
        host=str(record.get("host") or ""),
        port=port,
        database=str(record.get("database") or ""),
        user=str(record.get("user") or ""),
        password=str(record.get("password") or ""),
        ssl_mode=(str(mode) if mode else None),
    )


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Connection config for QuestDB via PGWire (psycopg), derived from a Credential.
    """

    host: str
    port: int
    database: str
    user: str
    password: str
    ssl: bool
    ssl_mode: str

    def __repr__(self) -> str:
        return (
            f"ConnectionConfig(host={self.host!r}, port={self.port!r}, database={self.database!r}, "
            f"user={self.user!r}, password='***', ssl={self.ssl!r}, ssl_mode={self.ssl_mode!r})"
        )


def build_connection_config(credential: Credential | None) -> ConnectionConfig:
    """
    Map a Credential to a ConnectionConfig.

    SSL is off when `ssl_mode` is absent or "disable"; any other value turns it on and is passed through.
    """
    if credential is None:
        raise ConfigurationError("No credentials got returned!")
    mode = credential.ssl_mode
    return ConnectionConfig(
        host=credential.host,
        port=credential.port,
        database=credential.database,
        user=credential.user,
        password=credential.password,
        ssl=mode not in (None, SSL_DISABLED),
        ssl_mode=mode or SSL_DISABLED,
    )


def psycopg_module():
    """
    Import psycopg lazily so config/statement code stays importable without a driver.
    """
    try:
        import psycopg  # type: ignore

        return psycopg
    except Exception as e:
        raise ConfigurationError("psycopg not installed. Install with: pip install -e .") from e


def connect_pg(cfg: ConnectionConfig, *, connect_timeout_s: int = 10):
    """
    Connect to QuestDB PGWire using psycopg (autocommit; QuestDB has no multi-statement transactions).
    """
    psycopg = psycopg_module()
    to = int(connect_timeout_s) if int(connect_timeout_s) > 0 else 10
    log.debug(
        "questdb.connect",
        host=cfg.host,
        port=int(cfg.port),
        database=cfg.database,
        user=cfg.user,
        ssl=cfg.ssl,
        ssl_mode=cfg.ssl_mode,
    )
    try:
        return psycopg.connect(
            user=cfg.user,
            password=cfg.password,
            host=cfg.host,
            port=int(cfg.port),
            dbname=cfg.database,
            sslmode=cfg.ssl_mode if cfg.ssl else SSL_DISABLED,
            connect_timeout=to,
            autocommit=True,
        )
    except Exception as e:
        log.warning("questdb.connect_failed", host=cfg.host, port=int(cfg.port), error=str(e))
        raise QdbConnectionError(str(e)) from e


def close_quietly(conn: Any) -> None:
    """
    Close a connection; a failing close is logged and otherwise ignored.
    """
    try:
        conn.close()
    except Exception as e:
        log.debug("questdb.close_failed", error=str(e))


@contextmanager
def open_connection(cfg: ConnectionConfig, *, connect_timeout_s: int = 10) -> Iterator[Any]:
    """
    Scoped connection: opened on entry, closed on every exit path (including errors).
    """
    conn = connect_pg(cfg, connect_timeout_s=connect_timeout_s)
    try:
        yield conn
    finally:
        close_quietly(conn)
