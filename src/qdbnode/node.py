"""
Host-facing entry point.

The automation host hands the node an execution context (credentials, UI
parameters, input items) and expects output items grouped per output port.
Items are `{"json": record}` envelopes; this node has one output port.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from qdbnode.config import get_connect_timeout_s
from qdbnode.errors import ConfigurationError
from qdbnode.questdb.client import Credential, build_connection_config, credential_from_record
from qdbnode.questdb.executor import OperationParams, execute

log = structlog.get_logger()

CREDENTIAL_NAME = "questDb"


class ExecutionContext(Protocol):
    def get_credentials(self, name: str) -> Credential | Mapping[str, Any] | None: ...

    def get_node_parameter(self, name: str, item_index: int, default: Any = None) -> Any: ...

    def get_input_data(self) -> list[dict[str, Any]]: ...


@dataclass
class StaticExecutionContext:
    """In-memory execution context (CLI runs, tests)."""

    credentials: Credential | Mapping[str, Any] | None
    parameters: dict[str, Any] = field(default_factory=dict)
    items: list[dict[str, Any]] = field(default_factory=list)

    def get_credentials(self, name: str) -> Credential | Mapping[str, Any] | None:
        _ = name
        return self.credentials

    def get_node_parameter(self, name: str, item_index: int, default: Any = None) -> Any:
        _ = item_index
        return self.parameters.get(name, default)

    def get_input_data(self) -> list[dict[str, Any]]:
        return list(self.items)


def return_json_array(rows: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [{"json": dict(r)} for r in rows]


def prepare_output_data(items: list[dict[str, Any]]) -> list[list[dict[str, Any]]]:
    return [items]


def _unwrap(item: Mapping[str, Any]) -> dict[str, Any]:
    payload = item.get("json")
    return dict(payload) if isinstance(payload, Mapping) else {}


class QuestDbNode:
    """QuestDB node: `executeQuery` and `insert` (default) operations."""

    def execute(self, ctx: ExecutionContext) -> list[list[dict[str, Any]]]:
        credentials = ctx.get_credentials(CREDENTIAL_NAME)
        if credentials is None:
            raise ConfigurationError("No credentials got returned!")
        if isinstance(credentials, Mapping):
            credentials = credential_from_record(credentials)
        config = build_connection_config(credentials)

        operation = str(ctx.get_node_parameter("operation", 0, "insert"))
        params = OperationParams(
            query=str(ctx.get_node_parameter("query", 0, "") or ""),
            table=str(ctx.get_node_parameter("table", 0, "") or ""),
            return_fields=str(ctx.get_node_parameter("returnFields", 0, "*") or "*"),
            insert_mode=ctx.get_node_parameter("insertMode", 0, "literal") or "literal",
        )
        records = [_unwrap(i) for i in ctx.get_input_data()]

        log.info("node.execute", operation=operation, items=len(records), host=config.host, database=config.database)
        rows = execute(operation, config, records, params, connect_timeout_s=get_connect_timeout_s())
        return prepare_output_data(return_json_array(rows))
