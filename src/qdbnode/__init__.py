"""
qdbnode: QuestDB connector for workflow-automation hosts.

This package provides:
- Credential -> PGWire connection config mapping (SSL mode normalization)
- `executeQuery` and bulk `insert` operations over psycopg
- Host item wrapping (`{"json": row}` envelopes, single output port)
- A small CLI for running the same operations from a terminal
"""

__version__ = "0.1.0"
