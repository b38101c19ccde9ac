"""
QuestDB integration over PGWire.

This package contains:
- credential -> connection config mapping and the scoped psycopg connection
- SQL text builders for inserts and projections
- the executeQuery/insert operation executor
"""
