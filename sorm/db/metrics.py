from __future__ import annotations

from ..metrics.registry import (
    DB_LOAD_LATENCY_SECONDS,
    DB_LOAD_TOTAL,
    DB_WRITE_LATENCY_SECONDS,
    DB_WRITE_TOTAL,
)


def observe_db_write(table: str, op_type: str, status: str, latency_s: float) -> None:
    """
    Record one executed write statement.

    Args:
        table: Table name
        op_type: "insert", "update" or "delete"
        status: "success" or "error"
        latency_s: Statement latency in seconds
    """
    DB_WRITE_TOTAL.labels(table=table, op_type=op_type, status=status).inc()
    DB_WRITE_LATENCY_SECONDS.labels(table=table, op_type=op_type).observe(latency_s)


def observe_db_load(table: str, status: str, latency_s: float) -> None:
    """
    Record one entity load.

    ``status`` is "success", "not_found", "invalid" or "error".
    """
    DB_LOAD_TOTAL.labels(table=table, status=status).inc()
    DB_LOAD_LATENCY_SECONDS.labels(table=table).observe(latency_s)
