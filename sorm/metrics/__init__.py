from .registry import (
    DB_LOAD_LATENCY_SECONDS,
    DB_LOAD_TOTAL,
    DB_WRITE_LATENCY_SECONDS,
    DB_WRITE_TOTAL,
)

__all__ = [
    "DB_WRITE_TOTAL",
    "DB_WRITE_LATENCY_SECONDS",
    "DB_LOAD_TOTAL",
    "DB_LOAD_LATENCY_SECONDS",
]
