from prometheus_client import Counter, Histogram

DB_WRITE_TOTAL = Counter(
    "sorm_db_write_total",
    "Entity write statements by table, operation type and status",
    ["table", "op_type", "status"],
)

DB_WRITE_LATENCY_SECONDS = Histogram(
    "sorm_db_write_latency_seconds",
    "Entity write statement latency in seconds",
    ["table", "op_type"],
)

DB_LOAD_TOTAL = Counter(
    "sorm_db_load_total",
    "Entity loads by table and status",
    ["table", "status"],
)

DB_LOAD_LATENCY_SECONDS = Histogram(
    "sorm_db_load_latency_seconds",
    "Entity load query latency in seconds",
    ["table"],
)
