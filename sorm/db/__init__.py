from .executor import ExecResult, Rows, SqlExecutor, SqlQuerier, SqlQuerierExecutor
from .metrics import observe_db_load, observe_db_write
from .session import DbSession

__all__ = [
    "DbSession",
    "ExecResult",
    "Rows",
    "SqlQuerier",
    "SqlExecutor",
    "SqlQuerierExecutor",
    "observe_db_load",
    "observe_db_write",
]
