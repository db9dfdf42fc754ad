from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol, Sequence


@dataclass(frozen=True)
class ExecResult:
    """Result of a write statement."""
    lastrowid: Optional[int] = None
    rowcount: int = -1


class Rows(Protocol):
    """
    Row cursor returned by ``SqlQuerier.query``.

    A SQLAlchemy ``CursorResult`` satisfies this protocol.
    """

    def keys(self) -> Iterable[str]:
        """Column names, in row order."""
        ...

    def fetchone(self) -> Optional[Sequence[Any]]:
        """Next row of raw column values, or None when exhausted."""
        ...

    def close(self) -> None:
        ...


class SqlQuerier(Protocol):
    def query(self, sql: str, params: Sequence[Any] = ()) -> Rows:
        """Run a SELECT with positional ``?`` parameters."""
        ...


class SqlExecutor(Protocol):
    def exec(self, sql: str, params: Sequence[Any] = ()) -> ExecResult:
        """Run a write statement with positional ``?`` parameters."""
        ...


class SqlQuerierExecutor(SqlQuerier, SqlExecutor, Protocol):
    """Both capabilities, as offered by DbSession."""
