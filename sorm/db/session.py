from __future__ import annotations

import re
from typing import Any, Sequence

from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult, Engine, RootTransaction
from sqlalchemy.sql import TextClause

from .executor import ExecResult

# Quoted strings and identifiers are matched first so their "?" are skipped
_PLACEHOLDER_RE = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|`[^`]*`|\?")


def _bind_positional(sql: str, params: Sequence[Any]) -> tuple[TextClause, dict[str, Any]]:
    """
    Turn a statement with positional ``?`` placeholders into a ``text()``
    clause with named binds ``:p0``, ``:p1``, ...

    Raises:
        ValueError: If the number of placeholders and parameters differ
    """
    counter = 0

    def _replace(match: re.Match) -> str:
        nonlocal counter
        if match.group(0) != "?":
            return match.group(0)
        name = f":p{counter}"
        counter += 1
        return name

    converted = _PLACEHOLDER_RE.sub(_replace, sql)
    if counter != len(params):
        raise ValueError(
            f"statement has {counter} placeholders but {len(params)} parameters were given"
        )
    return text(converted), {f"p{i}": value for i, value in enumerate(params)}


class DbSession:
    """
    Transactional wrapper around a SQLAlchemy Engine connection that
    implements the query/exec capabilities used by the entity loader and saver.

    Use as:
        with DbSession(engine) as session:
            save(session, entity)
            load_entity(session, other, "id", 7)
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._conn: Connection | None = None
        self._tx: RootTransaction | None = None

    @property
    def active(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> "DbSession":
        if self.active:
            raise RuntimeError("sorm: DbSession is already open; sessions do not nest")
        self._conn = self.engine.connect()
        self._tx = self._conn.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        conn, tx = self._conn, self._tx
        self._conn = None
        self._tx = None
        try:
            if tx is not None and tx.is_active:
                if exc_type is None:
                    tx.commit()
                else:
                    tx.rollback()
        finally:
            if conn is not None:
                conn.close()
        return False

    def _connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("sorm: DbSession is not active; use it as a context manager")
        return self._conn

    def query(self, sql: str, params: Sequence[Any] = ()) -> CursorResult:
        """
        Execute a SELECT and return the open cursor result.
        The caller closes it.
        """
        conn = self._connection()
        stmt, bound = _bind_positional(sql, params)
        return conn.execute(stmt, bound)

    def exec(self, sql: str, params: Sequence[Any] = ()) -> ExecResult:
        """
        Execute a non-SELECT statement and return its generated id and
        affected row count.
        """
        conn = self._connection()
        stmt, bound = _bind_positional(sql, params)
        result = conn.execute(stmt, bound)
        try:
            return ExecResult(lastrowid=result.lastrowid, rowcount=int(result.rowcount))
        finally:
            result.close()

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        """
        Execute a SELECT expected to return 0 or 1 row. Raises if more than one row.
        """
        conn = self._connection()
        stmt, bound = _bind_positional(sql, params)
        row = conn.execute(stmt, bound).mappings().one_or_none()
        if row is None:
            return None
        return dict(row)
