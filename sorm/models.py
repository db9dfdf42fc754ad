from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class DbOperationType(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class DbOperation:
    """
    A single generated DB statement with its positional parameters.
    """
    table: str
    op_type: DbOperationType
    sql: str
    params: list[Any] = field(default_factory=list)
    # columns written (INSERT/UPDATE) or matched (DELETE); empty means no-op
    columns: list[str] = field(default_factory=list)
    id_value: Any = None  # primary key, when known


@dataclass
class WriteResult:
    """
    Outcome of a save or delete.

    ``executed`` is False for no-ops and for failed statements; ``error``
    holds the driver exception of a failed statement.
    """
    op_type: DbOperationType
    executed: bool
    error: Optional[Exception] = None
    rowcount: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None
