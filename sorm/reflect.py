from __future__ import annotations

import dataclasses
import re
import sys
import types
import typing
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .entity import COLUMN_KEY, PRIMARY_KEY, UNSIGNED_KEY, Entity
from .errors import EntityDefinitionError, EntityUsageError

TABLE_SUFFIX = "Entity"

_TRUE_STRINGS = frozenset({"1", "t", "T", "true", "TRUE", "True"})
_FALSE_STRINGS = frozenset({"0", "f", "F", "false", "FALSE", "False"})
_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that an identifier (table/column name) is safe for SQL interpolation.

    Identifiers are restricted to alphanumeric characters and underscores and
    to MySQL's 64-character limit.

    Raises:
        EntityDefinitionError: If the identifier is not a string or is unsafe
    """
    if not isinstance(name, str):
        raise EntityDefinitionError(
            f"{identifier_type} must be a string, got {type(name).__name__}"
        )

    if not _IDENTIFIER_RE.match(name):
        raise EntityDefinitionError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    if len(name) > 64:
        raise EntityDefinitionError(f"{identifier_type} {name!r} exceeds the 64-character limit")

    return name


def parse_bool(value: bool | str) -> bool:
    """
    Parse a primary-key marker.

    Accepts real bools and the strings 1, t, T, TRUE, true, True, 0, f, F,
    FALSE, false, False. Anything else raises ValueError.
    """
    if isinstance(value, bool):
        return value
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    raise ValueError(f"invalid boolean marker: {value!r}")


@dataclass(frozen=True)
class ColumnInfo:
    """A persisted field of an entity class."""
    name: str  # attribute name
    column: str
    primary: bool = False
    unsigned: bool = False
    python_type: Optional[type] = None
    related: Optional[type] = None  # Entity subclass for relation fields

    @property
    def is_integer(self) -> bool:
        return (
            self.python_type is not None
            and issubclass(self.python_type, int)
            and not issubclass(self.python_type, bool)
        )


@dataclass(frozen=True)
class EntityDescriptor:
    """
    Column mapping of one entity class.

    Built once per class by ``describe()`` and reused by every operation.
    """
    entity_type: type
    table: str
    columns: tuple[ColumnInfo, ...]
    primary: Optional[ColumnInfo]
    snapshot_type: type
    by_column: dict[str, ColumnInfo] = field(default_factory=dict)
    by_name: dict[str, ColumnInfo] = field(default_factory=dict)

    def resolve_column(self, name: str) -> str:
        """
        Return the column for ``name``, which may be a column name or a mapped
        attribute name. Unknown names are validated and returned unchanged.
        """
        if name in self.by_column:
            return name
        info = self.by_name.get(name)
        if info is not None:
            return info.column
        return _validate_identifier(name, "column")


_DESCRIPTORS: dict[type, EntityDescriptor] = {}


def must_be_entity(obj: Any, operation: str) -> None:
    """Raise EntityUsageError unless ``obj`` is an entity instance."""
    if isinstance(obj, type):
        raise EntityUsageError(
            f"sorm: {operation} call using class {obj.__name__} instead of an instance"
        )
    if not isinstance(obj, Entity) or not dataclasses.is_dataclass(obj):
        raise EntityUsageError(
            f"sorm: {operation} call using non-entity parameter of type {type(obj).__name__}"
        )


def table_name(obj: Any) -> str:
    return describe(obj).table


def describe(obj: Any) -> EntityDescriptor:
    """
    Return the column mapping for an entity instance or class.

    Raises:
        EntityUsageError: If ``obj`` is neither an entity nor an entity class
        EntityDefinitionError: If the class cannot be mapped
    """
    cls = obj if isinstance(obj, type) else type(obj)
    descriptor = _DESCRIPTORS.get(cls)
    if descriptor is None:
        descriptor = _build_descriptor(cls)
        _DESCRIPTORS[cls] = descriptor
    return descriptor


def count_columns(obj: Any) -> int:
    return len(describe(obj).columns)


def _derive_table_name(cls: type) -> str:
    explicit = getattr(cls, "__tablename__", None)
    if explicit:
        return _validate_identifier(explicit, "table")

    name = cls.__name__
    if name.endswith(TABLE_SUFFIX) and len(name) > len(TABLE_SUFFIX):
        name = name[: -len(TABLE_SUFFIX)]
    return _validate_identifier(name.lower(), "table")


def _entity_namespace(cls: type) -> dict[str, type]:
    """Entity classes by name, so annotations may name classes defined inside functions."""
    namespace: dict[str, type] = {}
    pending: list[type] = [Entity]
    while pending:
        for sub in pending.pop().__subclasses__():
            namespace[sub.__name__] = sub
            pending.append(sub)
    namespace[cls.__name__] = cls
    return namespace


def _annotation_module(cls: type, name: str) -> str:
    for klass in cls.__mro__:
        if name in klass.__dict__.get("__annotations__", {}):
            return klass.__module__
    return cls.__module__


def _resolve_hint(cls: type, f: dataclasses.Field, namespace: dict[str, type]) -> Any:
    """
    Evaluate the annotation of one field.

    String annotations are evaluated against the module that declared the
    field, falling back to the known entity classes. Raises NameError,
    TypeError or SyntaxError if the annotation cannot be evaluated.
    """
    hint = f.type
    if not isinstance(hint, str):
        return hint
    module = sys.modules.get(_annotation_module(cls, f.name))
    scope: dict[str, Any] = dict(namespace)
    if module is not None:
        scope.update(vars(module))
    return eval(hint, scope)


def _concrete_type(hint: Any) -> Optional[type]:
    """Reduce an annotation to a plain class, unwrapping ``X | None``."""
    if hint is Any:
        return None
    origin = typing.get_origin(hint)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        if len(args) != 1:
            return None
        hint = args[0]
        origin = typing.get_origin(hint)

    if isinstance(hint, type) and origin is None:
        return hint
    return None


def _is_primary(f: dataclasses.Field) -> bool:
    marker = f.metadata.get(PRIMARY_KEY, False)
    try:
        return parse_bool(marker)
    except ValueError:
        return False


def _build_descriptor(cls: type) -> EntityDescriptor:
    if not issubclass(cls, Entity) or not dataclasses.is_dataclass(cls):
        raise EntityUsageError(f"sorm: {cls.__name__} is not a dataclass entity")

    namespace = _entity_namespace(cls)
    columns: list[ColumnInfo] = []
    primary: Optional[ColumnInfo] = None

    for f in dataclasses.fields(cls):
        if f.init and f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            raise EntityDefinitionError(
                f"{cls.__name__}.{f.name} has no default; entities must be constructible without arguments"
            )

        column_name = f.metadata.get(COLUMN_KEY)
        if not column_name or f.name.startswith("_"):
            continue

        try:
            hint = _resolve_hint(cls, f, namespace)
        except (NameError, TypeError, SyntaxError) as exc:
            raise EntityDefinitionError(
                f"{cls.__name__}.{f.name}: cannot resolve annotation {f.type!r}: {exc}"
            ) from exc

        python_type = _concrete_type(hint)
        related = None
        if python_type is not None and issubclass(python_type, Entity):
            related = python_type

        info = ColumnInfo(
            name=f.name,
            column=_validate_identifier(column_name, "column"),
            primary=_is_primary(f),
            unsigned=bool(f.metadata.get(UNSIGNED_KEY, False)),
            python_type=python_type,
            related=related,
        )

        if info.primary:
            if primary is not None:
                raise EntityDefinitionError(
                    f"{cls.__name__} declares more than one primary field: "
                    f"{primary.name!r} and {info.name!r}"
                )
            primary = info
        columns.append(info)

    snapshot_type = dataclasses.make_dataclass(
        f"{cls.__name__}Snapshot",
        [(info.name, Any) for info in columns],
        frozen=True,
    )
    snapshot_type.__module__ = cls.__module__

    return EntityDescriptor(
        entity_type=cls,
        table=_derive_table_name(cls),
        columns=tuple(columns),
        primary=primary,
        snapshot_type=snapshot_type,
        by_column={info.column: info for info in columns},
        by_name={info.name: info for info in columns},
    )
