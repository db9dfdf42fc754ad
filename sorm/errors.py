class SormError(Exception):
    """Base exception for sorm errors."""


class EntityUsageError(SormError, TypeError):
    """An operation was called with something that is not an entity instance."""


class EntityDefinitionError(SormError, TypeError):
    """An entity class cannot be mapped to a table."""


class SnapshotError(SormError, RuntimeError):
    """Dirty tracking was requested for an entity without a valid snapshot."""


class EntityStateError(SormError, RuntimeError):
    """The entity is in a state that does not allow the operation."""


class RelationCycleError(SormError, RuntimeError):
    """A cascading save reached an unsaved entity that is already being saved."""


class InvalidPrimaryError(SormError, ValueError):
    """The primary key field is missing or is not an integer field."""


class DbWriteError(SormError):
    """Any failure during DB write."""


class DbLoadError(SormError):
    """Any failure during DB load."""
