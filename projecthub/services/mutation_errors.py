from __future__ import annotations

from typing import Iterable


class MutationError(Exception):
    """Base class for failures raised while saving edited records."""


class PayloadValidationError(MutationError):
    """Raised when a mutation payload has no recognised shape; nothing is written."""


class ReferenceNotFoundError(MutationError, LookupError):
    """Raised when a natural-key reference (loan type, parameter, ...) does not resolve."""

    def __init__(self, label: str, value: object) -> None:
        super().__init__(f"{label} not found: {value}")
        self.label = label
        self.value = value


class PersistenceError(MutationError):
    """Raised when the database rejects a write."""


class RecordNotFoundError(PersistenceError):
    """Raised when a record addressed by id does not exist."""


class ProjectScopeError(PersistenceError):
    """Raised when a record addressed by id belongs to another project."""


class AuditWriteError(MutationError):
    """Raised inside the audit writer; logged and never propagated to callers."""


class UnsupportedEntityError(MutationError):
    """Raised when a mutation targets an entity with no registered handler."""

    def __init__(self, entity_name: str, valid_names: Iterable[str], *, kind: str = "entity") -> None:
        self.entity_name = entity_name
        self.valid_names = sorted(valid_names)
        super().__init__(f"Invalid {kind}: {entity_name}. Available: {', '.join(self.valid_names)}")


class SlotStateError(MutationError):
    """Raised when an edit session operation does not fit the state of a record slot."""
