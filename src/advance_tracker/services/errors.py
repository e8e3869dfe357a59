"""Service-level error taxonomy."""

from __future__ import annotations

from uuid import UUID


class ActionNotPermittedError(Exception):
    """The acting user lacks authority for the requested action."""

    def __init__(self, action: str, reason: str | None = None):
        self.action = action
        self.reason = reason
        msg = f"Action not permitted: {action}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class InvalidInputError(ValueError):
    """Submitted data failed validation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class EntityNotFoundError(LookupError):
    """Entity does not exist or is outside the requester's visibility scope."""

    def __init__(self, entity_type: str, entity_id: UUID | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class ExternalWriteError(Exception):
    """A persistence or storage collaborator call failed."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"External write failed during {operation}")
