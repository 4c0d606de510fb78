# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Error taxonomy for Press Ledger.

Assumptions:
- Validation happens before any mutation, so a ValidationError or
  NotFoundError means nothing was written
- Store failures are wrapped with the action and table that failed
- Nothing in the core retries; errors propagate to the caller
"""
from typing import Any, Optional


class PressLedgerError(Exception):
    """Base exception for all Press Ledger errors."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(PressLedgerError):
    """Raised for invalid input or a disallowed state transition."""
    pass


class NotFoundError(PressLedgerError):
    """Raised when a press, tool, cycle or regeneration does not exist."""

    def __init__(self, entity: str, identifier: Any):
        super().__init__(
            f"{entity} with ID {identifier} not found",
            {"entity": entity, "id": identifier},
        )
        self.entity = entity
        self.identifier = identifier


class AlreadyExistsError(ValidationError):
    """Raised when creating something that already exists (e.g. a binding).

    A ValidationError subtype: repeating a bind is invalid input too, it just
    gets the more specific conflict status.
    """
    pass


class PersistenceError(PressLedgerError):
    """Wraps an underlying store failure with operation context."""

    def __init__(self, action: str, entity: str, cause: Exception):
        super().__init__(
            f"failed to {action} {entity}: {cause}",
            {"action": action, "entity": entity},
        )
        self.action = action
        self.entity = entity
        self.cause = cause


class CompensationError(PressLedgerError):
    """Raised when undoing a failed multi-step write fails as well.

    Carries both errors; the store may be inconsistent and needs attention.
    """

    def __init__(self, original: Exception, compensation: Exception):
        super().__init__(
            f"{original} (rollback failed: {compensation})",
            {"original": str(original), "compensation": str(compensation)},
        )
        self.original = original
        self.compensation = compensation
