# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Logging utilities for Press Ledger.

Provides specialized logging functions for:
- Application logs (operational)
- Audit logs (who changed which cycle, tool or regeneration)

Assumptions:
- All logs use structlog for structured output
- Every mutation is attributed to an actor (id and display name)
"""
from typing import Any, Dict, Optional

from pressledger.logging_config import get_logger

# Get loggers for different categories
app_logger = get_logger("pressledger.application")
audit_logger = get_logger("pressledger.audit")


def log_application_event(
    event: str,
    **kwargs: Any
) -> None:
    """Log an application operational event.

    Args:
        event: Event name (e.g., "api_request", "press_lock_acquired")
        **kwargs: Additional context
    """
    app_logger.info(event, **kwargs)


def log_audit_event(
    actor: Any,
    operation: str,
    entity_type: str,
    entity_id: Any,
    changes: Optional[Dict[str, Any]] = None,
    **kwargs: Any
) -> None:
    """Log an audit event for a data modification.

    Args:
        actor: Actor who performed the operation (needs ``id`` and ``name``)
        operation: Operation type (CREATE, UPDATE, DELETE, BIND, ...)
        entity_type: Type of entity (CycleRecord, Tool, RegenerationEvent)
        entity_id: ID of the entity
        changes: Dictionary of changed fields
        **kwargs: Additional context

    Assumptions:
    - Called only after the change has been committed
    """
    audit_logger.info(
        "audit_event",
        actor_id=actor.id,
        actor_name=actor.name,
        operation=operation,
        entity_type=entity_type,
        entity_id=str(entity_id),
        changes=_serialize_changes(changes) if changes else None,
        **kwargs
    )


def _serialize_changes(data: Dict[str, Any]) -> Dict[str, Any]:
    """Make a change dict JSON friendly.

    Enum members become their values and datetimes become ISO strings,
    so the JSON renderer never falls back to repr().
    """
    serialized = {}
    for key, value in data.items():
        if hasattr(value, "isoformat"):
            serialized[key] = value.isoformat()
        elif hasattr(value, "value"):
            serialized[key] = value.value
        elif isinstance(value, dict):
            serialized[key] = _serialize_changes(value)
        else:
            serialized[key] = value

    return serialized
