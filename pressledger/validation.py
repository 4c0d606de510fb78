# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Input validation shared by the ledger, regeneration and binding functions.

Every public write validates its arguments here before touching the store.
"""
from datetime import datetime, UTC
from typing import Any

from pressledger.database.schema import PRESS_NUMBERS, Position
from pressledger.errors import ValidationError


def validate_id(value: Any, name: str) -> int:
    """Require a positive integer identifier.

    Raises:
        ValidationError: If value is not an int or not > 0
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} id must be an integer, got {value!r}")
    if value <= 0:
        raise ValidationError(f"{name} id must be positive, got {value}")
    return value


def validate_press_number(value: Any) -> int:
    """Require one of the known press numbers (0, 2, 3, 4, 5)."""
    if isinstance(value, bool) or not isinstance(value, int) or value not in PRESS_NUMBERS:
        raise ValidationError(
            f"invalid press number: {value!r} (must be one of {', '.join(map(str, PRESS_NUMBERS))})"
        )
    return value


def validate_position(value: Any) -> Position:
    """Coerce a string or Position into a Position."""
    try:
        return Position(value)
    except (ValueError, TypeError):
        valid = ", ".join(p.value for p in Position)
        raise ValidationError(f"invalid tool position: {value!r} (must be one of {valid})")


def validate_total_cycles(value: Any) -> int:
    """Require a non-negative integer counter value."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"total cycles must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError(f"total cycles must not be negative, got {value}")
    return value


def validate_actor(actor: Any) -> None:
    """Require an actor with a positive id."""
    if actor is None:
        raise ValidationError("actor is required")
    validate_id(getattr(actor, "id", None), "actor")


def normalize_datetime(value: Any, name: str = "date") -> datetime:
    """Convert a datetime to naive UTC, the form dates are stored in.

    Aware values are shifted to UTC before the offset is dropped; naive
    values are taken to be UTC already.
    """
    if not isinstance(value, datetime):
        raise ValidationError(f"{name} must be a datetime, got {value!r}")
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


def utc_now() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(UTC).replace(tzinfo=None)
