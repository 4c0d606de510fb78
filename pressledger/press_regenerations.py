# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Press regeneration tracking.

A press regeneration is an overhaul of the press itself, after which its
counter starts again from zero. The ledger only records when it happened;
readings taken afterwards simply show a lower counter, which the partial
cycle calculation reports as a discontinuity.

Assumptions:
- At most one regeneration per press is in progress (completed_at NULL)
- start and stop take the press lock, so two starts can't both open one
- History is newest first
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pressledger.database.schema import PressRegeneration
from pressledger.database.session import store_errors, transaction
from pressledger.errors import NotFoundError, ValidationError
from pressledger.locking import press_lock
from pressledger.logging_config import get_logger, press_context
from pressledger.logging_utils import log_audit_event
from pressledger.models import Actor
from pressledger.validation import (
    normalize_datetime, utc_now, validate_actor, validate_id, validate_press_number
)

logger = get_logger(__name__)


def _find_open_regeneration(session: Session, press_number: int) -> Optional[PressRegeneration]:
    with store_errors("select", "press_regenerations"):
        return session.scalars(
            select(PressRegeneration)
            .where(
                PressRegeneration.press_number == press_number,
                PressRegeneration.completed_at.is_(None),
            )
            .order_by(PressRegeneration.id.desc())
            .limit(1)
        ).first()


def start_press_regeneration(
    session: Session,
    press_number: int,
    reason: Optional[str],
    actor: Actor,
    started_at: Optional[datetime] = None,
) -> PressRegeneration:
    """Open a regeneration for a press.

    Args:
        session: Database session
        press_number: Press being overhauled
        reason: Optional free text
        actor: Actor starting the regeneration
        started_at: Start time (defaults to now)

    Returns:
        PressRegeneration: The open regeneration

    Raises:
        ValidationError: On an invalid press or if one is already in progress
    """
    validate_press_number(press_number)
    validate_actor(actor)
    started_at = utc_now() if started_at is None else normalize_datetime(started_at, "started_at")

    with press_context(press_number, actor), press_lock(press_number):
        open_regeneration = _find_open_regeneration(session, press_number)
        if open_regeneration is not None:
            raise ValidationError(
                f"press {press_number} is already regenerating (regeneration {open_regeneration.id})"
            )

        logger.info("starting_press_regeneration", reason=reason)

        regeneration = PressRegeneration(
            press_number=press_number,
            started_at=started_at,
            reason=reason or None,
            performed_by=actor.id,
        )
        with transaction(session, "insert", "press_regenerations"):
            session.add(regeneration)
            session.flush()

    log_audit_event(actor, "CREATE", "PressRegeneration", regeneration.id, {
        "press_number": press_number, "started_at": started_at, "reason": reason,
    })
    return regeneration


def stop_press_regeneration(
    session: Session,
    press_number: int,
    actor: Actor,
    completed_at: Optional[datetime] = None,
) -> PressRegeneration:
    """Complete the regeneration in progress on a press.

    Raises:
        ValidationError: If no regeneration is in progress, or completed_at
            is before the start
    """
    validate_press_number(press_number)
    validate_actor(actor)
    completed_at = utc_now() if completed_at is None else normalize_datetime(completed_at, "completed_at")

    with press_context(press_number, actor), press_lock(press_number):
        regeneration = _find_open_regeneration(session, press_number)
        if regeneration is None:
            raise ValidationError(f"press {press_number} is not regenerating")
        if completed_at < regeneration.started_at:
            raise ValidationError(
                f"completed_at {completed_at.isoformat()} is before started_at "
                f"{regeneration.started_at.isoformat()}"
            )

        logger.info("stopping_press_regeneration", regeneration_id=regeneration.id)

        with transaction(session, "update", "press_regenerations"):
            regeneration.completed_at = completed_at
            session.flush()

    log_audit_event(actor, "UPDATE", "PressRegeneration", regeneration.id, {
        "completed_at": completed_at,
    })
    return regeneration


def get_press_regeneration(session: Session, regeneration_id: int) -> PressRegeneration:
    validate_id(regeneration_id, "press regeneration")

    with store_errors("select", "press_regenerations"):
        regeneration = session.get(PressRegeneration, regeneration_id)
    if regeneration is None:
        raise NotFoundError("press regeneration", regeneration_id)
    return regeneration


def get_last_press_regeneration(session: Session, press_number: int) -> PressRegeneration:
    """Newest regeneration of a press, finished or not.

    Raises:
        NotFoundError: If the press was never regenerated
    """
    validate_press_number(press_number)

    with store_errors("select", "press_regenerations"):
        regeneration = session.scalars(
            select(PressRegeneration)
            .where(PressRegeneration.press_number == press_number)
            .order_by(PressRegeneration.id.desc())
            .limit(1)
        ).first()
    if regeneration is None:
        raise NotFoundError("press regeneration for press", press_number)
    return regeneration


def get_press_regeneration_history(session: Session, press_number: int) -> List[PressRegeneration]:
    """All regenerations of a press, newest first."""
    validate_press_number(press_number)

    with store_errors("select", "press_regenerations"):
        return list(session.scalars(
            select(PressRegeneration)
            .where(PressRegeneration.press_number == press_number)
            .order_by(PressRegeneration.id.desc())
        ).all())


def update_press_regeneration(
    session: Session,
    regeneration_id: int,
    actor: Actor,
    started_at: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> PressRegeneration:
    """Correct the dates or the reason of a press regeneration.

    None leaves a field as it is; an empty reason clears it.
    """
    validate_actor(actor)
    if started_at is not None:
        started_at = normalize_datetime(started_at, "started_at")
    if completed_at is not None:
        completed_at = normalize_datetime(completed_at, "completed_at")

    regeneration = get_press_regeneration(session, regeneration_id)

    with press_context(regeneration.press_number, actor), press_lock(regeneration.press_number):
        new_start = started_at or regeneration.started_at
        new_end = completed_at or regeneration.completed_at
        if new_end is not None and new_end < new_start:
            raise ValidationError("completed_at must not be before started_at")

        with transaction(session, "update", "press_regenerations"):
            regeneration.started_at = new_start
            regeneration.completed_at = new_end
            if reason is not None:
                regeneration.reason = reason or None
            regeneration.performed_by = actor.id
            session.flush()

    log_audit_event(actor, "UPDATE", "PressRegeneration", regeneration_id, {
        "started_at": started_at, "completed_at": completed_at, "reason": reason,
    })
    return regeneration


def delete_press_regeneration(session: Session, regeneration_id: int, actor: Actor) -> None:
    validate_actor(actor)
    regeneration = get_press_regeneration(session, regeneration_id)
    press_number = regeneration.press_number

    with press_context(press_number, actor), press_lock(press_number):
        logger.info("deleting_press_regeneration", regeneration_id=regeneration_id)
        with transaction(session, "delete", "press_regenerations"):
            session.delete(regeneration)
            session.flush()

    log_audit_event(actor, "DELETE", "PressRegeneration", regeneration_id, {
        "press_number": press_number,
    })
