# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Cycle ledger: persistence of cumulative press counter readings.

Assumptions:
- Readings are append-only; corrections keep the id, deletes remove the row
- id order is recording order and is what partial cycles are derived from
- Writers of one press are serialized by the press lock
- Partial cycles are never stored; see pressledger.partial_cycles
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pressledger.database.schema import CycleRecord, Position, RegenerationEvent
from pressledger.database.session import store_errors, transaction
from pressledger.errors import NotFoundError, ValidationError
from pressledger.locking import press_lock
from pressledger.logging_config import get_logger, press_context
from pressledger.logging_utils import log_audit_event
from pressledger.models import Actor
from pressledger.tools import tool_exists
from pressledger.validation import (
    normalize_datetime, utc_now, validate_actor, validate_id, validate_position,
    validate_press_number, validate_total_cycles
)

logger = get_logger(__name__)

_UPDATABLE_FIELDS = ("press_number", "tool_id", "position", "total_cycles", "date")


def add_cycle(
    session: Session,
    press_number: int,
    tool_id: int,
    position: Position | str,
    total_cycles: int,
    actor: Actor,
    date: Optional[datetime] = None,
) -> int:
    """Record a cumulative counter reading.

    Args:
        session: Database session
        press_number: Press the reading was taken on
        tool_id: Tool mounted in the slot
        position: Slot the counter belongs to
        total_cycles: Counter value
        actor: Actor reporting the reading
        date: Reading time (defaults to now)

    Returns:
        int: ID of the new cycle record

    Raises:
        ValidationError: On invalid press, id, position, counter or actor
        NotFoundError: If the tool does not exist
        PersistenceError: If the insert fails
    """
    validate_press_number(press_number)
    validate_id(tool_id, "tool")
    position = validate_position(position)
    validate_total_cycles(total_cycles)
    validate_actor(actor)

    date = utc_now() if date is None else normalize_datetime(date)

    if not tool_exists(session, tool_id):
        raise NotFoundError("tool", tool_id)

    with press_context(press_number, actor), press_lock(press_number):
        logger.debug(
            "adding_press_cycle",
            actor=str(actor),
            tool_id=tool_id,
            position=position.value,
            total_cycles=total_cycles,
        )

        record = build_cycle_record(press_number, tool_id, position, total_cycles, actor, date)
        with transaction(session, "insert", "press_cycles"):
            session.add(record)
            session.flush()
            cycle_id = record.id

    log_audit_event(actor, "CREATE", "CycleRecord", cycle_id, {
        "press_number": press_number,
        "tool_id": tool_id,
        "position": position,
        "total_cycles": total_cycles,
    })
    return cycle_id


def build_cycle_record(
    press_number: int,
    tool_id: int,
    position: Position,
    total_cycles: int,
    actor: Actor,
    date: datetime,
) -> CycleRecord:
    """Unsaved reading row; for callers that insert it inside their own transaction."""
    return CycleRecord(
        press_number=press_number,
        tool_id=tool_id,
        tool_position=position,
        total_cycles=total_cycles,
        date=date,
        performed_by=actor.id,
    )


def get_cycle(session: Session, cycle_id: int) -> CycleRecord:
    """Get a cycle record by id.

    Raises:
        ValidationError: If cycle_id is not a positive integer
        NotFoundError: If no such record exists
    """
    validate_id(cycle_id, "cycle")

    with store_errors("select", "press_cycles"):
        record = session.get(CycleRecord, cycle_id)
    if record is None:
        raise NotFoundError("press cycle", cycle_id)
    return record


def list_cycles(session: Session) -> List[CycleRecord]:
    """List every cycle record, newest first."""
    with store_errors("select", "press_cycles"):
        return list(session.scalars(
            select(CycleRecord).order_by(CycleRecord.id.desc())
        ).all())


def list_cycles_for_tool(session: Session, tool_id: int) -> List[CycleRecord]:
    """List the readings taken while a tool was mounted, newest date first."""
    validate_id(tool_id, "tool")

    logger.debug("listing_press_cycles_for_tool", tool_id=tool_id)

    with store_errors("select", "press_cycles"):
        return list(session.scalars(
            select(CycleRecord)
            .where(CycleRecord.tool_id == tool_id)
            .order_by(CycleRecord.date.desc(), CycleRecord.id.desc())
        ).all())


def list_cycles_for_press(
    session: Session,
    press_number: int,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> List[CycleRecord]:
    """List the readings of a press, newest first, optionally paginated.

    Args:
        session: Database session
        press_number: Press to list
        limit: Maximum number of records (None for all)
        offset: Number of records to skip (allowed without limit)
    """
    validate_press_number(press_number)
    if limit is not None and limit < 0:
        raise ValidationError(f"limit must not be negative, got {limit}")
    if offset is not None and offset < 0:
        raise ValidationError(f"offset must not be negative, got {offset}")

    logger.debug("listing_press_cycles_for_press", press_number=press_number, limit=limit, offset=offset)

    query = (
        select(CycleRecord)
        .where(CycleRecord.press_number == press_number)
        .order_by(CycleRecord.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    if offset is not None:
        query = query.offset(offset)

    with store_errors("select", "press_cycles"):
        return list(session.scalars(query).all())


def update_cycle(
    session: Session,
    cycle_id: int,
    actor: Actor,
    **changes,
) -> CycleRecord:
    """Correct a cycle record in place.

    Args:
        session: Database session
        cycle_id: Record to correct
        actor: Actor making the correction; becomes performed_by
        **changes: Any of press_number, tool_id, position, total_cycles, date

    Returns:
        CycleRecord: The corrected record

    Assumptions:
    - The id (and so the recording order) never changes
    - Moving a record between presses locks both presses
    """
    validate_id(cycle_id, "cycle")
    validate_actor(actor)

    unknown = set(changes) - set(_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"unknown cycle fields: {', '.join(sorted(unknown))}")

    if "press_number" in changes:
        validate_press_number(changes["press_number"])
    if "tool_id" in changes:
        validate_id(changes["tool_id"], "tool")
    if "position" in changes:
        changes["position"] = validate_position(changes["position"])
    if "total_cycles" in changes:
        validate_total_cycles(changes["total_cycles"])
    if "date" in changes:
        if changes["date"] is None:
            raise ValidationError("date must not be empty")
        changes["date"] = normalize_datetime(changes["date"])

    record = get_cycle(session, cycle_id)
    if "tool_id" in changes and not tool_exists(session, changes["tool_id"]):
        raise NotFoundError("tool", changes["tool_id"])

    logger.debug("updating_press_cycle", actor=str(actor), cycle_id=cycle_id, changes=list(changes))

    new_press = changes.get("press_number", record.press_number)
    with press_lock(record.press_number, new_press):
        with transaction(session, "update", "press_cycles"):
            if "press_number" in changes:
                record.press_number = changes["press_number"]
            if "tool_id" in changes:
                record.tool_id = changes["tool_id"]
            if "position" in changes:
                record.tool_position = changes["position"]
            if "total_cycles" in changes:
                record.total_cycles = changes["total_cycles"]
            if "date" in changes:
                record.date = changes["date"]
            record.performed_by = actor.id
            session.flush()

    log_audit_event(actor, "UPDATE", "CycleRecord", cycle_id, changes)
    return record


def delete_cycle(session: Session, cycle_id: int, actor: Actor) -> None:
    """Delete a cycle record.

    Raises:
        NotFoundError: If no such record exists
        ValidationError: If a regeneration event uses the record as its baseline
    """
    validate_id(cycle_id, "cycle")
    validate_actor(actor)

    record = get_cycle(session, cycle_id)

    with store_errors("select", "tool_regenerations"):
        regeneration_id = session.scalars(
            select(RegenerationEvent.id).where(RegenerationEvent.cycle_id == cycle_id)
        ).first()
    if regeneration_id is not None:
        raise ValidationError(
            f"press cycle {cycle_id} is the baseline of regeneration {regeneration_id} and can't be deleted"
        )

    logger.debug("deleting_press_cycle", actor=str(actor), cycle_id=cycle_id)

    with press_lock(record.press_number):
        with transaction(session, "delete", "press_cycles"):
            session.delete(record)
            session.flush()

    log_audit_event(actor, "DELETE", "CycleRecord", cycle_id)
