# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Tool regeneration tracking.

A regeneration rebuilds a tool and resets its running total. It is started
against the cycle record that was current at the time; readings recorded
after that record count towards the tool's new total.

Assumptions:
- start: regenerating flag on + event insert, one transaction
- stop: flag off, event kept as history
- abort: newest event deleted + flag off, one transaction; idempotent
- Only the newest event of a tool defines its baseline
"""
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pressledger.cycles import get_cycle, list_cycles_for_tool
from pressledger.database.schema import RegenerationEvent
from pressledger.database.session import store_errors, transaction
from pressledger.errors import NotFoundError, ValidationError
from pressledger.logging_config import get_logger, press_context
from pressledger.logging_utils import log_audit_event
from pressledger.models import Actor, CycleReading
from pressledger.partial_cycles import annotate_cycles
from pressledger.tools import get_tool, tool_press_lock, update_regenerating
from pressledger.validation import validate_actor, validate_id

logger = get_logger(__name__)


def add_regeneration(
    session: Session,
    tool_id: int,
    cycle_id: int,
    reason: Optional[str],
    actor: Actor,
) -> RegenerationEvent:
    """Insert a regeneration event without touching the tool flag.

    The caller owns the transaction.
    """
    validate_id(tool_id, "tool")
    validate_id(cycle_id, "cycle")
    validate_actor(actor)

    logger.debug("adding_tool_regeneration", actor=str(actor), tool_id=tool_id, cycle_id=cycle_id)

    regeneration = RegenerationEvent(
        tool_id=tool_id,
        cycle_id=cycle_id,
        reason=reason or None,
        performed_by=actor.id,
    )
    session.add(regeneration)
    session.flush()
    return regeneration


def get_regeneration(session: Session, regeneration_id: int) -> RegenerationEvent:
    validate_id(regeneration_id, "regeneration")

    with store_errors("select", "tool_regenerations"):
        regeneration = session.get(RegenerationEvent, regeneration_id)
    if regeneration is None:
        raise NotFoundError("tool regeneration", regeneration_id)
    return regeneration


def update_regeneration(
    session: Session,
    regeneration_id: int,
    actor: Actor,
    cycle_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> RegenerationEvent:
    """Correct the baseline cycle or the reason of a regeneration.

    Raises:
        NotFoundError: If the regeneration or the new cycle does not exist
    """
    validate_actor(actor)
    if cycle_id is not None:
        validate_id(cycle_id, "cycle")

    regeneration = get_regeneration(session, regeneration_id)
    if cycle_id is not None:
        get_cycle(session, cycle_id)

    with transaction(session, "update", "tool_regenerations"):
        if cycle_id is not None:
            regeneration.cycle_id = cycle_id
        if reason is not None:
            regeneration.reason = reason or None
        regeneration.performed_by = actor.id
        session.flush()

    log_audit_event(actor, "UPDATE", "RegenerationEvent", regeneration_id, {
        "cycle_id": cycle_id, "reason": reason,
    })
    return regeneration


def delete_regeneration(session: Session, regeneration_id: int, actor: Actor) -> None:
    """Delete a regeneration event. Used carefully: it moves the tool's baseline."""
    validate_actor(actor)
    regeneration = get_regeneration(session, regeneration_id)

    with transaction(session, "delete", "tool_regenerations"):
        session.delete(regeneration)
        session.flush()

    log_audit_event(actor, "DELETE", "RegenerationEvent", regeneration_id)


def start_regeneration(
    session: Session,
    tool_id: int,
    cycle_id: int,
    reason: Optional[str],
    actor: Actor,
) -> RegenerationEvent:
    """Start regenerating a tool.

    Args:
        session: Database session
        tool_id: Tool sent to regeneration
        cycle_id: Reading that marks the new baseline
        reason: Optional free text
        actor: Actor starting the regeneration

    Returns:
        RegenerationEvent: The created event

    Raises:
        ValidationError: On invalid ids or if the tool is already regenerating
        NotFoundError: If the tool or the cycle does not exist
        PersistenceError: If the store fails; nothing is written
        CompensationError: If rolling back the flag change fails as well
    """
    validate_id(tool_id, "tool")
    validate_id(cycle_id, "cycle")
    validate_actor(actor)

    with tool_press_lock(session, [tool_id]) as (tool,):
        get_cycle(session, cycle_id)
        if tool.regenerating:
            raise ValidationError(f"tool {tool_id} is already regenerating")

        with press_context(tool.press, actor):
            logger.info("starting_tool_regeneration", tool_id=tool_id, cycle_id=cycle_id)

            with transaction(session, "insert", "tool_regenerations"):
                update_regenerating(session, tool_id, True, actor)
                regeneration = add_regeneration(session, tool_id, cycle_id, reason, actor)
                regeneration_id = regeneration.id

    logger.info("started_tool_regeneration", tool_id=tool_id, regeneration_id=regeneration_id)
    log_audit_event(actor, "CREATE", "RegenerationEvent", regeneration_id, {
        "tool_id": tool_id, "cycle_id": cycle_id, "reason": reason,
    })
    return regeneration


def stop_regeneration(session: Session, tool_id: int, actor: Actor) -> None:
    """Finish a regeneration: clear the flag, keep the event."""
    validate_id(tool_id, "tool")
    validate_actor(actor)

    logger.info("stopping_tool_regeneration", actor=str(actor), tool_id=tool_id)

    with tool_press_lock(session, [tool_id]):
        with transaction(session, "update", "tools"):
            changed = update_regenerating(session, tool_id, False, actor)

    if changed:
        log_audit_event(actor, "UPDATE", "Tool", tool_id, {"regenerating": False})


def abort_regeneration(session: Session, tool_id: int, actor: Actor) -> None:
    """Cancel a regeneration: delete the newest event and clear the flag.

    Assumptions:
    - No event is not an error; the flag is cleared anyway
    """
    validate_id(tool_id, "tool")
    validate_actor(actor)

    with tool_press_lock(session, [tool_id]):
        last = _find_last_regeneration(session, tool_id)
        last_id = last.id if last is not None else None

        logger.info(
            "aborting_tool_regeneration",
            actor=str(actor),
            tool_id=tool_id,
            regeneration_id=last_id,
        )

        with transaction(session, "delete", "tool_regenerations"):
            if last is not None:
                session.delete(last)
                session.flush()
            update_regenerating(session, tool_id, False, actor)

    log_audit_event(actor, "ABORT", "RegenerationEvent", last_id, {
        "tool_id": tool_id,
    })


def _find_last_regeneration(session: Session, tool_id: int) -> Optional[RegenerationEvent]:
    with store_errors("select", "tool_regenerations"):
        return session.scalars(
            select(RegenerationEvent)
            .where(RegenerationEvent.tool_id == tool_id)
            .order_by(RegenerationEvent.id.desc())
            .limit(1)
        ).first()


def get_last_regeneration(session: Session, tool_id: int) -> RegenerationEvent:
    """Newest regeneration event of a tool.

    Raises:
        NotFoundError: If the tool was never regenerated
    """
    validate_id(tool_id, "tool")

    regeneration = _find_last_regeneration(session, tool_id)
    if regeneration is None:
        raise NotFoundError("tool regeneration for tool", tool_id)
    return regeneration


def get_regeneration_history(session: Session, tool_id: int) -> List[RegenerationEvent]:
    """All regeneration events of a tool, newest first."""
    validate_id(tool_id, "tool")

    with store_errors("select", "tool_regenerations"):
        return list(session.scalars(
            select(RegenerationEvent)
            .where(RegenerationEvent.tool_id == tool_id)
            .order_by(RegenerationEvent.id.desc())
        ).all())


def get_running_total(
    session: Session,
    tool_id: int,
    readings: Iterable[CycleReading],
) -> int:
    """Cycles a tool has accumulated since its last regeneration.

    Args:
        session: Database session
        tool_id: Tool to total
        readings: Annotated readings; those of other tools are ignored

    Returns:
        int: Sum of effective partial cycles of readings with an id greater
        than the baseline cycle of the newest regeneration (all readings if
        the tool was never regenerated)
    """
    validate_id(tool_id, "tool")

    last = _find_last_regeneration(session, tool_id)
    baseline = last.cycle_id if last is not None else 0

    return sum(
        reading.effective_partial
        for reading in readings
        if reading.tool_id == tool_id and reading.id > baseline
    )


def get_current_total_cycles(session: Session, tool_id: int) -> int:
    """Running total of a tool, loading its readings from the ledger."""
    get_tool(session, tool_id)
    readings = annotate_cycles(session, list_cycles_for_tool(session, tool_id))
    return get_running_total(session, tool_id, readings)
