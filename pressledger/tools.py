# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Tool repository.

Stores tools and the parts of their state the ledger depends on: position,
press assignment, binding partner and the regenerating flag.

Assumptions:
- Tool identity is (position, format, code)
- Changing a tool's press also moves its bound partner
- Dead tools stay in the table but are excluded from press utilization
"""
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pressledger.database.schema import PRESS_NUMBERS, CycleRecord, Position, Tool
from pressledger.database.session import store_errors, transaction
from pressledger.errors import AlreadyExistsError, NotFoundError, ValidationError
from pressledger.locking import press_lock
from pressledger.logging_config import get_logger
from pressledger.logging_utils import log_audit_event
from pressledger.models import Actor, PressUtilization
from pressledger.validation import (
    validate_actor, validate_id, validate_position, validate_press_number
)

logger = get_logger(__name__)


def create_tool(
    session: Session,
    position: Position | str,
    width: int,
    height: int,
    code: str,
    actor: Actor,
    tool_type: Optional[str] = None,
    press: Optional[int] = None,
) -> Tool:
    """Create a tool.

    Args:
        session: Database session
        position: Mounting position
        width: Format width
        height: Format height
        code: Tool code (e.g. "G01")
        actor: Actor creating the tool
        tool_type: Optional tool type (e.g. "FC", "GTC")
        press: Optional press the tool is mounted on

    Returns:
        Tool: The created tool

    Raises:
        ValidationError: On invalid input
        AlreadyExistsError: If a tool with the same position, format and code exists
    """
    position = validate_position(position)
    validate_actor(actor)
    if not code or not code.strip():
        raise ValidationError("tool code is required")
    if width <= 0 or height <= 0:
        raise ValidationError(f"invalid tool format: {width}x{height}")
    if press is not None:
        validate_press_number(press)

    with store_errors("select", "tools"):
        duplicate = session.scalars(
            select(Tool.id).where(
                Tool.position == position,
                Tool.width == width,
                Tool.height == height,
                Tool.code == code,
            )
        ).first()
    if duplicate is not None:
        raise AlreadyExistsError(
            f"tool with position {position.value}, format {width}x{height} and code {code} already exists"
        )

    logger.debug("creating_tool", actor=str(actor), position=position.value, code=code, press=press)

    tool = Tool(
        position=position,
        width=width,
        height=height,
        code=code,
        type=tool_type,
        press=press,
        regenerating=False,
        is_dead=False,
    )
    with transaction(session, "insert", "tools"):
        session.add(tool)
        session.flush()

    log_audit_event(actor, "CREATE", "Tool", tool.id, {
        "position": position, "format": tool.format, "code": code, "press": press,
    })
    return tool


def get_tool(session: Session, tool_id: int, refresh: bool = False) -> Tool:
    """Get a tool by id.

    Args:
        session: Database session
        tool_id: Tool to load
        refresh: Reload from the store even if the tool is in the identity map

    Raises:
        ValidationError: If tool_id is not a positive integer
        NotFoundError: If no such tool exists
    """
    validate_id(tool_id, "tool")

    with store_errors("select", "tools"):
        tool = session.get(Tool, tool_id, populate_existing=refresh)
    if tool is None:
        raise NotFoundError("tool", tool_id)
    return tool


@contextmanager
def tool_press_lock(
    session: Session,
    tool_ids: Iterable[int],
    *press_numbers: Optional[int],
) -> Iterator[List[Tool]]:
    """Hold the press locks of some tools, plus any extra presses.

    Tools are re-read once the locks are held. If one of them moved to
    another press in the meantime, the locks are released and taken again
    for the new presses.

    Args:
        session: Database session
        tool_ids: Tools whose current press must be locked
        *press_numbers: Further presses to lock with them

    Yields:
        list: The tools, freshly loaded, in tool_ids order

    Raises:
        NotFoundError: If a tool does not exist
    """
    tool_ids = list(tool_ids)
    presses = [get_tool(session, i, refresh=True).press for i in tool_ids]
    while True:
        with press_lock(*presses, *press_numbers):
            tools = [get_tool(session, i, refresh=True) for i in tool_ids]
            current = [t.press for t in tools]
            if current == presses:
                yield tools
                return
        logger.debug("tool_moved_while_locking", tool_ids=tool_ids, presses=presses, current=current)
        presses = current


def tool_exists(session: Session, tool_id: int) -> bool:
    with store_errors("select", "tools"):
        return session.scalars(select(Tool.id).where(Tool.id == tool_id)).first() is not None


def list_tools(session: Session, include_dead: bool = True) -> List[Tool]:
    """List tools ordered by format and code."""
    query = select(Tool)
    if not include_dead:
        query = query.where(Tool.is_dead.is_(False))
    query = query.order_by(Tool.width, Tool.height, Tool.code, Tool.id)

    with store_errors("select", "tools"):
        return list(session.scalars(query).all())


def list_tools_for_press(session: Session, press_number: int) -> List[Tool]:
    """List tools mounted on a press that are neither regenerating nor dead."""
    validate_press_number(press_number)

    query = select(Tool).where(
        Tool.press == press_number,
        Tool.regenerating.is_(False),
        Tool.is_dead.is_(False),
    ).order_by(Tool.id)

    with store_errors("select", "tools"):
        tools = list(session.scalars(query).all())

    return sorted(tools, key=lambda t: t.position.rank)


def get_tool_lookup(session: Session) -> Dict[int, Tool]:
    """Map of tool id to tool, for reporting."""
    return {tool.id: tool for tool in list_tools(session)}


def update_tool_press(
    session: Session,
    tool_id: int,
    press: Optional[int],
    actor: Actor,
) -> Tool:
    """Assign a tool (and its bound partner) to a press, or clear it.

    Args:
        session: Database session
        tool_id: Tool to move
        press: Target press, or None to unmount
        actor: Actor performing the change

    Returns:
        Tool: The updated tool

    Assumptions:
    - The bound partner follows the tool in the same transaction
    - Both the old and the new press are locked while moving
    """
    validate_id(tool_id, "tool")
    validate_actor(actor)
    if press is not None:
        validate_press_number(press)

    with tool_press_lock(session, [tool_id], press) as (tool,):
        previous = tool.press
        logger.debug("updating_tool_press", actor=str(actor), tool_id=tool_id, press=press)

        with transaction(session, "update", "tools"):
            tool.press = press
            if tool.binding is not None:
                partner = session.get(Tool, tool.binding)
                if partner is not None:
                    partner.press = press
            session.flush()

    log_audit_event(actor, "UPDATE", "Tool", tool_id, {"press": press, "previous_press": previous})
    return tool


def update_regenerating(
    session: Session,
    tool_id: int,
    regenerating: bool,
    actor: Actor,
) -> bool:
    """Set the regenerating flag without committing.

    Returns:
        bool: True if the flag changed

    Assumptions:
    - Caller owns the transaction (regeneration start/stop/abort)
    - Setting the current value again is a no-op
    """
    validate_actor(actor)
    tool = get_tool(session, tool_id)

    if tool.regenerating == regenerating:
        return False

    logger.debug(
        "updating_tool_regenerating", actor=str(actor), tool_id=tool_id, regenerating=regenerating
    )
    tool.regenerating = regenerating
    session.flush()
    return True


def mark_dead(session: Session, tool_id: int, actor: Actor) -> Tool:
    """Retire a tool: unmount it and flag it dead."""
    validate_actor(actor)
    tool = get_tool(session, tool_id)

    with transaction(session, "update", "tools"):
        tool.is_dead = True
        tool.press = None
        session.flush()

    log_audit_event(actor, "UPDATE", "Tool", tool_id, {"is_dead": True})
    return tool


def revive_tool(session: Session, tool_id: int, actor: Actor) -> Tool:
    """Bring a dead tool back into service."""
    validate_actor(actor)
    tool = get_tool(session, tool_id)

    with transaction(session, "update", "tools"):
        tool.is_dead = False
        session.flush()

    log_audit_event(actor, "UPDATE", "Tool", tool_id, {"is_dead": False})
    return tool


def delete_tool(session: Session, tool_id: int, actor: Actor) -> None:
    """Delete a tool that has no cycle readings.

    Raises:
        ValidationError: If readings still reference the tool
        NotFoundError: If no such tool exists
    """
    validate_actor(actor)
    tool = get_tool(session, tool_id)

    with store_errors("select", "press_cycles"):
        referenced = session.scalars(
            select(CycleRecord.id).where(CycleRecord.tool_id == tool_id)
        ).first()
    if referenced is not None:
        raise ValidationError(f"tool {tool_id} has cycle records and can't be deleted")

    with transaction(session, "delete", "tools"):
        if tool.binding is not None:
            partner = session.get(Tool, tool.binding)
            if partner is not None and partner.binding == tool.id:
                partner.binding = None
        session.delete(tool)
        session.flush()

    log_audit_event(actor, "DELETE", "Tool", tool_id)


def get_press_utilization(session: Session) -> List[PressUtilization]:
    """Active tools per press for every known press."""
    utilization = []
    for press_number in PRESS_NUMBERS:
        tools = list_tools_for_press(session, press_number)
        utilization.append(PressUtilization(
            press_number=press_number,
            tools=tools,
            count=len(tools),
            available=len(tools) == 0,
        ))
    return utilization
