# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Tool changeover: swap the tools mounted on a press.

The operator reads the press counter once. That value closes the stint of
every tool currently in service on the press (one final reading per tool,
in its own position). Then all mounted tools come off and the new top and
bottom tool go on. A top tool's bound cassette comes along.

Assumptions:
- Readings, unmounts and mounts are one transaction under the press lock
  (and the lock of the press the new tools come from)
- New tools get no reading of their own; their first reading's partial is
  taken against the final reading recorded here
- Top and bottom tool must have the same format
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pressledger.cycles import build_cycle_record
from pressledger.database.schema import Position, Tool
from pressledger.database.session import store_errors, transaction
from pressledger.errors import ValidationError
from pressledger.logging_config import get_logger, press_context
from pressledger.logging_utils import log_audit_event
from pressledger.models import Actor, ToolChangeover
from pressledger.tools import get_tool, list_tools_for_press, tool_press_lock
from pressledger.validation import (
    normalize_datetime, utc_now, validate_actor, validate_id, validate_press_number,
    validate_total_cycles
)

logger = get_logger(__name__)


def validate_changeover_tools(top: Tool, bottom: Tool) -> None:
    """Check that two tools can be mounted together.

    Raises:
        ValidationError: On wrong positions, differing formats, or a tool
            that is dead or regenerating
    """
    if top.position != Position.TOP:
        raise ValidationError(f"tool {top.id} is not a top tool")
    if bottom.position != Position.BOTTOM:
        raise ValidationError(f"tool {bottom.id} is not a bottom tool")
    if top.format != bottom.format:
        raise ValidationError(
            f"tools are not compatible: top {top.format}, bottom {bottom.format}"
        )
    for tool in (top, bottom):
        if tool.is_dead:
            raise ValidationError(f"tool {tool.id} is dead")
        if tool.regenerating:
            raise ValidationError(f"tool {tool.id} is regenerating")


def _list_mounted(session: Session, press_number: int) -> List[Tool]:
    with store_errors("select", "tools"):
        return list(session.scalars(
            select(Tool).where(Tool.press == press_number).order_by(Tool.id)
        ).all())


def change_tools(
    session: Session,
    press_number: int,
    top_id: int,
    bottom_id: int,
    total_cycles: int,
    actor: Actor,
    date: Optional[datetime] = None,
) -> ToolChangeover:
    """Replace the tools of a press.

    Args:
        session: Database session
        press_number: Press being changed over
        top_id: Top tool to mount
        bottom_id: Bottom tool to mount
        total_cycles: Press counter at the time of the changeover
        actor: Actor performing the changeover
        date: Time of the final readings (defaults to now)

    Returns:
        ToolChangeover: Removed tools and the final readings recorded

    Raises:
        ValidationError: On invalid input or incompatible tools
        NotFoundError: If a tool does not exist
        PersistenceError: If the store fails; nothing is written
    """
    validate_press_number(press_number)
    validate_id(top_id, "top tool")
    validate_id(bottom_id, "bottom tool")
    validate_total_cycles(total_cycles)
    validate_actor(actor)
    date = utc_now() if date is None else normalize_datetime(date)

    locked = tool_press_lock(session, [top_id, bottom_id], press_number)
    with press_context(press_number, actor), locked as (top, bottom):
        validate_changeover_tools(top, bottom)

        in_service = list_tools_for_press(session, press_number)
        mounted = _list_mounted(session, press_number)
        partner = get_tool(session, top.binding) if top.binding is not None else None

        logger.info(
            "changing_tools",
            top_id=top_id,
            bottom_id=bottom_id,
            total_cycles=total_cycles,
            outgoing=[t.id for t in mounted],
        )

        with transaction(session, "update", "tools"):
            records = [
                build_cycle_record(press_number, t.id, t.position, total_cycles, actor, date)
                for t in in_service
            ]
            session.add_all(records)
            session.flush()

            for tool in mounted:
                tool.press = None
            top.press = press_number
            bottom.press = press_number
            if partner is not None:
                partner.press = press_number
            session.flush()

            cycle_ids = [r.id for r in records]

    changeover = ToolChangeover(
        press_number=press_number,
        total_cycles=total_cycles,
        top_id=top_id,
        bottom_id=bottom_id,
        removed_tool_ids=[t.id for t in mounted if t.press is None],
        cycle_ids=cycle_ids,
    )
    log_audit_event(actor, "CHANGEOVER", "Press", press_number, {
        "top_id": top_id,
        "bottom_id": bottom_id,
        "total_cycles": total_cycles,
        "removed_tool_ids": changeover.removed_tool_ids,
        "cycle_ids": cycle_ids,
    })
    return changeover
