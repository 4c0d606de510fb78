# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Cassette / top tool binding.

An upper cassette tool can be bound to a top tool. Both tools then point at
each other and share the top tool's press assignment.

Assumptions:
- A tool is bound to at most one other tool
- Only top-cassette <-> top pairs are allowed
- Binding takes over the press slot: any cassette already assigned to the
  target's press is unmounted
- Bind and unbind are each one transaction
"""
from typing import List

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from pressledger.database.schema import Position, Tool
from pressledger.database.session import store_errors, transaction
from pressledger.errors import AlreadyExistsError, ValidationError
from pressledger.logging_config import get_logger
from pressledger.logging_utils import log_audit_event
from pressledger.models import Actor
from pressledger.tools import get_tool, tool_press_lock
from pressledger.validation import validate_actor, validate_id

logger = get_logger(__name__)


def validate_binding_tools(session: Session, cassette_id: int, target_id: int) -> tuple[Tool, Tool]:
    """Check that two tools may be bound together.

    Returns:
        tuple: (cassette tool, target tool)

    Raises:
        NotFoundError: If either tool does not exist
        AlreadyExistsError: If the two tools are already bound to each other
        ValidationError: On wrong positions or an existing other binding
    """
    validate_id(cassette_id, "cassette tool")
    validate_id(target_id, "target tool")
    if cassette_id == target_id:
        raise ValidationError(f"tool {cassette_id} can't be bound to itself")

    cassette = get_tool(session, cassette_id)
    target = get_tool(session, target_id)

    if cassette.binding == target_id and target.binding == cassette_id:
        raise AlreadyExistsError(f"tools {cassette_id} and {target_id} are already bound")

    if cassette.position != Position.TOP_CASSETTE:
        raise ValidationError(f"tool {cassette_id} is not a top cassette")
    if cassette.binding is not None:
        raise ValidationError(
            f"cassette tool {cassette_id} is already bound to tool {cassette.binding}"
        )

    if target.position != Position.TOP:
        raise ValidationError(f"tool {target_id} is not a top tool")
    if target.binding is not None:
        raise ValidationError(
            f"target tool {target_id} is already bound to tool {target.binding}"
        )

    return cassette, target


def bind_tools(session: Session, cassette_id: int, target_id: int, actor: Actor) -> None:
    """Bind a top-cassette tool to a top tool.

    Args:
        session: Database session
        cassette_id: The top-cassette tool
        target_id: The top tool whose press the cassette adopts
        actor: Actor performing the binding

    Assumptions:
    - All four updates commit together or not at all:
      1. cassette.binding = target
      2. target.binding = cassette
      3. cassettes on the target's press are unmounted
      4. cassette.press = target.press
    - Both tools' presses are locked before the tools are checked, so two
      binds touching the same cassette or target run one after the other
    """
    validate_actor(actor)
    validate_id(cassette_id, "cassette tool")
    validate_id(target_id, "target tool")

    with tool_press_lock(session, [cassette_id, target_id]):
        cassette, target = validate_binding_tools(session, cassette_id, target_id)
        press = target.press
        previous_press = cassette.press

        logger.info(
            "binding_tools",
            actor=str(actor),
            cassette_id=cassette_id,
            target_id=target_id,
            press=press,
        )

        with transaction(session, "update", "tools"):
            session.execute(
                update(Tool).where(Tool.id == cassette_id).values(binding=target_id)
            )
            session.execute(
                update(Tool).where(Tool.id == target_id).values(binding=cassette_id)
            )
            if press is not None:
                session.execute(
                    update(Tool)
                    .where(Tool.press == press, Tool.position == Position.TOP_CASSETTE)
                    .values(press=None)
                )
            session.execute(
                update(Tool).where(Tool.id == cassette_id).values(press=press)
            )

    # Bulk updates bypass the identity map
    session.expire_all()

    log_audit_event(actor, "BIND", "Tool", cassette_id, {
        "target_id": target_id, "press": press, "previous_press": previous_press,
    })


def unbind_tool(session: Session, tool_id: int, actor: Actor) -> None:
    """Dissolve the binding of a tool and its partner.

    Assumptions:
    - No binding is a no-op
    - One UPDATE clears both sides
    """
    validate_id(tool_id, "tool")
    validate_actor(actor)

    with tool_press_lock(session, [tool_id]) as (tool,):
        partner_id = tool.binding
        if partner_id is None:
            logger.debug("unbind_tool_not_bound", tool_id=tool_id)
            return

        logger.info("unbinding_tools", actor=str(actor), tool_id=tool_id, partner_id=partner_id)

        with transaction(session, "update", "tools"):
            session.execute(
                update(Tool)
                .where(or_(Tool.id == tool_id, Tool.id == partner_id))
                .values(binding=None)
            )

    session.expire_all()

    log_audit_event(actor, "UNBIND", "Tool", tool_id, {"partner_id": partner_id})


def get_binding_candidates(session: Session, tool_id: int) -> List[Tool]:
    """Unbound tools of the same format that the given tool could pair with.

    Returns an empty list for bottom tools.
    """
    tool = get_tool(session, tool_id)

    if tool.position == Position.TOP:
        wanted = Position.TOP_CASSETTE
    elif tool.position == Position.TOP_CASSETTE:
        wanted = Position.TOP
    else:
        return []

    with store_errors("select", "tools"):
        return list(session.scalars(
            select(Tool)
            .where(
                Tool.position == wanted,
                Tool.width == tool.width,
                Tool.height == tool.height,
                Tool.binding.is_(None),
                Tool.is_dead.is_(False),
            )
            .order_by(Tool.code, Tool.id)
        ).all())
