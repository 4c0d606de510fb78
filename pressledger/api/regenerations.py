# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Tool regeneration API endpoints.

Assumptions:
- POST /api/v1/tools/{tool_id}/regeneration - Start
- POST /api/v1/tools/{tool_id}/regeneration/stop - Finish, keep the event
- POST /api/v1/tools/{tool_id}/regeneration/abort - Cancel, delete the newest event
- GET /api/v1/tools/{tool_id}/regenerations - History, newest first
- GET /api/v1/tools/{tool_id}/regenerations/last - Newest event
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from pressledger.api.dependencies import get_actor, get_db
from pressledger.database.schema import RegenerationEvent
from pressledger.models import Actor
from pressledger.regenerations import (
    abort_regeneration, get_last_regeneration, get_regeneration_history,
    start_regeneration, stop_regeneration
)
from pressledger.tools import get_tool


router = APIRouter(prefix="/api/v1/tools", tags=["regenerations"])


# Request/Response Models
class RegenerationStart(BaseModel):
    """Schema for starting a regeneration."""
    cycle_id: int
    reason: Optional[str] = None


class RegenerationResponse(BaseModel):
    """Schema for a regeneration event."""
    id: int
    tool_id: int
    cycle_id: int
    reason: Optional[str]
    performed_by: int


class RegenerationStatusResponse(BaseModel):
    """Regenerating flag of a tool after a stop or abort."""
    tool_id: int
    regenerating: bool


def _to_response(regeneration: RegenerationEvent) -> RegenerationResponse:
    return RegenerationResponse(
        id=regeneration.id,
        tool_id=regeneration.tool_id,
        cycle_id=regeneration.cycle_id,
        reason=regeneration.reason,
        performed_by=regeneration.performed_by,
    )


@router.post(
    "/{tool_id}/regeneration",
    response_model=RegenerationResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_tool_regeneration(
    tool_id: int,
    request: RegenerationStart,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Send a tool to regeneration, anchored at a cycle record."""
    return _to_response(start_regeneration(db, tool_id, request.cycle_id, request.reason, actor))


@router.post("/{tool_id}/regeneration/stop", response_model=RegenerationStatusResponse)
def stop_tool_regeneration(
    tool_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Finish a regeneration."""
    stop_regeneration(db, tool_id, actor)
    return RegenerationStatusResponse(tool_id=tool_id, regenerating=get_tool(db, tool_id).regenerating)


@router.post("/{tool_id}/regeneration/abort", response_model=RegenerationStatusResponse)
def abort_tool_regeneration(
    tool_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Cancel a regeneration and drop its event."""
    abort_regeneration(db, tool_id, actor)
    return RegenerationStatusResponse(tool_id=tool_id, regenerating=get_tool(db, tool_id).regenerating)


@router.get("/{tool_id}/regenerations", response_model=List[RegenerationResponse])
def read_regeneration_history(tool_id: int, db: Session = Depends(get_db)):
    """All regeneration events of a tool."""
    get_tool(db, tool_id)
    return [_to_response(r) for r in get_regeneration_history(db, tool_id)]


@router.get("/{tool_id}/regenerations/last", response_model=RegenerationResponse)
def read_last_regeneration(tool_id: int, db: Session = Depends(get_db)):
    """Newest regeneration event of a tool."""
    return _to_response(get_last_regeneration(db, tool_id))
