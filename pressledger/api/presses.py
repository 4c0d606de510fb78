# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Press API endpoints: reports, tool changeover and press regenerations.

Assumptions:
- GET /api/v1/presses/utilization - Active tools per press
- GET /api/v1/presses/{press_number}/summaries - Tool usage intervals
- GET /api/v1/presses/{press_number}/stats - Aggregate figures
- POST /api/v1/presses/{press_number}/changeover - Swap the mounted tools
- GET /api/v1/presses/{press_number}/regenerations - History, newest first
- GET /api/v1/presses/{press_number}/regenerations/last - Newest regeneration
- POST /api/v1/presses/{press_number}/regenerations - Start
- POST /api/v1/presses/{press_number}/regenerations/stop - Complete the open one
- DELETE /api/v1/presses/{press_number}/regenerations/{regeneration_id} - Remove
- Reports need no actor; writes do
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from pressledger.api.dependencies import get_actor, get_db
from pressledger.api.tools import ToolResponse, tool_to_response
from pressledger.changeover import change_tools
from pressledger.database.schema import PressRegeneration
from pressledger.errors import NotFoundError
from pressledger.models import Actor
from pressledger.press_regenerations import (
    delete_press_regeneration, get_last_press_regeneration, get_press_regeneration,
    get_press_regeneration_history, start_press_regeneration, stop_press_regeneration
)
from pressledger.summaries import (
    build_tool_summaries, get_cycle_summary_data, get_cycle_summary_stats
)
from pressledger.tools import get_press_utilization


router = APIRouter(prefix="/api/v1/presses", tags=["presses"])


# Response Models
class ToolSummaryResponse(BaseModel):
    """One consolidated stretch of a tool in a press position."""
    tool_id: int
    tool_code: str
    position: str
    start_date: datetime
    end_date: datetime
    max_cycles: int
    total_partial: int
    is_first_appearance: bool


class PressStatsResponse(BaseModel):
    press_number: int
    max_total_cycles: int
    total_partial_cycles: int
    active_tools: int
    entries: int


class PressUtilizationResponse(BaseModel):
    press_number: int
    tools: List[ToolResponse]
    count: int
    available: bool


class ChangeoverRequest(BaseModel):
    """Schema for swapping the tools of a press."""
    top_id: int
    bottom_id: int
    total_cycles: int
    date: Optional[datetime] = None


class ChangeoverResponse(BaseModel):
    press_number: int
    total_cycles: int
    top_id: int
    bottom_id: int
    removed_tool_ids: List[int]
    cycle_ids: List[int]


class PressRegenerationStart(BaseModel):
    reason: Optional[str] = None
    started_at: Optional[datetime] = None


class PressRegenerationStop(BaseModel):
    completed_at: Optional[datetime] = None


class PressRegenerationResponse(BaseModel):
    """Schema for a press regeneration."""
    id: int
    press_number: int
    started_at: datetime
    completed_at: Optional[datetime]
    reason: Optional[str]
    in_progress: bool
    performed_by: int


def _regeneration_to_response(regeneration: PressRegeneration) -> PressRegenerationResponse:
    return PressRegenerationResponse(
        id=regeneration.id,
        press_number=regeneration.press_number,
        started_at=regeneration.started_at,
        completed_at=regeneration.completed_at,
        reason=regeneration.reason,
        in_progress=regeneration.in_progress,
        performed_by=regeneration.performed_by,
    )


@router.get("/utilization", response_model=List[PressUtilizationResponse])
def read_press_utilization(db: Session = Depends(get_db)):
    """Tools currently mounted on every press."""
    return [
        PressUtilizationResponse(
            press_number=u.press_number,
            tools=[tool_to_response(t) for t in u.tools],
            count=u.count,
            available=u.available,
        )
        for u in get_press_utilization(db)
    ]


@router.get("/{press_number}/summaries", response_model=List[ToolSummaryResponse])
def read_press_summaries(press_number: int, db: Session = Depends(get_db)):
    """Tool usage timeline of a press, ordered by max cycles."""
    readings, tool_lookup = get_cycle_summary_data(db, press_number)
    return [
        ToolSummaryResponse(
            tool_id=s.tool_id,
            tool_code=s.tool_code,
            position=s.position.value,
            start_date=s.start_date,
            end_date=s.end_date,
            max_cycles=s.max_cycles,
            total_partial=s.total_partial,
            is_first_appearance=s.is_first_appearance,
        )
        for s in build_tool_summaries(readings, tool_lookup)
    ]


@router.get("/{press_number}/stats", response_model=PressStatsResponse)
def read_press_stats(press_number: int, db: Session = Depends(get_db)):
    """Highest counter, summed cycles, distinct tools and entries of a press."""
    readings, _ = get_cycle_summary_data(db, press_number)
    stats = get_cycle_summary_stats(readings)
    return PressStatsResponse(
        press_number=press_number,
        max_total_cycles=stats.max_total_cycles,
        total_partial_cycles=stats.total_partial_cycles,
        active_tools=stats.active_tools,
        entries=stats.entries,
    )


@router.post("/{press_number}/changeover", response_model=ChangeoverResponse)
def change_press_tools(
    press_number: int,
    request: ChangeoverRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Record final readings for the mounted tools and mount a new top/bottom pair."""
    changeover = change_tools(
        db,
        press_number,
        request.top_id,
        request.bottom_id,
        request.total_cycles,
        actor,
        date=request.date,
    )
    return ChangeoverResponse(
        press_number=changeover.press_number,
        total_cycles=changeover.total_cycles,
        top_id=changeover.top_id,
        bottom_id=changeover.bottom_id,
        removed_tool_ids=changeover.removed_tool_ids,
        cycle_ids=changeover.cycle_ids,
    )


@router.get("/{press_number}/regenerations", response_model=List[PressRegenerationResponse])
def read_press_regenerations(press_number: int, db: Session = Depends(get_db)):
    """Regenerations of a press, newest first."""
    return [_regeneration_to_response(r) for r in get_press_regeneration_history(db, press_number)]


@router.get("/{press_number}/regenerations/last", response_model=PressRegenerationResponse)
def read_last_press_regeneration(press_number: int, db: Session = Depends(get_db)):
    return _regeneration_to_response(get_last_press_regeneration(db, press_number))


@router.post(
    "/{press_number}/regenerations",
    response_model=PressRegenerationResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_regeneration_of_press(
    press_number: int,
    request: PressRegenerationStart,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Open a regeneration; the press counter restarts from zero afterwards."""
    regeneration = start_press_regeneration(
        db, press_number, request.reason, actor, started_at=request.started_at
    )
    return _regeneration_to_response(regeneration)


@router.post("/{press_number}/regenerations/stop", response_model=PressRegenerationResponse)
def stop_regeneration_of_press(
    press_number: int,
    request: PressRegenerationStop,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Complete the regeneration in progress."""
    regeneration = stop_press_regeneration(
        db, press_number, actor, completed_at=request.completed_at
    )
    return _regeneration_to_response(regeneration)


@router.delete(
    "/{press_number}/regenerations/{regeneration_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def remove_press_regeneration(
    press_number: int,
    regeneration_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Delete a regeneration of this press."""
    if get_press_regeneration(db, regeneration_id).press_number != press_number:
        raise NotFoundError(f"press regeneration of press {press_number}", regeneration_id)
    delete_press_regeneration(db, regeneration_id, actor)
