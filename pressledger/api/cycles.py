# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Cycle ledger API endpoints.

Assumptions:
- POST /api/v1/cycles - Record a counter reading
- GET/PUT/DELETE /api/v1/cycles/{cycle_id} - Read, correct, delete
- GET /api/v1/tools/{tool_id}/cycles - Readings of a tool
- GET /api/v1/tools/{tool_id}/total-cycles - Running total since last regeneration
- GET /api/v1/presses/{press_number}/cycles - Readings of a press, newest first
- Every reading is returned with its derived partial cycles
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from pressledger.api.dependencies import get_actor, get_db
from pressledger.cycles import (
    add_cycle, delete_cycle, get_cycle, list_cycles_for_press, list_cycles_for_tool, update_cycle
)
from pressledger.models import Actor, CycleReading
from pressledger.partial_cycles import annotate_cycles
from pressledger.regenerations import get_current_total_cycles


router = APIRouter(prefix="/api/v1", tags=["cycles"])


# Request/Response Models
class CycleCreate(BaseModel):
    """Schema for recording a counter reading."""
    press_number: int
    tool_id: int
    position: str
    total_cycles: int
    date: Optional[datetime] = None


class CycleUpdate(BaseModel):
    """Schema for correcting a reading; only the fields sent are changed."""
    press_number: Optional[int] = None
    tool_id: Optional[int] = None
    position: Optional[str] = None
    total_cycles: Optional[int] = None
    date: Optional[datetime] = None


class CycleResponse(BaseModel):
    """Schema for a reading with its partial cycles."""
    id: int
    press_number: int
    tool_id: int
    position: str
    total_cycles: int
    partial_cycles: int
    is_discontinuity: bool
    date: datetime
    performed_by: int


class CycleListResponse(BaseModel):
    """Response for list operations."""
    items: List[CycleResponse]
    total: int


class TotalCyclesResponse(BaseModel):
    """Running total of a tool."""
    tool_id: int
    total_cycles: int


def _to_response(reading: CycleReading) -> CycleResponse:
    return CycleResponse(
        id=reading.id,
        press_number=reading.press_number,
        tool_id=reading.tool_id,
        position=reading.position.value,
        total_cycles=reading.total_cycles,
        partial_cycles=reading.partial_cycles,
        is_discontinuity=reading.is_discontinuity,
        date=reading.date,
        performed_by=reading.performed_by,
    )


def _list_response(db: Session, records) -> CycleListResponse:
    items = [_to_response(r) for r in annotate_cycles(db, records)]
    return CycleListResponse(items=items, total=len(items))


@router.post("/cycles", response_model=CycleResponse, status_code=status.HTTP_201_CREATED)
def create_cycle(
    request: CycleCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Record a cumulative counter reading."""
    cycle_id = add_cycle(
        db,
        press_number=request.press_number,
        tool_id=request.tool_id,
        position=request.position,
        total_cycles=request.total_cycles,
        actor=actor,
        date=request.date,
    )
    return _to_response(annotate_cycles(db, [get_cycle(db, cycle_id)])[0])


@router.get("/cycles/{cycle_id}", response_model=CycleResponse)
def read_cycle(cycle_id: int, db: Session = Depends(get_db)):
    """Get one reading."""
    return _to_response(annotate_cycles(db, [get_cycle(db, cycle_id)])[0])


@router.put("/cycles/{cycle_id}", response_model=CycleResponse)
def correct_cycle(
    cycle_id: int,
    request: CycleUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Correct a reading in place."""
    record = update_cycle(db, cycle_id, actor, **request.model_dump(exclude_unset=True))
    return _to_response(annotate_cycles(db, [record])[0])


@router.delete("/cycles/{cycle_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_cycle(
    cycle_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Delete a reading."""
    delete_cycle(db, cycle_id, actor)


@router.get("/tools/{tool_id}/cycles", response_model=CycleListResponse)
def read_tool_cycles(tool_id: int, db: Session = Depends(get_db)):
    """Readings of a tool, newest first."""
    return _list_response(db, list_cycles_for_tool(db, tool_id))


@router.get("/tools/{tool_id}/total-cycles", response_model=TotalCyclesResponse)
def read_tool_total_cycles(tool_id: int, db: Session = Depends(get_db)):
    """Cycles accumulated since the tool's last regeneration."""
    return TotalCyclesResponse(tool_id=tool_id, total_cycles=get_current_total_cycles(db, tool_id))


@router.get("/presses/{press_number}/cycles", response_model=CycleListResponse)
def read_press_cycles(
    press_number: int,
    db: Session = Depends(get_db),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    offset: Optional[int] = Query(None, ge=0)
):
    """Readings of a press, newest first, optionally paginated."""
    return _list_response(db, list_cycles_for_press(db, press_number, limit=limit, offset=offset))
