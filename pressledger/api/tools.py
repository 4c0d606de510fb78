# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Tool and binding API endpoints.

Assumptions:
- POST /api/v1/tools - Create a tool
- GET /api/v1/tools - List tools
- GET /api/v1/tools/overlaps - Tools seemingly mounted on two presses at once
- GET /api/v1/tools/{tool_id} - Read a tool
- PUT /api/v1/tools/{tool_id}/press - Mount/unmount (partner follows)
- POST /api/v1/tools/{tool_id}/binding - Bind a top cassette to a top tool
- DELETE /api/v1/tools/{tool_id}/binding - Dissolve a binding
- GET /api/v1/tools/{tool_id}/binding-candidates - Tools that could pair
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from pressledger.api.dependencies import get_actor, get_db
from pressledger.binding import bind_tools, get_binding_candidates, unbind_tool
from pressledger.database.schema import Tool
from pressledger.models import Actor
from pressledger.summaries import get_overlapping_tools
from pressledger.tools import create_tool, get_tool, list_tools, update_tool_press


router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


# Request/Response Models
class ToolCreate(BaseModel):
    """Schema for creating a tool."""
    position: str
    width: int
    height: int
    code: str
    type: Optional[str] = None
    press: Optional[int] = None


class ToolPressUpdate(BaseModel):
    """Schema for mounting a tool; press null unmounts it."""
    press: Optional[int] = None


class BindingRequest(BaseModel):
    """Schema for binding a top cassette to a top tool."""
    target_id: int


class ToolResponse(BaseModel):
    """Schema for tool response."""
    id: int
    position: str
    format: str
    code: str
    type: Optional[str]
    press: Optional[int]
    binding: Optional[int]
    regenerating: bool
    is_dead: bool
    status: str


class OverlapInstanceResponse(BaseModel):
    press_number: int
    position: str
    start_date: datetime
    end_date: datetime


class OverlappingToolResponse(BaseModel):
    """A tool whose intervals on different presses intersect."""
    tool_id: int
    tool_code: str
    start_date: datetime
    end_date: datetime
    overlaps: List[OverlapInstanceResponse]


def tool_to_response(tool: Tool) -> ToolResponse:
    return ToolResponse(
        id=tool.id,
        position=tool.position.value,
        format=tool.format,
        code=tool.code,
        type=tool.type,
        press=tool.press,
        binding=tool.binding,
        regenerating=tool.regenerating,
        is_dead=tool.is_dead,
        status=tool.status.value,
    )


@router.post("", response_model=ToolResponse, status_code=status.HTTP_201_CREATED)
def create_new_tool(
    request: ToolCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Create a tool."""
    tool = create_tool(
        db,
        position=request.position,
        width=request.width,
        height=request.height,
        code=request.code,
        actor=actor,
        tool_type=request.type,
        press=request.press,
    )
    return tool_to_response(tool)


@router.get("", response_model=List[ToolResponse])
def read_tools(
    db: Session = Depends(get_db),
    include_dead: bool = Query(True)
):
    """List tools ordered by format and code."""
    return [tool_to_response(t) for t in list_tools(db, include_dead=include_dead)]


# Declared before /{tool_id} so "overlaps" is not parsed as an id
@router.get("/overlaps", response_model=List[OverlappingToolResponse])
def read_overlapping_tools(db: Session = Depends(get_db)):
    """Tools whose usage intervals on different presses intersect."""
    return [
        OverlappingToolResponse(
            tool_id=o.tool_id,
            tool_code=o.tool_code,
            start_date=o.start_date,
            end_date=o.end_date,
            overlaps=[
                OverlapInstanceResponse(
                    press_number=i.press_number,
                    position=i.position.value,
                    start_date=i.start_date,
                    end_date=i.end_date,
                )
                for i in o.overlaps
            ],
        )
        for o in get_overlapping_tools(db)
    ]


@router.get("/{tool_id}", response_model=ToolResponse)
def read_tool(tool_id: int, db: Session = Depends(get_db)):
    """Get one tool."""
    return tool_to_response(get_tool(db, tool_id))


@router.put("/{tool_id}/press", response_model=ToolResponse)
def update_press(
    tool_id: int,
    request: ToolPressUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Mount a tool on a press, or unmount it."""
    return tool_to_response(update_tool_press(db, tool_id, request.press, actor))


@router.post("/{tool_id}/binding", response_model=ToolResponse)
def bind_tool(
    tool_id: int,
    request: BindingRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Bind a top cassette tool to a top tool."""
    bind_tools(db, tool_id, request.target_id, actor)
    return tool_to_response(get_tool(db, tool_id))


@router.delete("/{tool_id}/binding", response_model=ToolResponse)
def unbind(
    tool_id: int,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Dissolve the binding of a tool and its partner."""
    unbind_tool(db, tool_id, actor)
    return tool_to_response(get_tool(db, tool_id))


@router.get("/{tool_id}/binding-candidates", response_model=List[ToolResponse])
def read_binding_candidates(tool_id: int, db: Session = Depends(get_db)):
    """Unbound tools of the same format that could pair with this tool."""
    return [tool_to_response(t) for t in get_binding_candidates(db, tool_id)]
