# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Value objects passed between the ledger, the calculators and reporting.

These are plain dataclasses, not database rows; they are derived from the
SQLAlchemy models in pressledger.database.schema and never persisted.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from pressledger.database.schema import CycleRecord, Position


@dataclass(frozen=True)
class Actor:
    """Identity attached to every mutating call for audit attribution."""
    id: int
    name: str

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


@dataclass(frozen=True)
class CycleReading:
    """A cycle record together with its derived partial cycles.

    Assumptions:
    - partial_cycles is the raw delta to the previous reading of the same
      slot and may be negative when the slot counter was reset
    - effective_partial is what gets summed: a negative delta is treated
      as a counter restart, so the whole reading is attributed
    """
    id: int
    press_number: int
    tool_id: int
    position: Position
    total_cycles: int
    date: datetime
    performed_by: int
    partial_cycles: int

    @property
    def is_discontinuity(self) -> bool:
        return self.partial_cycles < 0

    @property
    def effective_partial(self) -> int:
        if self.is_discontinuity:
            return self.total_cycles
        return self.partial_cycles

    @classmethod
    def from_record(cls, record: CycleRecord, partial_cycles: int) -> "CycleReading":
        return cls(
            id=record.id,
            press_number=record.press_number,
            tool_id=record.tool_id,
            position=Position(record.tool_position),
            total_cycles=record.total_cycles,
            date=record.date,
            performed_by=record.performed_by,
            partial_cycles=partial_cycles,
        )


@dataclass
class ToolUsageInterval:
    """One consolidated stretch of a tool occupying a press position."""
    tool_id: int
    tool_code: str
    position: Position
    start_date: datetime
    end_date: datetime
    max_cycles: int
    total_partial: int
    is_first_appearance: bool = False


@dataclass(frozen=True)
class CycleSummaryStats:
    """Aggregate figures for a set of readings."""
    max_total_cycles: int
    total_partial_cycles: int
    active_tools: int
    entries: int


@dataclass(frozen=True)
class OverlapInstance:
    """A tool interval on one press that overlaps one on another press."""
    press_number: int
    position: Position
    start_date: datetime
    end_date: datetime


@dataclass
class OverlappingTool:
    """A tool that appears to be mounted on two presses at the same time."""
    tool_id: int
    tool_code: str
    start_date: datetime
    end_date: datetime
    overlaps: List[OverlapInstance] = field(default_factory=list)


@dataclass
class PressUtilization:
    """Tools currently mounted on a press."""
    press_number: int
    tools: list
    count: int
    available: bool


@dataclass
class ToolChangeover:
    """Outcome of swapping the tools of a press."""
    press_number: int
    total_cycles: int
    top_id: int
    bottom_id: int
    removed_tool_ids: List[int] = field(default_factory=list)
    cycle_ids: List[int] = field(default_factory=list)
