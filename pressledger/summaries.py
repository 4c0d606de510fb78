# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Tool usage timelines ("tool summaries") for a press.

Turns the annotated readings of one press into consolidated intervals of
which tool occupied which position, how far its slot counter got and how
many cycles it accrued there.

Assumptions:
- Readings arrive in any order
- Consecutive readings of the same tool in the same position form one interval
- A successor takes over exactly when its predecessor's last reading was taken
- History before the earliest reading is unknown (first appearance)
"""
from collections import defaultdict
from itertools import combinations
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from pressledger.cycles import list_cycles_for_press
from pressledger.database.schema import PRESS_NUMBERS, Position, Tool
from pressledger.errors import PressLedgerError, ValidationError
from pressledger.logging_config import get_logger
from pressledger.models import (
    CycleReading, CycleSummaryStats, OverlapInstance, OverlappingTool, ToolUsageInterval
)
from pressledger.partial_cycles import annotate_cycles
from pressledger.tools import get_tool_lookup
from pressledger.validation import validate_press_number

logger = get_logger(__name__)


def tool_code_for(tool_id: int, tool_lookup: Mapping[int, Tool]) -> str:
    """Display label of a tool, or a placeholder when it is unknown."""
    tool = tool_lookup.get(tool_id)
    if tool is None:
        return f"Tool ID {tool_id}"
    return tool.display_code


def _chronological_key(interval: ToolUsageInterval) -> Tuple:
    return (interval.start_date, interval.position.rank, interval.end_date)


def _expand(
    readings: Iterable[CycleReading],
    tool_lookup: Mapping[int, Tool],
) -> List[ToolUsageInterval]:
    return [
        ToolUsageInterval(
            tool_id=reading.tool_id,
            tool_code=tool_code_for(reading.tool_id, tool_lookup),
            position=reading.position,
            start_date=reading.date,
            end_date=reading.date,
            max_cycles=reading.total_cycles,
            total_partial=reading.effective_partial,
        )
        for reading in readings
    ]


def _consolidate(candidates: List[ToolUsageInterval]) -> List[ToolUsageInterval]:
    """Merge runs of the same tool per position. Input must be chronological."""
    consolidated: List[ToolUsageInterval] = []
    open_interval: Dict[Position, ToolUsageInterval] = {}

    for candidate in candidates:
        current = open_interval.get(candidate.position)

        if current is not None and current.tool_id == candidate.tool_id:
            current.start_date = min(current.start_date, candidate.start_date)
            current.end_date = max(current.end_date, candidate.end_date)
            current.max_cycles = max(current.max_cycles, candidate.max_cycles)
            current.total_partial += candidate.total_partial
        else:
            consolidated.append(candidate)
            open_interval[candidate.position] = candidate

    return consolidated


def _redate(intervals: List[ToolUsageInterval]) -> None:
    """Mark first appearances and chain start dates per position."""
    by_position: Dict[Position, List[ToolUsageInterval]] = defaultdict(list)
    for interval in intervals:
        by_position[interval.position].append(interval)

    for entries in by_position.values():
        entries.sort(key=lambda i: i.start_date)
        for index, entry in enumerate(entries):
            if index == 0:
                entry.is_first_appearance = True
            else:
                entry.start_date = entries[index - 1].end_date
                entry.is_first_appearance = False


def build_tool_summaries(
    readings: Optional[Iterable[CycleReading]],
    tool_lookup: Mapping[int, Tool],
) -> List[ToolUsageInterval]:
    """Consolidate the readings of a press into tool usage intervals.

    Args:
        readings: Annotated readings of one press, any order
        tool_lookup: Tool id -> Tool, used for display codes

    Returns:
        List[ToolUsageInterval]: Sorted by max_cycles, then position

    Raises:
        ValidationError: If readings is None
    """
    if readings is None:
        raise ValidationError("cannot create tool summaries from missing cycle data")

    candidates = _expand(readings, tool_lookup)
    candidates.sort(key=_chronological_key)

    intervals = _consolidate(candidates)
    _redate(intervals)

    intervals.sort(key=lambda i: (i.max_cycles, i.position.rank))

    logger.debug("built_tool_summaries", candidates=len(candidates), intervals=len(intervals))
    return intervals


def get_cycle_summary_stats(readings: Optional[Iterable[CycleReading]]) -> CycleSummaryStats:
    """Highest counter value, summed cycles, distinct tools and entry count."""
    if readings is None:
        raise ValidationError("cannot calculate stats from missing cycle data")

    readings = list(readings)
    return CycleSummaryStats(
        max_total_cycles=max((r.total_cycles for r in readings), default=0),
        total_partial_cycles=sum(r.effective_partial for r in readings),
        active_tools=len({r.tool_id for r in readings}),
        entries=len(readings),
    )


def get_cycle_summary_data(
    session: Session,
    press_number: int,
) -> Tuple[List[CycleReading], Dict[int, Tool]]:
    """Annotated readings of a press plus the tool lookup for reporting."""
    validate_press_number(press_number)

    logger.debug("getting_cycle_summary_data", press_number=press_number)

    readings = annotate_cycles(session, list_cycles_for_press(session, press_number))
    return readings, get_tool_lookup(session)


def get_press_summaries(session: Session, press_number: int) -> List[ToolUsageInterval]:
    readings, tool_lookup = get_cycle_summary_data(session, press_number)
    return build_tool_summaries(readings, tool_lookup)


def _periods_overlap(a: ToolUsageInterval, b: ToolUsageInterval) -> bool:
    return a.start_date < b.end_date and b.start_date < a.end_date


def find_overlapping_tools(
    summaries_by_press: Mapping[int, Iterable[ToolUsageInterval]],
) -> List[OverlappingTool]:
    """Tools whose intervals on different presses overlap in time.

    Args:
        summaries_by_press: Press number -> tool summaries of that press

    Returns:
        List[OverlappingTool]: One entry per tool with at least one overlap,
        ordered by tool id
    """
    by_tool: Dict[int, Dict[int, List[ToolUsageInterval]]] = defaultdict(lambda: defaultdict(list))
    for press_number, summaries in summaries_by_press.items():
        for summary in summaries:
            by_tool[summary.tool_id][press_number].append(summary)

    overlapping = []
    for tool_id in sorted(by_tool):
        presses = by_tool[tool_id]
        if len(presses) < 2:
            continue

        instances: List[OverlapInstance] = []
        for press_a, press_b in combinations(sorted(presses), 2):
            for first in presses[press_a]:
                for second in presses[press_b]:
                    if not _periods_overlap(first, second):
                        continue
                    for press_number, interval in ((press_a, first), (press_b, second)):
                        instance = OverlapInstance(
                            press_number=press_number,
                            position=interval.position,
                            start_date=interval.start_date,
                            end_date=interval.end_date,
                        )
                        if instance not in instances:
                            instances.append(instance)

        if not instances:
            continue

        all_intervals = [i for intervals in presses.values() for i in intervals]
        tool_code = next(
            (i.tool_code for i in all_intervals if i.tool_code != f"Tool ID {tool_id}"),
            f"Tool ID {tool_id}",
        )
        positions = []
        for instance in instances:
            if instance.position.value not in positions:
                positions.append(instance.position.value)

        overlapping.append(OverlappingTool(
            tool_id=tool_id,
            tool_code=f"{tool_code} ({', '.join(positions)})",
            start_date=min(i.start_date for i in all_intervals),
            end_date=max(i.end_date for i in all_intervals),
            overlaps=instances,
        ))

    return overlapping


def get_overlapping_tools(session: Session) -> List[OverlappingTool]:
    """Overlap detection across every press.

    A press whose summaries can't be built is logged and skipped.
    """
    summaries_by_press = {}
    for press_number in PRESS_NUMBERS:
        try:
            summaries_by_press[press_number] = get_press_summaries(session, press_number)
        except PressLedgerError as exc:
            logger.error("press_summaries_failed", press_number=press_number, error=str(exc))

    return find_overlapping_tools(summaries_by_press)
