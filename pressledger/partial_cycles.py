# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Partial cycle derivation.

The counter of a press slot is cumulative and belongs to the slot, not to
the tool mounted in it. The cycles attributable to one reading are its
total minus the total of the previous reading of the same slot, where
"previous" means the nearest smaller record id with the same press and
position, whichever tool was mounted then. The first reading of a slot is
attributed in full.

Assumptions:
- Computed on every read, never stored; correcting an old reading changes
  every later delta automatically
- A negative delta is returned as is and logged; it marks a counter reset
  that was not recorded as a regeneration
"""
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from pressledger.database.schema import CycleRecord, Position
from pressledger.database.session import store_errors
from pressledger.logging_config import get_logger
from pressledger.models import CycleReading

logger = get_logger(__name__)


def get_previous_total(session: Session, record: CycleRecord) -> Optional[int]:
    """Total of the reading recorded just before this one on the same slot.

    Returns:
        int or None: Previous total, or None if this is the slot's first reading
    """
    query = (
        select(CycleRecord.total_cycles)
        .where(
            CycleRecord.press_number == record.press_number,
            CycleRecord.tool_position == record.tool_position,
            CycleRecord.id < record.id,
        )
        .order_by(CycleRecord.id.desc())
        .limit(1)
    )
    with store_errors("select", "press_cycles"):
        return session.scalars(query).first()


def get_partial_cycles(session: Session, record: CycleRecord) -> int:
    """Incremental cycles attributable to one reading.

    Args:
        session: Database session
        record: A persisted cycle record

    Returns:
        int: total_cycles minus the previous slot total (may be negative)
    """
    return _partial(record, get_previous_total(session, record))


def _partial(record: CycleRecord, previous: Optional[int]) -> int:
    if previous is None:
        logger.debug(
            "partial_cycles_first_reading",
            cycle_id=record.id,
            press_number=record.press_number,
            position=record.tool_position.value,
            total_cycles=record.total_cycles,
        )
        return record.total_cycles

    partial = record.total_cycles - previous
    if partial < 0:
        logger.warning(
            "partial_cycles_discontinuity",
            cycle_id=record.id,
            press_number=record.press_number,
            position=record.tool_position.value,
            total_cycles=record.total_cycles,
            previous_total=previous,
        )
    return partial


def get_previous_totals(session: Session, records: Iterable[CycleRecord]) -> Dict[int, Optional[int]]:
    """Previous slot total for each of many records, in one query.

    Loads the (id, slot, total) rows of the involved presses up to the
    newest requested id and walks them in id order, remembering the last
    total seen per (press, position).

    Returns:
        dict: record id -> previous total (None for a slot's first reading)
    """
    records = list(records)
    if not records:
        return {}

    wanted = {record.id for record in records}
    query = (
        select(
            CycleRecord.id,
            CycleRecord.press_number,
            CycleRecord.tool_position,
            CycleRecord.total_cycles,
        )
        .where(
            CycleRecord.press_number.in_(sorted({record.press_number for record in records})),
            CycleRecord.id <= max(wanted),
        )
        .order_by(CycleRecord.id)
    )
    with store_errors("select", "press_cycles"):
        rows = session.execute(query).all()

    last_total: Dict[Tuple[int, Position], int] = {}
    previous: Dict[int, Optional[int]] = {}
    for cycle_id, press_number, position, total_cycles in rows:
        slot = (press_number, position)
        if cycle_id in wanted:
            previous[cycle_id] = last_total.get(slot)
        last_total[slot] = total_cycles
    return previous


def annotate_cycles(session: Session, records: Iterable[CycleRecord]) -> List[CycleReading]:
    """Pair every record with its partial cycles, keeping input order.

    Assumptions:
    - One query for the whole batch, whatever its size
    """
    records = list(records)
    previous = get_previous_totals(session, records)
    return [
        CycleReading.from_record(record, _partial(record, previous.get(record.id)))
        for record in records
    ]
