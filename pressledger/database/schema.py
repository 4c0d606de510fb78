# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Database schema for Press Ledger using SQLAlchemy.

Defines tools, cumulative cycle readings, tool and press regeneration
events, plus the closed value sets (positions, press numbers) they are
validated against.

Assumptions:
- Integer autoincrement ids; id order is recording order
- DateTime columns hold naive UTC
- Cycle readings are cumulative slot counters, not per-tool counters
- Tool binding is a nullable self-reference kept consistent in pairs
- Foreign keys maintain referential integrity
"""
import enum
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, Enum, Integer, String, Text, ForeignKey,
    UniqueConstraint, create_engine
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


PRESS_NUMBERS = (0, 2, 3, 4, 5)


def _utc_now() -> datetime:
    # Columns are naive; every stored datetime is UTC
    return datetime.now(UTC).replace(tzinfo=None)


class Position(str, enum.Enum):
    """Physical mounting point of a tool on a press."""

    TOP = "top"
    TOP_CASSETTE = "top-cassette"
    BOTTOM = "bottom"

    @property
    def rank(self) -> int:
        """Display order: top, top cassette, bottom."""
        return _POSITION_RANK[self]


_POSITION_RANK = {
    Position.TOP: 1,
    Position.TOP_CASSETTE: 2,
    Position.BOTTOM: 3,
}


class ToolStatus(str, enum.Enum):
    """Derived tool status."""

    ACTIVE = "active"
    AVAILABLE = "available"
    REGENERATING = "regenerating"


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _position_column() -> Enum:
    return Enum(
        Position,
        name="tool_position",
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=20,
    )


class Tool(Base):
    """Physical press tool.

    Assumptions:
    - format is width x height, displayed as "120x60"
    - press is NULL while the tool is not mounted
    - binding points at the paired cassette/top tool, and the partner
      points back (enforced by the binding functions, not the store)
    - (position, width, height, code) is unique
    """
    __tablename__ = "tools"
    __table_args__ = (
        UniqueConstraint("position", "width", "height", "code", name="uq_tools_identity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    position: Mapped[Position] = mapped_column(_position_column(), nullable=False, index=True)
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    regenerating: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_dead: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    press: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    binding: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("tools.id"), nullable=True)

    @property
    def format(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def display_code(self) -> str:
        return f"{self.format} {self.code}"

    @property
    def status(self) -> ToolStatus:
        if self.regenerating:
            return ToolStatus.REGENERATING
        if self.press is not None:
            return ToolStatus.ACTIVE
        return ToolStatus.AVAILABLE

    @property
    def is_bound(self) -> bool:
        return self.binding is not None


class CycleRecord(Base):
    """Cumulative counter reading of a press slot.

    Assumptions:
    - total_cycles is what the slot counter showed, not per tool
    - May be corrected (same id) or deleted, never otherwise mutated
    - performed_by holds the reporting actor's id
    """
    __tablename__ = "press_cycles"
    __table_args__ = (
        CheckConstraint("press_number IN (0, 2, 3, 4, 5)", name="ck_press_cycles_press_number"),
        CheckConstraint("total_cycles >= 0", name="ck_press_cycles_total_cycles"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    press_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    tool_id: Mapped[int] = mapped_column(Integer, ForeignKey("tools.id"), nullable=False, index=True)
    tool_position: Mapped[Position] = mapped_column(_position_column(), nullable=False, index=True)
    total_cycles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utc_now)
    performed_by: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    tool: Mapped["Tool"] = relationship("Tool")


class RegenerationEvent(Base):
    """Tool regeneration (baseline reset) event.

    Assumptions:
    - cycle_id is the reading that accompanied the regeneration; readings
      with a greater id count towards the tool's new running total
    - Only the newest event per tool matters for running totals
    - Deleted only when a regeneration is aborted
    """
    __tablename__ = "tool_regenerations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tool_id: Mapped[int] = mapped_column(Integer, ForeignKey("tools.id", ondelete="CASCADE"), nullable=False, index=True)
    cycle_id: Mapped[int] = mapped_column(Integer, ForeignKey("press_cycles.id"), nullable=False, index=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    performed_by: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    tool: Mapped["Tool"] = relationship("Tool")
    cycle: Mapped["CycleRecord"] = relationship("CycleRecord")


class PressRegeneration(Base):
    """Press overhaul after which the press counter starts again from zero.

    Assumptions:
    - completed_at is NULL while the regeneration is in progress
    - At most one open regeneration per press (enforced by the service)
    - completed_at is not before started_at
    """
    __tablename__ = "press_regenerations"
    __table_args__ = (
        CheckConstraint("press_number IN (0, 2, 3, 4, 5)", name="ck_press_regenerations_press_number"),
        CheckConstraint(
            "completed_at IS NULL OR completed_at >= started_at",
            name="ck_press_regenerations_completed_at",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    press_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    performed_by: Mapped[int] = mapped_column(Integer, nullable=False)

    @property
    def in_progress(self) -> bool:
        return self.completed_at is None


def init_db(engine=None):
    """Initialize database by creating all tables.

    Args:
        engine: SQLAlchemy engine (optional, creates default if not provided)

    Assumptions:
    - Creates all tables defined in Base.metadata
    - Safe to call multiple times (no-op if tables exist)
    """
    if engine is None:
        from pressledger.config import settings
        engine = create_engine(settings.database_url)

    Base.metadata.create_all(engine)
    return engine
