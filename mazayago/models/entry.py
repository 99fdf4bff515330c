"""Entry ledger models: participant submissions and sync snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.utils import dt_iso
from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .draw import GiveawayDraw


class EntryStatus(str, Enum):
    ELIGIBLE = "ELIGIBLE"
    EXCLUDED = "EXCLUDED"


class GiveawayEntry(Base):
    """A participant comment collected for a draw."""

    __tablename__ = "giveaway_entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("giveaway_draws.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    platform_user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    comment_id: Mapped[str] = mapped_column(String(255), nullable=False)
    """External comment identifier, unique within a draw."""

    comment_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comment_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comment_created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    entry_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EntryStatus.ELIGIBLE.value
    )
    exclusion_reason: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    """Answer correctness; only populated for ``RANDOM_CORRECT`` draws."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    draw: Mapped["GiveawayDraw"] = relationship(back_populates="entries")

    __table_args__ = (
        UniqueConstraint("draw_id", "comment_id", name="uq_giveaway_entry_comment"),
        Index("ix_giveaway_entries_draw_status", "draw_id", "entry_status"),
    )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "draw_id": self.draw_id,
            "platform_user_id": self.platform_user_id,
            "display_name": self.display_name,
            "comment_id": self.comment_id,
            "comment_url": self.comment_url,
            "comment_text": self.comment_text,
            "comment_created_at": dt_iso(self.comment_created_at),
            "entry_status": self.entry_status,
            "exclusion_reason": self.exclusion_reason,
            "is_correct": self.is_correct,
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<GiveawayEntry(id={id}, draw_id={draw_id}, status={status})>".format(
            id=self.id,
            draw_id=self.draw_id,
            status=self.entry_status,
        )


class EligibilitySnapshot(Base):
    """Counters recorded every time entries are synced for a draw."""

    __tablename__ = "giveaway_eligibility_snapshots"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("giveaway_draws.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    total_comments_in_window: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unique_users_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    eligible_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    excluded_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    exclusion_breakdown: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    latest_comment_at_in_window: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    draw: Mapped["GiveawayDraw"] = relationship(back_populates="snapshots")

    def to_json(self) -> dict[str, Any]:
        return {
            "draw_id": self.draw_id,
            "fetched_at": dt_iso(self.fetched_at),
            "total": self.total_comments_in_window,
            "unique_users": self.unique_users_count,
            "eligible": self.eligible_count,
            "excluded": self.excluded_count,
            "breakdown": dict(self.exclusion_breakdown or {}),
            "latest_comment_at_in_window": dt_iso(self.latest_comment_at_in_window),
        }


__all__ = ["EligibilitySnapshot", "EntryStatus", "GiveawayEntry"]
