from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
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
    from .entry import GiveawayEntry


class WinnerType(str, Enum):
    WINNER = "WINNER"
    ALTERNATE = "ALTERNATE"


class GiveawayWinner(Base):
    """A selected entry at a given rank of a draw."""

    __tablename__ = "giveaway_winners"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("giveaway_draws.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    """1-based selection order."""

    winner_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entry_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("giveaway_entries.id", ondelete="CASCADE"), nullable=False
    )
    selected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    proof_comment_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    draw: Mapped["GiveawayDraw"] = relationship(back_populates="winners")
    entry: Mapped["GiveawayEntry"] = relationship()

    __table_args__ = (
        UniqueConstraint("draw_id", "rank", name="uq_giveaway_winner_rank"),
        CheckConstraint("rank >= 1", name="rank_min"),
        CheckConstraint(
            "winner_type IN ('WINNER','ALTERNATE')", name="winner_type_enum"
        ),
    )

    def to_json(self) -> dict[str, Any]:
        entry = self.entry
        return {
            "rank": self.rank,
            "winner_type": self.winner_type,
            "entry_id": self.entry_id,
            "display_name": entry.display_name if entry is not None else None,
            "comment_url": entry.comment_url if entry is not None else None,
            "comment_text": entry.comment_text if entry is not None else None,
            "selected_at": dt_iso(self.selected_at),
            "proof_comment_url": self.proof_comment_url,
        }

    def to_public_json(self) -> dict[str, Any]:
        """Subset of :meth:`to_json` safe to publish."""
        entry = self.entry
        return {
            "rank": self.rank,
            "winner_type": self.winner_type,
            "display_name": entry.display_name if entry is not None else None,
            "comment_url": entry.comment_url if entry is not None else None,
        }


__all__ = ["GiveawayWinner", "WinnerType"]
