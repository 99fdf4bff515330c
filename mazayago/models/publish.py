from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.utils import dt_iso
from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .draw import GiveawayDraw


class PublishAsset(Base):
    """Rendered result video of a published draw."""

    __tablename__ = "giveaway_publish_assets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("giveaway_draws.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Null until the render callback reports a finished video."""

    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=lambda: datetime.now(timezone.utc),
    )

    draw: Mapped["GiveawayDraw"] = relationship(back_populates="publish_asset")

    def to_json(self) -> dict[str, Any]:
        return {
            "draw_id": self.draw_id,
            "video_url": self.video_url,
            "published_at": dt_iso(self.published_at),
        }


__all__ = ["PublishAsset"]
