"""Database model for giveaway draws and the enums describing them."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import dt_iso
from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .entry import EligibilitySnapshot, GiveawayEntry
    from .publish import PublishAsset
    from .rules import GiveawayRules
    from .source import FacebookSource, InstagramSource
    from .winner import GiveawayWinner


class Platform(str, Enum):
    FACEBOOK = "FACEBOOK"
    INSTAGRAM = "INSTAGRAM"
    TIKTOK = "TIKTOK"


class DrawStatus(str, Enum):
    DRAFT = "DRAFT"
    FROZEN = "FROZEN"
    DRAWN = "DRAWN"
    PUBLISHED = "PUBLISHED"


class DrawMode(str, Enum):
    RANDOM_ALL = "RANDOM_ALL"
    RANDOM_CORRECT = "RANDOM_CORRECT"


class AnswerMatch(str, Enum):
    EXACT = "EXACT"
    CONTAINS = "CONTAINS"
    NORMALIZED_EXACT = "NORMALIZED_EXACT"


class VideoFormat(str, Enum):
    V_9_16 = "V_9_16"
    S_1_1 = "S_1_1"
    H_16_9 = "H_16_9"


def _in_clause(column: str, enum_cls: type[Enum]) -> str:
    values = ",".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class GiveawayDraw(Base):
    """One giveaway-selection instance tied to a social post and its entries."""

    __tablename__ = "giveaway_draws"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    platform: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Platform.FACEBOOK.value
    )
    """Social platform entries are collected from (see :class:`Platform`)."""

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DrawStatus.DRAFT.value, index=True
    )
    """Lifecycle status (see :class:`DrawStatus`). Only mutated through
    :func:`mazayago.giveaway.lifecycle.advance`."""

    title: Mapped[str] = mapped_column(String(300), nullable=False)

    winners_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    alternates_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    draw_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DrawMode.RANDOM_ALL.value
    )
    """``RANDOM_ALL`` samples every eligible entry; ``RANDOM_CORRECT`` only
    entries whose answer matched ``correct_answer``."""

    correct_answer: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    answer_match: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AnswerMatch.NORMALIZED_EXACT.value
    )

    locked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Comment cutoff. Once set, draw inputs can no longer be changed."""

    draw_code: Mapped[Optional[str]] = mapped_column(
        String(32), nullable=True, unique=True
    )
    """Public fairness code assigned once on freeze."""

    public_view_slug: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, unique=True
    )
    """Slug of the public result page, assigned once on first publish."""

    logo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contest_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    show_logo: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    show_contest_image: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    main_color: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    video_format: Mapped[str] = mapped_column(
        String(10), nullable=False, default=VideoFormat.V_9_16.value
    )
    animation_type: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    animation_enable_sounds: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    animation_duration_sec: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    animation_pick_one_by_one: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    facebook_source: Mapped[Optional["FacebookSource"]] = relationship(
        back_populates="draw", uselist=False, cascade="all, delete-orphan"
    )
    instagram_source: Mapped[Optional["InstagramSource"]] = relationship(
        back_populates="draw", uselist=False, cascade="all, delete-orphan"
    )
    rules: Mapped[Optional["GiveawayRules"]] = relationship(
        back_populates="draw", uselist=False, cascade="all, delete-orphan"
    )
    entries: Mapped[list["GiveawayEntry"]] = relationship(
        back_populates="draw",
        cascade="all, delete-orphan",
        order_by="GiveawayEntry.id",
    )
    snapshots: Mapped[list["EligibilitySnapshot"]] = relationship(
        back_populates="draw",
        cascade="all, delete-orphan",
        order_by="EligibilitySnapshot.fetched_at",
    )
    winners: Mapped[list["GiveawayWinner"]] = relationship(
        back_populates="draw",
        cascade="all, delete-orphan",
        order_by="GiveawayWinner.rank",
    )
    """Current winner set ordered by rank. Replaced wholesale on every draw."""

    publish_asset: Mapped[Optional["PublishAsset"]] = relationship(
        back_populates="draw", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("winners_count >= 1", name="winners_count_min"),
        CheckConstraint("alternates_count >= 0", name="alternates_count_min"),
        CheckConstraint(_in_clause("platform", Platform), name="platform_enum"),
        CheckConstraint(_in_clause("status", DrawStatus), name="status_enum"),
        CheckConstraint(_in_clause("draw_mode", DrawMode), name="draw_mode_enum"),
        CheckConstraint(
            _in_clause("answer_match", AnswerMatch), name="answer_match_enum"
        ),
        CheckConstraint(
            _in_clause("video_format", VideoFormat), name="video_format_enum"
        ),
    )

    @property
    def total_to_pick(self) -> int:
        """Number of winners plus alternates selected by a draw."""
        return int(self.winners_count) + int(self.alternates_count)

    @property
    def source(self) -> Optional["FacebookSource | InstagramSource"]:
        """Source binding matching the draw's platform, if any."""
        if self.platform == Platform.FACEBOOK.value:
            return self.facebook_source
        if self.platform == Platform.INSTAGRAM.value:
            return self.instagram_source
        return None

    @classmethod
    def get_by_slug(cls, session: Session, slug: str) -> Optional["GiveawayDraw"]:
        """Return the draw published under ``slug`` if it exists."""
        return session.scalar(select(cls).where(cls.public_view_slug == slug))

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "platform": self.platform,
            "status": self.status,
            "title": self.title,
            "winners_count": self.winners_count,
            "alternates_count": self.alternates_count,
            "draw_mode": self.draw_mode,
            "correct_answer": self.correct_answer,
            "answer_match": self.answer_match,
            "locked_at": dt_iso(self.locked_at),
            "draw_code": self.draw_code,
            "public_view_slug": self.public_view_slug,
            "logo_url": self.logo_url,
            "contest_image_url": self.contest_image_url,
            "show_logo": self.show_logo,
            "show_contest_image": self.show_contest_image,
            "main_color": self.main_color,
            "video_format": self.video_format,
            "animation_type": self.animation_type,
            "animation_enable_sounds": self.animation_enable_sounds,
            "animation_duration_sec": self.animation_duration_sec,
            "animation_pick_one_by_one": self.animation_pick_one_by_one,
            "created_at": dt_iso(self.created_at),
            "updated_at": dt_iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<GiveawayDraw(id={id}, platform={platform}, status={status})>".format(
            id=self.id,
            platform=self.platform,
            status=self.status,
        )


__all__ = [
    "AnswerMatch",
    "DrawMode",
    "DrawStatus",
    "GiveawayDraw",
    "Platform",
    "VideoFormat",
]
