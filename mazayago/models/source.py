"""Source bindings: the social post a draw collects entries from."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import dt_iso
from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .draw import GiveawayDraw


class SocialPage(Base):
    """A connected Facebook page that posts can be bound from."""

    __tablename__ = "social_pages"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(20), nullable=False, default="FACEBOOK")
    fb_page_id: Mapped[str] = mapped_column(String(255), nullable=False)
    fb_page_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def get_active_facebook(
        cls, session: Session, page_id: int
    ) -> Optional["SocialPage"]:
        """Return the page with ``page_id`` if it is an active Facebook page."""
        return session.scalar(
            select(cls).where(
                cls.id == page_id,
                cls.provider == "FACEBOOK",
                cls.status == "ACTIVE",
            )
        )


class FacebookSource(Base):
    __tablename__ = "giveaway_sources_facebook"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("giveaway_draws.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    """One binding per draw; re-submission overwrites this row."""

    social_page_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("social_pages.id", ondelete="RESTRICT"), nullable=False
    )
    fb_page_id: Mapped[str] = mapped_column(String(255), nullable=False)
    fb_page_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    fb_post_id: Mapped[str] = mapped_column(String(255), nullable=False)
    post_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    post_text_snippet: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    draw: Mapped["GiveawayDraw"] = relationship(back_populates="facebook_source")
    social_page: Mapped["SocialPage"] = relationship()

    def to_json(self) -> dict[str, Any]:
        return {
            "draw_id": self.draw_id,
            "platform": "FACEBOOK",
            "social_page_id": self.social_page_id,
            "fb_page_id": self.fb_page_id,
            "fb_page_name": self.fb_page_name,
            "fb_post_id": self.fb_post_id,
            "post_url": self.post_url,
            "post_text_snippet": self.post_text_snippet,
        }


class InstagramSource(Base):
    __tablename__ = "giveaway_sources_instagram"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("giveaway_draws.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    post_url: Mapped[str] = mapped_column(Text, nullable=False)
    ig_media_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ig_shortcode: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    ig_username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    media_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    media_cover_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    caption_snippet: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    post_published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    comments_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    draw: Mapped["GiveawayDraw"] = relationship(back_populates="instagram_source")

    def to_json(self) -> dict[str, Any]:
        return {
            "draw_id": self.draw_id,
            "platform": "INSTAGRAM",
            "post_url": self.post_url,
            "ig_media_id": self.ig_media_id,
            "ig_shortcode": self.ig_shortcode,
            "ig_username": self.ig_username,
            "media_type": self.media_type,
            "media_cover_url": self.media_cover_url,
            "caption_snippet": self.caption_snippet,
            "post_published_at": dt_iso(self.post_published_at),
            "comments_count": self.comments_count,
        }


__all__ = ["FacebookSource", "InstagramSource", "SocialPage"]
