from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base

if TYPE_CHECKING:
    from .draw import GiveawayDraw


class GiveawayRules(Base):
    """Eligibility rules applied when entries are synced for a draw."""

    __tablename__ = "giveaway_rules"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    draw_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("giveaway_draws.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    dedup_one_entry_per_user: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    exclude_page_admins: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    include_replies: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    required_keyword: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    banned_keyword: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    require_like_page: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    require_like_post: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    require_like_comment: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    like_check_available: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    """False whenever a like requirement is set; likes cannot be verified."""

    min_mentions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    required_hashtag: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    required_mention: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    block_list: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    draw: Mapped["GiveawayDraw"] = relationship(back_populates="rules")

    @property
    def requires_likes(self) -> bool:
        return bool(
            self.require_like_page or self.require_like_post or self.require_like_comment
        )

    @classmethod
    def defaults(cls) -> "GiveawayRules":
        """Transient rules used for draws that never saved their own."""
        return cls(
            dedup_one_entry_per_user=True,
            exclude_page_admins=False,
            include_replies=False,
            require_like_page=False,
            require_like_post=False,
            require_like_comment=False,
            like_check_available=True,
            min_mentions=0,
            block_list=[],
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "draw_id": self.draw_id,
            "dedup_one_entry_per_user": self.dedup_one_entry_per_user,
            "exclude_page_admins": self.exclude_page_admins,
            "include_replies": self.include_replies,
            "required_keyword": self.required_keyword,
            "banned_keyword": self.banned_keyword,
            "require_like_page": self.require_like_page,
            "require_like_post": self.require_like_post,
            "require_like_comment": self.require_like_comment,
            "like_check_available": self.like_check_available,
            "min_mentions": self.min_mentions,
            "required_hashtag": self.required_hashtag,
            "required_mention": self.required_mention,
            "block_list": list(self.block_list or []),
        }


__all__ = ["GiveawayRules"]
