"""Pydantic input models shared by the workflows and the web layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Mapping, Optional, Type, TypeVar
from urllib.parse import urlparse

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError
from .models import AnswerMatch, DrawMode, Platform, VideoFormat

M = TypeVar("M", bound=BaseModel)


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("must be an absolute http(s) URL")
    return value


class _Input(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class DrawCreateIn(_Input):
    platform: Platform = Platform.FACEBOOK
    title: str = Field(min_length=1, max_length=300)
    winners_count: int = Field(ge=1, le=500)
    alternates_count: int = Field(default=0, ge=0, le=500)
    locked_at: Optional[datetime] = None


# Omitting these in an update is fine; sending an explicit null is not.
_NOT_NULL_ON_UPDATE = (
    "title",
    "winners_count",
    "alternates_count",
    "draw_mode",
    "answer_match",
    "show_logo",
    "show_contest_image",
    "video_format",
    "animation_enable_sounds",
    "animation_pick_one_by_one",
)


class DrawUpdateIn(_Input):
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    winners_count: Optional[int] = Field(default=None, ge=1, le=500)
    alternates_count: Optional[int] = Field(default=None, ge=0, le=500)
    locked_at: Optional[datetime] = None
    draw_mode: Optional[DrawMode] = None
    correct_answer: Optional[str] = Field(default=None, max_length=300)
    answer_match: Optional[AnswerMatch] = None
    logo_url: Optional[str] = None
    contest_image_url: Optional[str] = None
    show_logo: Optional[bool] = None
    show_contest_image: Optional[bool] = None
    video_format: Optional[VideoFormat] = None
    animation_type: Optional[str] = Field(default=None, max_length=80)
    animation_enable_sounds: Optional[bool] = None
    animation_duration_sec: Optional[int] = Field(default=None, ge=1, le=600)
    animation_pick_one_by_one: Optional[bool] = None
    main_color: Optional[str] = Field(default=None, max_length=40)

    @field_validator(*_NOT_NULL_ON_UPDATE, mode="before")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("cannot be null")
        return value

    @field_validator("logo_url", "contest_image_url")
    @classmethod
    def _urls(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)


class FacebookSourceIn(_Input):
    social_page_id: int
    fb_post_id: str = Field(min_length=1, max_length=255)
    post_url: str = ""
    post_text_snippet: Optional[str] = Field(default=None, max_length=500)

    @field_validator("post_url")
    @classmethod
    def _post_url(cls, value: str) -> str:
        return value if value == "" else _check_url(value)


class InstagramSourceIn(_Input):
    post_url: str
    ig_media_id: Optional[str] = Field(default=None, min_length=1, max_length=255)
    ig_shortcode: Optional[str] = Field(default=None, min_length=1, max_length=255)
    ig_username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    media_type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    media_cover_url: Optional[str] = None
    caption_snippet: Optional[str] = Field(default=None, max_length=500)
    post_published_at: Optional[datetime] = None
    comments_count: Optional[int] = Field(default=None, ge=0)

    @field_validator("post_url", "media_cover_url")
    @classmethod
    def _urls(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)


SOURCE_SCHEMAS: dict[Platform, Type[_Input]] = {
    Platform.FACEBOOK: FacebookSourceIn,
    Platform.INSTAGRAM: InstagramSourceIn,
}


class RulesIn(_Input):
    dedup_one_entry_per_user: bool = True
    exclude_page_admins: bool = False
    include_replies: bool = False
    required_keyword: Optional[str] = Field(default=None, max_length=120)
    banned_keyword: Optional[str] = Field(default=None, max_length=120)
    require_like_page: bool = False
    require_like_post: bool = False
    require_like_comment: bool = False
    min_mentions: int = Field(default=0, ge=0, le=50)
    required_hashtag: Optional[str] = Field(default=None, max_length=120)
    required_mention: Optional[str] = Field(default=None, max_length=120)
    block_list: list[str] = Field(default_factory=list)


class IncomingComment(_Input):
    """A platform comment already fetched by an ingestion collaborator."""

    comment_id: str = Field(min_length=1, max_length=255)
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    text: str = ""
    created_at: Optional[datetime] = None
    is_reply: bool = False


class EntrySyncIn(_Input):
    comments: list[IncomingComment] = Field(default_factory=list)


class RenderCallbackIn(BaseModel):
    """Body posted by the render worker; unknown keys are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status: str = "rendering"
    render_duration_sec: Optional[float] = None
    error_message: Optional[str] = None
    eta_seconds: Optional[int] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    video_url: Optional[str] = Field(default=None, alias="videoUrl")

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> str:
        return str(value) if value else "rendering"

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RenderCallbackIn":
        data = dict(payload or {})
        if not data.get("videoUrl") and data.get("video_url"):
            data["videoUrl"] = data["video_url"]
        data.pop("video_url", None)
        return parse_input(cls, data)


def parse_input(model: Type[M], data: Any) -> M:
    """Validate ``data`` against ``model``, raising :class:`ValidationError`."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        details = [
            {
                "loc": [str(part) for part in error["loc"]],
                "msg": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        raise ValidationError(f"Invalid {model.__name__}", details=details) from exc


__all__ = [
    "DrawCreateIn",
    "DrawUpdateIn",
    "EntrySyncIn",
    "FacebookSourceIn",
    "IncomingComment",
    "InstagramSourceIn",
    "RenderCallbackIn",
    "RulesIn",
    "SOURCE_SCHEMAS",
    "parse_input",
]
