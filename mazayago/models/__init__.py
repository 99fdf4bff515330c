from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .draw import (  # noqa: F401
    AnswerMatch,
    DrawMode,
    DrawStatus,
    GiveawayDraw,
    Platform,
    VideoFormat,
)
from .source import FacebookSource, InstagramSource, SocialPage  # noqa: F401
from .rules import GiveawayRules  # noqa: F401
from .entry import EligibilitySnapshot, EntryStatus, GiveawayEntry  # noqa: F401
from .winner import GiveawayWinner, WinnerType  # noqa: F401
from .publish import PublishAsset  # noqa: F401

__all__ = [
    "Base",
    "AnswerMatch",
    "DrawMode",
    "DrawStatus",
    "GiveawayDraw",
    "Platform",
    "VideoFormat",
    "FacebookSource",
    "InstagramSource",
    "SocialPage",
    "GiveawayRules",
    "EligibilitySnapshot",
    "EntryStatus",
    "GiveawayEntry",
    "GiveawayWinner",
    "WinnerType",
    "PublishAsset",
]
