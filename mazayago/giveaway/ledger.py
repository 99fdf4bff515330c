"""Entry ledger: the candidate population of a draw."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import re
from typing import Any, Iterable, Optional
from urllib.parse import quote

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.utils import as_utc, dt_iso
from ..models import (
    DrawMode,
    EligibilitySnapshot,
    EntryStatus,
    GiveawayDraw,
    GiveawayEntry,
    GiveawayRules,
)
from ..schemas import IncomingComment
from .answers import evaluate_correctness

logger = logging.getLogger(__name__)

_MENTION_RE = re.compile(r"@[a-zA-Z0-9._]+")


def list_eligible_entries(
    session: Session, draw_id: int, *, require_correct: bool = False
) -> list[GiveawayEntry]:
    """Return the eligible entries of ``draw_id`` ordered by id.

    With ``require_correct`` only entries whose answer matched are returned.
    """
    stmt = select(GiveawayEntry).where(
        GiveawayEntry.draw_id == draw_id,
        GiveawayEntry.entry_status == EntryStatus.ELIGIBLE.value,
    )
    if require_correct:
        stmt = stmt.where(GiveawayEntry.is_correct.is_(True))
    return list(session.scalars(stmt.order_by(GiveawayEntry.id.asc())).all())


def extract_mentions(text: str) -> list[str]:
    """Return distinct lower-cased ``@mentions`` in first-seen order."""
    seen: list[str] = []
    for match in _MENTION_RE.findall(text):
        mention = match.lower()
        if mention not in seen:
            seen.append(mention)
    return seen


def _normalize_tag(tag: Optional[str]) -> str:
    return (tag or "").strip().lstrip("#").lower()


def _normalize_mention(value: Optional[str]) -> str:
    mention = (value or "").strip().lower()
    if not mention:
        return ""
    return mention if mention.startswith("@") else f"@{mention}"


@dataclass
class SyncSummary:
    total: int = 0
    unique_users: int = 0
    eligible: int = 0
    excluded: int = 0
    breakdown: dict[str, int] = field(default_factory=dict)
    latest_comment_at_in_window: Optional[datetime] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "unique_users": self.unique_users,
            "eligible": self.eligible,
            "excluded": self.excluded,
            "breakdown": dict(self.breakdown),
            "latest_comment_at_in_window": dt_iso(self.latest_comment_at_in_window),
        }


class EntryClassifier:
    """Applies a draw's rules to comments, one at a time, in arrival order.

    The classifier is stateful: the duplicate-user rule depends on which
    authors were already accepted.
    """

    def __init__(self, draw: GiveawayDraw, rules: GiveawayRules) -> None:
        self.draw = draw
        self.rules = rules
        self.required_keyword = (rules.required_keyword or "").strip().lower()
        self.banned_keyword = (rules.banned_keyword or "").strip().lower()
        self.min_mentions = max(0, int(rules.min_mentions or 0))
        self.required_hashtag = _normalize_tag(rules.required_hashtag)
        self.required_mention = _normalize_mention(rules.required_mention)
        self.block_list = {
            str(item).strip().lower() for item in (rules.block_list or []) if str(item).strip()
        }
        self._seen_users: set[str] = set()

    def is_correct(self, text: str) -> Optional[bool]:
        if self.draw.draw_mode != DrawMode.RANDOM_CORRECT.value:
            return None
        return evaluate_correctness(
            text, self.draw.correct_answer or "", self.draw.answer_match
        )

    def classify(self, comment: IncomingComment) -> tuple[str, Optional[str], Optional[bool]]:
        """Return ``(entry_status, exclusion_reason, is_correct)``."""
        text = comment.text or ""
        lowered = text.lower()
        user_id = comment.author_id or ""
        is_correct = self.is_correct(text)

        reason = self._exclusion_reason(lowered, text, user_id, comment.author_name or "")
        if reason is None and is_correct is False:
            reason = "wrong_answer"
        if reason is None:
            return EntryStatus.ELIGIBLE.value, None, is_correct
        return EntryStatus.EXCLUDED.value, reason, is_correct

    def _exclusion_reason(
        self, lowered: str, text: str, user_id: str, author_name: str
    ) -> Optional[str]:
        if self.required_keyword and self.required_keyword not in lowered:
            return "missing_required_keyword"
        if self.banned_keyword and self.banned_keyword in lowered:
            return "contains_banned_keyword"
        if self.rules.dedup_one_entry_per_user and user_id:
            if user_id in self._seen_users:
                return "duplicate_user"
            self._seen_users.add(user_id)

        mentions = extract_mentions(text)
        if self.min_mentions and len(mentions) < self.min_mentions:
            return "mentions_below_min"
        if self.required_hashtag and f"#{self.required_hashtag}" not in lowered:
            return "missing_required_hashtag"
        if self.required_mention and self.required_mention not in mentions:
            return "missing_required_mention"
        if self.block_list:
            user_key = author_name.strip().lower()
            if user_key and (user_key in self.block_list or f"@{user_key}" in self.block_list):
                return "blocked_user"
        if not self.rules.like_check_available and self.rules.requires_likes:
            return "like_check_unavailable"
        return None


def _comment_url(post_url: Optional[str], comment_id: str) -> Optional[str]:
    if not post_url:
        return None
    return f"{post_url}?comment_id={quote(comment_id, safe='')}"


def sync_entries(
    session: Session,
    draw: GiveawayDraw,
    comments: Iterable[IncomingComment],
    rules: Optional[GiveawayRules] = None,
) -> SyncSummary:
    """Classify fetched ``comments`` and upsert them into the ledger.

    Only comments created at or before ``draw.locked_at`` are considered;
    comments without a timestamp are skipped. Each call records an
    :class:`EligibilitySnapshot` with the resulting counters.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    draw : GiveawayDraw
        Draw whose ledger is updated. Must have a bound source.
    comments : Iterable[IncomingComment]
        Comments in the order the platform returned them.
    rules : Optional[GiveawayRules], default: None
        Rules to apply; the draw's saved rules or the defaults when omitted.

    Returns
    -------
    SyncSummary
        Counters for the comments inside the cutoff window.
    """
    rules = rules or draw.rules or GiveawayRules.defaults()
    classifier = EntryClassifier(draw, rules)
    cutoff = as_utc(draw.locked_at)
    source = draw.source
    post_url = source.post_url if source is not None else None

    existing = {
        entry.comment_id: entry
        for entry in session.scalars(
            select(GiveawayEntry).where(GiveawayEntry.draw_id == draw.id)
        )
    }

    summary = SyncSummary()
    breakdown: Counter[str] = Counter()
    users_in_window: set[str] = set()

    for comment in comments:
        if comment.is_reply and not rules.include_replies:
            continue
        created = as_utc(comment.created_at)
        if created is None or (cutoff is not None and created > cutoff):
            continue

        summary.total += 1
        if comment.author_id:
            users_in_window.add(comment.author_id)
        if (
            summary.latest_comment_at_in_window is None
            or created > summary.latest_comment_at_in_window
        ):
            summary.latest_comment_at_in_window = created

        status, reason, is_correct = classifier.classify(comment)
        if status == EntryStatus.ELIGIBLE.value:
            summary.eligible += 1
        else:
            summary.excluded += 1
            breakdown[reason or "other"] += 1

        entry = existing.get(comment.comment_id)
        if entry is None:
            entry = GiveawayEntry(draw_id=draw.id, comment_id=comment.comment_id)
            session.add(entry)
            existing[comment.comment_id] = entry
        entry.platform_user_id = comment.author_id or comment.author_name or None
        entry.display_name = comment.author_name or comment.author_id or None
        entry.comment_url = _comment_url(post_url, comment.comment_id)
        entry.comment_text = comment.text or None
        entry.comment_created_at = created
        entry.entry_status = status
        entry.exclusion_reason = reason
        entry.is_correct = is_correct

    summary.unique_users = len(users_in_window)
    summary.breakdown = dict(breakdown)

    session.add(
        EligibilitySnapshot(
            draw_id=draw.id,
            fetched_at=datetime.now(timezone.utc),
            total_comments_in_window=summary.total,
            unique_users_count=summary.unique_users,
            eligible_count=summary.eligible,
            excluded_count=summary.excluded,
            exclusion_breakdown=summary.breakdown,
            latest_comment_at_in_window=summary.latest_comment_at_in_window,
        )
    )
    session.flush()
    logger.info(
        f"Synced entries for draw {draw.id}: {summary.eligible} eligible, "
        f"{summary.excluded} excluded of {summary.total}"
    )
    return summary


__all__ = [
    "EntryClassifier",
    "SyncSummary",
    "extract_mentions",
    "list_eligible_entries",
    "sync_entries",
]
