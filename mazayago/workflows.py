from dataclasses import dataclass
from datetime import datetime, timezone
import hmac
import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db.utils import dt_iso
from .errors import (
    DrawNotFound,
    InsufficientEntriesError,
    PlatformMismatchError,
    PreconditionError,
    Unauthorized,
    ValidationError,
)
from .giveaway.ledger import SyncSummary, list_eligible_entries, sync_entries
from .giveaway.lifecycle import DrawEvent, advance, ensure_editable, next_status
from .giveaway.selector import RandomSource, SelectionResult, select_winners
from .models import (
    DrawMode,
    DrawStatus,
    EligibilitySnapshot,
    FacebookSource,
    GiveawayDraw,
    GiveawayEntry,
    GiveawayRules,
    GiveawayWinner,
    InstagramSource,
    Platform,
    PublishAsset,
    SocialPage,
)
from .models.utils import make_draw_code, make_public_slug
from .schemas import (
    SOURCE_SCHEMAS,
    DrawCreateIn,
    DrawUpdateIn,
    EntrySyncIn,
    FacebookSourceIn,
    InstagramSourceIn,
    RenderCallbackIn,
    RulesIn,
    parse_input,
)

if TYPE_CHECKING:
    from .pipeline.publisher import PublishPackage, PublishPipeline

logger = logging.getLogger(__name__)

INPUT_FIELDS = frozenset(
    {"winners_count", "alternates_count", "draw_mode", "correct_answer", "answer_match"}
)
"""Draw fields that shape the selection and freeze once ``locked_at`` is set."""


def _plain(value: Any) -> Any:
    return getattr(value, "value", value)


def get_draw(session: Session, draw_id: int, *, for_update: bool = False) -> GiveawayDraw:
    """Load a draw, optionally holding its row lock until the transaction ends.

    Raises
    ------
    DrawNotFound
        If no draw has ``draw_id``.
    """
    stmt = select(GiveawayDraw).where(GiveawayDraw.id == draw_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    draw = session.scalar(stmt)
    if draw is None:
        raise DrawNotFound(f"Draw {draw_id} not found")
    return draw


def create_draw(session: Session, data: Any) -> GiveawayDraw:
    """Create a draft draw with the platform defaults.

    ``data`` is a mapping or :class:`DrawCreateIn`; invalid input raises
    :class:`ValidationError`.
    """
    payload = parse_input(DrawCreateIn, data)
    draw = GiveawayDraw(
        platform=payload.platform.value,
        status=DrawStatus.DRAFT.value,
        title=payload.title,
        winners_count=payload.winners_count,
        alternates_count=payload.alternates_count,
        locked_at=payload.locked_at,
    )
    session.add(draw)
    session.flush()
    logger.info(f"Created draw {draw.id} on {draw.platform}")
    return draw


def update_draw(session: Session, draw_id: int, data: Any) -> GiveawayDraw:
    """Apply a partial update to a draft draw.

    Only fields present in ``data`` change. Selection inputs
    (:data:`INPUT_FIELDS`) are rejected while the draw is locked, unless the
    same update clears ``locked_at``.

    Raises
    ------
    PreconditionError
        If the draw is no longer a draft, or inputs change while locked.
    ValidationError
        If the input is malformed, or ``RANDOM_CORRECT`` has no answer.
    """
    draw = get_draw(session, draw_id, for_update=True)
    payload = parse_input(DrawUpdateIn, data)
    fields = {
        name: _plain(getattr(payload, name)) for name in payload.model_fields_set
    }
    changes = {
        name: value for name, value in fields.items() if getattr(draw, name) != value
    }

    touches_inputs = bool(INPUT_FIELDS & changes.keys())
    unlocks = "locked_at" in changes and changes["locked_at"] is None
    ensure_editable(draw, inputs=touches_inputs and not unlocks)

    draw_mode = changes.get("draw_mode", draw.draw_mode)
    correct_answer = changes.get("correct_answer", draw.correct_answer)
    if draw_mode == DrawMode.RANDOM_CORRECT.value and not (correct_answer or "").strip():
        raise ValidationError("correct_answer is required when draw_mode=RANDOM_CORRECT")

    advance(session, draw, DrawEvent.EDIT, **changes)
    session.flush()
    return draw


def lock_draw(
    session: Session, draw_id: int, at: Optional[datetime] = None
) -> GiveawayDraw:
    """Set the comment cutoff of a draft draw if it is not set yet."""
    draw = get_draw(session, draw_id, for_update=True)
    next_status(draw.status, DrawEvent.LOCK)
    if draw.locked_at is None:
        advance(
            session,
            draw,
            DrawEvent.LOCK,
            locked_at=at or datetime.now(timezone.utc),
        )
        session.flush()
    return draw


def set_source(
    session: Session,
    draw_id: int,
    platform: Any,
    data: Any,
) -> "FacebookSource | InstagramSource":
    """Bind the social post entries are collected from, replacing any binding.

    Raises
    ------
    PreconditionError
        If the draw is not editable or its inputs are locked.
    PlatformMismatchError
        If ``platform`` differs from the draw's platform.
    ValidationError
        If the payload is malformed or the Facebook page is not active.
    """
    draw = get_draw(session, draw_id, for_update=True)
    ensure_editable(draw, inputs=True)

    try:
        platform = Platform(_plain(platform))
    except ValueError as exc:
        raise ValidationError(f"Unknown platform {platform!r}") from exc
    if platform.value != draw.platform:
        raise PlatformMismatchError(
            f"Draw platform must be {draw.platform}, got {platform.value}"
        )

    schema = SOURCE_SCHEMAS.get(platform)
    if schema is None:
        raise ValidationError(f"Source binding is not supported for {platform.value}")
    payload = parse_input(schema, data)

    if isinstance(payload, FacebookSourceIn):
        source = _upsert_facebook_source(session, draw, payload)
    else:
        source = _upsert_instagram_source(draw, payload)
    session.flush()
    logger.info(f"Bound {platform.value} source to draw {draw.id}")
    return source


def _upsert_facebook_source(
    session: Session, draw: GiveawayDraw, payload: FacebookSourceIn
) -> FacebookSource:
    page = SocialPage.get_active_facebook(session, payload.social_page_id)
    if page is None:
        raise ValidationError("Active Facebook page not found")

    source = draw.facebook_source
    if source is None:
        source = FacebookSource(draw_id=draw.id)
        draw.facebook_source = source
    source.social_page_id = page.id
    source.fb_page_id = page.fb_page_id
    source.fb_page_name = page.fb_page_name
    source.fb_post_id = payload.fb_post_id
    source.post_url = payload.post_url or None
    source.post_text_snippet = payload.post_text_snippet
    return source


def _upsert_instagram_source(
    draw: GiveawayDraw, payload: InstagramSourceIn
) -> InstagramSource:
    source = draw.instagram_source
    if source is None:
        source = InstagramSource(draw_id=draw.id, post_url=payload.post_url)
        draw.instagram_source = source
    for name, value in payload.model_dump().items():
        setattr(source, name, value)
    return source


def set_rules(session: Session, draw_id: int, data: Any) -> tuple[GiveawayRules, Optional[str]]:
    """Upsert the eligibility rules of a draft draw.

    Returns the rules and a warning when a like requirement was requested,
    since likes cannot be verified.
    """
    draw = get_draw(session, draw_id, for_update=True)
    ensure_editable(draw, inputs=True)
    payload = parse_input(RulesIn, data)

    rules = draw.rules
    if rules is None:
        rules = GiveawayRules(draw_id=draw.id)
        draw.rules = rules
    for name, value in payload.model_dump().items():
        setattr(rules, name, value)
    rules.like_check_available = not rules.requires_likes
    session.flush()

    warning = None
    if not rules.like_check_available:
        warning = "Like verification unavailable for this provider setup"
    return rules, warning


def sync_draw_entries(
    session: Session, draw_id: int, comments: Iterable[Any]
) -> SyncSummary:
    """Classify fetched comments into the draw's entry ledger."""
    draw = get_draw(session, draw_id, for_update=True)
    next_status(draw.status, DrawEvent.SYNC)
    if draw.source is None:
        raise PreconditionError("source required")
    payload = parse_input(EntrySyncIn, {"comments": list(comments)})
    return sync_entries(session, draw, payload.comments)


def freeze_draw(session: Session, draw_id: int) -> GiveawayDraw:
    """Freeze the draw's inputs and assign its fairness code.

    Raises
    ------
    PreconditionError
        If the draw is not a draft, ``locked_at`` is unset, or no source is
        bound for the draw's platform.
    """
    draw = get_draw(session, draw_id, for_update=True)
    next_status(draw.status, DrawEvent.FREEZE)
    if draw.locked_at is None:
        raise PreconditionError("locked_at required")
    if draw.source is None:
        raise PreconditionError("source required")

    advance(
        session,
        draw,
        DrawEvent.FREEZE,
        draw_code=draw.draw_code or make_draw_code(session),
    )
    session.flush()
    return draw


def run_draw(
    session: Session,
    draw_id: int,
    *,
    rng: Optional[RandomSource] = None,
    seed: Optional[str] = None,
) -> SelectionResult:
    """Pick winners and alternates for a frozen (or already drawn) draw.

    The previous winner set is deleted and the new one inserted within the
    caller's transaction, while the draw row is locked. Any failure leaves
    the winners untouched once the transaction rolls back.

    Parameters
    ----------
    session : Session
        Active session; the caller commits or rolls back.
    draw_id : int
        Draw to run.
    rng : Optional[RandomSource], default: None
        Sampling source; cryptographically secure when omitted.
    seed : Optional[str], default: None
        Audit seed override, mostly useful in tests.

    Returns
    -------
    SelectionResult
        Picks in rank order and the fairness audit.

    Raises
    ------
    PreconditionError
        If the draw is not ``FROZEN`` or ``DRAWN``.
    InsufficientEntriesError
        If fewer eligible entries exist than winners plus alternates.
    """
    draw = get_draw(session, draw_id, for_update=True)
    next_status(draw.status, DrawEvent.DRAW)

    require_correct = draw.draw_mode == DrawMode.RANDOM_CORRECT.value
    entries = list_eligible_entries(session, draw.id, require_correct=require_correct)
    if len(entries) < draw.total_to_pick:
        raise InsufficientEntriesError(draw.total_to_pick, len(entries))
    selection = select_winners(
        entries,
        draw.winners_count,
        draw.alternates_count,
        draw_id=draw.id,
        require_correct=require_correct,
        seed=seed,
        rng=rng,
    )

    advance(session, draw, DrawEvent.DRAW)

    # Flush the deletes before inserting; ranks are unique per draw.
    draw.winners.clear()
    session.flush()
    selected_at = datetime.now(timezone.utc)
    for pick in selection.picks:
        entry: GiveawayEntry = pick.entry
        draw.winners.append(
            GiveawayWinner(
                rank=pick.rank,
                winner_type=pick.winner_type.value,
                entry=entry,
                selected_at=selected_at,
                proof_comment_url=entry.comment_url,
            )
        )
    session.flush()
    logger.info(
        f"Draw {draw.id} picked {draw.total_to_pick} of "
        f"{selection.population_size} eligible entries"
    )
    return selection


@dataclass
class PublishResult:
    draw: GiveawayDraw
    asset: PublishAsset
    package: "PublishPackage"

    def to_json(self) -> dict[str, Any]:
        return {
            "draw": self.draw.to_json(),
            "assets": self.asset.to_json(),
            "package": self.package.to_json(),
        }


def publish_draw(
    session: Session, draw_id: int, pipeline: "PublishPipeline"
) -> PublishResult:
    """Publish a drawn draw: persist its package and mark it ``PUBLISHED``.

    Re-publishing reuses the existing slug and overwrites the stored package.
    The render trigger is a separate step, :func:`dispatch_render`, to be
    called once this transaction has committed.

    Raises
    ------
    PreconditionError
        If the draw has not been drawn.
    ExternalDependencyError
        If writing the package to storage fails; nothing is committed.
    """
    draw = get_draw(session, draw_id, for_update=True)
    next_status(draw.status, DrawEvent.PUBLISH)

    slug = draw.public_view_slug or make_public_slug(session)
    now = datetime.now(timezone.utc)
    package = pipeline.persist_manifest(draw, slug, draw.winners, now.isoformat())

    asset = draw.publish_asset
    if asset is None:
        asset = PublishAsset(draw_id=draw.id, video_url=None)
        draw.publish_asset = asset
    asset.published_at = now

    advance(session, draw, DrawEvent.PUBLISH, public_view_slug=slug)
    session.flush()
    logger.info(f"Published draw {draw.id} as {slug}")
    return PublishResult(draw=draw, asset=asset, package=package)


def dispatch_render(session: Session, draw_id: int, pipeline: "PublishPipeline") -> bool:
    """Trigger the render of a published draw's package."""
    draw = get_draw(session, draw_id)
    if not draw.public_view_slug:
        raise PreconditionError("Publish first")
    return pipeline.dispatch_render(draw.id, draw.public_view_slug)


def retry_publish(session: Session, draw_id: int, pipeline: "PublishPipeline") -> None:
    """Re-queue the render of a published draw without re-running selection."""
    draw = get_draw(session, draw_id)
    if not draw.public_view_slug:
        raise PreconditionError("Publish first")
    pipeline.retry(draw.id, draw.public_view_slug)


def verify_render_secret(provided: Optional[str], expected: Optional[str]) -> None:
    """Constant-time comparison of the render callback secret.

    An unset ``expected`` secret rejects every callback.
    """
    if not expected or not hmac.compare_digest(
        (provided or "").encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning("Rejected render callback with an invalid secret")
        raise Unauthorized("Unauthorized")


def handle_render_callback(
    session: Session,
    draw_id: int,
    payload: Mapping[str, Any],
    provided_secret: Optional[str],
    expected_secret: Optional[str],
    pipeline: "PublishPipeline",
) -> dict[str, Any]:
    """Record a render status update posted by the render worker.

    The secret is checked before anything is read or written. Receiving the
    same payload twice leaves the same state.

    Raises
    ------
    Unauthorized
        If the secret is missing or wrong.
    PreconditionError
        If the draw has no public slug yet.
    """
    verify_render_secret(provided_secret, expected_secret)

    draw = get_draw(session, draw_id, for_update=True)
    if not draw.public_view_slug:
        raise PreconditionError("Missing public slug")
    body = RenderCallbackIn.from_payload(payload)

    now = datetime.now(timezone.utc)
    render_status = {
        "status": body.status,
        "eta_seconds": body.eta_seconds,
        "started_at": body.started_at,
        "completed_at": body.completed_at
        or (now.isoformat() if body.status == "published" else None),
        "render_duration_sec": body.render_duration_sec,
        "error_message": body.error_message,
        "updated_at": now.isoformat(),
    }
    pipeline.record_render_status(draw.public_view_slug, render_status)

    if body.video_url:
        asset = draw.publish_asset
        if asset is None:
            asset = PublishAsset(draw_id=draw.id, published_at=now)
            draw.publish_asset = asset
        asset.video_url = body.video_url
        if asset.published_at is None:
            asset.published_at = now
        session.flush()
    logger.info(f"Render status for draw {draw.id}: {body.status}")
    return render_status


def get_publish_status(
    session: Session, draw_id: int, pipeline: "PublishPipeline"
) -> dict[str, Any]:
    """Poll the render status; never fails because storage is missing."""
    draw = get_draw(session, draw_id)
    if not draw.public_view_slug:
        return {"status": "not_published"}
    return pipeline.get_status(draw.public_view_slug)


def get_public_view(session: Session, slug: str) -> dict[str, Any]:
    """Public result page data for a published draw.

    Raises
    ------
    DrawNotFound
        If no published draw uses ``slug``.
    """
    draw = GiveawayDraw.get_by_slug(session, slug)
    if draw is None or draw.status != DrawStatus.PUBLISHED.value:
        raise DrawNotFound(f"No published draw for {slug!r}")
    asset = draw.publish_asset
    return {
        "title": draw.title,
        "platform": draw.platform,
        "locked_at": dt_iso(draw.locked_at),
        "draw_code": draw.draw_code,
        "logo_url": draw.logo_url if draw.show_logo else None,
        "contest_image_url": (
            draw.contest_image_url if draw.show_contest_image else None
        ),
        "winners": [winner.to_public_json() for winner in draw.winners],
        "assets": asset.to_json() if asset is not None else None,
    }


def _latest_snapshot(session: Session, draw_id: int) -> Optional[EligibilitySnapshot]:
    return session.scalar(
        select(EligibilitySnapshot)
        .where(EligibilitySnapshot.draw_id == draw_id)
        .order_by(EligibilitySnapshot.fetched_at.desc(), EligibilitySnapshot.id.desc())
        .limit(1)
    )


def get_draw_summary(session: Session, draw_id: int) -> Optional[dict[str, Any]]:
    """Counters of the latest entry sync, or ``None`` before the first sync."""
    draw = get_draw(session, draw_id)
    snapshot = _latest_snapshot(session, draw.id)
    return snapshot.to_json() if snapshot is not None else None


def get_draw_detail(session: Session, draw_id: int) -> dict[str, Any]:
    """Everything the organizer screen shows for a draw."""
    draw = get_draw(session, draw_id)
    source = draw.source
    snapshot = _latest_snapshot(session, draw.id)
    participants = session.scalars(
        select(GiveawayEntry)
        .where(GiveawayEntry.draw_id == draw.id)
        .order_by(
            GiveawayEntry.comment_created_at.desc().nulls_last(),
            GiveawayEntry.created_at.desc(),
        )
        .limit(200)
    ).all()
    return {
        "draw": draw.to_json(),
        "source": source.to_json() if source is not None else None,
        "rules": draw.rules.to_json() if draw.rules is not None else None,
        "summary": snapshot.to_json() if snapshot is not None else None,
        "participants": [entry.to_json() for entry in participants],
        "winners": [winner.to_json() for winner in draw.winners],
        "assets": draw.publish_asset.to_json() if draw.publish_asset else None,
    }


__all__ = [
    "INPUT_FIELDS",
    "PublishResult",
    "create_draw",
    "dispatch_render",
    "freeze_draw",
    "get_draw",
    "get_draw_detail",
    "get_draw_summary",
    "get_public_view",
    "get_publish_status",
    "handle_render_callback",
    "lock_draw",
    "publish_draw",
    "retry_publish",
    "run_draw",
    "set_rules",
    "set_source",
    "sync_draw_entries",
    "update_draw",
    "verify_render_secret",
]
