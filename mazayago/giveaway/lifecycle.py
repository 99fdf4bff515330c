"""Explicit state machine for the giveaway draw lifecycle."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..errors import PreconditionError
from ..models import DrawStatus, GiveawayDraw

logger = logging.getLogger(__name__)


class DrawEvent(str, Enum):
    EDIT = "edit"
    LOCK = "lock"
    SYNC = "sync"
    FREEZE = "freeze"
    DRAW = "draw"
    PUBLISH = "publish"


TRANSITIONS: dict[tuple[DrawStatus, DrawEvent], DrawStatus] = {
    (DrawStatus.DRAFT, DrawEvent.EDIT): DrawStatus.DRAFT,
    (DrawStatus.DRAFT, DrawEvent.LOCK): DrawStatus.DRAFT,
    (DrawStatus.DRAFT, DrawEvent.SYNC): DrawStatus.DRAFT,
    (DrawStatus.DRAFT, DrawEvent.FREEZE): DrawStatus.FROZEN,
    (DrawStatus.FROZEN, DrawEvent.DRAW): DrawStatus.DRAWN,
    (DrawStatus.DRAWN, DrawEvent.DRAW): DrawStatus.DRAWN,
    (DrawStatus.DRAWN, DrawEvent.PUBLISH): DrawStatus.PUBLISHED,
    (DrawStatus.PUBLISHED, DrawEvent.PUBLISH): DrawStatus.PUBLISHED,
}
"""Every legal ``(current status, event) -> next status`` pair."""

_REJECTIONS: dict[DrawEvent, str] = {
    DrawEvent.EDIT: "Draw is locked and cannot be modified",
    DrawEvent.LOCK: "Only draft draws can be locked",
    DrawEvent.SYNC: "Entries can only be synced while the draw is a draft",
    DrawEvent.FREEZE: "Only draft draws can be frozen",
    DrawEvent.DRAW: "Draw must be frozen first",
    DrawEvent.PUBLISH: "Run official draw first",
}


def next_status(status: str, event: DrawEvent) -> DrawStatus:
    """Return the status reached by applying ``event`` in ``status``.

    Raises
    ------
    PreconditionError
        If the transition is not part of :data:`TRANSITIONS`.
    """
    try:
        current = DrawStatus(status)
    except ValueError as exc:
        raise PreconditionError(f"Unknown draw status {status!r}") from exc
    target = TRANSITIONS.get((current, event))
    if target is None:
        raise PreconditionError(
            f"{_REJECTIONS[event]} (status is {current.value})"
        )
    return target


def is_editable(draw: GiveawayDraw) -> bool:
    """Whether configuration of ``draw`` may still change."""
    return (DrawStatus(draw.status), DrawEvent.EDIT) in TRANSITIONS


def inputs_locked(draw: GiveawayDraw) -> bool:
    """Whether ``draw`` has a comment cutoff, which freezes its selection inputs."""
    return draw.locked_at is not None


def ensure_editable(draw: GiveawayDraw, *, inputs: bool = False) -> None:
    """Raise :class:`PreconditionError` unless ``draw`` may be modified.

    With ``inputs=True`` the selection inputs (source, counts, draw mode,
    rules) must additionally be unlocked.
    """
    next_status(draw.status, DrawEvent.EDIT)
    if inputs and inputs_locked(draw):
        raise PreconditionError(
            "Draw inputs are locked; clear locked_at before changing them"
        )


def advance(
    session: Session,
    draw: GiveawayDraw,
    event: DrawEvent,
    **values: Any,
) -> DrawStatus:
    """Apply ``event`` to ``draw`` with a compare-and-set on its status.

    The update only matches while the row still holds the status observed on
    ``draw``; when another transaction moved it first, zero rows match and
    the transition is rejected. Extra column ``values`` are written in the
    same statement.
    """
    observed = draw.status
    target = next_status(observed, event)
    stmt = (
        update(GiveawayDraw)
        .where(GiveawayDraw.id == draw.id, GiveawayDraw.status == observed)
        .values(
            status=target.value,
            updated_at=datetime.now(timezone.utc),
            **values,
        )
        .execution_options(synchronize_session="evaluate")
    )
    result = session.execute(stmt)
    if result.rowcount != 1:
        raise PreconditionError(
            f"Draw {draw.id} changed state concurrently; expected {observed}"
        )
    logger.info(f"Draw {draw.id}: {observed} --{event.value}--> {target.value}")
    return target


__all__ = [
    "DrawEvent",
    "TRANSITIONS",
    "advance",
    "ensure_editable",
    "inputs_locked",
    "is_editable",
    "next_status",
]
