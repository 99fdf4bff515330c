"""Utility helpers for the models package."""

from __future__ import annotations

import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, InstrumentedAttribute


def _generate_unique(
    make,
    column: Optional[InstrumentedAttribute],
    session: Optional[Session],
    max_attempts: int,
    label: str,
) -> str:
    attempts = 0
    while attempts < max_attempts:
        candidate = make()
        if session is not None and column is not None:
            owner = column.class_
            collision = any(
                isinstance(obj, owner) and getattr(obj, column.key, None) == candidate
                for obj in session.new
            )
            if not collision:
                collision = (
                    session.scalar(select(owner.id).where(column == candidate))
                    is not None
                )
            if collision:
                attempts += 1
                continue
        return candidate

    raise RuntimeError(f"Unable to generate a unique {label} after multiple attempts")


def make_draw_code(session: Optional[Session] = None, max_attempts: int = 32) -> str:
    """Return a fairness code such as ``FC-3F9A0C12B7DE``.

    When a session is provided, the helper retries if the generated value is
    already used by another draw.
    """
    from .draw import GiveawayDraw

    return _generate_unique(
        lambda: f"FC-{secrets.token_hex(6).upper()}",
        GiveawayDraw.draw_code,
        session,
        max_attempts,
        "draw code",
    )


def make_public_slug(session: Optional[Session] = None, max_attempts: int = 32) -> str:
    """Return a 16 character hex slug for the public result page."""
    from .draw import GiveawayDraw

    return _generate_unique(
        lambda: secrets.token_hex(8),
        GiveawayDraw.public_view_slug,
        session,
        max_attempts,
        "public view slug",
    )
