"""Publish pipeline: result package in object storage plus an async video render."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

from ..db.utils import dt_iso
from ..errors import ExternalDependencyError
from .dispatch import RenderDispatcher, get_render_dispatcher
from .storage import PipelineStorage, get_pipeline_storage

if TYPE_CHECKING:
    from ..models import GiveawayDraw, GiveawayWinner

logger = logging.getLogger(__name__)

DEFAULT_ETA_SECONDS = 120
FALLBACK_BASE = "https://example.com/giveaway"


@dataclass(frozen=True)
class PackageKeys:
    """Object keys of a published package, all under ``giveaway/<slug>/``."""

    slug: str

    @property
    def base(self) -> str:
        return f"giveaway/{self.slug}"

    @property
    def manifest(self) -> str:
        return f"{self.base}/manifest.json"

    @property
    def winners(self) -> str:
        return f"{self.base}/winners.json"

    @property
    def render_status(self) -> str:
        return f"{self.base}/render-status.json"

    @property
    def render_job(self) -> str:
        return f"{self.base}/render-job.json"

    @property
    def video(self) -> str:
        return f"{self.base}/video.mp4"


@dataclass(frozen=True)
class PublishPackage:
    """URLs of the documents written by :meth:`PublishPipeline.persist_manifest`."""

    storage: str
    manifest_url: Optional[str]
    winners_url: Optional[str]
    render_status_url: Optional[str]
    render_job_url: Optional[str]
    video_url: str

    def to_json(self) -> dict[str, Any]:
        return {
            "storage": self.storage,
            "manifest_url": self.manifest_url,
            "winners_url": self.winners_url,
            "render_status_url": self.render_status_url,
            "render_job_url": self.render_job_url,
            "expected_files": [self.video_url],
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def queued_render_status(updated_at: str, eta_seconds: int = DEFAULT_ETA_SECONDS) -> dict:
    return {
        "status": "queued",
        "eta_seconds": eta_seconds,
        "started_at": None,
        "completed_at": None,
        "render_duration_sec": None,
        "error_message": None,
        "updated_at": updated_at,
    }


class PublishPipeline:
    """Writes result packages and drives the external render worker.

    Publishing is two separately failing steps: :meth:`persist_manifest`
    (durable, at-least-once toward storage) and :meth:`dispatch_render`
    (best effort, recoverable with :meth:`retry`).
    """

    def __init__(
        self,
        storage: Optional[PipelineStorage] = None,
        dispatcher: Optional[RenderDispatcher] = None,
        *,
        eta_seconds: int = DEFAULT_ETA_SECONDS,
    ) -> None:
        self.storage = storage
        self.dispatcher = dispatcher
        self.eta_seconds = eta_seconds

    @classmethod
    def from_env(cls) -> "PublishPipeline":
        return cls(get_pipeline_storage(), get_render_dispatcher())

    @property
    def storage_label(self) -> str:
        return "R2" if self.storage is not None else "fallback"

    def _url(self, key: str) -> str:
        if self.storage is not None:
            return self.storage.public_url(key)
        return f"{FALLBACK_BASE}/{key[len('giveaway/'):]}"

    def build_manifest(
        self,
        draw: "GiveawayDraw",
        keys: PackageKeys,
        published_at: str,
    ) -> dict[str, Any]:
        return {
            "draw_id": draw.id,
            "slug": keys.slug,
            "title": draw.title,
            "platform": draw.platform,
            "draw_code": draw.draw_code,
            "locked_at": dt_iso(draw.locked_at),
            "published_at": published_at,
            "branding": {
                "show_logo": draw.show_logo,
                "logo_url": draw.logo_url if draw.show_logo else None,
                "show_contest_image": draw.show_contest_image,
                "contest_image_url": (
                    draw.contest_image_url if draw.show_contest_image else None
                ),
                "main_color": draw.main_color,
            },
            "video": {
                "format": draw.video_format,
                "animation_type": draw.animation_type,
                "enable_sounds": draw.animation_enable_sounds,
                "duration_sec": draw.animation_duration_sec,
                "pick_one_by_one": draw.animation_pick_one_by_one,
            },
            "assets": {
                "video_output": self._url(keys.video),
                "winners_file": self._url(keys.winners),
            },
            "note": "Video is rendered asynchronously by worker from this package.",
        }

    def build_render_job(
        self, draw_id: Any, keys: PackageKeys, queued_at: str, *, retried: bool = False
    ) -> dict[str, Any]:
        job = {
            "job_type": "giveaway_render",
            "draw_id": draw_id,
            "slug": keys.slug,
            "manifest_key": keys.manifest,
            "winners_key": keys.winners,
            "output": {"video_key": keys.video},
            "queued_at": queued_at,
        }
        if retried:
            job["retried"] = True
        return job

    def persist_manifest(
        self,
        draw: "GiveawayDraw",
        slug: str,
        winners: Sequence["GiveawayWinner"],
        published_at: Optional[str] = None,
    ) -> PublishPackage:
        """Write manifest, winners, render status and render job for ``slug``.

        Existing documents under the slug are overwritten. Without storage the
        returned package only describes the expected fallback URLs.

        Raises
        ------
        ExternalDependencyError
            If any write to storage fails.
        """
        keys = PackageKeys(slug)
        published_at = published_at or _now_iso()
        video_url = self._url(keys.video)
        if self.storage is None:
            logger.warning(f"Publishing draw {draw.id} without storage (fallback)")
            return PublishPackage(
                storage=self.storage_label,
                manifest_url=None,
                winners_url=None,
                render_status_url=None,
                render_job_url=None,
                video_url=video_url,
            )

        winners_payload = {
            "draw_id": draw.id,
            "slug": slug,
            "winners": [winner.to_public_json() for winner in winners],
        }
        manifest_url = self.storage.put_json(
            keys.manifest, self.build_manifest(draw, keys, published_at)
        )
        winners_url = self.storage.put_json(keys.winners, winners_payload)
        render_status_url = self.storage.put_json(
            keys.render_status, queued_render_status(published_at, self.eta_seconds)
        )
        render_job_url = self.storage.put_json(
            keys.render_job, self.build_render_job(draw.id, keys, published_at)
        )
        logger.info(f"Persisted publish package for draw {draw.id} under {keys.base}")
        return PublishPackage(
            storage=self.storage_label,
            manifest_url=manifest_url,
            winners_url=winners_url,
            render_status_url=render_status_url,
            render_job_url=render_job_url,
            video_url=video_url,
        )

    def dispatch_render(self, draw_id: Any, slug: str) -> bool:
        """Trigger the render worker for ``slug``.

        Returns ``False`` when storage is not configured, since there is no
        package to render.

        Raises
        ------
        ExternalDependencyError
            If the dispatcher is not configured or the dispatch fails.
        """
        if self.storage is None:
            logger.info(f"Skipping render dispatch for draw {draw_id}: no storage")
            return False
        if self.dispatcher is None:
            raise ExternalDependencyError("Render dispatch is not configured")
        self.dispatcher.dispatch(draw_id, slug)
        return True

    def retry(self, draw_id: Any, slug: str) -> None:
        """Reset the render status to ``queued`` and dispatch the render again."""
        if self.storage is None:
            raise ExternalDependencyError("Object storage is not configured")
        keys = PackageKeys(slug)
        now = _now_iso()
        self.storage.put_json(keys.render_status, queued_render_status(now, self.eta_seconds))
        self.storage.put_json(
            keys.render_job, self.build_render_job(draw_id, keys, now, retried=True)
        )
        self.dispatch_render(draw_id, slug)

    def record_render_status(self, slug: str, payload: dict[str, Any]) -> bool:
        """Overwrite render-status.json; ``False`` when there is no storage."""
        if self.storage is None:
            return False
        self.storage.put_json(PackageKeys(slug).render_status, payload)
        return True

    def get_status(self, slug: str) -> dict[str, Any]:
        """Return the render status of ``slug`` without ever raising."""
        if self.storage is None:
            return {
                "status": "fallback",
                "storage": "fallback",
                "manifest": None,
                "render_status": None,
            }
        keys = PackageKeys(slug)
        manifest = self.storage.get_json(keys.manifest)
        render_status = self.storage.get_json(keys.render_status)
        status = None
        if isinstance(render_status, dict):
            status = render_status.get("status")
        return {
            "status": status or "packaged",
            "storage": self.storage_label,
            "manifest": manifest,
            "render_status": render_status,
        }


__all__ = [
    "PackageKeys",
    "PublishPackage",
    "PublishPipeline",
    "queued_render_status",
]
