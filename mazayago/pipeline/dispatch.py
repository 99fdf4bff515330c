import os
import logging
from typing import Any, Mapping, Optional

import requests
from dotenv import load_dotenv

from ..errors import ExternalDependencyError

logger = logging.getLogger(__name__)


class RenderDispatcher:
    """Triggers the out-of-process video render as a GitHub Actions workflow."""

    def __init__(
        self,
        repo: Optional[str] = None,
        token: Optional[str] = None,
        *,
        workflow: Optional[str] = None,
        ref: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        self.repo = repo or os.getenv("GITHUB_RENDER_REPO")
        self.token = token or os.getenv("GITHUB_RENDER_PAT")
        if not self.repo or not self.token:
            raise ValueError(
                "Environment variables 'GITHUB_RENDER_REPO' and 'GITHUB_RENDER_PAT' must be set"
            )
        self.workflow = workflow or os.getenv(
            "GITHUB_RENDER_WORKFLOW", "giveaway-render.yml"
        )
        self.ref = ref or os.getenv("GITHUB_RENDER_REF", "main")
        self.timeout = timeout
        self.session = session or requests.Session()

    # -------- headers --------
    @property
    def headers(self) -> Mapping[str, str]:
        # Never log these; they carry the token.
        return {
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github+json",
            "Content-Type": "application/json",
        }

    @property
    def url(self) -> str:
        return (
            f"https://api.github.com/repos/{self.repo}"
            f"/actions/workflows/{self.workflow}/dispatches"
        )

    def dispatch(self, draw_id: Any, slug: str) -> None:
        """Queue a render of the package published under ``slug``.

        Raises
        ------
        ExternalDependencyError
            If GitHub is unreachable or rejects the dispatch.
        """
        payload = {"ref": self.ref, "inputs": {"drawId": str(draw_id), "slug": slug}}
        try:
            r = self.session.post(
                self.url, headers=self.headers, json=payload, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.error(f"Render dispatch for draw {draw_id} failed: {exc}")
            raise ExternalDependencyError(f"Render dispatch failed: {exc}") from exc

        if not r.ok:
            logger.error(
                f"Render dispatch for draw {draw_id} rejected with HTTP {r.status_code}"
            )
            raise ExternalDependencyError(
                f"GitHub workflow dispatch failed ({r.status_code}): {r.text}"
            )
        logger.info(f"Render dispatched for draw {draw_id} (slug {slug})")


def get_render_dispatcher() -> Optional[RenderDispatcher]:
    """Return a dispatcher built from the environment, or ``None`` if unset."""
    try:
        return RenderDispatcher()
    except ValueError:
        logger.debug("Render dispatch is not configured")
        return None


__all__ = ["RenderDispatcher", "get_render_dispatcher"]
