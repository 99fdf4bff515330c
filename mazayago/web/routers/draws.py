import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ... import workflows
from ...errors import ExternalDependencyError
from ...pipeline import PublishPipeline
from ...schemas import EntrySyncIn, parse_input
from ..deps import get_callback_secret, get_pipeline, get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/draws", tags=["draws"])


def ok(data: Any) -> dict[str, Any]:
    return {"ok": True, "data": data}


@router.post("", status_code=201)
def create_draw(
    payload: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
):
    draw = workflows.create_draw(session, payload)
    return ok(draw.to_json())


@router.get("/{draw_id}")
def get_draw(draw_id: int, session: Session = Depends(get_session)):
    return ok(workflows.get_draw_detail(session, draw_id))


@router.get("/{draw_id}/summary")
def get_summary(draw_id: int, session: Session = Depends(get_session)):
    return ok(workflows.get_draw_summary(session, draw_id))


@router.patch("/{draw_id}")
def update_draw(
    draw_id: int,
    payload: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
):
    draw = workflows.update_draw(session, draw_id, payload)
    return ok(draw.to_json())


@router.post("/{draw_id}/lock")
def lock_draw(draw_id: int, session: Session = Depends(get_session)):
    draw = workflows.lock_draw(session, draw_id)
    return ok(draw.to_json())


@router.post("/{draw_id}/rules")
def set_rules(
    draw_id: int,
    payload: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
):
    rules, warning = workflows.set_rules(session, draw_id, payload)
    return ok({"rules": rules.to_json(), "warning": warning})


@router.post("/{draw_id}/source")
def set_source(
    draw_id: int,
    payload: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
):
    data = dict(payload)
    platform = data.pop("platform", None) or workflows.get_draw(session, draw_id).platform
    source = workflows.set_source(session, draw_id, platform, data)
    return ok(source.to_json())


@router.post("/{draw_id}/entries/sync")
def sync_entries(
    draw_id: int,
    payload: dict[str, Any] = Body(...),
    session: Session = Depends(get_session),
):
    body = parse_input(EntrySyncIn, payload)
    summary = workflows.sync_draw_entries(session, draw_id, body.comments)
    return ok(summary.to_json())


@router.post("/{draw_id}/freeze")
def freeze_draw(draw_id: int, session: Session = Depends(get_session)):
    draw = workflows.freeze_draw(session, draw_id)
    return ok(draw.to_json())


@router.post("/{draw_id}/draw")
def run_draw(draw_id: int, session: Session = Depends(get_session)):
    selection = workflows.run_draw(session, draw_id)
    draw = workflows.get_draw(session, draw_id)
    return ok(
        {
            "draw": draw.to_json(),
            "winners": [winner.to_json() for winner in draw.winners],
            "eligible_count": selection.population_size,
            "audit": selection.audit.to_json(),
        }
    )


@router.post("/{draw_id}/publish")
def publish_draw(
    draw_id: int,
    session: Session = Depends(get_session),
    pipeline: PublishPipeline = Depends(get_pipeline),
):
    result = workflows.publish_draw(session, draw_id, pipeline)
    data = result.to_json()
    # The package and the slug must be durable before the worker is told.
    session.commit()
    try:
        data["dispatched"] = workflows.dispatch_render(session, draw_id, pipeline)
    except ExternalDependencyError as exc:
        logger.warning(f"Draw {draw_id} published but render dispatch failed: {exc}")
        data["dispatched"] = False
        return JSONResponse(status_code=502, content={"error": str(exc), "data": data})
    return ok(data)


@router.post("/{draw_id}/publish/retry")
def retry_publish(
    draw_id: int,
    session: Session = Depends(get_session),
    pipeline: PublishPipeline = Depends(get_pipeline),
):
    workflows.retry_publish(session, draw_id, pipeline)
    return ok({"status": "queued"})


@router.get("/{draw_id}/publish/status")
def publish_status(
    draw_id: int,
    session: Session = Depends(get_session),
    pipeline: PublishPipeline = Depends(get_pipeline),
):
    return ok(workflows.get_publish_status(session, draw_id, pipeline))


@router.post("/{draw_id}/publish/callback")
async def render_callback(
    draw_id: int,
    request: Request,
    session: Session = Depends(get_session),
    pipeline: PublishPipeline = Depends(get_pipeline),
    callback_secret: Optional[str] = Depends(get_callback_secret),
):
    # The body is only read once the secret matches.
    provided = request.headers.get("x-render-secret")
    workflows.verify_render_secret(provided, callback_secret)
    try:
        payload = json.loads(await request.body() or b"{}")
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    render_status = await run_in_threadpool(
        workflows.handle_render_callback,
        session,
        draw_id,
        payload,
        provided,
        callback_secret,
        pipeline,
    )
    return ok(render_status)
