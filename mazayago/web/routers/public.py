from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import workflows
from ..deps import get_session

router = APIRouter(tags=["public"])


@router.get("/r/{slug}")
def public_view(slug: str, session: Session = Depends(get_session)):
    return {"ok": True, "data": workflows.get_public_view(session, slug)}
