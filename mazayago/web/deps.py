"""Request-scoped dependencies shared by the routers."""

from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from ..pipeline import PublishPipeline


def get_session(request: Request) -> Iterator[Session]:
    """One session per request: commit on success, roll back on any error."""
    session = request.app.state.sessionmaker()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_pipeline(request: Request) -> PublishPipeline:
    return request.app.state.pipeline


def get_callback_secret(request: Request) -> Optional[str]:
    return request.app.state.callback_secret
