from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from beestat.db.models import ExternalApiCache, ExternalApiLog


def add_api_log(
    db: Session,
    *,
    provider: str,
    request_method: str,
    request_url: str,
    response_status: int | None,
    response_body: str | None,
    error: bool,
    user_id: int | None = None,
) -> ExternalApiLog:
    row = ExternalApiLog(
        user_id=user_id,
        provider=provider,
        request_method=request_method,
        request_url=request_url,
        response_status=response_status,
        response_body=response_body,
        error=error,
    )
    db.add(row)
    db.flush()
    return row


def get_cached_response(db: Session, *, provider: str, key: str) -> str | None:
    row = db.scalars(
        select(ExternalApiCache).where(
            ExternalApiCache.provider == provider,
            ExternalApiCache.key == key,
        )
    ).first()
    return row.response_body if row is not None else None


def put_cached_response(db: Session, *, provider: str, key: str, response_body: str) -> None:
    row = db.scalars(
        select(ExternalApiCache).where(
            ExternalApiCache.provider == provider,
            ExternalApiCache.key == key,
        )
    ).first()
    if row is None:
        db.add(ExternalApiCache(provider=provider, key=key, response_body=response_body))
    elif row.response_body != response_body:
        row.response_body = response_body
    db.flush()
