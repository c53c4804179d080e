"""
Report downloads (PDF / CSV / Excel), their JSON previews, and the public
health check.
"""

from __future__ import annotations

import logging
from datetime import date

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_capability
from app.core.config import settings
from app.core.roles import Capability
from app.models.user import User
from app.schemas.attendance import HealthResponse
from app.services.report_service import (ReportFilters, build_report,
                                         render_report, stream_and_delete)

router = APIRouter(tags=["reports"])
logger = logging.getLogger(__name__)

require_reports = require_capability(Capability.VIEW_REPORTS)


class ReportData(BaseModel):
    title: str
    columns: list[str]
    headers: list[str]
    metadata: dict[str, str]
    count: int
    data: list[dict]


def _filters(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    department_id: int | None = Query(None),
) -> ReportFilters:
    return ReportFilters(start_date=start_date, end_date=end_date, department_id=department_id)


@router.get("/reports/{kind}/data", response_model=ReportData)
async def report_data(
    kind: str,
    filters: ReportFilters = Depends(_filters),
    db: AsyncSession = Depends(get_db),
    _viewer: User = Depends(require_reports),
) -> ReportData:
    table = await build_report(db, kind, filters)
    return ReportData(
        title=table.title,
        columns=table.fields,
        headers=table.headers,
        metadata=table.metadata,
        count=len(table.rows),
        data=table.rows,
    )


@router.get("/reports/{kind}")
async def download_report(
    kind: str,
    filters: ReportFilters = Depends(_filters),
    format: str = Query("pdf"),
    db: AsyncSession = Depends(get_db),
    viewer: User = Depends(require_reports),
) -> StreamingResponse:
    """Render the report to a temp file and stream it; the file is removed afterwards."""
    table = await build_report(db, kind, filters)
    rendered = await render_report(table, format)
    logger.info("User %s downloaded %s as %s", viewer.username, kind, rendered.path.suffix)
    return StreamingResponse(
        stream_and_delete(rendered.path),
        media_type=rendered.media_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )


# ── Health ──────────────────────────────────────────────────────────
@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check: DB and Redis connectivity."""
    result = HealthResponse(db=False, redis=False)

    try:
        await db.execute(select(1))
        result.db = True
    except Exception as e:
        logger.error("Health check DB failure: %s", e)

    try:
        r = aioredis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
        try:
            await r.ping()
            result.redis = True
        finally:
            await r.aclose()
    except Exception as e:
        logger.error("Health check Redis failure: %s", e)

    return result
