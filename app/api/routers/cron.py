"""
app/api/routers/cron.py

HTTP trigger for the metric poll job, for deployments that drive polling
from an external cron instead of the in-process scheduler.
"""

from __future__ import annotations

import hmac
from typing import Any

from fastapi import APIRouter, Header, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from app.config import get_scheduler_settings
from app.scheduler.jobs import run_poll_metrics

router = APIRouter(prefix="/api/cron", tags=["cron"])


def _verify_cron_secret(authorization: str | None) -> None:
    secret = get_scheduler_settings().cron_secret
    if not secret:
        return
    if not authorization or not hmac.compare_digest(authorization, f"Bearer {secret}"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.api_route("/poll-metrics", methods=["GET", "POST"])
async def poll_metrics(authorization: str | None = Header(None)) -> dict[str, Any]:
    _verify_cron_secret(authorization)
    summary = await run_in_threadpool(run_poll_metrics)
    return {"success": True, **summary}
