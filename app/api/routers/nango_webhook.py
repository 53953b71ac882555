"""
app/api/routers/nango_webhook.py

Receiver for Nango auth webhooks. The payload shape is dictated by Nango,
so field names follow its camelCase.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.services.webhook_service import EndUser, WebhookEvent, process_webhook
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/nango", tags=["webhooks"])


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------


class NangoEndUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    end_user_id: str | None = Field(default=None, alias="endUserId")
    email: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    tags: dict[str, Any] = Field(default_factory=dict)


class NangoWebhookPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    operation: str | None = None
    connection_id: str = Field(..., alias="connectionId")
    provider_config_key: str = Field(..., alias="providerConfigKey")
    environment: str | None = None
    success: bool = False
    end_user: NangoEndUser | None = Field(default=None, alias="endUser")
    error: Any = None

    def to_event(self) -> WebhookEvent:
        end_user = None
        if self.end_user is not None:
            end_user = EndUser(
                end_user_id=self.end_user.end_user_id,
                email=self.end_user.email,
                display_name=self.end_user.display_name,
                tags=dict(self.end_user.tags),
            )
        return WebhookEvent(
            type=self.type,
            operation=self.operation,
            connection_id=self.connection_id,
            provider_config_key=self.provider_config_key,
            success=self.success,
            environment=self.environment,
            end_user=end_user,
            error=str(self.error) if self.error is not None else None,
        )


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------


@router.post("/webhook")
def nango_webhook(payload: NangoWebhookPayload, db: Session = Depends(get_db)) -> Any:
    try:
        message = process_webhook(db, payload.to_event())
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        logger.error(
            "Nango webhook failed connection_id=%s error=%s",
            payload.connection_id,
            exc,
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to process webhook", "details": str(exc)},
        )
    return {"message": message}
