"""
app/api/routers/feedback.py

User feedback submission, filed as a Linear issue.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.api.dependencies import get_current_user_id
from app.errors import PipelineError
from app.services.feedback_service import submit_feedback

router = APIRouter(prefix="/feedback", tags=["feedback"])


class FeedbackRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)
    priority: int = Field(default=0, ge=0, le=4)
    page_url: str | None = None


class FeedbackResponse(BaseModel):
    success: bool
    issue_id: str | None = None


@router.post("", response_model=FeedbackResponse)
def submit(body: FeedbackRequest, user_id: str = Depends(get_current_user_id)) -> FeedbackResponse:
    # FeedbackNotConfiguredError is a PipelineError
    try:
        result = submit_feedback(body.message, body.priority, body.page_url)
    except PipelineError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message) from exc
    return FeedbackResponse(success=result.success, issue_id=result.issue_id)
