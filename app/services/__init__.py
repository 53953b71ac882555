"""
app/services package marker.
"""

from app.services.cache import (
    CacheStrategy,
    TaggedCache,
    get_cache,
    invalidate_cache_by_tags,
    invalidate_dashboard_cache,
)
from app.services.feedback_service import FeedbackResult, submit_feedback
from app.services.webhook_service import WebhookEvent, process_webhook

__all__ = [
    "CacheStrategy",
    "TaggedCache",
    "get_cache",
    "invalidate_cache_by_tags",
    "invalidate_dashboard_cache",
    "FeedbackResult",
    "submit_feedback",
    "WebhookEvent",
    "process_webhook",
]
