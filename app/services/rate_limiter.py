"""
Per-user burst protection for metered endpoints.

Counts the user's api_usage rows inside a trailing window. Read-only: the usage
row is written by the quota service after a successful call, not here.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.plan_limits import RATE_LIMIT_MAX_CALLS, RATE_LIMIT_WINDOW_SECONDS
from app.models.api_usage import ApiUsage

logger = logging.getLogger(__name__)


@dataclass
class RateDecision:
    allowed: bool
    recent_calls: int
    max_calls: int
    window_seconds: int

    @property
    def message(self) -> str:
        if self.allowed:
            return ""
        period = "minute" if self.window_seconds == 60 else f"{self.window_seconds} seconds"
        return f"Rate limit exceeded. Maximum {self.max_calls} calls per {period}."


def check_rate(
    user_id: str,
    db: Session,
    window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
    max_calls: int = RATE_LIMIT_MAX_CALLS,
    now: Optional[datetime] = None,
) -> RateDecision:
    """
    Deny when the user already made max_calls metered calls in the last window_seconds.

    If the usage table can't be read the request is allowed (fail open): throttling
    is best effort, the monthly quota is still enforced afterwards.
    """
    now = now or datetime.utcnow()
    since = now - timedelta(seconds=window_seconds)
    try:
        recent_calls = db.query(func.count(ApiUsage.id)).filter(
            ApiUsage.user_id == user_id,
            ApiUsage.created_at >= since,
        ).scalar() or 0
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Rate limit check failed for user %s; allowing request", user_id)
        return RateDecision(allowed=True, recent_calls=0, max_calls=max_calls, window_seconds=window_seconds)

    decision = RateDecision(
        allowed=recent_calls < max_calls,
        recent_calls=recent_calls,
        max_calls=max_calls,
        window_seconds=window_seconds,
    )
    if not decision.allowed:
        logger.warning("Rate limit hit for user %s: %s calls in %ss", user_id, recent_calls, window_seconds)
    return decision
