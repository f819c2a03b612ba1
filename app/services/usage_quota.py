"""
Service for per-user transcription quotas (the "quota gate").

One Subscription row per user holds the plan tier, the calls used in the current
billing period and the period end. Rows are provisioned lazily on the first
metered request and reset inline by whichever request first sees the period expire.

The check and the increment are not one transaction: concurrent
requests can both pass check_and_reserve() before either calls record_usage(),
so a user may briefly exceed the limit by the number of in-flight requests.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.plan_limits import (
    DEFAULT_PLAN,
    PLAN_LIMITS,
    TRANSCRIPTION_COST_CENTS,
    get_plan_limit,
)
from app.models.api_usage import ApiUsage
from app.models.subscription import Subscription
from app.utils.billing_period import first_period_end, next_period_end

logger = logging.getLogger(__name__)


class UsageStoreError(Exception):
    """The usage store could not be read or written. Safe to retry."""


@dataclass
class QuotaDecision:
    allowed: bool
    used: int
    limit: int
    tier: str
    period_end: datetime

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


def get_or_create_subscription(user_id: str, db: Session, now: Optional[datetime] = None) -> Subscription:
    """
    Get the user's Subscription, creating a free-tier one if it doesn't exist yet.
    If a concurrent request inserts the row first, the unique constraint on user_id
    rejects our insert and we return the row that won.
    """
    if not user_id:
        raise ValueError("user_id is required")
    now = now or datetime.utcnow()

    subscription = db.query(Subscription).filter(Subscription.user_id == user_id).first()
    if subscription:
        return subscription

    subscription = Subscription(
        user_id=user_id,
        plan_type=DEFAULT_PLAN,
        api_calls_used=0,
        api_calls_limit=get_plan_limit(DEFAULT_PLAN),
        current_period_end=first_period_end(now),
        created_at=now,
        updated_at=now,
    )
    try:
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        logger.info("Created %s subscription for user %s", DEFAULT_PLAN, user_id)
        return subscription
    except IntegrityError:
        db.rollback()
        existing = db.query(Subscription).filter(Subscription.user_id == user_id).first()
        if existing is None:
            raise UsageStoreError(f"Subscription for user {user_id} could not be created or loaded")
        logger.info("Subscription for user %s created by a concurrent request", user_id)
        return existing


def reset_period_if_expired(subscription: Subscription, db: Session, now: Optional[datetime] = None) -> bool:
    """
    Reset usage when the billing period has ended.

    The update is conditional on the stored period end still being in the past, so
    two requests racing on the same expired row advance the period only once.
    Returns True if this call performed the reset.
    """
    now = now or datetime.utcnow()
    if now <= subscription.current_period_end:
        return False

    new_period_end = next_period_end(subscription.current_period_end, now)
    updated = (
        db.query(Subscription)
        .filter(
            Subscription.user_id == subscription.user_id,
            Subscription.current_period_end < now,
        )
        .update(
            {
                Subscription.api_calls_used: 0,
                Subscription.current_period_end: new_period_end,
                Subscription.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    db.refresh(subscription)

    if updated:
        logger.info(
            "Monthly usage reset for user %s, next reset at %s",
            subscription.user_id,
            subscription.current_period_end.isoformat(),
        )
    return bool(updated)


def _current_usage(user_id: str, db: Session, now: Optional[datetime] = None) -> QuotaDecision:
    """
    Usage for the current period, after lazy provisioning and the monthly reset.
    Raises UsageStoreError if the database is unavailable.
    """
    now = now or datetime.utcnow()
    try:
        subscription = get_or_create_subscription(user_id, db, now=now)
        reset_period_if_expired(subscription, db, now=now)
    except SQLAlchemyError as e:
        db.rollback()
        raise UsageStoreError(f"Failed to load usage for user {user_id}: {e}") from e

    limit = subscription.api_calls_limit or get_plan_limit(subscription.plan_type)
    used = subscription.api_calls_used
    return QuotaDecision(
        allowed=used < limit,
        used=used,
        limit=limit,
        tier=subscription.plan_type,
        period_end=subscription.current_period_end,
    )


def check_and_reserve(user_id: str, db: Session, now: Optional[datetime] = None) -> QuotaDecision:
    """
    Decide whether the user may perform one more metered call.

    Lazily provisions the subscription and applies the monthly reset before
    comparing usage to the limit. A denial never mutates the row.
    Raises UsageStoreError if the database is unavailable.
    """
    decision = _current_usage(user_id, db, now=now)
    if not decision.allowed:
        logger.warning(
            "Transcription quota reached for user %s: %s/%s (%s)",
            user_id, decision.used, decision.limit, decision.tier,
        )
    return decision


def record_usage(
    user_id: str,
    db: Session,
    endpoint: str = "transcribe",
    cost_cents: int = TRANSCRIPTION_COST_CENTS,
    metadata: Optional[dict] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Record one successful metered call: increment the counter and append an api_usage row.
    The increment happens in SQL (api_calls_used + 1), not from a previously read value.
    Both writes commit together. Returns the new usage count.
    """
    now = now or datetime.utcnow()
    try:
        db.query(Subscription).filter(Subscription.user_id == user_id).update(
            {
                Subscription.api_calls_used: Subscription.api_calls_used + 1,
                Subscription.updated_at: now,
            },
            synchronize_session=False,
        )
        db.add(ApiUsage(
            user_id=user_id,
            endpoint=endpoint,
            cost_cents=cost_cents,
            usage_metadata=metadata or {},
            created_at=now,
        ))
        db.commit()
        used = db.query(Subscription.api_calls_used).filter(Subscription.user_id == user_id).scalar()
    except SQLAlchemyError as e:
        db.rollback()
        raise UsageStoreError(f"Failed to record usage for user {user_id}: {e}") from e

    logger.info("Recorded %s call for user %s (used: %s)", endpoint, user_id, used)
    return used or 0


def get_usage_summary(user_id: str, db: Session, now: Optional[datetime] = None) -> QuotaDecision:
    """Current usage for dashboard display. Same lazy provisioning and reset as the gate."""
    return _current_usage(user_id, db, now=now)


def change_plan(user_id: str, plan_type: str, db: Session) -> Subscription:
    """
    Move a user to another plan tier and apply that tier's limit.
    Usage in the current period is kept.
    """
    if plan_type not in PLAN_LIMITS:
        raise ValueError(f"Unknown plan '{plan_type}'. Expected one of: {', '.join(PLAN_LIMITS)}")

    subscription = get_or_create_subscription(user_id, db)
    subscription.plan_type = plan_type
    subscription.api_calls_limit = get_plan_limit(plan_type)
    db.commit()
    db.refresh(subscription)
    logger.info("User %s moved to %s plan (limit %s)", user_id, plan_type, subscription.api_calls_limit)
    return subscription
