from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.dependencies.auth import get_current_user_id
from app.schemas.usage import UsageSummaryResponse
from app.services.usage_quota import UsageStoreError, get_usage_summary

router = APIRouter()


@router.get("/usage", response_model=UsageSummaryResponse)
def get_usage(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Plan tier and transcription usage for the current billing period."""
    try:
        summary = get_usage_summary(user_id, db)
    except UsageStoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Usage temporarily unavailable. Please try again in a moment."
        )

    return UsageSummaryResponse(
        plan_type=summary.tier,
        api_calls_used=summary.used,
        api_calls_limit=summary.limit,
        remaining=summary.remaining,
        current_period_end=summary.period_end,
        at_limit=not summary.allowed,
    )
