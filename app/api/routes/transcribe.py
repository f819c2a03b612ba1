"""
Speech-to-text endpoint used by the voice input on form fields.

Order of checks for every call:
  1. authenticate (dependency, 401)
  2. per-minute rate limit (429)
  3. monthly quota (429 with used/limit/tier)
  4. validate audio and call the provider
  5. on success only, record usage
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.core.plan_limits import MAX_AUDIO_FILE_SIZE, TRANSCRIPTION_COST_CENTS
from app.db.session import get_db
from app.dependencies.auth import get_current_user_id
from app.schemas.usage import TranscriptionResponse
from app.services.rate_limiter import check_rate
from app.services.transcription import (
    AudioValidationError,
    TranscriptionClient,
    TranscriptionError,
    get_transcription_client,
    validate_audio,
)
from app.services.usage_quota import UsageStoreError, check_and_reserve, record_usage

logger = logging.getLogger(__name__)

router = APIRouter()

PROVIDER_ERROR_STATUS = {
    "invalid_request": status.HTTP_400_BAD_REQUEST,
    "provider_quota": status.HTTP_503_SERVICE_UNAVAILABLE,
    "not_configured": status.HTTP_503_SERVICE_UNAVAILABLE,
    "timeout": status.HTTP_504_GATEWAY_TIMEOUT,
}

PROVIDER_ERROR_MESSAGES = {
    "invalid_request": "Invalid audio file format or corrupted file.",
    "provider_quota": "Transcription provider quota exceeded. Please try again later.",
    "not_configured": "Transcription service is not configured.",
    "timeout": "Transcription provider timed out. Please try again.",
}


def rate_limit_headers(limit: int, remaining: int, reset_at) -> dict:
    return {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(max(0, remaining)),
        "X-RateLimit-Reset": reset_at.isoformat(),
    }


@router.post("/transcribe", response_model=TranscriptionResponse)
async def transcribe_audio(
    response: Response,
    audio: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    client: TranscriptionClient = Depends(get_transcription_client),
):
    # Store calls are blocking SQLAlchemy; keep them off the event loop
    rate = await run_in_threadpool(check_rate, user_id, db)
    if not rate.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"error": rate.message},
        )

    try:
        quota = await run_in_threadpool(check_and_reserve, user_id, db)
    except UsageStoreError as e:
        logger.error("Quota check failed for user %s: %s", user_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Failed to check usage limits"},
        )

    if not quota.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "API limit exceeded for your subscription tier",
                "used": quota.used,
                "limit": quota.limit,
                "tier": quota.tier,
            },
            headers=rate_limit_headers(quota.limit, 0, quota.period_end),
        )

    if audio is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "No audio file provided"},
        )

    # One byte past the cap is enough to reject; never buffer the rest of an oversized upload
    content = await audio.read(MAX_AUDIO_FILE_SIZE + 1)
    content_type = (audio.content_type or "").strip().lower()
    try:
        validate_audio(content_type, len(content))
    except AudioValidationError as e:
        logger.info("Rejected audio upload from user %s: %s", user_id, e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": str(e)},
        )

    try:
        text = await client.transcribe(audio.filename, content, content_type)
    except TranscriptionError as e:
        logger.error("Transcription failed for user %s (%s): %s", user_id, e.kind, e)
        raise HTTPException(
            status_code=PROVIDER_ERROR_STATUS.get(e.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail={"error": PROVIDER_ERROR_MESSAGES.get(e.kind, "Failed to transcribe audio")},
        )

    used = quota.used + 1
    try:
        used = await run_in_threadpool(
            record_usage,
            user_id,
            db,
            endpoint="transcribe",
            cost_cents=TRANSCRIPTION_COST_CENTS,
            metadata={"file_size": len(content), "file_type": content_type},
        )
    except UsageStoreError as e:
        # The provider already did the work; return the text rather than fail the request
        logger.error("Failed to record usage for user %s: %s", user_id, e)

    response.headers.update(rate_limit_headers(quota.limit, quota.limit - used, quota.period_end))
    return {"text": text, "success": True}
