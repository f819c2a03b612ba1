from typing import Dict

# Plan limits configuration
# Transcription calls per billing period (one calendar month)
PLAN_LIMITS: Dict[str, Dict[str, int]] = {
    "free": {
        "max_transcriptions_per_month": 50,
    },
    "pro": {
        "max_transcriptions_per_month": 1000,
    },
    "business": {
        "max_transcriptions_per_month": 10000,
    },
}

DEFAULT_PLAN = "free"
FREE_TRANSCRIPTION_LIMIT = PLAN_LIMITS["free"]["max_transcriptions_per_month"]

# Billing period length in calendar months
BILLING_PERIOD_MONTHS = 1

# Per-minute burst protection, independent of the monthly quota
RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_MAX_CALLS = 10

# Cost recorded per transcription in api_usage (cents)
TRANSCRIPTION_COST_CENTS = 2

# Audio upload constraints (5MB)
MAX_AUDIO_FILE_SIZE = 5 * 1024 * 1024
ALLOWED_AUDIO_TYPES = {
    "audio/webm",
    "audio/mp4",
    "audio/mpeg",
    "audio/wav",
    "audio/ogg",
    "audio/x-wav",
    "audio/wave",
}


def get_plan_limit(plan_tier: str, limit_type: str = "max_transcriptions_per_month") -> int:
    """Get the limit value for a specific plan and limit type."""
    return PLAN_LIMITS.get(plan_tier, PLAN_LIMITS[DEFAULT_PLAN]).get(limit_type, 0)
