"""Metered transcription endpoint: auth, rate limit, quota, validation and provider errors."""

import asyncio
from datetime import datetime, timedelta

import app.api.routes.transcribe as transcribe_route
from app.core.plan_limits import MAX_AUDIO_FILE_SIZE
from app.models.api_usage import ApiUsage
from app.models.subscription import Subscription
from app.services.rate_limiter import RateDecision
from app.services.transcription import TranscriptionError, validate_audio
from app.services.usage_quota import UsageStoreError

AUDIO = ("clip.webm", b"\x1aE\xdf\xa3fake-webm-bytes", "audio/webm;codecs=opus")


def post_audio(client, headers, audio=AUDIO):
    return client.post("/api/transcribe", files={"audio": audio}, headers=headers)


def always_allow_rate(user_id, db):
    return RateDecision(allowed=True, recent_calls=0, max_calls=10, window_seconds=60)


def test_transcribes_and_records_usage(client, db, auth, transcriber):
    response = post_audio(client, auth("user-1"))

    assert response.status_code == 200
    assert response.json() == {"text": "hello from the microphone", "success": True}
    assert response.headers["X-RateLimit-Limit"] == "50"
    assert response.headers["X-RateLimit-Remaining"] == "49"
    assert "X-RateLimit-Reset" in response.headers

    subscription = db.query(Subscription).filter_by(user_id="user-1").one()
    assert subscription.plan_type == "free"
    assert subscription.api_calls_used == 1
    event = db.query(ApiUsage).one()
    assert event.cost_cents == 2
    assert event.usage_metadata["file_type"] == "audio/webm;codecs=opus"
    assert transcriber.calls[0]["filename"] == "clip.webm"


def test_unauthenticated_request_is_rejected_before_any_check(client, db, transcriber):
    response = post_audio(client, {})

    assert response.status_code == 401
    assert db.query(Subscription).count() == 0
    assert transcriber.calls == []


def test_fifty_calls_succeed_then_quota_denies(client, db, auth, monkeypatch):
    monkeypatch.setattr(transcribe_route, "check_rate", always_allow_rate)
    headers = auth("user-1")

    for i in range(50):
        assert post_audio(client, headers).status_code == 200, f"call {i + 1}"

    response = post_audio(client, headers)

    assert response.status_code == 429
    assert response.json()["detail"] == {
        "error": "API limit exceeded for your subscription tier",
        "used": 50,
        "limit": 50,
        "tier": "free",
    }
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert db.query(ApiUsage).count() == 50


def test_eleventh_call_in_a_minute_is_rate_limited(client, db, auth, transcriber):
    headers = auth("user-1")
    for _ in range(10):
        assert post_audio(client, headers).status_code == 200

    response = post_audio(client, headers)

    assert response.status_code == 429
    assert response.json()["detail"] == {"error": "Rate limit exceeded. Maximum 10 calls per minute."}
    assert len(transcriber.calls) == 10
    subscription = db.query(Subscription).filter_by(user_id="user-1").one()
    assert subscription.api_calls_used == 10
    assert subscription.api_calls_limit > subscription.api_calls_used


def test_oversized_audio_consumes_no_quota(client, db, auth, transcriber, monkeypatch):
    checked_sizes = []

    def recording_validate(content_type, size):
        checked_sizes.append(size)
        return validate_audio(content_type, size)

    monkeypatch.setattr(transcribe_route, "validate_audio", recording_validate)
    big = ("long.webm", b"\0" * (MAX_AUDIO_FILE_SIZE * 3), "audio/webm")

    response = post_audio(client, auth("user-1"), audio=big)

    assert response.status_code == 400
    assert "too large" in response.json()["detail"]["error"]
    assert checked_sizes == [MAX_AUDIO_FILE_SIZE + 1]
    assert transcriber.calls == []
    subscription = db.query(Subscription).filter_by(user_id="user-1").one()
    assert subscription.api_calls_used == 0
    assert db.query(ApiUsage).count() == 0


def test_unsupported_audio_type_is_rejected(client, db, auth):
    response = post_audio(client, auth("user-1"), audio=("notes.txt", b"hello", "text/plain"))

    assert response.status_code == 400
    assert "Invalid audio format" in response.json()["detail"]["error"]
    assert db.query(ApiUsage).count() == 0


def test_missing_audio_file(client, auth):
    response = client.post("/api/transcribe", headers=auth("user-1"))

    assert response.status_code == 400
    assert response.json()["detail"] == {"error": "No audio file provided"}


def test_provider_rejection_consumes_no_quota(client, db, auth, transcriber):
    transcriber.error = TranscriptionError("bad audio", kind="invalid_request", status_code=400)

    response = post_audio(client, auth("user-1"))

    assert response.status_code == 400
    assert db.query(Subscription).filter_by(user_id="user-1").one().api_calls_used == 0
    assert db.query(ApiUsage).count() == 0


def test_provider_out_of_credit_is_503(client, auth, transcriber):
    transcriber.error = TranscriptionError("quota", kind="provider_quota", status_code=429)
    assert post_audio(client, auth("user-1")).status_code == 503


def test_provider_timeout_is_504(client, auth, transcriber):
    transcriber.error = TranscriptionError("slow", kind="timeout")
    assert post_audio(client, auth("user-1")).status_code == 504


def test_unknown_provider_failure_is_500(client, db, auth, transcriber):
    transcriber.error = TranscriptionError("boom")

    response = post_audio(client, auth("user-1"))

    assert response.status_code == 500
    assert response.json()["detail"] == {"error": "Failed to transcribe audio"}
    assert db.query(ApiUsage).count() == 0


def test_quota_store_failure_is_server_error(client, auth, transcriber, monkeypatch):
    def broken(user_id, db):
        raise UsageStoreError("database unavailable")

    monkeypatch.setattr(transcribe_route, "check_and_reserve", broken)

    response = post_audio(client, auth("user-1"))

    assert response.status_code == 500
    assert response.json()["detail"] == {"error": "Failed to check usage limits"}
    assert transcriber.calls == []


def test_record_failure_still_returns_text(client, auth, monkeypatch):
    def broken(*args, **kwargs):
        raise UsageStoreError("write failed")

    monkeypatch.setattr(transcribe_route, "record_usage", broken)

    response = post_audio(client, auth("user-1"))

    assert response.status_code == 200
    assert response.json()["text"] == "hello from the microphone"


def test_expired_period_lets_denied_user_through(client, db, auth):
    db.add(Subscription(
        user_id="user-1",
        plan_type="free",
        api_calls_used=50,
        api_calls_limit=50,
        current_period_end=datetime.utcnow() - timedelta(days=1),
    ))
    db.commit()

    response = post_audio(client, auth("user-1"))

    assert response.status_code == 200
    db.expire_all()
    subscription = db.query(Subscription).filter_by(user_id="user-1").one()
    assert subscription.api_calls_used == 1
    assert subscription.current_period_end > datetime.utcnow()


def test_usage_store_calls_run_off_the_event_loop(client, auth, monkeypatch):
    on_loop = {}

    def running_on_loop():
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def watch(name, func):
        def wrapper(*args, **kwargs):
            on_loop[name] = running_on_loop()
            return func(*args, **kwargs)
        return wrapper

    for name in ("check_rate", "check_and_reserve", "record_usage"):
        monkeypatch.setattr(transcribe_route, name, watch(name, getattr(transcribe_route, name)))

    assert post_audio(client, auth("user-1")).status_code == 200
    assert on_loop == {"check_rate": False, "check_and_reserve": False, "record_usage": False}
