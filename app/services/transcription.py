"""
Speech-to-text client for respondent voice input.
Proxies uploaded audio to the OpenAI transcription endpoint (Whisper) over HTTP.
"""
import logging
import os

import httpx

from app.core.plan_limits import ALLOWED_AUDIO_TYPES, MAX_AUDIO_FILE_SIZE

logger = logging.getLogger(__name__)

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/")
TRANSCRIPTION_MODEL = os.getenv("TRANSCRIPTION_MODEL", "whisper-1")
TRANSCRIPTION_LANGUAGE = os.getenv("TRANSCRIPTION_LANGUAGE", "en")
TRANSCRIPTION_TIMEOUT_SECONDS = float(os.getenv("TRANSCRIPTION_TIMEOUT_SECONDS", "30"))


class AudioValidationError(ValueError):
    """Uploaded audio was rejected before reaching the provider."""


class TranscriptionError(Exception):
    """
    The provider failed or rejected the request.

    kind is one of:
      invalid_request  - provider says the audio is bad (client error)
      provider_quota   - our provider account is out of credit
      timeout          - provider did not answer in time
      unavailable      - network error reaching the provider
      not_configured   - no API key set
      provider_error   - anything else
    """

    def __init__(self, message: str, kind: str = "provider_error", status_code: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


def is_allowed_audio_type(content_type: str | None) -> bool:
    """Accept the base MIME type with or without codec parameters (audio/webm;codecs=opus)."""
    if not content_type:
        return False
    base_type = content_type.split(";")[0].strip().lower()
    return base_type in ALLOWED_AUDIO_TYPES


def validate_audio(content_type: str | None, size: int) -> None:
    """Raise AudioValidationError if the upload is too large or not a supported audio format."""
    if size <= 0:
        raise AudioValidationError("Audio file is empty.")
    if size > MAX_AUDIO_FILE_SIZE:
        raise AudioValidationError(
            f"Audio file too large. Maximum size is {MAX_AUDIO_FILE_SIZE // (1024 * 1024)}MB."
        )
    if not is_allowed_audio_type(content_type):
        raise AudioValidationError(
            f"Invalid audio format: {content_type}. Supported formats: WebM, MP4, MP3, WAV, OGG"
        )


def _error_kind(payload: dict) -> str:
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        return "provider_error"
    markers = {error.get("code"), error.get("type")}
    if "insufficient_quota" in markers:
        return "provider_quota"
    if "invalid_request_error" in markers:
        return "invalid_request"
    return "provider_error"


class TranscriptionClient:
    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        base_url: str = OPENAI_BASE_URL,
        model: str = TRANSCRIPTION_MODEL,
        language: str = TRANSCRIPTION_LANGUAGE,
        timeout: float = TRANSCRIPTION_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.language = language
        self.timeout = timeout
        self.transport = transport

    async def transcribe(self, filename: str, content: bytes, content_type: str) -> str:
        """Send audio to the provider and return the transcribed text."""
        if not self.api_key:
            raise TranscriptionError("Transcription service not configured", kind="not_configured")

        url = f"{self.base_url}/audio/transcriptions"
        data = {
            "model": self.model,
            "language": self.language,
            "response_format": "json",
            "temperature": "0.2",  # Lower temperature for more consistent results
        }
        files = {"file": (filename or "audio.webm", content, content_type)}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(
                    url,
                    data=data,
                    files=files,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.TimeoutException as e:
            logger.error("Transcription provider timeout: %s", e)
            raise TranscriptionError("Transcription provider timed out", kind="timeout") from e
        except httpx.RequestError as e:
            logger.error("Transcription provider request error: %s", e)
            raise TranscriptionError(f"Transcription request failed: {e}", kind="unavailable") from e

        if r.status_code != 200:
            try:
                payload = r.json()
            except ValueError:
                payload = {}
            kind = _error_kind(payload)
            logger.error("Transcription provider returned %s (%s): %s", r.status_code, kind, r.text[:500])
            raise TranscriptionError(
                f"Transcription provider error: {r.status_code}",
                kind=kind,
                status_code=r.status_code,
            )

        text = r.json().get("text", "")
        logger.info("Transcribed %s bytes of %s audio (%s chars)", len(content), content_type, len(text))
        return text


def get_transcription_client() -> TranscriptionClient:
    return TranscriptionClient()
