"""
Dependency injection utilities for the SpeechHub API.

The TTS service is built once at startup and kept on ``app.state``.
"""

from fastapi import HTTPException, Request

from speechhub.services.tts.service import TTSService
from speechhub.utils.logger import get_logger

logger = get_logger(__name__)


def get_tts_service(request: Request) -> TTSService:
    """Get the application's TTS service."""
    service = getattr(request.app.state, "tts_service", None)
    if service is None:
        logger.error("TTS service requested before startup completed")
        raise HTTPException(status_code=503, detail="TTS service unavailable")
    return service
