"""
Test configuration for SpeechHub tests.

This module provides test fixtures and configuration for the testing infrastructure.
"""
# Set test environment variables BEFORE any imports that might use them
import os
os.environ.setdefault("TTS_ENABLED", "true")
os.environ.setdefault("TTS_PROVIDER", "native")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from datetime import date
from typing import List, Optional, Tuple
from unittest.mock import MagicMock

from speechhub.services.cost_tracker import InMemoryUsageStore, TTSCostTracker
from speechhub.services.tts.base import (
    BaseTTSProvider,
    ProviderType,
    SpeakOptions,
    TTSCredentials,
    Voice,
)
from speechhub.services.tts.factory import TTSProviderFactory
from speechhub.services.tts.manager import TTSProviderManager


class FakeTTSProvider(BaseTTSProvider):
    """
    In-memory provider for manager and API tests.

    Records every utterance it receives. Set ``gate`` to an asyncio.Event to
    hold ``_speak`` open, and ``fail_with`` to make it raise.
    """

    def __init__(
        self,
        provider_type: ProviderType,
        configured: bool = True,
        voices: Optional[List[Voice]] = None,
        call_log: Optional[List[Tuple[ProviderType, str]]] = None
    ):
        self.provider_type = provider_type
        super().__init__()
        self.configured = configured
        self.voices = voices or []
        self.call_log = call_log if call_log is not None else []
        self.spoken: List[Tuple[str, SpeakOptions]] = []
        self.fail_with: Optional[Exception] = None
        self.validation_error: Optional[Exception] = None
        self.gate = None
        self.fetch_count = 0
        self.credentials: Optional[TTSCredentials] = None
        self.stop_count = 0

    @classmethod
    def from_credentials(cls, credentials, **kwargs):
        return None

    def update_credentials(self, credentials: TTSCredentials) -> bool:
        self.credentials = credentials
        self.clear_voice_cache()
        return True

    async def is_configured(self) -> bool:
        return self.configured

    async def validate_configuration(self) -> None:
        if self.validation_error is not None:
            raise self.validation_error

    async def _fetch_voices(self) -> List[Voice]:
        self.fetch_count += 1
        return list(self.voices)

    async def _speak(self, text: str, options: SpeakOptions) -> None:
        self.spoken.append((text, options))
        self.call_log.append((self.provider_type, text))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    def _stop_playback(self) -> None:
        self.stop_count += 1


@pytest.fixture
def call_log():
    """Shared, ordered record of (provider, text) across fake providers."""
    return []


@pytest.fixture
def native_provider(call_log):
    return FakeTTSProvider(
        ProviderType.NATIVE,
        voices=[Voice(id="Alex", name="Alex", language="en-US", provider=ProviderType.NATIVE)],
        call_log=call_log
    )


@pytest.fixture
def google_provider(call_log):
    return FakeTTSProvider(
        ProviderType.GOOGLE_CLOUD,
        voices=[Voice(id="en-US-Wavenet-D", name="en-US-Wavenet-D (en-US)", language="en-US",
                      provider=ProviderType.GOOGLE_CLOUD)],
        call_log=call_log
    )


@pytest.fixture
def azure_provider(call_log):
    return FakeTTSProvider(
        ProviderType.AZURE,
        voices=[Voice(id="en-US-AriaNeural", name="Aria (en-US)", language="en-US",
                      provider=ProviderType.AZURE)],
        call_log=call_log
    )


@pytest.fixture
def mock_provider_factory():
    """Factory double; returns None (insufficient credentials) unless told otherwise."""
    factory = MagicMock(spec=TTSProviderFactory)
    factory.create_provider.return_value = None
    return factory


@pytest.fixture
def tts_manager(native_provider, google_provider, azure_provider, mock_provider_factory):
    """Manager with fake native, Google Cloud and Azure providers registered."""
    return TTSProviderManager(
        provider_factory=mock_provider_factory,
        providers={
            ProviderType.NATIVE: native_provider,
            ProviderType.GOOGLE_CLOUD: google_provider,
            ProviderType.AZURE: azure_provider,
        }
    )


@pytest.fixture
def usage_store():
    return InMemoryUsageStore()


@pytest.fixture
def fixed_today():
    return date(2025, 3, 15)


@pytest.fixture
def cost_tracker(usage_store, fixed_today):
    return TTSCostTracker(store=usage_store, f0_warning_ratio=0.9, clock=lambda: fixed_today)


@pytest.fixture
def mock_http_response():
    """Build a MagicMock standing in for an httpx.Response."""
    def _create(status_code: int = 200, json_data=None, content: bytes = b"", text: str = ""):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = json_data if json_data is not None else {}
        response.content = content
        response.text = text
        return response

    return _create


@pytest.fixture
def mock_audio_player():
    """AudioPlayer double whose play() completes immediately."""
    from unittest.mock import AsyncMock

    player = MagicMock()
    player.play = AsyncMock(return_value=None)
    return player


# FastAPI client fixture
@pytest.fixture
def api_client(tts_manager, cost_tracker):
    """TestClient wired to a TTS service backed by fake providers."""
    from fastapi.testclient import TestClient
    from speechhub.main import app
    from speechhub.services.tts.service import TTSService

    app.state.tts_service = TTSService(tts_manager, enabled=True, speed=1.0, cost_tracker=cost_tracker)
    client = TestClient(app)
    yield client
    app.state.tts_service = None
