"""
TTS (Text-to-Speech) Provider Abstraction

This module provides a unified interface for multiple TTS providers with:
- Provider abstraction layer
- A single FIFO speech queue
- Automatic fallback to the native provider
- Usage-based cost tracking for cloud providers
"""

from speechhub.services.tts.base import (
    BaseTTSProvider,
    InvalidCredentialsError,
    MissingCredentialsError,
    NotConfiguredError,
    PlaybackError,
    ProviderType,
    ProviderValidationError,
    SpeakOptions,
    SpeakRequest,
    SynthesisError,
    TTSCredentials,
    TTSProviderError,
    TTSProviderRateLimitError,
    TTSProviderTimeoutError,
    Voice,
    VoiceGender,
    VoiceListError,
)
from speechhub.services.tts.factory import (
    TTSProviderFactory,
    create_tts_manager
)
from speechhub.services.tts.manager import TTSProviderManager
from speechhub.services.tts.service import (
    TTSService,
    initialize_tts_service
)
from speechhub.services.tts.native import NativeTTSProvider
from speechhub.services.tts.google_cloud import GoogleCloudTTSProvider
from speechhub.services.tts.azure import AzureTTSProvider

__all__ = [
    # Base classes and types
    "BaseTTSProvider",
    "ProviderType",
    "Voice",
    "VoiceGender",
    "SpeakOptions",
    "SpeakRequest",
    "TTSCredentials",

    # Errors
    "TTSProviderError",
    "MissingCredentialsError",
    "InvalidCredentialsError",
    "NotConfiguredError",
    "VoiceListError",
    "SynthesisError",
    "TTSProviderTimeoutError",
    "TTSProviderRateLimitError",
    "PlaybackError",
    "ProviderValidationError",

    # Factory and manager
    "TTSProviderFactory",
    "create_tts_manager",
    "TTSProviderManager",

    # Service
    "TTSService",
    "initialize_tts_service",

    # Provider implementations
    "NativeTTSProvider",
    "GoogleCloudTTSProvider",
    "AzureTTSProvider",
]
