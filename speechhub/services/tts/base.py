"""
Base TTS Provider Interface

This module defines the value types shared by every TTS provider, the provider
error taxonomy, and the abstract base class that all providers must implement.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Set, Callable, TYPE_CHECKING

from speechhub.exceptions import SpeechHubException
from speechhub.utils.logger import get_logger

if TYPE_CHECKING:
    from speechhub.services.tts_cost import TTSCostDetails

logger = get_logger(__name__)

MIN_SPEED = 0.1
MAX_SPEED = 2.0
DEFAULT_SPEED = 1.0


class ProviderType(str, Enum):
    """Identity of a registered TTS backend."""
    NATIVE = "native"
    GOOGLE_CLOUD = "google-cloud"
    AZURE = "azure"


class VoiceGender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class Voice:
    """A voice offered by one provider. Voice ids are not portable across providers."""
    id: str
    name: str
    language: str
    provider: ProviderType
    gender: Optional[VoiceGender] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "language": self.language,
            "gender": self.gender.value if self.gender else None,
            "provider": self.provider.value
        }


@dataclass(frozen=True)
class SpeakOptions:
    """
    Options for a single utterance.

    Attributes:
        voice: Provider-specific voice id (provider default if not set)
        speed: Speaking rate multiplier in [0.1, 2.0]
        on_start: Called before synthesis starts
        on_stop: Called exactly once when the utterance ends, fails or is stopped
        on_cost_incurred: Called with the cost breakdown when a cloud provider bills characters
    """
    voice: Optional[str] = None
    speed: Optional[float] = None
    on_start: Optional[Callable[[], None]] = None
    on_stop: Optional[Callable[[], None]] = None
    on_cost_incurred: Optional[Callable[["TTSCostDetails"], None]] = None

    def __post_init__(self):
        if self.speed is not None and not MIN_SPEED <= self.speed <= MAX_SPEED:
            raise ValueError(f"Speed must be between {MIN_SPEED} and {MAX_SPEED}, got {self.speed}")

    @property
    def effective_speed(self) -> float:
        return self.speed if self.speed is not None else DEFAULT_SPEED


@dataclass(frozen=True)
class SpeakRequest:
    """A queued utterance. Immutable once enqueued."""
    text: str
    options: SpeakOptions = field(default_factory=SpeakOptions)

    def __post_init__(self):
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValueError("Speak request text must be a non-empty string")


@dataclass(frozen=True)
class TTSCredentials:
    """Credentials for the cloud providers. Any field may be missing."""
    google_cloud_api_key: Optional[str] = None
    azure_api_key: Optional[str] = None
    azure_region: Optional[str] = None
    azure_tier: str = "S0"


class TTSProviderError(SpeechHubException):
    """Base exception for TTS provider errors. Always tagged with the provider."""
    code = "TTS_ERROR"

    def __init__(
        self,
        message: str,
        provider: Optional[ProviderType] = None,
        code: Optional[str] = None,
        context: Dict[str, Any] = None
    ):
        super().__init__(message, context)
        self.provider = provider
        if code:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "provider": self.provider.value if self.provider else None
        }


class MissingCredentialsError(TTSProviderError):
    """Raised when a provider has no credentials to attempt the operation."""
    code = "MISSING_CREDENTIALS"


class InvalidCredentialsError(TTSProviderError):
    """Raised when the vendor rejects the configured credentials."""
    code = "INVALID_CREDENTIALS"


class NotConfiguredError(TTSProviderError):
    """Raised when an operation targets an unregistered or unconfigured provider."""
    code = "NOT_CONFIGURED"


class VoiceListError(TTSProviderError):
    """Raised when the voice inventory cannot be retrieved."""
    code = "VOICE_LIST_ERROR"


class SynthesisError(TTSProviderError):
    """Raised when speech synthesis fails."""
    code = "SYNTHESIS_ERROR"


class TTSProviderTimeoutError(SynthesisError):
    """Raised when TTS provider request times out."""
    code = "TIMEOUT"


class TTSProviderRateLimitError(SynthesisError):
    """Raised when TTS provider rate limit is exceeded."""
    code = "RATE_LIMITED"


class PlaybackError(TTSProviderError):
    """Raised when synthesized audio cannot be played."""
    code = "PLAYBACK_ERROR"


class ProviderValidationError(TTSProviderError):
    """Raised when validating a provider configuration fails for a non-credential reason."""
    code = "VALIDATION_ERROR"


class BaseTTSProvider(ABC):
    """
    Abstract base class for all TTS providers.

    ``speak`` is implemented here so every provider honours the same lifecycle:
    ``on_start`` fires before the first suspension point, the provider-specific
    ``_speak`` runs as an inner task, and ``on_stop`` fires exactly once when
    that task finishes, fails or is cancelled by ``stop``. A speak interrupted by
    ``stop`` returns normally.

    Subclasses implement ``_speak``, ``_fetch_voices``, ``is_configured``,
    ``validate_configuration`` and the credential hooks.
    """

    provider_type: ProviderType

    def __init__(self):
        self._cached_voices: List[Voice] = []
        self._active_task: Optional[asyncio.Future] = None
        self._stopped_tasks: Set[asyncio.Future] = set()
        logger.debug(f"Initialized {self.provider_name} TTS provider")

    @property
    def provider_name(self) -> str:
        """Get the name of this provider."""
        return self.provider_type.value

    @property
    def is_speaking(self) -> bool:
        return self._active_task is not None and not self._active_task.done()

    @classmethod
    @abstractmethod
    def from_credentials(cls, credentials: TTSCredentials, **kwargs) -> Optional["BaseTTSProvider"]:
        """
        Build a provider from credentials.

        Returns:
            The provider, or None if the credentials lack what this provider needs
        """
        pass

    @abstractmethod
    def update_credentials(self, credentials: TTSCredentials) -> bool:
        """
        Apply new credentials in place and invalidate the voice cache.

        Returns:
            bool: False if the credentials lack what this provider needs (nothing changes)
        """
        pass

    @abstractmethod
    async def is_configured(self) -> bool:
        """True if the provider has the minimum credentials to attempt synthesis."""
        pass

    @abstractmethod
    async def validate_configuration(self) -> None:
        """
        Exercise the configured credentials against the backend.

        Raises:
            MissingCredentialsError: If no credentials are configured
            InvalidCredentialsError: If the backend rejects the credentials
            ProviderValidationError: If validation fails for another reason
        """
        pass

    @abstractmethod
    async def _fetch_voices(self) -> List[Voice]:
        """Fetch the voice inventory from the backend's own source."""
        pass

    @abstractmethod
    async def _speak(self, text: str, options: SpeakOptions) -> None:
        """Synthesize and play one utterance."""
        pass

    def _stop_playback(self) -> None:
        """Terminate backend-level playback. Called by ``stop``."""
        pass

    async def list_voices(self) -> List[Voice]:
        """
        Get the voices offered by this provider.

        Returns the cached list when one exists; otherwise fetches and caches.
        """
        if self._cached_voices:
            return list(self._cached_voices)

        voices = await self._fetch_voices()
        self._cached_voices = list(voices)
        logger.debug(f"Cached {len(self._cached_voices)} {self.provider_name} voices")
        return list(self._cached_voices)

    def clear_voice_cache(self) -> None:
        self._cached_voices = []

    async def speak(self, text: str, options: Optional[SpeakOptions] = None) -> None:
        """
        Speak the given text.

        Args:
            text: Text to speak
            options: Voice, speed and lifecycle callbacks

        Raises:
            TTSProviderError: If synthesis or playback fails
        """
        try:
            request = SpeakRequest(text=text, options=options or SpeakOptions())
        except ValueError as e:
            raise SynthesisError(f"Invalid text input: {e}", provider=self.provider_type) from e
        options = request.options

        if self.is_speaking:
            logger.info(f"{self.provider_name} is already speaking, interrupting current utterance")
            self.stop()

        self._invoke_hook(options.on_start, "on_start")

        task = asyncio.ensure_future(self._speak(text, options))
        self._active_task = task
        try:
            await task
        except asyncio.CancelledError:
            if task not in self._stopped_tasks:
                raise
            logger.info(f"{self.provider_name} speech stopped")
        finally:
            self._stopped_tasks.discard(task)
            if self._active_task is task:
                self._active_task = None
            self._invoke_hook(options.on_stop, "on_stop")

    def stop(self) -> None:
        """Stop current speech. Safe to call when nothing is playing."""
        self._stop_playback()

        task = self._active_task
        if task is not None and not task.done():
            self._stopped_tasks.add(task)
            task.cancel()

    def _invoke_hook(self, hook: Optional[Callable[[], None]], name: str) -> None:
        if hook is None:
            return
        try:
            hook()
        except Exception as e:
            logger.error(f"{self.provider_name} {name} callback raised: {e}")
