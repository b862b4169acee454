"""
TTS Service

Application-facing wrapper around the provider manager: an on/off switch,
a default speaking rate, and a ``play`` call that never raises.
"""

from typing import Optional, Callable, List, Union

from speechhub.config import Settings, get_settings
from speechhub.services.cost_tracker import TTSCostTracker
from speechhub.services.tts.base import (
    MAX_SPEED,
    MIN_SPEED,
    ProviderType,
    SpeakOptions,
    TTSCredentials,
    TTSProviderError,
    Voice,
)
from speechhub.services.tts.factory import create_tts_manager
from speechhub.services.tts.manager import TTSProviderManager
from speechhub.services.tts_cost import TTSCostDetails
from speechhub.utils.logger import get_logger

logger = get_logger(__name__)


class TTSService:
    """
    High-level TTS service used by the API.
    """

    def __init__(
        self,
        manager: TTSProviderManager,
        enabled: Optional[bool] = None,
        speed: Optional[float] = None,
        cost_tracker: Optional[TTSCostTracker] = None
    ):
        settings = get_settings()
        self.manager = manager
        self.cost_tracker = cost_tracker
        self.enabled = settings.TTS_ENABLED if enabled is None else enabled
        self.speed = settings.TTS_DEFAULT_SPEED
        if speed is not None:
            self.set_speed(speed)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        if not enabled:
            self.manager.stop()
        logger.info(f"TTS {'enabled' if enabled else 'disabled'}")

    def set_speed(self, speed: float) -> None:
        if not MIN_SPEED <= speed <= MAX_SPEED:
            raise ValueError(f"Speed must be between {MIN_SPEED} and {MAX_SPEED}, got {speed}")
        self.speed = speed

    async def play(
        self,
        message: str,
        voice: Optional[str] = None,
        speed: Optional[float] = None,
        on_start: Optional[Callable[[], None]] = None,
        on_stop: Optional[Callable[[], None]] = None,
        on_cost_incurred: Optional[Callable[[TTSCostDetails], None]] = None
    ) -> None:
        """
        Speak a message if TTS is enabled. Errors are logged, never raised.

        Args:
            message: Text to speak
            voice: Voice override for this message
            speed: Speed override for this message (service default if not set)
            on_start: Called when speech starts
            on_stop: Called when speech ends
            on_cost_incurred: Called with the cost of cloud synthesis
        """
        if not self.enabled:
            logger.debug("TTS disabled, skipping message")
            return

        try:
            options = SpeakOptions(
                voice=voice,
                speed=speed if speed is not None else self.speed,
                on_start=on_start,
                on_stop=on_stop,
                on_cost_incurred=on_cost_incurred
            )
            await self.manager.speak(message, options)
        except Exception as e:
            logger.error(f"Error playing TTS message: {e}")

    def stop(self) -> None:
        self.manager.stop()

    # Provider and voice management

    async def set_provider(self, provider_type: Union[ProviderType, str]) -> None:
        await self.manager.set_active_provider(provider_type)

    def get_provider(self) -> ProviderType:
        return self.manager.get_active_provider_type()

    def update_credentials(self, provider_type: Union[ProviderType, str], credentials: TTSCredentials) -> None:
        self.manager.update_credentials(provider_type, credentials)

    def remove_provider(self, provider_type: Union[ProviderType, str]) -> None:
        self.manager.remove_provider(provider_type)

    async def list_voices(self, provider_type: Union[ProviderType, str, None] = None) -> List[Voice]:
        return await self.manager.list_voices(provider_type)

    def set_voice(self, voice_id: str, provider_type: Union[ProviderType, str, None] = None) -> None:
        if provider_type is None:
            self.manager.set_voice(voice_id)
        else:
            self.manager.set_voice_for_provider(provider_type, voice_id)

    def get_voice(self) -> Optional[str]:
        return self.manager.get_voice()

    async def validate_provider(self, provider_type: Union[ProviderType, str]) -> None:
        await self.manager.validate_provider(provider_type)


async def initialize_tts_service(
    settings: Optional[Settings] = None,
    cost_tracker: Optional[TTSCostTracker] = None
) -> TTSService:
    """
    Build a TTS service from settings and switch to the configured provider.

    A configured provider that cannot be activated leaves native active.
    """
    settings = settings or get_settings()
    cost_tracker = cost_tracker or TTSCostTracker(f0_warning_ratio=settings.AZURE_F0_WARNING_RATIO)
    manager = create_tts_manager(settings, cost_tracker=cost_tracker)

    if settings.TTS_PROVIDER != ProviderType.NATIVE.value:
        try:
            await manager.set_active_provider(settings.TTS_PROVIDER)
        except TTSProviderError as e:
            logger.warning(f"Could not activate TTS provider '{settings.TTS_PROVIDER}', using native: {e.message}")

    return TTSService(
        manager,
        enabled=settings.TTS_ENABLED,
        speed=settings.TTS_DEFAULT_SPEED,
        cost_tracker=cost_tracker
    )
