"""
TTS Provider Factory

Factory for creating TTS provider instances from credentials.
"""

from typing import Dict, List, Optional, Type, Union, TYPE_CHECKING

from speechhub.config import Settings, get_settings
from speechhub.services.cost_tracker import TTSCostTracker
from speechhub.services.tts.azure import AzureTTSProvider
from speechhub.services.tts.base import BaseTTSProvider, ProviderType, TTSCredentials, TTSProviderError
from speechhub.services.tts.google_cloud import GoogleCloudTTSProvider
from speechhub.services.tts.native import NativeTTSProvider
from speechhub.utils.logger import get_logger

if TYPE_CHECKING:
    from speechhub.services.tts.manager import TTSProviderManager

logger = get_logger(__name__)

# Provider registry
PROVIDER_REGISTRY: Dict[ProviderType, Type[BaseTTSProvider]] = {
    ProviderType.NATIVE: NativeTTSProvider,
    ProviderType.GOOGLE_CLOUD: GoogleCloudTTSProvider,
    ProviderType.AZURE: AzureTTSProvider
}


def coerce_provider_type(provider_type: Union[ProviderType, str]) -> ProviderType:
    """
    Convert a provider name to ProviderType.

    Raises:
        TTSProviderError: If the name is not a known provider
    """
    try:
        return ProviderType(provider_type)
    except ValueError:
        raise TTSProviderError(
            f"Unknown TTS provider: {provider_type}. "
            f"Valid providers: {', '.join(p.value for p in PROVIDER_REGISTRY)}"
        )


class TTSProviderFactory:
    """
    Factory for creating TTS provider instances.

    Cloud providers share the factory's cost tracker and request timeout.
    """
    PROVIDER_REGISTRY = PROVIDER_REGISTRY  # Class attribute for test access

    def __init__(
        self,
        cost_tracker: Optional[TTSCostTracker] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.cost_tracker = cost_tracker or TTSCostTracker(
            f0_warning_ratio=self.settings.AZURE_F0_WARNING_RATIO
        )

    def create_provider(
        self,
        provider_type: Union[ProviderType, str],
        credentials: Optional[TTSCredentials] = None
    ) -> Optional[BaseTTSProvider]:
        """
        Create a TTS provider instance.

        Args:
            provider_type: Provider to create
            credentials: Credentials for cloud providers

        Returns:
            The provider, or None if the credentials are insufficient

        Raises:
            TTSProviderError: If the provider type is unknown
        """
        provider_type = coerce_provider_type(provider_type)
        provider_class = self.PROVIDER_REGISTRY[provider_type]

        provider = provider_class.from_credentials(
            credentials or TTSCredentials(),
            **self._provider_kwargs(provider_type)
        )
        if provider is None:
            logger.debug(f"Insufficient credentials to create {provider_type.value} provider")
        else:
            logger.info(f"Created {provider_type.value} TTS provider")
        return provider

    def _provider_kwargs(self, provider_type: ProviderType) -> Dict[str, object]:
        if provider_type is ProviderType.NATIVE:
            return {}

        kwargs = {
            "timeout": self.settings.TTS_TIMEOUT,
            "cost_tracker": self.cost_tracker
        }
        if provider_type is ProviderType.GOOGLE_CLOUD:
            kwargs["base_url"] = self.settings.GOOGLE_CLOUD_TTS_BASE_URL
        return kwargs

    @staticmethod
    def get_available_providers() -> List[str]:
        """
        Get list of provider names this factory can build.

        Returns:
            list: List of provider names
        """
        return [provider_type.value for provider_type in PROVIDER_REGISTRY]

    @staticmethod
    def is_provider_available(provider_name: str) -> bool:
        return provider_name.lower() in TTSProviderFactory.get_available_providers()


def create_tts_manager(
    settings: Optional[Settings] = None,
    cost_tracker: Optional[TTSCostTracker] = None
) -> "TTSProviderManager":
    """
    Build a manager with every provider the settings carry credentials for.

    The manager starts on the native provider; ``initialize_tts_service`` switches
    to ``TTS_PROVIDER`` since switching providers is asynchronous.
    """
    from speechhub.services.tts.manager import TTSProviderManager

    settings = settings or get_settings()
    factory = TTSProviderFactory(cost_tracker=cost_tracker, settings=settings)
    credentials = TTSCredentials(**settings.get_tts_credentials())
    return TTSProviderManager(credentials=credentials, provider_factory=factory)
