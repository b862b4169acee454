import os
from dotenv import load_dotenv
from typing import Dict, List, Any
from functools import lru_cache

load_dotenv()

VALID_TTS_PROVIDERS = ["native", "google-cloud", "azure"]
VALID_AZURE_TIERS = ["F0", "S0"]


class Settings:
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # TTS Settings
    TTS_ENABLED: bool = os.getenv("TTS_ENABLED", "true").lower() == "true"
    TTS_PROVIDER: str = os.getenv("TTS_PROVIDER", "native")
    TTS_DEFAULT_SPEED: float = float(os.getenv("TTS_DEFAULT_SPEED", "1.0"))
    TTS_TIMEOUT: int = int(os.getenv("TTS_TIMEOUT", "30"))

    # Google Cloud Text-to-Speech Settings
    GOOGLE_CLOUD_TTS_API_KEY: str = os.getenv("GOOGLE_CLOUD_TTS_API_KEY", "")
    GOOGLE_CLOUD_TTS_BASE_URL: str = os.getenv("GOOGLE_CLOUD_TTS_BASE_URL", "https://texttospeech.googleapis.com/v1")

    # Azure Speech Settings
    AZURE_SPEECH_KEY: str = os.getenv("AZURE_SPEECH_KEY", "")
    AZURE_SPEECH_REGION: str = os.getenv("AZURE_SPEECH_REGION", "")
    AZURE_TTS_TIER: str = os.getenv("AZURE_TTS_TIER", "S0").upper()
    AZURE_F0_WARNING_RATIO: float = float(os.getenv("AZURE_F0_WARNING_RATIO", "0.9"))

    # CORS Configuration
    CORS_ORIGINS: List[str] = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")

    @property
    def configured_providers(self) -> Dict[str, bool]:
        """Get credential presence for every TTS provider at once."""
        return {
            "native": True,
            "google-cloud": bool(self.GOOGLE_CLOUD_TTS_API_KEY),
            "azure": bool(self.AZURE_SPEECH_KEY and self.AZURE_SPEECH_REGION)
        }

    def is_provider_configured(self, provider: str) -> bool:
        """Check if a specific TTS provider has credentials."""
        return self.configured_providers.get(provider, False)

    def get_tts_credentials(self) -> Dict[str, Any]:
        """Get TTS credentials as keyword arguments for TTSCredentials."""
        return {
            "google_cloud_api_key": self.GOOGLE_CLOUD_TTS_API_KEY or None,
            "azure_api_key": self.AZURE_SPEECH_KEY or None,
            "azure_region": self.AZURE_SPEECH_REGION or None,
            "azure_tier": self.AZURE_TTS_TIER
        }

    def validate_configuration(self) -> List[str]:
        """Validate configuration and return list of issues."""
        errors = []

        if self.TTS_PROVIDER not in VALID_TTS_PROVIDERS:
            errors.append(
                f"TTS_PROVIDER must be one of {', '.join(VALID_TTS_PROVIDERS)}, got '{self.TTS_PROVIDER}'"
            )
        elif not self.is_provider_configured(self.TTS_PROVIDER):
            errors.append(f"TTS_PROVIDER '{self.TTS_PROVIDER}' is selected but its credentials are missing")

        if not 0.1 <= self.TTS_DEFAULT_SPEED <= 2.0:
            errors.append(f"TTS_DEFAULT_SPEED must be between 0.1 and 2.0, got {self.TTS_DEFAULT_SPEED}")

        if self.TTS_TIMEOUT <= 0:
            errors.append(f"TTS_TIMEOUT must be positive, got {self.TTS_TIMEOUT}")

        if self.AZURE_TTS_TIER not in VALID_AZURE_TIERS:
            errors.append(f"AZURE_TTS_TIER must be F0 or S0, got '{self.AZURE_TTS_TIER}'")

        if bool(self.AZURE_SPEECH_KEY) != bool(self.AZURE_SPEECH_REGION):
            errors.append("AZURE_SPEECH_KEY and AZURE_SPEECH_REGION must be set together")

        if not 0.0 < self.AZURE_F0_WARNING_RATIO <= 1.0:
            errors.append(f"AZURE_F0_WARNING_RATIO must be in (0, 1], got {self.AZURE_F0_WARNING_RATIO}")

        return errors


@lru_cache()
def get_settings():
    return Settings()
