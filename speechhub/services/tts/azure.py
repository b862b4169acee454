"""
Azure TTS Provider

Cloud TTS through the Microsoft Azure Speech REST API. Requires a
subscription key and the region the key was issued for.
"""

from typing import Optional, Dict, Any, List
from xml.sax.saxutils import escape, quoteattr

import httpx

from speechhub.services.cost_tracker import TTSCostTracker
from speechhub.services.tts.base import (
    BaseTTSProvider,
    InvalidCredentialsError,
    MissingCredentialsError,
    ProviderType,
    ProviderValidationError,
    SpeakOptions,
    SynthesisError,
    TTSCredentials,
    TTSProviderError,
    TTSProviderRateLimitError,
    TTSProviderTimeoutError,
    Voice,
    VoiceGender,
    VoiceListError,
)
from speechhub.services.tts.playback import AudioPlayer
from speechhub.services.tts_cost import AzureTier
from speechhub.utils.logger import get_logger

logger = get_logger(__name__)

ENDPOINT_TEMPLATE = "https://{region}.tts.speech.microsoft.com/cognitiveservices"
DEFAULT_VOICE = "en-US-AriaNeural"
DEFAULT_LANGUAGE = "en-US"
OUTPUT_FORMAT = "audio-16khz-32kbitrate-mono-mp3"
SSML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def speed_to_rate(speed: float) -> str:
    """SSML prosody rate for a speed multiplier, e.g. 1.25 -> "+25%"."""
    percent = round((speed - 1.0) * 100)
    return f"+{percent}%" if percent >= 0 else f"{percent}%"


def build_ssml(text: str, voice_name: str, speed: float) -> str:
    parts = voice_name.split("-")
    language = "-".join(parts[:2]) if len(parts) >= 3 else DEFAULT_LANGUAGE
    escaped_text = escape(text, SSML_ENTITIES)
    return (
        f'<speak version="1.0" xmlns="http://www.w3.org/2001/10/synthesis" xml:lang={quoteattr(language)}>'
        f"<voice name={quoteattr(voice_name)}>"
        f'<prosody rate="{speed_to_rate(speed)}">{escaped_text}</prosody>'
        f"</voice>"
        f"</speak>"
    )


def _map_gender(gender: Optional[str]) -> VoiceGender:
    lowered = (gender or "").lower()
    if lowered == "female":
        return VoiceGender.FEMALE
    if lowered == "male":
        return VoiceGender.MALE
    return VoiceGender.NEUTRAL


class AzureTTSProvider(BaseTTSProvider):
    """Microsoft Azure Speech provider, billed per the configured pricing tier."""

    provider_type = ProviderType.AZURE

    def __init__(
        self,
        api_key: Optional[str] = None,
        region: Optional[str] = None,
        tier: AzureTier = AzureTier.S0,
        timeout: int = 30,
        cost_tracker: Optional[TTSCostTracker] = None,
        player: Optional[AudioPlayer] = None
    ):
        super().__init__()
        self.api_key = api_key
        self.region = region
        self.tier = AzureTier(tier)
        self.timeout = timeout
        self.cost_tracker = cost_tracker
        self.player = player or AudioPlayer(self.provider_type)

    @classmethod
    def from_credentials(cls, credentials: TTSCredentials, **kwargs) -> Optional["AzureTTSProvider"]:
        if not (credentials.azure_api_key and credentials.azure_region):
            return None
        return cls(
            api_key=credentials.azure_api_key,
            region=credentials.azure_region,
            tier=AzureTier(credentials.azure_tier or AzureTier.S0),
            **kwargs
        )

    def update_credentials(self, credentials: TTSCredentials) -> bool:
        if not (credentials.azure_api_key and credentials.azure_region):
            return False
        self.set_credentials(
            credentials.azure_api_key,
            credentials.azure_region,
            AzureTier(credentials.azure_tier or AzureTier.S0)
        )
        return True

    def set_credentials(self, api_key: str, region: str, tier: AzureTier = AzureTier.S0) -> None:
        self.api_key = api_key
        self.region = region
        self.tier = AzureTier(tier)
        self.clear_voice_cache()
        logger.info(f"Azure credentials updated (region: {region}, tier: {self.tier.value}), voice cache cleared")

    async def is_configured(self) -> bool:
        return bool(self.api_key and self.region)

    @property
    def endpoint(self) -> str:
        return ENDPOINT_TEMPLATE.format(region=self.region)

    def _require_credentials(self) -> None:
        if not (self.api_key and self.region):
            raise MissingCredentialsError("Azure Speech API key and region are required", provider=self.provider_type)

    def _check_auth(self, response: httpx.Response) -> None:
        if response.status_code in (401, 403):
            raise InvalidCredentialsError("Invalid Azure Speech API key or region", provider=self.provider_type)

    async def _list_voices_from_api(self) -> List[Dict[str, Any]]:
        self._require_credentials()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.endpoint}/voices/list",
                    headers={"Ocp-Apim-Subscription-Key": self.api_key}
                )
        except httpx.TimeoutException:
            raise VoiceListError("Azure voice list request timed out", provider=self.provider_type)
        except httpx.RequestError as e:
            raise VoiceListError(f"Azure voice list request failed: {str(e)}", provider=self.provider_type)

        self._check_auth(response)
        if response.status_code != 200:
            raise VoiceListError(
                f"Azure voice list failed: {response.status_code} - {response.text[:200]}",
                provider=self.provider_type
            )

        voices = response.json() or []
        logger.info(f"Retrieved {len(voices)} voices from Azure ({self.region})")
        return voices

    async def _fetch_voices(self) -> List[Voice]:
        return [
            Voice(
                id=api_voice["ShortName"],
                name=f"{api_voice.get('LocalName') or api_voice.get('DisplayName')} ({api_voice.get('Locale')})",
                language=api_voice.get("Locale") or DEFAULT_LANGUAGE,
                gender=_map_gender(api_voice.get("Gender")),
                provider=self.provider_type
            )
            for api_voice in await self._list_voices_from_api()
        ]

    async def synthesize(self, text: str, voice_name: str, speed: float) -> bytes:
        """Synthesize text to MP3 audio through the SSML endpoint."""
        self._require_credentials()

        headers = {
            "Ocp-Apim-Subscription-Key": self.api_key,
            "Content-Type": "application/ssml+xml",
            "X-Microsoft-OutputFormat": OUTPUT_FORMAT
        }

        logger.debug(f"Synthesizing {len(text)} chars with Azure (voice: {voice_name}, speed: {speed})")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.endpoint}/v1",
                    content=build_ssml(text, voice_name, speed).encode("utf-8"),
                    headers=headers
                )
        except httpx.TimeoutException:
            raise TTSProviderTimeoutError("Azure TTS request timed out", provider=self.provider_type)
        except httpx.RequestError as e:
            raise SynthesisError(f"Azure TTS request failed: {str(e)}", provider=self.provider_type)

        self._check_auth(response)
        if response.status_code == 429:
            raise TTSProviderRateLimitError("Azure TTS rate limit exceeded", provider=self.provider_type)
        if response.status_code != 200:
            raise SynthesisError(
                f"Azure synthesis failed: {response.status_code} - {response.text[:200]}",
                provider=self.provider_type
            )
        if not response.content:
            raise SynthesisError("Azure returned empty audio", provider=self.provider_type)

        logger.info(f"Successfully synthesized {len(response.content)} bytes of audio")
        return response.content

    async def _speak(self, text: str, options: SpeakOptions) -> None:
        self._require_credentials()

        voices = await self.list_voices()
        voice_name = options.voice or (voices[0].id if voices else DEFAULT_VOICE)
        audio = await self.synthesize(text, voice_name, options.effective_speed)

        if self.cost_tracker is not None:
            self.cost_tracker.track_azure(self.tier, voice_name, len(text), options.on_cost_incurred)

        await self.player.play(audio)

    def _stop_playback(self) -> None:
        self.player.stop()

    async def validate_configuration(self) -> None:
        self._require_credentials()
        try:
            await self._list_voices_from_api()
        except (MissingCredentialsError, InvalidCredentialsError):
            raise
        except TTSProviderError as e:
            raise ProviderValidationError(
                f"Azure validation failed: {e.message}",
                provider=self.provider_type
            ) from e
        logger.info(f"Azure TTS configuration validated for region {self.region}")
