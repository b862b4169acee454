"""
Google Cloud TTS Provider

Cloud TTS through the Google Cloud Text-to-Speech REST API with API-key
authentication. Requires an API key.
"""

import base64
import binascii
import re
from typing import Optional, Dict, Any, List

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
from speechhub.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://texttospeech.googleapis.com/v1"
DEFAULT_LANGUAGE = "en-US"
VOICE_NAME_PATTERN = re.compile(r"^[a-z]{2,3}-[A-Z]{2}-")
LANGUAGE_CODE_PATTERN = re.compile(r"^([a-z]{2,3}-[A-Z]{2})")


def extract_language_code(voice_name: Optional[str]) -> Optional[str]:
    """Language code prefix of a Google voice name, e.g. en-US-Wavenet-D -> en-US."""
    if not voice_name:
        return None
    match = LANGUAGE_CODE_PATTERN.match(voice_name)
    return match.group(1) if match else None


def _map_gender(ssml_gender: Optional[str]) -> Optional[VoiceGender]:
    return {
        "MALE": VoiceGender.MALE,
        "FEMALE": VoiceGender.FEMALE,
        "NEUTRAL": VoiceGender.NEUTRAL,
    }.get((ssml_gender or "").upper())


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return payload["error"].get("message", "")
    return response.text[:200]


class GoogleCloudTTSProvider(BaseTTSProvider):
    """
    Google Cloud Text-to-Speech provider.

    Endpoints:
        GET  {base_url}/voices?key=API_KEY
        POST {base_url}/text:synthesize?key=API_KEY
    """

    provider_type = ProviderType.GOOGLE_CLOUD

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
        cost_tracker: Optional[TTSCostTracker] = None,
        player: Optional[AudioPlayer] = None
    ):
        """
        Initialize Google Cloud TTS provider.

        Args:
            api_key: Google Cloud API key with Text-to-Speech enabled
            base_url: REST API base URL
            timeout: Request timeout in seconds
            cost_tracker: Receives the characters billed for each synthesis
            player: Audio player (platform default if not provided)
        """
        super().__init__()
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cost_tracker = cost_tracker
        self.player = player or AudioPlayer(self.provider_type)

    @classmethod
    def from_credentials(cls, credentials: TTSCredentials, **kwargs) -> Optional["GoogleCloudTTSProvider"]:
        if not credentials.google_cloud_api_key:
            return None
        return cls(api_key=credentials.google_cloud_api_key, **kwargs)

    def update_credentials(self, credentials: TTSCredentials) -> bool:
        if not credentials.google_cloud_api_key:
            return False
        self.set_api_key(credentials.google_cloud_api_key)
        return True

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key
        self.clear_voice_cache()
        logger.info("Google Cloud API key updated, voice cache cleared")

    async def is_configured(self) -> bool:
        return bool(self.api_key)

    def _require_api_key(self) -> None:
        if not self.api_key:
            raise MissingCredentialsError("Google Cloud API key is not configured", provider=self.provider_type)

    async def _list_voices_rest(self) -> List[Dict[str, Any]]:
        self._require_api_key()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}/voices", params={"key": self.api_key})
        except httpx.TimeoutException:
            raise VoiceListError("Google Cloud voice list request timed out", provider=self.provider_type)
        except httpx.RequestError as e:
            raise VoiceListError(f"Google Cloud voice list request failed: {str(e)}", provider=self.provider_type)

        if response.status_code in (401, 403):
            raise InvalidCredentialsError(
                "Invalid Google Cloud API key or insufficient permissions",
                provider=self.provider_type
            )
        if response.status_code != 200:
            raise VoiceListError(
                f"Google Cloud voice list failed: {response.status_code} - {_error_message(response)}",
                provider=self.provider_type
            )

        voices = response.json().get("voices") or []
        logger.info(f"Retrieved {len(voices)} voices from Google Cloud")
        return voices

    async def _fetch_voices(self) -> List[Voice]:
        voices = []
        for api_voice in await self._list_voices_rest():
            language = (api_voice.get("languageCodes") or [DEFAULT_LANGUAGE])[0]
            voices.append(Voice(
                id=api_voice["name"],
                name=f"{api_voice['name']} ({language})",
                language=language,
                gender=_map_gender(api_voice.get("ssmlGender")),
                provider=self.provider_type
            ))
        return voices

    async def _select_voice(self, requested: Optional[str]) -> Optional[str]:
        """Requested voice if it exists, else a known voice in the requested language."""
        try:
            voices = await self.list_voices()
        except VoiceListError as e:
            logger.warning(f"Could not load Google Cloud voices, using requested voice as-is: {e}")
            return requested

        if requested and VOICE_NAME_PATTERN.match(requested) and any(v.id == requested for v in voices):
            return requested

        target_language = extract_language_code(requested) or DEFAULT_LANGUAGE
        candidate = next((v for v in voices if v.language == target_language), voices[0] if voices else None)
        if candidate is None:
            return requested

        logger.warning(f"Substituting unavailable voice '{requested}' with '{candidate.id}'")
        return candidate.id

    async def synthesize(self, text: str, voice_name: Optional[str], speed: float) -> bytes:
        """
        Synthesize text to MP3 audio.

        Raises:
            MissingCredentialsError: If no API key is configured
            InvalidCredentialsError: If Google rejects the API key
            TTSProviderTimeoutError: If the request times out
            TTSProviderRateLimitError: If the quota is exceeded
            SynthesisError: For any other failure
        """
        self._require_api_key()

        voice: Dict[str, Any] = {
            "languageCode": extract_language_code(voice_name) or DEFAULT_LANGUAGE
        }
        if voice_name:
            voice["name"] = voice_name
        payload = {
            "input": {"text": text},
            "voice": voice,
            "audioConfig": {"audioEncoding": "MP3", "speakingRate": speed}
        }

        logger.debug(f"Synthesizing {len(text)} chars with Google Cloud (voice: {voice_name}, speed: {speed})")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/text:synthesize",
                    params={"key": self.api_key},
                    json=payload
                )
        except httpx.TimeoutException:
            raise TTSProviderTimeoutError("Google Cloud TTS request timed out", provider=self.provider_type)
        except httpx.RequestError as e:
            raise SynthesisError(f"Google Cloud TTS request failed: {str(e)}", provider=self.provider_type)

        if response.status_code in (401, 403):
            raise InvalidCredentialsError(
                "Invalid Google Cloud API key or insufficient permissions",
                provider=self.provider_type
            )
        if response.status_code == 429:
            raise TTSProviderRateLimitError("Google Cloud TTS quota exceeded", provider=self.provider_type)
        if response.status_code != 200:
            raise SynthesisError(
                f"Google Cloud synthesis failed: {response.status_code} - {_error_message(response)}",
                provider=self.provider_type
            )

        audio_content = response.json().get("audioContent")
        if not audio_content:
            raise SynthesisError("No audioContent returned from Google Cloud TTS", provider=self.provider_type)

        try:
            audio = base64.b64decode(audio_content)
        except (binascii.Error, ValueError) as e:
            raise SynthesisError(f"Google Cloud returned undecodable audio: {e}", provider=self.provider_type)

        logger.info(f"Successfully synthesized {len(audio)} bytes of audio")
        return audio

    async def _speak(self, text: str, options: SpeakOptions) -> None:
        self._require_api_key()

        voice_name = await self._select_voice(options.voice)
        audio = await self.synthesize(text, voice_name, options.effective_speed)

        if self.cost_tracker is not None:
            self.cost_tracker.track_google(voice_name, len(text), options.on_cost_incurred)

        await self.player.play(audio)

    def _stop_playback(self) -> None:
        self.player.stop()

    async def validate_configuration(self) -> None:
        self._require_api_key()
        try:
            await self._list_voices_rest()
        except (MissingCredentialsError, InvalidCredentialsError):
            raise
        except TTSProviderError as e:
            raise ProviderValidationError(
                f"Google Cloud validation failed: {e.message}",
                provider=self.provider_type
            ) from e
        logger.info("Google Cloud TTS configuration validated")
