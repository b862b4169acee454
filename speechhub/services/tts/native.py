"""
Native TTS Provider

Speaks through the operating system's voice engine via pyttsx3. The engine
runs in a worker thread so the event loop stays free while it talks. On
macOS, whose driver needs a main thread, each call runs in a short-lived
``native_worker`` process instead.
"""

import asyncio
import json
import sys
import threading
from typing import Optional, Any, Dict, List, Tuple

from speechhub.services.tts.base import (
    BaseTTSProvider,
    ProviderType,
    SpeakOptions,
    SynthesisError,
    TTSCredentials,
    Voice,
    VoiceGender,
)
from speechhub.services.tts.native_worker import list_engine_voices, run_engine
from speechhub.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_VOICE_ID = "default"
DEFAULT_LANGUAGE = "en-US"
BASE_WORDS_PER_MINUTE = 200
WORKER_MODULE = "speechhub.services.tts.native_worker"

# (markers, language) checked in order against the lowercased voice name
LANGUAGE_MARKERS: List[Tuple[Tuple[str, ...], str]] = [
    (("en-us", "en_us", "english"), "en-US"),
    (("en-gb", "en_gb", "british"), "en-GB"),
    (("en-au", "en_au", "australian"), "en-AU"),
    (("es-", "es_", "spanish"), "es-ES"),
    (("fr-", "fr_", "french"), "fr-FR"),
    (("de-", "de_", "german"), "de-DE"),
    (("it-", "it_", "italian"), "it-IT"),
    (("ja-", "ja_", "japanese"), "ja-JP"),
    (("zh-", "zh_", "chinese"), "zh-CN"),
    (("ko-", "ko_", "korean"), "ko-KR"),
    (("pt-", "pt_", "portuguese"), "pt-PT"),
    (("ru-", "ru_", "russian"), "ru-RU"),
]


def guess_language_from_voice_name(voice_name: str) -> str:
    """Best-effort locale from a voice name, defaulting to en-US."""
    name = voice_name.lower()
    for markers, language in LANGUAGE_MARKERS:
        if any(marker in name for marker in markers):
            return language
    return DEFAULT_LANGUAGE


def _normalize_language(raw: str) -> Optional[str]:
    language = "".join(ch for ch in raw if ch.isprintable()).strip().replace("_", "-")
    if not language:
        return None
    parts = language.split("-")
    if len(parts) >= 2:
        return f"{parts[0].lower()}-{parts[1].upper()}"
    return parts[0].lower()


def _map_gender(raw: Any) -> Optional[VoiceGender]:
    if not raw:
        return None
    lowered = str(raw).lower()
    if "female" in lowered:
        return VoiceGender.FEMALE
    if "male" in lowered:
        return VoiceGender.MALE
    if "neutral" in lowered:
        return VoiceGender.NEUTRAL
    return None


class NativeTTSProvider(BaseTTSProvider):
    """
    OS voice engine provider. Always configured.

    A fresh pyttsx3 engine is created for every utterance; reusing one
    engine across runs is unreliable on some platforms.
    """

    provider_type = ProviderType.NATIVE

    def __init__(self, words_per_minute: int = BASE_WORDS_PER_MINUTE, platform: Optional[str] = None):
        super().__init__()
        self.words_per_minute = words_per_minute
        self.platform = platform or sys.platform
        self._engine = None
        self._engine_lock = threading.Lock()
        self._process: Optional[asyncio.subprocess.Process] = None

    @property
    def uses_worker_process(self) -> bool:
        return self.platform == "darwin"

    @classmethod
    def from_credentials(cls, credentials: TTSCredentials, **kwargs) -> "NativeTTSProvider":
        return cls(**kwargs)

    def update_credentials(self, credentials: TTSCredentials) -> bool:
        return True

    async def is_configured(self) -> bool:
        return True

    async def validate_configuration(self) -> None:
        return None

    async def _fetch_voices(self) -> List[Voice]:
        try:
            if self.uses_worker_process:
                engine_voices = json.loads(await self._run_worker("voices"))
            else:
                engine_voices = await asyncio.to_thread(list_engine_voices)
        except Exception as e:
            logger.warning(f"Failed to enumerate native voices, using system default: {e}")
            return [self._default_voice()]

        voices = self._to_voices(engine_voices)
        if not voices:
            return [self._default_voice()]

        logger.info(f"Loaded {len(voices)} native voices")
        return voices

    def _to_voices(self, engine_voices: List[Dict[str, Any]]) -> List[Voice]:
        voices = []
        for engine_voice in engine_voices:
            name = engine_voice["name"]
            if "(null)" in name:
                continue

            languages = engine_voice.get("languages") or []
            language = _normalize_language(languages[0]) if languages else None

            voices.append(Voice(
                id=engine_voice["id"],
                name=name,
                language=language or guess_language_from_voice_name(name),
                gender=_map_gender(engine_voice.get("gender")),
                provider=self.provider_type
            ))
        return voices

    def _default_voice(self) -> Voice:
        return Voice(
            id=DEFAULT_VOICE_ID,
            name="System Default",
            language=DEFAULT_LANGUAGE,
            provider=self.provider_type
        )

    async def _resolve_voice(self, voice: Optional[str]) -> Optional[str]:
        """Engine voice id to use, or None for the engine default."""
        if not voice or voice == DEFAULT_VOICE_ID:
            return None

        known = await self.list_voices()
        if any(v.id == voice for v in known):
            return voice

        # voice ids from other providers arrive here during fallback
        logger.debug(f"Voice '{voice}' is not installed, using system default")
        return None

    async def _speak(self, text: str, options: SpeakOptions) -> None:
        voice_id = await self._resolve_voice(options.voice)
        rate = int(self.words_per_minute * options.effective_speed)

        try:
            if self.uses_worker_process:
                args = ["speak", "--rate", str(rate)]
                if voice_id:
                    args += ["--voice", voice_id]
                await self._run_worker(*args, text=text)
            else:
                await asyncio.to_thread(self._run_engine, text, voice_id, rate)
        except Exception as e:
            logger.error(f"Native TTS failed: {e}")
            raise SynthesisError(f"Native TTS failed: {e}", provider=self.provider_type) from e

    def _run_engine(self, text: str, voice_id: Optional[str], rate: int) -> None:
        import pyttsx3

        engine = pyttsx3.init()
        with self._engine_lock:
            self._engine = engine
        try:
            run_engine(engine, text, voice_id, rate)
        finally:
            with self._engine_lock:
                if self._engine is engine:
                    self._engine = None

    async def _run_worker(self, *args: str, text: Optional[str] = None) -> bytes:
        """
        Run one native_worker command and return its stdout.

        Raises:
            RuntimeError: If the worker exits with an error
        """
        process = await asyncio.create_subprocess_exec(
            sys.executable, "-m", WORKER_MODULE, *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        self._process = process
        try:
            stdout, stderr = await process.communicate(text.encode("utf-8") if text is not None else None)
        except asyncio.CancelledError:
            self._kill(process)
            raise
        finally:
            if self._process is process:
                self._process = None

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="ignore").strip()
            raise RuntimeError(detail or f"native voice worker exited with code {process.returncode}")
        return stdout

    def _stop_playback(self) -> None:
        with self._engine_lock:
            engine = self._engine
            self._engine = None
        if engine is not None:
            engine.stop()

        if self._process is not None:
            self._kill(self._process)

    def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            # exited between the check and the kill
            pass
