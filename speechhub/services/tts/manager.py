"""
TTS Provider Manager

Holds the registered TTS providers behind the BaseTTSProvider interface,
tracks which one is active and which voice each one uses, and serializes
speech requests into a single FIFO queue.

Queued requests never raise to the caller of ``speak``: a failure on a cloud
provider is logged and the same request is retried once on the native
provider, then the queue moves on.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, Dict, List, Optional, Union

from speechhub.services.tts.base import (
    BaseTTSProvider,
    NotConfiguredError,
    ProviderType,
    SpeakOptions,
    SpeakRequest,
    TTSCredentials,
    TTSProviderError,
    Voice,
)
from speechhub.services.tts.factory import TTSProviderFactory, coerce_provider_type
from speechhub.utils.logger import get_logger

logger = get_logger(__name__)

NOT_REGISTERED = "NOT_REGISTERED"
NOT_CONFIGURED = "NOT_CONFIGURED"


@dataclass
class _QueuedSpeech:
    request: SpeakRequest
    done: asyncio.Future


class TTSProviderManager:
    """
    Registry and speech queue for TTS providers.

    The native provider is always registered and cannot be removed. If the
    active provider's entry disappears, the manager reverts to native.

    Only one drain loop runs at a time, guarded by ``_draining``. ``stop()``
    bumps ``_generation`` so a loop that was mid-dispatch exits without
    touching the queue a newer loop may own.
    """

    def __init__(
        self,
        credentials: Optional[TTSCredentials] = None,
        provider_factory: Optional[TTSProviderFactory] = None,
        providers: Optional[Dict[ProviderType, BaseTTSProvider]] = None
    ):
        """
        Initialize the manager.

        Args:
            credentials: Cloud credentials; a provider is registered for each one that suffices
            provider_factory: Builds providers from credentials
            providers: Pre-built providers to register, e.g. a custom native provider
        """
        self._factory = provider_factory or TTSProviderFactory()
        self._providers: Dict[ProviderType, BaseTTSProvider] = dict(providers or {})

        if ProviderType.NATIVE not in self._providers:
            self._providers[ProviderType.NATIVE] = self._factory.create_provider(ProviderType.NATIVE)

        if credentials is not None:
            for provider_type in (ProviderType.GOOGLE_CLOUD, ProviderType.AZURE):
                if provider_type in self._providers:
                    continue
                provider = self._factory.create_provider(provider_type, credentials)
                if provider is not None:
                    self._providers[provider_type] = provider

        self._active_provider_type = ProviderType.NATIVE
        self._provider_voices: Dict[ProviderType, str] = {}
        self._current_voice: Optional[str] = None

        self._queue: Deque[_QueuedSpeech] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Future] = None
        self._generation = 0
        self._speaking_provider: Optional[BaseTTSProvider] = None

        logger.info(f"TTS provider manager initialized with providers: {', '.join(self.get_available_providers())}")

    # Registry

    def update_credentials(
        self,
        provider_type: Union[ProviderType, str],
        credentials: TTSCredentials
    ) -> None:
        """
        Register a provider or update its credentials in place.

        Credentials that do not carry what the provider needs are ignored
        with a warning; an existing provider keeps its old credentials.
        """
        provider_type = coerce_provider_type(provider_type)
        if provider_type is ProviderType.NATIVE:
            logger.debug("Native TTS provider needs no credentials")
            return

        provider = self._providers.get(provider_type)
        if provider is None:
            provider = self._factory.create_provider(provider_type, credentials)
            if provider is None:
                logger.warning(f"Credentials for {provider_type.value} are incomplete, provider not registered")
                return
            self._providers[provider_type] = provider
            logger.info(f"Registered {provider_type.value} TTS provider")
        elif provider.update_credentials(credentials):
            logger.info(f"Updated credentials for {provider_type.value} TTS provider")
        else:
            logger.warning(f"Credentials for {provider_type.value} are incomplete, keeping existing credentials")

    def remove_provider(self, provider_type: Union[ProviderType, str]) -> None:
        """Unregister a provider. Reverts to native if it was active."""
        provider_type = coerce_provider_type(provider_type)
        if provider_type is ProviderType.NATIVE:
            logger.warning("Native TTS provider cannot be removed")
            return

        if self._providers.pop(provider_type, None) is None:
            logger.debug(f"{provider_type.value} TTS provider was not registered")
            return

        logger.info(f"Removed {provider_type.value} TTS provider")
        if self._active_provider_type is provider_type:
            self._activate(ProviderType.NATIVE)

    def get_available_providers(self) -> List[str]:
        return [provider_type.value for provider_type in self._providers]

    async def is_provider_configured(self, provider_type: Union[ProviderType, str]) -> bool:
        try:
            provider = self._providers.get(coerce_provider_type(provider_type))
        except TTSProviderError:
            return False
        if provider is None:
            return False
        return await provider.is_configured()

    # Active provider

    async def set_active_provider(self, provider_type: Union[ProviderType, str]) -> None:
        """
        Switch the active provider.

        Raises:
            NotConfiguredError: NOT_REGISTERED if the provider is absent,
                NOT_CONFIGURED if it lacks credentials. The active provider
                is unchanged in both cases.
        """
        provider_type = self._resolve_type(provider_type)
        provider = self._require_registered(provider_type)

        if not await provider.is_configured():
            raise NotConfiguredError(
                f"TTS provider {provider_type.value} is not properly configured",
                provider=provider_type,
                code=NOT_CONFIGURED
            )
        # removed while awaiting is_configured
        if self._providers.get(provider_type) is not provider:
            raise NotConfiguredError(
                f"TTS provider {provider_type.value} is not registered",
                provider=provider_type,
                code=NOT_REGISTERED
            )

        self._activate(provider_type)
        logger.info(f"Active TTS provider set to {provider_type.value}")

    def get_active_provider_type(self) -> ProviderType:
        self.get_active_provider()
        return self._active_provider_type

    def get_active_provider(self) -> BaseTTSProvider:
        """Active provider instance, reverting to native if its entry has vanished."""
        provider = self._providers.get(self._active_provider_type)
        if provider is None:
            logger.warning(
                f"Active TTS provider {self._active_provider_type.value} is no longer registered, "
                f"reverting to native"
            )
            self._activate(ProviderType.NATIVE)
            provider = self._providers[ProviderType.NATIVE]
        return provider

    def _activate(self, provider_type: ProviderType) -> None:
        self._active_provider_type = provider_type
        self._current_voice = self._provider_voices.get(provider_type)

    @staticmethod
    def _resolve_type(provider_type: Union[ProviderType, str]) -> ProviderType:
        try:
            return coerce_provider_type(provider_type)
        except TTSProviderError:
            raise NotConfiguredError(
                f"TTS provider {provider_type} is not registered",
                code=NOT_REGISTERED
            )

    def _require_registered(self, provider_type: ProviderType) -> BaseTTSProvider:
        provider = self._providers.get(provider_type)
        if provider is None:
            raise NotConfiguredError(
                f"TTS provider {provider_type.value} is not registered",
                provider=provider_type,
                code=NOT_REGISTERED
            )
        return provider

    # Voices

    async def list_voices(self, provider_type: Union[ProviderType, str, None] = None) -> List[Voice]:
        """
        List voices of the active provider, or of the given one.

        Raises:
            NotConfiguredError: If the given provider is absent or unconfigured
        """
        if provider_type is None:
            return await self.get_active_provider().list_voices()

        provider_type = self._resolve_type(provider_type)
        provider = self._require_registered(provider_type)
        if not await provider.is_configured():
            raise NotConfiguredError(
                f"TTS provider {provider_type.value} is not properly configured",
                provider=provider_type,
                code=NOT_CONFIGURED
            )
        return await provider.list_voices()

    def set_voice(self, voice_id: str) -> None:
        """Set the voice for the active provider."""
        provider_type = self.get_active_provider_type()
        self._provider_voices[provider_type] = voice_id
        self._current_voice = voice_id
        logger.debug(f"Voice for {provider_type.value} set to {voice_id}")

    def set_voice_for_provider(self, provider_type: Union[ProviderType, str], voice_id: str) -> None:
        provider_type = coerce_provider_type(provider_type)
        self._provider_voices[provider_type] = voice_id
        if provider_type is self.get_active_provider_type():
            self._current_voice = voice_id
        logger.debug(f"Voice for {provider_type.value} set to {voice_id}")

    def get_voice(self) -> Optional[str]:
        return self._current_voice

    def get_voice_for_provider(self, provider_type: Union[ProviderType, str]) -> Optional[str]:
        return self._provider_voices.get(coerce_provider_type(provider_type))

    # Speech queue

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    async def speak(self, text: str, options: Optional[SpeakOptions] = None) -> None:
        """
        Queue text for speech and wait until it has been spoken.

        Returns once this request's dispatch has settled, including a failure
        that was logged and handled by fallback, or once ``stop()`` dropped it.

        Only an explicit ``options.voice`` travels with the request. Without
        one, the voice remembered for whichever provider speaks it is used.

        Raises:
            ValueError: If the text is empty
        """
        request = SpeakRequest(text=text, options=options or SpeakOptions())

        item = _QueuedSpeech(request=request, done=asyncio.get_running_loop().create_future())
        self._queue.append(item)

        if not self._draining:
            self._draining = True
            self._drain_task = asyncio.ensure_future(self._process_queue(self._generation))

        await item.done

    def stop(self) -> None:
        """Stop current speech and drop everything still queued."""
        active = self.get_active_provider()
        active.stop()

        # The request in flight may be on a fallback or a since-replaced provider
        speaking = self._speaking_provider
        self._speaking_provider = None
        if speaking is not None and speaking is not active:
            speaking.stop()

        dropped = list(self._queue)
        self._queue.clear()
        for item in dropped:
            self._settle(item)

        self._draining = False
        self._generation += 1
        logger.info(f"Speech stopped, {len(dropped)} queued request(s) dropped")

    async def _process_queue(self, generation: int) -> None:
        logger.debug(f"Processing speech queue with {len(self._queue)} request(s)")
        try:
            while self._queue and generation == self._generation:
                item = self._queue.popleft()
                try:
                    await self._dispatch(item.request, generation)
                finally:
                    self._settle(item)
        finally:
            if generation == self._generation:
                self._draining = False
                logger.debug("Speech queue drained")

    async def _dispatch(self, request: SpeakRequest, generation: int) -> None:
        provider = self.get_active_provider()
        try:
            await self._speak_on(provider, request, generation)
            return
        except Exception as e:
            logger.error(f"Speech failed with {provider.provider_name} TTS provider: {self._describe(e)}")

        native = self._providers[ProviderType.NATIVE]
        if provider is native or generation != self._generation:
            return

        logger.warning(f"Falling back to native TTS provider after {provider.provider_name} failure")
        try:
            await self._speak_on(native, request, generation)
            logger.info("Spoke using native TTS fallback")
        except Exception as e:
            logger.error(f"Native TTS fallback also failed: {self._describe(e)}")

    async def _speak_on(self, provider: BaseTTSProvider, request: SpeakRequest, generation: int) -> None:
        self._speaking_provider = provider
        try:
            await provider.speak(request.text, self._options_for(provider, request.options))
        finally:
            if generation == self._generation:
                self._speaking_provider = None

    def _options_for(self, provider: BaseTTSProvider, options: SpeakOptions) -> SpeakOptions:
        if options.voice is not None:
            return options
        voice = self._provider_voices.get(provider.provider_type)
        return replace(options, voice=voice) if voice else options

    @staticmethod
    def _settle(item: _QueuedSpeech) -> None:
        if not item.done.done():
            item.done.set_result(None)

    @staticmethod
    def _describe(error: Exception) -> str:
        if isinstance(error, TTSProviderError):
            return f"[{error.code}] {error.message}"
        return str(error)

    # Validation

    async def validate_provider(self, provider_type: Union[ProviderType, str]) -> None:
        """
        Exercise a provider's credentials against its backend.

        Raises:
            NotConfiguredError: If the provider is not registered
            TTSProviderError: The provider's validation failure
        """
        provider_type = self._resolve_type(provider_type)
        provider = self._require_registered(provider_type)
        await provider.validate_configuration()
        logger.info(f"{provider_type.value} TTS provider validated")
