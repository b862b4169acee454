"""
Integration tests for the TTS speech queue.

Tests ordering, single-flight dispatch, native fallback, stop and provider
changes while requests are queued, using fake providers on a real manager.
"""
import asyncio
import pytest

from speechhub.services.tts.base import (
    NotConfiguredError,
    ProviderType,
    SpeakOptions,
    SynthesisError,
    TTSProviderTimeoutError,
)

NATIVE = ProviderType.NATIVE
GOOGLE = ProviderType.GOOGLE_CLOUD
AZURE = ProviderType.AZURE


async def _wait_until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("Condition not met while waiting on the event loop")


async def _enqueue(manager, *texts, options=None):
    tasks = []
    for text in texts:
        tasks.append(asyncio.ensure_future(manager.speak(text, options)))
        await asyncio.sleep(0)
    return tasks


class TestQueueOrdering:
    """Tests for FIFO, single-flight processing."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_requests_spoken_in_order_one_at_a_time(self, tts_manager, native_provider, call_log):
        native_provider.gate = asyncio.Event()

        tasks = await _enqueue(tts_manager, "one", "two", "three", "four")
        await _wait_until(lambda: len(native_provider.spoken) == 1)

        for _ in range(20):
            await asyncio.sleep(0)
        assert len(native_provider.spoken) == 1
        assert tts_manager.queue_size == 3
        assert tts_manager.is_draining

        native_provider.gate.set()
        await asyncio.gather(*tasks)

        assert call_log == [(NATIVE, "one"), (NATIVE, "two"), (NATIVE, "three"), (NATIVE, "four")]
        assert tts_manager.queue_size == 0
        assert not tts_manager.is_draining

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_speak_returns_after_own_request_finishes(self, tts_manager, native_provider):
        events = []
        options = SpeakOptions(on_start=lambda: events.append("start"), on_stop=lambda: events.append("stop"))

        await tts_manager.speak("hello", options)

        assert events == ["start", "stop"]
        assert not tts_manager.is_draining

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_current_voice_applied_when_request_has_none(self, tts_manager, native_provider):
        tts_manager.set_voice("Alex")

        await tts_manager.speak("implicit")
        await tts_manager.speak("explicit", SpeakOptions(voice="Samantha"))

        assert native_provider.spoken[0][1].voice == "Alex"
        assert native_provider.spoken[1][1].voice == "Samantha"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_empty_text_is_rejected_before_queueing(self, tts_manager):
        with pytest.raises(ValueError):
            await tts_manager.speak("")

        assert tts_manager.queue_size == 0
        assert not tts_manager.is_draining


class TestNativeFallback:
    """Tests for the single native retry after a cloud failure."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cloud_failure_falls_back_once_and_queue_continues(
        self, tts_manager, google_provider, call_log
    ):
        await tts_manager.set_active_provider(GOOGLE)
        google_provider.fail_with = TTSProviderTimeoutError("timed out", provider=GOOGLE)

        tasks = await _enqueue(tts_manager, "first", "second")
        await asyncio.gather(*tasks)

        assert call_log == [(GOOGLE, "first"), (NATIVE, "first"), (GOOGLE, "second"), (NATIVE, "second")]
        assert tts_manager.get_active_provider_type() is GOOGLE

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_fallback_failure_is_not_retried(self, tts_manager, azure_provider, native_provider, call_log):
        await tts_manager.set_active_provider(AZURE)
        azure_provider.fail_with = SynthesisError("bad gateway", provider=AZURE)
        native_provider.fail_with = SynthesisError("no audio device", provider=NATIVE)

        await tts_manager.speak("lost")
        await tts_manager.speak("also lost")

        assert call_log == [(AZURE, "lost"), (NATIVE, "lost"), (AZURE, "also lost"), (NATIVE, "also lost")]
        assert not tts_manager.is_draining

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_native_failure_has_no_fallback(self, tts_manager, native_provider, call_log):
        native_provider.fail_with = SynthesisError("engine crashed", provider=NATIVE)

        await tts_manager.speak("hello")

        assert call_log == [(NATIVE, "hello")]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_fallback_keeps_request_options(self, tts_manager, google_provider, native_provider):
        await tts_manager.set_active_provider(GOOGLE)
        google_provider.fail_with = SynthesisError("quota", provider=GOOGLE)

        await tts_manager.speak("hello", SpeakOptions(voice="en-US-Wavenet-D", speed=1.5))

        text, options = native_provider.spoken[0]
        assert text == "hello"
        assert options.voice == "en-US-Wavenet-D"
        assert options.speed == 1.5


class TestStop:
    """Tests for stopping speech while requests are queued."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stop_drops_queue_and_resolves_callers(self, tts_manager, native_provider):
        native_provider.gate = asyncio.Event()
        stopped = []
        options = SpeakOptions(on_stop=lambda: stopped.append(True))

        tasks = await _enqueue(tts_manager, "one", "two", "three", options=options)
        await _wait_until(lambda: len(native_provider.spoken) == 1)

        tts_manager.stop()
        await asyncio.wait_for(asyncio.gather(*tasks), timeout=1)

        assert [text for text, _ in native_provider.spoken] == ["one"]
        assert stopped == [True]
        assert native_provider.stop_count == 1
        assert tts_manager.queue_size == 0
        assert not tts_manager.is_draining

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_speech_resumes_after_stop(self, tts_manager, native_provider, call_log):
        native_provider.gate = asyncio.Event()
        tasks = await _enqueue(tts_manager, "interrupted", "dropped")
        await _wait_until(lambda: len(call_log) == 1)

        tts_manager.stop()
        native_provider.gate = None
        await tts_manager.speak("after")
        await asyncio.gather(*tasks)

        assert call_log == [(NATIVE, "interrupted"), (NATIVE, "after")]
        assert not tts_manager.is_draining

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stopped_cloud_speech_does_not_fall_back(self, tts_manager, google_provider, call_log):
        await tts_manager.set_active_provider(GOOGLE)
        google_provider.gate = asyncio.Event()
        google_provider.fail_with = SynthesisError("would fail", provider=GOOGLE)

        tasks = await _enqueue(tts_manager, "hello")
        await _wait_until(lambda: len(call_log) == 1)
        tts_manager.stop()
        await asyncio.gather(*tasks)

        assert call_log == [(GOOGLE, "hello")]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stop_when_idle_is_harmless(self, tts_manager):
        tts_manager.stop()
        tts_manager.stop()

        await tts_manager.speak("still works")
        assert tts_manager.queue_size == 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stop_interrupts_native_fallback(
        self, tts_manager, google_provider, native_provider, call_log
    ):
        await tts_manager.set_active_provider(GOOGLE)
        google_provider.fail_with = SynthesisError("quota", provider=GOOGLE)
        native_provider.gate = asyncio.Event()

        tasks = await _enqueue(tts_manager, "hello", "dropped")
        await _wait_until(lambda: len(native_provider.spoken) == 1)

        tts_manager.stop()
        await asyncio.wait_for(asyncio.gather(*tasks), timeout=1)

        assert native_provider.stop_count == 1
        assert call_log == [(GOOGLE, "hello"), (NATIVE, "hello")]
        assert not tts_manager.is_draining

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_stop_reaches_provider_replaced_mid_speech(
        self, tts_manager, native_provider, azure_provider, call_log
    ):
        native_provider.gate = asyncio.Event()
        tasks = await _enqueue(tts_manager, "one", "two")
        await _wait_until(lambda: len(call_log) == 1)

        await tts_manager.set_active_provider(AZURE)
        tts_manager.stop()
        await asyncio.wait_for(asyncio.gather(*tasks), timeout=1)

        assert native_provider.stop_count == 1
        assert azure_provider.stop_count == 1
        assert call_log == [(NATIVE, "one")]


class TestProviderChangesWhileQueued:
    """Tests for switching and removing providers with requests in the queue."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_queued_requests_use_provider_active_at_dispatch(
        self, tts_manager, native_provider, call_log
    ):
        native_provider.gate = asyncio.Event()
        tasks = await _enqueue(tts_manager, "one", "two")
        await _wait_until(lambda: len(call_log) == 1)

        await tts_manager.set_active_provider(AZURE)
        native_provider.gate.set()
        await asyncio.gather(*tasks)

        assert call_log == [(NATIVE, "one"), (AZURE, "two")]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failed_switch_keeps_queue_on_current_provider(
        self, tts_manager, native_provider, google_provider, call_log
    ):
        native_provider.gate = asyncio.Event()
        google_provider.configured = False
        tasks = await _enqueue(tts_manager, "one", "two")
        await _wait_until(lambda: len(call_log) == 1)

        with pytest.raises(NotConfiguredError):
            await tts_manager.set_active_provider(GOOGLE)
        native_provider.gate.set()
        await asyncio.gather(*tasks)

        assert call_log == [(NATIVE, "one"), (NATIVE, "two")]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_removing_active_provider_redirects_queue_to_native(
        self, tts_manager, google_provider, call_log
    ):
        await tts_manager.set_active_provider(GOOGLE)
        google_provider.gate = asyncio.Event()
        tasks = await _enqueue(tts_manager, "one", "two")
        await _wait_until(lambda: len(call_log) == 1)

        tts_manager.remove_provider(GOOGLE)
        google_provider.gate.set()
        await asyncio.gather(*tasks)

        assert call_log == [(GOOGLE, "one"), (NATIVE, "two")]
        assert tts_manager.get_active_provider_type() is NATIVE

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_queued_request_does_not_carry_previous_provider_voice(
        self, tts_manager, google_provider, azure_provider
    ):
        await tts_manager.set_active_provider(GOOGLE)
        tts_manager.set_voice("en-US-Wavenet-D")
        google_provider.gate = asyncio.Event()
        tasks = await _enqueue(tts_manager, "one", "two")
        await _wait_until(lambda: len(google_provider.spoken) == 1)

        await tts_manager.set_active_provider(AZURE)
        google_provider.gate.set()
        await asyncio.gather(*tasks)

        assert google_provider.spoken[0][1].voice == "en-US-Wavenet-D"
        text, options = azure_provider.spoken[0]
        assert text == "two"
        assert options.voice is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_queued_request_uses_voice_of_dispatching_provider(
        self, tts_manager, google_provider, azure_provider
    ):
        await tts_manager.set_active_provider(GOOGLE)
        tts_manager.set_voice("en-US-Wavenet-D")
        tts_manager.set_voice_for_provider(AZURE, "en-US-AriaNeural")
        google_provider.gate = asyncio.Event()
        tasks = await _enqueue(tts_manager, "one", "two")
        await _wait_until(lambda: len(google_provider.spoken) == 1)

        await tts_manager.set_active_provider(AZURE)
        google_provider.gate.set()
        await asyncio.gather(*tasks)

        assert azure_provider.spoken[0][1].voice == "en-US-AriaNeural"
