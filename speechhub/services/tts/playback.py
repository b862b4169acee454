"""
Audio playback for cloud TTS providers.

Plays an MP3 buffer through the platform's command-line audio player in a
subprocess so playback can be interrupted by killing the process.
"""

import asyncio
import os
import sys
import tempfile
from typing import List, Optional

from speechhub.services.tts.base import ProviderType, PlaybackError
from speechhub.utils.logger import get_logger

logger = get_logger(__name__)

WINDOWS_PLAYER_SCRIPT = (
    "Add-Type -AssemblyName presentationCore; "
    "$player = New-Object system.windows.media.mediaplayer; "
    "$player.open('{path}'); "
    "$player.Play(); "
    "Start-Sleep 1; "
    "Start-Sleep -s $player.NaturalDuration.TimeSpan.TotalSeconds; "
    "Exit;"
)


class AudioPlayer:
    """Plays one MP3 buffer at a time for a single provider."""

    def __init__(self, provider: ProviderType, platform: Optional[str] = None):
        self.provider = provider
        self.platform = platform or sys.platform
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stopped = False

    @property
    def is_playing(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def build_command(self, audio_path: str) -> List[str]:
        """Player command line for this platform."""
        if self.platform == "darwin":
            return ["afplay", audio_path]
        if self.platform.startswith("win"):
            script = WINDOWS_PLAYER_SCRIPT.format(path=audio_path.replace("'", "''"))
            return ["powershell", "-NoProfile", "-Command", script]
        return ["mpg123", "-q", audio_path]

    async def play(self, audio: bytes) -> None:
        """
        Play the audio and wait until playback finishes.

        Raises:
            PlaybackError: If the player cannot be started or exits with an error
        """
        if not audio:
            raise PlaybackError("No audio to play", provider=self.provider)

        self._stopped = False
        fd, audio_path = tempfile.mkstemp(prefix=f"speechhub-{self.provider.value}-", suffix=".mp3")
        try:
            with os.fdopen(fd, "wb") as audio_file:
                audio_file.write(audio)

            command = self.build_command(audio_path)
            try:
                self._process = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL
                )
            except OSError as e:
                raise PlaybackError(
                    f"Failed to start audio player '{command[0]}': {e}",
                    provider=self.provider
                ) from e

            process = self._process
            try:
                return_code = await process.wait()
            except asyncio.CancelledError:
                self._kill(process)
                raise

            if return_code != 0 and not self._stopped:
                raise PlaybackError(
                    f"Audio playback failed with code {return_code}",
                    provider=self.provider
                )
        finally:
            self._process = None
            try:
                os.unlink(audio_path)
            except OSError as e:
                logger.debug(f"Could not remove temp audio file {audio_path}: {e}")

    def stop(self) -> None:
        """Kill the running player, if any."""
        self._stopped = True
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
