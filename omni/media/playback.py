"""Single-flight audio playback for narrated results.

Architectural role:
    Runs the speak pipeline (synthesize -> decode -> play) while holding a
    session-wide guard, so at most one narration is active at a time.

Guard semantics:
    - A second `speak` while one is in flight is a no-op that returns `None`.
    - The guard is released exactly once, after the sink's completion future
      resolves, or immediately when synthesis/decoding fails.

Sinks:
    A sink's `play(buffer)` returns an awaitable that completes when playback
    has fully finished. `WaveFileSink` renders each narration to a WAV file
    and completes as soon as the file is written.
"""

import asyncio
import logging
import os
import uuid
from typing import Awaitable, Callable, Protocol

from omni.media.codec import AudioBuffer, decode_audio, encode_wav


logger = logging.getLogger(__name__)


class AudioSink(Protocol):
    """Minimal interface for something that can play a decoded buffer."""

    def play(self, buffer: AudioBuffer) -> Awaitable[None]:
        ...


class WaveFileSink:
    """Write each narration to `<directory>/speech-<id>.wav`."""

    def __init__(self, directory: str):
        self.directory = directory
        self.last_path: str | None = None

    def play(self, buffer: AudioBuffer) -> Awaitable[None]:
        os.makedirs(self.directory, exist_ok=True)
        path = os.path.join(self.directory, f"speech-{uuid.uuid4().hex[:8]}.wav")
        with open(path, "wb") as f:
            f.write(encode_wav(buffer))
        self.last_path = path
        logger.info("Narration written to %s (%.1fs)", path, buffer.duration)

        done = asyncio.get_running_loop().create_future()
        done.set_result(None)
        return done


class SpeechPlayer:
    """Serialize narration requests behind a single-flight guard."""

    def __init__(self, sink: AudioSink):
        self.sink = sink
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def speak(
        self,
        synthesize: Callable[[], Awaitable[bytes]],
    ) -> AudioBuffer | None:
        """Synthesize, decode and play one narration.

        Args:
            synthesize: Coroutine factory returning raw PCM bytes.

        Returns:
            The played buffer, or `None` when another narration was active.

        Raises:
            Whatever `synthesize` or decoding raises; the guard is released first.
        """
        if self._active:
            logger.debug("Narration already active; ignoring speak request")
            return None

        self._active = True
        try:
            pcm = await synthesize()
            buffer = decode_audio(pcm)
            await self.sink.play(buffer)
            return buffer
        finally:
            self._active = False
