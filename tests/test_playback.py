"""
Tests for the single-flight speech player and the WAV file sink.
"""
import wave

import pytest

from conftest import RecordingSink
from omni.core.errors import DecodeError
from omni.media.playback import SpeechPlayer, WaveFileSink


@pytest.mark.asyncio
async def test_wave_sink_writes_playable_file(tmp_path):
    sink = WaveFileSink(str(tmp_path / "speech"))

    async def synthesize():
        return b"\x00\x80\x00\x00" * 10

    buffer = await SpeechPlayer(sink).speak(synthesize)

    with wave.open(sink.last_path, "rb") as wav:
        assert wav.getframerate() == 24000
        assert wav.getnchannels() == 1
        assert wav.getnframes() == buffer.frame_count == 20


@pytest.mark.asyncio
async def test_guard_released_after_decode_failure():
    player = SpeechPlayer(RecordingSink())

    async def broken():
        return b"\x00"

    with pytest.raises(DecodeError):
        await player.speak(broken)

    assert not player.active
