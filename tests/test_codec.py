"""
Tests for audio decoding, WAV rendering and data locators.
"""
import base64
import io
import wave

import numpy as np
import pytest

from omni.core.errors import DecodeError
from omni.core.types import ResultKind
from omni.media import codec


class TestAudioDecode:
    def test_pcm_bytes_normalize_to_unit_range(self):
        samples = codec.decode_pcm16(bytes([0x00, 0x80, 0x00, 0x00]))

        np.testing.assert_allclose(samples, [-1.0, 0.0], atol=1e-7)

    def test_positive_full_scale(self):
        samples = codec.decode_pcm16((32767).to_bytes(2, "little", signed=True))

        assert samples[0] == pytest.approx(32767 / 32768.0)

    def test_buffer_is_mono_24k(self):
        buffer = codec.decode_audio(b"\x00\x00" * 24000)

        assert buffer.sample_rate == 24000
        assert buffer.channels == 1
        assert buffer.frame_count == 24000
        assert buffer.duration == pytest.approx(1.0)

    @pytest.mark.parametrize("payload", [b"", b"\x00\x01\x02"])
    def test_malformed_payload_raises(self, payload):
        with pytest.raises(DecodeError):
            codec.decode_pcm16(payload)

    def test_wav_rendering_preserves_samples(self):
        buffer = codec.decode_audio(bytes([0x00, 0x80, 0x00, 0x00, 0xFF, 0x7F]))

        with wave.open(io.BytesIO(codec.encode_wav(buffer)), "rb") as wav:
            assert wav.getframerate() == 24000
            assert wav.getnchannels() == 1
            frames = wav.readframes(wav.getnframes())

        assert frames == bytes([0x00, 0x80, 0x00, 0x00, 0xFF, 0x7F])


class TestLocators:
    def test_data_url_parsing(self):
        locator = codec.to_data_url(b"pixels", "image/webp")

        data, mime_type = codec.parse_data_url(locator)

        assert data == b"pixels"
        assert mime_type == "image/webp"

    def test_bad_base64_raises_decode_error(self):
        with pytest.raises(DecodeError):
            codec.parse_data_url("data:image/png;base64,@@not-base64@@")

    def test_non_base64_data_url_rejected(self):
        with pytest.raises(DecodeError):
            codec.parse_data_url("data:text/plain,hello")

    def test_fetch_local_file(self, tmp_path):
        path = tmp_path / "frame.png"
        path.write_bytes(b"local-bytes")

        assert codec.fetch_locator(str(path)) == (b"local-bytes", None)
        assert codec.fetch_locator(path.as_uri()) == (b"local-bytes", None)

    def test_reingest_defaults_to_png(self):
        locator = "data:image/jpeg;base64," + base64.b64encode(b"jpeg").decode()

        asset = codec.reingest_image(locator)

        assert asset.data == b"jpeg"
        assert asset.mime_type == "image/png"
        assert asset.display_ref == "chained_image.png"

    def test_wrap_video(self):
        artifact = codec.wrap_video(b"mp4-bytes")

        assert artifact.kind == ResultKind.VIDEO
        assert codec.parse_data_url(artifact.locator) == (b"mp4-bytes", "video/mp4")

    def test_wrap_empty_video_raises(self):
        with pytest.raises(DecodeError):
            codec.wrap_video(b"")
