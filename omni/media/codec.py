"""Media conversion helpers for audio playback and result chaining.

Audio:
    Speech arrives as raw signed 16-bit little-endian PCM, mono, 24 kHz.
    `decode_audio` normalizes every sample to `sample / 32768.0` and packages
    the result as a single-channel `AudioBuffer`. `encode_wav` renders a
    buffer back into a WAV container for sinks that need a file.

Images and video:
    Generated media is addressed by `data:` locators. `to_data_url` builds
    them, `fetch_locator` resolves `data:`, `file://`, local paths and
    `http(s)` locators back to bytes, and `reingest_image` wraps the bytes as
    a new `InputAsset` for chaining.

Error handling strategy:
    - Malformed audio or base64 payloads raise `DecodeError`.
    - Unreadable locators propagate `OSError` / `requests` exceptions or
      `DecodeError`; the chainer converts them to `ChainError`.
"""

import base64
import binascii
import io
import os
import wave
from dataclasses import dataclass
from urllib.parse import unquote, urlparse

import numpy as np
import requests

from omni.core.errors import DecodeError
from omni.core.types import InputAsset, VideoArtifact


PCM_SAMPLE_RATE = 24000
PCM_CHANNELS = 1
PCM_SCALE = 32768.0
DEFAULT_IMAGE_MIME = "image/png"
CHAINED_IMAGE_NAME = "chained_image.png"
FETCH_TIMEOUT = 60


@dataclass(frozen=True)
class AudioBuffer:
    """Playable single-channel sample buffer."""

    samples: np.ndarray
    sample_rate: int = PCM_SAMPLE_RATE
    channels: int = PCM_CHANNELS

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return self.frame_count / float(self.sample_rate)


def decode_base64(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecodeError("Malformed base64 payload") from err


def decode_pcm16(data: bytes) -> np.ndarray:
    """Convert little-endian int16 PCM bytes to normalized float32 samples."""
    if not data:
        raise DecodeError("Empty audio payload")
    if len(data) % 2:
        raise DecodeError(f"PCM payload has odd length {len(data)}")
    samples = np.frombuffer(data, dtype="<i2")
    return samples.astype(np.float32) / PCM_SCALE


def decode_audio(data: bytes, sample_rate: int = PCM_SAMPLE_RATE) -> AudioBuffer:
    return AudioBuffer(samples=decode_pcm16(data), sample_rate=sample_rate)


def encode_wav(buffer: AudioBuffer) -> bytes:
    """Render an `AudioBuffer` as a 16-bit PCM WAV file in memory."""
    pcm = np.clip(np.round(buffer.samples * PCM_SCALE), -32768, 32767).astype("<i2")
    out = io.BytesIO()
    with wave.open(out, "wb") as wav:
        wav.setnchannels(buffer.channels)
        wav.setsampwidth(2)
        wav.setframerate(buffer.sample_rate)
        wav.writeframes(pcm.tobytes())
    return out.getvalue()


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_url(locator: str) -> tuple[bytes, str]:
    """Split a base64 `data:` locator into `(bytes, mime_type)`."""
    header, sep, payload = locator.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise DecodeError("Unsupported data locator")
    mime_type = header[len("data:"):-len(";base64")] or DEFAULT_IMAGE_MIME
    return decode_base64(payload), mime_type


def fetch_locator(locator: str) -> tuple[bytes, str | None]:
    """Resolve a displayable locator to its bytes and (when known) MIME type.

    Supported forms:
        - `data:<mime>;base64,<payload>`
        - `file://<path>` and plain local paths
        - `http://` / `https://` URLs
    """
    if locator.startswith("data:"):
        return parse_data_url(locator)

    parsed = urlparse(locator)
    if parsed.scheme in ("http", "https"):
        response = requests.get(locator, timeout=FETCH_TIMEOUT)
        response.raise_for_status()
        content_type = response.headers.get("Content-Type")
        mime_type = content_type.split(";")[0].strip() if content_type else None
        return response.content, mime_type

    path = unquote(parsed.path) if parsed.scheme == "file" else locator
    with open(os.path.expanduser(path), "rb") as f:
        return f.read(), None


def reingest_image(locator: str, mime_type: str = DEFAULT_IMAGE_MIME) -> InputAsset:
    """Turn a displayed image back into an input asset for the next mode.

    Generated artifacts are re-ingested as `image/png` regardless of the
    MIME type embedded in the locator.
    """
    data, _ = fetch_locator(locator)
    if not data:
        raise DecodeError("Image locator resolved to no data")
    return InputAsset(data=data, mime_type=mime_type, display_ref=CHAINED_IMAGE_NAME)


def wrap_video(data: bytes, mime_type: str = "video/mp4") -> VideoArtifact:
    """Convert a downloaded video blob into a playable artifact."""
    if not data:
        raise DecodeError("Video download was empty")
    return VideoArtifact(locator=to_data_url(data, mime_type), mime_type=mime_type)
