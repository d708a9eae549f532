"""Shared pytest fixtures for the OMNI session engine tests."""

import pytest

from omni.core.mode_controller import ModeController
from omni.core.types import InputAsset


PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class FakeAdapter:
    """Adapter double that records requests and returns a canned outcome."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def invoke(self, descriptor, cancel_token=None):
        self.calls.append(descriptor)
        if self.error is not None:
            raise self.error
        return self.result


class FakeSpeech:
    def __init__(self, pcm=b"\x00\x80\x00\x00", error=None):
        self.pcm = pcm
        self.error = error
        self.texts = []

    async def synthesize(self, text):
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return self.pcm


class RecordingSink:
    def __init__(self):
        self.buffers = []

    async def play(self, buffer):
        self.buffers.append(buffer)


@pytest.fixture
def controller():
    return ModeController()


@pytest.fixture
def scene_asset():
    return InputAsset(data=PNG_BYTES, mime_type="image/png", display_ref="scene.png")


@pytest.fixture
def subject_asset():
    return InputAsset(data=b"subject-bytes", mime_type="image/jpeg", display_ref="subject.jpg")
