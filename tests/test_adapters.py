"""
Tests for per-mode request shaping and response interpretation.
The transport is patched; nothing here touches the network.
"""
import base64
from unittest.mock import patch

import pytest

from omni.core.errors import ProviderError
from omni.core.job_poller import JobPoller
from omni.core.types import (
    ImageArtifact,
    Mode,
    RequestDescriptor,
    TextArtifact,
    VideoArtifact,
)
from omni.media import codec
from omni.providers import adapters


def _image_response(data=b"generated", mime_type="image/png"):
    return {
        "candidates": [
            {
                "content": {
                    "parts": [
                        {"text": "here you go"},
                        {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode()}},
                    ]
                }
            }
        ]
    }


def _text_response(text, grounding=None):
    candidate = {"content": {"parts": [{"text": text}]}}
    if grounding is not None:
        candidate["groundingMetadata"] = {"groundingChunks": grounding}
    return {"candidates": [candidate]}


async def _no_sleep(interval):
    return None


class TestCompositeAdapter:
    def test_request_uses_fixed_ratio_and_tier(self, scene_asset, subject_asset):
        descriptor = RequestDescriptor(
            mode=Mode.COMPOSITE,
            directive="at the picnic",
            primary=scene_asset,
            reference=subject_asset,
            aspect_ratio="9:16",
            resolution="4K",
            ownership_verified=True,
        )

        request = adapters.CompositeAdapter().build_request(descriptor)

        assert request["generation_config"]["imageConfig"] == {"aspectRatio": "1:1", "imageSize": "2K"}
        text, scene, subject = request["parts"]
        assert text["text"].endswith("Context: at the picnic")
        assert "structural inpainting" in text["text"]
        assert scene["inlineData"]["data"] == scene_asset.to_base64()
        assert subject["inlineData"]["mimeType"] == "image/jpeg"

    def test_invoke_returns_image_locator(self, scene_asset, subject_asset):
        descriptor = RequestDescriptor(
            mode=Mode.COMPOSITE, primary=scene_asset, reference=subject_asset
        )
        with patch("omni.providers.client.generate_content", return_value=_image_response()) as call:
            artifact = adapters.CompositeAdapter().call(descriptor)

        assert call.call_args.args[0] == "gemini-3-pro-image-preview"
        assert isinstance(artifact, ImageArtifact)
        assert codec.parse_data_url(artifact.locator) == (b"generated", "image/png")


class TestGenerateAndEdit:
    def test_generate_honors_session_settings(self):
        descriptor = RequestDescriptor(
            mode=Mode.GENERATE, directive="a fox", aspect_ratio="21:9", resolution="4K"
        )

        request = adapters.GenerateAdapter().build_request(descriptor)

        assert request["parts"] == [{"text": "a fox"}]
        assert request["generation_config"]["imageConfig"] == {"aspectRatio": "21:9", "imageSize": "4K"}

    def test_edit_has_no_image_config(self, scene_asset):
        descriptor = RequestDescriptor(
            mode=Mode.EDIT, directive="add snow", primary=scene_asset, aspect_ratio="16:9"
        )

        request = adapters.EditAdapter().build_request(descriptor)

        assert "generation_config" not in request
        assert request["parts"][0] == {"text": "add snow"}

    def test_missing_media_part_raises(self, scene_asset):
        descriptor = RequestDescriptor(mode=Mode.EDIT, directive="x", primary=scene_asset)
        with patch("omni.providers.client.generate_content", return_value=_text_response("sorry")):
            with pytest.raises(ProviderError, match="No image generated"):
                adapters.EditAdapter().call(descriptor)

    def test_missing_source_asset_raises(self):
        with pytest.raises(ProviderError):
            adapters.EditAdapter().build_request(RequestDescriptor(mode=Mode.EDIT, directive="x"))


class TestTextAdapters:
    def test_analyze_substitutes_default_prompt(self, scene_asset):
        descriptor = RequestDescriptor(mode=Mode.ANALYZE, primary=scene_asset)

        request = adapters.AnalyzeAdapter().build_request(descriptor)

        assert request["parts"][0]["text"] == adapters.ANALYZE_DEFAULT_PROMPT
        assert request["generation_config"]["thinkingConfig"]["thinkingBudget"] == 32768

    def test_culinary_appends_user_note(self, scene_asset):
        adapter = adapters.CulinaryAdapter()

        plain = adapter.build_request(RequestDescriptor(mode=Mode.CULINARY, primary=scene_asset))
        noted = adapter.build_request(
            RequestDescriptor(mode=Mode.CULINARY, directive="vegan please", primary=scene_asset)
        )

        assert plain["parts"][0]["text"] == adapters.CULINARY_BASE_PROMPT
        assert noted["parts"][0]["text"] == f"{adapters.CULINARY_BASE_PROMPT} User note: vegan please"

    def test_empty_text_raises_instead_of_placeholder(self, scene_asset):
        descriptor = RequestDescriptor(mode=Mode.ANALYZE, primary=scene_asset)
        with patch("omni.providers.client.generate_content", return_value=_text_response("  ")):
            with pytest.raises(ProviderError):
                adapters.AnalyzeAdapter().call(descriptor)

    def test_reason_appends_sources_trailer(self):
        grounding = [
            {"web": {"uri": "https://example.org/tides", "title": "Tides"}},
            {"retrievedContext": {"uri": "ignored"}},
        ]
        descriptor = RequestDescriptor(mode=Mode.REASON, directive="why tides?")
        with patch(
            "omni.providers.client.generate_content",
            return_value=_text_response("The moon.", grounding),
        ) as call:
            artifact = adapters.ReasonAdapter().call(descriptor)

        assert call.call_args.kwargs["tools"] == [{"googleSearch": {}}]
        assert artifact == TextArtifact(
            text="The moon.\n\n### Sources\n- [Tides](https://example.org/tides)\n"
        )

    def test_reason_without_sources_has_no_trailer(self):
        descriptor = RequestDescriptor(mode=Mode.REASON, directive="q")
        with patch("omni.providers.client.generate_content", return_value=_text_response("answer")):
            assert adapters.ReasonAdapter().call(descriptor).text == "answer"


class TestAnimateAdapter:
    @pytest.mark.parametrize(
        "requested, dispatched",
        [("3:4", "16:9"), ("9:16", "9:16"), ("1:1", "16:9"), ("16:9", "16:9"), ("21:9", "16:9")],
    )
    def test_aspect_ratio_mapping(self, scene_asset, requested, dispatched):
        descriptor = RequestDescriptor(mode=Mode.ANIMATE, primary=scene_asset, aspect_ratio=requested)

        request = adapters.AnimateAdapter().build_request(descriptor)

        assert request["parameters"]["aspectRatio"] == dispatched

    def test_default_prompt_when_directive_empty(self, scene_asset):
        request = adapters.AnimateAdapter().build_request(
            RequestDescriptor(mode=Mode.ANIMATE, primary=scene_asset)
        )

        assert request["instance"]["prompt"] == "Animate this image cinematically"
        assert request["parameters"]["resolution"] == "720p"
        assert request["parameters"]["sampleCount"] == 1

    @pytest.mark.asyncio
    async def test_polls_until_done_and_downloads_video(self, scene_asset):
        operations = [
            {"name": "models/veo/operations/1", "done": False},
            {
                "name": "models/veo/operations/1",
                "done": True,
                "response": {
                    "generateVideoResponse": {
                        "generatedSamples": [{"video": {"uri": "https://files/video?alt=media"}}]
                    }
                },
            },
        ]
        adapter = adapters.AnimateAdapter(JobPoller(interval=5.0, sleep=_no_sleep))
        descriptor = RequestDescriptor(mode=Mode.ANIMATE, primary=scene_asset)

        with patch("omni.providers.client.start_video_job", return_value={"name": "models/veo/operations/1"}), \
                patch("omni.providers.client.get_operation", side_effect=operations) as probe, \
                patch("omni.providers.client.download", return_value=b"mp4") as download:
            artifact = await adapter.invoke(descriptor)

        assert probe.call_count == 2
        download.assert_called_once_with("https://files/video?alt=media")
        assert isinstance(artifact, VideoArtifact)
        assert codec.parse_data_url(artifact.locator) == (b"mp4", "video/mp4")

    @pytest.mark.asyncio
    async def test_done_without_uri_raises(self, scene_asset):
        adapter = adapters.AnimateAdapter(JobPoller(interval=5.0, sleep=_no_sleep))
        descriptor = RequestDescriptor(mode=Mode.ANIMATE, primary=scene_asset)

        with patch("omni.providers.client.start_video_job", return_value={"name": "op", "done": True}):
            with pytest.raises(ProviderError, match="no artifact produced"):
                await adapter.invoke(descriptor)

    @pytest.mark.asyncio
    async def test_job_error_is_surfaced(self, scene_asset):
        adapter = adapters.AnimateAdapter(JobPoller(interval=5.0, sleep=_no_sleep))
        descriptor = RequestDescriptor(mode=Mode.ANIMATE, primary=scene_asset)
        failed = {"name": "op", "done": True, "error": {"message": "safety filter"}}

        with patch("omni.providers.client.start_video_job", return_value=failed):
            with pytest.raises(ProviderError, match="safety filter"):
                await adapter.invoke(descriptor)


class TestSpeechAdapter:
    def test_text_is_cleaned_and_truncated(self):
        request = adapters.SpeechAdapter().build_request("# Title\n**bold** [link](x)" + "a" * 2000)

        text = request["parts"][0]["text"]
        assert len(text) == 1000
        assert not set("*#[]()") & set(text)
        assert request["generation_config"]["responseModalities"] == ["AUDIO"]
        voice = request["generation_config"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]
        assert voice == {"voiceName": "Kore"}

    def test_returns_raw_pcm(self):
        response = _image_response(data=b"\x00\x80", mime_type="audio/L16;rate=24000")
        with patch("omni.providers.client.generate_content", return_value=response):
            assert adapters.SpeechAdapter().call("hello") == b"\x00\x80"

    def test_no_audio_raises(self):
        with patch("omni.providers.client.generate_content", return_value=_text_response("nope")):
            with pytest.raises(ProviderError, match="No audio generated"):
                adapters.SpeechAdapter().call("hello")


def test_build_adapters_covers_every_mode():
    registry = adapters.build_adapters()

    assert set(registry) == set(Mode)
    assert all(registry[mode].mode == mode for mode in Mode)


def test_only_animate_observes_cancellation():
    registry = adapters.build_adapters()

    assert [mode for mode, adapter in registry.items() if adapter.cancellable] == [Mode.ANIMATE]
    assert not hasattr(registry[Mode.ANIMATE], "call")
    assert hasattr(registry[Mode.GENERATE], "call")
