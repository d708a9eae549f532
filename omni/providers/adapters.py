"""Per-capability provider adapters.

Architectural role:
    Each adapter wraps exactly one external call contract: it shapes a
    `RequestDescriptor` into a provider request, performs the call through
    `omni.providers.client`, and interprets the response as a
    `ResultArtifact`. The orchestrator only ever sees `await adapter.invoke()`.

Request shaping per mode:
    - Composite: fixed inpainting instruction + scene + subject images, always
      `1:1` / `2K` regardless of session settings.
    - Generate: directive only, honoring aspect ratio and resolution tier.
    - Edit: primary image + directive, no image config.
    - Animate: primary image + directive (default substituted when empty),
      aspect ratio collapsed to `9:16` or `16:9`; polled via `JobPoller`.
    - Analyze: primary image + directive (default substituted when empty),
      extended thinking budget.
    - Culinary: fixed base instruction with the directive appended as a note.
    - Reason: directive with search grounding; sources appended as a trailer.
    - Speech: markdown-stripped, truncated text to raw PCM bytes.

Blocking calls:
    HTTP work is synchronous (`requests`) and is moved off the event loop with
    `asyncio.to_thread`.

Failure handling:
    Responses without a usable payload raise `ProviderError`. The only
    placeholder content ever substituted is the two documented default
    prompts (Animate, Analyze).
"""

import asyncio
import logging
import re

from omni.core.errors import ProviderError
from omni.core.job_poller import CancellationToken, JobPoller
from omni.core.types import (
    ImageArtifact,
    JobHandle,
    Mode,
    RequestDescriptor,
    ResultArtifact,
    TextArtifact,
)
from omni.media import codec
from omni.providers import client
from omni.providers.provider_config import (
    ANALYZE_THINKING_BUDGET,
    ANIMATE_POLL_INTERVAL,
    ANIMATE_POLL_TIMEOUT,
    ANIMATE_RESOLUTION,
    ANIMATE_SAMPLE_COUNT,
    COMPOSITE_ASPECT_RATIO,
    COMPOSITE_RESOLUTION,
    MODELS,
    REASON_THINKING_BUDGET,
    SPEECH_MAX_CHARS,
    SPEECH_VOICE,
)


logger = logging.getLogger(__name__)

COMPOSITE_INSTRUCTION = (
    "Edit the Background Scene by inserting the subject from Person Reference. \n"
    "Use the reference strictly for structural inpainting. \n"
    "Harmonize lighting, grain, and color temperature to match the background. \n"
    "Output a single photorealistic image. \n"
    "Context: {directive}"
)
ANIMATE_DEFAULT_PROMPT = "Animate this image cinematically"
ANALYZE_DEFAULT_PROMPT = (
    "Analyze this image in extreme detail. Structure your response with headers."
)
CULINARY_BASE_PROMPT = (
    "Analyze this food image. Identify the dish, estimate the ingredients, and "
    "provide a step-by-step recipe. Also suggest a wine pairing. Use Markdown "
    "headers (#) for sections."
)

# Video generation only supports these two framings.
VIDEO_PORTRAIT = "9:16"
VIDEO_LANDSCAPE = "16:9"

_SPEECH_STRIP = re.compile(r"[*#\[\]()]")


def map_video_aspect_ratio(ratio: str) -> str:
    """Keep `9:16`; collapse every other ratio to `16:9`."""
    return VIDEO_PORTRAIT if ratio == VIDEO_PORTRAIT else VIDEO_LANDSCAPE


def clean_speech_text(text: str, limit: int = SPEECH_MAX_CHARS) -> str:
    """Strip markdown punctuation and truncate text before synthesis."""
    return _SPEECH_STRIP.sub("", text)[:limit]


def format_sources(sources: list[tuple[str, str]]) -> str:
    if not sources:
        return ""
    lines = "".join(f"- [{title}]({uri})\n" for title, uri in sources)
    return "\n\n### Sources\n" + lines


def _image_part(asset) -> dict:
    return {"inlineData": {"mimeType": asset.mime_type, "data": asset.to_base64()}}


def _require_asset(asset, label: str):
    if asset is None:
        raise ProviderError(f"Missing {label} image")
    return asset


class ProviderAdapter:
    """Base adapter for one generation capability.

    `cancellable` is set by adapters whose `invoke` observes the
    cancellation token.
    """

    mode: Mode
    cancellable = False

    @property
    def model(self) -> str:
        return MODELS[self.mode.value]

    def build_request(self, descriptor: RequestDescriptor) -> dict:
        raise NotImplementedError

    async def invoke(
        self,
        descriptor: RequestDescriptor,
        cancel_token: CancellationToken | None = None,
    ) -> ResultArtifact:
        raise NotImplementedError


class OneShotAdapter(ProviderAdapter):
    """Adapter for a single blocking `generateContent` round trip.

    Subclasses implement `build_request` (pure request shaping) and
    `parse_response` (payload interpretation).
    """

    def parse_response(self, response: dict) -> ResultArtifact:
        raise NotImplementedError

    def call(self, descriptor: RequestDescriptor) -> ResultArtifact:
        """Blocking request/response round trip."""
        request = self.build_request(descriptor)
        response = client.generate_content(self.model, **request)
        return self.parse_response(response)

    async def invoke(
        self,
        descriptor: RequestDescriptor,
        cancel_token: CancellationToken | None = None,
    ) -> ResultArtifact:
        logger.info("Dispatching %s request to %s", self.mode.value, self.model)
        return await asyncio.to_thread(self.call, descriptor)


class ImageResultMixin:
    def parse_response(self, response: dict) -> ResultArtifact:
        for inline in client.inline_parts(response):
            if inline.get("data"):
                mime_type = inline.get("mimeType") or codec.DEFAULT_IMAGE_MIME
                return ImageArtifact(
                    locator=codec.to_data_url(codec.decode_base64(inline["data"]), mime_type),
                    mime_type=mime_type,
                )
        raise ProviderError("No image generated")


class TextResultMixin:
    def parse_response(self, response: dict) -> ResultArtifact:
        text = client.response_text(response).strip()
        if not text:
            raise ProviderError(f"No {self.mode.value} text generated")
        return TextArtifact(text=text)


class CompositeAdapter(ImageResultMixin, OneShotAdapter):
    mode = Mode.COMPOSITE

    def build_request(self, descriptor: RequestDescriptor) -> dict:
        scene = _require_asset(descriptor.primary, "scene")
        subject = _require_asset(descriptor.reference, "subject")
        return {
            "parts": [
                {"text": COMPOSITE_INSTRUCTION.format(directive=descriptor.directive)},
                _image_part(scene),
                _image_part(subject),
            ],
            "generation_config": {
                "imageConfig": {
                    "aspectRatio": COMPOSITE_ASPECT_RATIO,
                    "imageSize": COMPOSITE_RESOLUTION,
                }
            },
        }


class GenerateAdapter(ImageResultMixin, OneShotAdapter):
    mode = Mode.GENERATE

    def build_request(self, descriptor: RequestDescriptor) -> dict:
        return {
            "parts": [{"text": descriptor.directive}],
            "generation_config": {
                "imageConfig": {
                    "aspectRatio": descriptor.aspect_ratio,
                    "imageSize": descriptor.resolution,
                }
            },
        }


class EditAdapter(ImageResultMixin, OneShotAdapter):
    mode = Mode.EDIT

    def build_request(self, descriptor: RequestDescriptor) -> dict:
        source = _require_asset(descriptor.primary, "source")
        return {"parts": [{"text": descriptor.directive}, _image_part(source)]}


class AnalyzeAdapter(TextResultMixin, OneShotAdapter):
    mode = Mode.ANALYZE

    def build_request(self, descriptor: RequestDescriptor) -> dict:
        source = _require_asset(descriptor.primary, "source")
        return {
            "parts": [
                {"text": descriptor.directive or ANALYZE_DEFAULT_PROMPT},
                _image_part(source),
            ],
            "generation_config": {
                "thinkingConfig": {"thinkingBudget": ANALYZE_THINKING_BUDGET}
            },
        }


class CulinaryAdapter(TextResultMixin, OneShotAdapter):
    mode = Mode.CULINARY

    def build_request(self, descriptor: RequestDescriptor) -> dict:
        dish = _require_asset(descriptor.primary, "food")
        prompt = CULINARY_BASE_PROMPT
        if descriptor.directive:
            prompt = f"{CULINARY_BASE_PROMPT} User note: {descriptor.directive}"
        return {"parts": [{"text": prompt}, _image_part(dish)]}


class ReasonAdapter(OneShotAdapter):
    mode = Mode.REASON

    def build_request(self, descriptor: RequestDescriptor) -> dict:
        return {
            "parts": [{"text": descriptor.directive}],
            "generation_config": {
                "thinkingConfig": {"thinkingBudget": REASON_THINKING_BUDGET}
            },
            "tools": [{"googleSearch": {}}],
        }

    def parse_response(self, response: dict) -> ResultArtifact:
        text = client.response_text(response).strip()
        if not text:
            raise ProviderError("No reasoning generated")
        return TextArtifact(text=text + format_sources(client.grounding_sources(response)))


class AnimateAdapter(ProviderAdapter):
    """Image-to-video adapter backed by a long-running operation.

    The submit call returns an operation name; `probe` refreshes it until the
    provider reports `done`. The finished video is downloaded and wrapped as a
    playable data locator.
    """

    mode = Mode.ANIMATE
    cancellable = True

    def __init__(self, poller: JobPoller | None = None):
        self.poller = poller or JobPoller(
            interval=ANIMATE_POLL_INTERVAL, timeout=ANIMATE_POLL_TIMEOUT
        )

    def build_request(self, descriptor: RequestDescriptor) -> dict:
        source = _require_asset(descriptor.primary, "source")
        return {
            "instance": {
                "prompt": descriptor.directive or ANIMATE_DEFAULT_PROMPT,
                "image": {
                    "bytesBase64Encoded": source.to_base64(),
                    "mimeType": source.mime_type,
                },
            },
            "parameters": {
                "aspectRatio": map_video_aspect_ratio(descriptor.aspect_ratio),
                "resolution": ANIMATE_RESOLUTION,
                "sampleCount": ANIMATE_SAMPLE_COUNT,
            },
        }

    def submit(self, descriptor: RequestDescriptor) -> JobHandle:
        request = self.build_request(descriptor)
        operation = client.start_video_job(self.model, **request)
        if not operation.get("name"):
            raise ProviderError("Video job was not accepted")
        return self._to_handle(operation)

    def probe(self, handle: JobHandle) -> JobHandle:
        return self._to_handle(client.get_operation(handle.name))

    @staticmethod
    def _to_handle(operation: dict) -> JobHandle:
        handle = JobHandle(name=operation.get("name", ""), done=bool(operation.get("done")))
        if not handle.done:
            return handle
        if operation.get("error"):
            handle.error = operation["error"].get("message") or "Video job failed"
            return handle
        samples = (
            ((operation.get("response") or {}).get("generateVideoResponse") or {})
            .get("generatedSamples") or []
        )
        if samples:
            handle.artifact_uri = (samples[0].get("video") or {}).get("uri")
        return handle

    async def invoke(
        self,
        descriptor: RequestDescriptor,
        cancel_token: CancellationToken | None = None,
    ) -> ResultArtifact:
        logger.info("Dispatching animate job to %s", self.model)
        handle = await self.poller.run(
            lambda: self.submit(descriptor),
            self.probe,
            cancel_token=cancel_token,
        )
        data = await asyncio.to_thread(client.download, handle.artifact_uri)
        return codec.wrap_video(data)


class SpeechAdapter:
    """Text-to-speech capability returning raw 24 kHz PCM bytes."""

    def __init__(self, voice: str = SPEECH_VOICE):
        self.voice = voice

    @property
    def model(self) -> str:
        return MODELS["speech"]

    def build_request(self, text: str) -> dict:
        return {
            "parts": [{"text": clean_speech_text(text)}],
            "generation_config": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.voice}}
                },
            },
        }

    def call(self, text: str) -> bytes:
        response = client.generate_content(self.model, **self.build_request(text))
        for inline in client.inline_parts(response):
            if inline.get("data"):
                return codec.decode_base64(inline["data"])
        raise ProviderError("No audio generated")

    async def synthesize(self, text: str) -> bytes:
        return await asyncio.to_thread(self.call, text)


def build_adapters(poller: JobPoller | None = None) -> dict:
    """Return the default mode -> adapter map."""
    adapters = [
        CompositeAdapter(),
        GenerateAdapter(),
        EditAdapter(),
        AnimateAdapter(poller),
        AnalyzeAdapter(),
        CulinaryAdapter(),
        ReasonAdapter(),
    ]
    return {adapter.mode: adapter for adapter in adapters}
