"""Session data contracts for the orchestration engine.

Architectural role:
    Defines the structural types exchanged between the mode controller, the
    provider adapters, the job poller and the chainer. Everything here is
    state-free; ownership of live values belongs to `ModeController`.

Result representation:
    Results are an explicit sum type (`ImageArtifact | VideoArtifact |
    TextArtifact`). Image and video variants carry a displayable locator,
    the text variant carries literal content, so a URL can never be read as
    text or the other way round.

Determinism:
    Pure data plus the pure lookup `required_slots`.
"""

import base64
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union


class Mode(str, Enum):
    """Generation workflow selected by the user."""

    COMPOSITE = "composite"
    GENERATE = "generate"
    EDIT = "edit"
    ANIMATE = "animate"
    ANALYZE = "analyze"
    CULINARY = "culinary"
    REASON = "reason"


class SessionState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    SUCCESS = "success"
    ERROR = "error"


class AssetSlot(str, Enum):
    """Named input slots. `primary` is the scene/source, `reference` the subject."""

    PRIMARY = "primary"
    REFERENCE = "reference"


class ResultKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    TEXT = "text"


ASPECT_RATIOS = ("1:1", "2:3", "3:2", "3:4", "4:3", "9:16", "16:9", "21:9")
RESOLUTION_TIERS = ("1K", "2K", "4K")

DEFAULT_ASPECT_RATIO = "1:1"
DEFAULT_RESOLUTION = "1K"

# Modes that cannot run without directive text.
DIRECTIVE_REQUIRED_MODES = frozenset({Mode.GENERATE, Mode.REASON})

_REQUIRED_SLOTS = {
    Mode.COMPOSITE: (AssetSlot.PRIMARY, AssetSlot.REFERENCE),
    Mode.GENERATE: (),
    Mode.EDIT: (AssetSlot.PRIMARY,),
    Mode.ANIMATE: (AssetSlot.PRIMARY,),
    Mode.ANALYZE: (AssetSlot.PRIMARY,),
    Mode.CULINARY: (AssetSlot.PRIMARY,),
    Mode.REASON: (),
}

_STATUS_PHRASES = {
    Mode.ANIMATE: "Rendering frames (this may take a moment)...",
    Mode.REASON: "Accessing knowledge base & thinking...",
    Mode.ANALYZE: "Inspecting pixels...",
    Mode.CULINARY: "Identifying ingredients...",
    Mode.COMPOSITE: "Blending realities...",
}

IDLE_STATUS = "Ready"
SPEECH_STATUS = "Synthesizing Audio..."


def required_slots(mode: Mode) -> tuple[AssetSlot, ...]:
    """Return the asset slots that must be filled before `mode` can submit."""
    return _REQUIRED_SLOTS[mode]


def status_phrase(mode: Mode) -> str:
    """Return the human-readable progress phrase shown while `mode` generates."""
    return _STATUS_PHRASES.get(mode, "Generating...")


@dataclass(frozen=True)
class InputAsset:
    """One user-supplied image.

    Attributes:
        data: Raw image bytes.
        mime_type: MIME type reported by the upload collaborator.
        display_ref: Preview locator or file name used only for display.
    """

    data: bytes
    mime_type: str
    display_ref: str = ""

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def describe(self) -> dict:
        return {
            "mime_type": self.mime_type,
            "display_ref": self.display_ref,
            "size": len(self.data),
        }


@dataclass(frozen=True)
class RequestDescriptor:
    """Validated, mode-specific bundle built immediately before dispatch.

    Constructed fresh for every submit attempt and never mutated afterwards.
    """

    mode: Mode
    directive: str = ""
    primary: InputAsset | None = None
    reference: InputAsset | None = None
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    resolution: str = DEFAULT_RESOLUTION
    ownership_verified: bool = False


@dataclass(frozen=True)
class ImageArtifact:
    locator: str
    mime_type: str = "image/png"

    kind: ClassVar[ResultKind] = ResultKind.IMAGE


@dataclass(frozen=True)
class VideoArtifact:
    locator: str
    mime_type: str = "video/mp4"

    kind: ClassVar[ResultKind] = ResultKind.VIDEO


@dataclass(frozen=True)
class TextArtifact:
    text: str

    kind: ClassVar[ResultKind] = ResultKind.TEXT


ResultArtifact = Union[ImageArtifact, VideoArtifact, TextArtifact]


def describe_artifact(artifact: ResultArtifact | None) -> dict | None:
    """Render an artifact as a tagged plain dictionary for consumers."""
    if artifact is None:
        return None
    if isinstance(artifact, TextArtifact):
        return {"kind": artifact.kind.value, "text": artifact.text}
    return {
        "kind": artifact.kind.value,
        "locator": artifact.locator,
        "mime_type": artifact.mime_type,
    }


@dataclass
class JobHandle:
    """Opaque reference to an in-flight long-running generation.

    Attributes:
        name: Provider operation identifier used by the status probe.
        done: Completion flag reported by the provider.
        artifact_uri: Artifact locator once the job resolved successfully.
        error: Provider failure text when the job completed with an error.
    """

    name: str
    done: bool = False
    artifact_uri: str | None = None
    error: str | None = None
