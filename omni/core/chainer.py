"""Derive seed inputs for a new mode from a completed result.

Rules:
    - Image result: re-ingest the image as the new `primary` asset, clear the
      `reference` slot and the directive text.
    - Text result: copy the text verbatim into the directive; assets untouched.
    - Video result: not chainable.

The chainer only computes a `ChainSeed`; `ModeController.apply_seed` performs
the actual switch, so a failure here leaves the session exactly as it was.
"""

import logging
from typing import Callable

import requests

from omni.core.errors import ChainError, OmniError
from omni.core.mode_controller import ChainSeed
from omni.core.types import (
    ImageArtifact,
    InputAsset,
    Mode,
    ResultArtifact,
    TextArtifact,
    VideoArtifact,
)
from omni.media import codec


logger = logging.getLogger(__name__)


class ResultChainer:
    def __init__(self, reingest: Callable[[str], InputAsset] = codec.reingest_image):
        self._reingest = reingest

    def chain(self, artifact: ResultArtifact | None, target_mode: Mode) -> ChainSeed:
        """Compute the seed for `target_mode` from `artifact`.

        Raises:
            ChainError: nothing to chain, a video source, or the image could
                not be re-ingested.
        """
        target_mode = Mode(target_mode)

        if artifact is None:
            raise ChainError("No result to chain")

        if isinstance(artifact, TextArtifact):
            return ChainSeed(target_mode=target_mode, directive=artifact.text)

        if isinstance(artifact, ImageArtifact):
            try:
                asset = self._reingest(artifact.locator)
            except (OmniError, OSError, requests.exceptions.RequestException) as err:
                logger.warning("Failed to re-ingest image result: %s", err)
                raise ChainError(f"Could not reuse generated image: {err}") from err
            return ChainSeed(
                target_mode=target_mode,
                directive="",
                replace_assets=True,
                primary=asset,
            )

        if isinstance(artifact, VideoArtifact):
            raise ChainError("Video results cannot be chained")

        raise ChainError(f"Unsupported result type: {type(artifact).__name__}")
