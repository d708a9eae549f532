"""Default session wiring shared by the HTTP and CLI adapters.

Builds one `Orchestrator` with the configured adapters, a file-backed prompt
history and a WAV-file narration sink. Callers must check the credential gate
(`provider_config.has_credentials`) before dispatching work.
"""

import logging
import os

from omni.core.job_poller import JobPoller
from omni.core.mode_controller import ModeController
from omni.core.orchestrator import Orchestrator
from omni.history.prompt_history import PromptHistory
from omni.media.playback import SpeechPlayer, WaveFileSink
from omni.providers.adapters import SpeechAdapter, build_adapters
from omni.providers.provider_config import (
    ANIMATE_POLL_INTERVAL,
    ANIMATE_POLL_TIMEOUT,
    HISTORY_PATH,
    OUTPUT_DIR,
)


def configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_orchestrator(
    history_path: str | None = HISTORY_PATH,
    output_dir: str = OUTPUT_DIR,
) -> Orchestrator:
    poller = JobPoller(interval=ANIMATE_POLL_INTERVAL, timeout=ANIMATE_POLL_TIMEOUT)
    return Orchestrator(
        controller=ModeController(),
        adapters=build_adapters(poller),
        history=PromptHistory(history_path),
        speech=SpeechAdapter(),
        player=SpeechPlayer(WaveFileSink(os.path.join(output_dir, "speech"))),
    )
