"""Session orchestration for submit, chain and speak intents.

Architectural role:
    Composes the mode controller, provider adapters, job poller (through the
    animate adapter), chainer, speech player and prompt history into the
    three user intents the API/CLI layers expose.

Control-flow model (submit):
    1. `ModeController.begin_submit` validates and snapshots the inputs into a
       `RequestDescriptor` (raises `InvalidStateError` when not allowed).
    2. The adapter registered for the descriptor's mode is awaited.
    3. Success -> `complete_success` and a prompt-history entry.
       Failure -> `complete_failure` with the error text.

Error handling strategy:
    - Every `OmniError` raised below this layer is converted into
      `complete_failure`; nothing is retried.
    - Task cancellation and unexpected exceptions still move the session out
      of Generating before they propagate.
    - `InvalidStateError` from the controller and `ChainError` from the
      chainer propagate to the caller.

Concurrency:
    One submit at a time is enforced by the controller. Narration runs behind
    its own single-flight guard and never touches generation state.
"""

import asyncio
import logging

from omni.core.chainer import ResultChainer
from omni.core.errors import OmniError
from omni.core.job_poller import CancellationToken
from omni.core.mode_controller import ModeController, SessionSnapshot
from omni.core.types import Mode, TextArtifact
from omni.history.prompt_history import PromptHistory
from omni.media.codec import AudioBuffer
from omni.media.playback import SpeechPlayer


logger = logging.getLogger(__name__)

SPEECH_FAILURE_NOTICE = "Audio generation failed"


class Orchestrator:
    """Entry point for every session intent.

    Args:
        controller: Session state machine.
        adapters: Mode -> adapter map (see `omni.providers.adapters.build_adapters`).
        chainer: Result chainer; a default one is created when omitted.
        history: Optional prompt-history collaborator.
        speech: Optional speech adapter exposing `async synthesize(text)`.
        player: Optional single-flight speech player.
    """

    def __init__(
        self,
        controller: ModeController,
        adapters: dict,
        chainer: ResultChainer | None = None,
        history: PromptHistory | None = None,
        speech=None,
        player: SpeechPlayer | None = None,
    ):
        self.controller = controller
        self.adapters = adapters
        self.chainer = chainer or ResultChainer()
        self.history = history
        self.speech = speech
        self.player = player
        self._cancel_token: CancellationToken | None = None

    async def submit(self) -> SessionSnapshot:
        """Run the current mode's generation to completion.

        Raises:
            InvalidStateError: submit is not currently allowed.
        """
        descriptor = self.controller.begin_submit()
        adapter = self.adapters.get(descriptor.mode)
        token = None
        if getattr(adapter, "cancellable", False):
            token = CancellationToken()
            self._cancel_token = token

        try:
            if adapter is None:
                raise OmniError(f"No adapter registered for mode {descriptor.mode.value}")
            artifact = await adapter.invoke(descriptor, cancel_token=token)
        except OmniError as err:
            logger.warning("Generation failed for mode %s: %s", descriptor.mode.value, err)
            self.controller.complete_failure(str(err))
            return self.controller.snapshot()
        except asyncio.CancelledError:
            self.controller.complete_failure("Generation cancelled")
            raise
        except Exception as err:
            logger.exception("Unexpected failure in %s adapter", descriptor.mode.value)
            self.controller.complete_failure(f"Unexpected error: {err}")
            raise
        finally:
            self._cancel_token = None

        self.controller.complete_success(artifact)
        if self.history is not None:
            try:
                self.history.record(descriptor.directive)
            except OSError:
                logger.exception("Failed to persist prompt history")
        return self.controller.snapshot()

    def cancel(self) -> bool:
        """Abandon the in-flight long-running job, if any.

        Returns:
            `True` when the in-flight job observes cancellation. One-shot
            requests cannot be abandoned and report `False`.
        """
        token = self._cancel_token
        if token is None:
            return False
        token.cancel()
        return True

    async def chain(self, target_mode: Mode) -> SessionSnapshot:
        """Feed the current result into `target_mode` as its seed inputs.

        Raises:
            ChainError: the result cannot be chained; the session is unchanged.
        """
        seed = await asyncio.to_thread(
            self.chainer.chain, self.controller.artifact, Mode(target_mode)
        )
        self.controller.apply_seed(seed)
        return self.controller.snapshot()

    async def speak(self) -> AudioBuffer | None:
        """Narrate the current text result.

        Returns:
            The played buffer, or `None` when there is no text result, speech
            is not configured, or a narration is already running.
        """
        artifact = self.controller.artifact
        if not isinstance(artifact, TextArtifact):
            return None
        if self.speech is None or self.player is None or self.player.active:
            return None

        self.controller.set_speaking(True)
        try:
            return await self.player.speak(lambda: self.speech.synthesize(artifact.text))
        except OmniError:
            logger.exception("Audio playback failed")
            self.controller.report_notice(SPEECH_FAILURE_NOTICE)
            return None
        finally:
            self.controller.set_speaking(False)
