"""Session state machine for the generation workflows.

Architectural role:
    Owns the single mutable session record: current mode, input assets,
    directive text, generation settings, session state, status phrase and the
    active result or error. Every other component receives copies (a
    `RequestDescriptor` or a `SessionSnapshot`), never write access.

State transitions:
    Idle/Success/Error --begin_submit--> Generating
    Generating --complete_success--> Success
    Generating --complete_failure--> Error
    any state except Generating --set_mode / apply_seed--> Idle

Invariants:
    - While Generating no artifact is held and no new submit is accepted.
    - Exactly one of artifact/error is active outside Generating/Idle.
    - Input assets survive mode switches; only chaining reseeds them.

Observation:
    `snapshot()` returns an immutable view. `subscribe()` registers a listener
    that receives a fresh snapshot after every mutation.

Concurrency:
    Mutations are serialized by an internal re-entrant lock so HTTP worker
    threads and the event loop can read consistently. Listeners run outside
    the lock.
"""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping

from omni.core.errors import InvalidStateError
from omni.core.types import (
    ASPECT_RATIOS,
    DEFAULT_ASPECT_RATIO,
    DEFAULT_RESOLUTION,
    DIRECTIVE_REQUIRED_MODES,
    IDLE_STATUS,
    RESOLUTION_TIERS,
    SPEECH_STATUS,
    AssetSlot,
    InputAsset,
    Mode,
    RequestDescriptor,
    ResultArtifact,
    SessionState,
    describe_artifact,
    required_slots,
    status_phrase,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session handed to rendering consumers."""

    mode: Mode
    state: SessionState
    status: str
    directive: str
    aspect_ratio: str
    resolution: str
    ownership_verified: bool
    assets: Mapping[AssetSlot, InputAsset]
    artifact: ResultArtifact | None
    error: str | None
    speaking: bool
    notice: str | None

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "state": self.state.value,
            "status": self.status,
            "directive": self.directive,
            "aspect_ratio": self.aspect_ratio,
            "resolution": self.resolution,
            "ownership_verified": self.ownership_verified,
            "assets": {slot.value: asset.describe() for slot, asset in self.assets.items()},
            "result": describe_artifact(self.artifact),
            "error": self.error,
            "speaking": self.speaking,
            "notice": self.notice,
        }


@dataclass(frozen=True)
class ChainSeed:
    """Seed inputs for the next mode, derived by the chainer.

    `primary` is only applied when `replace_assets` is set; in that case the
    `reference` slot is cleared as well.
    """

    target_mode: Mode
    directive: str
    replace_assets: bool = False
    primary: InputAsset | None = None


@dataclass
class _SessionRecord:
    mode: Mode = Mode.COMPOSITE
    state: SessionState = SessionState.IDLE
    status: str = IDLE_STATUS
    directive: str = ""
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    resolution: str = DEFAULT_RESOLUTION
    ownership_verified: bool = False
    assets: dict = field(default_factory=dict)
    artifact: ResultArtifact | None = None
    error: str | None = None
    speaking: bool = False
    notice: str | None = None


SnapshotListener = Callable[[SessionSnapshot], None]


class ModeController:
    """Explicit session state record mutated only through its operations."""

    def __init__(self, initial_mode: Mode = Mode.COMPOSITE):
        self._record = _SessionRecord(mode=initial_mode)
        self._lock = threading.RLock()
        self._listeners: list[SnapshotListener] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            record = self._record
            return SessionSnapshot(
                mode=record.mode,
                state=record.state,
                status=SPEECH_STATUS if record.speaking else record.status,
                directive=record.directive,
                aspect_ratio=record.aspect_ratio,
                resolution=record.resolution,
                ownership_verified=record.ownership_verified,
                assets=MappingProxyType(dict(record.assets)),
                artifact=record.artifact,
                error=record.error,
                speaking=record.speaking,
                notice=record.notice,
            )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register `listener` for post-mutation snapshots.

        Returns:
            A callable that removes the listener. Calling it twice is harmless.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Session listener failed")

    @property
    def mode(self) -> Mode:
        return self._record.mode

    @property
    def state(self) -> SessionState:
        return self._record.state

    @property
    def artifact(self) -> ResultArtifact | None:
        return self._record.artifact

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_mode(self, mode: Mode) -> None:
        """Switch workflow, dropping the current result but keeping inputs.

        Raises:
            InvalidStateError: a generation job is in flight.
        """
        mode = Mode(mode)
        with self._lock:
            self._require_not_generating("switch mode")
            self._record.mode = mode
            self._reset_outcome()
        logger.info("Mode set to %s", mode.value)
        self._notify()

    def set_asset(self, slot: AssetSlot, asset: InputAsset) -> None:
        slot = AssetSlot(slot)
        with self._lock:
            self._record.assets[slot] = asset
        self._notify()

    def clear_asset(self, slot: AssetSlot) -> None:
        slot = AssetSlot(slot)
        with self._lock:
            self._record.assets.pop(slot, None)
        self._notify()

    def set_directive(self, text: str) -> None:
        with self._lock:
            self._record.directive = text or ""
        self._notify()

    def set_aspect_ratio(self, ratio: str) -> None:
        if ratio not in ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio: {ratio}")
        with self._lock:
            self._record.aspect_ratio = ratio
        self._notify()

    def set_resolution(self, tier: str) -> None:
        if tier not in RESOLUTION_TIERS:
            raise ValueError(f"Unsupported resolution tier: {tier}")
        with self._lock:
            self._record.resolution = tier
        self._notify()

    def set_ownership_verified(self, verified: bool) -> None:
        with self._lock:
            self._record.ownership_verified = bool(verified)
        self._notify()

    # ------------------------------------------------------------------
    # Submit lifecycle
    # ------------------------------------------------------------------

    def can_submit(self) -> bool:
        """Return whether a submit is currently allowed.

        Pure predicate over mode, inputs and session state:
            - never while Generating;
            - Generate/Reason need non-empty directive text;
            - image modes need the `primary` asset;
            - Composite also needs `reference` and the ownership flag.
        """
        with self._lock:
            record = self._record
            if record.state == SessionState.GENERATING:
                return False
            if record.mode in DIRECTIVE_REQUIRED_MODES and not record.directive:
                return False
            for slot in required_slots(record.mode):
                if slot not in record.assets:
                    return False
            if record.mode == Mode.COMPOSITE and not record.ownership_verified:
                return False
            return True

    def begin_submit(self) -> RequestDescriptor:
        """Enter Generating and return the request built from current inputs.

        Raises:
            InvalidStateError: `can_submit()` is false.
        """
        with self._lock:
            if not self.can_submit():
                raise InvalidStateError(
                    f"Submit not allowed in mode {self._record.mode.value} "
                    f"(state={self._record.state.value})"
                )
            record = self._record
            descriptor = RequestDescriptor(
                mode=record.mode,
                directive=record.directive,
                primary=record.assets.get(AssetSlot.PRIMARY),
                reference=record.assets.get(AssetSlot.REFERENCE),
                aspect_ratio=record.aspect_ratio,
                resolution=record.resolution,
                ownership_verified=record.ownership_verified,
            )
            record.state = SessionState.GENERATING
            record.status = status_phrase(record.mode)
            record.artifact = None
            record.error = None
            record.notice = None
        logger.info("Submit started for mode %s", descriptor.mode.value)
        self._notify()
        return descriptor

    def complete_success(self, artifact: ResultArtifact) -> None:
        with self._lock:
            self._require_generating("complete")
            self._record.state = SessionState.SUCCESS
            self._record.status = IDLE_STATUS
            self._record.artifact = artifact
            self._record.error = None
        logger.info("Submit succeeded with %s result", artifact.kind.value)
        self._notify()

    def complete_failure(self, error: str) -> None:
        with self._lock:
            self._require_generating("fail")
            self._record.state = SessionState.ERROR
            self._record.status = IDLE_STATUS
            self._record.artifact = None
            self._record.error = str(error)
        logger.info("Submit failed: %s", error)
        self._notify()

    # ------------------------------------------------------------------
    # Chaining and speech
    # ------------------------------------------------------------------

    def apply_seed(self, seed: ChainSeed) -> None:
        """Reseed inputs from a chained result and switch to its target mode."""
        with self._lock:
            self._require_not_generating("chain")
            record = self._record
            if seed.replace_assets:
                record.assets.pop(AssetSlot.REFERENCE, None)
                if seed.primary is not None:
                    record.assets[AssetSlot.PRIMARY] = seed.primary
            record.directive = seed.directive
            record.mode = seed.target_mode
            self._reset_outcome()
        logger.info("Chained result into mode %s", seed.target_mode.value)
        self._notify()

    def set_speaking(self, active: bool) -> None:
        with self._lock:
            self._record.speaking = bool(active)
            if active:
                self._record.notice = None
        self._notify()

    def report_notice(self, message: str) -> None:
        """Surface a side-channel failure (speech) without touching the result."""
        with self._lock:
            self._record.notice = message
        self._notify()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reset_outcome(self) -> None:
        record = self._record
        record.state = SessionState.IDLE
        record.status = IDLE_STATUS
        record.artifact = None
        record.error = None
        record.notice = None

    def _require_not_generating(self, action: str) -> None:
        if self._record.state == SessionState.GENERATING:
            raise InvalidStateError(f"Cannot {action} while a job is in flight")

    def _require_generating(self, action: str) -> None:
        if self._record.state != SessionState.GENERATING:
            raise InvalidStateError(
                f"Cannot {action} from state {self._record.state.value}"
            )
