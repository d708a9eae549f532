"""Error taxonomy for the orchestration engine.

Propagation policy:
    - `InvalidStateError` signals a caller bug (submit or mode switch while not
      allowed) and propagates out of the orchestrator untouched.
    - `ProviderError`, `DecodeError`, `GenerationTimeoutError` and
      `JobCancelledError` are caught at the orchestrator boundary and stored as
      the session failure message.
    - `ChainError` is surfaced to the caller; session state is left unchanged.

No error is retried automatically.
"""


class OmniError(Exception):
    """Base class for every error raised by the engine."""


class InvalidStateError(OmniError):
    """Operation attempted while the session does not allow it."""


class ProviderError(OmniError):
    """Backend call failed or returned no usable payload."""


class ChainError(OmniError):
    """Re-ingesting a generated artifact as new input failed."""


class DecodeError(OmniError):
    """Synthesized audio payload could not be decoded."""


class GenerationTimeoutError(OmniError, TimeoutError):
    """A long-running job exceeded its configured polling budget."""


class JobCancelledError(OmniError):
    """A long-running job was abandoned through its cancellation token."""
