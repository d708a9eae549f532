"""Core orchestration package.

Architectural role:
    Holds the generation orchestration engine that sits between the API/CLI
    adapters and the provider adapters.

Composition:
    - `types`: session data model (modes, assets, requests, artifacts).
    - `errors`: error taxonomy shared by every layer.
    - `mode_controller`: the session state machine and its snapshots.
    - `job_poller`: bounded-interval polling of long-running jobs.
    - `chainer`: derivation of seed inputs from a completed result.
    - `orchestrator`: submit/chain/speak control flow.

Determinism and side effects:
    Package import is side-effect free.
"""
