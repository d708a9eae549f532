"""OMNI generative-media studio.

Architectural role:
    Top-level package for the session engine that drives seven generation
    workflows (composite, generate, edit, animate, analyze, culinary,
    reason) through one interface, chains results between workflows, and
    narrates text results as audio.

Subpackages:
    - `core`: session state machine, job polling, chaining, orchestration.
    - `providers`: configuration, Gemini transport, per-capability adapters.
    - `media`: audio/image codecs and single-flight playback.
    - `history`: prompt-history persistence.
    - `api`: HTTP and terminal adapters.
"""

__version__ = "0.1.0"
