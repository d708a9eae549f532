"""Generation provider package.

Architectural role:
    Provides configuration, HTTP transport and per-capability adapters used
    by the orchestrator to invoke the generation backend.

Module split:
    - `provider_config`: environment-driven models, tunables and credentials.
    - `client`: Gemini REST transport and response readers.
    - `adapters`: request shaping and response interpretation per mode.
"""
