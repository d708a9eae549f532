"""Provider/runtime configuration for the generation adapters.

Architectural role:
    Centralizes model selection, endpoint layout, polling tunables and
    credential lookup for `omni.providers.client` and
    `omni.providers.adapters`.

Model call flow integration:
    - Adapters read the per-capability `MODELS` map and the fixed generation
      constants below when shaping requests.
    - `client` reads `GEMINI_BASE_URL`, `REQUEST_TIMEOUT` and resolves the
      API key through `load_key` on every call.

Determinism:
    Deterministic for a fixed process environment and key files. Values are
    resolved at import time (plus runtime key-file reads in `load_key`).

Failure behavior:
    Missing key material is represented as `None`; `client` turns it into a
    `ProviderError` and the API adapters refuse to start a session without it.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_float(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_KEY_FILE = "config/gemini.key"

# Per-capability model routing.
MODELS = {
    "composite": os.getenv("COMPOSITE_MODEL", "gemini-3-pro-image-preview"),
    "generate": os.getenv("GENERATE_MODEL", "gemini-3-pro-image-preview"),
    "edit": os.getenv("EDIT_MODEL", "gemini-2.5-flash-image"),
    "animate": os.getenv("ANIMATE_MODEL", "veo-3.1-fast-generate-preview"),
    "analyze": os.getenv("ANALYZE_MODEL", "gemini-3-pro-preview"),
    "culinary": os.getenv("CULINARY_MODEL", "gemini-3-pro-preview"),
    "reason": os.getenv("REASON_MODEL", "gemini-3-pro-preview"),
    "speech": os.getenv("SPEECH_MODEL", "gemini-2.5-flash-preview-tts"),
}

REQUEST_TIMEOUT = _env_float("REQUEST_TIMEOUT", 120.0)

# Long-running video jobs. An unset timeout means "poll until done".
ANIMATE_POLL_INTERVAL = _env_float("ANIMATE_POLL_INTERVAL", 5.0)
ANIMATE_POLL_TIMEOUT = _env_float("ANIMATE_POLL_TIMEOUT", None)
ANIMATE_RESOLUTION = "720p"
ANIMATE_SAMPLE_COUNT = 1

# Composite ignores the session aspect ratio/resolution settings.
COMPOSITE_ASPECT_RATIO = "1:1"
COMPOSITE_RESOLUTION = "2K"

ANALYZE_THINKING_BUDGET = 32768
REASON_THINKING_BUDGET = 16000

SPEECH_VOICE = os.getenv("SPEECH_VOICE", "Kore")
SPEECH_MAX_CHARS = int(_env_float("SPEECH_MAX_CHARS", 1000))

HISTORY_PATH = os.getenv("HISTORY_PATH", "prompt_history.json")
OUTPUT_DIR = os.getenv("OUTPUT_DIR", "outputs")


def load_key(path):
    """Load API key from environment override or key file.

    Resolution order:
        1. Environment variable inferred from file stem (for example
           `config/gemini.key` -> `GEMINI_API_KEY`).
        2. Raw file contents at `path`.

    Args:
        path: Configured key file path or `None`.

    Returns:
        Key string or `None` when not available.

    Edge cases:
        - `None` path returns `None`.
        - Missing or empty file returns `None`.
    """
    if not path:
        return None
    key_name = os.path.splitext(os.path.basename(path))[0].upper() + "_API_KEY"
    env_value = os.getenv(key_name)
    if env_value:
        return env_value
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return f.read().strip() or None


def has_credentials() -> bool:
    """Credential gate consulted by entrypoints before the engine is used."""
    return load_key(GEMINI_KEY_FILE) is not None
