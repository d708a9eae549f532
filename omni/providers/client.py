"""Gemini REST transport for the generation adapters.

Architectural role:
    Executes HTTP requests against the Generative Language API and hands the
    parsed JSON back to `omni.providers.adapters`. Adapters own request
    shaping and response interpretation; this module owns URLs, headers,
    timeouts and error normalization.

Call surface:
    - `generate_content`: one-shot content generation (image, text, audio).
    - `start_video_job` / `get_operation`: long-running video generation.
    - `download`: fetch a generated artifact by URI.
    - `inline_parts`, `response_text`, `grounding_sources`: response readers.

Retry behavior:
    No retry loop is implemented. Each HTTP call is attempted once with
    `REQUEST_TIMEOUT`.

Failure handling model:
    Missing credentials, transport errors, non-2xx statuses and non-JSON
    bodies all raise `ProviderError` with a sanitized, provider-labelled
    message. Key material never appears in messages or logs.
"""

import logging

import requests

from omni.core.errors import ProviderError
from omni.providers.provider_config import (
    GEMINI_BASE_URL,
    GEMINI_KEY_FILE,
    REQUEST_TIMEOUT,
    load_key,
)


logger = logging.getLogger(__name__)

PROVIDER_LABEL = "GEMINI"


def _build_sanitized_http_error(err: requests.exceptions.RequestException) -> str:
    """Build provider-labeled HTTP error text without exposing raw internals."""
    status_code = None
    if getattr(err, "response", None) is not None:
        status_code = getattr(err.response, "status_code", None)

    if status_code:
        return f"{PROVIDER_LABEL} HTTP ERROR ({status_code})"
    return f"{PROVIDER_LABEL} HTTP ERROR"


def _api_key() -> str:
    api_key = load_key(GEMINI_KEY_FILE)
    if not api_key:
        raise ProviderError(f"{PROVIDER_LABEL} KEY NOT CONFIGURED")
    return api_key


def _headers() -> dict:
    return {
        "x-goog-api-key": _api_key(),
        "Content-Type": "application/json",
    }


def _request_json(method: str, url: str, payload: dict | None = None) -> dict:
    try:
        response = requests.request(
            method,
            url,
            headers=_headers(),
            json=payload,
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()
    except requests.exceptions.RequestException as err:
        logger.warning("Gemini %s %s failed: %s", method, url, type(err).__name__)
        raise ProviderError(_build_sanitized_http_error(err)) from err
    except ValueError as err:
        raise ProviderError(f"{PROVIDER_LABEL} RETURNED MALFORMED JSON") from err


def generate_content(
    model: str,
    parts: list[dict],
    generation_config: dict | None = None,
    tools: list[dict] | None = None,
) -> dict:
    """Call `models/{model}:generateContent` with a single user turn.

    Args:
        model: Model identifier from `provider_config.MODELS`.
        parts: Ordered content parts (`{"text": ...}` / `{"inlineData": ...}`).
        generation_config: Optional `generationConfig` block.
        tools: Optional tool declarations (for example search grounding).

    Returns:
        Parsed JSON response.
    """
    payload = {"contents": [{"role": "user", "parts": parts}]}
    if generation_config:
        payload["generationConfig"] = generation_config
    if tools:
        payload["tools"] = tools

    logger.debug("generateContent model=%s parts=%d", model, len(parts))
    return _request_json("POST", f"{GEMINI_BASE_URL}/models/{model}:generateContent", payload)


def start_video_job(model: str, instance: dict, parameters: dict) -> dict:
    """Start a long-running video generation and return the operation record."""
    payload = {"instances": [instance], "parameters": parameters}
    logger.debug("predictLongRunning model=%s", model)
    return _request_json(
        "POST", f"{GEMINI_BASE_URL}/models/{model}:predictLongRunning", payload
    )


def get_operation(name: str) -> dict:
    """Fetch the current state of a long-running operation by name."""
    return _request_json("GET", f"{GEMINI_BASE_URL}/{name}")


def download(uri: str) -> bytes:
    """Download a generated artifact; the API key travels as a query parameter."""
    try:
        response = requests.get(
            uri,
            params={"key": _api_key()},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as err:
        logger.warning("Artifact download failed: %s", type(err).__name__)
        raise ProviderError(_build_sanitized_http_error(err)) from err
    return response.content


# ----------------------------------------------------------------------
# Response readers
# ----------------------------------------------------------------------

def _first_candidate(response: dict) -> dict:
    candidates = response.get("candidates") or []
    return candidates[0] if candidates else {}


def inline_parts(response: dict) -> list[dict]:
    """Return every `inlineData` block of the first candidate, in order."""
    content = _first_candidate(response).get("content") or {}
    return [
        part["inlineData"]
        for part in content.get("parts") or []
        if isinstance(part, dict) and part.get("inlineData")
    ]


def response_text(response: dict) -> str:
    """Concatenate the text parts of the first candidate, skipping thoughts."""
    content = _first_candidate(response).get("content") or {}
    texts = [
        part["text"]
        for part in content.get("parts") or []
        if isinstance(part, dict) and part.get("text") and not part.get("thought")
    ]
    return "".join(texts)


def grounding_sources(response: dict) -> list[tuple[str, str]]:
    """Return `(title, uri)` pairs from search-grounding metadata."""
    metadata = _first_candidate(response).get("groundingMetadata") or {}
    sources = []
    for chunk in metadata.get("groundingChunks") or []:
        web = chunk.get("web") or {}
        if web.get("uri"):
            sources.append((web.get("title") or web["uri"], web["uri"]))
    return sources
