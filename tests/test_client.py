"""
Tests for the Gemini transport: URLs, credentials and error normalization.
"""
from unittest.mock import Mock, patch

import pytest
import requests

from omni.core.errors import ProviderError
from omni.providers import client


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    return "test-key"


def _response(json_data=None, status=200, content=b""):
    response = Mock()
    response.status_code = status
    response.content = content
    response.json.return_value = json_data
    if status >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    else:
        response.raise_for_status.return_value = None
    return response


class TestRequests:
    def test_generate_content_payload(self, api_key):
        with patch("omni.providers.client.requests.request", return_value=_response({"ok": True})) as call:
            result = client.generate_content(
                "gemini-3-pro-preview",
                [{"text": "hi"}],
                generation_config={"thinkingConfig": {"thinkingBudget": 1}},
                tools=[{"googleSearch": {}}],
            )

        assert result == {"ok": True}
        method, url = call.call_args.args
        assert method == "POST"
        assert url.endswith("/models/gemini-3-pro-preview:generateContent")
        payload = call.call_args.kwargs["json"]
        assert payload["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
        assert payload["tools"] == [{"googleSearch": {}}]
        assert call.call_args.kwargs["headers"]["x-goog-api-key"] == "test-key"

    def test_operation_lookup_uses_name(self, api_key):
        with patch("omni.providers.client.requests.request", return_value=_response({"done": False})) as call:
            client.get_operation("models/veo/operations/42")

        assert call.call_args.args[0] == "GET"
        assert call.call_args.args[1].endswith("/models/veo/operations/42")

    def test_download_passes_key_as_query(self, api_key):
        with patch("omni.providers.client.requests.get", return_value=_response(content=b"mp4")) as call:
            assert client.download("https://files/v?alt=media") == b"mp4"

        assert call.call_args.kwargs["params"] == {"key": "test-key"}


class TestFailures:
    def test_missing_key(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ProviderError, match="KEY NOT CONFIGURED"):
            client.generate_content("m", [{"text": "x"}])

    def test_http_error_is_sanitized(self, api_key):
        with patch("omni.providers.client.requests.request", return_value=_response(status=503)):
            with pytest.raises(ProviderError) as excinfo:
                client.generate_content("m", [{"text": "x"}])

        assert str(excinfo.value) == "GEMINI HTTP ERROR (503)"
        assert "test-key" not in str(excinfo.value)

    def test_connection_error(self, api_key):
        with patch(
            "omni.providers.client.requests.request",
            side_effect=requests.exceptions.ConnectionError("boom"),
        ):
            with pytest.raises(ProviderError, match="GEMINI HTTP ERROR"):
                client.generate_content("m", [{"text": "x"}])


class TestReaders:
    def test_readers_tolerate_empty_response(self):
        assert client.inline_parts({}) == []
        assert client.response_text({"candidates": []}) == ""
        assert client.grounding_sources({}) == []

    def test_response_text_skips_thoughts(self):
        response = {
            "candidates": [
                {"content": {"parts": [{"text": "thinking...", "thought": True}, {"text": "answer"}]}}
            ]
        }

        assert client.response_text(response) == "answer"
