"""
Tests — Cloud Vision Fallback

Tier 2: The HTTP session is scripted; no network access.
"""

from __future__ import annotations

import base64

import requests

from vinscan.common.schemas import OcrCandidate, OcrSource, RawCapture, RecognitionFailure
from vinscan.config import VinScanSettings
from vinscan.services.cloud_vision import VIN_EXTRACTION_PROMPT, CloudRecognitionFallback


class ScriptedResponse:
    def __init__(self, body=None, status_code: int = 200, invalid_json: bool = False) -> None:
        self.body = body
        self.status_code = status_code
        self.invalid_json = invalid_json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value")
        return self.body


class ScriptedSession:
    def __init__(self, response: ScriptedResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def _reply(content: str) -> ScriptedResponse:
    return ScriptedResponse({"choices": [{"message": {"content": content}}]})


def _fallback(http: ScriptedSession, api_key: str | None = "sk-test") -> CloudRecognitionFallback:
    settings = VinScanSettings(_env_file=None, cloud_vision_api_key=api_key, cloud_vision_timeout_s=7.0)
    return CloudRecognitionFallback(settings=settings, session=http)


CAPTURE = RawCapture(image=b"\xff\xd8jpeg-bytes")


class TestCloudRecognitionFallback:
    def test_clean_reply(self) -> None:
        http = ScriptedSession(_reply("1hgcm82633a004352"))
        result = _fallback(http).recognize_remote(CAPTURE)

        assert isinstance(result, OcrCandidate)
        assert result.text == "1HGCM82633A004352"
        assert result.source == OcrSource.CLOUD
        assert result.is_vin_run is True

    def test_single_bounded_request(self) -> None:
        http = ScriptedSession(_reply("1HGCM82633A004352"))
        _fallback(http).recognize_remote(CAPTURE)

        assert len(http.calls) == 1
        _, kwargs = http.calls[0]
        assert kwargs["timeout"] == 7.0
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        content = kwargs["json"]["messages"][0]["content"]
        assert content[0]["text"] == VIN_EXTRACTION_PROMPT
        encoded = base64.b64encode(CAPTURE.image).decode("ascii")
        assert content[1]["image_url"]["url"].endswith(encoded)

    def test_chatty_reply_prefers_standalone_vin(self) -> None:
        http = ScriptedSession(_reply("VIN: 1HGCM82633A004352 (Honda)"))
        result = _fallback(http).recognize_remote(CAPTURE)
        assert result.text == "1HGCM82633A004352"

    def test_long_reply_is_normalized_and_truncated(self) -> None:
        http = ScriptedSession(_reply("1hgcm8-2633a0043521234"))
        result = _fallback(http).recognize_remote(CAPTURE)
        assert result.text == "1HGCM82633A004352"
        assert result.is_vin_run is True

    def test_partial_reply(self) -> None:
        result = _fallback(ScriptedSession(_reply("1HG CM826"))).recognize_remote(CAPTURE)
        assert result.text == "1HGCM826"
        assert result.is_vin_run is False

    def test_empty_reply(self) -> None:
        result = _fallback(ScriptedSession(_reply("   "))).recognize_remote(CAPTURE)
        assert isinstance(result, RecognitionFailure)
        assert result.reason == "empty response"

    def test_timeout(self) -> None:
        http = ScriptedSession(error=requests.Timeout("read timed out"))
        result = _fallback(http).recognize_remote(CAPTURE)
        assert isinstance(result, RecognitionFailure)
        assert result.reason.startswith("transport error")
        assert len(http.calls) == 1

    def test_http_error(self) -> None:
        result = _fallback(ScriptedSession(ScriptedResponse(status_code=502))).recognize_remote(CAPTURE)
        assert isinstance(result, RecognitionFailure)

    def test_unparseable(self) -> None:
        for response in (ScriptedResponse(invalid_json=True), ScriptedResponse({"choices": []})):
            result = _fallback(ScriptedSession(response)).recognize_remote(CAPTURE)
            assert isinstance(result, RecognitionFailure)
            assert result.reason == "unparseable response"

    def test_missing_api_key_skips_request(self) -> None:
        http = ScriptedSession(_reply("1HGCM82633A004352"))
        result = _fallback(http, api_key=None).recognize_remote(CAPTURE)
        assert isinstance(result, RecognitionFailure)
        assert http.calls == []
