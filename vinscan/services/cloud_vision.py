"""
VinScan — Cloud Vision Fallback

Second and last recognition tier. Sends the capture to a hosted vision model
(OpenAI-compatible chat-completions API) with a narrow "VIN only"
instruction. Exactly one request per call with a bounded timeout; a failed
call is reported, never retried here. Retrying is a user re-scan.
"""

from __future__ import annotations

import base64
import logging

import requests

from vinscan.common.schemas import OcrCandidate, OcrSource, RawCapture, RecognitionFailure
from vinscan.common.utils import VIN_LENGTH, find_vin_run, normalize_vin_text
from vinscan.config import VinScanSettings, get_settings

logger = logging.getLogger(__name__)

VIN_EXTRACTION_PROMPT = (
    "Extract and return ONLY the VIN number from this image. The VIN should be "
    "exactly 17 characters long and contain only letters A-Z (excluding I, O, Q) "
    "and numbers 0-9. Return only the VIN number, nothing else. If you cannot find "
    "a complete 17-character VIN, return any vehicle identification numbers you can see."
)


class CloudRecognitionFallback:
    """Posts a capture to a remote vision model and parses a VIN out of the reply."""

    def __init__(
        self,
        settings: VinScanSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._http = session or requests.Session()

    def recognize_remote(self, capture: RawCapture) -> OcrCandidate | RecognitionFailure:
        api_key = self.settings.cloud_vision_api_key
        if api_key is None or not api_key.get_secret_value():
            logger.warning("Cloud vision fallback skipped: no API key configured")
            return RecognitionFailure(source=OcrSource.CLOUD, reason="cloud vision not configured")
        if not capture.image:
            return RecognitionFailure(source=OcrSource.CLOUD, reason="empty image")

        try:
            resp = self._http.post(
                self.settings.cloud_vision_url,
                json=self._payload(capture.image),
                headers={"Authorization": f"Bearer {api_key.get_secret_value()}"},
                timeout=self.settings.cloud_vision_timeout_s,
            )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except requests.RequestException as exc:
            logger.warning(f"Cloud vision request failed: {exc}")
            return RecognitionFailure(source=OcrSource.CLOUD, reason=f"transport error: {exc}")
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning(f"Cloud vision reply unparseable: {exc!r}")
            return RecognitionFailure(source=OcrSource.CLOUD, reason="unparseable response")

        raw_text = str(content or "").strip()
        # Replies sometimes wrap the VIN in prose
        cleaned = find_vin_run(raw_text) or normalize_vin_text(raw_text)[:VIN_LENGTH]
        if not cleaned:
            logger.info("Cloud vision returned no VIN characters")
            return RecognitionFailure(source=OcrSource.CLOUD, reason="empty response")

        logger.info(f"Cloud vision → {cleaned} ({len(cleaned)} chars)")
        return OcrCandidate(
            text=cleaned,
            raw_text=raw_text,
            source=OcrSource.CLOUD,
            is_vin_run=len(cleaned) == VIN_LENGTH,
        )

    def _payload(self, image: bytes) -> dict:
        encoded = base64.b64encode(image).decode("ascii")
        return {
            "model": self.settings.cloud_vision_model,
            "temperature": 0.0,
            "max_tokens": 50,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": VIN_EXTRACTION_PROMPT},
                        {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}},
                    ],
                }
            ],
        }
