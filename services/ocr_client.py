"""
Google Cloud Vision text detection client.
Turns a screenshot URL into the raw recognized text block.
"""
import asyncio
import logging
from typing import Optional

import aiohttp

import config

logger = logging.getLogger('scrimbot.ocr')


class OCRError(Exception):
    """Raised when the text-detection request fails."""


class VisionOCRClient:
    """Calls the Vision images:annotate endpoint with TEXT_DETECTION."""

    def __init__(
        self,
        api_key: str,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = config.VISION_TIMEOUT_SECONDS
    ):
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    @staticmethod
    def build_request(image_url: str) -> dict:
        return {
            "requests": [{
                "image": {"source": {"imageUri": image_url}},
                "features": [{"type": "TEXT_DETECTION"}],
            }]
        }

    @staticmethod
    def extract_text(payload: dict) -> str:
        """
        Pull the full text block out of an annotate response.

        Raises:
            OCRError: If the response carries an error for the image, or
                isn't shaped like an annotate response
        """
        responses = payload.get("responses") or []
        if not isinstance(responses, list):
            raise OCRError("Malformed Vision response: 'responses' is not a list")
        if not responses:
            return ""

        first = responses[0] or {}
        if not isinstance(first, dict):
            raise OCRError("Malformed Vision response: image result is not an object")

        error = first.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise OCRError(f"Vision API error: {message}")

        full_text = first.get("fullTextAnnotation")
        if isinstance(full_text, dict) and full_text.get("text"):
            return str(full_text["text"])

        annotations = first.get("textAnnotations") or []
        if not isinstance(annotations, list):
            raise OCRError("Malformed Vision response: 'textAnnotations' is not a list")
        if annotations and isinstance(annotations[0], dict):
            description = annotations[0].get("description")
            return description if isinstance(description, str) else ""
        return ""

    async def detect_text(self, image_url: str) -> str:
        """Run text detection on an image URL; empty string when nothing is found."""
        session = await self._get_session()
        try:
            async with session.post(
                config.VISION_ENDPOINT,
                params={"key": self.api_key},
                json=self.build_request(image_url),
                timeout=self.timeout,
            ) as response:
                payload = await response.json(content_type=None)
                if response.status != 200:
                    error = payload.get("error") if isinstance(payload, dict) else None
                    message = error.get("message") if isinstance(error, dict) else response.reason
                    raise OCRError(f"Vision API returned {response.status}: {message}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise OCRError(f"Vision request failed: {e}") from e
        except ValueError as e:
            raise OCRError(f"Vision returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise OCRError("Vision returned an unexpected payload")
        text = self.extract_text(payload)
        logger.debug(f'Detected {len(text)} characters in {image_url}')
        return text
