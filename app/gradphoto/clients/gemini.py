"""
Gemini Generator for graduation photos.
Calls the Gemini `generateContent` REST endpoint with an inline image and
asks for an image-only response.

Required Environment Variables:
    GEMINI_API_KEY: Google AI Studio API key
    GEMINI_MODEL: Model name (default: gemini-2.5-flash-image)
    GEMINI_ENDPOINT: API base URL (default: https://generativelanguage.googleapis.com/v1beta)
"""
import base64
import logging
import os
import time
from typing import Any, Dict, List

import requests

from ..models import EncodedPayload, GeneratedImage
from .base import BaseGenerator, GeneratorResult, ImageExtraction, ImageFound, NoImage

logger = logging.getLogger(__name__)


def extract_first_image(response: Dict[str, Any]) -> ImageExtraction:
    """
    Pick the first inline image part of the first candidate.
    Further candidates are ignored.
    """
    candidates = response.get("candidates") or []
    if not candidates:
        feedback = response.get("promptFeedback") or {}
        reason = feedback.get("blockReason")
        return NoImage(f"No candidates returned (blockReason: {reason})" if reason else "No candidates returned")

    first = candidates[0] or {}
    parts: List[Dict[str, Any]] = (first.get("content") or {}).get("parts") or []
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return ImageFound(GeneratedImage(data=base64.b64decode(inline["data"]), mime_type=mime_type))

    finish_reason = first.get("finishReason")
    if finish_reason:
        return NoImage(f"No image part in first candidate (finishReason: {finish_reason})")
    return NoImage("No image part in first candidate")


class GeminiGenerator(BaseGenerator):
    """Google Gemini image editing via the REST API."""

    name = "gemini"

    ENV_API_KEY = "GEMINI_API_KEY"
    ENV_MODEL = "GEMINI_MODEL"
    ENV_ENDPOINT = "GEMINI_ENDPOINT"

    DEFAULT_MODEL = "gemini-2.5-flash-image"
    DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"
    REQUIRED_CONFIG = ((ENV_API_KEY, "api_key"),)
    TIMEOUT = 120

    def __init__(self):
        self.api_key = os.getenv(self.ENV_API_KEY)
        self.model = os.getenv(self.ENV_MODEL, self.DEFAULT_MODEL)
        self.endpoint = os.getenv(self.ENV_ENDPOINT, self.DEFAULT_ENDPOINT).rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.endpoint}/models/{self.model}:generateContent"

    def build_request(self, payload: EncodedPayload, prompt: str) -> dict:
        return {
            "contents": [
                {
                    "parts": [
                        {"inline_data": {"mime_type": payload.mime_type, "data": payload.data}},
                        {"text": prompt},
                    ]
                }
            ],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }

    def process_image(self, payload: EncodedPayload, prompt: str) -> GeneratorResult:
        """Process image using the Gemini generateContent endpoint."""
        logger.info(f"Using Gemini model: {self.model}")

        headers = {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

        start_time = time.time()
        req_info = f"POST {self.url}\nMime: {payload.mime_type}\nPrompt: {prompt[:50]}..."

        response = requests.post(self.url, headers=headers, json=self.build_request(payload, prompt), timeout=self.TIMEOUT)
        latency = time.time() - start_time
        resp_info = f"Status: {response.status_code}\nLatency: {latency:.2f}s"

        if response.status_code != 200:
            logger.error(f"Gemini API Error: {response.text}")
        response.raise_for_status()

        extraction = extract_first_image(response.json())
        return GeneratorResult(extraction=extraction, request_info=req_info, response_info=resp_info)
