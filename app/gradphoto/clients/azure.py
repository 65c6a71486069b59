"""
Azure Generator for graduation photos.
Uses an Azure AI/OpenAI image edit endpoint.

Required Environment Variables:
    AZURE_OPENAI_ENDPOINT: Azure OpenAI image edit endpoint URL
    AZURE_OPENAI_API_KEY: Azure OpenAI API key
    AZURE_OPENAI_MODEL: Model name (default: flux.1-kontext-pro)
"""
import base64
import logging
import mimetypes
import os
import time

import requests

from ..models import EncodedPayload, GeneratedImage
from .base import BaseGenerator, GeneratorResult, ImageFound, NoImage

logger = logging.getLogger(__name__)


class AzureGenerator(BaseGenerator):
    """Azure AI image editor using Flux or other models."""

    name = "azure"

    # Environment variable names (consistent with Azure SDK conventions)
    ENV_ENDPOINT = "AZURE_OPENAI_ENDPOINT"
    ENV_API_KEY = "AZURE_OPENAI_API_KEY"
    ENV_MODEL = "AZURE_OPENAI_MODEL"

    DEFAULT_MODEL = "flux.1-kontext-pro"
    REQUIRED_CONFIG = ((ENV_ENDPOINT, "endpoint"), (ENV_API_KEY, "api_key"))
    TIMEOUT = 120

    def __init__(self):
        self.endpoint = os.getenv(self.ENV_ENDPOINT)
        self.api_key = os.getenv(self.ENV_API_KEY)
        self.model = os.getenv(self.ENV_MODEL, self.DEFAULT_MODEL)

    def process_image(self, payload: EncodedPayload, prompt: str) -> GeneratorResult:
        """Process image using Azure AI endpoint."""
        logger.info(f"Using Azure Endpoint: {self.endpoint}")
        logger.info(f"Using Model: {self.model}")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "api-key": self.api_key,  # Azure OpenAI uses api-key header
        }

        extension = mimetypes.guess_extension(payload.mime_type) or ".png"
        filename = f"photo{extension}"

        start_time = time.time()
        req_info = f"POST {self.endpoint}\nModel: {self.model}\nPrompt: {prompt[:50]}..."

        files = {
            "image": (filename, base64.b64decode(payload.data), payload.mime_type)
        }
        data = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
        }

        logger.info(f"Submitting Azure AI request for {filename}...")
        response = requests.post(self.endpoint, headers=headers, files=files, data=data, timeout=self.TIMEOUT)

        latency = time.time() - start_time
        resp_info = f"Status: {response.status_code}\nLatency: {latency:.2f}s"

        if response.status_code != 200:
            logger.error(f"Azure API Error: {response.text}")
        response.raise_for_status()

        result = response.json()

        # Only the first entry is used.
        items = result.get("data") or []
        if not items:
            logger.error(f"Unexpected response structure: {list(result.keys())}")
            return GeneratorResult(NoImage("No data entries in response"), req_info, resp_info)

        item = items[0]
        if item.get("b64_json"):
            image = GeneratedImage(data=base64.b64decode(item["b64_json"]), mime_type="image/png")
            return GeneratorResult(ImageFound(image), req_info, resp_info)

        if item.get("url"):
            logger.info(f"Result is URL, downloading from {item['url']}...")
            img_resp = requests.get(item["url"], timeout=60)
            img_resp.raise_for_status()
            mime_type = img_resp.headers.get("Content-Type", "image/png").split(";")[0]
            image = GeneratedImage(data=img_resp.content, mime_type=mime_type)
            return GeneratorResult(ImageFound(image), req_info, resp_info)

        return GeneratorResult(NoImage("First data entry holds no image"), req_info, resp_info)
