"""
Base Generator class for graduation photo providers.
"""
import logging
from dataclasses import dataclass
from typing import List, Tuple, Union

import requests

from ..errors import ErrorKind, GradPhotoError
from ..models import EncodedPayload, GeneratedImage
from ..prompt import build_prompt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageFound:
    """The provider response carried an inline image."""
    image: GeneratedImage


@dataclass(frozen=True)
class NoImage:
    """The provider responded without any image part."""
    reason: str = "No image part in response"


ImageExtraction = Union[ImageFound, NoImage]


@dataclass
class GeneratorResult:
    """Outcome of one request to an image provider."""
    extraction: ImageExtraction
    request_info: str = ""
    response_info: str = ""

    @property
    def success(self) -> bool:
        return isinstance(self.extraction, ImageFound)


class BaseGenerator:
    """Abstract base class for image generators."""

    name = "base"

    # (environment variable, attribute holding its value) pairs that must be set
    REQUIRED_CONFIG: Tuple[Tuple[str, str], ...] = ()

    def is_configured(self) -> bool:
        """Check if the generator has every required setting."""
        return not self.get_missing_config()

    def get_missing_config(self) -> List[str]:
        """Return list of missing configuration variables."""
        return [env for env, attr in self.REQUIRED_CONFIG if not getattr(self, attr, None)]

    def process_image(self, payload: EncodedPayload, prompt: str) -> GeneratorResult:
        """
        Send one edit request and extract the returned image.
        Must be implemented by subclasses.

        Args:
            payload: Base64 image and its MIME type
            prompt: Editing instruction

        Returns:
            GeneratorResult tagged with ImageFound or NoImage

        Raises:
            requests.RequestException or ValueError on transport/service failures
        """
        raise NotImplementedError("Subclasses must implement process_image")

    def generate(self, payload: EncodedPayload, caption: str = "") -> GeneratedImage:
        """
        Run one generation and return the image.

        Raises:
            GradPhotoError(NO_IMAGE_RETURNED) if the response holds no image
            GradPhotoError(GENERATION_FAILED) on any transport or service failure
        """
        if not self.is_configured():
            missing = ", ".join(self.get_missing_config())
            logger.error(f"{self.name} generator is not configured, missing: {missing}")
            raise GradPhotoError(
                ErrorKind.GENERATION_FAILED,
                f"Missing required environment variables: {missing}",
            )

        prompt = build_prompt(caption)
        try:
            result = self.process_image(payload, prompt)
        except GradPhotoError:
            raise
        except (requests.exceptions.RequestException, ValueError, KeyError, TypeError) as e:
            logger.error(f"{self.name} generation failed: {e}")
            raise GradPhotoError(ErrorKind.GENERATION_FAILED, cause=e) from e

        logger.info(f"{self.name} response:\n{result.response_info}")
        if isinstance(result.extraction, NoImage):
            logger.warning(f"{self.name} returned no image: {result.extraction.reason}")
            raise GradPhotoError(ErrorKind.NO_IMAGE_RETURNED, result.extraction.reason)
        return result.extraction.image
