"""
Error kinds raised by the graduation photo pipeline.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure categories surfaced by the pipeline."""
    IO_FAILURE = "io_failure"
    MALFORMED_INPUT = "malformed_input"
    DECODE_FAILURE = "decode_failure"
    NO_IMAGE_RETURNED = "no_image_returned"
    GENERATION_FAILED = "generation_failed"


# Messages shown to the user; the underlying cause only goes to the log.
USER_MESSAGES = {
    ErrorKind.IO_FAILURE: "Could not read the selected file. Please choose another photo.",
    ErrorKind.MALFORMED_INPUT: "The image could not be prepared for export.",
    ErrorKind.DECODE_FAILURE: "Failed to load the generated image.",
    ErrorKind.NO_IMAGE_RETURNED: "The image service did not return a valid image.",
    ErrorKind.GENERATION_FAILED: "Could not generate the image. Please try again.",
}


class GradPhotoError(Exception):
    """Pipeline failure tagged with an ErrorKind."""

    def __init__(self, kind: ErrorKind, message: Optional[str] = None, cause: Optional[BaseException] = None):
        self.kind = kind
        self.message = message or USER_MESSAGES[kind]
        self.cause = cause
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.kind.value}: {self.message} ({self.cause})"
        return f"{self.kind.value}: {self.message}"
