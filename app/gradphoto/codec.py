"""
Image codec helpers.
Converts uploaded photos to base64 payloads and data URLs back to binary blobs.
"""
import base64
import binascii
import logging
import mimetypes
import re
from pathlib import Path
from typing import Optional, Union

from .errors import ErrorKind, GradPhotoError
from .models import BinaryBlob, EncodedPayload, SourceImage

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/png"

DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[\w.+-]+=[^;,]*)*);base64,(?P<data>.*)$",
    re.DOTALL,
)


def guess_mime_type(filename: str, declared: Optional[str] = None) -> str:
    """
    Resolve the MIME type of an uploaded file.
    The declared type wins; otherwise guess from the extension.
    """
    if declared:
        return declared
    mime_type, _ = mimetypes.guess_type(filename or "")
    return mime_type or DEFAULT_MIME_TYPE


def read_source(path: Union[str, Path], mime_type: Optional[str] = None) -> SourceImage:
    """
    Load a SourceImage from disk.

    Raises:
        GradPhotoError(IO_FAILURE) if the file cannot be read
    """
    path = Path(path)
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.error(f"Could not read {path}: {e}")
        raise GradPhotoError(ErrorKind.IO_FAILURE, f"Could not read {path.name}", cause=e) from e

    return SourceImage(data=data, mime_type=guess_mime_type(path.name, mime_type), filename=path.name)


def encode(source: SourceImage) -> EncodedPayload:
    """Base64-encode a SourceImage, keeping its MIME type."""
    try:
        encoded = base64.b64encode(source.data).decode("ascii")
    except TypeError as e:
        raise GradPhotoError(ErrorKind.IO_FAILURE, f"Unreadable content in {source.filename}", cause=e) from e
    return EncodedPayload(data=encoded, mime_type=source.mime_type)


def to_data_url(data: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    b64 = base64.b64encode(data).decode("utf-8")
    return f"data:{mime_type};base64,{b64}"


def decode_data_url(data_url: str, filename: str) -> BinaryBlob:
    """
    Parse a `data:<mime>;base64,<data>` URL into a BinaryBlob.

    Raises:
        GradPhotoError(MALFORMED_INPUT) if the URL is not a well formed base64 data URL
    """
    if not isinstance(data_url, str):
        raise GradPhotoError(ErrorKind.MALFORMED_INPUT, "Data URL must be a string")

    match = DATA_URL_PATTERN.match(data_url.strip())
    if not match:
        raise GradPhotoError(ErrorKind.MALFORMED_INPUT, "Not a base64 data URL")

    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise GradPhotoError(ErrorKind.MALFORMED_INPUT, "Invalid base64 payload in data URL", cause=e) from e

    mime_type = match.group("mime") or "text/plain"
    return BinaryBlob(data=data, mime_type=mime_type, filename=filename)
