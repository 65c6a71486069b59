"""
Export helpers for a finished graduation photo: download, share and e-mail.
"""
from dataclasses import dataclass
from typing import List
from urllib.parse import quote

from .codec import decode_data_url, to_data_url
from .compositor import ensure_png
from .models import BinaryBlob, FinalImage, SourceImage

SHARE_TITLE = "My Graduation Photo"
MAIL_SUBJECT = "My Graduation Photo"
MAIL_BODY = "Check out my graduation photo!"


@dataclass(frozen=True)
class ShareBundle:
    """Arguments for a native share sheet."""
    title: str
    text: str
    files: List[BinaryBlob]


def download_filename(source: SourceImage) -> str:
    return f"graduation-{source.stem}.png"


def download_data_url(final: FinalImage) -> str:
    """PNG data URL of the final image."""
    return to_data_url(ensure_png(final.data, final.mime_type), "image/png")


def build_share_bundle(final: FinalImage, source: SourceImage, caption: str) -> ShareBundle:
    """
    Share payload with a single PNG file.

    Raises:
        GradPhotoError(MALFORMED_INPUT) if the image cannot be turned into a file
    """
    blob = decode_data_url(download_data_url(final), download_filename(source))
    return ShareBundle(title=SHARE_TITLE, text=caption, files=[blob])


def mailto_link(subject: str = MAIL_SUBJECT, body: str = MAIL_BODY) -> str:
    """`mailto:` link with a static subject and body. Links cannot carry attachments."""
    return f"mailto:?subject={quote(subject)}&body={quote(body)}"
