"""
Data types passed between the codec, the generator clients, the compositor
and the workflow.
"""
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SourceImage:
    """Photo selected by the user."""
    data: bytes
    mime_type: str
    filename: str

    @property
    def stem(self) -> str:
        return Path(self.filename).stem or "image"


@dataclass(frozen=True)
class EncodedPayload:
    """Base64 form of a SourceImage, ready to be sent to a generator."""
    data: str
    mime_type: str


@dataclass(frozen=True)
class GeneratedImage:
    """Raster returned by the image service, before any caption is drawn."""
    data: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class FinalImage:
    """Image held by the workflow in the result state."""
    data: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True)
class BinaryBlob:
    """Decoded data URL, shaped like a browser File for sharing."""
    data: bytes
    mime_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.data)
