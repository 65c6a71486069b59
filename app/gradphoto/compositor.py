"""
Caption compositor.
Burns a multi-line caption into the bottom of a raster image with Pillow.
"""
import io
import logging
from typing import List

from PIL import Image, ImageDraw, ImageFilter, ImageFont, UnidentifiedImageError

from .errors import ErrorKind, GradPhotoError

logger = logging.getLogger(__name__)

MIN_FONT_SIZE = 24
FONT_WIDTH_DIVISOR = 28
LINE_HEIGHT_FACTOR = 1.2
MIN_BOTTOM_MARGIN = 20
BOTTOM_MARGIN_RATIO = 0.05

TEXT_FILL = (255, 255, 255, 255)
SHADOW_FILL = (0, 0, 0, 204)
SHADOW_OFFSET = (2, 2)
# Blur extent in pixels; the gaussian sigma is half of it.
SHADOW_BLUR = 6

FONT_CANDIDATES = [
    "DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "Arial Bold.ttf",
    "arialbd.ttf",
    "Helvetica-Bold.ttf",
]


def font_size_for(width: int) -> int:
    return max(MIN_FONT_SIZE, round(width / FONT_WIDTH_DIVISOR))


def bottom_margin_for(height: int) -> int:
    return max(MIN_BOTTOM_MARGIN, round(height * BOTTOM_MARGIN_RATIO))


def line_positions(line_count: int, height: int, font_size: int) -> List[float]:
    """
    Bottom Y coordinate of each caption line, first line first.
    The last line sits on the bottom margin and earlier lines stack upward.
    """
    line_height = font_size * LINE_HEIGHT_FACTOR
    bottom = height - bottom_margin_for(height)
    return [bottom - (line_count - 1 - i) * line_height for i in range(line_count)]


def load_font(size: int) -> ImageFont.FreeTypeFont:
    for candidate in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    logger.debug("No bold TrueType font found, using Pillow's built-in font")
    return ImageFont.load_default(size=size)


def decode_image(image_bytes: bytes) -> Image.Image:
    """
    Rasterize image bytes.

    Raises:
        GradPhotoError(DECODE_FAILURE) if Pillow cannot read the bytes
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, TypeError) as e:
        raise GradPhotoError(ErrorKind.DECODE_FAILURE, "Could not decode image bytes", cause=e) from e
    return image


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def ensure_png(image_bytes: bytes, mime_type: str) -> bytes:
    """Return PNG bytes, re-encoding when the image is in another format."""
    if mime_type == "image/png":
        return image_bytes
    return encode_png(decode_image(image_bytes))


def add_caption(image_bytes: bytes, caption: str) -> bytes:
    """
    Draw the caption onto the image and return PNG bytes.

    Each line is centred horizontally, filled white, over a blurred black
    shadow offset by SHADOW_OFFSET. The output keeps the input dimensions.
    An empty (or whitespace only) caption returns the input bytes untouched.

    Raises:
        GradPhotoError(DECODE_FAILURE) if the image cannot be decoded
    """
    if not caption or not caption.strip():
        return image_bytes

    base = decode_image(image_bytes).convert("RGBA")
    width, height = base.size

    font_size = font_size_for(width)
    font = load_font(font_size)
    lines = caption.split("\n")
    positions = line_positions(len(lines), height, font_size)
    center_x = width / 2

    shadow = Image.new("RGBA", base.size, (0, 0, 0, 0))
    shadow_draw = ImageDraw.Draw(shadow)
    dx, dy = SHADOW_OFFSET
    for line, y in zip(lines, positions):
        shadow_draw.text((center_x + dx, y + dy), line, font=font, fill=SHADOW_FILL, anchor="md")
    shadow = shadow.filter(ImageFilter.GaussianBlur(radius=SHADOW_BLUR / 2))

    composed = Image.alpha_composite(base, shadow)
    draw = ImageDraw.Draw(composed)
    for line, y in zip(lines, positions):
        draw.text((center_x, y), line, font=font, fill=TEXT_FILL, anchor="md")

    logger.info(f"Captioned {width}x{height} image with {len(lines)} line(s) at {font_size}px")
    return encode_png(composed)
