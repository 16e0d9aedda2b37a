"""
画像入力モジュール
Image intake for camera frames and uploaded photos.

Camera frames arrive as base64 data URLs drawn from the browser canvas,
uploads arrive as raw file bytes. Both are checked, optionally mirrored
and re-encoded to a single JPEG payload consumed by the analysis call.
"""
import base64
import binascii
import io
import logging
import time
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

import config

logger = logging.getLogger(__name__)


class ImageRejected(ValueError):
    """The supplied data is not an acceptable image."""


@dataclass
class ImagePayload:
    data: bytes
    mime_type: str
    width: int
    height: int
    source: str

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


def decode_data_url(data_url: str) -> bytes:
    """data:image/jpeg;base64,... (or bare base64) -> bytes"""
    if not data_url or not isinstance(data_url, str):
        raise ImageRejected("No image data received")

    if "," in data_url:
        header, encoded = data_url.split(",", 1)
        if not header.startswith("data:image/"):
            raise ImageRejected("Please select an image file")
    else:
        encoded = data_url

    # reject before decoding when the payload is obviously too large
    if len(encoded) * 3 // 4 > config.MAX_IMAGE_BYTES:
        raise ImageRejected(_too_large_message())

    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ImageRejected("Image data is not valid base64")


def _too_large_message() -> str:
    limit_mb = config.MAX_IMAGE_BYTES / 1024 / 1024
    return f"Image size too large. Please use an image under {limit_mb:.1f}MB."


def load_image(
    raw: bytes,
    source: str = "upload",
    mirror: bool = False,
) -> ImagePayload:
    """
    画像バイト列を検証し、JPEG に正規化する。

    Args:
        raw: image file bytes (any supported format)
        source: "camera" or "upload"
        mirror: flip horizontally to match a mirrored preview

    Returns:
        ImagePayload with RGB JPEG data

    Raises:
        ImageRejected: empty, oversized or not an image
    """
    if not raw:
        raise ImageRejected("No image data received")
    if len(raw) > config.MAX_IMAGE_BYTES:
        raise ImageRejected(_too_large_message())

    t_start = time.time()
    try:
        with Image.open(io.BytesIO(raw)) as probe:
            probe.verify()
        image = Image.open(io.BytesIO(raw))
        fmt = image.format
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
        raise ImageRejected("Please select an image file") from e

    if fmt not in config.ACCEPTED_FORMATS:
        raise ImageRejected(f"Unsupported format: {fmt}. Use JPEG or PNG")

    image = ImageOps.exif_transpose(image)
    if image.mode != "RGB":
        image = image.convert("RGB")
    if mirror:
        image = ImageOps.mirror(image)

    edge = config.MAX_IMAGE_EDGE
    if max(image.size) > edge:
        image.thumbnail((edge, edge))

    out = io.BytesIO()
    image.save(out, format="JPEG", quality=config.JPEG_QUALITY)
    data = out.getvalue()

    logger.debug(
        "normalised %s image %s -> %dx%d, %d bytes in %.1f ms",
        source, fmt, image.width, image.height, len(data),
        (time.time() - t_start) * 1000,
    )
    return ImagePayload(
        data=data,
        mime_type="image/jpeg",
        width=image.width,
        height=image.height,
        source=source,
    )


def load_data_url(data_url: str, mirror: bool = False) -> ImagePayload:
    return load_image(decode_data_url(data_url), source="camera", mirror=mirror)
