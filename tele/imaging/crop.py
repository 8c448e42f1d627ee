"""Digital-zoom crop engine.

Maps (full image, zoom factor, normalized center) to a crop rectangle on
the original image, extracts it, downscales it to an output cap and
re-encodes it. The function holds no state, so it can run on a worker
thread while network calls are outstanding.
"""

from __future__ import annotations

import io
import logging
import math

from PIL import Image, ImageOps, UnidentifiedImageError

from tele.exceptions.base import InvalidInputError
from tele.exceptions.image_errors import CropFailedError, EncodeFailedError, InvalidImageDataError
from tele.imaging.models import CropResult, ImageFormat, NormalizedRect

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_MAX_DIMENSION: int = 1600
OUTPUT_DIMENSION_CEILING: int = 4096
DEFAULT_JPEG_QUALITY: int = 90


def sanitize_zoom(zoom_factor: float) -> float:
    """Return the zoom factor, or 1.0 when it is non-finite or below 1."""
    if not math.isfinite(zoom_factor) or zoom_factor < 1.0:
        return 1.0
    return float(zoom_factor)


def sanitize_center(center_x: float, center_y: float) -> tuple[float, float]:
    """Return the center clamped to [0, 1], defaulting non-finite axes to 0.5."""
    cx = center_x if math.isfinite(center_x) else 0.5
    cy = center_y if math.isfinite(center_y) else 0.5
    return (min(max(cx, 0.0), 1.0), min(max(cy, 0.0), 1.0))


def crop_for_zoom(
    image_bytes: bytes,
    zoom_factor: float,
    center: tuple[float, float] = (0.5, 0.5),
    *,
    output_max_dimension: int = DEFAULT_OUTPUT_MAX_DIMENSION,
    quality: int = DEFAULT_JPEG_QUALITY,
    force_square: bool = False,
    image_format: ImageFormat = ImageFormat.JPEG,
) -> CropResult:
    """Crop a full-resolution image to simulate a digital zoom.

    The crop spans ``full / zoom`` on each axis (the shorter of the two on
    both axes when ``force_square``), centered on ``center`` and shifted
    inward so it never leaves the image. The crop is downscaled so its
    longer side is at most ``output_max_dimension``; it is never upscaled.

    Args:
        image_bytes: Encoded full-frame image.
        zoom_factor: Requested zoom, at least 1.0.
        center: Normalized (x, y) crop center.
        output_max_dimension: Cap on the longer output side, limited to 4096.
        quality: JPEG quality (1-100). Ignored for PNG.
        force_square: Produce a 1:1 crop regardless of source aspect ratio.
        image_format: Output encoding.

    Returns:
        The encoded crop plus its geometry relative to the original image.

    Raises:
        InvalidInputError: If ``output_max_dimension`` is below 1.
        InvalidImageDataError: If the input cannot be decoded.
        CropFailedError: If the rectangle cannot be extracted.
        EncodeFailedError: If the result cannot be re-encoded.
    """
    if output_max_dimension < 1:
        raise InvalidInputError(
            "Output size must be at least 1 pixel",
            field="output_max_dimension",
            value=output_max_dimension,
        )
    zoom = sanitize_zoom(zoom_factor)
    center_x, center_y = sanitize_center(*center)
    if zoom != zoom_factor or (center_x, center_y) != tuple(center):
        logger.debug(
            "Sanitized crop inputs (zoom=%s, center=(%s, %s))",
            zoom,
            center_x,
            center_y,
        )

    source = _decode_upright(image_bytes)
    full_width, full_height = source.size

    crop_width = min(max(full_width / zoom, 1.0), float(full_width))
    crop_height = min(max(full_height / zoom, 1.0), float(full_height))
    if force_square:
        side = min(crop_width, crop_height)
        crop_width = side
        crop_height = side

    origin_x = center_x * full_width - crop_width / 2.0
    origin_y = center_y * full_height - crop_height / 2.0
    origin_x = max(0.0, min(origin_x, full_width - crop_width))
    origin_y = max(0.0, min(origin_y, full_height - crop_height))

    crop_rect = NormalizedRect(
        x=origin_x / full_width,
        y=origin_y / full_height,
        w=crop_width / full_width,
        h=crop_height / full_height,
    )

    box = _pixel_box(
        origin_x=origin_x,
        origin_y=origin_y,
        crop_width=crop_width,
        crop_height=crop_height,
        full_width=full_width,
        full_height=full_height,
    )
    try:
        cropped = source.crop(box)
    except (OSError, ValueError) as error:
        raise CropFailedError(
            f"Failed to extract crop {box} from {full_width}x{full_height} image: {error}",
            context={"box": box},
        ) from error

    resized = _downscale(cropped, output_max_dimension)
    encoded = _encode(resized, image_format=image_format, quality=quality)

    return CropResult(
        image_bytes=encoded,
        image_format=image_format,
        crop_rect=crop_rect,
        full_width=full_width,
        full_height=full_height,
        crop_width=box[2] - box[0],
        crop_height=box[3] - box[1],
        output_width=resized.width,
        output_height=resized.height,
    )


def downscale_image(
    image_bytes: bytes,
    max_dimension: int,
    *,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> CropResult:
    """Return the whole frame re-encoded with its longer side capped.

    Args:
        image_bytes: Encoded full-frame image.
        max_dimension: Cap on the longer output side.
        quality: JPEG quality (1-100).

    Returns:
        A crop result whose rectangle is the unit square.
    """
    return crop_for_zoom(
        image_bytes,
        1.0,
        (0.5, 0.5),
        output_max_dimension=max_dimension,
        quality=quality,
    )


def decode_image_size(image_bytes: bytes) -> tuple[int, int]:
    """Decode an image fully and return its pixel size.

    Raises:
        InvalidImageDataError: If the bytes are not a decodable image.
    """
    return _decode_upright(image_bytes).size


def _decode_upright(image_bytes: bytes) -> Image.Image:
    """Decode bytes and apply EXIF orientation so pixels match the upright view."""
    if not image_bytes:
        raise InvalidImageDataError("Image data is empty")
    try:
        with Image.open(io.BytesIO(image_bytes)) as opened:
            opened.load()
            upright = ImageOps.exif_transpose(opened)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as error:
        raise InvalidImageDataError(
            f"Failed to decode image data ({len(image_bytes)} bytes): {error}",
        ) from error

    if upright.mode not in ("RGB", "L"):
        upright = upright.convert("RGB")
    return upright


def _pixel_box(
    *,
    origin_x: float,
    origin_y: float,
    crop_width: float,
    crop_height: float,
    full_width: int,
    full_height: int,
) -> tuple[int, int, int, int]:
    """Snap the sub-pixel rectangle to an integer box inside the image."""
    width_px = max(1, min(full_width, round(crop_width)))
    height_px = max(1, min(full_height, round(crop_height)))
    left = max(0, min(round(origin_x), full_width - width_px))
    top = max(0, min(round(origin_y), full_height - height_px))
    return (left, top, left + width_px, top + height_px)


def _downscale(image: Image.Image, output_max_dimension: int) -> Image.Image:
    max_dimension = min(output_max_dimension, OUTPUT_DIMENSION_CEILING)
    width, height = image.size
    longest = max(width, height)
    if longest <= max_dimension:
        return image

    scale = max_dimension / float(longest)
    new_size = (max(1, round(width * scale)), max(1, round(height * scale)))
    return image.resize(new_size, Image.Resampling.LANCZOS)


def _encode(image: Image.Image, *, image_format: ImageFormat, quality: int) -> bytes:
    buffer = io.BytesIO()
    try:
        if image_format == ImageFormat.JPEG:
            image.save(buffer, format="JPEG", quality=min(max(quality, 1), 100))
        else:
            image.save(buffer, format="PNG")
    except (OSError, ValueError) as error:
        raise EncodeFailedError(
            f"Failed to encode {image.width}x{image.height} crop as {image_format}: {error}",
        ) from error
    return buffer.getvalue()
