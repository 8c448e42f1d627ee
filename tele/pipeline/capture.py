"""Capture frame construction from raw shutter bytes."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from tele.imaging.crop import (
    DEFAULT_JPEG_QUALITY,
    DEFAULT_OUTPUT_MAX_DIMENSION,
    crop_for_zoom,
    sanitize_zoom,
)
from tele.pipeline.models import CameraMetadata, CaptureFrame

if TYPE_CHECKING:
    from tele.imaging.models import CropResult

logger = logging.getLogger(__name__)


def build_capture_frame(
    image_bytes: bytes,
    zoom_factor: float,
    center: tuple[float, float] = (0.5, 0.5),
    metadata: CameraMetadata | None = None,
    capture_id: str | None = None,
    *,
    output_max_dimension: int = DEFAULT_OUTPUT_MAX_DIMENSION,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> tuple[CaptureFrame, CropResult]:
    """Run the crop engine and wrap its geometry in a ``CaptureFrame``.

    Args:
        image_bytes: Encoded full-resolution capture.
        zoom_factor: Requested digital zoom.
        center: Normalized crop center.
        metadata: Exposure metadata; defaults are used when omitted.
        capture_id: Identifier for the capture; a UUID4 when omitted.
        output_max_dimension: Longer-side cap of the returned crop.
        quality: JPEG quality of the returned crop.

    Returns:
        The frame record and the encoded crop.

    Raises:
        ImageProcessingError: If the crop engine fails.
    """
    crop = crop_for_zoom(
        image_bytes,
        zoom_factor,
        center,
        output_max_dimension=output_max_dimension,
        quality=quality,
    )
    frame = CaptureFrame(
        capture_id=capture_id or str(uuid.uuid4()),
        zoom_factor=sanitize_zoom(zoom_factor),
        full_width=crop.full_width,
        full_height=crop.full_height,
        crop_width=crop.crop_width,
        crop_height=crop.crop_height,
        crop_rect=crop.crop_rect,
        metadata=metadata or CameraMetadata(),
    )
    logger.info(
        "Captured frame %s: %dx%d, crop %dx%d at %.2fx",
        frame.capture_id,
        frame.full_width,
        frame.full_height,
        frame.crop_width,
        frame.crop_height,
        frame.zoom_factor,
    )
    return frame, crop
