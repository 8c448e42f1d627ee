"""Image decoding, cropping and encoding errors."""

from typing import ClassVar

from tele.exceptions.base import TeleError


class ImageProcessingError(TeleError):
    """Base class for crop engine failures."""

    error_code: ClassVar[str] = "IMAGE_PROCESSING_ERROR"


class InvalidImageDataError(ImageProcessingError):
    """Input bytes could not be decoded as an image."""

    error_code: ClassVar[str] = "INVALID_IMAGE_DATA"


class CropFailedError(ImageProcessingError):
    """The crop rectangle could not be extracted from the image."""

    error_code: ClassVar[str] = "CROP_FAILED"


class EncodeFailedError(ImageProcessingError):
    """The cropped image could not be re-encoded."""

    error_code: ClassVar[str] = "ENCODE_FAILED"
