"""Telephoto develop exception hierarchy.

Architecture:
    TeleError (base)
    ├── InvalidInputError
    ├── ImageProcessingError
    │   ├── InvalidImageDataError
    │   ├── CropFailedError
    │   └── EncodeFailedError
    └── ServiceError
        ├── ServiceOverloadedError
        ├── BadServerResponseError
        ├── DecodeFailureError
        └── NetworkError

Usage:
    from tele.exceptions import ServiceOverloadedError

    try:
        analysis = await vision.analyze(full_image, crop_image, frame)
    except ServiceOverloadedError:
        analysis = await fallback_vision.analyze(full_image, crop_image, frame)
"""

from tele.exceptions.base import InvalidInputError, TeleError
from tele.exceptions.image_errors import (
    CropFailedError,
    EncodeFailedError,
    ImageProcessingError,
    InvalidImageDataError,
)
from tele.exceptions.service_errors import (
    BadServerResponseError,
    DecodeFailureError,
    NetworkError,
    ServiceError,
    ServiceOverloadedError,
)

__all__ = [
    "BadServerResponseError",
    "CropFailedError",
    "DecodeFailureError",
    "EncodeFailedError",
    "ImageProcessingError",
    "InvalidImageDataError",
    "InvalidInputError",
    "NetworkError",
    "ServiceError",
    "ServiceOverloadedError",
    "TeleError",
]
