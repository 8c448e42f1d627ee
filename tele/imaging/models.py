"""Crop geometry data models."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

RECT_EPSILON: float = 1e-9


class ImageFormat(StrEnum):
    """Encodings the crop engine can emit."""

    JPEG = "JPEG"
    PNG = "PNG"


class NormalizedRect(BaseModel):
    """Crop region expressed as fractions of the source image size."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)
    w: float = Field(ge=0.0, le=1.0)
    h: float = Field(ge=0.0, le=1.0)

    @property
    def center(self) -> tuple[float, float]:
        """Return the rectangle center in normalized coordinates."""
        return (self.x + self.w / 2.0, self.y + self.h / 2.0)

    def is_within_unit_square(self) -> bool:
        """Return whether the rectangle lies inside the unit square."""
        return (
            self.x >= 0.0
            and self.y >= 0.0
            and self.x + self.w <= 1.0 + RECT_EPSILON
            and self.y + self.h <= 1.0 + RECT_EPSILON
        )

    def __str__(self) -> str:
        return f"x={self.x:.4f} y={self.y:.4f} w={self.w:.4f} h={self.h:.4f}"


class CropResult(BaseModel):
    """Output of one crop engine invocation."""

    model_config = ConfigDict(frozen=True)

    image_bytes: bytes
    image_format: ImageFormat
    crop_rect: NormalizedRect
    full_width: int = Field(ge=1)
    full_height: int = Field(ge=1)
    crop_width: int = Field(ge=1)
    crop_height: int = Field(ge=1)
    output_width: int = Field(ge=1)
    output_height: int = Field(ge=1)
