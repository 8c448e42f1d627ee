"""Pipeline data models: capture frames, run state and run reports."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from tele.imaging.models import NormalizedRect
from tele.services.models import AnalysisRecord, PromptRecord


class StageName(StrEnum):
    """Sequential phases of one develop run."""

    ANALYZING_VISION = "analyzing_vision"
    BUILDING_PROMPT = "building_prompt"
    ENHANCING_WITH_AI = "enhancing_with_ai"


STAGE_PROGRESS: dict[StageName, float] = {
    StageName.ANALYZING_VISION: 0.3,
    StageName.BUILDING_PROMPT: 0.6,
    StageName.ENHANCING_WITH_AI: 0.9,
}


class CameraMetadata(BaseModel):
    """Exposure parameters recorded with a capture."""

    model_config = ConfigDict(frozen=True)

    iso: float = Field(default=100.0, gt=0)
    shutter_s: float = Field(default=1 / 125, gt=0)
    ev: float = 0.0
    wb_kelvin: float = Field(default=5500.0, gt=0)
    focal_mm: float | None = Field(default=None, gt=0)
    orientation_upright: bool = True


class CaptureFrame(BaseModel):
    """Immutable record of one shutter event and its crop geometry."""

    model_config = ConfigDict(frozen=True)

    capture_id: str = Field(min_length=1)
    zoom_factor: float = Field(ge=1.0)
    full_width: int = Field(ge=1)
    full_height: int = Field(ge=1)
    crop_width: int = Field(ge=1)
    crop_height: int = Field(ge=1)
    crop_rect: NormalizedRect
    metadata: CameraMetadata = Field(default_factory=CameraMetadata)

    @property
    def crop_center(self) -> tuple[float, float]:
        """Return the normalized center of the crop rectangle."""
        return self.crop_rect.center


class _StateBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def is_processing(self) -> bool:
        """Return whether a stage is currently running."""
        return False

    @property
    def is_terminal(self) -> bool:
        """Return whether the run has finished."""
        return False


class IdleState(_StateBase):
    """No run in progress."""

    kind: Literal["idle"] = "idle"


class StageState(_StateBase):
    """A stage is running."""

    kind: Literal["stage"] = "stage"
    name: StageName
    progress: float = Field(ge=0.0, le=1.0)

    @property
    def is_processing(self) -> bool:
        return True

    @classmethod
    def for_stage(cls, name: StageName) -> StageState:
        """Build the state for ``name`` with its fixed progress value."""
        return cls(name=name, progress=STAGE_PROGRESS[name])


class CompletedState(_StateBase):
    """The run produced a final image."""

    kind: Literal["completed"] = "completed"
    image_bytes: bytes = Field(min_length=1)

    @property
    def is_terminal(self) -> bool:
        return True


class FailedState(_StateBase):
    """The run ended with an error the caller can show and retry."""

    kind: Literal["failed"] = "failed"
    reason: str
    recoverable: bool = True

    @property
    def is_terminal(self) -> bool:
        return True


PipelineState = Annotated[
    IdleState | StageState | CompletedState | FailedState,
    Field(discriminator="kind"),
]


def optical_compression_factor(zoom_factor: float) -> float:
    """Return the presentation-only optical compression factor for a zoom."""
    return 0.85 - min(1.0, zoom_factor / 10.0) * 0.15


class DevelopReport(BaseModel):
    """Timing and provenance of a completed develop run."""

    model_config = ConfigDict(frozen=True)

    capture_id: str
    zoom_factor: float
    stage_elapsed_ms: dict[StageName, float]
    total_elapsed_ms: float
    optical_compression_factor: float
    fallback_stages: list[StageName] = Field(default_factory=list)
    consistency_ok: bool = True
    consistency_issues: list[str] = Field(default_factory=list)
    analysis: AnalysisRecord
    prompt: PromptRecord

    def summary_lines(self) -> list[str]:
        """Render the report as human-readable lines."""
        lines = [f"capture {self.capture_id} at {self.zoom_factor:g}x"]
        lines.extend(
            f"  {stage}: {elapsed:.0f} ms" for stage, elapsed in self.stage_elapsed_ms.items()
        )
        lines.append(f"  total: {self.total_elapsed_ms:.0f} ms")
        lines.append(f"  optical compression: {self.optical_compression_factor:.3f}")
        if self.fallback_stages:
            stages = ", ".join(str(stage) for stage in self.fallback_stages)
            lines.append(f"  fallback to mock: {stages}")
        if not self.consistency_ok:
            lines.append(f"  consistency warnings: {'; '.join(self.consistency_issues)}")
        return lines
