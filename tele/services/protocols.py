"""Single-method contracts for the three remote services.

Real and mock implementations both satisfy these, which lets the selector
and the orchestrator swap them without touching call sites.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from tele.imaging.models import NormalizedRect
    from tele.pipeline.models import CaptureFrame
    from tele.services.models import AnalysisRecord, PromptRecord


class VisionService(Protocol):
    """Analyzes a full frame and its zoomed crop."""

    async def analyze(
        self,
        full_image: bytes,
        crop_image: bytes,
        frame: CaptureFrame,
    ) -> AnalysisRecord:
        """Return a scene analysis tagged with ``frame.capture_id``."""
        ...


class PromptCompilerService(Protocol):
    """Turns an analysis into an enhancement prompt."""

    async def compile_prompt(
        self,
        analysis: AnalysisRecord,
        crop_rect: NormalizedRect,
        zoom_factor: float,
        base_prompt: str,
    ) -> PromptRecord:
        """Return a prompt tagged with the analysis capture id."""
        ...


class EnhancerService(Protocol):
    """Produces the final image from a prompt and a square crop."""

    async def enhance(self, prompt: PromptRecord, square_crop: bytes) -> bytes:
        """Return encoded image bytes."""
        ...
