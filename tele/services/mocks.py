"""Deterministic local stand-ins for the remote services.

Used when credentials are missing and as the overload fallback. Results
are flagged ``synthetic`` so downstream stages can tell them apart.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from tele.services.models import AnalysisRecord, PromptRecord

if TYPE_CHECKING:
    from tele.imaging.models import NormalizedRect
    from tele.pipeline.models import CaptureFrame

logger = logging.getLogger(__name__)

VISION_LATENCY_SECONDS: float = 0.8
PROMPT_LATENCY_SECONDS: float = 0.5
ENHANCER_LATENCY_SECONDS: float = 1.5

MOCK_NEGATIVE_PROMPT: str = "blurry, distorted, artificial, over-smoothed, fake bokeh"


class _SimulatedLatency:
    def __init__(
        self,
        latency_scale: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._latency_scale = max(0.0, latency_scale)
        self._sleep = sleep

    async def _simulate(self, seconds: float) -> None:
        await self._sleep(seconds * self._latency_scale)


class MockVisionService(_SimulatedLatency):
    """Returns a canned telephoto scene analysis."""

    async def analyze(
        self,
        full_image: bytes,
        crop_image: bytes,
        frame: CaptureFrame,
    ) -> AnalysisRecord:
        await self._simulate(VISION_LATENCY_SECONDS)
        logger.debug("Mock vision analysis for capture %s", frame.capture_id)
        return AnalysisRecord(
            capture_id=frame.capture_id,
            scene_summary_full="Mock full scene analysis with telephoto constraints",
            scene_summary_crop="Mock crop analysis showing subject isolation",
            quality_flags_crop="sharp, well-exposed, minor noise",
            constraints="preserve grain, natural bokeh, avoid oversmoothing",
        ).as_synthetic()


class MockPromptCompiler(_SimulatedLatency):
    """Returns the base prompt annotated with zoom and crop geometry."""

    async def compile_prompt(
        self,
        analysis: AnalysisRecord,
        crop_rect: NormalizedRect,
        zoom_factor: float,
        base_prompt: str,
    ) -> PromptRecord:
        await self._simulate(PROMPT_LATENCY_SECONDS)
        return PromptRecord(
            capture_id=analysis.capture_id or str(uuid.uuid4()),
            nb_prompt=f"{base_prompt} | Zoom: {zoom_factor:g}x | Crop: {crop_rect}",
            nb_negative=MOCK_NEGATIVE_PROMPT,
            render_notes="Mock K2 processing with grain preservation",
        ).as_synthetic()


class MockEnhancer(_SimulatedLatency):
    """Echoes the square crop back as the enhanced image."""

    async def enhance(self, prompt: PromptRecord, square_crop: bytes) -> bytes:
        await self._simulate(ENHANCER_LATENCY_SECONDS)
        return square_crop
