"""Develop pipeline orchestrator.

Drives one capture through vision analysis, prompt compilation and AI
enhancement. The orchestrator owns the observable ``PipelineState`` and is
the only code that mutates it. A new ``develop()`` call supersedes the
previous run: the old run keeps awaiting whatever request it already
dispatched, but at its next stage boundary it sees that its generation is
stale and stops without publishing anything.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from tele.config import get_settings
from tele.exceptions.base import TeleError
from tele.exceptions.image_errors import InvalidImageDataError
from tele.exceptions.service_errors import (
    BadServerResponseError,
    ServiceError,
    ServiceOverloadedError,
)
from tele.imaging.crop import crop_for_zoom, decode_image_size
from tele.imaging.models import ImageFormat
from tele.logging.context import bind_stage, capture_scope
from tele.pipeline.models import (
    CompletedState,
    DevelopReport,
    FailedState,
    IdleState,
    PipelineState,
    StageName,
    StageState,
    optical_compression_factor,
)
from tele.services.client import OVERLOAD_STATUSES
from tele.services.prompt_compiler import TELEPHOTO_BASE_PROMPT
from tele.services.selector import build_mock_services

if TYPE_CHECKING:
    from tele.config import TeleSettings
    from tele.logging.diagnostics import DiagnosticSink
    from tele.pipeline.models import CaptureFrame
    from tele.services.models import AnalysisRecord
    from tele.services.selector import ServiceSet

logger = logging.getLogger(__name__)

T = TypeVar("T")
StateObserver = Callable[[PipelineState], None]

DEPTH_LIGHT_KEYWORDS: tuple[str, ...] = (
    "profondità",
    "depth",
    "distanza",
    "distance",
    "bokeh",
    "luce",
    "light",
    "ombra",
    "shadow",
)

_DIAGNOSTIC_AREA: str = "PIPELINE"


def check_analysis_consistency(analysis: AnalysisRecord) -> list[str]:
    """Return the reasons an analysis looks too thin to trust.

    An empty list means the analysis passed. The check is advisory: the
    pipeline continues regardless of the result.
    """
    issues = [f"{name} is empty" for name in analysis.missing_required_fields()]
    combined = analysis.combined_summary.lower()
    if not any(keyword in combined for keyword in DEPTH_LIGHT_KEYWORDS):
        issues.append("summaries mention no depth or lighting cues")
    return issues


def is_overload(error: ServiceError) -> bool:
    """Return whether a service error should trigger mock substitution."""
    if isinstance(error, ServiceOverloadedError):
        return True
    return isinstance(error, BadServerResponseError) and error.status_code in OVERLOAD_STATUSES


@dataclass
class _RunContext:
    generation: int
    frame: CaptureFrame
    stage_elapsed_ms: dict[StageName, float] = field(default_factory=dict)
    fallback_stages: list[StageName] = field(default_factory=list)


class DevelopOrchestrator:
    """Runs the three-stage develop pipeline for one capture at a time."""

    def __init__(
        self,
        services: ServiceSet,
        *,
        fallback: ServiceSet | None = None,
        settings: TeleSettings | None = None,
        diagnostics: DiagnosticSink | None = None,
        base_prompt: str = TELEPHOTO_BASE_PROMPT,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            services: Implementations used for each stage.
            fallback: Implementations substituted when a stage is
                overloaded. Defaults to the deterministic mocks.
            settings: Geometry settings. Defaults to ``get_settings()``.
            diagnostics: Optional sink for stage-level diagnostic lines.
            base_prompt: Instruction template sent to the prompt compiler.
        """
        self._settings = settings or get_settings()
        self._services = services
        self._fallback = fallback or build_mock_services(self._settings)
        self._diagnostics = diagnostics
        self._base_prompt = base_prompt
        self._state: PipelineState = IdleState()
        self._observers: list[StateObserver] = []
        self._generation = 0
        self._report: DevelopReport | None = None

    @property
    def state(self) -> PipelineState:
        """Return the current pipeline state."""
        return self._state

    @property
    def report(self) -> DevelopReport | None:
        """Return the report of the last completed run, if any."""
        return self._report

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register a state observer.

        Observers are called synchronously, in registration order, on every
        transition of the active run.

        Returns:
            A callable that removes the observer.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def cancel(self) -> None:
        """Abandon the active run and return to ``Idle``."""
        self._generation += 1
        logger.info("Develop run cancelled")
        self._record("run cancelled")
        self._publish(IdleState())

    async def develop(self, full_image: bytes, frame: CaptureFrame) -> PipelineState | None:
        """Run the pipeline for one capture.

        Args:
            full_image: Encoded full-resolution capture.
            frame: Capture metadata and crop geometry.

        Returns:
            The terminal state of this run, or None if a later ``develop()``
            or ``cancel()`` superseded it.
        """
        self._generation += 1
        run = _RunContext(generation=self._generation, frame=frame)
        self._report = None
        with capture_scope(frame.capture_id):
            return await self._execute(run, full_image)

    async def _execute(self, run: _RunContext, full_image: bytes) -> PipelineState | None:
        frame = run.frame
        self._record(f"develop {frame.capture_id} at {frame.zoom_factor:g}x")
        started = time.perf_counter()
        square_task: asyncio.Task[bytes] | None = None

        try:
            if not self._transition(run, StageState.for_stage(StageName.ANALYZING_VISION)):
                return None
            full_small, crop_small = await asyncio.to_thread(self._analysis_inputs, full_image, frame)
            square_task = asyncio.create_task(asyncio.to_thread(self._square_crop, full_image, frame))

            analysis = await self._run_stage(
                run,
                StageName.ANALYZING_VISION,
                lambda services: services.vision.analyze(full_small, crop_small, frame),
            )
            if not self._transition(run, StageState.for_stage(StageName.BUILDING_PROMPT)):
                return None

            prompt = await self._run_stage(
                run,
                StageName.BUILDING_PROMPT,
                lambda services: services.prompt_compiler.compile_prompt(
                    analysis,
                    frame.crop_rect,
                    frame.zoom_factor,
                    self._base_prompt,
                ),
            )
            consistency_issues = check_analysis_consistency(analysis)
            if consistency_issues:
                logger.warning("Analysis consistency check failed: %s", "; ".join(consistency_issues))
                self._record(f"consistency warning: {'; '.join(consistency_issues)}")
            if not self._transition(run, StageState.for_stage(StageName.ENHANCING_WITH_AI)):
                return None

            square_crop = await square_task
            final_image = await self._run_stage(
                run,
                StageName.ENHANCING_WITH_AI,
                lambda services: services.enhancer.enhance(prompt, square_crop),
            )
            if not self._is_current(run):
                return None
            try:
                width, height = await asyncio.to_thread(decode_image_size, final_image)
            except InvalidImageDataError as error:
                return self._fail(run, f"Enhanced image is not decodable: {error.message}", error)
            if not self._is_current(run):
                return None
        except TeleError as error:
            return self._fail(run, error.message, error)
        except Exception as error:
            logger.exception("Unexpected develop failure for capture %s", frame.capture_id)
            return self._fail(run, f"Unexpected error: {error}")
        finally:
            if square_task is not None and not square_task.done():
                square_task.cancel()

        total_elapsed_ms = (time.perf_counter() - started) * 1000
        self._report = DevelopReport(
            capture_id=frame.capture_id,
            zoom_factor=frame.zoom_factor,
            stage_elapsed_ms=run.stage_elapsed_ms,
            total_elapsed_ms=total_elapsed_ms,
            optical_compression_factor=optical_compression_factor(frame.zoom_factor),
            fallback_stages=run.fallback_stages,
            consistency_ok=not consistency_issues,
            consistency_issues=consistency_issues,
            analysis=analysis,
            prompt=prompt,
        )
        logger.info(
            "Develop completed for capture %s: %dx%d in %.0f ms",
            frame.capture_id,
            width,
            height,
            total_elapsed_ms,
            extra={"elapsed_ms": round(total_elapsed_ms, 1)},
        )
        self._record(f"completed {width}x{height} in {total_elapsed_ms:.0f} ms")
        completed = CompletedState(image_bytes=final_image)
        if not self._transition(run, completed):
            return None
        return completed

    async def _run_stage(
        self,
        run: _RunContext,
        stage: StageName,
        call: Callable[[ServiceSet], Awaitable[T]],
    ) -> T:
        """Run one stage, substituting the fallback implementation on overload."""
        bind_stage(str(stage))
        started = time.perf_counter()
        try:
            result = await call(self._services)
        except ServiceError as error:
            if not is_overload(error) or not self._is_current(run):
                raise
            logger.warning(
                "Stage %s overloaded (%s), using fallback",
                stage,
                error.message,
                extra={"stage": str(stage)},
            )
            self._record(f"{stage} overloaded, substituting mock")
            run.fallback_stages.append(stage)
            result = await call(self._fallback)

        elapsed_ms = (time.perf_counter() - started) * 1000
        run.stage_elapsed_ms[stage] = elapsed_ms
        logger.info(
            "Stage %s finished in %.0f ms",
            stage,
            elapsed_ms,
            extra={"stage": str(stage), "elapsed_ms": round(elapsed_ms, 1)},
        )
        self._record(f"{stage} finished in {elapsed_ms:.0f} ms")
        return result

    def _analysis_inputs(self, full_image: bytes, frame: CaptureFrame) -> tuple[bytes, bytes]:
        """Return the full frame and the crop, both downscaled for analysis."""
        max_dimension = self._settings.analysis_max_dimension
        quality = self._settings.jpeg_quality
        full_small = crop_for_zoom(
            full_image,
            1.0,
            output_max_dimension=max_dimension,
            quality=quality,
        )
        crop_small = crop_for_zoom(
            full_image,
            frame.zoom_factor,
            frame.crop_center,
            output_max_dimension=max_dimension,
            quality=quality,
        )
        return full_small.image_bytes, crop_small.image_bytes

    def _square_crop(self, full_image: bytes, frame: CaptureFrame) -> bytes:
        """Return the forced-square PNG crop sent to the enhancer."""
        return crop_for_zoom(
            full_image,
            frame.zoom_factor,
            frame.crop_center,
            output_max_dimension=self._settings.square_dimension,
            force_square=True,
            image_format=ImageFormat.PNG,
        ).image_bytes

    def _fail(
        self,
        run: _RunContext,
        reason: str,
        error: TeleError | None = None,
    ) -> PipelineState | None:
        if not self._is_current(run):
            logger.debug("Discarding failure of superseded run: %s", reason)
            return None
        logger.error(
            "Develop failed for capture %s: %s",
            run.frame.capture_id,
            reason,
            extra={"error": error.to_log_dict()} if error is not None else None,
        )
        self._record(f"failed: {reason}")
        failed = FailedState(reason=reason, recoverable=True)
        self._publish(failed)
        return failed

    def _is_current(self, run: _RunContext) -> bool:
        return run.generation == self._generation

    def _transition(self, run: _RunContext, state: PipelineState) -> bool:
        """Publish ``state`` if ``run`` is still the active run."""
        if not self._is_current(run):
            logger.debug("Run %d superseded, dropping %s", run.generation, state.kind)
            return False
        self._publish(state)
        return True

    def _publish(self, state: PipelineState) -> None:
        self._state = state
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception:
                logger.exception("State observer failed on %s", state.kind)

    def _record(self, message: str) -> None:
        if self._diagnostics is not None:
            self._diagnostics.record(_DIAGNOSTIC_AREA, message)
