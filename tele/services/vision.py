"""Dual-image scene analysis backed by a vision chat model."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING

from tele.services.models import AnalysisRecord, ChatMessage, ImagePart, TextPart
from tele.services.structured_output import decode_record

if TYPE_CHECKING:
    from tele.pipeline.models import CaptureFrame
    from tele.services.chat import ChatClient

logger = logging.getLogger(__name__)

SERVICE_NAME: str = "vision"

VISION_SYSTEM_PROMPT: str = (
    "You are an expert in telephoto lens optics. Analyze the two images: the "
    "first is the full-frame context, the second is the cropped detail. "
    "Describe light, color and depth of field. Respond ONLY with a JSON object "
    'using the keys "scene_summary_full", "scene_summary_crop", '
    '"quality_flags_crop" and "constraints".'
)


class MoonshotVisionService:
    """Vision service that sends both frames to a multimodal chat model."""

    def __init__(
        self,
        chat: ChatClient,
        *,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 1000,
    ) -> None:
        self._chat = chat
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def analyze(
        self,
        full_image: bytes,
        crop_image: bytes,
        frame: CaptureFrame,
    ) -> AnalysisRecord:
        """Analyze the full frame and the crop.

        Args:
            full_image: Downscaled full frame, JPEG.
            crop_image: Downscaled crop, JPEG.
            frame: Capture being developed.

        Returns:
            The analysis, carrying the local capture id.

        Raises:
            DecodeFailureError: If the model output is not a valid analysis.
            ServiceError: Propagated from the transport.
        """
        messages = [
            ChatMessage.text("system", VISION_SYSTEM_PROMPT),
            ChatMessage(
                role="user",
                content=[
                    TextPart(
                        text=(
                            "Analyze the context (full) and the detail (crop). "
                            f"Zoom: {frame.zoom_factor:g}x."
                        ),
                    ),
                    ImagePart.from_base64(base64.b64encode(full_image).decode("ascii")),
                    ImagePart.from_base64(base64.b64encode(crop_image).decode("ascii")),
                ],
            ),
        ]
        response = await self._chat.complete(
            self._model,
            messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        record = decode_record(response.first_content, AnalysisRecord, service_name=SERVICE_NAME)
        logger.info("Vision analysis decoded for capture %s", frame.capture_id)
        return record.model_copy(update={"capture_id": frame.capture_id})
