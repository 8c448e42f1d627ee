"""Enhancement prompt compilation backed by a text chat model."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tele.services.models import ChatMessage, PromptRecord
from tele.services.structured_output import decode_record

if TYPE_CHECKING:
    from tele.imaging.models import NormalizedRect
    from tele.services.chat import ChatClient
    from tele.services.models import AnalysisRecord

logger = logging.getLogger(__name__)

SERVICE_NAME: str = "prompt_compiler"

TELEPHOTO_BASE_PROMPT: str = (
    "Enhance this photo to look as if it was captured natively with a "
    "high-quality telephoto lens. Preserve natural photographic grain "
    "(ISO 100 equivalent) throughout the image. Maintain sharp subject edges "
    "without artificial smoothing."
)

PROMPT_SYSTEM_PROMPT: str = """\
You are a prompt engineer specialized in telephoto photography.
Analyze the data provided and write an image-editing prompt that:
1. Corrects aberrations and distortion
2. Asks for natural bokeh with correct depth
3. Keeps uniform photographic grain (ISO 100)
4. Avoids artificial smoothing on flat areas such as sky
5. Checks that the full-frame and crop analyses agree

Respond ONLY with valid JSON using the snake_case keys
"nb_prompt", "nb_negative", "render_notes"."""

SYNTHETIC_ANALYSIS_NOTE: str = (
    "Note: the analysis above is a generic placeholder, not an analysis of "
    "this photo. Keep the prompt conservative and avoid scene-specific claims."
)


class MoonshotPromptCompiler:
    """Prompt compiler that asks a chat model for a JSON prompt bundle."""

    def __init__(
        self,
        chat: ChatClient,
        *,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> None:
        self._chat = chat
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def compile_prompt(
        self,
        analysis: AnalysisRecord,
        crop_rect: NormalizedRect,
        zoom_factor: float,
        base_prompt: str,
    ) -> PromptRecord:
        """Compile an enhancement prompt from a scene analysis.

        The remote ``capture_id`` is discarded; the result always carries
        the analysis capture id.

        Raises:
            DecodeFailureError: If the model output is not a valid prompt.
            ServiceError: Propagated from the transport.
        """
        user_lines = [
            f"Vision analysis: {analysis.model_dump_json()}",
            f"Crop rect: {crop_rect.model_dump_json()}",
            f"Zoom factor: {zoom_factor:g}",
            f"User prompt: {base_prompt}",
        ]
        if analysis.synthetic:
            user_lines.append(SYNTHETIC_ANALYSIS_NOTE)
        user_lines.append("")
        user_lines.append("Produce the best prompt for a telephoto simulation.")

        messages = [
            ChatMessage.text("system", PROMPT_SYSTEM_PROMPT),
            ChatMessage.text("user", "\n".join(user_lines)),
        ]
        response = await self._chat.complete(
            self._model,
            messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        record = decode_record(response.first_content, PromptRecord, service_name=SERVICE_NAME)
        logger.info("Prompt compiled for capture %s", analysis.capture_id)
        return record.model_copy(update={"capture_id": analysis.capture_id})
