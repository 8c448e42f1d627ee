"""Image-to-image enhancement clients.

Two backends produce the final telephoto render from the compiled prompt
and the square crop: the OpenAI image edit endpoint (multipart upload) and
the Gemini ``generateContent`` endpoint (inline base64 image). Both share
the resilient retry policy and return raw encoded image bytes.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING, Any

from tele.exceptions.service_errors import DecodeFailureError

if TYPE_CHECKING:
    import httpx
    from pydantic import SecretStr

    from tele.services.client import ResilientClient
    from tele.services.models import PromptRecord

logger = logging.getLogger(__name__)

OPENAI_SERVICE_NAME: str = "openai_images"
GEMINI_SERVICE_NAME: str = "gemini"
_DEFAULT_SIZE: str = "1024x1024"


def _decode_base64_image(encoded: str, service_name: str) -> bytes:
    try:
        image_bytes = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as error:
        raise DecodeFailureError(
            "Enhanced image payload is not valid base64",
            service_name=service_name,
        ) from error
    if not image_bytes:
        raise DecodeFailureError("Enhanced image payload is empty", service_name=service_name)
    return image_bytes


def _json_body(response: httpx.Response, service_name: str) -> Any:
    try:
        return response.json()
    except ValueError as error:
        raise DecodeFailureError(
            "Enhancer response is not JSON",
            service_name=service_name,
            context={"preview": response.text[:200]},
        ) from error


class OpenAIImageEnhancer:
    """Enhancer backed by the OpenAI image edit endpoint."""

    def __init__(
        self,
        client: ResilientClient,
        *,
        url: str,
        api_key: SecretStr,
        model: str,
        size: str = _DEFAULT_SIZE,
    ) -> None:
        self._client = client
        self._url = url
        self._api_key = api_key
        self._model = model
        self._size = size

    async def enhance(self, prompt: PromptRecord, square_crop: bytes) -> bytes:
        """Upload the crop with the prompt and return the edited image.

        Args:
            prompt: Compiled prompt; only the positive text is sent.
            square_crop: Square PNG crop.

        Returns:
            The decoded image bytes from ``data[0].b64_json``.

        Raises:
            DecodeFailureError: If the response carries no decodable image.
            ServiceError: Propagated from the transport.
        """
        response = await self._client.post(
            self._url,
            headers={"Authorization": f"Bearer {self._api_key.get_secret_value()}"},
            data={
                "model": self._model,
                "prompt": prompt.nb_prompt,
                "n": "1",
                "size": self._size,
            },
            files={"image": ("crop.png", square_crop, "image/png")},
        )
        body = _json_body(response, OPENAI_SERVICE_NAME)

        items = body.get("data") if isinstance(body, dict) else None
        first = items[0] if isinstance(items, list) and items else None
        encoded = first.get("b64_json") if isinstance(first, dict) else None
        if not isinstance(encoded, str) or not encoded:
            raise DecodeFailureError(
                "Image edit response has no b64_json image",
                service_name=OPENAI_SERVICE_NAME,
            )
        image_bytes = _decode_base64_image(encoded, OPENAI_SERVICE_NAME)
        logger.info("OpenAI enhancer returned %d bytes", len(image_bytes))
        return image_bytes


class GeminiImageEnhancer:
    """Enhancer backed by a Gemini multimodal image model."""

    def __init__(
        self,
        client: ResilientClient,
        *,
        endpoint: str,
        api_key: SecretStr,
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._api_key = api_key

    async def enhance(self, prompt: PromptRecord, square_crop: bytes) -> bytes:
        """Send the crop inline with the prompt and return the edited image.

        Raises:
            DecodeFailureError: If no inline image part is present.
            ServiceError: Propagated from the transport.
        """
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": f"Edit this telephoto crop: {prompt.nb_prompt}"},
                        {
                            "inline_data": {
                                "mime_type": "image/png",
                                "data": base64.b64encode(square_crop).decode("ascii"),
                            },
                        },
                    ],
                },
            ],
        }
        response = await self._client.post(
            self._endpoint,
            params={"key": self._api_key.get_secret_value()},
            json=payload,
        )
        if response.headers.get("content-type", "").startswith("image/"):
            return response.content

        encoded = extract_gemini_image(_json_body(response, GEMINI_SERVICE_NAME))
        if encoded is None:
            raise DecodeFailureError(
                "Gemini response contains no inline image",
                service_name=GEMINI_SERVICE_NAME,
            )
        image_bytes = _decode_base64_image(encoded, GEMINI_SERVICE_NAME)
        logger.info("Gemini enhancer returned %d bytes", len(image_bytes))
        return image_bytes


def extract_gemini_image(body: Any) -> str | None:
    """Return the first base64 inline image in a ``generateContent`` body.

    Both ``inline_data`` and ``inlineData`` spellings are accepted.
    """
    if not isinstance(body, dict):
        return None
    for candidate in body.get("candidates") or []:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        for part in parts or []:
            if not isinstance(part, dict):
                continue
            inline = part.get("inline_data") or part.get("inlineData")
            if isinstance(inline, dict) and isinstance(inline.get("data"), str):
                return inline["data"]
    return None
