"""OpenAI-compatible chat-completions transport.

Vision analysis and prompt compilation both talk to the same Moonshot
endpoint, so they share one ``ChatClient`` and one retry policy.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from tele.exceptions.service_errors import DecodeFailureError
from tele.services.models import ChatCompletionResponse

if TYPE_CHECKING:
    from pydantic import SecretStr

    from tele.services.client import ResilientClient
    from tele.services.models import ChatMessage

logger = logging.getLogger(__name__)

_CHAT_COMPLETIONS_PATH: str = "/chat/completions"


class ChatClient:
    """Sends chat-completion requests through a ``ResilientClient``."""

    def __init__(
        self,
        client: ResilientClient,
        *,
        base_url: str,
        api_key: SecretStr,
    ) -> None:
        """Initialize the chat client.

        Args:
            client: Retry-wrapped transport.
            base_url: API base URL, e.g. ``https://api.moonshot.ai/v1``.
            api_key: Bearer token.
        """
        self._client = client
        self._url = base_url.rstrip("/") + _CHAT_COMPLETIONS_PATH
        self._api_key = api_key

    @property
    def url(self) -> str:
        """Return the chat-completions endpoint URL."""
        return self._url

    async def complete(
        self,
        model: str,
        messages: list[ChatMessage],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ChatCompletionResponse:
        """Request a completion.

        Args:
            model: Model identifier.
            messages: Conversation to send.
            temperature: Sampling temperature, omitted when None.
            max_tokens: Completion token limit, omitted when None.

        Returns:
            The parsed completion.

        Raises:
            DecodeFailureError: If a 2xx body is not a chat completion.
            ServiceError: Propagated from the retry policy.
        """
        payload: dict[str, object] = {
            "model": model,
            "messages": [message.to_payload() for message in messages],
        }
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        logger.debug("Requesting completion from %s", model)
        response = await self._client.post(
            self._url,
            json=payload,
            headers={"Authorization": f"Bearer {self._api_key.get_secret_value()}"},
        )

        try:
            return ChatCompletionResponse.model_validate_json(response.content)
        except ValidationError as error:
            logger.warning(
                "Chat completion from %s did not decode: %s",
                model,
                response.text[:300],
            )
            raise DecodeFailureError(
                f"Response from {model} is not a chat completion",
                service_name=self._client.service_name,
            ) from error
