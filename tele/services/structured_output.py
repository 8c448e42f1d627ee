"""Extraction and validation of JSON embedded in language-model text.

Models asked to "respond only in JSON" still prepend prose or wrap the
object in code fences. The extractor is permissive about surrounding text
and strict about the object itself: it returns the first balanced ``{...}``
span, and the decoder validates it against a typed record.
"""

from __future__ import annotations

import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from tele.exceptions.service_errors import DecodeFailureError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_PREVIEW_LENGTH: int = 200


def extract_first_json_object(text: str) -> bytes:
    """Return the first balanced JSON object in ``text`` as UTF-8 bytes.

    Braces inside JSON string literals do not affect the depth count.

    Args:
        text: Free-form model output.

    Returns:
        The balanced object substring, encoded as UTF-8.

    Raises:
        DecodeFailureError: If no ``{`` exists or the object never closes.
    """
    start = text.find("{")
    if start < 0:
        raise DecodeFailureError(
            "No JSON object found in model output",
            context={"preview": text[:_PREVIEW_LENGTH]},
        )

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1].encode("utf-8")

    raise DecodeFailureError(
        "Unbalanced JSON object in model output",
        context={"preview": text[start : start + _PREVIEW_LENGTH]},
    )


def decode_record(
    text: str,
    model_cls: type[ModelT],
    *,
    service_name: str | None = None,
) -> ModelT:
    """Extract the first JSON object from ``text`` and validate it.

    Args:
        text: Free-form model output.
        model_cls: Pydantic model the object must satisfy.
        service_name: Service that produced the text, for error context.

    Returns:
        The validated record.

    Raises:
        DecodeFailureError: If extraction or validation fails.
    """
    try:
        payload = extract_first_json_object(text)
    except DecodeFailureError as error:
        raise DecodeFailureError(
            error.message,
            service_name=service_name,
            context=error.context,
        ) from error

    try:
        return model_cls.model_validate_json(payload)
    except ValidationError as error:
        logger.warning(
            "Structured output failed validation as %s: %s",
            model_cls.__name__,
            text[:_PREVIEW_LENGTH],
        )
        raise DecodeFailureError(
            f"Model output is not a valid {model_cls.__name__}: {error.error_count()} error(s)",
            service_name=service_name,
            context={"errors": error.errors(include_url=False, include_context=False, include_input=False)},
        ) from error
