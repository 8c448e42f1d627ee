"""Root of the pipeline exception hierarchy.

Every error carries a human-readable ``message``, which the orchestrator
uses verbatim as the ``Failed`` reason, a class-level ``error_code`` for
log consumers, and an optional ``context`` mapping. Subclasses register
themselves by code so a code found in a log line maps back to a class.
"""

from __future__ import annotations

from typing import Any, ClassVar


class TeleError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        context: Additional debugging information.
    """

    error_code: ClassVar[str] = "TELE_ERROR"

    _by_code: ClassVar[dict[str, type[TeleError]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        TeleError._by_code[cls.error_code] = cls

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value!r}" for key, value in self.context.items())
        return f"{self.message} [{details}]"

    @classmethod
    def get_by_error_code(cls, error_code: str) -> type[TeleError] | None:
        """Return the subclass registered under ``error_code``, if any."""
        return cls._by_code.get(error_code)

    def to_log_dict(self) -> dict[str, Any]:
        """Return the fields attached to log lines about this error."""
        entry: dict[str, Any] = {
            "error_code": self.error_code,
            "error_type": type(self).__name__,
            "message": self.message,
        }
        if self.context:
            entry["context"] = self.context
        return entry


class InvalidInputError(TeleError):
    """A caller-supplied parameter cannot be sanitized into a usable value.

    Zoom factors and crop centers are clamped rather than rejected; this is
    for values with no sensible clamp, such as a non-positive output size.
    """

    error_code: ClassVar[str] = "INVALID_INPUT"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        details = dict(context or {})
        if field is not None:
            details["field"] = field
            details["value"] = value
        super().__init__(message, context=details)
