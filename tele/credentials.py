"""API key presence resolution.

The pipeline core only needs to know whether a service can be reached
with real credentials. Keys are read from the process environment,
tolerating the copy-paste accidents people actually make (stray spaces,
a trailing dot, a trailing underscore on the variable name).
"""

from __future__ import annotations

import os
import re
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, SecretStr

if TYPE_CHECKING:
    from collections.abc import Mapping

MOONSHOT_API_KEY: str = "MOONSHOT_API_KEY"
OPENAI_API_KEY: str = "OPENAI_API_KEY"
GEMINI_API_KEY: str = "GEMINI_API_KEY"

_WHITESPACE = re.compile(r"\s+")
_MASK_PREFIX: str = "••••"


def sanitize_key(raw: str) -> str:
    """Strip all whitespace and a single trailing dot from a pasted key."""
    clean = _WHITESPACE.sub("", raw)
    if clean.endswith("."):
        clean = clean[:-1]
    return clean


def resolve_api_key(name: str, environ: Mapping[str, str] | None = None) -> str | None:
    """Resolve an API key from the environment.

    Lookup order: the exact variable (ignoring spaces inside the variable
    name), then ``NAME_``, then ``NAME`` with surrounding underscores removed.

    Args:
        name: Environment variable name.
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        The sanitized key, or None when absent or blank.
    """
    env = os.environ if environ is None else environ
    target = name.replace(" ", "")

    for key, value in env.items():
        if key.replace(" ", "") == target and value.strip():
            return sanitize_key(value) or None

    for alternate in (name + "_", name.strip("_")):
        value = env.get(alternate, "")
        if value.strip():
            return sanitize_key(value) or None

    return None


def mask_secret(value: str | None) -> str:
    """Return a display-safe form of a secret showing only the last 4 characters."""
    if not value:
        return "<empty>"
    return f"{_MASK_PREFIX}{value[-4:]}"


class ServiceAvailability(BaseModel):
    """Which remote services can be reached with real credentials."""

    model_config = ConfigDict(frozen=True)

    vision: bool = False
    prompt_compiler: bool = False
    enhancer: bool = False


class ServiceCredentials(BaseModel):
    """Resolved API keys for every remote service."""

    model_config = ConfigDict(frozen=True)

    moonshot_api_key: SecretStr | None = None
    openai_api_key: SecretStr | None = None
    gemini_api_key: SecretStr | None = None

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> ServiceCredentials:
        """Resolve all keys from the environment.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            Credentials with absent keys left as None.
        """
        moonshot = resolve_api_key(MOONSHOT_API_KEY, environ)
        openai = resolve_api_key(OPENAI_API_KEY, environ)
        gemini = resolve_api_key(GEMINI_API_KEY, environ)
        return cls(
            moonshot_api_key=SecretStr(moonshot) if moonshot else None,
            openai_api_key=SecretStr(openai) if openai else None,
            gemini_api_key=SecretStr(gemini) if gemini else None,
        )

    def availability(self) -> ServiceAvailability:
        """Reduce the credentials to per-service presence flags."""
        has_moonshot = self.moonshot_api_key is not None
        return ServiceAvailability(
            vision=has_moonshot,
            prompt_compiler=has_moonshot,
            enhancer=self.openai_api_key is not None or self.gemini_api_key is not None,
        )

    def has_all_keys(self) -> bool:
        """Return whether every stage can run against a real service."""
        availability = self.availability()
        return availability.vision and availability.enhancer

    def missing_keys(self) -> list[str]:
        """Return the names of the primary keys that are not configured."""
        missing: list[str] = []
        if self.moonshot_api_key is None:
            missing.append(MOONSHOT_API_KEY)
        if self.openai_api_key is None:
            missing.append(OPENAI_API_KEY)
        return missing

    def describe(self) -> dict[str, str]:
        """Return masked key values for debug output."""
        return {
            MOONSHOT_API_KEY: mask_secret(_reveal(self.moonshot_api_key)),
            OPENAI_API_KEY: mask_secret(_reveal(self.openai_api_key)),
            GEMINI_API_KEY: mask_secret(_reveal(self.gemini_api_key)),
        }


def _reveal(secret: SecretStr | None) -> str | None:
    return secret.get_secret_value() if secret is not None else None
