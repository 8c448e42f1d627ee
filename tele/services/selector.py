"""Credential-driven choice between real and mock service implementations.

The selector is the only place that looks at credential presence: each
service is chosen once at construction time and the orchestrator only
ever sees the protocol.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from tele.credentials import GEMINI_API_KEY, MOONSHOT_API_KEY, OPENAI_API_KEY
from tele.services.chat import ChatClient
from tele.services.client import ResilientClient, RetryPolicy
from tele.services.enhancer import (
    GEMINI_SERVICE_NAME,
    OPENAI_SERVICE_NAME,
    GeminiImageEnhancer,
    OpenAIImageEnhancer,
)
from tele.services.mocks import MockEnhancer, MockPromptCompiler, MockVisionService
from tele.services.prompt_compiler import MoonshotPromptCompiler
from tele.services.vision import MoonshotVisionService

if TYPE_CHECKING:
    from tele.config import TeleSettings
    from tele.credentials import ServiceCredentials
    from tele.logging.diagnostics import DiagnosticSink
    from tele.services.client import SleepFunc
    from tele.services.protocols import EnhancerService, PromptCompilerService, VisionService

logger = logging.getLogger(__name__)

CHAT_SERVICE_NAME: str = "moonshot"


@dataclass(frozen=True)
class ServiceSet:
    """One implementation per pipeline stage plus the clients they own."""

    vision: VisionService
    prompt_compiler: PromptCompilerService
    enhancer: EnhancerService
    clients: list[ResilientClient] = field(default_factory=list)

    @property
    def uses_mocks(self) -> bool:
        """Return whether every stage is served locally."""
        return not self.clients

    async def aclose(self) -> None:
        """Close every HTTP client owned by this set."""
        for client in self.clients:
            await client.aclose()


def build_mock_services(settings: TeleSettings, sleep: SleepFunc = asyncio.sleep) -> ServiceSet:
    """Return a set made only of deterministic mocks."""
    scale = settings.mock_latency_scale
    return ServiceSet(
        vision=MockVisionService(latency_scale=scale, sleep=sleep),
        prompt_compiler=MockPromptCompiler(latency_scale=scale, sleep=sleep),
        enhancer=MockEnhancer(latency_scale=scale, sleep=sleep),
    )


def build_services(
    settings: TeleSettings,
    credentials: ServiceCredentials,
    diagnostics: DiagnosticSink | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: SleepFunc | None = None,
) -> ServiceSet:
    """Build the service set for the available credentials.

    Vision and prompt compilation share one chat client when a Moonshot
    key is present. The enhancer prefers OpenAI, then Gemini. Any stage
    without a key is served by its mock.

    Args:
        settings: Endpoints, models and retry budget.
        credentials: Resolved API keys.
        diagnostics: Optional sink passed to every client.
        transport: Optional httpx transport, used by tests.
        sleep: Optional sleep for retry backoff and simulated mock
            latency, used by tests.

    Returns:
        The selected implementations.
    """
    mocks = build_mock_services(settings, sleep or asyncio.sleep)
    policy = RetryPolicy(
        max_retries=settings.max_retries,
        backoff_ceiling_seconds=settings.backoff_ceiling_seconds,
    )
    clients: list[ResilientClient] = []

    def make_client(service_name: str, timeout_seconds: float) -> ResilientClient:
        http_client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)
        client = ResilientClient(
            service_name,
            http_client,
            policy=policy,
            diagnostics=diagnostics,
            sleep=sleep or asyncio.sleep,
            attempt_timeout_seconds=timeout_seconds,
        )
        clients.append(client)
        return client

    vision: VisionService = mocks.vision
    prompt_compiler: PromptCompilerService = mocks.prompt_compiler
    if credentials.moonshot_api_key is not None:
        chat = ChatClient(
            make_client(CHAT_SERVICE_NAME, settings.chat_timeout_seconds),
            base_url=settings.moonshot_base_url,
            api_key=credentials.moonshot_api_key,
        )
        vision = MoonshotVisionService(
            chat,
            model=settings.vision_model,
            temperature=settings.vision_temperature,
            max_tokens=settings.max_tokens,
        )
        prompt_compiler = MoonshotPromptCompiler(
            chat,
            model=settings.prompt_model,
            temperature=settings.prompt_temperature,
            max_tokens=settings.max_tokens,
        )

    enhancer: EnhancerService = mocks.enhancer
    if credentials.openai_api_key is not None:
        enhancer = OpenAIImageEnhancer(
            make_client(OPENAI_SERVICE_NAME, settings.enhancer_timeout_seconds),
            url=settings.openai_images_url,
            api_key=credentials.openai_api_key,
            model=settings.enhancer_model,
            size=f"{settings.square_dimension}x{settings.square_dimension}",
        )
    elif credentials.gemini_api_key is not None:
        enhancer = GeminiImageEnhancer(
            make_client(GEMINI_SERVICE_NAME, settings.enhancer_timeout_seconds),
            endpoint=settings.gemini_endpoint,
            api_key=credentials.gemini_api_key,
        )

    selection = (
        f"vision={type(vision).__name__} "
        f"prompt_compiler={type(prompt_compiler).__name__} "
        f"enhancer={type(enhancer).__name__}"
    )
    logger.info("Selected services: %s", selection)
    if diagnostics is not None:
        diagnostics.record("SELECTOR", selection)
        if credentials.moonshot_api_key is None:
            diagnostics.record("SELECTOR", f"{MOONSHOT_API_KEY} not configured, analysis is mocked")
        if enhancer is mocks.enhancer:
            diagnostics.record(
                "SELECTOR",
                f"{OPENAI_API_KEY} and {GEMINI_API_KEY} not configured, enhancement is mocked",
            )

    return ServiceSet(
        vision=vision,
        prompt_compiler=prompt_compiler,
        enhancer=enhancer,
        clients=clients,
    )
