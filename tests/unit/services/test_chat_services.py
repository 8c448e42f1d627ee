"""Tests for the chat transport, vision analysis and prompt compilation."""

import base64
import json

import httpx
import pytest
from pydantic import SecretStr

from tele.exceptions.service_errors import DecodeFailureError
from tele.imaging.models import NormalizedRect
from tele.pipeline.models import CaptureFrame
from tele.services.chat import ChatClient
from tele.services.client import ResilientClient
from tele.services.models import AnalysisRecord, ChatMessage, ImagePart, TextPart
from tele.services.prompt_compiler import (
    SYNTHETIC_ANALYSIS_NOTE,
    TELEPHOTO_BASE_PROMPT,
    MoonshotPromptCompiler,
)
from tele.services.vision import VISION_SYSTEM_PROMPT, MoonshotVisionService

_RECT = NormalizedRect(x=0.25, y=0.25, w=0.5, h=0.5)


def _completion(content):
    return {
        "id": "cmpl-1",
        "object": "chat.completion",
        "created": 1,
        "model": "moonshot-v1-8k",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            },
        ],
    }


def _make_chat(content=None, *, status=200, body=None):
    """Build a chat client whose transport answers every request the same way."""
    requests = []

    def handler(request):
        requests.append(request)
        if body is not None:
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=_completion(content))

    client = ResilientClient(
        "moonshot",
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    chat = ChatClient(client, base_url="https://api.test/v1/", api_key=SecretStr("sk-test"))
    return chat, requests


def _make_frame(capture_id="capture-1"):
    return CaptureFrame(
        capture_id=capture_id,
        zoom_factor=3.0,
        full_width=4000,
        full_height=3000,
        crop_width=1333,
        crop_height=1000,
        crop_rect=_RECT,
    )


class TestChatMessage:
    def test_single_text_flattened(self):
        payload = ChatMessage.text("system", "be brief").to_payload()
        assert payload == {"role": "system", "content": "be brief"}

    def test_multimodal_kept_as_parts(self):
        message = ChatMessage(
            role="user",
            content=[TextPart(text="look"), ImagePart.from_base64("QUJD")],
        )
        payload = message.to_payload()
        assert payload["content"][0] == {"type": "text", "text": "look"}
        assert payload["content"][1] == {
            "type": "image_url",
            "image_url": {"url": "data:image/jpeg;base64,QUJD"},
        }


class TestChatClient:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        chat, requests = _make_chat("{}")
        await chat.complete(
            "moonshot-v1-8k",
            [ChatMessage.text("user", "hi")],
            temperature=0.3,
            max_tokens=1000,
        )
        request = requests[0]
        assert str(request.url) == "https://api.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload == {
            "model": "moonshot-v1-8k",
            "messages": [{"role": "user", "content": "hi"}],
            "temperature": 0.3,
            "max_tokens": 1000,
        }

    @pytest.mark.asyncio
    async def test_optional_sampling_omitted(self):
        chat, requests = _make_chat("{}")
        await chat.complete("m", [ChatMessage.text("user", "hi")])
        payload = json.loads(requests[0].content)
        assert "temperature" not in payload
        assert "max_tokens" not in payload

    @pytest.mark.asyncio
    async def test_returns_first_content(self):
        chat, _ = _make_chat('{"a": 1}')
        response = await chat.complete("m", [ChatMessage.text("user", "hi")])
        assert response.first_content == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_empty_choices_yield_empty_object(self):
        chat, _ = _make_chat(body=b'{"choices": []}')
        response = await chat.complete("m", [ChatMessage.text("user", "hi")])
        assert response.first_content == "{}"

    @pytest.mark.asyncio
    async def test_non_completion_body(self):
        chat, _ = _make_chat(body=b"<html>gateway</html>")
        with pytest.raises(DecodeFailureError):
            await chat.complete("m", [ChatMessage.text("user", "hi")])


class TestMoonshotVisionService:
    @pytest.mark.asyncio
    async def test_analyze_sends_both_images(self):
        content = (
            'Analysis:\n{"capture_id": "spoofed", "scene_summary_full": "city at dusk",'
            ' "scene_summary_crop": "subject with soft bokeh", "quality_flags_crop": "sharp",'
            ' "constraints": "keep grain"}'
        )
        chat, requests = _make_chat(content)
        service = MoonshotVisionService(chat, model="vision-model")

        record = await service.analyze(b"FULL", b"CROP", _make_frame("capture-42"))

        assert record.capture_id == "capture-42"
        assert record.scene_summary_crop == "subject with soft bokeh"
        assert record.synthetic is False

        payload = json.loads(requests[0].content)
        assert payload["model"] == "vision-model"
        assert payload["temperature"] == 0.2
        assert payload["messages"][0] == {"role": "system", "content": VISION_SYSTEM_PROMPT}
        parts = payload["messages"][1]["content"]
        assert "Zoom: 3x" in parts[0]["text"]
        full_b64 = base64.b64encode(b"FULL").decode()
        crop_b64 = base64.b64encode(b"CROP").decode()
        assert parts[1]["image_url"]["url"] == f"data:image/jpeg;base64,{full_b64}"
        assert parts[2]["image_url"]["url"] == f"data:image/jpeg;base64,{crop_b64}"

    @pytest.mark.asyncio
    async def test_prose_only_fails_decode(self):
        chat, _ = _make_chat("The image shows a street.")
        service = MoonshotVisionService(chat, model="vision-model")
        with pytest.raises(DecodeFailureError) as exc_info:
            await service.analyze(b"F", b"C", _make_frame())
        assert exc_info.value.service_name == "vision"


class TestMoonshotPromptCompiler:
    @pytest.mark.asyncio
    async def test_compile_prompt_overwrites_capture_id(self):
        content = (
            '```json\n{"capture_id": "other", "nb_prompt": "telephoto look",'
            ' "nb_negative": "blur", "render_notes": "grain"}\n```'
        )
        chat, requests = _make_chat(content)
        compiler = MoonshotPromptCompiler(chat, model="prompt-model")
        analysis = AnalysisRecord(capture_id="capture-7", scene_summary_full="wide")

        record = await compiler.compile_prompt(analysis, _RECT, 3.0, TELEPHOTO_BASE_PROMPT)

        assert record.capture_id == "capture-7"
        assert record.nb_prompt == "telephoto look"
        assert record.nb_negative == "blur"
        assert record.render_notes == "grain"

        payload = json.loads(requests[0].content)
        assert payload["temperature"] == 0.3
        user_text = payload["messages"][1]["content"]
        assert TELEPHOTO_BASE_PROMPT in user_text
        assert "Zoom factor: 3" in user_text
        assert SYNTHETIC_ANALYSIS_NOTE not in user_text

    @pytest.mark.asyncio
    async def test_synthetic_analysis_adds_note(self):
        chat, requests = _make_chat('{"nb_prompt": "p"}')
        compiler = MoonshotPromptCompiler(chat, model="prompt-model")
        analysis = AnalysisRecord(capture_id="c").as_synthetic()

        await compiler.compile_prompt(analysis, _RECT, 2.0, "base")

        user_text = json.loads(requests[0].content)["messages"][1]["content"]
        assert SYNTHETIC_ANALYSIS_NOTE in user_text
        assert '"synthetic"' not in user_text

    @pytest.mark.asyncio
    async def test_missing_prompt_fails_decode(self):
        chat, _ = _make_chat('{"nb_negative": "blur"}')
        compiler = MoonshotPromptCompiler(chat, model="prompt-model")
        with pytest.raises(DecodeFailureError):
            await compiler.compile_prompt(AnalysisRecord(capture_id="c"), _RECT, 2.0, "base")
