"""Tests for the OpenAI and Gemini enhancement clients."""

import base64
import json

import httpx
import pytest
from pydantic import SecretStr

from tele.exceptions.service_errors import DecodeFailureError
from tele.services.client import ResilientClient
from tele.services.enhancer import GeminiImageEnhancer, OpenAIImageEnhancer, extract_gemini_image
from tele.services.models import PromptRecord

_PROMPT = PromptRecord(capture_id="c-1", nb_prompt="make it telephoto", nb_negative="blur")
_IMAGE = b"\x89PNG\r\n\x1a\nfake-image"


def _make_resilient(handler, name):
    return ResilientClient(name, httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _make_openai(response):
    requests = []

    def handler(request):
        requests.append(request)
        return response

    enhancer = OpenAIImageEnhancer(
        _make_resilient(handler, "openai_images"),
        url="https://api.test/v1/images/edits",
        api_key=SecretStr("sk-open"),
        model="gpt-image-1",
    )
    return enhancer, requests


def _make_gemini(response):
    requests = []

    def handler(request):
        requests.append(request)
        return response

    enhancer = GeminiImageEnhancer(
        _make_resilient(handler, "gemini"),
        endpoint="https://gemini.test/v1beta/models/image:generateContent",
        api_key=SecretStr("g-key"),
    )
    return enhancer, requests


class TestOpenAIImageEnhancer:
    @pytest.mark.asyncio
    async def test_multipart_request_and_decoded_result(self):
        encoded = base64.b64encode(_IMAGE).decode()
        enhancer, requests = _make_openai(httpx.Response(200, json={"data": [{"b64_json": encoded}]}))

        result = await enhancer.enhance(_PROMPT, b"SQUARE-PNG")

        assert result == _IMAGE
        request = requests[0]
        assert request.headers["Authorization"] == "Bearer sk-open"
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="image"; filename="crop.png"' in body
        assert b"SQUARE-PNG" in body
        assert b"make it telephoto" in body
        assert b"gpt-image-1" in body
        assert b"1024x1024" in body

    @pytest.mark.asyncio
    async def test_missing_b64_json(self):
        enhancer, _ = _make_openai(httpx.Response(200, json={"data": [{"url": "https://x"}]}))
        with pytest.raises(DecodeFailureError, match="b64_json"):
            await enhancer.enhance(_PROMPT, b"SQUARE")

    @pytest.mark.asyncio
    async def test_empty_data(self):
        enhancer, _ = _make_openai(httpx.Response(200, json={"data": []}))
        with pytest.raises(DecodeFailureError):
            await enhancer.enhance(_PROMPT, b"SQUARE")

    @pytest.mark.asyncio
    async def test_invalid_base64(self):
        enhancer, _ = _make_openai(httpx.Response(200, json={"data": [{"b64_json": "@@@"}]}))
        with pytest.raises(DecodeFailureError, match="base64"):
            await enhancer.enhance(_PROMPT, b"SQUARE")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        enhancer, _ = _make_openai(httpx.Response(200, content=b"not json"))
        with pytest.raises(DecodeFailureError, match="not JSON"):
            await enhancer.enhance(_PROMPT, b"SQUARE")


class TestGeminiImageEnhancer:
    @pytest.mark.asyncio
    async def test_inline_request_and_camel_case_response(self):
        body = {
            "candidates": [
                {
                    "content": {
                        "parts": [
                            {"text": "Here is the edit"},
                            {"inlineData": {"mimeType": "image/png", "data": base64.b64encode(_IMAGE).decode()}},
                        ],
                    },
                },
            ],
        }
        enhancer, requests = _make_gemini(httpx.Response(200, json=body))

        result = await enhancer.enhance(_PROMPT, b"SQUARE")

        assert result == _IMAGE
        request = requests[0]
        assert request.url.params["key"] == "g-key"
        parts = json.loads(request.content)["contents"][0]["parts"]
        assert parts[0]["text"] == "Edit this telephoto crop: make it telephoto"
        assert parts[1]["inline_data"]["mime_type"] == "image/png"
        assert base64.b64decode(parts[1]["inline_data"]["data"]) == b"SQUARE"

    @pytest.mark.asyncio
    async def test_raw_image_response(self):
        response = httpx.Response(200, content=_IMAGE, headers={"content-type": "image/png"})
        enhancer, _ = _make_gemini(response)
        assert await enhancer.enhance(_PROMPT, b"SQUARE") == _IMAGE

    @pytest.mark.asyncio
    async def test_no_image_part(self):
        body = {"candidates": [{"content": {"parts": [{"text": "I cannot edit this"}]}}]}
        enhancer, _ = _make_gemini(httpx.Response(200, json=body))
        with pytest.raises(DecodeFailureError, match="no inline image"):
            await enhancer.enhance(_PROMPT, b"SQUARE")


class TestExtractGeminiImage:
    def test_snake_case(self):
        body = {"candidates": [{"content": {"parts": [{"inline_data": {"data": "QUJD"}}]}}]}
        assert extract_gemini_image(body) == "QUJD"

    def test_skips_candidates_without_image(self):
        body = {
            "candidates": [
                {"content": {"parts": [{"text": "no"}]}},
                {"content": {"parts": [{"inlineData": {"data": "WFla"}}]}},
            ],
        }
        assert extract_gemini_image(body) == "WFla"

    @pytest.mark.parametrize("body", [None, [], {}, {"candidates": None}, {"candidates": [{}]}])
    def test_malformed(self, body):
        assert extract_gemini_image(body) is None
