"""OpenRouterGenerator tests — request shape and error mapping via httpx.MockTransport."""

import json

import httpx
import pytest

from survey_engine.errors import GenerationError, ModelCallError
from survey_engine.llm import OpenRouterGenerator


def _generator(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenRouterGenerator("sk-test", model="test/model", base_url="https://llm.test/api/v1/", client=client)


def _reply(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.mark.asyncio
async def test_request_shape():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["title"] = request.headers["X-Title"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_reply("hello"))

    generator = _generator(handler)
    text = await generator.generate(
        [{"role": "user", "content": "hi"}], temperature=0.7, max_tokens=100, reasoning_effort="high",
    )

    assert text == "hello"
    assert seen["url"] == "https://llm.test/api/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["title"] == "Adaptive Survey"
    assert seen["body"] == {
        "model": "test/model",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.7,
        "max_tokens": 100,
        "reasoning": {"effort": "high"},
    }


@pytest.mark.asyncio
async def test_optional_fields_omitted():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=_reply("ok"))

    await _generator(handler).generate([{"role": "user", "content": "x"}], temperature=0.8)
    assert "max_tokens" not in bodies[0]
    assert "reasoning" not in bodies[0]


@pytest.mark.asyncio
async def test_http_error_status():
    generator = _generator(lambda request: httpx.Response(429, text="rate limited"))
    with pytest.raises(ModelCallError) as exc_info:
        await generator.generate([{"role": "user", "content": "x"}], temperature=0.8)
    assert exc_info.value.status_code == 429
    assert isinstance(exc_info.value, GenerationError)


@pytest.mark.asyncio
async def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ModelCallError):
        await _generator(handler).generate([{"role": "user", "content": "x"}], temperature=0.8)


@pytest.mark.asyncio
async def test_no_choices():
    generator = _generator(lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(ModelCallError):
        await generator.generate([{"role": "user", "content": "x"}], temperature=0.8)


@pytest.mark.asyncio
async def test_non_json_body():
    generator = _generator(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(ModelCallError):
        await generator.generate([{"role": "user", "content": "x"}], temperature=0.8)


@pytest.mark.asyncio
async def test_null_content_is_empty_string():
    generator = _generator(lambda request: httpx.Response(200, json=_reply(None)))
    assert await generator.generate([{"role": "user", "content": "x"}], temperature=0.8) == ""
