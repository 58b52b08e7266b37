import json

import httpx
import pytest

from model_router.errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
)
from model_router.providers import LocalProvider, is_local_model
from model_router.schemas import ChatMessage, CompletionRequest, ResponsesRequest


def _mock_transport(handler):
    return httpx.MockTransport(handler)


def _request(**kwargs) -> CompletionRequest:
    return CompletionRequest(
        model="local",
        messages=[
            ChatMessage(role="system", content="be brief"),
            ChatMessage(role="user", content="hi"),
        ],
        **kwargs,
    )


def _provider(handler, **kwargs) -> LocalProvider:
    client = httpx.AsyncClient(transport=_mock_transport(handler))
    return LocalProvider("http://local.test:11964/", client=client, **kwargs)


def test_is_local_model():
    assert is_local_model("local")
    assert is_local_model("local/use")
    assert not is_local_model("localhost")
    assert not is_local_model("openai/gpt-4o")


@pytest.mark.asyncio
async def test_completion_posts_openai_shaped_body():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert str(request.url) == "http://local.test:11964/v1/chat/completions"
        assert "authorization" not in request.headers
        body = json.loads(request.content.decode("utf-8"))
        assert body == {
            "model": "default",
            "messages": [
                {"role": "system", "content": "be brief"},
                {"role": "user", "content": "hi"},
            ],
            "temperature": 0.7,
        }
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "hello"}}]})

    p = _provider(handler)
    try:
        out = await p.create_completion(_request())
        assert out.first_content() == "hello"
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_completion_forwards_explicit_temperature_and_max_tokens():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode("utf-8"))
        assert body["temperature"] == 0.1
        assert body["max_tokens"] == 64
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    p = _provider(handler)
    try:
        await p.create_completion(_request(temperature=0.1, max_tokens=64))
    finally:
        await p.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_auth_statuses_raise_authentication_error(status):
    p = _provider(lambda _: httpx.Response(status, text="nope"))
    try:
        with pytest.raises(AuthenticationError) as exc:
            await p.create_completion(_request())
        assert str(exc.value) == f"Invalid API key: {status}"
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_server_error_raises_api_error_with_status():
    p = _provider(lambda _: httpx.Response(503, text="busy"))
    try:
        with pytest.raises(ApiError) as exc:
            await p.create_completion(_request())
        assert exc.value.status_code == 503
        assert str(exc.value) == "Server error: 503"
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_client_error_includes_upstream_message():
    p = _provider(lambda _: httpx.Response(400, json={"error": {"message": "context too long"}}))
    try:
        with pytest.raises(ApiError) as exc:
            await p.create_completion(_request())
        assert str(exc.value) == "Local model API error: 400 Bad Request - context too long"
        assert exc.value.status_code == 400
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_client_error_falls_back_to_raw_body_text():
    p = _provider(lambda _: httpx.Response(422, text="bad things"))
    try:
        with pytest.raises(ApiError) as exc:
            await p.create_completion(_request())
        assert str(exc.value).endswith("- bad things")
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_malformed_success_body_raises_api_error():
    p = _provider(lambda _: httpx.Response(200, text="<html>"))
    try:
        with pytest.raises(ApiError):
            await p.create_completion(_request())
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_empty_choices_raise_api_error():
    p = _provider(lambda _: httpx.Response(200, json={"choices": []}))
    try:
        with pytest.raises(ApiError):
            await p.create_completion(_request())
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_read_timeout_maps_to_timeout_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    p = _provider(handler, timeout_seconds=5)
    try:
        with pytest.raises(RequestTimeoutError) as exc:
            await p.create_completion(_request())
        assert "5s" in str(exc.value)
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_connection_failure_maps_to_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    p = _provider(handler)
    try:
        with pytest.raises(NetworkError):
            await p.create_completion(_request())
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_streaming_and_responses_are_unsupported():
    def handler(_: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    p = _provider(handler)
    try:
        assert p.supports_stream is False
        assert p.supports_responses is False
        with pytest.raises(ValidationError):
            await p.create_stream(_request(stream=True))
        with pytest.raises(ValidationError):
            await p.create_responses_stream(ResponsesRequest(model="local", prompt="cat"))
    finally:
        await p.aclose()


@pytest.mark.asyncio
async def test_blocking_completion_rejects_stream_flag():
    def handler(_: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    p = _provider(handler)
    try:
        with pytest.raises(ValidationError):
            await p.create_completion(_request(stream=True))
    finally:
        await p.aclose()
