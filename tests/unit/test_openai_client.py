"""Tests for the OpenAI client: caching, rate limiting, retries and error mapping."""
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Union

import httpx
import pytest

from murmur.cache import CacheManager
from murmur.models import FormatOptions
from murmur.providers import OpenAIClient, RemoteClient, build_format_messages
from murmur.utils.rate_limit import RateLimiter
from murmur.utils.retry import RetryConfig

NO_WAIT = RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=False)


class ScriptedTransport:
    """Answers requests with a fixed list of responses or exceptions."""

    def __init__(self, responses: List[Union[httpx.Response, type, Exception]]) -> None:
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        request.read()
        response = self.responses.pop(0)
        if isinstance(response, type):
            raise response("scripted failure", request=request)
        if isinstance(response, Exception):
            raise response
        return response


def make_client(transport: ScriptedTransport, **overrides) -> OpenAIClient:
    kwargs = dict(
        api_key="sk-test",
        base_url="https://api.test/v1",
        transcription_cache=CacheManager(max_size=10, default_ttl=60),
        formatting_cache=CacheManager(max_size=10, default_ttl=60),
        rate_limiter=RateLimiter(10, 60.0),
        retry_config=NO_WAIT,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
    )
    kwargs.update(overrides)
    return OpenAIClient(**kwargs)


def chat_response(content: str = "# Title\n\nBody") -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "model": "gpt-3.5-turbo-0125",
            "choices": [{"message": {"role": "assistant", "content": content}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        },
    )


class TestTranscribe:
    """Whisper transcription path."""

    @pytest.mark.asyncio
    async def test_success_sends_multipart_request(self, audio_file: Path):
        transport = ScriptedTransport([httpx.Response(200, json={"text": "hello", "duration": 2.5})])
        client = make_client(transport)

        result = await client.transcribe(audio_file, {"language": "en", "temperature": 0.2})

        assert result.success is True
        assert result.text == "hello"
        assert result.duration == 2.5
        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.test/v1/audio/transcriptions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert request.headers["User-Agent"].startswith("murmur/")
        body = request.content
        assert b"whisper-1" in body
        assert b'name="language"' in body
        assert b"memo.webm" in body

    @pytest.mark.asyncio
    async def test_text_response_format(self, audio_file: Path):
        transport = ScriptedTransport([httpx.Response(200, text="plain words\n")])
        client = make_client(transport)

        result = await client.transcribe(audio_file, {"response_format": "text"})

        assert result.text == "plain words"
        assert result.duration is None

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self, audio_file: Path):
        transport = ScriptedTransport([httpx.Response(200, json={"text": "hello"})])
        limiter = RateLimiter(10, 60.0)
        client = make_client(transport, rate_limiter=limiter)

        first = await client.transcribe(audio_file, {"language": "en"})
        second = await client.transcribe(audio_file, {"language": "en"})

        assert first == second
        assert len(transport.requests) == 1
        assert limiter.get_status()["used"] == 1
        assert client.get_cache_stats()["transcription"].size == 1

    @pytest.mark.asyncio
    async def test_cache_key_depends_on_content_not_path(self, audio_file: Path, tmp_path: Path):
        copy = tmp_path / "copy.webm"
        copy.write_bytes(audio_file.read_bytes())
        transport = ScriptedTransport(
            [httpx.Response(200, json={"text": "a"}), httpx.Response(200, json={"text": "b"})]
        )
        client = make_client(transport)

        await client.transcribe(audio_file)
        await client.transcribe(copy)
        other = await client.transcribe(audio_file, {"language": "ja"})

        assert len(transport.requests) == 2
        assert other.text == "b"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path):
        transport = ScriptedTransport([])
        client = make_client(transport)
        missing = tmp_path / "gone.webm"

        result = await client.transcribe(missing)

        assert result.success is False
        assert result.error == f"Audio file not found: {missing}"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_invalid_options(self, audio_file: Path):
        client = make_client(ScriptedTransport([]))

        result = await client.transcribe(audio_file, {"language": "fr"})

        assert result.success is False
        assert result.error.startswith("Invalid transcription options")

    @pytest.mark.asyncio
    async def test_rate_limit_rejection(self, audio_file: Path, tmp_path: Path):
        other = tmp_path / "other.webm"
        other.write_bytes(b"different audio")
        transport = ScriptedTransport([httpx.Response(200, json={"text": "hello"})])
        client = make_client(transport, rate_limiter=RateLimiter(1, 60.0))

        await client.transcribe(audio_file)
        result = await client.transcribe(other)

        assert result.success is False
        assert result.error == "Rate limit exceeded. Please wait 60 seconds before trying again."
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_error_payload_message_and_no_caching(self, audio_file: Path):
        transport = ScriptedTransport(
            [
                httpx.Response(400, json={"error": {"message": "Invalid file format."}}),
                httpx.Response(200, json={"text": "recovered"}),
            ]
        )
        client = make_client(transport)

        failed = await client.transcribe(audio_file)
        retried = await client.transcribe(audio_file)

        assert failed.error == "Invalid file format."
        assert retried.text == "recovered"
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_status_without_payload(self, audio_file: Path):
        client = make_client(ScriptedTransport([httpx.Response(400, text="nope")]))

        result = await client.transcribe(audio_file)

        assert result.error == "HTTP 400"

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self, audio_file: Path):
        transport = ScriptedTransport(
            [
                httpx.Response(500, json={"error": {"message": "boom"}}),
                httpx.Response(429, json={"error": {"message": "slow down"}}),
                httpx.Response(200, json={"text": "ok"}),
            ]
        )
        client = make_client(transport)

        result = await client.transcribe(audio_file)

        assert result.text == "ok"
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_timeout_message(self, audio_file: Path):
        transport = ScriptedTransport([httpx.ReadTimeout] * 3)
        client = make_client(transport)

        result = await client.transcribe(audio_file)

        assert result.error == "Request timed out"
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_network_failure_message(self, audio_file: Path):
        client = make_client(ScriptedTransport([httpx.ConnectError] * 3))

        result = await client.transcribe(audio_file)

        assert result.error == "Network connection failed"


class TestFormatText:
    """Chat-completions formatting path."""

    @pytest.mark.asyncio
    async def test_defaults_in_request_body(self):
        transport = ScriptedTransport([chat_response()])
        client = make_client(transport)

        result = await client.format_text("raw transcript")

        assert result.success is True
        assert result.formatted_text == "# Title\n\nBody"
        assert result.model == "gpt-3.5-turbo-0125"
        assert result.usage["total_tokens"] == 15
        body = json.loads(transport.requests[0].content)
        assert str(transport.requests[0].url) == "https://api.test/v1/chat/completions"
        assert body["model"] == "gpt-3.5-turbo"
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 2000
        assert "raw transcript" in body["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_custom_options(self):
        transport = ScriptedTransport([chat_response()])
        client = make_client(transport)

        await client.format_text(
            "raw", FormatOptions(prompt="Summarize.", model="gpt-4o-mini", temperature=0.0, max_tokens=50)
        )

        body = json.loads(transport.requests[0].content)
        assert body["model"] == "gpt-4o-mini"
        assert body["temperature"] == 0.0
        assert body["max_tokens"] == 50
        assert body["messages"] == [
            {"role": "system", "content": "Summarize."},
            {"role": "user", "content": "raw"},
        ]

    @pytest.mark.asyncio
    async def test_cached_by_text_and_options(self):
        transport = ScriptedTransport([chat_response("one"), chat_response("two")])
        client = make_client(transport)

        first = await client.format_text("raw")
        again = await client.format_text("raw")
        other = await client.format_text("raw", {"temperature": 0.1})

        assert first.formatted_text == again.formatted_text == "one"
        assert other.formatted_text == "two"
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_error_details(self):
        payload = {"error": {"message": "Invalid API key", "code": "invalid_api_key"}}
        client = make_client(ScriptedTransport([httpx.Response(401, json=payload)]))

        result = await client.format_text("raw")

        assert result.success is False
        assert result.error == "Invalid API key"
        assert result.details == payload

    @pytest.mark.asyncio
    async def test_malformed_answer(self):
        client = make_client(ScriptedTransport([httpx.Response(200, json={"choices": []})]))

        result = await client.format_text("raw")

        assert result.error == "Unexpected response from formatting service"

    def test_default_prompt_wraps_text(self):
        messages = build_format_messages("memo body", FormatOptions())

        assert len(messages) == 1
        assert messages[0]["role"] == "user"
        assert "memo body" in messages[0]["content"]
        assert "## Summary" in messages[0]["content"]


class TestDiagnostics:
    """Connection check, cache maintenance and shutdown."""

    @pytest.mark.asyncio
    async def test_connection_ok(self):
        transport = ScriptedTransport([httpx.Response(200, json={"data": []})])
        client = make_client(transport)

        assert await client.test_connection() is True
        assert transport.requests[0].method == "GET"
        assert str(transport.requests[0].url) == "https://api.test/v1/models"

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        client = make_client(ScriptedTransport([httpx.Response(401, json={})]))

        assert await client.test_connection() is False

    @pytest.mark.asyncio
    async def test_clear_caches(self, audio_file: Path):
        client = make_client(
            ScriptedTransport([httpx.Response(200, json={"text": "x"}), chat_response()])
        )
        await client.transcribe(audio_file)
        await client.format_text("x")

        client.clear_caches()

        stats = client.get_cache_stats()
        assert stats["transcription"].size == 0
        assert stats["formatting"].size == 0

    @pytest.mark.asyncio
    async def test_aclose_leaves_injected_http_client_open(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(ScriptedTransport([])))
        client = make_client(ScriptedTransport([]), http_client=http_client)

        async with client:
            pass

        assert http_client.is_closed is False
        await http_client.aclose()

    def test_satisfies_remote_client_protocol(self):
        client = make_client(ScriptedTransport([]))

        assert isinstance(client, RemoteClient)

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            OpenAIClient(api_key="")
