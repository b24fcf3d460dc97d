"""OpenAI Whisper + Chat Completions client with caching and rate limiting.

Every public call returns a result object; failures are reported as
``success=False`` with a human-readable ``error`` rather than raised. Each
call follows the same path:

    derive cache key -> cache hit? return it
                     -> rate limiter rejects? return "Rate limit exceeded..."
                     -> HTTP call with retry -> cache the successful result
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx
from pydantic import ValidationError

from .. import __version__
from ..cache import CacheManager, CacheStats
from ..errors import (
    InputNotFoundError,
    MurmurError,
    RateLimitExceededError,
    RequestTimeoutError,
    TransportError,
    UpstreamError,
)
from ..models import FormatOptions, FormatResult, TranscriptionOptions, TranscriptionResult
from ..utils.rate_limit import RateLimiter
from ..utils.retry import RetryConfig, call_with_retry
from .base import (
    FormatOptionsLike,
    TranscriptionOptionsLike,
    coerce_format_options,
    coerce_transcription_options,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 60.0
TRANSCRIPTION_MODEL = "whisper-1"

TRANSCRIPTION_CACHE_SIZE = 100
TRANSCRIPTION_CACHE_TTL = 7 * 24 * 60 * 60
FORMATTING_CACHE_SIZE = 50
FORMATTING_CACHE_TTL = 24 * 60 * 60

DEFAULT_FORMAT_PROMPT = """\
Clean up the following voice memo transcript so it reads well, then structure it.
Write the result in Markdown and include a summary, the main points and related tags.

Transcript:
{text}

Output format:
# Title (a fitting title based on the content)

## Summary
(a short summary)

## Content
(the cleaned-up content)

## Main Points
- Point 1
- Point 2

## Tags
#tag1 #tag2 #tag3

Recorded: {recorded_at}
"""


def build_format_messages(text: str, options: FormatOptions) -> List[Dict[str, str]]:
    """Chat messages for a formatting request.

    A custom prompt becomes the system message and the transcript the user
    message; otherwise the built-in note template wraps the transcript.
    """
    if options.prompt:
        return [
            {"role": "system", "content": options.prompt},
            {"role": "user", "content": text},
        ]
    prompt = DEFAULT_FORMAT_PROMPT.format(
        text=text, recorded_at=datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    )
    return [{"role": "user", "content": prompt}]


def _error_message_from_payload(payload: Any, status_code: int) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return f"HTTP {status_code}"


class OpenAIClient:
    """Remote-call collaborator for transcription and text formatting.

    Caches, rate limiter and retry policy are per instance; pass shared ones
    explicitly when several clients should draw on the same budget.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transcription_cache: Optional[CacheManager[TranscriptionResult]] = None,
        formatting_cache: Optional[CacheManager[FormatResult]] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_config: Optional[RetryConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: OpenAI API key (sent as a bearer token, never logged)
            base_url: API root, e.g. ``https://api.openai.com/v1``
            timeout: Per-request timeout in seconds
            transcription_cache: Cache for transcription results
            formatting_cache: Cache for formatting results
            rate_limiter: Budget shared by transcription and formatting calls
            retry_config: Backoff policy for transient failures
            http_client: Pre-built ``httpx.AsyncClient``; the client does not
                close an injected instance in ``aclose()``
        """
        if not api_key:
            raise ValueError("api_key is required")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transcription_cache: CacheManager[TranscriptionResult] = (
            transcription_cache
            if transcription_cache is not None
            else CacheManager(
                max_size=TRANSCRIPTION_CACHE_SIZE,
                default_ttl=TRANSCRIPTION_CACHE_TTL,
                name="transcription-cache",
            )
        )
        self.formatting_cache: CacheManager[FormatResult] = (
            formatting_cache
            if formatting_cache is not None
            else CacheManager(
                max_size=FORMATTING_CACHE_SIZE,
                default_ttl=FORMATTING_CACHE_TTL,
                name="formatting-cache",
            )
        )
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.retry_config = retry_config if retry_config is not None else RetryConfig()

        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "User-Agent": f"murmur/{__version__}",
        }
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def __aenter__(self) -> "OpenAIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # --------------------------------------------------------- transcription

    async def transcribe(
        self, audio_path: Union[str, Path], options: TranscriptionOptionsLike = None
    ) -> TranscriptionResult:
        """Transcribe an audio file with Whisper.

        Args:
            audio_path: Path to the recording
            options: ``TranscriptionOptions`` or an equivalent mapping

        Returns:
            TranscriptionResult; cached results are returned as-is
        """
        path = Path(audio_path)
        try:
            opts = coerce_transcription_options(options)
        except ValidationError as e:
            return TranscriptionResult.failure(f"Invalid transcription options: {e}")

        loop = asyncio.get_running_loop()
        if not await loop.run_in_executor(None, path.exists):
            error = InputNotFoundError(path)
            logger.error(error.message)
            return TranscriptionResult.failure(error.message)

        try:
            file_key = await self.transcription_cache.generate_file_key(path)
        except MurmurError as e:
            logger.error(f"Transcription cache key failed for {path.name}: {e.message}")
            return TranscriptionResult.failure(e.message)
        cache_key = self.transcription_cache.generate_content_key(file_key, opts.to_key_dict())

        cached = self.transcription_cache.get(cache_key)
        if cached is not None:
            logger.info(f"Using cached transcription for {path.name}")
            return cached

        if not self.rate_limiter.is_allowed():
            error = RateLimitExceededError(self.rate_limiter.get_time_until_reset())
            logger.warning(f"Transcription of {path.name} rejected: {error.message}")
            return TranscriptionResult.failure(error.message)

        try:
            result = await call_with_retry(
                lambda: self._request_transcription(path, opts),
                self.retry_config,
                description="transcription",
            )
        except MurmurError as e:
            logger.error(f"Whisper API transcription failed: {e.message}")
            return TranscriptionResult.failure(e.message)

        self.transcription_cache.set(cache_key, result)
        logger.info(f"Transcribed {path.name} ({len(result.text or '')} chars)")
        return result

    async def _request_transcription(
        self, path: Path, options: TranscriptionOptions
    ) -> TranscriptionResult:
        loop = asyncio.get_running_loop()
        try:
            audio_bytes = await loop.run_in_executor(None, path.read_bytes)
        except OSError as e:
            raise MurmurError(f"Failed to read audio file: {e}") from e

        response_format = options.response_format or "json"
        data: Dict[str, str] = {"model": TRANSCRIPTION_MODEL, "response_format": response_format}
        if options.language:
            data["language"] = options.language
        if options.temperature is not None:
            data["temperature"] = str(options.temperature)
        files = {"file": (path.name, audio_bytes, "application/octet-stream")}

        response = await self._send("POST", "/audio/transcriptions", data=data, files=files)

        if response_format == "text":
            return TranscriptionResult(success=True, text=response.text.strip())

        payload = self._decode_json(response)
        return TranscriptionResult(
            success=True, text=payload.get("text", ""), duration=payload.get("duration")
        )

    # ------------------------------------------------------------ formatting

    async def format_text(self, text: str, options: FormatOptionsLike = None) -> FormatResult:
        """Format a raw transcript into a Markdown note with the chat API.

        Args:
            text: Transcript text
            options: ``FormatOptions`` or an equivalent mapping

        Returns:
            FormatResult; cached results are returned as-is
        """
        try:
            opts = coerce_format_options(options)
        except ValidationError as e:
            return FormatResult.failure(f"Invalid formatting options: {e}")

        cache_key = self.formatting_cache.generate_content_key(text, opts.to_key_dict())
        cached = self.formatting_cache.get(cache_key)
        if cached is not None:
            logger.info("Using cached formatting result")
            return cached

        if not self.rate_limiter.is_allowed():
            error = RateLimitExceededError(self.rate_limiter.get_time_until_reset())
            logger.warning(f"Formatting rejected: {error.message}")
            return FormatResult.failure(error.message)

        try:
            result = await call_with_retry(
                lambda: self._request_formatting(text, opts),
                self.retry_config,
                description="formatting",
            )
        except UpstreamError as e:
            logger.error(f"GPT API formatting failed: {e.message}")
            return FormatResult.failure(e.message, details=e.payload)
        except MurmurError as e:
            logger.error(f"GPT API formatting failed: {e.message}")
            return FormatResult.failure(e.message)

        self.formatting_cache.set(cache_key, result)
        return result

    async def _request_formatting(self, text: str, options: FormatOptions) -> FormatResult:
        body = {
            "model": options.effective_model,
            "messages": build_format_messages(text, options),
            "temperature": options.effective_temperature,
            "max_tokens": options.effective_max_tokens,
        }
        response = await self._send("POST", "/chat/completions", json=body)
        payload = self._decode_json(response)

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise MurmurError("Unexpected response from formatting service") from e

        return FormatResult(
            success=True,
            formatted_text=content,
            usage=payload.get("usage"),
            model=payload.get("model"),
        )

    # ------------------------------------------------------------ diagnostics

    async def test_connection(self) -> bool:
        """Check that the API answers ``GET /models`` with 200."""
        try:
            response = await self._send("GET", "/models")
        except MurmurError as e:
            logger.error(f"OpenAI API connection test failed: {e.message}")
            return False
        return response.status_code == 200

    def get_cache_stats(self) -> Dict[str, CacheStats]:
        return {
            "transcription": self.transcription_cache.get_stats(),
            "formatting": self.formatting_cache.get_stats(),
        }

    def clear_caches(self) -> None:
        self.transcription_cache.clear()
        self.formatting_cache.clear()
        logger.info("Cleared transcription and formatting caches")

    async def aclose(self) -> None:
        """Close the HTTP client (if owned) and destroy both caches."""
        if self._owns_http_client:
            await self._http.aclose()
        self.transcription_cache.destroy()
        self.formatting_cache.destroy()

    # ---------------------------------------------------------------- helpers

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Issue one HTTP request and map failures onto ``murmur.errors``.

        Raises:
            RequestTimeoutError: The request exceeded the timeout
            TransportError: The service could not be reached
            UpstreamError: The service answered with a non-2xx status
        """
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.request(
                method, url, headers=self._headers, timeout=self.timeout, **kwargs
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("Request timed out") from e
        except httpx.TransportError as e:
            raise TransportError("Network connection failed") from e
        except httpx.RequestError as e:
            raise MurmurError(str(e) or e.__class__.__name__) from e

        if response.is_success:
            return response

        try:
            payload: Any = response.json()
        except ValueError:
            payload = None
        raise UpstreamError(
            _error_message_from_payload(payload, response.status_code),
            status_code=response.status_code,
            payload=payload,
        )

    @staticmethod
    def _decode_json(response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise MurmurError("Invalid JSON in service response") from e
        if not isinstance(payload, dict):
            raise MurmurError("Invalid JSON in service response")
        return payload
