"""LiteLLM client used by the natural-language operations.

LiteLLM gives one OpenAI-compatible interface over every provider the host
may attach (OpenAI, Anthropic, Gemini, Groq, DeepSeek, Ollama, ...). The
attached credential's ``model_id`` (``provider/model``) selects the backend.

See: https://docs.litellm.ai/docs/providers
"""

from __future__ import annotations

import hashlib
import json
import re
import time
from dataclasses import dataclass
from typing import Any

import httpx
import litellm
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import NodeSettings, get_settings
from .errors import (
    LLMAuthenticationError,
    LLMError,
    LLMOutputParsingError,
    LLMRateLimitError,
    LLMTransientError,
)
from .logging_config import get_logger, log_duration
from .models import ModelCredential

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@dataclass
class CacheEntry:
    response: str
    cached_at: float
    times_retrieved: int = 0


class ResponseCache:
    """
    Exact-match cache of model responses.

    Keys are the model id plus the full message list, so a changed page
    snapshot is a different key.
    """

    def __init__(self, ttl_seconds: int = 3600, max_entries: int = 512):
        """
        Args:
            ttl_seconds: Time-to-live for entries (0 = no expiry)
            max_entries: Oldest entries are evicted beyond this size
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(model: str, messages: list[dict[str, Any]]) -> str:
        payload = json.dumps({"model": model, "messages": messages}, sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None or self._is_expired(entry):
            self._entries.pop(key, None)
            self.misses += 1
            return None
        entry.times_retrieved += 1
        self.hits += 1
        return entry.response

    def set(self, key: str, response: str) -> None:
        if len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k].cached_at)
            del self._entries[oldest]
        self._entries[key] = CacheEntry(response=response, cached_at=time.monotonic())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry) -> bool:
        if self.ttl_seconds == 0:
            return False
        return time.monotonic() - entry.cached_at > self.ttl_seconds


_default_cache: ResponseCache | None = None


def get_response_cache(settings: NodeSettings | None = None) -> ResponseCache:
    """Return the process-wide response cache."""
    global _default_cache
    if _default_cache is None:
        settings = settings or get_settings()
        _default_cache = ResponseCache(ttl_seconds=settings.llm_cache_ttl_seconds)
    return _default_cache


def parse_json_response(content: str) -> Any:
    """Parse a model answer as JSON, tolerating a surrounding code fence."""
    text = content.strip()
    match = _CODE_FENCE.match(text)
    if match:
        text = match.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMOutputParsingError(
            f"Model did not return valid JSON: {e.msg}",
            cause=e,
        ) from e


class LLMClient:
    """
    Async JSON-answering client over LiteLLM.

    Usage:
        client = LLMClient(ModelCredential(
            provider_namespace="openai", model_name="gpt-4o-mini", api_key="sk-..."
        ))
        answer = await client.complete_json(system="...", prompt="...")
    """

    def __init__(
        self,
        credential: ModelCredential,
        *,
        enable_caching: bool = True,
        cache: ResponseCache | None = None,
        settings: NodeSettings | None = None,
        **kwargs: Any,
    ):
        self.credential = credential
        self.settings = settings or get_settings()
        self.enable_caching = enable_caching
        self.cache = cache if cache is not None else get_response_cache(self.settings)
        self.extra_kwargs = kwargs

    @property
    def model(self) -> str:
        return self.credential.model_id

    def _handle_litellm_error(self, e: Exception) -> None:
        """Map LiteLLM/OpenAI exceptions to node errors."""
        error_msg = str(e)
        if isinstance(e, litellm.RateLimitError):
            retry_after = getattr(e, "retry_after", None) or 1.0
            raise LLMRateLimitError(error_msg, retry_after=float(retry_after), cause=e) from e
        if isinstance(e, litellm.AuthenticationError):
            raise LLMAuthenticationError(error_msg, cause=e) from e
        if isinstance(e, (litellm.Timeout, litellm.APIConnectionError, httpx.NetworkError, httpx.TimeoutException)):
            raise LLMTransientError(error_msg, cause=e) from e
        raise LLMError(error_msg, cause=e) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type((LLMTransientError, LLMRateLimitError)),
        reraise=True,
    )
    async def _acompletion(self, messages: list[dict[str, Any]], max_tokens: int) -> str:
        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=messages,
                api_key=self.credential.api_key,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
                **self.extra_kwargs,
            )
        except Exception as e:
            self._handle_litellm_error(e)
            raise  # unreachable: the handler always raises

        return response.choices[0].message.content or ""

    @log_duration("llm_completion")
    async def complete_json(
        self,
        system: str,
        prompt: str,
        max_tokens: int | None = None,
    ) -> Any:
        """
        Ask the model for a JSON answer.

        Raises:
            LLMError: (or a subclass) on provider failure after retries.
            LLMOutputParsingError: If the answer is not valid JSON.
        """
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]

        cache_key = ResponseCache.key(self.model, messages) if self.enable_caching else None
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug("llm_cache_hit", model=self.model)
                return parse_json_response(cached)

        content = await self._acompletion(messages, max_tokens or self.settings.llm_max_tokens)
        answer = parse_json_response(content)

        # Only well-formed answers are worth replaying
        if cache_key is not None:
            self.cache.set(cache_key, content)
        return answer
