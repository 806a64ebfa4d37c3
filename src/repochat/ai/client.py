"""Async AI client wrapper built around OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Sequence

import httpx
from openai import APIConnectionError, AsyncOpenAI, InternalServerError, RateLimitError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .ai_types import TokenCounterProtocol
from .agent.messages import FunctionCall, Message
from .utils.tokens import ApproxByteCounter, TiktokenCounter, TokenCounterRegistry

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client."""

    base_url: str
    api_key: str
    model: str
    organization: str | None = None
    request_timeout: float | None = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    temperature: float | None = 0.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


class AIClient:
    """Streams function calls from an OpenAI-compatible chat endpoint.

    Only opening the stream is retried; once fragments have been yielded a
    failure propagates to the caller so no fragment is ever delivered twice.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        client: AsyncOpenAI | None = None,
        token_registry: TokenCounterRegistry | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or self._build_client(settings)
        self._token_registry = token_registry or TokenCounterRegistry.global_instance()
        self._register_default_token_counter()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def chat(
        self,
        messages: Sequence[Message | Mapping[str, Any]],
        functions: Sequence[Mapping[str, Any]] | None = None,
        *,
        temperature: float | None = None,
        **extra_params: Any,
    ) -> AsyncIterator[FunctionCall]:
        """Stream the model reply as function-call fragments in arrival order."""

        payload = self._build_chat_payload(
            messages=self._coerce_messages(messages),
            functions=functions,
            temperature=self._settings.temperature if temperature is None else temperature,
            extra_params=extra_params,
        )
        LOGGER.debug(
            "Starting streamed chat completion via %s with %s message(s)",
            self._settings.model,
            len(payload["messages"]),
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        stream = await self._open_stream(payload)
        async for chunk in stream:
            fragment = self._normalize_chunk(chunk)
            if fragment is not None:
                yield fragment

    async def _open_stream(self, payload: Mapping[str, Any]) -> Any:
        stream: Any = None
        async for attempt in self._retrying():
            with attempt:
                stream = await self._client.chat.completions.create(stream=True, **payload)
        return stream

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            organization=settings.organization,
            timeout=settings.request_timeout,
            default_headers=headers,
            max_retries=0,
        )

    def get_token_counter(self, model: str | None = None) -> TokenCounterProtocol:
        return self._token_registry.get(model or self._settings.model)

    def count_tokens(self, text: str, *, model: str | None = None, estimate_only: bool = False) -> int:
        if not text:
            return 0
        counter = self.get_token_counter(model)
        if estimate_only:
            return counter.estimate(text)
        return counter.count(text)

    def _register_default_token_counter(self) -> None:
        model_name = (self._settings.model or "").strip()
        if not model_name or self._token_registry.has(model_name):
            return
        self._token_registry.register(model_name, self._build_token_counter(model_name))

    def _build_token_counter(self, model_name: str) -> TokenCounterProtocol:
        try:
            return TiktokenCounter(model_name)
        except (ValueError, OSError) as exc:
            # tiktoken downloads encodings on first use; offline hosts fall back to estimates.
            LOGGER.warning("Failed to initialize tiktoken counter for %s: %s", model_name, exc)
            return ApproxByteCounter(model_name=model_name)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(
                (
                    APIConnectionError,
                    InternalServerError,
                    RateLimitError,
                    httpx.TimeoutException,
                )
            ),
        )

    def _coerce_messages(self, messages: Iterable[Message | Mapping[str, Any]]) -> List[Dict[str, Any]]:
        normalized: List[Dict[str, Any]] = []
        for message in messages:
            to_chat_param = getattr(message, "to_chat_param", None)
            if callable(to_chat_param):
                normalized.append(to_chat_param())
            elif isinstance(message, Mapping):
                normalized.append(dict(message))
            else:
                raise TypeError("Messages must be transcript messages or mapping-like objects")
        if not normalized:
            raise ValueError("At least one message is required to start a chat")
        return normalized

    def _build_chat_payload(
        self,
        *,
        messages: Sequence[Dict[str, Any]],
        functions: Sequence[Mapping[str, Any]] | None,
        temperature: float | None,
        extra_params: Mapping[str, Any],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self._settings.model,
            "messages": list(messages),
        }
        if functions:
            payload["functions"] = [dict(function) for function in functions]
            payload["function_call"] = "auto"
        if temperature is not None:
            payload["temperature"] = temperature
        if extra_params:
            payload.update(extra_params)
        return payload

    def _normalize_chunk(self, chunk: Any) -> FunctionCall | None:
        choices = getattr(chunk, "choices", None) or []
        if not choices:
            return None
        delta = getattr(choices[0], "delta", None)
        if delta is None:
            return None

        call = getattr(delta, "function_call", None)
        if call is None:
            tool_calls = getattr(delta, "tool_calls", None) or []
            call = getattr(tool_calls[0], "function", None) if tool_calls else None
        if call is None:
            return None

        name = getattr(call, "name", None)
        arguments = getattr(call, "arguments", None) or ""
        if not name and not arguments:
            return None
        return FunctionCall(name=name or None, arguments=arguments)

    def _log_prompt_payload(self, payload: Mapping[str, Any]) -> None:
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("AI prompt payload (unserializable): %s", payload)
        else:
            LOGGER.debug("AI prompt payload:\n%s", serialized)

    async def aclose(self) -> None:
        """Close the underlying OpenAI client to release network resources."""

        close = getattr(self._client, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result
