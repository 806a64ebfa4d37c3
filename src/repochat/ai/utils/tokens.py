"""Token estimation utilities for AI operations."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, cast

import tiktoken

from ..ai_types import TokenCounterProtocol

LOGGER = logging.getLogger(__name__)

# Average bytes per token for English prose (GPT-style tokenization)
BYTES_PER_TOKEN = 4
_FALLBACK_ENCODING = "cl100k_base"


class ApproxByteCounter(TokenCounterProtocol):
    """Deterministic fallback counter that estimates tokens via byte length."""

    def __init__(self, *, model_name: str | None = None, charset: str = "utf-8", bytes_per_token: int = BYTES_PER_TOKEN) -> None:
        self.model_name = model_name
        self._charset = charset
        self._bytes_per_token = max(1, int(bytes_per_token))

    def count(self, text: str) -> int:
        return self.estimate(text)

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        data = text.encode(self._charset, errors="ignore")
        return max(1, math.ceil(len(data) / self._bytes_per_token))


class TiktokenCounter(TokenCounterProtocol):
    """Token counter backed by OpenAI's tiktoken package."""

    def __init__(self, model_name: str, *, encoding_name: str | None = None) -> None:
        if not model_name:
            raise ValueError("model_name is required for TiktokenCounter")
        self.model_name = model_name
        self._encoding = self._load_encoding(model_name, encoding_name)
        self._fallback = ApproxByteCounter(model_name=model_name)

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self._encoding.encode(text, disallowed_special=()))

    def estimate(self, text: str) -> int:
        return self._fallback.estimate(text)

    def _load_encoding(self, model_name: str, encoding_name: str | None):
        token_module = cast(Any, tiktoken)
        if encoding_name:
            return token_module.get_encoding(encoding_name)
        try:
            return token_module.encoding_for_model(model_name)
        except KeyError:
            LOGGER.debug("Falling back to %s encoding for model %s", _FALLBACK_ENCODING, model_name)
            return token_module.get_encoding(_FALLBACK_ENCODING)


class TokenCounterRegistry:
    """Registry maintaining tokenizer implementations per model."""

    _shared: TokenCounterRegistry | None = None

    def __init__(self, *, fallback: TokenCounterProtocol | None = None) -> None:
        self._fallback = fallback or ApproxByteCounter()
        self._counters: Dict[str, TokenCounterProtocol] = {}

    @classmethod
    def global_instance(cls) -> "TokenCounterRegistry":
        if cls._shared is None:
            cls._shared = TokenCounterRegistry()
        return cls._shared

    def register(self, model_name: str, counter: TokenCounterProtocol) -> None:
        key = self._normalize_key(model_name)
        if not key:
            raise ValueError("model_name is required for token counter registration")
        self._counters[key] = counter

    def unregister(self, model_name: str) -> None:
        key = self._normalize_key(model_name)
        if key in self._counters:
            self._counters.pop(key)

    def has(self, model_name: str | None) -> bool:
        key = self._normalize_key(model_name)
        return bool(key and key in self._counters)

    def get(self, model_name: str | None = None) -> TokenCounterProtocol:
        key = self._normalize_key(model_name)
        if key and key in self._counters:
            return self._counters[key]
        return self._fallback

    def count(self, model_name: str | None, text: str) -> int:
        return self.get(model_name).count(text)

    def estimate(self, text: str) -> int:
        return self._fallback.estimate(text)

    @staticmethod
    def _normalize_key(model_name: str | None) -> str:
        return (model_name or "").strip().lower()


__all__ = [
    "BYTES_PER_TOKEN",
    "ApproxByteCounter",
    "TiktokenCounter",
    "TokenCounterRegistry",
]
