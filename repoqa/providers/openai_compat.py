"""
OpenAI-compatible provider.

One class covers every vendor that speaks the OpenAI chat/embedding wire format
(OpenRouter, Groq, OpenAI itself); only base_url, key and model differ. A
single instance is bound to one model and serves every capability that model
is configured for.

SDK errors (openai.APIError family, transport errors) are normalized into
ProviderFailure so chains and callers never see vendor exception types.
"""

import logging
from typing import AsyncIterator, List, Optional

import httpx
import openai
from openai import AsyncOpenAI

from repoqa.errors import ProviderFailure

logger = logging.getLogger(__name__)

# Status codes worth retrying on another provider or later
_RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}

_SDK_ERRORS = (openai.APIError, httpx.HTTPError)


def _normalize_error(e: BaseException, provider: str, capability: str) -> ProviderFailure:
    failure = ProviderFailure(f"{provider} {capability} failed: {e}", capability=capability, provider=provider, errors=[e])
    status = getattr(e, "status_code", None)
    if status is not None:
        failure.retryable = status in _RETRYABLE_STATUS
    return failure


class OpenAICompatibleProvider:
    """Summarizer / Classifier / Embedder / StreamingGenerator over AsyncOpenAI."""

    def __init__(
        self,
        name: str,
        client: AsyncOpenAI,
        model: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.name = name
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def __repr__(self) -> str:
        return f"OpenAICompatibleProvider({self.name!r}, model={self.model!r})"

    # =========================================================================
    # CHAT
    # =========================================================================

    def _chat_kwargs(self, prompt: str, max_tokens: Optional[int], temperature: Optional[float]) -> dict:
        kwargs = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        max_tokens = max_tokens if max_tokens is not None else self.max_tokens
        temperature = temperature if temperature is not None else self.temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if temperature is not None:
            kwargs["temperature"] = temperature
        return kwargs

    async def complete(
        self,
        prompt: str,
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        capability: str = "generate",
    ) -> str:
        try:
            response = await self.client.chat.completions.create(
                **self._chat_kwargs(prompt, max_tokens, temperature)
            )
        except _SDK_ERRORS as e:
            raise _normalize_error(e, self.name, capability) from e

        if not response.choices:
            raise ProviderFailure(f"{self.name} returned no choices", capability=capability, provider=self.name)
        return (response.choices[0].message.content or "").strip()

    async def summarize(self, prompt: str) -> str:
        return await self.complete(prompt, capability="summarize")

    async def classify(self, prompt: str) -> str:
        return await self.complete(prompt, max_tokens=5, temperature=0, capability="classify")

    async def generate(self, prompt: str) -> str:
        return await self.complete(prompt, capability="generate")

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Yield content deltas. Failures at any point raise ProviderFailure."""
        try:
            stream = await self.client.chat.completions.create(
                stream=True, **self._chat_kwargs(prompt, None, None)
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except _SDK_ERRORS as e:
            raise _normalize_error(e, self.name, "stream") from e

    # =========================================================================
    # EMBEDDINGS
    # =========================================================================

    async def embed(self, text: str) -> List[float]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
        except _SDK_ERRORS as e:
            raise _normalize_error(e, self.name, "embed") from e

        if not response.data:
            raise ProviderFailure(f"{self.name} returned no embedding", capability="embed", provider=self.name)
        return list(response.data[0].embedding)
