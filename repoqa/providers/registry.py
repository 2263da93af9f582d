"""
Provider registry.

Builds the per-capability fallback chains once, from whichever API keys are
present. The resulting ProviderClients is passed explicitly to the service;
nothing here is a module-level singleton.

Chain order (providers without a key are skipped):
- summarize: Groq -> OpenRouter -> OpenAI
- embed:     OpenRouter -> OpenAI
- classify:  OpenRouter -> Groq
- generate:  OpenRouter (primary answer model) -> OpenRouter (fallback model) -> OpenAI
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

from openai import AsyncOpenAI

from repoqa.config import (
    ANSWER_FALLBACK_MODEL,
    ANSWER_MODEL,
    APP_PUBLIC_URL,
    APP_TITLE,
    CLASSIFIER_MODEL,
    GROQ_BASE_URL,
    GROQ_SUMMARY_MODEL,
    HTTP_TIMEOUT_SECONDS,
    OPENAI_EMBEDDING_MODEL,
    OPENAI_SUMMARY_MODEL,
    OPENROUTER_BASE_URL,
    OPENROUTER_EMBEDDING_MODEL,
    OPENROUTER_SUMMARY_MODEL,
)
from repoqa.providers.base import ClassifierChain, EmbedderChain, GeneratorChain, SummarizerChain
from repoqa.providers.openai_compat import OpenAICompatibleProvider

logger = logging.getLogger(__name__)


@dataclass
class ProviderClients:
    summarizer: SummarizerChain
    embedder: EmbedderChain
    classifier: ClassifierChain
    generator: GeneratorChain

    def describe(self) -> Dict[str, list]:
        return {
            "summarize": [p.name for p in self.summarizer.providers],
            "embed": [p.name for p in self.embedder.providers],
            "classify": [p.name for p in self.classifier.providers],
            "generate": [p.name for p in self.generator.providers],
        }


def _client(api_key: str, base_url: Optional[str] = None, headers: Optional[dict] = None) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=api_key,
        base_url=base_url,
        timeout=HTTP_TIMEOUT_SECONDS * 4,
        default_headers=headers,
    )


def build_provider_clients(
    openrouter_key: Optional[str] = None,
    groq_key: Optional[str] = None,
    openai_key: Optional[str] = None,
) -> ProviderClients:
    """Build every chain from explicit keys, falling back to the environment."""
    openrouter_key = openrouter_key or os.getenv("OPENROUTER_API_KEY")
    groq_key = groq_key or os.getenv("GROQ_API_KEY")
    openai_key = openai_key or os.getenv("OPENAI_API_KEY")

    summarizers, embedders, classifiers, generators = [], [], [], []

    openrouter = groq = openai_client = None
    if openrouter_key:
        openrouter = _client(
            openrouter_key,
            OPENROUTER_BASE_URL,
            headers={"HTTP-Referer": APP_PUBLIC_URL, "X-Title": APP_TITLE},
        )
    if groq_key:
        groq = _client(groq_key, GROQ_BASE_URL)
    if openai_key:
        openai_client = _client(openai_key)

    if groq:
        summarizers.append(OpenAICompatibleProvider("groq", groq, GROQ_SUMMARY_MODEL))
    if openrouter:
        summarizers.append(OpenAICompatibleProvider("openrouter", openrouter, OPENROUTER_SUMMARY_MODEL))
        embedders.append(OpenAICompatibleProvider("openrouter-embed", openrouter, OPENROUTER_EMBEDDING_MODEL))
        classifiers.append(OpenAICompatibleProvider("openrouter-classify", openrouter, CLASSIFIER_MODEL))
        generators.append(OpenAICompatibleProvider("openrouter-answer", openrouter, ANSWER_MODEL))
        generators.append(OpenAICompatibleProvider("openrouter-answer-fallback", openrouter, ANSWER_FALLBACK_MODEL))
    if groq:
        classifiers.append(OpenAICompatibleProvider("groq-classify", groq, GROQ_SUMMARY_MODEL))
    if openai_client:
        summarizers.append(OpenAICompatibleProvider("openai", openai_client, OPENAI_SUMMARY_MODEL))
        embedders.append(OpenAICompatibleProvider("openai-embed", openai_client, OPENAI_EMBEDDING_MODEL))
        generators.append(OpenAICompatibleProvider("openai-answer", openai_client, OPENAI_SUMMARY_MODEL))

    clients = ProviderClients(
        summarizer=SummarizerChain(summarizers),
        embedder=EmbedderChain(embedders),
        classifier=ClassifierChain(classifiers),
        generator=GeneratorChain(generators),
    )
    if not (openrouter or groq or openai_client):
        logger.warning("[providers] No provider API keys set; every model call will fail")
    else:
        logger.info("[providers] Chains: %s", clients.describe())
    return clients
