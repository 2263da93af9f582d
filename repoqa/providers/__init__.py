"""
Model providers.

Capabilities (Summarizer, Embedder, Classifier, StreamingGenerator) are served
by ordered fallback chains built once by build_provider_clients().
"""

from repoqa.providers.base import (
    ClassifierChain,
    EmbedderChain,
    GeneratorChain,
    SummarizerChain,
    first_success,
    fit_vector,
)
from repoqa.providers.registry import ProviderClients, build_provider_clients

__all__ = [
    "ClassifierChain",
    "EmbedderChain",
    "GeneratorChain",
    "SummarizerChain",
    "first_success",
    "fit_vector",
    "ProviderClients",
    "build_provider_clients",
]
