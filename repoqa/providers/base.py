"""
Capability interfaces and ordered fallback chains.

Each model-backed step depends on a capability, never on a concrete vendor:

    Summarizer         summarize(prompt) -> text
    Embedder           embed(text) -> vector
    Classifier         classify(prompt) -> text
    StreamingGenerator stream(prompt) -> async iterator of deltas
                       generate(prompt) -> text

A chain is an ordered list of providers for one capability. `first_success`
tries them in order and raises ProviderFailure carrying every error when all
of them fail.
"""

import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Sequence, TypeVar, runtime_checkable

from repoqa.config import EMBEDDING_DIM
from repoqa.errors import ProviderFailure

logger = logging.getLogger(__name__)

P = TypeVar("P")
T = TypeVar("T")


# =============================================================================
# CAPABILITIES
# =============================================================================

@runtime_checkable
class Summarizer(Protocol):
    name: str

    async def summarize(self, prompt: str) -> str: ...


@runtime_checkable
class Embedder(Protocol):
    name: str

    async def embed(self, text: str) -> List[float]: ...


@runtime_checkable
class Classifier(Protocol):
    name: str

    async def classify(self, prompt: str) -> str: ...


@runtime_checkable
class StreamingGenerator(Protocol):
    name: str

    def stream(self, prompt: str) -> AsyncIterator[str]: ...

    async def generate(self, prompt: str) -> str: ...


# =============================================================================
# COMBINATOR
# =============================================================================

async def first_success(
    capability: str,
    providers: Sequence[P],
    call: Callable[[P], Awaitable[T]],
    accept: Optional[Callable[[T], bool]] = None,
) -> T:
    """
    Run `call` against each provider in order; return the first accepted result.

    A provider "fails" when it raises or when `accept` rejects its result.
    """
    if not providers:
        raise ProviderFailure(f"No {capability} provider configured", capability=capability)

    errors: List[BaseException] = []
    for provider in providers:
        name = getattr(provider, "name", type(provider).__name__)
        try:
            result = await call(provider)
        except Exception as e:
            logger.warning("[providers] %s via %s failed: %s", capability, name, e)
            errors.append(e)
            continue

        if accept is not None and not accept(result):
            logger.warning("[providers] %s via %s returned an unusable result", capability, name)
            errors.append(ProviderFailure("Unusable result", capability=capability, provider=name))
            continue

        if errors:
            logger.info("[providers] %s recovered via %s after %d failure(s)", capability, name, len(errors))
        return result

    raise ProviderFailure(
        f"All {capability} providers failed ({len(errors)} attempt(s))",
        capability=capability,
        errors=errors,
    )


def fit_vector(vector: Sequence[float], dim: int = EMBEDDING_DIM) -> List[float]:
    """Truncate or zero-pad a vector to exactly `dim` components."""
    values = [float(v) for v in vector[:dim]]
    if len(values) < dim:
        values.extend([0.0] * (dim - len(values)))
    return values


def _non_empty(text: str) -> bool:
    return bool(text and text.strip())


# =============================================================================
# CHAINS
# =============================================================================

class SummarizerChain:
    name = "summarizer-chain"

    def __init__(self, providers: Sequence[Summarizer]):
        self.providers = list(providers)

    async def summarize(self, prompt: str) -> str:
        return await first_success("summarize", self.providers, lambda p: p.summarize(prompt), accept=_non_empty)


class EmbedderChain:
    """Embeds text and normalizes every vector to the index dimension."""

    name = "embedder-chain"

    def __init__(self, providers: Sequence[Embedder], dim: int = EMBEDDING_DIM):
        self.providers = list(providers)
        self.dim = dim

    async def embed(self, text: str) -> List[float]:
        vector = await first_success("embed", self.providers, lambda p: p.embed(text), accept=bool)
        return fit_vector(vector, self.dim)


class ClassifierChain:
    name = "classifier-chain"

    def __init__(self, providers: Sequence[Classifier]):
        self.providers = list(providers)

    async def classify(self, prompt: str) -> str:
        return await first_success("classify", self.providers, lambda p: p.classify(prompt))


class GeneratorChain:
    """
    Answer generation. Streaming always uses the primary provider; the
    non-streaming path walks the whole chain.
    """

    name = "generator-chain"

    def __init__(self, providers: Sequence[StreamingGenerator]):
        self.providers = list(providers)

    @property
    def primary(self) -> StreamingGenerator:
        if not self.providers:
            raise ProviderFailure("No generate provider configured", capability="generate")
        return self.providers[0]

    def stream(self, prompt: str) -> AsyncIterator[str]:
        return self.primary.stream(prompt)

    async def generate(self, prompt: str) -> str:
        return await first_success("generate", self.providers, lambda p: p.generate(prompt), accept=_non_empty)
