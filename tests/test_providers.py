# FILE: tests/test_providers.py
"""
Tests for repoqa/providers/

Covers:
- first_success ordering and error aggregation
- Vector fitting
- Chain acceptance rules
- OpenAI-compatible provider error normalization
- Registry chain construction from keys
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import httpx
import openai
import pytest

from fakes import FakeEmbedder, FakeGenerator, FakeSummarizer
from repoqa.errors import ProviderFailure
from repoqa.providers.base import (
    Embedder,
    EmbedderChain,
    GeneratorChain,
    StreamingGenerator,
    Summarizer,
    SummarizerChain,
    first_success,
    fit_vector,
)
from repoqa.providers.openai_compat import OpenAICompatibleProvider
from repoqa.providers.registry import build_provider_clients


class TestImports:
    """Test module structure."""

    def test_imports_work(self):
        """Test public names import."""
        from repoqa.providers import ProviderClients, build_provider_clients, first_success  # noqa: F401

    def test_fakes_satisfy_protocols(self):
        """Test the fakes satisfy the capability protocols."""
        assert isinstance(FakeSummarizer(), Summarizer)
        assert isinstance(FakeEmbedder(), Embedder)
        assert isinstance(FakeGenerator(), StreamingGenerator)


class TestFirstSuccess:
    """Test provider chain walking."""

    @pytest.mark.asyncio
    async def test_returns_first_working_provider(self):
        """Test the first working provider answers."""
        providers = [FakeSummarizer("a", fail_when=lambda p: True), FakeSummarizer("b", reply="from b"), FakeSummarizer("c", reply="from c")]
        result = await first_success("summarize", providers, lambda p: p.summarize("x"))
        assert result == "from b"
        assert providers[2].prompts == []

    @pytest.mark.asyncio
    async def test_all_fail_carries_every_error(self):
        """Test total failure carries every provider error."""
        providers = [FakeSummarizer("a", fail_when=lambda p: True), FakeSummarizer("b", fail_when=lambda p: True)]
        with pytest.raises(ProviderFailure) as exc_info:
            await first_success("summarize", providers, lambda p: p.summarize("x"))
        assert len(exc_info.value.errors) == 2
        assert exc_info.value.capability == "summarize"

    @pytest.mark.asyncio
    async def test_rejected_result_counts_as_failure(self):
        """Test a rejected result moves to the next provider."""
        providers = [FakeSummarizer("a", reply="   "), FakeSummarizer("b", reply="ok")]
        chain = SummarizerChain(providers)
        assert await chain.summarize("x") == "ok"

    @pytest.mark.asyncio
    async def test_no_providers(self):
        """Test an empty chain raises ProviderFailure."""
        with pytest.raises(ProviderFailure):
            await first_success("embed", [], lambda p: p.embed("x"))


class TestFitVector:
    """Test vector fitting."""

    def test_pads(self):
        """Test short vectors are zero-padded."""
        assert fit_vector([1, 2], 4) == [1.0, 2.0, 0.0, 0.0]

    def test_truncates(self):
        """Test long vectors are truncated."""
        assert fit_vector([1, 2, 3, 4, 5], 3) == [1.0, 2.0, 3.0]

    def test_exact(self):
        """Test exact-length vectors are unchanged."""
        assert fit_vector([0.5] * 3, 3) == [0.5, 0.5, 0.5]


class TestChains:
    """Test capability chains."""

    @pytest.mark.asyncio
    async def test_embedder_chain_falls_back_and_fits(self):
        """Test the embedder chain falls back and fits vectors."""
        chain = EmbedderChain([FakeEmbedder("a", fail=True), FakeEmbedder("b", dim=10)], dim=6)
        vector = await chain.embed("hello")
        assert len(vector) == 6

    @pytest.mark.asyncio
    async def test_generator_chain_streams_from_primary(self):
        """Test streaming uses the primary generator."""
        primary = FakeGenerator(deltas=["a", "b"])
        chain = GeneratorChain([primary, FakeGenerator(deltas=["z"])])
        assert [d async for d in chain.stream("q")] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_generator_chain_generate_walks_chain(self):
        """Test full generation walks the chain."""
        chain = GeneratorChain([FakeGenerator(generate_fails=True), FakeGenerator(full_text="second")])
        assert await chain.generate("q") == "second"

    def test_empty_generator_chain(self):
        """Test an empty generator chain raises."""
        with pytest.raises(ProviderFailure):
            GeneratorChain([]).primary


def _completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def _chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


def _client(create=None, embeddings=None):
    client = Mock()
    client.chat.completions.create = create or AsyncMock()
    client.embeddings.create = embeddings or AsyncMock()
    return client


class TestOpenAICompatibleProvider:
    """Test the OpenAI-compatible provider."""

    @pytest.mark.asyncio
    async def test_summarize_strips(self):
        """Test summaries are stripped."""
        client = _client(create=AsyncMock(return_value=_completion("  A summary.  ")))
        provider = OpenAICompatibleProvider("groq", client, "m")
        assert await provider.summarize("p") == "A summary."

    @pytest.mark.asyncio
    async def test_classify_uses_short_deterministic_call(self):
        """Test classification uses a short zero-temperature call."""
        create = AsyncMock(return_value=_completion("broad"))
        provider = OpenAICompatibleProvider("or", _client(create=create), "m")
        await provider.classify("p")
        kwargs = create.call_args.kwargs
        assert kwargs["max_tokens"] == 5
        assert kwargs["temperature"] == 0

    @pytest.mark.asyncio
    async def test_stream_yields_content_deltas(self):
        """Test streaming yields content deltas only."""
        async def chunks():
            for text in ["Hel", None, "lo"]:
                yield _chunk(text)

        provider = OpenAICompatibleProvider("or", _client(create=AsyncMock(return_value=chunks())), "m")
        assert [d async for d in provider.stream("p")] == ["Hel", "lo"]

    @pytest.mark.asyncio
    async def test_embed_returns_vector(self):
        """Test embedding returns the vector."""
        embeddings = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2])]))
        provider = OpenAICompatibleProvider("oa", _client(embeddings=embeddings), "e")
        assert await provider.embed("t") == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_sdk_error_normalized(self):
        """Test SDK errors become ProviderFailure."""
        request = httpx.Request("POST", "https://example.test/v1/chat/completions")
        error = openai.RateLimitError("slow down", response=httpx.Response(429, request=request), body=None)
        provider = OpenAICompatibleProvider("or", _client(create=AsyncMock(side_effect=error)), "m")

        with pytest.raises(ProviderFailure) as exc_info:
            await provider.generate("p")
        assert exc_info.value.provider == "or"
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_client_error_not_retryable(self):
        """Test client errors are not retryable."""
        request = httpx.Request("POST", "https://example.test/v1/embeddings")
        error = openai.BadRequestError("bad", response=httpx.Response(400, request=request), body=None)
        provider = OpenAICompatibleProvider("oa", _client(embeddings=AsyncMock(side_effect=error)), "e")

        with pytest.raises(ProviderFailure) as exc_info:
            await provider.embed("t")
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_connection_error_normalized(self):
        """Test connection errors become ProviderFailure."""
        request = httpx.Request("POST", "https://example.test/v1/chat/completions")
        error = openai.APIConnectionError(request=request)
        provider = OpenAICompatibleProvider("groq", _client(create=AsyncMock(side_effect=error)), "m")

        with pytest.raises(ProviderFailure):
            await provider.summarize("p")

    @pytest.mark.asyncio
    async def test_no_choices(self):
        """Test a response without choices fails."""
        provider = OpenAICompatibleProvider("or", _client(create=AsyncMock(return_value=SimpleNamespace(choices=[]))), "m")
        with pytest.raises(ProviderFailure):
            await provider.generate("p")


class TestRegistry:
    """Test provider registry construction."""

    def test_chain_order_with_all_keys(self, monkeypatch):
        """Test chain order when every key is set."""
        clients = build_provider_clients("or-key", "groq-key", "oa-key")
        assert clients.describe() == {
            "summarize": ["groq", "openrouter", "openai"],
            "embed": ["openrouter-embed", "openai-embed"],
            "classify": ["openrouter-classify", "groq-classify"],
            "generate": ["openrouter-answer", "openrouter-answer-fallback", "openai-answer"],
        }

    def test_missing_keys_skipped(self, monkeypatch):
        """Test providers without keys are skipped."""
        for key in ("OPENROUTER_API_KEY", "GROQ_API_KEY", "OPENAI_API_KEY"):
            monkeypatch.delenv(key, raising=False)
        clients = build_provider_clients(groq_key="groq-key")
        assert clients.describe()["summarize"] == ["groq"]
        assert clients.describe()["embed"] == []
