"""
Grounded answer streaming.

Streams deltas from the primary generator. When the stream cannot be opened,
breaks mid-way, or goes silent for longer than the idle timeout, the streamer
falls back once to non-streaming generation over the whole chain and yields
that full answer as a single `replace` chunk, which supersedes any deltas
already sent. If the fallback fails too, the iterator raises ProviderFailure;
it never hangs.

Abandoning iteration closes the upstream stream locally; no cancel request is
sent to the provider.

v1.0 (2026-01): Initial implementation
v1.1 (2026-10): Fallback answer sent as a replace chunk; any stream error falls back
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator

from repoqa.config import ANSWER_STREAM_IDLE_TIMEOUT_SECONDS
from repoqa.errors import ProviderFailure
from repoqa.providers.base import StreamingGenerator
from repoqa.rag.context_assembler import AssembledContext

logger = logging.getLogger(__name__)


ANSWER_PROMPT = """You are an AI code assistant answering questions about a codebase.
Your audience is a technical intern.

PROJECT FILE STRUCTURE:
---
{file_listing}
---

START CONTEXT BLOCK
{context}
END OF CONTEXT BLOCK

START QUESTION
{question}
END OF QUESTION

Instructions:
1. Ground the answer in the context block. If the context does not cover the question, say so.
2. For broad questions (e.g. "explain the codebase") keep it under 300 words and use bullet points.
3. Use the file structure to place files in the larger picture even when their content is not shown.
4. Answer in markdown and cite file paths where relevant."""


def build_answer_prompt(question: str, context: AssembledContext) -> str:
    return ANSWER_PROMPT.format(
        file_listing=context.file_listing,
        context=context.context_text,
        question=question,
    )


@dataclass(frozen=True)
class AnswerChunk:
    """
    One piece of the answer.

    A `delta` chunk extends the text streamed so far. A `replace` chunk is the
    complete fallback answer and supersedes every delta before it.
    """
    text: str
    kind: str = "delta"

    @property
    def replaces(self) -> bool:
        return self.kind == "replace"


class AnswerStreamer:
    def __init__(self, generator: StreamingGenerator, idle_timeout: float = ANSWER_STREAM_IDLE_TIMEOUT_SECONDS):
        self.generator = generator
        self.idle_timeout = idle_timeout

    async def stream(self, prompt: str) -> AsyncIterator[AnswerChunk]:
        upstream = None
        deltas = 0
        try:
            upstream = self.generator.stream(prompt).__aiter__()
            while True:
                try:
                    delta = await asyncio.wait_for(upstream.__anext__(), timeout=self.idle_timeout)
                except StopAsyncIteration:
                    logger.info("[answerer] Stream complete (%d deltas)", deltas)
                    return
                deltas += 1
                yield AnswerChunk(delta)
        except Exception as e:
            reason = "timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
            logger.warning("[answerer] Stream failed after %d deltas (%s), falling back to full generation", deltas, reason)
            stream_error = e
        finally:
            await _close(upstream)

        try:
            text = await self.generator.generate(prompt)
        except ProviderFailure as e:
            logger.error("[answerer] Fallback generation failed: %s", e)
            raise ProviderFailure(
                "Answer generation failed (stream and fallback)",
                capability="generate",
                errors=[stream_error, e],
            ) from e

        yield AnswerChunk(text, kind="replace")


async def _close(upstream) -> None:
    aclose = getattr(upstream, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except (ProviderFailure, RuntimeError) as e:
        logger.debug("[answerer] Upstream close raised: %s", e)
