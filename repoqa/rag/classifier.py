"""
Question classifier: broad (architecture / overview) vs specific (one file,
function or error).

A fast model gives a one-word label; a keyword heuristic breaks ties when the
model is unsure, silent or unavailable.

Decision:
    broad  iff  label contains "broad"
            or  (no usable label and heuristic matches)
            or  (label != "specific" and heuristic matches)
"""

import logging
import re
from dataclasses import dataclass

from repoqa.errors import ProviderFailure
from repoqa.providers.base import Classifier

logger = logging.getLogger(__name__)

BROAD = "broad"
SPECIFIC = "specific"

BROAD_HEURISTIC = re.compile(r"codebase|project|overview|about|summary|explain|architecture|docs", re.IGNORECASE)

# Reasoning models sometimes leak <think> style tags into one-word answers
_TAG_RE = re.compile(r"<[^>]+>")

CLASSIFIER_PROMPT = """You are a strict classifier. Decide whether this question is "broad" \
(high-level, architecture, overview) or "specific" (a particular file, function or error).
User question: "{question}"
Respond with exactly one word: broad or specific."""


@dataclass(frozen=True)
class QuestionClassification:
    raw_label: str
    label: str
    heuristic_broad: bool
    is_broad: bool

    @property
    def kind(self) -> str:
        return BROAD if self.is_broad else SPECIFIC


def normalize_label(raw: str) -> str:
    return _TAG_RE.sub("", (raw or "").strip().lower()).strip()


def is_heuristically_broad(question: str) -> bool:
    return bool(BROAD_HEURISTIC.search(question or ""))


def decide(label: str, question: str, raw_label: str = "") -> QuestionClassification:
    """Combine a normalized model label with the keyword heuristic."""
    heuristic = is_heuristically_broad(question)
    is_broad = (
        BROAD in label
        or (not label and heuristic)
        or (label != SPECIFIC and heuristic)
    )
    return QuestionClassification(raw_label=raw_label or label, label=label, heuristic_broad=heuristic, is_broad=is_broad)


class QuestionClassifier:
    def __init__(self, classifier: Classifier):
        self.classifier = classifier

    async def classify(self, question: str) -> QuestionClassification:
        raw = ""
        try:
            raw = await self.classifier.classify(CLASSIFIER_PROMPT.format(question=question))
        except ProviderFailure as e:
            # Treated as "no usable label"; the heuristic decides
            logger.warning("[classifier] Model unavailable, using heuristic only: %s", e)

        label = normalize_label(raw)
        result = decide(label, question, raw_label=raw)
        logger.info(
            "[classifier] label=%r heuristic=%s -> %s",
            label,
            result.heuristic_broad,
            result.kind,
        )
        return result
