"""
Documents feature: Deterministic fragment vectors.

This is a structural hashing fallback, not a learned embedding: it needs no
network and gives bit-identical output for identical text. Optionally a chat
model is asked for a short keyword list which is prepended before hashing to
bias the vector toward salient terms; if that call fails the raw text is used.
"""

import logging
import math
import re
from typing import Callable

from langchain_core.messages import HumanMessage, SystemMessage

from app.core.llm_provider import create_llm, message_text
from app.features.documents.schemas import IngestionConfig

logger = logging.getLogger(__name__)

TOKEN_SPLIT = re.compile(r"\W+")

KEYWORD_SYSTEM_PROMPT = (
    "Extract the most important keywords and key phrases from the study material "
    "the user sends. Reply with a single line of at most {limit} comma-separated "
    "keywords and nothing else."
)


def hash_vector(text: str, dimensions: int = 384, min_token_length: int = 3) -> list[float]:
    """Hash ``text`` into a unit-length vector of ``dimensions`` floats.

    Each character of each token lands on slot
    ``(token_index * 31 + char_index) * 31 + codepoint  (mod dimensions)``
    and adds ``codepoint / 128`` scaled by ``1 / (token_index + 1)``.
    Tokens shorter than ``min_token_length`` are skipped unless nothing else
    is left, as in a formula like ``x = 2, y = 3``. Only text without any word
    characters yields the zero vector.
    """
    vector = [0.0] * dimensions
    words = [t for t in TOKEN_SPLIT.split((text or "").lower()) if t]
    tokens = [t for t in words if len(t) >= min_token_length] or words

    for token_index, token in enumerate(tokens):
        weight = 1.0 / (token_index + 1)
        for char_index, char in enumerate(token):
            code = ord(char)
            slot = ((token_index * 31 + char_index) * 31 + code) % dimensions
            vector[slot] += weight * (code / 128.0)

    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return vector
    return [v / magnitude for v in vector]


class KeywordEnricher:
    """Asks the configured chat model for a comma-separated keyword summary."""

    def __init__(self, max_keywords: int = 10, llm_factory: Callable | None = None):
        self.max_keywords = max_keywords
        self._llm_factory = llm_factory or (lambda: create_llm(temperature=0.0, max_tokens=100))
        self._llm = None

    def _get_llm(self):
        if self._llm is None:
            self._llm = self._llm_factory()
        return self._llm

    def keywords(self, text: str) -> str:
        """Return the keyword line. Raises whatever the model client raises."""
        response = self._get_llm().invoke([
            SystemMessage(content=KEYWORD_SYSTEM_PROMPT.format(limit=self.max_keywords)),
            HumanMessage(content=text),
        ])
        raw = message_text(response.content)
        keywords = [k.strip() for k in raw.replace("\n", ",").split(",") if k.strip()]
        return ", ".join(keywords[: self.max_keywords])


class FragmentVectorizer:
    """Produces the stored vector for each chunk."""

    def __init__(self, config: IngestionConfig | None = None, enricher: KeywordEnricher | None = None):
        self.config = config or IngestionConfig()
        self.enricher = enricher
        if self.enricher is None and self.config.keyword_enrichment_enabled:
            self.enricher = KeywordEnricher(self.config.max_enrichment_keywords)

    def vectorize(self, text: str) -> list[float]:
        """Never fails: enrichment errors fall back to hashing the raw text."""
        source = text
        if self.enricher is not None:
            try:
                keywords = self.enricher.keywords(text)
                if keywords:
                    source = f"{keywords}\n{text}"
            except Exception as e:
                logger.warning(f"⚠️ Keyword enrichment failed, hashing raw chunk text: {e}")
        return hash_vector(source, self.config.vector_dimensions)
