"""
Chat feature: Lexical relevance scoring of a user's stored chunks.

Signals, added per chunk:
  1. exact phrase: the whole lower-cased query appears as a run of whole words
  2. n-gram overlap: 2- and 3-word runs of the query's content words
  3. weighted term frequency: capped whole-word counts times an IDF weight
  4. proximity: query terms whose first occurrences sit close together

Stopwords are dropped for 2-4 but not for the exact-phrase check. Chunks
scoring zero are never returned.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass
from itertools import combinations
from typing import Sequence

from pydantic import BaseModel, ConfigDict

from app.config import Settings
from app.features.documents.service import StoredChunk

WORD = re.compile(r"\w+")

STOPWORDS = frozenset({
    "a", "about", "above", "after", "again", "against", "all", "am", "an", "and", "any",
    "are", "as", "at", "be", "because", "been", "before", "being", "below", "between",
    "both", "but", "by", "can", "could", "did", "do", "does", "doing", "down", "during",
    "each", "explain", "few", "for", "from", "further", "had", "has", "have", "having",
    "he", "her", "here", "hers", "him", "his", "how", "i", "if", "in", "into", "is", "it",
    "its", "just", "me", "more", "most", "my", "no", "nor", "not", "now", "of", "off",
    "on", "once", "only", "or", "other", "our", "out", "over", "own", "please", "same",
    "she", "should", "so", "some", "such", "tell", "than", "that", "the", "their",
    "them", "then", "there", "these", "they", "this", "those", "through", "to", "too",
    "under", "until", "up", "very", "was", "we", "were", "what", "when", "where",
    "which", "while", "who", "whom", "why", "will", "with", "would", "you", "your",
})


class RetrievalConfig(BaseModel):
    """Empirical weights; tune freely, nothing depends on the exact values."""

    model_config = ConfigDict(frozen=True)

    top_k: int = 5
    phrase_bonus: float = 10.0
    ngram_weight: float = 2.0
    tf_cap: int = 5
    min_idf: float = 0.1
    proximity_threshold: int = 100
    proximity_bonus: float = 3.0
    min_token_length: int = 3
    page_size: int = 1000

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetrievalConfig":
        return cls(
            top_k=settings.RETRIEVAL_TOP_K,
            phrase_bonus=settings.RETRIEVAL_PHRASE_BONUS,
            ngram_weight=settings.RETRIEVAL_NGRAM_WEIGHT,
            tf_cap=settings.RETRIEVAL_TF_CAP,
            min_idf=settings.RETRIEVAL_MIN_IDF,
            proximity_threshold=settings.RETRIEVAL_PROXIMITY_THRESHOLD,
            proximity_bonus=settings.RETRIEVAL_PROXIMITY_BONUS,
            min_token_length=settings.RETRIEVAL_MIN_TOKEN_LENGTH,
            page_size=settings.RETRIEVAL_PAGE_SIZE,
        )


@dataclass(frozen=True)
class ScoredChunk:
    chunk_text: str
    document_title: str
    page_label: str
    score: float
    document_id: str
    chunk_index: int

    @property
    def source_label(self) -> str:
        """Citation string, e.g. ``Biology Notes (Page 2)``."""
        return f"{self.document_title} ({self.page_label})"


@dataclass
class _PreparedChunk:
    position: int
    chunk: StoredChunk
    text: str  # lower-cased, whitespace-collapsed
    padded_words: str
    counts: Counter


def content_tokens(text: str, min_length: int = 3, stopwords: frozenset = STOPWORDS) -> list[str]:
    """Lower-cased query words minus stopwords and very short tokens, in order."""
    return [
        word for word in WORD.findall(text.lower())
        if len(word) >= min_length and word not in stopwords
    ]


def page_label(page_number: int | None) -> str:
    return f"Page {page_number}" if page_number else "Page N/A"


class RetrievalScorer:
    """Ranks chunks against a query. Pure and read-only."""

    def __init__(self, config: RetrievalConfig | None = None, stopwords: frozenset = STOPWORDS):
        self.config = config or RetrievalConfig()
        self.stopwords = stopwords

    def rank(self, chunks: Sequence[StoredChunk], query: str, top_k: int | None = None) -> list[ScoredChunk]:
        """Top-K chunks by score; ties go to the lower chunk index, then input order."""
        phrase = " ".join(WORD.findall((query or "").lower()))
        if not phrase or not chunks:
            return []

        tokens = content_tokens(phrase, self.config.min_token_length, self.stopwords)
        prepared = [self._prepare(position, chunk) for position, chunk in enumerate(chunks)]
        idf = self._idf(tokens, prepared)

        scored = []
        for item in prepared:
            score = self._score(item, phrase, tokens, idf)
            if score > 0:
                scored.append((score, item))

        scored.sort(key=lambda pair: (-pair[0], pair[1].chunk.chunk_index, pair[1].position))
        limit = self.config.top_k if top_k is None else top_k
        return [self._result(score, item) for score, item in scored[:max(0, limit)]]

    # ── Scoring signals ──────────────────────────────────

    def _score(self, item: _PreparedChunk, phrase: str, tokens: list[str], idf: dict[str, float]) -> float:
        score = 0.0

        if f" {phrase} " in item.padded_words:
            score += self.config.phrase_bonus

        for n in (2, 3):
            for i in range(len(tokens) - n + 1):
                gram = " ".join(tokens[i:i + n])
                if f" {gram} " in item.padded_words:
                    score += n * self.config.ngram_weight

        unique_tokens = list(dict.fromkeys(tokens))
        for token in unique_tokens:
            tf = min(item.counts[token], self.config.tf_cap)
            if tf:
                score += tf * idf[token]

        score += self._proximity(item, unique_tokens)
        return score

    def _proximity(self, item: _PreparedChunk, tokens: list[str]) -> float:
        positions = []
        for token in tokens:
            if not item.counts[token]:
                continue
            match = re.search(rf"\b{re.escape(token)}\b", item.text)
            if match:
                positions.append(match.start())
        if len(positions) < 2:
            return 0.0

        distances = [abs(a - b) for a, b in combinations(positions, 2)]
        if sum(distances) / len(distances) < self.config.proximity_threshold:
            return self.config.proximity_bonus
        return 0.0

    def _idf(self, tokens: list[str], prepared: list[_PreparedChunk]) -> dict[str, float]:
        total = len(prepared)
        weights = {}
        for token in set(tokens):
            df = sum(1 for item in prepared if item.counts[token])
            weights[token] = max(math.log((total + 1) / (df + 1)), self.config.min_idf)
        return weights

    # ── Helpers ──────────────────────────────────────────

    @staticmethod
    def _prepare(position: int, chunk: StoredChunk) -> _PreparedChunk:
        text = " ".join(chunk.chunk_text.lower().split())
        words = WORD.findall(text)
        return _PreparedChunk(
            position=position,
            chunk=chunk,
            text=text,
            padded_words=f" {' '.join(words)} ",
            counts=Counter(words),
        )

    @staticmethod
    def _result(score: float, item: _PreparedChunk) -> ScoredChunk:
        ref = item.chunk.document
        return ScoredChunk(
            chunk_text=item.chunk.chunk_text,
            document_title=(ref.title if ref and ref.title else "Document"),
            page_label=page_label(item.chunk.page_number),
            score=round(score, 4),
            document_id=item.chunk.document_id,
            chunk_index=item.chunk.chunk_index,
        )
