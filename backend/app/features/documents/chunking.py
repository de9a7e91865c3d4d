"""
Documents feature: Paragraph-first chunking of extracted text.

Paragraphs (separated by blank lines) are packed greedily into chunks of at
most ``max_chars``. A paragraph that is too big on its own is packed word by
word instead, so only a single word longer than the limit can produce an
oversized chunk. There is no overlap between chunks.
"""

import logging
import re
from typing import Iterator

from langchain_text_splitters import RecursiveCharacterTextSplitter

logger = logging.getLogger(__name__)

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def split_paragraphs(text: str) -> list[str]:
    """Split on runs of blank lines and collapse whitespace inside each paragraph."""
    paragraphs = (" ".join(p.split()) for p in PARAGRAPH_BREAK.split(text or ""))
    return [p for p in paragraphs if p]


class Chunker:
    """Stateless splitter: the same text always yields the same chunks."""

    def __init__(self, max_chars: int = 1000, min_chars: int = 20):
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        self.max_chars = max_chars
        self.min_chars = min_chars
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=max_chars,
            chunk_overlap=0,
            separators=["\n\n", " "],
            keep_separator=False,
            strip_whitespace=True,
            length_function=len,
        )

    def iter_chunks(self, text: str) -> Iterator[str]:
        """Yield chunks in document order, skipping fragments below ``min_chars``."""
        normalized = "\n\n".join(split_paragraphs(text))
        if not normalized:
            return
        for chunk in self._splitter.split_text(normalized):
            chunk = chunk.strip()
            if len(chunk) < self.min_chars:
                logger.debug(f"Dropping {len(chunk)}-char fragment below minimum chunk size")
                continue
            yield chunk

    def split(self, text: str) -> list[str]:
        return list(self.iter_chunks(text))
