"""
Documents feature: Best-effort text extraction from uploaded bytes.

The strategy is picked from the declared media type, falling back to the
filename suffix. Extraction never raises: anything that goes wrong degrades
to a placeholder naming the file so the pipeline can still complete.
"""

import io
import logging
import os
import re
import tempfile
from enum import Enum

from app.features.documents.schemas import IngestionConfig

logger = logging.getLogger(__name__)


class ExtractionStrategy(str, Enum):
    PLAIN_TEXT = "plain_text"
    PDF = "pdf"
    DOCX = "docx"
    BINARY = "binary"  # default: scan for printable runs


DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_TEXT_MEDIA_TYPES = {
    "application/json",
    "application/xml",
    "application/x-markdown",
    "application/markdown",
    "application/csv",
}
_TEXT_SUFFIXES = {"txt", "md", "markdown", "csv", "json", "xml", "html", "htm", "tex", "rst"}

_WORD = re.compile(r"[A-Za-z]{3,}")


def placeholder_text(filename: str) -> str:
    """Stand-in content for files whose text could not be recovered."""
    return (
        f"[Document: {filename}] The text of this document could not be extracted. "
        f"It may be a scanned document that requires OCR or additional processing."
    )


def resolve_strategy(media_type: str | None, filename: str | None) -> ExtractionStrategy:
    """Pick an extraction strategy; media type wins over the suffix."""
    mime = (media_type or "").split(";", 1)[0].strip().lower()
    suffix = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""

    if mime == "application/pdf":
        return ExtractionStrategy.PDF
    if mime == DOCX_MEDIA_TYPE:
        return ExtractionStrategy.DOCX
    if mime.startswith("text/") or mime in _TEXT_MEDIA_TYPES:
        return ExtractionStrategy.PLAIN_TEXT

    if suffix == "pdf":
        return ExtractionStrategy.PDF
    if suffix == "docx":
        return ExtractionStrategy.DOCX
    if suffix in _TEXT_SUFFIXES:
        return ExtractionStrategy.PLAIN_TEXT
    return ExtractionStrategy.BINARY


def scan_printable_runs(file_bytes: bytes, min_run: int = 4, min_fragment: int = 8) -> str:
    """Recover text from a binary container by keeping long printable runs.

    Runs shorter than ``min_fragment`` or without a single three-letter word
    are treated as noise (object ids, offsets, operators).
    """
    pattern = re.compile(rb"[\x20-\x7E]{%d,}" % max(1, min_run))
    fragments = []
    for match in pattern.finditer(file_bytes):
        fragment = match.group().decode("ascii").strip()
        if len(fragment) < min_fragment or not _WORD.search(fragment):
            continue
        fragments.append(fragment)
    return " ".join(" ".join(fragments).split())


def _decode_text(file_bytes: bytes) -> str:
    text = file_bytes.decode("utf-8", errors="replace")
    return text.lstrip("\ufeff").replace("\r\n", "\n").replace("\r", "\n")


def _extract_pdf(file_bytes: bytes) -> str:
    """Page text via PyPDFLoader (it needs a real path, hence the temp file)."""
    from langchain_community.document_loaders import PyPDFLoader

    with tempfile.NamedTemporaryFile(delete=False, suffix=".pdf") as temp_file:
        temp_file.write(file_bytes)
        temp_path = temp_file.name

    try:
        pages = PyPDFLoader(temp_path).load()
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)

    return "\n\n".join(page.page_content.strip() for page in pages if page.page_content.strip())


def _extract_docx(file_bytes: bytes) -> str:
    import docx

    document = docx.Document(io.BytesIO(file_bytes))
    return "\n\n".join(para.text.strip() for para in document.paragraphs if para.text.strip())


class TextExtractor:
    """Turns raw bytes + declared media type into plain text."""

    def __init__(self, config: IngestionConfig | None = None):
        self.config = config or IngestionConfig()

    def extract(self, file_bytes: bytes, media_type: str | None, filename: str) -> str:
        """Return best-effort plain text, truncated to the character budget.

        Never raises; failures degrade to :func:`placeholder_text`.
        """
        strategy = resolve_strategy(media_type, filename)
        try:
            text = self._run(strategy, file_bytes or b"", filename)
        except Exception as e:
            logger.warning(f"⚠️ Extraction failed for {filename} ({strategy.value}): {e}")
            return placeholder_text(filename)

        text = text[: self.config.max_extracted_chars]

        if strategy is ExtractionStrategy.PLAIN_TEXT:
            viable = bool(text.strip())
        else:
            viable = len(text.strip()) >= self.config.min_viable_text_chars
        if not viable:
            logger.warning(f"⚠️ Too little text recovered from {filename} ({len(text.strip())} chars), using placeholder")
            return placeholder_text(filename)

        logger.info(f"📄 Extracted {len(text)} characters from {filename} via {strategy.value}")
        return text

    def _run(self, strategy: ExtractionStrategy, file_bytes: bytes, filename: str) -> str:
        match strategy:
            case ExtractionStrategy.PLAIN_TEXT:
                return _decode_text(file_bytes)
            case ExtractionStrategy.PDF:
                return self._with_scan_fallback(_extract_pdf, file_bytes, filename)
            case ExtractionStrategy.DOCX:
                return self._with_scan_fallback(_extract_docx, file_bytes, filename)
            case _:
                return self._scan(file_bytes)

    def _with_scan_fallback(self, parser, file_bytes: bytes, filename: str) -> str:
        """Use the structured parser, falling back to the printable-run scan."""
        try:
            text = parser(file_bytes)
        except Exception as e:
            logger.warning(f"⚠️ Structured parse failed for {filename}, scanning raw bytes: {e}")
            text = ""
        if len(text.strip()) >= self.config.min_viable_text_chars:
            return text
        scanned = self._scan(file_bytes)
        return scanned if len(scanned) > len(text.strip()) else text

    def _scan(self, file_bytes: bytes) -> str:
        return scan_printable_runs(
            file_bytes,
            min_run=self.config.printable_run_min_chars,
            min_fragment=self.config.noise_fragment_min_chars,
        )
