"""
Documents feature: Schemas, status state machine and ingestion config.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.config import Settings


class DocumentStatus(str, Enum):
    """Ingestion state machine persisted in ``documents.upload_status``.

    Forward order: uploading → extracting_text → chunking → storing_chunks → completed.
    ``error`` is reachable from any non-terminal state.
    """

    UPLOADING = "uploading"
    EXTRACTING_TEXT = "extracting_text"
    CHUNKING = "chunking"
    STORING_CHUNKS = "storing_chunks"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.COMPLETED, DocumentStatus.ERROR)

    def can_advance_to(self, target: "DocumentStatus") -> bool:
        """True if ``target`` is a legal next state (forward only, never revisited)."""
        if self.is_terminal:
            return False
        if target is DocumentStatus.ERROR:
            return True
        return _FORWARD_ORDER.index(target) > _FORWARD_ORDER.index(self)


_FORWARD_ORDER = [
    DocumentStatus.UPLOADING,
    DocumentStatus.EXTRACTING_TEXT,
    DocumentStatus.CHUNKING,
    DocumentStatus.STORING_CHUNKS,
    DocumentStatus.COMPLETED,
]


class IngestionConfig(BaseModel):
    """Limits and knobs for one pipeline run. Defaults mirror ``Settings``."""

    model_config = ConfigDict(frozen=True)

    max_extracted_chars: int = 500_000
    min_viable_text_chars: int = 100
    printable_run_min_chars: int = 4
    noise_fragment_min_chars: int = 8
    chunk_max_chars: int = 1000
    chunk_min_chars: int = 20
    max_chunks_per_document: int = 500
    insert_batch_size: int = 50
    chunks_per_page: int = 3
    vector_dimensions: int = 384
    keyword_enrichment_enabled: bool = False
    max_enrichment_keywords: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestionConfig":
        return cls(
            max_extracted_chars=settings.MAX_EXTRACTED_CHARS,
            min_viable_text_chars=settings.MIN_VIABLE_TEXT_CHARS,
            printable_run_min_chars=settings.PRINTABLE_RUN_MIN_CHARS,
            noise_fragment_min_chars=settings.NOISE_FRAGMENT_MIN_CHARS,
            chunk_max_chars=settings.CHUNK_MAX_CHARS,
            chunk_min_chars=settings.CHUNK_MIN_CHARS,
            max_chunks_per_document=settings.MAX_CHUNKS_PER_DOCUMENT,
            insert_batch_size=settings.CHUNK_INSERT_BATCH_SIZE,
            chunks_per_page=settings.CHUNKS_PER_PAGE,
            vector_dimensions=settings.VECTOR_DIMENSIONS,
            keyword_enrichment_enabled=settings.KEYWORD_ENRICHMENT_ENABLED,
            max_enrichment_keywords=settings.MAX_ENRICHMENT_KEYWORDS,
        )


class IngestionSource(BaseModel):
    """Where the background task gets the bytes from.

    Raw uploads carry ``file_bytes`` and are written to storage during the
    ``uploading`` stage; storage references are downloaded instead.
    """

    document_id: str
    user_id: str
    file_name: str
    media_type: str
    storage_path: str
    file_bytes: bytes | None = None

    @property
    def needs_upload(self) -> bool:
        return self.file_bytes is not None


class ChunkRecord(BaseModel):
    """One row of ``document_chunks`` as produced by the pipeline."""

    document_id: str
    user_id: str
    chunk_text: str
    chunk_index: int
    page_number: int | None = None
    embedding: list[float] | None = None

    def to_row(self) -> dict:
        return self.model_dump()


# ── API models ───────────────────────────────────────────

class StorageIngestRequest(BaseModel):
    """Ingest a file the client already placed under ``{user_id}/`` in storage."""

    storage_path: str
    file_name: str
    media_type: str = "application/octet-stream"
    file_size: int = Field(default=0, ge=0)
    title: str | None = None


class IngestAccepted(BaseModel):
    """Immediate response; processing continues in the background."""

    success: bool = True
    document_id: str
    message: str


class DocumentResponse(BaseModel):
    id: str
    title: str
    file_name: str
    file_path: str
    file_size: int = 0
    mime_type: str | None = None
    upload_status: DocumentStatus
    total_chunks: int | None = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
