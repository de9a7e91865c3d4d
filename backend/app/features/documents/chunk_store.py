"""
Documents feature: Batched chunk persistence.
"""

import logging

from app.core.exceptions import ChunkStoreWriteError
from app.features.documents.schemas import ChunkRecord
from app.features.documents.service import DocumentRepository

logger = logging.getLogger(__name__)


def page_number_for(chunk_index: int, chunks_per_page: int = 3) -> int:
    """Coarse 1-based page label: real pagination is lost after extraction."""
    return chunk_index // max(1, chunks_per_page) + 1


def build_chunk_records(
    document_id: str,
    user_id: str,
    chunks: list[str],
    vectors: list[list[float]] | None = None,
    chunks_per_page: int = 3,
) -> list[ChunkRecord]:
    """Attach sequence index, page label, owner and vector to each chunk."""
    if vectors is not None and len(vectors) != len(chunks):
        raise ValueError(f"Got {len(vectors)} vectors for {len(chunks)} chunks")
    return [
        ChunkRecord(
            document_id=document_id,
            user_id=user_id,
            chunk_text=text,
            chunk_index=index,
            page_number=page_number_for(index, chunks_per_page),
            embedding=vectors[index] if vectors is not None else None,
        )
        for index, text in enumerate(chunks)
    ]


class ChunkStoreWriter:
    """Writes chunk records in order, ``batch_size`` rows per insert."""

    def __init__(self, repository: DocumentRepository, batch_size: int = 50):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.repository = repository
        self.batch_size = batch_size

    def write(self, records: list[ChunkRecord]) -> int:
        """Insert every record or raise on the first failed batch.

        Returns:
            Number of rows written.

        Raises:
            ChunkStoreWriteError: A batch insert failed; later batches were not sent.
        """
        total_batches = -(-len(records) // self.batch_size)  # ceiling division
        written = 0
        for batch_number, start in enumerate(range(0, len(records), self.batch_size), start=1):
            batch = records[start:start + self.batch_size]
            logger.info(f"🔄 Inserting chunk batch {batch_number}/{total_batches} ({len(batch)} rows)...")
            try:
                self.repository.insert_chunks([record.to_row() for record in batch])
            except Exception as e:
                raise ChunkStoreWriteError(batch_number, total_batches, str(e)) from e
            written += len(batch)
        return written
