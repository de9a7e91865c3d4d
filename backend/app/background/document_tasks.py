"""
Background tasks for document ingestion and deletion.

The upload endpoint creates the document row (status ``uploading``) and
returns; :func:`process_document_pipeline` then runs as a FastAPI
BackgroundTask:

    uploading → extracting_text → chunking → storing_chunks → completed
                                                   ↘ error (from any stage)

The task reports progress only through ``documents.upload_status`` and
``total_chunks``. Nothing is raised back to the caller.
"""

import logging
from itertools import islice

from supabase import Client

from app.config import get_settings
from app.core.exceptions import InvalidStatusTransitionError, PipelineStageError
from app.features.documents.chunk_store import ChunkStoreWriter, build_chunk_records
from app.features.documents.chunking import Chunker
from app.features.documents.extraction import TextExtractor
from app.features.documents.schemas import DocumentStatus, IngestionConfig, IngestionSource
from app.features.documents.service import DocumentRepository
from app.features.documents.vectorizer import FragmentVectorizer

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Extractor → Chunker → Vectorizer → Writer behind the status state machine.

    Stateless between runs, so one instance may serve several documents
    concurrently; each run only touches its own document and chunk rows.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        config: IngestionConfig | None = None,
        extractor: TextExtractor | None = None,
        chunker: Chunker | None = None,
        vectorizer: FragmentVectorizer | None = None,
        writer: ChunkStoreWriter | None = None,
    ):
        self.repository = repository
        self.config = config or IngestionConfig()
        self.extractor = extractor or TextExtractor(self.config)
        self.chunker = chunker or Chunker(self.config.chunk_max_chars, self.config.chunk_min_chars)
        self.vectorizer = vectorizer or FragmentVectorizer(self.config)
        self.writer = writer or ChunkStoreWriter(repository, self.config.insert_batch_size)

    def run(self, source: IngestionSource) -> DocumentStatus:
        """Drive one document to ``completed`` or ``error``. Never raises.

        Returns:
            The terminal status that was recorded.
        """
        document_id = source.document_id
        status = DocumentStatus.UPLOADING
        logger.info(f"🚀 Starting background processing for document {document_id} ({source.file_name})")

        try:
            file_bytes = self._stage(status, self._load_bytes, source)

            status = self._advance(document_id, status, DocumentStatus.EXTRACTING_TEXT)
            text = self._stage(status, self.extractor.extract, file_bytes, source.media_type, source.file_name)

            status = self._advance(document_id, status, DocumentStatus.CHUNKING)
            records = self._stage(status, self._chunk_and_vectorize, source, text)

            status = self._advance(document_id, status, DocumentStatus.STORING_CHUNKS)
            written = self._stage(status, self.writer.write, records)

            status = self._advance(document_id, status, DocumentStatus.COMPLETED, total_chunks=written)
            logger.info(f"🎉 Document {document_id} completed with {written} chunks.")
            return status

        except Exception as e:
            stage = e.stage if isinstance(e, PipelineStageError) else status.value
            logger.error(f"❌ Document pipeline failed for {document_id} at '{stage}': {e}")
            if status in (DocumentStatus.STORING_CHUNKS, DocumentStatus.COMPLETED):
                self._discard_partial_chunks(document_id)
            self._mark_error(document_id, status)
            return DocumentStatus.ERROR

    # ── Stages ───────────────────────────────────────────

    def _load_bytes(self, source: IngestionSource) -> bytes:
        """Put raw uploads into storage, or fetch an already stored file."""
        if source.needs_upload:
            self.repository.upload_file(source.storage_path, source.file_bytes, source.media_type)
            logger.info(f"✅ Stored original file at {source.storage_path}")
            return source.file_bytes
        return self.repository.download_file(source.storage_path)

    def _chunk_and_vectorize(self, source: IngestionSource, text: str):
        cap = self.config.max_chunks_per_document
        chunk_iter = self.chunker.iter_chunks(text)
        chunks = list(islice(chunk_iter, cap))
        if next(chunk_iter, None) is not None:
            logger.warning(f"⚠️ Document {source.document_id} exceeds {cap} chunks; keeping the first {cap}")

        vectors = [self.vectorizer.vectorize(chunk) for chunk in chunks]
        logger.info(f"✅ Generated {len(chunks)} chunks with {self.config.vector_dimensions}-dim vectors.")
        return build_chunk_records(
            source.document_id,
            source.user_id,
            chunks,
            vectors,
            chunks_per_page=self.config.chunks_per_page,
        )

    # ── State machine helpers ────────────────────────────

    @staticmethod
    def _stage(status: DocumentStatus, func, *args):
        try:
            return func(*args)
        except Exception as e:
            raise PipelineStageError(status.value, e) from e

    def _advance(
        self,
        document_id: str,
        current: DocumentStatus,
        target: DocumentStatus,
        total_chunks: int | None = None,
    ) -> DocumentStatus:
        if not current.can_advance_to(target):
            raise InvalidStatusTransitionError(current.value, target.value)
        self.repository.set_status(document_id, target, total_chunks=total_chunks)
        return target

    def _discard_partial_chunks(self, document_id: str) -> None:
        try:
            self.repository.delete_chunks(document_id)
            logger.info(f"🧹 Removed partially written chunks for {document_id}")
        except Exception as e:
            logger.warning(f"⚠️ Could not remove partial chunks for {document_id}: {e}")

    def _mark_error(self, document_id: str, current: DocumentStatus) -> None:
        if not current.can_advance_to(DocumentStatus.ERROR):
            # completed was already persisted; leave it for the owner to delete
            logger.error(f"❌ Document {document_id} is already {current.value}, not marking error")
            return
        try:
            self.repository.set_status(document_id, DocumentStatus.ERROR)
        except Exception as e:
            logger.error(f"❌ Could not record error status for {document_id}: {e}")


def process_document_pipeline(db: Client, source: IngestionSource, config: IngestionConfig | None = None) -> DocumentStatus:
    """BackgroundTask entry point: build the pipeline from settings and run it."""
    settings = get_settings()
    repository = DocumentRepository.from_settings(db, settings)
    pipeline = IngestionPipeline(repository, config or IngestionConfig.from_settings(settings))
    return pipeline.run(source)


def delete_document_pipeline(db: Client, document_id: str, file_path: str | None, user_id: str) -> None:
    """
    Background task to delete a document:
    1. Delete the original file from storage (best effort)
    2. Delete its chunks, then the document record
    """
    repository = DocumentRepository.from_settings(db, get_settings())
    logger.info(f"🗑️ Starting background deletion for document {document_id}")

    if file_path and file_path.startswith(f"{user_id}/"):
        try:
            repository.remove_file(file_path)
            logger.info(f"✅ Removed file from storage: {file_path}")
        except Exception as e:
            # Continue to DB deletion even if the blob is already gone
            logger.warning(f"⚠️ Could not remove file {file_path} from storage: {e}")

    try:
        repository.delete_document(user_id, document_id)
        logger.info(f"✅ Successfully deleted document {document_id} and its chunks.")
    except Exception as e:
        logger.error(f"❌ Failed to delete document {document_id}: {e}")
