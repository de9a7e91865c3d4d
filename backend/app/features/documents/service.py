"""
Documents feature: Persistence boundary for documents, chunks and raw files.

Every read is owner-scoped. Relation joins coming back from PostgREST
(``documents(title, upload_status)``) may be an object, a one-element list or
null depending on how the relationship is inferred; they are normalized here
into ``DocumentRef | None`` so callers never branch on the shape.
"""

import logging
import re
import time
import unicodedata
from dataclasses import dataclass

from supabase import Client

from app.config import Settings
from app.core.exceptions import DocumentNotFoundError, ForeignStoragePathError
from app.features.documents.schemas import DocumentStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentRef:
    """The parent-document fields joined onto a chunk row."""

    title: str | None
    status: str | None


@dataclass(frozen=True)
class StoredChunk:
    """A chunk row as read back for retrieval."""

    document_id: str
    chunk_text: str
    chunk_index: int
    page_number: int | None
    document: DocumentRef | None


def normalize_document_ref(value) -> DocumentRef | None:
    """Collapse the object / list / null relation shapes into one type."""
    if isinstance(value, list):
        value = value[0] if value else None
    if not isinstance(value, dict):
        return None
    return DocumentRef(title=value.get("title"), status=value.get("upload_status"))


def secure_filename(filename: str) -> str:
    """Strip accents and special characters, replace spaces with underscores."""
    filename = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    filename = re.sub(r"[^\w\.-]", "_", filename)
    return filename.strip("._") or "document"


def build_storage_path(user_id: str, filename: str) -> str:
    """Object key for a fresh upload: ``{user_id}/{unix_ms}_{safe_name}``."""
    return f"{user_id}/{int(time.time() * 1000)}_{secure_filename(filename)}"


def validate_storage_path(user_id: str, storage_path: str) -> str:
    """Ensure a client-supplied storage reference lives under the caller's prefix.

    Raises:
        ForeignStoragePathError: If the path is outside ``{user_id}/`` or
            tries to climb out of it.
    """
    path = (storage_path or "").strip()
    segments = path.split("/")
    if (
        not path.startswith(f"{user_id}/")
        or len(segments) < 2
        or any(seg in ("", ".", "..") for seg in segments[1:])
    ):
        raise ForeignStoragePathError(storage_path)
    return path


class DocumentRepository:
    """Supabase-backed store for ``documents``, ``document_chunks`` and blobs."""

    def __init__(
        self,
        db: Client,
        documents_table: str = "documents",
        chunks_table: str = "document_chunks",
        bucket: str = "curriculum-files",
    ):
        self.db = db
        self.documents_table = documents_table
        self.chunks_table = chunks_table
        self.bucket = bucket

    @classmethod
    def from_settings(cls, db: Client, settings: Settings) -> "DocumentRepository":
        return cls(
            db,
            documents_table=settings.DOCUMENTS_TABLE,
            chunks_table=settings.CHUNKS_TABLE,
            bucket=settings.STORAGE_BUCKET,
        )

    # ── Documents ────────────────────────────────────────

    def create_document(
        self,
        user_id: str,
        title: str,
        file_name: str,
        file_path: str,
        file_size: int,
        mime_type: str,
    ) -> dict:
        """Insert a document in the initial ``uploading`` state."""
        insert_data = {
            "user_id": user_id,
            "title": title,
            "file_name": file_name,
            "file_path": file_path,
            "file_size": file_size,
            "mime_type": mime_type,
            "upload_status": DocumentStatus.UPLOADING.value,
            "total_chunks": 0,
        }
        result = self.db.table(self.documents_table).insert(insert_data).execute()
        return result.data[0]

    def set_status(self, document_id: str, status: DocumentStatus, total_chunks: int | None = None) -> None:
        """Persist a status transition (and the final chunk count on completion).

        Raises:
            DocumentNotFoundError: If no row was updated (deleted mid-run or never created).
        """
        update_data: dict = {"upload_status": status.value}
        if total_chunks is not None:
            update_data["total_chunks"] = total_chunks
        result = self.db.table(self.documents_table).update(update_data).eq("id", document_id).execute()
        if not result.data:
            raise DocumentNotFoundError(document_id)

    def get_document(self, user_id: str, document_id: str) -> dict:
        """Fetch one owned document.

        Raises:
            DocumentNotFoundError: If missing or owned by someone else.
        """
        result = (
            self.db.table(self.documents_table)
            .select("*")
            .eq("id", document_id)
            .eq("user_id", user_id)
            .execute()
        )
        if not result.data:
            raise DocumentNotFoundError(document_id)
        return result.data[0]

    def list_documents(self, user_id: str, status: DocumentStatus | None = None) -> list[dict]:
        """List the owner's documents, newest first."""
        query = (
            self.db.table(self.documents_table)
            .select("*")
            .eq("user_id", user_id)
        )
        if status is not None:
            query = query.eq("upload_status", status.value)
        result = query.order("created_at", desc=True).execute()
        return result.data or []

    def delete_document(self, user_id: str, document_id: str) -> None:
        """Delete the owner's document; chunks go first, then the record."""
        self.delete_chunks(document_id)
        (
            self.db.table(self.documents_table)
            .delete()
            .eq("id", document_id)
            .eq("user_id", user_id)
            .execute()
        )

    # ── Chunks ───────────────────────────────────────────

    def insert_chunks(self, rows: list[dict]) -> None:
        self.db.table(self.chunks_table).insert(rows).execute()

    def delete_chunks(self, document_id: str) -> None:
        self.db.table(self.chunks_table).delete().eq("document_id", document_id).execute()

    def list_completed_chunks(self, user_id: str, page_size: int = 1000) -> list[StoredChunk]:
        """All of the owner's chunks whose parent document finished ingestion.

        The status filter runs server-side through an inner join, and rows are
        fetched page by page until a short page comes back, so PostgREST's
        ``max-rows`` never truncates the set. Ordered by document then chunk
        index so ties resolve deterministically.
        """
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        chunks = []
        offset = 0
        while True:
            result = (
                self.db.table(self.chunks_table)
                .select("document_id, chunk_text, chunk_index, page_number, documents!inner(title, upload_status)")
                .eq("user_id", user_id)
                .eq("documents.upload_status", DocumentStatus.COMPLETED.value)
                .order("document_id")
                .order("chunk_index")
                .range(offset, offset + page_size - 1)
                .execute()
            )
            rows = result.data or []
            for row in rows:
                ref = normalize_document_ref(row.get("documents"))
                if ref is None:
                    continue
                chunks.append(
                    StoredChunk(
                        document_id=row["document_id"],
                        chunk_text=row.get("chunk_text") or "",
                        chunk_index=row.get("chunk_index", 0),
                        page_number=row.get("page_number"),
                        document=ref,
                    )
                )
            if len(rows) < page_size:
                break
            offset += page_size

        logger.debug(f"Loaded {len(chunks)} completed chunks for {user_id} in {offset // page_size + 1} page(s)")
        return chunks

    # ── Storage ──────────────────────────────────────────

    def upload_file(self, storage_path: str, file_bytes: bytes, content_type: str) -> None:
        self.db.storage.from_(self.bucket).upload(
            path=storage_path,
            file=file_bytes,
            file_options={"content-type": content_type or "application/octet-stream"},
        )

    def download_file(self, storage_path: str) -> bytes:
        return self.db.storage.from_(self.bucket).download(storage_path)

    def remove_file(self, storage_path: str) -> None:
        self.db.storage.from_(self.bucket).remove([storage_path])
