"""
Documents feature: Upload, status polling, listing and deletion.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile, status
from supabase import Client

from app.background.document_tasks import delete_document_pipeline, process_document_pipeline
from app.config import Settings, get_settings
from app.core.dependencies import get_current_user_id, get_db, get_repository
from app.core.exceptions import (
    DocumentNotFoundError,
    ForeignStoragePathError,
    InvalidUploadError,
    UploadTooLargeError,
    app_error_to_http,
)
from app.features.documents.schemas import (
    DocumentResponse,
    DocumentStatus,
    IngestAccepted,
    IngestionConfig,
    IngestionSource,
    StorageIngestRequest,
)
from app.features.documents.service import (
    DocumentRepository,
    build_storage_path,
    secure_filename,
    validate_storage_path,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ACCEPTED_MESSAGE = "Upload accepted. Document is being processed in the background."


def _accept(
    background_tasks: BackgroundTasks,
    repository: DocumentRepository,
    db: Client,
    settings: Settings,
    user_id: str,
    title: str | None,
    file_name: str,
    storage_path: str,
    file_size: int,
    media_type: str,
    file_bytes: bytes | None = None,
) -> IngestAccepted:
    """Create the ``uploading`` document row and schedule the pipeline."""
    try:
        document = repository.create_document(
            user_id=user_id,
            title=(title or "").strip() or file_name,
            file_name=file_name,
            file_path=storage_path,
            file_size=file_size,
            mime_type=media_type,
        )
    except Exception as e:
        logger.error(f"Error creating document record: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Upload failed: {str(e)}")

    document_id = document["id"]
    logger.info(f"Document created with ID: {document_id} ({file_name}, {file_size} bytes)")

    background_tasks.add_task(
        process_document_pipeline,
        db=db,
        source=IngestionSource(
            document_id=document_id,
            user_id=user_id,
            file_name=file_name,
            media_type=media_type,
            storage_path=storage_path,
            file_bytes=file_bytes,
        ),
        config=IngestionConfig.from_settings(settings),
    )
    return IngestAccepted(document_id=document_id, message=ACCEPTED_MESSAGE)


@router.post("/upload", status_code=status.HTTP_202_ACCEPTED, response_model=IngestAccepted)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile | None = File(None),
    title: str | None = Form(None),
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    repository: DocumentRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    """
    Upload a textbook or notes file for the tutor to learn from.
    - Creates a document record in state `uploading` and returns immediately.
    - Storage upload, extraction, chunking and vectorization run in the background.
    - Poll `GET /api/documents/{id}` for `upload_status` and `total_chunks`.
    """
    if file is None or not file.filename:
        raise app_error_to_http(InvalidUploadError("No file provided"))

    file_bytes = await file.read()
    if not file_bytes:
        raise app_error_to_http(InvalidUploadError("Uploaded file is empty", detail=file.filename))
    if len(file_bytes) > settings.MAX_UPLOAD_BYTES:
        raise app_error_to_http(
            UploadTooLargeError(len(file_bytes), settings.MAX_UPLOAD_BYTES),
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )

    file_name = secure_filename(file.filename)
    return _accept(
        background_tasks,
        repository,
        db,
        settings,
        user_id=user_id,
        title=title or file.filename,
        file_name=file_name,
        storage_path=build_storage_path(user_id, file_name),
        file_size=len(file_bytes),
        media_type=file.content_type or "application/octet-stream",
        file_bytes=file_bytes,
    )


@router.post("/ingest", status_code=status.HTTP_202_ACCEPTED, response_model=IngestAccepted)
async def ingest_stored_document(
    data: StorageIngestRequest,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    repository: DocumentRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    """
    Ingest a file the client already uploaded to storage under `{user_id}/...`.
    Paths outside the caller's namespace are rejected before anything is created.
    """
    if not data.file_name.strip():
        raise app_error_to_http(InvalidUploadError("file_name is required"))
    try:
        storage_path = validate_storage_path(user_id, data.storage_path)
    except ForeignStoragePathError as e:
        raise app_error_to_http(e, status_code=status.HTTP_403_FORBIDDEN)
    if data.file_size > settings.MAX_UPLOAD_BYTES:
        raise app_error_to_http(
            UploadTooLargeError(data.file_size, settings.MAX_UPLOAD_BYTES),
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )

    return _accept(
        background_tasks,
        repository,
        db,
        settings,
        user_id=user_id,
        title=data.title,
        file_name=data.file_name,
        storage_path=storage_path,
        file_size=data.file_size,
        media_type=data.media_type,
    )


@router.get("/", response_model=list[DocumentResponse])
async def list_documents(
    status_filter: DocumentStatus | None = None,
    user_id: str = Depends(get_current_user_id),
    repository: DocumentRepository = Depends(get_repository),
):
    """List the current user's documents, newest first."""
    return repository.list_documents(user_id, status=status_filter)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: DocumentRepository = Depends(get_repository),
):
    """Polling endpoint: `upload_status` and `total_chunks` of one document."""
    try:
        return repository.get_document(user_id, document_id)
    except DocumentNotFoundError as e:
        raise app_error_to_http(e, status_code=status.HTTP_404_NOT_FOUND)


@router.delete("/{document_id}", status_code=status.HTTP_202_ACCEPTED)
async def delete_document(
    document_id: str,
    background_tasks: BackgroundTasks,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    repository: DocumentRepository = Depends(get_repository),
):
    """
    Delete a document, its chunks and its original file.
    Ownership is checked now; the cleanup runs in the background.
    """
    try:
        document = repository.get_document(user_id, document_id)
    except DocumentNotFoundError as e:
        raise app_error_to_http(e, status_code=status.HTTP_404_NOT_FOUND)

    background_tasks.add_task(
        delete_document_pipeline,
        db=db,
        document_id=document_id,
        file_path=document.get("file_path"),
        user_id=user_id,
    )
    return {"success": True, "message": "Document deletion started in background."}
