"""
Chat feature: Question answering and retrieval routes.
"""

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool
from supabase import Client

from app.config import Settings, get_settings
from app.core.dependencies import get_current_user_id, get_db, get_repository
from app.core.exceptions import CompletionServiceError, app_error_to_http
from app.features.chat.retrieval import RetrievalConfig
from app.features.chat.schemas import ChatRequest, ChatResponse, RetrievedChunk, SearchRequest
from app.features.chat.service import ChatService
from app.features.documents.service import DocumentRepository

router = APIRouter()


def get_chat_service(
    db: Client = Depends(get_db),
    repository: DocumentRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> ChatService:
    return ChatService(
        db,
        repository,
        config=RetrievalConfig.from_settings(settings),
        messages_table=settings.CHAT_MESSAGES_TABLE,
    )


@router.post("/", response_model=ChatResponse)
async def chat(
    data: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Answer a question using the user's uploaded curriculum as grounding."""
    try:
        result = await run_in_threadpool(
            service.answer, user_id, data.question, data.conversation_history, data.mode
        )
    except CompletionServiceError as e:
        raise app_error_to_http(e, status_code=status.HTTP_502_BAD_GATEWAY)
    return ChatResponse(**result)


@router.post("/search", response_model=list[RetrievedChunk])
async def search_chunks(
    data: SearchRequest,
    user_id: str = Depends(get_current_user_id),
    service: ChatService = Depends(get_chat_service),
):
    """Return the top-K most relevant excerpts without calling the model."""
    results = await run_in_threadpool(service.search, user_id, data.query, data.top_k)
    return [
        RetrievedChunk(
            chunk_text=r.chunk_text,
            document_title=r.document_title,
            page_label=r.page_label,
            score=r.score,
        )
        for r in results
    ]
