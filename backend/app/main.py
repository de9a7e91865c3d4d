"""
Curriculum Tutor - FastAPI Application Entry Point.

Feature-based modular architecture:
  documents/  upload → background ingestion (extract, chunk, vectorize, store)
  chat/       retrieval over stored chunks + grounded answers
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings

# ── Feature Routers ──────────────────────────────────────
from app.features.documents.router import router as documents_router
from app.features.chat.router import router as chat_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup & shutdown."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    print(f"🚀 {settings.APP_NAME} v{settings.APP_VERSION} starting...")
    print(f"🤖 Tutor model: {settings.LLM_PROVIDER} ({settings.LLM_MODEL})")
    print(f"🔗 Supabase: {settings.SUPABASE_URL[:40]}... bucket '{settings.STORAGE_BUCKET}'")
    print(
        f"📚 Ingestion: {settings.CHUNK_MAX_CHARS}-char chunks, "
        f"max {settings.MAX_CHUNKS_PER_DOCUMENT}/document, batches of {settings.CHUNK_INSERT_BATCH_SIZE}"
    )
    if not settings.SUPABASE_SERVICE_KEY:
        print("⚠️ SUPABASE_SERVICE_KEY not set: background ingestion will use the anon key")
    yield
    print("👋 Shutting down...")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="AI tutor grounded in your uploaded textbooks and notes",
        lifespan=lifespan,
    )

    # ── CORS ─────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Register Feature Routers ─────────────────────────
    app.include_router(documents_router, prefix="/api/documents", tags=["Documents"])
    app.include_router(chat_router, prefix="/api/chat", tags=["Chat"])

    # ── Health Check ─────────────────────────────────────
    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
        }

    return app


app = create_app()
