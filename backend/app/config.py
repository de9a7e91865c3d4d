"""
Application configuration using Pydantic Settings.
All config is loaded from environment variables / .env file.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "curriculum-tutor"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    # ── Supabase ─────────────────────────────────────────
    SUPABASE_URL: str
    SUPABASE_KEY: str  # anon/public key
    SUPABASE_SERVICE_KEY: str = ""  # service_role key (background pipeline writes)
    DOCUMENTS_TABLE: str = "documents"
    CHUNKS_TABLE: str = "document_chunks"
    CHAT_MESSAGES_TABLE: str = "chat_messages"
    STORAGE_BUCKET: str = "curriculum-files"

    # ── Security ─────────────────────────────────────────
    JWT_SECRET_KEY: str  # Supabase project JWT secret
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = ""  # "authenticated" for Supabase-issued tokens
    JWT_EXPIRY_MINUTES: int = 1440  # 24 hours

    # ── LLM (Provider-Agnostic) ──────────────────────────
    LLM_PROVIDER: str = "gemini"  # gemini | openai | groq
    LLM_MODEL: str = "gemini-2.5-flash"
    LLM_API_KEY: str = ""
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 1000

    # ── Ingestion ────────────────────────────────────────
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024  # 50MB
    MAX_EXTRACTED_CHARS: int = 500_000
    MIN_VIABLE_TEXT_CHARS: int = 100
    PRINTABLE_RUN_MIN_CHARS: int = 4
    NOISE_FRAGMENT_MIN_CHARS: int = 8
    CHUNK_MAX_CHARS: int = 1000
    CHUNK_MIN_CHARS: int = 20
    MAX_CHUNKS_PER_DOCUMENT: int = 500
    CHUNK_INSERT_BATCH_SIZE: int = 50
    CHUNKS_PER_PAGE: int = 3
    VECTOR_DIMENSIONS: int = 384
    KEYWORD_ENRICHMENT_ENABLED: bool = False  # one LLM call per chunk when on
    MAX_ENRICHMENT_KEYWORDS: int = 10

    # ── Retrieval ────────────────────────────────────────
    RETRIEVAL_TOP_K: int = 5
    RETRIEVAL_PHRASE_BONUS: float = 10.0
    RETRIEVAL_NGRAM_WEIGHT: float = 2.0
    RETRIEVAL_TF_CAP: int = 5
    RETRIEVAL_MIN_IDF: float = 0.1
    RETRIEVAL_PROXIMITY_THRESHOLD: int = 100  # avg chars between first occurrences
    RETRIEVAL_PROXIMITY_BONUS: float = 3.0
    RETRIEVAL_MIN_TOKEN_LENGTH: int = 3
    RETRIEVAL_PAGE_SIZE: int = 1000  # rows per chunk query; keep <= PostgREST max-rows

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance (singleton)."""
    return Settings()
