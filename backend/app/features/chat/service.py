"""
Chat feature: Grounded question answering over the user's curriculum.
"""

import logging
from typing import Callable

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from supabase import Client

from app.core.exceptions import CompletionServiceError
from app.core.llm_provider import create_llm, message_text
from app.features.chat.prompts import ExplanationMode, build_system_prompt, build_user_message
from app.features.chat.retrieval import RetrievalConfig, RetrievalScorer, ScoredChunk
from app.features.chat.schemas import HistoryMessage
from app.features.documents.service import DocumentRepository

logger = logging.getLogger(__name__)

NO_SOURCES_LABEL = "No curriculum uploaded yet"


def build_context(results: list[ScoredChunk]) -> tuple[str, list[str]]:
    """Render ``[Excerpt n]`` blocks and collect de-duplicated source labels."""
    sources: list[str] = []
    blocks = []
    for idx, result in enumerate(results, start=1):
        if result.source_label not in sources:
            sources.append(result.source_label)
        blocks.append(f"[Excerpt {idx}]: {result.chunk_text}")
    return "\n\n".join(blocks), sources


class ChatService:
    """Retrieval + completion + history persistence for one question."""

    def __init__(
        self,
        db: Client,
        repository: DocumentRepository,
        config: RetrievalConfig | None = None,
        llm_factory: Callable | None = None,
        messages_table: str = "chat_messages",
    ):
        self.db = db
        self.repository = repository
        self.config = config or RetrievalConfig()
        self.scorer = RetrievalScorer(self.config)
        self._llm_factory = llm_factory or create_llm
        self.messages_table = messages_table

    def search(self, user_id: str, query: str, top_k: int | None = None) -> list[ScoredChunk]:
        """Rank the owner's completed chunks against ``query``."""
        chunks = self.repository.list_completed_chunks(user_id, page_size=self.config.page_size)
        logger.info(f"Scoring {len(chunks)} chunks for user {user_id}")
        return self.scorer.rank(chunks, query, top_k=top_k)

    def answer(
        self,
        user_id: str,
        question: str,
        history: list[HistoryMessage] | None = None,
        mode: ExplanationMode = ExplanationMode.DEFAULT,
    ) -> dict:
        """Answer ``question`` using the best-matching excerpts as context.

        Returns:
            dict with ``answer`` and ``sources``.

        Raises:
            CompletionServiceError: If the chat model call fails.
        """
        results = self.search(user_id, question)
        context, sources = build_context(results)
        logger.info(f"Context length: {len(context)} characters from {len(results)} excerpts")

        messages = [SystemMessage(content=build_system_prompt(context))]
        for msg in history or []:
            messages.append(HumanMessage(content=msg.content) if msg.role == "user" else AIMessage(content=msg.content))
        messages.append(HumanMessage(content=build_user_message(question, mode)))

        try:
            response = self._llm_factory().invoke(messages)
        except Exception as e:
            logger.error(f"❌ Completion call failed: {e}")
            raise CompletionServiceError(str(e)) from e
        answer = message_text(response.content)

        self._save_exchange(user_id, question, answer, sources)
        return {"answer": answer, "sources": sources or [NO_SOURCES_LABEL]}

    def _save_exchange(self, user_id: str, question: str, answer: str, sources: list[str]) -> None:
        try:
            self.db.table(self.messages_table).insert([
                {"user_id": user_id, "role": "user", "content": question},
                {"user_id": user_id, "role": "assistant", "content": answer, "sources": sources or None},
            ]).execute()
        except Exception as e:
            # The answer is already generated; losing history should not fail the request
            logger.warning(f"⚠️ Could not store chat history for {user_id}: {e}")
