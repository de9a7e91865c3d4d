"""
Tests for grounded answering: context building, prompting and history storage.
"""

from types import SimpleNamespace

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from app.core.exceptions import CompletionServiceError
from app.features.chat.prompts import NO_CURRICULUM_CONTEXT, ExplanationMode
from app.features.chat.schemas import HistoryMessage
from app.features.chat.service import NO_SOURCES_LABEL, ChatService, build_context
from app.features.chat.retrieval import RetrievalConfig, ScoredChunk
from app.features.documents.schemas import DocumentStatus
from conftest import OTHER_USER_ID, USER_ID


class FakeChatModel:
    def __init__(self, reply="Photosynthesis turns light into sugar.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return SimpleNamespace(content=self.reply)


@pytest.fixture
def model():
    return FakeChatModel()


@pytest.fixture
def service(fake_db, repository, model):
    return ChatService(fake_db, repository, llm_factory=lambda: model)


@pytest.fixture
def biology(repository, make_document):
    document_id = make_document(title="Biology Notes", status=DocumentStatus.COMPLETED)
    repository.insert_chunks([
        {"document_id": document_id, "user_id": USER_ID, "chunk_index": 0, "page_number": 1,
         "chunk_text": "Para one about photosynthesis."},
        {"document_id": document_id, "user_id": USER_ID, "chunk_index": 1, "page_number": 1,
         "chunk_text": "Para two about mitosis."},
    ])
    return document_id


def test_build_context_numbers_excerpts_and_dedupes_sources():
    results = [
        ScoredChunk("Alpha text", "Physics", "Page 1", 3.0, "d1", 0),
        ScoredChunk("Beta text", "Physics", "Page 1", 2.0, "d1", 1),
        ScoredChunk("Gamma text", "Physics", "Page 2", 1.0, "d1", 3),
    ]

    context, sources = build_context(results)

    assert context == "[Excerpt 1]: Alpha text\n\n[Excerpt 2]: Beta text\n\n[Excerpt 3]: Gamma text"
    assert sources == ["Physics (Page 1)", "Physics (Page 2)"]


class TestChatService:
    def test_search_returns_owner_matches(self, service, biology, repository, make_document):
        foreign = make_document(user_id=OTHER_USER_ID, title="Theirs", status=DocumentStatus.COMPLETED)
        repository.insert_chunks([
            {"document_id": foreign, "user_id": OTHER_USER_ID, "chunk_index": 0, "page_number": 1,
             "chunk_text": "Their photosynthesis notes."},
        ])

        results = service.search(USER_ID, "photosynthesis")

        assert [r.chunk_text for r in results] == ["Para one about photosynthesis."]

    def test_answer_grounded_in_excerpts(self, fake_db, service, model, biology):
        result = service.answer(USER_ID, "photosynthesis")

        assert result == {"answer": "Photosynthesis turns light into sugar.", "sources": ["Biology Notes (Page 1)"]}
        system = model.calls[0][0]
        assert isinstance(system, SystemMessage)
        assert "[Excerpt 1]: Para one about photosynthesis." in system.content
        assert "mitosis" not in system.content

    def test_answer_without_curriculum(self, service, model):
        result = service.answer(USER_ID, "What is entropy?")

        assert result["sources"] == [NO_SOURCES_LABEL]
        assert NO_CURRICULUM_CONTEXT in model.calls[0][0].content

    def test_history_and_mode_are_forwarded(self, service, model, biology):
        history = [
            HistoryMessage(role="user", content="Hi"),
            HistoryMessage(role="assistant", content="Hello! What are we studying?"),
        ]

        service.answer(USER_ID, "Explain mitosis", history=history, mode=ExplanationMode.EXAM)

        messages = model.calls[0]
        assert [type(m) for m in messages] == [SystemMessage, HumanMessage, AIMessage, HumanMessage]
        assert messages[-1].content.startswith("Explain mitosis\n\nMODE: Exam Mode")

    def test_exchange_is_stored(self, fake_db, service, biology):
        service.answer(USER_ID, "photosynthesis")

        rows = fake_db.tables["chat_messages"]
        assert [(r["role"], r["content"]) for r in rows] == [
            ("user", "photosynthesis"),
            ("assistant", "Photosynthesis turns light into sugar."),
        ]
        assert rows[1]["sources"] == ["Biology Notes (Page 1)"]

    def test_model_failure_raises_and_stores_nothing(self, fake_db, repository, biology):
        broken = ChatService(fake_db, repository, llm_factory=lambda: FakeChatModel(error=TimeoutError("quota")))

        with pytest.raises(CompletionServiceError):
            broken.answer(USER_ID, "photosynthesis")
        assert "chat_messages" not in fake_db.tables

    def test_history_write_failure_still_answers(self, fake_db, service, biology):
        fake_db.fail("chat_messages", "insert", 1)

        result = service.answer(USER_ID, "photosynthesis")

        assert result["answer"] == "Photosynthesis turns light into sugar."


class TestSearchWindow:
    def test_in_progress_chunks_do_not_crowd_out_completed_ones(self, fake_db, repository):
        # "doc-a" sorts before "doc-b", so its unfinished chunks come first
        fake_db.tables["documents"] = [
            {"id": "doc-a", "user_id": USER_ID, "title": "Half Written", "upload_status": "storing_chunks"},
            {"id": "doc-b", "user_id": USER_ID, "title": "Plant Biology", "upload_status": "completed"},
        ]
        repository.insert_chunks(
            [{"document_id": "doc-a", "user_id": USER_ID, "chunk_index": i, "page_number": 1,
              "chunk_text": f"Photosynthesis draft {i}."} for i in range(3)]
            + [{"document_id": "doc-b", "user_id": USER_ID, "chunk_index": 0, "page_number": 1,
                "chunk_text": "Photosynthesis happens in chloroplasts."}]
        )
        service = ChatService(fake_db, repository, config=RetrievalConfig(page_size=3), llm_factory=FakeChatModel)

        results = service.search(USER_ID, "photosynthesis")

        assert [r.chunk_text for r in results] == ["Photosynthesis happens in chloroplasts."]
        assert results[0].document_title == "Plant Biology"
