"""Unit tests for chat package."""

import uuid

import pytest

from omnirag.chat.service import (
    CLEARED_MESSAGE,
    ERROR_PREFIX,
    NO_CONTEXT,
    WELCOME_MESSAGE,
    ChatService,
    new_session,
)
from omnirag.chat.session import (
    ChatMessage,
    ChatSession,
    SessionStore,
    decode_locators,
    encode_locators,
)
from omnirag.errors import CorruptRecord, TransportFailure
from omnirag.library.projects import ProjectLibrary
from omnirag.library.storage import KeyValueStore
from omnirag.llm.router import ProviderRouter
from omnirag.retrieval.indexer import file_identity
from omnirag.retrieval.retriever import Retriever


@pytest.fixture
def session_store():
    store = SessionStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def library(tmp_path, extractor):
    return ProjectLibrary(KeyValueStore(tmp_path / "library.json"), extractor)


@pytest.fixture
def indexed_doc(tmp_path, store):
    path = tmp_path / "report.txt"
    path.write_text("Revenue in Q3 was 4.2 million\nHeadcount grew to 40 people\n", encoding="utf-8")
    store.reindex(file_identity(path), ["Revenue in Q3 was 4.2 million", "Headcount grew to 40 people"])
    return path


def _service(settings, llm, store, extractor, library, session_store=None):
    router = ProviderRouter(settings, local=llm)
    return ChatService(router, Retriever(store), extractor, library, store=session_store)


@pytest.mark.unit
class TestLocatorEncoding:
    """Tests for the JSON boundary of locator lists."""

    def test_none_and_empty_are_distinct(self):
        assert decode_locators(encode_locators(None)) is None
        assert decode_locators(encode_locators([])) == []

    def test_round_trip(self):
        assert decode_locators(encode_locators(["/a.txt", "/b.pdf"])) == ["/a.txt", "/b.pdf"]

    @pytest.mark.parametrize("raw", ["not json", '{"a": 1}', "[1, 2]"])
    def test_corrupt_is_reported(self, raw):
        with pytest.raises(CorruptRecord):
            decode_locators(raw)


@pytest.mark.unit
class TestSessionStore:
    """Tests for SessionStore class."""

    def test_save_and_load(self, session_store):
        session = new_session(attached_files=["/docs/a.txt"])
        session.messages.append(
            ChatMessage(content="question", is_user=True, sources=["/docs/a.txt"])
        )
        session.messages.append(ChatMessage(content="answer", is_user=False, suggested_action="DRAFT_EMAIL"))

        session_store.save(session)
        loaded = session_store.load(session.id)

        assert loaded.attached_files == ["/docs/a.txt"]
        assert [m.content for m in loaded.messages] == [WELCOME_MESSAGE, "question", "answer"]
        assert loaded.messages[0].sources is None
        assert loaded.messages[1].sources == ["/docs/a.txt"]
        assert loaded.messages[2].suggested_action == "DRAFT_EMAIL"

    def test_resave_replaces_messages(self, session_store):
        session = new_session()
        session_store.save(session)

        session.messages = [ChatMessage(content="only", is_user=False)]
        session_store.save(session)

        assert [m.content for m in session_store.load(session.id).messages] == ["only"]

    def test_corrupt_sources_raise(self, session_store):
        session = new_session()
        session_store.save(session)
        session_store._conn.execute(
            "UPDATE chat_messages SET sources_json = 'garbage' WHERE session_id = ?",
            (str(session.id),),
        )

        with pytest.raises(CorruptRecord):
            session_store.load(session.id)

    def test_list_and_delete(self, session_store):
        session = ChatSession(title="Budget questions")
        session_store.save(session)

        assert [title for _, title, _ in session_store.list_sessions()] == ["Budget questions"]
        assert session_store.delete(session.id) is True
        assert session_store.load(session.id) is None

    def test_load_missing(self, session_store):
        assert session_store.load(uuid.uuid4()) is None


@pytest.mark.unit
class TestChatService:
    """Tests for ChatService class."""

    @pytest.mark.asyncio
    async def test_answers_from_index(self, settings, make_llm, store, extractor, library, indexed_doc):
        llm = make_llm("Revenue was 4.2M. [ACTION: DRAFT_EMAIL]")
        service = _service(settings, llm, store, extractor, library)
        session = new_session(attached_files=[file_identity(indexed_doc)])

        reply = await service.send_message(session, "Revenue")

        assert reply.content == "Revenue was 4.2M."
        assert reply.suggested_action == "DRAFT_EMAIL"
        assert reply.sources == [file_identity(indexed_doc)]
        context = llm.calls[0][1].content
        assert "File: report.txt\nContent: Revenue in Q3 was 4.2 million" in context

    @pytest.mark.asyncio
    async def test_titles_new_session(self, settings, make_llm, store, extractor, library):
        service = _service(settings, make_llm("ok"), store, extractor, library)
        session = new_session()
        text = "Please explain the quarterly revenue numbers in detail"

        await service.send_message(session, text)

        assert session.title == text[:40]
        assert [m.is_user for m in session.messages] == [False, True, False]

    @pytest.mark.asyncio
    async def test_existing_title_kept(self, settings, make_llm, store, extractor, library):
        service = _service(settings, make_llm("ok"), store, extractor, library)
        session = ChatSession(title="Budget")

        await service.send_message(session, "Another question entirely")

        assert session.title == "Budget"

    @pytest.mark.asyncio
    async def test_attachments_override_search(self, settings, make_llm, store, extractor, library, tmp_path):
        attachment = tmp_path / "memo.txt"
        attachment.write_text("The memo says hello.", encoding="utf-8")
        llm = make_llm("Done.")
        service = _service(settings, llm, store, extractor, library)
        session = new_session()

        reply = await service.send_message(session, "What does it say?", attachments=[attachment])

        assert session.messages[1].sources == [str(attachment)]
        assert reply.sources == [str(attachment)]
        assert "File: memo.txt\nContent: The memo says hello." in llm.calls[0][1].content
        assert "SUMMARIZE_DOCUMENT" in llm.calls[0][0].content

    @pytest.mark.asyncio
    async def test_no_context_placeholder(self, settings, make_llm, store, extractor, library):
        llm = make_llm("ok")
        service = _service(settings, llm, store, extractor, library)

        await service.send_message(new_session(), "Hello there")

        assert llm.calls[0][1].content == f"File Context:\n{NO_CONTEXT}"

    @pytest.mark.asyncio
    async def test_active_project_context_included(self, settings, make_llm, store, extractor, library, tmp_path):
        doc = tmp_path / "policy.md"
        doc.write_text("Remote work is allowed on Fridays.", encoding="utf-8")
        library.add_file(library.active_project.id, doc)
        llm = make_llm("ok")
        service = _service(settings, llm, store, extractor, library)

        await service.send_message(new_session(), "Can I work remotely?")

        context = llm.calls[0][1].content
        assert "# Reference Library Context" in context
        assert "Remote work is allowed on Fridays." in context

    @pytest.mark.asyncio
    async def test_attached_project_replaces_active(self, settings, make_llm, store, extractor, library, tmp_path):
        doc = tmp_path / "thesis.md"
        doc.write_text("The thesis argues for local inference.", encoding="utf-8")
        project = library.create_project("Thesis")
        library.add_file(project.id, doc)
        llm = make_llm("ok")
        service = _service(settings, llm, store, extractor, library)
        session = new_session()
        session.attached_project_id = project.id

        await service.send_message(session, "Summarize the thesis")

        assert "# Reference Library Context: Thesis" in llm.calls[0][1].content

    @pytest.mark.asyncio
    async def test_project_system_prompt_used(self, settings, make_llm, store, extractor, library):
        library.set_system_prompt(library.active_project.id, "Answer like a lawyer.")
        llm = make_llm("ok")
        service = _service(settings, llm, store, extractor, library)

        await service.send_message(new_session(), "Is this contract valid?")

        assert llm.calls[0][0].content == "Answer like a lawyer."

    @pytest.mark.asyncio
    async def test_provider_error_becomes_message(self, settings, make_llm, store, extractor, library):
        error = TransportFailure("Ollama", ConnectionError("refused"))
        service = _service(settings, make_llm(error), store, extractor, library)
        session = new_session()

        reply = await service.send_message(session, "Hello there")

        assert reply.content == f"{ERROR_PREFIX}{error.message}"
        assert reply.sources is None
        assert sum(1 for m in session.messages if not m.is_user) == 2

    @pytest.mark.asyncio
    async def test_session_persisted(self, settings, make_llm, store, extractor, library, session_store):
        service = _service(settings, make_llm("ok"), store, extractor, library, session_store)
        session = new_session()

        await service.send_message(session, "Persist me please")

        assert len(session_store.load(session.id).messages) == 3

    def test_clear(self, settings, make_llm, store, extractor, library, session_store):
        service = _service(settings, make_llm("ok"), store, extractor, library, session_store)
        session = ChatSession(title="Old chat", attached_files=["/docs/a.txt"])
        session.messages.append(ChatMessage(content="hi", is_user=True))

        service.clear(session)

        assert [m.content for m in session.messages] == [CLEARED_MESSAGE]
        assert session.title == "New Chat"
        assert session.attached_files == ["/docs/a.txt"]
        assert session_store.load(session.id).title == "New Chat"
