"""
Conversation service.

Ties a chat session to retrieval, the reference libraries and the provider
router: each user message is answered from attached files (or search
results over the session's scope) plus the library context.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

from omnirag.chat.session import DEFAULT_TITLE, ChatMessage, ChatSession, SessionStore
from omnirag.errors import ProviderError, UnreadableFile
from omnirag.library.projects import Project, ProjectLibrary
from omnirag.library.sources import GlobalSourceLibrary
from omnirag.llm.messages import GREETING_MARKER, Turn
from omnirag.llm.router import ProviderRouter
from omnirag.retrieval.extractors import ContentExtractor
from omnirag.retrieval.retriever import CONTEXT_SEPARATOR, Retriever

logger = logging.getLogger(__name__)

NO_CONTEXT = "No file context found."
WELCOME_MESSAGE = f"{GREETING_MARKER}. Ask me a question!"
CLEARED_MESSAGE = "Chat cleared. How can I help you today?"
ERROR_PREFIX = "Sorry, an error occurred: "


def new_session(attached_files: Sequence[str] = ()) -> ChatSession:
    """A fresh session opened with the greeting."""
    session = ChatSession(attached_files=list(attached_files))
    session.messages.append(ChatMessage(content=WELCOME_MESSAGE, is_user=False))
    return session


class ChatService:
    """
    Answer chat messages.

    Example:
        >>> service = ChatService(router, retriever, extractor, library)
        >>> session = new_session(attached_files=["/docs/report.pdf"])
        >>> reply = await service.send_message(session, "What was Q3 revenue?")
    """

    def __init__(
        self,
        router: ProviderRouter,
        retriever: Retriever,
        extractor: ContentExtractor,
        library: ProjectLibrary,
        sources: Optional[GlobalSourceLibrary] = None,
        store: Optional[SessionStore] = None,
    ) -> None:
        self.router = router
        self.retriever = retriever
        self.extractor = extractor
        self.library = library
        self.sources = sources
        self.store = store

    async def send_message(
        self,
        session: ChatSession,
        text: str,
        attachments: Sequence[Path] = (),
    ) -> ChatMessage:
        """
        Append a user message and the assistant's reply to the session.

        Provider failures are not raised: they become the assistant reply
        ``"Sorry, an error occurred: <message>"``.

        Args:
            session: Session to extend (mutated in place)
            text: User message
            attachments: Files to answer from instead of searching the index

        Returns:
            The assistant message that was appended
        """
        attachment_paths = [str(p) for p in attachments]
        session.messages.append(
            ChatMessage(content=text, is_user=True, sources=attachment_paths or None)
        )
        session.title_from(text)

        if attachments:
            context, source_paths = self._attachment_context(attachments)
            file_names = [Path(p).name for p in attachments]
        else:
            context, source_paths = self._search_context(text, session.attached_files)
            file_names = [Path(p).name for p in session.attached_files]

        project = self._library_project(session)
        library_context = self._library_context(project)
        if library_context:
            context = f"{context}\n\n{library_context}"

        history = [Turn(m.content, m.is_user) for m in session.messages]
        try:
            reply = await self.router.chat(
                history,
                context,
                files=file_names,
                system_prompt=project.system_prompt if project and project.system_prompt else None,
            )
            bot_message = ChatMessage(
                content=reply.content,
                is_user=False,
                sources=source_paths or None,
                suggested_action=reply.action,
            )
        except ProviderError as e:
            logger.error(f"Chat reply failed ({e.kind}): {e.message}")
            bot_message = ChatMessage(content=f"{ERROR_PREFIX}{e.message}", is_user=False)

        session.messages.append(bot_message)
        self._persist(session)
        return bot_message

    def clear(self, session: ChatSession) -> None:
        """Drop all messages and reset the title, keeping attachments."""
        session.messages = [ChatMessage(content=CLEARED_MESSAGE, is_user=False)]
        session.title = DEFAULT_TITLE
        self._persist(session)

    # ==========================================================================
    # Context assembly
    # ==========================================================================

    def _attachment_context(self, attachments: Sequence[Path]) -> tuple[str, list[str]]:
        blocks: list[str] = []
        paths: list[str] = []
        for path in attachments:
            try:
                content = self.extractor.extract(Path(path))
            except UnreadableFile as e:
                logger.warning(e.message)
                continue
            blocks.append(f"File: {Path(path).name}\nContent: {content}")
            paths.append(str(path))
        return (CONTEXT_SEPARATOR.join(blocks) if blocks else NO_CONTEXT), paths

    def _search_context(self, query: str, scope: Sequence[str]) -> tuple[str, list[str]]:
        results = self.retriever.search(query, scope)
        if not results:
            return NO_CONTEXT, []
        paths = list(dict.fromkeys(r.file_id for r in results if r.file_id))
        return Retriever.format_context(results), paths

    def _library_project(self, session: ChatSession) -> Optional[Project]:
        """The session's attached project if it still exists, else the active one."""
        if session.attached_project_id is not None:
            project = self.library.get_project(session.attached_project_id)
            if project is not None:
                return project
            logger.warning(f"Attached project {session.attached_project_id} no longer exists")
        return self.library.active_project

    def _library_context(self, project: Optional[Project]) -> str:
        parts: list[str] = []
        if project is not None and project.is_active:
            parts.append(self.library.active_context())
        elif project is not None:
            parts.append(self.library.context_for(project))
        if self.sources is not None:
            parts.append(self.sources.context())
        return "".join(p for p in parts if p)

    def _persist(self, session: ChatSession) -> None:
        if self.store is not None:
            self.store.save(session)
