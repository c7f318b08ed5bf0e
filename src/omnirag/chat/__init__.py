"""
Chat sessions and the conversation service.
"""

from omnirag.chat.service import ChatService, new_session
from omnirag.chat.session import ChatMessage, ChatSession, SessionStore

__all__ = ["ChatMessage", "ChatService", "ChatSession", "SessionStore", "new_session"]
