"""
Streaming chat toolkit.

A streaming chat session against an OpenAI-compatible completion endpoint plus
pluggable conversation storage:

    from chat_stream_toolkit import (
        CompletionLLM, StreamingChatSession,
        ConversationStore, InMemoryConversationDatabase, InMemoryMessageDatabase,
    )
"""

from chat_stream_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from chat_stream_toolkit.conversation_database.data_models.message import Message, MessageDatabase
from chat_stream_toolkit.conversation_database.in_memory import InMemoryConversationDatabase, InMemoryMessageDatabase
from chat_stream_toolkit.conversation_database.sqlite import (
    SQLiteConnection,
    SQLiteConversationDatabase,
    SQLiteMessageDatabase,
)
from chat_stream_toolkit.conversation_database.store import ConversationStore, derive_title
from chat_stream_toolkit.errors import (
    ChatError,
    ConversationAccessError,
    ConversationNotFoundError,
    FrameDecodeError,
    TransportError,
)
from chat_stream_toolkit.llms.base import LLM, LLMMessage, Roles
from chat_stream_toolkit.llms.completion import CompletionLLM
from chat_stream_toolkit.streaming.frames import FrameParser
from chat_stream_toolkit.streaming.session import ChatMessage, SessionState, StreamingChatSession

__all__ = [
    "LLM",
    "ChatError",
    "ChatMessage",
    "CompletionLLM",
    "Conversation",
    "ConversationAccessError",
    "ConversationDatabase",
    "ConversationNotFoundError",
    "ConversationStore",
    "FrameDecodeError",
    "FrameParser",
    "InMemoryConversationDatabase",
    "InMemoryMessageDatabase",
    "LLMMessage",
    "Message",
    "MessageDatabase",
    "Roles",
    "SQLiteConnection",
    "SQLiteConversationDatabase",
    "SQLiteMessageDatabase",
    "SessionState",
    "StreamingChatSession",
    "TransportError",
    "derive_title",
]
