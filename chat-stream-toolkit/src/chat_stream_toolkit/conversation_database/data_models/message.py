"""
Message data model and storage interface.

Messages of a conversation form a flat, ordered list: 'position' is the index
of the message in that list and is the only ordering key. Timestamps are
informational, since a whole list is written in one go and its rows usually
share the same 'create_timestamp'.

The list is persisted as a snapshot. 'replace_messages' deletes every stored
message of the conversation and inserts the new list; backends must make that
pair atomic so a failed insert never leaves the conversation empty.

Concrete implementations: 'InMemoryMessageDatabase', 'SQLiteMessageDatabase'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, field_validator

from chat_stream_toolkit.llms.base import Roles


class Message(BaseModel):
    """A persisted user or assistant message."""

    id: str
    conversation_id: str
    user_id: str
    role: Roles
    content: str
    create_timestamp: int
    position: int

    @field_validator("role")
    @classmethod
    def _no_system_messages(cls, role: Roles) -> Roles:
        if role == Roles.SYSTEM:
            raise ValueError("Only user and assistant messages are stored")
        return role


class MessageDatabase(ABC):
    """Abstract repository for 'Message' records."""

    @abstractmethod
    async def get_messages_by_conversation_id(self, conversation_id: str) -> list[Message]:
        """Return the conversation's messages ordered by 'position'."""
        pass

    @abstractmethod
    async def replace_messages(self, conversation_id: str, messages: list[Message]) -> list[Message]:
        pass

    @abstractmethod
    async def delete_messages_by_conversation_id(self, conversation_id: str) -> int:
        """Delete every message of the conversation and return how many were removed."""
        pass
