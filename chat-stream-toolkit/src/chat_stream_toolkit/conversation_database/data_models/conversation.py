"""
Conversation data model and storage interface.

The 'ConversationDatabase' ABC is the pluggable storage backend for
conversation records. Concrete implementations ('InMemoryConversationDatabase',
'SQLiteConversationDatabase') are interchangeable at construction time, keeping
'ConversationStore' free of storage-specific code.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel


class Conversation(BaseModel):
    """
    A chat owned by exactly one user.

    'pinned' and 'archived' only affect how conversation lists are ordered and
    filtered; they never change the messages.
    """

    id: str
    user_id: str
    title: str
    create_timestamp: int
    update_timestamp: int
    pinned: bool = False
    archived: bool = False


class ConversationDatabase(ABC):
    """Abstract repository for 'Conversation' records."""

    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> Conversation:
        pass

    @abstractmethod
    async def get_conversations_by_user_id(self, user_id: str) -> list[Conversation]:
        """Return the user's conversations, most recently updated first."""
        pass

    @abstractmethod
    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        pass

    @abstractmethod
    async def update_conversation(self, conversation: Conversation) -> Conversation:
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        pass
