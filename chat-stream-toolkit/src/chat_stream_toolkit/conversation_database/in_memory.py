"""
In-memory storage backends.

Useful for tests and for sessions that do not need to survive a restart.
Records are copied on the way in and on the way out, so callers can never
mutate stored state by holding on to a returned model.
"""

from chat_stream_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from chat_stream_toolkit.conversation_database.data_models.message import Message, MessageDatabase


class InMemoryConversationDatabase(ConversationDatabase):
    def __init__(self) -> None:
        self.conversations: dict[str, Conversation] = {}

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        self.conversations[conversation.id] = conversation.model_copy()
        return conversation.model_copy()

    async def get_conversations_by_user_id(self, user_id: str) -> list[Conversation]:
        # newest insert first among equal timestamps, like the SQLite backend's rowid tiebreak
        owned = [c for c in reversed(self.conversations.values()) if c.user_id == user_id]
        return [c.model_copy() for c in sorted(owned, key=lambda c: c.update_timestamp, reverse=True)]

    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        conversation = self.conversations.get(conversation_id)
        return conversation.model_copy() if conversation else None

    async def update_conversation(self, conversation: Conversation) -> Conversation:
        if conversation.id not in self.conversations:
            raise ValueError(f"Conversation with id {conversation.id} not found")
        self.conversations[conversation.id] = conversation.model_copy()
        return conversation.model_copy()

    async def delete_conversation(self, conversation_id: str) -> bool:
        return self.conversations.pop(conversation_id, None) is not None


class InMemoryMessageDatabase(MessageDatabase):
    def __init__(self) -> None:
        self.messages: dict[str, list[Message]] = {}

    async def get_messages_by_conversation_id(self, conversation_id: str) -> list[Message]:
        stored = self.messages.get(conversation_id, [])
        return [m.model_copy() for m in sorted(stored, key=lambda m: m.position)]

    async def replace_messages(self, conversation_id: str, messages: list[Message]) -> list[Message]:
        snapshot = [m.model_copy() for m in messages]
        if snapshot:
            self.messages[conversation_id] = snapshot
        else:
            self.messages.pop(conversation_id, None)
        return [m.model_copy() for m in snapshot]

    async def delete_messages_by_conversation_id(self, conversation_id: str) -> int:
        return len(self.messages.pop(conversation_id, []))
