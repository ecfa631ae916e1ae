"""
Conversation store (Facade).

'ConversationStore' is the single entry point for persisting chats. It
coordinates a 'ConversationDatabase' and a 'MessageDatabase' and scopes every
operation to an explicit owner: each method takes the 'user_id' of the caller
and refuses to read or modify conversations owned by somebody else.

Messages are saved as a snapshot after every completed exchange
('save_session'): the whole list replaces what was stored before, then the
conversation's title and update timestamp are refreshed. The store never sees
in-progress assistant text, since callers only save once the session has
stopped streaming.
"""

from collections.abc import Sequence

from loguru import logger

from chat_stream_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from chat_stream_toolkit.conversation_database.data_models.message import Message, MessageDatabase
from chat_stream_toolkit.errors import ConversationAccessError, ConversationNotFoundError
from chat_stream_toolkit.llms.base import Roles
from chat_stream_toolkit.streaming.session import ChatMessage
from chat_stream_toolkit.utils.database import generate_uid
from chat_stream_toolkit.utils.time import get_current_timestamp

DEFAULT_CONVERSATION_TITLE = "New Chat"
TITLE_MAX_LENGTH = 50


def derive_title(content: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Title a conversation after its first user message."""
    if len(content) > max_length:
        return content[:max_length] + "..."
    return content


class ConversationStore:
    def __init__(self, conversation_db: ConversationDatabase, message_db: MessageDatabase):
        self.conversation_db = conversation_db
        self.message_db = message_db

    async def _get_owned(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = await self.conversation_db.get_conversation_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        if conversation.user_id != user_id:
            raise ConversationAccessError(user_id, conversation_id)
        return conversation

    async def create_conversation(self, user_id: str, title: str = DEFAULT_CONVERSATION_TITLE) -> Conversation:
        create_time = get_current_timestamp()
        conversation = await self.conversation_db.create_conversation(
            Conversation(
                id=generate_uid(),
                user_id=user_id,
                title=title,
                create_timestamp=create_time,
                update_timestamp=create_time,
            )
        )
        logger.info(f"Created conversation {conversation.id} for user {user_id}")
        return conversation

    async def list_conversations(
        self, user_id: str, include_archived: bool = False, archived_only: bool = False
    ) -> list[Conversation]:
        """Pinned conversations first, then by most recent update."""
        conversations = await self.conversation_db.get_conversations_by_user_id(user_id)
        if archived_only:
            conversations = [c for c in conversations if c.archived]
        elif not include_archived:
            conversations = [c for c in conversations if not c.archived]
        return sorted(conversations, key=lambda c: not c.pinned)

    async def search_conversations(self, user_id: str, query: str, include_archived: bool = False) -> list[Conversation]:
        needle = query.strip().lower()
        conversations = await self.list_conversations(user_id, include_archived=include_archived)
        return [c for c in conversations if needle in c.title.lower()]

    async def get_conversation(self, conversation_id: str, user_id: str) -> Conversation:
        return await self._get_owned(conversation_id, user_id)

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        await self._get_owned(conversation_id, user_id)
        removed = await self.message_db.delete_messages_by_conversation_id(conversation_id)
        deleted = await self.conversation_db.delete_conversation(conversation_id)
        logger.info(f"Deleted conversation {conversation_id} and {removed} message(s)")
        return deleted

    async def list_messages(self, conversation_id: str, user_id: str) -> list[Message]:
        """Stored messages in conversation order; empty for a deleted conversation."""
        conversation = await self.conversation_db.get_conversation_by_id(conversation_id)
        if conversation is None:
            return []
        if conversation.user_id != user_id:
            raise ConversationAccessError(user_id, conversation_id)
        return await self.message_db.get_messages_by_conversation_id(conversation_id)

    async def replace_messages(
        self, conversation_id: str, user_id: str, messages: Sequence[ChatMessage]
    ) -> list[Message]:
        """Overwrite the stored messages of a conversation with 'messages'."""
        await self._get_owned(conversation_id, user_id)
        create_time = get_current_timestamp()
        records = [
            Message(
                id=message.id,
                conversation_id=conversation_id,
                user_id=user_id,
                role=message.role,
                content=message.content,
                create_timestamp=create_time,
                position=position,
            )
            for position, message in enumerate(messages)
        ]
        return await self.message_db.replace_messages(conversation_id, records)

    async def update_conversation_title(
        self, conversation_id: str, user_id: str, title: str, update_timestamp: int | None = None
    ) -> Conversation:
        conversation = await self._get_owned(conversation_id, user_id)
        if update_timestamp is None:
            update_timestamp = get_current_timestamp()
        return await self.conversation_db.update_conversation(
            conversation.model_copy(update={"title": title, "update_timestamp": update_timestamp})
        )

    async def rename_conversation(self, conversation_id: str, user_id: str, title: str) -> Conversation:
        title = title.strip()
        if not title:
            raise ValueError("Conversation title must not be empty")
        conversation = await self._get_owned(conversation_id, user_id)
        return await self.conversation_db.update_conversation(conversation.model_copy(update={"title": title}))

    async def set_pinned(self, conversation_id: str, user_id: str, pinned: bool) -> Conversation:
        conversation = await self._get_owned(conversation_id, user_id)
        return await self.conversation_db.update_conversation(conversation.model_copy(update={"pinned": pinned}))

    async def set_archived(self, conversation_id: str, user_id: str, archived: bool) -> Conversation:
        conversation = await self._get_owned(conversation_id, user_id)
        return await self.conversation_db.update_conversation(conversation.model_copy(update={"archived": archived}))

    async def save_session(
        self, conversation_id: str, user_id: str, messages: Sequence[ChatMessage]
    ) -> Conversation:
        """
        Persist a finished exchange.

        Stores the snapshot, then names the conversation after its first user
        message while it still carries the placeholder title. A title the user
        chose with 'rename_conversation' is never overwritten.
        """
        conversation = await self._get_owned(conversation_id, user_id)
        await self.replace_messages(conversation_id, user_id, messages)

        title = conversation.title
        first_user_message = next((m for m in messages if m.role == Roles.USER), None)
        if first_user_message is not None and conversation.title == DEFAULT_CONVERSATION_TITLE:
            title = derive_title(first_user_message.content)

        return await self.update_conversation_title(conversation_id, user_id, title)
