"""
Chat controller (Facade) for the career coach.

'ChatController' wires one 'StreamingChatSession' to a 'ConversationStore' on
behalf of a single user. It carries the workflow of the chat screen:

    new_chat()            create an empty conversation and make it current
    open_conversation()   load a stored conversation into the session
    send_message()        create a conversation if none is open, stream the
                          reply, then save the whole conversation
    delete/rename/pin/archive/search

Saving is gated on the session being idle or errored: a snapshot is only
written once no exchange is in flight, so a half-streamed reply never reaches
storage. If a reply fails part-way, the partial text is saved as it is shown.
"""

from loguru import logger

from chat_stream_toolkit.conversation_database.data_models.conversation import Conversation
from chat_stream_toolkit.conversation_database.store import ConversationStore
from chat_stream_toolkit.streaming.session import ChatMessage, StreamingChatSession

QUICK_PROMPTS = {
    "resume_review": "Can you help me improve my resume? What are the key things I should focus on?",
    "skill_recommendations": "What skills should I learn to become a better software engineer?",
    "interview_tips": "Give me the top 5 tips for acing a technical interview at a FAANG company.",
    "career_advice": "I am a fresh graduate. What career path should I choose in tech?",
}


class ChatController:
    def __init__(self, store: ConversationStore, session: StreamingChatSession, user_id: str):
        self.store = store
        self.session = session
        self.user_id = user_id
        self.current_conversation_id: str | None = None

    @property
    def messages(self) -> list[ChatMessage]:
        return self.session.messages

    async def load_conversations(self, archived: bool = False) -> list[Conversation]:
        if archived:
            return await self.store.list_conversations(self.user_id, archived_only=True)
        return await self.store.list_conversations(self.user_id)

    async def search_conversations(self, query: str) -> list[Conversation]:
        return await self.store.search_conversations(self.user_id, query)

    async def new_chat(self) -> Conversation:
        conversation = await self.store.create_conversation(self.user_id)
        self.current_conversation_id = conversation.id
        self.session.clear_messages()
        return conversation

    async def open_conversation(self, conversation_id: str) -> list[ChatMessage]:
        """Load a stored conversation. Raises ConversationNotFoundError for unknown ids."""
        await self.store.get_conversation(conversation_id, self.user_id)
        messages = await self.store.list_messages(conversation_id, self.user_id)
        self.current_conversation_id = conversation_id
        self.session.set_messages(messages)
        return self.session.messages

    async def send_message(self, text: str) -> list[ChatMessage]:
        """Send 'text', wait for the reply and save the conversation."""
        if not text.strip():
            return self.session.messages
        if self.current_conversation_id is None:
            await self.new_chat()

        conversation_id = self.current_conversation_id
        self.session.send(text)
        await self.session.wait()
        if conversation_id == self.current_conversation_id:
            await self.save()
        return self.session.messages

    async def send_quick_prompt(self, key: str) -> list[ChatMessage]:
        try:
            prompt = QUICK_PROMPTS[key]
        except KeyError:
            raise ValueError(f"Unknown quick prompt {key!r}. Choose one of {', '.join(QUICK_PROMPTS)}.") from None
        return await self.send_message(prompt)

    async def save(self) -> Conversation | None:
        """Persist the session's messages if no exchange is in flight."""
        if self.current_conversation_id is None:
            return None
        if self.session.is_loading:
            logger.debug("Exchange still in flight, not saving")
            return None
        messages = self.session.messages
        if not messages:
            return None
        return await self.store.save_session(self.current_conversation_id, self.user_id, messages)

    async def delete_conversation(self, conversation_id: str) -> bool:
        deleted = await self.store.delete_conversation(conversation_id, self.user_id)
        if conversation_id == self.current_conversation_id:
            self.current_conversation_id = None
            self.session.clear_messages()
        return deleted

    async def rename_conversation(self, conversation_id: str, title: str) -> Conversation:
        return await self.store.rename_conversation(conversation_id, self.user_id, title)

    async def pin_conversation(self, conversation_id: str, pinned: bool = True) -> Conversation:
        return await self.store.set_pinned(conversation_id, self.user_id, pinned)

    async def archive_conversation(self, conversation_id: str, archived: bool = True) -> Conversation:
        return await self.store.set_archived(conversation_id, self.user_id, archived)
