"""
Ask the career coach from the command line.

Each step is an independent function so the pieces can be reused from a
notebook. loguru logs the intermediate state at every step; the reply itself is
printed to stdout as it streams in.

Steps at a glance:
    1  build_llm()         Completion client from the settings
    2  build_store()       SQLite-backed conversation store
    3  build_controller()  Session + store for one user
    4  ask()               Send a message, stream the reply, save the chat

Settings come from the environment, see career_coach_chat.config. COMPLETION_URL
is required.

Usage:
    COMPLETION_URL=https://gateway.example/v1/chat/completions \\
    python -m career_coach_chat.ask_coach

    Override the question, the user or continue a stored conversation:
        QUERY="How do I prepare for a system design interview?" \\
        USER_ID=alice CONVERSATION_ID=<id> \\
        COMPLETION_URL=... python -m career_coach_chat.ask_coach

    List the user's conversations instead of asking:
        LIST=1 USER_ID=alice COMPLETION_URL=... python -m career_coach_chat.ask_coach
"""

import asyncio
import os
import sys

from loguru import logger

from career_coach_chat.config import ChatSettings, load_settings
from career_coach_chat.controller import ChatController
from chat_stream_toolkit.conversation_database.sqlite import (
    SQLiteConnection,
    SQLiteConversationDatabase,
    SQLiteMessageDatabase,
)
from chat_stream_toolkit.conversation_database.store import ConversationStore
from chat_stream_toolkit.llms.base import Roles
from chat_stream_toolkit.llms.completion import CompletionLLM
from chat_stream_toolkit.streaming.session import StreamingChatSession

DEFAULT_USER_ID = "local-user"


def build_llm(settings: ChatSettings) -> CompletionLLM:
    logger.info(f"Completion endpoint: {settings.completion_url} (model={settings.model_name!r})")
    return CompletionLLM(
        url=settings.completion_url,
        model_name=settings.model_name,
        api_key=settings.api_key,
        idle_timeout=settings.idle_timeout,
        connect_timeout=settings.connect_timeout,
    )


def build_store(settings: ChatSettings) -> tuple[ConversationStore, SQLiteConnection]:
    logger.info(f"Conversation database: {settings.db_path}")
    connection = SQLiteConnection(settings.db_path)
    store = ConversationStore(SQLiteConversationDatabase(connection), SQLiteMessageDatabase(connection))
    return store, connection


class ReplyPrinter:
    """'on_update' hook that writes only the newly streamed part of the reply."""

    def __init__(self) -> None:
        self.session: StreamingChatSession | None = None
        self._message_id: str | None = None
        self._printed = 0

    def __call__(self) -> None:
        if self.session is None or not self.session.is_streaming:
            return
        last = self.session.messages[-1]
        if last.role != Roles.ASSISTANT:
            return
        if last.id != self._message_id:
            self._message_id, self._printed = last.id, 0
        sys.stdout.write(last.content[self._printed :])
        sys.stdout.flush()
        self._printed = len(last.content)


def build_controller(settings: ChatSettings, store: ConversationStore, user_id: str) -> ChatController:
    printer = ReplyPrinter()
    session = StreamingChatSession(build_llm(settings), system_prompt=settings.system_prompt, on_update=printer)
    printer.session = session
    return ChatController(store, session, user_id)


async def ask(controller: ChatController, query: str, conversation_id: str | None = None) -> str:
    """Send 'query' in a new or existing conversation and return the reply text."""
    if conversation_id:
        history = await controller.open_conversation(conversation_id)
        logger.info(f"Continuing conversation {conversation_id} ({len(history)} messages)")

    logger.info(f"Query: {query!r}")
    messages = await controller.send_message(query)
    print()

    if controller.session.error:
        logger.error(f"Reply failed: {controller.session.error}")
    logger.info(f"Conversation saved as {controller.current_conversation_id}")

    last = messages[-1] if messages else None
    return last.content if last is not None and last.role == Roles.ASSISTANT else ""


async def list_conversations(controller: ChatController) -> None:
    conversations = await controller.load_conversations()
    print(f"Conversations ({len(conversations)}):")
    for conversation in conversations:
        marker = "*" if conversation.pinned else " "
        print(f" {marker} {conversation.id}  {conversation.title!r}")


async def main() -> None:
    settings = load_settings()
    store, connection = build_store(settings)
    try:
        controller = build_controller(settings, store, os.getenv("USER_ID", DEFAULT_USER_ID))
        if os.getenv("LIST", "0") == "1":
            await list_conversations(controller)
            return
        await ask(
            controller,
            query=os.getenv("QUERY", "What skills do I need for backend roles?"),
            conversation_id=os.getenv("CONVERSATION_ID") or None,
        )
    finally:
        connection.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except ValueError as exc:
        raise SystemExit(str(exc)) from None
