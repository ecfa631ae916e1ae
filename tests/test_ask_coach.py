from career_coach_chat.ask_coach import ReplyPrinter, ask, list_conversations
from career_coach_chat.controller import ChatController
from chat_stream_toolkit.conversation_database.in_memory import InMemoryConversationDatabase, InMemoryMessageDatabase
from chat_stream_toolkit.conversation_database.store import ConversationStore
from chat_stream_toolkit.errors import TransportError
from chat_stream_toolkit.streaming.session import StreamingChatSession
from helpers import ScriptedLLM


def make_controller(*replies) -> ChatController:
    printer = ReplyPrinter()
    session = StreamingChatSession(ScriptedLLM(*replies), on_update=printer)
    printer.session = session
    store = ConversationStore(InMemoryConversationDatabase(), InMemoryMessageDatabase())
    return ChatController(store, session, "alice")


async def test_ask_prints_reply_as_it_streams(capsys):
    controller = make_controller(["Practice ", "system ", "design."], ["Yes."])

    reply = await ask(controller, "How do I prepare?")
    conversation_id = controller.current_conversation_id
    second = await ask(controller, "Anything else?", conversation_id=conversation_id)

    assert reply == "Practice system design."
    assert second == "Yes."
    assert capsys.readouterr().out == "Practice system design.\nYes.\n"

    await list_conversations(controller)
    listing = capsys.readouterr().out
    assert "Conversations (1):" in listing
    assert conversation_id in listing


async def test_ask_returns_empty_reply_on_failure(capsys):
    controller = make_controller([TransportError("Rate limits exceeded, please try again later.")])

    assert await ask(controller, "Hello?") == ""
    assert controller.session.error == "Rate limits exceeded, please try again later."
