import pytest

from chat_stream_toolkit.conversation_database.in_memory import InMemoryConversationDatabase, InMemoryMessageDatabase
from chat_stream_toolkit.conversation_database.sqlite import (
    SQLiteConnection,
    SQLiteConversationDatabase,
    SQLiteMessageDatabase,
)
from chat_stream_toolkit.conversation_database.store import ConversationStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield ConversationStore(InMemoryConversationDatabase(), InMemoryMessageDatabase())
        return
    connection = SQLiteConnection(tmp_path / "conversations.db")
    yield ConversationStore(SQLiteConversationDatabase(connection), SQLiteMessageDatabase(connection))
    connection.close()
