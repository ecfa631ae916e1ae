"""
SQLite storage backends.

Both repositories share one 'SQLiteConnection'. sqlite3 is blocking, so every
statement runs in a worker thread via 'asyncio.to_thread' and the connection is
guarded by an 'asyncio.Lock' so only one statement batch uses it at a time.

Messages reference their conversation with 'ON DELETE CASCADE'; deleting a
conversation row removes its messages even when the caller forgets to.
'replace_messages' runs its DELETE and INSERTs in a single transaction.
"""

import asyncio
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from chat_stream_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from chat_stream_toolkit.conversation_database.data_models.message import Message, MessageDatabase

T = TypeVar("T")

SCHEMA = """
    CREATE TABLE IF NOT EXISTS conversations (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        create_timestamp INTEGER NOT NULL,
        update_timestamp INTEGER NOT NULL,
        pinned INTEGER NOT NULL DEFAULT 0,
        archived INTEGER NOT NULL DEFAULT 0
    );

    CREATE INDEX IF NOT EXISTS idx_conversations_user
        ON conversations(user_id, update_timestamp);

    CREATE TABLE IF NOT EXISTS messages (
        id TEXT NOT NULL,
        conversation_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        create_timestamp INTEGER NOT NULL,
        position INTEGER NOT NULL,
        PRIMARY KEY (conversation_id, id),
        FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
    );

    CREATE INDEX IF NOT EXISTS idx_messages_conversation
        ON messages(conversation_id, position);
"""


class SQLiteConnection:
    """A sqlite3 connection usable from coroutines."""

    def __init__(self, db_path: Path | str):
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys=ON")
        if str(db_path) != ":memory:":
            self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.executescript(SCHEMA)
        self.conn.commit()
        self._lock = asyncio.Lock()

    async def run(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        async with self._lock:
            return await asyncio.to_thread(operation, self.conn)

    def close(self) -> None:
        self.conn.close()


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation.model_validate({**dict(row), "pinned": bool(row["pinned"]), "archived": bool(row["archived"])})


class SQLiteConversationDatabase(ConversationDatabase):
    def __init__(self, connection: SQLiteConnection):
        self.connection = connection

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        def insert(conn: sqlite3.Connection) -> None:
            with conn:
                conn.execute(
                    """INSERT INTO conversations (id, user_id, title, create_timestamp, update_timestamp,
                       pinned, archived)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        conversation.id,
                        conversation.user_id,
                        conversation.title,
                        conversation.create_timestamp,
                        conversation.update_timestamp,
                        int(conversation.pinned),
                        int(conversation.archived),
                    ),
                )

        await self.connection.run(insert)
        return conversation

    async def get_conversations_by_user_id(self, user_id: str) -> list[Conversation]:
        rows = await self.connection.run(
            lambda conn: conn.execute(
                """SELECT * FROM conversations WHERE user_id = ?
                   ORDER BY update_timestamp DESC, rowid DESC""",
                (user_id,),
            ).fetchall()
        )
        return [_row_to_conversation(row) for row in rows]

    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        row = await self.connection.run(
            lambda conn: conn.execute("SELECT * FROM conversations WHERE id = ?", (conversation_id,)).fetchone()
        )
        return _row_to_conversation(row) if row else None

    async def update_conversation(self, conversation: Conversation) -> Conversation:
        def update(conn: sqlite3.Connection) -> int:
            with conn:
                cursor = conn.execute(
                    """UPDATE conversations
                       SET title = ?, update_timestamp = ?, pinned = ?, archived = ?
                       WHERE id = ?""",
                    (
                        conversation.title,
                        conversation.update_timestamp,
                        int(conversation.pinned),
                        int(conversation.archived),
                        conversation.id,
                    ),
                )
            return cursor.rowcount

        if await self.connection.run(update) == 0:
            raise ValueError(f"Conversation with id {conversation.id} not found")
        return conversation

    async def delete_conversation(self, conversation_id: str) -> bool:
        def delete(conn: sqlite3.Connection) -> int:
            with conn:
                return conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,)).rowcount

        return await self.connection.run(delete) > 0


class SQLiteMessageDatabase(MessageDatabase):
    def __init__(self, connection: SQLiteConnection):
        self.connection = connection

    async def get_messages_by_conversation_id(self, conversation_id: str) -> list[Message]:
        rows = await self.connection.run(
            lambda conn: conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY position",
                (conversation_id,),
            ).fetchall()
        )
        return [Message.model_validate(dict(row)) for row in rows]

    async def replace_messages(self, conversation_id: str, messages: list[Message]) -> list[Message]:
        def replace(conn: sqlite3.Connection) -> None:
            with conn:
                conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
                conn.executemany(
                    """INSERT INTO messages (id, conversation_id, user_id, role, content,
                       create_timestamp, position)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    [
                        (
                            m.id,
                            conversation_id,
                            m.user_id,
                            m.role.value,
                            m.content,
                            m.create_timestamp,
                            m.position,
                        )
                        for m in messages
                    ],
                )

        await self.connection.run(replace)
        return messages

    async def delete_messages_by_conversation_id(self, conversation_id: str) -> int:
        def delete(conn: sqlite3.Connection) -> int:
            with conn:
                return conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,)).rowcount

        return await self.connection.run(delete)
