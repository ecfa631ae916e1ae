"""
Exception hierarchy for the chat stream toolkit.

Only 'TransportError' ever reaches the presentation layer (through
'StreamingChatSession.error'). 'FrameDecodeError' is raised and caught inside
the frame parser. The lookup errors derive from 'ValueError' so callers that
already guard store calls with 'except ValueError' keep working.
"""


class ChatError(Exception):
    """Base class for all toolkit errors."""


class TransportError(ChatError):
    """The completion request could not be sent or its response could not be read."""


class FrameDecodeError(ChatError):
    """A single streamed frame could not be decoded."""


class ConversationNotFoundError(ChatError, ValueError):
    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation with id {conversation_id} not found")
        self.conversation_id = conversation_id


class ConversationAccessError(ChatError, ValueError):
    def __init__(self, user_id: str, conversation_id: str):
        super().__init__(f"User {user_id} does not have access to conversation {conversation_id}")
        self.user_id = user_id
        self.conversation_id = conversation_id
