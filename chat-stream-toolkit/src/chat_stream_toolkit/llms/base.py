"""
Core LLM abstractions and message data models.

Every completion backend implements the 'LLM' ABC. The shared message format
('LLMMessage') is backend-agnostic so the streaming session and the
application controller never need to know which endpoint is in use.

'LLMMessage' is also the unit yielded by 'generate_stream': each streamed item
carries one incremental delta in 'content' rather than the accumulated text,
which keeps the session responsible for assembling the reply.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from enum import StrEnum

from pydantic import BaseModel


class Roles(StrEnum):
    """Conversation roles as used by the OpenAI chat completions API."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class LLMMessage(BaseModel):
    """A single message in a conversation sent to or received from an LLM."""

    content: str = ""
    role: Roles = Roles.ASSISTANT


class LLM(ABC):
    """
    Abstract base class for completion backends.

    Implementations are stateless from the caller's perspective: the full
    conversation is passed on every call and nothing is remembered between
    calls.
    """

    @abstractmethod
    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        """Return a single complete response for the given conversation."""
        pass

    @abstractmethod
    def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        """Yield response deltas in the order they arrive from the backend."""
        pass
