"""
Streaming chat session.

'StreamingChatSession' owns the message list of one chat and turns each
'send(text)' into a single exchange with an 'LLM' backend:

    idle -> sending      user message appended, request issued with the full history
    sending -> streaming first delta received, empty assistant message appended
    streaming -> idle    stream finished, the assistant message is final
    * -> errored         'TransportError', partial assistant text is kept; a stream
                         that ends before any delta is an error as well

Exchanges run as asyncio tasks so 'send' returns immediately and the caller
observes 'messages', 'state' and 'error' (or awaits 'wait()'). At most one
exchange is in flight: a new 'send' cancels the previous exchange, and every
exchange carries a token that stops a superseded exchange from touching the
message list even if it is resumed once more before its cancellation lands.
"""

import asyncio
from collections.abc import Callable, Iterable
from contextlib import aclosing
from enum import StrEnum
from typing import Any

from loguru import logger
from pydantic import BaseModel, field_validator

from chat_stream_toolkit.errors import TransportError
from chat_stream_toolkit.llms.base import LLM, LLMMessage, Roles
from chat_stream_toolkit.utils.database import generate_uid


class SessionState(StrEnum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    ERRORED = "errored"


class ChatMessage(BaseModel):
    """A user or assistant turn as held by the session."""

    id: str
    role: Roles
    content: str = ""

    @field_validator("role")
    @classmethod
    def _no_system_messages(cls, role: Roles) -> Roles:
        if role == Roles.SYSTEM:
            raise ValueError("Chat messages are limited to the user and assistant roles")
        return role


class StreamingChatSession:
    """
    Single-flight streaming chat against one 'LLM' backend.

    Attributes:
        llm: Backend used for every exchange.
        system_prompt: Prepended to the history of every request, never stored
            in the message list.
        on_update: Called without arguments after every state or content
            change. It runs inline on the event loop, so keep it cheap.

    'send' schedules a task and therefore needs a running event loop.
    """

    def __init__(
        self,
        llm: LLM,
        system_prompt: str | None = None,
        on_update: Callable[[], None] | None = None,
    ):
        self.llm = llm
        self.system_prompt = system_prompt
        self.on_update = on_update
        self._messages: list[ChatMessage] = []
        self._state = SessionState.IDLE
        self._error: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._exchange_token: object | None = None

    @property
    def messages(self) -> list[ChatMessage]:
        return [message.model_copy() for message in self._messages]

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._state in (SessionState.SENDING, SessionState.STREAMING)

    @property
    def is_streaming(self) -> bool:
        return self._state == SessionState.STREAMING

    def send(self, text: str) -> asyncio.Task[None] | None:
        """Start an exchange for 'text'. Blank input is ignored and returns None."""
        text = text.strip()
        if not text:
            return None

        self._supersede()
        self._messages.append(ChatMessage(id=generate_uid(), role=Roles.USER, content=text))
        self._error = None
        token = object()
        self._exchange_token = token
        self._set_state(SessionState.SENDING)
        self._task = asyncio.create_task(self._run_exchange(token))
        return self._task

    async def wait(self) -> None:
        """Wait until the current exchange, if any, has finished or was cancelled."""
        task = self._task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise

    def cancel(self) -> None:
        """Interrupt the running exchange, keeping whatever text was already received."""
        if self._supersede():
            self._set_state(SessionState.IDLE)

    def clear_messages(self) -> None:
        self._supersede()
        self._messages = []
        self._error = None
        self._set_state(SessionState.IDLE)

    def set_messages(self, messages: Iterable[Any]) -> None:
        """Replace the message list, e.g. with a conversation loaded from storage.

        Accepts 'ChatMessage' values, stored 'Message' records or plain dicts
        carrying 'id', 'role' and 'content'.
        """
        self._supersede()
        self._messages = [
            ChatMessage.model_validate(message, from_attributes=True).model_copy() for message in messages
        ]
        self._error = None
        self._set_state(SessionState.IDLE)

    def clear_error(self) -> None:
        self._error = None
        if self._state == SessionState.ERRORED:
            self._set_state(SessionState.IDLE)
        else:
            self._notify()

    def _supersede(self) -> bool:
        """Detach and cancel the in-flight exchange. Returns True if one was running."""
        self._exchange_token = None
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("Cancelled in-flight chat exchange")
        return True

    def _history(self) -> list[LLMMessage]:
        history = [LLMMessage(role=message.role, content=message.content) for message in self._messages]
        if self.system_prompt:
            history.insert(0, LLMMessage(role=Roles.SYSTEM, content=self.system_prompt))
        return history

    async def _run_exchange(self, token: object) -> None:
        assistant_message: ChatMessage | None = None
        try:
            async with aclosing(self.llm.generate_stream(self._history())) as stream:
                async for chunk in stream:
                    if token is not self._exchange_token:
                        return
                    if assistant_message is None:
                        assistant_message = ChatMessage(id=generate_uid(), role=Roles.ASSISTANT)
                        self._messages.append(assistant_message)
                        self._set_state(SessionState.STREAMING)
                    assistant_message.content += chunk.content
                    self._notify()
        except TransportError as exc:
            self._fail(token, str(exc))
            return
        except Exception:
            logger.exception("Unexpected error while streaming a reply")
            self._fail(token, "Something went wrong while generating a reply.")
            return

        if assistant_message is None:
            self._fail(token, "No response from the AI service.")
        elif token is self._exchange_token:
            self._exchange_token = None
            self._set_state(SessionState.IDLE)

    def _fail(self, token: object, error: str) -> None:
        if token is not self._exchange_token:
            return
        logger.error(f"Chat exchange failed: {error}")
        self._exchange_token = None
        self._error = error
        self._set_state(SessionState.ERRORED)

    def _set_state(self, state: SessionState) -> None:
        if state != self._state:
            logger.debug(f"Chat session {self._state} -> {state}")
        self._state = state
        self._notify()

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update()
