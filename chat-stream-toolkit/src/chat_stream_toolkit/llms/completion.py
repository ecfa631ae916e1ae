"""
HTTP backend for OpenAI-compatible chat completion endpoints.

'CompletionLLM' POSTs the whole conversation on every call; the endpoint keeps
no state between requests. Streaming responses are read chunk by chunk with
httpx and handed to 'FrameParser', so deltas are yielded as soon as their frame
is complete.

Every transport problem (connection failure, non-2xx status, a stream that goes
quiet for longer than 'idle_timeout') is raised as 'TransportError'. The
message is meant to be shown to the user as-is.
"""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from loguru import logger

from chat_stream_toolkit.errors import TransportError
from chat_stream_toolkit.llms.base import LLM, LLMMessage, Roles
from chat_stream_toolkit.streaming.frames import FrameParser

STATUS_MESSAGES = {
    402: "Payment required, please add credits to continue.",
    429: "Rate limits exceeded, please try again later.",
}


def status_error_message(status_code: int) -> str:
    return STATUS_MESSAGES.get(status_code, f"AI service error ({status_code}).")


class CompletionLLM(LLM):
    """
    Chat completion client speaking the 'data: <json>' streaming protocol.

    Attributes:
        url: Full URL of the chat completions endpoint.
        model_name: Sent as 'model' when set; gateways that pin the model
            server-side can leave it empty.
        api_key: Sent as a bearer token when set.
        idle_timeout: Maximum number of seconds to wait for the next body chunk
            of a streaming response. None disables the bound.
        connect_timeout: Connection timeout in seconds.
        client: Optional shared 'httpx.AsyncClient'. When omitted a client is
            opened for each request and closed afterwards.
    """

    def __init__(
        self,
        url: str,
        model_name: str | None = None,
        api_key: str | None = None,
        temperature: float | None = None,
        idle_timeout: float | None = 60.0,
        connect_timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.model_name = model_name
        self.api_key = api_key
        self.temperature = temperature
        self.idle_timeout = idle_timeout
        self.connect_timeout = connect_timeout
        self.client = client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _payload(self, conversation: list[LLMMessage], stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "messages": [{"role": message.role.value, "content": message.content} for message in conversation],
            "stream": stream,
        }
        if self.model_name:
            payload["model"] = self.model_name
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        timeout = httpx.Timeout(connect=self.connect_timeout, read=self.idle_timeout, write=30.0, pool=self.connect_timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            yield client

    async def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        body = await response.aread()
        logger.error(f"Completion endpoint returned {response.status_code}: {body[:500]!r}")
        raise TransportError(status_error_message(response.status_code))

    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        try:
            async with self._client() as client:
                response = await client.post(self.url, json=self._payload(conversation, stream=False), headers=self._headers())
                await self._raise_for_status(response)
                data = response.json()
        except httpx.HTTPError as exc:
            logger.error(f"Completion request failed: {exc!r}")
            raise TransportError("Could not reach the AI service.") from exc
        except ValueError as exc:
            raise TransportError("The AI service returned an invalid response.") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not isinstance(content, str) or not content:
            raise TransportError("No response from the AI service.")
        return LLMMessage(role=Roles.ASSISTANT, content=content)

    async def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        parser = FrameParser()
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", self.url, json=self._payload(conversation, stream=True), headers=self._headers()
                ) as response:
                    await self._raise_for_status(response)
                    chunks = response.aiter_bytes()
                    while not parser.done:
                        try:
                            async with asyncio.timeout(self.idle_timeout):
                                chunk = await anext(chunks)
                        except StopAsyncIteration:
                            break
                        for delta in parser.feed(chunk):
                            yield LLMMessage(role=Roles.ASSISTANT, content=delta)
                    for delta in parser.flush():
                        yield LLMMessage(role=Roles.ASSISTANT, content=delta)
        except (TimeoutError, httpx.ReadTimeout) as exc:
            logger.error(f"No data from the completion endpoint for {self.idle_timeout}s")
            raise TransportError("The AI service stopped responding.") from exc
        except httpx.HTTPError as exc:
            logger.error(f"Completion stream failed: {exc!r}")
            raise TransportError("Connection to the AI service was lost.") from exc

        if parser.skipped_frames:
            logger.debug(f"Stream finished with {parser.skipped_frames} skipped frame(s)")
