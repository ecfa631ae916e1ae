import asyncio
import json
from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx

from chat_stream_toolkit.llms.base import LLM, LLMMessage

COMPLETION_URL = "https://ai.test/v1/chat/completions"


def frame(content: str) -> str:
    payload = {"choices": [{"index": 0, "delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def stream_body(*deltas: str, done: bool = True) -> bytes:
    body = "".join(frame(delta) for delta in deltas)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode("utf-8")


def streaming_transport(
    chunks: list[Any], status_code: int = 200, requests: list[httpx.Request] | None = None
) -> httpx.MockTransport:
    """Answer every request with 'chunks' as the body, chunk boundaries preserved.

    Exceptions in 'chunks' are raised when reached; floats pause for that many seconds.
    """

    async def body() -> AsyncGenerator[bytes, None]:
        for chunk in chunks:
            if isinstance(chunk, BaseException):
                raise chunk
            if isinstance(chunk, float):
                await asyncio.sleep(chunk)
                continue
            yield chunk

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, content=body())

    return httpx.MockTransport(handler)


class ScriptedLLM(LLM):
    """
    LLM returning canned replies, one per 'generate_stream' call.

    A reply is a list of items: strings are yielded as deltas, an
    'asyncio.Event' pauses the stream until it is set, and an exception is
    raised when reached.
    """

    def __init__(self, *replies: list[Any]):
        self.replies = list(replies)
        self.calls: list[list[LLMMessage]] = []

    async def generate(self, conversation: list[LLMMessage]) -> LLMMessage:
        raise NotImplementedError

    async def generate_stream(self, conversation: list[LLMMessage]) -> AsyncGenerator[LLMMessage, None]:
        self.calls.append(list(conversation))
        reply = self.replies.pop(0) if self.replies else []
        for item in reply:
            if isinstance(item, BaseException):
                raise item
            if isinstance(item, asyncio.Event):
                await item.wait()
                continue
            await asyncio.sleep(0)
            yield LLMMessage(content=item)


async def wait_until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was never met")


