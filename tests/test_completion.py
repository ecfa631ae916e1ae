import json

import httpx
import pytest

from chat_stream_toolkit.errors import TransportError
from chat_stream_toolkit.llms.base import LLMMessage, Roles
from chat_stream_toolkit.llms.completion import CompletionLLM, status_error_message
from helpers import COMPLETION_URL, frame, stream_body, streaming_transport

CONVERSATION = [
    LLMMessage(role=Roles.SYSTEM, content="You are a career coach."),
    LLMMessage(role=Roles.USER, content="What skills do I need for backend roles?"),
]


def make_llm(transport: httpx.MockTransport, **kwargs) -> CompletionLLM:
    return CompletionLLM(url=COMPLETION_URL, client=httpx.AsyncClient(transport=transport), **kwargs)


async def collect(llm: CompletionLLM, conversation: list[LLMMessage] = CONVERSATION) -> list[str]:
    return [chunk.content async for chunk in llm.generate_stream(conversation)]


async def test_stream_sends_full_history_and_yields_deltas():
    requests: list[httpx.Request] = []
    body = stream_body("SQL, ", "HTTP ", "and Python.")
    llm = make_llm(
        streaming_transport([body[:17], body[17:60], body[60:]], requests=requests),
        model_name="coach-model",
        api_key="secret-key",
    )

    deltas = await collect(llm)

    assert "".join(deltas) == "SQL, HTTP and Python."
    request = requests[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer secret-key"
    payload = json.loads(request.content)
    assert payload == {
        "messages": [
            {"role": "system", "content": "You are a career coach."},
            {"role": "user", "content": "What skills do I need for backend roles?"},
        ],
        "stream": True,
        "model": "coach-model",
    }


async def test_no_authorization_header_without_api_key():
    requests: list[httpx.Request] = []
    llm = make_llm(streaming_transport([stream_body("ok")], requests=requests))

    await collect(llm)

    assert "Authorization" not in requests[0].headers
    assert "model" not in json.loads(requests[0].content)


async def test_stream_stops_reading_at_end_marker():
    llm = make_llm(streaming_transport([stream_body("done"), frame("ignored").encode()]))

    assert await collect(llm) == ["done"]


async def test_stream_without_end_marker_ends_on_close():
    llm = make_llm(streaming_transport([stream_body("a", "b", done=False)]))

    assert await collect(llm) == ["a", "b"]


@pytest.mark.parametrize(
    "status_code, message",
    [
        (429, "Rate limits exceeded, please try again later."),
        (402, "Payment required, please add credits to continue."),
        (500, "AI service error (500)."),
    ],
)
async def test_error_status_raises_transport_error(status_code, message):
    llm = make_llm(streaming_transport([b'{"error": "nope"}'], status_code=status_code))

    with pytest.raises(TransportError) as exc_info:
        await collect(llm)

    assert str(exc_info.value) == message
    assert status_error_message(status_code) == message


async def test_connection_lost_mid_stream_keeps_earlier_deltas():
    llm = make_llm(streaming_transport([stream_body("You should ", done=False), httpx.ReadError("reset")]))
    received: list[str] = []

    with pytest.raises(TransportError):
        async for chunk in llm.generate_stream(CONVERSATION):
            received.append(chunk.content)

    assert received == ["You should "]


async def test_idle_timeout_raises_transport_error():
    llm = make_llm(streaming_transport([stream_body("slow", done=False), 5.0, stream_body("never")]), idle_timeout=0.05)
    received: list[str] = []

    with pytest.raises(TransportError, match="stopped responding"):
        async for chunk in llm.generate_stream(CONVERSATION):
            received.append(chunk.content)

    assert received == ["slow"]


async def test_generate_returns_complete_message():
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "python"}}]})

    llm = make_llm(httpx.MockTransport(handler))

    message = await llm.generate(CONVERSATION)

    assert message == LLMMessage(role=Roles.ASSISTANT, content="python")
    assert json.loads(requests[0].content)["stream"] is False


async def test_generate_without_content_raises():
    llm = make_llm(httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []})))

    with pytest.raises(TransportError, match="No response"):
        await llm.generate(CONVERSATION)


async def test_unreachable_endpoint_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    llm = make_llm(httpx.MockTransport(handler))

    with pytest.raises(TransportError, match="Connection to the AI service was lost"):
        await collect(llm)
    with pytest.raises(TransportError, match="Could not reach"):
        await llm.generate(CONVERSATION)


async def test_read_timeout_reports_stalled_service():
    llm = make_llm(streaming_transport([stream_body("slow", done=False), httpx.ReadTimeout("timed out")]))

    with pytest.raises(TransportError, match="stopped responding"):
        await collect(llm)
