import pytest

from chat_stream_toolkit.errors import FrameDecodeError
from chat_stream_toolkit.streaming.frames import FrameParser, decode_frame, extract_delta
from helpers import frame, stream_body


def parse_chunks(chunks: list[bytes]) -> tuple[str, FrameParser]:
    parser = FrameParser()
    deltas: list[str] = []
    for chunk in chunks:
        deltas += parser.feed(chunk)
    deltas += parser.flush()
    return "".join(deltas), parser


def test_deltas_are_concatenated_in_order():
    content, parser = parse_chunks([stream_body("You should ", "focus on ", "Python.")])

    assert content == "You should focus on Python."
    assert parser.done


def test_content_does_not_depend_on_chunk_boundaries():
    body = stream_body("Backend roles ", "need SQL, ", "HTTP and ", "testing.")
    expected, _ = parse_chunks([body])

    for split in range(1, len(body)):
        content, _ = parse_chunks([body[:split], body[split:]])
        assert content == expected, f"split at byte {split}"

    one_byte_at_a_time, _ = parse_chunks([body[i : i + 1] for i in range(len(body))])
    assert one_byte_at_a_time == expected


def test_multibyte_character_split_across_chunks():
    body = stream_body("Café ", "🚀 launch")
    rocket = "🚀".encode("utf-8")
    split = body.index(rocket) + 2

    content, _ = parse_chunks([body[:split], body[split:]])

    assert content == "Café 🚀 launch"
    assert "�" not in content


def test_malformed_frame_is_skipped():
    body = (frame("first ") + 'data: {"choices": [{"delta": \n\n' + frame("second") + "data: [DONE]\n\n").encode()

    content, parser = parse_chunks([body])

    assert content == "first second"
    assert parser.skipped_frames == 1


def test_nothing_is_parsed_after_the_end_marker():
    body = (frame("kept") + "data: [DONE]\n\n" + frame("dropped")).encode()
    parser = FrameParser()

    deltas = parser.feed(body)
    deltas += parser.feed(frame("also dropped").encode())
    deltas += parser.flush()

    assert deltas == ["kept"]
    assert parser.done


def test_comments_blank_lines_and_other_fields_are_ignored():
    body = (": keep-alive\n\nevent: message\n" + frame("hi").replace("\n", "\r\n") + "id: 7\n").encode()

    content, parser = parse_chunks([body])

    assert content == "hi"
    assert parser.skipped_frames == 0


def test_flush_parses_a_final_line_without_newline():
    parser = FrameParser()

    assert parser.feed(frame("tail").rstrip("\n").encode()) == []
    assert parser.flush() == ["tail"]


def test_prefix_without_space_is_accepted():
    content, _ = parse_chunks([b'data:{"choices":[{"delta":{"content":"x"}}]}\n'])

    assert content == "x"


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"choices": [{"delta": {"role": "assistant", "content": ""}}]}, ""),
        ({"choices": [{"delta": {"role": "assistant"}}]}, None),
        ({"choices": []}, None),
        ({"choices": [{"delta": {"content": 3}}]}, None),
        ({"error": {"message": "overloaded"}}, None),
        (["not", "a", "dict"], None),
    ],
)
def test_extract_delta(payload, expected):
    assert extract_delta(payload) == expected


def test_decode_frame_raises_on_invalid_json():
    with pytest.raises(FrameDecodeError):
        decode_frame('{"choices": [')
