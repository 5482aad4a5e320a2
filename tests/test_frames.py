"""Tests for decoding SSE events into upstream frames."""

import pytest

from thinkrelay.core.exceptions import UpstreamError
from thinkrelay.core.frames import FrameDecodeError, decode_frame, stream_error_from_payload
from thinkrelay.core.sse import SSEEvent


class TestDecodeFrame:
    """Tests for decode_frame."""

    def test_content_delta(self):
        frame = decode_frame(
            SSEEvent(
                data='{"id":"c1","created":5,"choices":[{"index":0,'
                '"delta":{"role":"assistant","content":"Hi"}}]}'
            )
        )
        assert frame.id == "c1"
        assert frame.created == 5
        assert frame.choices[0].role == "assistant"
        assert frame.choices[0].content == "Hi"
        assert frame.choices[0].reasoning is None

    def test_reasoning_content_field(self):
        frame = decode_frame(
            SSEEvent(data='{"choices":[{"delta":{"reasoning_content":"hmm"}}]}')
        )
        assert frame.choices[0].reasoning == "hmm"

    def test_reasoning_field_alias(self):
        """Test that providers using 'reasoning' are understood too."""
        frame = decode_frame(SSEEvent(data='{"choices":[{"delta":{"reasoning":"hmm"}}]}'))
        assert frame.choices[0].reasoning == "hmm"

    def test_finish_reason_and_usage(self):
        frame = decode_frame(
            SSEEvent(
                data='{"choices":[{"index":0,"delta":{},"finish_reason":"stop"}],'
                '"usage":{"prompt_tokens":1,"completion_tokens":2,"total_tokens":3}}'
            )
        )
        assert frame.choices[0].finish_reason == "stop"
        assert frame.usage["total_tokens"] == 3

    def test_done_is_terminal(self):
        frame = decode_frame(SSEEvent(data="[DONE]"))
        assert frame.is_terminal

    def test_event_without_data_is_skipped(self):
        assert decode_frame(SSEEvent(data=None, other_lines=[": ping"])) is None

    def test_invalid_json_raises_frame_error(self):
        with pytest.raises(FrameDecodeError):
            decode_frame(SSEEvent(data="{invalid json"))

    def test_non_object_raises_frame_error(self):
        with pytest.raises(FrameDecodeError):
            decode_frame(SSEEvent(data='"just a string"'))

    def test_missing_choices_raises_frame_error(self):
        with pytest.raises(FrameDecodeError):
            decode_frame(SSEEvent(data='{"id": "x"}'))

    def test_error_event_raises_upstream_error(self):
        with pytest.raises(UpstreamError) as exc_info:
            decode_frame(SSEEvent(data='{"error":{"message":"rate limited","code":429}}'))
        assert "rate limited" in exc_info.value.message
        assert exc_info.value.upstream_status == 429


class TestStreamErrorFromPayload:
    """Tests for in-stream error detection."""

    def test_minimax_style_error(self):
        error = stream_error_from_payload(
            {"type": "error", "error": {"message": "test error", "http_code": 500}}
        )
        assert error is not None
        assert "test error" in error.message
        assert error.upstream_status == 500

    def test_string_error(self):
        error = stream_error_from_payload({"error": "boom"})
        assert error is not None
        assert "boom" in error.message
        assert error.upstream_status is None

    def test_regular_chunk_is_not_an_error(self):
        assert stream_error_from_payload({"choices": []}) is None
