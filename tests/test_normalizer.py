"""Tests for request normalization."""

import json

import pytest
from conftest import build_settings

from thinkrelay.core.exceptions import InvalidRequestError
from thinkrelay.core.normalizer import ChatMessage, RequestNormalizer


def _normalizer(**overrides) -> RequestNormalizer:
    return RequestNormalizer(build_settings(**overrides))


def _body(**fields) -> bytes:
    payload = {"messages": [{"role": "user", "content": "Hi"}]}
    payload.update(fields)
    return json.dumps(payload).encode()


class TestParse:
    """Tests for validation of inbound bodies."""

    def test_minimal_request(self):
        request = _normalizer().parse(_body(model="gpt-4o"))
        assert request.model_name == "gpt-4o"
        assert request.upstream_model == "deepseek-r1"
        assert request.conversation == (ChatMessage(role="user", content="Hi"),)
        assert request.temperature == 0.7
        assert request.max_output_tokens == 800
        assert request.stream_requested is False

    def test_invalid_json(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            _normalizer().parse(b"{not json")
        assert exc_info.value.code == "invalid_json"
        assert exc_info.value.status_code == 400

    def test_body_must_be_object(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            _normalizer().parse(b"[1, 2]")
        assert exc_info.value.code == "invalid_json_shape"

    def test_missing_messages(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            _normalizer().parse(b'{"model": "gpt-4o"}')
        assert exc_info.value.message == "You must provide a messages array"
        assert exc_info.value.code == "missing_parameter"

    def test_empty_messages(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            _normalizer().parse(b'{"messages": []}')
        assert exc_info.value.code == "missing_parameter"

    def test_unknown_role_rejected(self):
        with pytest.raises(InvalidRequestError) as exc_info:
            _normalizer().parse(b'{"messages": [{"role": "wizard", "content": "x"}]}')
        assert exc_info.value.code == "invalid_parameter"

    def test_negative_temperature_rejected(self):
        with pytest.raises(InvalidRequestError):
            _normalizer().parse(_body(temperature=-1))

    def test_content_parts_are_flattened(self):
        body = json.dumps(
            {
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": "Hello "},
                            {"type": "image_url"},
                            {"type": "text", "text": "world"},
                        ],
                    }
                ]
            }
        ).encode()
        request = _normalizer().parse(body)
        assert request.conversation[0].content == "Hello world"

    def test_unknown_fields_ignored(self):
        request = _normalizer().parse(_body(top_p=0.5, user="abc"))
        assert request.stream_requested is False


class TestModelResolution:
    """Tests for the model route table."""

    def test_unknown_model_fails_open_to_default(self):
        request = _normalizer().parse(_body(model="not-a-model"))
        assert request.upstream_model == "deepseek-r1"
        assert request.model_name == "not-a-model"

    def test_missing_model_uses_default_name(self):
        request = _normalizer().parse(_body())
        assert request.model_name == "deepseek-r1"
        assert request.upstream_model == "deepseek-r1"

    def test_openai_prefix_tolerated(self):
        assert _normalizer().resolve_model("openai/gpt-4o-mini") == "deepseek-v3"


class TestClamping:
    """Tests for temperature and token clamping."""

    @pytest.mark.parametrize(
        "value,expected",
        [(None, 800), (0, 800), (-5, 800), (100, 100), (4096, 4096), (100000, 4096)],
    )
    def test_max_tokens(self, value, expected):
        assert _normalizer().clamp_max_tokens(value) == expected

    def test_default_max_tokens_capped_by_ceiling(self):
        normalizer = _normalizer(default_max_tokens=5000, max_tokens_ceiling=1000)
        assert normalizer.clamp_max_tokens(None) == 1000

    @pytest.mark.parametrize(
        "value,expected",
        [(None, 0.7), (0, 0.7), (0.2, 0.2), (1.5, 1.5), (7, 2.0)],
    )
    def test_temperature(self, value, expected):
        assert _normalizer().clamp_temperature(value) == expected


class TestBuildPayload:
    """Tests for the upstream request body."""

    def test_payload_fields(self):
        normalizer = _normalizer()
        request = normalizer.parse(_body(model="gpt-4o", max_tokens=50, temperature=0.3))
        payload = normalizer.build_payload(request, stream=True)
        assert payload == {
            "model": "deepseek-r1",
            "messages": [{"role": "user", "content": "Hi"}],
            "temperature": 0.3,
            "max_tokens": 50,
            "stream": True,
        }

    def test_system_prompt_prepended(self):
        normalizer = _normalizer(prepend_system_prompt=True, system_prompt="Be brief.")
        request = normalizer.parse(_body())
        payload = normalizer.build_payload(request, stream=False)
        assert payload["messages"][0] == {"role": "system", "content": "Be brief."}
        assert payload["messages"][1] == {"role": "user", "content": "Hi"}

    def test_system_prompt_not_prepended_when_disabled(self):
        normalizer = _normalizer(prepend_system_prompt=False, system_prompt="Be brief.")
        payload = normalizer.build_payload(normalizer.parse(_body()), stream=False)
        assert len(payload["messages"]) == 1

    def test_thinking_mode_adds_thinking_block(self):
        normalizer = _normalizer(thinking_mode=True)
        payload = normalizer.build_payload(normalizer.parse(_body()), stream=False)
        assert payload["thinking"] == {"type": "enabled"}

    def test_no_thinking_block_by_default(self):
        normalizer = _normalizer()
        payload = normalizer.build_payload(normalizer.parse(_body()), stream=False)
        assert "thinking" not in payload
