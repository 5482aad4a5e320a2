"""Request normalizer: inbound chat request -> upstream payload."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Mapping, Optional

from pydantic import ValidationError

from ..types.chat import ChatCompletionRequest
from .exceptions import InvalidRequestError

if TYPE_CHECKING:
    from ..settings import RelaySettings

logger = logging.getLogger("thinkrelay")

MAX_TEMPERATURE = 2.0

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str

    def to_payload(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class CompletionRequest:
    """One inbound call after validation and clamping.

    ``model_name`` is the name the client sent (or the default upstream
    identifier when the client sent none); ``upstream_model`` is the
    resolved route.
    """

    model_name: str
    upstream_model: str
    conversation: tuple[ChatMessage, ...]
    temperature: float
    max_output_tokens: int
    stream_requested: bool


def _describe_validation_error(exc: ValidationError) -> tuple[str, str]:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    if location.startswith("messages") and first.get("type") in {"missing", "too_short"}:
        return "You must provide a messages array", "missing_parameter"
    if location:
        return f"Invalid value for '{location}': {first.get('msg')}", "invalid_parameter"
    return str(first.get("msg") or "Invalid request body"), "invalid_request"


class RequestNormalizer:
    """Maps inbound requests onto upstream payloads. No I/O, no side effects."""

    def __init__(self, settings: "RelaySettings") -> None:
        self.settings = settings

    def resolve_model(self, model_name: Optional[str]) -> str:
        """Look up the upstream identifier; unknown names fall back to the default."""
        routes = self.settings.model_routes
        if model_name:
            name = model_name.strip()
            if name in routes:
                return routes[name]
            if "/" in name:
                prefix, remainder = name.split("/", 1)
                if prefix.lower() == "openai" and remainder in routes:
                    return routes[remainder]
        logger.debug(
            "Model '%s' not in route table; using default '%s'",
            model_name,
            self.settings.default_model,
        )
        return self.settings.default_model

    def clamp_max_tokens(self, value: Optional[int]) -> int:
        ceiling = max(1, self.settings.max_tokens_ceiling)
        if not value or value < 1:
            return self.settings.effective_default_max_tokens
        return min(value, ceiling)

    def clamp_temperature(self, value: Optional[float]) -> float:
        if not value:
            return self.settings.default_temperature
        return min(value, MAX_TEMPERATURE)

    def parse(self, body: bytes) -> CompletionRequest:
        """Validate a raw request body. Raises InvalidRequestError."""
        try:
            payload = json.loads(body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidRequestError("Invalid JSON payload", code="invalid_json") from exc
        if not isinstance(payload, Mapping):
            raise InvalidRequestError(
                "Request body must be a JSON object", code="invalid_json_shape"
            )
        return self.normalize(payload)

    def normalize(self, payload: Mapping[str, Any]) -> CompletionRequest:
        try:
            inbound = ChatCompletionRequest.model_validate(payload)
        except ValidationError as exc:
            message, code = _describe_validation_error(exc)
            raise InvalidRequestError(message, code=code) from exc

        conversation = [ChatMessage(role=m.role, content=m.text()) for m in inbound.messages]
        if self.settings.prepend_system_prompt and self.settings.system_prompt:
            conversation.insert(0, ChatMessage(role="system", content=self.settings.system_prompt))

        upstream_model = self.resolve_model(inbound.model)
        model_name = (inbound.model or "").strip() or upstream_model
        return CompletionRequest(
            model_name=model_name,
            upstream_model=upstream_model,
            conversation=tuple(conversation),
            temperature=self.clamp_temperature(inbound.temperature),
            max_output_tokens=self.clamp_max_tokens(inbound.max_tokens),
            stream_requested=bool(inbound.stream),
        )

    def build_payload(self, request: CompletionRequest, *, stream: bool) -> dict[str, Any]:
        """Upstream-shaped request body."""
        payload: dict[str, Any] = {
            "model": request.upstream_model,
            "messages": [message.to_payload() for message in request.conversation],
            "temperature": request.temperature,
            "max_tokens": request.max_output_tokens,
            "stream": stream,
        }
        if self.settings.thinking_mode:
            payload["thinking"] = {"type": "enabled"}
            logger.debug("Enabled thinking block for model %s", request.upstream_model)
        return payload
