"""Relay router: runs one inbound call through the translation pipeline."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from fastapi import Response

from .assembler import ResponseAssembler
from .demux import DisconnectChecker, StreamDemultiplexer
from .emitter import build_json_response, build_stream_response
from .normalizer import RequestNormalizer
from .reasoning import ReasoningDisplay
from .transport import UpstreamTransport

if TYPE_CHECKING:
    from ..settings import RelaySettings

logger = logging.getLogger("thinkrelay")


class RelayRouter:
    """Normalizer -> Transport -> (Demultiplexer | Assembler) -> Emitter."""

    def __init__(
        self,
        settings: "RelaySettings",
        transport: Optional[UpstreamTransport] = None,
    ) -> None:
        self.settings = settings
        self.normalizer = RequestNormalizer(settings)
        self.transport = transport or UpstreamTransport(
            settings.api_base,
            settings.api_key,
            timeout=settings.request_timeout,
            chat_path=settings.chat_path,
        )
        self.display = ReasoningDisplay(
            enabled=settings.reasoning_display, tag=settings.reasoning_tag
        )

    def list_model_names(self) -> list[str]:
        names = list(self.settings.model_routes)
        if self.settings.default_model not in names:
            names.append(self.settings.default_model)
        return names

    async def forward_request(
        self,
        body: bytes,
        disconnect_checker: Optional[DisconnectChecker] = None,
    ) -> Response:
        """Relay one chat-completion call.

        Raises InvalidRequestError before any upstream call, and the upstream
        error taxonomy for failures that happen before the response starts.
        Failures inside a started stream are reported in-band.
        """
        request = self.normalizer.parse(body)
        upstream_stream = request.stream_requested or self.settings.force_stream
        payload = self.normalizer.build_payload(request, stream=upstream_stream)
        logger.info(
            f"Relaying model {request.model_name} -> {request.upstream_model}, "
            f"stream={request.stream_requested}, upstream_stream={upstream_stream}, "
            f"max_tokens={request.max_output_tokens}"
        )

        if request.stream_requested:
            stream = await self.transport.open_stream(payload)
            demux = StreamDemultiplexer(request.model_name, self.display)
            return build_stream_response(
                demux.relay(stream, disconnect_checker), upstream=stream
            )

        assembler = ResponseAssembler(request.model_name, self.display)
        if upstream_stream:
            stream = await self.transport.open_stream(payload)
            document = await assembler.assemble_stream(stream)
        else:
            reply = await self.transport.post(payload)
            if "text/event-stream" in reply.content_type.lower():
                logger.debug("Upstream answered a buffered request with an event stream")
                document = await assembler.assemble_stream(_BufferedStream(reply.body))
            else:
                document = assembler.assemble(reply.body)
        logger.info(
            f"Request for model {request.model_name} completed with "
            f"{len(document['choices'])} choice(s)"
        )
        return build_json_response(document)


class _BufferedStream:
    """Adapts an already buffered body to the byte-stream interface."""

    def __init__(self, body: bytes) -> None:
        self._body = body

    async def iter_bytes(self):
        if self._body:
            yield self._body

    async def aclose(self) -> None:
        return None
