"""OpenAI-compatible chat completions endpoint."""

import logging

from fastapi import Request, Response
from starlette.requests import ClientDisconnect

from ...core.exceptions import InvalidRequestError
from ...core.registry import get_router

logger = logging.getLogger("thinkrelay")


async def chat_completions(request: Request) -> Response:
    """Chat completions endpoint - OpenAI compatible.

    POST /v1/chat/completions
    """
    logger.info(f"Handling {request.method} request to {request.url.path}")
    try:
        body = await request.body()
    except ClientDisconnect as exc:
        logger.warning("Client disconnected while sending the request body")
        raise InvalidRequestError(
            "Client disconnected before the request body was received",
            code="client_disconnected",
        ) from exc

    router = get_router()
    return await router.forward_request(body, disconnect_checker=request.is_disconnected)
