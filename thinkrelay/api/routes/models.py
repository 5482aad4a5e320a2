"""Models listing endpoint - OpenAI compatible."""

import logging
import time

from ...core.registry import get_router

logger = logging.getLogger("thinkrelay")

# Reported as "created" for every model
_STARTED_AT = int(time.time())


async def list_models() -> dict:
    """List the model names clients may request.

    GET /v1/models
    """
    logger.info("Received models list request")

    router = get_router()
    return {
        "object": "list",
        "data": [
            {
                "id": model_name,
                "object": "model",
                "created": _STARTED_AT,
                "owned_by": "thinkrelay",
            }
            for model_name in router.list_model_names()
        ],
    }
