"""ASGI application of the gateway."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from ..certmanager.challenges import ChallengeRegistry
from .handler import GatewayHandler

logger = logging.getLogger(__name__)

WELL_KNOWN_PREFIX = "/.well-known/"


def create_gateway_app(handler: GatewayHandler, challenges: ChallengeRegistry) -> FastAPI:
    """Create the gateway application.

    Every GET and HEAD request is served by ``handler``, except the
    ``/.well-known/`` paths: ACME HTTP-01 challenges are answered from
    ``challenges``, and anything else below that prefix is not found.
    """
    app = FastAPI(
        title="web3:// HTTP gateway",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.handler = handler
    app.state.challenges = challenges

    @app.api_route("/.well-known/acme-challenge/{token}", methods=["GET", "HEAD"],
                   response_class=PlainTextResponse)
    async def acme_challenge(token: str):
        """Handle ACME challenge validation."""
        key_authorization = challenges.get(token)
        if key_authorization:
            logger.info(f"ACME challenge served for token: {token}")
            return PlainTextResponse(key_authorization)
        logger.warning(f"ACME challenge not found for token: {token}")
        raise HTTPException(status_code=404, detail="Challenge not found")

    @app.api_route("/{path:path}", methods=["GET", "HEAD"])
    async def serve_web3_website(request: Request, path: str):
        if request.url.path.startswith(WELL_KNOWN_PREFIX):
            raise HTTPException(status_code=404, detail="Not found")
        return await handler.handle_request(request)

    return app
