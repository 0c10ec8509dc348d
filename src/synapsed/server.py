"""HTTP surface for the signaling gateway.

Routes:
    GET  /health  liveness check
    POST /signal  relay one signaling message

The server only adapts HTTP to the gateway: it hands over the raw headers
and body and renders whatever GatewayResult comes back.
"""

import logging

from aiohttp import web

from synapsed.gateway import SignalingGateway

logger = logging.getLogger(__name__)

# SDP blobs are a few KB; anything near this is not signaling traffic.
DEFAULT_MAX_BODY_SIZE = 256 * 1024


class RelayServer:
    """aiohttp application wrapping a SignalingGateway."""

    def __init__(self, gateway: SignalingGateway, max_body_size: int = DEFAULT_MAX_BODY_SIZE):
        """Initialize relay server.

        Args:
            gateway: Request lifecycle to delegate to.
            max_body_size: Largest accepted request body in bytes.
        """
        self.gateway = gateway
        self._app = web.Application(client_max_size=max_body_size)
        self._app.add_routes(
            [
                web.get("/health", self._health),
                web.post("/signal", self._signal),
            ]
        )
        self._runner: web.AppRunner | None = None

    @property
    def app(self) -> web.Application:
        """The aiohttp application (for aiohttp_client in tests)."""
        return self._app

    async def _health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _signal(self, request: web.Request) -> web.Response:
        try:
            body = await request.read()
        except web.HTTPRequestEntityTooLarge:
            logger.warning(f"Rejected oversized signaling body from {request.remote}")
            return web.json_response({"error": "Invalid JSON body"}, status=400)
        except Exception as e:
            logger.warning(f"Failed to read signaling body from {request.remote}: {e}")
            return web.json_response({"error": "Invalid JSON body"}, status=400)

        result = await self.gateway.handle(request.headers, body)
        return web.json_response(result.body, status=result.status)

    async def start(self, host: str, port: int) -> web.AppRunner:
        """Bind and start serving.

        Returns:
            The app runner, also kept for stop().
        """
        runner = web.AppRunner(self._app, access_log=logging.getLogger("aiohttp.access"))
        await runner.setup()
        await web.TCPSite(runner, host, port).start()
        self._runner = runner
        logger.info(f"Relay server listening on {host}:{port}")
        return runner

    async def stop(self) -> None:
        """Stop serving. Safe to call more than once."""
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("Relay server stopped")
