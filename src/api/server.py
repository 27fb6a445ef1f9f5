"""Async HTTP API for the memory endpoints.

Uses aiohttp's AppRunner/TCPSite for non-blocking start/stop.

Routes:
- ``POST /api/get-context``: build cross-session prompt context
- ``POST /api/memory/delete``: scoped memory erasure
- ``GET /health``: liveness check
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web
from pydantic import ValidationError

from src.api.schemas import ContextRequest, EraseRequest
from src.config import settings
from src.errors import InvalidRequest, UpstreamFailure
from src.memory.context import build_context
from src.memory.erase import erase_memory

logger = logging.getLogger(__name__)


async def _read_json(request: web.Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except Exception:
        raise InvalidRequest("Invalid JSON body") from None
    if not isinstance(payload, dict):
        raise InvalidRequest("Invalid JSON body")
    return payload


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _handle_get_context(request: web.Request) -> web.Response:
    """POST /api/get-context: session history as prompt context."""
    try:
        payload = await _read_json(request)
        try:
            body = ContextRequest.model_validate(payload)
        except ValidationError:
            raise InvalidRequest("User ID required") from None
        result = await build_context(body.user_id or "", body.couple_id or None)
    except InvalidRequest as exc:
        return _error(str(exc), 400)
    except Exception:
        logger.exception("Get context error")
        return _error("Failed to load context", 500)

    if result.degraded:
        logger.warning(
            "Context for user=%s served degraded: %s",
            body.user_id,
            "; ".join(str(e) for e in result.degraded),
        )
    return web.json_response(result.to_response())


async def _handle_memory_delete(request: web.Request) -> web.Response:
    """POST /api/memory/delete: reset memory by scope, revoking consent for ``all``."""
    try:
        payload = await _read_json(request)
        try:
            body = EraseRequest.model_validate(payload)
        except ValidationError:
            raise InvalidRequest("userId required") from None
        result = await erase_memory(body.user_id or "", body.delete_type)
    except InvalidRequest as exc:
        return _error(str(exc), 400)
    except UpstreamFailure as exc:
        return _error(str(exc), 500)
    except Exception as exc:
        logger.exception("Memory delete error")
        return _error(str(exc), 500)

    return web.json_response(result.to_response())


async def _health(request: web.Request) -> web.Response:
    """GET /health: basic liveness check."""
    return web.json_response({"status": "ok"})


def create_app() -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application()
    app.router.add_get("/health", _health)
    app.router.add_post("/api/get-context", _handle_get_context)
    app.router.add_post("/api/memory/delete", _handle_memory_delete)
    return app


class ApiServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, host: str | None = None, port: int | None = None) -> None:
        self.host = host or settings.api_host
        self.port = port if port is not None else settings.api_port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start serving the memory endpoints."""
        app = create_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Memory API listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Memory API stopped")
