"""HTTP API to discover cameras and drive the relay from a browser.

Endpoints:
    GET  /              → API overview
    GET  /subnet        → Local subnet prefix (e.g. "192.168.1.")
    GET  /local-ip      → Local LAN address
    GET  /scan          → Sweep the subnet for open RTSP ports
    GET  /camera        → Camera the relay config currently points at
    POST /camera        → Point the relay config at {"ip": "..."}
    POST /relay/start   → Start the relay process
    POST /relay/stop    → Stop the relay process
    GET  /relay/status  → Relay state and pid
"""

from __future__ import annotations

import json
import logging
from typing import Any

from aiohttp import web

from .discover import discover
from .exceptions import ConfigFormatError, ConfigIOError, InvalidAddressError
from .network import locate_local_address, locate_subnet
from .source import apply_source_address, read_source

logger = logging.getLogger("camera-relay")


def _json_error(status: int, code: str, message: str) -> web.Response:
    """Consistent JSON error payload."""
    return web.json_response({"code": code, "message": message}, status=status)


def create_app(state: dict[str, Any]) -> web.Application:
    """Create aiohttp app with camera-relay routes.

    Args:
        state: Shared state dict. Contains ``config`` (CameraRelayConfig)
            and ``supervisor`` (RelaySupervisor).
    """
    routes = web.RouteTableDef()
    config = state["config"]
    supervisor = state["supervisor"]

    @routes.get("/")
    async def index(request: web.Request) -> web.Response:
        return web.json_response(
            {
                "name": "camera-relay",
                "endpoints": {
                    "GET /subnet": "Local subnet prefix",
                    "GET /local-ip": "Local LAN address",
                    "GET /scan": "Scan network for cameras with RTSP port open",
                    "GET /camera": "Camera the relay currently pulls from",
                    "POST /camera": "Point the relay at a camera ({\"ip\": ...})",
                    "POST /relay/start": "Start the relay",
                    "POST /relay/stop": "Stop the relay",
                    "GET /relay/status": "Relay state",
                },
            }
        )

    @routes.get("/subnet")
    async def get_subnet(request: web.Request) -> web.Response:
        return web.json_response({"subnet": locate_subnet()})

    @routes.get("/local-ip")
    async def get_local_ip(request: web.Request) -> web.Response:
        return web.json_response({"ip": locate_local_address()})

    @routes.get("/scan")
    async def scan(request: web.Request) -> web.Response:
        result = await discover(config)
        if result.subnet is None:
            return _json_error(503, "no_subnet", "Unable to get subnet")
        return web.json_response(result.to_dict())

    @routes.get("/camera")
    async def get_camera(request: web.Request) -> web.Response:
        try:
            source = read_source(config.relay.config_path)
        except ConfigIOError as e:
            return _json_error(500, "config_io_error", str(e))
        return web.json_response({"source": source})

    @routes.post("/camera")
    async def set_camera(request: web.Request) -> web.Response:
        try:
            body = await request.json()
        except json.JSONDecodeError:
            return _json_error(400, "invalid_json", "Request body must be JSON")
        ip = body.get("ip") if isinstance(body, dict) else None
        if not ip:
            return _json_error(400, "missing_ip", "Body must include 'ip'")

        try:
            update = apply_source_address(
                config.relay.config_path,
                ip,
                default_credentials=config.relay.default_credentials,
            )
        except InvalidAddressError as e:
            return _json_error(400, "invalid_ip", str(e))
        except ConfigFormatError as e:
            return _json_error(422, "config_format_error", str(e))
        except ConfigIOError as e:
            return _json_error(500, "config_io_error", str(e))

        return web.json_response({"status": "ok", **update.to_dict()})

    @routes.post("/relay/start")
    async def relay_start(request: web.Request) -> web.Response:
        result = await supervisor.start()
        if not result.ok:
            return web.json_response(
                {"code": "spawn_failed", "message": result.error, **result.to_dict()},
                status=500,
            )
        return web.json_response(result.to_dict())

    @routes.post("/relay/stop")
    async def relay_stop(request: web.Request) -> web.Response:
        result = await supervisor.stop()
        return web.json_response(result.to_dict())

    @routes.get("/relay/status")
    async def relay_status(request: web.Request) -> web.Response:
        return web.json_response(supervisor.status().to_dict())

    # ── Error middleware ─────────────────────────────────
    @web.middleware
    async def error_middleware(
        request: web.Request,
        handler: Any,
    ) -> web.Response:
        """Turn unmatched routes and handler crashes into JSON errors."""
        try:
            return await handler(request)
        except web.HTTPNotFound:
            return _json_error(404, "not_found", "Not found")
        except web.HTTPMethodNotAllowed:
            return _json_error(405, "method_not_allowed", "Method not allowed")
        except web.HTTPException:
            raise
        except Exception as e:
            logger.exception("Server error on %s %s", request.method, request.path)
            return _json_error(500, "internal_error", str(e))

    # ── CORS middleware ──────────────────────────────────
    @web.middleware
    async def cors_middleware(
        request: web.Request,
        handler: Any,
    ) -> web.Response:
        """Allow any origin; the UI is served from elsewhere."""
        if request.method == "OPTIONS":
            resp = web.Response()
        else:
            resp = await handler(request)
        resp.headers["Access-Control-Allow-Origin"] = "*"
        resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        resp.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return resp

    async def _stop_relay(app: web.Application) -> None:
        await supervisor.shutdown()

    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app.add_routes(routes)
    app.on_cleanup.append(_stop_relay)
    return app
