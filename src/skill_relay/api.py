"""HTTP surface of the relay.

Endpoints:
    GET  /              → Liveness text
    GET  /health        → Status + number of connected backends
    POST /api/register  → Backend registration            (X-API-Key)
    POST /api/ping      → Backend heartbeat               (X-API-Key)
    POST /api/alexa     → Forward a raw command payload   (X-API-Key, X-Client-Id)
    POST /alexa         → Alexa skill endpoint (protocol envelope in/out)
"""

from __future__ import annotations

import json
import logging
import secrets
from typing import Any

from aiohttp import web

from . import alexa
from .config import RelayConfig
from .exceptions import ForwardError, InvalidInput, RelayError, Unauthorized
from .forwarder import Forwarder
from .intents import translate
from .models import PingRequest, RegisterRequest, parse_body
from .registry import BackendRegistry
from .sweeper import ExpirySweeper

logger = logging.getLogger("skill-relay")

CLIENT_ID_HEADER = "X-Client-Id"
API_KEY_HEADER = "X-API-Key"
PROTECTED_PATHS = frozenset({"/api/register", "/api/ping", "/api/alexa"})
ALEXA_PATH = "/alexa"

REGISTRY_KEY = web.AppKey("registry", BackendRegistry)


def _json_error(status: int, message: str, **extra: Any) -> web.Response:
    """Consistent JSON error payload."""
    payload = {"error": message, **extra}
    return web.json_response(payload, status=status)


def _add_cors_headers(resp: web.StreamResponse) -> None:
    resp.headers["Access-Control-Allow-Origin"] = "*"
    resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    resp.headers["Access-Control-Allow-Headers"] = (
        f"Content-Type, {API_KEY_HEADER}, {CLIENT_ID_HEADER}"
    )


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Invalid JSON on %s: %s", request.path, e)
        raise InvalidInput("Invalid JSON") from e


def create_relay_app(
    config: RelayConfig,
    registry: BackendRegistry | None = None,
    forwarder: Forwarder | None = None,
) -> web.Application:
    """Create the aiohttp app with relay routes, middlewares and the sweeper.

    Args:
        config: Effective relay configuration.
        registry: Shared backend registry (built from config when omitted).
        forwarder: Outbound forwarder (built from config when omitted).
    """
    if registry is None:
        registry = BackendRegistry(default_address=config.backend.default_url)
    if forwarder is None:
        forwarder = Forwarder(
            registry, timeout_seconds=config.backend.forward_timeout_seconds
        )
    default_client_id = config.backend.default_client_id
    api_key = config.auth.api_key

    routes = web.RouteTableDef()

    @routes.get("/")
    async def index(request: web.Request) -> web.Response:
        return web.Response(text="Surveillance server is running")

    @routes.get("/health")
    async def health(request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "ok",
                "connectedClients": await registry.count(),
                "apiKey": "configured" if api_key else "missing",
                "defaultBackendUrl": registry.default_address,
            }
        )

    # ── Backend registration / heartbeat ───────────────────

    @routes.post("/api/register")
    async def register(request: web.Request) -> web.Response:
        body = parse_body(RegisterRequest, await _read_json(request))
        await registry.register(body.clientId, body.url, body.name)
        return web.json_response(
            {"success": True, "message": f"Registered client: {body.clientId}"}
        )

    @routes.post("/api/ping")
    async def ping(request: web.Request) -> web.Response:
        body = parse_body(PingRequest, await _read_json(request))
        await registry.heartbeat(body.clientId, body.url, body.name)
        return web.json_response({"success": True})

    # ── Generic forwarding ─────────────────────────────────

    @routes.post("/api/alexa")
    async def forward_command(request: web.Request) -> web.Response:
        """Forward any JSON object or array unchanged; relay the reply as sent.

        Scalar bodies are rejected with 400.
        """
        payload = await _read_json(request)
        if not isinstance(payload, (dict, list)):
            raise InvalidInput("Request body must be a JSON object or array")
        client_id = request.headers.get(CLIENT_ID_HEADER) or default_client_id
        logger.info("Received API request for client %s", client_id)

        try:
            result = await forwarder.forward(client_id, payload)
        except ForwardError as e:
            return _json_error(
                500,
                "Failed to communicate with the surveillance system",
                details=str(e),
            )
        return web.Response(
            body=result.raw,
            status=result.status,
            content_type=result.content_type,
            charset=result.charset,
        )

    # ── Alexa skill endpoint ───────────────────────────────

    @routes.post(ALEXA_PATH)
    async def alexa_skill(request: web.Request) -> web.Response:
        try:
            parsed = alexa.parse_envelope(await _read_json(request))
        except alexa.InvalidEnvelope as e:
            logger.warning("%s", e)
            return web.json_response(
                alexa.speech_response(e.speech, end_session=e.end_session),
                status=400,
            )
        except InvalidInput:
            return web.json_response(
                alexa.speech_response(alexa.INVALID_FORMAT_SPEECH, end_session=True),
                status=400,
            )

        if parsed.request_type == alexa.LAUNCH_REQUEST:
            return web.json_response(alexa.launch_response())
        if parsed.request_type == alexa.SESSION_ENDED_REQUEST:
            return web.json_response(alexa.empty_response())
        if parsed.request_type != alexa.INTENT_REQUEST:
            return web.json_response(alexa.speech_response(alexa.UNHANDLED_SPEECH))

        logger.info("Processing intent: %s", parsed.intent_name)
        result = translate(parsed.intent_name, parsed.slots)
        speech = result.speech

        if result.forwardable:
            try:
                await forwarder.forward(default_client_id, result.command)
                logger.info("Successfully forwarded %s", parsed.intent_name)
            except ForwardError as e:
                logger.error("Error forwarding to backend: %s", e)
                speech = alexa.FORWARD_FAILED_SPEECH

        return web.json_response(
            alexa.speech_response(speech, end_session=result.end_session)
        )

    # ── Middlewares ────────────────────────────────────────

    @web.middleware
    async def cors_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
        """Allow any origin, including on 404 and 405 replies."""
        if request.method == "OPTIONS":
            resp = web.Response()
        else:
            try:
                resp = await handler(request)
            except web.HTTPException as e:
                _add_cors_headers(e)
                raise
        _add_cors_headers(resp)
        return resp

    @web.middleware
    async def error_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
        """Keep every failure inside its own request."""
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Unauthorized as e:
            return _json_error(401, str(e) or "Unauthorized")
        except InvalidInput as e:
            return _json_error(400, str(e))
        except RelayError as e:
            logger.error("Error in %s: %s", request.path, e)
            return _json_error(500, "Internal server error")
        except Exception:
            logger.exception("Error handling %s", request.path)
            if request.path == ALEXA_PATH:
                return web.json_response(
                    alexa.speech_response(alexa.INTERNAL_ERROR_SPEECH)
                )
            return _json_error(500, "Internal server error")

    @web.middleware
    async def auth_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
        """Static shared-secret check on backend-facing routes."""
        if request.path in PROTECTED_PATHS:
            supplied = request.headers.get(API_KEY_HEADER, "")
            if not api_key or not secrets.compare_digest(
                supplied.encode(), api_key.encode()
            ):
                raise Unauthorized("Unauthorized")
        return await handler(request)

    async def _close_forwarder(app: web.Application) -> None:
        await forwarder.close()

    app = web.Application(
        middlewares=[cors_middleware, error_middleware, auth_middleware]
    )
    app[REGISTRY_KEY] = registry
    app.add_routes(routes)

    ExpirySweeper(
        registry,
        interval_seconds=config.sweeper.interval_seconds,
        stale_after_seconds=config.sweeper.stale_after_seconds,
    ).attach(app)
    app.on_cleanup.append(_close_forwarder)
    return app
