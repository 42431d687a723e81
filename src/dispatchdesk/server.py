"""Dispatch desk HTTP + WebSocket server.

JSON API under ``/api``, live notifications on ``/ws`` and a ``/health``
probe.

Run locally::

    uv run dispatchdesk-server

Or with uvicorn::

    uv run uvicorn dispatchdesk.server:app --host 0.0.0.0 --port 8000
"""

import contextlib
import logging
import os

from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from dispatchdesk.alerts.routes import routes as alert_routes
from dispatchdesk.core.config import get_org_config
from dispatchdesk.directory.routes import routes as directory_routes
from dispatchdesk.incidents.routes import routes as incident_routes
from dispatchdesk.notifications import hub
from dispatchdesk.referrals.routes import routes as referral_routes

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Logging: module-level so it runs on import (uvicorn reimports for the app)
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# Silence Azure SDK HTTP-level noise (request/response headers)
logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(logging.WARNING)
logging.getLogger("azure.cosmos._cosmos_http_logging_policy").setLevel(logging.WARNING)
logging.getLogger("azure.identity").setLevel(logging.WARNING)

load_dotenv()

ORG = get_org_config()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]


async def health(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(
        {
            "status": "ok",
            "service": "dispatchdesk",
            "organization": ORG.company_name,
            "version": os.getenv("BUILD_VERSION", "dev"),
            "websocket_connections": hub.connection_count,
        }
    )


async def notifications_socket(websocket: WebSocket) -> None:
    """Subscribe a client to dispatch events.

    ``?station_id=...`` limits the feed to one station; without it the
    client receives every event. Incoming messages are ignored except
    ``ping``, which is answered with ``pong``.
    """
    await websocket.accept()
    station_id = websocket.query_params.get("station_id") or None
    await hub.connect(websocket, station_id)
    await websocket.send_json({"event": "connected", "data": {"station_id": station_id}})

    try:
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong", "data": {}})
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected (station=%s)", station_id or "*")
    finally:
        await hub.disconnect(websocket)


@contextlib.asynccontextmanager
async def lifespan(app: Starlette):
    logger.info("%s dispatch desk starting", ORG.company_name)
    yield
    await hub.reset()


# ---------------------------------------------------------------------------
# ASGI App assembly
# ---------------------------------------------------------------------------

app = Starlette(
    routes=[
        Route("/health", health, methods=["GET"]),
        WebSocketRoute("/ws", notifications_socket),
        Mount(
            "/api",
            routes=[*directory_routes, *alert_routes, *incident_routes, *referral_routes],
        ),
    ],
    middleware=[
        Middleware(
            CORSMiddleware,
            allow_origins=CORS_ORIGINS,
            allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type"],
        )
    ],
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Run the dispatch server with uvicorn."""
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info("Starting dispatch desk server on %s:%d", host, port)
    uvicorn.run(
        "dispatchdesk.server:app",
        host=host,
        port=port,
        log_level="info",
    )
