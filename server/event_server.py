"""FastAPI receiver for backend-originated events and its server-thread launcher.

The automation backend pushes three kinds of events to the control surface:

    POST /events/emergency-stop   (no body)
    POST /events/area-selected    {x, y, width, height}
    POST /events/log              {level, message}

Routes validate the body and hand the event to `publish(name, payload)`. They never
touch session state themselves: uvicorn runs on its own thread, and `publish` is
expected to marshal onto the UI thread (see `ui.qt_dispatch.QtEventRelay`).
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

import uvicorn
from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse

from session.diagnostics import DiagnosticsLog
from session.events import AREA_SELECTED, BACKEND_LOG, EMERGENCY_STOP
from session.geometry import rect_from_payload

logger = logging.getLogger(__name__)

PublishFn = Callable[[str, Any], None]


def create_app(publish: PublishFn) -> FastAPI:
    """
    Build the FastAPI application.

    Responses:
    - 200 {"ok": true} once the event has been handed to `publish`.
    - 400 {"ok": false, "error": ...} for malformed bodies. Size rules (the overlay
      minimum) are not enforced here; the selection coordinator owns them.
    """
    app = FastAPI(title="sawbot-events")

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"ok": True})

    @app.post("/events/emergency-stop")
    async def emergency_stop() -> JSONResponse:
        logger.warning("Emergency stop event received")
        publish(EMERGENCY_STOP, None)
        return JSONResponse({"ok": True})

    @app.post("/events/area-selected")
    async def area_selected(body: Any = Body(default=None)) -> JSONResponse:
        rect = rect_from_payload(body)
        if rect is None:
            return JSONResponse(
                {"ok": False, "error": "body must be {x, y, width, height} with non-negative size"},
                status_code=400,
            )
        publish(AREA_SELECTED, rect.as_payload())
        return JSONResponse({"ok": True})

    @app.post("/events/log")
    async def backend_log(body: Any = Body(default=None)) -> JSONResponse:
        if not isinstance(body, dict):
            return JSONResponse({"ok": False, "error": "body must be an object"}, status_code=400)
        message = body.get("message")
        if not isinstance(message, str) or not message:
            return JSONResponse({"ok": False, "error": "message must be a non-empty string"}, status_code=400)
        level = body.get("level", "info")
        publish(BACKEND_LOG, {"level": str(level), "message": message})
        return JSONResponse({"ok": True})

    return app


def log_forwarder(diagnostics: DiagnosticsLog) -> Callable[[Any], None]:
    """Handler for BACKEND_LOG events: record them as backend-sourced entries."""

    def _handle(payload: Any) -> None:
        if not isinstance(payload, dict):
            return
        diagnostics.add(
            str(payload.get("level", "info")),
            str(payload.get("message", "")),
            source="backend",
        )

    return _handle


def run_server_in_thread(
    *,
    host: str,
    port: int,
    publish: PublishFn,
    app: Optional[FastAPI] = None,
) -> threading.Thread:
    """
    Run the event receiver in a daemon thread.

    Why a thread:
    - The Qt event loop owns the main thread.
    - Uvicorn manages its own asyncio loop inside the thread.

    Notes:
    - `log_level="error"` keeps uvicorn's access log out of the console; received
      events are logged by the routes themselves.
    """
    app = app if app is not None else create_app(publish)

    def _run() -> None:
        try:
            uvicorn.run(app, host=host, port=port, log_level="error")
        except Exception:
            logger.exception("Event server on %s:%s stopped", host, port)

    t = threading.Thread(target=_run, name="event-server", daemon=True)
    t.start()
    logger.info("Event server listening on http://%s:%s", host, port)
    return t
