"""HTTP client for the automation backend's command API.

`HttpDrawingBackend` implements the `DrawingBackend` protocol on top of httpx.
Each command runs on a short-lived daemon worker thread so the Qt thread never
blocks on network I/O; the parsed `CommandResult` is then handed to `dispatch`,
which the application wires to `QtDispatcher.dispatch` so callbacks always run on the
UI thread.

Backend contract (JSON):
- POST /commands/start_drawing  {image_path, method, speed, x, y, width, height}
- POST /commands/stop_drawing
- POST /commands/capture_screen -> {"ok": true, "image_base64": "..."} | {"ok": true, "image_path": "..."}
- GET  /commands/mouse_position -> {"x": int, "y": int}

Any transport error, non-2xx status, undecodable body or `"ok": false` is reported
as a failed CommandResult; nothing raises into the caller.
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
from typing import Any, Callable, Optional

import httpx

from backend.protocol import CommandResult, OnDone, ScreenCapture
from session.models import DrawRequest

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]
Spawn = Callable[[str, Callable[[], None]], None]


def _call_now(fn: Callable[[], None]) -> None:
    fn()


def _spawn_daemon(name: str, fn: Callable[[], None]) -> None:
    # Daemon thread ensures app shutdown is not blocked by a lingering request.
    threading.Thread(target=fn, name=name, daemon=True).start()


def _ack_result(data: Any) -> CommandResult:
    """Parse the `{ok, error}` envelope shared by start/stop."""
    if not isinstance(data, dict):
        return CommandResult.failure("backend returned a non-object response")
    if data.get("ok") is True:
        return CommandResult.success()
    err = data.get("error")
    return CommandResult.failure(str(err) if err else "backend rejected the command")


def _capture_result(data: Any) -> CommandResult:
    ack = _ack_result(data)
    if not ack.ok:
        return ack

    raw_b64 = data.get("image_base64")
    if isinstance(raw_b64, str) and raw_b64:
        try:
            return CommandResult.success(ScreenCapture(data=base64.b64decode(raw_b64, validate=True)))
        except (binascii.Error, ValueError):
            return CommandResult.failure("capture image is not valid base64")

    raw_path = data.get("image_path")
    if isinstance(raw_path, str) and raw_path.strip():
        return CommandResult.success(ScreenCapture(path=raw_path.strip()))

    return CommandResult.failure("capture response carried no image")


def _mouse_result(data: Any) -> CommandResult:
    if not isinstance(data, dict):
        return CommandResult.failure("backend returned a non-object response")
    x = data.get("x")
    y = data.get("y")
    if isinstance(x, bool) or isinstance(y, bool) or not isinstance(x, int) or not isinstance(y, int):
        return CommandResult.failure("mouse position must be integer x/y")
    return CommandResult.success((int(x), int(y)))


class HttpDrawingBackend:
    """
    httpx-backed DrawingBackend.

    Args:
        base_url: backend root, e.g. http://127.0.0.1:8740
        timeout_sec: per-request timeout.
        dispatch: runs the completion callback; defaults to calling it on the worker
            thread, the application passes a Qt-thread dispatcher.
        spawn: starts the worker; defaults to a daemon thread.
        transport: optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_sec: float,
        dispatch: Dispatch = _call_now,
        spawn: Spawn = _spawn_daemon,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        base = str(base_url).strip().rstrip("/")
        if not base:
            raise ValueError("base_url must be a non-empty URL")
        self._base = base
        self._timeout_sec = float(timeout_sec)
        self._dispatch = dispatch
        self._spawn = spawn
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base

    def start_drawing(self, request: DrawRequest, on_done: OnDone) -> None:
        self._submit(
            "start_drawing",
            lambda c: c.post("/commands/start_drawing", json=request.as_payload()),
            _ack_result,
            on_done,
        )

    def stop_drawing(self, on_done: OnDone) -> None:
        self._submit("stop_drawing", lambda c: c.post("/commands/stop_drawing", json={}), _ack_result, on_done)

    def capture_screen(self, on_done: OnDone) -> None:
        self._submit("capture_screen", lambda c: c.post("/commands/capture_screen", json={}), _capture_result, on_done)

    def get_mouse_position(self, on_done: OnDone) -> None:
        self._submit(
            "mouse_position",
            lambda c: c.get("/commands/mouse_position", headers={"Cache-Control": "no-store"}),
            _mouse_result,
            on_done,
        )

    def _client(self) -> httpx.Client:
        kwargs: dict[str, Any] = {"base_url": self._base, "timeout": self._timeout_sec}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    def _submit(
        self,
        name: str,
        send: Callable[[httpx.Client], httpx.Response],
        parse: Callable[[Any], CommandResult],
        on_done: OnDone,
    ) -> None:
        def worker() -> None:
            try:
                with self._client() as client:
                    res = send(client)
                    res.raise_for_status()
                    data = res.json()
                result = parse(data)
            except httpx.HTTPStatusError as e:
                result = CommandResult.failure(f"{name}: backend answered HTTP {e.response.status_code}")
            except httpx.HTTPError as e:
                result = CommandResult.failure(f"{name}: {type(e).__name__}: {e}")
            except ValueError:
                result = CommandResult.failure(f"{name}: backend response is not valid JSON")
            except Exception as e:
                # InvalidURL, StreamError and friends sit outside HTTPError; the caller still needs one result.
                logger.exception("Backend command %s raised unexpectedly", name)
                result = CommandResult.failure(f"{name}: {type(e).__name__}: {e}")

            if not result.ok:
                logger.debug("Backend command %s failed: %s", name, result.error)
            self._dispatch(lambda: on_done(result))

        self._spawn(f"backend-{name}", worker)
