from __future__ import annotations

import base64
import json

import httpx

from backend.client import HttpDrawingBackend
from backend.protocol import ScreenCapture
from session.models import DrawRequest


def _run_inline(_name, fn):
    fn()


def _backend(handler) -> HttpDrawingBackend:
    return HttpDrawingBackend(
        base_url="http://backend.test/",
        timeout_sec=1.0,
        spawn=_run_inline,
        transport=httpx.MockTransport(handler),
    )


def _request() -> DrawRequest:
    return DrawRequest(image_path="/tmp/cat.png", method="spiral", speed=3, x=1, y=2, width=30, height=40)


def test_start_drawing_posts_payload_and_acks():
    seen: dict = {}

    def handler(req: httpx.Request) -> httpx.Response:
        seen["path"] = req.url.path
        seen["body"] = json.loads(req.content)
        return httpx.Response(200, json={"ok": True})

    results: list = []
    _backend(handler).start_drawing(_request(), results.append)

    assert seen["path"] == "/commands/start_drawing"
    assert seen["body"]["method"] == "spiral"
    assert seen["body"]["width"] == 30
    assert results[0].ok


def test_backend_rejection_is_a_failure():
    results: list = []
    _backend(lambda req: httpx.Response(200, json={"ok": False, "error": "busy"})).stop_drawing(results.append)
    assert not results[0].ok
    assert results[0].error == "busy"


def test_http_error_status_is_a_failure():
    results: list = []
    _backend(lambda req: httpx.Response(503, json={})).stop_drawing(results.append)
    assert not results[0].ok
    assert "503" in results[0].error


def test_transport_error_is_a_failure():
    def handler(req):
        raise httpx.ConnectError("refused", request=req)

    results: list = []
    _backend(handler).stop_drawing(results.append)
    assert not results[0].ok


def test_malformed_json_is_a_failure():
    results: list = []
    _backend(lambda req: httpx.Response(200, content=b"<html>")).stop_drawing(results.append)
    assert not results[0].ok


def test_capture_screen_decodes_base64():
    png = b"\x89PNG fake"
    body = {"ok": True, "image_base64": base64.b64encode(png).decode("ascii")}
    results: list = []
    _backend(lambda req: httpx.Response(200, json=body)).capture_screen(results.append)
    assert results[0].ok
    assert results[0].value == ScreenCapture(data=png)


def test_capture_screen_accepts_path():
    results: list = []
    _backend(lambda req: httpx.Response(200, json={"ok": True, "image_path": "/tmp/shot.png"})).capture_screen(
        results.append
    )
    assert results[0].value == ScreenCapture(path="/tmp/shot.png")


def test_capture_without_image_is_a_failure():
    results: list = []
    _backend(lambda req: httpx.Response(200, json={"ok": True})).capture_screen(results.append)
    assert not results[0].ok


def test_mouse_position():
    results: list = []
    _backend(lambda req: httpx.Response(200, json={"x": 640, "y": 480})).get_mouse_position(results.append)
    assert results[0].value == (640, 480)

    _backend(lambda req: httpx.Response(200, json={"x": True, "y": 3})).get_mouse_position(results.append)
    assert not results[1].ok


def test_callback_goes_through_dispatch():
    dispatched: list = []
    b = HttpDrawingBackend(
        base_url="http://backend.test",
        timeout_sec=1.0,
        spawn=_run_inline,
        dispatch=dispatched.append,
        transport=httpx.MockTransport(lambda req: httpx.Response(200, json={"ok": True})),
    )
    results: list = []
    b.stop_drawing(results.append)

    assert results == []
    dispatched[0]()
    assert results[0].ok


def test_unexpected_client_error_still_reports_one_failure():
    def handler(req):
        raise httpx.InvalidURL("bad backend url")

    results: list = []
    _backend(handler).start_drawing(_request(), results.append)

    assert len(results) == 1
    assert not results[0].ok
    assert "InvalidURL" in results[0].error


def test_start_rolls_back_when_client_raises_unexpectedly(prefs, diagnostics, image_file):
    from session.controller import DrawingSessionController
    from session.geometry import ManualSelection

    def handler(req):
        raise httpx.InvalidURL("bad backend url")

    c = DrawingSessionController(backend=_backend(handler), preferences=prefs, diagnostics=diagnostics)
    assert c.set_image(image_file)
    c.set_manual_selection(ManualSelection(10, 20, 110, 70))

    c.start_drawing()

    assert c.state == "IDLE"
    assert len(diagnostics.by_category("BackendCommandFailure")) == 1
