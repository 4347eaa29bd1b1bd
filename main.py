"""Application composition root for the SawBot control surface.

This module wires together all subsystems:
- Windows DPI setup
- Config loading + logging
- Preference store (versioned, migrated on load)
- Diagnostics log + event hub
- Backend command client (httpx worker threads -> Qt thread)
- Drawing session controller + both area-selection tools
- FastAPI event receiver thread (backend -> Qt thread)
- Qt main window

Cross-component lifecycle lives here so the rest of the codebase can stay focused
on single responsibilities.
"""

from __future__ import annotations

import argparse
import logging
import sys

from PySide6.QtWidgets import QApplication

from backend.client import HttpDrawingBackend
from config.config import load_config
from config.logging_setup import configure_logging
from config.preferences import PreferenceStore
from server.event_server import log_forwarder, run_server_in_thread
from session.controller import DrawingSessionController
from session.diagnostics import DiagnosticsLog
from session.events import BACKEND_LOG, EventHub
from session.screens import set_process_dpi_awareness, virtual_desktop_bounds
from ui.alert import EmergencyFlash
from ui.main_window import MainWindow
from ui.qt_dispatch import QtDispatcher, QtEventRelay
from ui.selection.overlay import OverlayStrategy
from ui.selection.snapshot import SnapshotStrategy

logger = logging.getLogger("main")


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="sawbot")
    p.add_argument("--config", default="./config/config.json", help="Path to config.json.")
    p.add_argument("--debug-console", action="store_true", help="Open the debug console on startup.")
    return p.parse_args()


def main() -> int:
    """
    Application entry point.

    High-level responsibilities:
    - Make the process DPI aware before Qt starts so Qt, MSS and the backend agree on pixels.
    - Load config and attach logging handlers.
    - Build the Qt-free core (preferences, diagnostics, hub, controller).
    - Bridge both worker-thread producers (backend client, event server) onto the Qt thread.
    - Run the Qt event loop; on exit release the controller's subscriptions.
    """
    args = _parse_args()

    set_process_dpi_awareness()

    cfg = load_config(args.config)
    configure_logging(
        log_dir=cfg.log_dir,
        level=cfg.log_level,
        max_bytes=cfg.log_max_bytes,
        retention=cfg.log_retention,
    )
    logger.info("Starting SawBot (backend %s)", cfg.backend_base_url)

    app = QApplication(sys.argv)

    prefs = PreferenceStore.load(cfg.preferences_path)
    diagnostics = DiagnosticsLog(cfg.diagnostics_capacity)
    hub = EventHub()

    # Worker-thread results and HTTP-pushed events both land on the Qt thread.
    dispatcher = QtDispatcher()
    relay = QtEventRelay(hub)

    backend = HttpDrawingBackend(
        base_url=cfg.backend_base_url,
        timeout_sec=cfg.backend_timeout_sec,
        dispatch=dispatcher.dispatch,
    )

    flash = EmergencyFlash(flash_ms=cfg.alert_flash_ms)

    controller = DrawingSessionController(
        backend=backend,
        preferences=prefs,
        diagnostics=diagnostics,
        screen_bounds=virtual_desktop_bounds,
        alert=flash.show_alert,
        overlay_min_px=cfg.min_drag_px,
    )
    controller.attach(hub)
    backend_logs = hub.subscribe(BACKEND_LOG, log_forwarder(diagnostics))

    window = MainWindow(controller=controller, preferences=prefs, diagnostics=diagnostics, cfg=cfg)
    controller.selections.register(OverlayStrategy(publish=hub.publish, min_px=cfg.min_drag_px))
    controller.selections.register(SnapshotStrategy(backend=backend, parent=window))

    run_server_in_thread(host=cfg.events_host, port=cfg.events_port, publish=relay.publish)

    diagnostics.info("SawBot ready")
    window.show()
    if args.debug_console:
        window.toggle_console()

    try:
        return int(app.exec())
    finally:
        backend_logs.close()
        controller.detach()
        logger.info("SawBot stopped")


if __name__ == "__main__":
    raise SystemExit(main())
