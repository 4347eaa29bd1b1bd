from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from config.logging_setup import LOGGER_NAMES, configure_logging


def test_configure_logging_writes_rotating_file(tmp_path):
    handler = configure_logging(log_dir=str(tmp_path / "logs"), level="debug", max_bytes=4096, retention=2, console=False)
    try:
        assert isinstance(handler, RotatingFileHandler)
        assert handler.backupCount == 1

        logging.getLogger("session.controller").info("hello from the controller")
        handler.flush()

        text = (tmp_path / "logs" / "sawbot.log").read_text(encoding="utf-8")
        assert "hello from the controller" in text
        assert "[session.controller]" in text
    finally:
        for name in LOGGER_NAMES:
            lg = logging.getLogger(name)
            lg.removeHandler(handler)
            lg.propagate = True
            lg.setLevel(logging.NOTSET)
        handler.close()
