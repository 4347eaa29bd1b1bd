"""Error taxonomy for drawing sessions and area selection.

All of these are recovered locally: the controller logs them to the diagnostics
log and keeps the session state truthful. None of them terminates the process.
"""

from __future__ import annotations


class SessionError(Exception):
    """Base class; `category` is the name reported in diagnostics entries."""

    category = "SessionError"


class MissingInput(SessionError):
    """No (usable) image has been chosen."""

    category = "MissingInput"


class InvalidGeometry(SessionError):
    """Degenerate (zero width/height) or negative rectangle."""

    category = "InvalidGeometry"


class BackendCommandFailure(SessionError):
    """A start/stop/capture/mouse-position round trip failed or was rejected."""

    category = "BackendCommandFailure"


class SelectionToolFailure(SessionError):
    """The overlay or snapshot selection mechanism could not be opened or captured."""

    category = "SelectionToolFailure"


class SessionBusy(SessionError):
    """A start was requested while a session is already active."""

    category = "SessionBusy"
