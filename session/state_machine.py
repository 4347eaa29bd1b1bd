from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


# One of:
# "IDLE" | "DRAWING" | "EMERGENCY_STOPPED"
#
# Kept as string literals so the value logs cleanly and can be shown in the UI
# without a lookup table.
SessionState = Literal["IDLE", "DRAWING", "EMERGENCY_STOPPED"]

IDLE: SessionState = "IDLE"
DRAWING: SessionState = "DRAWING"
EMERGENCY_STOPPED: SessionState = "EMERGENCY_STOPPED"


@dataclass(frozen=True)
class EmergencyDecision:
    """
    Output of the emergency-stop decision.

    Attributes:
        next_state:
            State the controller must enter right away.
        collapsed:
            True when the signal folds into an emergency stop that is already being
            acknowledged. Collapsed signals produce no log entry and no alert.
        interrupted:
            True when the signal actually cut something short (an active session or
            a start command still in flight).
    """

    next_state: SessionState
    collapsed: bool
    interrupted: bool


def can_start(state: SessionState) -> bool:
    """Only an idle controller may begin a new session."""
    return state == IDLE


def decide_emergency(*, state: SessionState, start_in_flight: bool) -> EmergencyDecision:
    """
    Decide how an emergency-stop signal affects the session.

    Rules (priority order):
      1) Already EMERGENCY_STOPPED: collapse into the pending acknowledgment.
      2) Anything else: unconditional override into EMERGENCY_STOPPED. The signal
         wins even when a start command has not resolved yet.
    """
    if state == EMERGENCY_STOPPED:
        return EmergencyDecision(next_state=EMERGENCY_STOPPED, collapsed=True, interrupted=False)

    interrupted = state == DRAWING or bool(start_in_flight)
    return EmergencyDecision(next_state=EMERGENCY_STOPPED, collapsed=False, interrupted=interrupted)
