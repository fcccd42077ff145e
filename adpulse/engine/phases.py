"""Date-probe phase definitions — the finite state machine states and transitions."""

from __future__ import annotations

from enum import Enum


class ProbePhase(str, Enum):
    """All valid phases of one date-scoped extraction.

    Each URL hypothesis runs PROBE_URL -> PARSE -> VALIDATE. A miss at any of
    the three moves on to the next hypothesis, or to MAIN_VIEW once the
    hypotheses are exhausted.
    """

    INIT = "INIT"
    PROBE_URL = "PROBE_URL"
    PARSE = "PARSE"
    VALIDATE = "VALIDATE"
    MAIN_VIEW = "MAIN_VIEW"
    HISTORICAL = "HISTORICAL"
    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"


# Valid phase transitions. Each key maps to a set of phases it can transition to.
VALID_TRANSITIONS: dict[ProbePhase, set[ProbePhase]] = {
    ProbePhase.INIT: {ProbePhase.PROBE_URL, ProbePhase.MAIN_VIEW},
    ProbePhase.PROBE_URL: {ProbePhase.PARSE, ProbePhase.PROBE_URL, ProbePhase.MAIN_VIEW},
    ProbePhase.PARSE: {ProbePhase.VALIDATE, ProbePhase.PROBE_URL, ProbePhase.MAIN_VIEW},
    ProbePhase.VALIDATE: {ProbePhase.FOUND, ProbePhase.PROBE_URL, ProbePhase.MAIN_VIEW},
    # MAIN_VIEW -> PROBE_URL restarts the sequence after a hard fetch error
    ProbePhase.MAIN_VIEW: {
        ProbePhase.HISTORICAL,
        ProbePhase.PROBE_URL,
        ProbePhase.MAIN_VIEW,
        ProbePhase.NOT_FOUND,
    },
    ProbePhase.HISTORICAL: {ProbePhase.FOUND, ProbePhase.NOT_FOUND},
    ProbePhase.FOUND: set(),  # terminal
    ProbePhase.NOT_FOUND: set(),  # terminal
}

TERMINAL_PHASES = {ProbePhase.FOUND, ProbePhase.NOT_FOUND}
