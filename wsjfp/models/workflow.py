"""
WSJF Planner — lifecycle state definitions.

Pure data: declared states, defaults, transition graphs and presentation
metadata for every stateful entity type. Behaviour lives in
``wsjfp.services.status_engine``; nothing here touches the database.

Lifecycle states:
    Feature:     in-planning → approved | rejected | obsolete
                 approved → implemented | obsolete | archived
                 implemented | rejected | obsolete → archived → deleted
    Project:     in-planning → in-realization → in-approval → closed
    Planning:    in-planning → in-execution → completed
    Commitment:  suggested → accepted | completed,  accepted → completed
"""

from dataclasses import dataclass

# ── Entity types ─────────────────────────────────────────────────────────────

FEATURE = "feature"
PROJECT = "project"
PLANNING = "planning"
COMMITMENT = "commitment"

ENTITY_TYPES = (FEATURE, PROJECT, PLANNING, COMMITMENT)

FALLBACK_COLOR = "bg-gray-100 text-gray-800"


@dataclass(frozen=True)
class StateHandle:
    """Resolved state value with its display metadata."""

    entity_type: str
    value: str
    label: str
    color: str

    def __str__(self) -> str:
        return self.value


# ── Presentation (value → label, color) ──────────────────────────────────────
# Insertion order is the declared order of the states.

STATE_PRESENTATION = {
    FEATURE: {
        "in-planning": ("In Planung", "bg-blue-100 text-blue-800"),
        "approved":    ("Genehmigt", "bg-green-100 text-green-800"),
        "rejected":    ("Abgelehnt", "bg-red-100 text-red-800"),
        "implemented": ("Implementiert", "bg-purple-100 text-purple-800"),
        "obsolete":    ("Obsolet", "bg-gray-100 text-gray-800"),
        "archived":    ("Archiviert", "bg-yellow-100 text-yellow-800"),
        "deleted":     ("Gelöscht", "bg-red-100 text-red-800"),
    },
    PROJECT: {
        "in-planning":    ("In Planung", "bg-blue-100 text-blue-800"),
        "in-realization": ("In Realisierung", "bg-yellow-100 text-yellow-800"),
        "in-approval":    ("In Freigabe", "bg-purple-100 text-purple-800"),
        "closed":         ("Abgeschlossen", "bg-green-100 text-green-800"),
    },
    PLANNING: {
        "in-planning":  ("In Planung", "bg-blue-100 text-blue-800"),
        "in-execution": ("In Durchführung", "bg-orange-100 text-orange-800"),
        "completed":    ("Abgeschlossen", "bg-green-100 text-green-800"),
    },
    COMMITMENT: {
        "suggested": ("Vorschlag", "bg-blue-100 text-blue-800"),
        "accepted":  ("Angenommen", "bg-yellow-100 text-yellow-800"),
        "completed": ("Erledigt", "bg-green-100 text-green-800"),
    },
}

DEFAULT_STATES = {
    FEATURE: "in-planning",
    PROJECT: "in-planning",
    PLANNING: "in-planning",
    COMMITMENT: "suggested",
}

# ── Lifecycle Transition Guards ──────────────────────────────────────────────
# States missing from a table are terminal.

FEATURE_TRANSITIONS = {
    "in-planning": ["approved", "rejected", "obsolete"],
    "approved":    ["implemented", "obsolete", "archived"],
    "implemented": ["archived"],
    "rejected":    ["obsolete", "archived"],
    "obsolete":    ["archived"],
    "archived":    ["deleted"],
    "deleted":     [],
}

PROJECT_TRANSITIONS = {
    "in-planning":    ["in-realization"],
    "in-realization": ["in-approval"],
    "in-approval":    ["closed"],
    "closed":         [],
}

PLANNING_TRANSITIONS = {
    "in-planning":  ["in-execution"],
    "in-execution": ["completed"],
    "completed":    [],
}

COMMITMENT_TRANSITIONS = {
    "suggested": ["accepted", "completed"],
    "accepted":  ["completed"],
    "completed": [],
}

STATE_TRANSITIONS = {
    FEATURE: FEATURE_TRANSITIONS,
    PROJECT: PROJECT_TRANSITIONS,
    PLANNING: PLANNING_TRANSITIONS,
    COMMITMENT: COMMITMENT_TRANSITIONS,
}


def normalize_status(value):
    """Return the canonical string token for a raw string or a StateHandle.

    Anything else (None, empty string, foreign objects) normalizes to None.
    """
    if isinstance(value, StateHandle):
        return value.value
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None
