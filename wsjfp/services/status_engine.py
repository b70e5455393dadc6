"""
Status Engine — the single source of truth for entity lifecycles.

Parameterised by entity type ("feature", "project", "planning",
"commitment"); the per-type tables live in ``wsjfp.models.workflow``.

Read paths (``presentation_details``) degrade gracefully for unknown values.
Write paths (``validate``, ``transition``) reject them.

Usage:
    from wsjfp.services import status_engine

    status_engine.allowed_transitions("feature", "in-planning")
    # → {"approved", "rejected", "obsolete"}

    status_engine.transition(feature, "approved")   # raises InvalidTransition
    db.session.commit()                             # history row written on flush
"""

import logging

from sqlalchemy import inspect as sa_inspect

from wsjfp.core.exceptions import InvalidTransition, UnknownStateValue
from wsjfp.models.workflow import (
    DEFAULT_STATES,
    ENTITY_TYPES,
    FALLBACK_COLOR,
    STATE_PRESENTATION,
    STATE_TRANSITIONS,
    StateHandle,
    normalize_status,
)

logger = logging.getLogger(__name__)


def _require_type(entity_type: str) -> str:
    if entity_type not in ENTITY_TYPES:
        raise ValueError(
            f"Unknown entity type {entity_type!r}; expected one of {', '.join(ENTITY_TYPES)}"
        )
    return entity_type


def status_type_of(entity) -> str:
    """Return the lifecycle type an entity instance or class is bound to."""
    entity_type = getattr(entity, "__status_type__", None)
    if not entity_type:
        raise ValueError(f"{type(entity).__name__} has no status lifecycle")
    return _require_type(entity_type)


# ── Queries ──────────────────────────────────────────────────────────────────


def declared_states(entity_type: str) -> tuple[str, ...]:
    """All declared state values of a type, in declaration order."""
    return tuple(STATE_PRESENTATION[_require_type(entity_type)])


def default_state(entity_type: str) -> str:
    return DEFAULT_STATES[_require_type(entity_type)]


def is_valid_state(entity_type: str, value) -> bool:
    """True iff ``value`` is a declared state for ``entity_type``."""
    if entity_type not in ENTITY_TYPES:
        return False
    return normalize_status(value) in STATE_PRESENTATION[entity_type]


def class_for(entity_type: str, value) -> StateHandle | None:
    """Resolve a canonical value to its StateHandle; None if unknown."""
    value = normalize_status(value)
    info = STATE_PRESENTATION.get(entity_type, {}).get(value)
    if info is None:
        return None
    label, color = info
    return StateHandle(entity_type=entity_type, value=value, label=label, color=color)


def allowed_transitions(entity_type: str, current) -> set[str]:
    """Permitted next states; empty for terminal or unknown states."""
    table = STATE_TRANSITIONS.get(entity_type, {})
    return set(table.get(normalize_status(current), ()))


def validate(entity_type: str, value) -> str:
    """Return the canonical value, or raise UnknownStateValue."""
    _require_type(entity_type)
    canonical = normalize_status(value)
    if canonical not in STATE_PRESENTATION[entity_type]:
        raise UnknownStateValue(entity_type, value)
    return canonical


def check_transition(entity_type: str, current, target) -> bool:
    """Validate a move from ``current`` to ``target``.

    Returns:
        True if the status would change, False for a no-op.

    Raises:
        InvalidTransition: target undeclared, or not reachable from current.
    """
    _require_type(entity_type)
    current = normalize_status(current)
    canonical = normalize_status(target)

    if canonical not in STATE_PRESENTATION[entity_type]:
        raise InvalidTransition(entity_type, current, canonical or target, "unknown status")

    if canonical == current:
        return False

    if canonical not in allowed_transitions(entity_type, current):
        raise InvalidTransition(entity_type, current, canonical)
    return True


def _flush_staged_status(entity) -> None:
    """Flush a pending insert or an unflushed status change of ``entity``.

    The flush guard and the history observer compare against the last flushed
    status, so each realized move has to reach the session on its own.
    """
    state = sa_inspect(entity, raiseerr=False)
    if state is None or state.session is None:
        return
    if state.pending or state.attrs.status.history.has_changes():
        state.session.flush()


def transition(entity, target) -> bool:
    """Move ``entity`` to ``target`` if the lifecycle allows it.

    A status change staged by an earlier call is flushed first; the new move
    is only staged on the instance and the caller commits. History is
    recorded by the state-history observer when each change is flushed.

    Returns:
        True if the status changed, False for a no-op.

    Raises:
        InvalidTransition: if the move is not declared for the entity type.
    """
    entity_type = status_type_of(entity)
    current = normalize_status(entity.status) or default_state(entity_type)

    if not check_transition(entity_type, current, target):
        return False

    _flush_staged_status(entity)
    entity.status = normalize_status(target)
    logger.debug(
        "%s id=%s status %s → %s",
        entity_type, getattr(entity, "id", None), current, entity.status,
    )
    return True


# ── Presentation ─────────────────────────────────────────────────────────────


def _humanize(value: str) -> str:
    return value.replace("-", " ").capitalize()


def presentation_details(entity_type: str, status, default: str | None = None) -> dict | None:
    """Normalize a raw status string or StateHandle into ``{value, label, color}``.

    Unknown values fall back to a humanized label and a gray color instead of
    failing. ``None`` resolves to ``default`` when given, else returns None.
    """
    value = normalize_status(status) or default
    if value is None:
        return None

    info = STATE_PRESENTATION.get(entity_type, {}).get(value)
    if info is None:
        return {"value": value, "label": _humanize(value), "color": FALLBACK_COLOR}
    label, color = info
    return {"value": value, "label": label, "color": color}


def state_options(entity_type: str, current=None) -> list[dict]:
    """Presentation rows for the targets reachable from ``current`` (or all states)."""
    if current is None:
        values = declared_states(entity_type)
    else:
        reachable = allowed_transitions(entity_type, current)
        values = [v for v in declared_states(entity_type) if v in reachable]
    return [presentation_details(entity_type, v) for v in values]
