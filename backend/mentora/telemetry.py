"""In-process telemetry for learner progression events.

:class:`~mentora.context.LearnerContext` reports every committed change here.
Events are logged on the ``mentora.telemetry`` logger and handed to any
registered listeners, e.g. a view layer refreshing a badge.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from threading import RLock
from typing import Any, Callable, Dict, List

from pydantic import BaseModel

logger = logging.getLogger("mentora.telemetry")

LEARNER_EVENTS = frozenset(
    {
        "assessment_started",
        "assessment_submitted",
        "coding_draft_saved",
        "comment_added",
        "course_selected",
        "lesson_step_completed",
        "mcq_answered",
        "post_liked",
        "progress_reset",
        "roadmap_step_toggled",
        "signed_out",
        "streak_advanced",
        "xp_awarded",
        "xp_boosted",
    }
)


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[TelemetryEvent], None]

_listeners: List[Listener] = []
_lock = RLock()


def register_listener(listener: Listener) -> Callable[[], None]:
    """Subscribe ``listener``; the returned callable unsubscribes it."""
    with _lock:
        _listeners.append(listener)

    def unregister() -> None:
        with _lock:
            if listener in _listeners:
                _listeners.remove(listener)

    return unregister


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> TelemetryEvent:
    event = TelemetryEvent(name=name, payload={key: _plain(value) for key, value in fields.items()})
    if name not in LEARNER_EVENTS:
        logger.debug("Unregistered telemetry event name %s", name)

    with _lock:
        listeners = list(_listeners)
    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s", name)

    logger.info("%s %s", name, json.dumps(event.payload, sort_keys=True, default=str))
    return event


def _plain(value: Any) -> Any:
    """Reduce a payload value to something JSON can carry."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, (set, frozenset, tuple)):
        return [_plain(item) for item in value]
    return value


__all__ = [
    "LEARNER_EVENTS",
    "TelemetryEvent",
    "clear_listeners",
    "emit_event",
    "register_listener",
]
