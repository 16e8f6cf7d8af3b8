from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from pydantic import BaseModel, Field


# Forward funnel, in order. "cancelled" is a side-exit and not part of it.
STATUS_ORDER: List[str] = [
    "quoted",
    "needs_carrier",
    "dispatched",
    "in_transit",
    "delivered",
    "completed",
]

CANCELLED = "cancelled"
LOAD_STATUSES: List[str] = STATUS_ORDER + [CANCELLED]

# Fields a load must carry before it may move forward into a status
REQUIRED_FIELDS: Dict[str, List[str]] = {
    "needs_carrier": ["rate_to_shipper", "pickup_date", "delivery_date"],
    "dispatched": ["carrier_id", "rate_to_carrier"],
    "in_transit": ["pickup_date"],
    "delivered": ["delivery_date"],
    "completed": ["rate_to_shipper", "rate_to_carrier"],
}

STATUS_LABELS: Dict[str, str] = {
    "quoted": "Quoted",
    "needs_carrier": "Needs Carrier",
    "dispatched": "Dispatched",
    "in_transit": "In Transit",
    "delivered": "Delivered",
    "completed": "Completed",
    "cancelled": "Cancelled",
}


class StatusTransitionResult(BaseModel):
    success: bool
    new_status: Optional[str] = None
    error: Optional[str] = None
    required_fields: List[str] = Field(default_factory=list)


def _next_status(current: str) -> Optional[str]:
    if current not in STATUS_ORDER:
        return None
    idx = STATUS_ORDER.index(current)
    if idx + 1 < len(STATUS_ORDER):
        return STATUS_ORDER[idx + 1]
    return None


def get_available_transitions(current: str) -> List[str]:
    """Next funnel stage (no skipping) plus cancellation when still open."""
    transitions: List[str] = []
    nxt = _next_status(current)
    if nxt:
        transitions.append(nxt)
    if current not in (CANCELLED, "completed") and current in LOAD_STATUSES:
        transitions.append(CANCELLED)
    return transitions


def get_previous_status(current: str) -> Optional[str]:
    if current not in STATUS_ORDER:
        return None
    idx = STATUS_ORDER.index(current)
    return STATUS_ORDER[idx - 1] if idx > 0 else None


def can_reverse_status(current: str) -> bool:
    return get_previous_status(current) is not None


def is_valid_transition(current: str, new: str) -> bool:
    return new in get_available_transitions(current) or (
        new is not None and new == get_previous_status(current)
    )


def _get(load: Any, key: str) -> Any:
    if isinstance(load, dict):
        return load.get(key)
    return getattr(load, key, None)


def transition_status(current: str, new: str, load: Any = None) -> StatusTransitionResult:
    """Validate a status change. Never mutates the load; callers persist on success.

    Forward moves check the fields the target status needs when a load is
    given. Reverse moves and cancellation carry no field requirements.
    """
    if not is_valid_transition(current, new):
        return StatusTransitionResult(
            success=False,
            error=f"Cannot transition from {current} to {new}",
        )

    if load is not None and new != CANCELLED and new != get_previous_status(current):
        missing = [f for f in REQUIRED_FIELDS.get(new, []) if not _get(load, f)]
        if missing:
            return StatusTransitionResult(
                success=False,
                error="Missing required fields for this transition",
                required_fields=missing,
            )

    return StatusTransitionResult(success=True, new_status=new)


def get_status_progress(status: str, last_active: Optional[str] = None) -> int:
    """Progress bar percentage for a funnel position.

    A cancelled load keeps the percentage of the status it was cancelled
    from; without that history it reports 0.
    """
    if status == CANCELLED:
        if last_active and last_active != CANCELLED:
            return get_status_progress(last_active)
        return 0
    if status not in STATUS_ORDER:
        return 0
    return round((STATUS_ORDER.index(status) + 1) / len(STATUS_ORDER) * 100)


def is_terminal_status(status: str) -> bool:
    return status in ("completed", CANCELLED)


def format_status(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def needs_carrier(load: Any) -> bool:
    return _get(load, "status") in ("quoted", "needs_carrier") and not _get(load, "carrier_id")


def display_label(load: Any) -> str:
    if needs_carrier(load):
        return STATUS_LABELS["needs_carrier"]
    return format_status(_get(load, "status"))


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def get_status_timeline(events: List[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Sort status events and total the hours spent in each status.

    The latest status accrues time up to ``now``.
    """
    if not events:
        return {"current": "quoted", "history": [], "duration": {}}

    now = now or datetime.now(timezone.utc)
    history = sorted(events, key=lambda e: _parse_ts(e["timestamp"]))
    duration: Dict[str, float] = {}
    for i, event in enumerate(history):
        start = _parse_ts(event["timestamp"])
        end = _parse_ts(history[i + 1]["timestamp"]) if i + 1 < len(history) else now
        hours = (end - start).total_seconds() / 3600
        duration[event["status"]] = duration.get(event["status"], 0.0) + hours

    return {"current": history[-1]["status"], "history": history, "duration": duration}


def calculate_status_metrics(loads: List[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    time_in_status: Dict[str, List[float]] = {s: [] for s in LOAD_STATUSES}
    transitions: Dict[tuple, int] = {}
    completion_times: List[float] = []
    completed = sum(1 for l in loads if l.get("status") == "completed")
    cancelled = sum(1 for l in loads if l.get("status") == CANCELLED)

    for load in loads:
        history = load.get("status_history") or []
        if not history:
            continue
        timeline = get_status_timeline(history, now=now)
        for status, hours in timeline["duration"].items():
            if status in time_in_status:
                time_in_status[status].append(hours)
        ordered = timeline["history"]
        for prev, nxt in zip(ordered, ordered[1:]):
            key = (prev["status"], nxt["status"])
            transitions[key] = transitions.get(key, 0) + 1
        if load.get("status") == "completed":
            span = _parse_ts(ordered[-1]["timestamp"]) - _parse_ts(ordered[0]["timestamp"])
            completion_times.append(span.total_seconds() / 3600)

    most_common = sorted(
        ({"from": k[0], "to": k[1], "count": v} for k, v in transitions.items()),
        key=lambda t: t["count"],
        reverse=True,
    )[:5]

    total = len(loads)
    return {
        "average_time_in_status": {
            s: sum(times) / len(times) for s, times in time_in_status.items() if times
        },
        "most_common_transitions": most_common,
        "cancellation_rate": (cancelled / total) * 100 if total else 0,
        "completion_rate": (completed / total) * 100 if total else 0,
        "average_time_to_completion": (
            sum(completion_times) / len(completion_times) if completion_times else 0
        ),
    }
