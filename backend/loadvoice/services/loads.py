"""Load lifecycle operations on top of the storage backend.

Routes call into here so status rules, carrier assignment, notes history
and the activity trail live in one place. Workflow rejections come back as
``LoadUpdateRejected`` carrying the ``StatusTransitionResult``; nothing is
written in that case.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import logging

from .status_workflow import (
    CANCELLED,
    STATUS_ORDER,
    StatusTransitionResult,
    can_reverse_status,
    display_label,
    get_available_transitions,
    get_previous_status,
    get_status_progress,
    get_status_timeline,
    transition_status,
)

logger = logging.getLogger(__name__)

REQUIRED_CREATE_FIELDS = ["pickup_city", "pickup_state", "delivery_city", "delivery_state", "commodity"]

UPDATEABLE_FIELDS = [
    "carrier_id", "shipper_id",
    "pickup_city", "pickup_state", "pickup_date",
    "delivery_city", "delivery_state", "delivery_date",
    "commodity", "equipment_type", "weight_pounds",
    "rate_to_shipper", "rate_to_carrier",
]


# A load carries a carrier from dispatch onwards, and never before
CARRIER_STATUSES = STATUS_ORDER[STATUS_ORDER.index("dispatched"):]

CARRIER_BEFORE_DISPATCH = "A carrier can only be assigned when the load is dispatched"


class LoadValidationError(ValueError):
    pass


class LoadUpdateRejected(ValueError):
    def __init__(self, result: StatusTransitionResult) -> None:
        self.result = result
        super().__init__(result.error or "Status transition rejected")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _activity(load_id: str, activity_type: str, description: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "load_id": load_id,
        "activity_type": activity_type,
        "description": description,
        "metadata": metadata or {},
        "created_at": _now(),
    }


def _note(text: str) -> Dict[str, str]:
    return {"text": text, "timestamp": _now()}


def create_load(db, payload: Dict[str, Any]) -> Dict[str, Any]:
    missing = [f for f in REQUIRED_CREATE_FIELDS if not payload.get(f)]
    if missing:
        raise LoadValidationError(f"Missing required field: {missing[0]}")

    if payload.get("carrier_id"):
        raise LoadValidationError(CARRIER_BEFORE_DISPATCH)

    row = {k: v for k, v in payload.items() if k != "notes" and v is not None}
    row["status"] = "quoted"
    metadata: Dict[str, Any] = {"notes_history": []}
    if payload.get("notes"):
        metadata["notes_history"].append(_note(payload["notes"]))
    row["metadata"] = metadata

    load = db.create_load(row)
    db.add_load_activities([_activity(load["id"], "created", f"Load {load['load_number']} created")])
    logger.info(f"Created load {load['id']} ({load['load_number']})")
    return load


def describe_load(db, load: Dict[str, Any]) -> Dict[str, Any]:
    status = load["status"]
    associated_call = db.get_call(load["call_id"]) if load.get("call_id") else None
    return {
        "load": load,
        "label": display_label(load),
        "statusTransitions": get_available_transitions(status),
        "canReverse": can_reverse_status(status),
        "previousStatus": get_previous_status(status),
        "progress": get_status_progress(status, (load.get("metadata") or {}).get("cancelled_from_status")),
        "associatedCall": associated_call,
    }


def update_load(db, load_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply field edits and an optional status change. Returns None when the load is missing."""
    current = db.get_load(load_id)
    if not current:
        return None

    updates: Dict[str, Any] = {k: changes[k] for k in UPDATEABLE_FIELDS if changes.get(k) is not None}
    metadata = dict(current.get("metadata") or {})
    activities: List[Dict[str, Any]] = []

    new_status = changes.get("status")
    old_status = current["status"]
    if new_status and new_status != old_status:
        # Validate against the load as it would look after the field edits
        candidate = {**current, **updates}
        result = transition_status(old_status, new_status, candidate)
        if not result.success:
            logger.info(f"Rejected status change for load {load_id}: {result.error}")
            raise LoadUpdateRejected(result)

        updates["status"] = new_status
        if new_status == CANCELLED:
            metadata["cancelled_from_status"] = old_status
        if old_status == "dispatched" and new_status == get_previous_status(old_status):
            # Back before dispatch: the load no longer has a carrier
            updates["carrier_id"] = None

        activities.append(_activity(
            load_id,
            "status_changed",
            f"Status changed from {old_status} to {new_status}",
            {"old_status": old_status, "new_status": new_status, "reason": changes.get("status_change_reason")},
        ))
        if new_status == "delivered":
            activities.append(_activity(
                load_id,
                "delivered",
                f"Load {current.get('load_number')} delivered successfully",
                {"delivered_date": updates.get("delivery_date") or current.get("delivery_date") or _now()},
            ))

    final_status = updates.get("status", old_status)
    if final_status == CANCELLED:
        final_status = metadata.get("cancelled_from_status") or old_status
    if updates.get("carrier_id") and final_status not in CARRIER_STATUSES:
        logger.info(f"Rejected carrier assignment for load {load_id} in status {final_status}")
        raise LoadUpdateRejected(StatusTransitionResult(success=False, error=CARRIER_BEFORE_DISPATCH))

    if changes.get("metadata"):
        metadata.update(changes["metadata"])
    if changes.get("notes"):
        metadata["notes_history"] = list(metadata.get("notes_history") or []) + [_note(changes["notes"])]
    if metadata != (current.get("metadata") or {}):
        updates["metadata"] = metadata

    edited = [k for k in updates if k not in ("status", "metadata")]
    if edited:
        activities.append(_activity(load_id, "updated", "Load details updated", {"fields_updated": edited}))

    if not updates:
        return current

    updated = db.update_load(load_id, updates)
    if activities:
        db.add_load_activities(activities)
    return updated


def delete_load(db, load_id: str, hard: bool = False) -> Optional[bool]:
    """Soft delete by default. Returns None when the load is missing."""
    load = db.get_load(load_id)
    if not load:
        return None
    if load["status"] == "delivered":
        raise LoadValidationError("Cannot delete delivered loads. Archive them instead.")

    if hard:
        db.delete_load(load_id)
        logger.info(f"Hard-deleted load {load_id}")
        return True

    metadata = dict(load.get("metadata") or {})
    metadata.update({"deleted_reason": "Manual deletion", "deleted_from_status": load["status"]})
    db.update_load(load_id, {"deleted_at": _now(), "metadata": metadata})
    db.add_load_activities([_activity(load_id, "deleted", f"Load {load.get('load_number')} deleted")])
    logger.info(f"Soft-deleted load {load_id}")
    return True


def status_statistics(loads: List[Dict[str, Any]]) -> Dict[str, Any]:
    by_status: Dict[str, int] = {}
    for load in loads:
        by_status[load["status"]] = by_status.get(load["status"], 0) + 1
    return {"total": len(loads), "byStatus": by_status}


def status_history(db, load: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Status events for a load, rebuilt from its activity trail."""
    events = [{"status": "quoted", "timestamp": load["created_at"]}] if load.get("created_at") else []
    for activity in db.list_load_activities(load["id"]):
        if activity.get("activity_type") == "status_changed":
            events.append({
                "status": (activity.get("metadata") or {}).get("new_status"),
                "timestamp": activity["created_at"],
                "reason": (activity.get("metadata") or {}).get("reason"),
            })
    return events


def load_timeline(db, load: Dict[str, Any]) -> Dict[str, Any]:
    return get_status_timeline(status_history(db, load))
