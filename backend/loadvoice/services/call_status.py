from typing import Any, Dict, List, Optional


CALL_TRANSITIONS: Dict[str, List[str]] = {
    "uploading": ["uploaded", "failed"],
    "uploaded": ["processing"],
    "processing": ["transcribing", "failed"],
    "transcribing": ["extracting", "failed"],
    "extracting": ["completed", "failed"],
    "failed": ["processing"],
    "completed": [],
}

CALL_STATUSES = list(CALL_TRANSITIONS.keys())
IN_FLIGHT_STATUSES = ("processing", "transcribing", "extracting")
POLLABLE_STATUSES = ("uploading",) + IN_FLIGHT_STATUSES
STARTABLE_STATUSES = ("uploaded", "failed")
TERMINAL_STATUSES = ("completed", "failed")

START_MESSAGE = "Preparing audio file for transcription..."


class CallStatusError(ValueError):
    """Raised when a call is asked to move to a status it cannot reach."""

    def __init__(self, current: str, new: str, message: Optional[str] = None) -> None:
        self.current = current
        self.new = new
        super().__init__(message or f"Cannot move call from {current} to {new}")


def can_transition_call(current: str, new: str) -> bool:
    return new in CALL_TRANSITIONS.get(current, [])


def ensure_call_transition(current: str, new: str) -> None:
    if not can_transition_call(current, new):
        raise CallStatusError(current, new)


def is_pollable(status: Optional[str]) -> bool:
    return status in POLLABLE_STATUSES


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES


def is_in_flight(status: Optional[str]) -> bool:
    return status in IN_FLIGHT_STATUSES


def visible_progress(call: Dict[str, Any]) -> Optional[int]:
    """Progress only means something while the pipeline is working on the call."""
    if not is_in_flight(call.get("status")):
        return None
    return call.get("processing_progress")


def plan_start_transcription(call: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Decide what "Start Transcription" does to a call.

    Returns the updates to persist, or None when the call is already being
    processed (a duplicate click). Raises CallStatusError from any other
    status that cannot be started.
    """
    status = call.get("status")
    if is_in_flight(status):
        return None
    if status not in STARTABLE_STATUSES:
        raise CallStatusError(
            status,
            "processing",
            f"Transcription can only be started from uploaded or failed (call is {status})",
        )
    return {
        "status": "processing",
        "processing_progress": 0,
        "processing_message": START_MESSAGE,
        "error_message": None,
    }
