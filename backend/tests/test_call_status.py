"""Tests for the call processing state machine."""

import pytest

from loadvoice.services.call_status import (
    CALL_STATUSES,
    START_MESSAGE,
    CallStatusError,
    can_transition_call,
    ensure_call_transition,
    is_pollable,
    is_terminal,
    plan_start_transcription,
    visible_progress,
)


class TestTransitions:
    @pytest.mark.parametrize(
        "current,new",
        [
            ("uploading", "uploaded"),
            ("uploaded", "processing"),
            ("processing", "transcribing"),
            ("transcribing", "extracting"),
            ("extracting", "completed"),
            ("extracting", "failed"),
            ("failed", "processing"),
        ],
    )
    def test_allowed(self, current, new):
        assert can_transition_call(current, new)

    @pytest.mark.parametrize(
        "current,new",
        [
            ("uploaded", "completed"),
            ("completed", "processing"),
            ("processing", "completed"),
            ("failed", "uploaded"),
        ],
    )
    def test_rejected(self, current, new):
        assert not can_transition_call(current, new)
        with pytest.raises(CallStatusError):
            ensure_call_transition(current, new)

    def test_completed_is_final(self):
        assert not any(can_transition_call("completed", s) for s in CALL_STATUSES)


class TestPolling:
    def test_pollable_statuses(self):
        assert [s for s in CALL_STATUSES if is_pollable(s)] == ["uploading", "processing", "transcribing", "extracting"]

    def test_terminal_statuses(self):
        assert is_terminal("completed")
        assert is_terminal("failed")
        assert not is_terminal("extracting")

    def test_progress_only_while_in_flight(self):
        assert visible_progress({"status": "extracting", "processing_progress": 75}) == 75
        assert visible_progress({"status": "completed", "processing_progress": 100}) is None


class TestStartTranscription:
    @pytest.mark.parametrize("status", ["uploaded", "failed"])
    def test_startable(self, status):
        updates = plan_start_transcription({"status": status, "error_message": "boom"})
        assert updates == {
            "status": "processing",
            "processing_progress": 0,
            "processing_message": START_MESSAGE,
            "error_message": None,
        }

    @pytest.mark.parametrize("status", ["processing", "transcribing", "extracting"])
    def test_in_flight_is_noop(self, status):
        assert plan_start_transcription({"status": status}) is None

    @pytest.mark.parametrize("status", ["completed", "uploading"])
    def test_not_startable(self, status):
        with pytest.raises(CallStatusError):
            plan_start_transcription({"status": status})
