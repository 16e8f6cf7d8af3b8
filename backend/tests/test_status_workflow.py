"""Tests for the load status workflow.

Tests cover:
- Funnel monotonicity and descriptive errors for skipped stages
- Reversibility symmetry between adjacent stages
- Required-field checks on forward moves
- Progress percentages, including cancelled loads
- Needs-Carrier labelling
- Timeline and aggregate metrics
"""

from datetime import datetime, timedelta, timezone

import pytest

from loadvoice.services.status_workflow import (
    CANCELLED,
    LOAD_STATUSES,
    STATUS_ORDER,
    calculate_status_metrics,
    can_reverse_status,
    display_label,
    get_available_transitions,
    get_previous_status,
    get_status_progress,
    get_status_timeline,
    is_terminal_status,
    is_valid_transition,
    needs_carrier,
    transition_status,
)


class TestFunnel:
    """Forward moves only ever go one stage at a time."""

    @pytest.mark.parametrize("current", STATUS_ORDER[:-1])
    def test_next_stage_is_available(self, current):
        nxt = STATUS_ORDER[STATUS_ORDER.index(current) + 1]
        assert nxt in get_available_transitions(current)
        assert transition_status(current, nxt).success is True

    def test_forward_jumps_are_rejected(self):
        for i, current in enumerate(STATUS_ORDER):
            for target in STATUS_ORDER[i + 2:]:
                result = transition_status(current, target)
                assert result.success is False
                assert result.error == f"Cannot transition from {current} to {target}"

    def test_available_transitions_never_skip(self):
        for current in LOAD_STATUSES:
            for target in get_available_transitions(current):
                if target == CANCELLED:
                    continue
                assert STATUS_ORDER.index(target) == STATUS_ORDER.index(current) + 1

    def test_cancel_is_offered_until_completed(self):
        for current in STATUS_ORDER[:-1]:
            assert CANCELLED in get_available_transitions(current)
        assert get_available_transitions("completed") == []
        assert get_available_transitions(CANCELLED) == []

    def test_terminal_statuses(self):
        assert is_terminal_status("completed")
        assert is_terminal_status(CANCELLED)
        assert not is_terminal_status("delivered")


class TestReversal:
    """Adjacent stages can be stepped back, and only those."""

    @pytest.mark.parametrize("current", STATUS_ORDER[1:-1])
    def test_reverse_is_symmetric(self, current):
        prev = get_previous_status(current)
        assert can_reverse_status(current)
        assert is_valid_transition(current, prev)
        assert current in get_available_transitions(prev)

    def test_cannot_reverse_from_ends(self):
        assert get_previous_status("quoted") is None
        assert not can_reverse_status("quoted")
        assert not can_reverse_status("completed")
        assert not can_reverse_status(CANCELLED)

    def test_reverse_skips_field_checks(self):
        result = transition_status("dispatched", "needs_carrier", {"status": "dispatched"})
        assert result.success is True
        assert result.new_status == "needs_carrier"

    def test_two_step_reverse_is_rejected(self):
        assert transition_status("in_transit", "needs_carrier").success is False


class TestRequiredFields:
    def test_dispatch_requires_carrier_and_rate(self):
        result = transition_status("needs_carrier", "dispatched", {"status": "needs_carrier"})
        assert result.success is False
        assert result.error == "Missing required fields for this transition"
        assert result.required_fields == ["carrier_id", "rate_to_carrier"]

    def test_dispatch_with_fields_succeeds(self):
        load = {"status": "needs_carrier", "carrier_id": "c-1", "rate_to_carrier": 1900}
        assert transition_status("needs_carrier", "dispatched", load).success is True

    def test_cancel_has_no_requirements(self):
        assert transition_status("quoted", CANCELLED, {"status": "quoted"}).success is True

    def test_accepts_objects(self):
        class Load:
            carrier_id = "c-1"
            rate_to_carrier = 1800

        assert transition_status("needs_carrier", "dispatched", Load()).success is True


class TestProgress:
    def test_funnel_percentages(self):
        assert [get_status_progress(s) for s in STATUS_ORDER] == [17, 33, 50, 67, 83, 100]

    def test_cancelled_uses_last_active_status(self):
        assert get_status_progress(CANCELLED, "dispatched") == 50
        assert get_status_progress(CANCELLED) == 0
        assert get_status_progress("unknown") == 0


class TestNeedsCarrierLabel:
    def test_quoted_without_carrier_needs_carrier(self):
        load = {"status": "quoted", "carrier_id": None}
        assert needs_carrier(load)
        assert display_label(load) == "Needs Carrier"

    def test_assigned_carrier_shows_status(self):
        load = {"status": "quoted", "carrier_id": "c-1"}
        assert not needs_carrier(load)
        assert display_label(load) == "Quoted"

    def test_in_transit_label(self):
        assert display_label({"status": "in_transit", "carrier_id": "c-1"}) == "In Transit"


class TestTimelineAndMetrics:
    def _events(self, start):
        return [
            {"status": "needs_carrier", "timestamp": (start + timedelta(hours=2)).isoformat()},
            {"status": "quoted", "timestamp": start.isoformat()},
            {"status": "dispatched", "timestamp": (start + timedelta(hours=5)).isoformat()},
        ]

    def test_timeline_sorts_and_totals_hours(self):
        start = datetime(2026, 10, 1, 8, tzinfo=timezone.utc)
        timeline = get_status_timeline(self._events(start), now=start + timedelta(hours=6))
        assert timeline["current"] == "dispatched"
        assert [e["status"] for e in timeline["history"]] == ["quoted", "needs_carrier", "dispatched"]
        assert timeline["duration"] == {"quoted": 2.0, "needs_carrier": 3.0, "dispatched": 1.0}

    def test_empty_timeline_defaults_to_quoted(self):
        assert get_status_timeline([]) == {"current": "quoted", "history": [], "duration": {}}

    def test_metrics(self):
        start = datetime(2026, 10, 1, 8, tzinfo=timezone.utc)
        loads = [
            {"status": "dispatched", "status_history": self._events(start)},
            {"status": CANCELLED, "status_history": []},
        ]
        metrics = calculate_status_metrics(loads, now=start + timedelta(hours=6))
        assert metrics["cancellation_rate"] == 50
        assert metrics["completion_rate"] == 0
        assert metrics["average_time_in_status"]["needs_carrier"] == 3.0
        assert {"from": "quoted", "to": "needs_carrier", "count": 1} in metrics["most_common_transitions"]
