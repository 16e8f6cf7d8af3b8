from typing import Any, Dict, List, Optional
from datetime import date, datetime, timedelta, timezone

from .call_status import is_pollable
from .status_workflow import needs_carrier


def build_snapshot(loads: List[Dict[str, Any]], calls: List[Dict[str, Any]], day: str) -> Dict[str, Any]:
    """Today's counts for the dashboard header cards."""
    return {
        "date": day,
        "pickingUpToday": sum(
            1 for l in loads if l.get("pickup_date") == day and l["status"] in ("needs_carrier", "dispatched")
        ),
        "deliveringToday": sum(
            1 for l in loads if l.get("delivery_date") == day and l["status"] in ("dispatched", "in_transit")
        ),
        "inTransit": sum(1 for l in loads if l["status"] == "in_transit"),
        "needsCarrier": sum(1 for l in loads if needs_carrier(l)),
        "pendingCalls": sum(1 for c in calls if is_pollable(c.get("status"))),
    }


def _created_on_or_after(row: Dict[str, Any], since: datetime) -> bool:
    created = row.get("created_at")
    if not created:
        return False
    ts = datetime.fromisoformat(str(created).replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts >= since


def simple_analytics(
    loads: List[Dict[str, Any]],
    calls: List[Dict[str, Any]],
    days: int,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=days)
    window = [l for l in loads if _created_on_or_after(l, since)]
    window_calls = [c for c in calls if _created_on_or_after(c, since)]

    total = len(window)
    completed = sum(1 for l in window if l["status"] == "completed")
    cancelled = sum(1 for l in window if l["status"] == "cancelled")
    billable = [l for l in window if l["status"] != "cancelled"]
    revenue = sum(float(l.get("rate_to_shipper") or 0) for l in billable)
    cost = sum(float(l.get("rate_to_carrier") or 0) for l in billable)
    margins = [
        (float(l["rate_to_shipper"]) - float(l.get("rate_to_carrier") or 0)) / float(l["rate_to_shipper"]) * 100
        for l in billable
        if l.get("rate_to_shipper")
    ]

    return {
        "period_days": days,
        "since": since.date().isoformat(),
        "metrics": {
            "loads": {
                "total": total,
                "completed": completed,
                "cancelled": cancelled,
                "completionRate": round(completed / total * 100, 1) if total else 0,
                "cancellationRate": round(cancelled / total * 100, 1) if total else 0,
            },
            "financial": {
                "totalRevenue": round(revenue, 2),
                "totalCost": round(cost, 2),
                "totalMargin": round(revenue - cost, 2),
                "averageMargin": round(sum(margins) / len(margins), 1) if margins else 0,
            },
            "calls": {
                "total": len(window_calls),
                "completed": sum(1 for c in window_calls if c.get("status") == "completed"),
                "pending": sum(1 for c in window_calls if is_pollable(c.get("status"))),
                "failed": sum(1 for c in window_calls if c.get("status") == "failed"),
            },
        },
    }


def today_iso() -> str:
    return date.today().isoformat()
