"""Render extracted call data into text blocks for pasting into a CRM.

Four layouts are supported: ``plain``, ``hubspot``, ``salesforce`` and
``csv``. The layouts are literal and order-preserving because downstream
users paste them straight into CRM forms and spreadsheets, so missing
values keep their per-format conventions ("N/A" in most places, "0" for
the Salesforce amount). The CSV row does not escape embedded double
quotes; that is a known limitation of the paste-in format.
"""
import re
from datetime import date, datetime, timedelta
from typing import Any, Iterable, List, Optional


CRM_FORMATS = ("plain", "hubspot", "salesforce", "csv")

CSV_HEADER = (
    '"Customer","Sales Rep","Call Date","Duration (min)","Sentiment",'
    '"Budget","Deal Stage","Pain Points","Next Steps","Competitors"'
)

CLOSE_DATE_OFFSET_DAYS = 90


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def find_field(fields: Iterable[Any], name: str) -> Optional[str]:
    """Case-insensitive exact lookup; empty values count as absent."""
    wanted = name.lower()
    for f in fields:
        if (_get(f, "field_name") or "").lower() == wanted:
            return _get(f, "field_value") or None
    return None


def _insight_texts(insights: Iterable[Any], insight_type: str) -> List[str]:
    return [_get(i, "insight_text") for i in insights if _get(i, "insight_type") == insight_type]


def _bullets(texts: List[str], fallback: str) -> str:
    return "\n".join(f"- {t}" for t in texts) or fallback


def _display_date(value: Any) -> str:
    if not value:
        return "Unknown"
    if isinstance(value, datetime):
        d = value.date()
    elif isinstance(value, date):
        d = value
    else:
        try:
            d = datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
        except ValueError:
            return str(value)
    return f"{d.month}/{d.day}/{d.year}"


def _minutes(duration: Any) -> int:
    return int(duration) // 60 if duration else 0


def _default_close_date(today: Optional[date]) -> str:
    return ((today or date.today()) + timedelta(days=CLOSE_DATE_OFFSET_DAYS)).isoformat()


def _plain(call: Any, fields: List[Any], insights: List[Any], today: Optional[date]) -> str:
    field_lines = "\n".join(
        f"{_get(f, 'field_name')}: {_get(f, 'field_value') or 'N/A'}" for f in fields
    )
    return (
        "CALL SUMMARY\n"
        "============\n"
        "\n"
        f"Customer: {_get(call, 'customer_name') or 'Unknown'}\n"
        f"Sales Rep: {_get(call, 'sales_rep') or 'Unknown'}\n"
        f"Date: {_display_date(_get(call, 'call_date'))}\n"
        f"Duration: {_minutes(_get(call, 'duration'))} minutes\n"
        f"Sentiment: {_get(call, 'sentiment_type') or 'Unknown'}\n"
        "\n"
        "EXTRACTED FIELDS\n"
        "================\n"
        f"{field_lines}\n"
        "\n"
        "INSIGHTS\n"
        "========\n"
        "\n"
        "Pain Points:\n"
        f"{_bullets(_insight_texts(insights, 'pain_point'), '- None identified')}\n"
        "\n"
        "Action Items:\n"
        f"{_bullets(_insight_texts(insights, 'action_item'), '- None identified')}\n"
        "\n"
        "Competitors Mentioned:\n"
        f"{_bullets(_insight_texts(insights, 'competitor'), '- None mentioned')}\n"
    )


def _next_steps(insights: List[Any]) -> str:
    actions = _insight_texts(insights, "action_item")
    return actions[0] if actions and actions[0] else "Follow up required"


def _hubspot(call: Any, fields: List[Any], insights: List[Any], today: Optional[date]) -> str:
    customer = _get(call, "customer_name") or "Unknown"
    amount = find_field(fields, "Budget") or find_field(fields, "Deal Value") or "N/A"
    return (
        "// HubSpot Deal Properties\n"
        "\n"
        f'dealname: "{customer} - {find_field(fields, "Deal Title") or "N/A"}"\n'
        f'amount: "{amount}"\n'
        f'dealstage: "{find_field(fields, "Deal Stage") or "qualifiedtobuy"}"\n'
        'pipeline: "default"\n'
        f'closedate: "{find_field(fields, "Close Date") or _default_close_date(today)}"\n'
        f'hubspot_owner_id: "{_get(call, "sales_rep") or "unassigned"}"\n'
        "\n"
        "// Custom Properties\n"
        f'next_steps: "{_next_steps(insights)}"\n'
        f'pain_points: "{"; ".join(_insight_texts(insights, "pain_point"))}"\n'
        f'competitors: "{", ".join(_insight_texts(insights, "competitor"))}"\n'
        f'sentiment: "{_get(call, "sentiment_type") or "neutral"}"\n'
        f'call_duration: "{_get(call, "duration") or 0}"\n'
    )


def _salesforce(call: Any, fields: List[Any], insights: List[Any], today: Optional[date]) -> str:
    customer = _get(call, "customer_name") or "Unknown"
    amount = re.sub(r"[^0-9]", "", find_field(fields, "Budget") or "") or "0"
    return (
        "// Salesforce Opportunity Fields\n"
        "\n"
        f'Name: "{customer} - {find_field(fields, "Deal Title") or "N/A"}"\n'
        f"Amount: {amount}\n"
        f'StageName: "{find_field(fields, "Deal Stage") or "Qualification"}"\n'
        f"CloseDate: {find_field(fields, 'Close Date') or _default_close_date(today)}\n"
        'Type: "New Business"\n'
        'LeadSource: "Sales Call"\n'
        "\n"
        "// Custom Fields\n"
        f'Next_Steps__c: "{_next_steps(insights)}"\n'
        f'Pain_Points__c: "{"; ".join(_insight_texts(insights, "pain_point"))}"\n'
        f'Competitors__c: "{", ".join(_insight_texts(insights, "competitor"))}"\n'
        f'Call_Sentiment__c: "{_get(call, "sentiment_type") or "Neutral"}"\n'
        f"Call_Duration__c: {_get(call, 'duration') or 0}\n"
    )


def _csv(call: Any, fields: List[Any], insights: List[Any], today: Optional[date]) -> str:
    duration = _get(call, "duration")
    columns = [
        _get(call, "customer_name") or "Unknown",
        _get(call, "sales_rep") or "Unknown",
        _display_date(_get(call, "call_date")),
        str(_minutes(duration)) if duration else "0",
        _get(call, "sentiment_type") or "neutral",
        find_field(fields, "Budget") or "N/A",
        find_field(fields, "Deal Stage") or "N/A",
        "; ".join(_insight_texts(insights, "pain_point")),
        "; ".join(_insight_texts(insights, "action_item")),
        ", ".join(_insight_texts(insights, "competitor")),
    ]
    # Single data row: flatten newlines so the output stays header + one line
    row = '","'.join(str(c).replace("\r", " ").replace("\n", " ") for c in columns)
    return f'{CSV_HEADER}\n"{row}"'


_RENDERERS = {
    "plain": _plain,
    "hubspot": _hubspot,
    "salesforce": _salesforce,
    "csv": _csv,
}


def generate_crm_output(
    format: str,
    call: Any,
    fields: Optional[Iterable[Any]] = None,
    insights: Optional[Iterable[Any]] = None,
    today: Optional[date] = None,
) -> str:
    """Render one call in the requested CRM layout.

    ``today`` anchors the default close date (today + 90 days) and is the
    only clock input; pass it to get byte-identical output across runs.
    """
    renderer = _RENDERERS.get(format)
    if renderer is None:
        raise ValueError(f"Unsupported CRM format: {format}. Expected one of {', '.join(CRM_FORMATS)}")
    return renderer(call, list(fields or []), list(insights or []), today)
