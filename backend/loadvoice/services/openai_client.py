import os
import re
import json
import logging
from typing import Dict, Any, List, Optional
from tenacity import retry, wait_exponential, stop_after_attempt
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


CRM_SYSTEM_PROMPT = (
    "You are a sales-call analysis assistant for a freight brokerage. Given the full call transcript, "
    "produce one JSON object with keys exactly as shown.\n\n"
    "PRODUCE:\n{\n  \"summary\": \"<2-3 sentence summary>\",\n  \"deal_title\": \"<short deal name|null>\",\n"
    "  \"budget\": \"<amount as spoken|null>\",\n  \"deal_stage\": \"<stage|null>\",\n  \"close_date\": \"<YYYY-MM-DD|null>\",\n"
    "  \"timeline\": \"<string|null>\",\n  \"decision_maker\": \"<string|null>\",\n"
    "  \"sentiment\": \"positive\" | \"neutral\" | \"negative\",\n"
    "  \"pain_points\": [\"<string>\"],\n  \"action_items\": [\"<string>\"],\n  \"competitors\": [\"<string>\"]\n}\n\n"
    "Use only evidence from the transcript. Unknown values are null, unknown lists are empty. No text outside the JSON."
)

FREIGHT_SYSTEM_PROMPT = (
    "You are a freight broker's assistant. Extract the load discussed in the call transcript as one JSON object:\n"
    "{\n  \"call_summary\": \"<string>\",\n  \"origin_city\": \"<string|null>\",\n  \"origin_state\": \"<2-letter|null>\",\n"
    "  \"destination_city\": \"<string|null>\",\n  \"destination_state\": \"<2-letter|null>\",\n  \"rate\": <number|null>,\n"
    "  \"equipment_type\": \"dry_van\" | \"reefer\" | \"flatbed\" | \"step_deck\" | \"power_only\" | null,\n"
    "  \"commodity\": \"<string|null>\",\n  \"weight\": <pounds|null>,\n  \"pickup_date\": \"<string|null>\",\n"
    "  \"action_items\": [\"<string>\"],\n  \"confidence_score\": <0..1>\n}\n"
    "Use null for anything not stated. No text outside the JSON."
)

EQUIPMENT_KEYWORDS = {
    "dry van": "dry_van",
    "reefer": "reefer",
    "refrigerated": "reefer",
    "flatbed": "flatbed",
    "step deck": "step_deck",
    "power only": "power_only",
}

PAIN_MARKERS = ("problem", "issue", "frustrat", "missing", "late", "struggl", "expensive")
ACTION_MARKERS = ("i'll send", "i will send", "we'll send", "follow up", "i'll call", "will get back", "send over")
COMPETITOR_MARKERS = ("current carrier", "other broker", "currently using", "competitor")


class OpenAIClient:
    def __init__(self) -> None:
        # Try Groq first, fall back to OpenAI, simulate when neither key is present
        groq_key = os.getenv("GROQ_API_KEY")
        openai_key = os.getenv("OPENAI_API_KEY")

        if groq_key and len(groq_key.strip()) > 0:
            self.client = AsyncOpenAI(
                api_key=groq_key,
                base_url="https://api.groq.com/openai/v1"
            )
            self.model = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")
            self.simulated = False
            logger.info("OpenAIClient: using Groq API")
        elif openai_key and len(openai_key.strip()) > 0:
            self.client = AsyncOpenAI(api_key=openai_key)
            self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
            self.simulated = False
            logger.info("OpenAIClient: using OpenAI API")
        else:
            self.client = None
            self.model = None
            self.simulated = True
            logger.info("OpenAIClient: using simulated responses (no API keys)")

    async def _complete_json(self, system_prompt: str, transcript_text: str) -> Dict[str, Any]:
        chat = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "system", "content": system_prompt}, {"role": "user", "content": transcript_text}],
            response_format={"type": "json_object"},
            temperature=0.1,
        )
        content = getattr(chat.choices[0].message, "parsed", None) or chat.choices[0].message.content
        if isinstance(content, str):
            return json.loads(content)
        return content

    @retry(wait=wait_exponential(min=1, max=10), stop=stop_after_attempt(3))
    async def extract_crm_data(self, transcript_text: str) -> Dict[str, Any]:
        if self.simulated:
            return simulate_crm_extraction(transcript_text)
        return await self._complete_json(CRM_SYSTEM_PROMPT, transcript_text)

    @retry(wait=wait_exponential(min=1, max=10), stop=stop_after_attempt(3))
    async def extract_freight(self, transcript_text: str) -> Dict[str, Any]:
        if self.simulated:
            return simulate_freight_extraction(transcript_text)
        return await self._complete_json(FREIGHT_SYSTEM_PROMPT, transcript_text)


def _sentences(text: str) -> List[str]:
    return [s.strip() for s in re.split(r"(?<=[.!?])\s+", text or "") if s.strip()]


def simulate_crm_extraction(transcript_text: str) -> Dict[str, Any]:
    """Keyword heuristics standing in for the LLM when no key is configured."""
    sentences = _sentences(transcript_text)
    lower = [s.lower() for s in sentences]
    budget = re.search(r"\$\s?[\d,]+(?:\.\d{2})?", transcript_text or "")
    return {
        "summary": " ".join(sentences[:2]) or None,
        "deal_title": None,
        "budget": budget.group(0).replace(" ", "") if budget else None,
        "deal_stage": None,
        "close_date": None,
        "timeline": None,
        "decision_maker": None,
        "sentiment": None,
        "pain_points": [s for s, l in zip(sentences, lower) if any(m in l for m in PAIN_MARKERS)],
        "action_items": [s for s, l in zip(sentences, lower) if any(m in l for m in ACTION_MARKERS)],
        "competitors": [s for s, l in zip(sentences, lower) if any(m in l for m in COMPETITOR_MARKERS)],
    }


def simulate_freight_extraction(transcript_text: str) -> Dict[str, Any]:
    text = transcript_text or ""
    lower = text.lower()
    result: Dict[str, Any] = {
        "call_summary": " ".join(_sentences(text)[:2]) or None,
        "origin_city": None,
        "origin_state": None,
        "destination_city": None,
        "destination_state": None,
        "rate": None,
        "equipment_type": None,
        "commodity": None,
        "weight": None,
        "pickup_date": None,
        "action_items": [s for s in _sentences(text) if any(m in s.lower() for m in ACTION_MARKERS)],
    }
    lane = re.search(
        r"\b(?i:out of|from)\s+([A-Z][a-z]+(?: [A-Z][a-z]+){0,2}),\s*([A-Z]{2})\b.*?\b(?i:to|into)\s+([A-Z][a-z]+(?: [A-Z][a-z]+){0,2}),\s*([A-Z]{2})\b",
        text,
    )
    if lane:
        result["origin_city"], result["origin_state"] = lane.group(1).strip(), lane.group(2)
        result["destination_city"], result["destination_state"] = lane.group(3).strip(), lane.group(4)
    rate = re.search(r"\$\s?([\d,]+(?:\.\d{2})?)", text)
    if rate:
        result["rate"] = float(rate.group(1).replace(",", ""))
    weight = re.search(r"(?i)\b([\d,]{3,})\s*(?:pounds|lbs)\b", text)
    if weight:
        result["weight"] = int(weight.group(1).replace(",", ""))
    for keyword, equipment in EQUIPMENT_KEYWORDS.items():
        if keyword in lower:
            result["equipment_type"] = equipment
            break
    commodity = re.search(r"(?i)\b(?:commodity is|hauling|loaded with)\s+([a-z][a-z ]{2,40})", text)
    if not commodity:
        commodity = re.search(r"(?i)\b((?:palletized\s+)?[a-z]+\s+goods)\b", text)
    if commodity:
        result["commodity"] = commodity.group(1).strip()
    pickup = re.search(r"(?i)\bpick(?:ing)?\s?up\s+(today|tomorrow|on [A-Z][a-z]+day|\d{1,2}/\d{1,2})", text)
    if pickup:
        result["pickup_date"] = pickup.group(1)

    found = sum(1 for k in ("origin_city", "destination_city", "rate", "equipment_type", "commodity", "weight") if result.get(k))
    result["confidence_score"] = round(found / 6, 2)
    return result


def extraction_to_records(extraction: Dict[str, Any], confidence: float = 0.9) -> Dict[str, List[Dict[str, Any]]]:
    """Split an LLM CRM extraction into call_fields and call_insights rows."""
    field_map = [
        ("Summary", "summary"),
        ("Deal Title", "deal_title"),
        ("Budget", "budget"),
        ("Deal Stage", "deal_stage"),
        ("Close Date", "close_date"),
        ("Timeline", "timeline"),
        ("Decision Maker", "decision_maker"),
    ]
    fields = [
        {"field_name": name, "field_value": _as_text(extraction.get(key)), "confidence_score": confidence}
        for name, key in field_map
    ]
    insights: List[Dict[str, Any]] = []
    for insight_type, key in (("pain_point", "pain_points"), ("action_item", "action_items"), ("competitor", "competitors")):
        for text in extraction.get(key) or []:
            if text:
                insights.append({"insight_type": insight_type, "insight_text": str(text), "confidence_score": confidence})
    return {"fields": fields, "insights": insights}


def _as_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
