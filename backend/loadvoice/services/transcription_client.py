import asyncio
import os
import httpx
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

# Set up logger
logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], Awaitable[None]]

SIMULATED_UTTERANCES: List[Dict[str, Any]] = [
    {"speaker": "A", "text": "Hi, this is Dana from Summit Logistics. I have a load out of Dallas, TX going to Atlanta, GA.", "start": 0, "end": 6200, "confidence": 0.94, "sentiment": "NEUTRAL"},
    {"speaker": "B", "text": "Sounds good. What's the commodity and weight?", "start": 6400, "end": 9100, "confidence": 0.92, "sentiment": "NEUTRAL"},
    {"speaker": "A", "text": "Palletized paper goods, about 42000 pounds, dry van, picking up tomorrow. Budget is $2,400.", "start": 9300, "end": 16800, "confidence": 0.93, "sentiment": "POSITIVE"},
    {"speaker": "B", "text": "Our current carrier keeps missing pickups, that's been a real problem for us.", "start": 17000, "end": 22500, "confidence": 0.91, "sentiment": "NEGATIVE"},
    {"speaker": "A", "text": "Understood. I'll send the rate confirmation this afternoon.", "start": 22700, "end": 26400, "confidence": 0.95, "sentiment": "POSITIVE"},
]


class TranscriptionError(RuntimeError):
    pass


class TranscriptionClient:
    """AssemblyAI transcription over its REST API, simulated without an API key."""

    def __init__(self, poll_interval: float = 3.0, max_polls: int = 400) -> None:
        self.api_key = os.getenv("ASSEMBLYAI_API_KEY")
        self.base_url = "https://api.assemblyai.com/v2"
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.simulated = not self.api_key or len(self.api_key.strip()) == 0

        if self.simulated:
            logger.info("TranscriptionClient initialized in simulation mode (no API key provided)")
        else:
            logger.info("TranscriptionClient initialized with API key")

    async def transcribe(self, audio_url: str, on_progress: Optional[ProgressCallback] = None, speakers_expected: int = 2) -> Dict[str, Any]:
        """Submit audio and wait for the finished transcript.

        Returns the provider payload: ``text``, ``utterances`` (times in
        milliseconds) and ``audio_duration`` (seconds).
        """
        logger.info(f"Submitting transcription job for {audio_url}")

        if self.simulated:
            if on_progress:
                await on_progress(50, "Transcribing audio (simulated)...")
            return {
                "id": "transcript_simulated",
                "status": "completed",
                "text": " ".join(u["text"] for u in SIMULATED_UTTERANCES),
                "utterances": [dict(u) for u in SIMULATED_UTTERANCES],
                "audio_duration": SIMULATED_UTTERANCES[-1]["end"] / 1000,
            }

        headers = {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
        }
        payload = {
            "audio_url": audio_url,
            "speaker_labels": True,
            "speakers_expected": speakers_expected,
            "sentiment_analysis": True,
            "punctuate": True,
            "format_text": True,
            "language_code": "en",
        }

        try:
            async with httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=30.0) as client:
                response = await client.post("/transcript", json=payload)
                logger.info(f"AssemblyAI submit response: {response.status_code}")
                response.raise_for_status()
                job = response.json()
                job_id = job["id"]

                for attempt in range(self.max_polls):
                    response = await client.get(f"/transcript/{job_id}")
                    response.raise_for_status()
                    job = response.json()
                    status = job.get("status")
                    if status == "completed":
                        logger.info(f"Transcription {job_id} completed with {len(job.get('utterances') or [])} utterances")
                        return job
                    if status == "error":
                        raise TranscriptionError(job.get("error") or "Transcription failed")
                    if on_progress:
                        percent = 10 if status == "queued" else min(45, 15 + attempt)
                        await on_progress(percent, f"Transcription {status}...")
                    await asyncio.sleep(self.poll_interval)
        except httpx.HTTPStatusError as e:
            logger.error(f"AssemblyAI HTTP error: {e.response.status_code} - {e.response.text}")
            raise
        except httpx.RequestError as e:
            logger.error(f"AssemblyAI request error: {str(e)}")
            raise

        raise TranscriptionError(f"Transcription {job_id} did not finish after {self.max_polls} polls")


def to_utterance_rows(utterances: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Provider utterances (ms) to stored rows (seconds), ordered by start."""
    rows = []
    for u in utterances or []:
        start = (u.get("start") or 0) / 1000
        end = max((u.get("end") or 0) / 1000, start)
        rows.append({
            "speaker": str(u.get("speaker") or "Unknown"),
            "text": u.get("text") or "",
            "start_time": start,
            "end_time": end,
            "confidence": u.get("confidence"),
            "sentiment": (u.get("sentiment") or None),
        })
    rows.sort(key=lambda r: r["start_time"])
    return rows


SENTIMENT_WEIGHTS = {"POSITIVE": 100, "NEUTRAL": 50, "NEGATIVE": 0}


def calculate_sentiment_score(utterances: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not utterances:
        return {"score": 50, "type": "neutral"}
    weights = [SENTIMENT_WEIGHTS.get((u.get("sentiment") or "NEUTRAL").upper(), 50) for u in utterances]
    score = round(sum(weights) / len(weights))
    if score >= 70:
        kind = "positive"
    elif score >= 40:
        kind = "neutral"
    else:
        kind = "negative"
    return {"score": score, "type": kind}
