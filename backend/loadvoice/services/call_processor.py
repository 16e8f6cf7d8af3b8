from typing import Optional, Dict, Any
from datetime import datetime, timezone
import logging

from ..db import get_db
from .call_status import ensure_call_transition
from .openai_client import OpenAIClient, extraction_to_records
from .transcription_client import TranscriptionClient, to_utterance_rows, calculate_sentiment_score

logger = logging.getLogger(__name__)


def _advance(db, call_id: str, status: Optional[str], progress: int, message: str, **extra: Any) -> Dict[str, Any]:
    """Persist a progress update, moving the call's status when one is given."""
    call = db.get_call(call_id)
    if call is None:
        raise LookupError(f"Call {call_id} disappeared during processing")
    updates: Dict[str, Any] = {"processing_progress": progress, "processing_message": message}
    if status and status != call["status"]:
        ensure_call_transition(call["status"], status)
        updates["status"] = status
    updates.update(extra)
    return db.update_call(call_id, updates)


def _fail(db, call_id: str, reason: str) -> None:
    call = db.get_call(call_id)
    if call is None:
        return
    updates: Dict[str, Any] = {"error_message": reason}
    # Uploading and in-flight calls can fail; uploaded, completed and failed calls keep their status
    if call["status"] in ("processing", "transcribing", "extracting", "uploading"):
        updates["status"] = "failed"
    db.update_call(call_id, updates)


async def process_call(
    call_id: str,
    transcription_client: Optional[TranscriptionClient] = None,
    llm_client: Optional[OpenAIClient] = None,
) -> None:
    """Transcribe and extract a call that has already been moved to ``processing``."""
    db = get_db()
    call = db.get_call(call_id)
    if not call:
        logger.warning(f"Call {call_id} not found, skipping processing")
        return
    logger.info(f"Processing call {call_id} ({call.get('file_name')})")

    try:
        audio_url = call.get("file_url")
        if not audio_url:
            logger.error(f"Call {call_id} has no audio URL")
            _fail(db, call_id, "No audio URL found")
            return

        # Step 1: transcribe
        _advance(db, call_id, "transcribing", 0, "Submitting audio for transcription...")
        transcription_client = transcription_client or TranscriptionClient()

        async def on_progress(percent: int, message: str) -> None:
            _advance(db, call_id, None, percent, message)

        result = await transcription_client.transcribe(audio_url, on_progress=on_progress)
        utterances = to_utterance_rows(result.get("utterances") or [])
        confidences = [u["confidence"] for u in utterances if u.get("confidence") is not None]
        db.save_transcript(
            call_id,
            {
                "full_text": result.get("text") or "",
                "confidence_score": (sum(confidences) / len(confidences)) if confidences else 0,
                "speakers_count": len({u["speaker"] for u in utterances}),
                "audio_duration": result.get("audio_duration"),
            },
            utterances,
        )
        logger.info(f"Transcript saved for call {call_id}: {len(utterances)} utterances")

        # Step 2: extract CRM fields and insights
        _advance(db, call_id, "extracting", 50, "Analyzing conversation with AI to extract insights...")
        llm_client = llm_client or OpenAIClient()
        transcript_text = "\n".join(f"{u['speaker']}: {u['text']}" for u in utterances) or (result.get("text") or "")
        extraction = await llm_client.extract_crm_data(transcript_text)

        _advance(db, call_id, None, 75, "Saving extracted data to database...")
        records = extraction_to_records(extraction)
        db.add_fields(call_id, records["fields"])
        db.add_insights(call_id, records["insights"])
        logger.info(f"Saved {len(records['fields'])} fields and {len(records['insights'])} insights for call {call_id}")

        # Step 3: finalize
        _advance(db, call_id, None, 95, "Finalizing call record...")
        sentiment = calculate_sentiment_score(utterances)
        duration = result.get("audio_duration")
        _advance(
            db,
            call_id,
            "completed",
            100,
            "All done! Your call is ready to review.",
            duration=round(duration) if duration else call.get("duration"),
            sentiment_type=extraction.get("sentiment") or sentiment["type"],
            sentiment_score=sentiment["score"],
            processed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(f"Call {call_id} processing complete")
    except Exception as e:
        logger.error(f"Processing failed for call {call_id}: {str(e)}")
        _fail(db, call_id, str(e) or type(e).__name__)
