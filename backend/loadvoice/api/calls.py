from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, Query, UploadFile
from typing import Optional
from uuid import UUID, uuid4
from ..schemas.pydantic_schemas import (
    CallDetailResponse,
    CallListResponse,
    CallStatusResponse,
    CallUploadResponse,
    CRMOutputResponse,
    FreightExtraction,
    TranscribeResponse,
)
from ..db import get_db
from ..services.call_processor import process_call
from ..services.call_status import CallStatusError, ensure_call_transition, plan_start_transcription, visible_progress
from ..services.crm_output import generate_crm_output
from ..services.openai_client import OpenAIClient
from ..services.uploads import UploadValidationError, read_audio_upload, safe_file_name, validate_audio_upload
import logging

# Set up logger
logger = logging.getLogger(__name__)

router = APIRouter()


def _get_call_or_404(db, call_id: UUID):
    call = db.get_call(call_id)
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")
    return call


@router.post("/upload", response_model=CallUploadResponse, status_code=201)
async def upload_call(
    file: UploadFile = File(...),
    customer_name: Optional[str] = Form(default=None),
    sales_rep: Optional[str] = Form(default=None),
    call_date: Optional[str] = Form(default=None),
):
    try:
        # Format check first so a bad extension is rejected before any bytes are read
        validate_audio_upload(file.filename, 1)
        data = await read_audio_upload(file)
    except UploadValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    db = get_db()
    file_name = safe_file_name(file.filename)
    call = db.create_call({
        "customer_name": customer_name,
        "sales_rep": sales_rep,
        "call_date": call_date,
        "file_name": file_name,
    })
    logger.info(f"Created call record {call['id']} for upload {file_name} ({len(data)} bytes)")

    try:
        file_url = db.upload_audio(call["id"], file_name, data, file.content_type)
    except Exception as e:
        logger.error(f"Storing audio for call {call['id']} failed: {str(e)}")
        db.update_call(call["id"], {"status": "failed", "error_message": "Failed to store audio file"})
        raise HTTPException(status_code=502, detail="Failed to store audio file")

    ensure_call_transition(call["status"], "uploaded")
    call = db.update_call(call["id"], {"status": "uploaded", "file_url": file_url})
    return {"call_id": call["id"], "status": call["status"], "file_url": file_url}


@router.get("/", response_model=CallListResponse)
async def list_calls(status: Optional[str] = None, page: int = Query(default=1, ge=1), page_size: int = Query(default=20, ge=1, le=100)):
    db = get_db()
    items, total = db.list_calls(status=status, page=page, page_size=page_size)
    return {"items": items, "total": total, "page": page, "page_size": page_size}


@router.get("/{call_id}", response_model=CallDetailResponse)
async def get_call(call_id: UUID):
    db = get_db()
    call = _get_call_or_404(db, call_id)
    return {
        "call": call,
        "transcript": db.get_transcript(call_id),
        "insights": db.list_insights(call_id),
        "fields": db.list_fields(call_id),
    }


@router.get("/{call_id}/status", response_model=CallStatusResponse)
async def get_call_status(call_id: UUID):
    db = get_db()
    call = _get_call_or_404(db, call_id)
    return {
        "call_id": call["id"],
        "status": call["status"],
        "progress": visible_progress(call),
        "message": call.get("processing_message") or "",
        "error": call.get("error_message"),
    }


@router.post("/{call_id}/transcribe", response_model=TranscribeResponse, status_code=202)
async def start_transcription(call_id: UUID, background_tasks: BackgroundTasks):
    db = get_db()
    call = _get_call_or_404(db, call_id)
    try:
        updates = plan_start_transcription(call)
    except CallStatusError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if updates is None:
        # Duplicate request while the pipeline is busy: report, don't restart
        logger.info(f"Transcription already running for call {call['id']} ({call['status']})")
        return {
            "transcription_id": call.get("transcription_id") or call["id"],
            "call_id": call["id"],
            "status": call["status"],
            "already_running": True,
        }

    updates["transcription_id"] = str(uuid4())
    call = db.update_call(call["id"], updates)
    background_tasks.add_task(process_call, call["id"])
    logger.info(f"Queued processing for call {call['id']}")
    return {
        "transcription_id": call["transcription_id"],
        "call_id": call["id"],
        "status": call["status"],
        "already_running": False,
    }


@router.get("/{call_id}/crm-output", response_model=CRMOutputResponse)
async def get_crm_output(call_id: UUID, format: str = Query(default="plain")):
    db = get_db()
    call = _get_call_or_404(db, call_id)
    try:
        output = generate_crm_output(format, call, db.list_fields(call_id), db.list_insights(call_id))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"call_id": call["id"], "format": format, "output": output}


@router.post("/{call_id}/process", response_model=FreightExtraction)
async def extract_freight(call_id: UUID):
    db = get_db()
    _get_call_or_404(db, call_id)
    transcript = db.get_transcript(call_id)
    if not transcript:
        raise HTTPException(status_code=422, detail="Call has no transcript yet")

    utterances = transcript.get("utterances") or []
    text = "\n".join(f"{u['speaker']}: {u['text']}" for u in utterances) or (transcript.get("full_text") or "")
    try:
        extraction = await OpenAIClient().extract_freight(text)
    except Exception as e:
        logger.error(f"Freight extraction failed for call {call_id}: {str(e)}")
        raise HTTPException(status_code=502, detail="Freight extraction failed")
    return FreightExtraction(**{k: v for k, v in extraction.items() if k in FreightExtraction.model_fields})
