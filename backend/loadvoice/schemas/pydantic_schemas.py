from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal


CallStatus = Literal["uploading", "uploaded", "processing", "transcribing", "extracting", "completed", "failed"]
LoadStatus = Literal["quoted", "needs_carrier", "dispatched", "in_transit", "delivered", "completed", "cancelled"]
InsightType = Literal["pain_point", "action_item", "competitor"]
CRMFormat = Literal["plain", "hubspot", "salesforce", "csv"]


class CallRead(BaseModel):
    id: str
    status: CallStatus
    processing_progress: Optional[int] = None
    processing_message: Optional[str] = None
    error_message: Optional[str] = None
    customer_name: Optional[str] = None
    sales_rep: Optional[str] = None
    call_date: Optional[str] = None
    duration: Optional[int] = None
    sentiment_type: Optional[str] = None
    sentiment_score: Optional[int] = None
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    created_at: Optional[str] = None
    processed_at: Optional[str] = None


class CallListResponse(BaseModel):
    items: List[CallRead]
    total: int
    page: int
    page_size: int


class CallUploadResponse(BaseModel):
    call_id: str
    status: CallStatus
    file_url: Optional[str] = None


class TranscribeResponse(BaseModel):
    transcription_id: str
    call_id: str
    status: CallStatus
    already_running: bool = False


class CallStatusResponse(BaseModel):
    call_id: str
    status: CallStatus
    progress: Optional[int] = None
    message: str = ""
    error: Optional[str] = None


class TranscriptUtterance(BaseModel):
    id: Optional[str] = None
    transcript_id: Optional[str] = None
    speaker: str
    text: str
    start_time: float
    end_time: float
    confidence: Optional[float] = None
    sentiment: Optional[str] = None


class TranscriptRead(BaseModel):
    id: str
    call_id: str
    full_text: Optional[str] = None
    confidence_score: Optional[float] = None
    speakers_count: Optional[int] = None
    utterances: List[TranscriptUtterance] = Field(default_factory=list)


class CallInsightRead(BaseModel):
    id: Optional[str] = None
    call_id: str
    insight_type: InsightType
    insight_text: str
    confidence_score: Optional[float] = None


class CallFieldRead(BaseModel):
    id: Optional[str] = None
    call_id: str
    field_name: str
    field_value: Optional[str] = None
    confidence_score: Optional[float] = None


class CallDetailResponse(BaseModel):
    call: CallRead
    transcript: Optional[TranscriptRead] = None
    insights: List[CallInsightRead] = Field(default_factory=list)
    fields: List[CallFieldRead] = Field(default_factory=list)


class CRMOutputResponse(BaseModel):
    call_id: str
    format: CRMFormat
    output: str


class FreightExtraction(BaseModel):
    call_summary: Optional[str] = None
    origin_city: Optional[str] = None
    origin_state: Optional[str] = None
    destination_city: Optional[str] = None
    destination_state: Optional[str] = None
    rate: Optional[float] = None
    equipment_type: Optional[str] = None
    commodity: Optional[str] = None
    weight: Optional[int] = None
    pickup_date: Optional[str] = None
    action_items: List[str] = Field(default_factory=list)
    confidence_score: float = 0.0


class LoadCreate(BaseModel):
    load_number: Optional[str] = None
    pickup_city: Optional[str] = None
    pickup_state: Optional[str] = None
    delivery_city: Optional[str] = None
    delivery_state: Optional[str] = None
    pickup_date: Optional[str] = None
    delivery_date: Optional[str] = None
    commodity: Optional[str] = None
    equipment_type: Optional[str] = None
    weight_pounds: Optional[int] = None
    rate_to_shipper: Optional[float] = None
    rate_to_carrier: Optional[float] = None
    carrier_id: Optional[str] = None
    shipper_id: Optional[str] = None
    call_id: Optional[str] = None
    notes: Optional[str] = None


class LoadUpdate(BaseModel):
    status: Optional[LoadStatus] = None
    status_change_reason: Optional[str] = None
    pickup_city: Optional[str] = None
    pickup_state: Optional[str] = None
    delivery_city: Optional[str] = None
    delivery_state: Optional[str] = None
    pickup_date: Optional[str] = None
    delivery_date: Optional[str] = None
    commodity: Optional[str] = None
    equipment_type: Optional[str] = None
    weight_pounds: Optional[int] = None
    rate_to_shipper: Optional[float] = None
    rate_to_carrier: Optional[float] = None
    carrier_id: Optional[str] = None
    shipper_id: Optional[str] = None
    notes: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class LoadRead(BaseModel):
    id: str
    load_number: Optional[str] = None
    status: LoadStatus
    pickup_city: Optional[str] = None
    pickup_state: Optional[str] = None
    delivery_city: Optional[str] = None
    delivery_state: Optional[str] = None
    pickup_date: Optional[str] = None
    delivery_date: Optional[str] = None
    commodity: Optional[str] = None
    equipment_type: Optional[str] = None
    weight_pounds: Optional[int] = None
    rate_to_shipper: Optional[float] = None
    rate_to_carrier: Optional[float] = None
    carrier_id: Optional[str] = None
    shipper_id: Optional[str] = None
    call_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class LoadListResponse(BaseModel):
    loads: List[LoadRead]
    total: int
    statistics: Dict[str, Any] = Field(default_factory=dict)


class LoadDetailResponse(BaseModel):
    load: LoadRead
    label: str
    statusTransitions: List[LoadStatus]
    canReverse: bool
    previousStatus: Optional[LoadStatus] = None
    progress: int
    associatedCall: Optional[CallRead] = None


class LoadUpdateResponse(BaseModel):
    load: LoadRead
    message: str


class DashboardSnapshot(BaseModel):
    date: str
    pickingUpToday: int
    deliveringToday: int
    inTransit: int
    needsCarrier: int
    pendingCalls: int
