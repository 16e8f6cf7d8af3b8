from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4
from datetime import datetime, timezone
import copy
import logging
import os

# Storage adapter over Supabase. Without SUPABASE_URL an in-memory backend with the same interface is used.
from supabase import create_client, Client

logger = logging.getLogger(__name__)

RECORDINGS_BUCKET = "call-recordings"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_load_number() -> str:
    return f"LD-{uuid4().hex[:8].upper()}"


class InMemoryDB:
    def __init__(self) -> None:
        self.calls: Dict[str, Dict[str, Any]] = {}
        self.audio: Dict[str, bytes] = {}
        self.transcripts: Dict[str, Dict[str, Any]] = {}
        self.utterances: List[Dict[str, Any]] = []
        self.insights: List[Dict[str, Any]] = []
        self.fields: List[Dict[str, Any]] = []
        self.loads: Dict[str, Dict[str, Any]] = {}
        self.load_activities: List[Dict[str, Any]] = []

    # Calls
    def create_call(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        cid = str(uuid4())
        obj = {
            "id": cid,
            "status": "uploading",
            "processing_progress": None,
            "processing_message": None,
            "error_message": None,
            "customer_name": None,
            "sales_rep": None,
            "call_date": None,
            "duration": None,
            "sentiment_type": None,
            "sentiment_score": None,
            "file_name": None,
            "file_url": None,
            "processed_at": None,
            "deleted_at": None,
        }
        obj.update(payload or {})
        obj["id"] = cid
        obj["created_at"] = _now()
        self.calls[cid] = obj
        return dict(obj)

    def get_call(self, call_id: Any) -> Optional[Dict[str, Any]]:
        call = self.calls.get(str(call_id))
        if not call or call.get("deleted_at"):
            return None
        return dict(call)

    def list_calls(self, status: Optional[str], page: int, page_size: int) -> Tuple[List[Dict[str, Any]], int]:
        items = [c for c in self.calls.values() if not c.get("deleted_at")]
        if status:
            items = [c for c in items if c.get("status") == status]
        items.sort(key=lambda c: c.get("created_at") or "", reverse=True)
        total = len(items)
        start = (page - 1) * page_size
        return [dict(c) for c in items[start:start + page_size]], total

    def update_call(self, call_id: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        cid = str(call_id)
        if cid not in self.calls:
            return None
        self.calls[cid].update(updates)
        return dict(self.calls[cid])

    def upload_audio(self, call_id: str, file_name: str, data: bytes, content_type: Optional[str]) -> str:
        path = f"{call_id}/{file_name}"
        self.audio[path] = data
        return f"memory://{RECORDINGS_BUCKET}/{path}"

    # Transcripts
    def save_transcript(self, call_id: str, transcript: Dict[str, Any], utterances: List[Dict[str, Any]]) -> Dict[str, Any]:
        tid = str(uuid4())
        obj = {"id": tid, "call_id": call_id, "created_at": _now()}
        obj.update(transcript)
        self.transcripts[call_id] = obj
        for u in utterances:
            row = dict(u)
            row["id"] = str(uuid4())
            row["transcript_id"] = tid
            self.utterances.append(row)
        return dict(obj)

    def get_transcript(self, call_id: Any) -> Optional[Dict[str, Any]]:
        transcript = self.transcripts.get(str(call_id))
        if not transcript:
            return None
        utterances = [dict(u) for u in self.utterances if u["transcript_id"] == transcript["id"]]
        utterances.sort(key=lambda u: u.get("start_time") or 0)
        result = dict(transcript)
        result["utterances"] = utterances
        return result

    # Insights and fields
    def add_insights(self, call_id: str, insights: List[Dict[str, Any]]) -> None:
        for i in insights:
            self.insights.append({**i, "id": str(uuid4()), "call_id": call_id, "created_at": _now()})

    def list_insights(self, call_id: Any) -> List[Dict[str, Any]]:
        return [dict(i) for i in self.insights if i["call_id"] == str(call_id)]

    def add_fields(self, call_id: str, fields: List[Dict[str, Any]]) -> None:
        for f in fields:
            self.fields.append({**f, "id": str(uuid4()), "call_id": call_id, "created_at": _now()})

    def list_fields(self, call_id: Any) -> List[Dict[str, Any]]:
        return [dict(f) for f in self.fields if f["call_id"] == str(call_id)]

    # Loads
    def create_load(self, row: Dict[str, Any]) -> Dict[str, Any]:
        lid = str(uuid4())
        obj = {
            "status": "quoted",
            "carrier_id": None,
            "metadata": {},
            "deleted_at": None,
        }
        obj.update(row)
        obj["id"] = lid
        obj["load_number"] = obj.get("load_number") or _new_load_number()
        obj["created_at"] = obj["updated_at"] = _now()
        self.loads[lid] = obj
        return copy.deepcopy(obj)

    def get_load(self, load_id: Any) -> Optional[Dict[str, Any]]:
        load = self.loads.get(str(load_id))
        if not load or load.get("deleted_at"):
            return None
        return copy.deepcopy(load)

    def list_loads(
        self,
        status: Optional[str] = None,
        carrier_id: Optional[str] = None,
        pickup_date: Optional[str] = None,
        delivery_date: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], int]:
        items = [l for l in self.loads.values() if not l.get("deleted_at")]
        if status:
            items = [l for l in items if l.get("status") == status]
        if carrier_id:
            items = [l for l in items if l.get("carrier_id") == carrier_id]
        # Dashboard passes both dates: a load matches if it picks up OR delivers on them
        if pickup_date and delivery_date:
            items = [l for l in items if l.get("pickup_date") == pickup_date or l.get("delivery_date") == delivery_date]
        elif pickup_date:
            items = [l for l in items if l.get("pickup_date") == pickup_date]
        elif delivery_date:
            items = [l for l in items if l.get("delivery_date") == delivery_date]
        items.sort(key=lambda l: l.get("created_at") or "", reverse=True)
        total = len(items)
        return [copy.deepcopy(l) for l in items[offset:offset + limit]], total

    def update_load(self, load_id: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        lid = str(load_id)
        if lid not in self.loads:
            return None
        self.loads[lid].update(copy.deepcopy(updates))
        self.loads[lid]["updated_at"] = _now()
        return copy.deepcopy(self.loads[lid])

    def delete_load(self, load_id: Any) -> bool:
        return self.loads.pop(str(load_id), None) is not None

    def add_load_activities(self, activities: List[Dict[str, Any]]) -> None:
        for a in activities:
            self.load_activities.append({**a, "id": str(uuid4()), "created_at": a.get("created_at") or _now()})

    def list_load_activities(self, load_id: Any) -> List[Dict[str, Any]]:
        return [dict(a) for a in self.load_activities if a["load_id"] == str(load_id)]


class SupabaseDB:
    def __init__(self, client: Client) -> None:
        self.client = client

    def _first(self, res) -> Optional[Dict[str, Any]]:
        return (res.data or [None])[0]

    # Calls
    def create_call(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = {"status": "uploading"}
        row.update(payload or {})
        res = self.client.table("calls").insert(row).execute()
        return (res.data or [])[0]

    def get_call(self, call_id: Any) -> Optional[Dict[str, Any]]:
        res = self.client.table("calls").select("*").eq("id", str(call_id)).is_("deleted_at", "null").limit(1).execute()
        return self._first(res)

    def list_calls(self, status: Optional[str], page: int, page_size: int) -> Tuple[List[Dict[str, Any]], int]:
        query = self.client.table("calls").select("*", count="exact").is_("deleted_at", "null")
        if status:
            query = query.eq("status", status)
        start = (page - 1) * page_size
        res = query.order("created_at", desc=True).range(start, start + page_size - 1).execute()
        return res.data or [], res.count or 0

    def update_call(self, call_id: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        res = self.client.table("calls").update(updates).eq("id", str(call_id)).execute()
        return self._first(res)

    def upload_audio(self, call_id: str, file_name: str, data: bytes, content_type: Optional[str]) -> str:
        path = f"{call_id}/{file_name}"
        bucket = self.client.storage.from_(RECORDINGS_BUCKET)
        bucket.upload(path, data, {"content-type": content_type or "application/octet-stream"})
        return bucket.get_public_url(path)

    # Transcripts
    def save_transcript(self, call_id: str, transcript: Dict[str, Any], utterances: List[Dict[str, Any]]) -> Dict[str, Any]:
        row = {"call_id": call_id}
        row.update(transcript)
        res = self.client.table("transcripts").insert(row).execute()
        saved = (res.data or [])[0]
        if utterances:
            self.client.table("transcript_utterances").insert(
                [{**u, "transcript_id": saved["id"]} for u in utterances]
            ).execute()
        return saved

    def get_transcript(self, call_id: Any) -> Optional[Dict[str, Any]]:
        # A retried call can have several transcripts; the newest one wins
        res = (
            self.client.table("transcripts")
            .select("*")
            .eq("call_id", str(call_id))
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        transcript = self._first(res)
        if not transcript:
            return None
        ut_res = (
            self.client.table("transcript_utterances")
            .select("*")
            .eq("transcript_id", transcript["id"])
            .order("start_time", desc=False)
            .execute()
        )
        transcript["utterances"] = ut_res.data or []
        return transcript

    # Insights and fields
    def add_insights(self, call_id: str, insights: List[Dict[str, Any]]) -> None:
        if insights:
            self.client.table("call_insights").insert([{**i, "call_id": call_id} for i in insights]).execute()

    def list_insights(self, call_id: Any) -> List[Dict[str, Any]]:
        res = self.client.table("call_insights").select("*").eq("call_id", str(call_id)).order("created_at", desc=False).execute()
        return res.data or []

    def add_fields(self, call_id: str, fields: List[Dict[str, Any]]) -> None:
        if fields:
            self.client.table("call_fields").insert([{**f, "call_id": call_id} for f in fields]).execute()

    def list_fields(self, call_id: Any) -> List[Dict[str, Any]]:
        res = self.client.table("call_fields").select("*").eq("call_id", str(call_id)).order("created_at", desc=False).execute()
        return res.data or []

    # Loads
    def create_load(self, row: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"status": "quoted", "metadata": {}}
        payload.update(row)
        payload["load_number"] = payload.get("load_number") or _new_load_number()
        res = self.client.table("loads").insert(payload).execute()
        return (res.data or [])[0]

    def get_load(self, load_id: Any) -> Optional[Dict[str, Any]]:
        res = self.client.table("loads").select("*").eq("id", str(load_id)).is_("deleted_at", "null").limit(1).execute()
        return self._first(res)

    def list_loads(
        self,
        status: Optional[str] = None,
        carrier_id: Optional[str] = None,
        pickup_date: Optional[str] = None,
        delivery_date: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query = self.client.table("loads").select("*", count="exact").is_("deleted_at", "null")
        if status:
            query = query.eq("status", status)
        if carrier_id:
            query = query.eq("carrier_id", carrier_id)
        if pickup_date and delivery_date:
            query = query.or_(f"pickup_date.eq.{pickup_date},delivery_date.eq.{delivery_date}")
        elif pickup_date:
            query = query.eq("pickup_date", pickup_date)
        elif delivery_date:
            query = query.eq("delivery_date", delivery_date)
        res = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return res.data or [], res.count or 0

    def update_load(self, load_id: Any, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        payload = dict(updates)
        payload["updated_at"] = _now()
        res = self.client.table("loads").update(payload).eq("id", str(load_id)).execute()
        return self._first(res)

    def delete_load(self, load_id: Any) -> bool:
        res = self.client.table("loads").delete().eq("id", str(load_id)).execute()
        return bool(res.data)

    def add_load_activities(self, activities: List[Dict[str, Any]]) -> None:
        if activities:
            self.client.table("load_activities").insert(activities).execute()

    def list_load_activities(self, load_id: Any) -> List[Dict[str, Any]]:
        res = self.client.table("load_activities").select("*").eq("load_id", str(load_id)).order("created_at", desc=False).execute()
        return res.data or []


_client: Optional[Client] = None
_db_instance: Optional[Any] = None


def get_db():
    global _client, _db_instance

    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if url and key:
        if _client is None:
            _client = create_client(url, key)
        if _db_instance is None or not isinstance(_db_instance, SupabaseDB):
            logger.info("Using Supabase storage backend")
            _db_instance = SupabaseDB(_client)
        return _db_instance
    if _db_instance is None or not isinstance(_db_instance, InMemoryDB):
        logger.info("SUPABASE_URL not set, using in-memory storage backend")
        _db_instance = InMemoryDB()
    return _db_instance


def set_db(db: Optional[Any]) -> None:
    """Install a storage backend explicitly (tests, scripts)."""
    global _db_instance
    _db_instance = db
