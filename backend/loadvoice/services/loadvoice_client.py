import os
import httpx
from typing import Any, Callable, Dict, Optional
import logging

from .call_watcher import CallStatusWatcher

# Set up logger
logger = logging.getLogger(__name__)


class LoadVoiceClient:
    """Async client for the LoadVoice REST API, used by dashboards and scripts."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = (base_url or os.getenv("LOADVOICE_API_URL", "http://localhost:8000")).rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("LOADVOICE_API_KEY")
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        self._client = httpx.AsyncClient(base_url=f"{self.base_url}/api", headers=headers, timeout=30.0, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "LoadVoiceClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"LoadVoice API HTTP error on {method} {path}: {e.response.status_code} - {e.response.text}")
            raise
        except httpx.RequestError as e:
            logger.error(f"LoadVoice API request error on {method} {path}: {str(e)}")
            raise

    async def upload_call(self, file_name: str, data: bytes, customer_name: Optional[str] = None, sales_rep: Optional[str] = None) -> Dict[str, Any]:
        form = {k: v for k, v in {"customer_name": customer_name, "sales_rep": sales_rep}.items() if v}
        return await self._request("POST", "/calls/upload", files={"file": (file_name, data)}, data=form)

    async def start_transcription(self, call_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/calls/{call_id}/transcribe")

    async def get_call_status(self, call_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/calls/{call_id}/status")

    async def get_call_detail(self, call_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/calls/{call_id}")

    async def get_crm_output(self, call_id: str, format: str = "plain") -> str:
        data = await self._request("GET", f"/calls/{call_id}/crm-output", params={"format": format})
        return data["output"]

    def watch_call(
        self,
        call_id: str,
        on_complete: Optional[Callable[[Dict[str, Any], Dict[str, Any]], Any]] = None,
        interval: Optional[float] = None,
        **kwargs: Any,
    ) -> CallStatusWatcher:
        """Build a watcher bound to this client. Call ``start()`` or use ``async with``."""
        return CallStatusWatcher(
            call_id,
            fetch_status=self.get_call_status,
            fetch_detail=self.get_call_detail,
            on_complete=on_complete,
            interval=interval,
            **kwargs,
        )
