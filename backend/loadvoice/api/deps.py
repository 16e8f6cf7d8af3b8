from fastapi import Header, HTTPException
from typing import Optional
import os


async def require_api_key(authorization: Optional[str] = Header(default=None)) -> None:
    # Auth is off unless LOADVOICE_API_KEY is configured
    expected = os.getenv("LOADVOICE_API_KEY")
    if not expected:
        return
    if authorization != f"Bearer {expected}":
        raise HTTPException(status_code=401, detail="Not authorized")
