from typing import Optional
import os


ALLOWED_AUDIO_EXTENSIONS = ("mp3", "wav", "m4a", "webm", "ogg", "flac")
MAX_UPLOAD_BYTES = 500 * 1024 * 1024


class UploadValidationError(ValueError):
    pass


def validate_audio_upload(file_name: Optional[str], size: int) -> str:
    """Check an audio file before anything is stored. Returns the lowercase extension."""
    name = (file_name or "").strip()
    ext = os.path.splitext(name)[1].lstrip(".").lower()
    if not name or ext not in ALLOWED_AUDIO_EXTENSIONS:
        raise UploadValidationError(
            f"Unsupported audio format. Accepted formats: {', '.join(ALLOWED_AUDIO_EXTENSIONS)}"
        )
    if size <= 0:
        raise UploadValidationError("Uploaded file is empty")
    if size > MAX_UPLOAD_BYTES:
        raise UploadValidationError(
            f"File size exceeds 500MB limit. Current size: {size / (1024 * 1024):.2f}MB"
        )
    return ext


def safe_file_name(file_name: str) -> str:
    base = os.path.basename(file_name.replace("\\", "/"))
    return "".join(c if c.isalnum() or c in "._-" else "_" for c in base) or "recording"


async def read_audio_upload(file, chunk_size: int = 1024 * 1024) -> bytes:
    """Read an uploaded file in chunks, stopping as soon as it passes the size limit."""
    if getattr(file, "size", None) is not None and file.size > MAX_UPLOAD_BYTES:
        validate_audio_upload(file.filename, file.size)
    data = bytearray()
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        data.extend(chunk)
        if len(data) > MAX_UPLOAD_BYTES:
            validate_audio_upload(file.filename, len(data))
    validate_audio_upload(file.filename, len(data))
    return bytes(data)
