import os
import random
import time
from fastapi import UploadFile
from peerlearn.core.config import settings
from peerlearn.core.errors import BadRequest

def check_upload(filename: str, content_type: str | None, size: int) -> str:
    """Return the lower-cased extension of an acceptable upload or raise BadRequest."""
    ext = os.path.splitext(filename or "")[1].lower()
    allowed = settings.ALLOWED_UPLOAD_TYPES
    if ext not in allowed:
        raise BadRequest(f"Only {', '.join(sorted(allowed))} files are allowed")
    if (content_type or "").split(";")[0].strip().lower() != allowed[ext]:
        raise BadRequest(f"File type does not match its extension ({ext} must be {allowed[ext]})")
    if size > settings.MAX_UPLOAD_SIZE:
        raise BadRequest(f"File too large (max {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB)")
    if size == 0:
        raise BadRequest("Uploaded file is empty")
    return ext

def save_upload(file: UploadFile, field: str = "file") -> dict:
    data = file.file.read(settings.MAX_UPLOAD_SIZE + 1)
    ext = check_upload(file.filename, file.content_type, len(data))
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    stored = f"{field}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"
    with open(os.path.join(settings.UPLOAD_DIR, stored), "wb") as fh:
        fh.write(data)
    return {"filename": stored, "url": f"/uploads/{stored}", "mime_type": settings.ALLOWED_UPLOAD_TYPES[ext], "ext": ext}
