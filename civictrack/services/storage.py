# File: civictrack/services/storage.py
import base64
import logging
import requests, uuid
from civictrack.core.config import settings

logger = logging.getLogger(__name__)

MAX_FILES = 10
MAX_BYTES = 2 * 1024 * 1024
ALLOWED = {"image/jpeg", "image/png", "image/webp", "image/gif"}

def upload_image(data: bytes, content_type: str, path: str) -> str:
    """Uploads to Supabase Storage via REST; returns public URL (bucket must be public)."""
    if not (settings.supabase_url and settings.supabase_service_role):
        # no storage configured: inline the image so the issue still renders
        b64 = base64.b64encode(data).decode("utf-8")
        return f"data:{content_type};base64,{b64}"
    base = settings.supabase_url.rstrip("/")
    bucket = settings.supabase_bucket
    url = f"{base}/storage/v1/object/{bucket}/{path}"
    r = requests.post(url, headers={
        "Authorization": f"Bearer {settings.supabase_service_role}",
        "Content-Type": content_type,
        "x-upsert": "true",
    }, data=data, timeout=30)
    r.raise_for_status()
    logger.info("Uploaded %d bytes to %s/%s", len(data), bucket, path)
    # public URL pattern:
    return f"{base}/storage/v1/object/public/{bucket}/{path}"

def make_object_key(owner_id: int, filename: str) -> str:
    ext = (filename.rsplit(".", 1)[-1] if "." in filename else "jpg").lower()
    return f"users/{owner_id}/{uuid.uuid4().hex}.{ext}"
