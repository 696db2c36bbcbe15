"""
email_attachments.py
--------------------
Turns file-path attachment requests into base64 payloads Postmark accepts.

Files are read whole, in a worker thread, in request order. Any unreadable
file aborts the whole batch with AttachmentReadError; there is no partial
result. No size limit is applied here, Postmark enforces its own.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

from email_errors import AttachmentReadError
from email_schemas import AttachmentRequest

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

MIME_TYPES = {
    ".csv": "text/csv",
    ".txt": "text/plain",
    ".json": "application/json",
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".html": "text/html",
    ".xml": "application/xml",
    ".zip": "application/zip",
    ".md": "text/markdown",
}


@dataclass(frozen=True)
class EncodedAttachment:
    name: str
    content: str
    content_type: str

    def to_postmark(self) -> Dict[str, str]:
        return {"Name": self.name, "Content": self.content, "ContentType": self.content_type}


def content_type_for(file_path: str) -> str:
    """MIME type from the lowercased extension. Never fails."""
    return MIME_TYPES.get(Path(file_path).suffix.lower(), DEFAULT_CONTENT_TYPE)


def _read(file_path: str) -> bytes:
    try:
        return Path(file_path).read_bytes()
    except OSError as e:
        raise AttachmentReadError(file_path, e.strerror or str(e)) from e


async def encode_attachment(request: AttachmentRequest) -> EncodedAttachment:
    data = await asyncio.to_thread(_read, request.file_path)
    return EncodedAttachment(
        name=request.file_name or Path(request.file_path).name,
        content=base64.b64encode(data).decode("ascii"),
        content_type=content_type_for(request.file_path),
    )


async def resolve_attachments(requests: Sequence[AttachmentRequest]) -> List[EncodedAttachment]:
    """Encode every request, preserving order."""
    encoded = []
    for request in requests:
        encoded.append(await encode_attachment(request))
    if encoded:
        logger.info(f"Attaching {len(encoded)} file(s): {', '.join(a.name for a in encoded)}")
    return encoded
