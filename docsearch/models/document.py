from datetime import datetime
from enum import Enum
from pydantic import BaseModel

class IngestionStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"

TERMINAL_STATUSES = frozenset({IngestionStatus.COMPLETED, IngestionStatus.FAILED, IngestionStatus.SKIPPED})

class IngestionMode(str, Enum):
    SYNC = "SYNC"
    ASYNC = "ASYNC"

class UploadStatus(BaseModel):
    document_id: str
    filename: str
    status: IngestionStatus
    total_chunks: int | None = None   # unknown until text extraction completes
    processed_chunks: int = 0         # never decreases
    file_size_bytes: int | None = None
    message: str | None = None

class DocumentMetadata(BaseModel):
    author: str | None = None
    title: str | None = None
    content_type: str | None = None   # MIME type, e.g. "application/pdf"
    creation_date: datetime | None = None
    last_modified: datetime | None = None
    creator: str | None = None        # producing software
    keywords: str | None = None
    subject: str | None = None
    page_count: int | None = None

class IngestionAccepted(BaseModel):
    document_id: str
    status: IngestionStatus
    message: str
