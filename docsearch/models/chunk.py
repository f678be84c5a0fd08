from datetime import datetime
from pydantic import BaseModel
from docsearch.models.document import IngestionStatus

class StoredChunk(BaseModel):
    """
    A chunk as read back from the index. Only the record id is guaranteed:
    older or hand-loaded documents may lack any of the other fields.
    """
    # Identity
    record_id: str                    # unique per chunk
    document_id: str | None = None    # shared by every chunk of one upload
    # Shared document fields (identical across all chunks of a document)
    filename: str | None = None
    content_checksum: str | None = None   # sha256 of the raw upload bytes, dedup key
    total_chunks: int | None = None
    file_size_bytes: int | None = None
    uploaded_at: datetime | None = None
    status: IngestionStatus | None = None
    # Chunk fields
    content: str | None = None
    chunk_index: int | None = None    # 0-based position in the document
    # Extracted metadata
    author: str | None = None
    title: str | None = None
    content_type: str | None = None
    creation_date: datetime | None = None
    last_modified: datetime | None = None
    creator: str | None = None
    keywords: str | None = None
    subject: str | None = None
    page_count: int | None = None

class ChunkRecord(StoredChunk):
    """A chunk as written by the ingestion pipeline: every job-level field is set."""
    document_id: str
    filename: str
    content_checksum: str
    total_chunks: int
    uploaded_at: datetime
    status: IngestionStatus
    content: str
    chunk_index: int
