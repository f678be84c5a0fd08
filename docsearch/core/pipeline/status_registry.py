import threading
from typing import Dict, Optional
from docsearch.models.document import UploadStatus

class StatusRegistry:
    """
    Process-wide table of ingestion jobs keyed by document_id.
    Entries are mutated only by the job that created them; readers get
    snapshot copies so they never observe a half-applied update.
    Nothing is ever evicted.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[str, UploadStatus] = {}

    def put(self, document_id: str, status: UploadStatus) -> None:
        with self._lock:
            self._entries[document_id] = status.model_copy()

    def get(self, document_id: str) -> Optional[UploadStatus]:
        with self._lock:
            entry = self._entries.get(document_id)
            return entry.model_copy() if entry is not None else None

    def update(self, document_id: str, **fields) -> None:
        """Applies several fields at once, e.g. status + message on a terminal transition."""
        with self._lock:
            entry = self._entries[document_id]
            for name, value in fields.items():
                setattr(entry, name, value)

    def advance(self, document_id: str) -> int:
        """Records one more indexed chunk and returns the new count."""
        with self._lock:
            entry = self._entries[document_id]
            entry.processed_chunks += 1
            return entry.processed_chunks

    def __contains__(self, document_id: str) -> bool:
        with self._lock:
            return document_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
