from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from docsearch.models.chunk import ChunkRecord
from docsearch.models.query import ChunkHit, HighlightSpec

# Page size used when a query does not ask for a specific number of hits
DEFAULT_PAGE_SIZE = 10

class SearchIndex(ABC):
    @abstractmethod
    def write(self, record: ChunkRecord) -> None:
        """Upserts a single chunk record by record_id."""
        pass

    @abstractmethod
    def query(self,
              field: str,
              text: str,
              highlight: Optional[HighlightSpec] = None,
              max_results: Optional[int] = None) -> List[ChunkHit]:
        """Relevance query on one text field; hits come back best first."""
        pass

    @abstractmethod
    def exists_by_exact_match(self, criteria: Dict[str, Any]) -> bool:
        """True if any record matches every field=value pair exactly (case-sensitive, untokenized)."""
        pass

    @abstractmethod
    def fetch_field_values(self, field: str, limit: int) -> List[Any]:
        """Values of one field across up to `limit` records, None included."""
        pass

    @abstractmethod
    def count(self) -> int:
        pass
