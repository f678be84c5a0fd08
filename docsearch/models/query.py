from pydantic import BaseModel, Field
from docsearch.models.chunk import StoredChunk

class HighlightSpec(BaseModel):
    field: str = "content"
    pre_tag: str = "<mark>"
    post_tag: str = "</mark>"
    fragment_size: int | None = None        # None = index default
    number_of_fragments: int | None = None  # None = index default

class ChunkHit(BaseModel):
    record: StoredChunk
    score: float | None = None
    highlights: dict[str, list[str]] = {}  # field -> fragments

class SearchRequest(BaseModel):
    question: str = Field(..., min_length=1)
    max_results: int = Field(default=10, gt=0)

class SearchResult(BaseModel):
    document_id: str
    filename: str | None = None
    chunk_index: int | None = None   # chunk holding the best score
    highlights: list[str] = []       # scan order, every chunk of the document
    score: float
