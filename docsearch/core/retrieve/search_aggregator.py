import logging
from typing import Dict, List, Optional
from docsearch.config.settings import SearchConfig, settings
from docsearch.models.query import ChunkHit, HighlightSpec, SearchResult
from docsearch.storage.base import SearchIndex

logger = logging.getLogger(__name__)

class SearchAggregator:
    """
    Turns chunk-level full-text hits into document-level results.
    Sequence: over-fetch chunks -> group by document -> keep max score -> rank -> truncate
    """

    def __init__(self, index: SearchIndex, config: Optional[SearchConfig] = None):
        self.index = index
        self.config = config or settings.search

    def search(self, query_text: str, max_results: Optional[int] = None) -> List[SearchResult]:
        if max_results is None:
            max_results = self.config.default_max_results
        if max_results <= 0:
            raise ValueError(f"max_results must be positive, got {max_results}")

        highlight = HighlightSpec(
            field="content",
            pre_tag=self.config.pre_tag,
            post_tag=self.config.post_tag,
            fragment_size=self.config.fragment_size,
            number_of_fragments=self.config.number_of_fragments
        )

        # Several chunks of one document compete for the budget, so fetch more
        hits = self.index.query(
            field="content",
            text=query_text,
            highlight=highlight,
            max_results=max_results * self.config.overfetch_factor
        )

        results_by_document: Dict[str, SearchResult] = {}
        for hit in hits:
            record = hit.record
            doc_id = record.document_id or record.record_id
            score = hit.score or 0.0

            result = results_by_document.get(doc_id)
            if result is None:
                result = SearchResult(
                    document_id=doc_id,
                    filename=record.filename,
                    chunk_index=record.chunk_index,
                    highlights=[],
                    score=score
                )
                results_by_document[doc_id] = result

            result.highlights.extend(hit.highlights.get("content", []))

            if score > result.score:
                result.score = score
                result.chunk_index = record.chunk_index

        # sorted() is stable: equal scores keep the index's hit order
        ranked = sorted(results_by_document.values(), key=lambda r: r.score, reverse=True)
        logger.info(
            f"Search '{query_text}': {len(hits)} chunk hits -> {len(results_by_document)} documents"
        )
        return ranked[:max_results]

    def search_raw(self, query_text: str) -> List[ChunkHit]:
        """Ungrouped chunk hits, for diagnostics. Capped only by the index's page size."""
        highlight = HighlightSpec(
            field="content",
            pre_tag=self.config.pre_tag,
            post_tag=self.config.post_tag
        )
        return self.index.query(field="content", text=query_text, highlight=highlight)

    def list_indexed_filenames(self) -> List[str]:
        values = self.index.fetch_field_values("filename", limit=self.config.filenames_fetch_limit)
        return sorted({v for v in values if v is not None})
