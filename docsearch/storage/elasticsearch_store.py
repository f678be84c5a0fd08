import time
import logging
from typing import Any, Dict, List, Optional
from elasticsearch import Elasticsearch, ApiError, TransportError
from pydantic import ValidationError
from docsearch.exceptions import SearchIndexError
from docsearch.models.chunk import ChunkRecord, StoredChunk
from docsearch.models.query import ChunkHit, HighlightSpec
from docsearch.storage.base import SearchIndex

logger = logging.getLogger(__name__)

KEYWORD = {"type": "keyword"}
TEXT = {"type": "text"}
DATE = {"type": "date"}
INTEGER = {"type": "integer"}

MAPPINGS = {
    "properties": {
        "record_id": KEYWORD,
        "document_id": KEYWORD,
        "filename": {"type": "text", "fields": {"keyword": {"type": "keyword", "ignore_above": 512}}},
        "content_checksum": KEYWORD,
        "content": TEXT,
        "chunk_index": INTEGER,
        "total_chunks": INTEGER,
        "file_size_bytes": {"type": "long"},
        "uploaded_at": DATE,
        "status": KEYWORD,
        "author": TEXT,
        "title": TEXT,
        "content_type": KEYWORD,
        "creation_date": DATE,
        "last_modified": DATE,
        "creator": TEXT,
        "keywords": TEXT,
        "subject": TEXT,
        "page_count": INTEGER,
    }
}

# Text fields are matched exactly through their keyword sub-field
EXACT_FIELDS = {"filename": "filename.keyword"}


class ElasticsearchIndex(SearchIndex):
    """
    Implements SearchIndex on an Elasticsearch cluster.
    One ES document per chunk, id = record_id. Creates the index with explicit
    mappings on startup, waiting for the cluster to come up.
    """

    def __init__(self,
                 hosts: Optional[List[str]] = None,
                 index_name: str = "documents",
                 username: str = "",
                 password: str = "",
                 client: Optional[Elasticsearch] = None,
                 connect_retries: int = 10,
                 retry_delay_seconds: float = 2.0):
        self.index_name = index_name
        if client is None:
            hosts = hosts or ["http://localhost:9200"]
            if username and password:
                client = Elasticsearch(hosts, basic_auth=(username, password))
            else:
                client = Elasticsearch(hosts)
        self.client = client
        self._ensure_index(connect_retries, retry_delay_seconds)

    def _ensure_index(self, retries: int, delay: float) -> None:
        for attempt in range(1, retries + 1):
            try:
                if self.client.indices.exists(index=self.index_name):
                    logger.info(f"Index '{self.index_name}' already exists")
                else:
                    logger.info(f"Creating index '{self.index_name}'")
                    self.client.indices.create(index=self.index_name, mappings=MAPPINGS)
                return
            except (ApiError, TransportError) as e:
                if attempt == retries:
                    raise SearchIndexError(
                        f"Elasticsearch unavailable after {retries} attempts: {e}"
                    ) from e
                logger.warning(
                    f"Elasticsearch not reachable yet, retrying in {delay}s ({attempt}/{retries})"
                )
                time.sleep(delay)

    def write(self, record: ChunkRecord) -> None:
        try:
            self.client.index(
                index=self.index_name,
                id=record.record_id,
                document=record.model_dump(mode="json")
            )
        except (ApiError, TransportError) as e:
            raise SearchIndexError(f"Failed to index record {record.record_id}: {e}") from e

    def query(self,
              field: str,
              text: str,
              highlight: Optional[HighlightSpec] = None,
              max_results: Optional[int] = None) -> List[ChunkHit]:
        body: Dict[str, Any] = {"query": {"match": {field: {"query": text}}}}
        if highlight is not None:
            field_params: Dict[str, Any] = {}
            if highlight.fragment_size is not None:
                field_params["fragment_size"] = highlight.fragment_size
            if highlight.number_of_fragments is not None:
                field_params["number_of_fragments"] = highlight.number_of_fragments
            body["highlight"] = {
                "pre_tags": [highlight.pre_tag],
                "post_tags": [highlight.post_tag],
                "fields": {highlight.field: field_params},
            }
        if max_results is not None:
            body["size"] = max_results

        response = self._search(**body)
        hits = []
        for hit in response["hits"]["hits"]:
            source = dict(hit.get("_source") or {})
            source.setdefault("record_id", hit["_id"])
            try:
                record = StoredChunk.model_validate(source)
            except ValidationError as e:
                raise SearchIndexError(f"Unreadable document {hit['_id']} in '{self.index_name}': {e}") from e
            hits.append(ChunkHit(
                record=record,
                score=hit.get("_score"),
                highlights=hit.get("highlight") or {}
            ))
        return hits

    def exists_by_exact_match(self, criteria: Dict[str, Any]) -> bool:
        filters = [{"term": {EXACT_FIELDS.get(f, f): v}} for f, v in criteria.items()]
        try:
            response = self.client.count(index=self.index_name, query={"bool": {"filter": filters}})
        except (ApiError, TransportError) as e:
            raise SearchIndexError(f"Exact-match lookup failed: {e}") from e
        return response["count"] > 0

    def fetch_field_values(self, field: str, limit: int) -> List[Any]:
        response = self._search(query={"match_all": {}}, source=[field], size=limit)
        return [(hit.get("_source") or {}).get(field) for hit in response["hits"]["hits"]]

    def count(self) -> int:
        try:
            return self.client.count(index=self.index_name)["count"]
        except (ApiError, TransportError) as e:
            raise SearchIndexError(f"Count failed: {e}") from e

    def _search(self, **kwargs):
        try:
            return self.client.search(index=self.index_name, **kwargs)
        except (ApiError, TransportError) as e:
            raise SearchIndexError(f"Search failed: {e}") from e
