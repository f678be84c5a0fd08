import os
import re
import logging
import threading
from typing import Any, Dict, List, Optional
import numpy as np
from rank_bm25 import BM25Plus
from docsearch.exceptions import SearchIndexError
from docsearch.models.chunk import ChunkRecord
from docsearch.models.query import ChunkHit, HighlightSpec
from docsearch.storage.base import SearchIndex, DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

# Highlighter defaults when the caller leaves them unset
DEFAULT_FRAGMENT_SIZE = 100
DEFAULT_NUMBER_OF_FRAGMENTS = 5

TOKEN_RE = re.compile(r"\w+")


def tokenize(text: str) -> List[str]:
    return TOKEN_RE.findall(text.lower())


class LocalBM25Index(SearchIndex):
    """
    Implements SearchIndex in-process using rank-bm25.
    Records are kept in memory (optionally appended to a JSONL file so they
    survive restarts); the BM25 scorer is rebuilt lazily after writes.
    """

    def __init__(self, persist_path: Optional[str] = None, index_name: str = "documents"):
        self._lock = threading.RLock()
        self._records: Dict[str, ChunkRecord] = {}
        self._bm25: Optional[BM25Plus] = None
        self._ids: List[str] = []
        self._file_path = None

        if persist_path:
            os.makedirs(persist_path, exist_ok=True)
            self._file_path = os.path.join(persist_path, f"{index_name}.jsonl")
            self._load()

    def _load(self) -> None:
        if not os.path.exists(self._file_path):
            return
        with open(self._file_path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    record = ChunkRecord.model_validate_json(line)
                    self._records[record.record_id] = record
        logger.info(f"Loaded {len(self._records)} chunk records from {self._file_path}")

    def write(self, record: ChunkRecord) -> None:
        with self._lock:
            if self._file_path:
                try:
                    with open(self._file_path, "a", encoding="utf-8") as f:
                        f.write(record.model_dump_json() + "\n")
                except OSError as e:
                    raise SearchIndexError(f"Failed to persist record {record.record_id}: {e}") from e
            self._records[record.record_id] = record
            self._bm25 = None

    def _scorer(self) -> Optional[BM25Plus]:
        # Caller holds the lock
        if self._bm25 is None and self._records:
            self._ids = list(self._records.keys())
            corpus = [tokenize(self._records[i].content) for i in self._ids]
            if not any(corpus):
                return None
            self._bm25 = BM25Plus(corpus)
        return self._bm25

    def query(self,
              field: str,
              text: str,
              highlight: Optional[HighlightSpec] = None,
              max_results: Optional[int] = None) -> List[ChunkHit]:
        if field != "content":
            raise SearchIndexError(f"Field '{field}' is not full-text indexed")

        query_tokens = tokenize(text or "")
        if not query_tokens:
            return []
        wanted = set(query_tokens)
        limit = max_results if max_results is not None else DEFAULT_PAGE_SIZE

        with self._lock:
            bm25 = self._scorer()
            if bm25 is None:
                return []
            scores = bm25.get_scores(query_tokens)
            ids = list(self._ids)
            records = self._records

            # Stable: equal scores keep insertion order
            order = np.argsort(-scores, kind="stable")
            hits = []
            for idx in order:
                record = records[ids[idx]]
                if not wanted.intersection(tokenize(record.content)):
                    continue
                hits.append(ChunkHit(
                    record=record,
                    score=float(scores[idx]),
                    highlights=self._highlight(record, query_tokens, highlight)
                ))
                if len(hits) >= limit:
                    break

        return hits

    def _highlight(self,
                   record: ChunkRecord,
                   query_tokens: List[str],
                   spec: Optional[HighlightSpec]) -> Dict[str, List[str]]:
        if spec is None:
            return {}

        content = getattr(record, spec.field, None) or ""
        fragment_size = spec.fragment_size or DEFAULT_FRAGMENT_SIZE
        max_fragments = spec.number_of_fragments or DEFAULT_NUMBER_OF_FRAGMENTS

        terms = sorted(set(query_tokens), key=len, reverse=True)
        pattern = re.compile(r"\b(" + "|".join(re.escape(t) for t in terms) + r")\b", re.IGNORECASE)

        fragments = []
        covered_until = 0
        for match in pattern.finditer(content):
            if match.start() < covered_until:
                continue
            start = max(0, match.start() - fragment_size // 4)
            end = min(len(content), start + fragment_size)
            fragment = pattern.sub(lambda m: f"{spec.pre_tag}{m.group(0)}{spec.post_tag}", content[start:end])
            fragments.append(fragment.strip())
            covered_until = end
            if len(fragments) >= max_fragments:
                break

        return {spec.field: fragments} if fragments else {}

    def exists_by_exact_match(self, criteria: Dict[str, Any]) -> bool:
        with self._lock:
            return any(
                all(getattr(record, field, None) == value for field, value in criteria.items())
                for record in self._records.values()
            )

    def fetch_field_values(self, field: str, limit: int) -> List[Any]:
        with self._lock:
            records = list(self._records.values())[:limit]
        return [getattr(r, field, None) for r in records]

    def count(self) -> int:
        with self._lock:
            return len(self._records)
