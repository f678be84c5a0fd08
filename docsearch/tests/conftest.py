"""Shared pytest fixtures."""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from docsearch.core.chunk.chunker import TextChunker
from docsearch.core.parse.extractor import ContentExtractor
from docsearch.core.pipeline.ingestion import IngestionPipeline
from docsearch.core.pipeline.status_registry import StatusRegistry
from docsearch.models.chunk import ChunkRecord
from docsearch.models.document import IngestionStatus
from docsearch.storage.bm25_store import LocalBM25Index


@pytest.fixture
def fake_extractor():
    """Extractor that treats every payload as UTF-8 text."""
    extractor = MagicMock(spec=ContentExtractor)
    extractor.extract_metadata.return_value = {
        "dc:creator": "Ada Lovelace",
        "Content-Type": "text/plain",
        "dcterms:created": "2024-01-02T03:04:05Z",
    }
    extractor.extract_text.side_effect = lambda data: data.decode("utf-8")
    return extractor


@pytest.fixture
def index():
    return LocalBM25Index()


@pytest.fixture
def registry():
    return StatusRegistry()


@pytest.fixture
def pipeline(index, fake_extractor, registry):
    pipeline = IngestionPipeline(
        index=index,
        extractor=fake_extractor,
        registry=registry,
        chunker=TextChunker(50),
        max_workers=2
    )
    yield pipeline
    pipeline.shutdown(wait=True)


@pytest.fixture
def make_record():
    """Factory for ChunkRecords with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> ChunkRecord:
        counter["n"] += 1
        fields = dict(
            record_id=f"rec-{counter['n']}",
            document_id="doc-1",
            filename="report.txt",
            content_checksum="abc123",
            total_chunks=1,
            file_size_bytes=100,
            uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            status=IngestionStatus.COMPLETED,
            content="The quick brown fox jumps over the lazy dog.",
            chunk_index=0,
        )
        fields.update(overrides)
        return ChunkRecord(**fields)

    return _make
