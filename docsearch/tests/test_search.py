from unittest.mock import MagicMock

import pytest

from docsearch.config.settings import SearchConfig
from docsearch.core.retrieve.search_aggregator import SearchAggregator
from docsearch.models.query import ChunkHit
from docsearch.storage.elasticsearch_store import ElasticsearchIndex


def _hit(make_record, document_id, chunk_index, score, fragments=None, filename="doc.txt"):
    record = make_record(document_id=document_id, chunk_index=chunk_index, filename=filename)
    return ChunkHit(record=record, score=score, highlights={"content": fragments or []})


def _aggregator(hits):
    index = MagicMock()
    index.query.return_value = hits
    return SearchAggregator(index, SearchConfig()), index


def test_groups_chunks_by_document(make_record):
    aggregator, index = _aggregator([
        _hit(make_record, "A", 2, 0.9, ["a2"], filename="a.txt"),
        _hit(make_record, "B", 1, 0.7, ["b1"], filename="b.txt"),
        _hit(make_record, "A", 0, 0.4, ["a0"], filename="a.txt"),
    ])

    results = aggregator.search("engine", 10)

    assert [r.document_id for r in results] == ["A", "B"]
    assert results[0].score == 0.9
    assert results[0].chunk_index == 2
    assert results[0].filename == "a.txt"
    assert results[0].highlights == ["a2", "a0"]
    assert results[1].score == 0.7
    assert results[1].chunk_index == 1
    assert results[1].highlights == ["b1"]


def test_query_over_fetches_with_highlighting(make_record):
    aggregator, index = _aggregator([])

    assert aggregator.search("engine", 10) == []

    kwargs = index.query.call_args.kwargs
    assert kwargs["field"] == "content"
    assert kwargs["text"] == "engine"
    assert kwargs["max_results"] == 30
    highlight = kwargs["highlight"]
    assert highlight.field == "content"
    assert highlight.pre_tag == "<mark>"
    assert highlight.post_tag == "</mark>"
    assert highlight.fragment_size == 150
    assert highlight.number_of_fragments == 3


def test_default_max_results(make_record):
    aggregator, index = _aggregator([])
    aggregator.search("engine")
    assert index.query.call_args.kwargs["max_results"] == 30


def test_later_higher_score_moves_best_chunk(make_record):
    aggregator, _ = _aggregator([
        _hit(make_record, "A", 0, 0.4, ["a0"]),
        _hit(make_record, "A", 5, 0.9, ["a5"]),
    ])

    result = aggregator.search("engine", 10)[0]

    assert result.score == 0.9
    assert result.chunk_index == 5
    assert result.highlights == ["a0", "a5"]


def test_equal_score_keeps_first_chunk(make_record):
    aggregator, _ = _aggregator([
        _hit(make_record, "A", 1, 0.5),
        _hit(make_record, "A", 3, 0.5),
    ])
    assert aggregator.search("engine", 10)[0].chunk_index == 1


def test_ties_between_documents_keep_hit_order(make_record):
    aggregator, _ = _aggregator([
        _hit(make_record, "A", 0, 0.5),
        _hit(make_record, "B", 0, 0.5),
        _hit(make_record, "C", 0, 0.5),
    ])
    assert [r.document_id for r in aggregator.search("engine", 10)] == ["A", "B", "C"]


def test_truncates_to_max_results(make_record):
    aggregator, _ = _aggregator([
        _hit(make_record, f"D{i}", 0, 1.0 - i / 10) for i in range(6)
    ])

    results = aggregator.search("engine", 2)

    assert [r.document_id for r in results] == ["D0", "D1"]


def test_missing_document_id_falls_back_to_record_id(make_record):
    record = make_record(document_id="", record_id="orphan-chunk")
    aggregator, _ = _aggregator([ChunkHit(record=record, score=0.3)])

    result = aggregator.search("engine", 10)[0]

    assert result.document_id == "orphan-chunk"
    assert result.highlights == []


def test_non_positive_max_results_rejected(make_record):
    aggregator, index = _aggregator([])
    with pytest.raises(ValueError):
        aggregator.search("engine", 0)
    index.query.assert_not_called()


def test_search_raw_passes_hits_through(make_record):
    hits = [_hit(make_record, "A", 0, 0.4), _hit(make_record, "A", 1, 0.9)]
    aggregator, index = _aggregator(hits)

    assert aggregator.search_raw("engine") == hits

    kwargs = index.query.call_args.kwargs
    assert "max_results" not in kwargs
    assert kwargs["highlight"].fragment_size is None
    assert kwargs["highlight"].pre_tag == "<mark>"


def test_list_indexed_filenames_is_sorted_and_distinct():
    index = MagicMock()
    index.fetch_field_values.return_value = ["b.txt", None, "a.txt", "b.txt"]

    assert SearchAggregator(index, SearchConfig()).list_indexed_filenames() == ["a.txt", "b.txt"]
    index.fetch_field_values.assert_called_once_with("filename", limit=10000)


def test_end_to_end_with_local_index(pipeline, index):
    pipeline.ingest_sync("a.txt", b"Search engines rank documents by relevance.")
    pipeline.ingest_sync("b.txt", b"Gardening tips for spring.")
    pipeline.ingest_sync("a.txt", b"A second upload about a search engine.")

    aggregator = SearchAggregator(index, SearchConfig())
    results = aggregator.search("search", 10)

    assert len(results) == 2
    assert {r.filename for r in results} == {"a.txt"}
    assert all(any("<mark>" in h for h in r.highlights) for r in results)
    assert aggregator.list_indexed_filenames() == ["a.txt", "b.txt"]


def test_sparse_elasticsearch_document_groups_under_its_own_id():
    client = MagicMock()
    client.indices.exists.return_value = True
    client.search.return_value = {"hits": {"hits": [
        {"_id": "legacy-1", "_score": 1.2, "_source": {"filename": "old.txt", "content": "search engine"},
         "highlight": {"content": ["<mark>search</mark> engine"]}},
    ]}}
    aggregator = SearchAggregator(ElasticsearchIndex(client=client), SearchConfig())

    results = aggregator.search("search", 10)

    assert len(results) == 1
    assert results[0].document_id == "legacy-1"
    assert results[0].filename == "old.txt"
    assert results[0].chunk_index is None
    assert results[0].score == 1.2
    assert results[0].highlights == ["<mark>search</mark> engine"]
