import logging
from typing import List
from fastapi import APIRouter, Depends, Request, HTTPException, Query

from docsearch.core.retrieve.search_aggregator import SearchAggregator
from docsearch.models.query import ChunkHit, SearchRequest, SearchResult

router = APIRouter()
logger = logging.getLogger(__name__)

# Dependency to get SearchAggregator from app state
def get_search_aggregator(request: Request) -> SearchAggregator:
    return request.app.state.search_aggregator


@router.get("/search", response_model=List[SearchResult], summary="Search documents, results grouped per document")
def search(
    q: str = Query(..., min_length=1),
    max_results: int = Query(10, gt=0),
    aggregator: SearchAggregator = Depends(get_search_aggregator)
):
    try:
        return aggregator.search(q, max_results)
    except Exception as e:
        logger.exception("Search failed.")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/search/query", response_model=List[SearchResult], summary="Search documents with a JSON body")
def search_post(
    request_data: SearchRequest,
    aggregator: SearchAggregator = Depends(get_search_aggregator)
):
    try:
        return aggregator.search(request_data.question, request_data.max_results)
    except Exception as e:
        logger.exception("Search failed.")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/search/raw", response_model=List[ChunkHit], summary="Raw chunk-level hits, for debugging")
def search_raw(q: str = Query(..., min_length=1), aggregator: SearchAggregator = Depends(get_search_aggregator)):
    try:
        return aggregator.search_raw(q)
    except Exception as e:
        logger.exception("Raw search failed.")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/search/files", response_model=List[str], summary="Distinct indexed filenames, sorted")
def list_files(aggregator: SearchAggregator = Depends(get_search_aggregator)):
    try:
        return aggregator.list_indexed_filenames()
    except Exception as e:
        logger.exception("Listing indexed filenames failed.")
        raise HTTPException(status_code=500, detail=str(e))
