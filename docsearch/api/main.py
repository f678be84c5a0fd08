import logging
import threading
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docsearch.config.settings import AppSettings, IngestionConfig, settings
from docsearch.core.parse.extractor import ContentExtractor
from docsearch.core.pipeline.file_drop import FileDropProcessor
from docsearch.core.pipeline.ingestion import IngestionPipeline
from docsearch.core.pipeline.status_registry import StatusRegistry
from docsearch.core.chunk.chunker import TextChunker
from docsearch.core.retrieve.search_aggregator import SearchAggregator
from docsearch.storage.base import SearchIndex
from docsearch.storage.bm25_store import LocalBM25Index
from docsearch.api.routes import ingest, search

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_index(app_settings: AppSettings) -> SearchIndex:
    config = app_settings.index
    if config.backend == "elasticsearch":
        from docsearch.storage.elasticsearch_store import ElasticsearchIndex
        return ElasticsearchIndex(
            hosts=config.hosts,
            index_name=config.index_name,
            username=config.username,
            password=config.password,
            connect_retries=config.connect_retries,
            retry_delay_seconds=config.retry_delay_seconds
        )
    if config.backend == "local":
        return LocalBM25Index(persist_path=config.persist_path, index_name=config.index_name)
    raise ValueError(f"Unknown index backend: {config.backend}")


def start_file_drop(pipeline: IngestionPipeline, config: IngestionConfig):
    """Starts the drop-directory watcher thread; returns (thread, stop_event), or None when disabled."""
    if not config.drop_dir:
        return None
    stop_event = threading.Event()
    processor = FileDropProcessor(pipeline, config.async_threshold_bytes)
    thread = threading.Thread(
        target=processor.watch,
        args=(config.drop_dir, stop_event, config.drop_poll_seconds),
        name="file-drop",
        daemon=True
    )
    thread.start()
    return thread, stop_event


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup: Initialize singletons ---
    logger.info(f"Initializing document search ({settings.index.backend} index)...")

    index = build_index(settings)
    registry = StatusRegistry()
    pipeline = IngestionPipeline(
        index=index,
        extractor=ContentExtractor(),
        registry=registry,
        chunker=TextChunker(settings.chunking.chunk_size),
        max_workers=settings.ingestion.max_workers
    )

    # Store in app.state for dependency injection
    app.state.index = index
    app.state.status_registry = registry
    app.state.ingestion_pipeline = pipeline
    app.state.search_aggregator = SearchAggregator(index, settings.search)
    app.state.file_drop = start_file_drop(pipeline, settings.ingestion)

    logger.info("Initialization complete. All systems ready.")

    yield

    # --- Shutdown: let queued async jobs finish ---
    logger.info("Shutting down document search...")
    if app.state.file_drop is not None:
        thread, stop_event = app.state.file_drop
        stop_event.set()
        thread.join()
    pipeline.shutdown(wait=True)

# Create FastAPI instance
app = FastAPI(
    title="Document Search API",
    description="Chunked full-text document ingestion and search",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Health Check Endpoint
@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}

app.include_router(ingest.router, prefix="/api", tags=["Ingestion"])
app.include_router(search.router, prefix="/api", tags=["Search"])

@app.get("/", tags=["System"])
def root():
    return {"message": "Document Search API is running."}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
