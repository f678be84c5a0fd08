import logging
import uuid
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Optional, Union
from docsearch.config.settings import settings
from docsearch.core.chunk.chunker import TextChunker
from docsearch.core.dedup.checksum import compute_checksum
from docsearch.core.parse.extractor import ContentExtractor
from docsearch.core.parse.metadata_mapper import MetadataMapper
from docsearch.core.pipeline.status_registry import StatusRegistry
from docsearch.exceptions import StreamReadError
from docsearch.models.chunk import ChunkRecord
from docsearch.models.document import DocumentMetadata, IngestionMode, IngestionStatus, UploadStatus
from docsearch.storage.base import SearchIndex

logger = logging.getLogger(__name__)

SKIPPED_MESSAGE = "already indexed with identical content"


def select_mode(size_bytes: Optional[int], threshold_bytes: Optional[int] = None) -> IngestionMode:
    """Caller-side routing: large uploads go async, everything else sync."""
    if threshold_bytes is None:
        threshold_bytes = settings.ingestion.async_threshold_bytes
    if size_bytes is not None and size_bytes > threshold_bytes:
        return IngestionMode.ASYNC
    return IngestionMode.SYNC


@dataclass
class IngestionHandle:
    """Returned by async ingestion: the id is known immediately, the future resolves when the job ends."""
    document_id: str
    future: Future

    def result(self, timeout: Optional[float] = None) -> str:
        return self.future.result(timeout=timeout)

    def done(self) -> bool:
        return self.future.done()


class IngestionPipeline:
    """
    Orchestrates the ingestion process:
    read -> checksum -> metadata -> dedup check -> extract text -> chunk -> index
    The same state machine backs both modes; SYNC runs it on the caller's
    thread, ASYNC on a bounded worker pool with progress in the StatusRegistry.
    """

    def __init__(self,
                 index: SearchIndex,
                 extractor: Optional[ContentExtractor] = None,
                 registry: Optional[StatusRegistry] = None,
                 chunker: Optional[TextChunker] = None,
                 metadata_mapper: Optional[MetadataMapper] = None,
                 executor: Optional[Executor] = None,
                 max_workers: Optional[int] = None):
        self.index = index
        self.extractor = extractor or ContentExtractor()
        self.registry = registry if registry is not None else StatusRegistry()
        self.chunker = chunker or TextChunker(settings.chunking.chunk_size)
        self.metadata_mapper = metadata_mapper or MetadataMapper()
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers or settings.ingestion.max_workers,
            thread_name_prefix="ingest"
        )

    def ingest(self,
               filename: str,
               stream: Union[BinaryIO, bytes],
               declared_size_bytes: Optional[int] = None,
               mode: IngestionMode = IngestionMode.SYNC) -> Union[str, IngestionHandle]:
        """
        SYNC: blocks until the job ends and returns the document_id (raises on failure).
        ASYNC: returns an IngestionHandle right away; progress via get_status().
        """
        if mode == IngestionMode.ASYNC:
            return self.ingest_async(filename, stream, declared_size_bytes)
        return self.ingest_sync(filename, stream, declared_size_bytes).document_id

    def ingest_sync(self,
                    filename: str,
                    stream: Union[BinaryIO, bytes],
                    declared_size_bytes: Optional[int] = None) -> UploadStatus:
        job = self._new_job(filename, declared_size_bytes)
        # Sync jobs report straight to the caller, so their status stays private
        job_registry = StatusRegistry()
        job_registry.put(job.document_id, job)
        return self._run_job(job.document_id, filename, stream, declared_size_bytes, job_registry)

    def ingest_async(self,
                     filename: str,
                     stream: Union[BinaryIO, bytes],
                     declared_size_bytes: Optional[int] = None) -> IngestionHandle:
        job = self._new_job(filename, declared_size_bytes)
        # Visible before any blocking work so status polls never miss the job
        self.registry.put(job.document_id, job)
        future = self.executor.submit(
            self._run_async, job.document_id, filename, stream, declared_size_bytes
        )
        logger.info(f"[{job.document_id}] Queued async ingestion of '{filename}'")
        return IngestionHandle(document_id=job.document_id, future=future)

    def get_status(self, document_id: str) -> Optional[UploadStatus]:
        return self.registry.get(document_id)

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)

    def _new_job(self, filename: str, declared_size_bytes: Optional[int]) -> UploadStatus:
        return UploadStatus(
            document_id=str(uuid.uuid4()),
            filename=filename,
            status=IngestionStatus.PROCESSING,
            processed_chunks=0,
            file_size_bytes=declared_size_bytes
        )

    def _run_async(self, document_id: str, filename: str, stream, declared_size_bytes) -> str:
        self._run_job(document_id, filename, stream, declared_size_bytes, self.registry)
        return document_id

    def _run_job(self,
                 document_id: str,
                 filename: str,
                 stream: Union[BinaryIO, bytes],
                 declared_size_bytes: Optional[int],
                 registry: StatusRegistry) -> UploadStatus:
        try:
            logger.info(f"[{document_id}] Starting ingestion of '{filename}'")

            # 1. Buffer the whole payload: checksum, extraction and metadata all need it
            data = self._read_all(stream)
            file_size = declared_size_bytes if declared_size_bytes is not None else len(data)
            registry.update(document_id, file_size_bytes=file_size)

            # 2. Checksum
            checksum = compute_checksum(data)
            logger.info(f"[{document_id}] Checksum: {checksum}")

            # 3. Metadata (best-effort)
            metadata = self._extract_metadata(document_id, data)

            # 4. Dedup check (advisory, not transactional)
            if self.index.exists_by_exact_match({"filename": filename, "content_checksum": checksum}):
                logger.info(f"[{document_id}] '{filename}' already indexed with the same checksum - skipping")
                registry.update(document_id, status=IngestionStatus.SKIPPED, message=SKIPPED_MESSAGE)
                return registry.get(document_id)

            # 5. Text extraction (format detected from content)
            text = self.extractor.extract_text(data)
            logger.info(f"[{document_id}] Extracted {len(text)} characters, chunking")

            # 6. Chunking
            chunks = self.chunker.split(text)
            total_chunks = len(chunks)
            registry.update(document_id, total_chunks=total_chunks)
            logger.info(f"[{document_id}] Created {total_chunks} chunks, indexing")

            # 7. Index chunk by chunk, in order
            uploaded_at = datetime.now(timezone.utc)
            for i, chunk in enumerate(chunks):
                record = ChunkRecord(
                    record_id=str(uuid.uuid4()),
                    document_id=document_id,
                    filename=filename,
                    content_checksum=checksum,
                    total_chunks=total_chunks,
                    file_size_bytes=file_size,
                    uploaded_at=uploaded_at,
                    status=IngestionStatus.COMPLETED,
                    content=chunk,
                    chunk_index=i,
                    **metadata.model_dump()
                )
                self.index.write(record)
                processed = registry.advance(document_id)
                logger.debug(f"[{document_id}] Indexed chunk {processed}/{total_chunks}")

            registry.update(
                document_id,
                status=IngestionStatus.COMPLETED,
                message=f"indexed successfully in {total_chunks} chunks"
            )
            logger.info(f"[{document_id}] Ingestion completed for '{filename}'")
            return registry.get(document_id)

        except Exception as e:
            logger.exception(f"[{document_id}] Ingestion failed for '{filename}'")
            registry.update(document_id, status=IngestionStatus.FAILED, message=f"Error: {e}")
            raise

    def _read_all(self, stream: Union[BinaryIO, bytes]) -> bytes:
        if isinstance(stream, (bytes, bytearray, memoryview)):
            return bytes(stream)
        try:
            data = stream.read()
        except (OSError, ValueError) as e:
            raise StreamReadError(f"Could not read upload stream: {e}") from e
        if not isinstance(data, (bytes, bytearray)):
            raise StreamReadError(f"Upload stream returned {type(data).__name__}, expected bytes")
        return bytes(data)

    def _extract_metadata(self, document_id: str, data: bytes) -> DocumentMetadata:
        try:
            raw = self.extractor.extract_metadata(data)
        except Exception as e:
            logger.warning(f"[{document_id}] Metadata extraction failed, continuing without: {e}")
            raw = {}
        return self.metadata_mapper.map(raw)
