import os
import logging
import threading
from typing import Dict, Optional
from docsearch.config.settings import settings
from docsearch.core.pipeline.ingestion import IngestionPipeline, select_mode
from docsearch.models.document import IngestionMode, IngestionStatus, UploadStatus

logger = logging.getLogger(__name__)

# Sub-directories of the drop directory that handled files are moved into
PROCESSED_DIR = ".processed"
FAILED_DIR = ".failed"

class FileDropProcessor:
    """
    Ingests files dropped into a local directory.
    Large files take the async path but are still awaited, so each call
    returns the job's final status.
    """

    def __init__(self, pipeline: IngestionPipeline, async_threshold_bytes: Optional[int] = None):
        self.pipeline = pipeline
        self.async_threshold_bytes = (
            async_threshold_bytes if async_threshold_bytes is not None
            else settings.ingestion.async_threshold_bytes
        )

    def process_file(self, path: str) -> UploadStatus:
        filename = os.path.basename(path)
        size = os.path.getsize(path)
        mode = select_mode(size, self.async_threshold_bytes)
        logger.info(f"Processing '{filename}' ({size} bytes) in {mode.value} mode")

        with open(path, "rb") as f:
            if mode == IngestionMode.ASYNC:
                handle = self.pipeline.ingest_async(filename, f, size)
                handle.result()
                return self.pipeline.get_status(handle.document_id)
            return self.pipeline.ingest_sync(filename, f, size)

    def process_directory(self, directory: str) -> Dict[str, UploadStatus]:
        """Processes every regular, non-hidden file; one failure does not stop the rest."""
        outcomes = {}
        for name in sorted(os.listdir(directory)):
            path = os.path.join(directory, name)
            if name.startswith(".") or not os.path.isfile(path):
                continue
            try:
                outcomes[name] = self.process_file(path)
            except Exception as e:
                logger.error(f"Failed to process '{name}': {e}")
                outcomes[name] = UploadStatus(
                    document_id="",
                    filename=name,
                    status=IngestionStatus.FAILED,
                    file_size_bytes=os.path.getsize(path),
                    message=f"Error: {e}"
                )
        return outcomes

    def sweep(self, directory: str) -> Dict[str, UploadStatus]:
        """One polling pass: ingests what is in the drop directory, then moves each file out of it."""
        outcomes = self.process_directory(directory)
        for name, outcome in outcomes.items():
            target = FAILED_DIR if outcome.status == IngestionStatus.FAILED else PROCESSED_DIR
            os.makedirs(os.path.join(directory, target), exist_ok=True)
            os.replace(os.path.join(directory, name), os.path.join(directory, target, name))
        if outcomes:
            logger.info(f"Drop directory sweep handled {len(outcomes)} file(s)")
        return outcomes

    def watch(self, directory: str, stop_event: threading.Event, poll_interval_seconds: float) -> None:
        """Sweeps the directory until stop_event is set."""
        os.makedirs(directory, exist_ok=True)
        logger.info(f"Watching drop directory {directory} every {poll_interval_seconds}s")
        while not stop_event.is_set():
            try:
                self.sweep(directory)
            except OSError as e:
                logger.error(f"Drop directory sweep failed: {e}")
            stop_event.wait(poll_interval_seconds)
        logger.info(f"Stopped watching {directory}")
