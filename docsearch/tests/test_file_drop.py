import threading
import time

from docsearch.api.main import start_file_drop
from docsearch.config.settings import IngestionConfig
from docsearch.core.pipeline.file_drop import FAILED_DIR, PROCESSED_DIR, FileDropProcessor
from docsearch.exceptions import ExtractionError
from docsearch.models.document import IngestionStatus


def test_small_file_is_ingested_synchronously(tmp_path, pipeline, index):
    path = tmp_path / "small.txt"
    path.write_bytes(b"a small dropped file")

    status = FileDropProcessor(pipeline, async_threshold_bytes=1024).process_file(str(path))

    assert status.status == IngestionStatus.COMPLETED
    assert status.filename == "small.txt"
    assert status.file_size_bytes == len(b"a small dropped file")
    assert pipeline.get_status(status.document_id) is None
    assert index.count() == 1


def test_large_file_goes_async_and_is_awaited(tmp_path, pipeline):
    path = tmp_path / "large.txt"
    path.write_bytes(b"word " * 100)

    status = FileDropProcessor(pipeline, async_threshold_bytes=10).process_file(str(path))

    assert status.status == IngestionStatus.COMPLETED
    assert status.processed_chunks == status.total_chunks
    assert pipeline.get_status(status.document_id) == status


def test_directory_failures_do_not_stop_the_rest(tmp_path, pipeline, fake_extractor):
    (tmp_path / "a.txt").write_bytes(b"first file")
    (tmp_path / "b.bin").write_bytes(b"\x00bad")
    (tmp_path / "c.txt").write_bytes(b"third file")
    (tmp_path / "nested").mkdir()

    def extract(data):
        if data.startswith(b"\x00"):
            raise ExtractionError("Unsupported content type: application/octet-stream")
        return data.decode("utf-8")

    fake_extractor.extract_text.side_effect = extract

    outcomes = FileDropProcessor(pipeline).process_directory(str(tmp_path))

    assert list(outcomes) == ["a.txt", "b.bin", "c.txt"]
    assert outcomes["a.txt"].status == IngestionStatus.COMPLETED
    assert outcomes["b.bin"].status == IngestionStatus.FAILED
    assert outcomes["b.bin"].message.startswith("Error:")
    assert outcomes["c.txt"].status == IngestionStatus.COMPLETED


def test_hidden_files_are_ignored(tmp_path, pipeline, index):
    (tmp_path / ".partial.txt").write_bytes(b"still uploading")
    assert FileDropProcessor(pipeline).process_directory(str(tmp_path)) == {}
    assert index.count() == 0


def test_sweep_moves_handled_files(tmp_path, pipeline, fake_extractor):
    (tmp_path / "good.txt").write_bytes(b"good file")
    (tmp_path / "bad.txt").write_bytes(b"bad file")

    def extract(data):
        if data == b"bad file":
            raise ExtractionError("corrupt")
        return data.decode("utf-8")

    fake_extractor.extract_text.side_effect = extract
    processor = FileDropProcessor(pipeline)

    outcomes = processor.sweep(str(tmp_path))

    assert outcomes["good.txt"].status == IngestionStatus.COMPLETED
    assert (tmp_path / PROCESSED_DIR / "good.txt").exists()
    assert (tmp_path / FAILED_DIR / "bad.txt").exists()
    assert not (tmp_path / "good.txt").exists()
    # Nothing left to pick up on the next pass
    assert processor.sweep(str(tmp_path)) == {}


def test_watch_stops_on_event(tmp_path, pipeline):
    stop_event = threading.Event()
    stop_event.set()
    FileDropProcessor(pipeline).watch(str(tmp_path / "inbox"), stop_event, 0.01)
    assert (tmp_path / "inbox").is_dir()


def test_start_file_drop_disabled_without_directory(pipeline):
    assert start_file_drop(pipeline, IngestionConfig()) is None


def test_start_file_drop_ingests_dropped_files(tmp_path, pipeline, index):
    inbox = tmp_path / "inbox"
    inbox.mkdir()
    (inbox / "dropped.txt").write_bytes(b"a file dropped into the inbox")

    thread, stop_event = start_file_drop(
        pipeline, IngestionConfig(drop_dir=str(inbox), drop_poll_seconds=0.05)
    )
    try:
        deadline = time.monotonic() + 5
        while not (inbox / PROCESSED_DIR / "dropped.txt").exists() and time.monotonic() < deadline:
            time.sleep(0.02)
    finally:
        stop_event.set()
        thread.join(timeout=5)

    assert (inbox / PROCESSED_DIR / "dropped.txt").exists()
    assert index.count() == 1
    assert not thread.is_alive()
