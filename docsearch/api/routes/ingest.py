import io
import logging
from fastapi import APIRouter, UploadFile, File, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from docsearch.core.pipeline.ingestion import IngestionPipeline, select_mode
from docsearch.exceptions import DocumentSearchError, ExtractionError
from docsearch.models.document import IngestionAccepted, IngestionMode, IngestionStatus, UploadStatus

router = APIRouter()
logger = logging.getLogger(__name__)

# Dependencies to get components from app state
def get_ingestion_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.ingestion_pipeline


def _start_async(pipeline: IngestionPipeline, filename: str, data: bytes) -> JSONResponse:
    # The upload's temp file is closed once the response is sent, so hand the worker a copy
    handle = pipeline.ingest_async(filename, io.BytesIO(data), len(data))
    accepted = IngestionAccepted(
        document_id=handle.document_id,
        status=IngestionStatus.PROCESSING,
        message=f"Upload started; poll /api/documents/status/{handle.document_id} for progress"
    )
    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=accepted.model_dump(mode="json"))


@router.post("/documents/upload", summary="Upload a document; large files are processed asynchronously")
async def upload(
    file: UploadFile = File(...),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    """
    1. Reads the upload.
    2. Files above the async threshold are dispatched to the worker pool (202).
    3. Everything else is ingested inline and the final UploadStatus is returned.
       Duplicate content comes back as a normal 200 with status SKIPPED.
    """
    try:
        data = await file.read()
        filename = file.filename or "unnamed"

        if select_mode(len(data)) == IngestionMode.ASYNC:
            logger.info(f"Large upload '{filename}' ({len(data)} bytes) routed to async ingestion")
            return _start_async(pipeline, filename, data)

        result: UploadStatus = await run_in_threadpool(pipeline.ingest_sync, filename, data, len(data))
        return result

    except ExtractionError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except DocumentSearchError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.exception(f"Upload failed for {file.filename}")
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        await file.close()


@router.post("/documents/upload-async", response_model=IngestionAccepted, status_code=202,
             summary="Upload a document and ingest it in the background")
async def upload_async(
    file: UploadFile = File(...),
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)
):
    try:
        data = await file.read()
        return _start_async(pipeline, file.filename or "unnamed", data)
    except Exception as e:
        logger.exception(f"Async ingestion initiation failed for {file.filename}")
        raise HTTPException(status_code=500, detail=str(e))
    finally:
        await file.close()


@router.get("/documents/status/{document_id}", response_model=UploadStatus,
            summary="Get the status of an asynchronous ingestion job")
def get_status(document_id: str, pipeline: IngestionPipeline = Depends(get_ingestion_pipeline)):
    job = pipeline.get_status(document_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Document ID not found.")
    return job
