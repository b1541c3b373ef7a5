import logging

import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from authentication.deps import get_caller_identity
from authentication.identity import CallerIdentity
from models.job_execution import JobExecution, JobStatus
from services.batch import get_upload_coordinator
from services.batch.records import CSV_COLUMNS
from services.batch.upload_coordinator import UploadCoordinator
from services.exceptions import AccessDenied, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products/batch", tags=["product-batch"])

TEMPLATE_ROWS = [
    ("Sample Laptop", "High-performance laptop for professionals", "1299.99", "25"),
    ("USB-C Cable", "Premium USB-C charging cable 2m", "19.99", "200"),
    ("Mechanical Keyboard", "RGB mechanical gaming keyboard", "89.99", "50"),
]


def _snapshot_response(snapshot: JobExecution) -> JSONResponse:
    status_code = 404 if snapshot.status is JobStatus.NOT_FOUND else 200
    return JSONResponse(status_code=status_code, content=snapshot.model_dump(mode="json", by_alias=True))


@router.post("/upload", response_model=JobExecution)
def upload_csv_file(
    file: UploadFile | None = File(None),
    caller: CallerIdentity = Depends(get_caller_identity),
    coordinator: UploadCoordinator = Depends(get_upload_coordinator),
):
    # sync handler: FastAPI runs it in the threadpool, so a synchronous job
    # does not block the event loop
    filename = file.filename if file is not None else None
    contents = file.file.read() if file is not None else None

    try:
        snapshot = coordinator.upload(filename, contents, caller)
    except ValidationError as exc:
        logger.info("UPLOAD rejected: user=%s file=%s reason=%s", caller.username, filename, exc.message)
        raise HTTPException(status_code=400, detail=exc.message)
    except Exception:
        logger.exception("UPLOAD failed: user=%s file=%s", caller.username, filename)
        raise HTTPException(status_code=500, detail="Unexpected error")

    logger.info(
        "UPLOAD: user=%s file=%s job=%s status=%s",
        caller.username,
        filename,
        snapshot.job_execution_id,
        snapshot.status.value,
    )
    return snapshot


@router.get("/status/{job_execution_id}", response_model=JobExecution)
def get_job_status(
    job_execution_id: int,
    _: CallerIdentity = Depends(get_caller_identity),
    coordinator: UploadCoordinator = Depends(get_upload_coordinator),
):
    return _snapshot_response(coordinator.status(job_execution_id))


@router.post("/status/{job_execution_id}/cancel", response_model=JobExecution)
def cancel_job(
    job_execution_id: int,
    caller: CallerIdentity = Depends(get_caller_identity),
    coordinator: UploadCoordinator = Depends(get_upload_coordinator),
):
    try:
        snapshot = coordinator.cancel(job_execution_id, caller)
    except AccessDenied as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    logger.info("CANCEL: user=%s job=%s status=%s", caller.username, job_execution_id, snapshot.status.value)
    return _snapshot_response(snapshot)


@router.get("/template")
def download_template():
    df = pd.DataFrame(TEMPLATE_ROWS, columns=list(CSV_COLUMNS))
    content = df.to_csv(index=False).encode("utf-8")
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="product_template.csv"'},
    )
