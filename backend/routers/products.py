import logging
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from authentication.deps import get_caller_identity
from authentication.identity import CallerIdentity
from db.deps import get_db
from services import product_service
from services.batch import get_upload_coordinator
from services.batch.upload_coordinator import UploadCoordinator
from services.exceptions import AccessDenied, NotFound, ValidationError
from services.file_storage import FileStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


# --------------------------------------------------
# SCHEMAS
# --------------------------------------------------
class ProductResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    name: str
    description: str | None = None
    price: Decimal
    stock_quantity: int
    image_path: str | None = None
    owner_id: int | None = None
    supplier_id: int | None = None
    created_at: datetime
    updated_at: datetime


class ProductUpdateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    stock_quantity: int | None = None


# --------------------------------------------------
# HELPERS
# --------------------------------------------------
def get_file_storage(coordinator: UploadCoordinator = Depends(get_upload_coordinator)) -> FileStorage:
    # images and staged CSVs share one uploads root
    return coordinator.storage


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, AccessDenied):
        return HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, ValidationError) and exc.violations:
        return HTTPException(status_code=400, detail={"message": exc.message, "violations": exc.violations})
    return HTTPException(status_code=400, detail=str(exc))


_SERVICE_ERRORS = (NotFound, AccessDenied, ValidationError)


# --------------------------------------------------
# ROUTES
# --------------------------------------------------
@router.get("/my", response_model=list[ProductResponse])
def my_products(
    limit: int = 100,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller_identity),
):
    return product_service.list_products(db, owner_id=caller.user_id, limit=limit)


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    _: CallerIdentity = Depends(get_caller_identity),
):
    try:
        return product_service.get_product(db, product_id)
    except NotFound as exc:
        raise _http_error(exc)


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: int,
    payload: ProductUpdateRequest,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller_identity),
):
    try:
        return product_service.update_product(db, product_id, payload.model_dump(exclude_unset=True), caller)
    except _SERVICE_ERRORS as exc:
        raise _http_error(exc)


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller_identity),
    storage: FileStorage = Depends(get_file_storage),
):
    try:
        product_service.delete_product(db, product_id, caller, storage)
    except _SERVICE_ERRORS as exc:
        raise _http_error(exc)
    return Response(status_code=204)


@router.post("/{product_id}/image", response_model=ProductResponse)
def upload_image(
    product_id: int,
    file: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller_identity),
    storage: FileStorage = Depends(get_file_storage),
):
    filename = file.filename if file is not None else None
    content = file.file.read() if file is not None else b""
    content_type = file.content_type if file is not None else None

    try:
        product = product_service.attach_image(db, product_id, caller, storage, filename, content, content_type)
    except _SERVICE_ERRORS as exc:
        logger.info("IMAGE rejected: user=%s product=%s reason=%s", caller.username, product_id, exc)
        raise _http_error(exc)
    return product
