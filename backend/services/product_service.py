import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session

from authentication.identity import CallerIdentity
from models.product import Product
from services.authorization import ensure_can_modify
from services.exceptions import NotFound, ValidationError
from services.file_storage import FileStorage

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = ("name", "description", "price", "stock_quantity")


def get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found")
    return product


def list_products(
    db: Session,
    owner_id: int | None = None,
    supplier_id: int | None = None,
    limit: int = 100,
) -> list[Product]:
    query = db.query(Product)
    if owner_id is not None:
        query = query.filter(Product.owner_id == owner_id)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    return query.order_by(Product.id.asc()).limit(max(1, min(limit, 500))).all()


def _check_changes(changes: dict[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - set(_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown product fields: {', '.join(sorted(unknown))}")

    violations = []
    if "name" in changes:
        name = changes["name"]
        if name is None or not str(name).strip():
            violations.append("Product name is required")
        elif len(name) > 100:
            violations.append("Product name must be between 1 and 100 characters")
    if "description" in changes and changes["description"] is not None and len(changes["description"]) > 500:
        violations.append("Description cannot exceed 500 characters")
    if "price" in changes:
        price = changes["price"]
        try:
            parsed = Decimal(str(price)) if price is not None else None
        except InvalidOperation:
            parsed = None
            violations.append("Price must be a number")
        else:
            if parsed is None:
                violations.append("Price is required")
            elif not parsed.is_finite() or parsed <= 0:
                violations.append("Price must be positive")
    if "stock_quantity" in changes and changes["stock_quantity"] is None:
        violations.append("Quantity is required")

    if violations:
        raise ValidationError("Validation failed", violations)
    if "price" in changes:
        changes = {**changes, "price": Decimal(str(changes["price"]))}
    return changes


def update_product(db: Session, product_id: int, changes: dict[str, Any], caller: CallerIdentity) -> Product:
    product = get_product(db, product_id)
    ensure_can_modify(product.owner_id, product.supplier_id, caller)

    for field, value in _check_changes(changes).items():
        setattr(product, field, value)
    product.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(product)

    logger.info("AUDIT: product %s updated by %s", product_id, caller.username)
    return product


def delete_product(
    db: Session,
    product_id: int,
    caller: CallerIdentity,
    storage: FileStorage | None = None,
) -> None:
    product = get_product(db, product_id)
    ensure_can_modify(product.owner_id, product.supplier_id, caller)

    image_path = product.image_path
    db.delete(product)
    db.commit()
    if storage is not None:
        storage.delete_public(image_path)

    logger.info("AUDIT: product %s deleted by %s", product_id, caller.username)


def attach_image(
    db: Session,
    product_id: int,
    caller: CallerIdentity,
    storage: FileStorage,
    filename: str | None,
    content: bytes,
    content_type: str | None,
) -> Product:
    product = get_product(db, product_id)
    ensure_can_modify(product.owner_id, product.supplier_id, caller)

    previous = product.image_path
    product.image_path = storage.store_image(filename, content, content_type)
    product.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(product)
    storage.delete_public(previous)

    logger.info("AUDIT: image %s attached to product %s by %s", product.image_path, product_id, caller.username)
    return product
