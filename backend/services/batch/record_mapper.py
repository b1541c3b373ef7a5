from datetime import datetime, timezone

from models.product import Product
from services.batch.records import ValidatedRecord


def to_product(
    record: ValidatedRecord,
    owner_id: int | None = None,
    now: datetime | None = None,
) -> Product:
    timestamp = now or datetime.now(timezone.utc)
    return Product(
        name=record.name,
        description=record.description,
        price=record.price,
        stock_quantity=record.stock_quantity if record.stock_quantity is not None else 0,
        owner_id=owner_id,
        created_at=timestamp,
        updated_at=timestamp,
    )
