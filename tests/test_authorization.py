"""
Tests for the modify-permission predicate and the product services that
enforce it.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from authentication.identity import CallerIdentity
from models.product import Product
from services import product_service
from services.authorization import can_modify, ensure_can_modify
from services.exceptions import AccessDenied, NotFound, ValidationError
from services.file_storage import FileStorage

OWNER = CallerIdentity(user_id=1, username="owner@example.com", role="user")
SUPPLIER = CallerIdentity(user_id=2, username="supplier@example.com", role="supplier")
STRANGER = CallerIdentity(user_id=3, username="stranger@example.com", role="user")
ADMIN = CallerIdentity(user_id=4, username="admin@example.com", role="admin")


@pytest.mark.parametrize(
    "owner_id,supplier_id,caller,expected",
    [
        (1, 2, OWNER, True),
        (1, 2, SUPPLIER, True),
        (1, 2, ADMIN, True),
        (None, None, ADMIN, True),
        (1, 2, STRANGER, False),
        (1, None, SUPPLIER, False),
        (1, 3, CallerIdentity(user_id=3, username="user3@example.com", role="user"), False),
        (1, 2, None, False),
        (None, None, CallerIdentity(user_id=None, username="anonymous", role="user"), False),
    ],
)
def test_can_modify(owner_id, supplier_id, caller, expected):
    assert can_modify(owner_id, supplier_id, caller) is expected


def test_ensure_can_modify_raises_for_strangers():
    with pytest.raises(AccessDenied, match="Only owner, supplier, or admin"):
        ensure_can_modify(1, 2, STRANGER)


@pytest.fixture
def product(db_session):
    now = datetime.now(timezone.utc)
    item = Product(
        name="Desk Lamp",
        description="LED",
        price=Decimal("24.50"),
        stock_quantity=10,
        owner_id=OWNER.user_id,
        supplier_id=SUPPLIER.user_id,
        created_at=now,
        updated_at=now,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture
def storage(tmp_path):
    return FileStorage(tmp_path / "uploads")


def test_supplier_updates_product(db_session, product):
    updated = product_service.update_product(db_session, product.id, {"price": "19.99", "stock_quantity": 3}, SUPPLIER)

    assert updated.price == Decimal("19.99")
    assert updated.stock_quantity == 3


def test_stranger_cannot_update(db_session, product):
    with pytest.raises(AccessDenied):
        product_service.update_product(db_session, product.id, {"name": "Hijacked"}, STRANGER)

    db_session.refresh(product)
    assert product.name == "Desk Lamp"


def test_update_reports_every_violation(db_session, product):
    with pytest.raises(ValidationError) as excinfo:
        product_service.update_product(db_session, product.id, {"name": " ", "price": "abc"}, OWNER)

    assert excinfo.value.violations == ["Product name is required", "Price must be a number"]


def test_update_rejects_unknown_fields(db_session, product):
    with pytest.raises(ValidationError, match="Unknown product fields: owner_id"):
        product_service.update_product(db_session, product.id, {"owner_id": 3}, OWNER)


def test_missing_product_is_not_found(db_session):
    with pytest.raises(NotFound):
        product_service.delete_product(db_session, 404, ADMIN)


def test_admin_deletes_product_and_image(db_session, product, storage):
    product_service.attach_image(db_session, product.id, OWNER, storage, "lamp.png", b"\x89PNG", "image/png")
    image_file = storage.root / product.image_path.rsplit("/", 1)[-1]
    assert image_file.is_file()

    product_service.delete_product(db_session, product.id, ADMIN, storage)

    assert not image_file.exists()
    assert product_service.list_products(db_session) == []


def test_attach_image_replaces_previous_file(db_session, product, storage):
    first = product_service.attach_image(db_session, product.id, OWNER, storage, "a.png", b"one", "image/png").image_path
    second = product_service.attach_image(db_session, product.id, OWNER, storage, "b.jpg", b"two", "image/jpeg").image_path

    assert first != second
    assert second.endswith(".jpg")
    assert [p.name for p in storage.root.iterdir() if p.is_file()] == [second.rsplit("/", 1)[-1]]


def test_stranger_cannot_attach_image(db_session, product, storage):
    with pytest.raises(AccessDenied):
        product_service.attach_image(db_session, product.id, STRANGER, storage, "x.png", b"x", "image/png")


def test_list_products_filters_by_owner(db_session, product):
    assert product_service.list_products(db_session, owner_id=OWNER.user_id) == [product]
    assert product_service.list_products(db_session, owner_id=STRANGER.user_id) == []
    assert product_service.list_products(db_session, supplier_id=SUPPLIER.user_id) == [product]
