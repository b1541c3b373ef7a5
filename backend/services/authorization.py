import logging

from authentication.identity import CallerIdentity
from services.exceptions import AccessDenied

logger = logging.getLogger(__name__)


def can_modify(owner_id: int | None, supplier_id: int | None, caller: CallerIdentity | None) -> bool:
    """Admins, the owner, and the supplier attached to a resource may change it."""
    if caller is None:
        return False
    if caller.is_admin:
        return True
    if caller.user_id is None:
        return False
    if owner_id is not None and owner_id == caller.user_id:
        return True
    return caller.is_supplier and supplier_id is not None and supplier_id == caller.user_id


def ensure_can_modify(owner_id: int | None, supplier_id: int | None, caller: CallerIdentity | None) -> None:
    if not can_modify(owner_id, supplier_id, caller):
        logger.warning(
            "SECURITY: access denied - caller=%s role=%s owner_id=%s supplier_id=%s",
            caller.username if caller else None,
            caller.role if caller else None,
            owner_id,
            supplier_id,
        )
        raise AccessDenied("Only owner, supplier, or admin can modify this product")
