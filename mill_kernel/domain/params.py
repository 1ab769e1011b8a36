"""Validation of caller-supplied parameters and tenant ownership."""

from uuid import UUID

from mill_kernel.db.types import to_uuid
from mill_kernel.exceptions import (
    CrossTenantAccessError,
    MissingParameterError,
    ValidationError,
)
from mill_kernel.logging_config import get_logger

logger = get_logger("domain.params")


def require_id(value: UUID | str | None, parameter: str) -> UUID:
    """
    Return ``value`` as a UUID.

    Raises:
        MissingParameterError: value is None or blank.
        ValidationError: value is not a well-formed id.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingParameterError(parameter)
    try:
        return to_uuid(value.strip() if isinstance(value, str) else value)
    except ValueError:
        raise ValidationError(f"{parameter} is not a valid id") from None


def require_text(value: str | None, parameter: str) -> str:
    """Return ``value`` stripped; blank or None raises MissingParameterError."""
    if value is None or not str(value).strip():
        raise MissingParameterError(parameter)
    return str(value).strip()


def ensure_tenant(entity_type: str, entity_id, owner_company_id: UUID, company_id: UUID) -> None:
    """
    Refuse access to an entity owned by another company.

    Raises:
        CrossTenantAccessError: owner_company_id != company_id.
    """
    if owner_company_id != company_id:
        logger.warning(
            "cross_tenant_access_blocked",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "company_id": str(company_id),
            },
        )
        raise CrossTenantAccessError(entity_type, str(entity_id), str(company_id))
