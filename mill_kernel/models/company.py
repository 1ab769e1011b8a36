"""
Module: mill_kernel.models.company
Responsibility: ORM persistence for the tenant (company) that owns inventory
    items, production stage entries and scrap records.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - company_code is unique.  It is embedded in generated document numbers
      (SCRAP-{company_code}-..., MOV-{company_code}-...), so it should not be
      changed once documents have been issued.

Failure modes:
    - IntegrityError on duplicate company_code (uq_company_code constraint).
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mill_kernel.db.base import TrackedBase


class Company(TrackedBase):
    """
    Tenant that owns all ledger and production records.

    Authentication and company membership are resolved upstream; the kernel
    only reads company_code for document numbering and compares company ids
    for tenant isolation.
    """

    __tablename__ = "companies"

    __table_args__ = (
        UniqueConstraint("company_code", name="uq_company_code"),
    )

    # Short code used in document numbers (e.g., "ACME")
    company_code: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    def __repr__(self) -> str:
        return f"<Company {self.company_code}: {self.name}>"
