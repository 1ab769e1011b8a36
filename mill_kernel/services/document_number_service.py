"""
DocumentNumberService -- human-readable document numbers.

Responsibility:
    Formats ``{PREFIX}-{companyCode}-{YYYYMMDD}-{seq}`` numbers for scrap
    records and stock movements.  The sequence part comes from a locked
    counter named after the prefix, company code and day, so it restarts
    at 1 every day for every company.

Architecture position:
    Kernel > Services.  Used by the scrap module and StockMovementService.

Invariants enforced:
    - Numbers are unique under sequential and concurrent calls as long as
      all numbers are issued through this service.  The unique constraints
      on the document tables catch anything inserted around it.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from mill_kernel.db.types import to_uuid
from mill_kernel.domain.clock import Clock
from mill_kernel.logging_config import get_logger
from mill_kernel.models.company import Company
from mill_kernel.services.base import BaseService
from mill_kernel.services.sequence_service import SequenceService

logger = get_logger("services.document_number")

SCRAP_PREFIX = "SCRAP"
MOVEMENT_PREFIX = "MOV"
DEFAULT_COMPANY_CODE = "COMP"


class DocumentNumberService(BaseService[Company]):
    """Allocates per-company, per-day document numbers."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        fallback_company_code: str = DEFAULT_COMPANY_CODE,
        sequence_width: int = 4,
        scrap_prefix: str = SCRAP_PREFIX,
        movement_prefix: str = MOVEMENT_PREFIX,
    ):
        super().__init__(session, clock)
        self._sequences = SequenceService(session)
        self._fallback_company_code = fallback_company_code
        self._sequence_width = sequence_width
        self._scrap_prefix = scrap_prefix
        self._movement_prefix = movement_prefix

    def company_code(self, company_id: UUID | str) -> str:
        """Company code for numbering; the fallback code if none is set."""
        try:
            company = self.session.get(Company, to_uuid(company_id))
        except ValueError:
            company = None
        if company is None or not company.company_code:
            return self._fallback_company_code
        return company.company_code

    def next_number(self, prefix: str, company_id: UUID | str) -> str:
        code = self.company_code(company_id)
        day = self.clock.today_stamp()
        seq = self._sequences.next_value(f"{prefix}-{code}-{day}")
        number = f"{prefix}-{code}-{day}-{seq:0{self._sequence_width}d}"
        logger.debug(
            "document_number_allocated",
            extra={"prefix": prefix, "document_number": number},
        )
        return number

    def next_scrap_number(self, company_id: UUID | str) -> str:
        return self.next_number(self._scrap_prefix, company_id)

    def next_movement_number(self, company_id: UUID | str) -> str:
        return self.next_number(self._movement_prefix, company_id)
