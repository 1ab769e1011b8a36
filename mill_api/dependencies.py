"""FastAPI dependencies: database session, tenant context and service factories."""

from dataclasses import dataclass
from typing import Generator
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from mill_config import MillConfig
from mill_kernel.domain.clock import Clock
from mill_kernel.domain.params import require_id
from mill_kernel.exceptions import MissingParameterError
from mill_modules.production import StageEntryService
from mill_modules.scrap import ScrapService


@dataclass(frozen=True)
class TenantContext:
    """Company and user of the current request, as verified upstream."""

    company_id: UUID
    user_id: UUID | None

    def require_user(self) -> UUID:
        if self.user_id is None:
            raise MissingParameterError("userId")
        return self.user_id


def get_config(request: Request) -> MillConfig:
    return request.app.state.config


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_db(request: Request) -> Generator[Session, None, None]:
    """One session per request, always closed."""
    session = request.app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


def get_tenant(
    x_company_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> TenantContext:
    """
    Read the tenant headers.

    Authentication happens before this service; the headers are trusted.
    A missing company is a 400, a missing user only fails writes.
    """
    if x_company_id is None or not x_company_id.strip():
        raise MissingParameterError("companyId")
    company_id = require_id(x_company_id, "companyId")
    user_id = require_id(x_user_id, "userId") if x_user_id else None
    return TenantContext(company_id=company_id, user_id=user_id)


def get_scrap_service(
    session: Session = Depends(get_db),
    config: MillConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> ScrapService:
    return ScrapService(
        session,
        clock,
        scrap_config=config.scrap,
        numbering_config=config.numbering,
    )


def get_stage_entry_service(
    session: Session = Depends(get_db),
    config: MillConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> StageEntryService:
    return StageEntryService(session, clock, config=config.production)
