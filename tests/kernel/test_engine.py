"""Tests for engine lifecycle and the transactional session scope."""

import pytest
from sqlalchemy import func, select

from mill_kernel.db import engine as engine_module
from mill_kernel.db.engine import get_engine, get_session, session_scope
from mill_kernel.models import Company


def _company_count(session) -> int:
    count = session.execute(select(func.count(Company.id))).scalar_one()
    session.rollback()
    return count


class TestSessionScope:

    def test_commits_on_success(self, db_engine, session, test_actor_id):
        with session_scope() as scoped:
            scoped.add(Company(company_code="SCOP", name="Scoped", created_by_id=test_actor_id))

        assert _company_count(session) == 1

    def test_rolls_back_on_error(self, db_engine, session, test_actor_id, captured_logs):
        with pytest.raises(RuntimeError):
            with session_scope() as scoped:
                scoped.add(Company(company_code="SCOP", name="Scoped", created_by_id=test_actor_id))
                scoped.flush()
                raise RuntimeError("abort")

        assert _company_count(session) == 0
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())


class TestEngineLifecycle:

    def test_sqlite_in_memory(self, db_engine):
        assert get_engine().dialect.name == "sqlite"

    def test_uninitialized_engine(self, monkeypatch):
        monkeypatch.setattr(engine_module, "_engine", None)
        monkeypatch.setattr(engine_module, "_SessionFactory", None)

        with pytest.raises(RuntimeError, match="Engine not initialized"):
            get_engine()
        with pytest.raises(RuntimeError, match="Engine not initialized"):
            get_session()
