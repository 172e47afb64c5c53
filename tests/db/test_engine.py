"""
Tests for pharmacy_kernel.db.engine: transactional scope and timeout
classification.
"""

from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as SATimeoutError

from pharmacy_kernel.db.engine import is_store_timeout, session_scope
from pharmacy_kernel.models.vendor import Vendor


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__("canceling statement")
        self.pgcode = pgcode


def _vendor_count(session_factory) -> int:
    with session_factory() as s:
        return s.execute(select(func.count(Vendor.id))).scalar_one()


class TestSessionScope:

    def test_commits_on_success(self, session_factory):
        with session_scope() as session:
            session.add(Vendor(name="Acme", company="Acme Ltd", created_by_id=uuid4()))

        assert _vendor_count(session_factory) == 1

    def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(
                    Vendor(name="Acme", company="Acme Ltd", created_by_id=uuid4())
                )
                session.flush()
                raise RuntimeError("abort")

        assert _vendor_count(session_factory) == 0


class TestIsStoreTimeout:

    def test_pool_timeout(self):
        assert is_store_timeout(SATimeoutError("pool exhausted"))

    @pytest.mark.parametrize("message", ["database is locked", "database is busy"])
    def test_sqlite_lock(self, message):
        assert is_store_timeout(OperationalError("BEGIN", {}, Exception(message)))

    @pytest.mark.parametrize("pgcode", ["55P03", "57014"])
    def test_postgres_lock_and_statement_timeouts(self, pgcode):
        assert is_store_timeout(OperationalError("UPDATE", {}, _PgError(pgcode)))

    def test_other_errors(self):
        assert not is_store_timeout(OperationalError("SELECT", {}, _PgError("42P01")))
        assert not is_store_timeout(
            IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        )
        assert not is_store_timeout(ValueError("database is locked"))
