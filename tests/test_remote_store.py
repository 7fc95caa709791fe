"""
Tests for the SQL remote store.
"""

import pytest
from datetime import date
from decimal import Decimal

from app.calculations.amortization import build_loan
from app.db.database import make_engine, make_session_factory, session_scope
from app.db.models import LoanRecord, UserRecord
from app.exceptions import RemoteUnavailableError
from app.schemas import LoanStatus, RemoteConfig, UserAccount, UserRole
from app.sync.remote import SqlRemoteStore
from app.sync.state import toggle_installment

RATE = Decimal("0.0142")


@pytest.fixture
def store():
    return SqlRemoteStore(make_engine("sqlite://"))


def make_loan(user_name="Rahim", principal=10000):
    return build_loan(user_name, principal, date(2025, 1, 15), 3, RATE)


class TestSqlRemoteStore:
    """Test pull, push and delete against an in-memory database."""

    @pytest.mark.anyio
    async def test_pull_empty_store(self, store):
        snapshot = await store.pull()
        assert snapshot.loans == []
        assert snapshot.users == []

    @pytest.mark.anyio
    async def test_loans_round_trip_in_order(self, store):
        loans = [make_loan("Newest"), make_loan("Middle"), make_loan("Oldest")]
        await store.push_loans(loans)

        snapshot = await store.pull()
        assert [l.user_name for l in snapshot.loans] == ["Newest", "Middle", "Oldest"]
        assert snapshot.loans[0] == loans[0]

    @pytest.mark.anyio
    async def test_push_upserts_by_id(self, store):
        loan = make_loan()
        await store.push_loans([loan])

        for installment in loan.installments:
            loan = toggle_installment(loan, installment.id)
        await store.push_loans([loan])

        snapshot = await store.pull()
        assert len(snapshot.loans) == 1
        assert snapshot.loans[0].status == LoanStatus.paid
        assert snapshot.loans[0].paid_installments == 3

    @pytest.mark.anyio
    async def test_delete_loan(self, store):
        keep, drop = make_loan("Keep"), make_loan("Drop")
        await store.push_loans([keep, drop])

        await store.delete_loan(drop.id)
        await store.delete_loan("not-there")

        snapshot = await store.pull()
        assert [l.id for l in snapshot.loans] == [keep.id]

    @pytest.mark.anyio
    async def test_push_users_mirrors_collection(self, store):
        admin = UserAccount(name="Admin", pin="1234", role=UserRole.admin)
        rahim = UserAccount(name="Rahim", pin="5678", phone="01722222222")
        await store.push_users([admin, rahim])

        await store.push_users([admin])

        snapshot = await store.pull()
        assert snapshot.users == [admin]

    @pytest.mark.anyio
    async def test_push_users_updates_existing(self, store):
        await store.push_users([UserAccount(name="Rahim", pin="5678")])
        await store.push_users([UserAccount(name="RAHIM", pin="0000", phone="0171")])

        snapshot = await store.pull()
        assert len(snapshot.users) == 1
        assert snapshot.users[0].name == "RAHIM"
        assert snapshot.users[0].pin == "0000"
        assert snapshot.users[0].phone == "0171"

    @pytest.mark.anyio
    async def test_database_error_is_reported(self, tmp_path):
        missing = tmp_path / "missing" / "remote.db"
        store = SqlRemoteStore.from_config(RemoteConfig(database_url=f"sqlite:///{missing}"))

        with pytest.raises(RemoteUnavailableError):
            await store.pull()

    @pytest.mark.anyio
    async def test_malformed_rows_are_reported(self, store):
        await store.pull()
        with session_scope(make_session_factory(store.engine)) as db:
            db.add(UserRecord(name="Bad", phone="", pin="12", role=UserRole.user))

        with pytest.raises(RemoteUnavailableError):
            await store.pull()

    @pytest.mark.anyio
    async def test_installments_stored_with_loan(self, store):
        loan = make_loan()
        await store.push_loans([loan])

        with session_scope(make_session_factory(store.engine)) as db:
            record = db.get(LoanRecord, loan.id)
            assert len(record.installments) == 3
            assert record.loan_id == loan.loan_id
