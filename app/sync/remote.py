"""
Remote store capability and its row-oriented SQL backend.

The session only talks to ``RemoteStore``. ``SqlRemoteStore`` keeps one row
per loan (upserted by loan id) and one row per user (upserted by
case-insensitive name) in any SQLAlchemy-supported database, e.g. a hosted
Postgres instance shared by every device.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List

from pydantic import ValidationError as SchemaError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.db.database import make_engine, make_session_factory, session_scope
from app.db.models import LoanRecord, RemoteBase, UserRecord
from app.exceptions import RemoteUnavailableError
from app.schemas import LoanAccount, RemoteConfig, RemoteSnapshot, UserAccount

logger = logging.getLogger(__name__)


class RemoteStore(ABC):
    """Authoritative store shared by all devices.

    Every method raises ``RemoteUnavailableError`` on failure.
    """

    @abstractmethod
    async def pull(self) -> RemoteSnapshot:
        """Fetch the full loan and user collections."""

    @abstractmethod
    async def push_loans(self, loans: List[LoanAccount]) -> None:
        """Write the given loans."""

    @abstractmethod
    async def push_users(self, users: List[UserAccount]) -> None:
        """Write the given users; the collection replaces the remote one."""

    @abstractmethod
    async def delete_loan(self, loan_id: str) -> None:
        """Remove one loan by its stable id."""


def loan_to_record(loan: LoanAccount, record: LoanRecord) -> LoanRecord:
    record.id = loan.id
    record.loan_id = loan.loan_id
    record.user_name = loan.user_name
    record.principal_amount = loan.principal_amount
    record.total_payable = loan.total_payable
    record.interest_rate = loan.interest_rate
    record.total_interest = loan.total_interest
    record.start_date = loan.start_date
    record.next_due_date = loan.next_due_date
    record.total_installments = loan.total_installments
    record.paid_installments = loan.paid_installments
    record.status = loan.status
    record.installments = [i.model_dump(mode="json") for i in loan.installments]
    return record


def record_to_loan(record: LoanRecord) -> LoanAccount:
    return LoanAccount(
        id=record.id,
        loan_id=record.loan_id,
        user_name=record.user_name,
        principal_amount=record.principal_amount,
        total_payable=record.total_payable,
        interest_rate=record.interest_rate,
        total_interest=record.total_interest,
        start_date=record.start_date,
        next_due_date=record.next_due_date,
        total_installments=record.total_installments,
        paid_installments=record.paid_installments,
        status=record.status,
        installments=record.installments or [],
    )


class SqlRemoteStore(RemoteStore):
    """Row-oriented remote store on a SQLAlchemy engine.

    SQLAlchemy calls are blocking, so each operation runs in a worker thread
    to keep the session's event loop responsive.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._factory = make_session_factory(engine)
        self._schema_ready = False

    @classmethod
    def from_config(cls, config: RemoteConfig) -> "SqlRemoteStore":
        return cls(make_engine(config.database_url))

    def _ensure_schema(self):
        if not self._schema_ready:
            RemoteBase.metadata.create_all(bind=self.engine)
            self._schema_ready = True

    async def _run(self, operation, *args):
        try:
            return await asyncio.to_thread(operation, *args)
        except SQLAlchemyError as e:
            logger.error(f"Remote store error: {str(e)}")
            raise RemoteUnavailableError("Remote store unreachable", {"error": str(e)})

    # === Blocking implementations ===

    def _pull_sync(self) -> RemoteSnapshot:
        self._ensure_schema()
        with session_scope(self._factory) as db:
            loan_rows = (
                db.query(LoanRecord)
                .order_by(LoanRecord.position, LoanRecord.created_at.desc())
                .all()
            )
            user_rows = db.query(UserRecord).order_by(UserRecord.position, UserRecord.created_at).all()
            try:
                return RemoteSnapshot(
                    loans=[record_to_loan(r) for r in loan_rows],
                    users=[
                        UserAccount(name=r.name, phone=r.phone or "", pin=r.pin, role=r.role)
                        for r in user_rows
                    ],
                )
            except SchemaError as e:
                raise RemoteUnavailableError(
                    "Remote store returned malformed records", {"error": str(e)}
                )

    def _push_loans_sync(self, loans: List[LoanAccount]) -> None:
        self._ensure_schema()
        with session_scope(self._factory) as db:
            for position, loan in enumerate(loans):
                record = db.get(LoanRecord, loan.id)
                if record is None:
                    record = LoanRecord()
                    db.add(record)
                loan_to_record(loan, record)
                record.position = position

    def _push_users_sync(self, users: List[UserAccount]) -> None:
        self._ensure_schema()
        with session_scope(self._factory) as db:
            existing = {row.name.lower(): row for row in db.query(UserRecord).all()}
            wanted = {user.name.lower() for user in users}

            for key, row in existing.items():
                if key not in wanted:
                    db.delete(row)

            for position, user in enumerate(users):
                row = existing.get(user.name.lower())
                if row is not None and row.name != user.name:
                    # Primary key casing changed; replace the row
                    db.delete(row)
                    db.flush()
                    row = None
                if row is None:
                    row = UserRecord(name=user.name)
                    db.add(row)
                row.phone = user.phone
                row.pin = user.pin
                row.role = user.role
                row.position = position

    def _delete_loan_sync(self, loan_id: str) -> None:
        self._ensure_schema()
        with session_scope(self._factory) as db:
            db.query(LoanRecord).filter(LoanRecord.id == loan_id).delete()

    # === RemoteStore ===

    async def pull(self) -> RemoteSnapshot:
        return await self._run(self._pull_sync)

    async def push_loans(self, loans: List[LoanAccount]) -> None:
        await self._run(self._push_loans_sync, list(loans))

    async def push_users(self, users: List[UserAccount]) -> None:
        await self._run(self._push_users_sync, list(users))

    async def delete_loan(self, loan_id: str) -> None:
        await self._run(self._delete_loan_sync, loan_id)

