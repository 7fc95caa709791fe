"""
Seed a demo borrower and loan on this device.

Requires an admin account (run create_initial_admin.py first).
"""
import asyncio
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.schemas import UserRole
from app.sync.session import get_sync_session

DEMO_BORROWER = "Rahim"


async def main():
    session = get_sync_session()

    admin = next((u for u in session.users if u.role == UserRole.admin), None)
    if admin is None:
        print("No admin account found! Run create_initial_admin.py first.")
        return

    if session.state.find_user(DEMO_BORROWER) is None:
        session.add_user(admin, DEMO_BORROWER, "1111", phone="01700000000")
        print(f"Added borrower: {DEMO_BORROWER}")

    if any(loan.user_name == DEMO_BORROWER for loan in session.loans):
        print(f"{DEMO_BORROWER} already has a loan. Skipping.")
        return

    loan = session.create_loan(admin, DEMO_BORROWER, 10000, date.today(), 6)
    print(f"Created loan {loan.loan_id}: principal {loan.principal_amount}, "
          f"total payable {loan.total_payable}")
    for installment in loan.installments:
        print(f"  {installment.due_date}  {installment.amount}  "
              f"(principal {installment.principal_part}, interest {installment.interest_part})")

    await session.flush()


if __name__ == "__main__":
    asyncio.run(main())
