"""
Loan Calculation Engine

Pure functions turning loan parameters into repayment schedules and totals.
"""

from app.calculations import amortization

__all__ = ["amortization"]
