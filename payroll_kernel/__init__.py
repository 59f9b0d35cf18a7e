"""
Payroll Kernel

The persistence and state core of the payroll computation engine:
- Effective-dated salary component store (history is never overwritten)
- Payroll period lifecycle with a lock that freezes financial results
- Loan deduction ledger with idempotent per-period application
- Attendance summary boundary guarded by period state
- Typed errors and structured logging shared by every layer
"""

__version__ = "0.1.0"
