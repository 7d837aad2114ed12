"""
Data Layer Package.

This package handles all database interactions and the in-memory finance state.
"""

from .db_adapter import (
    DatabaseConnection,
    FinancialRecordRow,
    TeamMemberRow,
    ProfitShareRow
)

from .state_store import (
    FinanceSnapshot,
    FinanceStateStore
)

__all__ = [
    "DatabaseConnection",
    "FinancialRecordRow",
    "TeamMemberRow",
    "ProfitShareRow",
    "FinanceSnapshot",
    "FinanceStateStore"
]
