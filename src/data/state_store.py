"""
Finance State Store.

Explicit state container for the dashboard data: financial records, team
members and saved profit shares. The store is created by the caller and
passed to whatever needs it; there is no module-level instance.

State is held as an immutable FinanceSnapshot. Every update builds a new
snapshot and swaps it in whole, so a reader never sees a half-applied change.
"""

from typing import List, Tuple, Optional, Iterable, Any
from dataclasses import dataclass, replace
import logging

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import DEFAULT_MONTHS_BACK
from engines.errors import ValidationError
from engines.period_engine import (
    FinancialRecord, Period, PeriodType, aggregate_financial_data, aggregate_over_ranges
)
from engines.distribution_engine import (
    TeamMember, TeamMemberShare, validate_share, validate_share_total, distribute
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinanceSnapshot:
    """Immutable view of the finance state at one point in time."""
    records: Tuple[FinancialRecord, ...] = ()
    team_members: Tuple[TeamMember, ...] = ()
    profit_shares: Tuple[TeamMemberShare, ...] = ()


class FinanceStateStore:
    """
    Holds the current FinanceSnapshot and applies validated updates.

    Args:
        persistence: Optional port with get_financial_records(),
            get_team_members(), get_profit_shares() and
            replace_profit_shares(project_id, shares), such as
            data.db_adapter.DatabaseConnection
        snapshot: Initial state (empty by default)

    Example:
        >>> store = FinanceStateStore()
        >>> store.update_profit_shares([
        ...     TeamMemberShare("1", "Ana", 60, project_id="p1"),
        ...     TeamMemberShare("2", "Bo", 40, project_id="p1"),
        ... ], total_revenue=10000)
    """

    def __init__(self, persistence: Any = None, snapshot: Optional[FinanceSnapshot] = None):
        self.persistence = persistence
        self._snapshot = snapshot or FinanceSnapshot()

    @property
    def snapshot(self) -> FinanceSnapshot:
        return self._snapshot

    @property
    def records(self) -> Tuple[FinancialRecord, ...]:
        return self._snapshot.records

    @property
    def team_members(self) -> Tuple[TeamMember, ...]:
        return self._snapshot.team_members

    @property
    def profit_shares(self) -> Tuple[TeamMemberShare, ...]:
        return self._snapshot.profit_shares

    def load(self) -> FinanceSnapshot:
        """Replace the state with everything the persistence port holds."""
        if self.persistence is None:
            raise RuntimeError("No persistence configured for this store")

        self._snapshot = FinanceSnapshot(
            records=tuple(self.persistence.get_financial_records()),
            team_members=tuple(self.persistence.get_team_members()),
            profit_shares=tuple(self.persistence.get_profit_shares())
        )
        logger.info(
            f"Loaded {len(self.records)} records, {len(self.team_members)} team members "
            f"and {len(self.profit_shares)} profit shares"
        )
        return self._snapshot

    def replace_records(self, records: Iterable[FinancialRecord]) -> None:
        self._snapshot = replace(self._snapshot, records=tuple(records))
        logger.debug(f"Record snapshot replaced ({len(self.records)} records)")

    def replace_team_members(self, members: Iterable[TeamMember]) -> None:
        self._snapshot = replace(self._snapshot, team_members=tuple(members))
        logger.debug(f"Team snapshot replaced ({len(self.team_members)} members)")

    # ==========================================================================
    # DERIVED VIEWS
    # ==========================================================================

    def aggregate(
        self,
        period_type: Any = PeriodType.MONTHLY,
        rolling: bool = False,
        months_back: int = DEFAULT_MONTHS_BACK
    ) -> List[Period]:
        """
        Aggregate the current records by period.

        By default only periods holding records are returned. With rolling
        set, the window of the last months_back months is returned instead,
        empty periods included.
        """
        if rolling:
            return aggregate_over_ranges(self.records, period_type, months_back)
        return aggregate_financial_data(self.records, period_type)

    def get_profit_shares_by_project(self, project_id: Optional[str]) -> List[TeamMemberShare]:
        return [share for share in self.profit_shares if share.project_id == project_id]

    # ==========================================================================
    # PROFIT SHARE UPDATES
    # ==========================================================================

    def update_profit_shares(
        self,
        shares: Iterable[TeamMemberShare],
        total_revenue: Optional[float] = None
    ) -> List[TeamMemberShare]:
        """
        Validate a project's profit shares and replace the stored ones.

        Steps, all before anything is written:
        1. every share's percentage is in [0, 100] and its amount (if any)
           is non-negative;
        2. amounts are recomputed with distribute() when total_revenue is given;
        3. percentages sum to 100 within the tolerance;
        4. all shares carry the same project id.

        The persistence port (if any) is written first; the in-memory
        snapshot is only swapped after it succeeds. Shares of other projects
        are kept. Shares without a project id replace every stored share.

        Returns:
            The saved shares

        Raises:
            ValidationError: if any check fails; nothing is changed
        """
        shares = list(shares)

        for share in shares:
            validate_share(share)

        if total_revenue is not None:
            shares = distribute(total_revenue, shares)

        validate_share_total(shares)

        project_ids = {share.project_id for share in shares}
        if len(project_ids) > 1:
            raise ValidationError(
                "Profit shares must all belong to the same project", field="project_id"
            )
        project_id = project_ids.pop()

        if self.persistence is not None:
            self.persistence.replace_profit_shares(project_id, shares)

        if project_id is None:
            kept: Tuple[TeamMemberShare, ...] = ()
        else:
            kept = tuple(s for s in self.profit_shares if s.project_id != project_id)

        self._snapshot = replace(self._snapshot, profit_shares=kept + tuple(shares))
        logger.info(f"Saved {len(shares)} profit shares for project {project_id}")
        return shares
