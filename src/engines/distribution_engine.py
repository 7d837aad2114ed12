"""
Profit and Salary Distribution Engine.

Two separate allocation strategies are provided and are not
reconciled with each other:

- PERCENTAGE: each team member receives percentage / 100 of the revenue
  (see distribute). Shares are applied independently; they are only
  required to sum to 100% when saved (see validate_share_total).
- SALARY_PROFIT_SPLIT: half of the revenue is a salary pool and the other
  half is split equally across members (see calculate_profit_shares).

The module also covers budget allocation across the named company funds and
fund-account balances.
"""

from typing import List, Dict, Any, Optional, Iterable
from dataclasses import dataclass, replace, asdict
from datetime import datetime, timezone
from enum import Enum
import logging
import math
import uuid

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import (
    SHARE_TOTAL_TOLERANCE, SALARY_POOL_RATIO, DEFAULT_MONTHLY_SALARY,
    HOURS_PER_MONTH, BUDGET_FUNDS
)

from .errors import ValidationError

logger = logging.getLogger(__name__)


class DistributionStrategy(Enum):
    """Available profit distribution strategies."""
    PERCENTAGE = "percentage"
    SALARY_PROFIT_SPLIT = "salary_profit_split"


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


# ==============================================================================
# DATA STRUCTURES
# ==============================================================================

@dataclass(frozen=True)
class TeamMember:
    """A team member as provided by the team-member source."""
    id: str
    name: str
    availability: float = 100


@dataclass(frozen=True)
class TeamMemberShare:
    """A team member's percentage of a project's profit and its amount."""
    member_id: str
    member_name: str
    percentage: float
    amount: Optional[float] = None
    project_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamMemberShare":
        """Build a share from a plain dict; camelCase keys are accepted."""
        return cls(
            member_id=str(data.get("member_id", data.get("memberId", ""))),
            member_name=data.get("member_name", data.get("memberName", "")),
            percentage=data.get("percentage"),
            amount=data.get("amount"),
            project_id=data.get("project_id", data.get("projectId"))
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ==============================================================================
# PERCENTAGE STRATEGY
# ==============================================================================

def validate_revenue(total_revenue: Any) -> None:
    """Raise ValidationError unless revenue is a finite, non-negative number."""
    if not _is_finite_number(total_revenue) or total_revenue < 0:
        raise ValidationError(
            "Total revenue must be a non-negative numeric value", field="total_revenue"
        )


def validate_share(share: TeamMemberShare) -> None:
    """
    Check a single share's percentage (and amount, when set).

    Raises:
        ValidationError: naming the member whose values are out of range
    """
    if not _is_finite_number(share.percentage) or not 0 <= share.percentage <= 100:
        raise ValidationError(
            f"Percentage for {share.member_name} must be between 0 and 100",
            member_id=share.member_id,
            member_name=share.member_name,
            field="percentage"
        )

    if share.amount is not None and (not _is_finite_number(share.amount) or share.amount < 0):
        raise ValidationError(
            f"Amount for {share.member_name} must be a non-negative numeric value",
            member_id=share.member_id,
            member_name=share.member_name,
            field="amount"
        )


def distribute(
    total_revenue: float,
    shares: Iterable[TeamMemberShare]
) -> List[TeamMemberShare]:
    """
    Fill in each share's amount as percentage / 100 * revenue.

    Shares are not normalised: if the percentages do not add up to 100 the
    amounts do not add up to the revenue either.

    Args:
        total_revenue: Revenue to distribute (finite, >= 0)
        shares: TeamMemberShare objects; amounts are ignored

    Returns:
        New TeamMemberShare objects with amounts set; inputs are untouched

    Raises:
        ValidationError: on invalid revenue or an out-of-range percentage

    Example:
        >>> shares = [TeamMemberShare("1", "Ana", 60), TeamMemberShare("2", "Bo", 40)]
        >>> [s.amount for s in distribute(10000, shares)]
        [6000.0, 4000.0]
    """
    validate_revenue(total_revenue)

    distributed = []
    for share in shares:
        validate_share(replace(share, amount=None))
        distributed.append(replace(share, amount=share.percentage / 100 * total_revenue))

    logger.debug(f"Distributed {total_revenue} across {len(distributed)} shares")
    return distributed


def calculate_share_total(shares: Iterable[TeamMemberShare]) -> float:
    return sum(share.percentage for share in shares)


def validate_share_total(
    shares: Iterable[TeamMemberShare],
    tolerance: float = SHARE_TOTAL_TOLERANCE
) -> None:
    """
    Require the shares' percentages to sum to 100 within the tolerance.

    Raises:
        ValidationError: naming the actual total, e.g. "total=90%"
    """
    total = calculate_share_total(shares)
    if abs(total - 100) > tolerance:
        raise ValidationError(
            f"Profit share percentages must sum to 100%, got total={total:g}%",
            field="percentage"
        )


# ==============================================================================
# SALARY / PROFIT SPLIT STRATEGY
# ==============================================================================

def calculate_profit_shares(
    total_revenue: float,
    members: Iterable[TeamMember],
    salaries: Optional[Dict[str, float]] = None,
    salary_pool_ratio: float = SALARY_POOL_RATIO,
    hours_per_month: int = HOURS_PER_MONTH
) -> Dict[str, Any]:
    """
    Split revenue into a salary pool and an equally shared profit pool.

    Half of the revenue (by default) funds salaries and the rest is divided
    equally across the members. This policy is independent of the
    percentage-based distribute().

    Args:
        total_revenue: Revenue to split (finite, >= 0)
        members: TeamMember objects
        salaries: Monthly salary per member id (DEFAULT_MONTHLY_SALARY when missing)
        salary_pool_ratio: Fraction of revenue reserved for salaries
        hours_per_month: Hours used to derive an hourly rate

    Returns:
        Dictionary with 'salary_budget', 'profit_budget',
        'total_salary_allocated', 'remaining_budget', 'profit_per_member'
        and 'members' (per-member salary, profit share, total compensation
        and hourly rate)
    """
    validate_revenue(total_revenue)
    members = list(members)
    salaries = salaries or {}

    salary_budget = total_revenue * salary_pool_ratio
    profit_budget = total_revenue - salary_budget
    profit_per_member = profit_budget / len(members) if members else 0

    compensation = []
    for member in members:
        salary = salaries.get(member.id, DEFAULT_MONTHLY_SALARY)
        total = salary + profit_per_member
        compensation.append({
            "member_id": member.id,
            "member_name": member.name,
            "salary": salary,
            "profit_share": profit_per_member,
            "total_compensation": total,
            "hourly_rate": total / hours_per_month
        })

    total_salary_allocated = sum(c["salary"] for c in compensation)

    if total_salary_allocated > salary_budget:
        logger.warning(
            f"Allocated salaries {total_salary_allocated} exceed the salary pool {salary_budget}"
        )

    return {
        "strategy": DistributionStrategy.SALARY_PROFIT_SPLIT.value,
        "salary_budget": salary_budget,
        "profit_budget": profit_budget,
        "total_salary_allocated": total_salary_allocated,
        "remaining_budget": salary_budget - total_salary_allocated,
        "profit_per_member": profit_per_member,
        "members": compensation
    }


# ==============================================================================
# BUDGET ALLOCATION
# ==============================================================================

@dataclass(frozen=True)
class BudgetAllocation:
    id: str
    total_budget: float
    allocations: Dict[str, float]
    created_at: str
    status: str
    user_id: str


def create_budget_allocation(
    total_budget: float,
    percentages: Dict[str, float],
    user_id: str,
    tolerance: float = SHARE_TOTAL_TOLERANCE
) -> BudgetAllocation:
    """
    Allocate a budget across the named funds.

    Funds missing from `percentages` get 0%. Percentages must each be in
    [0, 100] and together sum to 100.

    Raises:
        ValidationError: on a negative budget, a bad percentage or a bad total
    """
    if not _is_finite_number(total_budget) or total_budget < 0:
        raise ValidationError("Total budget must be a non-negative number", field="total_budget")

    allocations = {}
    total_percentage = 0
    for fund in BUDGET_FUNDS:
        percentage = percentages.get(fund, 0)
        if not _is_finite_number(percentage) or not 0 <= percentage <= 100:
            raise ValidationError(f"Fund {fund} percentage must be between 0 and 100", field=fund)
        allocations[fund] = percentage / 100 * total_budget
        total_percentage += percentage

    if abs(total_percentage - 100) > tolerance:
        raise ValidationError(
            f"Fund percentages must sum to 100%, got total={total_percentage:g}%",
            field="percentages"
        )

    allocation = BudgetAllocation(
        id=f"allocation-{uuid.uuid4().hex[:12]}",
        total_budget=total_budget,
        allocations=allocations,
        created_at=datetime.now(timezone.utc).isoformat(),
        status="pending",
        user_id=user_id
    )
    logger.info(f"Created budget allocation {allocation.id} for {total_budget}")
    return allocation


def validate_budget_allocation(allocation: BudgetAllocation) -> bool:
    if not (allocation.id and allocation.created_at and allocation.user_id):
        return False

    for fund in BUDGET_FUNDS:
        amount = allocation.allocations.get(fund)
        if not _is_finite_number(amount) or amount < 0:
            return False

    return True


# ==============================================================================
# FUND ACCOUNTS
# ==============================================================================

@dataclass(frozen=True)
class FundAccount:
    id: str
    name: str
    balance: float
    allocated: float
    percentage: float
    purpose: str


def create_fund_account(name: str, percentage: float, total_budget: float) -> FundAccount:
    """Open a fund account funded with its percentage of the total budget."""
    if not _is_finite_number(percentage) or not 0 <= percentage <= 100:
        raise ValidationError("Fund percentage must be between 0 and 100", field="percentage")

    return FundAccount(
        id=f"fund-{uuid.uuid4().hex[:12]}",
        name=name,
        balance=percentage / 100 * total_budget,
        allocated=0,
        percentage=percentage,
        purpose=f"{name} fund for business operations"
    )


def update_fund_balance(fund: FundAccount, amount: float) -> FundAccount:
    """
    Apply a deposit (positive) or withdrawal (negative) to a fund.

    Raises:
        ValidationError: if the balance would become negative
    """
    new_balance = fund.balance + amount
    if new_balance < 0:
        raise ValidationError("Fund balance cannot be negative", field="balance")

    return replace(fund, balance=new_balance)


def validate_fund_account(fund: FundAccount) -> bool:
    return bool(
        fund.id
        and fund.name
        and _is_finite_number(fund.balance) and fund.balance >= 0
        and _is_finite_number(fund.allocated) and fund.allocated >= 0
        and _is_finite_number(fund.percentage) and 0 <= fund.percentage <= 100
        and fund.purpose
    )
