"""
Financial Period Aggregation Engine.

This module buckets income/expense records by time period and by project,
and provides the record validation used at creation time.

Everything here is recomputed on demand from the raw records; nothing is
cached between calls.
"""

from typing import List, Dict, Any, Optional, Iterable, Tuple
from dataclasses import dataclass, replace, asdict
from datetime import datetime, date, timezone
from enum import Enum
import calendar
import logging
import math
import uuid

from .errors import ValidationError

logger = logging.getLogger(__name__)


# ==============================================================================
# ENUMS AND CONSTANTS
# ==============================================================================

class RecordType(Enum):
    """Financial record types."""
    INCOME = "income"
    EXPENSE = "expense"


class CostType(Enum):
    """Expense cost classification."""
    FIXED = "fixed"
    VARIABLE = "variable"


class PeriodType(Enum):
    """Time period aggregation options."""
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


RECORD_TYPES = {t.value for t in RecordType}
COST_TYPES = {c.value for c in CostType}


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _as_period_type(period_type: Any) -> PeriodType:
    if isinstance(period_type, PeriodType):
        return period_type
    try:
        return PeriodType(period_type)
    except ValueError:
        raise ValueError(f"Unknown period type: {period_type!r}") from None


def _is_non_negative_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value >= 0
    )


# ==============================================================================
# DATA STRUCTURES
# ==============================================================================

@dataclass(frozen=True)
class FinancialRecord:
    """
    A single income or expense entry.

    Records are immutable; "updating" one produces a new record with the
    same id (see update_financial_record).
    """
    id: str
    type: str
    category: str
    amount: float
    date: Any
    project_id: str
    cost_type: Optional[str] = None
    description: Optional[str] = None
    user_id: Optional[str] = None

    def is_income(self) -> bool:
        return self.type == RecordType.INCOME.value

    def is_expense(self) -> bool:
        return self.type == RecordType.EXPENSE.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FinancialRecord":
        """Build a record from a plain dict; camelCase keys are accepted."""
        return cls(
            id=str(data.get("id", "")),
            type=_enum_value(data.get("type")),
            category=data.get("category", ""),
            amount=data.get("amount", 0),
            date=data.get("date"),
            project_id=data.get("project_id", data.get("projectId", "")),
            cost_type=_enum_value(data.get("cost_type", data.get("costType"))),
            description=data.get("description"),
            user_id=data.get("user_id", data.get("userId"))
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if isinstance(self.date, (date, datetime)):
            data["date"] = self.date.isoformat()
        return data


@dataclass(frozen=True)
class Period:
    """Income/expense totals for one time bucket."""
    period_type: str
    label: str
    start_date: date
    end_date: date
    income: float = 0.0
    expense: float = 0.0

    @property
    def profit(self) -> float:
        return self.income - self.expense

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period_type": self.period_type,
            "label": self.label,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "income": self.income,
            "expense": self.expense,
            "profit": self.profit
        }


@dataclass(frozen=True)
class PeriodRange:
    """A closed date range with a display label."""
    start_date: date
    end_date: date
    label: str

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class ProjectFinancial:
    """Profitability of one project."""
    project_id: str
    project_name: str
    income: float
    fixed_costs: float
    variable_costs: float

    @property
    def profit(self) -> float:
        return self.income - (self.fixed_costs + self.variable_costs)

    @property
    def margin(self) -> float:
        return (self.profit / self.income) * 100 if self.income > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_name": self.project_name,
            "income": self.income,
            "fixed_costs": self.fixed_costs,
            "variable_costs": self.variable_costs,
            "profit": self.profit,
            "margin": self.margin
        }


@dataclass(frozen=True)
class CategoryBreakdown:
    """Expense total for one category."""
    category: str
    amount: float
    cost_type: str
    percentage: float


# ==============================================================================
# DATE HELPERS
# ==============================================================================

def parse_record_date(value: Any) -> Optional[datetime]:
    """
    Parse a record date into a naive UTC datetime.

    Accepts ISO-8601 strings (with or without time and offset), date and
    datetime objects. Returns None for anything missing or unparseable.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _first_of_month(year: int, month: int, offset: int = 0) -> date:
    index = year * 12 + (month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def _last_of_month(start: date, months: int = 1) -> date:
    last = _first_of_month(start.year, start.month, months - 1)
    return date(last.year, last.month, calendar.monthrange(last.year, last.month)[1])


def _bucket_for(day: date, period_type: PeriodType) -> Tuple[str, date, date]:
    if period_type == PeriodType.MONTHLY:
        start = date(day.year, day.month, 1)
        return f"{day.year}-{day.month:02d}", start, _last_of_month(start)
    elif period_type == PeriodType.QUARTERLY:
        quarter = (day.month - 1) // 3 + 1
        start = date(day.year, 3 * quarter - 2, 1)
        return f"{day.year}-Q{quarter}", start, _last_of_month(start, 3)
    else:  # ANNUAL
        return str(day.year), date(day.year, 1, 1), date(day.year, 12, 31)


# ==============================================================================
# PERIOD AGGREGATION
# ==============================================================================

def aggregate_financial_data(
    records: Iterable[FinancialRecord],
    period_type: Any
) -> List[Period]:
    """
    Group records into period buckets ordered chronologically.

    Args:
        records: FinancialRecord objects
        period_type: PeriodType or one of 'monthly', 'quarterly', 'annual'

    Returns:
        List of Period objects, one per bucket that holds at least one record

    Records with a missing or unparseable date are left out of every bucket.

    Example:
        >>> records = [
        ...     FinancialRecord("1", "income", "Sales", 1000, "2024-01-05", "p1"),
        ...     FinancialRecord("2", "expense", "Rent", 400, "2024-01-20", "p1"),
        ... ]
        >>> [p.profit for p in aggregate_financial_data(records, "monthly")]
        [600]
    """
    ptype = _as_period_type(period_type)
    buckets: Dict[str, Dict[str, Any]] = {}
    skipped = 0

    for record in records:
        recorded_at = parse_record_date(record.date)
        if recorded_at is None:
            skipped += 1
            continue
        if record.type not in RECORD_TYPES:
            skipped += 1
            continue

        label, start, end = _bucket_for(recorded_at.date(), ptype)
        bucket = buckets.setdefault(
            label, {"start": start, "end": end, "income": 0, "expense": 0}
        )
        bucket[record.type] += record.amount

    if skipped:
        logger.debug(f"Skipped {skipped} records without a usable date or type")

    periods = [
        Period(
            period_type=ptype.value,
            label=label,
            start_date=bucket["start"],
            end_date=bucket["end"],
            income=bucket["income"],
            expense=bucket["expense"]
        )
        for label, bucket in sorted(buckets.items(), key=lambda item: item[1]["start"])
    ]

    logger.debug(f"Aggregated records into {len(periods)} {ptype.value} periods")
    return periods


def get_period_ranges(
    period_type: Any,
    months_back: int = 12,
    reference_date: Optional[date] = None
) -> List[PeriodRange]:
    """
    Build the rolling window of periods ending at the reference date.

    Monthly windows cover the last `months_back` calendar months. Quarterly
    windows are three-month blocks aligned with those monthly windows, so
    each quarter is exactly the sum of three consecutive months. Annual
    windows are calendar years.

    Args:
        period_type: PeriodType or its string value
        months_back: Length of the window in months
        reference_date: Last day covered (defaults to today)

    Returns:
        Chronologically ordered PeriodRange list
    """
    ptype = _as_period_type(period_type)
    if reference_date is None:
        reference_date = date.today()
    if isinstance(reference_date, datetime):
        reference_date = reference_date.date()

    ranges: List[PeriodRange] = []
    year, month = reference_date.year, reference_date.month

    if ptype == PeriodType.MONTHLY:
        for i in range(months_back - 1, -1, -1):
            start = _first_of_month(year, month, -i)
            ranges.append(PeriodRange(
                start_date=start,
                end_date=_last_of_month(start),
                label=start.strftime("%b %y")
            ))
    elif ptype == PeriodType.QUARTERLY:
        quarters = math.ceil(months_back / 3)
        for i in range(quarters - 1, -1, -1):
            start = _first_of_month(year, month, -(3 * i + 2))
            quarter = (start.month - 1) // 3 + 1
            ranges.append(PeriodRange(
                start_date=start,
                end_date=_last_of_month(start, 3),
                label=f"Q{quarter} {start.year}"
            ))
    else:  # ANNUAL
        years = math.ceil(months_back / 12)
        for i in range(years - 1, -1, -1):
            ranges.append(PeriodRange(
                start_date=date(year - i, 1, 1),
                end_date=date(year - i, 12, 31),
                label=str(year - i)
            ))

    return ranges


def aggregate_over_ranges(
    records: Iterable[FinancialRecord],
    period_type: Any,
    months_back: int = 12,
    reference_date: Optional[date] = None
) -> List[Period]:
    """
    Sum records into the rolling window returned by get_period_ranges.

    Unlike aggregate_financial_data, every window is returned, including
    those with no records (all totals zero).
    """
    ptype = _as_period_type(period_type)
    ranges = get_period_ranges(ptype, months_back, reference_date)
    dated = []
    for record in records:
        recorded_at = parse_record_date(record.date)
        if recorded_at is not None:
            dated.append((recorded_at.date(), record))

    periods = []
    for period_range in ranges:
        in_range = [record for day, record in dated if period_range.contains(day)]
        periods.append(Period(
            period_type=ptype.value,
            label=period_range.label,
            start_date=period_range.start_date,
            end_date=period_range.end_date,
            income=sum(r.amount for r in in_range if r.is_income()),
            expense=sum(r.amount for r in in_range if r.is_expense())
        ))

    return periods


def validate_period_consistency(
    monthly_periods: List[Period],
    quarterly_periods: List[Period],
    tolerance: float = 0.01
) -> bool:
    """
    Check that each quarterly bucket equals the sum of its three months.

    Both lists must come from the same rolling window (see get_period_ranges).
    """
    for q, quarter in enumerate(quarterly_periods):
        months = monthly_periods[q * 3:q * 3 + 3]
        monthly_income = sum(p.income for p in months)
        monthly_expense = sum(p.expense for p in months)

        if (abs(quarter.income - monthly_income) > tolerance
                or abs(quarter.expense - monthly_expense) > tolerance):
            logger.warning(f"Quarter {quarter.label} does not match its monthly totals")
            return False

    return True


# ==============================================================================
# FILTERING
# ==============================================================================

def filter_by_project(
    records: Iterable[FinancialRecord],
    project_ids: Iterable[str]
) -> List[FinancialRecord]:
    """Keep only the records of the given projects."""
    wanted = set(project_ids)
    filtered = [r for r in records if r.project_id in wanted]
    logger.debug(f"Filtered to {len(filtered)} records for {len(wanted)} projects")
    return filtered


def filter_by_date_range(
    records: Iterable[FinancialRecord],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> List[FinancialRecord]:
    """
    Filter records by an inclusive date range.

    Records without a usable date never match.
    """
    filtered = []
    for record in records:
        recorded_at = parse_record_date(record.date)
        if recorded_at is None:
            continue
        day = recorded_at.date()
        if start_date and day < start_date:
            continue
        if end_date and day > end_date:
            continue
        filtered.append(record)

    logger.debug(f"Filtered to {len(filtered)} records in date range")
    return filtered


# ==============================================================================
# PROJECT PROFITABILITY
# ==============================================================================

def calculate_project_financials(
    records: Iterable[FinancialRecord],
    projects: Optional[Dict[str, str]] = None
) -> List[ProjectFinancial]:
    """
    Compute income, fixed/variable costs, profit and margin per project.

    Args:
        records: FinancialRecord objects
        projects: Optional mapping of project id to name; listed projects
            appear even when they have no records

    Returns:
        ProjectFinancial list sorted by income, highest first

    Note:
        Expenses without a cost type are counted neither as fixed nor as
        variable costs, so they do not reduce profit.
    """
    totals: Dict[str, Dict[str, Any]] = {}

    def _entry(project_id: str, name: Optional[str] = None) -> Dict[str, Any]:
        return totals.setdefault(project_id, {
            "name": name or f"Project {project_id[:8]}",
            "income": 0,
            "fixed": 0,
            "variable": 0
        })

    for project_id, name in (projects or {}).items():
        _entry(project_id, name)

    for record in records:
        entry = _entry(record.project_id)
        if record.is_income():
            entry["income"] += record.amount
        elif record.is_expense():
            if record.cost_type == CostType.FIXED.value:
                entry["fixed"] += record.amount
            elif record.cost_type == CostType.VARIABLE.value:
                entry["variable"] += record.amount

    financials = [
        ProjectFinancial(
            project_id=project_id,
            project_name=entry["name"],
            income=entry["income"],
            fixed_costs=entry["fixed"],
            variable_costs=entry["variable"]
        )
        for project_id, entry in totals.items()
    ]
    financials.sort(key=lambda pf: pf.income, reverse=True)

    logger.debug(f"Calculated financials for {len(financials)} projects")
    return financials


def calculate_cost_breakdown(records: Iterable[FinancialRecord]) -> Dict[str, Any]:
    """
    Break expenses down by category.

    Each category takes the cost type of its most recent record (variable
    when unset). Percentages are shares of total expenses.

    Returns:
        Dictionary with 'categories' (CategoryBreakdown list, largest first),
        'total_expenses', 'fixed_costs' and 'variable_costs'
    """
    amounts: Dict[str, float] = {}
    cost_types: Dict[str, str] = {}
    total_expenses = 0

    for record in records:
        if not record.is_expense():
            continue
        total_expenses += record.amount
        amounts[record.category] = amounts.get(record.category, 0) + record.amount
        cost_types[record.category] = record.cost_type or CostType.VARIABLE.value

    categories = [
        CategoryBreakdown(
            category=category,
            amount=amount,
            cost_type=cost_types[category],
            percentage=(amount / total_expenses) * 100 if total_expenses > 0 else 0.0
        )
        for category, amount in amounts.items()
    ]
    categories.sort(key=lambda c: c.amount, reverse=True)

    return {
        "categories": categories,
        "total_expenses": total_expenses,
        "fixed_costs": sum(c.amount for c in categories if c.cost_type == CostType.FIXED.value),
        "variable_costs": sum(c.amount for c in categories if c.cost_type == CostType.VARIABLE.value)
    }


# ==============================================================================
# RECORD CREATION AND VALIDATION
# ==============================================================================

def _check_amount(amount: Any) -> None:
    if not _is_non_negative_number(amount):
        raise ValidationError(
            "Financial record amount must be a non-negative number", field="amount"
        )


def _check_type(record_type: Any) -> None:
    if record_type not in RECORD_TYPES:
        raise ValidationError(
            'Financial record type must be "income" or "expense"', field="type"
        )


def _check_cost_type(cost_type: Any) -> None:
    if cost_type is not None and cost_type not in COST_TYPES:
        raise ValidationError(
            'Financial record cost type must be "fixed" or "variable"', field="cost_type"
        )


def _require_text(value: Any, name: str, label: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Financial record {label} is required", field=name)


def create_financial_record(
    record_type: Any,
    category: str,
    amount: float,
    record_date: Any,
    project_id: str,
    description: str,
    cost_type: Any = None,
    user_id: Optional[str] = None
) -> FinancialRecord:
    """
    Validate the inputs and create a new record with a fresh id.

    Raises:
        ValidationError: if any required field is missing or out of range
    """
    record_type = _enum_value(record_type)
    cost_type = _enum_value(cost_type)

    _require_text(record_date, "date", "date")
    _check_type(record_type)
    _check_amount(amount)
    _check_cost_type(cost_type)
    _require_text(category, "category", "category")
    _require_text(project_id, "project_id", "projectId")
    _require_text(description, "description", "description")

    record = FinancialRecord(
        id=f"record-{uuid.uuid4().hex[:12]}",
        type=record_type,
        category=category,
        amount=amount,
        date=record_date,
        project_id=project_id,
        cost_type=cost_type,
        description=description,
        user_id=user_id
    )
    logger.debug(f"Created financial record {record.id}")
    return record


def update_financial_record(record: FinancialRecord, **updates: Any) -> FinancialRecord:
    """
    Return a copy of the record with the given fields replaced.

    The id never changes; an 'id' key in updates is ignored.
    """
    updates.pop("id", None)
    if "type" in updates:
        updates["type"] = _enum_value(updates["type"])
        _check_type(updates["type"])
    if "cost_type" in updates:
        updates["cost_type"] = _enum_value(updates["cost_type"])
        _check_cost_type(updates["cost_type"])
    if "amount" in updates:
        _check_amount(updates["amount"])

    return replace(record, **updates)


def validate_financial_record(record: FinancialRecord) -> bool:
    """Check that a record is complete and its amount is a non-negative number."""
    return bool(
        record.id
        and record.date
        and record.type in RECORD_TYPES
        and _is_non_negative_number(record.amount)
        and record.category
        and record.project_id
        and record.description
        and record.user_id
    )
