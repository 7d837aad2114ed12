"""
Financial Metrics Computation Engine.

This module provides pure Python implementations of the business-health
metrics shown on the finance dashboard: CAC, LTV, cash runway, burn rate
and churn rate, plus the ROI / break-even / valuation calculators.

Denominators that could be zero are floored at 1, which keeps
the dashboard's historical behaviour (e.g. CAC with no new customers equals
the raw spend). Cash runway is the exception: with zero burn it returns
math.inf, and every caller-facing value must go through display_value().
"""

from typing import List, Dict, Any, Iterable
import logging
import math

from .period_engine import FinancialRecord, PeriodType, aggregate_financial_data

logger = logging.getLogger(__name__)


# ==============================================================================
# DISPLAY COERCION
# ==============================================================================

def display_value(value: float) -> float:
    """
    Coerce a metric for display: non-finite values (inf, nan) become 0.

    Calculators return non-finite values unguarded; apply this at every
    site that hands a metric to a user.
    """
    if value is None:
        return 0
    return value if math.isfinite(value) else 0


# ==============================================================================
# CUSTOMER METRICS
# ==============================================================================

def calculate_cac(spend: float, new_customers: float) -> float:
    """
    Calculate Customer Acquisition Cost.

    CAC = Spend / max(1, New Customers)

    Args:
        spend: Sales and marketing spend for the period
        new_customers: Customers acquired in the period

    Returns:
        Cost per acquired customer; equals spend when no customers were acquired

    Example:
        >>> calculate_cac(5000, 10)
        500.0
        >>> calculate_cac(5000, 0)
        5000.0
    """
    return spend / max(1, new_customers)


def calculate_ltv(avg_revenue_per_customer: float, gross_margin: float) -> float:
    """
    Calculate Customer Lifetime Value.

    LTV = Average Revenue per Customer * Gross Margin

    Note: no churn discount is applied; churn is reported separately by
    calculate_churn_rate.
    """
    return avg_revenue_per_customer * gross_margin


def calculate_churn_rate(lost_customers: float, total_customers: float) -> float:
    """
    Calculate churn as a percentage.

    Churn % = Lost Customers / max(1, Total Customers) * 100
    """
    return lost_customers / max(1, total_customers) * 100


def calculate_ltv_cac_ratio(ltv: float, cac: float) -> float:
    """LTV to CAC ratio, 0 when CAC is not positive."""
    return ltv / cac if cac > 0 else 0.0


# ==============================================================================
# CASH METRICS
# ==============================================================================

def calculate_burn_rate(expense: float, months: float) -> float:
    """
    Calculate monthly burn rate.

    Burn = Expense / max(1, Months)
    """
    return expense / max(1, months)


def calculate_cash_runway(cash_on_hand: float, monthly_burn: float) -> float:
    """
    Calculate months of runway left at the current burn.

    Runway = Cash on Hand / Monthly Burn

    Returns:
        Months of runway, or math.inf when burn is zero or negative. Use
        display_value() before showing the result.
    """
    if monthly_burn <= 0:
        logger.debug("Burn rate is not positive; runway is unbounded")
        return math.inf

    return cash_on_hand / monthly_burn


# ==============================================================================
# CALCULATOR WIDGETS
# ==============================================================================

def calculate_roi(investment: float, returns: float) -> float:
    """
    Calculate Return on Investment as a percentage.

    ROI % = (Returns - Investment) / Investment * 100

    Returns math.inf when the investment is zero.
    """
    if investment == 0:
        return math.inf

    return (returns - investment) / investment * 100


def calculate_break_even_units(
    fixed_costs: float,
    price_per_unit: float,
    variable_cost_per_unit: float
) -> float:
    """
    Calculate the number of units needed to cover fixed costs.

    Units = ceil(Fixed Costs / (Price - Variable Cost))

    Returns math.inf when the unit margin is zero or negative.
    """
    unit_margin = price_per_unit - variable_cost_per_unit
    if unit_margin <= 0:
        logger.warning("Unit margin is not positive; break-even is never reached")
        return math.inf

    return math.ceil(fixed_costs / unit_margin)


def calculate_valuation(revenue: float, multiple: float) -> float:
    """Revenue-multiple valuation."""
    return revenue * multiple


# ==============================================================================
# COMPREHENSIVE METRICS CALCULATION
# ==============================================================================

def calculate_financial_metrics(
    marketing_spend: float,
    new_customers: float,
    avg_revenue_per_customer: float,
    gross_margin: float,
    cash_on_hand: float,
    total_expense: float,
    months: float,
    lost_customers: float,
    total_customers: float
) -> Dict[str, float]:
    """
    Calculate all customer and cash metrics at once, ready for display.

    Every value is passed through display_value().

    Example:
        >>> metrics = calculate_financial_metrics(
        ...     marketing_spend=10000, new_customers=20,
        ...     avg_revenue_per_customer=1200, gross_margin=0.8,
        ...     cash_on_hand=120000, total_expense=60000, months=6,
        ...     lost_customers=5, total_customers=100
        ... )
        >>> metrics["runway"]
        12.0
    """
    cac = calculate_cac(marketing_spend, new_customers)
    ltv = calculate_ltv(avg_revenue_per_customer, gross_margin)
    burn = calculate_burn_rate(total_expense, months)
    runway = calculate_cash_runway(cash_on_hand, burn)
    churn = calculate_churn_rate(lost_customers, total_customers)

    metrics = {
        "cac": display_value(cac),
        "ltv": display_value(ltv),
        "ltv_cac_ratio": display_value(calculate_ltv_cac_ratio(ltv, cac)),
        "burn": display_value(burn),
        "runway": display_value(runway),
        "churn": display_value(churn)
    }

    logger.debug(f"Calculated financial metrics: {metrics}")
    return metrics


def calculate_monthly_financial_metrics(
    records: Iterable[FinancialRecord]
) -> List[Dict[str, Any]]:
    """
    Derive a month-by-month metric series from income/expense records.

    Customer counts are not tracked, so the series uses the dashboard's
    proxies: one new customer per 500 of income, 20% of expense counted as
    acquisition spend, an 80% gross margin, three months of income as cash
    on hand, and 5% of one-customer-per-1000-of-income lost each month.

    Returns:
        One dictionary per month with records, in chronological order, with
        keys 'period', 'label', 'cac', 'ltv', 'runway', 'burn' and 'churn'
    """
    series = []

    for period in aggregate_financial_data(records, PeriodType.MONTHLY):
        income = period.income
        expense = period.expense
        customers = max(1, math.floor(income / 500))
        tracked = math.floor(income / 1000)

        cac = calculate_cac(expense * 0.2, customers)
        ltv = calculate_ltv(income / customers if income > 0 else 0, 0.8)
        runway = calculate_cash_runway(income * 3, expense)
        burn = calculate_burn_rate(expense, 1)
        churn = calculate_churn_rate(max(0, tracked * 0.05), max(1, tracked))

        series.append({
            "period": period.label,
            "label": period.start_date.strftime("%b %y"),
            "cac": display_value(cac),
            "ltv": display_value(ltv),
            "runway": display_value(runway),
            "burn": display_value(burn),
            "churn": display_value(churn)
        })

    logger.debug(f"Calculated metric series for {len(series)} months")
    return series
