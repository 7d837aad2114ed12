"""
Visualization Engine for the Finance Dashboard.

This module prepares chart data (rendering is left to the client) for:
- Income / expense / profit per period
- Profit-share distribution across team members
- Expense breakdown by category

It also holds the number formatting helpers and the CSV export of expenses.
Every number handed to a chart goes through display_value(), so runway-style
infinities never reach the client.
"""

from typing import Dict, Any, Iterable, Optional
from datetime import date
import logging

import pandas as pd

from .metrics_engine import display_value
from .period_engine import FinancialRecord, Period, CostType, filter_by_date_range
from .distribution_engine import TeamMemberShare

logger = logging.getLogger(__name__)

CSV_HEADERS = ["Date", "Category", "Cost Type", "Amount", "Percentage of Total"]


# ==============================================================================
# CHART DATA PREPARATION
# ==============================================================================

def prepare_period_chart_data(periods: Iterable[Period]) -> Dict[str, Any]:
    """
    Prepare data for the income / expense / profit chart.

    Args:
        periods: Period objects, typically from aggregate_financial_data

    Returns:
        Dictionary with chart data and metadata

    Example:
        >>> data = prepare_period_chart_data(periods)
        >>> [s["name"] for s in data["series"]]
        ['Income', 'Expense', 'Profit']
    """
    periods = list(periods)

    chart_data = {
        "chart_type": "period_summary",
        "x_axis": {
            "label": "Period",
            "values": [p.label for p in periods]
        },
        "y_axis": {
            "label": "Amount",
            "unit": "currency"
        },
        "series": [
            {
                "name": "Income",
                "type": "bar",
                "data": [display_value(p.income) for p in periods],
                "color": "#10b981"
            },
            {
                "name": "Expense",
                "type": "bar",
                "data": [display_value(p.expense) for p in periods],
                "color": "#ef4444"
            },
            {
                "name": "Profit",
                "type": "line",
                "data": [display_value(p.profit) for p in periods],
                "color": "#3b82f6"
            }
        ],
        "annotations": []
    }

    # Mark loss-making periods
    for p in periods:
        if p.profit < 0:
            chart_data["annotations"].append({
                "type": "point",
                "x": p.label,
                "y": display_value(p.profit),
                "label": f"Loss: {format_currency(p.profit)}"
            })

    logger.debug(f"Prepared period chart with {len(periods)} periods")
    return chart_data


def prepare_distribution_chart_data(shares: Iterable[TeamMemberShare]) -> Dict[str, Any]:
    """
    Prepare a pie chart of profit shares per team member.

    Shares without an amount are plotted with 0.
    """
    shares = list(shares)

    chart_data = {
        "chart_type": "profit_distribution",
        "x_axis": {
            "label": "Team Member",
            "values": [s.member_name for s in shares]
        },
        "y_axis": {
            "label": "Share",
            "unit": "percentage"
        },
        "series": [
            {
                "name": "Percentage",
                "type": "pie",
                "data": [display_value(s.percentage) for s in shares]
            },
            {
                "name": "Amount",
                "type": "bar",
                "data": [display_value(s.amount) for s in shares],
                "color": "#8b5cf6"
            }
        ]
    }

    logger.debug(f"Prepared distribution chart for {len(shares)} members")
    return chart_data


def prepare_cost_breakdown_chart_data(breakdown: Dict[str, Any]) -> Dict[str, Any]:
    """
    Prepare data for the expense breakdown chart.

    Args:
        breakdown: Result of calculate_cost_breakdown

    Returns:
        Dictionary with chart data, plus a fixed/variable split
    """
    categories = breakdown.get("categories", [])

    chart_data = {
        "chart_type": "cost_breakdown",
        "x_axis": {
            "label": "Category",
            "values": [c.category for c in categories]
        },
        "y_axis": {
            "label": "Amount",
            "unit": "currency"
        },
        "series": [
            {
                "name": "Amount",
                "type": "bar",
                "data": [display_value(c.amount) for c in categories],
                "color": "#3b82f6"
            },
            {
                "name": "Percentage of Total",
                "type": "pie",
                "data": [display_value(c.percentage) for c in categories]
            }
        ],
        "cost_types": {
            CostType.FIXED.value: display_value(breakdown.get("fixed_costs", 0)),
            CostType.VARIABLE.value: display_value(breakdown.get("variable_costs", 0))
        },
        "total": display_value(breakdown.get("total_expenses", 0))
    }

    logger.debug(f"Prepared cost breakdown chart with {len(categories)} categories")
    return chart_data


# ==============================================================================
# FORMATTING UTILITIES
# ==============================================================================

def format_currency(value: float, decimals: int = 0) -> str:
    """Format value as currency; non-finite values show as $0."""
    value = display_value(value)
    if abs(value) >= 1_000_000_000:
        return f"${value/1_000_000_000:.{decimals}f}B"
    elif abs(value) >= 1_000_000:
        return f"${value/1_000_000:.{decimals}f}M"
    elif abs(value) >= 1_000:
        return f"${value/1_000:.{decimals}f}K"
    else:
        return f"${value:.{decimals}f}"


def format_percentage(value: float, decimals: int = 1) -> str:
    """Format value as percentage."""
    return f"{display_value(value):.{decimals}f}%"


# ==============================================================================
# TABULAR EXPORT
# ==============================================================================

def records_to_dataframe(records: Iterable[FinancialRecord]) -> pd.DataFrame:
    """Build a DataFrame with one row per record and one column per field."""
    rows = [record.to_dict() for record in records]
    columns = [
        "id", "type", "category", "amount", "date",
        "project_id", "cost_type", "description", "user_id"
    ]
    return pd.DataFrame(rows, columns=columns)


def export_expenses_csv(
    records: Iterable[FinancialRecord],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> str:
    """
    Export expense records as CSV text.

    Columns are Date, Category, Cost Type, Amount and Percentage of Total.
    A blank line and a 'Total Expenses' row follow the data. Expenses with
    no cost type are listed as variable.

    Args:
        records: FinancialRecord objects; income records are ignored
        start_date: Optional inclusive lower date bound
        end_date: Optional inclusive upper date bound

    Returns:
        CSV content with '\\n' line endings
    """
    if start_date or end_date:
        records = filter_by_date_range(records, start_date, end_date)

    df = records_to_dataframe(r for r in records if r.is_expense())
    total = float(df["amount"].sum()) if not df.empty else 0.0

    export = pd.DataFrame({
        "Date": df["date"],
        "Category": df["category"],
        "Cost Type": df["cost_type"].fillna(CostType.VARIABLE.value),
        "Amount": df["amount"].map(lambda a: f"{a:.2f}"),
        "Percentage of Total": df["amount"].map(
            lambda a: f"{(a / total * 100) if total > 0 else 0:.2f}%"
        )
    }, columns=CSV_HEADERS)

    content = export.to_csv(index=False, lineterminator="\n")
    content += "\n" + ",".join(["Total Expenses", "", "", f"{total:.2f}", "100%"])

    logger.info(f"Exported {len(export)} expense records totalling {total:.2f}")
    return content
