"""
Computation Engines Package.

This package contains all pure Python computation modules for the agile
project and finance dashboard. These modules are independent of database
logic and of the HTTP layer.
"""

from .errors import ValidationError

from .period_engine import (
    FinancialRecord,
    Period,
    PeriodRange,
    ProjectFinancial,
    CategoryBreakdown,
    RecordType,
    CostType,
    PeriodType,
    parse_record_date,
    aggregate_financial_data,
    get_period_ranges,
    aggregate_over_ranges,
    validate_period_consistency,
    filter_by_project,
    filter_by_date_range,
    calculate_project_financials,
    calculate_cost_breakdown,
    create_financial_record,
    update_financial_record,
    validate_financial_record
)

from .metrics_engine import (
    display_value,
    calculate_cac,
    calculate_ltv,
    calculate_churn_rate,
    calculate_ltv_cac_ratio,
    calculate_burn_rate,
    calculate_cash_runway,
    calculate_roi,
    calculate_break_even_units,
    calculate_valuation,
    calculate_financial_metrics,
    calculate_monthly_financial_metrics
)

from .agile_engine import (
    Task,
    Sprint,
    TaskStatus,
    SprintStatus,
    calculate_sprint_committed_points,
    calculate_sprint_velocity,
    calculate_sprint_progress,
    calculate_team_velocity,
    calculate_cycle_time,
    calculate_completion_rate,
    calculate_individual_kpis,
    calculate_risk_score
)

from .distribution_engine import (
    TeamMember,
    TeamMemberShare,
    DistributionStrategy,
    BudgetAllocation,
    FundAccount,
    validate_revenue,
    validate_share,
    distribute,
    calculate_share_total,
    validate_share_total,
    calculate_profit_shares,
    create_budget_allocation,
    validate_budget_allocation,
    create_fund_account,
    update_fund_balance,
    validate_fund_account
)

from .trend_engine import (
    calculate_growth,
    calculate_moving_average,
    forecast_linear_trend,
    detect_anomalies,
    build_trend_series
)

from .visualization_engine import (
    prepare_period_chart_data,
    prepare_distribution_chart_data,
    prepare_cost_breakdown_chart_data,
    format_currency,
    format_percentage,
    records_to_dataframe,
    export_expenses_csv
)

__all__ = [
    # Errors
    "ValidationError",

    # Periods
    "FinancialRecord",
    "Period",
    "PeriodRange",
    "ProjectFinancial",
    "CategoryBreakdown",
    "RecordType",
    "CostType",
    "PeriodType",
    "parse_record_date",
    "aggregate_financial_data",
    "get_period_ranges",
    "aggregate_over_ranges",
    "validate_period_consistency",
    "filter_by_project",
    "filter_by_date_range",
    "calculate_project_financials",
    "calculate_cost_breakdown",
    "create_financial_record",
    "update_financial_record",
    "validate_financial_record",

    # Financial Metrics
    "display_value",
    "calculate_cac",
    "calculate_ltv",
    "calculate_churn_rate",
    "calculate_ltv_cac_ratio",
    "calculate_burn_rate",
    "calculate_cash_runway",
    "calculate_roi",
    "calculate_break_even_units",
    "calculate_valuation",
    "calculate_financial_metrics",
    "calculate_monthly_financial_metrics",

    # Agile Metrics
    "Task",
    "Sprint",
    "TaskStatus",
    "SprintStatus",
    "calculate_sprint_committed_points",
    "calculate_sprint_velocity",
    "calculate_sprint_progress",
    "calculate_team_velocity",
    "calculate_cycle_time",
    "calculate_completion_rate",
    "calculate_individual_kpis",
    "calculate_risk_score",

    # Distribution
    "TeamMember",
    "TeamMemberShare",
    "DistributionStrategy",
    "BudgetAllocation",
    "FundAccount",
    "validate_revenue",
    "validate_share",
    "distribute",
    "calculate_share_total",
    "validate_share_total",
    "calculate_profit_shares",
    "create_budget_allocation",
    "validate_budget_allocation",
    "create_fund_account",
    "update_fund_balance",
    "validate_fund_account",

    # Trends
    "calculate_growth",
    "calculate_moving_average",
    "forecast_linear_trend",
    "detect_anomalies",
    "build_trend_series",

    # Visualization
    "prepare_period_chart_data",
    "prepare_distribution_chart_data",
    "prepare_cost_breakdown_chart_data",
    "format_currency",
    "format_percentage",
    "records_to_dataframe",
    "export_expenses_csv"
]
