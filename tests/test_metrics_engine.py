"""
Unit tests for Financial Metrics Engine.

Tests CAC, LTV, churn, burn, runway and the calculator widgets.
"""

import unittest
import math
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from engines.period_engine import FinancialRecord
from engines.metrics_engine import (
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


class TestDisplayValue(unittest.TestCase):
    """Test display coercion."""

    def test_non_finite_values_become_zero(self):
        """Test inf, -inf, nan and None."""
        self.assertEqual(display_value(math.inf), 0)
        self.assertEqual(display_value(-math.inf), 0)
        self.assertEqual(display_value(math.nan), 0)
        self.assertEqual(display_value(None), 0)

    def test_finite_values_pass_through(self):
        self.assertEqual(display_value(12.5), 12.5)
        self.assertEqual(display_value(-3), -3)


class TestCustomerMetrics(unittest.TestCase):
    """Test customer metric calculations."""

    def test_cac(self):
        """Test CAC calculation."""
        self.assertEqual(calculate_cac(5000, 10), 500)

    def test_cac_with_no_customers(self):
        """Test that CAC with zero new customers equals the spend."""
        self.assertEqual(calculate_cac(5000, 0), 5000)

    def test_ltv(self):
        """Test LTV is revenue times margin with no churn discount."""
        self.assertAlmostEqual(calculate_ltv(1200, 0.8), 960)

    def test_churn_rate(self):
        """Test churn percentage and the floored denominator."""
        self.assertEqual(calculate_churn_rate(5, 100), 5)
        self.assertEqual(calculate_churn_rate(1, 0), 100)

    def test_ltv_cac_ratio(self):
        self.assertEqual(calculate_ltv_cac_ratio(900, 300), 3)
        self.assertEqual(calculate_ltv_cac_ratio(900, 0), 0)


class TestCashMetrics(unittest.TestCase):
    """Test burn and runway calculations."""

    def test_burn_rate(self):
        """Test monthly burn and the floored month count."""
        self.assertEqual(calculate_burn_rate(60000, 6), 10000)
        self.assertEqual(calculate_burn_rate(5000, 0), 5000)

    def test_runway(self):
        """Test months of runway."""
        self.assertEqual(calculate_cash_runway(120000, 10000), 12)

    def test_runway_with_zero_burn(self):
        """Test that zero burn gives a non-finite runway shown as 0."""
        runway = calculate_cash_runway(120000, 0)

        self.assertFalse(math.isfinite(runway))
        self.assertEqual(display_value(runway), 0)

    def test_runway_with_negative_burn(self):
        self.assertTrue(math.isinf(calculate_cash_runway(1000, -50)))


class TestCalculatorWidgets(unittest.TestCase):
    """Test ROI, break-even and valuation calculators."""

    def test_roi(self):
        self.assertEqual(calculate_roi(1000, 1500), 50)
        self.assertEqual(calculate_roi(1000, 500), -50)
        self.assertTrue(math.isinf(calculate_roi(0, 500)))

    def test_break_even_rounds_up(self):
        """Test break-even units are rounded up."""
        self.assertEqual(calculate_break_even_units(1000, 30, 10), 50)
        self.assertEqual(calculate_break_even_units(1001, 30, 10), 51)

    def test_break_even_without_margin(self):
        """Test a non-positive unit margin never breaks even."""
        self.assertTrue(math.isinf(calculate_break_even_units(1000, 10, 10)))

    def test_valuation(self):
        self.assertEqual(calculate_valuation(2_000_000, 5), 10_000_000)


class TestComprehensiveMetrics(unittest.TestCase):
    """Test comprehensive metrics calculation."""

    def test_calculate_financial_metrics(self):
        """Test all metrics at once."""
        metrics = calculate_financial_metrics(
            marketing_spend=10000,
            new_customers=20,
            avg_revenue_per_customer=1200,
            gross_margin=0.8,
            cash_on_hand=120000,
            total_expense=60000,
            months=6,
            lost_customers=5,
            total_customers=100
        )

        self.assertEqual(metrics["cac"], 500)
        self.assertAlmostEqual(metrics["ltv"], 960)
        self.assertAlmostEqual(metrics["ltv_cac_ratio"], 1.92)
        self.assertEqual(metrics["burn"], 10000)
        self.assertEqual(metrics["runway"], 12)
        self.assertEqual(metrics["churn"], 5)

    def test_no_expense_gives_zero_runway(self):
        """Test that an infinite runway is coerced for display."""
        metrics = calculate_financial_metrics(0, 0, 0, 0, 50000, 0, 1, 0, 0)
        self.assertEqual(metrics["runway"], 0)

    def test_monthly_series(self):
        """Test the month-by-month proxy series."""
        records = [
            FinancialRecord("1", "income", "Sales", 5000, "2024-01-05", "p1"),
            FinancialRecord("2", "expense", "Ads", 1000, "2024-01-20", "p1"),
            FinancialRecord("3", "income", "Sales", 2000, "2024-02-05", "p1")
        ]

        series = calculate_monthly_financial_metrics(records)

        self.assertEqual([row["period"] for row in series], ["2024-01", "2024-02"])
        january = series[0]
        self.assertEqual(january["label"], "Jan 24")
        self.assertEqual(january["cac"], 20)        # 200 spend / 10 customers
        self.assertAlmostEqual(january["ltv"], 400)  # 500 per customer * 0.8
        self.assertEqual(january["runway"], 15)      # 15000 / 1000
        self.assertEqual(january["burn"], 1000)
        self.assertAlmostEqual(january["churn"], 5)

        # No expense in February: runway is infinite and shown as 0
        self.assertEqual(series[1]["runway"], 0)

    def test_monthly_series_empty(self):
        self.assertEqual(calculate_monthly_financial_metrics([]), [])


if __name__ == '__main__':
    unittest.main()
