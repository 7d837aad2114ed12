"""
Unit tests for Finance State Store.

Tests the validate-then-replace profit share save, snapshot immutability
and loading from a persistence port.
"""

import unittest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from engines.errors import ValidationError
from engines.period_engine import FinancialRecord
from engines.distribution_engine import TeamMember, TeamMemberShare
from data.state_store import FinanceSnapshot, FinanceStateStore


class RecordingPersistence:
    """In-memory persistence port that can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def get_financial_records(self):
        return [FinancialRecord("r1", "income", "Sales", 100, "2024-01-01", "p1")]

    def get_team_members(self):
        return [TeamMember("1", "Ana")]

    def get_profit_shares(self):
        return [TeamMemberShare("1", "Ana", 100, 50, "p1")]

    def replace_profit_shares(self, project_id, shares):
        if self.fail:
            raise RuntimeError("database unavailable")
        self.calls.append((project_id, list(shares)))
        return len(shares)


def project_shares(project_id, *percentages):
    return [
        TeamMemberShare(str(i), f"Member {i}", pct, project_id=project_id)
        for i, pct in enumerate(percentages, start=1)
    ]


class TestProfitShareUpdates(unittest.TestCase):
    """Test saving profit shares."""

    def setUp(self):
        self.store = FinanceStateStore()
        self.store.update_profit_shares(project_shares("p1", 60, 40), total_revenue=10000)
        self.store.update_profit_shares(project_shares("p2", 100))

    def test_amounts_recomputed_from_revenue(self):
        """Test amounts follow the percentages when revenue is given."""
        shares = self.store.get_profit_shares_by_project("p1")
        self.assertEqual([s.amount for s in shares], [6000, 4000])

    def test_replace_by_project(self):
        """Test saving one project leaves other projects untouched."""
        self.store.update_profit_shares(project_shares("p1", 50, 25, 25))

        self.assertEqual(len(self.store.get_profit_shares_by_project("p1")), 3)
        self.assertEqual(len(self.store.get_profit_shares_by_project("p2")), 1)
        self.assertEqual(len(self.store.profit_shares), 4)

    def test_bad_total_rejected_without_change(self):
        """Test that shares summing to 90% are rejected and nothing changes."""
        before = self.store.snapshot

        with self.assertRaises(ValidationError) as ctx:
            self.store.update_profit_shares(project_shares("p1", 50, 40))

        self.assertIn("total=90%", str(ctx.exception))
        self.assertIs(self.store.snapshot, before)
        self.assertEqual(
            [s.percentage for s in self.store.get_profit_shares_by_project("p1")], [60, 40]
        )

    def test_out_of_range_share_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.store.update_profit_shares(project_shares("p1", 120, -20))
        self.assertEqual(ctx.exception.member_name, "Member 1")

    def test_negative_amount_rejected(self):
        shares = [TeamMemberShare("1", "Ana", 100, amount=-5, project_id="p1")]

        with self.assertRaises(ValidationError) as ctx:
            self.store.update_profit_shares(shares)
        self.assertEqual(str(ctx.exception), "Amount for Ana must be a non-negative numeric value")

    def test_mixed_projects_rejected(self):
        shares = project_shares("p1", 50) + project_shares("p2", 50)

        with self.assertRaises(ValidationError):
            self.store.update_profit_shares(shares)

    def test_empty_shares_rejected(self):
        with self.assertRaises(ValidationError):
            self.store.update_profit_shares([])

    def test_shares_without_project_replace_everything(self):
        """Test a save without a project id replaces the whole collection."""
        self.store.update_profit_shares(project_shares(None, 100))

        self.assertEqual(len(self.store.profit_shares), 1)
        self.assertIsNone(self.store.profit_shares[0].project_id)

    def test_snapshots_are_immutable(self):
        """Test a saved snapshot is never modified by later updates."""
        old = self.store.snapshot
        self.store.update_profit_shares(project_shares("p1", 100))

        self.assertEqual(len(old.profit_shares), 3)
        self.assertIsInstance(self.store.profit_shares, tuple)


class TestPersistence(unittest.TestCase):
    """Test interaction with the persistence port."""

    def test_port_written_before_snapshot(self):
        port = RecordingPersistence()
        store = FinanceStateStore(persistence=port)

        store.update_profit_shares(project_shares("p1", 70, 30), total_revenue=1000)

        self.assertEqual(len(port.calls), 1)
        project_id, shares = port.calls[0]
        self.assertEqual(project_id, "p1")
        self.assertEqual([s.amount for s in shares], [700, 300])

    def test_failed_write_leaves_state_unchanged(self):
        """Test no partial write when the port fails."""
        store = FinanceStateStore(persistence=RecordingPersistence(fail=True))

        with self.assertRaises(RuntimeError):
            store.update_profit_shares(project_shares("p1", 100))

        self.assertEqual(store.profit_shares, ())

    def test_invalid_shares_never_reach_port(self):
        port = RecordingPersistence()
        store = FinanceStateStore(persistence=port)

        with self.assertRaises(ValidationError):
            store.update_profit_shares(project_shares("p1", 50, 40))
        self.assertEqual(port.calls, [])

    def test_load(self):
        store = FinanceStateStore(persistence=RecordingPersistence())
        snapshot = store.load()

        self.assertEqual(len(snapshot.records), 1)
        self.assertEqual(store.team_members[0].name, "Ana")
        self.assertEqual(store.get_profit_shares_by_project("p1")[0].amount, 50)

    def test_load_without_port(self):
        with self.assertRaises(RuntimeError):
            FinanceStateStore().load()


class TestDerivedViews(unittest.TestCase):
    """Test aggregation over the stored records."""

    def test_aggregate(self):
        records = [
            FinancialRecord("1", "income", "Sales", 1000, "2024-01-05", "p1"),
            FinancialRecord("2", "expense", "Rent", 400, "2024-01-20", "p1")
        ]
        store = FinanceStateStore(snapshot=FinanceSnapshot(records=tuple(records)))

        periods = store.aggregate("monthly")
        self.assertEqual(len(periods), 1)
        self.assertEqual(periods[0].profit, 600)

        self.assertEqual(len(store.aggregate("monthly", rolling=True, months_back=6)), 6)

    def test_replace_records(self):
        store = FinanceStateStore()
        store.replace_records([FinancialRecord("1", "income", "Sales", 1, "2024-01-01", "p1")])
        store.replace_team_members([TeamMember("1", "Ana")])

        self.assertEqual(len(store.records), 1)
        self.assertEqual(len(store.team_members), 1)


if __name__ == '__main__':
    unittest.main()
