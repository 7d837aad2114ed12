"""
Unit tests for Database Adapter.

Runs against an in-memory SQLite database.
"""

import unittest
from datetime import date
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from sqlalchemy.exc import SQLAlchemyError

from engines.errors import ValidationError
from engines.period_engine import FinancialRecord
from engines.distribution_engine import TeamMember, TeamMemberShare
from data.db_adapter import DatabaseConnection
from data.state_store import FinanceStateStore


class TestDatabaseConnection(unittest.TestCase):
    """Test reading and writing through SQLAlchemy."""

    def setUp(self):
        self.db = DatabaseConnection("sqlite://")

    def tearDown(self):
        self.db.close()

    def test_financial_records_round_trip(self):
        """Test records are stored and filtered by project."""
        records = [
            FinancialRecord("r1", "income", "Sales", 1000, date(2024, 1, 5), "p1"),
            FinancialRecord("r2", "expense", "Rent", 400, "2024-01-20", "p1", cost_type="fixed"),
            FinancialRecord("r3", "income", "Sales", 50, "2024-01-02", "p2")
        ]

        self.assertEqual(self.db.save_financial_records(records), 3)

        loaded = self.db.get_financial_records()
        self.assertEqual([r.id for r in loaded], ["r3", "r1", "r2"])
        self.assertEqual(loaded[1].date, "2024-01-05")

        p1 = self.db.get_financial_records("p1")
        self.assertEqual({r.id for r in p1}, {"r1", "r2"})
        self.assertEqual(p1[1].cost_type, "fixed")

    def test_save_updates_existing_record(self):
        record = FinancialRecord("r1", "income", "Sales", 1000, "2024-01-05", "p1")
        self.db.save_financial_records([record])
        self.db.save_financial_records([FinancialRecord("r1", "income", "Sales", 1200, "2024-01-05", "p1")])

        loaded = self.db.get_financial_records()
        self.assertEqual(len(loaded), 1)
        self.assertEqual(loaded[0].amount, 1200)

    def test_team_members(self):
        self.db.save_team_members([TeamMember("2", "Bo", 50), TeamMember("1", "Ana")])

        members = self.db.get_team_members()
        self.assertEqual([m.name for m in members], ["Ana", "Bo"])
        self.assertEqual(members[1].availability, 50)

    def test_replace_profit_shares_by_project(self):
        """Test replacing one project's shares keeps the others."""
        self.db.replace_profit_shares("p1", [
            TeamMemberShare("1", "Ana", 60, 600, "p1"),
            TeamMemberShare("2", "Bo", 40, 400, "p1")
        ])
        self.db.replace_profit_shares("p2", [TeamMemberShare("1", "Ana", 100, 10, "p2")])
        self.db.replace_profit_shares("p1", [TeamMemberShare("2", "Bo", 100, 1000, "p1")])

        p1 = self.db.get_profit_shares("p1")
        self.assertEqual(len(p1), 1)
        self.assertEqual(p1[0].member_name, "Bo")
        self.assertEqual(len(self.db.get_profit_shares("p2")), 1)
        self.assertEqual(len(self.db.get_profit_shares()), 2)

    def test_replace_without_project_replaces_all(self):
        self.db.replace_profit_shares("p1", [TeamMemberShare("1", "Ana", 100, project_id="p1")])
        self.db.replace_profit_shares(None, [TeamMemberShare("2", "Bo", 100)])

        shares = self.db.get_profit_shares()
        self.assertEqual(len(shares), 1)
        self.assertIsNone(shares[0].project_id)


class TestStoreWithDatabase(unittest.TestCase):
    """Test the state store backed by the database."""

    def setUp(self):
        self.db = DatabaseConnection("sqlite://")
        self.store = FinanceStateStore(persistence=self.db)

    def tearDown(self):
        self.db.close()

    def test_saved_shares_survive_reload(self):
        shares = [
            TeamMemberShare("1", "Ana", 60, project_id="p1"),
            TeamMemberShare("2", "Bo", 40, project_id="p1")
        ]
        self.store.update_profit_shares(shares, total_revenue=10000)

        reloaded = FinanceStateStore(persistence=self.db)
        reloaded.load()

        amounts = [s.amount for s in reloaded.get_profit_shares_by_project("p1")]
        self.assertEqual(amounts, [6000, 4000])

    def test_rejected_save_writes_nothing(self):
        shares = [
            TeamMemberShare("1", "Ana", 50, project_id="p1"),
            TeamMemberShare("2", "Bo", 40, project_id="p1")
        ]

        with self.assertRaises(ValidationError):
            self.store.update_profit_shares(shares)
        self.assertEqual(self.db.get_profit_shares("p1"), [])

    def test_failed_write_keeps_previous_shares(self):
        """Test a database error rolls back the delete and leaves the store as it was."""
        self.store.update_profit_shares(
            [TeamMemberShare("1", "Ana", 100, project_id="p1")], total_revenue=1000
        )

        # member_name is NOT NULL in the table
        with self.assertRaises(SQLAlchemyError):
            self.store.update_profit_shares([TeamMemberShare("2", None, 100, project_id="p1")])

        stored = self.db.get_profit_shares("p1")
        self.assertEqual([s.member_name for s in stored], ["Ana"])
        self.assertEqual([s.amount for s in stored], [1000])

        in_memory = self.store.get_profit_shares_by_project("p1")
        self.assertEqual([s.member_name for s in in_memory], ["Ana"])


if __name__ == '__main__':
    unittest.main()
