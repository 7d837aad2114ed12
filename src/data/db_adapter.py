"""
Database Adapter Layer.

This module provides a clean interface between the computation engines and the database.
It stores financial records, team members and profit shares with SQLAlchemy and
converts rows into the engines' dataclasses.
"""

from typing import List, Optional, Iterable
from datetime import datetime, timezone
import logging

from sqlalchemy import create_engine, Column, Integer, String, Float, DateTime, Text, Index
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import DATABASE_URL, DATABASE_ECHO
from engines.period_engine import FinancialRecord
from engines.distribution_engine import TeamMember, TeamMemberShare

logger = logging.getLogger(__name__)

Base = declarative_base()


# ==============================================================================
# DATABASE MODELS
# ==============================================================================

class FinancialRecordRow(Base):
    """Database model for income and expense records."""
    __tablename__ = 'financial_records'

    id = Column(String(64), primary_key=True)
    type = Column(String(16), nullable=False)
    category = Column(String(128), nullable=False)
    amount = Column(Float, nullable=False)
    date = Column(String(32), nullable=True)
    project_id = Column(String(64), nullable=False, index=True)
    cost_type = Column(String(16), nullable=True)
    description = Column(Text, nullable=True)
    user_id = Column(String(64), nullable=True)


class TeamMemberRow(Base):
    """Database model for team members."""
    __tablename__ = 'team_members'

    id = Column(String(64), primary_key=True)
    name = Column(String(128), nullable=False)
    availability = Column(Float, default=100, nullable=False)


class ProfitShareRow(Base):
    """Database model for saved profit shares."""
    __tablename__ = 'profit_shares'

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(String(64), nullable=True)
    member_id = Column(String(64), nullable=False)
    member_name = Column(String(128), nullable=False)
    percentage = Column(Float, nullable=False)
    amount = Column(Float, nullable=True)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('idx_profit_shares_project', 'project_id'),
    )


def _record_from_row(row: FinancialRecordRow) -> FinancialRecord:
    return FinancialRecord(
        id=row.id,
        type=row.type,
        category=row.category,
        amount=row.amount,
        date=row.date,
        project_id=row.project_id,
        cost_type=row.cost_type,
        description=row.description,
        user_id=row.user_id
    )


def _share_from_row(row: ProfitShareRow) -> TeamMemberShare:
    return TeamMemberShare(
        member_id=row.member_id,
        member_name=row.member_name,
        percentage=row.percentage,
        amount=row.amount,
        project_id=row.project_id
    )


# ==============================================================================
# DATABASE CONNECTION
# ==============================================================================

class DatabaseConnection:
    """
    Record source, team-member source and profit-share persistence.

    Works against SQLite (default) or PostgreSQL through the same SQLAlchemy
    models.
    """

    def __init__(self, db_url: str = DATABASE_URL, echo: bool = DATABASE_ECHO):
        """
        Initialize database connection and create missing tables.

        Args:
            db_url: Database connection URL (SQLite or PostgreSQL)
            echo: Log every SQL statement
        """
        self.db_url = db_url

        if db_url.startswith("sqlite:"):
            # Use StaticPool for SQLite to avoid threading issues
            self.engine = create_engine(
                db_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool
            )
        else:
            self.engine = create_engine(db_url, echo=echo)

        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

        logger.info(f"Database initialized: {self.engine.url.drivername}")

    def close(self):
        """Dispose of the connection pool."""
        self.engine.dispose()
        logger.info("Database connection closed")

    # --------------------------------------------------------------------------
    # Financial records
    # --------------------------------------------------------------------------

    def get_financial_records(self, project_id: Optional[str] = None) -> List[FinancialRecord]:
        """
        Get financial records, optionally for one project.

        Returns:
            List of FinancialRecord objects ordered by date
        """
        with self.SessionLocal() as session:
            query = session.query(FinancialRecordRow)
            if project_id:
                query = query.filter(FinancialRecordRow.project_id == project_id)
            rows = query.order_by(FinancialRecordRow.date, FinancialRecordRow.id).all()
            return [_record_from_row(row) for row in rows]

    def save_financial_records(self, records: Iterable[FinancialRecord]) -> int:
        """
        Insert or update records by id.

        Returns:
            Number of records written
        """
        count = 0
        try:
            with self.SessionLocal() as session:
                with session.begin():
                    for record in records:
                        data = record.to_dict()
                        session.merge(FinancialRecordRow(**data))
                        count += 1
        except SQLAlchemyError as e:
            logger.error(f"Failed to save financial records: {e}")
            raise

        logger.info(f"Saved {count} financial records")
        return count

    # --------------------------------------------------------------------------
    # Team members
    # --------------------------------------------------------------------------

    def get_team_members(self) -> List[TeamMember]:
        with self.SessionLocal() as session:
            rows = session.query(TeamMemberRow).order_by(TeamMemberRow.name).all()
            return [
                TeamMember(id=row.id, name=row.name, availability=row.availability)
                for row in rows
            ]

    def save_team_members(self, members: Iterable[TeamMember]) -> int:
        count = 0
        try:
            with self.SessionLocal() as session:
                with session.begin():
                    for member in members:
                        session.merge(TeamMemberRow(
                            id=member.id,
                            name=member.name,
                            availability=member.availability
                        ))
                        count += 1
        except SQLAlchemyError as e:
            logger.error(f"Failed to save team members: {e}")
            raise

        logger.info(f"Saved {count} team members")
        return count

    # --------------------------------------------------------------------------
    # Profit shares
    # --------------------------------------------------------------------------

    def get_profit_shares(self, project_id: Optional[str] = None) -> List[TeamMemberShare]:
        """
        Get saved profit shares.

        Args:
            project_id: Only this project's shares; None returns every share

        Returns:
            List of TeamMemberShare objects in insertion order
        """
        with self.SessionLocal() as session:
            query = session.query(ProfitShareRow)
            if project_id is not None:
                query = query.filter(ProfitShareRow.project_id == project_id)
            rows = query.order_by(ProfitShareRow.id).all()
            return [_share_from_row(row) for row in rows]

    def replace_profit_shares(
        self,
        project_id: Optional[str],
        shares: Iterable[TeamMemberShare]
    ) -> int:
        """
        Replace a project's profit shares in one transaction.

        Existing rows for the project are deleted and the new shares are
        inserted. With project_id None every stored share is replaced. On
        failure the transaction is rolled back and the error re-raised.

        Returns:
            Number of shares written
        """
        shares = list(shares)
        try:
            with self.SessionLocal() as session:
                with session.begin():
                    query = session.query(ProfitShareRow)
                    if project_id is not None:
                        query = query.filter(ProfitShareRow.project_id == project_id)
                    deleted = query.delete(synchronize_session=False)

                    for share in shares:
                        session.add(ProfitShareRow(
                            project_id=share.project_id,
                            member_id=share.member_id,
                            member_name=share.member_name,
                            percentage=share.percentage,
                            amount=share.amount
                        ))
        except SQLAlchemyError as e:
            logger.error(f"Failed to replace profit shares for project {project_id}: {e}")
            raise

        logger.info(
            f"Replaced {deleted} profit shares with {len(shares)} for project {project_id}"
        )
        return len(shares)
