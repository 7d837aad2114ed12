"""
Finance Metrics API Server.

FastAPI front end for the computation engines: period aggregation, project
profitability, financial metrics and profit distribution, plus saving and
reading profit shares through the FinanceStateStore.

Run with:
    python src/api_server.py
"""

import sys
import logging
from datetime import date
from typing import AsyncGenerator, List, Dict, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from config import API_HOST, API_PORT, DATABASE_URL, DEFAULT_MONTHS_BACK, LOG_LEVEL, LOG_FORMAT
from engines import (
    FinancialRecord,
    TeamMember,
    TeamMemberShare,
    aggregate_financial_data,
    aggregate_over_ranges,
    calculate_project_financials,
    calculate_financial_metrics,
    calculate_monthly_financial_metrics,
    distribute,
    calculate_profit_shares
)
from data import DatabaseConnection, FinanceStateStore

logging.basicConfig(stream=sys.stdout, level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


# ==============================================================================
# REQUEST / RESPONSE MODELS
# ==============================================================================

class RecordModel(BaseModel):
    id: str
    type: str
    category: str
    amount: float
    date: Optional[str] = None
    project_id: str
    cost_type: Optional[str] = None
    description: Optional[str] = None
    user_id: Optional[str] = None


class ShareModel(BaseModel):
    member_id: str
    member_name: str
    percentage: float
    amount: Optional[float] = None
    project_id: Optional[str] = None


class MemberModel(BaseModel):
    id: str
    name: str
    availability: float = 100


class PeriodsRequest(BaseModel):
    """Records to aggregate; rolling selects the fixed window view."""
    records: List[RecordModel]
    period_type: str = "monthly"
    rolling: bool = False
    months_back: int = DEFAULT_MONTHS_BACK
    reference_date: Optional[date] = None


class ProjectFinancialsRequest(BaseModel):
    records: List[RecordModel]
    projects: Optional[Dict[str, str]] = None


class RecordsRequest(BaseModel):
    records: List[RecordModel]


class FinancialMetricsRequest(BaseModel):
    marketing_spend: float
    new_customers: float
    avg_revenue_per_customer: float
    gross_margin: float
    cash_on_hand: float
    total_expense: float
    months: float = 1
    lost_customers: float = 0
    total_customers: float = 0


class DistributionRequest(BaseModel):
    total_revenue: float
    shares: List[ShareModel]


class SplitRequest(BaseModel):
    total_revenue: float
    members: List[MemberModel]
    salaries: Optional[Dict[str, float]] = None


class ProfitSharesRequest(BaseModel):
    """Shares of one project; amounts are recomputed when total_revenue is set."""
    shares: List[ShareModel]
    total_revenue: Optional[float] = None


def _records(models: List[RecordModel]) -> List[FinancialRecord]:
    return [FinancialRecord.from_dict(m.model_dump()) for m in models]


def _shares(models: List[ShareModel]) -> List[TeamMemberShare]:
    return [TeamMemberShare(**m.model_dump()) for m in models]


# ==============================================================================
# APPLICATION
# ==============================================================================

def create_app(store: Optional[FinanceStateStore] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        store: State store to serve; when omitted one backed by
            DatabaseConnection(DATABASE_URL) is created on startup
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Opens the database and loads the state on startup."""
        db = None
        if app.state.store is None:
            logger.info("Starting Finance Metrics API Server...")
            db = DatabaseConnection(DATABASE_URL)
            app.state.store = FinanceStateStore(persistence=db)
            app.state.store.load()

        yield  # Application is running

        if db is not None:
            db.close()
        logger.info("Shutting down Finance Metrics API Server.")

    app = FastAPI(
        title="Finance Metrics API",
        version="1.0.0",
        description="Period aggregation, financial metrics and profit distribution.",
        lifespan=lifespan
    )
    app.state.store = store

    @app.get("/health")
    def health_check():
        """Endpoint to check if the server is running and the state is loaded."""
        current = app.state.store
        if current is None:
            return {"status": "initializing", "store_ready": False}
        return {
            "status": "ok",
            "store_ready": True,
            "records": len(current.records),
            "profit_shares": len(current.profit_shares)
        }

    @app.post("/periods")
    def aggregate_periods(request: PeriodsRequest):
        """Aggregate posted records into periods."""
        records = _records(request.records)
        try:
            if request.rolling:
                periods = aggregate_over_ranges(
                    records, request.period_type, request.months_back, request.reference_date
                )
            else:
                periods = aggregate_financial_data(records, request.period_type)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return {"periods": [p.to_dict() for p in periods]}

    @app.post("/projects/financials")
    def project_financials(request: ProjectFinancialsRequest):
        financials = calculate_project_financials(_records(request.records), request.projects)
        return {"projects": [pf.to_dict() for pf in financials]}

    @app.post("/metrics/financial")
    def financial_metrics(request: FinancialMetricsRequest):
        return calculate_financial_metrics(**request.model_dump())

    @app.post("/metrics/monthly")
    def monthly_metrics(request: RecordsRequest):
        return {"metrics": calculate_monthly_financial_metrics(_records(request.records))}

    @app.post("/distribution/percentage")
    def percentage_distribution(request: DistributionRequest):
        """Apply the percentage strategy without saving anything."""
        try:
            shares = distribute(request.total_revenue, _shares(request.shares))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return {
            "shares": [s.to_dict() for s in shares],
            "total_amount": sum(s.amount for s in shares)
        }

    @app.post("/distribution/split")
    def split_distribution(request: SplitRequest):
        """Apply the 50/50 salary and profit split."""
        members = [TeamMember(**m.model_dump()) for m in request.members]
        try:
            return calculate_profit_shares(request.total_revenue, members, request.salaries)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.put("/profit-shares")
    def save_profit_shares(request: ProfitSharesRequest):
        """Validate and replace a project's profit shares."""
        current = app.state.store
        if current is None:
            raise HTTPException(status_code=503, detail="State store is not initialized yet.")

        try:
            saved = current.update_profit_shares(_shares(request.shares), request.total_revenue)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except SQLAlchemyError as e:
            logger.error(f"Error saving profit shares: {e}")
            raise HTTPException(status_code=500, detail="Failed to save profit shares")

        return {
            "project_id": saved[0].project_id if saved else None,
            "shares": [s.to_dict() for s in saved]
        }

    @app.get("/profit-shares/{project_id}")
    def get_profit_shares(project_id: str):
        current = app.state.store
        if current is None:
            raise HTTPException(status_code=503, detail="State store is not initialized yet.")
        return {
            "project_id": project_id,
            "shares": [s.to_dict() for s in current.get_profit_shares_by_project(project_id)]
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)
