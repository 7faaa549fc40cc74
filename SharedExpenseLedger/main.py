"""
SharedExpenseLedger - FastAPI Web Backend

This module serves as the main entry point for the shared expense ledger
API using FastAPI.

Features:
    - RESTful API for persons, expenses and settlements
    - Integration with Firebase Firestore backend
    - Net positions, minimal dues and per-person stats per (month, year)
    - Balance rollover between periods
    - Analytics, transparency breakdowns and the activity log

Endpoints:
    POST   /ledgers/{ledger_id}/persons                        - Add person
    GET    /ledgers/{ledger_id}/persons                        - List persons
    POST   /ledgers/{ledger_id}/expenses                       - Add expense
    GET    /ledgers/{ledger_id}/expenses                       - List expenses
    GET    /ledgers/{ledger_id}/expenses/{expense_id}          - Get expense
    PUT    /ledgers/{ledger_id}/expenses/{expense_id}          - Update expense
    DELETE /ledgers/{ledger_id}/expenses/{expense_id}          - Delete expense
    GET    /ledgers/{ledger_id}/dues                           - Who owes whom
    GET    /ledgers/{ledger_id}/dues/stats                     - Per-person stats
    POST   /ledgers/{ledger_id}/dues/settle                    - Record settlement
    GET    /ledgers/{ledger_id}/dues/settlements               - List settlements
    DELETE /ledgers/{ledger_id}/dues/settlements/history       - Delete all settlements
    DELETE /ledgers/{ledger_id}/dues/settlements/{settlement_id} - Delete settlement
    POST   /ledgers/{ledger_id}/dues/rollover                  - Carry balances forward
    DELETE /ledgers/{ledger_id}/dues/reset                     - Drop carry-forward
    POST   /ledgers/{ledger_id}/dues/clear-database            - Clear ledger
    GET    /ledgers/{ledger_id}/analytics                      - Breakdown + warnings
    GET    /ledgers/{ledger_id}/explanations                   - Per-person breakdown
    GET    /ledgers/{ledger_id}/logs                           - Activity log

Admin-only endpoints (delete, clear, reset) are expected to be gated by the
access-control layer in front of this service.

Usage:
    uvicorn main:app --reload
"""

from datetime import date
from typing import Literal, Optional

from fastapi import FastAPI, Header, HTTPException, Query
from pydantic import BaseModel, Field

from activity_log import ActivityEntry, get_activity_logs
from analytics import generate_analytics
from config.settings import get_log_level
from errors import ConflictError, NotFoundError, ValidationError
from expenses import (
    Expense,
    add_expense,
    delete_expense,
    equal_split,
    get_expense,
    get_expenses,
    update_expense
)
from ledger import clear_ledger, get_period_report
from logging_setup import configure_logging, get_logger
from persons import Person, add_person, get_persons
from rollover import reset_carry_forward, rollover_balances
from settlement_records import (
    Settlement,
    clear_settlement_history,
    delete_settlement,
    get_settlements,
    record_settlement
)
from utils import Period, explain_all_persons


configure_logging(get_log_level())
_logger = get_logger("shared_expense_ledger.api")


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

class PersonCreate(BaseModel):
    """Request model for adding a person."""
    name: str = Field(..., min_length=1, description="Display name")
    email: Optional[str] = Field(None, description="Optional email")
    role: Literal["admin", "user"] = Field("user", description="Informational role")


class PersonResponse(BaseModel):
    """Response model for person data."""
    person_id: str
    name: str
    email: Optional[str]
    role: str


class Share(BaseModel):
    """One giver or taker record."""
    person_id: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)


class ExpenseCreate(BaseModel):
    """
    Request model for adding an expense.

    Either ``takers`` is given explicitly, or ``taker_ids`` is given with
    ``split_type="equal"`` and the amount is split equally among them.
    """
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="Expense date (YYYY-MM-DD)")
    amount: float = Field(..., gt=0, description="Expense amount (must be > 0)")
    category: str = Field(..., description="Expense category")
    reason: Optional[str] = Field(None, description="Free-text reason")
    givers: list[Share] = Field(..., min_length=1, description="Who paid, and how much")
    takers: Optional[list[Share]] = Field(None, description="Who benefited, and how much")
    taker_ids: Optional[list[str]] = Field(None, description="Beneficiaries for an equal split")
    split_type: Literal["equal", "custom"] = Field("custom")


class ExpenseUpdate(BaseModel):
    """Request model for updating an expense; omitted fields are kept."""
    date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    amount: Optional[float] = Field(None, gt=0)
    category: Optional[str] = None
    reason: Optional[str] = None
    givers: Optional[list[Share]] = None
    takers: Optional[list[Share]] = None
    split_type: Optional[Literal["equal", "custom"]] = None


class ExpenseResponse(BaseModel):
    """Response model for expense data."""
    expense_id: str
    date: str
    amount: float
    category: str
    reason: str
    givers: list[Share]
    takers: list[Share]
    split_type: str
    created_by: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]


class SettleRequest(BaseModel):
    """Request model for recording a settlement."""
    from_person: str = Field(..., min_length=1, description="Who paid")
    to_person: str = Field(..., min_length=1, description="Who received")
    amount: float = Field(..., gt=0, description="Amount paid (must be > 0)")
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=1900, le=9999)
    note: Optional[str] = None


class SettlementResponse(BaseModel):
    """Response model for settlement data."""
    settlement_id: str
    from_person: str
    to_person: str
    amount: float
    month: int
    year: int
    timestamp: Optional[str]
    note: Optional[str]


class Due(BaseModel):
    from_person: str = Field(..., alias="from")
    to_person: str = Field(..., alias="to")
    amount: float


class DuesResponse(BaseModel):
    """Response model for the who-owes-whom list."""
    month: int
    year: int
    dues: list[Due]
    persons: list[PersonResponse]


class UserStat(BaseModel):
    person_id: str
    name: Optional[str]
    paid: float
    consumed: float
    settled_amount: float
    owes: float
    owed: float
    net: float


class StatsResponse(BaseModel):
    """Response model for per-person stats."""
    month: int
    year: int
    summary: list[UserStat]


class RolloverRequest(BaseModel):
    """Request model for a rollover; target defaults to the next month."""
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1900, le=9999)
    to_month: Optional[int] = Field(None, ge=1, le=12)
    to_year: Optional[int] = Field(None, ge=1900, le=9999)


class RolloverResponse(BaseModel):
    rollover_id: str
    from_period: str
    to_period: str
    carry_forward: dict[str, float]


class ClearResponse(BaseModel):
    message: str
    removed: dict[str, int]


class AnalyticsResponse(BaseModel):
    month: int
    year: int
    analytics: dict
    warnings: list[str]


class LogsResponse(BaseModel):
    logs: list[ActivityEntry]


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Shared Expense Ledger",
    description="Shared expenses, minimal dues and settlements per month",
    version="1.0.0"
)


# =============================================================================
# Helper Functions
# =============================================================================

def _resolve_period(month: Optional[int], year: Optional[int]) -> Period:
    """Period from query/body values, defaulting to the current month."""
    today = date.today()
    return Period(month if month is not None else today.month, year if year is not None else today.year)


def _http_error(e: Exception) -> HTTPException:
    """Map a ledger error onto the HTTP status it stands for."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, RuntimeError):
        return HTTPException(status_code=503, detail=str(e))
    _logger.exception("Unhandled error")
    return HTTPException(status_code=500, detail=str(e))


def _person_response(p: Person) -> PersonResponse:
    return PersonResponse(person_id=p.person_id, name=p.name, email=p.email, role=p.role)


def _expense_response(e: Expense) -> ExpenseResponse:
    return ExpenseResponse(**e.to_dict())


def _settlement_response(s: Settlement) -> SettlementResponse:
    return SettlementResponse(**s.to_dict())


# =============================================================================
# Persons
# =============================================================================

@app.post("/ledgers/{ledger_id}/persons", response_model=PersonResponse, status_code=201)
async def create_person(ledger_id: str, person_data: PersonCreate):
    """Add a person to a ledger."""
    try:
        person = add_person(
            ledger_id=ledger_id,
            name=person_data.name,
            email=person_data.email,
            role=person_data.role
        )
        return _person_response(person)
    except Exception as e:
        raise _http_error(e)


@app.get("/ledgers/{ledger_id}/persons", response_model=list[PersonResponse])
async def list_persons(ledger_id: str):
    try:
        return [_person_response(p) for p in get_persons(ledger_id)]
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Expenses
# =============================================================================

@app.post("/ledgers/{ledger_id}/expenses", response_model=ExpenseResponse, status_code=201)
async def create_expense(
    ledger_id: str,
    expense_data: ExpenseCreate,
    actor: Optional[str] = Header(None, alias="X-Actor-Id")
):
    """
    Add an expense.

    Request flow:
        1. Validate input using Pydantic model
        2. Build takers from taker_ids for equal splits
        3. Call add_expense() from expenses.py
        4. Return created expense data
    """
    try:
        if expense_data.takers is not None:
            takers = [t.model_dump() for t in expense_data.takers]
        elif expense_data.taker_ids and expense_data.split_type == "equal":
            takers = equal_split(expense_data.amount, expense_data.taker_ids)
        else:
            raise ValidationError("takers are required unless split_type is 'equal' with taker_ids")

        expense = add_expense(
            ledger_id=ledger_id,
            date=expense_data.date,
            amount=expense_data.amount,
            category=expense_data.category,
            givers=[g.model_dump() for g in expense_data.givers],
            takers=takers,
            reason=expense_data.reason,
            split_type=expense_data.split_type,
            created_by=actor
        )
        return _expense_response(expense)
    except Exception as e:
        raise _http_error(e)


@app.get("/ledgers/{ledger_id}/expenses", response_model=list[ExpenseResponse])
async def list_expenses(
    ledger_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    category: Optional[str] = None
):
    """List expenses; filtered to a period only when month or year is given."""
    try:
        period = _resolve_period(month, year) if month is not None or year is not None else None
        return [_expense_response(e) for e in get_expenses(ledger_id, period=period, category=category)]
    except Exception as e:
        raise _http_error(e)


@app.get("/ledgers/{ledger_id}/expenses/{expense_id}", response_model=ExpenseResponse)
async def read_expense(ledger_id: str, expense_id: str):
    try:
        return _expense_response(get_expense(ledger_id, expense_id))
    except Exception as e:
        raise _http_error(e)


@app.put("/ledgers/{ledger_id}/expenses/{expense_id}", response_model=ExpenseResponse)
async def edit_expense(
    ledger_id: str,
    expense_id: str,
    expense_data: ExpenseUpdate,
    actor: Optional[str] = Header(None, alias="X-Actor-Id")
):
    """Update an expense; giver/taker lists, when sent, replace the old ones."""
    try:
        changes = expense_data.model_dump(exclude_none=True)
        expense = update_expense(ledger_id, expense_id, actor=actor, **changes)
        return _expense_response(expense)
    except Exception as e:
        raise _http_error(e)


@app.delete("/ledgers/{ledger_id}/expenses/{expense_id}", response_model=ExpenseResponse)
async def remove_expense(
    ledger_id: str,
    expense_id: str,
    actor: Optional[str] = Header(None, alias="X-Actor-Id")
):
    try:
        return _expense_response(delete_expense(ledger_id, expense_id, actor=actor))
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Dues and Settlements
# =============================================================================

@app.get("/ledgers/{ledger_id}/dues", response_model=DuesResponse)
async def get_dues(
    ledger_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999)
):
    """
    Who owes whom for a period.

    Request flow:
        1. Load the period snapshot (cached)
        2. Compute net positions (splitter.py)
        3. Compute minimal dues (settlement.py)
    """
    try:
        period = _resolve_period(month, year)
        report = get_period_report(ledger_id, period)
        return DuesResponse(
            month=period.month,
            year=period.year,
            dues=[Due.model_validate(d) for d in report["dues"]],
            persons=[PersonResponse(**p) for p in report["snapshot"].persons]
        )
    except Exception as e:
        raise _http_error(e)


@app.get("/ledgers/{ledger_id}/dues/stats", response_model=StatsResponse)
async def get_stats(
    ledger_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999)
):
    """Per-person paid, consumed, settled, owes, owed and net for a period."""
    try:
        period = _resolve_period(month, year)
        report = get_period_report(ledger_id, period)
        return StatsResponse(
            month=period.month,
            year=period.year,
            summary=[UserStat(**s) for s in report["stats"]]
        )
    except Exception as e:
        raise _http_error(e)


@app.post("/ledgers/{ledger_id}/dues/settle", response_model=SettlementResponse, status_code=201)
async def settle_dues(
    ledger_id: str,
    settle_data: SettleRequest,
    actor: Optional[str] = Header(None, alias="X-Actor-Id")
):
    """Record a "mark as paid" settlement."""
    try:
        settlement = record_settlement(
            ledger_id=ledger_id,
            from_person=settle_data.from_person,
            to_person=settle_data.to_person,
            amount=settle_data.amount,
            period=_resolve_period(settle_data.month, settle_data.year),
            note=settle_data.note,
            actor=actor
        )
        return _settlement_response(settlement)
    except Exception as e:
        raise _http_error(e)


@app.get("/ledgers/{ledger_id}/dues/settlements", response_model=list[SettlementResponse])
async def list_settlements(
    ledger_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999)
):
    try:
        period = _resolve_period(month, year)
        return [_settlement_response(s) for s in get_settlements(ledger_id, period=period)]
    except Exception as e:
        raise _http_error(e)


# Declared before /settlements/{settlement_id} so "history" is not read as an id
@app.delete("/ledgers/{ledger_id}/dues/settlements/history", response_model=ClearResponse)
async def delete_history(ledger_id: str, actor: Optional[str] = Header(None, alias="X-Actor-Id")):
    """
    Delete every settlement record.

    Balances are recomputed from the remaining records, so removing
    settlements changes the dues that were settled by them.
    """
    try:
        removed = clear_settlement_history(ledger_id, actor=actor)
        return ClearResponse(message="Settlement history deleted", removed={"settlements": removed})
    except Exception as e:
        raise _http_error(e)


@app.delete("/ledgers/{ledger_id}/dues/settlements/{settlement_id}", response_model=SettlementResponse)
async def remove_settlement(
    ledger_id: str,
    settlement_id: str,
    actor: Optional[str] = Header(None, alias="X-Actor-Id")
):
    """Delete one settlement; the balance it had reduced is restored."""
    try:
        return _settlement_response(delete_settlement(ledger_id, settlement_id, actor=actor))
    except Exception as e:
        raise _http_error(e)


@app.post("/ledgers/{ledger_id}/dues/rollover", response_model=RolloverResponse, status_code=201)
async def rollover(
    ledger_id: str,
    rollover_data: RolloverRequest,
    actor: Optional[str] = Header(None, alias="X-Actor-Id")
):
    """Carry a period's net positions into the next (or a given) period."""
    try:
        from_period = Period(rollover_data.month, rollover_data.year)
        to_period = None
        if rollover_data.to_month is not None or rollover_data.to_year is not None:
            default_target = from_period.next()
            to_period = Period(
                rollover_data.to_month if rollover_data.to_month is not None else default_target.month,
                rollover_data.to_year if rollover_data.to_year is not None else default_target.year
            )

        record = rollover_balances(ledger_id, from_period, to_period, actor=actor)
        return RolloverResponse(
            rollover_id=record["rollover_id"],
            from_period=record["from_key"],
            to_period=record["to_key"],
            carry_forward=record["carry_forward"]
        )
    except Exception as e:
        raise _http_error(e)


@app.delete("/ledgers/{ledger_id}/dues/reset", response_model=ClearResponse)
async def reset_balances(
    ledger_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    actor: Optional[str] = Header(None, alias="X-Actor-Id")
):
    """Drop the carry-forward rolled into a period."""
    try:
        period = _resolve_period(month, year)
        removed = reset_carry_forward(ledger_id, period, actor=actor)
        return ClearResponse(message=f"Carry-forward into {period.key} removed", removed={"rollovers": removed})
    except Exception as e:
        raise _http_error(e)


@app.post("/ledgers/{ledger_id}/dues/clear-database", response_model=ClearResponse)
async def clear_database(ledger_id: str, actor: Optional[str] = Header(None, alias="X-Actor-Id")):
    """Remove all expenses, settlements and rollovers. Persons are kept."""
    try:
        removed = clear_ledger(ledger_id, actor=actor)
        return ClearResponse(message="Ledger cleared", removed=removed)
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Reports
# =============================================================================

@app.get("/ledgers/{ledger_id}/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    ledger_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999)
):
    try:
        period = _resolve_period(month, year)
        snapshot = get_period_report(ledger_id, period)["snapshot"]
        result = generate_analytics(list(snapshot.persons), list(snapshot.expenses))
        return AnalyticsResponse(
            month=period.month,
            year=period.year,
            analytics=result["analytics"],
            warnings=result["warnings"]
        )
    except Exception as e:
        raise _http_error(e)


@app.get("/ledgers/{ledger_id}/explanations")
async def get_explanations(
    ledger_id: str,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999)
):
    """Per-person list of the expenses behind each net position."""
    try:
        period = _resolve_period(month, year)
        report = get_period_report(ledger_id, period)
        return {
            "month": period.month,
            "year": period.year,
            "explanations": explain_all_persons(list(report["snapshot"].expenses), report["positions"])
        }
    except Exception as e:
        raise _http_error(e)


@app.get("/ledgers/{ledger_id}/logs", response_model=LogsResponse)
async def get_logs(ledger_id: str, limit: int = Query(50, ge=1, le=500)):
    try:
        return LogsResponse(logs=get_activity_logs(ledger_id, limit=limit))
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Shared Expense Ledger"}


# =============================================================================
# Run with: python main.py
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
