"""
Expenses Module

This module handles all expense-related operations for the shared expense
ledger.

Features:
    - Add/edit/delete expenses
    - Categorize expenses (Food, Transport, Rent, Utility, Others)
    - Many givers and many takers per expense, in arbitrary partial amounts
    - Equal-split helper that keeps cents exact

Data Model:
    Expense stored at: ledgers/{ledger_id}/expenses/{expense_id}
    Fields:
        - expense_id: string (E001, E002, ... format)
        - date: string (YYYY-MM-DD)
        - amount: float (must be > 0)
        - category: string
        - reason: string
        - givers: list of {person_id, amount} (who paid)
        - takers: list of {person_id, amount} (who benefited)
        - split_type: string (equal, custom)
        - created_by: string or None
        - created_at / updated_at: ISO timestamps

    Invariants:
        - givers and takers are non-empty
        - sum(givers) and sum(takers) may miss amount by 0.01 on input;
          the stored shares are rebalanced to sum to amount exactly

Functions:
    equal_split: Split an amount equally, cents exact.
    add_expense: Add a new expense to a ledger.
    update_expense: Replace fields (and giver/taker sets) of an expense.
    delete_expense: Delete an expense.
    get_expense: Get one expense.
    get_expenses: Get expenses, optionally filtered by period and category.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from activity_log import CreateEntry, DeleteEntry, EntityDetails, UpdateEntry, record_activity
from cache import snapshot_cache
from config.settings import VALID_CATEGORIES
from errors import NotFoundError, ValidationError
from firebase_store import (
    EXPENSES,
    get_timestamp,
    ledger_collection,
    next_sequential_id,
    require_db,
    validate_ledger_id
)
from logging_setup import get_logger
from persons import get_person_ids
from utils import EPSILON, Period, round_money, to_decimal, validate_date, validate_non_empty_string


_logger = get_logger("shared_expense_ledger.expenses")

VALID_SPLIT_TYPES = {"equal", "custom"}


class Expense:
    """
    Represents a single expense in the ledger.

    Attributes:
        expense_id (str): Unique identifier in E### format.
        date (str): Date of expense (YYYY-MM-DD).
        amount (float): Total amount (must be > 0).
        category (str): One of VALID_CATEGORIES.
        reason (str): Free-text description.
        givers (list[dict]): {person_id, amount} records of who paid.
        takers (list[dict]): {person_id, amount} records of who benefited.
        split_type (str): "equal" or "custom" (informational).
        created_by (str | None): Person ID of the creator.
    """

    def __init__(
        self,
        expense_id: str,
        date: str,
        amount: float,
        category: str,
        reason: str,
        givers: list[dict],
        takers: list[dict],
        split_type: str = "custom",
        created_by: Optional[str] = None,
        created_at: Optional[str] = None,
        updated_at: Optional[str] = None
    ):
        self.expense_id = expense_id
        self.date = date
        self.amount = amount
        self.category = category
        self.reason = reason
        self.givers = givers
        self.takers = takers
        self.split_type = split_type
        self.created_by = created_by
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def period(self) -> Period:
        return Period.of_date(self.date)

    def to_dict(self) -> dict:
        """Convert expense to dictionary for Firestore storage."""
        return {
            "expense_id": self.expense_id,
            "date": self.date,
            "amount": self.amount,
            "category": self.category,
            "reason": self.reason,
            "givers": [dict(g) for g in self.givers],
            "takers": [dict(t) for t in self.takers],
            "split_type": self.split_type,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        """Create an Expense instance from a dictionary."""
        return cls(
            expense_id=data.get("expense_id"),
            date=data.get("date"),
            amount=data.get("amount"),
            category=data.get("category"),
            reason=data.get("reason", ""),
            givers=data.get("givers", []),
            takers=data.get("takers", []),
            split_type=data.get("split_type", "custom"),
            created_by=data.get("created_by"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at")
        )

    def __repr__(self) -> str:
        return f"Expense(id='{self.expense_id}', date='{self.date}', amount={self.amount}, category='{self.category}')"


def equal_split(amount: float, person_ids: list[str]) -> list[dict]:
    """
    Split an amount equally among persons, keeping cents exact.

    Each person gets floor(amount / n) cents; the leftover cents go one each
    to the earliest persons in the list, so the shares always sum back to
    the amount exactly.

    Args:
        amount: Total to split (> 0).
        person_ids: Non-empty list of distinct person IDs.

    Returns:
        list[dict]: {person_id, amount} records in the given order.

    Example:
        equal_split(100, ["U001", "U002", "U003"])
        -> 33.34, 33.33, 33.33
    """
    if not person_ids:
        raise ValidationError("cannot split among an empty list of persons")
    if len(set(person_ids)) != len(person_ids):
        raise ValidationError("person_ids must not contain duplicates")

    total = _positive_amount(amount, "amount")
    total_cents = int((total * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    base, leftover = divmod(total_cents, len(person_ids))

    return [
        {"person_id": person_id, "amount": round_money(Decimal(base + (1 if i < leftover else 0)) / 100)}
        for i, person_id in enumerate(person_ids)
    ]


def _positive_amount(value, field_name: str) -> Decimal:
    amount = to_decimal(value)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{field_name} must be a positive number, got: {value}")
    return amount


def _normalize_shares(shares, field_name: str, total: Decimal) -> list[dict]:
    """
    Validate a giver/taker list and return it in storage form.

    The stored amounts always sum to ``total`` rounded to cents.

    Raises:
        ValidationError: Empty list, malformed record, negative or duplicate
            entries, or a sum that misses ``total`` by more than 0.01.
    """
    if not isinstance(shares, list) or len(shares) == 0:
        raise ValidationError(f"{field_name} must be a non-empty list of {{person_id, amount}} records")

    normalized = []
    seen = set()
    running = Decimal("0")

    for share in shares:
        if not isinstance(share, dict):
            raise ValidationError(f"{field_name} entries must be {{person_id, amount}} records")
        person_id = validate_non_empty_string(share.get("person_id"), f"{field_name}.person_id")
        amount = to_decimal(share.get("amount"))
        if not amount.is_finite() or amount < 0:
            raise ValidationError(f"{field_name} amount for {person_id} must be >= 0, got: {share.get('amount')}")
        if person_id in seen:
            raise ValidationError(f"{field_name} lists {person_id} more than once")
        seen.add(person_id)
        running += amount
        normalized.append({"person_id": person_id, "amount": round_money(amount)})

    if abs(running - total) > EPSILON:
        raise ValidationError(
            f"{field_name} sum to {round_money(running)} but the expense amount is {round_money(total)}"
        )

    # Stored shares must add up to the stored amount exactly; the largest share
    # (earliest on ties) absorbs the tolerated rounding gap
    stored = sum((to_decimal(s["amount"]) for s in normalized), Decimal("0"))
    gap = to_decimal(round_money(total)) - stored
    if gap != 0:
        largest = max(range(len(normalized)), key=lambda i: (normalized[i]["amount"], -i))
        adjusted = to_decimal(normalized[largest]["amount"]) + gap
        if adjusted < 0:
            raise ValidationError(f"{field_name} cannot be balanced to the expense amount {round_money(total)}")
        normalized[largest]["amount"] = round_money(adjusted)

    return normalized


def _validate_expense(
    ledger_id: str,
    date: str,
    amount,
    category: str,
    reason: Optional[str],
    givers,
    takers,
    split_type: str,
    created_by: Optional[str] = None
) -> dict:
    """Validate every field of an expense and return the storage fields."""
    validate_date(date, "date")
    total = _positive_amount(amount, "amount")

    if category not in VALID_CATEGORIES:
        raise ValidationError(f"category must be one of {VALID_CATEGORIES}, got: {category}")
    if split_type not in VALID_SPLIT_TYPES:
        raise ValidationError(f"split_type must be one of {VALID_SPLIT_TYPES}, got: {split_type}")
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("reason must be a string")

    givers = _normalize_shares(givers, "givers", total)
    takers = _normalize_shares(takers, "takers", total)

    # Every referenced person must exist in the ledger
    known = get_person_ids(ledger_id)
    referenced = [g["person_id"] for g in givers] + [t["person_id"] for t in takers]
    if created_by:
        referenced.append(created_by)
    for person_id in referenced:
        if person_id not in known:
            raise NotFoundError(f"Person '{person_id}' does not exist in ledger {ledger_id}")

    return {
        "date": date,
        "amount": round_money(total),
        "category": category,
        "reason": reason.strip() if reason else "",
        "givers": givers,
        "takers": takers,
        "split_type": split_type
    }


def add_expense(
    ledger_id: str,
    date: str,
    amount: float,
    category: str,
    givers: list[dict],
    takers: list[dict],
    reason: Optional[str] = None,
    split_type: str = "custom",
    created_by: Optional[str] = None
) -> Expense:
    """
    Add a new expense to a ledger.

    Args:
        ledger_id: The ID of the ledger.
        date: Date of the expense (YYYY-MM-DD).
        amount: Total amount (must be > 0).
        category: One of VALID_CATEGORIES.
        givers: {person_id, amount} records summing to ``amount``.
        takers: {person_id, amount} records summing to ``amount``.
        reason: Optional free-text description.
        split_type: "equal" or "custom".
        created_by: Optional person ID of the creator.

    Returns:
        Expense: The created expense object.

    Raises:
        ValidationError: If input validation fails.
        NotFoundError: If a referenced person does not exist.
        RuntimeError: If Firestore is not available.

    Notes:
        - A giver does NOT have to be a taker and vice versa
        - Amounts are stored rounded to 2 decimal places
    """
    validate_ledger_id(ledger_id)
    fields = _validate_expense(
        ledger_id, date, amount, category, reason, givers, takers, split_type, created_by
    )

    db = require_db()
    expenses_ref = ledger_collection(db, ledger_id, EXPENSES)
    timestamp = get_timestamp()

    expense = Expense(
        expense_id=next_sequential_id(expenses_ref, "E"),
        created_by=created_by,
        created_at=timestamp,
        updated_at=timestamp,
        **fields
    )
    expenses_ref.document(expense.expense_id).set(expense.to_dict())
    snapshot_cache.invalidate(ledger_id, expense.period.key)

    record_activity(ledger_id, CreateEntry(details=EntityDetails(
        entity="expense",
        entity_id=expense.expense_id,
        summary=f"{expense.category} {expense.amount:.2f} on {expense.date}"
    )), actor=created_by)

    _logger.info("Added expense %s (%.2f) to ledger %s", expense.expense_id, expense.amount, ledger_id)
    return expense


def get_expense(ledger_id: str, expense_id: str) -> Expense:
    """
    Get a single expense.

    Raises:
        NotFoundError: If the expense does not exist.
    """
    validate_ledger_id(ledger_id)
    expense_id = validate_non_empty_string(expense_id, "expense_id")
    db = require_db()

    doc = ledger_collection(db, ledger_id, EXPENSES).document(expense_id).get()
    if not doc.exists:
        raise NotFoundError(f"Expense {expense_id} not found in ledger {ledger_id}")
    return Expense.from_dict(doc.to_dict())


def update_expense(
    ledger_id: str,
    expense_id: str,
    actor: Optional[str] = None,
    **changes
) -> Expense:
    """
    Update an expense.

    Accepted keyword changes: date, amount, category, reason, givers, takers,
    split_type. Giver and taker lists are replaced wholesale, never merged.
    The merged result is validated exactly like a new expense.

    Raises:
        ValidationError: If an unknown field is given or validation fails.
        NotFoundError: If the expense or a referenced person does not exist.
    """
    allowed = {"date", "amount", "category", "reason", "givers", "takers", "split_type"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"cannot update fields: {sorted(unknown)}")

    existing = get_expense(ledger_id, expense_id)
    merged = existing.to_dict()
    merged.update({k: v for k, v in changes.items() if v is not None})

    fields = _validate_expense(
        ledger_id,
        merged["date"],
        merged["amount"],
        merged["category"],
        merged["reason"],
        merged["givers"],
        merged["takers"],
        merged["split_type"]
    )

    updated = Expense(
        expense_id=existing.expense_id,
        created_by=existing.created_by,
        created_at=existing.created_at,
        updated_at=get_timestamp(),
        **fields
    )

    db = require_db()
    ledger_collection(db, ledger_id, EXPENSES).document(expense_id).set(updated.to_dict())

    # The date may have moved the expense into another period
    snapshot_cache.invalidate(ledger_id, existing.period.key)
    snapshot_cache.invalidate(ledger_id, updated.period.key)

    record_activity(ledger_id, UpdateEntry(details=EntityDetails(
        entity="expense",
        entity_id=expense_id,
        summary=f"fields: {', '.join(sorted(k for k, v in changes.items() if v is not None))}"
    )), actor=actor)

    _logger.info("Updated expense %s in ledger %s", expense_id, ledger_id)
    return updated


def delete_expense(ledger_id: str, expense_id: str, actor: Optional[str] = None) -> Expense:
    """
    Delete an expense.

    Returns:
        Expense: The deleted expense.

    Raises:
        NotFoundError: If the expense does not exist.
    """
    existing = get_expense(ledger_id, expense_id)

    db = require_db()
    ledger_collection(db, ledger_id, EXPENSES).document(expense_id).delete()
    snapshot_cache.invalidate(ledger_id, existing.period.key)

    record_activity(ledger_id, DeleteEntry(details=EntityDetails(
        entity="expense",
        entity_id=expense_id,
        summary=f"{existing.category} {existing.amount:.2f} on {existing.date}"
    )), actor=actor)

    _logger.info("Deleted expense %s from ledger %s", expense_id, ledger_id)
    return existing


def get_expenses(
    ledger_id: str,
    period: Optional[Period] = None,
    category: Optional[str] = None
) -> list[Expense]:
    """
    Get expenses of a ledger, ordered by date then expense_id.

    Args:
        ledger_id: The ID of the ledger.
        period: Only expenses dated inside this (month, year) when given.
        category: Only expenses of this category when given.

    Raises:
        ValidationError: If ledger_id or category is invalid.
        RuntimeError: If Firestore is not available.
    """
    validate_ledger_id(ledger_id)
    if category is not None and category not in VALID_CATEGORIES:
        raise ValidationError(f"category must be one of {VALID_CATEGORIES}, got: {category}")

    db = require_db()
    docs = ledger_collection(db, ledger_id, EXPENSES).stream()

    expenses = []
    for doc in docs:
        expense = Expense.from_dict(doc.to_dict())
        if period is not None and not period.contains(expense.date):
            continue
        if category is not None and expense.category != category:
            continue
        expenses.append(expense)

    expenses.sort(key=lambda e: (e.date, e.expense_id))
    return expenses
