"""
Utilities Module

This module provides utility functions and helpers for the shared expense
ledger.

Features:
    - Decimal-safe money handling
    - (month, year) periods and their ordering
    - Input validation helpers shared by the record modules
    - Transparency: per-person breakdown of how a net position arose

Data Model:
    Input - expenses: list of dicts with:
        - expense_id: string
        - date: string (YYYY-MM-DD)
        - amount: float
        - category: string
        - givers: list of {person_id, amount}
        - takers: list of {person_id, amount}

    Input - positions: dict from compute_net_positions() keyed by person_id

Functions:
    to_decimal: Convert a stored amount to Decimal without float noise.
    round_money: Round a Decimal to 2 places and convert to float.
    format_currency: Format amount with currency symbol.
    explain_person_position: Detailed breakdown for one person.
    explain_all_persons: Detailed breakdown for every person.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from config.settings import MONEY_EPSILON, get_currency_symbol
from errors import ValidationError


EPSILON = Decimal(MONEY_EPSILON)


def to_decimal(value) -> Decimal:
    """
    Convert a stored amount to Decimal.

    Goes through ``str`` so 0.1 becomes Decimal("0.1"), not the binary float.

    Raises:
        ValidationError: If the value is not numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"amount must be a number, got: {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"amount must be a number, got: {value!r}")


def round_money(value: Decimal) -> float:
    """
    Round a Decimal to 2 decimal places and convert to float.

    Uses ROUND_HALF_UP.
    """
    return float(to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_currency(amount: float, symbol: Optional[str] = None) -> str:
    """
    Format a monetary amount with the configured currency symbol.

    Returns:
        str: Formatted string like "৳1,234.56".
    """
    if symbol is None:
        symbol = get_currency_symbol()
    return f"{symbol}{amount:,.2f}"


def validate_date(date_str: str, field_name: str) -> str:
    """
    Validate date string format (YYYY-MM-DD).

    Raises:
        ValidationError: If date format is invalid.
    """
    try:
        datetime.strptime(date_str, "%Y-%m-%d")
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be in YYYY-MM-DD format, got: {date_str}")
    return date_str


def validate_non_empty_string(value: str, field_name: str) -> str:
    """
    Validate that a string is non-empty and return it stripped.

    Raises:
        ValidationError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string")
    return value.strip()


class Period:
    """
    A (month, year) scoping key.

    Attributes:
        month (int): 1..12
        year (int): four-digit year
    """

    def __init__(self, month: int, year: int):
        if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
            raise ValidationError(f"month must be an integer between 1 and 12, got: {month!r}")
        if isinstance(year, bool) or not isinstance(year, int) or not 1900 <= year <= 9999:
            raise ValidationError(f"year must be a four-digit integer, got: {year!r}")
        self.month = month
        self.year = year

    @property
    def key(self) -> str:
        """Stable string key, e.g. "2026-03"."""
        return f"{self.year:04d}-{self.month:02d}"

    def next(self) -> "Period":
        """Return the following month."""
        if self.month == 12:
            return Period(1, self.year + 1)
        return Period(self.month + 1, self.year)

    def contains(self, date_str: str) -> bool:
        """True if a YYYY-MM-DD date falls inside this period."""
        return isinstance(date_str, str) and date_str[:7] == self.key

    def to_dict(self) -> dict:
        return {"month": self.month, "year": self.year}

    @classmethod
    def from_dict(cls, data: dict) -> "Period":
        return cls(month=data.get("month"), year=data.get("year"))

    @classmethod
    def from_key(cls, key: str) -> "Period":
        try:
            year, month = key.split("-")
            return cls(int(month), int(year))
        except (AttributeError, ValueError):
            raise ValidationError(f"period key must look like YYYY-MM, got: {key!r}")

    @classmethod
    def of_date(cls, date_str: str) -> "Period":
        validate_date(date_str[:10] if isinstance(date_str, str) else date_str, "date")
        return cls(int(date_str[5:7]), int(date_str[:4]))

    def __eq__(self, other) -> bool:
        return isinstance(other, Period) and (self.year, self.month) == (other.year, other.month)

    def __lt__(self, other: "Period") -> bool:
        return (self.year, self.month) < (other.year, other.month)

    def __le__(self, other: "Period") -> bool:
        return (self.year, self.month) <= (other.year, other.month)

    def __hash__(self) -> int:
        return hash((self.year, self.month))

    def __repr__(self) -> str:
        return f"Period('{self.key}')"


def explain_person_position(
    person_id: str,
    expenses: list[dict],
    positions: dict
) -> dict:
    """
    Generate detailed explanation of how a person's net position arose.

    For each expense the person gave to or took from:
        - Shows expense details (id, category, date, total amount)
        - Shows how much this person gave and how much they took

    Args:
        person_id: ID of the person to explain.
        expenses: List of expense dicts.
        positions: Output from compute_net_positions().

    Returns:
        dict: Explanation containing:
            - person_id: string
            - expense_lines: list of dicts with per-expense breakdown
            - paid, consumed, settled_paid, settled_received,
              carried_forward, net: floats (from positions)
    """
    position = positions.get(person_id, {})
    expense_lines = []

    for expense in expenses:
        gave = sum(
            (to_decimal(g["amount"]) for g in expense.get("givers", []) if g["person_id"] == person_id),
            Decimal("0")
        )
        took = sum(
            (to_decimal(t["amount"]) for t in expense.get("takers", []) if t["person_id"] == person_id),
            Decimal("0")
        )

        # Skip expenses this person had no part in
        if gave == 0 and took == 0:
            continue

        expense_lines.append({
            "expense_id": expense.get("expense_id", "N/A"),
            "category": expense.get("category", "Others"),
            "date": expense.get("date"),
            "reason": expense.get("reason", ""),
            "total_expense_amount": round_money(to_decimal(expense.get("amount", 0))),
            "gave": round_money(gave),
            "took": round_money(took),
            "effect": round_money(gave - took)
        })

    return {
        "person_id": person_id,
        "expense_lines": expense_lines,
        "paid": position.get("paid", 0.0),
        "consumed": position.get("consumed", 0.0),
        "settled_paid": position.get("settled_paid", 0.0),
        "settled_received": position.get("settled_received", 0.0),
        "carried_forward": position.get("carried_forward", 0.0),
        "net": position.get("net", 0.0)
    }


def explain_all_persons(expenses: list[dict], positions: dict) -> list[dict]:
    """
    Generate detailed explanations for every person in ``positions``.

    Returns:
        list[dict]: One explanation per person, ordered by person_id.
    """
    return [
        explain_person_position(person_id, expenses, positions)
        for person_id in sorted(positions)
    ]
