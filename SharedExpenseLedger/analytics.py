"""
Analytics Module

This module provides summary and breakdown reports for the shared expense
ledger.

Features:
    - Period total and expense count
    - Category-wise expense breakdown
    - Per-person breakdown of what each person paid
    - Highest spending day identification
    - Smart warnings for spending imbalances

Data Model:
    Input - persons: list of dicts with person_id and name

    Input - expenses: list of dicts with:
        - amount: float
        - category: string
        - date: string (YYYY-MM-DD)
        - givers: list of {person_id, amount}

    Output - dict containing:
        - analytics: dict with total_expense, expense_count,
          category_breakdown, user_breakdown, highest_spending_day
        - warnings: list of warning strings

Functions:
    generate_analytics: Generate analytics and warnings from expense data.
"""

from collections import defaultdict
from decimal import Decimal

from utils import format_currency, round_money, to_decimal


def generate_analytics(persons: list[dict], expenses: list[dict]) -> dict:
    """
    Generate analytics and smart warnings from expense data.

    Analytics computed:
        - total_expense / expense_count
        - category_breakdown: [{category, total, count}], largest first
        - user_breakdown: [{person_id, name, total, count}], largest first;
          ``total`` is what the person gave, ``count`` how many expenses
        - highest_spending_day: {date, amount}

    Warnings generated (rule-based):
        - If one person paid > 40% of the total
        - If one category > 50% of the total
        - If a day's spend > 2x average daily spend

    Args:
        persons: Person dicts with person_id and name.
        expenses: Expense dicts with amount, category, date, givers.

    Returns:
        dict: {"analytics": {...}, "warnings": [...]}
    """
    names = {p["person_id"]: p.get("name") or p["person_id"] for p in persons}

    category_totals = defaultdict(Decimal)
    category_counts = defaultdict(int)
    daily_totals = defaultdict(Decimal)
    payer_totals = defaultdict(Decimal)
    payer_counts = defaultdict(int)
    total_spent = Decimal("0")

    for expense in expenses:
        amount = to_decimal(expense["amount"])
        category_totals[expense["category"]] += amount
        category_counts[expense["category"]] += 1
        daily_totals[expense["date"]] += amount
        total_spent += amount

        for giver in expense.get("givers", []):
            payer_totals[giver["person_id"]] += to_decimal(giver["amount"])
            payer_counts[giver["person_id"]] += 1

    category_breakdown = [
        {"category": category, "total": round_money(total), "count": category_counts[category]}
        for category, total in sorted(category_totals.items(), key=lambda kv: (-kv[1], kv[0]))
    ]

    user_breakdown = [
        {
            "person_id": person_id,
            "name": names.get(person_id, person_id),
            "total": round_money(total),
            "count": payer_counts[person_id]
        }
        for person_id, total in sorted(payer_totals.items(), key=lambda kv: (-kv[1], kv[0]))
    ]

    highest_spending_day = {"date": None, "amount": 0.0}
    if daily_totals:
        max_date = max(sorted(daily_totals), key=daily_totals.get)
        highest_spending_day = {"date": max_date, "amount": round_money(daily_totals[max_date])}

    analytics = {
        "total_expense": round_money(total_spent),
        "expense_count": len(expenses),
        "category_breakdown": category_breakdown,
        "user_breakdown": user_breakdown,
        "highest_spending_day": highest_spending_day
    }

    warnings = []
    total_text = format_currency(round_money(total_spent))

    # Rule 1: one person paid > 40% of the total
    if total_spent > 0:
        for person_id, amount in sorted(payer_totals.items()):
            percentage = (amount / total_spent) * 100
            if percentage > 40:
                warnings.append(
                    f"Warning: {names.get(person_id, person_id)} paid {round_money(percentage)}% of total expenses "
                    f"({format_currency(round_money(amount))} of {total_text})"
                )

    # Rule 2: one category > 50% of the total
    if total_spent > 0:
        for category, amount in sorted(category_totals.items()):
            percentage = (amount / total_spent) * 100
            if percentage > 50:
                warnings.append(
                    f"Warning: '{category}' accounts for {round_money(percentage)}% of total spend "
                    f"({format_currency(round_money(amount))} of {total_text})"
                )

    # Rule 3: a day's spend > 2x the average daily spend
    if len(daily_totals) > 1:
        avg_daily = total_spent / Decimal(len(daily_totals))
        for date, amount in sorted(daily_totals.items()):
            if amount > avg_daily * 2:
                warnings.append(
                    f"Warning: Spending on {date} ({format_currency(round_money(amount))}) "
                    f"exceeds 2x average daily spend ({format_currency(round_money(avg_daily))})"
                )

    return {
        "analytics": analytics,
        "warnings": warnings
    }
