from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Iterable

from domain.models import TransactionType
from domain.schemas import CategoryTotal, DailyPoint, TransactionSummary


def _day_of(txn: Any) -> date:
    return txn.occurred_at.date()


def summarize_transactions(
    transactions: Iterable[Any],
    start: date | None = None,
    end: date | None = None,
) -> TransactionSummary:
    """
    Totals, category breakdown and daily trend for a set of transactions.

    Works on anything exposing txn_type, amount, category and occurred_at, so
    the client can summarize its merged (confirmed + optimistic) view with the
    same arithmetic the server uses.

    The daily trend covers every day from start to end inclusive; when either
    bound is missing it is taken from the transactions themselves.
    """
    rows = list(transactions)
    total_income = 0.0
    total_expenses = 0.0
    highest_income = 0.0
    highest_expense = 0.0
    by_category: dict[str, float] = defaultdict(float)
    daily: dict[date, dict[str, float]] = defaultdict(lambda: {"income": 0.0, "expenses": 0.0})

    for txn in rows:
        amount = float(txn.amount)
        day = _day_of(txn)
        if TransactionType(txn.txn_type) == TransactionType.INCOME:
            total_income += amount
            highest_income = max(highest_income, amount)
            daily[day]["income"] += amount
        else:
            total_expenses += amount
            highest_expense = max(highest_expense, amount)
            by_category[txn.category or "Other Expenses"] += amount
            daily[day]["expenses"] += amount

    if rows:
        days = [_day_of(t) for t in rows]
        start = start or min(days)
        end = end or max(days)

    trend: list[DailyPoint] = []
    if start and end and start <= end:
        day = start
        while day <= end:
            bucket = daily.get(day, {"income": 0.0, "expenses": 0.0})
            trend.append(DailyPoint(
                date=day,
                income=round(bucket["income"], 2),
                expenses=round(bucket["expenses"], 2),
                net=round(bucket["income"] - bucket["expenses"], 2),
            ))
            day += timedelta(days=1)

    balance = total_income - total_expenses
    day_count = len(trend) or 1
    categories = sorted(
        (CategoryTotal(name=name, value=round(value, 2)) for name, value in by_category.items()),
        key=lambda c: c.value,
        reverse=True,
    )

    return TransactionSummary(
        total_income=round(total_income, 2),
        total_expenses=round(total_expenses, 2),
        balance=round(balance, 2),
        savings=round(balance, 2),
        savings_rate=round(balance / total_income * 100, 1) if total_income > 0 else 0.0,
        transaction_count=len(rows),
        highest_income=round(highest_income, 2),
        highest_expense=round(highest_expense, 2),
        average_expense=round(total_expenses / (len(rows) or 1), 2),
        average_daily_spending=round(total_expenses / day_count, 2),
        expenses_by_category=categories,
        daily=trend,
    )
