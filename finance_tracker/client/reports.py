"""
client/reports.py
-----------------
Dashboard analytics built on the API client: monthly trends fetched in
parallel and the top categories for charts.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from finance_tracker.client.api import FinanceTrackerClient
from finance_tracker.payloads import BreakdownItem, Summary

CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥"}


@dataclass
class MonthlyPoint:
    year: int
    month: int
    label: str
    income: float
    expenses: float
    net: float


def last_months(months: int, today: Optional[date] = None) -> List[tuple]:
    """(year, month) pairs for the last N months, oldest first, ending with today's month."""
    today = today or date.today()
    pairs = []
    year, month = today.year, today.month
    for _ in range(months):
        pairs.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(pairs))


def monthly_summaries(api: FinanceTrackerClient, months: int = 6,
                      today: Optional[date] = None) -> List[MonthlyPoint]:
    """
    Fetch one summary per month concurrently.

    Each result is keyed by the year/month it was requested for, so the
    order in which the requests finish does not matter.
    """
    periods = last_months(months, today)
    with ThreadPoolExecutor(max_workers=max(1, len(periods))) as pool:
        futures = {period: pool.submit(api.summary, year=period[0], month=period[1]) for period in periods}
        results = {period: future.result() for period, future in futures.items()}

    points = []
    for year, month in periods:
        summary: Summary = results[(year, month)]
        points.append(MonthlyPoint(
            year=year,
            month=month,
            label=date(year, month, 1).strftime("%b %y"),
            income=summary.income.total,
            expenses=summary.expenses.total,
            net=summary.net_amount,
        ))
    return points


def top_categories(breakdown: Sequence[BreakdownItem], n: int = 6) -> List[BreakdownItem]:
    return sorted(breakdown, key=lambda item: item.total, reverse=True)[:n]


def format_amount(amount: float, type: str = "expense", currency: str = "INR") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    sign = "+" if type == "income" else "-"
    return f"{sign}{symbol}{abs(amount):,.2f}"
