# core/aggregation.py
"""
Aggregations behind the summary cards and charts.

All functions are pure: they take any iterable of objects with ``type``,
``category``, ``amount`` and ``date`` attributes (model instances or parsed
CSV rows) and never touch the database.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from .constants import INCOME, EXPENSE

ZERO = Decimal('0')


@dataclass
class DashboardSummary:
    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    net_profit: Decimal = ZERO
    recent_transactions: list = field(default_factory=list)


@dataclass
class DayTotals:
    day: date
    income: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def profit(self):
        return self.income - self.expense


def month_bounds(year, month):
    """
    Returns the first and the last day of a month.

    Args:
        year (int): Year
        month (int): Month (1–12)

    Returns:
        tuple[date, date]
    """
    start_date = date(year, month, 1)
    end_date = start_date + relativedelta(months=1) - relativedelta(days=1)
    return start_date, end_date


def shift_month(month, year, delta):
    """Moves a (month, year) selection by ``delta`` months."""
    shifted = date(year, month, 1) + relativedelta(months=delta)
    return shifted.month, shifted.year


def sum_by_type(transactions, transaction_type):
    return sum((t.amount for t in transactions if t.type == transaction_type), ZERO)


def sum_by_category(transactions, transaction_type):
    """
    Totals per category name for one type.

    Categories without transactions do not appear in the result.
    """
    totals = {}
    for t in transactions:
        if t.type != transaction_type:
            continue
        totals[t.category] = totals.get(t.category, ZERO) + t.amount
    return totals


def net_profit(transactions):
    transactions = list(transactions)
    return sum_by_type(transactions, INCOME) - sum_by_type(transactions, EXPENSE)


def filter_by_period(transactions, month=None, year=None):
    """
    Keeps transactions dated within the given calendar month of the year.

    ``None`` for both arguments keeps everything; a year alone keeps the
    whole year.
    """
    result = []
    for t in transactions:
        if year is not None and t.date.year != year:
            continue
        if month is not None and t.date.month != month:
            continue
        result.append(t)
    return result


def filter_by_category(transactions, category, transaction_type):
    """Transactions of one chart slice, newest first."""
    matching = [t for t in transactions if t.category == category and t.type == transaction_type]
    return sorted(matching, key=lambda t: t.date, reverse=True)


def sum_by_day(transactions, month, year):
    """Income and expense per day for every day of the month."""
    days_in_month = calendar.monthrange(year, month)[1]
    grid = {d: DayTotals(date(year, month, d)) for d in range(1, days_in_month + 1)}
    for t in filter_by_period(transactions, month, year):
        totals = grid[t.date.day]
        if t.type == INCOME:
            totals.income += t.amount
        elif t.type == EXPENSE:
            totals.expense += t.amount
    return [grid[d] for d in sorted(grid)]


def summarize(transactions, recent=10):
    transactions = list(transactions)
    income = sum_by_type(transactions, INCOME)
    expense = sum_by_type(transactions, EXPENSE)
    newest = sorted(transactions, key=lambda t: t.date, reverse=True)
    return DashboardSummary(
        total_income=income,
        total_expense=expense,
        net_profit=income - expense,
        recent_transactions=newest[:recent],
    )


def available_years(transactions, today=None):
    """Years present in the data, newest first; the last three years if empty."""
    years = sorted({t.date.year for t in transactions}, reverse=True)
    if years:
        return years
    current = (today or date.today()).year
    return [current, current - 1, current - 2]
