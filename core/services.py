# core/services.py
"""
Business logic of the finance application.

Every function here talks to the database through the ORM. Database
failures are mapped onto the domain errors of ``core.exceptions``: a unique
constraint violation becomes ``DuplicateError``, anything else
``BackendError``.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Sum

from . import aggregation
from .constants import INCOME, EXPENSE, TRANSACTION_TYPES
from .csv_io import detect_transaction_type, parse_amount, parse_csv
from .exceptions import (
    AuthRequiredError,
    BackendError,
    DuplicateError,
    ImportFormatError,
    NotFoundError,
    ValidationError,
)
from .models import Category, FinanceDashboard, Profile, Transaction

logger = logging.getLogger(__name__)

DASHBOARD_EXISTS = 'Dashboard already exists'
CATEGORY_EXISTS = 'Category already exists'


@contextmanager
def backend_call(duplicate_message=None):
    """Translates database errors raised inside the block."""
    try:
        yield
    except IntegrityError as exc:
        if duplicate_message:
            raise DuplicateError(duplicate_message) from exc
        raise BackendError(str(exc)) from exc
    except DatabaseError as exc:
        raise BackendError(str(exc)) from exc


def require_user(user):
    if user is None or not user.is_authenticated:
        raise AuthRequiredError()
    return user


def _clean_name(name, message):
    name = (name or '').strip()
    if not name:
        raise ValidationError(message)
    return name


def _check_type(transaction_type):
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f'Unknown transaction type: {transaction_type}')
    return transaction_type


# === Dashboards ===

def default_dashboard_name():
    return getattr(settings, 'FINANCE_DEFAULT_DASHBOARD_NAME', 'Main')


def list_dashboards(user):
    return list(FinanceDashboard.objects.filter(user=user))


def get_dashboard(user, pk):
    dashboard = FinanceDashboard.objects.filter(user=user, pk=pk).first()
    if dashboard is None:
        raise NotFoundError('Dashboard not found')
    return dashboard


def ensure_default_dashboard(user):
    """
    Returns the user's dashboards, creating the default one if there are none.

    Returns:
        list[FinanceDashboard]: ordered by creation time, never empty.
    """
    require_user(user)
    dashboards = list_dashboards(user)
    if dashboards:
        return dashboards
    with backend_call(), transaction.atomic():
        dashboard, created = FinanceDashboard.objects.get_or_create(user=user, name=default_dashboard_name())
    if created:
        logger.info('Created default dashboard %s for user %s', dashboard.pk, user.pk)
    return [dashboard]


def create_dashboard(user, name):
    require_user(user)
    name = _clean_name(name, 'Dashboard name is required')
    with backend_call(DASHBOARD_EXISTS), transaction.atomic():
        dashboard = FinanceDashboard.objects.create(user=user, name=name)
    logger.info('Created dashboard %s (%s) for user %s', dashboard.pk, name, user.pk)
    return dashboard


def rename_dashboard(user, pk, name):
    require_user(user)
    name = _clean_name(name, 'Dashboard name is required')
    dashboard = get_dashboard(user, pk)
    dashboard.name = name
    with backend_call(DASHBOARD_EXISTS), transaction.atomic():
        dashboard.save(update_fields=['name'])
    return dashboard


def delete_dashboard(user, pk):
    """
    Deletes a dashboard with its transactions and categories.

    Returns:
        FinanceDashboard: the dashboard to select next. A fresh default one
        is created when the user has nothing left.
    """
    require_user(user)
    dashboard = get_dashboard(user, pk)
    with backend_call(), transaction.atomic():
        removed, _ = Transaction.objects.filter(user=user, dashboard=dashboard).delete()
        Category.objects.filter(user=user, dashboard=dashboard).delete()
        dashboard.delete()
    logger.info('Deleted dashboard %s of user %s with %d transactions', pk, user.pk, removed)
    return ensure_default_dashboard(user)[0]


# === Categories ===

def list_categories(user, dashboard, transaction_type=None):
    categories = Category.objects.filter(user=user, dashboard=dashboard)
    if transaction_type:
        categories = categories.filter(type=transaction_type)
    return list(categories.order_by('name'))


def get_category(user, pk):
    category = Category.objects.filter(user=user, pk=pk).first()
    if category is None:
        raise NotFoundError('Category not found')
    return category


def create_category(user, dashboard, name, transaction_type):
    require_user(user)
    name = _clean_name(name, 'Category name is required')
    _check_type(transaction_type)
    with backend_call(CATEGORY_EXISTS), transaction.atomic():
        category = Category.objects.create(user=user, dashboard=dashboard, name=name, type=transaction_type)
    return category


def rename_category(user, pk, name):
    """
    Renames a category.

    Transactions keep the label they were saved with; only new entries pick
    up the new name.
    """
    require_user(user)
    name = _clean_name(name, 'Category name is required')
    category = get_category(user, pk)
    category.name = name
    with backend_call(CATEGORY_EXISTS), transaction.atomic():
        category.save(update_fields=['name'])
    return category


def delete_category(user, pk):
    require_user(user)
    category = get_category(user, pk)
    with backend_call():
        category.delete()


# === Profile ===

def get_or_create_profile(user):
    require_user(user)
    profile = Profile.objects.filter(user=user).first()
    if profile is not None:
        return profile
    email = user.email or ''
    username = email.split('@')[0] if email else user.get_username()
    with backend_call(), transaction.atomic():
        profile, _ = Profile.objects.get_or_create(user=user, defaults={'email': email, 'username': username})
    return profile


def update_username(user, username):
    profile = get_or_create_profile(user)
    profile.username = _clean_name(username, 'Username is required')
    with backend_call():
        profile.save(update_fields=['username'])
    return profile


# === Transactions ===

def list_transactions(user, dashboard, month=None, year=None):
    transactions = Transaction.objects.filter(user=user, dashboard=dashboard)
    if year and month:
        transactions = transactions.filter(date__range=aggregation.month_bounds(year, month))
    elif year:
        transactions = transactions.filter(date__year=year)
    return transactions


def add_transaction(user, dashboard, day, transaction_type, category, amount, description=''):
    require_user(user)
    _check_type(transaction_type)
    category = (category or '').strip()
    if not category or amount in (None, ''):
        raise ValidationError('Please fill in all required fields')
    value = parse_amount(amount)
    if value is None:
        raise ValidationError('Amount must be greater than zero with at most 2 decimal places')
    with backend_call():
        return Transaction.objects.create(
            user=user,
            dashboard=dashboard,
            type=transaction_type,
            category=category,
            amount=value,
            description=description or '',
            date=day,
        )


def delete_transaction(user, pk):
    require_user(user)
    with backend_call():
        deleted, _ = Transaction.objects.filter(user=user, pk=pk).delete()
    if not deleted:
        raise NotFoundError('Transaction not found')


def import_transactions_from_csv(file, user, dashboard):
    """
    Imports transactions from an uploaded CSV file.

    The type of all rows comes from the file name. Rows are inserted in a
    single database transaction: either the whole file lands or nothing.

    Returns:
        tuple[int, str]: number of imported rows and their type.
    """
    require_user(user)
    transaction_type = detect_transaction_type(file.name)

    content = file.read()
    if isinstance(content, bytes):
        try:
            content = content.decode('utf-8-sig')
        except UnicodeDecodeError:
            raise ImportFormatError('CSV file must be UTF-8 encoded')

    rows = parse_csv(content, transaction_type)
    new_transactions = [
        Transaction(
            user=user,
            dashboard=dashboard,
            type=transaction_type,
            category=row.category,
            amount=row.amount,
            description=row.description or f'{transaction_type} on {row.date.isoformat()}',
            date=row.date,
        )
        for row in rows
    ]
    with backend_call(), transaction.atomic():
        Transaction.objects.bulk_create(new_transactions)
    logger.info('Imported %d %s transactions into dashboard %s', len(new_transactions), transaction_type, dashboard.pk)
    return len(new_transactions), transaction_type


# === Day reconciliation ===

@dataclass
class DayEntry:
    amount: str = ''
    category: str = ''

    @classmethod
    def coerce(cls, entry):
        if isinstance(entry, cls):
            return entry
        return cls(amount=str(entry.get('amount') or ''), category=str(entry.get('category') or ''))


@dataclass
class DaySaveResult:
    day: date
    inserted: int

    @property
    def cleared(self):
        return self.inserted == 0


def surviving_entries(entries):
    """Entries with a storable amount above zero and a category; the rest is dropped."""
    result = []
    for entry in entries or []:
        entry = DayEntry.coerce(entry)
        amount = parse_amount(entry.amount) if entry.amount else None
        category = entry.category.strip()
        if amount is None or not category:
            continue
        result.append((amount, category))
    return result


def get_day_transactions(user, dashboard, day):
    return list(Transaction.objects.filter(user=user, dashboard=dashboard, date=day).order_by('type', 'created_at'))


def save_day_entries(user, dashboard, day, incomes, expenses):
    """
    Replaces all transactions of a day with the edited entries.

    The delete and the insert run in one database transaction, so a rejected
    insert leaves the day as it was.

    Args:
        user (User): Owner
        dashboard (FinanceDashboard): Dashboard of the day
        day (date): Calendar day
        incomes (list): ``{'amount': str, 'category': str}`` entries
        expenses (list): same for expenses

    Returns:
        DaySaveResult: number of inserted rows; ``cleared`` if none survived.
    """
    require_user(user)
    if dashboard.user_id != user.pk:
        raise NotFoundError('Dashboard not found')

    new_transactions = [
        Transaction(
            user=user,
            dashboard=dashboard,
            type=transaction_type,
            category=category,
            amount=amount,
            description=f'{transaction_type.capitalize()} on {day.isoformat()}',
            date=day,
        )
        for transaction_type, entries in ((INCOME, incomes), (EXPENSE, expenses))
        for amount, category in surviving_entries(entries)
    ]

    with backend_call(), transaction.atomic():
        removed, _ = Transaction.objects.filter(user=user, dashboard=dashboard, date=day).delete()
        Transaction.objects.bulk_create(new_transactions)

    logger.info(
        'Saved day %s on dashboard %s: %d removed, %d inserted',
        day, dashboard.pk, removed, len(new_transactions),
    )
    return DaySaveResult(day=day, inserted=len(new_transactions))


# === Period summaries ===

def get_monthly_summary(user, dashboard, year, month):
    """
    Returns income and expense totals of a month.

    Args:
        user (User): Owner
        dashboard (FinanceDashboard): Dashboard
        year (int): Year
        month (int): Month (1–12)

    Returns:
        dict: {'income': Decimal, 'expense': Decimal, 'balance': Decimal}
    """
    period = list_transactions(user, dashboard, month=month, year=year)
    income = period.filter(type=INCOME).aggregate(total=Sum('amount'))['total'] or aggregation.ZERO
    expense = period.filter(type=EXPENSE).aggregate(total=Sum('amount'))['total'] or aggregation.ZERO
    return {
        'income': income,
        'expense': expense,
        'balance': income - expense,
    }


def get_breakdown_by_category(user, dashboard, year, month, transaction_type=EXPENSE):
    """
    Returns per-category totals of one type for a month, largest first.

    Returns:
        QuerySet: [{'category': str, 'total': Decimal}, ...]
    """
    return (
        list_transactions(user, dashboard, month=month, year=year)
        .filter(type=transaction_type)
        .values('category')
        .annotate(total=Sum('amount'))
        .order_by('-total', 'category')
    )


def dashboard_overview(user, dashboard, month=None, year=None):
    """Everything the dashboard page shows for the selected period."""
    recent = getattr(settings, 'FINANCE_RECENT_TRANSACTIONS', 10)
    transactions = list(list_transactions(user, dashboard, month=month, year=year))
    summary = aggregation.summarize(transactions, recent=recent)
    overview = {
        'dashboard': {'id': dashboard.pk, 'name': dashboard.name},
        'period': {'month': month, 'year': year},
        'summary': {
            'total_income': str(summary.total_income),
            'total_expense': str(summary.total_expense),
            'net_profit': str(summary.net_profit),
        },
        'income_by_category': {k: str(v) for k, v in aggregation.sum_by_category(transactions, INCOME).items()},
        'expense_by_category': {k: str(v) for k, v in aggregation.sum_by_category(transactions, EXPENSE).items()},
        'recent_transactions': [t.as_dict() for t in summary.recent_transactions],
        'transaction_count': len(transactions),
    }
    if month and year:
        overview['days'] = [
            {
                'date': d.day.isoformat(),
                'income': str(d.income),
                'expense': str(d.expense),
                'profit': str(d.profit),
            }
            for d in aggregation.sum_by_day(transactions, month, year)
        ]
    return overview
