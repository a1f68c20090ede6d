# core/csv_io.py
"""
CSV import/export of transactions.

Import format (one file per transaction type):
    Date,Category,Amount,Description
    2025-01-15,Salary,5000,"Monthly pay"

The type is not part of the rows: it comes from the file name, which must
contain "income" or "expense".
"""

import csv
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from io import StringIO

from django.core.exceptions import ValidationError as FieldValidationError
from django.core.validators import DecimalValidator

from .aggregation import filter_by_period, sum_by_type
from .constants import INCOME, EXPENSE, MONTH_NAMES
from .exceptions import (
    AmbiguousTypeError,
    EmptyInputError,
    ImportFormatError,
    InvalidAmountError,
    InvalidDateError,
    NothingToExportError,
)

EXPORT_HEADER = ['Date', 'Category', 'Amount', 'Description']
REPORT_HEADER = ['Type', 'Date', 'Category', 'Amount', 'Description']

DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

# Same limits as Transaction.amount
AMOUNT_VALIDATOR = DecimalValidator(max_digits=12, decimal_places=2)


@dataclass(frozen=True)
class ParsedRow:
    date: date
    category: str
    amount: Decimal
    description: str = ''
    type: str | None = None

    def as_record(self):
        return {
            'date': self.date,
            'type': self.type,
            'category': self.category,
            'amount': self.amount,
            'description': self.description,
        }


def parse_amount(value):
    """
    Parses an amount typed by the user.

    Returns:
        Decimal | None: the amount, or None if the text is not a number above
        zero that fits the amount column (10 integer digits, 2 decimals).
    """
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    # Trailing zeros ("1.500") are not extra precision.
    try:
        AMOUNT_VALIDATOR(amount.normalize())
    except FieldValidationError:
        return None
    return amount


def _split_line(line):
    # A single physical line: quoted fields may hold commas but not newlines.
    fields = next(csv.reader([line], skipinitialspace=True), [])
    return [field.strip() for field in fields]


def parse_csv(text, transaction_type=None):
    """
    Parses CSV text into rows, skipping the header.

    Args:
        text (str): File content.
        transaction_type (str): INCOME or EXPENSE, stamped on every row.

    Returns:
        list[ParsedRow]: Rows in file order.

    Raises:
        EmptyInputError: fewer than two non-blank lines.
        ImportFormatError: a row has fewer than three fields.
        InvalidAmountError: amount is not a number greater than zero that fits
            12 digits with 2 decimal places.
        InvalidDateError: date is not YYYY-MM-DD.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise EmptyInputError()

    rows = []
    # Header is line 1, numbering counts non-blank lines only.
    for line_no, line in enumerate(lines[1:], start=2):
        values = _split_line(line)
        if len(values) < 3:
            raise ImportFormatError(f'Invalid CSV format at line {line_no}')

        date_str, category, amount_str = values[:3]
        description = values[3] if len(values) > 3 else ''

        amount = parse_amount(amount_str)
        if amount is None:
            raise InvalidAmountError(line_no)

        if not DATE_RE.match(date_str):
            raise InvalidDateError(line_no)
        try:
            row_date = date.fromisoformat(date_str)
        except ValueError:
            raise InvalidDateError(line_no)

        rows.append(ParsedRow(row_date, category, amount, description, transaction_type))
    return rows


def detect_transaction_type(filename):
    """Derives the transaction type of an import from its file name."""
    name = (filename or '').lower()
    if not name.endswith('.csv'):
        raise ImportFormatError('Please upload a CSV file')
    if 'income' in name:
        return INCOME
    if 'expense' in name:
        return EXPENSE
    raise AmbiguousTypeError()


def _quote(value):
    return '"%s"' % (value or '').replace('"', '""')


def _row(*fields, description=None):
    buf = StringIO()
    csv.writer(buf).writerow(fields)
    line = buf.getvalue().rstrip('\r\n')
    if description is not None:
        line = f'{line},{_quote(description)}'
    return line


def _format_date(value):
    return value.isoformat() if hasattr(value, 'isoformat') else str(value)


def export_transactions_to_csv(transactions, transaction_type):
    """
    Serializes the transactions of one type.

    Args:
        transactions (Iterable): Transactions or parsed records.
        transaction_type (str): INCOME or EXPENSE.

    Returns:
        str: CSV text ready for download.
    """
    selected = [t for t in transactions if t.type == transaction_type]
    if not selected:
        raise NothingToExportError(f'No {transaction_type.lower()} transactions to export')

    lines = [','.join(EXPORT_HEADER)]
    for t in selected:
        lines.append(_row(_format_date(t.date), t.category, t.amount, description=t.description))
    return '\n'.join(lines)


def export_filename(transaction_type, on=None):
    on = on or date.today()
    prefix = 'incomes' if transaction_type == INCOME else 'expenses'
    return f'{prefix}_{on.isoformat()}.csv'


def export_period_report(transactions, month, year):
    """
    Builds the monthly report: incomes, expenses and a summary block.

    Args:
        transactions (Iterable): Transactions of a dashboard.
        month (int): Month (1–12).
        year (int): Year.

    Returns:
        str: CSV text.
    """
    period = filter_by_period(transactions, month, year)
    if not period:
        raise NothingToExportError('No transactions found for the selected period')

    incomes = [t for t in period if t.type == INCOME]
    expenses = [t for t in period if t.type == EXPENSE]
    total_income = sum_by_type(period, INCOME)
    total_expense = sum_by_type(period, EXPENSE)

    lines = [','.join(REPORT_HEADER), '', '--- INCOMES ---']
    lines += [_row(INCOME, _format_date(t.date), t.category, t.amount, description=t.description) for t in incomes]
    lines += ['', '--- EXPENSES ---']
    lines += [_row(EXPENSE, _format_date(t.date), t.category, t.amount, description=t.description) for t in expenses]
    lines += [
        '',
        '--- SUMMARY ---',
        f'Total Income,,,{total_income},',
        f'Total Expense,,,{total_expense},',
        f'Net,,,{total_income - total_expense},',
    ]
    return '\n'.join(lines)


def report_filename(month, year):
    return f'finance_{MONTH_NAMES[month - 1]}_{year}.csv'
