# core/tests.py
"""
Tests of the personal finance application.
Cover models, forms, the CSV codec, aggregations, services and views.
"""

import json
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

from django.contrib.auth.models import AnonymousUser, User
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError, IntegrityError, transaction
from django.test import Client, SimpleTestCase, TestCase
from django.urls import reverse

from . import aggregation, services
from .constants import INCOME, EXPENSE
from .csv_io import (
    ParsedRow,
    detect_transaction_type,
    export_filename,
    export_period_report,
    export_transactions_to_csv,
    parse_csv,
    report_filename,
)
from .exceptions import (
    AmbiguousTypeError,
    AuthRequiredError,
    BackendError,
    DuplicateError,
    EmptyInputError,
    ImportFormatError,
    InvalidAmountError,
    InvalidDateError,
    NotFoundError,
    NothingToExportError,
    ValidationError,
)
from .forms import CSVImportForm, TransactionForm
from .models import Category, FinanceDashboard, Profile, Transaction
from .state import FinanceState


def tx(day, transaction_type, category, amount, description=''):
    """In-memory transaction for the pure functions."""
    return SimpleNamespace(
        date=day,
        type=transaction_type,
        category=category,
        amount=Decimal(amount),
        description=description,
    )


class UserModelMixin:
    """Creates a logged-in test user with a dashboard."""
    def setUp(self):
        self.user = User.objects.create_user(username='testuser', email='tester@example.com', password='testpass123')
        self.dashboard = FinanceDashboard.objects.create(user=self.user, name='Main')
        self.client = Client()
        self.client.login(username='testuser', password='testpass123')

    def add(self, day, transaction_type, category, amount, description='', dashboard=None):
        return Transaction.objects.create(
            user=self.user,
            dashboard=dashboard or self.dashboard,
            type=transaction_type,
            category=category,
            amount=Decimal(amount),
            description=description,
            date=day,
        )


class ModelTest(UserModelMixin, TestCase):

    def test_category_str(self):
        category = Category.objects.create(name='Food', type=Category.EXPENSE, user=self.user, dashboard=self.dashboard)
        self.assertEqual(str(category), 'Food (Expense)')

    def test_transaction_str(self):
        t = self.add(date(2025, 1, 15), INCOME, 'Salary', '150.75')
        self.assertEqual(str(t), 'Salary (Income) — 150.75 (2025-01-15)')

    def test_category_unique_per_dashboard_and_type(self):
        Category.objects.create(name='Salary', type=Category.INCOME, user=self.user, dashboard=self.dashboard)
        with self.assertRaises(IntegrityError), transaction.atomic():
            Category.objects.create(name='Salary', type=Category.INCOME, user=self.user, dashboard=self.dashboard)
        # Same name is fine for the other type
        Category.objects.create(name='Salary', type=Category.EXPENSE, user=self.user, dashboard=self.dashboard)

    def test_transaction_as_dict(self):
        t = self.add(date(2025, 1, 15), INCOME, 'Salary', '5000', 'Monthly pay')
        t.refresh_from_db()
        self.assertEqual(t.as_dict()['amount'], '5000.00')
        self.assertEqual(t.as_dict()['date'], '2025-01-15')


class FormsTest(UserModelMixin, TestCase):

    def test_transaction_form_valid(self):
        form = TransactionForm(data={
            'date': '2025-01-15',
            'type': INCOME,
            'category': 'Salary',
            'amount': '200.00',
            'description': 'Lunch',
        })
        self.assertTrue(form.is_valid())

    def test_transaction_form_invalid_amount(self):
        form = TransactionForm(data={
            'date': '2025-01-15',
            'type': EXPENSE,
            'category': 'Food',
            'amount': '-50.00',
        })
        self.assertFalse(form.is_valid())
        self.assertIn('amount', form.errors)

    def test_transaction_form_blank_category(self):
        form = TransactionForm(data={'date': '2025-01-15', 'type': EXPENSE, 'category': '  ', 'amount': '5'})
        self.assertFalse(form.is_valid())

    def test_import_form_requires_csv(self):
        upload = SimpleUploadedFile('income.txt', b'x')
        form = CSVImportForm(data={}, files={'csv_file': upload})
        self.assertFalse(form.is_valid())


class CSVParseTest(SimpleTestCase):

    def test_single_income_row(self):
        rows = parse_csv('Date,Category,Amount,Description\n2025-01-15,Salary,5000,"Monthly pay"', INCOME)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].as_record(), {
            'date': date(2025, 1, 15),
            'type': INCOME,
            'category': 'Salary',
            'amount': Decimal('5000'),
            'description': 'Monthly pay',
        })

    def test_row_count_and_blank_lines(self):
        text = (
            'Date,Category,Amount,Description\n'
            '\n'
            '2025-01-01,Food,12.50,Lunch\n'
            '   \n'
            '2025-01-02,Rent,800\n'
            '2025-01-03, Fuel , 40 ,\n'
        )
        rows = parse_csv(text)
        self.assertEqual(len(rows), 3)
        self.assertEqual([r.category for r in rows], ['Food', 'Rent', 'Fuel'])
        self.assertEqual(rows[1].description, '')
        self.assertEqual(rows[2].amount, Decimal('40'))
        self.assertIsNone(rows[0].type)

    def test_quoted_fields_keep_commas(self):
        rows = parse_csv('Date,Category,Amount,Description\n2025-02-01,"Food, drinks",10,"Pizza, cola"')
        self.assertEqual(rows[0].category, 'Food, drinks')
        self.assertEqual(rows[0].description, 'Pizza, cola')

    def test_empty_input(self):
        with self.assertRaises(EmptyInputError):
            parse_csv('Date,Category,Amount,Description\n\n  \n')
        with self.assertRaises(ImportFormatError):
            parse_csv('')

    def test_too_few_fields(self):
        with self.assertRaises(ImportFormatError) as ctx:
            parse_csv('Date,Category,Amount\n2025-01-01,Food')
        self.assertIn('line 2', ctx.exception.message)

    def test_invalid_amount_reports_line(self):
        text = 'Date,Category,Amount\n2025-01-01,Food,10\n2025-01-02,Food,0\n'
        with self.assertRaises(InvalidAmountError) as ctx:
            parse_csv(text)
        self.assertEqual(ctx.exception.line, 3)
        for bad in ('-5', 'abc', 'NaN', ''):
            with self.assertRaises(InvalidAmountError):
                parse_csv(f'Date,Category,Amount\n2025-01-01,Food,{bad}')

    def test_amount_must_fit_the_column(self):
        rows = parse_csv('Date,Category,Amount\n2025-01-01,Car,9999999999.99\n2025-01-02,Tips,1.500')
        self.assertEqual(rows[0].amount, Decimal('9999999999.99'))
        self.assertEqual(rows[1].amount, Decimal('1.5'))
        for bad in ('10000000000000', '12345678901', '0.001', '5.125', '1E+11'):
            with self.assertRaises(InvalidAmountError) as ctx:
                parse_csv(f'Date,Category,Amount\n2025-01-01,Food,3\n2025-01-02,Food,{bad}')
            self.assertEqual(ctx.exception.line, 3)

    def test_invalid_date(self):
        for bad in ('2025/01/01', '25-01-01', '2025-1-1', '2025-02-30'):
            with self.assertRaises(InvalidDateError) as ctx:
                parse_csv(f'Date,Category,Amount\n{bad},Food,10')
            self.assertEqual(ctx.exception.line, 2)

    def test_errors_are_validation_errors(self):
        with self.assertRaises(ValidationError):
            parse_csv('Date,Category,Amount\nnope,Food,10')

    def test_detect_transaction_type(self):
        self.assertEqual(detect_transaction_type('My_Income_2025.csv'), INCOME)
        self.assertEqual(detect_transaction_type('expenses-jan.CSV'), EXPENSE)
        with self.assertRaises(AmbiguousTypeError):
            detect_transaction_type('january.csv')
        with self.assertRaises(ImportFormatError):
            detect_transaction_type('income.xlsx')


class CSVExportTest(SimpleTestCase):

    def setUp(self):
        self.transactions = [
            tx(date(2025, 1, 15), INCOME, 'Salary', '5000', 'Monthly pay'),
            tx(date(2025, 1, 20), EXPENSE, 'Food', '12.50', 'Said "hi", left'),
            tx(date(2025, 2, 1), EXPENSE, 'Rent, flat', '800', ''),
        ]

    def test_export_filters_type_and_quotes_description(self):
        text = export_transactions_to_csv(self.transactions, EXPENSE)
        lines = text.split('\n')
        self.assertEqual(lines[0], 'Date,Category,Amount,Description')
        self.assertEqual(lines[1], '2025-01-20,Food,12.50,"Said ""hi"", left"')
        self.assertEqual(lines[2], '2025-02-01,"Rent, flat",800,""')
        self.assertEqual(len(lines), 3)

    def test_nothing_to_export(self):
        with self.assertRaises(NothingToExportError):
            export_transactions_to_csv(self.transactions[1:], INCOME)

    def test_round_trip(self):
        original = parse_csv(
            'Date,Category,Amount,Description\n'
            '2025-01-15,Salary,5000,"Monthly pay"\n'
            '2025-01-16,"Side, gigs",250.25,"Logo, poster"\n',
            INCOME,
        )
        again = parse_csv(export_transactions_to_csv(original, INCOME), INCOME)
        self.assertEqual(again, original)

    def test_period_report(self):
        text = export_period_report(self.transactions, 1, 2025)
        lines = text.split('\n')
        self.assertEqual(lines[0], 'Type,Date,Category,Amount,Description')
        self.assertIn('--- INCOMES ---', lines)
        self.assertIn('INCOME,2025-01-15,Salary,5000,"Monthly pay"', lines)
        self.assertNotIn('Rent', text)
        self.assertEqual(lines[-3:], ['Total Income,,,5000,', 'Total Expense,,,12.50,', 'Net,,,4987.50,'])

    def test_period_report_empty(self):
        with self.assertRaises(NothingToExportError):
            export_period_report(self.transactions, 3, 2025)

    def test_filenames(self):
        self.assertEqual(export_filename(INCOME, on=date(2025, 1, 31)), 'incomes_2025-01-31.csv')
        self.assertEqual(export_filename(EXPENSE, on=date(2025, 1, 31)), 'expenses_2025-01-31.csv')
        self.assertEqual(report_filename(1, 2025), 'finance_January_2025.csv')


class AggregationTest(SimpleTestCase):

    def setUp(self):
        self.transactions = [
            tx(date(2025, 10, 5), INCOME, 'Salary', '50000'),
            tx(date(2025, 10, 10), EXPENSE, 'Food', '1000'),
            tx(date(2025, 10, 20), EXPENSE, 'Food', '500'),
            tx(date(2025, 10, 20), EXPENSE, 'Rent', '700'),
            tx(date(2025, 11, 1), EXPENSE, 'Food', '300'),
        ]

    def test_sum_by_type_and_net_profit(self):
        income = aggregation.sum_by_type(self.transactions, INCOME)
        expense = aggregation.sum_by_type(self.transactions, EXPENSE)
        self.assertEqual(income, Decimal('50000'))
        self.assertEqual(expense, Decimal('2500'))
        self.assertEqual(aggregation.net_profit(self.transactions), income - expense)

    def test_empty_collection(self):
        self.assertEqual(aggregation.sum_by_type([], INCOME), 0)
        self.assertEqual(aggregation.net_profit([]), 0)
        self.assertEqual(aggregation.sum_by_category([], EXPENSE), {})

    def test_net_profit_can_be_negative(self):
        self.assertEqual(aggregation.net_profit([tx(date(2025, 1, 1), EXPENSE, 'Food', '10')]), Decimal('-10'))

    def test_sum_by_category_matches_sum_by_type(self):
        by_category = aggregation.sum_by_category(self.transactions, EXPENSE)
        self.assertEqual(by_category, {'Food': Decimal('1800'), 'Rent': Decimal('700')})
        self.assertNotIn('Salary', by_category)
        self.assertEqual(sum(by_category.values()), aggregation.sum_by_type(self.transactions, EXPENSE))

    def test_filter_by_period(self):
        october = aggregation.filter_by_period(self.transactions, 10, 2025)
        self.assertEqual(len(october), 4)
        self.assertEqual(len(aggregation.filter_by_period(self.transactions)), 5)
        self.assertEqual(len(aggregation.filter_by_period(self.transactions, 10, 2024)), 0)
        self.assertEqual(len(aggregation.filter_by_period(self.transactions, year=2025)), 5)

    def test_filter_by_category_newest_first(self):
        food = aggregation.filter_by_category(self.transactions, 'Food', EXPENSE)
        self.assertEqual([t.date for t in food], [date(2025, 11, 1), date(2025, 10, 20), date(2025, 10, 10)])
        self.assertEqual(aggregation.filter_by_category(self.transactions, 'Food', INCOME), [])

    def test_sum_by_day(self):
        days = aggregation.sum_by_day(self.transactions, 10, 2025)
        self.assertEqual(len(days), 31)
        self.assertEqual(days[19].day, date(2025, 10, 20))
        self.assertEqual(days[19].expense, Decimal('1200'))
        self.assertEqual(days[4].profit, Decimal('50000'))
        self.assertEqual(days[0].income, 0)

    def test_summarize(self):
        summary = aggregation.summarize(self.transactions, recent=2)
        self.assertEqual(summary.net_profit, Decimal('47500'))
        self.assertEqual(summary.recent_transactions[0].date, date(2025, 11, 1))
        self.assertEqual(len(summary.recent_transactions), 2)

    def test_available_years(self):
        self.assertEqual(aggregation.available_years(self.transactions), [2025])
        self.assertEqual(aggregation.available_years([], today=date(2025, 6, 1)), [2025, 2024, 2023])

    def test_shift_month(self):
        self.assertEqual(aggregation.shift_month(12, 2025, 1), (1, 2026))
        self.assertEqual(aggregation.shift_month(1, 2025, -1), (12, 2024))

    def test_month_bounds(self):
        self.assertEqual(aggregation.month_bounds(2024, 2), (date(2024, 2, 1), date(2024, 2, 29)))


class StateTest(SimpleTestCase):

    def test_defaults_to_current_month(self):
        state = FinanceState()
        self.assertEqual((state.month, state.year), (date.today().month, date.today().year))
        self.assertTrue(all(state.visible_cards.values()))

    def test_update(self):
        state = FinanceState(month=12, year=2025)
        state.update({'shift': 1, 'visible_cards': {'profit': False, 'bogus': False}, 'language': 'km'})
        self.assertEqual((state.month, state.year), (1, 2026))
        self.assertFalse(state.visible_cards['profit'])
        self.assertNotIn('bogus', state.visible_cards)
        self.assertEqual(state.language, 'km')

    def test_update_rejects_bad_values(self):
        state = FinanceState()
        with self.assertRaises(ValidationError):
            state.update({'month': 13})
        with self.assertRaises(ValidationError):
            state.update({'language': 'fr'})
        with self.assertRaises(ValidationError):
            state.update({'year': 'soon'})


class DashboardServiceTest(UserModelMixin, TestCase):

    def test_default_dashboard_created_once(self):
        other = User.objects.create_user(username='fresh', password='x')
        dashboards = services.ensure_default_dashboard(other)
        self.assertEqual([d.name for d in dashboards], ['Main'])
        services.ensure_default_dashboard(other)
        self.assertEqual(FinanceDashboard.objects.filter(user=other).count(), 1)

    def test_duplicate_name_per_owner(self):
        with self.assertRaises(DuplicateError) as ctx:
            services.create_dashboard(self.user, 'Main')
        self.assertEqual(ctx.exception.message, 'Dashboard already exists')
        other = User.objects.create_user(username='other', password='x')
        self.assertEqual(services.create_dashboard(other, 'Main').name, 'Main')

    def test_blank_name(self):
        with self.assertRaises(ValidationError):
            services.create_dashboard(self.user, '   ')

    def test_rename(self):
        travel = services.create_dashboard(self.user, 'Travel')
        self.assertEqual(services.rename_dashboard(self.user, travel.pk, ' Trips ').name, 'Trips')
        with self.assertRaises(DuplicateError):
            services.rename_dashboard(self.user, travel.pk, 'Main')

    def test_delete_cascades(self):
        travel = services.create_dashboard(self.user, 'Travel')
        services.create_category(self.user, travel, 'Hotel', EXPENSE)
        self.add(date(2025, 1, 1), EXPENSE, 'Hotel', '100', dashboard=travel)
        self.add(date(2025, 1, 1), EXPENSE, 'Food', '5')

        selected = services.delete_dashboard(self.user, travel.pk)

        self.assertEqual(selected, self.dashboard)
        self.assertFalse(FinanceDashboard.objects.filter(pk=travel.pk).exists())
        self.assertFalse(Category.objects.filter(dashboard_id=travel.pk).exists())
        self.assertEqual(Transaction.objects.filter(user=self.user).count(), 1)

    def test_delete_last_dashboard_recreates_default(self):
        selected = services.delete_dashboard(self.user, self.dashboard.pk)
        self.assertEqual(selected.name, 'Main')
        self.assertNotEqual(selected.pk, self.dashboard.pk)

    def test_other_owner_dashboard_not_found(self):
        other = User.objects.create_user(username='other', password='x')
        with self.assertRaises(NotFoundError):
            services.delete_dashboard(other, self.dashboard.pk)


class CategoryServiceTest(UserModelMixin, TestCase):

    def test_duplicate_category(self):
        services.create_category(self.user, self.dashboard, 'Rent', EXPENSE)
        with self.assertRaises(DuplicateError):
            services.create_category(self.user, self.dashboard, 'Rent', EXPENSE)
        services.create_category(self.user, self.dashboard, 'Rent', INCOME)
        self.assertEqual(len(services.list_categories(self.user, self.dashboard, EXPENSE)), 1)

    def test_rename_does_not_relabel_transactions(self):
        rent = services.create_category(self.user, self.dashboard, 'Rent', EXPENSE)
        saved = self.add(date(2025, 1, 1), EXPENSE, 'Rent', '800')

        services.rename_category(self.user, rent.pk, 'Housing')

        saved.refresh_from_db()
        self.assertEqual(saved.category, 'Rent')
        self.assertEqual(Category.objects.get(pk=rent.pk).name, 'Housing')

    def test_unknown_type(self):
        with self.assertRaises(ValidationError):
            services.create_category(self.user, self.dashboard, 'Rent', 'TRANSFER')

    def test_delete(self):
        rent = services.create_category(self.user, self.dashboard, 'Rent', EXPENSE)
        services.delete_category(self.user, rent.pk)
        with self.assertRaises(NotFoundError):
            services.delete_category(self.user, rent.pk)


class ProfileServiceTest(UserModelMixin, TestCase):

    def test_profile_created_from_email(self):
        profile = services.get_or_create_profile(self.user)
        self.assertEqual(profile.username, 'tester')
        self.assertEqual(profile.email, 'tester@example.com')
        services.get_or_create_profile(self.user)
        self.assertEqual(Profile.objects.count(), 1)

    def test_update_username(self):
        self.assertEqual(services.update_username(self.user, ' neo ').username, 'neo')
        with self.assertRaises(ValidationError):
            services.update_username(self.user, '')

    def test_anonymous(self):
        with self.assertRaises(AuthRequiredError):
            services.get_or_create_profile(AnonymousUser())


class TransactionServiceTest(UserModelMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.add(date(2025, 10, 5), INCOME, 'Salary', '50000')
        self.add(date(2025, 10, 10), EXPENSE, 'Food', '1000')
        self.add(date(2025, 10, 20), EXPENSE, 'Food', '500')
        self.add(date(2025, 10, 21), EXPENSE, 'Rent', '2000')
        self.add(date(2025, 11, 1), EXPENSE, 'Food', '300')

    def test_get_monthly_summary(self):
        result = services.get_monthly_summary(self.user, self.dashboard, 2025, 10)
        self.assertEqual(result['income'], Decimal('50000'))
        self.assertEqual(result['expense'], Decimal('3500'))
        self.assertEqual(result['balance'], Decimal('46500'))

    def test_get_monthly_summary_empty(self):
        result = services.get_monthly_summary(self.user, self.dashboard, 2024, 1)
        self.assertEqual(result['balance'], 0)

    def test_get_breakdown_by_category(self):
        result = list(services.get_breakdown_by_category(self.user, self.dashboard, 2025, 10))
        self.assertEqual([r['category'] for r in result], ['Rent', 'Food'])
        self.assertEqual(result[1]['total'], Decimal('1500'))

    def test_add_transaction(self):
        t = services.add_transaction(self.user, self.dashboard, date(2025, 12, 1), INCOME, ' Bonus ', '100.5')
        self.assertEqual(t.category, 'Bonus')
        self.assertEqual(t.amount, Decimal('100.5'))
        with self.assertRaises(ValidationError):
            services.add_transaction(self.user, self.dashboard, date(2025, 12, 1), INCOME, 'Bonus', '0')
        with self.assertRaises(ValidationError):
            services.add_transaction(self.user, self.dashboard, date(2025, 12, 1), INCOME, '', '10')

    def test_delete_transaction(self):
        t = Transaction.objects.filter(user=self.user).first()
        services.delete_transaction(self.user, t.pk)
        with self.assertRaises(NotFoundError):
            services.delete_transaction(self.user, t.pk)

    def test_list_transactions_by_period(self):
        self.assertEqual(services.list_transactions(self.user, self.dashboard, 10, 2025).count(), 4)
        self.assertEqual(services.list_transactions(self.user, self.dashboard, year=2025).count(), 5)

    def test_import_csv(self):
        Transaction.objects.filter(user=self.user).delete()
        csv_data = (
            'Date,Category,Amount,Description\n'
            '2025-10-01,Salary,50000,\n'
            '2025-10-02,Bonus,1000,"Q3, paid"\n'
        )
        csv_file = SimpleUploadedFile('income_october.csv', csv_data.encode('utf-8'), content_type='text/csv')

        count, transaction_type = services.import_transactions_from_csv(csv_file, self.user, self.dashboard)

        self.assertEqual((count, transaction_type), (2, INCOME))
        self.assertEqual(Transaction.objects.filter(user=self.user, type=INCOME).count(), 2)
        salary = Transaction.objects.get(category='Salary')
        self.assertEqual(salary.description, 'INCOME on 2025-10-01')
        self.assertTrue(Transaction.objects.filter(category='Bonus', description='Q3, paid').exists())

    def test_import_csv_rejects_sub_cent_amount(self):
        csv_file = SimpleUploadedFile('income.csv', b'Date,Category,Amount\n2025-01-15,Tips,0.001\n')
        with self.assertRaises(InvalidAmountError):
            services.import_transactions_from_csv(csv_file, self.user, self.dashboard)
        self.assertFalse(Transaction.objects.filter(category='Tips').exists())

    def test_add_transaction_rejects_oversized_amount(self):
        with self.assertRaises(ValidationError):
            services.add_transaction(self.user, self.dashboard, date(2025, 12, 1), INCOME, 'Lottery', '10000000000000')
        self.assertFalse(Transaction.objects.filter(category='Lottery').exists())

    def test_import_csv_is_all_or_nothing(self):
        csv_data = b'Date,Category,Amount\n2025-10-01,Food,5\n2025-10-02,Food,-1\n'
        csv_file = SimpleUploadedFile('expense.csv', csv_data)
        with self.assertRaises(InvalidAmountError):
            services.import_transactions_from_csv(csv_file, self.user, self.dashboard)
        self.assertEqual(Transaction.objects.filter(user=self.user).count(), 5)

    def test_import_csv_ambiguous_name(self):
        csv_file = SimpleUploadedFile('october.csv', b'Date,Category,Amount\n2025-10-01,Food,5\n')
        with self.assertRaises(AmbiguousTypeError):
            services.import_transactions_from_csv(csv_file, self.user, self.dashboard)


class DayReconciliationTest(UserModelMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.day = date(2025, 3, 10)
        self.add(self.day, INCOME, 'Salary', '100')
        self.add(self.day, EXPENSE, 'Food', '20')
        self.add(date(2025, 3, 11), EXPENSE, 'Food', '7')

    def day_count(self):
        return Transaction.objects.filter(user=self.user, dashboard=self.dashboard, date=self.day).count()

    def test_get_day_transactions(self):
        entries = services.get_day_transactions(self.user, self.dashboard, self.day)
        self.assertEqual(len(entries), 2)

    def test_save_replaces_day(self):
        result = services.save_day_entries(
            self.user,
            self.dashboard,
            self.day,
            [{'amount': '150', 'category': 'Salary'}],
            [{'amount': '30.5', 'category': 'Food'}, {'amount': '', 'category': 'Fuel'}],
        )
        self.assertEqual(result.inserted, 2)
        self.assertFalse(result.cleared)
        amounts = sorted(t.amount for t in services.get_day_transactions(self.user, self.dashboard, self.day))
        self.assertEqual(amounts, [Decimal('30.5'), Decimal('150')])
        self.assertTrue(Transaction.objects.filter(description='Expense on 2025-03-10').exists())
        # Other days untouched
        self.assertEqual(Transaction.objects.filter(date=date(2025, 3, 11)).count(), 1)

    def test_save_with_no_valid_entries_clears_day(self):
        result = services.save_day_entries(
            self.user,
            self.dashboard,
            self.day,
            [{'amount': '0', 'category': 'Salary'}, {'amount': 'abc', 'category': 'Salary'}],
            [{'amount': '10', 'category': '  '}, {'amount': '-4', 'category': 'Food'}],
        )
        self.assertEqual(result.inserted, 0)
        self.assertTrue(result.cleared)
        self.assertEqual(self.day_count(), 0)

    def test_save_drops_amounts_the_column_cannot_hold(self):
        result = services.save_day_entries(
            self.user,
            self.dashboard,
            self.day,
            [{'amount': '10000000000000', 'category': 'Lottery'}, {'amount': '9999999999.99', 'category': 'Salary'}],
            [{'amount': '0.001', 'category': 'Fees'}, {'amount': '2.50', 'category': 'Food'}],
        )
        self.assertEqual(result.inserted, 2)
        amounts = sorted(t.amount for t in services.get_day_transactions(self.user, self.dashboard, self.day))
        self.assertEqual(amounts, [Decimal('2.50'), Decimal('9999999999.99')])
        self.assertFalse(Transaction.objects.filter(category__in=['Lottery', 'Fees']).exists())

    def test_overview_after_saving_oversized_amount(self):
        services.save_day_entries(self.user, self.dashboard, self.day, [{'amount': '10000000000000', 'category': 'X'}], [])
        response = self.client.get(reverse('overview'))
        self.assertEqual(response.status_code, 200)

    def test_requires_authentication(self):
        with self.assertRaises(AuthRequiredError):
            services.save_day_entries(AnonymousUser(), self.dashboard, self.day, [], [])
        self.assertEqual(self.day_count(), 2)

    def test_other_owner_dashboard(self):
        other = User.objects.create_user(username='other', password='x')
        with self.assertRaises(NotFoundError):
            services.save_day_entries(other, self.dashboard, self.day, [], [])
        self.assertEqual(self.day_count(), 2)

    def test_failed_insert_keeps_existing_entries(self):
        with mock.patch('django.db.models.query.QuerySet.bulk_create', side_effect=DatabaseError('insert rejected')):
            with self.assertRaises(BackendError) as ctx:
                services.save_day_entries(self.user, self.dashboard, self.day, [{'amount': '1', 'category': 'Tips'}], [])
        self.assertIn('insert rejected', ctx.exception.message)
        self.assertEqual(self.day_count(), 2)

    def test_surviving_entries_accepts_day_entry(self):
        entries = [services.DayEntry('5', 'Food'), {'amount': None, 'category': 'Food'}]
        self.assertEqual(services.surviving_entries(entries), [(Decimal('5'), 'Food')])


class ViewsTest(UserModelMixin, TestCase):

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def test_login_required(self):
        response = Client().get(reverse('overview'))
        self.assertEqual(response.status_code, 302)
        self.assertIn('/accounts/login/', response['Location'])

    def test_overview(self):
        today = date.today()
        self.add(today, INCOME, 'Salary', '100')
        self.add(today, EXPENSE, 'Food', '30')

        response = self.client.get(reverse('overview'))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['dashboard']['name'], 'Main')
        self.assertEqual(data['summary']['net_profit'], '70.00')
        self.assertEqual(data['expense_by_category'], {'Food': '30.00'})
        self.assertEqual(len(data['days']), len(aggregation.sum_by_day([], today.month, today.year)))
        self.assertEqual(data['username'], 'tester')

    def test_overview_creates_default_dashboard(self):
        User.objects.create_user(username='fresh', password='pw')
        client = Client()
        client.login(username='fresh', password='pw')
        response = client.get(reverse('overview'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['dashboards'][0]['name'], 'Main')

    def test_update_state(self):
        travel = services.create_dashboard(self.user, 'Travel')
        response = self.post_json(reverse('update_state'), {'dashboard_id': travel.pk, 'month': 2, 'year': 2024})
        self.assertEqual(response.status_code, 200)
        response = self.client.get(reverse('overview'))
        self.assertEqual(response.json()['dashboard']['name'], 'Travel')
        self.assertEqual(response.json()['period'], {'month': 2, 'year': 2024})

    def test_update_state_rejects_foreign_dashboard(self):
        other = User.objects.create_user(username='other', password='x')
        foreign = FinanceDashboard.objects.create(user=other, name='Theirs')
        response = self.post_json(reverse('update_state'), {'dashboard_id': foreign.pk})
        self.assertEqual(response.status_code, 404)

    def test_add_and_delete_transaction(self):
        response = self.post_json(reverse('transaction_list'), {
            'date': '2025-01-15', 'type': INCOME, 'category': 'Salary', 'amount': '5000', 'description': '',
        })
        self.assertEqual(response.status_code, 201)
        pk = response.json()['transaction']['id']

        response = self.client.post(reverse('transaction_delete', kwargs={'pk': pk}))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Transaction.objects.filter(pk=pk).exists())

    def test_add_transaction_invalid(self):
        response = self.post_json(reverse('transaction_list'), {
            'date': '2025-01-15', 'type': INCOME, 'category': 'Salary', 'amount': '-1',
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.json())

    def test_category_transactions(self):
        self.add(date(2025, 1, 2), EXPENSE, 'Food', '10')
        self.add(date(2025, 1, 9), EXPENSE, 'Food', '15')
        response = self.client.get(reverse('category_transactions'), {'category': 'Food', 'type': 'expense', 'period': 'all'})
        data = response.json()
        self.assertEqual(data['total'], '25.00')
        self.assertEqual([t['date'] for t in data['transactions']], ['2025-01-09', '2025-01-02'])

    def test_day_detail(self):
        url = reverse('day_detail', kwargs={'day': '2025-03-10'})
        response = self.post_json(url, {
            'incomes': [{'amount': '100', 'category': 'Salary'}],
            'expenses': [{'amount': '0', 'category': 'Food'}],
        })
        self.assertEqual(response.json()['message'], 'Saved 1 transactions!')

        data = self.client.get(url).json()
        self.assertEqual(data['incomes'], [{'amount': '100.00', 'category': 'Salary'}])
        self.assertEqual(data['profit'], '100.00')

        response = self.post_json(url, {'incomes': [], 'expenses': []})
        self.assertTrue(response.json()['cleared'])
        self.assertEqual(self.client.get(url).json()['incomes'], [])

    def test_day_detail_bad_date(self):
        response = self.client.get(reverse('day_detail', kwargs={'day': '2025-13-01'}))
        self.assertEqual(response.status_code, 400)

    def test_dashboard_duplicate(self):
        response = self.post_json(reverse('dashboard_list'), {'name': 'Main'})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['error'], 'Dashboard already exists')

    def test_dashboard_delete_selects_remaining(self):
        response = self.post_json(reverse('dashboard_list'), {'name': 'Travel'})
        travel_id = response.json()['dashboard']['id']
        self.post_json(reverse('update_state'), {'dashboard_id': travel_id})

        response = self.client.post(reverse('dashboard_delete', kwargs={'pk': travel_id}))

        self.assertEqual(response.json()['selected']['id'], self.dashboard.pk)
        self.assertEqual(self.client.get(reverse('overview')).json()['dashboard']['id'], self.dashboard.pk)

    def test_categories(self):
        response = self.post_json(reverse('category_list'), {'name': 'Rent', 'type': EXPENSE})
        self.assertEqual(response.status_code, 201)
        pk = response.json()['category']['id']
        self.assertEqual(self.post_json(reverse('category_list'), {'name': 'Rent', 'type': EXPENSE}).status_code, 409)

        response = self.post_json(reverse('category_rename', kwargs={'pk': pk}), {'name': 'Housing'})
        self.assertEqual(response.json()['category']['name'], 'Housing')

        names = [c['name'] for c in self.client.get(reverse('category_list'), {'type': 'EXPENSE'}).json()['categories']]
        self.assertEqual(names, ['Housing'])

    def test_profile(self):
        self.assertEqual(self.client.get(reverse('profile')).json()['username'], 'tester')
        response = self.post_json(reverse('profile'), {'username': 'neo'})
        self.assertEqual(response.json()['username'], 'neo')

    def test_export_csv_view(self):
        self.add(date(2025, 1, 15), INCOME, 'Salary', '5000', 'Monthly pay')
        response = self.client.get(reverse('export_csv', kwargs={'transaction_type': 'income'}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'text/csv')
        self.assertIn(f'attachment; filename="incomes_{date.today().isoformat()}.csv"', response['Content-Disposition'])
        self.assertEqual(
            response.content.decode(),
            'Date,Category,Amount,Description\n2025-01-15,Salary,5000.00,"Monthly pay"',
        )

    def test_export_nothing(self):
        response = self.client.get(reverse('export_csv', kwargs={'transaction_type': 'expense'}))
        self.assertEqual(response.status_code, 404)

    def test_export_report_view(self):
        self.add(date(2025, 1, 15), INCOME, 'Salary', '5000')
        response = self.client.get(reverse('export_report'), {'month': 1, 'year': 2025})
        self.assertEqual(response.status_code, 200)
        self.assertIn('filename="finance_January_2025.csv"', response['Content-Disposition'])
        self.assertIn('Net,,,5000.00,', response.content.decode())

    def test_import_csv_view(self):
        upload = SimpleUploadedFile('expenses.csv', b'Date,Category,Amount\n2025-01-02,Food,12\n')
        response = self.client.post(reverse('import_csv'), {'csv_file': upload})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['message'], 'Successfully imported 1 expense transactions!')
        self.assertTrue(Transaction.objects.filter(type=EXPENSE, category='Food', dashboard=self.dashboard).exists())

    def test_import_csv_view_error(self):
        upload = SimpleUploadedFile('expenses.csv', b'Date,Category,Amount\n01/02/2025,Food,12\n')
        response = self.client.post(reverse('import_csv'), {'csv_file': upload})
        self.assertEqual(response.status_code, 400)
        self.assertIn('line 2', response.json()['error'])

    def test_sign_out(self):
        response = self.client.post(reverse('sign_out'))
        self.assertEqual(response.status_code, 302)
        self.assertEqual(self.client.get(reverse('overview')).status_code, 302)


class ParsedRowTest(SimpleTestCase):

    def test_rows_are_comparable(self):
        a = ParsedRow(date(2025, 1, 1), 'Food', Decimal('1.50'), 'x', EXPENSE)
        b = ParsedRow(date(2025, 1, 1), 'Food', Decimal('1.5'), 'x', EXPENSE)
        self.assertEqual(a, b)
