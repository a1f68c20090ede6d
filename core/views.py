# core/views.py
import json
import logging
from dataclasses import asdict
from datetime import date
from functools import wraps

from django.conf import settings
from django.contrib import messages
from django.contrib.auth import logout
from django.contrib.auth.decorators import login_required
from django.http import HttpResponse, JsonResponse
from django.shortcuts import redirect
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import aggregation, services
from .constants import INCOME, EXPENSE, TRANSACTION_TYPES
from .csv_io import export_filename, export_period_report, export_transactions_to_csv, report_filename
from .exceptions import BackendError, FinanceError, ValidationError
from .forms import (
    CategoryForm,
    CategoryRenameForm,
    CSVImportForm,
    DashboardForm,
    PeriodForm,
    ProfileForm,
    TransactionForm,
)
from .state import load_state, save_state

logger = logging.getLogger(__name__)

EXPORT_TYPES = {'income': INCOME, 'incomes': INCOME, 'expense': EXPENSE, 'expenses': EXPENSE}


def finance_action(view):
    """Turns domain errors into an error notification instead of a 500."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except FinanceError as exc:
            log = logger.error if isinstance(exc, BackendError) else logger.warning
            log('%s failed for user %s: %s', view.__name__, request.user.pk, exc.message)
            messages.error(request, exc.message)
            return JsonResponse({'error': exc.message}, status=exc.status_code)
    return wrapper


def _notify(request, text, status=200, **payload):
    messages.success(request, text)
    payload['message'] = text
    return JsonResponse(payload, status=status)


def _payload(request):
    if request.content_type == 'application/json':
        try:
            payload = json.loads(request.body or b'{}')
        except ValueError:
            raise ValidationError('Malformed JSON body')
        if not isinstance(payload, dict):
            raise ValidationError('Malformed JSON body')
        return payload
    return request.POST


def _validated(form):
    if not form.is_valid():
        field, errors = next(iter(form.errors.items()))
        if field == '__all__':
            raise ValidationError(errors[0])
        raise ValidationError(f'{field}: {errors[0]}')
    return form.cleaned_data


def _parse_day(value):
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError('Invalid date format. Expected YYYY-MM-DD')


def _entries(payload, key):
    entries = payload.get(key) or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise ValidationError(f'{key} must be a list of entries')
    return entries


def _parse_type(value):
    transaction_type = (value or '').upper()
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f'Unknown transaction type: {value}')
    return transaction_type


def _current_dashboard(request, state):
    dashboards = services.ensure_default_dashboard(request.user)
    selected = next((d for d in dashboards if d.pk == state.dashboard_id), dashboards[0])
    if state.dashboard_id != selected.pk:
        state.dashboard_id = selected.pk
        save_state(request, state)
    return selected


def _period(request, state):
    if request.GET.get('period') == 'all':
        return None, None
    return state.month, state.year


# === Dashboard page ===

@login_required
@require_GET
@finance_action
def overview(request):
    state = load_state(request)
    dashboard = _current_dashboard(request, state)
    month, year = _period(request, state)
    data = services.dashboard_overview(request.user, dashboard, month=month, year=year)
    data['state'] = asdict(state)
    data['dashboards'] = [{'id': d.pk, 'name': d.name} for d in services.list_dashboards(request.user)]
    data['years'] = aggregation.available_years(services.list_transactions(request.user, dashboard))
    data['username'] = services.get_or_create_profile(request.user).username
    data['notifications'] = [str(m) for m in messages.get_messages(request)]
    return JsonResponse(data)


@login_required
@require_POST
@finance_action
def update_state(request):
    state = load_state(request)
    payload = _payload(request)
    state.update(payload)
    if 'dashboard_id' in payload:
        services.get_dashboard(request.user, state.dashboard_id)
    save_state(request, state)
    return JsonResponse({'state': asdict(state)})


# === Transactions ===

@login_required
@require_http_methods(['GET', 'POST'])
@finance_action
def transaction_list(request):
    state = load_state(request)
    dashboard = _current_dashboard(request, state)

    if request.method == 'POST':
        data = _validated(TransactionForm(_payload(request)))
        transaction = services.add_transaction(
            request.user,
            dashboard,
            data['date'],
            data['type'],
            data['category'],
            data['amount'],
            data['description'],
        )
        return _notify(request, 'Transaction added successfully', status=201, transaction=transaction.as_dict())

    month, year = _period(request, state)
    transactions = services.list_transactions(request.user, dashboard, month=month, year=year)
    return JsonResponse({'transactions': [t.as_dict() for t in transactions]})


@login_required
@require_POST
@finance_action
def transaction_delete(request, pk):
    services.delete_transaction(request.user, pk)
    return _notify(request, 'Transaction deleted')


@login_required
@require_GET
@finance_action
def category_transactions(request):
    """Transactions behind one slice of a category chart."""
    state = load_state(request)
    dashboard = _current_dashboard(request, state)
    category = request.GET.get('category', '')
    transaction_type = _parse_type(request.GET.get('type'))
    month, year = _period(request, state)
    period = services.list_transactions(request.user, dashboard, month=month, year=year)
    matching = aggregation.filter_by_category(period, category, transaction_type)
    return JsonResponse({
        'category': category,
        'type': transaction_type,
        'total': str(aggregation.sum_by_type(matching, transaction_type)),
        'transactions': [t.as_dict() for t in matching],
    })


# === Day editor ===

@login_required
@require_http_methods(['GET', 'POST'])
@finance_action
def day_detail(request, day):
    state = load_state(request)
    dashboard = _current_dashboard(request, state)
    day = _parse_day(day)

    if request.method == 'POST':
        payload = _payload(request)
        result = services.save_day_entries(
            request.user,
            dashboard,
            day,
            _entries(payload, 'incomes'),
            _entries(payload, 'expenses'),
        )
        if result.cleared:
            return _notify(request, 'Day cleared', inserted=0, cleared=True)
        return _notify(request, f'Saved {result.inserted} transactions!', inserted=result.inserted, cleared=False)

    entries = services.get_day_transactions(request.user, dashboard, day)
    return JsonResponse({
        'date': day.isoformat(),
        'incomes': [{'amount': str(t.amount), 'category': t.category} for t in entries if t.type == INCOME],
        'expenses': [{'amount': str(t.amount), 'category': t.category} for t in entries if t.type == EXPENSE],
        'total_income': str(aggregation.sum_by_type(entries, INCOME)),
        'total_expense': str(aggregation.sum_by_type(entries, EXPENSE)),
        'profit': str(aggregation.net_profit(entries)),
    })


# === Dashboards ===

@login_required
@require_http_methods(['GET', 'POST'])
@finance_action
def dashboard_list(request):
    if request.method == 'POST':
        data = _validated(DashboardForm(_payload(request)))
        dashboard = services.create_dashboard(request.user, data['name'])
        return _notify(request, 'Dashboard created', status=201, dashboard={'id': dashboard.pk, 'name': dashboard.name})

    dashboards = services.ensure_default_dashboard(request.user)
    return JsonResponse({'dashboards': [{'id': d.pk, 'name': d.name} for d in dashboards]})


@login_required
@require_POST
@finance_action
def dashboard_rename(request, pk):
    data = _validated(DashboardForm(_payload(request)))
    dashboard = services.rename_dashboard(request.user, pk, data['name'])
    return _notify(request, 'Dashboard renamed', dashboard={'id': dashboard.pk, 'name': dashboard.name})


@login_required
@require_POST
@finance_action
def dashboard_delete(request, pk):
    state = load_state(request)
    selected = services.delete_dashboard(request.user, pk)
    if state.dashboard_id in (None, pk):
        state.dashboard_id = selected.pk
        save_state(request, state)
    return _notify(request, 'Dashboard deleted', selected={'id': selected.pk, 'name': selected.name})


# === Categories ===

@login_required
@require_http_methods(['GET', 'POST'])
@finance_action
def category_list(request):
    state = load_state(request)
    dashboard = _current_dashboard(request, state)

    if request.method == 'POST':
        data = _validated(CategoryForm(_payload(request)))
        category = services.create_category(request.user, dashboard, data['name'], data['type'])
        return _notify(request, 'Category added', status=201, category={'id': category.pk, 'name': category.name, 'type': category.type})

    transaction_type = request.GET.get('type')
    if transaction_type:
        transaction_type = _parse_type(transaction_type)
    categories = services.list_categories(request.user, dashboard, transaction_type)
    return JsonResponse({'categories': [{'id': c.pk, 'name': c.name, 'type': c.type} for c in categories]})


@login_required
@require_POST
@finance_action
def category_rename(request, pk):
    data = _validated(CategoryRenameForm(_payload(request)))
    category = services.rename_category(request.user, pk, data['name'])
    return _notify(request, 'Category updated', category={'id': category.pk, 'name': category.name, 'type': category.type})


@login_required
@require_POST
@finance_action
def category_delete(request, pk):
    services.delete_category(request.user, pk)
    return _notify(request, 'Category deleted')


# === Profile ===

@login_required
@require_http_methods(['GET', 'POST'])
@finance_action
def profile(request):
    if request.method == 'POST':
        data = _validated(ProfileForm(_payload(request)))
        profile = services.update_username(request.user, data['username'])
        return _notify(request, 'Profile updated', username=profile.username, email=profile.email)

    profile = services.get_or_create_profile(request.user)
    return JsonResponse({'username': profile.username, 'email': profile.email})


@login_required
@require_POST
def sign_out(request):
    logout(request)
    return redirect(settings.LOGIN_URL)


# === CSV ===

@login_required
@require_GET
@finance_action
def export_csv(request, transaction_type):
    transaction_type = EXPORT_TYPES.get(transaction_type.lower())
    if transaction_type is None:
        raise ValidationError('Unknown export type')
    state = load_state(request)
    dashboard = _current_dashboard(request, state)
    transactions = services.list_transactions(request.user, dashboard)

    response = HttpResponse(export_transactions_to_csv(transactions, transaction_type), content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{export_filename(transaction_type)}"'
    return response


@login_required
@require_GET
@finance_action
def export_report(request):
    state = load_state(request)
    dashboard = _current_dashboard(request, state)
    data = _validated(PeriodForm(request.GET))
    month = data['month'] or state.month
    year = data['year'] or state.year
    transactions = services.list_transactions(request.user, dashboard, month=month, year=year)

    response = HttpResponse(export_period_report(transactions, month, year), content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{report_filename(month, year)}"'
    return response


@login_required
@require_POST
@finance_action
def import_csv(request):
    state = load_state(request)
    dashboard = _current_dashboard(request, state)
    form = CSVImportForm(request.POST, request.FILES)
    if not form.is_valid():
        raise ValidationError(form.errors.get('csv_file', ['No file selected'])[0])
    count, transaction_type = services.import_transactions_from_csv(form.cleaned_data['csv_file'], request.user, dashboard)
    return _notify(
        request,
        f'Successfully imported {count} {transaction_type.lower()} transactions!',
        imported=count,
        type=transaction_type,
    )
