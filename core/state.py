# core/state.py
"""
Per-session selection of the dashboard page.

The selected dashboard, month and year, the visible summary cards and day
sections and the interface language live in the Django session instead of
module globals. Views load the state at the start of a request and save it
back after changing it.
"""

from dataclasses import asdict, dataclass, field
from datetime import date

from .aggregation import shift_month
from .constants import LANGUAGES
from .exceptions import ValidationError

SESSION_KEY = 'finance_state'
VISIBILITY_KEYS = ('income', 'expense', 'profit')


def _all_visible():
    return {key: True for key in VISIBILITY_KEYS}


@dataclass
class FinanceState:
    dashboard_id: int | None = None
    month: int | None = None
    year: int | None = None
    visible_cards: dict = field(default_factory=_all_visible)
    visible_day_sections: dict = field(default_factory=_all_visible)
    language: str = 'en'

    def __post_init__(self):
        today = date.today()
        if self.month is None:
            self.month = today.month
        if self.year is None:
            self.year = today.year

    def update(self, data):
        """
        Applies a partial update from request data.

        Raises:
            ValidationError: month outside 1–12, bad year or unknown language.
        """
        if 'shift' in data:
            self.month, self.year = shift_month(self.month, self.year, as_int(data['shift'], 'shift'))
        if 'month' in data:
            month = as_int(data['month'], 'month')
            if not 1 <= month <= 12:
                raise ValidationError('Month must be between 1 and 12')
            self.month = month
        if 'year' in data:
            year = as_int(data['year'], 'year')
            if not 1 <= year <= 9999:
                raise ValidationError('Invalid year')
            self.year = year
        if 'dashboard_id' in data:
            self.dashboard_id = as_int(data['dashboard_id'], 'dashboard_id')
        if 'language' in data:
            if data['language'] not in LANGUAGES:
                raise ValidationError(f"Unsupported language: {data['language']}")
            self.language = data['language']
        for key in ('visible_cards', 'visible_day_sections'):
            if key in data:
                if not isinstance(data[key], dict):
                    raise ValidationError(f'Invalid {key}')
                current = getattr(self, key)
                for name, visible in data[key].items():
                    if name in VISIBILITY_KEYS:
                        current[name] = bool(visible)
        return self


def as_int(value, name):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {name}')


def load_state(request):
    stored = request.session.get(SESSION_KEY) or {}
    state = FinanceState()
    state.dashboard_id = stored.get('dashboard_id')
    state.month = stored.get('month') or state.month
    state.year = stored.get('year') or state.year
    state.visible_cards.update(stored.get('visible_cards') or {})
    state.visible_day_sections.update(stored.get('visible_day_sections') or {})
    state.language = stored.get('language') or state.language
    return state


def save_state(request, state):
    request.session[SESSION_KEY] = asdict(state)
