# core/constants.py
INCOME = 'INCOME'
EXPENSE = 'EXPENSE'

TYPE_CHOICES = [
    (INCOME, 'Income'),
    (EXPENSE, 'Expense'),
]
TRANSACTION_TYPES = (INCOME, EXPENSE)

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
]

LANGUAGES = ('en', 'km')
