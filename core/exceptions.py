# core/exceptions.py
"""
Domain errors of the finance application.

Every error carries a user-facing message and the HTTP status the views
answer with. Views catch ``FinanceError`` and turn it into a notification.
"""


class FinanceError(Exception):
    """Base class for all errors surfaced to the user."""
    status_code = 400
    default_message = 'Something went wrong'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(FinanceError):
    """Missing required field or badly formatted value."""
    default_message = 'Invalid input'


class _LineError(ValidationError):
    template = 'Invalid value at line {line}'

    def __init__(self, line, message=None):
        self.line = line
        super().__init__(message or self.template.format(line=line))


class InvalidAmountError(_LineError):
    template = 'Invalid amount at line {line}'


class InvalidDateError(_LineError):
    template = 'Invalid date format at line {line}. Expected YYYY-MM-DD'


class ImportFormatError(FinanceError):
    """CSV file is structurally invalid."""
    default_message = 'Error parsing CSV file'


class EmptyInputError(ImportFormatError):
    default_message = 'CSV file is empty or invalid'


class AmbiguousTypeError(ImportFormatError):
    default_message = 'CSV filename must contain "income" or "expense"'


class NothingToExportError(FinanceError):
    status_code = 404
    default_message = 'No transactions to export'


class DuplicateError(FinanceError):
    status_code = 409
    default_message = 'Already exists'


class AuthRequiredError(FinanceError):
    status_code = 401
    default_message = 'You must be logged in'


class NotFoundError(FinanceError):
    status_code = 404
    default_message = 'Not found'


class BackendError(FinanceError):
    """Any other database failure; the driver message is passed through."""
    status_code = 502
    default_message = 'Backend request failed'
