"""
Custom exceptions for the ledger application: chart-of-accounts maintenance,
snapshot recomputation and statement generation.

These are caller-facing and must not be retried automatically.
"""

from django.utils.translation import gettext_lazy as _


class LedgerError(Exception):
    """
    Base exception for the ledger core. Allows catching all ledger-specific issues easily.
    """
    default_message = _("An error occurred in the ledger.")
    code = 'ledger_error'

    def __init__(self, message=None, code=None):
        self.message = str(message or self.default_message)
        self.code = code or self.code
        super().__init__(self.message)


class AccountNotFoundError(LedgerError):
    """
    Raised when an account id or code does not resolve to a non-deleted account.
    """
    default_message = _("Account not found.")
    code = 'not_found'

    def __init__(self, identifier=None, message=None):
        self.identifier = identifier
        if not message and identifier is not None:
            message = _("Account '%(identifier)s' not found.") % {'identifier': identifier}
        super().__init__(message=message, code=self.code)


class AccountValidationError(LedgerError):
    """
    Raised on a structural rule violation: wrong account type under a parent,
    a parent cycle, children under a DETAIL account, or editing a system account.
    """
    default_message = _("The account violates a chart-of-accounts rule.")
    code = 'invalid'

    def __init__(self, message=None, field=None):
        self.field = field
        super().__init__(message=message, code=self.code)


class AccountCodeConflictError(LedgerError):
    """
    Raised when an explicitly supplied account code already exists.
    """
    default_message = _("Account code already exists.")
    code = 'conflict'

    def __init__(self, account_code, message=None):
        self.account_code = account_code
        if not message:
            message = _('Account code "%(code)s" already exists.') % {'code': account_code}
        super().__init__(message=message, code=self.code)


class SnapshotRecomputeInProgress(LedgerError):
    """
    Raised when a monthly snapshot recomputation is requested while another run holds the lock.
    """
    default_message = _("A monthly balance recomputation is already running.")
    code = 'locked'


class ReportGenerationError(LedgerError):
    """Base exception for report generation failures."""
    default_message = _("The financial report could not be generated.")
    code = 'report_error'
