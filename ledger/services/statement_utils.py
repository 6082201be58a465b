# ledger/services/statement_utils.py

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from django.conf import settings

from ledger_core.enums import AccountCategory, AccountType, CashFlowRole
from ledger_core.utils import ZERO_DECIMAL, round_decimal
from ..exceptions import ReportGenerationError
from ..models.coa import Account
from .ledger_service import balance_components, period_activity
from .report_types import StatementLineItem, StatementSection

logger = logging.getLogger(__name__)

# --- Constants ---
DEFAULT_COMPANY_NAME = getattr(settings, 'LEDGER_COMPANY_NAME', 'Your Company Name')
ZERO_BALANCE_THRESHOLD = Decimal('0.01')
DEBIT_SIDE_CATEGORIES = (AccountCategory.ASSET, AccountCategory.EXPENSE)


class AccountPosition(NamedTuple):
    """A DETAIL account with a full-precision amount signed towards its natural side."""
    account: Account
    amount: Decimal


class LineRule(NamedTuple):
    code: str
    label: str
    note: Optional[str]
    matches: Callable[[Account], bool]


# =============================================================================
# Account selection
# =============================================================================
def validate_period(period_start: date, period_end: date) -> None:
    if period_start is None or period_end is None:
        raise ReportGenerationError("Both period_start and period_end are required.")
    if period_start > period_end:
        raise ReportGenerationError(f"Period start {period_start} is after period end {period_end}.")


def statement_accounts(*categories: str) -> List[Account]:
    """Non-deleted DETAIL accounts of the given categories, ordered by code."""
    return list(Account.objects.filter(
        account_type=AccountType.DETAIL, category__in=categories
    ).order_by('code'))


def positions_as_of(as_of_date: date, categories: Sequence[str], include_zero: bool = False) \
        -> List[AccountPosition]:
    accounts = statement_accounts(*categories)
    balances = balance_components(accounts, as_of_date)
    positions = [AccountPosition(a, balances[a.code].balance) for a in accounts]
    if not include_zero:
        positions = [p for p in positions if abs(p.amount) >= ZERO_BALANCE_THRESHOLD]
    return positions


def category_net(category: str, debits: Decimal, credits: Decimal) -> Decimal:
    if category in DEBIT_SIDE_CATEGORIES:
        return debits - credits
    return credits - debits


def positions_for_period(period_start: date, period_end: date, categories: Sequence[str]) \
        -> List[AccountPosition]:
    """Period activity (not balances) of every DETAIL account in the categories."""
    accounts = statement_accounts(*categories)
    activity = period_activity(accounts, period_start, period_end)
    return [AccountPosition(a, category_net(a.category, *activity[a.code])) for a in accounts]


def total_of(positions: Iterable[AccountPosition]) -> Decimal:
    return sum((p.amount for p in positions), ZERO_DECIMAL)


# =============================================================================
# Classification heuristics
# =============================================================================
def name_has(account: Account, *needles: str) -> bool:
    name = account.name.lower()
    return any(needle in name for needle in needles)


def role_or_name(account: Account, role: str, *needles: str) -> bool:
    """
    Explicit cash_flow_role wins; accounts left at NONE are matched on their name.
    """
    if account.cash_flow_role and account.cash_flow_role != CashFlowRole.NONE:
        return account.cash_flow_role == role
    return name_has(account, *needles)


def non_cash_kind(account: Account) -> Optional[str]:
    """'depreciation', 'amortization' or None for an expense account."""
    if account.category != AccountCategory.EXPENSE:
        return None
    if name_has(account, 'amortization', 'amortisation'):
        return 'amortization'
    if account.is_non_cash_expense or name_has(account, 'depreciation'):
        return 'depreciation'
    return None


# =============================================================================
# Document building blocks
# =============================================================================
def line_item(code: str, label: str, amount: Decimal, level: int = 1, *, is_total: bool = False,
              is_bold: bool = False, is_calculated: bool = False, account_codes: Optional[List[str]] = None,
              notes: Optional[str] = None) -> StatementLineItem:
    return {
        'code': code,
        'label': str(label),
        'amount': round_decimal(amount),
        'level': level,
        'is_total': is_total,
        'is_bold': is_bold,
        'is_calculated': is_calculated,
        'account_codes': account_codes or [],
        'notes': notes,
        'previous_amount': None,
        'variance': None,
    }


def section(section_id: str, title: str, line_items: List[StatementLineItem], subtotal: Decimal,
            order: int) -> StatementSection:
    return {
        'id': section_id,
        'title': str(title),
        'line_items': line_items,
        'subtotal': round_decimal(subtotal),
        'order': order,
        'previous_subtotal': None,
    }


def account_lines(positions: Iterable[AccountPosition], level: int = 1) -> List[StatementLineItem]:
    return [
        line_item(p.account.code, p.account.name, p.amount, level, account_codes=[p.account.code])
        for p in positions
    ]


def classify(positions: Iterable[AccountPosition], rules: Sequence[LineRule]) -> Dict[str, List[AccountPosition]]:
    """
    Assigns each position to the first rule that matches it. The last rule is expected
    to be a catch-all so that every account lands in exactly one line.
    """
    groups: Dict[str, List[AccountPosition]] = {rule.code: [] for rule in rules}
    for position in positions:
        for rule in rules:
            if rule.matches(position.account):
                groups[rule.code].append(position)
                break
        else:
            logger.warning(f"Account {position.account.code} matched no statement line; it is left out.")
    return groups


def grouped_lines(positions: Iterable[AccountPosition], rules: Sequence[LineRule], display_order: Sequence[str],
                  detailed: bool = False) -> Tuple[List[StatementLineItem], Decimal]:
    """
    One level-1 line per non-empty group in display order, optionally followed by level-2
    per-account lines. Returns the lines and the full-precision subtotal.
    """
    groups = classify(positions, rules)
    rules_by_code = {rule.code: rule for rule in rules}
    items: List[StatementLineItem] = []
    subtotal = ZERO_DECIMAL
    for code in display_order:
        members = groups[code]
        if not members:
            continue
        rule = rules_by_code[code]
        amount = total_of(members)
        items.append(line_item(
            code, rule.label, amount, 1, is_calculated=True,
            account_codes=[m.account.code for m in members], notes=rule.note,
        ))
        if detailed:
            items.extend(account_lines(members, level=2))
        subtotal += amount
    return items, subtotal
