# ledger/services/ledger_service.py

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple, TypedDict

from django.conf import settings
from django.db import models
from django.db.models import Q, QuerySet, Sum
from django.db.models.functions import Coalesce

from ledger_core.enums import AccountCategory, AccountNature, BalanceType
from ledger_core.utils import ZERO_DECIMAL, day_before, next_month_start, round_decimal, today
from ..models.coa import Account
from ..models.journal import VoucherLine
from ..models.snapshot import MonthlyBalance
from .coa_service import get_account_by_code

logger = logging.getLogger(__name__)

# --- Constants ---
BALANCE_TOLERANCE = Decimal(str(getattr(settings, 'LEDGER_BALANCE_TOLERANCE', '0.01')))


# =============================================================================
# Type Definitions
# =============================================================================
class BalanceComponents(NamedTuple):
    """Full-precision parts of a balance; `balance` is signed towards the account's nature."""
    opening: Decimal
    debits: Decimal
    credits: Decimal
    balance: Decimal


class BalanceAmount(TypedDict):
    amount: Decimal
    balance_type: str


class AccountBalance(TypedDict):
    account_code: str
    account_name: str
    nature: str
    opening_balance: Decimal
    total_debits: Decimal
    total_credits: Decimal
    balance: Decimal
    balance_type: str


class LedgerEntry(TypedDict):
    date: date
    voucher_id: str
    voucher_number: str
    voucher_type: str
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    balance_type: str


class LedgerAccountInfo(TypedDict):
    id: str
    code: str
    name: str
    nature: str
    category: str


class AccountLedger(TypedDict):
    account: LedgerAccountInfo
    from_date: Optional[date]
    to_date: Optional[date]
    opening_balance: BalanceAmount
    entries: List[LedgerEntry]
    total_debits: Decimal
    total_credits: Decimal
    closing_balance: BalanceAmount


class TrialBalanceRow(TypedDict):
    account_code: str
    account_name: str
    account_type: str
    category: str
    nature: str
    debit: Decimal
    credit: Decimal
    balance_type: str


class TrialBalance(TypedDict):
    as_of_date: date
    accounts: List[TrialBalanceRow]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool
    difference: Decimal


class CategoryTotals(TypedDict):
    debit: Decimal
    credit: Decimal


class CategorySummary(TypedDict):
    as_of_date: date
    categories: Dict[str, CategoryTotals]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal


# =============================================================================
# Voucher line source
# =============================================================================
def posted_lines() -> QuerySet:
    """Lines of posted, non-deleted vouchers. The only line set the ledger ever reads."""
    return VoucherLine.objects.filter(voucher__is_posted=True, voucher__deleted__isnull=True)


def _totals_annotation() -> Dict[str, Coalesce]:
    return {
        'debits': Coalesce(Sum('debit_amount'), ZERO_DECIMAL, output_field=models.DecimalField()),
        'credits': Coalesce(Sum('credit_amount'), ZERO_DECIMAL, output_field=models.DecimalField()),
    }


def grouped_line_totals(codes: List[str], start: Optional[date], end: Optional[date]) -> Dict[str, Tuple[Decimal, Decimal]]:
    if not codes:
        return {}
    lines = posted_lines().filter(account_code__in=codes)
    if start:
        lines = lines.filter(voucher__voucher_date__gte=start)
    if end:
        lines = lines.filter(voucher__voucher_date__lte=end)
    rows = lines.values('account_code').annotate(**_totals_annotation()).values('account_code', 'debits', 'credits')
    return {row['account_code']: (row['debits'], row['credits']) for row in rows}


def period_activity(accounts: Iterable[Account], start: Optional[date], end: Optional[date]) \
        -> Dict[str, Tuple[Decimal, Decimal]]:
    """
    {account_code: (debits, credits)} for posted lines dated in [start, end].
    Accounts without activity map to zeros.
    """
    codes = [a.code for a in accounts]
    totals = grouped_line_totals(codes, start, end)
    return {code: totals.get(code, (ZERO_DECIMAL, ZERO_DECIMAL)) for code in codes}


# =============================================================================
# Sign rules
# =============================================================================
def nature_net(nature: str, debits: Decimal, credits: Decimal) -> Decimal:
    if nature == AccountNature.DEBIT:
        return debits - credits
    return credits - debits


def balance_type_for(nature: str, signed_amount: Decimal) -> str:
    """Side a natural-signed amount sits on. Zero reports the natural side."""
    natural = BalanceType.DR if nature == AccountNature.DEBIT else BalanceType.CR
    opposite = BalanceType.CR if natural == BalanceType.DR else BalanceType.DR
    return natural if signed_amount >= ZERO_DECIMAL else opposite


def _balance_amount(nature: str, signed_amount: Decimal) -> BalanceAmount:
    return {
        'amount': round_decimal(abs(signed_amount)),
        'balance_type': balance_type_for(nature, signed_amount).value,
    }


# =============================================================================
# Balance computation (snapshot accelerated)
# =============================================================================
def _latest_final_snapshots(accounts: List[Account], as_of_date: date) -> Dict[str, MonthlyBalance]:
    """Most recent final snapshot per account strictly before the month of as_of_date."""
    year, month = as_of_date.year, as_of_date.month
    snapshots = MonthlyBalance.objects.filter(
        account__in=accounts, is_final=True
    ).filter(
        Q(year__lt=year) | Q(year=year, month__lt=month)
    ).only('account', 'year', 'month', 'closing_balance').order_by('account_id', '-year', '-month')

    latest: Dict[str, MonthlyBalance] = {}
    for snapshot in snapshots:
        latest.setdefault(snapshot.account_id, snapshot)
    return latest


def _seed(account: Account, snapshot: Optional[MonthlyBalance]) -> Tuple[Decimal, Optional[date]]:
    """Opening amount and summation window start for an account."""
    if snapshot is None:
        return account.opening_balance, account.opening_date
    window_start = next_month_start(date(snapshot.year, snapshot.month, 1))
    if account.opening_date and account.opening_date > window_start:
        window_start = account.opening_date
    return snapshot.closing_balance, window_start


def balance_components(accounts: Iterable[Account], as_of_date: date, use_snapshots: bool = True) \
        -> Dict[str, BalanceComponents]:
    """
    Balances of many accounts as of a date. Accounts sharing a summation window are
    aggregated in one grouped query.
    """
    accounts = list(accounts)
    if not accounts:
        return {}

    snapshots = _latest_final_snapshots(accounts, as_of_date) if use_snapshots else {}
    openings: Dict[str, Decimal] = {}
    by_window: Dict[Optional[date], List[Account]] = defaultdict(list)
    for account in accounts:
        opening, window_start = _seed(account, snapshots.get(account.pk))
        openings[account.code] = opening
        by_window[window_start].append(account)

    result: Dict[str, BalanceComponents] = {}
    for window_start, group in by_window.items():
        totals = grouped_line_totals([a.code for a in group], window_start, as_of_date)
        for account in group:
            debits, credits = totals.get(account.code, (ZERO_DECIMAL, ZERO_DECIMAL))
            opening = openings[account.code]
            result[account.code] = BalanceComponents(
                opening=opening, debits=debits, credits=credits,
                balance=opening + nature_net(account.nature, debits, credits),
            )
    return result


def signed_balance(account: Account, as_of_date: date) -> Decimal:
    """Full-precision balance, positive on the account's natural side."""
    return balance_components([account], as_of_date)[account.code].balance


def _to_account_balance(account: Account, parts: BalanceComponents) -> AccountBalance:
    side = balance_type_for(account.nature, parts.balance)
    return {
        'account_code': account.code,
        'account_name': account.name,
        'nature': account.nature,
        'opening_balance': round_decimal(parts.opening),
        'total_debits': round_decimal(parts.debits),
        'total_credits': round_decimal(parts.credits),
        'balance': round_decimal(abs(parts.balance)),
        'balance_type': side.value,
    }


def account_balance(account_code: str, as_of_date: Optional[date] = None) -> AccountBalance:
    """
    Balance of a single account as of a date (today when omitted), seeded from the latest
    final monthly snapshot before that month.

    Raises:
        AccountNotFoundError: no non-deleted account has this code.
    """
    account = get_account_by_code(account_code)
    as_of_date = as_of_date or today()
    parts = balance_components([account], as_of_date)[account.code]
    return _to_account_balance(account, parts)


def account_balance_full_scan(account_code: str, as_of_date: Optional[date] = None) -> AccountBalance:
    """Same as account_balance, summing every line from the opening date."""
    account = get_account_by_code(account_code)
    as_of_date = as_of_date or today()
    parts = balance_components([account], as_of_date, use_snapshots=False)[account.code]
    return _to_account_balance(account, parts)


# =============================================================================
# Account ledger
# =============================================================================
def account_ledger(account_code: str, from_date: Optional[date] = None,
                   to_date: Optional[date] = None) -> AccountLedger:
    account = get_account_by_code(account_code)
    effective_to = to_date or today()
    logger.info(f"Generating ledger for {account.code} | Period: {from_date or 'Beginning'} to {effective_to}")

    if from_date:
        running = signed_balance(account, day_before(from_date))
    else:
        running = account.opening_balance
    opening_amount = _balance_amount(account.nature, running)

    lines = posted_lines().filter(
        account_code=account.code, voucher__voucher_date__lte=effective_to
    ).select_related('voucher').order_by('voucher__voucher_date', 'voucher__voucher_number', 'line_number', 'pk')
    window_start = max(filter(None, [from_date, account.opening_date]), default=None)
    if window_start:
        lines = lines.filter(voucher__voucher_date__gte=window_start)

    entries: List[LedgerEntry] = []
    total_debits = ZERO_DECIMAL
    total_credits = ZERO_DECIMAL
    for line in lines:
        running += nature_net(account.nature, line.debit_amount, line.credit_amount)
        total_debits += line.debit_amount
        total_credits += line.credit_amount
        entries.append({
            'date': line.voucher.voucher_date,
            'voucher_id': str(line.voucher_id),
            'voucher_number': line.voucher.voucher_number,
            'voucher_type': line.voucher.voucher_type,
            'description': line.description or line.voucher.description or '',
            'debit': round_decimal(line.debit_amount),
            'credit': round_decimal(line.credit_amount),
            'balance': round_decimal(abs(running)),
            'balance_type': balance_type_for(account.nature, running).value,
        })

    closing = account_balance(account.code, effective_to)
    return {
        'account': {
            'id': str(account.pk),
            'code': account.code,
            'name': account.name,
            'nature': account.nature,
            'category': account.category,
        },
        'from_date': from_date,
        'to_date': to_date,
        'opening_balance': opening_amount,
        'entries': entries,
        'total_debits': round_decimal(total_debits),
        'total_credits': round_decimal(total_credits),
        'closing_balance': {'amount': closing['balance'], 'balance_type': closing['balance_type']},
    }


# =============================================================================
# Trial balance
# =============================================================================
def trial_balance(as_of_date: Optional[date] = None) -> TrialBalance:
    """
    Every non-deleted account, ordered by code, placed in the debit or credit column by
    the side of its computed balance.
    """
    as_of_date = as_of_date or today()
    accounts = list(Account.objects.order_by('code'))
    balances = balance_components(accounts, as_of_date)

    rows: List[TrialBalanceRow] = []
    total_debits = ZERO_DECIMAL
    total_credits = ZERO_DECIMAL
    for account in accounts:
        signed = balances[account.code].balance
        side = balance_type_for(account.nature, signed)
        magnitude = abs(signed)
        debit = magnitude if side == BalanceType.DR else ZERO_DECIMAL
        credit = magnitude if side == BalanceType.CR else ZERO_DECIMAL
        total_debits += debit
        total_credits += credit
        rows.append({
            'account_code': account.code,
            'account_name': account.name,
            'account_type': account.account_type,
            'category': account.category,
            'nature': account.nature,
            'debit': round_decimal(debit),
            'credit': round_decimal(credit),
            'balance_type': side.value,
        })

    difference = total_debits - total_credits
    is_balanced = abs(difference) < BALANCE_TOLERANCE
    if not is_balanced:
        logger.error(f"Trial balance as of {as_of_date} is out of balance: Dr {total_debits} vs Cr {total_credits} "
                     f"(difference {difference}).")

    return {
        'as_of_date': as_of_date,
        'accounts': rows,
        'total_debits': round_decimal(total_debits),
        'total_credits': round_decimal(total_credits),
        'is_balanced': is_balanced,
        'difference': round_decimal(difference),
    }


def category_summary(as_of_date: Optional[date] = None) -> CategorySummary:
    tb = trial_balance(as_of_date)
    categories: Dict[str, CategoryTotals] = {
        c.value: {'debit': ZERO_DECIMAL, 'credit': ZERO_DECIMAL} for c in AccountCategory
    }
    for row in tb['accounts']:
        bucket = categories.setdefault(row['category'], {'debit': ZERO_DECIMAL, 'credit': ZERO_DECIMAL})
        bucket['debit'] += row['debit']
        bucket['credit'] += row['credit']

    def debit_side(category):
        return categories[category]['debit'] - categories[category]['credit']

    def credit_side(category):
        return categories[category]['credit'] - categories[category]['debit']

    total_revenue = credit_side(AccountCategory.REVENUE)
    total_expenses = debit_side(AccountCategory.EXPENSE)
    return {
        'as_of_date': tb['as_of_date'],
        'categories': categories,
        'total_assets': debit_side(AccountCategory.ASSET),
        'total_liabilities': credit_side(AccountCategory.LIABILITY),
        'total_equity': credit_side(AccountCategory.EQUITY),
        'total_revenue': total_revenue,
        'total_expenses': total_expenses,
        'net_income': total_revenue - total_expenses,
    }
