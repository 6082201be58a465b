# ledger/services/snapshot_service.py

"""
Monthly closing-balance snapshots.

The recomputation pass is the only writer of MonthlyBalance rows. It walks every
calendar month from the earliest posted voucher through the requested date and
chains each account's closing balance into the next month's opening balance.
Rows for months that ended before `now` are marked final and are never rewritten,
so balance queries may treat them as immutable history.
"""

import logging
import uuid
from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, TypedDict, Union

from django.conf import settings
from django.db import transaction
from django.db.models import Min, Q
from django.utils import timezone

from ledger_core.utils import ZERO_DECIMAL, day_before, iter_months, next_month_start, previous_month
from ..exceptions import AccountNotFoundError, SnapshotRecomputeInProgress
from ..models.coa import Account
from ..models.snapshot import MonthlyBalance, SnapshotRunLock
from .ledger_service import grouped_line_totals, nature_net, posted_lines

logger = logging.getLogger(__name__)

# --- Constants ---
SNAPSHOT_LOCK_NAME = 'ledger:snapshot-recompute'
SNAPSHOT_LOCK_TIMEOUT = getattr(settings, 'LEDGER_SNAPSHOT_LOCK_TIMEOUT', 3600)  # seconds


class SnapshotRunSummary(TypedDict):
    months_processed: int
    rows_written: int
    rows_skipped_final: int
    first_month: Optional[str]
    last_month: Optional[str]


class SnapshotViolation(TypedDict):
    account_code: str
    period: str
    rule: str
    expected: Decimal
    actual: Decimal


@contextmanager
def snapshot_lock():
    """
    Single-writer lock kept on a SnapshotRunLock row, so it holds across every process
    sharing the database. Acquisition is one conditional UPDATE; a holder older than
    LEDGER_SNAPSHOT_LOCK_TIMEOUT is treated as abandoned and taken over.

    Raises:
        SnapshotRecomputeInProgress: another run holds the lock.
    """
    token = uuid.uuid4().hex
    SnapshotRunLock.objects.get_or_create(name=SNAPSHOT_LOCK_NAME)
    acquired_at = timezone.now()
    stale_before = acquired_at - timedelta(seconds=SNAPSHOT_LOCK_TIMEOUT)
    with transaction.atomic():
        acquired = SnapshotRunLock.objects.filter(
            Q(holder='') | Q(acquired_at__lt=stale_before), name=SNAPSHOT_LOCK_NAME,
        ).update(holder=token, acquired_at=acquired_at)
    if not acquired:
        raise SnapshotRecomputeInProgress()
    try:
        yield token
    finally:
        SnapshotRunLock.objects.filter(name=SNAPSHOT_LOCK_NAME, holder=token).update(holder='', acquired_at=None)


def earliest_voucher_date() -> Optional[date]:
    return posted_lines().aggregate(first=Min('voucher__voucher_date'))['first']


def _as_local_date(now: Union[date, datetime, None]) -> date:
    if now is None:
        return timezone.localdate()
    if isinstance(now, datetime):
        return timezone.localdate(now) if timezone.is_aware(now) else now.date()
    return now


def _month_totals(accounts: List[Account], month_first: date, month_last: date) \
        -> Dict[str, Tuple[Decimal, Decimal]]:
    """
    Posted debits/credits per account for one month. Lines dated before an account's
    opening date are ignored, matching the balance engine's summation window.
    """
    by_window: Dict[date, List[str]] = defaultdict(list)
    for account in accounts:
        start = month_first
        if account.opening_date and account.opening_date > start:
            start = account.opening_date
        if start <= month_last:
            by_window[start].append(account.code)

    totals: Dict[str, Tuple[Decimal, Decimal]] = {}
    for start, codes in by_window.items():
        totals.update(grouped_line_totals(codes, start, month_last))
    return totals


def recompute_monthly_snapshots(up_to_date: date, now: Union[date, datetime, None] = None) -> SnapshotRunSummary:
    """
    Idempotent, resumable recomputation of monthly snapshots up to the month of `up_to_date`.

    Args:
        up_to_date: Last date whose month is recomputed.
        now: Reference instant for finality (defaults to the current time). A month is
            final when the first day of the following month is on or before this date.

    Raises:
        SnapshotRecomputeInProgress: another recomputation is running.
    """
    with snapshot_lock():
        return _recompute(up_to_date, _as_local_date(now))


def _recompute(up_to_date: date, today_local: date) -> SnapshotRunSummary:
    summary: SnapshotRunSummary = {
        'months_processed': 0, 'rows_written': 0, 'rows_skipped_final': 0,
        'first_month': None, 'last_month': None,
    }
    first_date = earliest_voucher_date()
    if first_date is None or first_date > up_to_date:
        logger.info(f"Snapshot recompute up to {up_to_date}: no posted vouchers in range, nothing to do.")
        return summary

    accounts = list(Account.objects.order_by('code'))
    existing: Dict[Tuple, MonthlyBalance] = {
        (row.account_id, row.year, row.month): row
        for row in MonthlyBalance.objects.filter(account__in=accounts)
    }
    # Closing balance carried into the next month, per account.
    carried: Dict = {}
    first_year, first_month = first_date.year, first_date.month
    prior_year, prior_month = previous_month(first_year, first_month)
    for account in accounts:
        prior = existing.get((account.pk, prior_year, prior_month))
        carried[account.pk] = prior.closing_balance if prior is not None else account.opening_balance

    logger.info(f"Snapshot recompute: {len(accounts)} accounts from {first_date:%Y-%m} through {up_to_date:%Y-%m}.")

    for year, month in iter_months(first_date, up_to_date):
        month_first = date(year, month, 1)
        following = next_month_start(month_first)
        is_final = following <= today_local
        computed_at = timezone.now()

        pending = [a for a in accounts if not _is_final_row(existing.get((a.pk, year, month)))]
        totals = _month_totals(pending, month_first, day_before(following))

        to_create: List[MonthlyBalance] = []
        to_update: List[MonthlyBalance] = []
        for account in accounts:
            row = existing.get((account.pk, year, month))
            if _is_final_row(row):
                carried[account.pk] = row.closing_balance
                summary['rows_skipped_final'] += 1
                continue

            debits, credits = totals.get(account.code, (ZERO_DECIMAL, ZERO_DECIMAL))
            opening = carried[account.pk]
            closing = opening + nature_net(account.nature, debits, credits)
            carried[account.pk] = closing

            if row is None:
                row = MonthlyBalance(account=account, year=year, month=month)
                to_create.append(row)
            else:
                to_update.append(row)
            row.opening_balance = opening
            row.total_debits = debits
            row.total_credits = credits
            row.closing_balance = closing
            row.is_final = is_final
            row.computed_at = computed_at

        with transaction.atomic():
            if to_create:
                MonthlyBalance.objects.bulk_create(to_create)
            if to_update:
                MonthlyBalance.objects.bulk_update(
                    to_update,
                    ['opening_balance', 'total_debits', 'total_credits', 'closing_balance', 'is_final', 'computed_at'],
                )
        for row in to_create:
            existing[(row.account_id, year, month)] = row

        written = len(to_create) + len(to_update)
        summary['rows_written'] += written
        summary['months_processed'] += 1
        summary['first_month'] = summary['first_month'] or f"{year}-{month:02d}"
        summary['last_month'] = f"{year}-{month:02d}"
        logger.debug(f"Snapshot {year}-{month:02d}: {written} rows written (final={is_final}).")

    logger.info(
        f"Snapshot recompute finished: {summary['months_processed']} months, {summary['rows_written']} rows written, "
        f"{summary['rows_skipped_final']} final rows kept."
    )
    return summary


def _is_final_row(row: Optional[MonthlyBalance]) -> bool:
    return row is not None and row.is_final


def verify_snapshot_chain(account_code: Optional[str] = None) -> List[SnapshotViolation]:
    """
    Checks every stored snapshot against the closing identity and the opening chain.
    Returns the violations found; an empty list means the chain is consistent.
    """
    accounts = Account.objects.order_by('code')
    if account_code:
        accounts = accounts.filter(code=account_code)
        if not accounts.exists():
            raise AccountNotFoundError(account_code)
    by_pk = {a.pk: a for a in accounts}

    rows = MonthlyBalance.objects.filter(account__in=list(by_pk.values())).order_by('account_id', 'year', 'month')
    violations: List[SnapshotViolation] = []
    previous: Dict = {}
    for row in rows:
        account = by_pk[row.account_id]
        period = row.period_label

        expected_closing = row.opening_balance + nature_net(account.nature, row.total_debits, row.total_credits)
        if expected_closing != row.closing_balance:
            violations.append({
                'account_code': account.code, 'period': period, 'rule': 'closing',
                'expected': expected_closing, 'actual': row.closing_balance,
            })

        prior = previous.get(account.pk)
        if prior is not None and (prior.year, prior.month) == previous_month(row.year, row.month):
            expected_opening = prior.closing_balance
        elif prior is None:
            expected_opening = account.opening_balance
        else:
            expected_opening = None  # gap in the chain; opening cannot be checked
        if expected_opening is not None and expected_opening != row.opening_balance:
            violations.append({
                'account_code': account.code, 'period': period, 'rule': 'opening',
                'expected': expected_opening, 'actual': row.opening_balance,
            })
        previous[account.pk] = row

    for violation in violations:
        logger.error(
            f"Snapshot chain violation [{violation['rule']}] for {violation['account_code']} {violation['period']}: "
            f"expected {violation['expected']}, found {violation['actual']}."
        )
    return violations
