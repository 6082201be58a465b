# tests/conftest.py
"""
Pytest fixtures for the ledger tests.

- `chart`: the default cold-storage chart of accounts, keyed by code
- `post_voucher`: factory writing a voucher with lines, posted by default
- `make_account`: thin wrapper over create_account for ad-hoc accounts
- `held_snapshot_lock`: the snapshot lock row owned by another run
- `statement_chart` / `january_trading`: a month of trading used by the statement tests
"""

import itertools
from datetime import date
from decimal import Decimal

import pytest
from django.utils import timezone

from ledger.models import Account, SnapshotRunLock, Voucher, VoucherLine
from ledger.services.coa_service import create_account, seed_default_chart
from ledger.services.snapshot_service import SNAPSHOT_LOCK_NAME

from .chart_codes import CASH, ELECTRICITY, OWNER_CAPITAL, PAYABLE, RECEIVABLE, SALARIES, STORAGE_REVENUE


@pytest.fixture
def held_snapshot_lock(db):
    """Marks the snapshot lock as taken by another, still-running recomputation."""
    return SnapshotRunLock.objects.create(name=SNAPSHOT_LOCK_NAME, holder='other-run', acquired_at=timezone.now())


@pytest.fixture
def chart(db):
    """Seed the default chart and return {code: Account}."""
    seed_default_chart()
    return {account.code: account for account in Account.objects.all()}


@pytest.fixture
def make_account(db):
    def _make(name, parent=None, **fields):
        return create_account({'name': name, **fields}, parent_id=parent.pk if parent else None)
    return _make


@pytest.fixture
def post_voucher(db):
    """
    post_voucher(date(2025, 1, 10), [(CASH, 500, 0), (OWNER_CAPITAL, 0, 500)])
    """
    counter = itertools.count(1)

    def _post(voucher_date: date, lines, posted: bool = True, description: str = ''):
        voucher = Voucher.objects.create(
            voucher_number=f"JV-{next(counter):05d}",
            voucher_date=voucher_date,
            description=description,
        )
        for number, (code, debit, credit) in enumerate(lines, start=1):
            VoucherLine.objects.create(
                voucher=voucher, line_number=number, account_code=code,
                debit_amount=Decimal(str(debit)), credit_amount=Decimal(str(credit)),
            )
        if posted:
            voucher.mark_posted()
        return voucher

    return _post


@pytest.fixture
def statement_chart(chart, make_account):
    """
    Default chart plus a refrigeration plant, a long-term loan, depreciation and
    interest expense accounts. Returns {code: Account} including the new accounts
    under the keys 'plant', 'loan', 'depreciation' and 'interest'.
    """
    fixed_assets = make_account('Fixed Assets', parent=chart['1-0001'], account_type='SUB_CONTROL',
                                sub_category='FIXED_ASSET')
    accounts = dict(chart)
    accounts['plant'] = make_account('Refrigeration Plant', parent=fixed_assets, is_depreciable=True)
    accounts['loan'] = make_account('Bank Term Loan', parent=chart['2-0001'], sub_category='NON_CURRENT_LIABILITY')
    accounts['depreciation'] = make_account('Depreciation Expense', parent=chart['5-0001'],
                                            sub_category='OPERATING_EXPENSE', is_non_cash_expense=True)
    accounts['interest'] = make_account('Interest Expense', parent=chart['5-0001'],
                                        sub_category='FINANCIAL_EXPENSE')
    return accounts


@pytest.fixture
def january_trading(statement_chart, post_voucher):
    """
    One month of cold-storage trading in January 2025.

    Closing position on 31 Jan: cash 42,700, receivables 3,000, plant 29,500,
    payables 1,200, term loan 20,000, owner capital 50,000. Revenue 8,000 against
    expenses of 4,000 (300 of it interest, 500 depreciation).
    """
    plant = statement_chart['plant'].code
    loan = statement_chart['loan'].code
    post_voucher(date(2025, 1, 2), [(CASH, 50000, 0), (OWNER_CAPITAL, 0, 50000)])
    post_voucher(date(2025, 1, 3), [(plant, 30000, 0), (loan, 0, 20000), (CASH, 0, 10000)])
    post_voucher(date(2025, 1, 10), [(RECEIVABLE, 8000, 0), (STORAGE_REVENUE, 0, 8000)])
    post_voucher(date(2025, 1, 15), [(CASH, 5000, 0), (RECEIVABLE, 0, 5000)])
    post_voucher(date(2025, 1, 20), [(ELECTRICITY, 1200, 0), (PAYABLE, 0, 1200)])
    post_voucher(date(2025, 1, 25), [(SALARIES, 2000, 0), (CASH, 0, 2000)])
    post_voucher(date(2025, 1, 31), [(statement_chart['depreciation'].code, 500, 0), (plant, 0, 500)])
    post_voucher(date(2025, 1, 31), [(statement_chart['interest'].code, 300, 0), (CASH, 0, 300)])
    return statement_chart
