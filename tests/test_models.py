# tests/test_models.py
"""
Tests for model-level rules.

Tests cover:
- Voucher lines only accept postable accounts
- Depreciable assets report as plant whatever sub-category they inherit
"""

from datetime import date
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from ledger.models import Voucher, VoucherLine
from ledger.services import cash_flow_service, reports_service

from .chart_codes import CASH, OWNER_CAPITAL


def _line(voucher, code, debit='0', credit='0'):
    return VoucherLine(voucher=voucher, account_code=code,
                       debit_amount=Decimal(debit), credit_amount=Decimal(credit))


@pytest.fixture
def voucher(db):
    return Voucher.objects.create(voucher_number='JV-90001', voucher_date=date(2025, 1, 5))


# =============================================================================
# Voucher Line Validation
# =============================================================================

@pytest.mark.django_db
class TestVoucherLineValidation:

    def test_detail_account_is_accepted(self, chart, voucher):
        _line(voucher, CASH, debit='10.00').full_clean()

    def test_unknown_account_is_rejected(self, chart, voucher):
        with pytest.raises(ValidationError) as exc:
            _line(voucher, '9-9999', debit='10.00').full_clean()
        assert 'account_code' in exc.value.message_dict

    def test_group_account_is_rejected(self, chart, voucher):
        with pytest.raises(ValidationError) as exc:
            _line(voucher, chart[CASH].parent.code, debit='10.00').full_clean()
        assert 'account_code' in exc.value.message_dict

    def test_account_closed_to_direct_posting_is_rejected(self, chart, voucher):
        capital = chart[OWNER_CAPITAL]
        capital.allow_direct_posting = False
        capital.save()

        with pytest.raises(ValidationError):
            _line(voucher, OWNER_CAPITAL, credit='10.00').full_clean()
        assert capital.is_postable is False

    def test_inactive_account_is_not_postable(self, chart):
        cash = chart[CASH]
        cash.is_active = False
        assert cash.is_postable is False

    def test_line_needs_exactly_one_side(self, chart, voucher):
        with pytest.raises(ValidationError):
            _line(voucher, CASH, debit='5.00', credit='5.00').full_clean()
        with pytest.raises(ValidationError):
            _line(voucher, CASH).full_clean()


# =============================================================================
# Depreciable Assets
# =============================================================================

@pytest.mark.django_db
class TestDepreciableAssets:

    @pytest.fixture
    def blast_freezer(self, chart, make_account, post_voucher):
        # Filed under current assets; only the depreciable flag marks it as plant.
        freezer = make_account('Blast Freezer', parent=chart[CASH].parent, is_depreciable=True)
        post_voucher(date(2025, 1, 2), [(CASH, 20000, 0), (OWNER_CAPITAL, 0, 20000)])
        post_voucher(date(2025, 1, 8), [(freezer.code, 12000, 0), (CASH, 0, 12000)])
        return freezer

    def test_flag_makes_a_fixed_asset(self, chart, blast_freezer):
        assert blast_freezer.is_fixed_asset is True
        assert chart[CASH].is_fixed_asset is False

    def test_balance_sheet_reports_it_as_plant(self, blast_freezer):
        bs = reports_service.generate_balance_sheet(date(2025, 1, 1), date(2025, 1, 31))

        ppe = next(line for line in bs['assets']['non_current_assets']['line_items'] if line['code'] == 'NCA-PPE')
        assert blast_freezer.code in ppe['account_codes']
        assert bs['assets']['current_assets']['subtotal'] == Decimal('8000.00')

    def test_cash_flow_reports_the_purchase_as_investing(self, blast_freezer):
        cfs = cash_flow_service.generate_cash_flow_statement(date(2025, 1, 1), date(2025, 1, 31))

        investing = {line['code']: line['amount'] for line in cfs['investing_activities']['items']}
        assert investing['INV-PPE'] == Decimal('-12000.00')
        assert cfs['cash_summary']['is_reconciled'] is True
