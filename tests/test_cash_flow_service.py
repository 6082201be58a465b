# tests/test_cash_flow_service.py
"""
Tests for the indirect-method Cash Flow Statement.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger.services.cash_flow_service import generate_cash_flow_statement

from .chart_codes import CASH, OWNER_CAPITAL, RECEIVABLE, RETAINED_EARNINGS, STORAGE_REVENUE

JAN_START = date(2025, 1, 1)
JAN_END = date(2025, 1, 31)


def _by_code(lines):
    return {line['code']: line for line in lines}


@pytest.mark.django_db
class TestCashFlowStatement:

    def test_operating_activities(self, january_trading):
        cf = generate_cash_flow_statement(JAN_START, JAN_END)
        operating = cf['operating_activities']

        assert operating['net_income'] == Decimal('4000.00')
        assert _by_code(operating['adjustments'])['OPS-DEP']['amount'] == Decimal('500.00')
        changes = _by_code(operating['working_capital_changes'])
        assert changes['WC-AR']['amount'] == Decimal('-3000.00')
        assert changes['WC-AR']['label'] == 'Increase in Accounts Receivable'
        assert changes['WC-AP']['amount'] == Decimal('1200.00')
        assert 'WC-INV' not in changes
        assert operating['net_cash_from_operating'] == Decimal('2700.00')

    def test_investing_and_financing(self, january_trading):
        cf = generate_cash_flow_statement(JAN_START, JAN_END)

        investing = _by_code(cf['investing_activities']['items'])
        assert investing['INV-PPE']['amount'] == Decimal('-30000.00')
        assert investing['INV-PPE']['label'] == 'Purchase of Property, Plant & Equipment'
        financing = _by_code(cf['financing_activities']['items'])
        assert financing['FIN-DEBT']['amount'] == Decimal('20000.00')
        assert financing['FIN-EQUITY']['label'] == 'Proceeds from Share Capital'
        assert cf['financing_activities']['net_cash_from_financing'] == Decimal('70000.00')

    def test_cash_reconciles(self, january_trading):
        summary = generate_cash_flow_statement(JAN_START, JAN_END)['cash_summary']

        assert summary['cash_beginning'] == Decimal('0.00')
        assert summary['net_cash_change'] == Decimal('42700.00')
        assert summary['cash_ending'] == Decimal('42700.00')
        assert summary['is_reconciled'] is True

    def test_metrics(self, january_trading):
        metrics = generate_cash_flow_statement(JAN_START, JAN_END, capital_expenditure=30000)['metrics']

        assert metrics['operating_cash_flow_ratio'] == Decimal('0.68')
        assert metrics['free_cash_flow'] == Decimal('-27300.00')
        assert metrics['cash_flow_margin'] == Decimal('33.75')

    def test_opening_cash_comes_from_day_before_period(self, chart, post_voucher):
        post_voucher(date(2024, 12, 20), [(CASH, 900, 0), (OWNER_CAPITAL, 0, 900)])
        post_voucher(date(2025, 1, 5), [(CASH, 100, 0), (STORAGE_REVENUE, 0, 100)])

        summary = generate_cash_flow_statement(JAN_START, JAN_END)['cash_summary']
        assert summary['cash_beginning'] == Decimal('900.00')
        assert summary['cash_ending'] == Decimal('1000.00')
        assert summary['is_reconciled'] is True

    def test_collection_of_earlier_receivable_is_explained(self, chart, post_voucher):
        post_voucher(date(2024, 12, 20), [(RECEIVABLE, 600, 0), (STORAGE_REVENUE, 0, 600)])
        post_voucher(date(2025, 1, 8), [(CASH, 600, 0), (RECEIVABLE, 0, 600)])

        cf = generate_cash_flow_statement(JAN_START, JAN_END)
        assert _by_code(cf['operating_activities']['working_capital_changes'])['WC-AR']['label'] == (
            'Decrease in Accounts Receivable'
        )
        assert cf['cash_summary']['cash_ending'] == Decimal('600.00')
        assert cf['cash_summary']['is_reconciled'] is True

    def test_unexplained_cash_movement_is_flagged(self, chart, post_voucher, caplog):
        # Retained earnings movements are neither profit nor financing.
        post_voucher(date(2025, 1, 8), [(CASH, 100, 0), (RETAINED_EARNINGS, 0, 100)])

        summary = generate_cash_flow_statement(JAN_START, JAN_END)['cash_summary']
        assert summary['is_reconciled'] is False
        assert summary['reconciliation_difference'] == Decimal('-100.00')
        assert 'does not reconcile' in caplog.text
