# tests/test_reports_service.py
"""
Tests for the Balance Sheet and Income Statement.

Tests cover:
- Section classification and totals
- Accounting equation check and the unbalanced soft failure
- Balance sheet metrics and comparison totals
- Multi-step income statement figures, tax and EPS
- Previous-period comparison
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger.exceptions import ReportGenerationError
from ledger.services import reports_service

from .chart_codes import CASH, MAINTENANCE, RECEIVABLE, STORAGE_REVENUE

JAN_START = date(2025, 1, 1)
JAN_END = date(2025, 1, 31)


def _codes(section):
    return [line['code'] for line in section['line_items']]


# =============================================================================
# Accounting Equation
# =============================================================================

class TestAccountingEquation:

    def test_within_tolerance_is_balanced(self):
        assert reports_service.check_accounting_equation(
            Decimal('1000.00'), Decimal('400.00'), Decimal('599.995')
        ) == (True, None)

    def test_difference_is_reported(self):
        is_balanced, difference = reports_service.check_accounting_equation(
            Decimal('1000.00'), Decimal('400.00'), Decimal('599.50')
        )
        assert is_balanced is False
        assert difference == Decimal('0.50')


# =============================================================================
# Balance Sheet
# =============================================================================

@pytest.mark.django_db
class TestBalanceSheet:

    def test_totals_and_equation(self, january_trading):
        bs = reports_service.generate_balance_sheet(JAN_START, JAN_END)

        assert bs['title'] == 'Balance Sheet'
        assert bs['assets']['total_assets'] == Decimal('75200.00')
        assert bs['liabilities']['total_liabilities'] == Decimal('21200.00')
        assert bs['equity']['current_year_profit'] == Decimal('4000.00')
        assert bs['equity']['total_equity'] == Decimal('54000.00')
        assert bs['total_liabilities_and_equity'] == Decimal('75200.00')
        assert bs['is_balanced'] is True
        assert bs['balance_difference'] is None

    def test_sections_follow_classification(self, january_trading):
        bs = reports_service.generate_balance_sheet(JAN_START, JAN_END)

        current_assets = bs['assets']['current_assets']
        assert _codes(current_assets) == ['CA-CASH', 'CA-AR']
        assert current_assets['line_items'][0]['account_codes'] == [CASH]
        assert current_assets['line_items'][1]['amount'] == Decimal('3000.00')
        assert current_assets['line_items'][0]['notes'] == 'Note 1'
        assert _codes(bs['assets']['non_current_assets']) == ['NCA-PPE']
        assert _codes(bs['liabilities']['current_liabilities']) == ['CL-AP']
        assert _codes(bs['liabilities']['non_current_liabilities']) == ['NCL-DEBT']
        assert bs['equity']['share_capital']['subtotal'] == Decimal('50000.00')

    def test_detailed_adds_account_lines(self, january_trading):
        bs = reports_service.generate_balance_sheet(JAN_START, JAN_END, detailed=True)
        lines = bs['assets']['current_assets']['line_items']

        assert [(line['code'], line['level']) for line in lines] == [
            ('CA-CASH', 1), (CASH, 2), ('CA-AR', 1), (RECEIVABLE, 2),
        ]

    def test_zero_balances_are_optional(self, january_trading):
        bs = reports_service.generate_balance_sheet(JAN_START, JAN_END, include_zero_balances=True)
        cash_line = bs['assets']['current_assets']['line_items'][0]
        assert '1-0001-0001-0002' in cash_line['account_codes']

    def test_metrics(self, january_trading):
        metrics = reports_service.generate_balance_sheet(JAN_START, JAN_END)['metrics']

        assert metrics['working_capital'] == Decimal('44500.00')
        assert metrics['current_ratio'] == Decimal('38.08')
        assert metrics['quick_ratio'] == Decimal('38.08')
        assert metrics['debt_to_equity_ratio'] == Decimal('0.39')
        assert metrics['return_on_assets'] == Decimal('5.32')
        assert metrics['return_on_equity'] == Decimal('7.41')

    def test_comparison_totals(self, january_trading):
        bs = reports_service.generate_balance_sheet(JAN_START, JAN_END, comparison_period_end=date(2025, 1, 9))

        assert bs['is_comparative'] is True
        assert bs['assets']['previous_total_assets'] == Decimal('70000.00')
        assert bs['liabilities']['previous_total_liabilities'] == Decimal('20000.00')
        assert bs['equity']['previous_total_equity'] == Decimal('50000.00')

    def test_unbalanced_sheet_is_returned_with_difference(self, chart, post_voucher, caplog):
        # December revenue is never closed into retained earnings, so a January sheet misses it.
        post_voucher(date(2024, 12, 15), [(RECEIVABLE, 4000, 0), (STORAGE_REVENUE, 0, 4000)])

        bs = reports_service.generate_balance_sheet(JAN_START, JAN_END)

        assert bs['is_balanced'] is False
        assert bs['balance_difference'] == Decimal('4000.00')
        assert 'not balanced' in caplog.text

    def test_invalid_period(self, chart):
        with pytest.raises(ReportGenerationError):
            reports_service.generate_balance_sheet(JAN_END, JAN_START)

    def test_company_name(self, chart):
        bs = reports_service.generate_balance_sheet(JAN_START, JAN_END, company_name='Frost Cold Chain')
        assert bs['company_name'] == 'Frost Cold Chain'


# =============================================================================
# Income Statement
# =============================================================================

@pytest.mark.django_db
class TestIncomeStatement:

    def test_multi_step_figures(self, january_trading):
        income = reports_service.generate_income_statement(JAN_START, JAN_END)

        assert income['revenue']['total_revenue'] == Decimal('8000.00')
        assert income['gross_profit']['amount'] == Decimal('8000.00')
        assert income['operating_expenses']['total_operating'] == Decimal('3700.00')
        assert income['operating_income']['amount'] == Decimal('4300.00')
        assert income['other_expenses']['total'] == Decimal('300.00')
        assert income['ebitda']['amount'] == Decimal('4800.00')
        assert income['ebitda']['depreciation'] == Decimal('500.00')
        assert income['net_income']['amount'] == Decimal('4000.00')

    def test_selling_section_lists_every_operating_expense_account(self, january_trading):
        income = reports_service.generate_income_statement(JAN_START, JAN_END)
        selling = income['operating_expenses']['selling']

        assert MAINTENANCE in _codes(selling)
        assert selling['subtotal'] == Decimal('3700.00')
        assert selling['title'] == 'Operating/Selling Expenses'

    def test_tax_and_eps(self, january_trading):
        income = reports_service.generate_income_statement(JAN_START, JAN_END, tax_rate=25, shares_outstanding=1000)

        assert income['tax']['taxable_income'] == Decimal('4000.00')
        assert income['tax']['tax_amount'] == Decimal('1000.00')
        assert income['net_income']['amount'] == Decimal('3000.00')
        assert income['net_income']['earnings_per_share'] == Decimal('3.00')

    def test_margins(self, january_trading):
        metrics = reports_service.generate_income_statement(JAN_START, JAN_END, tax_rate=25)['metrics']

        assert metrics['gross_profit_margin'] == Decimal('100.00')
        assert metrics['operating_margin'] == Decimal('53.75')
        assert metrics['net_profit_margin'] == Decimal('37.50')
        assert metrics['return_on_sales'] == metrics['net_profit_margin']
        assert metrics['expense_ratio'] == Decimal('46.25')

    def test_no_revenue_gives_zero_margins(self, chart):
        metrics = reports_service.generate_income_statement(JAN_START, JAN_END)['metrics']
        assert metrics['net_profit_margin'] == Decimal('0.00')

    def test_comparison_with_previous_period(self, chart, post_voucher):
        post_voucher(date(2024, 12, 10), [(RECEIVABLE, 1000, 0), (STORAGE_REVENUE, 0, 1000)])
        post_voucher(date(2025, 1, 10), [(RECEIVABLE, 1500, 0), (STORAGE_REVENUE, 0, 1500)])

        income = reports_service.generate_income_statement(JAN_START, JAN_END, include_comparison=True)

        assert income['previous_period_start'] == date(2024, 12, 1)
        assert income['previous_period_end'] == date(2024, 12, 31)
        assert income['revenue']['previous_total_revenue'] == Decimal('1000.00')
        line = next(item for item in income['revenue']['operating_revenue']['line_items']
                    if item['code'] == STORAGE_REVENUE)
        assert line['previous_amount'] == Decimal('1000.00')
        assert line['variance'] == Decimal('500.00')
        assert income['net_income']['previous_amount'] == Decimal('1000.00')
