# ledger/services/reports_service.py

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ledger_core.enums import AccountCategory, AccountSubCategory, CashFlowRole
from ledger_core.utils import (
    ZERO_DECIMAL, optional_round, percentage_of, previous_period, round_decimal, safe_divide, to_decimal,
)
from .ledger_service import BALANCE_TOLERANCE
from .report_types import (
    BalanceSheet, BalanceSheetMetrics, IncomeStatement, StatementLineItem, StatementSection,
)
from .statement_utils import (
    DEFAULT_COMPANY_NAME, AccountPosition, LineRule, account_lines, grouped_lines, name_has, non_cash_kind,
    positions_as_of, positions_for_period, role_or_name, section, total_of, validate_period,
)

logger = logging.getLogger("ledger.services.reports")

S = AccountSubCategory

# =============================================================================
# Balance Sheet line rules
# =============================================================================
# Rules are listed in matching precedence; *_DISPLAY gives the presentation order.

CURRENT_ASSET_RULES = (
    LineRule('CA-CASH', _("Cash and cash equivalents"), 'Note 1',
             lambda a: a.is_cash_account or a.is_bank_account),
    LineRule('CA-AR', _("Trade and other receivables"), 'Note 2',
             lambda a: role_or_name(a, CashFlowRole.RECEIVABLE, 'receivable', 'debtors')),
    LineRule('CA-INV', _("Inventories"), 'Note 3',
             lambda a: role_or_name(a, CashFlowRole.INVENTORY, 'inventory', 'stock')),
    LineRule('CA-PREPAY', _("Prepayments and advances"), 'Note 4',
             lambda a: name_has(a, 'prepaid', 'prepayment', 'advance')),
    LineRule('CA-OTHER', _("Other current assets"), 'Note 5', lambda a: True),
)
CURRENT_ASSET_DISPLAY = ('CA-CASH', 'CA-AR', 'CA-INV', 'CA-PREPAY', 'CA-OTHER')

NON_CURRENT_ASSET_RULES = (
    LineRule('NCA-INTANGIBLE', _("Intangible assets"), 'Note 7',
             lambda a: a.sub_category == S.INTANGIBLE_ASSET),
    LineRule('NCA-INV', _("Long-term investments"), 'Note 8',
             lambda a: a.sub_category == S.NON_CURRENT_ASSET and name_has(a, 'investment', 'securities')),
    LineRule('NCA-DTA', _("Deferred tax assets"), 'Note 9', lambda a: name_has(a, 'deferred tax')),
    LineRule('NCA-PPE', _("Property, plant and equipment"), 'Note 6', lambda a: True),
)
NON_CURRENT_ASSET_DISPLAY = ('NCA-PPE', 'NCA-INTANGIBLE', 'NCA-INV', 'NCA-DTA')

CURRENT_LIABILITY_RULES = (
    LineRule('CL-TAX', _("Current tax liabilities"), 'Note 12',
             lambda a: name_has(a, 'tax payable', 'income tax', 'sales tax')),
    LineRule('CL-AP', _("Trade and other payables"), 'Note 10',
             lambda a: role_or_name(a, CashFlowRole.PAYABLE, 'payable', 'creditors')),
    LineRule('CL-DEBT', _("Short-term borrowings"), 'Note 11',
             lambda a: name_has(a, 'loan', 'borrowing', 'overdraft')),
    LineRule('CL-ACCRUAL', _("Accruals and provisions"), 'Note 13',
             lambda a: name_has(a, 'accrual', 'provision')),
    LineRule('CL-OTHER', _("Other current liabilities"), 'Note 14', lambda a: True),
)
CURRENT_LIABILITY_DISPLAY = ('CL-AP', 'CL-DEBT', 'CL-TAX', 'CL-ACCRUAL', 'CL-OTHER')

NON_CURRENT_LIABILITY_RULES = (
    LineRule('NCL-DTL', _("Deferred tax liabilities"), 'Note 16', lambda a: name_has(a, 'deferred tax')),
    LineRule('NCL-DEBT', _("Long-term borrowings"), 'Note 15',
             lambda a: name_has(a, 'loan', 'debt', 'borrowing', 'bonds')),
    LineRule('NCL-PROV', _("Long-term provisions"), 'Note 17',
             lambda a: name_has(a, 'provision') and not name_has(a, 'current')),
    LineRule('NCL-OTHER', _("Other non-current liabilities"), 'Note 18', lambda a: True),
)
NON_CURRENT_LIABILITY_DISPLAY = ('NCL-DEBT', 'NCL-DTL', 'NCL-PROV', 'NCL-OTHER')

NON_CURRENT_ASSET_SUBS = {S.FIXED_ASSET, S.NON_CURRENT_ASSET, S.INTANGIBLE_ASSET}


def _is_non_current_asset(position: AccountPosition) -> bool:
    a = position.account
    return a.category == AccountCategory.ASSET and (a.sub_category in NON_CURRENT_ASSET_SUBS or a.is_fixed_asset)


def _is_current_asset(position: AccountPosition) -> bool:
    return position.account.category == AccountCategory.ASSET and not _is_non_current_asset(position)


def _is_current_liability(position: AccountPosition) -> bool:
    a = position.account
    return a.category == AccountCategory.LIABILITY and a.sub_category != S.NON_CURRENT_LIABILITY


def _is_non_current_liability(position: AccountPosition) -> bool:
    a = position.account
    return a.category == AccountCategory.LIABILITY and a.sub_category == S.NON_CURRENT_LIABILITY


def check_accounting_equation(total_assets: Decimal, total_liabilities: Decimal,
                              total_equity: Decimal) -> Tuple[bool, Optional[Decimal]]:
    """
    (is_balanced, balance_difference). The difference is assets minus liabilities and
    equity, reported only when it reaches the tolerance.
    """
    difference = total_assets - (total_liabilities + total_equity)
    if abs(difference) < BALANCE_TOLERANCE:
        return True, None
    return False, round_decimal(difference)


def current_year_profit(period_start: date, period_end: date) -> Decimal:
    """Revenue (credits - debits) less expenses (debits - credits) posted in the period."""
    positions = positions_for_period(period_start, period_end, (AccountCategory.REVENUE, AccountCategory.EXPENSE))
    revenue = total_of(p for p in positions if p.account.category == AccountCategory.REVENUE)
    expenses = total_of(p for p in positions if p.account.category == AccountCategory.EXPENSE)
    return revenue - expenses


def _balance_sheet_metrics(current_assets: Decimal, current_liabilities: Decimal, inventory: Decimal,
                           total_assets: Decimal, total_liabilities: Decimal, total_equity: Decimal,
                           net_income: Decimal) -> BalanceSheetMetrics:
    return {
        'working_capital': round_decimal(current_assets - current_liabilities),
        'current_ratio': round_decimal(safe_divide(current_assets, current_liabilities)),
        'quick_ratio': round_decimal(safe_divide(current_assets - inventory, current_liabilities)),
        'debt_to_equity_ratio': round_decimal(safe_divide(total_liabilities, total_equity)),
        'return_on_assets': round_decimal(percentage_of(net_income, total_assets)),
        'return_on_equity': round_decimal(percentage_of(net_income, total_equity)),
    }


# =============================================================================
# Balance Sheet
# =============================================================================
def generate_balance_sheet(
        period_start: date,
        period_end: date,
        detailed: bool = False,
        include_zero_balances: bool = False,
        comparison_period_end: Optional[date] = None,
        company_name: Optional[str] = None,
) -> BalanceSheet:
    """
    Statement of financial position as of `period_end`.

    Equity includes the profit earned over [period_start, period_end], computed from
    revenue and expense activity rather than from a stored balance. An equation mismatch
    is reported through `is_balanced`/`balance_difference` and logged as a warning.
    """
    validate_period(period_start, period_end)
    logger.info(f"Generating Balance Sheet from {period_start} to {period_end}")

    positions = positions_as_of(
        period_end, (AccountCategory.ASSET, AccountCategory.LIABILITY, AccountCategory.EQUITY),
        include_zero=include_zero_balances,
    )

    ca_lines, ca_total = grouped_lines(
        [p for p in positions if _is_current_asset(p)], CURRENT_ASSET_RULES, CURRENT_ASSET_DISPLAY, detailed)
    nca_lines, nca_total = grouped_lines(
        [p for p in positions if _is_non_current_asset(p)], NON_CURRENT_ASSET_RULES, NON_CURRENT_ASSET_DISPLAY,
        detailed)
    cl_lines, cl_total = grouped_lines(
        [p for p in positions if _is_current_liability(p)], CURRENT_LIABILITY_RULES, CURRENT_LIABILITY_DISPLAY,
        detailed)
    ncl_lines, ncl_total = grouped_lines(
        [p for p in positions if _is_non_current_liability(p)], NON_CURRENT_LIABILITY_RULES,
        NON_CURRENT_LIABILITY_DISPLAY, detailed)

    equity_positions = [p for p in positions if p.account.category == AccountCategory.EQUITY]
    share_capital = [p for p in equity_positions if p.account.sub_category == S.SHARE_CAPITAL]
    retained = [p for p in equity_positions if p.account.sub_category == S.RETAINED_EARNINGS]
    reserves = [p for p in equity_positions if p not in share_capital and p not in retained]
    share_capital_total = total_of(share_capital)
    reserves_total = total_of(reserves)
    retained_earnings = total_of(retained)
    profit = current_year_profit(period_start, period_end)

    total_assets = ca_total + nca_total
    total_liabilities = cl_total + ncl_total
    total_equity = share_capital_total + reserves_total + retained_earnings + profit

    is_balanced, balance_difference = check_accounting_equation(total_assets, total_liabilities, total_equity)
    if not is_balanced:
        logger.warning(
            f"Balance Sheet as of {period_end} is not balanced! Assets {total_assets} vs "
            f"Liabilities + Equity {total_liabilities + total_equity} (difference {balance_difference})."
        )

    inventory = next((line['amount'] for line in ca_lines if line['code'] == 'CA-INV'), ZERO_DECIMAL)
    metrics = _balance_sheet_metrics(ca_total, cl_total, inventory, total_assets, total_liabilities,
                                     total_equity, profit)

    previous_assets = previous_liabilities = previous_equity = None
    if comparison_period_end:
        previous = positions_as_of(
            comparison_period_end, (AccountCategory.ASSET, AccountCategory.LIABILITY, AccountCategory.EQUITY),
            include_zero=True,
        )
        previous_assets = total_of(p for p in previous if p.account.category == AccountCategory.ASSET)
        previous_liabilities = total_of(p for p in previous if p.account.category == AccountCategory.LIABILITY)
        previous_equity = total_of(p for p in previous if p.account.category == AccountCategory.EQUITY)

    balance_sheet: BalanceSheet = {
        'title': str(_("Balance Sheet")),
        'generated_at': timezone.now(),
        'period_start': period_start,
        'period_end': period_end,
        'company_name': company_name or DEFAULT_COMPANY_NAME,
        'is_comparative': comparison_period_end is not None,
        'assets': {
            'current_assets': section('current-assets', _("Current Assets"), ca_lines, ca_total, 2),
            'non_current_assets': section('non-current-assets', _("Non-Current Assets"), nca_lines, nca_total, 1),
            'total_assets': round_decimal(total_assets),
            'previous_total_assets': optional_round(previous_assets),
        },
        'liabilities': {
            'current_liabilities': section('current-liabilities', _("Current Liabilities"), cl_lines, cl_total, 2),
            'non_current_liabilities': section('non-current-liabilities', _("Non-Current Liabilities"),
                                               ncl_lines, ncl_total, 1),
            'total_liabilities': round_decimal(total_liabilities),
            'previous_total_liabilities': optional_round(previous_liabilities),
        },
        'equity': {
            'share_capital': section('share-capital', _("Share Capital"), account_lines(share_capital),
                                     share_capital_total, 1),
            'reserves': section('reserves', _("Reserves"), account_lines(reserves), reserves_total, 2),
            'retained_earnings': round_decimal(retained_earnings),
            'current_year_profit': round_decimal(profit),
            'total_equity': round_decimal(total_equity),
            'previous_total_equity': optional_round(previous_equity),
        },
        'total_liabilities_and_equity': round_decimal(total_liabilities + total_equity),
        'metrics': metrics,
        'is_balanced': is_balanced,
        'balance_difference': balance_difference,
        'comparison_period_end': comparison_period_end,
    }
    logger.info(f"Balance Sheet generated successfully. Total Assets: {balance_sheet['assets']['total_assets']}")
    return balance_sheet


# =============================================================================
# Income Statement
# =============================================================================
# (section id, title, category, sub-categories, order). None stands for "no sub-category".
INCOME_SECTIONS = (
    ('operating-revenue', _("Operating Revenue"), AccountCategory.REVENUE, {S.OPERATING_REVENUE}, 1),
    ('other-income', _("Other Income"), AccountCategory.REVENUE, {S.OTHER_INCOME, None}, 2),
    ('cost-of-goods-sold', _("Cost of Goods Sold"), AccountCategory.EXPENSE, {S.COST_OF_GOODS_SOLD}, 1),
    ('admin-expenses', _("Administrative Expenses"), AccountCategory.EXPENSE, {S.ADMINISTRATIVE_EXPENSE}, 1),
    ('selling-expenses', _("Operating/Selling Expenses"), AccountCategory.EXPENSE, {S.OPERATING_EXPENSE, None}, 2),
    ('general-expenses', _("General Expenses"), AccountCategory.EXPENSE, {S.OTHER_EXPENSE}, 3),
    ('financial-expenses', _("Financial Expenses"), AccountCategory.EXPENSE, {S.FINANCIAL_EXPENSE}, 1),
)


def income_breakdown(period_start: date, period_end: date) -> Dict:
    """
    Full-precision income figures for a period: per-section positions and totals,
    gross profit, EBIT, depreciation/amortization and income before tax.
    """
    positions = positions_for_period(period_start, period_end, (AccountCategory.REVENUE, AccountCategory.EXPENSE))
    groups: Dict[str, List[AccountPosition]] = {entry[0]: [] for entry in INCOME_SECTIONS}
    for position in positions:
        sub_category = position.account.sub_category or None
        for section_id, _title, category, subs, _order in INCOME_SECTIONS:
            if position.account.category == category and sub_category in subs:
                groups[section_id].append(position)
                break
    totals = {section_id: total_of(members) for section_id, members in groups.items()}

    total_revenue = totals['operating-revenue'] + totals['other-income']
    cogs = totals['cost-of-goods-sold']
    gross_profit = total_revenue - cogs
    total_operating = totals['admin-expenses'] + totals['selling-expenses'] + totals['general-expenses']
    operating_income = gross_profit - total_operating
    other_expenses = totals['financial-expenses']
    depreciation = total_of(p for p in positions if non_cash_kind(p.account) == 'depreciation')
    amortization = total_of(p for p in positions if non_cash_kind(p.account) == 'amortization')

    return {
        'groups': groups,
        'totals': totals,
        'total_revenue': total_revenue,
        'cogs': cogs,
        'gross_profit': gross_profit,
        'total_operating': total_operating,
        'operating_income': operating_income,
        'other_expenses': other_expenses,
        'depreciation': depreciation,
        'amortization': amortization,
        'ebitda': operating_income + depreciation + amortization,
        'income_before_tax': operating_income - other_expenses,
    }


def _tax_for(income_before_tax: Decimal, tax_rate: Decimal) -> Decimal:
    if tax_rate <= 0:
        return ZERO_DECIMAL
    return income_before_tax * tax_rate / Decimal('100')


def _attach_previous(lines: List[StatementLineItem], previous: Dict[str, Decimal]) -> List[StatementLineItem]:
    for line in lines:
        prior = round_decimal(previous.get(line['code'], ZERO_DECIMAL))
        line['previous_amount'] = prior
        line['variance'] = line['amount'] - prior
    return lines


def _income_section(figures: Dict, section_id: str, previous: Optional[Dict]) -> StatementSection:
    _sid, title, _category, _subs, order = next(s for s in INCOME_SECTIONS if s[0] == section_id)
    members = figures['groups'][section_id]
    block = section(section_id, title, account_lines(members), figures['totals'][section_id], order)
    if previous is not None:
        prior_amounts = {p.account.code: p.amount for p in previous['groups'][section_id]}
        _attach_previous(block['line_items'], prior_amounts)
        block['previous_subtotal'] = round_decimal(previous['totals'][section_id])
    return block


def generate_income_statement(
        period_start: date,
        period_end: date,
        tax_rate=0,
        shares_outstanding: Optional[int] = None,
        include_comparison: bool = False,
        company_name: Optional[str] = None,
) -> IncomeStatement:
    """
    Multi-step income statement for [period_start, period_end].

    With `include_comparison`, the preceding period of equal length is computed and its
    amounts and variances are attached to every line and total.
    """
    validate_period(period_start, period_end)
    logger.info(f"Generating Income Statement from {period_start} to {period_end}")
    rate = to_decimal(tax_rate)
    current = income_breakdown(period_start, period_end)

    previous = None
    previous_start = previous_end = None
    if include_comparison:
        previous_start, previous_end = previous_period(period_start, period_end)
        previous = income_breakdown(previous_start, previous_end)

    revenue = current['total_revenue']
    tax_amount = _tax_for(current['income_before_tax'], rate)
    net_income = current['income_before_tax'] - tax_amount

    def prior(key: str) -> Optional[Decimal]:
        return round_decimal(previous[key]) if previous is not None else None

    prior_tax = prior_net = prior_net_margin = prior_gross_margin = None
    if previous is not None:
        raw_prior_tax = _tax_for(previous['income_before_tax'], rate)
        raw_prior_net = previous['income_before_tax'] - raw_prior_tax
        prior_tax = round_decimal(raw_prior_tax)
        prior_net = round_decimal(raw_prior_net)
        prior_net_margin = round_decimal(percentage_of(raw_prior_net, previous['total_revenue']))
        prior_gross_margin = round_decimal(percentage_of(previous['gross_profit'], previous['total_revenue']))

    cogs_section = _income_section(current, 'cost-of-goods-sold', previous)
    eps = None
    if shares_outstanding:
        eps = round_decimal(safe_divide(net_income, to_decimal(shares_outstanding)))

    gross_margin = round_decimal(percentage_of(current['gross_profit'], revenue))
    operating_margin = round_decimal(percentage_of(current['operating_income'], revenue))
    net_margin = round_decimal(percentage_of(net_income, revenue))

    statement: IncomeStatement = {
        'title': str(_("Income Statement")),
        'generated_at': timezone.now(),
        'period_start': period_start,
        'period_end': period_end,
        'company_name': company_name or DEFAULT_COMPANY_NAME,
        'is_comparative': include_comparison,
        'revenue': {
            'operating_revenue': _income_section(current, 'operating-revenue', previous),
            'other_income': _income_section(current, 'other-income', previous),
            'total_revenue': round_decimal(revenue),
            'previous_total_revenue': prior('total_revenue'),
        },
        'cost_of_goods_sold': {
            'items': cogs_section['line_items'],
            'total': cogs_section['subtotal'],
            'previous_total': prior('cogs'),
        },
        'gross_profit': {
            'amount': round_decimal(current['gross_profit']),
            'margin': gross_margin,
            'previous_amount': prior('gross_profit'),
            'previous_margin': prior_gross_margin,
        },
        'operating_expenses': {
            'administrative': _income_section(current, 'admin-expenses', previous),
            'selling': _income_section(current, 'selling-expenses', previous),
            'general': _income_section(current, 'general-expenses', previous),
            'total_operating': round_decimal(current['total_operating']),
            'previous_total_operating': prior('total_operating'),
        },
        'operating_income': {
            'amount': round_decimal(current['operating_income']),
            'margin': operating_margin,
            'previous_amount': prior('operating_income'),
            'previous_margin': (round_decimal(percentage_of(previous['operating_income'], previous['total_revenue']))
                                if previous is not None else None),
        },
        'other_expenses': {
            'financial': _income_section(current, 'financial-expenses', previous),
            'other': section('other-non-operating', _("Other Non-Operating Expenses"), [], ZERO_DECIMAL, 2),
            'total': round_decimal(current['other_expenses']),
            'previous_total': prior('other_expenses'),
        },
        'ebitda': {
            'amount': round_decimal(current['ebitda']),
            'margin': round_decimal(percentage_of(current['ebitda'], revenue)),
            'depreciation': round_decimal(current['depreciation']),
            'amortization': round_decimal(current['amortization']),
            'previous_amount': prior('ebitda'),
        },
        'tax': {
            'taxable_income': round_decimal(current['income_before_tax']),
            'tax_rate': rate,
            'tax_amount': round_decimal(tax_amount),
            'previous_tax_amount': prior_tax,
        },
        'net_income': {
            'amount': round_decimal(net_income),
            'margin': net_margin,
            'previous_amount': prior_net,
            'previous_margin': prior_net_margin,
            'earnings_per_share': eps,
        },
        'metrics': {
            'gross_profit_margin': gross_margin,
            'operating_margin': operating_margin,
            'net_profit_margin': net_margin,
            'return_on_sales': net_margin,
            'expense_ratio': round_decimal(percentage_of(current['total_operating'], revenue)),
        },
        'previous_period_start': previous_start,
        'previous_period_end': previous_end,
    }
    logger.info(f"Income Statement generated successfully. Net Income: {statement['net_income']['amount']}")
    return statement
