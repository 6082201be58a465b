# ledger/services/analysis_service.py

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from django.utils import timezone

from ledger_core.utils import ZERO_DECIMAL, day_before, percentage_of, round_decimal, safe_divide, to_decimal
from .report_types import (
    BalanceSheet, EfficiencyRatios, FinancialAnalysis, IncomeStatement, LiquidityRatios, ProfitabilityRatios,
    SolvencyRatios, StatementLineItem, TrendFigures,
)
from .reports_service import generate_balance_sheet, generate_income_statement

logger = logging.getLogger("ledger.services.analysis")


def growth_rate(previous: Decimal, current: Decimal) -> Decimal:
    """
    Percentage change from `previous` to `current`, measured against |previous|.
    Zero when there is no previous figure to grow from.
    """
    previous, current = to_decimal(previous), to_decimal(current)
    if previous == 0:
        return ZERO_DECIMAL
    return round_decimal((current - previous) / abs(previous) * Decimal('100'))


def _line_amount(lines: List[StatementLineItem], code: str) -> Decimal:
    return next((line['amount'] for line in lines if line['code'] == code), ZERO_DECIMAL)


def _optional_ratio(numerator: Decimal, denominator: Decimal) -> Optional[Decimal]:
    if denominator <= 0:
        return None
    return round_decimal(numerator / denominator)


def _liquidity(bs: BalanceSheet) -> LiquidityRatios:
    current_lines = bs['assets']['current_assets']['line_items']
    current_liabilities = bs['liabilities']['current_liabilities']['subtotal']
    return {
        'current_ratio': bs['metrics']['current_ratio'],
        'quick_ratio': bs['metrics']['quick_ratio'],
        'cash_ratio': round_decimal(safe_divide(_line_amount(current_lines, 'CA-CASH'), current_liabilities)),
        'working_capital': bs['metrics']['working_capital'],
    }


def _profitability(bs: BalanceSheet, income: IncomeStatement) -> ProfitabilityRatios:
    net_income = income['net_income']['amount']
    return_on_assets = round_decimal(percentage_of(net_income, bs['assets']['total_assets']))
    return {
        'gross_profit_margin': income['metrics']['gross_profit_margin'],
        'operating_margin': income['metrics']['operating_margin'],
        'net_profit_margin': income['metrics']['net_profit_margin'],
        'return_on_assets': return_on_assets,
        'return_on_equity': round_decimal(percentage_of(net_income, bs['equity']['total_equity'])),
        'return_on_investment': return_on_assets,
    }


def _efficiency(bs: BalanceSheet, income: IncomeStatement, annual_revenue: Optional[Decimal]) -> EfficiencyRatios:
    revenue = income['revenue']['total_revenue']
    current_lines = bs['assets']['current_assets']['line_items']
    payable_lines = bs['liabilities']['current_liabilities']['line_items']
    turnover_base = annual_revenue if annual_revenue is not None else revenue
    return {
        'asset_turnover': round_decimal(safe_divide(turnover_base, bs['assets']['total_assets'])),
        'inventory_turnover': _optional_ratio(revenue, _line_amount(current_lines, 'CA-INV')),
        'receivables_turnover': _optional_ratio(revenue, _line_amount(current_lines, 'CA-AR')),
        'payables_turnover': _optional_ratio(revenue, _line_amount(payable_lines, 'CL-AP')),
    }


def _solvency(bs: BalanceSheet, income: IncomeStatement) -> SolvencyRatios:
    total_assets = bs['assets']['total_assets']
    total_liabilities = bs['liabilities']['total_liabilities']
    total_equity = bs['equity']['total_equity']
    return {
        'debt_to_assets': round_decimal(safe_divide(total_liabilities, total_assets)),
        'debt_to_equity': round_decimal(safe_divide(total_liabilities, total_equity)),
        'equity_ratio': round_decimal(safe_divide(total_equity, total_assets)),
        'interest_coverage': _optional_ratio(
            income['operating_income']['amount'], income['other_expenses']['financial']['subtotal']
        ),
    }


def _trends(bs: BalanceSheet, income: IncomeStatement) -> TrendFigures:
    return {
        'revenue_growth': growth_rate(income['revenue']['previous_total_revenue'] or ZERO_DECIMAL,
                                      income['revenue']['total_revenue']),
        'profit_growth': growth_rate(income['net_income']['previous_amount'] or ZERO_DECIMAL,
                                     income['net_income']['amount']),
        'asset_growth': growth_rate(bs['assets']['previous_total_assets'] or ZERO_DECIMAL,
                                    bs['assets']['total_assets']),
    }


def perform_financial_analysis(
        period_start: date,
        period_end: date,
        shares_outstanding: Optional[int] = None,
        annual_revenue=None,
        include_trends: bool = False,
) -> FinancialAnalysis:
    """
    Ratio analysis composed from the Balance Sheet and Income Statement of the period.

    Args:
        shares_outstanding: Enables earnings per share.
        annual_revenue: Overrides period revenue in asset turnover (annualised figures).
        include_trends: Adds growth against the preceding period of equal length.
    """
    logger.info(f"Performing financial analysis from {period_start} to {period_end} (trends={include_trends})")
    comparison_end = day_before(period_start) if include_trends else None
    bs = generate_balance_sheet(period_start, period_end, comparison_period_end=comparison_end)
    income = generate_income_statement(
        period_start, period_end, shares_outstanding=shares_outstanding, include_comparison=include_trends,
    )
    annual = to_decimal(annual_revenue) if annual_revenue is not None else None

    return {
        'period': {'start': period_start, 'end': period_end},
        'generated_at': timezone.now(),
        'liquidity': _liquidity(bs),
        'profitability': _profitability(bs, income),
        'efficiency': _efficiency(bs, income, annual),
        'solvency': _solvency(bs, income),
        'earnings_per_share': income['net_income']['earnings_per_share'],
        'trends': _trends(bs, income) if include_trends else None,
    }
