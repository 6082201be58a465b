# ledger/services/report_types.py

"""
Shapes of the statement documents returned by the reporting services.

Every monetary amount is a Decimal rounded to two places; ratios are Decimals
rounded to two places. The documents carry no behaviour.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, TypedDict


# =============================================================================
# Building blocks
# =============================================================================
class StatementLineItem(TypedDict):
    code: str
    label: str
    amount: Decimal
    level: int
    is_total: bool
    is_bold: bool
    is_calculated: bool
    account_codes: List[str]
    notes: Optional[str]
    previous_amount: Optional[Decimal]
    variance: Optional[Decimal]


class StatementSection(TypedDict):
    id: str
    title: str
    line_items: List[StatementLineItem]
    subtotal: Decimal
    order: int
    previous_subtotal: Optional[Decimal]


class StatementHeader(TypedDict):
    title: str
    generated_at: datetime
    period_start: date
    period_end: date
    company_name: str
    is_comparative: bool


# =============================================================================
# Balance Sheet
# =============================================================================
class AssetsBlock(TypedDict):
    current_assets: StatementSection
    non_current_assets: StatementSection
    total_assets: Decimal
    previous_total_assets: Optional[Decimal]


class LiabilitiesBlock(TypedDict):
    current_liabilities: StatementSection
    non_current_liabilities: StatementSection
    total_liabilities: Decimal
    previous_total_liabilities: Optional[Decimal]


class EquityBlock(TypedDict):
    share_capital: StatementSection
    reserves: StatementSection
    retained_earnings: Decimal
    current_year_profit: Decimal
    total_equity: Decimal
    previous_total_equity: Optional[Decimal]


class BalanceSheetMetrics(TypedDict):
    working_capital: Decimal
    current_ratio: Decimal
    quick_ratio: Decimal
    debt_to_equity_ratio: Decimal
    return_on_assets: Decimal
    return_on_equity: Decimal


class BalanceSheet(StatementHeader):
    assets: AssetsBlock
    liabilities: LiabilitiesBlock
    equity: EquityBlock
    total_liabilities_and_equity: Decimal
    metrics: BalanceSheetMetrics
    is_balanced: bool
    balance_difference: Optional[Decimal]
    comparison_period_end: Optional[date]


# =============================================================================
# Income Statement
# =============================================================================
class RevenueBlock(TypedDict):
    operating_revenue: StatementSection
    other_income: StatementSection
    total_revenue: Decimal
    previous_total_revenue: Optional[Decimal]


class CostOfGoodsSoldBlock(TypedDict):
    items: List[StatementLineItem]
    total: Decimal
    previous_total: Optional[Decimal]


class OperatingExpensesBlock(TypedDict):
    administrative: StatementSection
    selling: StatementSection
    general: StatementSection
    total_operating: Decimal
    previous_total_operating: Optional[Decimal]


class OtherExpensesBlock(TypedDict):
    financial: StatementSection
    other: StatementSection
    total: Decimal
    previous_total: Optional[Decimal]


class ProfitFigure(TypedDict):
    amount: Decimal
    margin: Decimal
    previous_amount: Optional[Decimal]
    previous_margin: Optional[Decimal]


class EbitdaFigure(TypedDict):
    amount: Decimal
    margin: Decimal
    depreciation: Decimal
    amortization: Decimal
    previous_amount: Optional[Decimal]


class TaxFigure(TypedDict):
    taxable_income: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    previous_tax_amount: Optional[Decimal]


class NetIncomeFigure(TypedDict):
    amount: Decimal
    margin: Decimal
    previous_amount: Optional[Decimal]
    previous_margin: Optional[Decimal]
    earnings_per_share: Optional[Decimal]


class IncomeStatementMetrics(TypedDict):
    gross_profit_margin: Decimal
    operating_margin: Decimal
    net_profit_margin: Decimal
    return_on_sales: Decimal
    expense_ratio: Decimal


class IncomeStatement(StatementHeader):
    revenue: RevenueBlock
    cost_of_goods_sold: CostOfGoodsSoldBlock
    gross_profit: ProfitFigure
    operating_expenses: OperatingExpensesBlock
    operating_income: ProfitFigure
    other_expenses: OtherExpensesBlock
    ebitda: EbitdaFigure
    tax: TaxFigure
    net_income: NetIncomeFigure
    metrics: IncomeStatementMetrics
    previous_period_start: Optional[date]
    previous_period_end: Optional[date]


# =============================================================================
# Cash Flow Statement
# =============================================================================
class OperatingActivities(TypedDict):
    net_income: Decimal
    adjustments: List[StatementLineItem]
    working_capital_changes: List[StatementLineItem]
    net_cash_from_operating: Decimal


class InvestingActivities(TypedDict):
    items: List[StatementLineItem]
    net_cash_from_investing: Decimal


class FinancingActivities(TypedDict):
    items: List[StatementLineItem]
    net_cash_from_financing: Decimal


class CashSummary(TypedDict):
    cash_beginning: Decimal
    net_cash_change: Decimal
    cash_ending: Decimal
    is_reconciled: bool
    reconciliation_difference: Decimal


class CashFlowMetrics(TypedDict):
    operating_cash_flow_ratio: Decimal
    free_cash_flow: Decimal
    cash_flow_margin: Decimal


class CashFlowStatement(StatementHeader):
    operating_activities: OperatingActivities
    investing_activities: InvestingActivities
    financing_activities: FinancingActivities
    cash_summary: CashSummary
    metrics: CashFlowMetrics


# =============================================================================
# Financial Analysis
# =============================================================================
class AnalysisPeriod(TypedDict):
    start: date
    end: date


class LiquidityRatios(TypedDict):
    current_ratio: Decimal
    quick_ratio: Decimal
    cash_ratio: Decimal
    working_capital: Decimal


class ProfitabilityRatios(TypedDict):
    gross_profit_margin: Decimal
    operating_margin: Decimal
    net_profit_margin: Decimal
    return_on_assets: Decimal
    return_on_equity: Decimal
    return_on_investment: Decimal


class EfficiencyRatios(TypedDict):
    asset_turnover: Decimal
    inventory_turnover: Optional[Decimal]
    receivables_turnover: Optional[Decimal]
    payables_turnover: Optional[Decimal]


class SolvencyRatios(TypedDict):
    debt_to_assets: Decimal
    debt_to_equity: Decimal
    equity_ratio: Decimal
    interest_coverage: Optional[Decimal]


class TrendFigures(TypedDict):
    revenue_growth: Decimal
    profit_growth: Decimal
    asset_growth: Decimal


class FinancialAnalysis(TypedDict):
    period: AnalysisPeriod
    generated_at: datetime
    liquidity: LiquidityRatios
    profitability: ProfitabilityRatios
    efficiency: EfficiencyRatios
    solvency: SolvencyRatios
    earnings_per_share: Optional[Decimal]
    trends: Optional[TrendFigures]
