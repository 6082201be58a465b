# ledger/services/cash_flow_service.py

"""
Indirect-method Cash Flow Statement.

Operating cash starts from income before tax, adds back non-cash expenses and adjusts
for movements in receivables, inventory and payables. Investing and financing lines
are balance movements of fixed/intangible assets, long-term liabilities and
contributed equity between the day before the period and its last day.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Tuple

from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ledger_core.enums import AccountCategory, AccountSubCategory, CashFlowRole
from ledger_core.utils import ZERO_DECIMAL, day_before, percentage_of, round_decimal, to_decimal
from ..models.coa import Account
from .report_types import CashFlowStatement, StatementLineItem
from .reports_service import income_breakdown
from .statement_utils import (
    DEFAULT_COMPANY_NAME, ZERO_BALANCE_THRESHOLD, line_item, positions_as_of, total_of, validate_period,
)

logger = logging.getLogger("ledger.services.cash_flow")

S = AccountSubCategory


def _has_role(account: Account, role: str, name_fragment: str) -> bool:
    """Explicit role first; accounts without one are matched on a case-sensitive name fragment."""
    if account.cash_flow_role and account.cash_flow_role != CashFlowRole.NONE:
        return account.cash_flow_role == role
    return name_fragment in account.name


def _is_receivable(a: Account) -> bool:
    return a.category == AccountCategory.ASSET and _has_role(a, CashFlowRole.RECEIVABLE, 'Receivable')


def _is_inventory(a: Account) -> bool:
    return (a.category == AccountCategory.ASSET and not _is_receivable(a)
            and _has_role(a, CashFlowRole.INVENTORY, 'Inventory'))


def _is_payable(a: Account) -> bool:
    return a.category == AccountCategory.LIABILITY and _has_role(a, CashFlowRole.PAYABLE, 'Payable')


def _is_fixed_asset(a: Account) -> bool:
    return a.is_fixed_asset


def _is_intangible(a: Account) -> bool:
    return a.category == AccountCategory.ASSET and a.sub_category == S.INTANGIBLE_ASSET


def _is_long_term_debt(a: Account) -> bool:
    return a.category == AccountCategory.LIABILITY and a.sub_category == S.NON_CURRENT_LIABILITY


def _is_contributed_equity(a: Account) -> bool:
    return a.category == AccountCategory.EQUITY and a.sub_category != S.RETAINED_EARNINGS


def _is_cash(a: Account) -> bool:
    return a.category == AccountCategory.ASSET and (a.is_cash_account or a.is_bank_account)


class BalanceMovements:
    """Natural-side balances of every balance-sheet DETAIL account at both ends of a period."""

    def __init__(self, period_start: date, period_end: date):
        categories = (AccountCategory.ASSET, AccountCategory.LIABILITY, AccountCategory.EQUITY)
        self.opening = positions_as_of(day_before(period_start), categories, include_zero=True)
        self.closing = positions_as_of(period_end, categories, include_zero=True)

    def balance(self, opening: bool, matches: Callable[[Account], bool]) -> Decimal:
        positions = self.opening if opening else self.closing
        return total_of(p for p in positions if matches(p.account))

    def change(self, matches: Callable[[Account], bool]) -> Tuple[Decimal, List[str]]:
        """Closing minus opening balance and the codes of the matching accounts."""
        delta = self.balance(False, matches) - self.balance(True, matches)
        codes = [p.account.code for p in self.closing if matches(p.account)]
        return delta, codes


def _movement_line(code: str, amount: Decimal, inflow_label: str, outflow_label: str, account_codes: List[str],
                   notes: Optional[str] = None) -> Optional[StatementLineItem]:
    if abs(amount) <= ZERO_BALANCE_THRESHOLD:
        return None
    label = inflow_label if amount > 0 else outflow_label
    return line_item(code, label, amount, 1, account_codes=account_codes, notes=notes)


def _collect(lines: Iterable[Optional[StatementLineItem]]) -> List[StatementLineItem]:
    return [line for line in lines if line is not None]


def _raw_total(lines: List[StatementLineItem], amounts: dict) -> Decimal:
    return sum((amounts[line['code']] for line in lines), ZERO_DECIMAL)


def generate_cash_flow_statement(
        period_start: date,
        period_end: date,
        capital_expenditure=0,
        company_name: Optional[str] = None,
) -> CashFlowStatement:
    """
    Builds the Cash Flow Statement for [period_start, period_end].

    `capital_expenditure` only feeds the free-cash-flow metric. A statement whose net
    change does not explain the movement in cash is still returned, flagged as not
    reconciled.
    """
    validate_period(period_start, period_end)
    logger.info(f"Generating Cash Flow Statement from {period_start} to {period_end}")
    income = income_breakdown(period_start, period_end)
    movements = BalanceMovements(period_start, period_end)
    net_income = income['income_before_tax']

    # Full-precision amounts per line code; lines themselves carry rounded figures.
    amounts = {}

    non_cash = income['depreciation'] + income['amortization']
    adjustments: List[StatementLineItem] = []
    if non_cash > 0:
        amounts['OPS-DEP'] = non_cash
        adjustments.append(line_item(
            'OPS-DEP', _("Add: Depreciation & Amortization"), non_cash, 1,
            is_calculated=True, notes=str(_("Non-cash expense added back")),
        ))

    ar_delta, ar_codes = movements.change(_is_receivable)
    inv_delta, inv_codes = movements.change(_is_inventory)
    ap_delta, ap_codes = movements.change(_is_payable)
    amounts.update({'WC-AR': -ar_delta, 'WC-INV': -inv_delta, 'WC-AP': ap_delta})
    working_capital = _collect([
        _movement_line('WC-AR', -ar_delta, _("Decrease in Accounts Receivable"),
                       _("Increase in Accounts Receivable"), ar_codes),
        _movement_line('WC-INV', -inv_delta, _("Decrease in Inventory"), _("Increase in Inventory"), inv_codes),
        _movement_line('WC-AP', ap_delta, _("Increase in Accounts Payable"),
                       _("Decrease in Accounts Payable"), ap_codes),
    ])
    operating_cash = net_income + _raw_total(adjustments, amounts) + _raw_total(working_capital, amounts)

    # Depreciation and amortization reduce the carrying amounts; what is left of the
    # movement is acquisitions net of disposals.
    ppe_delta, ppe_codes = movements.change(_is_fixed_asset)
    intangible_delta, intangible_codes = movements.change(_is_intangible)
    amounts.update({
        'INV-PPE': -(ppe_delta + income['depreciation']),
        'INV-INTANG': -(intangible_delta + income['amortization']),
    })
    investing = _collect([
        _movement_line('INV-PPE', amounts['INV-PPE'], _("Sale of Property, Plant & Equipment"),
                       _("Purchase of Property, Plant & Equipment"), ppe_codes, notes=str(_("Capital expenditure"))),
        _movement_line('INV-INTANG', amounts['INV-INTANG'], _("Sale of Intangible Assets"),
                       _("Purchase of Intangible Assets"), intangible_codes),
    ])
    investing_cash = _raw_total(investing, amounts)

    debt_delta, debt_codes = movements.change(_is_long_term_debt)
    equity_delta, equity_codes = movements.change(_is_contributed_equity)
    amounts.update({'FIN-DEBT': debt_delta, 'FIN-EQUITY': equity_delta})
    financing = _collect([
        _movement_line('FIN-DEBT', debt_delta, _("Proceeds from Long-term Borrowings"),
                       _("Repayment of Long-term Borrowings"), debt_codes),
        _movement_line('FIN-EQUITY', equity_delta, _("Proceeds from Share Capital"),
                       _("Payment of Dividends/Share Buyback"), equity_codes),
    ])
    financing_cash = _raw_total(financing, amounts)

    net_change = operating_cash + investing_cash + financing_cash
    cash_beginning = movements.balance(True, _is_cash)
    cash_ending = movements.balance(False, _is_cash)
    difference = cash_beginning + net_change - cash_ending
    is_reconciled = abs(difference) < ZERO_BALANCE_THRESHOLD
    if not is_reconciled:
        logger.warning(
            f"Cash Flow Statement {period_start} to {period_end} does not reconcile: "
            f"beginning {cash_beginning} + change {net_change} != ending {cash_ending} (difference {difference})."
        )

    revenue = income['total_revenue']
    ocf_ratio = operating_cash / net_income if net_income > 0 else ZERO_DECIMAL

    statement: CashFlowStatement = {
        'title': str(_("Cash Flow Statement")),
        'generated_at': timezone.now(),
        'period_start': period_start,
        'period_end': period_end,
        'company_name': company_name or DEFAULT_COMPANY_NAME,
        'is_comparative': False,
        'operating_activities': {
            'net_income': round_decimal(net_income),
            'adjustments': adjustments,
            'working_capital_changes': working_capital,
            'net_cash_from_operating': round_decimal(operating_cash),
        },
        'investing_activities': {
            'items': investing,
            'net_cash_from_investing': round_decimal(investing_cash),
        },
        'financing_activities': {
            'items': financing,
            'net_cash_from_financing': round_decimal(financing_cash),
        },
        'cash_summary': {
            'cash_beginning': round_decimal(cash_beginning),
            'net_cash_change': round_decimal(net_change),
            'cash_ending': round_decimal(cash_ending),
            'is_reconciled': is_reconciled,
            'reconciliation_difference': round_decimal(difference),
        },
        'metrics': {
            'operating_cash_flow_ratio': round_decimal(ocf_ratio),
            'free_cash_flow': round_decimal(operating_cash - to_decimal(capital_expenditure)),
            'cash_flow_margin': round_decimal(percentage_of(operating_cash, revenue)),
        },
    }
    logger.info(
        f"Cash Flow Statement generated. Net change {statement['cash_summary']['net_cash_change']}, "
        f"reconciled={is_reconciled}."
    )
    return statement
