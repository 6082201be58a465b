# ledger_core/enums.py

from django.db import models
from django.utils.translation import gettext_lazy as _

# -------------------- CHART OF ACCOUNTS CLASSIFICATIONS --------------------

class AccountType(models.TextChoices):
    """
    Position of an Account in the hierarchy.
    Only DETAIL accounts are postable; CONTROL and SUB_CONTROL accounts group them.
    """
    CONTROL     = 'CONTROL', _('Control')          # Root heading (Assets, Liabilities...)
    SUB_CONTROL = 'SUB_CONTROL', _('Sub-Control')  # Intermediate heading (Current Assets...)
    DETAIL      = 'DETAIL', _('Detail')            # Leaf, transactional account


class AccountNature(models.TextChoices):
    """
    Normal balance side of an Account. A DEBIT nature account increases with debits.
    """
    DEBIT  = 'DEBIT', _('Debit')
    CREDIT = 'CREDIT', _('Credit')


class AccountCategory(models.TextChoices):
    """
    Fundamental accounting classification; decides which statement an account feeds.
    """
    ASSET     = 'ASSET', _('Asset')
    LIABILITY = 'LIABILITY', _('Liability')
    EQUITY    = 'EQUITY', _('Equity')
    REVENUE   = 'REVENUE', _('Revenue')
    EXPENSE   = 'EXPENSE', _('Expense')


class AccountSubCategory(models.TextChoices):
    """
    Finer classification used to bucket accounts into statement sections.
    """
    # Assets
    CURRENT_ASSET     = 'CURRENT_ASSET', _('Current Asset')
    FIXED_ASSET       = 'FIXED_ASSET', _('Fixed Asset')
    NON_CURRENT_ASSET = 'NON_CURRENT_ASSET', _('Non-Current Asset')
    INTANGIBLE_ASSET  = 'INTANGIBLE_ASSET', _('Intangible Asset')
    # Liabilities
    CURRENT_LIABILITY     = 'CURRENT_LIABILITY', _('Current Liability')
    NON_CURRENT_LIABILITY = 'NON_CURRENT_LIABILITY', _('Non-Current Liability')
    # Equity
    SHARE_CAPITAL     = 'SHARE_CAPITAL', _('Share Capital')
    RESERVES          = 'RESERVES', _('Reserves')
    RETAINED_EARNINGS = 'RETAINED_EARNINGS', _('Retained Earnings')
    # Revenue
    OPERATING_REVENUE = 'OPERATING_REVENUE', _('Operating Revenue')
    OTHER_INCOME      = 'OTHER_INCOME', _('Other Income')
    # Expenses
    COST_OF_GOODS_SOLD     = 'COST_OF_GOODS_SOLD', _('Cost of Goods Sold')
    OPERATING_EXPENSE      = 'OPERATING_EXPENSE', _('Operating Expense')
    ADMINISTRATIVE_EXPENSE = 'ADMINISTRATIVE_EXPENSE', _('Administrative Expense')
    FINANCIAL_EXPENSE      = 'FINANCIAL_EXPENSE', _('Financial Expense')
    OTHER_EXPENSE          = 'OTHER_EXPENSE', _('Other Expense')


class CashFlowRole(models.TextChoices):
    """
    Explicit role of an account in the working-capital section of the Cash Flow Statement.
    NONE leaves classification to the account name.
    """
    NONE       = 'NONE', _('None')
    RECEIVABLE = 'RECEIVABLE', _('Receivable')
    INVENTORY  = 'INVENTORY', _('Inventory')
    PAYABLE    = 'PAYABLE', _('Payable')


class BalanceType(models.TextChoices):
    """Side on which a computed balance is reported."""
    DR = 'DR', _('Dr')
    CR = 'CR', _('Cr')

# -------------------- VOUCHER CLASSIFICATIONS --------------------

class VoucherType(models.TextChoices):
    """
    Business nature of a Voucher.
    """
    JOURNAL  = 'JOURNAL', _('Journal Voucher')    # Adjustments, opening/closing entries
    PAYMENT  = 'PAYMENT', _('Payment Voucher')    # Cash/bank outflows
    RECEIPT  = 'RECEIPT', _('Receipt Voucher')    # Cash/bank inflows
    CONTRA   = 'CONTRA', _('Contra Voucher')      # Transfers between cash and bank only
    SALES    = 'SALES', _('Sales Voucher')        # Storage billing, revenue recognition
    PURCHASE = 'PURCHASE', _('Purchase Voucher')  # Supplier bills

# -------------------- DERIVED MAPPINGS --------------------

CATEGORY_TO_NATURE = {
    AccountCategory.ASSET: AccountNature.DEBIT,
    AccountCategory.EXPENSE: AccountNature.DEBIT,
    AccountCategory.LIABILITY: AccountNature.CREDIT,
    AccountCategory.EQUITY: AccountNature.CREDIT,
    AccountCategory.REVENUE: AccountNature.CREDIT,
}

# Root code prefix per category; unknown categories fall back to '9'.
CATEGORY_CODE_PREFIX = {
    AccountCategory.ASSET: '1',
    AccountCategory.LIABILITY: '2',
    AccountCategory.EQUITY: '3',
    AccountCategory.REVENUE: '4',
    AccountCategory.EXPENSE: '5',
}
FALLBACK_CODE_PREFIX = '9'

SUB_CATEGORIES_BY_CATEGORY = {
    AccountCategory.ASSET: {
        AccountSubCategory.CURRENT_ASSET, AccountSubCategory.FIXED_ASSET,
        AccountSubCategory.NON_CURRENT_ASSET, AccountSubCategory.INTANGIBLE_ASSET,
    },
    AccountCategory.LIABILITY: {
        AccountSubCategory.CURRENT_LIABILITY, AccountSubCategory.NON_CURRENT_LIABILITY,
    },
    AccountCategory.EQUITY: {
        AccountSubCategory.SHARE_CAPITAL, AccountSubCategory.RESERVES,
        AccountSubCategory.RETAINED_EARNINGS,
    },
    AccountCategory.REVENUE: {
        AccountSubCategory.OPERATING_REVENUE, AccountSubCategory.OTHER_INCOME,
    },
    AccountCategory.EXPENSE: {
        AccountSubCategory.COST_OF_GOODS_SOLD, AccountSubCategory.OPERATING_EXPENSE,
        AccountSubCategory.ADMINISTRATIVE_EXPENSE, AccountSubCategory.FINANCIAL_EXPENSE,
        AccountSubCategory.OTHER_EXPENSE,
    },
}
