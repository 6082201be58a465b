# ledger_core/constants.py

"""
Static constants such as DEFAULT_CHART_OF_ACCOUNTS used for seeding the
chart of accounts of a cold-storage business.
"""

# =============================================================================
# Default Chart of Accounts Structure Definition
# =============================================================================
# Each entry is a dict of Account field values plus an optional 'children' list.
# Nature is derived from the category when not given.

DEFAULT_CHART_OF_ACCOUNTS = [

    # ========================== ASSETS ==========================
    {
        'code': '1-0001', 'name': 'Assets', 'account_type': 'CONTROL', 'category': 'ASSET', 'is_system': True,
        'children': [
            {
                'code': '1-0001-0001', 'name': 'Current Assets', 'account_type': 'SUB_CONTROL',
                'sub_category': 'CURRENT_ASSET',
                'children': [
                    {'code': '1-0001-0001-0001', 'name': 'Cash in Hand', 'account_type': 'DETAIL',
                     'is_cash_account': True},
                    {'code': '1-0001-0001-0002', 'name': 'Cash at Bank', 'account_type': 'DETAIL',
                     'is_cash_account': True, 'is_bank_account': True},
                    {'code': '1-0001-0001-0003', 'name': 'Accounts Receivable', 'account_type': 'DETAIL',
                     'cash_flow_role': 'RECEIVABLE'},
                ],
            },
        ],
    },

    # ========================== LIABILITIES ==========================
    {
        'code': '2-0001', 'name': 'Liabilities', 'account_type': 'CONTROL', 'category': 'LIABILITY',
        'is_system': True,
        'children': [
            {
                'code': '2-0001-0001', 'name': 'Current Liabilities', 'account_type': 'SUB_CONTROL',
                'sub_category': 'CURRENT_LIABILITY',
                'children': [
                    {'code': '2-0001-0001-0001', 'name': 'Accounts Payable', 'account_type': 'DETAIL',
                     'cash_flow_role': 'PAYABLE'},
                ],
            },
        ],
    },

    # ========================== EQUITY ==========================
    {
        'code': '3-0001', 'name': 'Equity', 'account_type': 'CONTROL', 'category': 'EQUITY', 'is_system': True,
        'children': [
            {'code': '3-0001-0001', 'name': 'Owner Capital', 'account_type': 'DETAIL',
             'sub_category': 'SHARE_CAPITAL'},
            {'code': '3-0001-0002', 'name': 'Retained Earnings', 'account_type': 'DETAIL',
             'sub_category': 'RETAINED_EARNINGS'},
        ],
    },

    # ========================== REVENUE ==========================
    {
        'code': '4-0001', 'name': 'Revenue', 'account_type': 'CONTROL', 'category': 'REVENUE', 'is_system': True,
        'children': [
            {'code': '4-0001-0001', 'name': 'Cold Storage Revenue', 'account_type': 'DETAIL',
             'sub_category': 'OPERATING_REVENUE'},
            {'code': '4-0001-0002', 'name': 'Service Revenue', 'account_type': 'DETAIL',
             'sub_category': 'OPERATING_REVENUE'},
        ],
    },

    # ========================== EXPENSES ==========================
    {
        'code': '5-0001', 'name': 'Expenses', 'account_type': 'CONTROL', 'category': 'EXPENSE', 'is_system': True,
        'children': [
            {
                'code': '5-0001-0001', 'name': 'Operating Expenses', 'account_type': 'SUB_CONTROL',
                'sub_category': 'OPERATING_EXPENSE',
                'children': [
                    {'code': '5-0001-0001-0001', 'name': 'Electricity Expense', 'account_type': 'DETAIL'},
                    {'code': '5-0001-0001-0002', 'name': 'Salaries Expense', 'account_type': 'DETAIL'},
                    {'code': '5-0001-0001-0003', 'name': 'Maintenance Expense', 'account_type': 'DETAIL'},
                ],
            },
        ],
    },
]
