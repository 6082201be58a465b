from .coa import Account
from .journal import Voucher, VoucherLine
from .snapshot import MonthlyBalance, SnapshotRunLock

__all__ = ['Account', 'Voucher', 'VoucherLine', 'MonthlyBalance', 'SnapshotRunLock']
