# ledger/models/snapshot.py

from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .coa import Account


class MonthlyBalance(models.Model):
    """
    Memoized month-end position of one account, written only by the snapshot batch.

    closing_balance == opening_balance + (DEBIT nature: debits - credits, CREDIT nature: credits - debits)
    opening_balance == closing_balance of the previous month (or the account's static opening balance).
    Rows with is_final=True are history and are never rewritten.
    """
    account = models.ForeignKey(Account, verbose_name=_("Account"), on_delete=models.CASCADE,
                                related_name='monthly_balances')
    year = models.PositiveSmallIntegerField(_("Year"))
    month = models.PositiveSmallIntegerField(_("Month"))
    opening_balance = models.DecimalField(_("Opening Balance"), max_digits=20, decimal_places=2,
                                          default=Decimal('0.00'))
    total_debits = models.DecimalField(_("Total Debits"), max_digits=20, decimal_places=2, default=Decimal('0.00'))
    total_credits = models.DecimalField(_("Total Credits"), max_digits=20, decimal_places=2, default=Decimal('0.00'))
    closing_balance = models.DecimalField(_("Closing Balance"), max_digits=20, decimal_places=2,
                                          default=Decimal('0.00'))
    is_final = models.BooleanField(_("Is Final"), default=False, db_index=True,
                                   help_text=_("Set once the month is fully in the past."))
    computed_at = models.DateTimeField(_("Computed At"), default=timezone.now)

    class Meta:
        verbose_name = _("Monthly Balance")
        verbose_name_plural = _("Monthly Balances")
        ordering = ['account', 'year', 'month']
        unique_together = (('account', 'year', 'month'),)
        indexes = [
            models.Index(fields=['account', 'is_final', 'year', 'month'], name='ledger_mbal_acc_final_idx'),
        ]

    def __str__(self):
        return f"{self.account_id} {self.year}-{self.month:02d}: {self.closing_balance}"

    @property
    def period_label(self) -> str:
        return f"{self.year}-{self.month:02d}"


class SnapshotRunLock(models.Model):
    """
    Database row guarding the snapshot batch. A run owns the lock while `holder` carries
    its token; the row is shared by every process talking to the same database.
    """
    name = models.CharField(_("Name"), max_length=64, unique=True)
    holder = models.CharField(_("Holder"), max_length=64, blank=True, default='')
    acquired_at = models.DateTimeField(_("Acquired At"), null=True, blank=True)

    class Meta:
        verbose_name = _("Snapshot Run Lock")
        verbose_name_plural = _("Snapshot Run Locks")

    def __str__(self):
        return f"{self.name}: {self.holder or 'free'}"
