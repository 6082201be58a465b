# ledger/models/journal.py

import logging
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Sum
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ledger_core.enums import VoucherType
from ledger_core.utils import ZERO_DECIMAL
from .base import LedgerBaseModel
from .coa import Account

logger = logging.getLogger(__name__)


# =============================================================================
# Voucher Model (header of a double-entry transaction)
# =============================================================================
class Voucher(LedgerBaseModel):
    """
    Header of a double-entry transaction. Vouchers are written by the posting
    workflow upstream; the ledger only reads posted, non-deleted vouchers.
    """
    voucher_number = models.CharField(_("Voucher Number"), max_length=50, unique=True, db_index=True)
    voucher_type = models.CharField(_("Voucher Type"), max_length=20, choices=VoucherType.choices,
                                    default=VoucherType.JOURNAL, db_index=True)
    voucher_date = models.DateField(_("Voucher Date"), default=timezone.localdate, db_index=True)
    description = models.TextField(_("Description"), blank=True)
    is_posted = models.BooleanField(_("Is Posted"), default=False, db_index=True)
    posted_at = models.DateTimeField(_("Posted At"), null=True, blank=True, editable=False)

    class Meta:
        verbose_name = _("Voucher")
        verbose_name_plural = _("Vouchers")
        ordering = ['-voucher_date', '-voucher_number']
        indexes = [
            models.Index(fields=['is_posted', 'voucher_date'], name='ledger_vch_posted_date_idx'),
        ]

    def __str__(self):
        return f"{self.voucher_number} - {self.voucher_date}"

    @property
    def total_debit(self) -> Decimal:
        if not self.pk:
            return ZERO_DECIMAL
        return self.lines.aggregate(total=Sum('debit_amount', default=ZERO_DECIMAL))['total']

    @property
    def total_credit(self) -> Decimal:
        if not self.pk:
            return ZERO_DECIMAL
        return self.lines.aggregate(total=Sum('credit_amount', default=ZERO_DECIMAL))['total']

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debit - self.total_credit) < Decimal('0.005')

    def mark_posted(self):
        """Flags the voucher as posted. Balance checking is the posting workflow's job."""
        self.is_posted = True
        self.posted_at = timezone.now()
        self.save(update_fields=['is_posted', 'posted_at', 'updated_at'])


# =============================================================================
# Voucher Line Model
# =============================================================================
class VoucherLine(models.Model):
    """
    One side of a voucher. Lines reference DETAIL accounts by code so that the
    voucher store stays decoupled from the chart of accounts.
    """
    voucher = models.ForeignKey(Voucher, verbose_name=_("Voucher"), on_delete=models.CASCADE, related_name='lines')
    line_number = models.PositiveIntegerField(_("Line Number"), default=1)
    account_code = models.CharField(_("Account Code"), max_length=20, db_index=True)
    description = models.TextField(_("Line Description"), blank=True)
    debit_amount = models.DecimalField(_("Debit Amount"), max_digits=18, decimal_places=2,
                                       default=Decimal('0.00'), validators=[MinValueValidator(Decimal('0.00'))])
    credit_amount = models.DecimalField(_("Credit Amount"), max_digits=18, decimal_places=2,
                                        default=Decimal('0.00'), validators=[MinValueValidator(Decimal('0.00'))])

    class Meta:
        verbose_name = _("Voucher Line")
        verbose_name_plural = _("Voucher Lines")
        ordering = ['voucher', 'line_number', 'pk']
        indexes = [
            models.Index(fields=['account_code', 'voucher'], name='ledger_vline_code_vch_idx'),
        ]

    def __str__(self):
        side = _("Dr") if self.debit_amount else _("Cr")
        amount = self.debit_amount or self.credit_amount
        return f"{side} {self.account_code} - {amount} (Vch PK: {self.voucher_id})"

    def clean(self):
        super().clean()
        if self.debit_amount and self.credit_amount:
            raise DjangoValidationError(_("A line carries either a debit or a credit amount, not both."))
        if not self.debit_amount and not self.credit_amount:
            raise DjangoValidationError(_("A line must carry a non-zero debit or credit amount."))

        if not self.account_code:
            raise DjangoValidationError({'account_code': _("An account code is required.")})
        account = Account.objects.filter(code=self.account_code).first()
        if account is None:
            raise DjangoValidationError({'account_code': _("Account %(code)s not found.") % {'code': self.account_code}})
        if not account.is_postable:
            raise DjangoValidationError({
                'account_code': _("Account %(code)s does not accept direct postings.") % {'code': self.account_code}
            })
