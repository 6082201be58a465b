# ledger/models/coa.py

import logging
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from ledger_core.enums import (
    AccountCategory, AccountNature, AccountSubCategory, AccountType, CashFlowRole,
    CATEGORY_TO_NATURE, SUB_CATEGORIES_BY_CATEGORY,
)
from .base import LedgerBaseModel

logger = logging.getLogger(__name__)

ACCOUNT_CODE_MAX_LENGTH = 20

account_code_validator = RegexValidator(
    regex=r'^[0-9A-Za-z]+(-[0-9A-Za-z]+)*$',
    message=_("Account code must be hyphen-separated alphanumeric segments (e.g. 1-0001-0002)."),
)


def parent_compatibility_error(parent_type: Optional[str], child_type: str) -> Optional[str]:
    """
    Returns the reason a child of `child_type` may not sit under a parent of
    `parent_type` (None meaning root), or None when the placement is allowed.
    """
    if parent_type is None:
        if child_type != AccountType.CONTROL:
            return str(_("Root accounts must be of type CONTROL."))
        return None
    if parent_type == AccountType.DETAIL:
        return str(_("Cannot add child accounts to DETAIL accounts."))
    if parent_type == AccountType.SUB_CONTROL and child_type == AccountType.CONTROL:
        return str(_("CONTROL accounts can only be at root or under CONTROL accounts."))
    return None


class Account(LedgerBaseModel):
    """
    A node of the chart of accounts. Accounts form a tree through `parent`;
    only DETAIL accounts receive voucher lines, which reference them by `code`.
    """
    code = models.CharField(
        _("Account Code"), max_length=ACCOUNT_CODE_MAX_LENGTH, unique=True, db_index=True,
        validators=[account_code_validator],
        help_text=_("Hierarchical, hyphen-segmented code, e.g. 1-0001-0002.")
    )
    name = models.CharField(_("Account Name"), max_length=200, db_index=True)
    description = models.TextField(_("Description"), blank=True)

    parent = models.ForeignKey(
        'self', verbose_name=_("Parent Account"), on_delete=models.PROTECT,
        null=True, blank=True, related_name='children',
        help_text=_("CONTROL or SUB_CONTROL account this account rolls up into. Empty for root accounts.")
    )
    account_type = models.CharField(
        _("Account Type"), max_length=20, choices=AccountType.choices,
        default=AccountType.DETAIL, db_index=True
    )
    nature = models.CharField(
        _("Nature"), max_length=10, choices=AccountNature.choices, blank=True,
        help_text=_("Side that increases the balance. Defaults from the category when left blank.")
    )
    category = models.CharField(
        _("Category"), max_length=20, choices=AccountCategory.choices, db_index=True
    )
    sub_category = models.CharField(
        _("Sub-Category"), max_length=30, choices=AccountSubCategory.choices,
        null=True, blank=True, db_index=True,
        help_text=_("Statement section this account is reported under.")
    )

    # --- Statement classification flags ---
    is_cash_account = models.BooleanField(_("Is Cash Account"), default=False)
    is_bank_account = models.BooleanField(_("Is Bank Account"), default=False)
    is_depreciable = models.BooleanField(_("Is Depreciable"), default=False)
    cash_flow_role = models.CharField(
        _("Cash Flow Role"), max_length=20, choices=CashFlowRole.choices, default=CashFlowRole.NONE,
        help_text=_("Working-capital role in the Cash Flow Statement. NONE falls back to name matching.")
    )
    is_non_cash_expense = models.BooleanField(
        _("Is Non-Cash Expense"), default=False,
        help_text=_("Depreciation/amortization style expense added back in EBITDA and operating cash flow.")
    )

    # --- Opening position ---
    opening_balance = models.DecimalField(
        _("Opening Balance"), max_digits=18, decimal_places=2, default=Decimal('0.00'),
        help_text=_("Balance on the account's natural side as of the opening date.")
    )
    opening_date = models.DateField(_("Opening Date"), null=True, blank=True)

    # --- Status ---
    is_active = models.BooleanField(_("Is Active"), default=True, db_index=True)
    is_system = models.BooleanField(
        _("Is System Account"), default=False,
        help_text=_("System accounts cannot be edited or deleted.")
    )
    allow_direct_posting = models.BooleanField(_("Allow Direct Posting"), default=True)

    class Meta:
        verbose_name = _("Account")
        verbose_name_plural = _("Accounts")
        ordering = ['code']
        indexes = [
            models.Index(fields=['category', 'sub_category'], name='ledger_acc_cat_subcat_idx'),
            models.Index(fields=['parent', 'code'], name='ledger_acc_parent_code_idx'),
        ]

    def __str__(self):
        return f"{self.code} - {self.name}"

    def _set_derived_fields(self):
        if not self.nature and self.category:
            self.nature = CATEGORY_TO_NATURE.get(self.category, AccountNature.DEBIT)

    @property
    def is_fixed_asset(self) -> bool:
        """Tangible long-lived asset: FIXED/NON_CURRENT sub-category, or flagged depreciable."""
        if self.category != AccountCategory.ASSET or self.sub_category == AccountSubCategory.INTANGIBLE_ASSET:
            return False
        return self.is_depreciable or self.sub_category in (AccountSubCategory.FIXED_ASSET,
                                                            AccountSubCategory.NON_CURRENT_ASSET)

    @property
    def is_postable(self) -> bool:
        """Voucher lines may only hit active DETAIL accounts open to direct posting."""
        return self.account_type == AccountType.DETAIL and self.is_active and self.allow_direct_posting

    def clean(self):
        super().clean()
        errors = {}

        if self.sub_category and self.category:
            allowed = SUB_CATEGORIES_BY_CATEGORY.get(self.category, set())
            if self.sub_category not in allowed:
                errors['sub_category'] = _("Sub-category '%(sub)s' does not belong to category '%(cat)s'.") % {
                    'sub': self.sub_category, 'cat': self.category}

        parent = self.parent if self.parent_id else None
        reason = parent_compatibility_error(parent.account_type if parent else None, self.account_type)
        if reason:
            errors['parent'] = reason

        if parent is not None and self.pk:
            # Walk up from the proposed parent; reaching self means a cycle.
            current = parent
            visited = set()
            while current is not None:
                if current.pk == self.pk:
                    errors['parent'] = _("Cannot set parent: would create circular reference.")
                    break
                if current.pk in visited:
                    break
                visited.add(current.pk)
                current = current.parent if current.parent_id else None

        if self.pk and self.account_type == AccountType.DETAIL:
            if Account.objects.filter(parent_id=self.pk).exists():
                errors['account_type'] = _("An account with child accounts cannot be a DETAIL account.")

        if errors:
            raise ValidationError(errors)
