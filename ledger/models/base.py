# ledger/models/base.py

import uuid
import logging

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from safedelete import SOFT_DELETE_CASCADE
from safedelete.managers import SafeDeleteManager, SafeDeleteAllManager, SafeDeleteDeletedManager
from safedelete.models import SafeDeleteModel
from simple_history.models import HistoricalRecords

logger = logging.getLogger(__name__)


class LedgerBaseModel(SafeDeleteModel):
    """
    Abstract base model that includes:
    - Soft deletion support
    - Audit fields (created/updated timestamps and users)
    - Historical tracking
    """
    _safedelete_policy = SOFT_DELETE_CASCADE

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False, verbose_name=_("ID")
    )
    created_at = models.DateTimeField(_("Created At"), auto_now_add=True, editable=False)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True, editable=False)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, verbose_name=_("Created By"), on_delete=models.SET_NULL,
        null=True, blank=True, related_name='created_%(app_label)s_%(class)s_set', editable=False
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, verbose_name=_("Last Updated By"), on_delete=models.SET_NULL,
        null=True, blank=True, related_name='updated_%(app_label)s_%(class)s_set', editable=False
    )

    # Managers for the soft-delete access scopes
    objects = SafeDeleteManager()
    all_objects = SafeDeleteAllManager()
    deleted_objects = SafeDeleteDeletedManager()

    # Historical audit tracking
    history = HistoricalRecords(inherit=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        """
        Derives computed fields and runs full_clean unless update_fields is used.
        """
        kwargs.pop('force_soft', None)

        if not kwargs.get('update_fields'):
            if hasattr(self, '_set_derived_fields') and callable(self._set_derived_fields):
                self._set_derived_fields()
            self.full_clean()

        super().save(*args, **kwargs)

    def __str__(self):
        name_attrs = ['name', 'voucher_number', 'code']
        for attr in name_attrs:
            value = getattr(self, attr, None)
            if value:
                return str(value)
        return f"{self.__class__.__name__} (ID: {self.pk})"
