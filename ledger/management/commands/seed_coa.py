# ledger/management/commands/seed_coa.py
import logging

from django.core.management.base import BaseCommand, CommandError

from ledger.exceptions import LedgerError
from ledger.services.coa_service import seed_default_chart

logger = logging.getLogger(__name__)


# =============================================================================
# Command Class
# =============================================================================
class Command(BaseCommand):
    help = 'Seeds the default cold-storage Chart of Accounts. Existing account codes are left untouched.'

    def handle(self, *args, **options):
        self.stdout.write("Seeding default Chart of Accounts...")
        try:
            result = seed_default_chart()
        except LedgerError as e:
            logger.error(f"Chart of Accounts seeding failed: {e.message}", exc_info=True)
            raise CommandError(f"Seeding failed: {e.message}")

        if result['created']:
            self.stdout.write(self.style.SUCCESS(
                f"Chart of Accounts seeded: {result['created']} created, {result['skipped']} already present."
            ))
        else:
            self.stdout.write(self.style.WARNING(
                f"Nothing to seed: all {result['skipped']} default accounts already exist."
            ))
