# ledger/management/commands/recompute_monthly_balances.py
import logging

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_date

from ledger.exceptions import SnapshotRecomputeInProgress
from ledger.services.snapshot_service import recompute_monthly_snapshots, verify_snapshot_chain
from ledger_core.utils import today

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = ('Recomputes MonthlyBalance snapshots from the earliest posted voucher up to the given date. '
            'Final months are kept as they are; safe to re-run.')

    def add_arguments(self, parser):
        parser.add_argument(
            '--up-to', type=str, default=None,
            help='Last date (YYYY-MM-DD) whose month is recomputed. Defaults to today.',
        )
        parser.add_argument(
            '--verify', action='store_true',
            help='Check the snapshot chain after recomputing and fail on any violation.',
        )

    def handle(self, *args, **options):
        raw_date = options['up_to']
        up_to = today()
        if raw_date:
            try:
                up_to = parse_date(raw_date)
            except ValueError:
                up_to = None
            if up_to is None:
                raise CommandError(f"Invalid --up-to date '{raw_date}'. Use YYYY-MM-DD.")

        self.stdout.write(f"Recomputing monthly balances up to {up_to}...")
        try:
            summary = recompute_monthly_snapshots(up_to)
        except SnapshotRecomputeInProgress as e:
            raise CommandError(e.message)

        if not summary['months_processed']:
            self.stdout.write(self.style.WARNING("No posted vouchers on or before that date. Nothing recomputed."))
        else:
            self.stdout.write(self.style.SUCCESS(
                f"Recomputed {summary['first_month']} to {summary['last_month']}: "
                f"{summary['rows_written']} rows written, {summary['rows_skipped_final']} final rows kept."
            ))

        if options['verify']:
            violations = verify_snapshot_chain()
            if violations:
                for v in violations:
                    self.stdout.write(self.style.ERROR(
                        f"  {v['account_code']} {v['period']} [{v['rule']}]: expected {v['expected']}, "
                        f"found {v['actual']}"
                    ))
                raise CommandError(f"Snapshot verification failed with {len(violations)} violation(s).")
            self.stdout.write(self.style.SUCCESS("Snapshot chain verified."))
