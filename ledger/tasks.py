# ledger/tasks.py
import logging
from datetime import date
from typing import Optional

from celery import shared_task
from django.conf import settings
from django.db import OperationalError
from django.utils.dateparse import parse_date

from ledger_core.utils import today
from .exceptions import SnapshotRecomputeInProgress
from .services.snapshot_service import recompute_monthly_snapshots, verify_snapshot_chain

logger = logging.getLogger("ledger.tasks")

# --- Constants ---
MAX_RETRIES_SNAPSHOT = getattr(settings, 'LEDGER_SNAPSHOT_MAX_RETRIES', 3)
RETRY_DELAY_SNAPSHOT = getattr(settings, 'LEDGER_SNAPSHOT_RETRY_DELAY', 60)  # seconds


@shared_task(
    bind=True,
    max_retries=MAX_RETRIES_SNAPSHOT,
    default_retry_delay=RETRY_DELAY_SNAPSHOT,
    name="ledger.tasks.recompute_monthly_balances_task",
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    acks_late=True
)
def recompute_monthly_balances_task(self, up_to_date: Optional[str] = None, verify: bool = False):
    """
    Recomputes monthly balance snapshots up to `up_to_date` (ISO date, default today).

    Scheduled nightly by Celery beat. A run that finds another recomputation holding
    the lock exits without retrying; the next scheduled run picks up the work.
    Database operational errors are retried with backoff.
    """
    task_id = self.request.id or "sync_run"
    target: Optional[date] = today()
    if up_to_date:
        try:
            target = parse_date(up_to_date)
        except ValueError:  # well-formed but impossible, e.g. 2025-02-30
            target = None
    log_prefix = f"[Task:{task_id}][UpTo:{target}]"
    if target is None:
        logger.error(f"{log_prefix} Invalid up_to_date '{up_to_date}'. Aborting.")
        return None

    logger.info(f"{log_prefix} Starting monthly snapshot recomputation.")
    try:
        summary = recompute_monthly_snapshots(target)
    except SnapshotRecomputeInProgress:
        logger.warning(f"{log_prefix} Another snapshot recomputation is running. Skipping this run.")
        return None

    logger.info(
        f"{log_prefix} Done: {summary['months_processed']} months, {summary['rows_written']} rows written, "
        f"{summary['rows_skipped_final']} final rows kept."
    )
    if verify:
        violations = verify_snapshot_chain()
        summary['violations'] = len(violations)
        if violations:
            logger.error(f"{log_prefix} Snapshot verification found {len(violations)} violation(s).")
    return summary
