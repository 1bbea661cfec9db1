"""
Clinical CDS Statistics & Retention
Per-patient alert counts, age-based pruning and history export
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from clinical_cds.schemas import (
    AlertStatus, CDSAlertHistory, CDSHistoryExport, PatientCDSStats,
    RetentionResult, ensure_utc, utc_now
)
from clinical_cds.modules.alert_history import AlertHistoryStore
from clinical_cds.modules.audit import AuditLogger

logger = logging.getLogger(__name__)


def compute_patient_stats(entries: Iterable[CDSAlertHistory]) -> PatientCDSStats:
    """Count history entries by status, priority and category in one pass"""
    stats = PatientCDSStats()

    for entry in entries:
        stats.total += 1

        if entry.status == AlertStatus.ACTIVE:
            stats.active += 1
        elif entry.status == AlertStatus.ACKNOWLEDGED:
            stats.acknowledged += 1
        elif entry.status == AlertStatus.DISMISSED:
            stats.dismissed += 1
        elif entry.status == AlertStatus.RESOLVED:
            stats.resolved += 1

        severity = entry.alert.priority.value
        stats.by_severity[severity] = stats.by_severity.get(severity, 0) + 1

        category = entry.alert.category.value
        stats.by_category[category] = stats.by_category.get(category, 0) + 1

    return stats


def get_patient_cds_stats(history_store: AlertHistoryStore, patient_id: str) -> PatientCDSStats:
    return compute_patient_stats(history_store.get_patient_history(patient_id))


def cleanup_old_history(
    history_store: AlertHistoryStore,
    audit_logger: AuditLogger,
    retention_days: int = 90,
    audit_retention_days: Optional[int] = None,
    now: Optional[datetime] = None
) -> RetentionResult:
    """
    Apply the retention policy to history and audit entries

    History entries are dropped by their alert's trigger time, audit entries by
    their own timestamp; the two cutoffs are applied independently. Entries at
    or after a cutoff are kept.

    Args:
        history_store: Alert history store
        audit_logger: Audit logger
        retention_days: Days of history to keep
        audit_retention_days: Days of audit log to keep (default: retention_days)
        now: Reference time (default: current UTC time)

    Returns:
        Cutoffs used and number of entries removed from each store

    Raises:
        ValueError: for a negative period, or an audit period shorter than
            the history period
    """
    if retention_days < 0 or (audit_retention_days is not None and audit_retention_days < 0):
        raise ValueError("Retention periods must be non-negative")
    if audit_retention_days is not None and audit_retention_days < retention_days:
        raise ValueError("audit_retention_days must be >= retention_days")

    now = ensure_utc(now or utc_now())
    history_cutoff = now - timedelta(days=retention_days)
    audit_cutoff = now - timedelta(
        days=retention_days if audit_retention_days is None else audit_retention_days
    )

    history_removed = history_store.prune_before(history_cutoff)
    audit_removed = audit_logger.prune_before(audit_cutoff)

    logger.info(
        f"CDS retention cleanup: removed {history_removed} history entries "
        f"(before {history_cutoff.isoformat()}) and {audit_removed} audit entries "
        f"(before {audit_cutoff.isoformat()})"
    )

    return RetentionResult(
        history_cutoff=history_cutoff,
        audit_cutoff=audit_cutoff,
        history_removed=history_removed,
        audit_removed=audit_removed
    )


def export_patient_cds_history(
    history_store: AlertHistoryStore,
    audit_logger: AuditLogger,
    patient_id: str,
    now: Optional[datetime] = None
) -> CDSHistoryExport:
    """Read-only snapshot of a patient's history, audit trail and stats"""
    history = history_store.get_patient_history(patient_id)
    return CDSHistoryExport(
        patient_id=patient_id,
        history=history,
        audit_log=audit_logger.get_audit_log(patient_id),
        stats=compute_patient_stats(history),
        exported_at=now or utc_now()
    )
