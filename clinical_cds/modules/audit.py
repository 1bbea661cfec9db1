"""
Clinical CDS Audit Logger
Append-only record of alert lifecycle events
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from clinical_cds.schemas import AuditAction, CDSAuditLog, utc_now
from clinical_cds.services.storage import JsonCollectionRepository, KeyValueStore
from clinical_cds.config import settings

logger = logging.getLogger(__name__)


def generate_record_id() -> str:
    """Unique id for history and audit records"""
    return f"cds-{uuid.uuid4().hex}"


class AuditLogger:
    """
    Append-only CDS audit log

    Entries are written by the alert lifecycle operations only and are never
    edited; the retention cutoff is the only removal path.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._repository: JsonCollectionRepository[CDSAuditLog] = JsonCollectionRepository(
            store, key or settings.storage_audit_key, CDSAuditLog
        )
        self._clock = clock or utc_now

    def log(
        self,
        action: AuditAction,
        patient_id: str,
        alert_id: str,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> Optional[CDSAuditLog]:
        """
        Append one audit entry

        Args:
            action: Lifecycle event
            patient_id: Patient the alert belongs to
            alert_id: History entry id
            details: Event-specific data
            user_id: Acting user, if known

        Returns:
            The new entry, or None if it could not be persisted
        """
        entry = CDSAuditLog(
            id=generate_record_id(),
            patient_id=patient_id,
            action=action,
            alert_id=alert_id,
            user_id=user_id,
            timestamp=self._clock(),
            details=details or {}
        )

        entries = self._repository.load()
        entries.append(entry)
        if not self._repository.save(entries):
            logger.warning(f"Audit entry {action.value} for alert {alert_id} was not persisted")
            return None

        logger.debug(f"Audit: {action.value} alert={alert_id}")
        return entry

    def get_all_entries(self) -> List[CDSAuditLog]:
        """All entries in insertion order"""
        return self._repository.load()

    def get_audit_log(self, patient_id: Optional[str] = None) -> List[CDSAuditLog]:
        """Audit entries, optionally for one patient, newest first"""
        entries = self._repository.load()
        if patient_id is not None:
            entries = [e for e in entries if e.patient_id == patient_id]
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

    def prune_before(self, cutoff: datetime) -> int:
        """
        Remove entries older than the cutoff

        Returns:
            Number of entries removed
        """
        entries = self._repository.load()
        kept = [e for e in entries if e.timestamp >= cutoff]
        removed = len(entries) - len(kept)
        if removed:
            self._repository.save(kept)
        return removed
