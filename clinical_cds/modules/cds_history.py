"""
Clinical CDS History Manager
Alert lifecycle, audit trail, statistics and retention behind one interface
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from clinical_cds.schemas import (
    CDSAuditLog, CDSHistoryExport, PatientCDSStats, RetentionResult
)
from clinical_cds.services.storage import KeyValueStore, get_key_value_store
from clinical_cds.modules.alert_history import AlertHistoryManager, AlertHistoryStore
from clinical_cds.modules.audit import AuditLogger
from clinical_cds.modules import statistics
from clinical_cds.config import settings

logger = logging.getLogger(__name__)


class CDSHistoryManager(AlertHistoryManager):
    """Alert history manager with audit, statistics and retention reads"""

    @classmethod
    def from_store(
        cls,
        store: KeyValueStore,
        clock: Optional[Callable[[], datetime]] = None
    ) -> "CDSHistoryManager":
        """Build a manager whose history and audit log share one key-value store"""
        return cls(
            history_store=AlertHistoryStore(store, settings.storage_history_key),
            audit_logger=AuditLogger(store, settings.storage_audit_key, clock=clock),
            clock=clock
        )

    def get_audit_log(self, patient_id: Optional[str] = None) -> List[CDSAuditLog]:
        """Audit entries, newest first"""
        return self.audit_logger.get_audit_log(patient_id)

    def get_patient_cds_stats(self, patient_id: str) -> PatientCDSStats:
        return statistics.get_patient_cds_stats(self.history_store, patient_id)

    def cleanup_old_history(
        self,
        retention_days: Optional[int] = None,
        audit_retention_days: Optional[int] = None
    ) -> RetentionResult:
        """
        Prune history and audit entries older than the retention periods

        Args:
            retention_days: Days of history to keep (default: settings)
            audit_retention_days: Days of audit log to keep (default: settings,
                falling back to retention_days)
        """
        if retention_days is None:
            retention_days = settings.history_retention_days
        if audit_retention_days is None:
            audit_retention_days = settings.audit_retention_days
        return statistics.cleanup_old_history(
            self.history_store,
            self.audit_logger,
            retention_days=retention_days,
            audit_retention_days=audit_retention_days,
            now=self._clock()
        )

    def export_patient_cds_history(self, patient_id: str) -> CDSHistoryExport:
        return statistics.export_patient_cds_history(
            self.history_store, self.audit_logger, patient_id, now=self._clock()
        )


# =============================================================================
# Global Manager Instance
# =============================================================================

_history_manager: Optional[CDSHistoryManager] = None


def get_history_manager() -> CDSHistoryManager:
    """Get or create the global history manager over the configured store"""
    global _history_manager
    if _history_manager is None:
        _history_manager = CDSHistoryManager.from_store(get_key_value_store())
    return _history_manager
