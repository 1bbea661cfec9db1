"""
Clinical CDS Alert History
Persisted per-patient alerts and their status lifecycle
"""

import logging
from datetime import date, datetime
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from clinical_cds.schemas import (
    AlertStatus, AuditAction, CDSAlert, CDSAlertHistory, ensure_utc, utc_now
)
from clinical_cds.services.storage import JsonCollectionRepository, KeyValueStore
from clinical_cds.modules.audit import AuditLogger, generate_record_id
from clinical_cds.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Lifecycle Transitions
# =============================================================================

ALLOWED_TRANSITIONS: Dict[AlertStatus, FrozenSet[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset({
        AlertStatus.ACKNOWLEDGED, AlertStatus.DISMISSED, AlertStatus.RESOLVED
    }),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.DISMISSED, AlertStatus.RESOLVED}),
    AlertStatus.DISMISSED: frozenset(),
    AlertStatus.RESOLVED: frozenset(),
}

_TRANSITION_AUDIT_ACTIONS: Dict[AlertStatus, AuditAction] = {
    AlertStatus.ACKNOWLEDGED: AuditAction.ALERT_ACKNOWLEDGED,
    AlertStatus.DISMISSED: AuditAction.ALERT_DISMISSED,
    AlertStatus.RESOLVED: AuditAction.ALERT_RESOLVED,
}

_ACTOR_DETAIL_KEYS: Dict[AlertStatus, str] = {
    AlertStatus.ACKNOWLEDGED: "acknowledged_by",
    AlertStatus.DISMISSED: "dismissed_by",
    AlertStatus.RESOLVED: "resolved_by",
}


def can_transition(current: AlertStatus, target: AlertStatus) -> bool:
    """Whether an entry in `current` status may move to `target`"""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


# =============================================================================
# History Store
# =============================================================================

class AlertHistoryStore:
    """Alert history collection persisted under one key"""

    def __init__(self, store: KeyValueStore, key: Optional[str] = None):
        self._repository: JsonCollectionRepository[CDSAlertHistory] = JsonCollectionRepository(
            store, key or settings.storage_history_key, CDSAlertHistory
        )

    def load_all(self) -> List[CDSAlertHistory]:
        return self._repository.load()

    def save_all(self, entries: Iterable[CDSAlertHistory]) -> bool:
        return self._repository.save(entries)

    def get_entry(self, history_id: str) -> Optional[CDSAlertHistory]:
        return next((e for e in self.load_all() if e.id == history_id), None)

    def get_patient_history(self, patient_id: str) -> List[CDSAlertHistory]:
        """Entries for one patient, most recently triggered first"""
        entries = [e for e in self.load_all() if e.patient_id == patient_id]
        return sorted(entries, key=lambda e: e.alert.triggered_at, reverse=True)

    def prune_before(self, cutoff: datetime) -> int:
        """Remove entries whose alert was triggered before the cutoff"""
        entries = self.load_all()
        kept = [e for e in entries if e.alert.triggered_at >= cutoff]
        removed = len(entries) - len(kept)
        if removed:
            self.save_all(kept)
        return removed


# =============================================================================
# History Manager
# =============================================================================

class AlertHistoryManager:
    """
    Alert lifecycle over the history store

    Every successful status change or follow-up writes exactly one audit
    entry. Operations on unknown ids or terminal entries return False and
    write nothing.
    """

    def __init__(
        self,
        history_store: AlertHistoryStore,
        audit_logger: AuditLogger,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.history_store = history_store
        self.audit_logger = audit_logger
        self._clock = clock or utc_now

    # =========================================================================
    # Persisting Alerts
    # =========================================================================

    def save_alert_to_history(self, patient_id: str, alert: CDSAlert) -> str:
        """
        Persist a triggered alert for a patient with status active

        Args:
            patient_id: Patient identifier
            alert: Alert returned by the rules engine

        Returns:
            The new history entry id
        """
        # model_copy(update=...) skips validation, so the timestamp may be naive
        alert = alert.model_copy(update={"triggered_at": ensure_utc(alert.triggered_at)})

        entry = CDSAlertHistory(
            id=generate_record_id(),
            patient_id=patient_id,
            alert=alert,
            status=AlertStatus.ACTIVE
        )

        entries = self.history_store.load_all()
        entries.append(entry)
        self.history_store.save_all(entries)

        self.audit_logger.log(
            AuditAction.ALERT_TRIGGERED,
            patient_id,
            entry.id,
            {
                "rule_name": alert.rule_name,
                "priority": alert.priority.value,
                "category": alert.category.value,
            }
        )

        logger.info(f"Saved CDS alert {alert.rule_id} to history as {entry.id}")
        return entry.id

    # =========================================================================
    # Status Transitions
    # =========================================================================

    def _transition(
        self,
        history_id: str,
        target: AlertStatus,
        user_id: Optional[str],
        notes: Optional[str]
    ) -> bool:
        entries = self.history_store.load_all()
        entry = next((e for e in entries if e.id == history_id), None)

        if entry is None:
            logger.warning(f"CDS history entry {history_id} not found")
            return False

        previous = entry.status
        if not can_transition(previous, target):
            logger.warning(
                f"Rejected CDS alert transition {previous.value} -> {target.value} for {history_id}"
            )
            return False

        entry.status = target
        entry.acknowledged_by = user_id
        entry.acknowledged_at = ensure_utc(self._clock())
        entry.notes = notes
        self.history_store.save_all(entries)

        self.audit_logger.log(
            _TRANSITION_AUDIT_ACTIONS[target],
            entry.patient_id,
            history_id,
            {
                _ACTOR_DETAIL_KEYS[target]: user_id,
                "notes": notes,
                "previous_status": previous.value,
            },
            user_id=user_id
        )

        logger.info(f"CDS alert {history_id}: {previous.value} -> {target.value}")
        return True

    def acknowledge_alert(
        self,
        history_id: str,
        acknowledged_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> bool:
        """Move an active alert to acknowledged"""
        return self._transition(history_id, AlertStatus.ACKNOWLEDGED, acknowledged_by, notes)

    def dismiss_alert(
        self,
        history_id: str,
        dismissed_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> bool:
        """Move an active or acknowledged alert to dismissed"""
        return self._transition(history_id, AlertStatus.DISMISSED, dismissed_by, notes)

    def resolve_alert(
        self,
        history_id: str,
        resolved_by: Optional[str] = None,
        notes: Optional[str] = None
    ) -> bool:
        """Move an active or acknowledged alert to resolved"""
        return self._transition(history_id, AlertStatus.RESOLVED, resolved_by, notes)

    def add_follow_up(
        self,
        history_id: str,
        follow_up_date: date,
        notes: Optional[str] = None
    ) -> bool:
        """
        Flag an alert for follow-up; does not change its status

        Args:
            history_id: History entry id
            follow_up_date: Date the follow-up is due
            notes: Appended to existing notes on a new line

        Returns:
            True if the entry exists
        """
        entries = self.history_store.load_all()
        entry = next((e for e in entries if e.id == history_id), None)

        if entry is None:
            logger.warning(f"CDS history entry {history_id} not found")
            return False

        entry.follow_up_required = True
        entry.follow_up_date = follow_up_date
        if notes:
            entry.notes = f"{entry.notes}\n{notes}" if entry.notes else notes
        self.history_store.save_all(entries)

        self.audit_logger.log(
            AuditAction.FOLLOW_UP_ADDED,
            entry.patient_id,
            history_id,
            {"follow_up_date": follow_up_date.isoformat(), "notes": notes}
        )
        return True

    # =========================================================================
    # Reads
    # =========================================================================

    def get_all_history(self) -> List[CDSAlertHistory]:
        return self.history_store.load_all()

    def get_history_entry(self, history_id: str) -> Optional[CDSAlertHistory]:
        return self.history_store.get_entry(history_id)

    def get_patient_alert_history(self, patient_id: str) -> List[CDSAlertHistory]:
        """All history for a patient, newest first"""
        return self.history_store.get_patient_history(patient_id)

    def get_active_alerts(self, patient_id: str) -> List[CDSAlertHistory]:
        return [
            e for e in self.history_store.get_patient_history(patient_id)
            if e.status == AlertStatus.ACTIVE
        ]

    def get_follow_up_alerts(self, patient_id: Optional[str] = None) -> List[CDSAlertHistory]:
        """Entries flagged for follow-up, optionally for one patient"""
        if patient_id is not None:
            entries = self.history_store.get_patient_history(patient_id)
        else:
            entries = self.history_store.load_all()
        return [e for e in entries if e.follow_up_required and e.follow_up_date]
