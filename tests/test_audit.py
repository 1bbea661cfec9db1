"""
Unit tests for the audit logger
"""

import pytest
from pydantic import ValidationError
from clinical_cds.modules.audit import AuditLogger, generate_record_id
from clinical_cds.schemas import AuditAction


@pytest.fixture
def audit_logger(store, clock):
    return AuditLogger(store, key="audit", clock=clock)


class TestAuditLogger:
    """Test append-only audit log"""

    def test_log_appends_entry(self, audit_logger, clock):
        """Test appending an audit entry"""
        entry = audit_logger.log(
            AuditAction.ALERT_ACKNOWLEDGED, "patient-1", "cds-1",
            {"acknowledged_by": "dr-smith"}, user_id="dr-smith"
        )

        assert entry.timestamp == clock.now
        assert entry.user_id == "dr-smith"
        assert audit_logger.get_all_entries() == [entry]

    def test_entries_are_immutable(self, audit_logger):
        """Test that audit entries cannot be modified"""
        entry = audit_logger.log(AuditAction.ALERT_TRIGGERED, "patient-1", "cds-1")

        with pytest.raises(ValidationError):
            entry.action = AuditAction.ALERT_DISMISSED

    def test_filter_by_patient_newest_first(self, audit_logger, clock):
        """Test filtering audit entries by patient"""
        audit_logger.log(AuditAction.ALERT_TRIGGERED, "patient-1", "cds-1")
        clock.advance(minutes=1)
        audit_logger.log(AuditAction.ALERT_TRIGGERED, "patient-2", "cds-2")
        clock.advance(minutes=1)
        audit_logger.log(AuditAction.ALERT_DISMISSED, "patient-1", "cds-1")

        entries = audit_logger.get_audit_log("patient-1")

        assert [e.action for e in entries] == [
            AuditAction.ALERT_DISMISSED,
            AuditAction.ALERT_TRIGGERED,
        ]
        assert len(audit_logger.get_audit_log()) == 3

    def test_prune_before_keeps_boundary(self, audit_logger, clock):
        """Test that pruning keeps entries at the cutoff"""
        audit_logger.log(AuditAction.ALERT_TRIGGERED, "patient-1", "old")
        cutoff = clock.advance(days=1)
        audit_logger.log(AuditAction.ALERT_TRIGGERED, "patient-1", "boundary")

        assert audit_logger.prune_before(cutoff) == 1
        assert [e.alert_id for e in audit_logger.get_all_entries()] == ["boundary"]

    def test_failed_write_returns_none(self, clock):
        """Test that a failed write returns no entry"""
        class ReadOnlyStore:
            def get(self, key):
                return None

            def set(self, key, value):
                raise OSError("disk full")

        audit_logger = AuditLogger(ReadOnlyStore(), key="audit", clock=clock)

        assert audit_logger.log(AuditAction.ALERT_TRIGGERED, "patient-1", "cds-1") is None

    def test_record_ids(self):
        """Test record id format and uniqueness"""
        first, second = generate_record_id(), generate_record_id()
        assert first.startswith("cds-")
        assert first != second


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
