"""
Unit tests for the retention Celery task
"""

import logging
from datetime import timedelta

import pytest
from clinical_cds.config import settings
from clinical_cds.modules import cds_history
from clinical_cds.schemas import PatientContext, VitalSigns
from clinical_cds.tasks.retention import cleanup_cds_history_task


class TestRetentionTask:
    """Test the scheduled cleanup task"""

    def test_cleanup_task(self, manager, engine, clock, monkeypatch):
        """Test the retention task removes old entries"""
        monkeypatch.setattr(cds_history, "_history_manager", manager)
        alert = engine.evaluate_patient(PatientContext(vitals=VitalSigns(systolic_bp=80)))[0]
        manager.save_alert_to_history("patient-1", alert)
        clock.advance(days=120)

        result = cleanup_cds_history_task(retention_days=90, audit_retention_days=90)

        assert result["history_removed"] == 1
        assert result["audit_removed"] == 1
        assert result["total_removed"] == 2
        assert result["history_cutoff"].startswith(
            (clock.now - timedelta(days=90)).date().isoformat()
        )
        assert manager.get_all_history() == []

    def test_invalid_retention_not_retried(self, manager, monkeypatch):
        """Test that invalid retention periods raise immediately"""
        monkeypatch.setattr(cds_history, "_history_manager", manager)

        with pytest.raises(ValueError):
            cleanup_cds_history_task(retention_days=-1)

    def test_memory_backend_warning(self, manager, monkeypatch, caplog):
        """Test that running against the in-memory store logs a warning"""
        monkeypatch.setattr(cds_history, "_history_manager", manager)
        monkeypatch.setattr(settings, "storage_backend", "memory")

        with caplog.at_level(logging.WARNING, logger="clinical_cds.tasks.retention"):
            cleanup_cds_history_task()

        assert any("in-memory store" in r.getMessage() for r in caplog.records)

    def test_no_warning_for_shared_backend(self, manager, monkeypatch, caplog):
        """Test that a shared backend runs without the memory warning"""
        monkeypatch.setattr(cds_history, "_history_manager", manager)
        monkeypatch.setattr(settings, "storage_backend", "database")

        with caplog.at_level(logging.WARNING, logger="clinical_cds.tasks.retention"):
            cleanup_cds_history_task()

        assert not any("in-memory store" in r.getMessage() for r in caplog.records)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
