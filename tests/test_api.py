"""
API tests for the CDS routes
"""

import pytest
from fastapi.testclient import TestClient

from clinical_cds.main import app
from clinical_cds.modules.cds_history import get_history_manager
from clinical_cds.modules.clinical_rules import get_rules_engine

CRISIS_CONTEXT = {
    "age": 58,
    "gender": "male",
    "vitals": {"systolic_bp": 185, "diastolic_bp": 125}
}


@pytest.fixture
def client(engine, manager):
    app.dependency_overrides[get_rules_engine] = lambda: engine
    app.dependency_overrides[get_history_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def saved_alert(client):
    alert = client.post("/api/v1/cds/evaluate", json=CRISIS_CONTEXT).json()[0]
    response = client.post("/api/v1/patients/patient-1/cds/history", json=alert)
    return response.json()["history_id"]


class TestHealth:
    """Test health endpoint"""

    def test_health(self, client):
        """Test health check endpoint"""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestRuleRoutes:
    """Test evaluation and catalog endpoints"""

    def test_evaluate(self, client):
        """Test evaluating a patient context over HTTP"""
        response = client.post("/api/v1/cds/evaluate", json=CRISIS_CONTEXT)

        assert response.status_code == 200
        alerts = response.json()
        assert len(alerts) == 1
        assert alerts[0]["rule_id"] == "vital-signs-hypertensive-crisis"
        assert alerts[0]["priority"] == "critical"

    def test_evaluate_rejects_invalid_context(self, client):
        """Test that an invalid patient context returns 422"""
        response = client.post("/api/v1/cds/evaluate", json={"gender": "unknown"})
        assert response.status_code == 422

    def test_running_alert_list(self, client, engine):
        """Test dismissing, listing and clearing the running alert list"""
        client.post("/api/v1/cds/evaluate", json=CRISIS_CONTEXT)
        key = engine.get_alerts()[0].alert_key

        assert client.post("/api/v1/cds/alerts/dismiss", json={"alert_key": key}).status_code == 200
        assert client.get("/api/v1/cds/alerts", params={"active_only": True}).json() == []
        assert len(client.get("/api/v1/cds/alerts").json()) == 1
        assert client.post("/api/v1/cds/alerts/dismiss", json={"alert_key": key}).status_code == 404

        client.delete("/api/v1/cds/alerts")
        assert client.get("/api/v1/cds/alerts").json() == []

    def test_rule_catalog(self, client):
        """Test rule listing, stats and category endpoints"""
        assert len(client.get("/api/v1/cds/rules").json()) == 10
        assert client.get("/api/v1/cds/rules/stats").json()["total"] == 10
        assert len(client.get("/api/v1/cds/rules/category/assessment-score").json()) == 3

    def test_toggle_rule(self, client):
        """Test disabling and re-enabling a rule"""
        response = client.patch("/api/v1/cds/rules/vital-signs-hypertensive-crisis", json={"enabled": False})

        assert response.status_code == 200
        assert response.json()["enabled"] is False
        assert client.post("/api/v1/cds/evaluate", json=CRISIS_CONTEXT).json() == []

    def test_toggle_unknown_rule(self, client):
        """Test toggling an unknown rule"""
        response = client.patch("/api/v1/cds/rules/missing", json={"enabled": False})

        assert response.status_code == 404
        assert "missing" in response.json()["error"]

    def test_add_rule(self, client):
        """Test adding a custom rule and rejecting a duplicate"""
        rule = {
            "id": "custom-tachycardia",
            "name": "Tachycardia",
            "category": "vital-signs",
            "priority": "medium",
            "conditions": [
                {"type": "vital-sign", "field": "heartRate", "operator": "greater-than", "value": 120}
            ],
            "actions": [{"type": "alert", "message": "TACHYCARDIA", "severity": "warning"}]
        }

        assert client.post("/api/v1/cds/rules", json=rule).status_code == 201
        assert client.post("/api/v1/cds/rules", json=rule).status_code == 409

        alerts = client.post("/api/v1/cds/evaluate", json={"vitals": {"heart_rate": 130}}).json()
        assert [a["rule_id"] for a in alerts] == ["custom-tachycardia"]


class TestHistoryRoutes:
    """Test history, lifecycle and audit endpoints"""

    def test_save_and_read_history(self, client, saved_alert):
        """Test saving an alert and reading patient history"""
        history = client.get("/api/v1/patients/patient-1/cds/history").json()

        assert [e["id"] for e in history] == [saved_alert]
        assert history[0]["status"] == "active"
        assert len(client.get("/api/v1/patients/patient-1/cds/active").json()) == 1

    def test_lifecycle(self, client, saved_alert):
        """Test acknowledge, resolve and rejected dismiss over HTTP"""
        response = client.post(
            f"/api/v1/cds/history/{saved_alert}/acknowledge",
            json={"user_id": "dr-smith", "notes": "reviewed"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "acknowledged"
        assert response.json()["acknowledged_by"] == "dr-smith"

        response = client.post(f"/api/v1/cds/history/{saved_alert}/resolve")
        assert response.status_code == 200
        assert response.json()["status"] == "resolved"

        assert client.post(f"/api/v1/cds/history/{saved_alert}/dismiss").status_code == 409

        audit = client.get("/api/v1/patients/patient-1/cds/audit").json()
        assert {e["action"] for e in audit} == {"alert_triggered", "alert_acknowledged", "alert_resolved"}

    def test_unknown_history_entry(self, client):
        """Test that lifecycle calls on an unknown entry return 404"""
        assert client.post("/api/v1/cds/history/missing/acknowledge").status_code == 404
        response = client.post(
            "/api/v1/cds/history/missing/follow-up",
            json={"follow_up_date": "2024-07-01"}
        )
        assert response.status_code == 404

    def test_follow_up(self, client, saved_alert):
        """Test scheduling a follow-up over HTTP"""
        response = client.post(
            f"/api/v1/cds/history/{saved_alert}/follow-up",
            json={"follow_up_date": "2024-07-01", "notes": "recheck BP"}
        )

        assert response.status_code == 200
        assert response.json()["follow_up_date"] == "2024-07-01"
        follow_ups = client.get("/api/v1/cds/follow-ups", params={"patient_id": "patient-1"}).json()
        assert [e["id"] for e in follow_ups] == [saved_alert]

    def test_stats_and_export(self, client, saved_alert):
        """Test patient stats and export endpoints"""
        stats = client.get("/api/v1/patients/patient-1/cds/stats").json()
        assert stats["total"] == 1
        assert stats["by_severity"] == {"critical": 1}

        export = client.get("/api/v1/patients/patient-1/cds/export").json()
        assert export["patient_id"] == "patient-1"
        assert len(export["history"]) == 1
        assert len(export["audit_log"]) == 1

    def test_cleanup(self, client, saved_alert):
        """Test running retention cleanup over HTTP"""
        response = client.post("/api/v1/cds/history/cleanup", params={"retention_days": 90})

        assert response.status_code == 200
        assert response.json()["total_removed"] == 0
        assert len(client.get("/api/v1/cds/audit").json()) == 1

    def test_cleanup_after_naive_trigger_time(self, client):
        """Test that an alert posted without a timezone can be cleaned up"""
        alert = client.post("/api/v1/cds/evaluate", json=CRISIS_CONTEXT).json()[0]
        alert["triggered_at"] = "2024-01-01T12:00:00"

        assert client.post("/api/v1/patients/patient-1/cds/history", json=alert).status_code == 201
        response = client.post("/api/v1/cds/history/cleanup", params={"retention_days": 90})

        assert response.status_code == 200
        assert response.json()["history_removed"] == 1
        assert client.get("/api/v1/patients/patient-1/cds/history").json() == []

    def test_cleanup_rejects_short_audit_retention(self, client, saved_alert):
        """Test that audit retention shorter than history retention returns 422"""
        response = client.post(
            "/api/v1/cds/history/cleanup",
            params={"retention_days": 90, "audit_retention_days": 30}
        )

        assert response.status_code == 422
        assert len(client.get("/api/v1/cds/audit").json()) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
