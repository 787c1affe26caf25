"""
Integration tests for /api/alerts.
"""

from datetime import datetime, timedelta

import pytest

from qc_dashboard.db.models import Alert
from qc_dashboard.models.enums import AlertSeverity, AlertType


@pytest.fixture
def alerts(db_session, inspection):
    now = datetime.utcnow()
    rows = [
        Alert(
            type=AlertType.HIGH_DEFECT_RATE,
            message="High defect rate",
            severity=AlertSeverity.HIGH,
            inspection_id=inspection.id,
            defect_rate=8.0,
            threshold=5.0,
            created_at=now - timedelta(hours=2),
        ),
        Alert(
            type=AlertType.INSPECTION_FAILED,
            message="Inspection failed",
            severity=AlertSeverity.MEDIUM,
            inspection_id=inspection.id,
            created_at=now - timedelta(hours=1),
        ),
        Alert(
            type=AlertType.CRITICAL_DEFECT,
            message="Critical defect",
            severity=AlertSeverity.HIGH,
            read=True,
            created_at=now,
        ),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


def test_inspectors_cannot_see_alerts(client, inspector_headers, alerts):
    assert client.get("/api/alerts", headers=inspector_headers).status_code == 403


def test_list_newest_first(client, manager_headers, alerts):
    body = client.get("/api/alerts", headers=manager_headers).json()
    assert body["count"] == 3
    assert [a["type"] for a in body["data"]] == ["critical-defect", "inspection-failed", "high-defect-rate"]


def test_filters(client, manager_headers, alerts):
    unread = client.get("/api/alerts", params={"read": "false"}, headers=manager_headers).json()
    assert unread["count"] == 2

    high = client.get("/api/alerts", params={"severity": "high"}, headers=manager_headers).json()
    assert high["count"] == 2

    failed = client.get("/api/alerts", params={"type": "inspection-failed"}, headers=manager_headers).json()
    assert failed["count"] == 1


def test_get_and_mark_read(client, admin_headers, alerts):
    alert_id = str(alerts[0].id)
    assert client.get(f"/api/alerts/{alert_id}", headers=admin_headers).json()["data"]["read"] is False

    response = client.put(f"/api/alerts/{alert_id}/read", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["read"] is True


def test_mark_all_read(client, manager_headers, alerts):
    response = client.put("/api/alerts/read-all", headers=manager_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"updated": 2}

    unread = client.get("/api/alerts", params={"read": "false"}, headers=manager_headers).json()
    assert unread["count"] == 0


def test_delete(client, manager_headers, alerts):
    alert_id = str(alerts[1].id)
    assert client.delete(f"/api/alerts/{alert_id}", headers=manager_headers).status_code == 200
    assert client.get(f"/api/alerts/{alert_id}", headers=manager_headers).status_code == 404
