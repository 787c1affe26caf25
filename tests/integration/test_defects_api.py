"""
Integration tests for /api/defects.
"""

import json

from qc_dashboard.db.models import Alert, Defect, Inspection
from qc_dashboard.models.enums import AlertType


def _form(inspection, /, **overrides):
    form = {
        "inspection": str(inspection.id),
        "product": str(inspection.product_id),
        "type": "dimensional",
        "severity": "major",
        "description": "Shaft diameter out of tolerance",
        "location": "shaft",
        "measurements": json.dumps({"expected": 10, "actual": 10.4, "unit": "mm"}),
    }
    form.update(overrides)
    return form


def _create(client, headers, inspection, /, files=None, **overrides):
    return client.post("/api/defects", data=_form(inspection, **overrides), files=files, headers=headers)


class TestCreate:
    def test_create_defect(self, client, db_session, inspector, inspector_headers, inspection):
        response = _create(client, inspector_headers, inspection)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["type"] == "dimensional"
        assert data["status"] == "open"
        assert data["root_cause"] == "unknown"
        assert data["detected_by"] == "manual"
        assert data["measurements"] == {"expected": 10.0, "actual": 10.4, "unit": "mm"}
        assert data["reported_by"]["id"] == str(inspector.id)
        assert data["inspection"]["batch_number"] == "B-001"
        assert data["age_in_days"] >= 0

        db_session.expire_all()
        assert db_session.get(Inspection, inspection.id).defects_found == 1

    def test_with_image(self, client, inspector_headers, inspection, png_bytes, storage):
        response = _create(
            client, inspector_headers, inspection, files={"image": ("defect.png", png_bytes, "image/png")}
        )
        assert response.status_code == 201
        assert response.json()["data"]["image_url"].startswith("https://images.test/defects/")
        assert len(storage.objects) == 1

    def test_malformed_measurements_ignored(self, client, inspector_headers, inspection):
        response = _create(client, inspector_headers, inspection, measurements="{oops")
        assert response.status_code == 201
        assert response.json()["data"]["measurements"] is None

    def test_invalid_enum(self, client, inspector_headers, inspection):
        assert _create(client, inspector_headers, inspection, severity="apocalyptic").status_code == 422

    def test_unknown_inspection(self, client, inspector_headers, inspection, png_bytes, storage):
        response = _create(
            client,
            inspector_headers,
            inspection,
            files={"image": ("defect.png", png_bytes, "image/png")},
            inspection="00000000-0000-0000-0000-000000000000",
        )
        assert response.status_code == 404
        assert storage.objects == {}

    def test_critical_defect_raises_alert(self, client, db_session, inspector_headers, inspection):
        _create(client, inspector_headers, inspection, severity="critical")
        db_session.expire_all()
        alerts = db_session.query(Alert).all()
        assert [a.type for a in alerts] == [AlertType.CRITICAL_DEFECT]


class TestBulk:
    def test_partial_success(self, client, db_session, inspector_headers, inspection):
        good = {
            "inspection": str(inspection.id),
            "product": str(inspection.product_id),
            "type": "visual",
            "severity": "minor",
            "description": "Scratch",
        }
        response = client.post(
            "/api/defects/bulk",
            json={
                "defects": [
                    good,
                    {**good, "severity": "enormous"},
                    {**good, "inspection": "00000000-0000-0000-0000-000000000000"},
                    {**good, "description": "Dent"},
                ]
            },
            headers=inspector_headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["created_count"] == 2
        assert body["error_count"] == 2
        assert [e["index"] for e in body["errors"]] == [1, 2]
        assert len(body["data"]) == 2

        db_session.expire_all()
        assert db_session.get(Inspection, inspection.id).defects_found == 2

    def test_non_object_item_reported_per_index(self, client, db_session, inspector_headers, inspection):
        good = {
            "inspection": str(inspection.id),
            "product": str(inspection.product_id),
            "type": "visual",
            "severity": "minor",
            "description": "Scratch",
        }
        response = client.post(
            "/api/defects/bulk",
            json={"defects": [good, "oops", 42]},
            headers=inspector_headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert body["created_count"] == 1
        assert body["errors"] == [
            {"index": 1, "error": "Defect must be an object"},
            {"index": 2, "error": "Defect must be an object"},
        ]
        assert db_session.query(Defect).count() == 1

    def test_empty_list(self, client, inspector_headers):
        response = client.post("/api/defects/bulk", json={"defects": []}, headers=inspector_headers)
        assert response.status_code == 400


class TestList:
    def test_filters_and_pagination(self, client, inspector_headers, inspection):
        for severity in ("minor", "minor", "major", "critical"):
            _create(client, inspector_headers, inspection, severity=severity)

        minor = client.get("/api/defects", params={"severity": "minor"}, headers=inspector_headers).json()
        assert minor["total"] == 2

        page = client.get("/api/defects", params={"limit": 3}, headers=inspector_headers).json()
        assert page["count"] == 3
        assert page["total"] == 4
        assert page["pagination"] == {"next": {"page": 2, "limit": 3}}

        second = client.get("/api/defects", params={"limit": 3, "page": 2}, headers=inspector_headers).json()
        assert second["count"] == 1
        assert second["pagination"] == {"prev": {"page": 1, "limit": 3}}

    def test_sort(self, client, inspector_headers, inspection):
        for severity in ("minor", "critical", "major"):
            _create(client, inspector_headers, inspection, severity=severity)
        data = client.get("/api/defects", params={"sort": "severity"}, headers=inspector_headers).json()["data"]
        assert [d["severity"] for d in data] == sorted(d["severity"] for d in data)

        assert client.get("/api/defects", params={"sort": "password"}, headers=inspector_headers).status_code == 400

    def test_date_filter(self, client, inspector_headers, inspection):
        _create(client, inspector_headers, inspection)
        old = client.get("/api/defects", params={"end_date": "2000-01-01"}, headers=inspector_headers).json()
        assert old["total"] == 0
        assert client.get("/api/defects", params={"start_date": "yesterday"}, headers=inspector_headers).status_code == 400


class TestStats:
    def test_stats(self, client, inspector_headers, inspection):
        _create(client, inspector_headers, inspection, severity="minor", type="visual")
        _create(client, inspector_headers, inspection, severity="critical", type="visual", root_cause="material")
        _create(client, inspector_headers, inspection, severity="major", type="functional")

        response = client.get("/api/defects/stats", headers=inspector_headers)
        assert response.status_code == 200
        data = response.json()["data"]

        assert data["defects_by_type"][0] == {"type": "visual", "count": 2}
        assert {s["severity"] for s in data["defects_by_severity"]} == {"minor", "major", "critical"}
        assert {"root_cause": "material", "count": 1} in data["defects_by_root_cause"]
        assert data["defects_by_status"] == [{"status": "open", "count": 3}]
        trend = data["defect_trend"]
        assert len(trend) == 1
        assert trend[0]["count"] == 3
        assert trend[0]["critical"] == 1


class TestUpdateResolveDelete:
    def test_update_to_resolved_stamps_resolver(self, client, manager, manager_headers, inspector_headers, inspection):
        defect_id = _create(client, inspector_headers, inspection).json()["data"]["id"]

        response = client.put(
            f"/api/defects/{defect_id}",
            data={"status": "resolved", "resolution_notes": "Machine recalibrated"},
            headers=manager_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "resolved"
        assert data["resolved_by"]["id"] == str(manager.id)
        assert data["resolved_at"] is not None
        assert data["resolution_notes"] == "Machine recalibrated"

    def test_update_fields(self, client, inspector_headers, inspection):
        defect_id = _create(client, inspector_headers, inspection).json()["data"]["id"]
        response = client.put(
            f"/api/defects/{defect_id}",
            data={"severity": "minor", "root_cause": "handling"},
            headers=inspector_headers,
        )
        data = response.json()["data"]
        assert data["severity"] == "minor"
        assert data["root_cause"] == "handling"
        assert data["status"] == "open"

    def test_resolve_endpoint(self, client, inspector, inspector_headers, inspection):
        defect_id = _create(client, inspector_headers, inspection).json()["data"]["id"]
        response = client.put(
            f"/api/defects/{defect_id}/resolve",
            json={"resolution_notes": "Reworked"},
            headers=inspector_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "resolved"
        assert data["resolved_by"]["id"] == str(inspector.id)
        assert data["resolution_notes"] == "Reworked"

    def test_delete_decrements_count(self, client, db_session, inspector_headers, manager_headers, inspection):
        defect_id = _create(client, inspector_headers, inspection).json()["data"]["id"]

        assert client.delete(f"/api/defects/{defect_id}", headers=inspector_headers).status_code == 403
        assert client.delete(f"/api/defects/{defect_id}", headers=manager_headers).status_code == 200

        db_session.expire_all()
        assert db_session.query(Defect).count() == 0
        assert db_session.get(Inspection, inspection.id).defects_found == 0

    def test_unknown_defect(self, client, inspector_headers):
        response = client.get("/api/defects/00000000-0000-0000-0000-000000000000", headers=inspector_headers)
        assert response.status_code == 404
