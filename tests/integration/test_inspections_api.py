"""
Integration tests for /api/inspections.
"""

from datetime import datetime

from qc_dashboard.db.models import Alert, Defect, Inspection
from qc_dashboard.models.enums import AlertType, DefectSeverity, DefectType


def _add_defects(db_session, inspection, count, severity=DefectSeverity.MINOR):
    for i in range(count):
        db_session.add(
            Defect(
                inspection_id=inspection.id,
                product_id=inspection.product_id,
                reported_by_id=inspection.inspector_id,
                type=DefectType.FINISH,
                severity=severity,
                description=f"Blemish {i}",
            )
        )
    db_session.commit()


class TestCreate:
    def test_create_inspection(self, client, inspector, inspector_headers, product):
        response = client.post(
            "/api/inspections",
            json={"product": str(product.id), "batch_number": "B-100", "total_inspected": 50},
            headers=inspector_headers,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["defects_found"] == 0
        assert data["defect_rate"] == 0.0
        assert data["inspector"]["id"] == str(inspector.id)
        assert data["product"]["name"] == "Widget A"

    def test_unknown_product(self, client, inspector_headers):
        response = client.post(
            "/api/inspections",
            json={"product": "00000000-0000-0000-0000-000000000000", "batch_number": "B", "total_inspected": 1},
            headers=inspector_headers,
        )
        assert response.status_code == 404

    def test_total_inspected_required(self, client, inspector_headers, product):
        response = client.post(
            "/api/inspections",
            json={"product": str(product.id), "batch_number": "B"},
            headers=inspector_headers,
        )
        assert response.status_code == 422


class TestList:
    def _seed(self, db_session, product, inspector, count):
        for i in range(count):
            db_session.add(
                Inspection(
                    product_id=product.id,
                    inspector_id=inspector.id,
                    batch_number=f"B-{i:03d}",
                    total_inspected=10,
                    date=datetime(2024, 1, 1 + i, 9, 0),
                )
            )
        db_session.commit()

    def test_pagination(self, client, db_session, inspector_headers, product, inspector):
        self._seed(db_session, product, inspector, 12)

        first = client.get("/api/inspections", params={"limit": 5}, headers=inspector_headers).json()
        assert first["count"] == 5
        assert first["total"] == 12
        assert first["pagination"] == {"total": 12, "page": 1, "pages": 3}
        # Newest first
        assert first["data"][0]["batch_number"] == "B-011"

        last = client.get("/api/inspections", params={"limit": 5, "page": 3}, headers=inspector_headers).json()
        assert last["count"] == 2

    def test_filters(self, client, db_session, inspector_headers, product, inspector):
        self._seed(db_session, product, inspector, 3)

        by_day = client.get("/api/inspections", params={"date": "2024-01-02"}, headers=inspector_headers).json()
        assert [i["batch_number"] for i in by_day["data"]] == ["B-001"]

        by_status = client.get("/api/inspections", params={"status": "failed"}, headers=inspector_headers).json()
        assert by_status["total"] == 0

        by_product = client.get(
            "/api/inspections", params={"product": str(product.id)}, headers=inspector_headers
        ).json()
        assert by_product["total"] == 3


class TestReadUpdateDelete:
    def test_get_includes_defects(self, client, db_session, inspector_headers, inspection):
        _add_defects(db_session, inspection, 2)
        response = client.get(f"/api/inspections/{inspection.id}", headers=inspector_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["inspection"]["batch_number"] == "B-001"
        assert len(data["defects"]) == 2

    def test_update(self, client, inspector_headers, inspection):
        response = client.put(
            f"/api/inspections/{inspection.id}",
            json={"notes": "Rechecked", "total_inspected": 200},
            headers=inspector_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["notes"] == "Rechecked"
        assert data["total_inspected"] == 200

    def test_delete_requires_manager(self, client, inspector_headers, manager_headers, inspection):
        assert client.delete(f"/api/inspections/{inspection.id}", headers=inspector_headers).status_code == 403
        assert client.delete(f"/api/inspections/{inspection.id}", headers=manager_headers).status_code == 200
        assert client.get(f"/api/inspections/{inspection.id}", headers=manager_headers).status_code == 404

    def test_upload_images(self, client, inspector_headers, inspection, png_bytes, storage):
        files = [("images", (f"img{i}.png", png_bytes, "image/png")) for i in range(2)]
        response = client.post(f"/api/inspections/{inspection.id}/images", files=files, headers=inspector_headers)
        assert response.status_code == 200
        images = response.json()["data"]["images"]
        assert len(images) == 2
        assert all(not image["defects_detected"] for image in images)
        assert len(storage.objects) == 2

    def test_upload_too_many_images(self, client, inspector_headers, inspection, png_bytes):
        files = [("images", (f"img{i}.png", png_bytes, "image/png")) for i in range(6)]
        response = client.post(f"/api/inspections/{inspection.id}/images", files=files, headers=inspector_headers)
        assert response.status_code == 400


class TestComplete:
    def test_clean_inspection_completes(self, client, db_session, inspector_headers, inspection):
        response = client.put(f"/api/inspections/{inspection.id}/complete", headers=inspector_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"
        assert db_session.query(Alert).count() == 0

    def test_defects_fail_inspection_and_raise_alerts(self, client, db_session, inspector_headers, inspection):
        _add_defects(db_session, inspection, 8)

        response = client.put(f"/api/inspections/{inspection.id}/complete", headers=inspector_headers)
        data = response.json()["data"]
        assert data["status"] == "failed"
        assert data["defects_found"] == 8
        assert data["defect_rate"] == 8.0

        db_session.expire_all()
        types = {alert.type for alert in db_session.query(Alert).all()}
        assert types == {AlertType.HIGH_DEFECT_RATE, AlertType.INSPECTION_FAILED}

    def test_rate_below_threshold(self, client, db_session, inspector_headers, inspection):
        _add_defects(db_session, inspection, 2)
        client.put(f"/api/inspections/{inspection.id}/complete", headers=inspector_headers)

        db_session.expire_all()
        types = [alert.type for alert in db_session.query(Alert).all()]
        assert types == [AlertType.INSPECTION_FAILED]
