"""
Integration tests for /api/ai.
"""

from qc_dashboard.db.models import Alert, Defect, Inspection
from qc_dashboard.models.enums import AlertType, DefectSeverity, DetectionSource


def _image(png_bytes, name="part.png"):
    return {"image": (name, png_bytes, "image/png")}


class TestDetect:
    def test_detect_without_inspection(self, client, inspector_headers, png_bytes, storage, detector):
        response = client.post("/api/ai/detect", files=_image(png_bytes), headers=inspector_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["detection"]["has_defect"] is False
        assert data["detection"]["defect_type"] == "good"
        assert data["detection"]["confidence"] == 91
        assert data["model_used"] == "cnn"
        assert data["image_url"] is None
        assert data["defect_id"] is None
        assert storage.objects == {}
        assert detector.calls == 1

    def test_clean_image_stored_on_inspection(self, client, db_session, inspector_headers, inspection, png_bytes):
        response = client.post(
            "/api/ai/detect",
            files=_image(png_bytes),
            data={"inspection_id": str(inspection.id)},
            headers=inspector_headers,
        )
        data = response.json()["data"]
        assert data["image_url"].startswith("https://images.test/ai-detection/")
        assert data["defect_id"] is None

        db_session.expire_all()
        stored = db_session.get(Inspection, inspection.id)
        assert len(stored.images) == 1
        assert stored.images[0].defects_detected is False
        assert db_session.query(Defect).count() == 0

    def test_detected_defect_is_recorded(self, client, db_session, inspector_headers, inspection, png_bytes, detector):
        detector.report_defect("major_defect", 85)

        response = client.post(
            "/api/ai/detect",
            files=_image(png_bytes),
            data={"inspection_id": str(inspection.id)},
            headers=inspector_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["detection"]["has_defect"] is True
        assert data["defect_id"] is not None

        db_session.expire_all()
        defect = db_session.query(Defect).one()
        assert str(defect.id) == data["defect_id"]
        assert defect.detected_by == DetectionSource.AI
        assert defect.severity == DefectSeverity.CRITICAL
        assert defect.ai_confidence == 85
        assert defect.description == "AI detected major_defect defect"
        assert defect.image_url == data["image_url"]
        assert db_session.get(Inspection, inspection.id).defects_found == 1
        assert [a.type for a in db_session.query(Alert).all()] == [AlertType.CRITICAL_DEFECT]

    def test_storage_failure_still_returns_detection(self, client, inspector_headers, inspection, png_bytes, storage, detector):
        storage.fail_uploads = True
        detector.report_defect("minor_defect", 65)

        response = client.post(
            "/api/ai/detect",
            files=_image(png_bytes),
            data={"inspection_id": str(inspection.id)},
            headers=inspector_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["image_url"] is None
        assert data["defect_id"] is not None
        assert data["message"] == "Image upload failed - AI detection completed successfully"

    def test_model_unavailable(self, client, inspector_headers, png_bytes, detector):
        detector.available = False
        response = client.post("/api/ai/detect", files=_image(png_bytes), headers=inspector_headers)
        assert response.status_code == 503

    def test_no_image(self, client, inspector_headers):
        response = client.post("/api/ai/detect", headers=inspector_headers)
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No image file provided"

    def test_wrong_file_type(self, client, inspector_headers):
        response = client.post(
            "/api/ai/detect", files={"image": ("doc.pdf", b"%PDF", "application/pdf")}, headers=inspector_headers
        )
        assert response.status_code == 400

    def test_unknown_inspection(self, client, inspector_headers, png_bytes):
        response = client.post(
            "/api/ai/detect",
            files=_image(png_bytes),
            data={"inspection_id": "00000000-0000-0000-0000-000000000000"},
            headers=inspector_headers,
        )
        assert response.status_code == 404

    def test_requires_auth(self, client, png_bytes):
        assert client.post("/api/ai/detect", files=_image(png_bytes)).status_code == 401


class TestBulkAnalyze:
    def test_bulk(self, client, db_session, inspector_headers, inspection, png_bytes, detector):
        detector.report_defect("major_defect", 75)
        files = [("images", (f"img{i}.png", png_bytes, "image/png")) for i in range(3)]
        files.append(("images", ("bad.txt", b"text", "text/plain")))

        response = client.post(
            "/api/ai/bulk-analyze",
            files=files,
            data={"inspection_id": str(inspection.id)},
            headers=inspector_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["processed"] == 3
        assert data["defects_found"] == 3
        assert data["results"][-1]["error"]
        assert data["results"][-1]["detection"] is None

        db_session.expire_all()
        assert db_session.get(Inspection, inspection.id).defects_found == 3
        assert all(d.severity == DefectSeverity.MAJOR for d in db_session.query(Defect).all())

    def test_too_many_images(self, client, inspector_headers, inspection, png_bytes):
        files = [("images", (f"img{i}.png", png_bytes, "image/png")) for i in range(11)]
        response = client.post(
            "/api/ai/bulk-analyze",
            files=files,
            data={"inspection_id": str(inspection.id)},
            headers=inspector_headers,
        )
        assert response.status_code == 400

    def test_model_unavailable(self, client, inspector_headers, inspection, png_bytes, detector):
        detector.available = False
        response = client.post(
            "/api/ai/bulk-analyze",
            files=[("images", ("a.png", png_bytes, "image/png"))],
            data={"inspection_id": str(inspection.id)},
            headers=inspector_headers,
        )
        assert response.status_code == 503


class TestStatusAndStats:
    def test_model_status_is_public(self, client):
        response = client.get("/api/ai/model-status")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["model_loaded"] is True
        assert data["status"] == "ready"
        assert data["classes"] == ["good", "minor_defect", "major_defect"]

    def test_model_status_unavailable(self, client, detector):
        detector.available = False
        data = client.get("/api/ai/model-status").json()["data"]
        assert data["model_loaded"] is False
        assert data["status"] == "unavailable"
        assert data["message"] == "No classifier weights configured"

    def test_stats_and_latest(self, client, inspector_headers, inspection, png_bytes, detector):
        empty = client.get("/api/ai/data").json()["data"]
        assert empty["id"] is None

        detector.report_defect("major_defect", 82)
        client.post(
            "/api/ai/detect",
            files=_image(png_bytes),
            data={"inspection_id": str(inspection.id)},
            headers=inspector_headers,
        )

        stats = client.get("/api/ai/stats", headers=inspector_headers).json()["data"]
        assert stats["total_detections"] == 1
        assert stats["confidence_stats"]["max_confidence"] == 82.0
        assert stats["defects_by_type"] == [{"type": "visual", "count": 1}]
        assert len(stats["detections_by_day"]) == 1

        latest = client.get("/api/ai/data").json()["data"]
        assert latest["batch"] == "B-001"
        assert latest["product_name"] == "Widget A"
        assert latest["severity"] == "critical"
        assert latest["inspector"] == "inspector"
        assert latest["confidence"] == 82.0
