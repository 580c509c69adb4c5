"""
Test: Grading API routes via the Flask test client.
"""
import io
import json

import cv2
import pytest

from scangrader.app import create_app
from scangrader.routes import grading_routes
from scangrader.services.anchor_detector import AnchorDetector

TEMPLATE = {
    "anchor": {"x": 20, "y": 20, "w": 100, "h": 100},
    "questions": [
        {"id": "q1", "label": "Q1", "type": "single_choice", "x": 100, "y": 200, "w": 150, "h": 60,
         "correctAnswer": "A", "maxPoints": 5},
    ],
}


@pytest.fixture
def client(fake_ocr_cls, fake_ai_cls, fake_scanner_cls, qr):
    grading_routes.reset_state()
    app = create_app(
        ocr_service=fake_ocr_cls(default="Q1: A"),
        ai_client=fake_ai_cls(),
        detector=AnchorDetector(scanner=fake_scanner_cls([qr(20, 20, 100, "S-7")])),
    )
    app.config["TESTING"] = True
    yield app.test_client()
    grading_routes.init_grading_routes()
    grading_routes.reset_state()


@pytest.fixture
def scan_png(blank_page):
    ok, buf = cv2.imencode(".png", blank_page)
    assert ok
    return buf.tobytes()


def _upload(client, scan_png, **form):
    data = {
        "template": (io.BytesIO(json.dumps(TEMPLATE).encode("utf-8")), "exam.json"),
        "scans": (io.BytesIO(scan_png), "scan.png"),
    }
    data.update(form)
    return client.post("/api/grading/start", data=data, content_type="multipart/form-data")


class TestStartGrading:
    def test_full_run(self, client, scan_png):
        resp = _upload(client, scan_png)
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "started", "total_pages": 1}

        grading_routes.grading_thread.join(timeout=30)
        status = client.get("/api/grading/status").get_json()
        assert status["complete"] is True
        assert status["is_running"] is False
        assert status["error"] is None
        assert status["progress"] == 1
        paper = status["papers"][0]
        assert paper["student_id"] == "S-7"
        assert paper["status"] == "done"
        assert paper["total_score"] == 5

    def test_already_running(self, client, scan_png):
        grading_routes.grading_state["is_running"] = True
        assert _upload(client, scan_png).status_code == 409

    def test_missing_files(self, client):
        resp = client.post("/api/grading/start", data={}, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_bad_template(self, client, scan_png):
        data = {
            "template": (io.BytesIO(b"{oops"), "exam.json"),
            "scans": (io.BytesIO(scan_png), "scan.png"),
        }
        resp = client.post("/api/grading/start", data=data, content_type="multipart/form-data")
        assert resp.status_code == 400
        assert "Invalid template" in resp.get_json()["error"]

    def test_bad_multi_choice_mode(self, client, scan_png):
        assert _upload(client, scan_png, multiChoiceMode="most_of_it").status_code == 400

    def test_unsupported_scan_type(self, client):
        data = {
            "template": (io.BytesIO(json.dumps(TEMPLATE).encode("utf-8")), "exam.json"),
            "scans": (io.BytesIO(b"hello"), "scan.txt"),
        }
        resp = client.post("/api/grading/start", data=data, content_type="multipart/form-data")
        assert resp.status_code == 400


class TestStopAndStatus:
    def test_stop_when_idle(self, client):
        assert client.post("/api/grading/stop").get_json()["stopped"] is False

    def test_stop_when_running(self, client):
        grading_routes.grading_state["is_running"] = True
        assert client.post("/api/grading/stop").get_json()["stopped"] is True
        assert grading_routes.grading_state["stop_requested"] is True

    def test_idle_status(self, client):
        status = client.get("/api/grading/status").get_json()
        assert status["papers"] == []
        assert status["complete"] is False


class TestValidateTemplate:
    def test_valid(self, client):
        resp = client.post("/api/templates/validate", data=json.dumps(TEMPLATE), content_type="application/json")
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["valid"] is True
        assert body["template"]["questions"][0]["correctAnswer"] == "A"

    def test_invalid(self, client):
        resp = client.post("/api/templates/validate", data="[{\"type\": \"essay\"}]",
                           content_type="application/json")
        assert resp.status_code == 400
        assert resp.get_json()["valid"] is False
