"""
Test: OCR job polling and the HTTP gateway adapter.
"""
import pytest

from scangrader.services.ocr_client import HttpOcrService, OcrResult, OcrService, OcrStatus, recognize


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")


class FakeSession:
    """requests.Session stand-in serving scripted status replies."""

    def __init__(self, statuses, result="Q1: A", task_id="t-1"):
        self.headers = {}
        self.statuses = list(statuses)
        self.result = result
        self.task_id = task_id
        self.requests = []

    def post(self, url, json=None, timeout=None):
        self.requests.append(("POST", url, json))
        return FakeResponse({"taskId": self.task_id})

    def get(self, url, timeout=None):
        self.requests.append(("GET", url, None))
        if "/status/" in url:
            return FakeResponse(self.statuses.pop(0))
        return FakeResponse({"result": self.result})


class ExplodingPoll(OcrService):
    def submit(self, image_base64, scene, file_name="page.jpg"):
        return "t"

    def poll(self, task_id):
        raise TimeoutError("read timed out")


class TestRecognize:
    def test_done_after_pending(self, fake_ocr_cls, no_sleep):
        result = recognize(fake_ocr_cls(default="hello", pending_polls=2), "b64", "lens", 15, 0.6, sleep=no_sleep)
        assert result.ok
        assert result.text == "hello"
        assert no_sleep.calls == [0.6, 0.6, 0.6]

    def test_timeout(self, fake_ocr_cls, no_sleep):
        result = recognize(fake_ocr_cls(default="hello", pending_polls=99), "b64", "doc", 20, 0.8, sleep=no_sleep)
        assert result.status == OcrStatus.TIMEOUT
        assert result.text == ""
        assert len(no_sleep.calls) == 20

    def test_error_status(self, fake_ocr_cls, no_sleep):
        result = recognize(fake_ocr_cls(fail_status=True), "b64", "doc", 5, 0.8, sleep=no_sleep)
        assert result.status == OcrStatus.ERROR
        assert result.error == "recognition failed"

    def test_submit_failure_does_not_raise(self, fake_ocr_cls, no_sleep):
        result = recognize(fake_ocr_cls(fail_submit=True), "b64", "doc", 5, 0.8, sleep=no_sleep)
        assert result.status == OcrStatus.ERROR
        assert not result.ok
        assert no_sleep.calls == []

    def test_poll_failure_does_not_raise(self, no_sleep):
        result = recognize(ExplodingPoll(), "b64", "doc", 5, 0.8, sleep=no_sleep)
        assert result.status == OcrStatus.ERROR
        assert "timed out" in result.error


class TestHttpOcrService:
    def test_upload_payload_and_auth(self):
        session = FakeSession([])
        service = HttpOcrService("http://ocr.local/", token="secret", session=session)
        assert service.submit("abc", "doc", file_name="sheet.jpg") == "t-1"
        method, url, body = session.requests[0]
        assert (method, url) == ("POST", "http://ocr.local/api/ocr/upload")
        assert body == {"fileName": "sheet.jpg", "contentBase64": "abc", "scene": "doc"}
        assert session.headers["Authorization"] == "Bearer secret"

    def test_missing_task_id_raises(self):
        session = FakeSession([], task_id="")
        with pytest.raises(ValueError):
            HttpOcrService("http://ocr.local", session=session).submit("abc", "doc")

    @pytest.mark.parametrize("status", ["queued", "processing", "pending", "something-new"])
    def test_waiting_statuses(self, status):
        service = HttpOcrService("http://ocr.local", session=FakeSession([{"status": status}]))
        assert service.poll("t-1").status == OcrStatus.PENDING

    def test_done_fetches_result(self):
        session = FakeSession([{"status": "done"}], result="Q1: B")
        result = HttpOcrService("http://ocr.local", session=session).poll("t-1")
        assert result == OcrResult(status=OcrStatus.DONE, text="Q1: B")
        assert session.requests[-1][1] == "http://ocr.local/api/ocr/result/t-1"

    def test_error_status(self):
        session = FakeSession([{"status": "error", "error": "bad image"}])
        result = HttpOcrService("http://ocr.local", session=session).poll("t-1")
        assert result.status == OcrStatus.ERROR
        assert result.error == "bad image"

    def test_end_to_end_with_recognize(self, no_sleep):
        session = FakeSession([{"status": "queued"}, {"status": "done"}], result="Q1: C")
        result = recognize(HttpOcrService("http://ocr.local", session=session), "abc", "doc", 20, 0.8, sleep=no_sleep)
        assert result.text == "Q1: C"


class TestTesseractOcrService:
    def test_job_done_at_submit(self, blank_page, monkeypatch):
        from scangrader.services import ocr_client
        from scangrader.services.image_ops import encode_jpeg_base64

        seen = {}

        def fake_image_to_string(img, lang, config):
            seen.update(lang=lang, config=config, size=img.size)
            return "  Q1: A\n"
        monkeypatch.setattr(ocr_client.pytesseract, "image_to_string", fake_image_to_string)

        service = ocr_client.TesseractOcrService()
        task_id = service.submit(encode_jpeg_base64(blank_page), "lens")
        assert service.poll(task_id) == OcrResult(status=OcrStatus.DONE, text="Q1: A")
        assert seen == {"lang": "eng", "config": "--psm 6", "size": (600, 800)}
        assert service.poll(task_id).status == OcrStatus.ERROR


class TestBuildOcrService:
    def test_engines(self):
        from scangrader.config import Config
        from scangrader.services.ocr_client import TesseractOcrService, build_ocr_service

        cfg = Config()
        cfg.update({"ocr_engine": "tesseract"})
        assert isinstance(build_ocr_service(cfg), TesseractOcrService)
        cfg.update({"ocr_engine": "http", "ocr_service_url": "http://ocr.local/", "ocr_api_token": ""})
        service = build_ocr_service(cfg)
        assert isinstance(service, HttpOcrService)
        assert service.base_url == "http://ocr.local"
