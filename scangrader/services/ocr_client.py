"""
OCR Service Adapters
====================
OCR is consumed as an asynchronous job API:

    submit(image_base64, scene) -> task_id
    poll(task_id)               -> OcrResult(status, text)

recognize() drives one job to completion with a bounded number of polls at a
fixed interval. It never raises: a failed submit, a failed poll, an "error"
status or running out of attempts all come back as an OcrResult with empty
text, so callers can keep scoring.

Adapters:
- HttpOcrService: the OCR gateway's REST endpoints (/api/ocr/upload, status, result)
- TesseractOcrService: local pytesseract, finishes at submit time
"""

import base64
import io
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

import pytesseract  # type: ignore
import requests
from PIL import Image

from ..config import OCR_REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


class OcrStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    ERROR = "error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class OcrResult:
    status: OcrStatus
    text: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == OcrStatus.DONE


class OcrService:
    """Interface for OCR job backends."""

    def submit(self, image_base64: str, scene: str, file_name: str = "page.jpg") -> str:
        raise NotImplementedError

    def poll(self, task_id: str) -> OcrResult:
        raise NotImplementedError


class HttpOcrService(OcrService):
    """Client for the OCR gateway job API."""

    # Gateway statuses that mean "keep waiting"
    PENDING_STATUSES = {"queued", "processing", "pending"}

    def __init__(self, base_url: str, token: str = "", timeout: float = 30.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def submit(self, image_base64: str, scene: str, file_name: str = "page.jpg") -> str:
        resp = self.session.post(
            f"{self.base_url}/api/ocr/upload",
            json={"fileName": file_name, "contentBase64": image_base64, "scene": scene},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        task_id = resp.json().get("taskId")
        if not task_id:
            raise ValueError("OCR upload response has no taskId")
        return str(task_id)

    def poll(self, task_id: str) -> OcrResult:
        resp = self.session.get(f"{self.base_url}/api/ocr/status/{task_id}", timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        status = str(data.get("status") or "").lower()

        if status == "done":
            result = self.session.get(f"{self.base_url}/api/ocr/result/{task_id}", timeout=self.timeout)
            result.raise_for_status()
            return OcrResult(status=OcrStatus.DONE, text=result.json().get("result") or "")
        if status == "error":
            return OcrResult(status=OcrStatus.ERROR, error=data.get("error") or "OCR task failed")
        if status not in self.PENDING_STATUSES:
            logger.debug("Unknown OCR status %r for task %s, treating as pending", status, task_id)
        return OcrResult(status=OcrStatus.PENDING)


class TesseractOcrService(OcrService):
    """Local OCR with pytesseract. Jobs complete inside submit()."""

    def __init__(self, lang: str = "eng"):
        self.lang = lang
        self._results: Dict[str, OcrResult] = {}

    def submit(self, image_base64: str, scene: str, file_name: str = "page.jpg") -> str:
        img = Image.open(io.BytesIO(base64.b64decode(image_base64)))
        # "lens" crops hold a single answer, "doc" sheets hold many lines
        config = "--psm 6" if scene == "lens" else "--psm 4"
        text = pytesseract.image_to_string(img, lang=self.lang, config=config)

        task_id = uuid.uuid4().hex
        self._results[task_id] = OcrResult(status=OcrStatus.DONE, text=text.strip())
        return task_id

    def poll(self, task_id: str) -> OcrResult:
        return self._results.pop(task_id, OcrResult(status=OcrStatus.ERROR, error="unknown task"))


def recognize(
    service: OcrService,
    image_base64: str,
    scene: str,
    attempts: int,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
    file_name: str = "page.jpg",
) -> OcrResult:
    """Submit one OCR job and poll it until done, failed, or out of attempts."""
    try:
        task_id = service.submit(image_base64, scene, file_name=file_name)
    except Exception as e:
        logger.warning("OCR submit failed: %s", e)
        return OcrResult(status=OcrStatus.ERROR, error=str(e))

    for _ in range(attempts):
        sleep(interval)
        try:
            result = service.poll(task_id)
        except Exception as e:
            logger.warning("OCR poll failed for task %s: %s", task_id, e)
            return OcrResult(status=OcrStatus.ERROR, error=str(e))

        if result.status == OcrStatus.DONE:
            return OcrResult(status=OcrStatus.DONE, text=result.text or "")
        if result.status == OcrStatus.ERROR:
            logger.warning("OCR task %s failed: %s", task_id, result.error)
            return OcrResult(status=OcrStatus.ERROR, error=result.error)

    logger.warning("OCR task %s not done after %d polls", task_id, attempts)
    return OcrResult(status=OcrStatus.TIMEOUT)


def build_ocr_service(cfg) -> OcrService:
    """Pick the OCR backend named in the config."""
    if cfg.ocr_engine == "tesseract":
        return TesseractOcrService()
    return HttpOcrService(cfg.ocr_service_url, token=cfg.ocr_api_token, timeout=OCR_REQUEST_TIMEOUT)
