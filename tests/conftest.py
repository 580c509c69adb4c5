"""
Shared test fixtures for scangrader.
Fake OCR service, fake AI client and fake QR scanner stand in for every
external call, and sleeps are zero-delay.
Zero network calls: all page images are blank numpy arrays.
"""
import threading
import time

import numpy as np
import pytest

from scangrader.models import QuestionRegion, QuestionType, Rect, Template
from scangrader.services.ai_grading import AIGradingError, GradeResult
from scangrader.services.ocr_client import OcrResult, OcrService, OcrStatus

PAGE_W = 600
PAGE_H = 800


class FakeOcrService(OcrService):
    """Scripted OCR jobs.

    responder(scene, file_name) -> text decides what each job returns;
    without one, jobs return `texts` in submit order, then `default`.
    Each job stays pending for `pending_polls` polls before finishing.
    """

    def __init__(self, texts=None, default="", responder=None, pending_polls=0,
                 fail_status=False, fail_submit=False):
        self.texts = list(texts or [])
        self.default = default
        self.responder = responder
        self.pending_polls = pending_polls
        self.fail_status = fail_status
        self.fail_submit = fail_submit
        self.submissions = []
        self.polls = 0
        self._jobs = {}
        self._lock = threading.Lock()

    def submit(self, image_base64, scene, file_name="page.jpg"):
        if self.fail_submit:
            raise ConnectionError("OCR gateway unreachable")
        with self._lock:
            task_id = f"task-{len(self.submissions)}"
            self.submissions.append({"scene": scene, "file_name": file_name, "image": image_base64})
            if self.responder is not None:
                text = self.responder(scene, file_name)
            elif self.texts:
                text = self.texts.pop(0)
            else:
                text = self.default
            self._jobs[task_id] = [self.pending_polls, text]
        return task_id

    def poll(self, task_id):
        with self._lock:
            self.polls += 1
            job = self._jobs[task_id]
            if job[0] > 0:
                job[0] -= 1
                return OcrResult(status=OcrStatus.PENDING)
        if self.fail_status:
            return OcrResult(status=OcrStatus.ERROR, error="recognition failed")
        return OcrResult(status=OcrStatus.DONE, text=job[1])


class FakeAIClient:
    """Records grade() calls; tracks how many run at once."""

    def __init__(self, score=1, feedback="Looks good", student_answer=None, fail_on=(), delay=0.0):
        self.score = score
        self.feedback = feedback
        self.student_answer = student_answer
        self.fail_on = tuple(fail_on)
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def grade(self, image_base64, question_text, expected_answer, max_points, ocr_text=""):
        with self._lock:
            self.calls.append({
                "question_text": question_text,
                "expected_answer": expected_answer,
                "max_points": max_points,
                "ocr_text": ocr_text,
            })
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            for marker in self.fail_on:
                if marker in question_text:
                    raise AIGradingError("model unavailable")
            return GradeResult(
                score=min(self.score, max_points),
                feedback=self.feedback,
                student_answer=self.student_answer,
            )
        finally:
            with self._lock:
                self.active -= 1


class FakeScanner:
    """QR scanner returning one scripted result per scanned page."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = 0

    def __call__(self, image):
        self.calls += 1
        if not self.results:
            return None
        return self.results.pop(0)


def qr_at(x, y, size, payload=""):
    """Scanner result for a square QR code at (x, y), corners clockwise."""
    corners = [[x, y], [x + size, y], [x + size, y + size], [x, y + size]]
    return payload, np.array([corners], dtype=np.float32)


@pytest.fixture
def blank_page():
    """White BGR page image."""
    return np.full((PAGE_H, PAGE_W, 3), 255, dtype=np.uint8)


@pytest.fixture
def make_region():
    """Factory for QuestionRegion with sensible defaults."""
    def _make(qid="q1", label="Q1", qtype=QuestionType.SINGLE_CHOICE, rect=None, page=1,
              expected="A", max_points=5, rubric=None, score_x=None, score_y=None):
        return QuestionRegion(
            id=qid,
            label=label,
            type=QuestionType(qtype),
            rect=rect or Rect(100, 200, 150, 60),
            page=page,
            expected_answer=expected,
            max_points=max_points,
            rubric_text=rubric,
            score_x=score_x,
            score_y=score_y,
        )
    return _make


@pytest.fixture
def template_anchor():
    return Rect(20, 20, 100, 100)


@pytest.fixture
def make_template(template_anchor):
    def _make(regions, anchor=template_anchor):
        return Template(regions=list(regions), anchor=anchor)
    return _make


@pytest.fixture
def no_sleep():
    """Sleep stand-in that records requested delays without waiting."""
    calls = []

    def _sleep(seconds):
        calls.append(seconds)
    _sleep.calls = calls
    return _sleep


@pytest.fixture
def fake_ocr_cls():
    return FakeOcrService


@pytest.fixture
def fake_ai_cls():
    return FakeAIClient


@pytest.fixture
def fake_scanner_cls():
    return FakeScanner


@pytest.fixture
def qr():
    return qr_at
