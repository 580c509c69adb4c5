"""
Subjective Question Grading
===========================
Each free-response region is cropped, OCR'd (best effort) and sent to the AI
grader together with its rubric. Questions run on a fixed-size thread pool so
only a few AI calls are in flight at once; the pool is drained before the
page counts as graded.

A failure in one question never affects its siblings: it is recorded as
score 0 with the error in the feedback.
"""

import concurrent.futures
import logging
import time
from typing import Callable, Iterable, List

from ..config import SUBJECTIVE_CONCURRENCY, SUBJECTIVE_OCR_ATTEMPTS, SUBJECTIVE_OCR_INTERVAL
from ..models import GradingResult, QuestionRegion, QuestionType
from .image_ops import crop, encode_jpeg_base64
from .objective_batch import score_mark_position
from .ocr_client import OcrService, recognize
from .transform import Transform

logger = logging.getLogger(__name__)

CROP_JPEG_QUALITY = 85


def question_text_for(region: QuestionRegion) -> str:
    if region.rubric_text:
        return f"{region.label} (Grading criteria: {region.rubric_text})"
    return region.label


class SubjectiveGrader:
    """Grades free-response regions with OCR + AI under bounded concurrency."""

    def __init__(
        self,
        ocr_service: OcrService,
        ai_client,
        concurrency: int = SUBJECTIVE_CONCURRENCY,
        ocr_attempts: int = SUBJECTIVE_OCR_ATTEMPTS,
        ocr_interval: float = SUBJECTIVE_OCR_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ocr_service = ocr_service
        self.ai_client = ai_client
        self.concurrency = max(1, int(concurrency))
        self.ocr_attempts = ocr_attempts
        self.ocr_interval = ocr_interval
        self.sleep = sleep

    def grade_page(self, image, regions: Iterable[QuestionRegion], transform: Transform,
                   file_prefix: str = "q") -> List[GradingResult]:
        """Grade every mapped subjective region; results keep region order."""
        selected = [r for r in regions if r.type == QuestionType.SUBJECTIVE and r.rect.is_mapped]
        if not selected:
            return []

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.concurrency,
                                                   thread_name_prefix="subjective") as executor:
            futures = [
                executor.submit(self.grade_question, image, region, transform, f"{file_prefix}_{region.id}")
                for region in selected
            ]
            concurrent.futures.wait(futures)

        return [f.result() for f in futures]

    def grade_question(self, image, region: QuestionRegion, transform: Transform,
                       name: str = "question") -> GradingResult:
        page_rect = transform.apply_rect(region.rect)
        score = 0
        student_answer = ""

        try:
            crop_b64 = encode_jpeg_base64(crop(image, page_rect), quality=CROP_JPEG_QUALITY)

            ocr = recognize(
                self.ocr_service,
                crop_b64,
                scene="lens",
                attempts=self.ocr_attempts,
                interval=self.ocr_interval,
                sleep=self.sleep,
                file_name=f"{name}.jpg",
            )
            ocr_text = ocr.text.strip()
            if not ocr.ok:
                logger.info("OCR gave no text for %s (%s), grading from image only", region.label, ocr.status.value)
            student_answer = ocr_text

            graded = self.ai_client.grade(
                image_base64=crop_b64,
                question_text=question_text_for(region),
                expected_answer=region.expected_answer,
                max_points=region.max_points,
                ocr_text=ocr_text,
            )
            score = graded.score
            feedback = graded.feedback
            if graded.student_answer and len(graded.student_answer) > len(ocr_text):
                student_answer = graded.student_answer
        except Exception as e:
            logger.error("Grading failed for %s: %s", region.label, e)
            score = 0
            feedback = f"Grading failed: {e}"

        return GradingResult(
            question_id=region.id,
            label=region.label,
            extracted_answer=student_answer,
            score=score,
            feedback=feedback,
            region=page_rect,
            score_mark=score_mark_position(region, transform),
        )
