"""
Batched Objective Scoring
=========================
Objective answers are short (a letter, T/F, a number), so instead of one OCR
request per question every region of one group on one page is cropped,
tagged "Q<n>:" and stitched into a single sheet. One OCR call reads the
sheet, and each recognized line is matched back to its question by tag.

Groups are scored in chunks of at most OBJECTIVE_BATCH_SIZE regions to keep
the OCR request small.
"""

import logging
import re
import time
from typing import Callable, Iterable, List, Optional

from ..config import OBJECTIVE_BATCH_SIZE, OBJECTIVE_OCR_ATTEMPTS, OBJECTIVE_OCR_INTERVAL
from ..models import (
    GradingResult,
    OBJECTIVE_GROUP_TYPES,
    ObjectiveGroup,
    ObjectiveScoringSettings,
    Point,
    QuestionRegion,
)
from .image_ops import crop, encode_jpeg_base64, stitch_tagged
from .objective_scoring import score_objective
from .ocr_client import OcrService, recognize
from .transform import Transform

logger = logging.getLogger(__name__)

UNRECOGNIZED = "(unrecognized)"
FEEDBACK_CORRECT = "Objective scoring: correct"
FEEDBACK_WRONG = "Objective scoring: incorrect or unrecognized"
SCORE_MARK_INSET = 40
STITCH_JPEG_QUALITY = 82


def question_tag(region: QuestionRegion) -> str:
    """Short machine tag printed next to each crop, e.g. "第12题" -> "Q12"."""
    digits = re.sub(r'[^0-9]', '', region.label or "") or region.id[:6]
    return f"Q{digits}"


def extract_tagged_answer(lines: List[str], tag: str) -> Optional[str]:
    """Return the text after tag on the first line that carries it."""
    tag_re = re.compile(rf'\b{re.escape(tag)}\b\s*[:：]?\s*(.*)$', re.IGNORECASE)
    for line in lines:
        match = tag_re.search(line)
        if match:
            return match.group(1).strip()
    return None


def score_mark_position(region: QuestionRegion, transform: Transform) -> Point:
    """Where the tick/cross goes: the region's own mark, else inside its bottom-right corner.

    Each axis falls back on its own.
    """
    rect = region.rect
    x = region.score_x if region.score_x is not None else rect.x + rect.w - SCORE_MARK_INSET
    y = region.score_y if region.score_y is not None else rect.y + rect.h - SCORE_MARK_INSET
    return transform.apply_point(x, y)


def split_lines(text: str) -> List[str]:
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def group_regions(regions: Iterable[QuestionRegion], group: ObjectiveGroup) -> List[QuestionRegion]:
    types = OBJECTIVE_GROUP_TYPES[ObjectiveGroup(group)]
    return [r for r in regions if r.type in types and r.rect.is_mapped]


def score_from_text(
    regions: List[QuestionRegion],
    ocr_text: str,
    transform: Transform,
    settings: ObjectiveScoringSettings,
) -> List[GradingResult]:
    """Match OCR lines back to regions and score them."""
    lines = split_lines(ocr_text)
    results = []
    for region in regions:
        extracted = extract_tagged_answer(lines, question_tag(region)) or ""
        score = score_objective(region, extracted, settings)
        results.append(GradingResult(
            question_id=region.id,
            label=region.label,
            extracted_answer=extracted or UNRECOGNIZED,
            score=score,
            feedback=FEEDBACK_CORRECT if score > 0 else FEEDBACK_WRONG,
            region=transform.apply_rect(region.rect),
            score_mark=score_mark_position(region, transform),
        ))
    return results


class ObjectiveBatchScorer:
    """Scores one objective group on one page with batched OCR calls."""

    def __init__(
        self,
        ocr_service: OcrService,
        settings: Optional[ObjectiveScoringSettings] = None,
        batch_size: int = OBJECTIVE_BATCH_SIZE,
        ocr_attempts: int = OBJECTIVE_OCR_ATTEMPTS,
        ocr_interval: float = OBJECTIVE_OCR_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ocr_service = ocr_service
        self.settings = settings or ObjectiveScoringSettings()
        self.batch_size = max(1, int(batch_size))
        self.ocr_attempts = ocr_attempts
        self.ocr_interval = ocr_interval
        self.sleep = sleep

    def score_group(
        self,
        image,
        regions: Iterable[QuestionRegion],
        transform: Transform,
        group: ObjectiveGroup,
        file_prefix: str = "batch",
    ) -> List[GradingResult]:
        group = ObjectiveGroup(group)
        selected = group_regions(regions, group)
        if not selected:
            return []

        results: List[GradingResult] = []
        for start in range(0, len(selected), self.batch_size):
            chunk = selected[start:start + self.batch_size]
            results.extend(self._score_chunk(image, chunk, transform, f"{file_prefix}_{group.value}_{start}"))
        return results

    def _score_chunk(self, image, chunk: List[QuestionRegion], transform: Transform, name: str) -> List[GradingResult]:
        crops = [(question_tag(r), crop(image, transform.apply_rect(r.rect))) for r in chunk]
        sheet = stitch_tagged(crops)

        ocr = recognize(
            self.ocr_service,
            encode_jpeg_base64(sheet, quality=STITCH_JPEG_QUALITY),
            scene="doc",
            attempts=self.ocr_attempts,
            interval=self.ocr_interval,
            sleep=self.sleep,
            file_name=f"{name}.jpg",
        )
        if not ocr.ok:
            logger.info("No OCR text for %s (%s), %d answers unrecognized", name, ocr.status.value, len(chunk))

        return score_from_text(chunk, ocr.text, transform, self.settings)

