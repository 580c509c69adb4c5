"""
Grading Pipeline
================
Runs one scanned stack against one template.

Per page, strictly in scan order:
1. Session tracker decides which paper the page belongs to and its transform
2. Objective groups are scored one after another: choice, true/false, fill
3. Subjective questions are graded on the bounded worker pool
4. Results are aggregated onto the paper

Everything a run needs travels in a GradingRun context owned by the caller.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from ..config import OBJECTIVE_BATCH_SIZE, SUBJECTIVE_CONCURRENCY
from ..models import ObjectiveGroup, ObjectiveScoringSettings, PaperStatus, StudentPaper, Template
from .aggregator import ResultAggregator
from .anchor_detector import AnchorDetector
from .objective_batch import ObjectiveBatchScorer
from .ocr_client import OcrService
from .session_tracker import PageAssignment, SessionTracker
from .subjective_grading import SubjectiveGrader
from .transform import Transform

logger = logging.getLogger(__name__)

OBJECTIVE_GROUP_ORDER = (ObjectiveGroup.CHOICE, ObjectiveGroup.TRUE_FALSE, ObjectiveGroup.FILL)


@dataclass
class GradingRun:
    """Everything one grading run needs. Owned by the caller."""
    template: Template
    ocr_service: OcrService
    ai_client: object
    settings: ObjectiveScoringSettings = field(default_factory=ObjectiveScoringSettings)
    detector: AnchorDetector = field(default_factory=AnchorDetector)
    concurrency: int = SUBJECTIVE_CONCURRENCY
    batch_size: int = OBJECTIVE_BATCH_SIZE
    sleep: Callable[[float], None] = time.sleep
    on_paper_complete: Optional[Callable[[StudentPaper], None]] = None


class GradingPipeline:

    def __init__(self, run: GradingRun):
        self.run = run
        self.tracker = SessionTracker(run.template.anchor, run.detector)
        self.objective = ObjectiveBatchScorer(
            run.ocr_service,
            settings=run.settings,
            batch_size=run.batch_size,
            sleep=run.sleep,
        )
        self.subjective = SubjectiveGrader(
            run.ocr_service,
            run.ai_client,
            concurrency=run.concurrency,
            sleep=run.sleep,
        )
        self.aggregator = ResultAggregator()

    @property
    def papers(self) -> List[StudentPaper]:
        return self.tracker.papers

    def process_page(self, image, source_index: int) -> PageAssignment:
        assignment = self.tracker.consume(image, source_index)
        if assignment.closed_paper is not None:
            self._emit(assignment.closed_paper)

        paper = assignment.paper
        if paper.status == PaperStatus.ERROR:
            logger.warning("Skipping grading of page %d: paper %s is in error (%s)",
                           source_index, paper.identity.student_id, paper.error_message)
        else:
            self.grade_page(paper, image, assignment.template_page_index, assignment.transform)
        return assignment

    def grade_page(self, paper: StudentPaper, image, template_page_index: int, transform: Transform) -> None:
        regions = self.run.template.regions_for_page(template_page_index)
        prefix = f"{paper.identity.student_id}_p{template_page_index}"
        logger.info("Grading %s template page %d (%d regions)",
                    paper.identity.student_id, template_page_index, len(regions))

        for group in OBJECTIVE_GROUP_ORDER:
            results = self.objective.score_group(image, regions, transform, group, file_prefix=prefix)
            self.aggregator.record(paper, results)

        self.aggregator.record(paper, self.subjective.grade_page(image, regions, transform, file_prefix=prefix))
        self.aggregator.mark_page_graded(paper, template_page_index)

    def finish(self) -> List[StudentPaper]:
        """Stream exhausted: close the last paper and return all papers in scan order."""
        last = self.tracker.finish()
        if last is not None:
            self._emit(last)
        return list(self.tracker.papers)

    def run_pages(
        self,
        pages: Iterable,
        should_stop: Optional[Callable[[], bool]] = None,
        on_page: Optional[Callable[[int, PageAssignment], None]] = None,
    ) -> List[StudentPaper]:
        """Grade a whole stack. should_stop is checked before each page.

        The open paper is finished even when reading or grading a page raises;
        the exception still propagates.
        """
        try:
            for source_index, image in enumerate(pages, start=1):
                if should_stop is not None and should_stop():
                    logger.info("Stop requested before page %d", source_index)
                    break
                assignment = self.process_page(image, source_index)
                if on_page is not None:
                    on_page(source_index, assignment)
        finally:
            papers = self.finish()
        return papers

    def _emit(self, paper: StudentPaper) -> None:
        if self.run.on_paper_complete is not None:
            self.run.on_paper_complete(paper)
