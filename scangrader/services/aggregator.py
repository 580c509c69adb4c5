"""
Result aggregation onto StudentPaper records.

Results are appended and scores accumulated under the paper's own lock, so
grading different papers in parallel stays safe.
"""

import logging
from typing import Iterable

from ..models import GradingResult, PaperStatus, StudentPaper

logger = logging.getLogger(__name__)


class ResultAggregator:

    def record(self, paper: StudentPaper, results: Iterable[GradingResult]) -> None:
        with paper.lock:
            for result in results:
                paper.results.append(result)
                paper.total_score += result.score

    def mark_page_graded(self, paper: StudentPaper, page_index: int) -> None:
        """Note that every region of page_index was graded; close the paper when all pages are."""
        with paper.lock:
            paper.graded_pages.add(page_index)
            all_graded = all(p.page_index in paper.graded_pages for p in paper.pages)
            if all_graded and paper.status == PaperStatus.PROCESSING:
                paper.status = PaperStatus.DONE
                logger.info("Paper %s done: %s points over %d pages",
                            paper.identity.student_id, paper.total_score, paper.page_count)
