"""
Multi-page session tracking.

Scanned stacks hold many students, each possibly with several pages. Only a
student's first page carries a readable identity QR code, so pages are
grouped by walking the stack in order:

- identity found            -> close the current paper, start a new one
- no identity, paper open   -> next page of the current paper
- no identity, nothing open -> orphan paper in error status; later pages
                               attach to it instead of being dropped

The tracker also owns the session transform: the transform from the last page
where an anchor was found, reused for pages whose anchor could not be read.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..models import AnchorGeometry, PageImage, PaperStatus, Rect, StudentIdentity, StudentPaper
from .anchor_detector import AnchorDetector
from .transform import Transform

logger = logging.getLogger(__name__)

ORPHAN_MESSAGE = "first page missing identity marker"


@dataclass
class PageAssignment:
    paper: StudentPaper
    template_page_index: int
    transform: Transform
    anchor: Optional[AnchorGeometry] = None
    closed_paper: Optional[StudentPaper] = None


class SessionTracker:
    """Assigns scanned pages, in scan order, to student papers."""

    def __init__(self, template_anchor: Optional[Rect], detector: Optional[AnchorDetector] = None):
        self.template_anchor = template_anchor
        self.detector = detector or AnchorDetector()
        self.current_paper: Optional[StudentPaper] = None
        self.session_transform: Optional[Transform] = None
        self.papers: List[StudentPaper] = []

    def consume(self, image, source_index: int) -> PageAssignment:
        anchor = self.detector.scan(image)
        identity = StudentIdentity.from_payload(anchor.payload) if anchor else None
        transform = self._page_transform(anchor)

        closed = None
        if identity is not None:
            closed = self.current_paper
            paper = self._open_paper(identity)
            logger.info("Page %d: new paper for student %s", source_index, identity.student_id)
        elif self.current_paper is not None:
            paper = self.current_paper
            if paper.status == PaperStatus.DONE:
                # a new ungraded page reopens the paper
                paper.status = PaperStatus.PROCESSING
            logger.info("Page %d: continues paper %s (page %d)", source_index, paper.identity.student_id,
                        paper.page_count + 1)
        else:
            paper = self._open_paper(StudentIdentity(student_id=f"Unknown-{source_index}"))
            paper.status = PaperStatus.ERROR
            paper.error_message = ORPHAN_MESSAGE
            logger.warning("Page %d: %s", source_index, ORPHAN_MESSAGE)

        template_page_index = paper.page_count + 1
        paper.pages.append(PageImage(page_index=template_page_index, image=image, source_index=source_index))

        return PageAssignment(
            paper=paper,
            template_page_index=template_page_index,
            transform=transform,
            anchor=anchor,
            closed_paper=closed,
        )

    def finish(self) -> Optional[StudentPaper]:
        """End of stream: hand back whatever paper is still open."""
        paper, self.current_paper = self.current_paper, None
        return paper

    def _open_paper(self, identity: StudentIdentity) -> StudentPaper:
        paper = StudentPaper(identity=identity)
        self.papers.append(paper)
        self.current_paper = paper
        return paper

    def _page_transform(self, anchor: Optional[AnchorGeometry]) -> Transform:
        if anchor is not None and self.template_anchor is not None:
            self.session_transform = Transform.from_anchors(self.template_anchor, anchor.rect)
            return self.session_transform
        if self.session_transform is not None:
            return self.session_transform
        return Transform.identity()
