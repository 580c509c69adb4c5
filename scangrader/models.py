"""
Grading Data Model
==================
Records shared by the grading services.

- Template side: Rect, QuestionRegion, Template (read-only during a run)
- Per page: AnchorGeometry, PageImage
- Per student: StudentPaper, GradingResult
- Per run: ObjectiveScoringSettings
"""

import json
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_IN_BLANK = "fill_in_blank"
    SUBJECTIVE = "subjective"


class ObjectiveGroup(str, Enum):
    """Objective question groups, each scored with one batched OCR call."""
    CHOICE = "choice"
    TRUE_FALSE = "true_false"
    FILL = "fill"


OBJECTIVE_GROUP_TYPES = {
    ObjectiveGroup.CHOICE: (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE),
    ObjectiveGroup.TRUE_FALSE: (QuestionType.TRUE_FALSE,),
    ObjectiveGroup.FILL: (QuestionType.FILL_IN_BLANK,),
}


class PaperStatus(str, Enum):
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class MultiChoiceMode(str, Enum):
    ALL_OR_NOTHING = "all_or_nothing"
    PARTIAL_MISSING_NO_WRONG = "partial_missing_no_wrong"


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    @property
    def is_mapped(self) -> bool:
        return self.w > 0 and self.h > 0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rect":
        return cls(
            x=float(data.get("x") or 0.0),
            y=float(data.get("y") or 0.0),
            w=float(data.get("w") or 0.0),
            h=float(data.get("h") or 0.0),
        )


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class QuestionRegion:
    """One question area on the template, in template-page pixels."""
    id: str
    label: str
    type: QuestionType
    rect: Rect
    page: int = 1
    expected_answer: str = ""
    max_points: float = 0
    rubric_text: Optional[str] = None
    score_x: Optional[float] = None
    score_y: Optional[float] = None


@dataclass(frozen=True)
class AnchorGeometry:
    """Bounding box of a detected QR anchor, plus its decoded text if any."""
    rect: Rect
    payload: Optional[str] = None

    @property
    def has_payload(self) -> bool:
        return bool(self.payload)


@dataclass(frozen=True)
class StudentIdentity:
    student_id: str
    name: str = "Unknown"

    @classmethod
    def from_payload(cls, payload: Optional[str]) -> Optional["StudentIdentity"]:
        """Decode an anchor payload.

        JSON objects carry {"id", "name"}; any other non-empty text is the
        student id itself.
        """
        if not payload or not payload.strip():
            return None
        try:
            parsed = json.loads(payload)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            student_id = str(parsed.get("id") or payload)
            return cls(student_id=student_id, name=str(parsed.get("name") or "Unknown"))
        return cls(student_id=payload.strip())


@dataclass(frozen=True)
class Template:
    regions: List[QuestionRegion]
    anchor: Optional[Rect] = None

    def regions_for_page(self, page: int) -> List[QuestionRegion]:
        return [r for r in self.regions if r.page == page]


@dataclass
class ObjectiveScoringSettings:
    multi_choice_mode: MultiChoiceMode = MultiChoiceMode.ALL_OR_NOTHING
    fill_numeric_tolerance: float = 0.0
    fill_ignore_units: bool = False
    fill_synonyms_text: str = ""


@dataclass
class PageImage:
    page_index: int
    image: Any  # numpy BGR array
    source_index: int = 0


@dataclass(frozen=True)
class GradingResult:
    question_id: str
    label: str
    extracted_answer: str
    score: float
    feedback: str
    region: Rect
    score_mark: Point

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "label": self.label,
            "extracted_answer": self.extracted_answer,
            "score": self.score,
            "feedback": self.feedback,
            "region": self.region.to_dict(),
            "score_mark": self.score_mark.to_dict(),
        }


@dataclass
class StudentPaper:
    identity: StudentIdentity
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    pages: List[PageImage] = field(default_factory=list)
    results: List[GradingResult] = field(default_factory=list)
    total_score: float = 0
    status: PaperStatus = PaperStatus.PROCESSING
    error_message: Optional[str] = None
    graded_pages: set = field(default_factory=set)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def to_dict(self) -> Dict[str, Any]:
        with self.lock:
            results = [r.to_dict() for r in self.results]
            total = self.total_score
        return {
            "id": self.id,
            "student_id": self.identity.student_id,
            "student_name": self.identity.name,
            "page_count": self.page_count,
            "status": self.status.value,
            "error_message": self.error_message,
            "total_score": total,
            "results": results,
        }
