"""
Template import/export.

The file format is the one the template designer exports:

    {"anchor": {"x", "y", "w", "h"} | null,
     "questions": [{"id", "label", "type", "x", "y", "w", "h", "page",
                    "correctAnswer", "maxPoints", "gradingCriteria",
                    "score_x", "score_y"}, ...]}

A bare list of questions (older exports) is accepted on import.
"""
import json
from pathlib import Path
from typing import Any, Dict, Union

from .models import QuestionRegion, QuestionType, Rect, Template


class TemplateError(ValueError):
    """Raised when a template file cannot be parsed."""


def _number(value: Any, field_name: str, default: float = 0):
    if value is None or value == "":
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        raise TemplateError(f"{field_name} must be a number, got {value!r}")


def _optional_number(value: Any, field_name: str):
    if value is None:
        return None
    return _number(value, field_name)


def region_from_dict(data: Dict[str, Any], index: int = 0) -> QuestionRegion:
    if not isinstance(data, dict):
        raise TemplateError(f"question #{index + 1} is not an object")
    raw_type = data.get("type") or QuestionType.SUBJECTIVE.value
    try:
        qtype = QuestionType(raw_type)
    except ValueError:
        raise TemplateError(f"question #{index + 1} has unknown type {raw_type!r}")

    qid = str(data.get("id") or f"q{index + 1}")
    return QuestionRegion(
        id=qid,
        label=str(data.get("label") or qid),
        type=qtype,
        rect=Rect(
            x=_number(data.get("x"), "x"),
            y=_number(data.get("y"), "y"),
            w=_number(data.get("w"), "w"),
            h=_number(data.get("h"), "h"),
        ),
        page=int(_number(data.get("page"), "page", default=1)),
        expected_answer=str(data.get("correctAnswer") or ""),
        max_points=_number(data.get("maxPoints"), "maxPoints"),
        rubric_text=data.get("gradingCriteria"),
        score_x=_optional_number(data.get("score_x"), "score_x"),
        score_y=_optional_number(data.get("score_y"), "score_y"),
    )


def region_to_dict(region: QuestionRegion) -> Dict[str, Any]:
    out = {
        "id": region.id,
        "label": region.label,
        "type": region.type.value,
        "x": region.rect.x,
        "y": region.rect.y,
        "w": region.rect.w,
        "h": region.rect.h,
        "page": region.page,
        "correctAnswer": region.expected_answer,
        "maxPoints": region.max_points,
    }
    if region.rubric_text is not None:
        out["gradingCriteria"] = region.rubric_text
    if region.score_x is not None:
        out["score_x"] = region.score_x
    if region.score_y is not None:
        out["score_y"] = region.score_y
    return out


def template_from_data(data: Any) -> Template:
    """Build a Template from already-decoded JSON."""
    if isinstance(data, list):
        questions, anchor_data = data, None
    elif isinstance(data, dict) and isinstance(data.get("questions"), list):
        questions, anchor_data = data["questions"], data.get("anchor")
    else:
        raise TemplateError("template must be a list of questions or an object with a 'questions' list")

    anchor = None
    if anchor_data:
        if not isinstance(anchor_data, dict):
            raise TemplateError("anchor must be an object with x, y, w, h")
        anchor = Rect.from_dict(anchor_data)
        if not anchor.is_mapped:
            raise TemplateError("anchor must have a positive width and height")

    regions = [region_from_dict(q, i) for i, q in enumerate(questions)]
    return Template(regions=regions, anchor=anchor)


def template_to_data(template: Template) -> Dict[str, Any]:
    return {
        "anchor": template.anchor.to_dict() if template.anchor else None,
        "questions": [region_to_dict(r) for r in template.regions],
    }


def load_template(source: Union[str, Path, bytes]) -> Template:
    """Load a template from a file path or a JSON string/bytes."""
    if isinstance(source, Path) or (isinstance(source, str) and not source.lstrip().startswith(("{", "["))):
        path = Path(source)
        if not path.exists():
            raise TemplateError(f"template file not found: {path}")
        text = path.read_text(encoding="utf-8")
    elif isinstance(source, bytes):
        try:
            text = source.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TemplateError(f"template is not UTF-8 text: {e}")
    else:
        text = source

    try:
        data = json.loads(text)
    except ValueError as e:
        raise TemplateError(f"template is not valid JSON: {e}")
    return template_from_data(data)


def save_template(template: Template, path: Union[str, Path]) -> None:
    Path(path).write_text(
        json.dumps(template_to_data(template), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
