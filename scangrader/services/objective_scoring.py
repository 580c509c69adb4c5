"""
Objective Question Scoring
==========================
Deterministic rules for choice, true/false and fill-in-blank answers.

- Single choice: letters only, uppercase, exact match
- Multiple choice: any wrong letter scores 0; otherwise all-or-nothing or
  proportional credit for a correct subset, depending on the run setting
- True/false: 对 √ T mean "T", 错 × F mean "F"
- Fill-in-blank: synonym map, then numeric tolerance, then
  unit-insensitive numeric match, then normalized string match
"""

import math
import re
from typing import Dict, Optional

from ..models import MultiChoiceMode, ObjectiveScoringSettings, QuestionRegion, QuestionType

_NUMBER_RE = re.compile(r'-?\d+(?:\.\d+)?')


def parse_synonyms(text: str) -> Dict[str, str]:
    """Parse "from=to" lines. Anything after the first '=' is the target."""
    synonyms = {}
    for line in (text or "").splitlines():
        line = line.strip()
        if not line or "=" not in line:
            continue
        src, dst = line.split("=", 1)
        src, dst = src.strip(), dst.strip()
        if src and dst:
            synonyms[src] = dst
    return synonyms


def apply_synonyms(value: str, synonyms: Dict[str, str]) -> str:
    s = (value or "").strip()
    if not s:
        return s
    return synonyms.get(s, s)


def normalize_choice(value: str) -> str:
    return re.sub(r'[^A-Z]', '', (value or "").upper())


def normalize_true_false(value: str) -> str:
    s = (value or "").strip().upper()
    if not s:
        return ""
    if re.search(r'[对√T]', s):
        return "T"
    if re.search(r'[错×F]', s):
        return "F"
    return ""


def normalize_fill(value: str) -> str:
    s = re.sub(r'\s+', '', (value or "").strip())
    return re.sub(r'[，,。．]', '.', s)


def parse_first_number(value: str) -> Optional[float]:
    match = _NUMBER_RE.search(value or "")
    if not match:
        return None
    n = float(match.group(0))
    return n if math.isfinite(n) else None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_single_choice(expected: str, actual: str, max_points: float) -> float:
    exp = normalize_choice(expected)
    return max_points if exp and exp == normalize_choice(actual) else 0


def score_multiple_choice(expected: str, actual: str, max_points: float,
                          mode: MultiChoiceMode = MultiChoiceMode.ALL_OR_NOTHING) -> float:
    exp = sorted(normalize_choice(expected))
    act = sorted(normalize_choice(actual))
    if not exp:
        return 0

    expected_set = set(exp)
    # Over-selection is always wrong
    if any(opt not in expected_set for opt in act):
        return 0

    if MultiChoiceMode(mode) == MultiChoiceMode.PARTIAL_MISSING_NO_WRONG:
        correct_selected = len(set(act) & expected_set)
        credit = round_half_up(max_points * correct_selected / len(exp))
        return max(0, min(max_points, credit))

    return max_points if exp == act else 0


def score_true_false(expected: str, actual: str, max_points: float) -> float:
    exp = normalize_true_false(expected)
    return max_points if exp and exp == normalize_true_false(actual) else 0


def fill_matches(expected: str, actual: str, settings: ObjectiveScoringSettings) -> bool:
    synonyms = parse_synonyms(settings.fill_synonyms_text)
    expected_applied = apply_synonyms(expected, synonyms)
    actual_applied = apply_synonyms(actual, synonyms)
    tolerance = float(settings.fill_numeric_tolerance or 0)

    if tolerance > 0:
        expected_num = parse_first_number(expected_applied)
        actual_num = parse_first_number(actual_applied)
        if expected_num is not None and actual_num is not None:
            return abs(expected_num - actual_num) <= tolerance

    if settings.fill_ignore_units:
        expected_num = parse_first_number(expected_applied)
        actual_num = parse_first_number(actual_applied)
        if expected_num is not None and actual_num is not None:
            return expected_num == actual_num

    exp = normalize_fill(expected_applied)
    return bool(exp) and exp == normalize_fill(actual_applied)


def score_objective(region: QuestionRegion, actual: str, settings: ObjectiveScoringSettings) -> float:
    """Score one objective answer according to the region's question type."""
    expected = region.expected_answer or ""
    qtype = region.type

    if qtype == QuestionType.SINGLE_CHOICE:
        return score_single_choice(expected, actual, region.max_points)
    if qtype == QuestionType.MULTIPLE_CHOICE:
        return score_multiple_choice(expected, actual, region.max_points, settings.multi_choice_mode)
    if qtype == QuestionType.TRUE_FALSE:
        return score_true_false(expected, actual, region.max_points)
    if qtype == QuestionType.FILL_IN_BLANK:
        return region.max_points if fill_matches(expected, actual, settings) else 0
    raise ValueError(f"{qtype.value} is not an objective question type")
