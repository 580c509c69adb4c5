"""
AI Grading Service
==================
Grades one free-response answer from its crop image, the OCR text, the
question/rubric and the expected answer.

Provider is picked from the model name:
- claude-*  -> Anthropic Messages API
- anything else -> OpenAI-compatible chat completions (optionally at AI_BASE_URL,
  for compatible vision endpoints)

The vision model sees the crop first. If that call fails and OCR produced
text, a text-only model grades from the OCR text instead.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Optional

import anthropic
from openai import OpenAI

from ..config import AI_BASE_URL, AI_GRADING_MODEL, AI_TEXT_MODEL, ANTHROPIC_API_KEY, OPENAI_API_KEY

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an experienced teacher grading a student's handwritten answer on a scanned answer sheet. "
    "Read the student's answer, compare it with the expected answer and rubric, and award points."
)


class AIGradingError(Exception):
    """Raised when no grading provider produced a usable answer."""


@dataclass(frozen=True)
class GradeResult:
    score: float
    feedback: str
    student_answer: Optional[str] = None


def provider_for_model(model: str) -> str:
    return "anthropic" if (model or "").startswith("claude") else "openai"


def build_grading_prompt(question_text: str, expected_answer: str, max_points: float, ocr_text: str = "",
                         has_image: bool = True) -> str:
    lines = [
        f'Question: "{question_text or ""}"',
        f'Expected answer / grading criteria: "{expected_answer or ""}"',
        f"Maximum points: {max_points}",
    ]
    if ocr_text:
        lines.append(f'Text recognized from the student\'s answer (may contain OCR mistakes): "{ocr_text}"')
    if has_image:
        lines.append("The attached image is the student's answer area.")
    lines.append("")
    lines.append(
        "Decide how many points the answer earns. Respond with JSON ONLY (no other text):\n"
        '{"studentAnswer": "<the student\'s answer as you read it>", '
        '"score": <number from 0 to the maximum points>, '
        '"feedback": "<one or two short sentences for the student>"}'
    )
    return "\n".join(lines)


def _strip_code_fences(response_text: str) -> str:
    response_text = (response_text or "").strip()
    if response_text.startswith("```"):
        lines = response_text.split('\n')
        start = 1 if lines[0].startswith("```") else 0
        end = len(lines)
        for i in range(len(lines) - 1, -1, -1):
            if lines[i].strip() == "```":
                end = i
                break
        response_text = '\n'.join(lines[start:end])
    return response_text.strip()


def parse_grade_response(response_text: str, max_points: float) -> GradeResult:
    """Parse the model's JSON reply. Raises ValueError when it is not JSON."""
    data = json.loads(_strip_code_fences(response_text))
    if not isinstance(data, dict):
        raise ValueError("grading reply is not a JSON object")

    try:
        score = float(data.get("score") or 0)
    except (TypeError, ValueError):
        score = 0.0
    if not math.isfinite(score):
        raise ValueError(f"grading reply score is not a finite number: {data.get('score')!r}")
    score = max(0.0, min(float(max_points or 0), score))
    if score.is_integer():
        score = int(score)

    student_answer = data.get("studentAnswer") or data.get("student_answer")
    return GradeResult(
        score=score,
        feedback=str(data.get("feedback") or ""),
        student_answer=str(student_answer) if student_answer else None,
    )


class AIGradingClient:
    """Calls the configured AI provider to grade a single answer."""

    def __init__(
        self,
        model: str = AI_GRADING_MODEL,
        text_model: str = AI_TEXT_MODEL,
        openai_api_key: str = OPENAI_API_KEY,
        anthropic_api_key: str = ANTHROPIC_API_KEY,
        base_url: str = AI_BASE_URL,
    ):
        self.model = model
        self.text_model = text_model
        self.openai_api_key = openai_api_key
        self.anthropic_api_key = anthropic_api_key
        self.base_url = base_url or None
        self._openai = None
        self._anthropic = None

    def grade(self, image_base64: str, question_text: str, expected_answer: str,
              max_points: float, ocr_text: str = "") -> GradeResult:
        errors = []

        try:
            prompt = build_grading_prompt(question_text, expected_answer, max_points, ocr_text, has_image=True)
            return parse_grade_response(self._complete(self.model, prompt, image_base64), max_points)
        except Exception as e:
            logger.warning("Vision grading with %s failed: %s", self.model, e)
            errors.append(f"{self.model}: {e}")

        if ocr_text:
            logger.info("Falling back to text grading with %s", self.text_model)
            try:
                prompt = build_grading_prompt(question_text, expected_answer, max_points, ocr_text, has_image=False)
                result = parse_grade_response(self._complete(self.text_model, prompt), max_points)
                if not result.student_answer:
                    result = GradeResult(score=result.score, feedback=result.feedback, student_answer=ocr_text)
                return result
            except Exception as e:
                logger.warning("Text grading with %s failed: %s", self.text_model, e)
                errors.append(f"{self.text_model}: {e}")

        raise AIGradingError("; ".join(errors))

    def _complete(self, model: str, prompt: str, image_base64: Optional[str] = None) -> str:
        if provider_for_model(model) == "anthropic":
            return self._grade_with_anthropic(model, prompt, image_base64)
        return self._grade_with_openai(model, prompt, image_base64)

    def _grade_with_openai(self, model: str, prompt: str, image_base64: Optional[str]) -> str:
        if self._openai is None:
            self._openai = OpenAI(api_key=self.openai_api_key, base_url=self.base_url)

        if image_base64:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_base64}"}},
            ]
        else:
            content = prompt

        response = self._openai.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": content},
            ],
            max_tokens=1024,
            temperature=0.3,
            response_format={"type": "json_object"},
        )
        return (response.choices[0].message.content or "").strip()

    def _grade_with_anthropic(self, model: str, prompt: str, image_base64: Optional[str]) -> str:
        if self._anthropic is None:
            self._anthropic = anthropic.Anthropic(api_key=self.anthropic_api_key)

        content = [{"type": "text", "text": prompt}]
        if image_base64:
            content.append({
                "type": "image",
                "source": {"type": "base64", "media_type": "image/jpeg", "data": image_base64},
            })

        response = self._anthropic.messages.create(
            model=model,
            max_tokens=1024,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": content}],
        )
        return response.content[0].text.strip()
