"""
Quiz grading and progress arithmetic.

Pure functions only: nothing here touches the database or the request, so
scores can be reproduced from a question list and an answer list alone.

Answers are compared as case-insensitive strings after the same coercion
the web client applies (``True`` -> "true", ``2.0`` -> "2"). There is no
partial credit and no numeric tolerance. A question without a correct
answer, or a missing answer, scores as incorrect rather than failing the
whole attempt.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from models import QuestionResult


def _as_text(value: Any) -> Optional[str]:
    """Coerce an answer value to its client-side string form."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(_as_text(v) or "" for v in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def answers_match(student_answer: Any, correct_answer: Any) -> bool:
    expected = _as_text(correct_answer)
    given = _as_text(student_answer)
    if expected is None or given is None:
        return False
    return given.lower() == expected.lower()


def percentage(score: int, total: int) -> float:
    return (100 * score / total) if total > 0 else 0.0


@dataclass
class GradeResult:
    score: int
    total: int
    percentage: float
    results: list[QuestionResult] = field(default_factory=list)

    def passed(self, passing_grade: float) -> bool:
        return self.percentage >= passing_grade

    def results_dicts(self) -> list[dict]:
        return [r.to_dict() for r in self.results]


def grade(questions: Sequence, answers: Sequence | None) -> GradeResult:
    """Score ``answers`` against ``questions`` position by position.

    ``questions`` are QuizQuestion objects (anything with a
    ``correct_answer`` attribute). Surplus answers are ignored; missing ones
    count as wrong.
    """
    answers = list(answers or [])
    score = 0
    results: list[QuestionResult] = []
    for idx, question in enumerate(questions):
        student_answer = answers[idx] if idx < len(answers) else None
        correct_answer = getattr(question, "correct_answer", None)
        is_correct = answers_match(student_answer, correct_answer)
        if is_correct:
            score += 1
        results.append(QuestionResult(
            question_index=idx,
            is_correct=is_correct,
            student_answer=student_answer,
            correct_answer=correct_answer,
        ))
    total = len(questions)
    return GradeResult(score=score, total=total, percentage=percentage(score, total), results=results)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def course_progress_percent(items: Iterable[str], completed: Iterable[str]) -> int:
    """Share of course items completed, as a whole percentage.

    Completed ids that are not part of ``items`` (e.g. items since removed
    from the curriculum) do not count.
    """
    item_set = {str(i) for i in items}
    if not item_set:
        return 0
    done = item_set & {str(c) for c in completed}
    return _round_half_up(100 * len(done) / len(item_set))
