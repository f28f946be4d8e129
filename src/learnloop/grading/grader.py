"""Answer grading.

Pure functions only. Answers arrive as decoded JSON values, so everything
here works on str/int/float/bool/None/list/dict.
"""

from __future__ import annotations

import json
import math
from enum import Enum
from typing import Any


class ProblemType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"
    FILL_IN_BLANK = "fill_in_blank"
    ESSAY = "essay"

    @classmethod
    def parse(cls, value: str | ProblemType | None) -> ProblemType | None:
        """Unknown or missing types map to None (graded structurally)."""
        if value is None or isinstance(value, ProblemType):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class Verdict(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNGRADED = "ungraded"

    @property
    def is_correct(self) -> bool | None:
        """Persisted form: True, False, or None for ungraded."""
        if self is Verdict.UNGRADED:
            return None
        return self is Verdict.CORRECT

    @classmethod
    def from_is_correct(cls, is_correct: bool | None) -> Verdict:
        if is_correct is None:
            return cls.UNGRADED
        return cls.CORRECT if is_correct else cls.INCORRECT


_TEXT_TYPES = frozenset({ProblemType.SHORT_ANSWER, ProblemType.FILL_IN_BLANK})


def grade(problem_type: str | ProblemType | None, canonical: Any, submitted: Any) -> Verdict:
    """Grade a submitted answer against the canonical one."""
    kind = ProblemType.parse(problem_type)
    if kind is ProblemType.ESSAY:
        return Verdict.UNGRADED
    if kind in _TEXT_TYPES:
        matched = normalize_text(canonical) == normalize_text(submitted)
    else:
        matched = answers_equal(canonical, submitted)
    return Verdict.CORRECT if matched else Verdict.INCORRECT


def answers_equal(a: Any, b: Any) -> bool:
    """Deep structural equality on JSON values.

    Booleans never equal numbers (``True != 1``), ints and floats compare
    numerically, lists are order-sensitive.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(answers_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(answers_equal(a[k], b[k]) for k in a)
    if type(a) is not type(b):
        return False
    return a == b


def render_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, list):
        return ",".join(render_text(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, separators=(",", ":"))
    return str(value)


def normalize_text(value: Any) -> str:
    return render_text(value).strip().lower()
