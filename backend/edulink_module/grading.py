import math

from .models import Grade, Subject
from .schemas import TermFields


GRADE_BOUNDARIES = (
    (80, Grade.A),
    (70, Grade.B),
    (60, Grade.C),
    (50, Grade.D),
    (40, Grade.E),
)

GRADE_POINTS = {
    Grade.A: 1,
    Grade.B: 2,
    Grade.C: 3,
    Grade.D: 4,
    Grade.E: 5,
    Grade.F: 6,
}


def letter_grade(score: float) -> Grade:
    for lower_bound, grade in GRADE_BOUNDARIES:
        if score >= lower_bound:
            return grade
    return Grade.F


def grade_point(score: float) -> int:
    # A=1 (best) ... F=6 (worst)
    return GRADE_POINTS[letter_grade(score)]


def subject_grades(fields: TermFields) -> dict[Subject, Grade]:
    return {subject: letter_grade(score) for subject, score in fields.subject_scores().items()}


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def average_grade_point(fields: TermFields) -> float | None:
    """Mean grade point over the subjects present, lower is better; ``None`` with no scores."""
    points = [grade_point(score) for score in fields.subject_scores().values()]
    if not points:
        return None
    return sum(points) / len(points)
