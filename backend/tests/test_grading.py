import pytest

from edulink_module.grading import average_grade_point, grade_point, letter_grade, round_half_up, subject_grades
from edulink_module.models import Grade, Subject
from edulink_module.schemas import TermFields


@pytest.mark.parametrize(
    "score, expected",
    [
        (100, Grade.A),
        (80, Grade.A),
        (79, Grade.B),
        (79.9, Grade.B),
        (70, Grade.B),
        (69, Grade.C),
        (60, Grade.C),
        (50, Grade.D),
        (49, Grade.E),
        (40, Grade.E),
        (39, Grade.F),
        (0, Grade.F),
    ],
)
def test_letter_grade_boundaries(score, expected):
    assert letter_grade(score) is expected


def test_letter_grade_never_improves_as_score_drops():
    order = [Grade.A, Grade.B, Grade.C, Grade.D, Grade.E, Grade.F]
    previous = 0
    for score in range(100, -1, -1):
        position = order.index(letter_grade(score))
        assert position >= previous
        previous = position


def test_out_of_range_scores_follow_the_same_rule():
    assert letter_grade(150) is Grade.A
    assert letter_grade(-5) is Grade.F


def test_grade_point_orders_best_first():
    assert grade_point(85) == 1
    assert grade_point(10) == 6


def test_average_grade_point():
    assert average_grade_point(TermFields(bm=85, english=72, math=45)) == (1 + 2 + 5) / 3
    assert average_grade_point(TermFields()) is None


def test_subject_grades_skip_missing_subjects():
    fields = TermFields(bm=81, math=45)
    assert subject_grades(fields) == {Subject.BM: Grade.A, Subject.MATH: Grade.E}


def test_round_half_up():
    assert round_half_up(72.5) == 73
    assert round_half_up(72.4) == 72
