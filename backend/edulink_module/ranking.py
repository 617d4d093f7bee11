"""Class and year-level rankings over a student snapshot.

Rankings are recomputed from the subject scores on every call; nothing is
cached between snapshots, so an edited score or a deleted student is reflected
by the very next call.
"""
from collections.abc import Iterable

from .grading import round_half_up
from .models import Term
from .schemas import UNRANKED, ClassRank, StudentRecord


def _sort_key(student: StudentRecord, term: Term):
    # Equal totals fall back to name, then id, so the order never depends on
    # how the snapshot happened to be iterated.
    return (-student.term(term).total_score, student.name.casefold(), student.id)


def _rank_within(cohort: list[StudentRecord], student_id: str, term: Term) -> ClassRank:
    size = len(cohort)
    target = next((s for s in cohort if s.id == student_id), None)
    if target is None or target.term(term).total_score == 0:
        return ClassRank(rank=UNRANKED, class_size=size)

    ordered = sorted(cohort, key=lambda s: _sort_key(s, term))
    position = next(i for i, s in enumerate(ordered, start=1) if s.id == student_id)
    return ClassRank(rank=position, class_size=size)


def class_cohort(students: Iterable[StudentRecord], class_label: str) -> list[StudentRecord]:
    return [s for s in students if s.class_label == class_label]


def year_cohort(students: Iterable[StudentRecord], year_level: str) -> list[StudentRecord]:
    return [s for s in students if s.year_level == year_level]


def rank_in_class(
    students: Iterable[StudentRecord], student_id: str, class_label: str, term: Term
) -> ClassRank:
    return _rank_within(class_cohort(students, class_label), student_id, Term(term))


def rank_in_year(
    students: Iterable[StudentRecord], student_id: str, class_label: str, term: Term
) -> ClassRank:
    year_level = class_label.split(" ", 1)[0] if class_label else ""
    return _rank_within(year_cohort(students, year_level), student_id, Term(term))


def class_ranking(
    students: Iterable[StudentRecord], class_label: str, term: Term
) -> list[tuple[StudentRecord, ClassRank]]:
    """Whole-class leaderboard, ranked members first, unranked members last."""
    term = Term(term)
    cohort = class_cohort(students, class_label)
    ordered = sorted(cohort, key=lambda s: _sort_key(s, term))
    table = []
    position = 0
    for student in ordered:
        if student.term(term).total_score == 0:
            table.append((student, ClassRank(rank=UNRANKED, class_size=len(cohort))))
            continue
        position += 1
        table.append((student, ClassRank(rank=position, class_size=len(cohort))))
    return table


def top_percent(rank: ClassRank) -> int | None:
    if not rank.is_ranked or not rank.class_size:
        return None
    return round_half_up(rank.rank / rank.class_size * 100)
