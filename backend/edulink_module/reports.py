from collections.abc import Iterable

from .access import authorize_class_view, parent_name, visible_students
from .grading import average_grade_point, subject_grades
from .models import Term
from .ranking import class_ranking, rank_in_class, rank_in_year, top_percent
from .schemas import LeaderboardEntry, Snapshot, StudentRecord, StudentReport, UserRecord


def build_report(snapshot: Snapshot, student: StudentRecord, term: Term) -> StudentReport:
    term = Term(term)
    fields = student.term(term)
    everyone = list(snapshot.students.values())
    class_rank = rank_in_class(everyone, student.id, student.class_label, term)
    return StudentReport(
        student=student,
        term=term,
        total_score=fields.total_score,
        grades=subject_grades(fields),
        class_rank=class_rank,
        year_rank=rank_in_year(everyone, student.id, student.class_label, term),
        top_percent=top_percent(class_rank),
        parent_name=parent_name(student, snapshot.users),
        signed=fields.is_signed,
    )


def filter_students(
    students: Iterable[StudentRecord],
    *,
    year_level: str | None = None,
    class_label: str | None = None,
    query: str | None = None,
) -> list[StudentRecord]:
    result = list(students)
    if year_level:
        result = [s for s in result if s.year_level == year_level]
    if class_label:
        result = [s for s in result if s.class_label == class_label]
    if query:
        needle = query.strip().lower()
        result = [s for s in result if needle in s.name.lower() or needle in s.class_label.lower()]
    return result


def report_list(
    snapshot: Snapshot,
    user: UserRecord,
    term: Term,
    *,
    year_level: str | None = None,
    class_label: str | None = None,
    query: str | None = None,
) -> list[StudentReport]:
    students = visible_students(snapshot.students.values(), user)
    students = filter_students(students, year_level=year_level, class_label=class_label, query=query)
    students.sort(key=lambda s: (s.class_label, s.name.casefold(), s.id))
    return [build_report(snapshot, s, term) for s in students]


def available_classes(students: Iterable[StudentRecord], year_level: str | None = None) -> list[str]:
    classes = {s.class_label for s in students if s.class_label}
    if year_level:
        classes = {c for c in classes if c.split(" ", 1)[0] == year_level}
    return sorted(classes)


def class_leaderboard(snapshot: Snapshot, user: UserRecord, class_label: str, term: Term) -> list[LeaderboardEntry]:
    authorize_class_view(user, class_label)
    term = Term(term)
    return [
        LeaderboardEntry(
            student_id=student.id,
            name=student.name,
            total_score=student.term(term).total_score,
            average_grade_point=average_grade_point(student.term(term)),
            rank=rank,
        )
        for student, rank in class_ranking(snapshot.students.values(), class_label, term)
    ]
