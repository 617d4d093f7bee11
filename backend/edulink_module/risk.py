import logging
from collections.abc import Iterable

from .config import settings
from .grading import round_half_up
from .models import Priority, Term
from .schemas import (
    DashboardSummary,
    FailingSubject,
    RiskFlag,
    StudentRecord,
    StudentRisk,
    TermRisk,
    WellbeingAlert,
)
from .workflow import case_state


logger = logging.getLogger(__name__)

# Missing attendance data means "no issue", not "unknown".
DEFAULT_ATTENDANCE = 100.0

PRIORITY_RANK = {
    Priority.NORMAL: 0,
    Priority.LOW: 1,
    Priority.HIGH: 2,
}


def risk_level(value: float) -> Priority | None:
    if value < settings.high_risk_below:
        return Priority.HIGH
    if value < settings.low_risk_below:
        return Priority.LOW
    return None


def highest_priority(levels: Iterable[Priority]) -> Priority:
    return max(levels, key=PRIORITY_RANK.__getitem__, default=Priority.NORMAL)


def analyze_term(record: StudentRecord, term: Term) -> TermRisk:
    fields = record.term(term)
    attendance = fields.attendance if fields.attendance is not None else DEFAULT_ATTENDANCE
    cocu = fields.cocu_attendance if fields.cocu_attendance is not None else DEFAULT_ATTENDANCE

    levels = []
    attendance_flag = None
    cocu_flag = None

    level = risk_level(attendance)
    if level:
        attendance_flag = RiskFlag(value=attendance, level=level)
        levels.append(level)

    level = risk_level(cocu)
    if level:
        cocu_flag = RiskFlag(value=cocu, level=level)
        levels.append(level)

    scores = fields.subject_scores()
    failing_subjects = []
    for subject, score in scores.items():
        level = risk_level(score)
        if level:
            failing_subjects.append(FailingSubject(subject=subject.label, score=score, level=level))
            levels.append(level)

    average_grade = round_half_up(sum(scores.values()) / len(scores)) if scores else 0

    return TermRisk(
        attendance_flag=attendance_flag,
        cocu_flag=cocu_flag,
        failing_subjects=failing_subjects,
        priority=highest_priority(levels),
        average_grade=average_grade,
    )


def combined_priority(t1: TermRisk, t2: TermRisk) -> Priority:
    return highest_priority((t1.priority, t2.priority))


def student_priority(record: StudentRecord) -> Priority:
    return combined_priority(analyze_term(record, Term.ONE), analyze_term(record, Term.TWO))


def student_risk(record: StudentRecord) -> StudentRisk:
    t1 = analyze_term(record, Term.ONE)
    t2 = analyze_term(record, Term.TWO)
    return StudentRisk(
        student_id=record.id,
        term1=t1,
        term2=t2,
        priority=combined_priority(t1, t2),
        case_state=case_state(record),
    )


def is_at_risk(record: StudentRecord) -> bool:
    return student_priority(record) is not Priority.NORMAL


def wellbeing_alerts(students: Iterable[StudentRecord]) -> list[WellbeingAlert]:
    """Students whose combined priority is Low or High, most urgent first."""
    alerts = []
    for student in students:
        t1 = analyze_term(student, Term.ONE)
        t2 = analyze_term(student, Term.TWO)
        priority = combined_priority(t1, t2)
        if priority is Priority.NORMAL:
            continue
        alerts.append(
            WellbeingAlert(
                student=student,
                term1=t1,
                term2=t2,
                priority=priority,
                case_state=case_state(student),
            )
        )
    alerts.sort(key=lambda a: (-PRIORITY_RANK[a.priority], a.student.name.casefold(), a.student.id))
    logger.debug("Wellbeing scan produced %d alerts", len(alerts))
    return alerts


def dashboard_summary(students: Iterable[StudentRecord]) -> DashboardSummary:
    students = list(students)
    low_attendance = [s for s in students if s.attendance is not None and s.attendance < settings.low_risk_below]
    at_risk = [s for s in students if s.grade is not None and s.grade < settings.high_risk_below]
    return DashboardSummary(
        total_students=len(students),
        low_attendance=len(low_attendance),
        at_risk=len(at_risk),
    )
