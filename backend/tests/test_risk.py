from conftest import make_student, scores

from edulink_module.models import CaseState, CaseStatus, ContactStatus, Priority, Term
from edulink_module.risk import (
    analyze_term,
    combined_priority,
    dashboard_summary,
    is_at_risk,
    student_risk,
    wellbeing_alerts,
)
from edulink_module.schemas import TermRisk


def test_low_attendance_dominates_good_subjects():
    student = make_student(term1=scores(90, 85, 88, 95, attendance=45, cocu_attendance=90))
    risk = analyze_term(student, Term.ONE)

    assert risk.priority is Priority.HIGH
    assert risk.attendance_flag.value == 45
    assert risk.attendance_flag.level is Priority.HIGH
    assert risk.cocu_flag is None
    assert risk.failing_subjects == []


def test_attendance_below_eighty_only_is_low():
    student = make_student(term1=scores(90, 85, 88, 95, attendance=75))
    risk = analyze_term(student, Term.ONE)

    assert risk.priority is Priority.LOW
    assert risk.attendance_flag.level is Priority.LOW


def test_subject_levels():
    student = make_student(term1=scores(bm=49, english=50, math=79, science=80))
    risk = analyze_term(student, Term.ONE)

    assert [(f.subject, f.score, f.level) for f in risk.failing_subjects] == [
        ("Bahasa Melayu", 49, Priority.HIGH),
        ("English", 50, Priority.LOW),
        ("Mathematics", 79, Priority.LOW),
    ]
    assert risk.priority is Priority.HIGH
    assert risk.average_grade == 65


def test_missing_data_is_treated_as_no_issue():
    risk = analyze_term(make_student(), Term.TWO)
    assert risk == TermRisk(priority=Priority.NORMAL, average_grade=0)


def test_cocu_flag():
    student = make_student(term2=scores(cocu_attendance=30))
    risk = analyze_term(student, Term.TWO)
    assert risk.cocu_flag.level is Priority.HIGH
    assert risk.priority is Priority.HIGH


def test_average_rounds_to_nearest_integer():
    student = make_student(term1=scores(bm=80, english=81))
    assert analyze_term(student, Term.ONE).average_grade == 81


def test_non_numeric_scores_fail_safe_to_zero():
    student = make_student(term1={"math": "absent", "bm": "85"})
    risk = analyze_term(student, Term.ONE)

    assert student.term1.bm == 85
    assert student.term1.math == 0
    assert risk.priority is Priority.HIGH
    assert [f.subject for f in risk.failing_subjects] == ["Mathematics"]


def test_analyze_term_is_idempotent():
    student = make_student(term1=scores(45, 60, 90, 70, attendance=78, cocu_attendance=40))
    first = analyze_term(student, Term.ONE)
    second = analyze_term(student, Term.ONE)
    assert first.model_dump_json() == second.model_dump_json()


def test_combined_priority():
    high = TermRisk(priority=Priority.HIGH)
    low = TermRisk(priority=Priority.LOW)
    normal = TermRisk(priority=Priority.NORMAL)

    assert combined_priority(normal, high) is Priority.HIGH
    assert combined_priority(low, normal) is Priority.LOW
    assert combined_priority(low, high) is Priority.HIGH
    assert combined_priority(normal, normal) is Priority.NORMAL


def test_wellbeing_alerts_only_include_non_normal_students():
    fine = make_student("fine", term1=scores(90, 90, 90, 90))
    low = make_student("low", term2=scores(70, 90, 90, 90))
    high = make_student("high", term1=scores(30, 90, 90, 90))

    alerts = wellbeing_alerts([fine, low, high])

    assert [(a.student.id, a.priority) for a in alerts] == [("high", Priority.HIGH), ("low", Priority.LOW)]
    assert all(a.case_state is CaseState.PENDING for a in alerts)


def test_improved_student_leaves_alerts_with_workflow_fields_intact():
    student = make_student(
        "recovered",
        term1=scores(95, 95, 95, 95),
        contact_status=ContactStatus.CONTACTED,
        case_status=CaseStatus.UNRESOLVED,
    )
    assert not is_at_risk(student)
    assert wellbeing_alerts([student]) == []
    assert student_risk(student).case_state is CaseState.UNRESOLVED


def test_dashboard_summary_counts():
    students = [
        make_student("a", attendance=79, grade=90),
        make_student("b", attendance=95, grade=49),
        make_student("c", attendance=100, grade=70),
        make_student("d"),
    ]
    summary = dashboard_summary(students)
    assert (summary.total_students, summary.low_attendance, summary.at_risk) == (4, 1, 1)
