from conftest import make_student, scores

from edulink_module.models import Term
from edulink_module.ranking import class_ranking, rank_in_class, rank_in_year, top_percent
from edulink_module.schemas import UNRANKED, Collection, TermFields, UpdatePayload, apply_update


def _cohort():
    return [
        make_student("top", term1=scores(100, 100, 100, 100)),
        make_student("zero", term1=scores(0, 0, 0, 0)),
        make_student("mid", term1=scores(50, 50, 50, 50)),
    ]


def test_rank_in_class_orders_by_total_and_counts_unranked_members():
    students = _cohort()
    top = rank_in_class(students, "top", "3 Bestari", Term.ONE)
    mid = rank_in_class(students, "mid", "3 Bestari", Term.ONE)
    zero = rank_in_class(students, "zero", "3 Bestari", Term.ONE)

    assert (top.rank, top.class_size) == (1, 3)
    assert (mid.rank, mid.class_size) == (2, 3)
    assert zero.rank == UNRANKED
    assert zero.class_size == 3
    assert not zero.is_ranked


def test_zero_total_is_unranked_even_alone():
    students = [make_student("solo")]
    result = rank_in_class(students, "solo", "3 Bestari", Term.ONE)
    assert result.rank == UNRANKED
    assert result.class_size == 1


def test_other_classes_are_not_part_of_the_cohort():
    students = _cohort() + [make_student("other", class_label="3 Amanah", term1=scores(100, 100, 100, 100))]
    assert rank_in_class(students, "mid", "3 Bestari", Term.ONE).class_size == 3


def test_terms_are_ranked_independently():
    students = [
        make_student("a", term1=scores(90, 90, 90, 90), term2=scores(10, 10, 10, 10)),
        make_student("b", term1=scores(50, 50, 50, 50), term2=scores(60, 60, 60, 60)),
    ]
    assert rank_in_class(students, "a", "3 Bestari", Term.ONE).rank == 1
    assert rank_in_class(students, "a", "3 Bestari", Term.TWO).rank == 2


def test_ties_break_by_name_not_snapshot_order():
    zed = make_student("z1", name="Zed", term1=scores(80, 80, 80, 80))
    amy = make_student("a1", name="amy", term1=scores(80, 80, 80, 80))
    for students in ([zed, amy], [amy, zed]):
        assert rank_in_class(students, "a1", "3 Bestari", Term.ONE).rank == 1
        assert rank_in_class(students, "z1", "3 Bestari", Term.ONE).rank == 2


def test_edited_score_is_reflected_on_next_call():
    student = make_student("edit", term1=scores(bm=80, english=70, math=90, science=60))
    rival = make_student("rival", term1=scores(80, 80, 75, 70))
    assert student.term1.total_score == 300
    assert rank_in_class([student, rival], "edit", "3 Bestari", Term.ONE).rank == 2

    edited = apply_update(
        student,
        UpdatePayload(collection=Collection.STUDENTS, record_id="edit", term=Term.ONE, fields={"math": 100}),
    )
    assert edited.term1.total_score == 310
    assert rank_in_class([edited, rival], "edit", "3 Bestari", Term.ONE).rank == 1


def test_deleted_student_drops_out_of_ranking():
    students = _cohort()
    remaining = [s for s in students if s.id != "top"]
    result = rank_in_class(remaining, "mid", "3 Bestari", Term.ONE)
    assert (result.rank, result.class_size) == (1, 2)


def test_rank_in_year_spans_sections():
    students = [
        make_student("a", class_label="3 Bestari", term1=scores(60, 60, 60, 60)),
        make_student("b", class_label="3 Amanah", term1=scores(90, 90, 90, 90)),
        make_student("c", class_label="4 Amanah", term1=scores(100, 100, 100, 100)),
    ]
    result = rank_in_year(students, "a", "3 Bestari", Term.ONE)
    assert (result.rank, result.class_size) == (2, 2)


def test_class_ranking_lists_unranked_last():
    table = class_ranking(_cohort(), "3 Bestari", Term.ONE)
    assert [(s.id, r.rank) for s, r in table] == [("top", 1), ("mid", 2), ("zero", UNRANKED)]


def test_top_percent():
    students = _cohort()
    assert top_percent(rank_in_class(students, "mid", "3 Bestari", Term.ONE)) == 67
    assert top_percent(rank_in_class(students, "zero", "3 Bestari", Term.ONE)) is None


def test_missing_term_counts_as_zero():
    assert TermFields().total_score == 0
