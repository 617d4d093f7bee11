from datetime import datetime, timezone

import pytest
from conftest import make_student

from edulink_module.errors import PreconditionError
from edulink_module.models import CaseState, CaseStatus, ContactStatus
from edulink_module.schemas import apply_update
from edulink_module.workflow import case_state, mark_contacted, toggle_resolution

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def test_full_case_lifecycle():
    student = make_student()
    assert case_state(student) is CaseState.PENDING

    student = apply_update(student, mark_contacted(student, NOW))
    assert case_state(student) is CaseState.UNRESOLVED
    assert student.contact_status is ContactStatus.CONTACTED
    assert student.last_contacted_at == NOW

    student = apply_update(student, toggle_resolution(student))
    assert case_state(student) is CaseState.RESOLVED

    student = apply_update(student, toggle_resolution(student))
    assert case_state(student) is CaseState.UNRESOLVED


def test_mark_contacted_twice_is_rejected():
    student = apply_update(make_student(), mark_contacted(make_student(), NOW))
    with pytest.raises(PreconditionError):
        mark_contacted(student, NOW)


def test_resolution_requires_contact_first():
    with pytest.raises(PreconditionError):
        toggle_resolution(make_student())


def test_stale_resolved_value_is_reset_on_contact():
    student = make_student(case_status=CaseStatus.RESOLVED)
    assert case_state(student) is CaseState.PENDING

    payload = mark_contacted(student, NOW)
    assert payload.fields["case_status"] is CaseStatus.UNRESOLVED


def test_payload_only_touches_workflow_fields():
    payload = mark_contacted(make_student("x"), NOW)
    assert payload.record_id == "x"
    assert payload.term is None
    assert set(payload.fields) == {"contact_status", "case_status", "last_contacted_at"}
