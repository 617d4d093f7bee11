"""Wellbeing case state machine.

    Pending --mark_contacted--> Contacted/Unresolved <--toggle_resolution--> Resolved

There is no way back to Pending; once contacted a case stays in the contacted
bucket even if the student later drops out of the alert set.
"""
from datetime import datetime, timezone

from .errors import PreconditionError
from .models import CaseState, CaseStatus, ContactStatus
from .schemas import Collection, StudentRecord, UpdatePayload


def case_state(record: StudentRecord) -> CaseState:
    if record.contact_status is not ContactStatus.CONTACTED:
        return CaseState.PENDING
    if record.case_status is CaseStatus.RESOLVED:
        return CaseState.RESOLVED
    return CaseState.UNRESOLVED


def mark_contacted(record: StudentRecord, now: datetime | None = None) -> UpdatePayload:
    if case_state(record) is not CaseState.PENDING:
        raise PreconditionError(f"Student {record.id} has already been contacted")
    return UpdatePayload(
        collection=Collection.STUDENTS,
        record_id=record.id,
        fields={
            "contact_status": ContactStatus.CONTACTED,
            # A stale Resolved value from an earlier case must not carry over.
            "case_status": CaseStatus.UNRESOLVED,
            "last_contacted_at": now or datetime.now(timezone.utc),
        },
    )


def toggle_resolution(record: StudentRecord) -> UpdatePayload:
    state = case_state(record)
    if state is CaseState.PENDING:
        raise PreconditionError(f"Student {record.id} has not been contacted yet")
    next_status = CaseStatus.UNRESOLVED if state is CaseState.RESOLVED else CaseStatus.RESOLVED
    return UpdatePayload(
        collection=Collection.STUDENTS,
        record_id=record.id,
        fields={"case_status": next_status},
    )
