from collections.abc import Mapping
from datetime import datetime, timezone
import logging
import math
import re
import uuid
from typing import Any

from . import access, workflow
from .config import settings
from .errors import CollaboratorFailure, NotFound, PreconditionError, ValidationError
from .grading import round_half_up
from .models import Subject, Term, UserRole
from .risk import is_at_risk
from .schemas import (
    AnnouncementRecord,
    Collection,
    CreatePayload,
    DeletePayload,
    Snapshot,
    StudentRecord,
    UpdatePayload,
    UserRecord,
)
from .store import RecordStore


logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def _normalize_email(value: str) -> str:
    normalized = value.lower().strip()
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError("Invalid email format")
    return normalized


def _new_id() -> str:
    return uuid.uuid4().hex


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def parse_bounded(value: Any, *, field: str, upper: float) -> float:
    """Strict numeric read for incoming edits; rejects rather than coerces."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}") from None
    if not math.isfinite(number) or number < 0 or number > upper:
        raise ValidationError(f"{field} must be between 0 and {upper:g}, got {value!r}")
    return number


def attendance_percent(days: float, total_days: int) -> int:
    return round_half_up(days / total_days * 100) if total_days else 0


def _get_student(snapshot: Snapshot, student_id: str) -> StudentRecord:
    student = snapshot.students.get(student_id)
    if student is None:
        raise NotFound(f"Student {student_id} not found")
    return student


def _dispatch(store: RecordStore, payload) -> None:
    try:
        if isinstance(payload, UpdatePayload):
            store.apply(payload)
        elif isinstance(payload, CreatePayload):
            store.create(payload)
        else:
            store.delete(payload)
    except CollaboratorFailure:
        logger.error(f"Persistence rejected {type(payload).__name__} for {payload.collection.value}")
        raise


# ----- Academic records -----

def edit_scores(
    store: RecordStore,
    *,
    actor: UserRecord,
    student_id: str,
    term: Term,
    scores: Mapping[Subject | str, Any],
) -> UpdatePayload:
    term = Term(term)
    student = _get_student(store.snapshot(), student_id)
    access.authorize_academic_edit(actor, student)

    parsed = {}
    for key, value in scores.items():
        try:
            subject = Subject(key)
        except ValueError:
            raise ValidationError(f"Unknown subject {key!r}") from None
        parsed[subject.value] = parse_bounded(value, field=subject.label, upper=100)
    if not parsed:
        raise ValidationError("No scores supplied")

    # The store recomputes the term total from the row in the same write.
    payload = UpdatePayload(collection=Collection.STUDENTS, record_id=student.id, term=term, fields=parsed)
    _dispatch(store, payload)
    return payload


def edit_attendance(
    store: RecordStore,
    *,
    actor: UserRecord,
    student_id: str,
    term: Term,
    attendance_days: Any = None,
    cocu_days: Any = None,
) -> UpdatePayload:
    term = Term(term)
    student = _get_student(store.snapshot(), student_id)
    access.authorize_academic_edit(actor, student)

    fields = {}
    if attendance_days is not None:
        days = parse_bounded(attendance_days, field="Attendance days", upper=settings.total_school_days)
        fields["attendance_days"] = days
        fields["attendance"] = attendance_percent(days, settings.total_school_days)
    if cocu_days is not None:
        days = parse_bounded(cocu_days, field="Co-curriculum days", upper=settings.total_cocu_days)
        fields["cocu_days"] = days
        fields["cocu_attendance"] = attendance_percent(days, settings.total_cocu_days)
    if not fields:
        raise ValidationError("No attendance values supplied")

    payload = UpdatePayload(collection=Collection.STUDENTS, record_id=student.id, term=term, fields=fields)
    _dispatch(store, payload)
    return payload


def edit_comments(
    store: RecordStore,
    *,
    actor: UserRecord,
    student_id: str,
    term: Term,
    strength: str | None = None,
    weakness: str | None = None,
) -> UpdatePayload:
    student = _get_student(store.snapshot(), student_id)
    access.authorize_academic_edit(actor, student)

    fields = {}
    if strength is not None:
        fields["strength"] = strength.strip()
    if weakness is not None:
        fields["weakness"] = weakness.strip()
    if not fields:
        raise ValidationError("No comments supplied")

    payload = UpdatePayload(collection=Collection.STUDENTS, record_id=student.id, term=Term(term), fields=fields)
    _dispatch(store, payload)
    return payload


def edit_standing(
    store: RecordStore,
    *,
    actor: UserRecord,
    student_id: str,
    attendance: Any = None,
    grade: Any = None,
) -> UpdatePayload:
    student = _get_student(store.snapshot(), student_id)
    access.authorize_academic_edit(actor, student)

    fields = {}
    if attendance is not None:
        fields["attendance"] = parse_bounded(attendance, field="Attendance", upper=100)
    if grade is not None:
        fields["grade"] = parse_bounded(grade, field="Grade", upper=100)
    if not fields:
        raise ValidationError("No values supplied")

    payload = UpdatePayload(collection=Collection.STUDENTS, record_id=student.id, fields=fields)
    _dispatch(store, payload)
    return payload


# ----- Parent acknowledgement -----

def sign_report(
    store: RecordStore,
    *,
    actor: UserRecord,
    student_id: str,
    term: Term,
    now: datetime | None = None,
) -> UpdatePayload:
    term = Term(term)
    student = _get_student(store.snapshot(), student_id)
    access.authorize_sign(actor, student)
    if student.term(term).is_signed:
        raise PreconditionError(f"Term {term.value} report is already signed")

    payload = UpdatePayload(
        collection=Collection.STUDENTS,
        record_id=student.id,
        term=term,
        fields={"signed_by": actor.name or actor.email or "Parent", "signed_at": _now(now)},
    )
    _dispatch(store, payload)
    logger.info(f"Term {term.value} report for student {student.id} signed by {actor.id}")
    return payload


def unsign_report(store: RecordStore, *, actor: UserRecord, student_id: str, term: Term) -> UpdatePayload:
    term = Term(term)
    student = _get_student(store.snapshot(), student_id)
    access.authorize_clear_signature(actor, student)
    if not student.term(term).is_signed:
        raise PreconditionError(f"Term {term.value} report is not signed")

    payload = UpdatePayload(
        collection=Collection.STUDENTS,
        record_id=student.id,
        term=term,
        fields={"signed_by": None, "signed_at": None},
    )
    _dispatch(store, payload)
    logger.info(f"Term {term.value} signature for student {student.id} cleared by {actor.id}")
    return payload


# ----- Wellbeing cases -----

def contact_student(
    store: RecordStore, *, actor: UserRecord, student_id: str, now: datetime | None = None
) -> UpdatePayload:
    access.authorize_workflow(actor)
    student = _get_student(store.snapshot(), student_id)
    if not is_at_risk(student):
        raise PreconditionError(f"Student {student.id} is not on the wellbeing alert list")

    payload = workflow.mark_contacted(student, now)
    _dispatch(store, payload)
    logger.info(f"Student {student.id} marked contacted by counselor {actor.id}")
    return payload


def toggle_case_resolution(store: RecordStore, *, actor: UserRecord, student_id: str) -> UpdatePayload:
    access.authorize_workflow(actor)
    student = _get_student(store.snapshot(), student_id)

    payload = workflow.toggle_resolution(student)
    _dispatch(store, payload)
    logger.info(f"Case for student {student.id} set to {payload.fields['case_status'].value} by {actor.id}")
    return payload


# ----- Administration -----

def create_student(
    store: RecordStore,
    *,
    actor: UserRecord,
    name: str,
    class_label: str,
    parent_id: str,
) -> StudentRecord:
    access.authorize_record_admin(actor)
    name, class_label, parent_id = (name or "").strip(), (class_label or "").strip(), (parent_id or "").strip()
    if not name or not class_label:
        raise ValidationError("Student name and class are required")
    if not parent_id:
        raise ValidationError("Select a parent first")
    parent = store.snapshot().users.get(parent_id)
    if parent is None or parent.role is not UserRole.PARENT:
        raise ValidationError(f"User {parent_id} is not a parent")

    student = StudentRecord(
        id=_new_id(),
        name=name,
        class_label=class_label,
        parent_id=parent_id,
        grade=0,
        attendance=100,
    )
    _dispatch(store, CreatePayload(collection=Collection.STUDENTS, record=student))
    logger.info(f"Student {student.id} created in class {class_label}")
    return student


def delete_student(store: RecordStore, *, actor: UserRecord, student_id: str) -> DeletePayload:
    access.authorize_record_admin(actor)
    payload = DeletePayload(collection=Collection.STUDENTS, record_id=student_id)
    _dispatch(store, payload)
    logger.info(f"Student {student_id} deleted by {actor.id}")
    return payload


def create_user(
    store: RecordStore,
    *,
    actor: UserRecord,
    name: str,
    email: str,
    role: UserRole,
    class_label: str | None = None,
) -> UserRecord:
    access.authorize_record_admin(actor)
    role = UserRole(role)
    name = (name or "").strip()
    if not name:
        raise ValidationError("User name is required")
    email = _normalize_email(email)
    class_label = (class_label or "").strip() or None
    has_class = access.role_has_class(role)
    if has_class and not class_label:
        raise ValidationError(f"A {role.value} must be assigned a class")
    if any(u.email == email for u in store.snapshot().users.values()):
        raise ValidationError("Email already in use")

    user = UserRecord(
        id=_new_id(),
        name=name,
        email=email,
        role=role,
        class_label=class_label if has_class else None,
    )
    _dispatch(store, CreatePayload(collection=Collection.USERS, record=user))
    return user


def delete_user(store: RecordStore, *, actor: UserRecord, user_id: str) -> DeletePayload:
    access.authorize_record_admin(actor)
    if user_id == actor.id:
        raise ValidationError("You cannot delete your own account")
    payload = DeletePayload(collection=Collection.USERS, record_id=user_id)
    _dispatch(store, payload)
    return payload


def update_profile(
    store: RecordStore,
    *,
    actor: UserRecord,
    name: str | None = None,
    class_label: str | None = None,
) -> UpdatePayload:
    """Self-service edit of the caller's own display name and, for class-bound roles, class.

    A new class immediately changes which students the caller sees and where
    their next announcement is posted.
    """
    fields = {}
    if name is not None:
        if not name.strip():
            raise ValidationError("Name cannot be blank")
        fields["name"] = name.strip()
    if class_label is not None:
        access.authorize_class_change(actor)
        if not class_label.strip():
            raise ValidationError("Class cannot be blank")
        fields["class_label"] = class_label.strip()
    if not fields:
        raise ValidationError("Nothing to update")

    payload = UpdatePayload(collection=Collection.USERS, record_id=actor.id, fields=fields)
    _dispatch(store, payload)
    logger.info(f"User {actor.id} updated profile fields {sorted(fields)}")
    return payload


# ----- Announcements -----

def create_announcement(
    store: RecordStore,
    *,
    actor: UserRecord,
    title: str,
    body: str,
    now: datetime | None = None,
) -> AnnouncementRecord:
    target = access.announcement_target(actor)
    if not title.strip() or not body.strip():
        raise ValidationError("Title and message are required")

    created_at = _now(now)
    announcement = AnnouncementRecord(
        id=_new_id(),
        title=title.strip(),
        body=body.strip(),
        author=actor.name,
        author_id=actor.id,
        author_role=actor.role,
        target=target,
        created_at=created_at,
        updated_at=created_at,
    )
    _dispatch(store, CreatePayload(collection=Collection.ANNOUNCEMENTS, record=announcement))
    return announcement


def _get_announcement(store: RecordStore, announcement_id: str) -> AnnouncementRecord:
    announcement = store.snapshot().announcements.get(announcement_id)
    if announcement is None:
        raise NotFound(f"Announcement {announcement_id} not found")
    return announcement


def edit_announcement(
    store: RecordStore,
    *,
    actor: UserRecord,
    announcement_id: str,
    title: str | None = None,
    body: str | None = None,
    now: datetime | None = None,
) -> UpdatePayload:
    announcement = _get_announcement(store, announcement_id)
    access.authorize_announcement_change(actor, announcement)

    fields = {}
    if title is not None and title.strip():
        fields["title"] = title.strip()
    if body is not None and body.strip():
        fields["body"] = body.strip()
    if not fields:
        raise ValidationError("Nothing to update")
    # Bumping updated_at moves the post back to the top of the feed.
    fields.update({"edited": True, "updated_at": _now(now)})

    payload = UpdatePayload(collection=Collection.ANNOUNCEMENTS, record_id=announcement.id, fields=fields)
    _dispatch(store, payload)
    return payload


def delete_announcement(store: RecordStore, *, actor: UserRecord, announcement_id: str) -> DeletePayload:
    announcement = _get_announcement(store, announcement_id)
    access.authorize_announcement_change(actor, announcement)
    payload = DeletePayload(collection=Collection.ANNOUNCEMENTS, record_id=announcement.id)
    _dispatch(store, payload)
    return payload


# ----- Bootstrap -----

def seed_demo_records(store: RecordStore) -> None:
    snapshot = store.snapshot()
    if snapshot.users:
        return

    users = [
        UserRecord(id="admin", name="School Admin", email="admin@edulink.local", role=UserRole.ADMIN),
        UserRecord(id="counselor", name="Puan Aini", email="counselor@edulink.local", role=UserRole.COUNSELOR),
        UserRecord(
            id="teacher-3b", name="Cikgu Rahman", email="rahman@edulink.local",
            role=UserRole.TEACHER, class_label="3 Bestari",
        ),
        UserRecord(id="parent-1", name="Encik Azlan", email="azlan@edulink.local", role=UserRole.PARENT),
    ]
    for user in users:
        store.create(CreatePayload(collection=Collection.USERS, record=user))

    students = [
        StudentRecord(
            id="stu-1", name="Aiman", class_label="3 Bestari", parent_id="parent-1", attendance=96, grade=82,
            term1={"attendance": 96, "cocu_attendance": 100, "bm": 85, "english": 80, "math": 92, "science": 88},
        ),
        StudentRecord(
            id="stu-2", name="Balqis", class_label="3 Bestari", parent_id="parent-1", attendance=72, grade=48,
            term1={"attendance": 72, "cocu_attendance": 60, "bm": 45, "english": 58, "math": 39, "science": 62},
        ),
    ]
    for student in students:
        store.create(CreatePayload(collection=Collection.STUDENTS, record=student))
    logger.info(f"Seeded {len(users)} demo users and {len(students)} demo students")
