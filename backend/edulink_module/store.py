"""SQLAlchemy-backed persistence collaborator.

Hands out whole-collection snapshots, applies partial-field payloads and
notifies subscribers after every successful write. Concurrent writers are
last-write-wins.
"""
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from .database import SessionLocal
from .errors import CollaboratorFailure, NotFound
from .models import Announcement, Student, StudentTerm, Subject, Term, User
from .schemas import (
    AnnouncementRecord,
    Collection,
    CreatePayload,
    DeletePayload,
    Snapshot,
    StudentRecord,
    TermFields,
    UpdatePayload,
    UserRecord,
    coerce_number,
)


logger = logging.getLogger(__name__)

Subscriber = Callable[[Snapshot], None]

TERM_COLUMNS = (
    "attendance",
    "cocu_attendance",
    "attendance_days",
    "cocu_days",
    "bm",
    "english",
    "math",
    "science",
    "strength",
    "weakness",
    "signed_by",
    "signed_at",
)

SUBJECT_COLUMNS = frozenset(subject.value for subject in Subject)

MODELS = {
    Collection.STUDENTS: Student,
    Collection.USERS: User,
    Collection.ANNOUNCEMENTS: Announcement,
}


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _naive(value):
    # SQLite DateTime columns drop the offset; store everything as UTC.
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _subject_sum(row: StudentTerm) -> float:
    return sum(coerce_number(getattr(row, name)) or 0.0 for name in sorted(SUBJECT_COLUMNS))


def _term_fields(row: StudentTerm | None) -> TermFields:
    if row is None:
        return TermFields()
    data = {name: getattr(row, name) for name in TERM_COLUMNS}
    data["signed_at"] = _aware(row.signed_at)
    return TermFields(**data)


def student_to_record(row: Student) -> StudentRecord:
    terms = {t.term: t for t in row.terms}
    return StudentRecord(
        id=row.id,
        name=row.name,
        class_label=row.class_label,
        parent_id=row.parent_id,
        attendance=row.attendance,
        grade=row.grade,
        term1=_term_fields(terms.get(Term.ONE)),
        term2=_term_fields(terms.get(Term.TWO)),
        contact_status=row.contact_status,
        case_status=row.case_status,
        last_contacted_at=_aware(row.last_contacted_at),
        updated_at=_aware(row.updated_at),
    )


def user_to_record(row: User) -> UserRecord:
    return UserRecord(id=row.id, name=row.name, email=row.email, role=row.role, class_label=row.class_label)


def announcement_to_record(row: Announcement) -> AnnouncementRecord:
    return AnnouncementRecord(
        id=row.id,
        title=row.title,
        body=row.body,
        author=row.author,
        author_id=row.author_id,
        author_role=row.author_role,
        target=row.target,
        created_at=_aware(row.created_at),
        edited=row.edited,
        updated_at=_aware(row.updated_at),
    )


def _term_row(record: StudentRecord, term: Term) -> StudentTerm:
    fields = record.term(term)
    row = StudentTerm(term=term, total_score=fields.total_score)
    for name in TERM_COLUMNS:
        setattr(row, name, _naive(getattr(fields, name)))
    return row


def _record_to_row(record):
    if isinstance(record, StudentRecord):
        row = Student(
            id=record.id,
            name=record.name,
            class_label=record.class_label,
            parent_id=record.parent_id,
            attendance=record.attendance,
            grade=record.grade,
            contact_status=record.contact_status,
            case_status=record.case_status,
            last_contacted_at=_naive(record.last_contacted_at),
        )
        row.terms = [_term_row(record, Term.ONE), _term_row(record, Term.TWO)]
        return row
    if isinstance(record, UserRecord):
        return User(
            id=record.id,
            name=record.name,
            email=record.email,
            role=record.role,
            class_label=record.class_label,
        )
    return Announcement(
        id=record.id,
        title=record.title,
        body=record.body,
        author=record.author,
        author_id=record.author_id,
        author_role=record.author_role,
        target=record.target,
        created_at=_naive(record.created_at),
        edited=record.edited,
        updated_at=_naive(record.updated_at),
    )


class RecordStore:
    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory
        self._subscribers: list[Subscriber] = []

    # ----- Reads -----

    def snapshot(self) -> Snapshot:
        db = self._session_factory()
        try:
            students = db.query(Student).options(selectinload(Student.terms)).all()
            users = db.query(User).all()
            announcements = db.query(Announcement).all()
            return Snapshot(
                students={row.id: student_to_record(row) for row in students},
                users={row.id: user_to_record(row) for row in users},
                announcements={row.id: announcement_to_record(row) for row in announcements},
            )
        finally:
            db.close()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ----- Writes -----

    def apply(self, payload: UpdatePayload) -> None:
        def write(db):
            row = db.get(MODELS[payload.collection], payload.record_id)
            if row is None:
                raise NotFound(f"{payload.collection.value} record {payload.record_id} not found")
            target = row
            if payload.term is not None:
                target = next((t for t in row.terms if t.term == payload.term), None)
                if target is None:
                    target = StudentTerm(term=payload.term)
                    row.terms.append(target)
            for name, value in payload.fields.items():
                if name == "total_score":
                    raise CollaboratorFailure("total_score is derived from the subject scores", payload)
                if not hasattr(target, name):
                    raise CollaboratorFailure(f"Unknown field {name!r}", payload)
                setattr(target, name, _naive(value))
            # Recomputed from the row inside this transaction, never taken from the caller.
            if isinstance(target, StudentTerm) and SUBJECT_COLUMNS.intersection(payload.fields):
                target.total_score = _subject_sum(target)

        self._write(payload, write)

    def create(self, payload: CreatePayload) -> None:
        self._write(payload, lambda db: db.add(_record_to_row(payload.record)))

    def delete(self, payload: DeletePayload) -> None:
        def write(db):
            row = db.get(MODELS[payload.collection], payload.record_id)
            if row is None:
                raise NotFound(f"{payload.collection.value} record {payload.record_id} not found")
            db.delete(row)

        self._write(payload, write)

    def _write(self, payload, operation) -> None:
        db = self._session_factory()
        try:
            operation(db)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Write to {payload.collection.value} failed: {exc}")
            raise CollaboratorFailure(f"Failed to write {payload.collection.value} record", payload) from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        self._notify()

    def _notify(self) -> None:
        if not self._subscribers:
            return
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as exc:
                logger.error(f"Snapshot subscriber failed: {exc}")


record_store = RecordStore()
