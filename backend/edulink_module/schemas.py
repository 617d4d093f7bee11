import enum
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .models import CaseState, CaseStatus, ContactStatus, Grade, Priority, Subject, Term, UserRole


ALL_TARGET = "All"
UNRANKED = "unranked"
UNLINKED = "Unlinked"

NUMERIC_TERM_FIELDS = (
    "attendance",
    "cocu_attendance",
    "attendance_days",
    "cocu_days",
    "bm",
    "english",
    "math",
    "science",
)


def coerce_number(value: Any) -> float | None:
    """Lenient numeric read used on stored snapshots.

    Missing or blank values stay ``None``. Anything else that does not parse as a
    finite number reads as 0 so a corrupted score shows up as flagged rather
    than silently passing.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


class Collection(str, enum.Enum):
    STUDENTS = "students"
    USERS = "users"
    ANNOUNCEMENTS = "announcements"


# ----- Snapshot records -----

class TermFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    attendance: float | None = None
    cocu_attendance: float | None = None
    attendance_days: float | None = None
    cocu_days: float | None = None
    bm: float | None = None
    english: float | None = None
    math: float | None = None
    science: float | None = None
    strength: str = ""
    weakness: str = ""
    signed_by: str | None = None
    signed_at: datetime | None = None

    @field_validator(*NUMERIC_TERM_FIELDS, mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float | None:
        return coerce_number(value)

    def subject_scores(self) -> dict[Subject, float]:
        scores = {}
        for subject in Subject:
            value = getattr(self, subject.value)
            if value is not None:
                scores[subject] = value
        return scores

    @computed_field
    @property
    def total_score(self) -> float:
        return sum(self.subject_scores().values())

    @property
    def is_signed(self) -> bool:
        return bool(self.signed_by)


class StudentRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    class_label: str
    parent_id: str | None = None
    attendance: float | None = None
    grade: float | None = None
    term1: TermFields = Field(default_factory=TermFields)
    term2: TermFields = Field(default_factory=TermFields)
    contact_status: ContactStatus = ContactStatus.UNCONTACTED
    case_status: CaseStatus | None = None
    last_contacted_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("attendance", "grade", mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float | None:
        return coerce_number(value)

    def term(self, term: Term) -> TermFields:
        return self.term1 if Term(term) is Term.ONE else self.term2

    @property
    def year_level(self) -> str:
        return self.class_label.split(" ", 1)[0] if self.class_label else ""


class UserRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    role: UserRole
    class_label: str | None = None


class AnnouncementRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    body: str
    author: str
    author_id: str | None = None
    author_role: UserRole
    target: str = ALL_TARGET
    created_at: datetime
    edited: bool = False
    updated_at: datetime | None = None

    @property
    def sort_key(self) -> datetime:
        return self.updated_at or self.created_at


@dataclass(frozen=True)
class Snapshot:
    students: dict[str, StudentRecord] = field(default_factory=dict)
    users: dict[str, UserRecord] = field(default_factory=dict)
    announcements: dict[str, AnnouncementRecord] = field(default_factory=dict)


# ----- Mutation payloads -----

class UpdatePayload(BaseModel):
    """Partial-field update; ``term`` scopes ``fields`` to one term's block."""

    model_config = ConfigDict(frozen=True)

    collection: Collection
    record_id: str
    fields: dict[str, Any] = Field(default_factory=dict)
    term: Term | None = None


class CreatePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection: Collection
    record: StudentRecord | UserRecord | AnnouncementRecord


class DeletePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    collection: Collection
    record_id: str


# ----- Derived views -----

class RiskFlag(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float
    level: Priority


class FailingSubject(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    score: float
    level: Priority


class TermRisk(BaseModel):
    model_config = ConfigDict(frozen=True)

    attendance_flag: RiskFlag | None = None
    cocu_flag: RiskFlag | None = None
    failing_subjects: list[FailingSubject] = Field(default_factory=list)
    priority: Priority = Priority.NORMAL
    average_grade: int = 0


class ClassRank(BaseModel):
    model_config = ConfigDict(frozen=True)

    rank: int | Literal["unranked"]
    class_size: int

    @property
    def is_ranked(self) -> bool:
        return self.rank != UNRANKED


class WellbeingAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    student: StudentRecord
    term1: TermRisk
    term2: TermRisk
    priority: Priority
    case_state: CaseState


class StudentRisk(BaseModel):
    student_id: str
    term1: TermRisk
    term2: TermRisk
    priority: Priority
    case_state: CaseState


class LeaderboardEntry(BaseModel):
    student_id: str
    name: str
    total_score: float
    average_grade_point: float | None = None
    rank: ClassRank


class DashboardSummary(BaseModel):
    total_students: int
    low_attendance: int
    at_risk: int


class StudentReport(BaseModel):
    student: StudentRecord
    term: Term
    total_score: float
    grades: dict[Subject, Grade]
    class_rank: ClassRank
    year_rank: ClassRank
    top_percent: int | None = None
    parent_name: str
    signed: bool


class ParentContact(BaseModel):
    parent_id: str
    name: str
    email: str


# ----- Requests -----

class ScoreEditRequest(BaseModel):
    term: Term
    scores: dict[Subject, Any] = Field(min_length=1)


class AttendanceEditRequest(BaseModel):
    term: Term
    attendance_days: Any = None
    cocu_days: Any = None


class CommentEditRequest(BaseModel):
    term: Term
    strength: str | None = None
    weakness: str | None = None


class StandingEditRequest(BaseModel):
    attendance: Any = None
    grade: Any = None


class SignRequest(BaseModel):
    term: Term


class StudentCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    class_label: str = Field(min_length=1, max_length=80)
    parent_id: str = Field(min_length=1)


class UserCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=5, max_length=255)
    role: UserRole
    class_label: str | None = None


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    class_label: str | None = Field(default=None, max_length=80)


class AnnouncementCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1)


class AnnouncementEditRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    body: str | None = Field(default=None, min_length=1)


def apply_update(record: BaseModel, payload: UpdatePayload) -> BaseModel:
    """Return ``record`` with ``payload`` merged in, validated like a fresh snapshot."""
    data = record.model_dump()
    if payload.term is None:
        data.update(payload.fields)
    else:
        key = "term1" if Term(payload.term) is Term.ONE else "term2"
        data[key] = {**data[key], **payload.fields}
    return type(record).model_validate(data)
