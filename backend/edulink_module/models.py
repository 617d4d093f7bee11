import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"
    COUNSELOR = "counselor"


class Term(int, enum.Enum):
    ONE = 1
    TWO = 2


class Subject(str, enum.Enum):
    BM = "bm"
    ENGLISH = "english"
    MATH = "math"
    SCIENCE = "science"

    @property
    def label(self) -> str:
        return SUBJECT_LABELS[self]


SUBJECT_LABELS = {
    Subject.BM: "Bahasa Melayu",
    Subject.ENGLISH: "English",
    Subject.MATH: "Mathematics",
    Subject.SCIENCE: "Science",
}


class Grade(str, enum.Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"


class Priority(str, enum.Enum):
    NORMAL = "Normal"
    LOW = "Low"
    HIGH = "High"


class ContactStatus(str, enum.Enum):
    UNCONTACTED = "uncontacted"
    CONTACTED = "contacted"


class CaseStatus(str, enum.Enum):
    UNRESOLVED = "Unresolved"
    RESOLVED = "Resolved"


class CaseState(str, enum.Enum):
    PENDING = "Pending"
    UNRESOLVED = "Contacted/Unresolved"
    RESOLVED = "Resolved"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False, index=True)
    class_label: Mapped[str | None] = mapped_column(String(80), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Student(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    class_label: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    # Not a foreign key: a dangling parent reference is the "unlinked" state.
    parent_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    attendance: Mapped[float | None] = mapped_column(Float, nullable=True)
    grade: Mapped[float | None] = mapped_column(Float, nullable=True)
    contact_status: Mapped[ContactStatus] = mapped_column(
        Enum(ContactStatus), default=ContactStatus.UNCONTACTED, nullable=False
    )
    case_status: Mapped[CaseStatus | None] = mapped_column(Enum(CaseStatus), nullable=True)
    last_contacted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    terms: Mapped[list["StudentTerm"]] = relationship(
        "StudentTerm", back_populates="student", cascade="all, delete-orphan"
    )


class StudentTerm(Base):
    __tablename__ = "student_terms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    student_id: Mapped[str] = mapped_column(ForeignKey("students.id"), nullable=False, index=True)
    term: Mapped[Term] = mapped_column(Enum(Term), nullable=False)
    attendance: Mapped[float | None] = mapped_column(Float, nullable=True)
    cocu_attendance: Mapped[float | None] = mapped_column(Float, nullable=True)
    attendance_days: Mapped[float | None] = mapped_column(Float, nullable=True)
    cocu_days: Mapped[float | None] = mapped_column(Float, nullable=True)
    bm: Mapped[float | None] = mapped_column(Float, nullable=True)
    english: Mapped[float | None] = mapped_column(Float, nullable=True)
    math: Mapped[float | None] = mapped_column(Float, nullable=True)
    science: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    strength: Mapped[str] = mapped_column(Text, default="", nullable=False)
    weakness: Mapped[str] = mapped_column(Text, default="", nullable=False)
    signed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    signed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    student: Mapped[Student] = relationship("Student", back_populates="terms")

    __table_args__ = (
        UniqueConstraint("student_id", "term", name="uq_student_term"),
    )


class Announcement(Base):
    __tablename__ = "announcements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    author_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    author_role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)
    target: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
