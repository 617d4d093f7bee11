import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from edulink_module.database import Base, build_engine, build_session_factory
from edulink_module.middleware import get_store
from edulink_module.models import UserRole
from edulink_module.schemas import Collection, CreatePayload, StudentRecord, UserRecord
from edulink_module.store import RecordStore


def make_student(student_id="stu", name=None, class_label="3 Bestari", **kwargs) -> StudentRecord:
    return StudentRecord(id=student_id, name=name or student_id, class_label=class_label, **kwargs)


def scores(bm=None, english=None, math=None, science=None, **extra) -> dict:
    fields = {"bm": bm, "english": english, "math": math, "science": science}
    fields.update(extra)
    return fields


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return RecordStore(build_session_factory(engine))


@pytest.fixture
def admin():
    return UserRecord(id="admin", name="Admin", email="admin@edulink.test", role=UserRole.ADMIN)


@pytest.fixture
def teacher():
    return UserRecord(
        id="teacher", name="Cikgu Rahman", email="teacher@edulink.test", role=UserRole.TEACHER, class_label="3 Bestari"
    )


@pytest.fixture
def other_teacher():
    return UserRecord(
        id="teacher-5c", name="Cikgu Lim", email="lim@edulink.test", role=UserRole.TEACHER, class_label="5 Cerdik"
    )


@pytest.fixture
def parent():
    return UserRecord(id="parent", name="Encik Azlan", email="parent@edulink.test", role=UserRole.PARENT)


@pytest.fixture
def counselor():
    return UserRecord(id="counselor", name="Puan Aini", email="counselor@edulink.test", role=UserRole.COUNSELOR)


@pytest.fixture
def seeded_store(store, admin, teacher, other_teacher, parent, counselor):
    """Two children of ``parent`` in different classes plus one unrelated pupil."""
    for user in (admin, teacher, other_teacher, parent, counselor):
        store.create(CreatePayload(collection=Collection.USERS, record=user))

    students = [
        make_student(
            "aiman", name="Aiman", parent_id="parent",
            term1=scores(bm=80, english=70, math=90, science=60, attendance=95, cocu_attendance=100),
        ),
        make_student(
            "balqis", name="Balqis", class_label="4 Amanah", parent_id="parent",
            term1=scores(bm=40, english=55, math=35, science=62, attendance=70, cocu_attendance=90),
        ),
        make_student("chong", name="Chong", class_label="5 Cerdik", term1=scores(bm=90, english=90, math=90, science=90)),
    ]
    for student in students:
        store.create(CreatePayload(collection=Collection.STUDENTS, record=student))
    return store


@pytest.fixture
def client(seeded_store):
    from main import app

    app.dependency_overrides[get_store] = lambda: seeded_store
    yield TestClient(app)
    app.dependency_overrides.clear()
