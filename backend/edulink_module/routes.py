from fastapi import APIRouter, Depends, Query, status

from . import access, services
from .errors import NotFound
from .middleware import get_current_user, get_store
from .models import Term
from .reports import available_classes, build_report, class_leaderboard, report_list
from .risk import dashboard_summary, student_risk, wellbeing_alerts
from .schemas import (
    AnnouncementCreateRequest,
    AnnouncementEditRequest,
    AnnouncementRecord,
    AttendanceEditRequest,
    CommentEditRequest,
    DashboardSummary,
    DeletePayload,
    LeaderboardEntry,
    ParentContact,
    ProfileUpdateRequest,
    ScoreEditRequest,
    SignRequest,
    StandingEditRequest,
    StudentCreateRequest,
    StudentRecord,
    StudentReport,
    StudentRisk,
    UpdatePayload,
    UserCreateRequest,
    UserRecord,
    WellbeingAlert,
)
from .store import RecordStore

router = APIRouter(prefix="/api/v1/edulink", tags=["EduLink Reports"])


def _visible_student(store: RecordStore, user: UserRecord, student_id: str):
    snapshot = store.snapshot()
    student = snapshot.students.get(student_id)
    if student is None:
        raise NotFound(f"Student {student_id} not found")
    access.authorize_view(user, student)
    return snapshot, student


@router.get("/me", response_model=UserRecord)
def me(current_user: UserRecord = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=UpdatePayload)
def update_me(
    payload: ProfileUpdateRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.update_profile(store, actor=current_user, name=payload.name, class_label=payload.class_label)


# ----- Reads -----

@router.get("/reports", response_model=list[StudentReport])
def list_reports(
    term: int = Query(default=1, ge=1, le=2),
    year: str | None = None,
    class_label: str | None = None,
    q: str | None = None,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return report_list(store.snapshot(), current_user, Term(term), year_level=year, class_label=class_label, query=q)


@router.get("/classes", response_model=list[str])
def list_classes(
    year: str | None = None,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    students = access.visible_students(store.snapshot().students.values(), current_user)
    return available_classes(students, year)


@router.get("/classes/{class_label}/ranking", response_model=list[LeaderboardEntry])
def class_ranking_table(
    class_label: str,
    term: int = Query(default=1, ge=1, le=2),
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return class_leaderboard(store.snapshot(), current_user, class_label, Term(term))


@router.get("/students/{student_id}/report", response_model=StudentReport)
def student_report(
    student_id: str,
    term: int = Query(default=1, ge=1, le=2),
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    snapshot, student = _visible_student(store, current_user, student_id)
    return build_report(snapshot, student, Term(term))


@router.get("/students/{student_id}/risk", response_model=StudentRisk)
def student_risk_profile(
    student_id: str,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    _, student = _visible_student(store, current_user, student_id)
    return student_risk(student)


@router.get("/students/{student_id}/parent-contact", response_model=ParentContact | None)
def student_parent_contact(
    student_id: str,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    snapshot, student = _visible_student(store, current_user, student_id)
    return access.parent_contact(current_user, student, snapshot.users)


@router.get("/wellbeing", response_model=list[WellbeingAlert])
def wellbeing(store: RecordStore = Depends(get_store), current_user: UserRecord = Depends(get_current_user)):
    return wellbeing_alerts(access.visible_students(store.snapshot().students.values(), current_user))


@router.get("/dashboard", response_model=DashboardSummary)
def dashboard(store: RecordStore = Depends(get_store), current_user: UserRecord = Depends(get_current_user)):
    return dashboard_summary(access.visible_students(store.snapshot().students.values(), current_user))


@router.get("/announcements", response_model=list[AnnouncementRecord])
def announcements(store: RecordStore = Depends(get_store), current_user: UserRecord = Depends(get_current_user)):
    snapshot = store.snapshot()
    return access.visible_announcements(
        snapshot.announcements.values(), current_user, snapshot.students.values()
    )


# ----- Academic mutations -----

@router.patch("/students/{student_id}/scores", response_model=UpdatePayload)
def update_scores(
    student_id: str,
    payload: ScoreEditRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.edit_scores(
        store, actor=current_user, student_id=student_id, term=payload.term, scores=payload.scores
    )


@router.patch("/students/{student_id}/attendance", response_model=UpdatePayload)
def update_attendance(
    student_id: str,
    payload: AttendanceEditRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.edit_attendance(
        store,
        actor=current_user,
        student_id=student_id,
        term=payload.term,
        attendance_days=payload.attendance_days,
        cocu_days=payload.cocu_days,
    )


@router.patch("/students/{student_id}/comments", response_model=UpdatePayload)
def update_comments(
    student_id: str,
    payload: CommentEditRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.edit_comments(
        store,
        actor=current_user,
        student_id=student_id,
        term=payload.term,
        strength=payload.strength,
        weakness=payload.weakness,
    )


@router.patch("/students/{student_id}/standing", response_model=UpdatePayload)
def update_standing(
    student_id: str,
    payload: StandingEditRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.edit_standing(
        store, actor=current_user, student_id=student_id, attendance=payload.attendance, grade=payload.grade
    )


@router.post("/students/{student_id}/signature", response_model=UpdatePayload)
def sign(
    student_id: str,
    payload: SignRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.sign_report(store, actor=current_user, student_id=student_id, term=payload.term)


@router.post("/students/{student_id}/signature/clear", response_model=UpdatePayload)
def unsign(
    student_id: str,
    payload: SignRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.unsign_report(store, actor=current_user, student_id=student_id, term=payload.term)


# ----- Wellbeing workflow -----

@router.post("/students/{student_id}/contact", response_model=UpdatePayload)
def contact(
    student_id: str,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.contact_student(store, actor=current_user, student_id=student_id)


@router.post("/students/{student_id}/resolution", response_model=UpdatePayload)
def resolution(
    student_id: str,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.toggle_case_resolution(store, actor=current_user, student_id=student_id)


# ----- Administration -----

@router.post("/students", response_model=StudentRecord, status_code=status.HTTP_201_CREATED)
def add_student(
    payload: StudentCreateRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.create_student(
        store,
        actor=current_user,
        name=payload.name,
        class_label=payload.class_label,
        parent_id=payload.parent_id,
    )


@router.delete("/students/{student_id}", response_model=DeletePayload)
def remove_student(
    student_id: str,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.delete_student(store, actor=current_user, student_id=student_id)


@router.post("/users", response_model=UserRecord, status_code=status.HTTP_201_CREATED)
def add_user(
    payload: UserCreateRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.create_user(
        store,
        actor=current_user,
        name=payload.name,
        email=payload.email,
        role=payload.role,
        class_label=payload.class_label,
    )


@router.delete("/users/{user_id}", response_model=DeletePayload)
def remove_user(
    user_id: str,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.delete_user(store, actor=current_user, user_id=user_id)


# ----- Announcements -----

@router.post("/announcements", response_model=AnnouncementRecord, status_code=status.HTTP_201_CREATED)
def post_announcement(
    payload: AnnouncementCreateRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.create_announcement(store, actor=current_user, title=payload.title, body=payload.body)


@router.patch("/announcements/{announcement_id}", response_model=UpdatePayload)
def update_announcement(
    announcement_id: str,
    payload: AnnouncementEditRequest,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.edit_announcement(
        store,
        actor=current_user,
        announcement_id=announcement_id,
        title=payload.title,
        body=payload.body,
    )


@router.delete("/announcements/{announcement_id}", response_model=DeletePayload)
def remove_announcement(
    announcement_id: str,
    store: RecordStore = Depends(get_store),
    current_user: UserRecord = Depends(get_current_user),
):
    return services.delete_announcement(store, actor=current_user, announcement_id=announcement_id)
