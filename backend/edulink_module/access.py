"""Role capabilities and record visibility.

Every read filter and mutation check in the package goes through the
``CAPABILITIES`` table below; nothing else branches on ``UserRole``.
"""
import enum
from collections.abc import Iterable
from dataclasses import dataclass

from .errors import AccessDenied, ValidationError
from .models import UserRole
from .schemas import (
    ALL_TARGET,
    UNLINKED,
    AnnouncementRecord,
    ParentContact,
    StudentRecord,
    UserRecord,
)


class StudentScope(str, enum.Enum):
    ALL = "all"
    OWN_CLASS = "own_class"
    OWN_CHILDREN = "own_children"


class AnnouncementScope(str, enum.Enum):
    ALL = "all"
    GLOBAL_AND_OWN_CLASS = "global_and_own_class"
    GLOBAL_AND_CHILDREN_CLASSES = "global_and_children_classes"
    GLOBAL_ONLY = "global_only"


class PostTarget(str, enum.Enum):
    NONE = "none"
    SCHOOL_WIDE = "school_wide"
    OWN_CLASS = "own_class"


@dataclass(frozen=True)
class RoleCapabilities:
    students: StudentScope
    announcements: AnnouncementScope
    post_target: PostTarget = PostTarget.NONE
    moderate_announcements: bool = False
    edit_academics: bool = False
    sign_reports: bool = False
    clear_signatures: bool = False
    drive_workflow: bool = False
    read_parent_contact: bool = False
    manage_records: bool = False
    assigned_class: bool = False


CAPABILITIES = {
    UserRole.ADMIN: RoleCapabilities(
        students=StudentScope.ALL,
        announcements=AnnouncementScope.ALL,
        post_target=PostTarget.SCHOOL_WIDE,
        moderate_announcements=True,
        edit_academics=True,
        clear_signatures=True,
        read_parent_contact=True,
        manage_records=True,
    ),
    UserRole.TEACHER: RoleCapabilities(
        students=StudentScope.OWN_CLASS,
        announcements=AnnouncementScope.GLOBAL_AND_OWN_CLASS,
        post_target=PostTarget.OWN_CLASS,
        edit_academics=True,
        clear_signatures=True,
        assigned_class=True,
    ),
    UserRole.PARENT: RoleCapabilities(
        students=StudentScope.OWN_CHILDREN,
        announcements=AnnouncementScope.GLOBAL_AND_CHILDREN_CLASSES,
        sign_reports=True,
    ),
    UserRole.COUNSELOR: RoleCapabilities(
        students=StudentScope.ALL,
        announcements=AnnouncementScope.GLOBAL_ONLY,
        drive_workflow=True,
        read_parent_contact=True,
    ),
}


def capabilities_for(user: UserRecord) -> RoleCapabilities:
    return CAPABILITIES[UserRole(user.role)]


def role_has_class(role: UserRole) -> bool:
    return CAPABILITIES[UserRole(role)].assigned_class


# ----- Reads -----

def can_see_student(user: UserRecord, student: StudentRecord) -> bool:
    scope = capabilities_for(user).students
    if scope is StudentScope.ALL:
        return True
    if scope is StudentScope.OWN_CLASS:
        return bool(user.class_label) and student.class_label == user.class_label
    return student.parent_id == user.id


def visible_students(students: Iterable[StudentRecord], user: UserRecord) -> list[StudentRecord]:
    return [s for s in students if can_see_student(user, s)]


def children_classes(students: Iterable[StudentRecord], user: UserRecord) -> set[str]:
    return {s.class_label for s in students if s.parent_id == user.id and s.class_label}


def visible_announcements(
    announcements: Iterable[AnnouncementRecord],
    user: UserRecord,
    students: Iterable[StudentRecord] = (),
) -> list[AnnouncementRecord]:
    """Announcements the user may read, newest (or most recently edited) first."""
    scope = capabilities_for(user).announcements
    if scope is AnnouncementScope.ALL:
        targets = None
    elif scope is AnnouncementScope.GLOBAL_AND_OWN_CLASS:
        targets = {ALL_TARGET, user.class_label}
    elif scope is AnnouncementScope.GLOBAL_AND_CHILDREN_CLASSES:
        targets = {ALL_TARGET} | children_classes(students, user)
    else:
        targets = {ALL_TARGET}

    feed = [a for a in announcements if targets is None or a.target in targets]
    feed.sort(key=lambda a: a.sort_key, reverse=True)
    return feed


def parent_name(student: StudentRecord, users: dict[str, UserRecord]) -> str:
    parent = users.get(student.parent_id) if student.parent_id else None
    if parent is None or parent.role is not UserRole.PARENT:
        return UNLINKED
    return parent.name


def parent_contact(
    user: UserRecord, student: StudentRecord, users: dict[str, UserRecord]
) -> ParentContact | None:
    if not capabilities_for(user).read_parent_contact:
        raise AccessDenied("Parent contact details are restricted to counselors and admins")
    parent = users.get(student.parent_id) if student.parent_id else None
    if parent is None or parent.role is not UserRole.PARENT:
        return None
    return ParentContact(parent_id=parent.id, name=parent.name, email=parent.email)


# ----- Mutations -----

def authorize_view(user: UserRecord, student: StudentRecord) -> None:
    if not can_see_student(user, student):
        raise AccessDenied("Student is outside your visible records")


def authorize_class_view(user: UserRecord, class_label: str) -> None:
    scope = capabilities_for(user).students
    if scope is StudentScope.ALL:
        return
    if scope is StudentScope.OWN_CLASS and user.class_label and user.class_label == class_label:
        return
    raise AccessDenied("Class rankings are limited to staff of that class")


def authorize_academic_edit(user: UserRecord, student: StudentRecord) -> None:
    if not capabilities_for(user).edit_academics or not can_see_student(user, student):
        raise AccessDenied("Only admins and the class teacher may edit academic records")


def authorize_sign(user: UserRecord, student: StudentRecord) -> None:
    if not capabilities_for(user).sign_reports or student.parent_id != user.id:
        raise AccessDenied("Only the linked parent may sign this report")


def authorize_clear_signature(user: UserRecord, student: StudentRecord) -> None:
    if not capabilities_for(user).clear_signatures or not can_see_student(user, student):
        raise AccessDenied("Only admins and the class teacher may clear a signature")


def authorize_workflow(user: UserRecord) -> None:
    if not capabilities_for(user).drive_workflow:
        raise AccessDenied("Only counselors may update wellbeing cases")


def authorize_record_admin(user: UserRecord) -> None:
    if not capabilities_for(user).manage_records:
        raise AccessDenied("Only admins may manage student and user records")


def announcement_target(user: UserRecord) -> str:
    """Target assigned to a new post; callers never choose it."""
    post_target = capabilities_for(user).post_target
    if post_target is PostTarget.SCHOOL_WIDE:
        return ALL_TARGET
    if post_target is PostTarget.OWN_CLASS:
        if not user.class_label:
            raise ValidationError("Teacher has no class assigned")
        return user.class_label
    raise AccessDenied("Only admins and teachers may post announcements")


def can_change_announcement(user: UserRecord, announcement: AnnouncementRecord) -> bool:
    if capabilities_for(user).moderate_announcements:
        return True
    if announcement.author_id is not None:
        return announcement.author_id == user.id
    # Posts written before author ids were recorded: name and role must both match.
    return announcement.author == user.name and announcement.author_role is UserRole(user.role)


def authorize_announcement_change(user: UserRecord, announcement: AnnouncementRecord) -> None:
    if not can_change_announcement(user, announcement):
        raise AccessDenied("Only admins or the author may change this announcement")


def authorize_class_change(user: UserRecord) -> None:
    if not capabilities_for(user).assigned_class:
        raise AccessDenied("Only roles with an assigned class may change it")
