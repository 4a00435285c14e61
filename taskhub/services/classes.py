"""Class roster management and cascading deletes."""
from __future__ import annotations

import logging
from datetime import datetime

from pymongo.errors import DuplicateKeyError

from taskhub.errors import ConflictError, NotFoundError, ValidationError
from taskhub.models.activity import Activity
from taskhub.models.announcement import Announcement
from taskhub.models.school_class import SchoolClass, SchoolClassCreate
from taskhub.models.submission import Submission
from taskhub.models.user import User, UserRole
from taskhub.services.ids import object_ids, parse_object_id, safe_object_id, unique_ids

logger = logging.getLogger(__name__)


async def get_class(class_id: str) -> SchoolClass:
    school_class = await SchoolClass.get(parse_object_id(class_id, "class"))
    if not school_class:
        raise NotFoundError("Class not found")
    return school_class


async def _validate_details(data: SchoolClassCreate) -> None:
    missing = [name for name in ("name", "teacher_id", "day") if not (getattr(data, name) or "").strip()]
    if missing:
        raise ValidationError("Class name, teacher and day are required", fields=missing)
    oid = safe_object_id(data.teacher_id)
    teacher = await User.get(oid) if oid else None
    if not teacher or teacher.role != UserRole.TEACHER:
        raise ValidationError("A valid teacher ID is required", fields=["teacher_id"])


async def _ensure_name_free(name: str, exclude_id=None) -> None:
    existing = await SchoolClass.find_one(SchoolClass.name == name)
    if existing and existing.id != exclude_id:
        raise ConflictError(f"Class with name '{name}' already exists.", fields=["name"])


async def create_class(data: SchoolClassCreate) -> SchoolClass:
    await _validate_details(data)
    name = data.name.strip()
    await _ensure_name_free(name)
    school_class = SchoolClass(
        name=name,
        teacher_id=data.teacher_id,
        day=data.day.strip(),
        time=data.time if isinstance(data.time, str) else "",
        room_number=data.room_number,
    )
    try:
        await school_class.insert()
    except DuplicateKeyError:
        raise ConflictError(f"Class with name '{name}' already exists.", fields=["name"])
    return school_class


async def update_class(class_id: str, data: SchoolClassCreate) -> SchoolClass:
    school_class = await get_class(class_id)
    await _validate_details(data)
    name = data.name.strip()
    await _ensure_name_free(name, exclude_id=school_class.id)
    school_class.name = name
    school_class.teacher_id = data.teacher_id
    school_class.day = data.day.strip()
    school_class.time = data.time if isinstance(data.time, str) else ""
    school_class.room_number = data.room_number
    school_class.updated_at = datetime.utcnow()
    try:
        await school_class.save()
    except DuplicateKeyError:
        raise ConflictError(f"Class with name '{name}' already exists.", fields=["name"])
    return school_class


async def set_roster(class_id: str, student_ids: list[str]) -> SchoolClass:
    school_class = await get_class(class_id)
    school_class.student_ids = [sid for sid in unique_ids(student_ids) if safe_object_id(sid)]
    school_class.updated_at = datetime.utcnow()
    await school_class.save()
    return school_class


async def classes_for_student(student_id: str) -> list[SchoolClass]:
    parse_object_id(student_id, "student")
    return await SchoolClass.find({"student_ids": student_id}).sort("-created_at").to_list()


async def delete_class(class_id: str) -> list:
    """Delete a class and everything it owns; returns stored files to clean up.

    Announcements, activities and the activities' submissions all go with it.
    """
    school_class = await get_class(class_id)
    cid = str(school_class.id)

    announcements = await Announcement.find(Announcement.class_id == cid).to_list()
    activities = await Activity.find(Activity.class_id == cid).to_list()
    activity_ids = [str(a.id) for a in activities]
    submissions = (
        await Submission.find({"activity_id": {"$in": activity_ids}}).to_list()
        if activity_ids
        else []
    )

    files = [ref for a in announcements for ref in a.attachments]
    files.extend(a.attachment for a in activities if a.attachment is not None)
    files.extend(s.file for s in submissions if s.file is not None)

    if activity_ids:
        await Submission.find({"activity_id": {"$in": activity_ids}}).delete()
    await Activity.find(Activity.class_id == cid).delete()
    await Announcement.find(Announcement.class_id == cid).delete()
    await school_class.delete()
    logger.info(
        "Class %s deleted with %d announcement(s), %d activity(ies), %d submission(s)",
        cid,
        len(announcements),
        len(activities),
        len(submissions),
    )
    return files


async def build_user_map(user_ids) -> dict[str, User]:
    oids = object_ids(unique_ids(user_ids))
    if not oids:
        return {}
    users = await User.find({"_id": {"$in": oids}}).to_list()
    return {str(u.id): u for u in users}


def _user_brief(user: User | None, user_id: str) -> dict:
    if not user:
        return {"id": user_id, "full_name": "", "email": ""}
    return {"id": str(user.id), "full_name": user.full_name, "email": user.email}


async def serialize_classes(classes: list[SchoolClass]) -> list[dict]:
    ids: list[str] = []
    for c in classes:
        ids.append(c.teacher_id)
        ids.extend(c.student_ids)
    users = await build_user_map(ids)
    return [
        {
            "id": str(c.id),
            "name": c.name,
            "teacher": _user_brief(users.get(c.teacher_id), c.teacher_id),
            "day": c.day,
            "time": c.time,
            "room_number": c.room_number,
            "students": [_user_brief(users.get(sid), sid) for sid in c.student_ids],
            "created_at": c.created_at.isoformat() if c.created_at else None,
        }
        for c in classes
    ]
