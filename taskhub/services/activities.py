"""Activity creation, updates, locking and cascading delete."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from taskhub.errors import NotFoundError, ValidationError
from taskhub.models.activity import Activity
from taskhub.models.files import serialize_file
from taskhub.models.school_class import SchoolClass
from taskhub.models.submission import Submission
from taskhub.services import storage
from taskhub.services.ids import parse_object_id

logger = logging.getLogger(__name__)


async def get_activity(activity_id: str) -> Activity:
    activity = await Activity.get(parse_object_id(activity_id, "activity"))
    if not activity:
        raise NotFoundError("Activity not found")
    return activity


async def create_activity(
    *,
    title: str,
    date: Optional[datetime],
    class_id: str,
    description: Optional[str] = None,
    total_points: Optional[float] = None,
    link: Optional[str] = None,
    created_by: Optional[str] = None,
    attachment=None,
) -> Activity:
    title = (title or "").strip()
    missing = [name for name, value in (("title", title), ("date", date), ("class_id", class_id)) if not value]
    if missing:
        raise ValidationError("Title, date, and class_id are required.", fields=missing)
    school_class = await SchoolClass.get(parse_object_id(class_id, "class"))
    if not school_class:
        raise NotFoundError("Class not found")

    attachment_ref = None
    if attachment is not None:
        attachment_ref = await storage.upload_activity_attachment(attachment, class_id=class_id)

    activity = Activity(
        title=title,
        description=description,
        date=date,
        total_points=total_points,
        link=link,
        attachment=attachment_ref,
        class_id=class_id,
        created_by=created_by,
    )
    await activity.insert()
    return activity


async def update_activity(activity_id: str, changes: dict, *, attachment=None):
    """Apply the provided fields; returns ``(activity, replaced_attachment)``."""
    activity = await get_activity(activity_id)
    if "title" in changes and not (changes["title"] or "").strip():
        raise ValidationError("Title cannot be empty", fields=["title"])
    if "class_id" in changes:
        school_class = await SchoolClass.get(parse_object_id(changes["class_id"], "class"))
        if not school_class:
            raise NotFoundError("Class not found")

    for key, value in changes.items():
        setattr(activity, key, value.strip() if key == "title" else value)

    replaced = None
    if attachment is not None:
        replaced = activity.attachment
        activity.attachment = await storage.upload_activity_attachment(
            attachment, class_id=activity.class_id
        )
    activity.updated_at = datetime.utcnow()
    await activity.save()
    return activity, replaced


async def set_activity_lock(activity_id: str, locked: bool) -> Activity:
    activity = await get_activity(activity_id)
    activity.is_locked = locked
    activity.updated_at = datetime.utcnow()
    await activity.save()
    logger.info("Activity %s %s", activity_id, "locked" if locked else "unlocked")
    return activity


async def delete_activity(activity_id: str) -> list:
    """Delete an activity and its submissions; returns stored files to clean up."""
    activity = await get_activity(activity_id)
    aid = str(activity.id)
    submissions = await Submission.find(Submission.activity_id == aid).to_list()
    files = [s.file for s in submissions if s.file is not None]
    if activity.attachment is not None:
        files.append(activity.attachment)
    await Submission.find(Submission.activity_id == aid).delete()
    await activity.delete()
    logger.info("Activity %s deleted with %d submission(s)", aid, len(submissions))
    return files


async def list_activities(class_id: Optional[str]) -> list[Activity]:
    query = {}
    if class_id:
        parse_object_id(class_id, "class")
        query["class_id"] = class_id
    return await Activity.find(query).sort(-Activity.date).to_list()


def serialize_activity(a: Activity) -> dict:
    return {
        "id": str(a.id),
        "title": a.title,
        "description": a.description,
        "date": a.date.isoformat(),
        "total_points": a.total_points,
        "link": a.link,
        "attachment": serialize_file(a.attachment),
        "class_id": a.class_id,
        "created_by": a.created_by,
        "is_locked": a.is_locked,
        "created_at": a.created_at.isoformat() if a.created_at else None,
        "updated_at": a.updated_at.isoformat() if a.updated_at else None,
    }
