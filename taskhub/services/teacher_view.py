"""Teacher-scoped submission monitoring."""
from __future__ import annotations

from typing import Optional

from taskhub.errors import ForbiddenError
from taskhub.models.activity import Activity
from taskhub.models.school_class import SchoolClass
from taskhub.models.submission import Submission
from taskhub.models.user import User
from taskhub.services.ids import object_ids, parse_object_id, safe_object_id
from taskhub.services.submissions import serialize_submission


async def scoped_classes(teacher_id: str, class_id: Optional[str]) -> list[SchoolClass]:
    if class_id:
        oid = safe_object_id(class_id)
        school_class = await SchoolClass.get(oid) if oid else None
        if not school_class or school_class.teacher_id != teacher_id:
            raise ForbiddenError("Access denied or class not found")
        return [school_class]
    return await SchoolClass.find(SchoolClass.teacher_id == teacher_id).to_list()


async def teacher_submissions_view(teacher_id: str, class_id: Optional[str] = None) -> list[dict]:
    """Submissions under the teacher's class(es), newest first."""
    parse_object_id(teacher_id, "teacher")
    classes = await scoped_classes(teacher_id, class_id)
    class_ids = [str(c.id) for c in classes]
    if not class_ids:
        return []

    activities = await Activity.find({"class_id": {"$in": class_ids}}).to_list()
    activity_by_id = {str(a.id): a for a in activities}
    if not activity_by_id:
        return []

    submissions = await Submission.find(
        {"activity_id": {"$in": list(activity_by_id)}}
    ).sort(-Submission.submitted_at).to_list()

    student_oids = object_ids({s.student_id for s in submissions})
    students = await User.find({"_id": {"$in": student_oids}}).to_list() if student_oids else []
    student_by_id = {str(u.id): u for u in students}

    rows = []
    for sub in submissions:
        row = serialize_submission(sub)
        student = student_by_id.get(sub.student_id)
        activity = activity_by_id[sub.activity_id]
        row["student"] = (
            {"id": str(student.id), "full_name": student.full_name, "email": student.email}
            if student
            else None
        )
        row["activity"] = {
            "id": str(activity.id),
            "title": activity.title,
            "date": activity.date.isoformat(),
            "class_id": activity.class_id,
        }
        rows.append(row)
    return rows
