"""Today's schedule for a student."""
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter

from taskhub.api.deps import CurrentUser, acting_student_id
from taskhub.models.activity import Activity
from taskhub.models.school_class import SchoolClass

router = APIRouter()


@router.get("/today")
async def today_schedule(user: CurrentUser, user_id: Optional[str] = None):
    student_id = acting_student_id(user, user_id)
    classes = await SchoolClass.find({"student_ids": student_id}).to_list()
    class_ids = [str(c.id) for c in classes]
    if not class_ids:
        return {"schedule": []}

    today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)
    activities = await Activity.find(
        {"class_id": {"$in": class_ids}, "date": {"$gte": today, "$lt": tomorrow}}
    ).sort("date").to_list()
    return {
        "schedule": [
            {"id": str(a.id), "time": a.date.strftime("%H:%M"), "title": a.title}
            for a in activities
        ]
    }
