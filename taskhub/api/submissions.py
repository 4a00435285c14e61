"""Student submission history."""
from fastapi import APIRouter

from taskhub.api.deps import CurrentUser, acting_student_id
from taskhub.services.submissions import list_student_submissions

router = APIRouter()


@router.get("/student/{student_id}")
async def student_submissions(student_id: str, user: CurrentUser):
    student_id = acting_student_id(user, student_id)
    return {"submissions": await list_student_submissions(student_id)}
