"""Activities, submissions, grading and score export."""
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from taskhub.api.deps import CurrentUser, TeacherOrAdmin, acting_student_id
from taskhub.models.activity import ActivityLockUpdate
from taskhub.models.submission import ScoreUpdate
from taskhub.models.user import UserRole
from taskhub.services import activities as activity_service
from taskhub.services.activities import serialize_activity
from taskhub.services import submissions as submission_service
from taskhub.services.attachments import file_response
from taskhub.services.scores import export_scores, scores_to_csv
from taskhub.services.storage import remove_stored_file, remove_stored_files
from taskhub.services.submissions import serialize_submission
from taskhub.services.teacher_view import teacher_submissions_view

router = APIRouter()


def _uploaded(file: Optional[UploadFile]) -> Optional[UploadFile]:
    # browsers send an empty part when no file is chosen
    if file is None or not file.filename:
        return None
    return file


def _ensure_owner_or_staff(user, student_id: str) -> None:
    if user.role == UserRole.STUDENT and str(user.id) != student_id:
        raise HTTPException(status_code=403, detail="Not authorized for this submission")


@router.get("/")
async def list_activities(user: CurrentUser, class_id: Optional[str] = None):
    activities = await activity_service.list_activities(class_id)
    return [serialize_activity(a) for a in activities]


@router.post("/", status_code=201)
async def create_activity(
    user: TeacherOrAdmin,
    title: str = Form(...),
    date: datetime = Form(...),
    class_id: str = Form(...),
    description: Optional[str] = Form(None),
    total_points: Optional[float] = Form(None),
    link: Optional[str] = Form(None),
    attachment: Optional[UploadFile] = File(None),
):
    activity = await activity_service.create_activity(
        title=title,
        date=date,
        class_id=class_id,
        description=description,
        total_points=total_points,
        link=link,
        created_by=str(user.id),
        attachment=_uploaded(attachment),
    )
    return serialize_activity(activity)


@router.get("/submission")
async def get_submission_for_activity(activity_id: str, student_id: str, user: CurrentUser):
    _ensure_owner_or_staff(user, student_id)
    submission = await submission_service.get_submission_for_activity(activity_id, student_id)
    return serialize_submission(submission)


@router.get("/submission/{submission_id}/download")
async def download_submission_file(submission_id: str, user: CurrentUser, view: bool = False):
    submission = await submission_service.get_submission(submission_id)
    _ensure_owner_or_staff(user, submission.student_id)
    return file_response(submission.file, download=not view)


@router.get("/export-scores")
async def export_class_scores(
    class_id: str,
    user: TeacherOrAdmin,
    format: Literal["json", "csv"] = "json",
):
    result = await export_scores(class_id)
    if format == "csv":
        return Response(
            content=scores_to_csv(result),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="scores.csv"'},
        )
    return result


@router.delete("/submission/{submission_id}")
async def delete_submission(submission_id: str, user: CurrentUser, background_tasks: BackgroundTasks):
    submission = await submission_service.get_submission(submission_id)
    _ensure_owner_or_staff(user, submission.student_id)
    file_ref = await submission_service.delete_submission(submission_id)
    background_tasks.add_task(remove_stored_file, file_ref)
    return {"message": "Submission deleted successfully."}


@router.get("/submissions")
async def list_submissions_in_class(class_id: str, student_id: str, user: CurrentUser):
    _ensure_owner_or_staff(user, student_id)
    submissions = await submission_service.list_student_submissions_in_class(class_id, student_id)
    return [serialize_submission(s) for s in submissions]


@router.get("/submissions/teacher/{teacher_id}")
async def list_teacher_submissions(teacher_id: str, user: TeacherOrAdmin, class_id: Optional[str] = None):
    if user.role == UserRole.TEACHER and str(user.id) != teacher_id:
        raise HTTPException(status_code=403, detail="Not authorized for this teacher")
    return {"submissions": await teacher_submissions_view(teacher_id, class_id)}


@router.put("/submissions/score/{submission_id}")
async def update_score(submission_id: str, data: ScoreUpdate, user: TeacherOrAdmin):
    submission = await submission_service.grade(submission_id, data.score)
    return serialize_submission(submission)


@router.post("/submit", status_code=201)
async def submit_activity(
    user: CurrentUser,
    activity_id: str = Form(...),
    student_id: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
):
    submission = await submission_service.submit(
        activity_id,
        acting_student_id(user, student_id),
        file=_uploaded(file),
        content=content,
    )
    return serialize_submission(submission)


@router.put("/resubmit/{submission_id}")
async def resubmit_activity(
    submission_id: str,
    user: CurrentUser,
    background_tasks: BackgroundTasks,
    content: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
):
    existing = await submission_service.get_submission(submission_id)
    _ensure_owner_or_staff(user, existing.student_id)
    submission, replaced = await submission_service.resubmit(
        submission_id, file=_uploaded(file), content=content
    )
    background_tasks.add_task(remove_stored_file, replaced)
    return serialize_submission(submission)


@router.get("/{activity_id}/download")
async def download_activity_attachment(activity_id: str, user: CurrentUser, view: bool = False):
    activity = await activity_service.get_activity(activity_id)
    return file_response(activity.attachment, download=not view)


@router.get("/{activity_id}")
async def get_activity(activity_id: str, user: CurrentUser):
    return serialize_activity(await activity_service.get_activity(activity_id))


@router.put("/{activity_id}")
async def update_activity(
    activity_id: str,
    user: TeacherOrAdmin,
    background_tasks: BackgroundTasks,
    title: Optional[str] = Form(None),
    date: Optional[datetime] = Form(None),
    class_id: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    total_points: Optional[float] = Form(None),
    link: Optional[str] = Form(None),
    attachment: Optional[UploadFile] = File(None),
):
    fields = {
        "title": title,
        "date": date,
        "class_id": class_id,
        "description": description,
        "total_points": total_points,
        "link": link,
    }
    changes = {key: value for key, value in fields.items() if value is not None}
    activity, replaced = await activity_service.update_activity(
        activity_id, changes, attachment=_uploaded(attachment)
    )
    background_tasks.add_task(remove_stored_file, replaced)
    return serialize_activity(activity)


@router.patch("/{activity_id}/lock")
async def lock_activity(activity_id: str, data: ActivityLockUpdate, user: TeacherOrAdmin):
    activity = await activity_service.set_activity_lock(activity_id, data.is_locked)
    return serialize_activity(activity)


@router.delete("/{activity_id}")
async def delete_activity(activity_id: str, user: TeacherOrAdmin, background_tasks: BackgroundTasks):
    files = await activity_service.delete_activity(activity_id)
    background_tasks.add_task(remove_stored_files, files)
    return {"message": "Activity and associated submissions deleted successfully"}
