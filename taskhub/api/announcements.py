"""Class announcements: posts, comments, reactions, read receipts and attachments."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, File, Form, UploadFile

from taskhub.api.deps import CurrentUser, TeacherOrAdmin
from taskhub.config import settings
from taskhub.errors import NotFoundError, ValidationError
from taskhub.models.announcement import Announcement, AnnouncementUpdate, CommentCreate, ReactionToggle
from taskhub.models.school_class import SchoolClass
from taskhub.services import announcements as announcement_service
from taskhub.services.attachments import file_response
from taskhub.services.ids import parse_object_id
from taskhub.services.storage import remove_stored_files, upload_announcement_attachment

router = APIRouter()


async def _serialize_one(announcement: Announcement) -> dict:
    items = await announcement_service.serialize_announcements([announcement])
    return items[0]


@router.get("/")
async def list_announcements(
    user: CurrentUser,
    class_id: Optional[str] = None,
    student_id: Optional[str] = None,
):
    announcements = await announcement_service.list_for_scope(class_id, student_id)
    return await announcement_service.serialize_announcements(announcements)


@router.post("/", status_code=201)
async def create_announcement(
    user: TeacherOrAdmin,
    title: str = Form(...),
    content: str = Form(...),
    class_id: str = Form(...),
    attachments: Optional[List[UploadFile]] = File(None),
):
    title = title.strip()
    content = content.strip()
    missing = [name for name, value in (("title", title), ("content", content)) if not value]
    if missing:
        raise ValidationError("Title and content are required", fields=missing)
    school_class = await SchoolClass.get(parse_object_id(class_id, "class"))
    if not school_class:
        raise NotFoundError("Class not found")

    files = [f for f in attachments or [] if f.filename]
    if len(files) > settings.max_announcement_attachments:
        raise ValidationError(
            f"At most {settings.max_announcement_attachments} attachments are allowed",
            fields=["attachments"],
        )
    refs = [await upload_announcement_attachment(f, class_id=class_id) for f in files]

    announcement = Announcement(
        title=title,
        content=content,
        posted_by=str(user.id),
        class_id=class_id,
        attachments=refs,
    )
    await announcement.insert()
    return await _serialize_one(announcement)


@router.get("/{announcement_id}")
async def get_announcement(announcement_id: str, user: CurrentUser):
    return await _serialize_one(await announcement_service.get_announcement(announcement_id))


@router.put("/{announcement_id}")
async def update_announcement(announcement_id: str, data: AnnouncementUpdate, user: TeacherOrAdmin):
    announcement = await announcement_service.get_announcement(announcement_id)
    update_data = data.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        if not (value or "").strip():
            raise ValidationError(f"{key} cannot be empty", fields=[key])
        setattr(announcement, key, value.strip())
    announcement.updated_at = datetime.utcnow()
    await announcement.save()
    return await _serialize_one(announcement)


@router.delete("/{announcement_id}")
async def delete_announcement(announcement_id: str, user: TeacherOrAdmin, background_tasks: BackgroundTasks):
    announcement = await announcement_service.get_announcement(announcement_id)
    await announcement.delete()
    background_tasks.add_task(remove_stored_files, list(announcement.attachments))
    return {"message": "Announcement deleted successfully"}


@router.post("/{announcement_id}/comments", status_code=201)
async def add_comment(announcement_id: str, data: CommentCreate, user: CurrentUser):
    announcement = await announcement_service.add_comment(announcement_id, data.text, str(user.id))
    return await _serialize_one(announcement)


@router.post("/{announcement_id}/reactions")
async def toggle_reaction(announcement_id: str, data: ReactionToggle, user: CurrentUser):
    announcement = await announcement_service.toggle_reaction(announcement_id, data.emoji, str(user.id))
    return await _serialize_one(announcement)


@router.post("/{announcement_id}/view")
async def mark_viewed(announcement_id: str, user: CurrentUser):
    announcement = await announcement_service.mark_viewed(announcement_id, str(user.id))
    return await _serialize_one(announcement)


@router.get("/{announcement_id}/attachments/{index}")
async def download_attachment(announcement_id: str, index: int, user: CurrentUser, view: bool = False):
    announcement = await announcement_service.get_announcement(announcement_id)
    ref = announcement_service.attachment_at(announcement, index)
    return file_response(ref, download=not view)
