"""Announcement scoping, comments, reactions and serialization helpers."""
from __future__ import annotations

from datetime import datetime

from taskhub.errors import NotFoundError, ValidationError
from taskhub.models.announcement import Announcement, Comment, Reaction
from taskhub.models.files import serialize_file
from taskhub.models.school_class import SchoolClass
from taskhub.services.classes import build_user_map
from taskhub.services.ids import parse_object_id, safe_object_id


async def get_announcement(announcement_id: str) -> Announcement:
    announcement = await Announcement.get(parse_object_id(announcement_id, "announcement"))
    if not announcement:
        raise NotFoundError("Announcement not found")
    return announcement


async def list_for_scope(class_id: str | None, student_id: str | None) -> list[Announcement]:
    """Announcements of one class, or of every class the student is enrolled in."""
    if class_id and safe_object_id(class_id):
        query = {"class_id": class_id}
    elif student_id and safe_object_id(student_id):
        classes = await SchoolClass.find({"student_ids": student_id}).to_list()
        query = {"class_id": {"$in": [str(c.id) for c in classes]}}
    else:
        raise ValidationError(
            "A valid class_id or student_id is required", fields=["class_id", "student_id"]
        )
    return await Announcement.find(query).sort("-posted_at").to_list()


async def add_comment(announcement_id: str, text: str, user_id: str) -> Announcement:
    text = (text or "").strip()
    if not text:
        raise ValidationError("Comment text is required", fields=["text"])
    announcement = await get_announcement(announcement_id)
    announcement.comments.append(Comment(text=text, posted_by=user_id))
    announcement.updated_at = datetime.utcnow()
    await announcement.save()
    return announcement


def toggle(reactions: list[Reaction], emoji: str, user_id: str) -> list[Reaction]:
    """Add the emoji+user reaction, or remove it when already present."""
    for index, reaction in enumerate(reactions):
        if reaction.emoji == emoji and reaction.user_id == user_id:
            return reactions[:index] + reactions[index + 1:]
    return [*reactions, Reaction(emoji=emoji, user_id=user_id)]


async def toggle_reaction(announcement_id: str, emoji: str, user_id: str) -> Announcement:
    emoji = (emoji or "").strip()
    if not emoji:
        raise ValidationError("Emoji is required", fields=["emoji"])
    announcement = await get_announcement(announcement_id)
    announcement.reactions = toggle(announcement.reactions, emoji, user_id)
    await announcement.save()
    return announcement


async def mark_viewed(announcement_id: str, user_id: str) -> Announcement:
    announcement = await get_announcement(announcement_id)
    if user_id not in announcement.viewed_by:
        announcement.viewed_by.append(user_id)
        await announcement.save()
    return announcement


def attachment_at(announcement: Announcement, index: int):
    if index < 0 or index >= len(announcement.attachments):
        raise NotFoundError("Attachment not found")
    return announcement.attachments[index]


async def serialize_announcements(announcements: list[Announcement]) -> list[dict]:
    ids: list[str] = []
    for a in announcements:
        ids.append(a.posted_by)
        ids.extend(c.posted_by for c in a.comments)
        ids.extend(r.user_id for r in a.reactions)
    users = await build_user_map(ids)

    def name(user_id: str) -> str:
        user = users.get(user_id)
        return user.full_name if user else ""

    return [
        {
            "id": str(a.id),
            "title": a.title,
            "content": a.content,
            "class_id": a.class_id,
            "posted_by": {"id": a.posted_by, "full_name": name(a.posted_by)},
            "posted_at": a.posted_at.isoformat() if a.posted_at else None,
            "comments": [
                {
                    "text": c.text,
                    "posted_by": {"id": c.posted_by, "full_name": name(c.posted_by)},
                    "date": c.date.isoformat(),
                }
                for c in a.comments
            ],
            "reactions": [
                {"emoji": r.emoji, "user": {"id": r.user_id, "full_name": name(r.user_id)}}
                for r in a.reactions
            ],
            "viewed_by": list(a.viewed_by),
            "attachments": [serialize_file(ref) for ref in a.attachments],
        }
        for a in announcements
    ]
