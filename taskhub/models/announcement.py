"""Class announcements with comments, reactions and read receipts."""
from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator

from taskhub.models.files import FileRef, coerce_file_ref


class Comment(BaseModel):
    text: str
    posted_by: str  # user_id
    date: datetime = Field(default_factory=datetime.utcnow)


class Reaction(BaseModel):
    emoji: str
    user_id: str


class Announcement(Document):
    title: str
    content: str
    posted_by: str
    class_id: Indexed(str)
    posted_at: datetime = Field(default_factory=datetime.utcnow)
    comments: list[Comment] = Field(default_factory=list)
    reactions: list[Reaction] = Field(default_factory=list)
    viewed_by: list[str] = Field(default_factory=list)
    attachments: list[FileRef] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("attachments", mode="before")
    @classmethod
    def classify_attachments(cls, v):
        if v is None:
            return []
        if isinstance(v, (str, dict)):
            v = [v]
        refs = [coerce_file_ref(item) for item in v]
        return [ref for ref in refs if ref is not None]

    class Settings:
        name = "announcements"
        use_state_management = True


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None


class CommentCreate(BaseModel):
    text: str


class ReactionToggle(BaseModel):
    emoji: str
