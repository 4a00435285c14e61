"""Gradable activities posted to a class."""
from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator

from taskhub.models.files import FileRef, coerce_file_ref


class Activity(Document):
    """Activity document; owns its submissions by ``activity_id`` reference."""

    title: str
    description: Optional[str] = None
    date: datetime  # due date
    total_points: Optional[float] = None
    link: Optional[str] = None
    attachment: Optional[FileRef] = None
    class_id: Indexed(str)
    created_by: Optional[str] = None  # user_id
    is_locked: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("attachment", mode="before")
    @classmethod
    def classify_attachment(cls, v):
        return coerce_file_ref(v)

    class Settings:
        name = "activities"
        use_state_management = True


class ActivityLockUpdate(BaseModel):
    is_locked: bool
