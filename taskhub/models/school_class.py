from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field


class SchoolClass(Document):
    """Class taught by one teacher; ``student_ids`` keeps roster order."""

    name: Indexed(str, unique=True)
    teacher_id: Indexed(str)
    day: str
    time: str = ""  # "HH:mm"
    room_number: Optional[str] = None
    student_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "classes"
        use_state_management = True


class SchoolClassCreate(BaseModel):
    name: str
    teacher_id: str
    day: str
    time: Optional[str] = None
    room_number: Optional[str] = None


class SchoolClassUpdate(SchoolClassCreate):
    pass


class RosterUpdate(BaseModel):
    student_ids: list[str]
