"""Student submissions against activities."""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator, model_validator
from pymongo import ASCENDING, IndexModel

from taskhub.models.files import FileRef, coerce_file_ref, file_ref_from_fields, legacy_file_fields


class SubmissionStatus(str, Enum):
    SUBMITTED = "Submitted"
    RESUBMITTED = "Resubmitted"
    GRADED = "Graded"
    LATE = "Late"


class Submission(Document):
    """One student's response to one activity.

    Holds a stored file, inline text content, or both. ``score`` stays None
    until graded and is cleared again on resubmission.
    """

    activity_id: Indexed(str)
    student_id: Indexed(str)
    submitted_at: datetime = Field(default_factory=datetime.utcnow)
    file: Optional[FileRef] = None
    content: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.SUBMITTED
    score: Optional[float] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="before")
    @classmethod
    def fold_legacy_file_fields(cls, data):
        if isinstance(data, dict) and data.get("file") is None:
            fields = legacy_file_fields(data)
            if fields:
                data = {**data, "file": file_ref_from_fields(**fields)}
        return data

    @field_validator("file", mode="before")
    @classmethod
    def classify_file(cls, v):
        return coerce_file_ref(v)

    class Settings:
        name = "submissions"
        use_state_management = True
        indexes = [
            IndexModel(
                [("activity_id", ASCENDING), ("student_id", ASCENDING)],
                name="activity_student_unique",
                unique=True,
            ),
        ]


class ScoreUpdate(BaseModel):
    # parsed by the grading service so non-numeric input surfaces as a 400
    score: Any = None
