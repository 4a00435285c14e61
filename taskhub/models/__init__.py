"""Beanie document models and Pydantic schemas."""
from taskhub.models.user import User, UserRole, UserCreate, UserUpdate
from taskhub.models.school_class import SchoolClass, SchoolClassCreate, SchoolClassUpdate, RosterUpdate
from taskhub.models.activity import Activity, ActivityLockUpdate
from taskhub.models.submission import Submission, SubmissionStatus, ScoreUpdate
from taskhub.models.announcement import (
    Announcement,
    AnnouncementUpdate,
    Comment,
    CommentCreate,
    Reaction,
    ReactionToggle,
)
from taskhub.models.files import (
    CloudFile,
    FileRef,
    LegacyAbsoluteFile,
    LegacyRelativeFile,
    file_ref_from_fields,
)

DOCUMENT_MODELS = [User, SchoolClass, Activity, Submission, Announcement]

__all__ = [
    "User",
    "UserRole",
    "UserCreate",
    "UserUpdate",
    "SchoolClass",
    "SchoolClassCreate",
    "SchoolClassUpdate",
    "RosterUpdate",
    "Activity",
    "ActivityLockUpdate",
    "Submission",
    "SubmissionStatus",
    "ScoreUpdate",
    "Announcement",
    "AnnouncementUpdate",
    "Comment",
    "CommentCreate",
    "Reaction",
    "ReactionToggle",
    "CloudFile",
    "FileRef",
    "LegacyAbsoluteFile",
    "LegacyRelativeFile",
    "file_ref_from_fields",
    "DOCUMENT_MODELS",
]
