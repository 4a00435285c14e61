"""Submission lifecycle: submit, resubmit, grade and delete.

Status moves ``Submitted -> Resubmitted`` on each resubmission and to
``Graded`` when a score is recorded. A resubmission voids any grade. Once an
activity is locked neither submit nor resubmit is accepted for it.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Optional

from pymongo.errors import DuplicateKeyError

from taskhub.errors import ConflictError, LockedError, NotFoundError, ValidationError
from taskhub.models.activity import Activity
from taskhub.models.files import serialize_file
from taskhub.models.submission import Submission, SubmissionStatus
from taskhub.services import storage
from taskhub.services.activities import get_activity
from taskhub.services.ids import object_ids, parse_object_id

logger = logging.getLogger(__name__)


async def get_submission(submission_id: str) -> Submission:
    submission = await Submission.get(parse_object_id(submission_id, "submission"))
    if not submission:
        raise NotFoundError("Submission not found")
    return submission


def _normalized_content(content: Optional[str]) -> Optional[str]:
    content = (content or "").strip()
    return content or None


def _require_payload(file, content: Optional[str]) -> None:
    if file is None and content is None:
        raise ValidationError("A file or text content is required", fields=["file", "content"])


def parse_score(value: Any) -> float:
    """Numeric score from JSON or form input; anything else is a 400."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Score is required", fields=["score"])
    if isinstance(value, bool):
        raise ValidationError("Score must be a number", fields=["score"])
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Score must be a number", fields=["score"])
    if not math.isfinite(score):
        raise ValidationError("Score must be a number", fields=["score"])
    return score


async def submit(
    activity_id: str,
    student_id: str,
    *,
    file=None,
    content: Optional[str] = None,
    submitted_at: Optional[datetime] = None,
) -> Submission:
    content = _normalized_content(content)
    _require_payload(file, content)
    parse_object_id(student_id, "student")

    activity = await get_activity(activity_id)
    if activity.is_locked:
        raise LockedError()

    existing = await Submission.find_one(
        Submission.activity_id == str(activity.id),
        Submission.student_id == student_id,
    )
    if existing:
        raise ConflictError(
            "You have already submitted this activity. Please use the resubmit option."
        )

    file_ref = None
    if file is not None:
        file_ref = await storage.upload_submission_file(
            file, activity_id=str(activity.id), student_id=student_id
        )

    now = datetime.utcnow()
    submission = Submission(
        activity_id=str(activity.id),
        student_id=student_id,
        submitted_at=submitted_at or now,
        file=file_ref,
        content=content,
        status=SubmissionStatus.SUBMITTED,
        score=None,
        created_at=now,
        updated_at=now,
    )
    try:
        await submission.insert()
    except DuplicateKeyError:
        # lost a race with a concurrent submit for the same pair
        await storage.remove_stored_file(file_ref)
        raise ConflictError(
            "You have already submitted this activity. Please use the resubmit option."
        )
    except Exception:
        await storage.remove_stored_file(file_ref)
        raise
    logger.info("Student %s submitted activity %s", student_id, activity.id)
    return submission


async def resubmit(
    submission_id: str,
    *,
    file=None,
    content: Optional[str] = None,
):
    """Replace the submitted work; returns ``(submission, replaced_file)``."""
    submission = await get_submission(submission_id)
    activity = await Activity.get(parse_object_id(submission.activity_id, "activity"))
    if activity and activity.is_locked:
        raise LockedError()

    content = _normalized_content(content)
    _require_payload(file, content)

    previous_file = submission.file
    file_ref = None
    if file is not None:
        file_ref = await storage.upload_submission_file(
            file, activity_id=submission.activity_id, student_id=submission.student_id
        )

    now = datetime.utcnow()
    submission.file = file_ref
    submission.content = content
    submission.status = SubmissionStatus.RESUBMITTED
    submission.score = None
    submission.submitted_at = now
    submission.updated_at = now
    try:
        await submission.save()
    except Exception:
        await storage.remove_stored_file(file_ref)
        raise
    logger.info("Submission %s resubmitted", submission.id)
    return submission, previous_file


async def grade(submission_id: str, score: Any) -> Submission:
    value = parse_score(score)
    submission = await get_submission(submission_id)
    submission.score = value
    submission.status = SubmissionStatus.GRADED
    submission.updated_at = datetime.utcnow()
    await submission.save()
    return submission


async def delete_submission(submission_id: str):
    """Remove the record; the returned file ref is cleaned up by the caller."""
    submission = await get_submission(submission_id)
    file_ref = submission.file
    await submission.delete()
    logger.info("Submission %s deleted", submission_id)
    return file_ref


async def get_submission_for_activity(activity_id: str, student_id: str) -> Submission:
    if not activity_id or not student_id:
        raise ValidationError(
            "activity_id and student_id are required", fields=["activity_id", "student_id"]
        )
    submission = await Submission.find_one(
        Submission.activity_id == activity_id,
        Submission.student_id == student_id,
    )
    if not submission:
        raise NotFoundError("Submission not found")
    return submission


async def list_student_submissions_in_class(class_id: str, student_id: str) -> list[Submission]:
    parse_object_id(class_id, "class")
    parse_object_id(student_id, "student")
    activities = await Activity.find(Activity.class_id == class_id).to_list()
    activity_ids = [str(a.id) for a in activities]
    if not activity_ids:
        return []
    return await Submission.find(
        {"activity_id": {"$in": activity_ids}, "student_id": student_id}
    ).to_list()


async def list_student_submissions(student_id: str) -> list[dict]:
    """All of a student's submissions, newest first, with activity display fields."""
    submissions = await Submission.find(Submission.student_id == student_id).sort(
        -Submission.submitted_at
    ).to_list()
    activity_oids = object_ids(s.activity_id for s in submissions)
    activities = await Activity.find({"_id": {"$in": activity_oids}}).to_list() if activity_oids else []
    by_id = {str(a.id): a for a in activities}
    rows = []
    for s in submissions:
        row = serialize_submission(s)
        activity = by_id.get(s.activity_id)
        row["activity"] = (
            {
                "id": str(activity.id),
                "title": activity.title,
                "description": activity.description,
                "date": activity.date.isoformat(),
            }
            if activity
            else None
        )
        rows.append(row)
    return rows


def serialize_submission(submission: Submission) -> dict:
    return {
        "id": str(submission.id),
        "activity_id": submission.activity_id,
        "student_id": submission.student_id,
        "submitted_at": submission.submitted_at.isoformat() if submission.submitted_at else None,
        "file": serialize_file(submission.file),
        "content": submission.content,
        "status": submission.status.value,
        "score": submission.score,
    }
