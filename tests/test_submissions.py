from datetime import datetime

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect, DuplicateKeyError

from taskhub.errors import ConflictError, LockedError, NotFoundError, ValidationError
from taskhub.models import CloudFile, LegacyRelativeFile, Submission, SubmissionStatus
from taskhub.services import activities as activity_service
from taskhub.services import storage
from taskhub.services import submissions as service
from tests.factories import make_upload, make_user


async def test_submit_with_file_stores_cloud_reference(activity, student, fake_s3):
    submission = await service.submit(str(activity.id), str(student.id), file=make_upload())

    assert submission.status == SubmissionStatus.SUBMITTED
    assert submission.score is None
    assert isinstance(submission.file, CloudFile)
    assert submission.file.file_name == "essay.pdf"
    assert submission.file.mime_type == "application/pdf"
    assert submission.file.storage_id in fake_s3.objects


async def test_submit_with_text_only(activity, student, fake_s3):
    submission = await service.submit(str(activity.id), str(student.id), content="  My answer  ")
    assert submission.content == "My answer"
    assert submission.file is None
    assert fake_s3.objects == {}


async def test_submit_keeps_caller_timestamp(activity, student):
    when = datetime(2024, 5, 1, 8, 30)
    submission = await service.submit(str(activity.id), str(student.id), content="x", submitted_at=when)
    assert submission.submitted_at == when


async def test_submit_requires_file_or_content(activity, student):
    with pytest.raises(ValidationError) as exc:
        await service.submit(str(activity.id), str(student.id), content="   ")
    assert exc.value.fields == ["file", "content"]


async def test_submit_to_missing_activity(student):
    with pytest.raises(NotFoundError):
        await service.submit(str(ObjectId()), str(student.id), content="x")


async def test_submit_to_locked_activity(activity, student, fake_s3):
    await activity_service.set_activity_lock(str(activity.id), True)
    with pytest.raises(LockedError):
        await service.submit(str(activity.id), str(student.id), file=make_upload())
    assert fake_s3.objects == {}
    assert await Submission.find_all().count() == 0


async def test_second_submit_for_same_pair_conflicts(activity, student):
    await service.submit(str(activity.id), str(student.id), content="first")
    with pytest.raises(ConflictError):
        await service.submit(str(activity.id), str(student.id), content="second")
    assert await Submission.find_all().count() == 1


async def test_storage_rejects_duplicate_pair(activity, student):
    # bypasses the lookup to exercise the unique index directly
    await Submission(activity_id=str(activity.id), student_id=str(student.id), content="a").insert()
    with pytest.raises(DuplicateKeyError):
        await Submission(activity_id=str(activity.id), student_id=str(student.id), content="b").insert()


async def test_concurrent_duplicate_is_a_conflict_and_drops_upload(activity, student, fake_s3, monkeypatch):
    await Submission(activity_id=str(activity.id), student_id=str(student.id), content="first").insert()

    async def no_match(*args, **kwargs):
        return None

    # the other request inserted between our lookup and our insert
    monkeypatch.setattr(Submission, "find_one", no_match)

    with pytest.raises(ConflictError):
        await service.submit(str(activity.id), str(student.id), file=make_upload())

    assert fake_s3.objects == {}
    assert len(fake_s3.deleted) == 1


async def test_failed_insert_drops_upload(activity, student, fake_s3, monkeypatch):
    async def unavailable(self, *args, **kwargs):
        raise AutoReconnect("primary stepped down")

    monkeypatch.setattr(Submission, "insert", unavailable)

    with pytest.raises(AutoReconnect):
        await service.submit(str(activity.id), str(student.id), file=make_upload())

    assert fake_s3.objects == {}


async def test_failed_resubmit_save_drops_new_upload(activity, student, fake_s3, monkeypatch):
    submission = await service.submit(str(activity.id), str(student.id), file=make_upload("v1.pdf"))
    kept_key = submission.file.storage_id

    async def unavailable(self, *args, **kwargs):
        raise AutoReconnect("primary stepped down")

    monkeypatch.setattr(Submission, "save", unavailable)

    with pytest.raises(AutoReconnect):
        await service.resubmit(str(submission.id), file=make_upload("v2.pdf"))

    assert list(fake_s3.objects) == [kept_key]

async def test_other_students_may_submit(activity, student):
    other = await make_user("Olive Other")
    await service.submit(str(activity.id), str(student.id), content="a")
    await service.submit(str(activity.id), str(other.id), content="b")
    assert await Submission.find_all().count() == 2


async def test_resubmit_voids_grade(activity, student):
    submission = await service.submit(str(activity.id), str(student.id), content="draft")
    await service.grade(str(submission.id), 90)

    updated, replaced = await service.resubmit(str(submission.id), content="final")

    assert updated.status == SubmissionStatus.RESUBMITTED
    assert updated.score is None
    assert updated.content == "final"
    assert replaced is None
    stored = await Submission.get(submission.id)
    assert stored.status == SubmissionStatus.RESUBMITTED
    assert stored.score is None


async def test_resubmit_returns_replaced_file(activity, student):
    submission = await service.submit(str(activity.id), str(student.id), file=make_upload("v1.pdf"))
    first_file = submission.file

    updated, replaced = await service.resubmit(str(submission.id), file=make_upload("v2.pdf"))

    assert replaced == first_file
    assert updated.file.file_name == "v2.pdf"
    assert updated.submitted_at >= submission.submitted_at


async def test_resubmit_after_lock_leaves_submission_untouched(activity, student):
    submission = await service.submit(str(activity.id), str(student.id), content="original")
    await activity_service.set_activity_lock(str(activity.id), True)

    with pytest.raises(LockedError):
        await service.resubmit(str(submission.id), content="late change")

    stored = await Submission.get(submission.id)
    assert stored.content == "original"
    assert stored.status == SubmissionStatus.SUBMITTED


async def test_resubmit_lock_applies_to_graded_submissions(activity, student):
    submission = await service.submit(str(activity.id), str(student.id), content="original")
    await service.grade(str(submission.id), 70)
    await activity_service.set_activity_lock(str(activity.id), True)
    with pytest.raises(LockedError):
        await service.resubmit(str(submission.id), content="again")


async def test_resubmit_missing_submission():
    with pytest.raises(NotFoundError):
        await service.resubmit(str(ObjectId()), content="x")


async def test_resubmit_requires_payload(activity, student):
    submission = await service.submit(str(activity.id), str(student.id), content="x")
    with pytest.raises(ValidationError):
        await service.resubmit(str(submission.id))


@pytest.mark.parametrize("value", ["abc", None, "", True, float("nan")])
def test_parse_score_rejects_non_numbers(value):
    with pytest.raises(ValidationError):
        service.parse_score(value)


def test_parse_score_accepts_numeric_strings():
    assert service.parse_score("87.5") == 87.5


async def test_grade_sets_score_and_status(activity, student):
    submission = await service.submit(str(activity.id), str(student.id), content="x")
    graded = await service.grade(str(submission.id), 85)
    assert graded.score == 85
    assert graded.status == SubmissionStatus.GRADED

    again = await service.grade(str(submission.id), 85)
    assert again.score == 85
    assert again.status == SubmissionStatus.GRADED


async def test_grade_non_numeric_fails_before_lookup():
    with pytest.raises(ValidationError):
        await service.grade(str(ObjectId()), "abc")


async def test_grade_missing_submission():
    with pytest.raises(NotFoundError):
        await service.grade(str(ObjectId()), 50)


async def test_delete_returns_file_for_cleanup(activity, student):
    submission = await service.submit(str(activity.id), str(student.id), file=make_upload())
    file_ref = await service.delete_submission(str(submission.id))
    assert file_ref == submission.file
    assert await Submission.get(submission.id) is None


async def test_delete_missing_submission():
    with pytest.raises(NotFoundError):
        await service.delete_submission(str(ObjectId()))


async def test_file_cleanup_failure_is_logged_not_raised(legacy_root, caplog):
    directory = legacy_root / "uploads" / "locked"
    directory.mkdir(parents=True)
    await storage.remove_stored_file(LegacyRelativeFile(path="uploads/locked"))
    assert "Failed to delete legacy file" in caplog.text


async def test_cloud_cleanup_deletes_object(fake_s3):
    await storage.remove_stored_file(CloudFile(url="https://x/y.pdf", storage_id="y.pdf"))
    assert fake_s3.deleted == ["y.pdf"]


async def test_student_history_includes_activity(activity, student):
    await service.submit(str(activity.id), str(student.id), content="x")
    rows = await service.list_student_submissions(str(student.id))
    assert len(rows) == 1
    assert rows[0]["activity"]["title"] == "Lab Report"


async def test_submissions_in_class_are_scoped_to_student(activity, school_class, student):
    other = await make_user("Olive Other")
    await service.submit(str(activity.id), str(student.id), content="mine")
    await service.submit(str(activity.id), str(other.id), content="theirs")
    rows = await service.list_student_submissions_in_class(str(school_class.id), str(student.id))
    assert [s.content for s in rows] == ["mine"]
