import pytest

from taskhub.errors import NotFoundError
from taskhub.models import Activity, Announcement, Submission
from taskhub.models.files import (
    CloudFile,
    LegacyAbsoluteFile,
    LegacyRelativeFile,
    file_ref_from_fields,
    serialize_file,
)
from taskhub.services.attachments import RedirectTo, StreamFile, resolve_file, with_download_flag


CDN_URL = "https://res.cloudinary.com/demo/raw/upload/v1/taskhub/submissions/report.pdf"


def test_cloud_url_wins_over_legacy_paths():
    ref = file_ref_from_fields(
        cloud_url="https://bucket.s3.amazonaws.com/a.pdf",
        storage_id="a.pdf",
        path="uploads/submissions/a.pdf",
    )
    assert isinstance(ref, CloudFile)
    assert ref.storage_id == "a.pdf"


def test_relative_and_absolute_paths_are_told_apart():
    assert isinstance(file_ref_from_fields(path="uploads\\submissions\\x.pdf"), LegacyRelativeFile)
    assert file_ref_from_fields(path="uploads\\submissions\\x.pdf").path == "uploads/submissions/x.pdf"
    assert isinstance(file_ref_from_fields(path="/srv/app/uploads/modules/x.pdf"), LegacyAbsoluteFile)


def test_url_stored_in_path_field_is_a_cloud_reference():
    ref = file_ref_from_fields(path=CDN_URL)
    assert isinstance(ref, CloudFile)
    assert ref.url == CDN_URL


def test_no_reference_fields_means_no_file():
    assert file_ref_from_fields() is None
    assert file_ref_from_fields(path="  ") is None


def test_serialized_file_hides_storage_locations():
    data = serialize_file(LegacyRelativeFile(path="uploads/a.pdf", file_name="a.pdf"))
    assert data == {"kind": "legacy_relative", "file_name": "a.pdf"}


def test_cloud_view_redirects_to_stored_url():
    assert resolve_file(CloudFile(url=CDN_URL), download=False) == RedirectTo(CDN_URL)


def test_cloud_download_inserts_attachment_flag():
    result = resolve_file(CloudFile(url=CDN_URL), download=True)
    assert result == RedirectTo(
        "https://res.cloudinary.com/demo/raw/upload/fl_attachment/v1/taskhub/submissions/report.pdf"
    )


def test_download_flag_is_not_inserted_twice():
    flagged = with_download_flag(CDN_URL)
    assert with_download_flag(flagged) == flagged


def test_s3_download_uses_presigned_url(fake_s3):
    ref = CloudFile(
        url="https://taskhub-files.s3.ap-south-1.amazonaws.com/submissions/a/b/c.pdf",
        storage_id="submissions/a/b/c.pdf",
        file_name="report.pdf",
    )
    result = resolve_file(ref, download=True)
    assert isinstance(result, RedirectTo)
    assert result.url.startswith("https://signed.example/submissions/a/b/c.pdf")


def test_legacy_relative_download_streams_with_original_name(legacy_root):
    target = legacy_root / "uploads" / "submissions"
    target.mkdir(parents=True)
    (target / "submission-1700000000000.pdf").write_bytes(b"%PDF")
    ref = LegacyRelativeFile(path="uploads/submissions/submission-1700000000000.pdf", file_name="My Essay.pdf")

    result = resolve_file(ref, download=True)

    assert isinstance(result, StreamFile)
    assert result.disposition == "attachment"
    assert result.filename == "My Essay.pdf"
    assert result.media_type == "application/pdf"


def test_legacy_view_is_inline_with_inferred_type(legacy_root):
    image = legacy_root / "photo.png"
    image.write_bytes(b"\x89PNG")
    result = resolve_file(LegacyAbsoluteFile(path=str(image)), download=False)
    assert isinstance(result, StreamFile)
    assert result.disposition == "inline"
    assert result.media_type == "image/png"


def test_missing_legacy_file_is_not_found():
    with pytest.raises(NotFoundError):
        resolve_file(LegacyRelativeFile(path="uploads/gone.pdf"), download=True)


def test_no_file_is_not_found():
    with pytest.raises(NotFoundError):
        resolve_file(None)


def test_presigned_download_quotes_awkward_names(fake_s3):
    ref = CloudFile(url="https://bucket/x.pdf", storage_id="submissions/x.pdf", file_name='My "Best" Essay.pdf')
    resolve_file(ref, download=True)
    disposition = fake_s3.presigned[-1]["ResponseContentDisposition"]
    assert disposition == "attachment; filename*=utf-8''My%20%22Best%22%20Essay.pdf"


def test_presigned_download_plain_name(fake_s3):
    resolve_file(CloudFile(url="https://bucket/x.pdf", storage_id="a/x.pdf", file_name="report.pdf"), download=True)
    assert fake_s3.presigned[-1]["ResponseContentDisposition"] == 'attachment; filename="report.pdf"'


def test_string_attachment_is_classified_on_load():
    activity = Activity(title="Worksheet", date="2024-01-01T00:00:00", class_id="c", attachment="uploads/modules/w.pdf")
    assert activity.attachment == LegacyRelativeFile(path="uploads/modules/w.pdf")

    hosted = Activity(title="Slides", date="2024-01-01T00:00:00", class_id="c", attachment=CDN_URL)
    assert isinstance(hosted.attachment, CloudFile)


def test_flat_submission_file_fields_are_folded_into_file():
    submission = Submission(
        activity_id="a",
        student_id="s",
        cloudinaryUrl=CDN_URL,
        cloudinaryPublicId="taskhub/submissions/report",
        fileName="report.pdf",
        fileType="application/pdf",
        filePath="uploads/submissions/report.pdf",
    )
    assert submission.file == CloudFile(
        url=CDN_URL,
        storage_id="taskhub/submissions/report",
        file_name="report.pdf",
        mime_type="application/pdf",
    )

    on_disk = Submission(activity_id="a", student_id="s", filePath="/srv/uploads/x.pdf", fileName="x.pdf")
    assert on_disk.file == LegacyAbsoluteFile(path="/srv/uploads/x.pdf", file_name="x.pdf")


async def test_stored_legacy_submission_loads_with_file_reference(activity, student, legacy_root):
    (legacy_root / "uploads").mkdir()
    (legacy_root / "uploads" / "essay.pdf").write_bytes(b"%PDF")
    await Submission.get_motor_collection().insert_one(
        {
            "activity_id": str(activity.id),
            "student_id": str(student.id),
            "filePath": "uploads/essay.pdf",
            "fileName": "Essay.pdf",
            "status": "Submitted",
        }
    )

    stored = await Submission.find_one(Submission.student_id == str(student.id))

    assert stored.file == LegacyRelativeFile(path="uploads/essay.pdf", file_name="Essay.pdf")
    assert resolve_file(stored.file, download=True).filename == "Essay.pdf"


def test_untagged_announcement_attachments_are_classified():
    announcement = Announcement(
        title="Trip",
        content="Forms attached",
        posted_by="u",
        class_id="c",
        attachments=["uploads/forms/a.pdf", {"url": CDN_URL, "file_name": "b.pdf"}, ""],
    )
    assert announcement.attachments == [
        LegacyRelativeFile(path="uploads/forms/a.pdf"),
        CloudFile(url=CDN_URL, file_name="b.pdf"),
    ]
