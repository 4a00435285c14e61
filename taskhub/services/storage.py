"""AWS S3 storage for uploads, plus removal of legacy on-disk files."""
import asyncio
import logging
import os
import uuid
from pathlib import Path
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from taskhub.config import settings
from taskhub.errors import ValidationError
from taskhub.models.files import CloudFile, LegacyAbsoluteFile, LegacyRelativeFile

logger = logging.getLogger(__name__)

_s3 = None


def get_s3():
    global _s3
    if _s3 is None:
        _s3 = boto3.client(
            "s3",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
        )
    return _s3


def public_url(key: str) -> str:
    bucket = settings.s3_bucket_files
    return f"https://{bucket}.s3.{settings.aws_region}.amazonaws.com/{key}"


def _put_object_sync(key: str, body: bytes, content_type: str) -> None:
    get_s3().put_object(
        Bucket=settings.s3_bucket_files,
        Key=key,
        Body=body,
        ContentType=content_type,
    )


async def upload_to_s3(file, *, folder: str) -> CloudFile:
    """Upload an ``UploadFile`` under ``folder``; return its cloud reference."""
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(
            f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)} MB upload limit",
            fields=["file"],
        )
    original_name = file.filename or "upload"
    ext = os.path.splitext(original_name)[1].lower()
    key = f"{folder}/{uuid.uuid4().hex}{ext}"
    content_type = file.content_type or "application/octet-stream"
    await asyncio.to_thread(_put_object_sync, key, content, content_type)
    return CloudFile(
        url=public_url(key),
        storage_id=key,
        file_name=original_name,
        mime_type=content_type,
        size=len(content),
        resource_type=content_type.split("/")[0],
    )


async def upload_submission_file(file, *, activity_id: str, student_id: str) -> CloudFile:
    return await upload_to_s3(file, folder=f"submissions/{activity_id}/{student_id}")


async def upload_activity_attachment(file, *, class_id: str) -> CloudFile:
    return await upload_to_s3(file, folder=f"activities/{class_id}")


async def upload_announcement_attachment(file, *, class_id: str) -> CloudFile:
    return await upload_to_s3(file, folder=f"announcements/{class_id}")


def attachment_disposition(filename: str) -> str:
    """Content-Disposition value, RFC 5987-encoded when the name needs it."""
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def presigned_download_url(ref: CloudFile) -> str:
    params = {
        "Bucket": settings.s3_bucket_files,
        "Key": ref.storage_id,
        "ResponseContentDisposition": attachment_disposition(
            ref.file_name or os.path.basename(ref.storage_id)
        ),
    }
    return get_s3().generate_presigned_url(
        "get_object",
        Params=params,
        ExpiresIn=settings.s3_presign_expire_seconds,
    )


def legacy_path(ref: LegacyRelativeFile | LegacyAbsoluteFile) -> Path:
    if isinstance(ref, LegacyAbsoluteFile):
        return Path(ref.path)
    return Path(settings.legacy_files_root) / ref.path


async def delete_from_s3(key: str) -> None:
    """Delete object from S3."""
    await asyncio.to_thread(get_s3().delete_object, Bucket=settings.s3_bucket_files, Key=key)


async def remove_stored_file(ref: CloudFile | LegacyRelativeFile | LegacyAbsoluteFile | None) -> None:
    """Best-effort removal of a stored file; failures are logged, never raised."""
    if ref is None:
        return
    if isinstance(ref, CloudFile):
        if not ref.storage_id:
            logger.warning("Cloud file %s has no storage id; leaving it in place", ref.url)
            return
        try:
            await delete_from_s3(ref.storage_id)
        except (BotoCoreError, ClientError) as e:
            logger.warning("Failed to delete %s from S3: %s", ref.storage_id, e)
        return

    path = legacy_path(ref)
    try:
        path.unlink()
    except FileNotFoundError:
        logger.debug("Legacy file %s already gone", path)
    except OSError as e:
        logger.warning("Failed to delete legacy file %s: %s", path, e)


async def remove_stored_files(refs) -> None:
    for ref in refs:
        await remove_stored_file(ref)
