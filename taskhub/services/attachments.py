"""Decide how a stored file is served: redirect to the cloud or stream from disk."""
from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Union

from fastapi.responses import FileResponse, RedirectResponse

from taskhub.errors import NotFoundError
from taskhub.models.files import CloudFile, LegacyAbsoluteFile, LegacyRelativeFile
from taskhub.services import storage

Disposition = Literal["inline", "attachment"]

# delivery segment of CDN-style URLs imported from the previous file host
_UPLOAD_SEGMENT = "/upload/"
_DOWNLOAD_FLAG = "fl_attachment/"


@dataclass(frozen=True)
class RedirectTo:
    url: str


@dataclass(frozen=True)
class StreamFile:
    path: Path
    media_type: str
    filename: str | None
    disposition: Disposition


Resolution = Union[RedirectTo, StreamFile]


def guess_media_type(name: str | None, stored: str | None = None) -> str:
    if stored:
        return stored
    guessed, _ = mimetypes.guess_type(name or "")
    return guessed or "application/octet-stream"


def with_download_flag(url: str) -> str:
    if _UPLOAD_SEGMENT not in url or f"{_UPLOAD_SEGMENT}{_DOWNLOAD_FLAG}" in url:
        return url
    return url.replace(_UPLOAD_SEGMENT, f"{_UPLOAD_SEGMENT}{_DOWNLOAD_FLAG}", 1)


def cloud_download_url(ref: CloudFile) -> str:
    if _UPLOAD_SEGMENT in ref.url:
        return with_download_flag(ref.url)
    if ref.storage_id:
        return storage.presigned_download_url(ref)
    return ref.url


def resolve_file(
    ref: CloudFile | LegacyRelativeFile | LegacyAbsoluteFile | None,
    *,
    download: bool = False,
) -> Resolution:
    """Serving strategy for ``ref``.

    Cloud objects redirect (to a download-disposition URL when ``download``);
    legacy files stream from disk and must exist.
    """
    if ref is None:
        raise NotFoundError("No file is attached")

    if isinstance(ref, CloudFile):
        return RedirectTo(cloud_download_url(ref) if download else ref.url)

    path = storage.legacy_path(ref)
    if not path.is_file():
        raise NotFoundError("File not found on server")

    filename = ref.file_name or path.name
    if download:
        return StreamFile(
            path=path,
            media_type=guess_media_type(filename, ref.mime_type),
            filename=filename,
            disposition="attachment",
        )
    return StreamFile(
        path=path,
        media_type=guess_media_type(path.name, ref.mime_type),
        filename=filename,
        disposition="inline",
    )


def to_response(resolution: Resolution):
    if isinstance(resolution, RedirectTo):
        return RedirectResponse(resolution.url, status_code=302)
    return FileResponse(
        resolution.path,
        media_type=resolution.media_type,
        filename=resolution.filename,
        content_disposition_type=resolution.disposition,
    )


def file_response(ref, *, download: bool = False):
    return to_response(resolve_file(ref, download=download))
