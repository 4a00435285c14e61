"""Stored file references: cloud objects and legacy on-disk uploads."""
from __future__ import annotations

import os
from typing import Annotated, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field


class CloudFile(BaseModel):
    """Object held by the cloud store; ``storage_id`` is the key used to delete it."""

    kind: Literal["cloud"] = "cloud"
    url: str
    storage_id: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None
    resource_type: Optional[str] = None


class LegacyRelativeFile(BaseModel):
    """Upload saved on disk by older releases, e.g. ``uploads/submissions/x.pdf``."""

    kind: Literal["legacy_relative"] = "legacy_relative"
    path: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


class LegacyAbsoluteFile(BaseModel):
    kind: Literal["legacy_absolute"] = "legacy_absolute"
    path: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None


FileRef = Annotated[
    Union[CloudFile, LegacyRelativeFile, LegacyAbsoluteFile],
    Field(discriminator="kind"),
]


def is_url(value: str | None) -> bool:
    parsed = urlparse(value or "")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def file_ref_from_fields(
    *,
    cloud_url: str | None = None,
    storage_id: str | None = None,
    path: str | None = None,
    file_name: str | None = None,
    mime_type: str | None = None,
    size: int | None = None,
    resource_type: str | None = None,
) -> CloudFile | LegacyRelativeFile | LegacyAbsoluteFile | None:
    """Classify loose reference fields once, at write time.

    Priority: cloud URL, then legacy relative path, then legacy absolute path.
    A ``path`` that is itself a URL is treated as a cloud reference.
    """
    cloud_url = (cloud_url or "").strip()
    path = (path or "").strip().replace("\\", "/")
    if not cloud_url and is_url(path):
        cloud_url, path = path, ""

    if cloud_url:
        return CloudFile(
            url=cloud_url,
            storage_id=storage_id,
            file_name=file_name,
            mime_type=mime_type,
            size=size,
            resource_type=resource_type,
        )
    if not path:
        return None
    if os.path.isabs(path):
        return LegacyAbsoluteFile(path=path, file_name=file_name, mime_type=mime_type)
    return LegacyRelativeFile(path=path, file_name=file_name, mime_type=mime_type)


def serialize_file(ref: CloudFile | LegacyRelativeFile | LegacyAbsoluteFile | None) -> dict | None:
    if ref is None:
        return None
    data = ref.model_dump(exclude_none=True)
    # on-disk locations are never exposed to clients
    data.pop("path", None)
    data.pop("storage_id", None)
    return data


# flat fields older submission records carry instead of ``file``
_LEGACY_FIELDS = {
    "cloudinaryUrl": "cloud_url",
    "cloudinaryPublicId": "storage_id",
    "filePath": "path",
    "fileName": "file_name",
    "fileType": "mime_type",
    "fileSize": "size",
    "resourceType": "resource_type",
}


def legacy_file_fields(data: dict) -> dict:
    return {new: data[old] for old, new in _LEGACY_FIELDS.items() if data.get(old) is not None}


def coerce_file_ref(value):
    """Classify a stored reference that predates the tagged ``kind`` shape.

    A bare string is a path or URL; a dict without ``kind`` carries the loose
    reference fields. Tagged values pass through untouched.
    """
    if isinstance(value, str):
        return file_ref_from_fields(path=value)
    if isinstance(value, dict) and "kind" not in value:
        fields = legacy_file_fields(value)
        for key in ("cloud_url", "storage_id", "path", "file_name", "mime_type", "size", "resource_type"):
            if value.get(key) is not None:
                fields.setdefault(key, value[key])
        if value.get("url") is not None:
            fields.setdefault("cloud_url", value["url"])
        return file_ref_from_fields(**fields)
    return value
