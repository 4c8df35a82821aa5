"""Media detection.

Classifies a source path by extension, then probes still-image candidates
with Pillow to reject multi-frame (animated) files, whose extension alone
says nothing about their structure.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from PIL import Image

from arlink.config import STILL_IMAGE_EXTENSIONS, VIDEO_EXTENSIONS
from arlink.errors import (
    ArlinkInvalidInputError,
    ArlinkProcessingError,
    ArlinkUnsupportedMediaError,
)
from arlink.models import ImageAsset


class MediaKind(str, Enum):
    """Classification of a file by extension."""

    STILL_IMAGE = "still_image"
    VIDEO = "video"
    UNKNOWN = "unknown"


def media_extension(path: str | os.PathLike[str]) -> str:
    """Return the lowercase extension of *path* without the leading dot."""
    return Path(path).suffix.lower().lstrip(".")


def classify_extension(path: str | os.PathLike[str]) -> MediaKind:
    """Classify *path* by extension only.  Does not touch the file."""
    ext = media_extension(path)
    if ext in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    if ext in STILL_IMAGE_EXTENSIONS:
        return MediaKind.STILL_IMAGE
    return MediaKind.UNKNOWN


def _require_file(path: str) -> int:
    """Return the size of *path*, raising if it is missing or empty."""
    if not os.path.isfile(path):
        raise ArlinkInvalidInputError(
            message=f"File not found: {path}",
            context={"path": path, "reason": "not_found"},
        )
    size = os.path.getsize(path)
    if size == 0:
        raise ArlinkInvalidInputError(
            message=f"Empty file: {path}",
            context={"path": path, "reason": "empty"},
        )
    return size


def probe_image(path: str | os.PathLike[str]) -> ImageAsset:
    """Validate *path* as a processable still image and describe it.

    Raises
    ------
    ArlinkInvalidInputError
        If the file does not exist or is empty.
    ArlinkUnsupportedMediaError
        For video or unknown extensions, and for multi-frame images.
    ArlinkProcessingError
        If Pillow cannot open the file.
    """
    path = os.fspath(path)
    size = _require_file(path)

    kind = classify_extension(path)
    ext = media_extension(path)
    if kind is MediaKind.VIDEO:
        raise ArlinkUnsupportedMediaError(
            message=f"Video files are not supported: {os.path.basename(path)}",
            context={"path": path, "extension": ext},
        )
    if kind is MediaKind.UNKNOWN:
        raise ArlinkUnsupportedMediaError(
            message=f"Unsupported file extension {ext!r}: {os.path.basename(path)}",
            context={"path": path, "extension": ext},
        )

    try:
        with Image.open(path) as img:
            frames = getattr(img, "n_frames", 1)
            width, height = img.size
            fmt = img.format or ext.upper()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ArlinkProcessingError(
            message=f"Could not read image {os.path.basename(path)}: {exc}",
            context={"path": path, "stage": "probe"},
            cause=exc,
        ) from exc

    if frames > 1:
        raise ArlinkUnsupportedMediaError(
            message=f"Animated images are not supported: {os.path.basename(path)}",
            context={"path": path, "extension": ext, "frames": frames},
        )

    return ImageAsset(path=path, size_bytes=size, width=width, height=height, format=fmt)


def is_image_file(path: str | os.PathLike[str]) -> bool:
    """Return ``True`` if *path* is a processable still image.

    Unlike :func:`probe_image` this turns media rejections into ``False``.
    A missing file still raises :class:`ArlinkInvalidInputError`.
    """
    try:
        probe_image(path)
    except (ArlinkUnsupportedMediaError, ArlinkProcessingError):
        return False
    return True
