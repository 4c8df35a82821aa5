"""Image normalization: fit-within resize and canonical WebP re-encode.

:class:`ImageNormalizer` turns a source image into a
:class:`~arlink.models.ProcessedArtifact`.  Artifacts are written into an
isolated scratch directory and handed over to the caller, who deletes them
with :func:`discard_artifact` once they have been uploaded.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import time
import uuid
from pathlib import Path
from typing import Any

from PIL import Image, ImageOps

from arlink.config import CANONICAL_FORMAT, ArlinkConfig
from arlink.errors import ArlinkProcessingError
from arlink.models import ImageAsset, ProcessedArtifact
from arlink.observability import NoopMetricsHook
from arlink.progress import ProgressSink, null_progress

from .detect import probe_image

_SCRATCH_SUBDIR = "arlink"


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Return dimensions that fit *max_width* x *max_height* preserving the
    aspect ratio.

    Never upscales: an image already within bounds keeps its size.

    Examples
    --------
    >>> fit_within(2000, 1500, 1876, 1251)
    (1668, 1251)
    >>> fit_within(800, 600, 1876, 1251)
    (800, 600)
    """
    if width <= max_width and height <= max_height:
        return width, height
    scale = min(max_width / width, max_height / height)
    new_width = min(max_width, max(1, round(width * scale)))
    new_height = min(max_height, max(1, round(height * scale)))
    return new_width, new_height


def reduction_percent(original_size: int, processed_size: int) -> float:
    """Percentage of bytes saved; negative when the output grew."""
    if original_size <= 0:
        return 0.0
    return (original_size - processed_size) / original_size * 100


def discard_artifact(artifact: ProcessedArtifact) -> bool:
    """Delete a processed artifact unless it is the original file.

    Returns ``True`` if a file was removed.
    """
    if artifact.is_original:
        return False
    try:
        os.unlink(artifact.path)
    except FileNotFoundError:
        return False
    return True


def _webp_ready(img: Image.Image) -> Image.Image:
    """Convert *img* to a mode the WebP encoder accepts."""
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info):
        return img.convert("RGBA")
    return img.convert("RGB")


class ImageNormalizer:
    """Validate, resize and re-encode images to the canonical format.

    Parameters
    ----------
    config:
        Supplies quality, bounds and the scratch directory.
    logger:
        Logger for diagnostics (injected by the pipeline facade).
    metrics:
        Optional :class:`~arlink.observability.MetricsHook`.
    """

    def __init__(
        self,
        config: ArlinkConfig,
        logger: logging.Logger,
        metrics: Any | None = None,
    ) -> None:
        self._config = config
        self._log = logger
        self._metrics = metrics if metrics is not None else NoopMetricsHook()

    # -- scratch ------------------------------------------------------------

    def scratch_dir(self) -> Path:
        base = (
            Path(self._config.scratch_dir)
            if self._config.scratch_dir
            else Path(tempfile.gettempdir()) / _SCRATCH_SUBDIR
        )
        base.mkdir(parents=True, exist_ok=True)
        return base

    def _scratch_path(self, source: str) -> Path:
        stem = Path(source).stem or "image"
        return self.scratch_dir() / f"{stem}-{uuid.uuid4().hex[:12]}.webp"

    # -- public API ---------------------------------------------------------

    def normalize(
        self,
        path: str | os.PathLike[str],
        *,
        quality: int | None = None,
        max_width: int | None = None,
        max_height: int | None = None,
        progress: ProgressSink = null_progress,
    ) -> ProcessedArtifact:
        """Normalize the image at *path*.

        Parameters
        ----------
        path:
            Source image.
        quality, max_width, max_height:
            Override the configured encoder quality and bounds.
        progress:
            Receives step reports.

        Returns
        -------
        ProcessedArtifact
            The original file unchanged (``reduction_percent == 0``) if it
            is already WebP within bounds; otherwise a new scratch file.

        Raises
        ------
        ArlinkInvalidInputError
            Missing or empty file.
        ArlinkUnsupportedMediaError
            Video, unknown extension, or animated image.
        ArlinkProcessingError
            Pillow failed to decode, resize or encode.
        """
        quality = self._config.image_quality if quality is None else quality
        max_width = self._config.image_max_width if max_width is None else max_width
        max_height = self._config.image_max_height if max_height is None else max_height

        t0 = time.monotonic()
        progress("Analyzing image...", 10)
        asset = probe_image(path)

        if (
            asset.format == CANONICAL_FORMAT
            and asset.width <= max_width
            and asset.height <= max_height
        ):
            progress("Image already optimized (WebP format, correct dimensions)", 90)
            self._log.debug(
                "Skipping re-encode of optimized image",
                extra={"extra_fields": {"op": "normalize", "path": asset.path}},
            )
            return ProcessedArtifact(
                path=asset.path,
                original_path=asset.path,
                original_size=asset.size_bytes,
                size_bytes=asset.size_bytes,
                width=asset.width,
                height=asset.height,
                format=CANONICAL_FORMAT,
                reduction_percent=0.0,
            )

        out_path = self._scratch_path(asset.path)
        try:
            width, height = self._encode(asset, out_path, quality, max_width, max_height, progress)
            processed_size = out_path.stat().st_size
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            out_path.unlink(missing_ok=True)
            self._log.error(
                "Image processing failed",
                exc_info=exc,
                extra={"extra_fields": {"op": "normalize", "path": asset.path}},
            )
            raise ArlinkProcessingError(
                message=f"Failed to process {os.path.basename(asset.path)}: {exc}",
                context={"path": asset.path, "stage": "encode"},
                cause=exc,
            ) from exc
        except BaseException:
            out_path.unlink(missing_ok=True)
            raise

        pct = reduction_percent(asset.size_bytes, processed_size)
        progress(f"Image processing complete ({pct:.1f}% size reduction)", 30)

        elapsed_ms = (time.monotonic() - t0) * 1000
        self._metrics.timing("arlink.normalize_duration_ms", elapsed_ms)
        self._log.info(
            "Image normalized",
            extra={
                "extra_fields": {
                    "op": "normalize",
                    "path": asset.path,
                    "original_size": asset.size_bytes,
                    "processed_size": processed_size,
                    "width": width,
                    "height": height,
                    "reduction_percent": round(pct, 2),
                }
            },
        )
        return ProcessedArtifact(
            path=str(out_path),
            original_path=asset.path,
            original_size=asset.size_bytes,
            size_bytes=processed_size,
            width=width,
            height=height,
            format=CANONICAL_FORMAT,
            reduction_percent=pct,
        )

    async def async_normalize(
        self,
        path: str | os.PathLike[str],
        **kwargs: Any,
    ) -> ProcessedArtifact:
        """Run :meth:`normalize` in a worker thread."""
        return await asyncio.to_thread(self.normalize, path, **kwargs)

    # -- internals ----------------------------------------------------------

    def _encode(
        self,
        asset: ImageAsset,
        out_path: Path,
        quality: int,
        max_width: int,
        max_height: int,
        progress: ProgressSink,
    ) -> tuple[int, int]:
        with Image.open(asset.path) as src:
            img = ImageOps.exif_transpose(src) or src
            width, height = img.size
            target = fit_within(width, height, max_width, max_height)

            if target != (width, height):
                progress(
                    f"Resizing image from {width}x{height} to fit within "
                    f"{max_width}x{max_height}...",
                    20,
                )
                img = img.resize(target, Image.Resampling.LANCZOS)
            else:
                progress("Image dimensions already optimal, skipping resize", 20)

            progress("Converting to WebP format...", 30)
            img = _webp_ready(img)
            img.save(out_path, format=CANONICAL_FORMAT, quality=quality)
            return img.size
