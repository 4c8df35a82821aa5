"""Image pipeline: detect, validate and normalize source images.

Exports
-------
probe_image
    Validate a source path and describe it as an :class:`ImageAsset`.
is_image_file
    Boolean form of :func:`probe_image`.
classify_extension
    Classify a path as still image, video or unknown by extension.
ImageNormalizer
    Fit-within resize and canonical WebP re-encode.
fit_within
    Aspect-preserving bounding-box arithmetic.
discard_artifact
    Delete a processed artifact the caller no longer needs.
"""

from .detect import MediaKind, classify_extension, is_image_file, media_extension, probe_image
from .normalize import ImageNormalizer, discard_artifact, fit_within, reduction_percent

__all__ = [
    "ImageNormalizer",
    "MediaKind",
    "classify_extension",
    "discard_artifact",
    "fit_within",
    "is_image_file",
    "media_extension",
    "probe_image",
    "reduction_percent",
]
