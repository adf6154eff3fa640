"""Orientation tags and the transforms that make an image upright."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Literal

from PIL import Image

from upright.errors import MetadataError, UnsupportedRotation

logger = logging.getLogger(__name__)

# EXIF tag 0x0112
ORIENTATION_TAG = 274

Policy = Literal["exif", "legacy", "strict"]
POLICIES: tuple[str, ...] = ("exif", "legacy", "strict")


class OrientationTag(IntEnum):
    """EXIF orientation values."""

    NORMAL = 1
    FLIP_HORIZONTAL = 2
    ROTATE_180 = 3
    FLIP_VERTICAL = 4
    TRANSPOSE = 5
    ROTATE_90 = 6
    TRANSVERSE = 7
    ROTATE_270 = 8

    @classmethod
    def coerce(cls, value: object) -> OrientationTag:
        """Convert a raw metadata value, falling back to NORMAL."""
        if isinstance(value, tuple) and value:
            value = value[0]
        try:
            return cls(int(value))  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return cls.NORMAL


@dataclass(frozen=True)
class Transform:
    """Clockwise rotation followed by an optional horizontal mirror."""

    rotation: int = 0
    mirror: bool = False

    def __post_init__(self) -> None:
        if self.rotation not in (0, 90, 180, 270):
            raise ValueError(f"rotation must be a multiple of 90, got {self.rotation}")

    @property
    def is_identity(self) -> bool:
        return self.rotation == 0 and not self.mirror

    @property
    def swaps_dimensions(self) -> bool:
        return self.rotation in (90, 270)


IDENTITY = Transform()

# Full EXIF model: rotate first, then mirror columns.
EXIF_TRANSFORMS: dict[OrientationTag, Transform] = {
    OrientationTag.NORMAL: IDENTITY,
    OrientationTag.FLIP_HORIZONTAL: Transform(0, mirror=True),
    OrientationTag.ROTATE_180: Transform(180),
    OrientationTag.FLIP_VERTICAL: Transform(180, mirror=True),
    OrientationTag.TRANSPOSE: Transform(90, mirror=True),
    OrientationTag.ROTATE_90: Transform(90),
    OrientationTag.TRANSVERSE: Transform(270, mirror=True),
    OrientationTag.ROTATE_270: Transform(270),
}

# Rotation-only subset; mirrored orientations are left as stored.
LEGACY_TRANSFORMS: dict[OrientationTag, Transform] = {
    tag: Transform(t.rotation) if not t.mirror else IDENTITY
    for tag, t in EXIF_TRANSFORMS.items()
}

MIRRORED_TAGS = frozenset(tag for tag, t in EXIF_TRANSFORMS.items() if t.mirror)


def transform_for(tag: int, policy: Policy = "exif") -> Transform:
    """Look up the transform for an orientation tag.

    Args:
        tag: EXIF orientation value. Unknown values map to NORMAL.
        policy: "exif" applies the full orientation model, "legacy" only
            the pure rotations (3, 6, 8), "strict" behaves like "legacy"
            but refuses mirrored orientations.

    Returns:
        Transform to apply to the stored pixels.

    Raises:
        UnsupportedRotation: policy is "strict" and the tag needs a mirror.
        ValueError: unknown policy.
    """
    orientation = OrientationTag.coerce(tag)
    if policy == "exif":
        return EXIF_TRANSFORMS[orientation]
    if policy == "legacy":
        return LEGACY_TRANSFORMS[orientation]
    if policy == "strict":
        if orientation in MIRRORED_TAGS:
            raise UnsupportedRotation(int(orientation))
        return LEGACY_TRANSFORMS[orientation]
    raise ValueError(f"unknown policy {policy!r}, expected one of {POLICIES}")


def _exif_orientation(image: Image.Image) -> OrientationTag:
    """Read the orientation tag from an open image.

    Raises:
        MetadataError: the EXIF block is missing or unreadable.
    """
    try:
        exif = image.getexif()
    except Exception as e:
        raise MetadataError(f"cannot parse EXIF: {e}") from e
    if not exif:
        raise MetadataError("no EXIF block")

    value = exif.get(ORIENTATION_TAG)
    if value is None:
        raise MetadataError("no orientation tag")
    return OrientationTag.coerce(value)


def read_orientation(source: bytes | Image.Image) -> OrientationTag:
    """Read the EXIF orientation of an image.

    Missing or broken metadata is not an error: the image is treated as
    already upright.

    Args:
        source: Encoded image bytes, or an open PIL Image.

    Returns:
        The orientation tag, NORMAL when it cannot be determined.
    """
    try:
        if isinstance(source, Image.Image):
            return _exif_orientation(source)
        try:
            img = Image.open(io.BytesIO(source))
        except Exception as e:
            raise MetadataError(f"cannot open image for metadata: {e}") from e
        with img:
            return _exif_orientation(img)
    except MetadataError as e:
        logger.debug("Orientation unavailable, assuming normal: %s", e)
        return OrientationTag.NORMAL
