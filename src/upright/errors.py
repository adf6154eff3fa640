"""Exceptions raised by upright."""

from __future__ import annotations


class UprightError(Exception):
    """Base class for all upright errors."""


class DecodeError(UprightError):
    """Source bytes are not a decodable raster image."""


class MetadataError(UprightError):
    """Orientation metadata could not be read.

    Never escapes the normalizer: callers see tag 1 instead.
    """


class IoError(UprightError, OSError):
    """Reading the source or writing the destination failed."""


class UnsupportedRotation(UprightError):
    """Orientation needs a mirror transform the active policy refuses to skip."""

    def __init__(self, tag: int) -> None:
        super().__init__(f"orientation {tag} requires a mirror transform")
        self.tag = tag
