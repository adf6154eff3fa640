"""Normalize module: decode, reorient, re-encode and write images."""

from __future__ import annotations

import io
import logging
import os
import tempfile
from contextlib import closing, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator

from PIL import Image, UnidentifiedImageError

from upright.errors import DecodeError, IoError
from upright.orientation import (
    POLICIES,
    OrientationTag,
    Policy,
    Transform,
    read_orientation,
    transform_for,
)

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 100
DEFAULT_SUFFIX = ".rotated"

# Passed through untouched (case-insensitive matching)
VIDEO_EXTENSIONS = frozenset({".mp4", ".mov", ".m4v", ".3gp", ".avi", ".mkv", ".webm"})

# Modes the JPEG encoder accepts as-is
JPEG_MODES = frozenset({"RGB", "L", "CMYK"})

_DECODE_ERRORS = (
    UnidentifiedImageError,
    OSError,
    ValueError,
    SyntaxError,
    Image.DecompressionBombError,
)


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


# Process umask, read once; mkstemp creates files as 0600 regardless
_UMASK = _current_umask()


@dataclass(frozen=True)
class NormalizeOptions:
    """Per-call settings for normalization."""

    quality: int = DEFAULT_QUALITY
    suffix: str = DEFAULT_SUFFIX
    policy: Policy = "exif"
    keep_icc_profile: bool = True

    def __post_init__(self) -> None:
        if not 1 <= self.quality <= 100:
            raise ValueError(f"quality must be between 1 and 100, got {self.quality}")
        if not self.suffix or "/" in self.suffix or os.sep in self.suffix:
            raise ValueError(f"invalid suffix {self.suffix!r}")
        if self.policy not in POLICIES:
            raise ValueError(f"unknown policy {self.policy!r}, expected one of {POLICIES}")


@dataclass(frozen=True)
class EncodedImage:
    """JPEG bytes produced from an upright raster."""

    data: bytes
    width: int
    height: int
    quality: int


def is_video(path: Path | str) -> bool:
    """Check whether a file is a video by extension."""
    return Path(path).suffix.lower() in VIDEO_EXTENSIONS


def destination_for(source_path: Path | str, suffix: str = DEFAULT_SUFFIX) -> Path:
    """Derive the output path next to the source.

    Example: ``/dcim/IMG_1.jpg`` -> ``/dcim/IMG_1.rotated.jpg``.

    Raises:
        IoError: the path names a directory root, not a file.
    """
    source_path = Path(source_path)
    if not source_path.name:
        raise IoError(f"source path has no file name: {source_path}")
    return source_path.with_name(f"{source_path.stem}{suffix}.jpg")


def read_source(path: Path | str) -> bytes:
    """Read source bytes from disk.

    Raises:
        IoError: the file cannot be read.
    """
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise IoError(f"cannot read {path}: {e}") from e


@contextmanager
def open_raster(data: bytes) -> Iterator[Image.Image]:
    """Decode image bytes and close the raster when the block exits.

    Raises:
        DecodeError: bytes are not a supported or intact image.
    """
    try:
        image = Image.open(io.BytesIO(data))
    except _DECODE_ERRORS as e:
        raise DecodeError(f"unrecognized image data: {e}") from e

    try:
        try:
            image.load()
        except _DECODE_ERRORS as e:
            raise DecodeError(f"corrupt image data: {e}") from e
        yield image
    finally:
        image.close()


def apply_transform(image: Image.Image, transform: Transform) -> Image.Image:
    """Apply a rotation and mirror to a raster.

    Always returns a new image; the caller owns it and ``image`` is left
    untouched.
    """
    if transform.is_identity:
        return image.copy()

    result = image
    if transform.rotation:
        # PIL rotates counter-clockwise
        result = image.rotate(360 - transform.rotation, expand=True)
    if transform.mirror:
        mirrored = result.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
        if result is not image:
            result.close()
        result = mirrored
    return result


def _to_jpeg_mode(image: Image.Image) -> Image.Image:
    """Convert to a mode JPEG can store, flattening alpha onto white."""
    if image.mode in JPEG_MODES:
        return image

    if image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    ):
        rgba = image.convert("RGBA")
        flat = Image.new("RGB", rgba.size, (255, 255, 255))
        flat.paste(rgba, mask=rgba.getchannel("A"))
        rgba.close()
        return flat

    return image.convert("RGB")


def encode_jpeg(
    image: Image.Image,
    quality: int = DEFAULT_QUALITY,
    icc_profile: bytes | None = None,
) -> EncodedImage:
    """Encode a raster as JPEG without an EXIF block.

    Args:
        image: Upright raster.
        quality: JPEG quality factor (1-100).
        icc_profile: Optional colour profile to embed.

    Returns:
        EncodedImage holding the compressed bytes.
    """
    jpeg = _to_jpeg_mode(image)
    buffer = io.BytesIO()
    params: dict[str, object] = {"quality": quality}
    if icc_profile:
        params["icc_profile"] = icc_profile

    try:
        jpeg.save(buffer, "JPEG", **params)
        width, height = jpeg.size
    except OSError as e:
        raise IoError(f"JPEG encoding failed: {e}") from e
    finally:
        if jpeg is not image:
            jpeg.close()

    return EncodedImage(
        data=buffer.getvalue(), width=width, height=height, quality=quality
    )


def write_atomic(data: bytes, destination: Path) -> None:
    """Write bytes so the destination appears only when complete.

    Raises:
        IoError: the destination directory is not writable.
    """
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{destination.stem}.", suffix=".tmp", dir=destination.parent
        )
    except OSError as e:
        raise IoError(f"cannot write {destination}: {e}") from e

    tmp_path = Path(tmp_name)
    done = False
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, 0o666 & ~_UMASK)
        os.replace(tmp_path, destination)
        done = True
    except OSError as e:
        raise IoError(f"cannot write {destination}: {e}") from e
    finally:
        if not done:
            tmp_path.unlink(missing_ok=True)


def normalize_image(
    image: Image.Image,
    tag: int | None = None,
    options: NormalizeOptions | None = None,
) -> Image.Image:
    """Return an upright copy of an already decoded image.

    Args:
        image: Decoded raster.
        tag: Orientation of the raster. Read from its EXIF when None.
        options: Only ``policy`` is used.

    Returns:
        New image owned by the caller.
    """
    options = options or NormalizeOptions()
    orientation = read_orientation(image) if tag is None else OrientationTag.coerce(tag)
    return apply_transform(image, transform_for(orientation, options.policy))


def _encode_upright(data: bytes, options: NormalizeOptions) -> EncodedImage:
    """Run decode -> transform -> encode on source bytes."""
    with open_raster(data) as raster:
        tag = read_orientation(raster)
        transform = transform_for(tag, options.policy)
        logger.debug(
            "Orientation %d (%s): rotate %d, mirror %s",
            tag,
            tag.name,
            transform.rotation,
            transform.mirror,
        )
        icc_profile = raster.info.get("icc_profile") if options.keep_icc_profile else None

        with closing(apply_transform(raster, transform)) as upright:
            return encode_jpeg(upright, options.quality, icc_profile)


def normalize(
    source_bytes: bytes | None,
    source_path: Path | str,
    options: NormalizeOptions | None = None,
) -> Path:
    """Write an upright JPEG copy of an image next to the source.

    Args:
        source_bytes: Encoded image. Read from ``source_path`` when None.
        source_path: Where the image came from; the destination is derived
            from it and the source file is never modified.
        options: Quality, suffix and orientation policy.

    Returns:
        Path of the new JPEG.

    Raises:
        DecodeError: source is not a decodable image. Nothing is written.
        IoError: source cannot be read or destination cannot be written.
            Also raised when ``source_path`` has no file name.
        UnsupportedRotation: policy is "strict" and the image is mirrored.
    """
    options = options or NormalizeOptions()
    source_path = Path(source_path)
    if source_bytes is None:
        source_bytes = read_source(source_path)

    destination = destination_for(source_path, options.suffix)
    encoded = _encode_upright(source_bytes, options)
    write_atomic(encoded.data, destination)

    logger.info(
        "Wrote %s (%dx%d, quality %d)",
        destination,
        encoded.width,
        encoded.height,
        encoded.quality,
    )
    return destination


def normalize_to_stream(
    source_bytes: bytes,
    stream: BinaryIO,
    options: NormalizeOptions | None = None,
) -> EncodedImage:
    """Like normalize(), but write the JPEG to a binary stream.

    The stream receives nothing unless encoding succeeded.
    """
    options = options or NormalizeOptions()
    encoded = _encode_upright(source_bytes, options)
    try:
        stream.write(encoded.data)
    except OSError as e:
        raise IoError(f"cannot write to stream: {e}") from e
    return encoded


def normalize_file(path: Path | str, options: NormalizeOptions | None = None) -> Path:
    """Normalize an image file, passing videos through unchanged.

    Returns:
        The new JPEG path, or ``path`` itself for videos.
    """
    path = Path(path)
    if is_video(path):
        logger.info("Passing through video %s", path)
        return path
    return normalize(None, path, options)
