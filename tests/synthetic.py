"""Synthetic test images with coloured corners and EXIF orientation."""

from __future__ import annotations

import io

from PIL import Image

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
YELLOW = (255, 255, 0)
GRAY = (128, 128, 128)

BLOCK = 20


def make_corner_image(w: int = 100, h: int = 200) -> Image.Image:
    """Gray image with red/green/blue/yellow blocks at TL/TR/BL/BR."""
    img = Image.new("RGB", (w, h), GRAY)
    img.paste(RED, (0, 0, BLOCK, BLOCK))
    img.paste(GREEN, (w - BLOCK, 0, w, BLOCK))
    img.paste(BLUE, (0, h - BLOCK, BLOCK, h))
    img.paste(YELLOW, (w - BLOCK, h - BLOCK, w, h))
    return img


def to_jpeg(img: Image.Image, orientation: int | None = None, quality: int = 95) -> bytes:
    """Encode as JPEG, optionally tagging the orientation."""
    buffer = io.BytesIO()
    params: dict[str, object] = {"quality": quality}
    if orientation is not None:
        exif = Image.Exif()
        exif[274] = orientation
        params["exif"] = exif.tobytes()
    img.save(buffer, "JPEG", **params)
    return buffer.getvalue()


def make_corner_jpeg(
    w: int = 100, h: int = 200, orientation: int | None = None
) -> bytes:
    return to_jpeg(make_corner_image(w, h), orientation)


def corners(img: Image.Image) -> tuple[tuple[int, ...], ...]:
    """Sample TL, TR, BL, BR a few pixels inside each corner."""
    w, h = img.size
    rgb = img.convert("RGB")
    inset = BLOCK // 4
    return (
        rgb.getpixel((inset, inset)),
        rgb.getpixel((w - 1 - inset, inset)),
        rgb.getpixel((inset, h - 1 - inset)),
        rgb.getpixel((w - 1 - inset, h - 1 - inset)),
    )


def close_to(actual: tuple[int, ...], expected: tuple[int, ...], tol: int = 40) -> bool:
    return all(abs(a - e) <= tol for a, e in zip(actual, expected))


def corners_match(img: Image.Image, expected: tuple[tuple[int, int, int], ...]) -> bool:
    return all(close_to(a, e) for a, e in zip(corners(img), expected))
