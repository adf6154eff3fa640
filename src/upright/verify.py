"""Verify module: check that a written image is really upright."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass, field
from pathlib import Path

import imagehash
import numpy as np
from numpy.typing import NDArray
from PIL import Image

from upright.errors import DecodeError, UprightError
from upright.normalize import NormalizeOptions, apply_transform, open_raster
from upright.orientation import OrientationTag, read_orientation, transform_for

# Recompression at high quality stays well above this
DEFAULT_SSIM_THRESHOLD = 0.9

# Out of 64 bits; a wrong rotation lands far above this
DEFAULT_MAX_PHASH_DISTANCE = 8

# SSIM stabilizing constants for 8-bit data
_C1 = (0.01 * 255) ** 2
_C2 = (0.03 * 255) ** 2


@dataclass
class VerifyReport:
    """Outcome of verifying one output file."""

    path: str
    ok: bool = True
    problems: list[str] = field(default_factory=list)
    ssim: float | None = None
    phash_distance: int | None = None

    def fail(self, problem: str) -> None:
        self.ok = False
        self.problems.append(problem)


def _luminance(image: Image.Image) -> NDArray[np.float64]:
    return np.array(image.convert("L"), dtype=np.float64)


def structural_similarity(a: Image.Image, b: Image.Image) -> float:
    """Compute global SSIM between two images of the same size.

    Compares luminance only. 1.0 means identical content.

    Args:
        a: First image.
        b: Second image.

    Returns:
        SSIM index, at most 1.0.

    Raises:
        ValueError: sizes differ.
    """
    if a.size != b.size:
        raise ValueError(f"size mismatch: {a.size} vs {b.size}")

    x = _luminance(a)
    y = _luminance(b)
    mx, my = x.mean(), y.mean()
    cov = ((x - mx) * (y - my)).mean()

    num = (2 * mx * my + _C1) * (2 * cov + _C2)
    den = (mx**2 + my**2 + _C1) * (x.var() + y.var() + _C2)
    return float(num / den)


def perceptual_distance(a: Image.Image, b: Image.Image) -> int:
    """Hamming distance between the pHashes of two images."""
    return int(imagehash.phash(a) - imagehash.phash(b))


def verify_output(
    source_bytes: bytes,
    output_path: Path | str,
    options: NormalizeOptions | None = None,
    threshold: float = DEFAULT_SSIM_THRESHOLD,
    max_phash_distance: int = DEFAULT_MAX_PHASH_DISTANCE,
) -> VerifyReport:
    """Check a normalized file against its source.

    The output must decode as JPEG, read as upright, and match the source
    after applying the same transform.

    Args:
        source_bytes: Original encoded image.
        output_path: File written by normalize().
        options: Options the output was written with (policy matters).
        threshold: Minimum SSIM between expected and actual pixels.
        max_phash_distance: Largest pHash Hamming distance accepted.

    Returns:
        VerifyReport; problems are reported, never raised.
    """
    options = options or NormalizeOptions()
    report = VerifyReport(path=str(output_path))

    try:
        output_bytes = Path(output_path).read_bytes()
    except OSError as e:
        report.fail(f"cannot read output: {e}")
        return report

    try:
        with open_raster(output_bytes) as output:
            if output.format != "JPEG":
                report.fail(f"output is {output.format}, not JPEG")
            if read_orientation(output) != OrientationTag.NORMAL:
                report.fail("output still carries an orientation tag")

            with open_raster(source_bytes) as source:
                transform = transform_for(read_orientation(source), options.policy)
                width, height = source.size
                if transform.swaps_dimensions:
                    width, height = height, width
                expected_size = (width, height)
                if output.size != expected_size:
                    report.fail(f"size {output.size}, expected {expected_size}")
                    return report

                with closing(apply_transform(source, transform)) as expected:
                    report.ssim = structural_similarity(expected, output)
                    report.phash_distance = perceptual_distance(expected, output)
    except DecodeError as e:
        report.fail(f"not decodable: {e}")
        return report
    except UprightError as e:
        report.fail(str(e))
        return report

    if report.ssim < threshold:
        report.fail(f"SSIM {report.ssim:.3f} below {threshold}")
    if report.phash_distance > max_phash_distance:
        report.fail(f"pHash distance {report.phash_distance} above {max_phash_distance}")
    return report
