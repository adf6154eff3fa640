"""upright: bake EXIF orientation into image pixels."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from upright.errors import (
    DecodeError,
    IoError,
    MetadataError,
    UnsupportedRotation,
    UprightError,
)
from upright.normalize import (
    DEFAULT_QUALITY,
    DEFAULT_SUFFIX,
    EncodedImage,
    NormalizeOptions,
    apply_transform,
    destination_for,
    encode_jpeg,
    is_video,
    normalize,
    normalize_file,
    normalize_image,
    normalize_to_stream,
)
from upright.orientation import (
    POLICIES,
    OrientationTag,
    Transform,
    read_orientation,
    transform_for,
)

__version__ = "0.1.0"

__all__ = [
    "DecodeError",
    "EncodedImage",
    "IoError",
    "MetadataError",
    "NormalizeOptions",
    "OrientationTag",
    "Transform",
    "UnsupportedRotation",
    "UprightError",
    "apply_transform",
    "destination_for",
    "encode_jpeg",
    "is_video",
    "main",
    "normalize",
    "normalize_file",
    "normalize_image",
    "normalize_to_stream",
    "read_orientation",
    "transform_for",
]


def describe_transform(transform: Transform) -> str:
    """Short human-readable form of a transform."""
    if transform.is_identity:
        return "none"
    parts = []
    if transform.rotation:
        parts.append(f"rotate {transform.rotation}")
    if transform.mirror:
        parts.append("mirror")
    return " + ".join(parts)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="upright",
        description="Bake EXIF orientation into image pixels.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # normalize command
    normalize_parser = subparsers.add_parser(
        "normalize", help="Write upright JPEG copies next to the given images"
    )
    normalize_parser.add_argument("files", type=Path, nargs="+", help="Images to normalize")
    normalize_parser.add_argument(
        "--quality",
        type=int,
        default=DEFAULT_QUALITY,
        help=f"JPEG quality 1-100 (default: {DEFAULT_QUALITY})",
    )
    normalize_parser.add_argument(
        "--suffix",
        default=DEFAULT_SUFFIX,
        help=f"Output name suffix before .jpg (default: {DEFAULT_SUFFIX})",
    )
    normalize_parser.add_argument(
        "--policy",
        choices=POLICIES,
        default="exif",
        help="exif: full orientation model; legacy: rotations only; "
        "strict: rotations only, fail on mirrored images (default: exif)",
    )
    normalize_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker processes (default: CPU count - 1)",
    )
    normalize_parser.add_argument(
        "--verify", action="store_true", help="Check every output against its source"
    )
    normalize_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show debug logging"
    )

    # inspect command
    inspect_parser = subparsers.add_parser(
        "inspect", help="Show orientation tags without writing anything"
    )
    inspect_parser.add_argument("files", type=Path, nargs="+", help="Images to inspect")

    args = parser.parse_args(argv)

    if args.command == "normalize":
        try:
            options = NormalizeOptions(
                quality=args.quality, suffix=args.suffix, policy=args.policy
            )
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        return cmd_normalize(args.files, options, args.workers, args.verify, args.verbose)
    if args.command == "inspect":
        return cmd_inspect(args.files)

    parser.print_help()
    return 1


def cmd_normalize(
    files: list[Path],
    options: NormalizeOptions,
    workers: int | None,
    verify: bool,
    verbose: bool,
) -> int:
    """Normalize files and report each destination."""
    from upright.parallel import (
        NormalizeResult,
        get_default_workers,
        normalize_files_parallel,
        normalize_to_result,
    )
    from upright.ui import create_progress, setup_logging
    from upright.verify import verify_output

    setup_logging(verbose)
    if workers is None:
        workers = get_default_workers()

    failed = 0
    existing = []
    for path in files:
        if path.is_file():
            existing.append(path)
        else:
            print(f"Error: {path} is not a file", file=sys.stderr)
            failed += 1

    results: list[NormalizeResult] = []
    with create_progress() as progress:
        task = progress.add_task("[cyan]Normalizing...", total=len(existing))

        if workers > 1:
            for result in normalize_files_parallel(existing, options, workers):
                results.append(result)
                progress.advance(task)
        else:
            for path in existing:
                progress.update(task, description=f"[cyan]Normalizing {path.name}...")
                results.append(normalize_to_result(str(path.resolve()), options))
                progress.advance(task)

    for result in results:
        if not result.success:
            print(f"Error: {result.path}: {result.error}", file=sys.stderr)
            failed += 1
            continue
        if result.passthrough:
            print(f"{result.path} (video, unchanged)")
            continue

        print(f"{result.path} -> {result.destination}")
        if verify:
            report = verify_output(Path(result.path).read_bytes(), result.destination, options)
            if not report.ok:
                print(
                    f"  Warning: verification failed: {'; '.join(report.problems)}",
                    file=sys.stderr,
                )
                failed += 1

    done = len(results) - sum(1 for r in results if not r.success)
    print(f"\n✓ Normalized {done} of {len(files)} files")
    return 1 if failed else 0


def cmd_inspect(files: list[Path]) -> int:
    """Print orientation tags and the transform each policy applies."""
    from upright.normalize import read_source

    status = 0
    print(f"{'Tag':<4} {'Orientation':<16} {'exif':<18} {'legacy':<12} {'File'}")
    print("-" * 72)

    for path in files:
        if is_video(path):
            print(f"{'-':<4} {'video':<16} {'none':<18} {'none':<12} {path}")
            continue
        try:
            data = read_source(path)
        except IoError as e:
            print(f"Error: {e}", file=sys.stderr)
            status = 1
            continue

        tag = read_orientation(data)
        exif = describe_transform(transform_for(tag, "exif"))
        legacy = describe_transform(transform_for(tag, "legacy"))
        print(f"{int(tag):<4} {tag.name:<16} {exif:<18} {legacy:<12} {path}")

    return status


if __name__ == "__main__":
    sys.exit(main())
