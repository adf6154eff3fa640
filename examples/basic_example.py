"""Basic example: make a sideways photo upright.

Creates a 100x200 JPEG tagged "rotate 90 CW", normalizes it, and prints
the sizes before and after.
"""

import tempfile
from pathlib import Path

from PIL import Image

from upright import normalize, read_orientation


def main() -> None:
    """Run the basic example."""
    with tempfile.TemporaryDirectory() as tmp:
        source = Path(tmp) / "IMG_0001.jpg"

        exif = Image.Exif()
        exif[274] = 6
        Image.new("RGB", (100, 200), (200, 30, 30)).save(source, "JPEG", exif=exif.tobytes())

        data = source.read_bytes()
        tag = read_orientation(data)
        print(f"Source:  {source.name} {Image.open(source).size} orientation={tag.name}")

        dest = normalize(data, source)
        with Image.open(dest) as out:
            print(f"Output:  {dest.name} {out.size} orientation={read_orientation(out).name}")


if __name__ == "__main__":
    main()
