"""Tests for upright.orientation module."""

import pytest
from PIL import Image

from synthetic import make_corner_image, make_corner_jpeg, to_jpeg
from upright.errors import UnsupportedRotation
from upright.orientation import (
    EXIF_TRANSFORMS,
    LEGACY_TRANSFORMS,
    OrientationTag,
    Transform,
    read_orientation,
    transform_for,
)


class TestOrientationTag:
    def test_values(self):
        assert [int(t) for t in OrientationTag] == list(range(1, 9))

    def test_coerce_valid(self):
        assert OrientationTag.coerce(6) is OrientationTag.ROTATE_90

    def test_coerce_out_of_range(self):
        assert OrientationTag.coerce(0) is OrientationTag.NORMAL
        assert OrientationTag.coerce(9) is OrientationTag.NORMAL

    def test_coerce_garbage(self):
        assert OrientationTag.coerce(None) is OrientationTag.NORMAL
        assert OrientationTag.coerce("sideways") is OrientationTag.NORMAL

    def test_coerce_tuple(self):
        assert OrientationTag.coerce((3,)) is OrientationTag.ROTATE_180


class TestTransform:
    def test_identity(self):
        assert Transform().is_identity
        assert not Transform(90).is_identity
        assert not Transform(0, mirror=True).is_identity

    def test_swaps_dimensions(self):
        assert Transform(90).swaps_dimensions
        assert Transform(270, mirror=True).swaps_dimensions
        assert not Transform(180).swaps_dimensions
        assert not Transform(0).swaps_dimensions

    def test_rejects_arbitrary_angle(self):
        with pytest.raises(ValueError, match="multiple of 90"):
            Transform(45)


class TestTransformFor:
    @pytest.mark.parametrize(
        "tag,rotation,mirror",
        [
            (1, 0, False),
            (2, 0, True),
            (3, 180, False),
            (4, 180, True),
            (5, 90, True),
            (6, 90, False),
            (7, 270, True),
            (8, 270, False),
        ],
    )
    def test_exif_table(self, tag, rotation, mirror):
        assert transform_for(tag) == Transform(rotation, mirror)

    @pytest.mark.parametrize(
        "tag,rotation",
        [(1, 0), (2, 0), (3, 180), (4, 0), (5, 0), (6, 90), (7, 0), (8, 270)],
    )
    def test_legacy_table(self, tag, rotation):
        transform = transform_for(tag, "legacy")
        assert transform.rotation == rotation
        assert not transform.mirror

    @pytest.mark.parametrize("tag", [2, 4, 5, 7])
    def test_strict_refuses_mirrored(self, tag):
        with pytest.raises(UnsupportedRotation) as exc_info:
            transform_for(tag, "strict")
        assert exc_info.value.tag == tag

    @pytest.mark.parametrize("tag", [1, 3, 6, 8])
    def test_strict_allows_rotations(self, tag):
        assert transform_for(tag, "strict") == LEGACY_TRANSFORMS[OrientationTag(tag)]

    def test_unknown_tag_is_identity(self):
        assert transform_for(42).is_identity

    def test_unknown_policy(self):
        with pytest.raises(ValueError, match="unknown policy"):
            transform_for(1, "sideways")  # type: ignore[arg-type]

    def test_tables_cover_every_tag(self):
        assert set(EXIF_TRANSFORMS) == set(OrientationTag)
        assert set(LEGACY_TRANSFORMS) == set(OrientationTag)


class TestReadOrientation:
    @pytest.mark.parametrize("tag", range(1, 9))
    def test_from_bytes(self, tag):
        assert read_orientation(make_corner_jpeg(orientation=tag)) == tag

    def test_no_exif(self):
        assert read_orientation(make_corner_jpeg()) is OrientationTag.NORMAL

    def test_out_of_range_tag(self):
        assert read_orientation(make_corner_jpeg(orientation=12)) is OrientationTag.NORMAL

    def test_garbage_bytes(self):
        assert read_orientation(b"definitely not an image") is OrientationTag.NORMAL

    def test_empty_bytes(self):
        assert read_orientation(b"") is OrientationTag.NORMAL

    def test_from_open_image(self):
        import io

        data = to_jpeg(make_corner_image(), orientation=8)
        with Image.open(io.BytesIO(data)) as img:
            assert read_orientation(img) is OrientationTag.ROTATE_270

    def test_from_image_without_exif(self):
        assert read_orientation(Image.new("RGB", (10, 10))) is OrientationTag.NORMAL
