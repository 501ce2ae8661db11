"""
Tests for smart crop / smart zoom geometry.

Covers box validation, the worked examples for crop sizing, and
property-based checks that every resolved crop stays inside the image,
keeps its aspect ratio and is deterministic.
"""
import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from core.exceptions import DetectionFailure, InvalidDetection, InvalidImage
from services.crop_geometry import (
    AspectRatio,
    BoundingBox,
    CropRectangle,
    ImageDimensions,
    resolve_crop_rectangle,
    resolve_zoom_window,
    round_half_up,
)

FIXED_RATIOS = [AspectRatio.SQUARE, AspectRatio.STORY, AspectRatio.WIDESCREEN, AspectRatio.PORTRAIT]


# Strategies


@st.composite
def bounding_boxes(draw):
    """Valid boxes at least 50 units (5%) on each side."""
    ymin = draw(st.integers(min_value=0, max_value=950))
    xmin = draw(st.integers(min_value=0, max_value=950))
    ymax = draw(st.integers(min_value=ymin + 50, max_value=1000))
    xmax = draw(st.integers(min_value=xmin + 50, max_value=1000))
    return BoundingBox(ymin=ymin, xmin=xmin, ymax=ymax, xmax=xmax)


image_dimensions = st.builds(
    ImageDimensions,
    width=st.integers(min_value=200, max_value=2000),
    height=st.integers(min_value=200, max_value=2000),
)
fill_ratios = st.floats(min_value=10, max_value=100)
aspect_ratios = st.sampled_from(list(AspectRatio))


class TestBoundingBox:
    """Tests for bounding box validation."""

    def test_from_locator_result(self):
        box = BoundingBox.from_locator_result([100, 200, 300, 400])

        assert box.to_list() == [100.0, 200.0, 300.0, 400.0]

    def test_accepts_tuple_and_floats(self):
        box = BoundingBox.from_locator_result((10.5, 20, 30.25, 40))

        assert box.ymin == 10.5
        assert box.ymax == 30.25

    @pytest.mark.parametrize(
        "raw",
        [None, [], [1, 2, 3], [1, 2, 3, 4, 5], "100,200,300,400", {"box_2d": [1, 2, 3, 4]}, [1, "2", 3, 4], [True, 0, 1, 1]],
    )
    def test_unusable_results_are_detection_failures(self, raw):
        with pytest.raises(DetectionFailure):
            BoundingBox.from_locator_result(raw)

    @pytest.mark.parametrize(
        "raw",
        [
            [500, 500, 500, 600],  # zero height
            [500, 500, 600, 500],  # zero width
            [600, 500, 500, 600],  # inverted y
            [100, 700, 200, 300],  # inverted x
            [-1, 100, 200, 300],  # below range
            [100, 100, 200, 1001],  # above range
            [100, float("nan"), 200, 300],
        ],
    )
    def test_degenerate_boxes_are_invalid_detections(self, raw):
        with pytest.raises(InvalidDetection):
            BoundingBox.from_locator_result(raw)

    def test_huge_integer_is_invalid_detection(self):
        with pytest.raises(InvalidDetection):
            BoundingBox.from_locator_result([10**400, 0, 1000, 1000])

    def test_direct_construction_validates(self):
        with pytest.raises(InvalidDetection):
            BoundingBox(ymin=500, xmin=500, ymax=500, xmax=600)

    def test_pixel_size_and_center(self):
        box = BoundingBox(ymin=400, xmin=400, ymax=600, xmax=600)
        dims = ImageDimensions(2000, 1000)

        assert box.pixel_size(dims) == pytest.approx((400, 200))
        assert box.pixel_center(dims) == pytest.approx((1000, 500))


class TestImageDimensions:
    def test_rejects_empty_image(self):
        with pytest.raises(InvalidImage):
            ImageDimensions(0, 100)

    def test_of_reads_size(self):
        class Sized:
            size = (640, 480)

        assert ImageDimensions.of(Sized()) == ImageDimensions(640, 480)


class TestAspectRatio:
    @pytest.mark.parametrize(
        "aspect_ratio,expected_height",
        [
            (AspectRatio.SQUARE, 800),
            (AspectRatio.STORY, 800 * 16 / 9),
            (AspectRatio.WIDESCREEN, 450),
            (AspectRatio.PORTRAIT, 1000),
            (AspectRatio.ORIGINAL, 400),  # 2000x1000 source
        ],
    )
    def test_height_for(self, aspect_ratio, expected_height):
        assert aspect_ratio.height_for(800, ImageDimensions(2000, 1000)) == pytest.approx(expected_height)

    def test_ratio(self):
        assert AspectRatio.WIDESCREEN.ratio == pytest.approx(16 / 9)
        assert AspectRatio.ORIGINAL.ratio is None

    def test_parse_from_value(self):
        assert AspectRatio("4:5") is AspectRatio.PORTRAIT


class TestResolveCropRectangle:
    """Worked examples for smart crop sizing."""

    def test_square_crop_fits(self):
        """200x20% box on 2000x1000 at 50% fill -> 800x800 centred on the object."""
        box = BoundingBox(400, 400, 600, 600)

        crop = resolve_crop_rectangle(box, ImageDimensions(2000, 1000), 50, AspectRatio.SQUARE)

        assert (crop.width, crop.height) == (800, 800)
        assert (crop.left, crop.top) == (600, 100)
        assert crop.scale_factor == 1.0
        # Object centre (1000, 500) lands at canvas (400, 400)
        assert (1000 - crop.left, 500 - crop.top) == (400, 400)

    def test_widescreen_crop(self):
        box = BoundingBox(400, 400, 600, 600)

        crop = resolve_crop_rectangle(box, ImageDimensions(2000, 1000), 50, AspectRatio.WIDESCREEN)

        assert (crop.width, crop.height) == (800, 450)
        assert (crop.left, crop.top) == (600, 275)

    def test_oversized_crop_scales_down_keeping_aspect(self):
        """200px object at 25% fill wants 800px on a 500px image -> x0.625."""
        box = BoundingBox(300, 300, 700, 700)  # 200x200 px on 500x500

        crop = resolve_crop_rectangle(box, ImageDimensions(500, 500), 25, AspectRatio.WIDESCREEN)

        assert crop.scale_factor == pytest.approx(0.625)
        assert (crop.width, crop.height) == (500, 281)
        assert crop.left == 0
        assert 0 <= crop.top <= 500 - 281

    def test_oversized_square_crop_is_whole_image(self):
        box = BoundingBox(300, 300, 700, 700)

        crop = resolve_crop_rectangle(box, ImageDimensions(500, 500), 25, AspectRatio.SQUARE)

        assert crop.to_dict() == {"left": 0, "top": 0, "width": 500, "height": 500}

    def test_original_aspect_follows_source(self):
        box = BoundingBox(400, 400, 600, 600)

        crop = resolve_crop_rectangle(box, ImageDimensions(2000, 1000), 50, AspectRatio.ORIGINAL)

        assert (crop.width, crop.height) == (800, 400)

    def test_scale_down_limited_by_height(self):
        """Tall 9:16 crop on a landscape image is bounded by the image height."""
        box = BoundingBox(400, 400, 600, 600)

        crop = resolve_crop_rectangle(box, ImageDimensions(2000, 1000), 50, AspectRatio.STORY)

        assert crop.height == 1000
        assert crop.width == 562
        assert crop.top == 0

    def test_edge_object_is_clamped_not_padded(self):
        """Object at the left edge: crop slides right, keeps its size, object stays visible."""
        box = BoundingBox(400, 0, 600, 100)  # x 0-200px on 2000x1000

        crop = resolve_crop_rectangle(box, ImageDimensions(2000, 1000), 50, AspectRatio.SQUARE)

        assert (crop.left, crop.top, crop.width, crop.height) == (0, 300, 400, 400)
        # Object (0-200px, 400-600px) is fully inside the crop, left of centre
        assert crop.left <= 0 and crop.right >= 200
        assert crop.top <= 400 and crop.bottom >= 600

    def test_edge_object_bottom_right(self):
        box = BoundingBox(900, 900, 1000, 1000)

        crop = resolve_crop_rectangle(box, ImageDimensions(1000, 1000), 50, AspectRatio.SQUARE)

        assert (crop.right, crop.bottom) == (1000, 1000)
        assert (crop.width, crop.height) == (200, 200)

    def test_full_fill_ratio(self):
        box = BoundingBox(400, 400, 600, 600)

        crop = resolve_crop_rectangle(box, ImageDimensions(1000, 1000), 100, AspectRatio.SQUARE)

        assert (crop.width, crop.height) == (200, 200)
        assert (crop.left, crop.top) == (400, 400)

    def test_accepts_aspect_ratio_string(self):
        box = BoundingBox(400, 400, 600, 600)

        crop = resolve_crop_rectangle(box, ImageDimensions(2000, 1000), 50, "16:9")

        assert (crop.width, crop.height) == (800, 450)

    @pytest.mark.parametrize("fill_ratio", [0, -5, 100.5])
    def test_rejects_fill_ratio_out_of_range(self, fill_ratio):
        with pytest.raises(ValueError):
            resolve_crop_rectangle(BoundingBox(400, 400, 600, 600), ImageDimensions(100, 100), fill_ratio)

    def test_sub_pixel_object_is_invalid_detection(self):
        """A box that resolves to less than one pixel cannot be cropped."""
        box = BoundingBox(500, 500, 501, 501)

        with pytest.raises(InvalidDetection):
            resolve_crop_rectangle(box, ImageDimensions(100, 100), 100, AspectRatio.SQUARE)


class TestCropProperties:
    """Property-based checks over arbitrary boxes, images and ratios."""

    @given(box=bounding_boxes(), dims=image_dimensions, fill_ratio=fill_ratios, aspect_ratio=aspect_ratios)
    def test_crop_is_contained_in_image(self, box, dims, fill_ratio, aspect_ratio):
        crop = resolve_crop_rectangle(box, dims, fill_ratio, aspect_ratio)

        assert 1 <= crop.width <= dims.width
        assert 1 <= crop.height <= dims.height
        assert 0 <= crop.left <= dims.width - crop.width
        assert 0 <= crop.top <= dims.height - crop.height

    @given(box=bounding_boxes(), dims=image_dimensions, fill_ratio=fill_ratios, aspect_ratio=st.sampled_from(FIXED_RATIOS))
    def test_aspect_ratio_is_preserved(self, box, dims, fill_ratio, aspect_ratio):
        crop = resolve_crop_rectangle(box, dims, fill_ratio, aspect_ratio)

        height_per_width = 1 / aspect_ratio.ratio
        # Flooring each side can move height by < 1 and width by < 1
        assert abs(crop.height - crop.width * height_per_width) < 1 + height_per_width

    @given(box=bounding_boxes(), dims=image_dimensions, fill_ratio=fill_ratios, aspect_ratio=aspect_ratios)
    def test_object_centred_when_crop_fits(self, box, dims, fill_ratio, aspect_ratio):
        crop = resolve_crop_rectangle(box, dims, fill_ratio, aspect_ratio)
        center_x, center_y = box.pixel_center(dims)

        unclamped_left = round_half_up(center_x - crop.width / 2)
        unclamped_top = round_half_up(center_y - crop.height / 2)
        assume(crop.scale_factor == 1.0)
        assume(0 < unclamped_left < dims.width - crop.width - 1)
        assume(0 < unclamped_top < dims.height - crop.height - 1)

        assert abs((center_x - crop.left) - crop.width / 2) <= 1
        assert abs((center_y - crop.top) - crop.height / 2) <= 1

    @given(box=bounding_boxes(), dims=image_dimensions, fill_ratio=fill_ratios, aspect_ratio=aspect_ratios)
    def test_resolution_is_deterministic(self, box, dims, fill_ratio, aspect_ratio):
        first = resolve_crop_rectangle(box, dims, fill_ratio, aspect_ratio)
        second = resolve_crop_rectangle(box, dims, fill_ratio, aspect_ratio)

        assert first == second

    @given(box=bounding_boxes(), dims=image_dimensions, fill_ratio=fill_ratios, aspect_ratio=aspect_ratios)
    def test_object_visible_when_smaller_than_crop(self, box, dims, fill_ratio, aspect_ratio):
        """Edge clamping may move the object off-centre but never out of frame."""
        crop = resolve_crop_rectangle(box, dims, fill_ratio, aspect_ratio)
        object_width, object_height = box.pixel_size(dims)
        assume(crop.scale_factor == 1.0)
        assume(object_width + 2 <= crop.width and object_height + 2 <= crop.height)

        left_px = box.xmin / 1000 * dims.width
        top_px = box.ymin / 1000 * dims.height
        assert crop.left <= left_px + 1
        assert crop.top <= top_px + 1
        assert crop.right >= left_px + object_width - 1
        assert crop.bottom >= top_px + object_height - 1


class TestResolveZoomWindow:
    """Tests for smart zoom windows (generation input framing)."""

    def test_zoom_in_window(self):
        box = BoundingBox(250, 250, 750, 750)  # 400x200 px on 800x400

        window = resolve_zoom_window(box, ImageDimensions(800, 400), 100)

        assert window == CropRectangle(left=200, top=100, width=400, height=200)

    def test_identity_window(self):
        box = BoundingBox(250, 250, 750, 750)

        window = resolve_zoom_window(box, ImageDimensions(800, 400), 50)

        assert window.to_dict() == {"left": 0, "top": 0, "width": 800, "height": 400}

    def test_zoom_out_window_extends_past_image(self):
        box = BoundingBox(250, 250, 750, 750)

        window = resolve_zoom_window(box, ImageDimensions(800, 400), 25)

        assert window.to_dict() == {"left": -400, "top": -200, "width": 1600, "height": 800}

    def test_window_keeps_source_aspect(self):
        box = BoundingBox(100, 100, 300, 400)

        window = resolve_zoom_window(box, ImageDimensions(1200, 900), 60)

        assert window.width / window.height == pytest.approx(1200 / 900, rel=0.01)

    def test_window_not_clamped_at_edge(self):
        box = BoundingBox(0, 0, 100, 100)

        window = resolve_zoom_window(box, ImageDimensions(1000, 1000), 20)

        assert window.left < 0 and window.top < 0

    def test_scaled_window(self):
        window = CropRectangle(left=-1800, top=-1800, width=4000, height=4000)

        scaled = window.scaled(0.2)

        assert scaled.to_dict() == {"left": -360, "top": -360, "width": 800, "height": 800}
        assert scaled.scale_factor == pytest.approx(0.2)
