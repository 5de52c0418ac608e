from io import BytesIO

import attr
from PIL import Image
import pytest

from marmoset.codec import open_decoder
from marmoset.features import FeatureSet
from marmoset.img_request import ImageRequest
from marmoset.marmoset_exception import (
    ConfigError, RequestException, UnsupportedFeatureException,
)
from marmoset.parameters import Box
from marmoset.transforms import TransformPlan, Transformer

RED = (255, 0, 0)
BLUE = (0, 0, 255)


@pytest.fixture
def transformer(all_features):
    return Transformer({}, all_features)


@pytest.fixture
def two_tone_fp(tmpdir):
    """A 200x100 PNG, red on the left and blue on the right."""
    im = Image.new('RGB', (200, 100), RED)
    im.paste(BLUE, (100, 0, 200, 100))
    fp = str(tmpdir.join('two_tone.png'))
    im.save(fp)
    return fp


@pytest.fixture
def large_jpeg_fp(tmpdir):
    fp = str(tmpdir.join('large.jpg'))
    Image.new('RGB', (800, 600), (0, 128, 0)).save(fp)
    return fp


def _transform(transformer, fp, path):
    request = ImageRequest.from_path(path)
    target = BytesIO()
    with open_decoder(fp) as decoder:
        transformer.transform(decoder, request, target)
    target.seek(0)
    im = Image.open(target)
    im.load()
    return im


def _close_to(pixel, color, tolerance=8):
    return all(abs(p - c) <= tolerance for p, c in zip(pixel, color))


class TestPlan(object):

    @pytest.mark.parametrize('path, width, height', [
        ('/a/full/!100,100/0/default.jpg', 100, 50),
        ('/a/full/100,100/0/default.jpg', 100, 100),
        ('/a/full/full/0/default.jpg', 200, 100),
        ('/a/square/50,/0/default.jpg', 50, 50),
        ('/a/50,0,100,100/pct:50/0/default.jpg', 50, 50),
    ])
    def test_plan_geometry(self, transformer, path, width, height):
        plan = transformer.plan(ImageRequest.from_path(path), (200, 100))
        assert (plan.width, plan.height) == (width, height)

    def test_plan_region(self, transformer):
        plan = transformer.plan(ImageRequest.from_path('/a/150,50,100,100/full/0/default.jpg'), (200, 100))
        assert plan == TransformPlan(region=Box(150, 50, 50, 50), width=50, height=50, scale=1)

    def test_plan_picks_the_smallest_layer_big_enough(self, transformer):
        request = ImageRequest.from_path('/a/full/100,/0/default.jpg')
        plan = transformer.plan(request, (800, 600), [1, 2, 4, 8])
        assert plan.scale == 8

    def test_plan_never_picks_a_layer_too_small(self, transformer):
        request = ImageRequest.from_path('/a/full/101,/0/default.jpg')
        plan = transformer.plan(request, (800, 600), [1, 2, 4, 8])
        assert plan.scale == 4

    @pytest.mark.parametrize('region_w, region_h, target_w, target_h, scales, expected', [
        (2000, 1000, 250, 125, [1, 2, 4, 8], 8),
        (2000, 1000, 251, 125, [1, 2, 4, 8], 4),
        (2000, 1000, 2000, 1000, [1, 2, 4, 8], 1),
        (2000, 1000, 10, 10, [1], 1),
        (2000, 1000, 10, 10, [], 1),
    ])
    def test_closest_scale(self, region_w, region_h, target_w, target_h, scales, expected):
        assert Transformer.closest_scale(region_w, region_h, target_w, target_h, scales) == expected

    def test_empty_output_is_rejected(self, transformer):
        request = ImageRequest.from_path('/a/full/1,/0/default.jpg')
        with pytest.raises(RequestException):
            transformer.plan(request, (1000, 1))

    def test_region_outside_the_image_is_rejected(self, transformer):
        request = ImageRequest.from_path('/a/300,0,10,10/full/0/default.jpg')
        with pytest.raises(RequestException):
            transformer.plan(request, (200, 100))

    def test_upscaling_without_size_above_full_is_rejected(self, all_features):
        features = attr.evolve(all_features, size_above_full=False)
        request = ImageRequest.from_path('/a/full/400,/0/default.jpg')
        with pytest.raises(UnsupportedFeatureException):
            Transformer({}, features).plan(request, (200, 100))

    def test_upscaling_with_size_above_full(self, all_features):
        features = attr.evolve(all_features, size_above_full=True)
        request = ImageRequest.from_path('/a/full/400,/0/default.jpg')
        plan = Transformer({}, features).plan(request, (200, 100))
        assert (plan.width, plan.height) == (400, 200)


class TestConfig(object):

    def test_default_interpolation_is_lanczos(self, all_features):
        assert Transformer({}, all_features).interpolation == Image.LANCZOS

    def test_interpolation_from_config(self, all_features):
        transformer = Transformer({'interpolation': 'nearest'}, all_features)
        assert transformer.interpolation == Image.NEAREST

    def test_unknown_interpolation_is_configerror(self, all_features):
        with pytest.raises(ConfigError) as err:
            Transformer({'interpolation': 'sinc'}, all_features)
        assert 'interpolation' in str(err.value)


class TestTransform(object):

    def test_full(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/full/0/default.png')
        assert im.size == (200, 100)
        assert im.getpixel((10, 10))[:3] == RED

    def test_region(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/100,0,100,100/full/0/default.png')
        assert im.size == (100, 100)
        assert im.getpixel((0, 0))[:3] == BLUE

    def test_best_fit(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/!100,100/0/default.png')
        assert im.size == (100, 50)

    def test_forced_size(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/100,100/0/default.png')
        assert im.size == (100, 100)

    def test_mirror(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/full/!0/default.png')
        assert im.getpixel((10, 10))[:3] == BLUE
        assert im.getpixel((190, 10))[:3] == RED

    def test_rotation_is_clockwise(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/full/90/default.png')
        assert im.size == (100, 200)
        # the left of the source is now at the top
        assert im.getpixel((50, 10))[:3] == RED
        assert im.getpixel((50, 190))[:3] == BLUE

    def test_mirror_happens_before_rotation(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/full/!90/default.png')
        assert im.getpixel((50, 10))[:3] == BLUE

    def test_arbitrary_rotation_expands_the_canvas(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/full/45/default.png')
        assert im.width > 200 and im.height > 100
        # corners are transparent in formats that can be
        assert im.mode == 'RGBA'
        assert im.getpixel((0, 0))[3] == 0

    def test_arbitrary_rotation_fills_white_in_jpeg(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/full/45/default.jpg')
        assert im.mode == 'RGB'
        assert _close_to(im.getpixel((0, 0)), (255, 255, 255))

    def test_gray(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/full/0/gray.png')
        assert im.mode == 'L'

    def test_bitonal(self, transformer, two_tone_fp):
        im = _transform(transformer, two_tone_fp, '/a/full/full/0/bitonal.png')
        assert im.mode == '1'

    def test_color_of_a_gray_source(self, transformer, tmpdir):
        fp = str(tmpdir.join('gray.png'))
        Image.new('L', (20, 20), 128).save(fp)
        im = _transform(transformer, fp, '/a/full/full/0/color.png')
        assert im.mode == 'RGB'

    def test_transparency_is_flattened_onto_white_in_jpeg(self, transformer, tmpdir):
        fp = str(tmpdir.join('clear.png'))
        Image.new('RGBA', (20, 20), (0, 0, 0, 0)).save(fp)
        im = _transform(transformer, fp, '/a/full/full/0/default.jpg')
        assert _close_to(im.getpixel((10, 10)), (255, 255, 255))

    def test_reduced_decode_and_crop(self, transformer, large_jpeg_fp):
        im = _transform(transformer, large_jpeg_fp, '/a/pct:50,50,50,50/100,/0/default.png')
        assert im.size == (100, 75)
        assert _close_to(im.getpixel((50, 37)), (0, 128, 0))

    def test_output_is_repeatable(self, transformer, large_jpeg_fp):
        path = '/a/10,20,300,200/!150,150/22.5/gray.jpg'
        first = _transform(transformer, large_jpeg_fp, path)
        second = _transform(transformer, large_jpeg_fp, path)
        assert first.tobytes() == second.tobytes()

    def test_reduced_decode_of_the_whole_image(self, transformer, tmpdir):
        # green on the left, blue on the right; decoded at 1/8
        fp = str(tmpdir.join('halves.jpg'))
        im = Image.new('RGB', (800, 600), (0, 128, 0))
        im.paste(BLUE, (400, 0, 800, 600))
        im.save(fp)

        im = _transform(transformer, fp, '/a/full/100,/0/default.png')
        assert im.size == (100, 75)
        assert _close_to(im.getpixel((20, 37)), (0, 128, 0), tolerance=16)
        assert _close_to(im.getpixel((80, 37)), BLUE, tolerance=16)
