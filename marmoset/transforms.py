from logging import getLogger
from math import ceil

import attr
from PIL import Image
from PIL.ImageOps import mirror

from marmoset.codec import encode
from marmoset.marmoset_exception import ConfigError
from marmoset.parameters import Box

logger = getLogger(__name__)

INTERPOLATIONS = {
    'nearest': Image.NEAREST,
    'bilinear': Image.BILINEAR,
    'bicubic': Image.BICUBIC,
    'lanczos': Image.LANCZOS,
}

# Formats that can't carry an alpha channel; transparent areas are
# flattened onto white.
OPAQUE_FORMATS = ('jpg', 'pdf')

_WORKING_MODES = ('1', 'L', 'LA', 'RGB', 'RGBA')


@attr.s(slots=True, frozen=True)
class TransformPlan(object):
    '''The geometry of one image request against one source.

    Slots:
        region (Box): the region, in pixels of the full resolution source
        width (int), height (int): the size of the output, before rotation
        scale (int): the reduction to decode the source at
    '''
    region = attr.ib()
    width = attr.ib()
    height = attr.ib()
    scale = attr.ib()


class Transformer(object):
    '''Runs the IIIF operations on a decoded source image.

    The work is split in two: ``plan()`` is pure arithmetic on dimensions and
    rejects impossible requests before anything is decoded; ``derive()``
    does the pixel work.
    '''

    def __init__(self, config, features):
        self.config = config
        self.features = features
        interpolation = config.get('interpolation', 'lanczos')
        try:
            self.interpolation = INTERPOLATIONS[interpolation]
        except KeyError:
            raise ConfigError(
                'transforms.interpolation=%r, expected one of %s' %
                (interpolation, '/'.join(sorted(INTERPOLATIONS)))
            )
        self.dither_bitonal_images = config.get('dither_bitonal_images', False)
        self.jpeg_quality = int(config.get('jpeg_quality', 90))
        logger.debug('Initialized %s.%s', __name__, self.__class__.__name__)

    @staticmethod
    def scale_dim(dim, scale):
        return int(ceil(dim / float(scale)))

    @staticmethod
    def closest_scale(region_w, region_h, target_w, target_h, scales):
        '''The largest scale at which the region still has at least as many
        pixels as the target.
        '''
        fn = Transformer.scale_dim
        candidates = [
            s for s in scales
            if fn(region_w, s) >= target_w and fn(region_h, s) >= target_h
        ]
        return max(candidates) if candidates else 1

    def plan(self, image_request, dimensions, layers=(1,)):
        '''
        Args:
            image_request (ImageRequest)
            dimensions ((int, int)): the full size of the source
            layers ([int]): the scale factors the source can be decoded at
        Returns:
            TransformPlan
        Raises:
            RequestException
            UnsupportedFeatureException
        '''
        width, height = dimensions
        region = image_request.region.resolve(width, height)
        target_w, target_h = image_request.size.resolve(region.w, region.h)
        self.features.check_size(region.w, region.h, target_w, target_h)
        scale = Transformer.closest_scale(region.w, region.h, target_w, target_h, layers)
        plan = TransformPlan(region=region, width=target_w, height=target_h, scale=scale)
        logger.debug('Plan for %s: %r', image_request.request_path, plan)
        return plan

    def derive(self, decoder, plan, image_request):
        '''Decode, crop, resize, mirror, rotate and set the quality.

        Returns:
            PIL.Image
        Raises:
            DecodeException
        '''
        im = decoder.decode(plan.scale)
        full_w, full_h = decoder.dimensions

        # The decoded image may not be an exact reduction, so work out the
        # region from the size we actually got.
        box = plan.region.scaled(full_w / float(im.width), full_h / float(im.height))
        if box != Box(0, 0, im.width, im.height):
            logger.debug('cropping to: %r', box.as_pil_box())
            im = im.crop(box.as_pil_box())

        im = self._to_working_mode(im)

        if im.size != (plan.width, plan.height):
            logger.debug('Resizing to: %r', (plan.width, plan.height))
            im = im.resize((plan.width, plan.height), resample=self.interpolation)

        im = self._rotate(im, image_request)
        return self._set_quality(im, image_request)

    def transform(self, decoder, image_request, target, plan=None):
        '''Run the whole pipeline and write the encoded image to ``target``.

        Args:
            decoder (PillowDecoder)
            image_request (ImageRequest)
            target: a writable binary file object
            plan (TransformPlan): made here if not given
        '''
        if plan is None:
            plan = self.plan(image_request, decoder.dimensions, decoder.layers)
        im = self.derive(decoder, plan, image_request)
        encode(im, image_request.fmt, target, jpeg_quality=self.jpeg_quality)

    def _to_working_mode(self, im):
        if im.mode in _WORKING_MODES:
            return im
        if im.mode == 'P' and 'transparency' in im.info:
            return im.convert('RGBA')
        if im.mode in ('I', 'I;16', 'F'):
            return im.convert('L')
        return im.convert('RGB')

    def _rotate(self, im, image_request):
        rotation = image_request.rotation

        if rotation.mirror:
            im = mirror(im)

        if rotation.degrees != 0:
            if not rotation.by_90s and image_request.fmt not in OPAQUE_FORMATS:
                # Leave the corners transparent.
                im = im.convert('LA' if im.mode in ('1', 'L') else 'RGBA')
                fill = None
            else:
                fill = 'white'
            # PIL rotates counter-clockwise.
            im = im.rotate(0 - rotation.degrees, resample=Image.BICUBIC, expand=True, fillcolor=fill)
        return im

    def _set_quality(self, im, image_request):
        quality = image_request.quality
        opaque = image_request.fmt in OPAQUE_FORMATS

        if quality == 'gray':
            if im.mode in ('LA', 'RGBA') and not opaque:
                return im.convert('LA')
            im = self._flatten(im)
            return im.convert('L')

        if quality == 'bitonal':
            dither = Image.FLOYDSTEINBERG if self.dither_bitonal_images else Image.NONE
            return self._flatten(im).convert('1', dither=dither)

        if quality == 'color' and im.mode in ('1', 'L', 'LA'):
            im = im.convert('RGBA' if im.mode == 'LA' else 'RGB')
        if opaque:
            im = self._flatten(im)
        return im

    @staticmethod
    def _flatten(im):
        '''Drop any alpha channel, compositing onto white.'''
        if im.mode not in ('LA', 'RGBA'):
            return im
        background = Image.new(im.mode[:-1], im.size, 'white')
        background.paste(im.convert(im.mode[:-1]), mask=im.getchannel('A'))
        return background
