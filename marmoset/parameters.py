# parameters.py
# -*- coding: utf-8 -*-

'''
IIIF Image API parameters as objects.

Each slice of an image request URI (region, size, rotation) is parsed into a
small immutable object whose ``mode`` says which form of the syntax was used.
Only the attributes relevant to that mode are set; the others stay ``None``.

Parsing never needs the source image. Turning a parameter into pixels is a
separate step (``resolve()``), done once the dimensions of the source are
known.
'''

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from logging import getLogger
import re

import attr

from marmoset.marmoset_exception import RequestException, SyntaxException

logger = getLogger(__name__)

FULL_MODE = 'full'
SQUARE_MODE = 'square'
PCT_MODE = 'pct'
PIXEL_MODE = 'pixel'

WIDTH_MODE = 'width'
HEIGHT_MODE = 'height'
EXACT_MODE = 'exact'
BEST_FIT_MODE = 'best_fit'
INVALID_MODE = 'invalid'

DECIMAL_100 = Decimal('100')

_INT_RE = re.compile(r'^[0-9]+\Z')
_DECIMAL_RE = re.compile(r'^([0-9]+(\.[0-9]*)?|\.[0-9]+)\Z')


def round_half_up(n):
    '''Round a Decimal (or int) to the nearest int, halves going up.'''
    return int(Decimal(n).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _to_decimal(s):
    '''Parse an unsigned decimal number, or return None.'''
    if not _DECIMAL_RE.match(s):
        return None
    try:
        return Decimal(s)
    except InvalidOperation:
        return None


@attr.s(slots=True, frozen=True)
class Box(object):
    '''A rectangle in pixels of some image.'''
    x = attr.ib()
    y = attr.ib()
    w = attr.ib()
    h = attr.ib()

    def scaled(self, scale_x, scale_y):
        '''The same rectangle on an image reduced by the given factors.

        The box is kept at least one pixel in each dimension.
        '''
        x = int(self.x / scale_x)
        y = int(self.y / scale_y)
        x1 = max(int(round((self.x + self.w) / scale_x)), x + 1)
        y1 = max(int(round((self.y + self.h) / scale_y)), y + 1)
        return Box(x, y, x1 - x, y1 - y)

    def as_pil_box(self):
        # For PIL: "The box is a 4-tuple defining the left, upper, right,
        # and lower pixel coordinate."
        return (self.x, self.y, self.x + self.w, self.y + self.h)


@attr.s(slots=True, frozen=True)
class RegionParameter(object):
    '''Internal representation of the region slice of an IIIF image URI.

    Slots:
        uri_value (str):
            The region slice of the URI.
        mode (str):
            One of 'full', 'square', 'pct', or 'pixel'.
        x, y, w, h:
            ints for 'pixel' mode, Decimal percentages for 'pct' mode,
            None otherwise.
    '''
    uri_value = attr.ib()
    mode = attr.ib()
    x = attr.ib(default=None)
    y = attr.ib(default=None)
    w = attr.ib(default=None)
    h = attr.ib(default=None)

    def __str__(self):
        return self.uri_value

    @classmethod
    def from_uri_value(cls, uri_value):
        '''Parse the region slice of a request URI.

        Args:
            uri_value (str)
        Returns:
            RegionParameter
        Raises:
            SyntaxException
        '''
        if uri_value == FULL_MODE:
            return cls(uri_value, FULL_MODE)
        if uri_value == SQUARE_MODE:
            return cls(uri_value, SQUARE_MODE)

        if uri_value.startswith('pct:'):
            mode = PCT_MODE
            dimensions = [_to_decimal(n) for n in uri_value[4:].split(',')]
        else:
            mode = PIXEL_MODE
            dimensions = [
                int(n) if _INT_RE.match(n) else None
                for n in uri_value.split(',')
            ]

        if len(dimensions) != 4 or None in dimensions:
            msg = 'Region syntax "%s" is not valid' % (uri_value,)
            raise SyntaxException(msg)
        if any(n <= 0 for n in dimensions[2:]):
            msg = 'Region width and height must be greater than 0 (%s)' % (uri_value,)
            raise SyntaxException(msg)
        if mode == PCT_MODE and any(n > DECIMAL_100 for n in dimensions):
            msg = 'Region percentages must be less than or equal to 100 (%s)' % (uri_value,)
            raise SyntaxException(msg)

        logger.debug('Region mode is "%s" (from "%s")', mode, uri_value)
        return cls(uri_value, mode, *dimensions)

    def resolve(self, width, height):
        '''The absolute pixel box of this region on a width x height image.

        Boxes that run off the image are clipped to it.

        Raises:
            RequestException if nothing of the image is left.
        '''
        if self.mode == FULL_MODE:
            return Box(0, 0, width, height)

        if self.mode == SQUARE_MODE:
            if width > height:
                offset = (width - height) // 2
                return Box(offset, 0, height, height)
            else:
                offset = (height - width) // 2
                return Box(0, offset, width, width)

        if self.mode == PCT_MODE:
            x = round_half_up(self.x * width / DECIMAL_100)
            y = round_half_up(self.y * height / DECIMAL_100)
            w = round_half_up(self.w * width / DECIMAL_100)
            h = round_half_up(self.h * height / DECIMAL_100)
        else:
            x, y, w, h = self.x, self.y, self.w, self.h

        x1 = min(x + w, width)
        y1 = min(y + h, height)
        if x >= width or y >= height or x1 <= x or y1 <= y:
            msg = 'Region %s is outside of the image (%d x %d)' % (
                self.uri_value, width, height)
            raise RequestException(msg)

        box = Box(x, y, x1 - x, y1 - y)
        if (box.w, box.h) != (w, h):
            logger.info('Region %s clipped to %r', self.uri_value, box)
        return box

    def canonical_uri_value(self, width, height):
        box = self.resolve(width, height)
        if box == Box(0, 0, width, height):
            return FULL_MODE
        return '%d,%d,%d,%d' % (box.x, box.y, box.w, box.h)


@attr.s(slots=True, frozen=True)
class SizeParameter(object):
    '''Internal representation of the size slice of an IIIF image URI.

    Slots:
        uri_value (str):
            The size slice of the URI.
        mode (str):
            One of 'full', 'width' ("w,"), 'height' (",h"), 'pct'
            ("pct:n"), 'exact' ("w,h"), 'best_fit' ("!w,h"), or 'invalid'
            when the slice could not be read at all.
        w (int)
        h (int)
        pct (Decimal)
    '''
    uri_value = attr.ib()
    mode = attr.ib()
    w = attr.ib(default=None)
    h = attr.ib(default=None)
    pct = attr.ib(default=None)

    def __str__(self):
        return self.uri_value

    @classmethod
    def from_uri_value(cls, uri_value):
        '''Read the size slice of a request URI.

        This never raises: anything that can't be read comes back in
        INVALID_MODE, and anything read but unusable (e.g. "0,") fails
        ``valid()``.
        '''
        if uri_value == FULL_MODE:
            return cls(uri_value, FULL_MODE)

        if uri_value.startswith('pct:'):
            pct = _to_decimal(uri_value[4:])
            if pct is None:
                return cls(uri_value, INVALID_MODE)
            return cls(uri_value, PCT_MODE, pct=pct)

        best_fit = uri_value.startswith('!')
        wh = uri_value[1:] if best_fit else uri_value
        parts = wh.split(',')
        if len(parts) != 2 or not all(p == '' or _INT_RE.match(p) for p in parts):
            return cls(uri_value, INVALID_MODE)

        w = int(parts[0]) if parts[0] else None
        h = int(parts[1]) if parts[1] else None

        if best_fit:
            if w is None or h is None:
                return cls(uri_value, INVALID_MODE)
            return cls(uri_value, BEST_FIT_MODE, w=w, h=h)
        if w is None and h is None:
            return cls(uri_value, INVALID_MODE)
        if w is None:
            return cls(uri_value, HEIGHT_MODE, h=h)
        if h is None:
            return cls(uri_value, WIDTH_MODE, w=w)
        return cls(uri_value, EXACT_MODE, w=w, h=h)

    def valid(self):
        if self.mode == FULL_MODE:
            return True
        if self.mode == WIDTH_MODE:
            return self.w > 0
        if self.mode == HEIGHT_MODE:
            return self.h > 0
        if self.mode == PCT_MODE:
            return self.pct > 0
        if self.mode in (EXACT_MODE, BEST_FIT_MODE):
            return self.w > 0 and self.h > 0
        return False

    @property
    def force_aspect(self):
        '''True if the aspect ratio of the region is not preserved.'''
        return self.mode == EXACT_MODE

    def resolve(self, region_w, region_h):
        '''The target (width, height) when applied to a region of the given
        size.

        Raises:
            RequestException if either dimension comes out at 0 pixels.
        '''
        if self.mode == FULL_MODE:
            w, h = region_w, region_h
        elif self.mode == WIDTH_MODE:
            w = self.w
            h = round_half_up(Decimal(region_h) * self.w / region_w)
        elif self.mode == HEIGHT_MODE:
            h = self.h
            w = round_half_up(Decimal(region_w) * self.h / region_h)
        elif self.mode == PCT_MODE:
            w = round_half_up(region_w * self.pct / DECIMAL_100)
            h = round_half_up(region_h * self.pct / DECIMAL_100)
        elif self.mode == EXACT_MODE:
            w, h = self.w, self.h
        elif self.mode == BEST_FIT_MODE:
            ratio = min(Decimal(self.w) / region_w, Decimal(self.h) / region_h)
            w = round_half_up(region_w * ratio)
            h = round_half_up(region_h * ratio)
        else:
            raise SyntaxException('Size syntax "%s" is not valid' % (self.uri_value,))

        logger.debug('Size %s on %d x %d resolves to %d x %d',
            self.uri_value, region_w, region_h, w, h)
        if w < 1 or h < 1:
            msg = 'Size %s makes an empty image from a %d x %d region' % (
                self.uri_value, region_w, region_h)
            raise RequestException(msg)
        return (w, h)

    def canonical_uri_value(self, region_w, region_h):
        if self.mode == FULL_MODE:
            return FULL_MODE
        w, h = self.resolve(region_w, region_h)
        if self.force_aspect:
            return '%d,%d' % (w, h)
        return '%d,' % (w,)


@attr.s(slots=True, frozen=True)
class RotationParameter(object):
    '''Internal representation of the rotation slice of an IIIF image URI.

    See http://iiif.io/api/image/2.1/#rotation:

       The rotation parameter specifies mirroring and rotation. A leading
       exclamation mark ("!") indicates that the image should be mirrored by
       reflection on the vertical axis before any rotation is applied.
       The numerical value represents the number of degrees of clockwise
       rotation.

    Degrees are restricted to [0, 360).

    Slots:
        uri_value (str)
        mirror (bool)
        degrees (float)
    '''
    ROTATION_REGEX = re.compile(r'^(?P<mirror>!?)(?P<rotation>[0-9]+(\.[0-9]*)?|\.[0-9]+)\Z')

    uri_value = attr.ib()
    mirror = attr.ib()
    degrees = attr.ib()

    def __str__(self):
        return self.uri_value

    @classmethod
    def from_uri_value(cls, uri_value):
        '''
        Raises:
            SyntaxException:
                If the argument is not a valid rotation slice.
        '''
        match = cls.ROTATION_REGEX.match(uri_value)
        if not match:
            msg = 'Rotation parameter %r is not a number' % (uri_value,)
            raise SyntaxException(msg)

        degrees = float(match.group('rotation'))
        if not 0.0 <= degrees < 360.0:
            msg = 'Rotation parameter %r is not between 0 and 360' % (uri_value,)
            raise SyntaxException(msg)

        return cls(uri_value, bool(match.group('mirror')), degrees)

    @property
    def by_90s(self):
        return self.degrees % 90 == 0

    @property
    def canonical_uri_value(self):
        value = '%g' % (self.degrees,)
        if self.mirror:
            return '!%s' % (value,)
        return value
