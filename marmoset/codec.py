# -*- encoding: utf-8
"""
The narrow interface between the transformation pipeline and the codecs.

Decoding and encoding are both done with Pillow. A decoder is a handle on one
open source file: it knows the dimensions of the image without decoding any
pixels, which reductions ("layers") the format can decode to more cheaply
than the full resolution, and it decodes at one of those.
"""

from logging import getLogger
from math import ceil, log

from PIL import Image

from marmoset.jp2_extractor import JP2ExtractionError, extract_jp2
from marmoset.marmoset_exception import DecodeException, EncodeException

logger = getLogger(__name__)

# libjpeg can scale by 1/2, 1/4 and 1/8 while decoding.
JPEG_SCALE_FACTORS = [1, 2, 4, 8]

PIL_FORMATS_BY_EXTENSION = {
    'gif': 'GIF',
    'jp2': 'JPEG2000',
    'jpg': 'JPEG',
    'pdf': 'PDF',
    'png': 'PNG',
    'tif': 'TIFF',
    'webp': 'WEBP',
}


class PillowDecoder(object):
    '''A decoding handle over one source image.

    Use as a context manager (or call ``close()``) so that the file is
    released as soon as the request is done with it.
    '''

    def __init__(self, fp):
        self.fp = fp
        self._jp2 = None
        try:
            self._im = Image.open(fp)
        except (OSError, Image.DecompressionBombError) as err:
            logger.warning('Unable to open %s: %r', fp, err)
            raise DecodeException('Unable to read the source image')

        # draft() changes the size of the image, so keep the full size.
        self._size = self._im.size
        if self._im.format == 'JPEG2000':
            self._jp2 = self._read_jp2_header()
        logger.debug('Opened %s (%s, %d x %d)', fp, self.format, *self.dimensions)

    def _read_jp2_header(self):
        try:
            with open(self.fp, 'rb') as f:
                return extract_jp2(f)
        except JP2ExtractionError as err:
            # Raw codestreams (.j2k) have no JP2 boxes; they still decode,
            # just without reductions.
            logger.warning('Error extracting JP2 header from %s: %s', self.fp, err)
            return None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()

    @property
    def format(self):
        return self._im.format

    @property
    def dimensions(self):
        '''(width, height) of the full resolution image.'''
        if self._jp2 is not None:
            return (self._jp2.width, self._jp2.height)
        return self._size

    @property
    def layers(self):
        '''The scale factors this image can be decoded at, 1 first.'''
        if self.format == 'JPEG':
            return JPEG_SCALE_FACTORS[:]
        if self._jp2 is not None:
            return self._jp2.scale_factors
        return [1]

    def decode(self, scale=1):
        '''Decode the image reduced by ``scale``, which should be one of
        ``layers``.

        The returned image may be a little larger than an exact reduction;
        callers work from its actual size.

        Raises:
            DecodeException
        '''
        im = self._im
        width, height = self.dimensions
        try:
            if scale > 1 and self.format == 'JPEG':
                im.draft(im.mode, (int(ceil(width / float(scale))), int(ceil(height / float(scale)))))
            elif scale > 1 and self.format == 'JPEG2000':
                im.reduce = int(log(scale, 2))
            im.load()
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as err:
            logger.error('Error decoding %s at scale %d: %r', self.fp, scale, err)
            raise DecodeException('Unable to decode the source image')
        logger.debug('Decoded %s at 1/%d: %d x %d', self.fp, scale, *im.size)
        return im

    def close(self):
        self._im.close()


def open_decoder(fp):
    return PillowDecoder(fp)


def encode(im, fmt, target, jpeg_quality=90):
    '''Write ``im`` to the binary file object ``target`` as ``fmt``.

    Args:
        im (PIL.Image)
        fmt (str): a IIIF format extension, e.g. 'jpg'
        target: a writable (and seekable) binary file object
    Raises:
        EncodeException
    '''
    pil_format = PIL_FORMATS_BY_EXTENSION[fmt]
    try:
        if fmt == 'jpg':
            # see https://pillow.readthedocs.io/en/latest/handbook/image-file-formats.html#jpeg
            im.save(target, format=pil_format, quality=jpeg_quality)
        elif fmt == 'png':
            im.save(target, format=pil_format, optimize=True)
        elif fmt == 'webp':
            im.save(target, format=pil_format, quality=jpeg_quality)
        elif fmt == 'tif':
            im.save(target, format=pil_format, compression=None)
        else:
            im.save(target, format=pil_format)
    except (OSError, ValueError, KeyError) as err:
        logger.error('Unable to encode %s image as %s: %r', im.mode, fmt, err)
        raise EncodeException('Unable to encode the image as %s' % (fmt,))
