from datetime import datetime, timezone
from logging import getLogger
import os
from os import path

from marmoset.codec import open_decoder
from marmoset.marmoset_exception import (
    DecodeException, InternalException, ResourceNotFoundException,
)

logger = getLogger(__name__)


class ImageResource(object):
    '''An identifier bound to a source file and a decoder for it.

    Only one request uses an ``ImageResource``. The decoder holds an open
    file, so the resource is a context manager and ``close()`` must run once
    the request is done with it, however it ends:

        with ImageResource(ident, fp) as resource:
            width, height = resource.dimensions
            resource.apply(image_request, transformer, target)

    Slots:
        ident (Identifier)
        src_img_fp (str): the absolute path of the source on the file system
    '''
    __slots__ = ('ident', 'src_img_fp', '_decoder')

    def __init__(self, ident, src_img_fp):
        self.ident = ident
        self.src_img_fp = src_img_fp
        self._decoder = None

    def open(self):
        '''Open a decoder on the source.

        Only the header of the image is read here, which is enough to know
        its dimensions.

        Raises:
            ResourceNotFoundException
            DecodeException
        '''
        if not path.isfile(self.src_img_fp):
            message = 'Source image not found for identifier: %s.' % (self.ident,)
            logger.warning(message)
            raise ResourceNotFoundException(message)
        if not os.access(self.src_img_fp, os.R_OK):
            logger.error('%s is not readable', self.src_img_fp)
            raise DecodeException('Source image for %s is not readable' % (self.ident,))
        self._decoder = open_decoder(self.src_img_fp)
        return self

    def close(self):
        if self._decoder is not None:
            self._decoder.close()
            self._decoder = None

    def __enter__(self):
        if self._decoder is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()

    @property
    def decoder(self):
        if self._decoder is None:
            raise InternalException('%s has not been opened' % (self.ident,))
        return self._decoder

    @property
    def dimensions(self):
        return self.decoder.dimensions

    @property
    def layers(self):
        return self.decoder.layers

    @property
    def last_modified(self):
        return datetime.fromtimestamp(path.getmtime(self.src_img_fp), tz=timezone.utc)

    def apply(self, image_request, transformer, target, plan=None):
        '''Write the image for ``image_request`` to the file object
        ``target``.
        '''
        transformer.transform(self.decoder, image_request, target, plan)
