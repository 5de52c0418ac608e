# -*- encoding: utf-8

from logging import getLogger

import attr

from marmoset import constants
from marmoset.identifiers import Identifier
from marmoset.marmoset_exception import SyntaxException
from marmoset.parameters import RegionParameter, RotationParameter, SizeParameter

logger = getLogger(__name__)


@attr.s(slots=True, frozen=True)
class ImageRequest(object):
    """A fully parsed and validated image request:

        /{identifier}/{region}/{size}/{rotation}/{quality}.{format}

    There is no such thing as a partially valid ``ImageRequest``; if any
    part of the path is wrong, ``from_path`` raises instead.
    """
    ident = attr.ib()
    region = attr.ib()
    size = attr.ib()
    rotation = attr.ib()
    quality = attr.ib()
    fmt = attr.ib()
    path = attr.ib(default='')

    @classmethod
    def from_path(cls, path):
        """Parse a request path, relative to the IIIF base.

        Args:
            path (str): e.g. '/abc/full/full/0/default.jpg'
        Returns:
            ImageRequest
        Raises:
            SyntaxException
        """
        match = constants.IMAGE_RE.match(path)
        if not match:
            raise SyntaxException('request does not match the IIIF syntax')
        return cls.from_segments(path=path, **match.groupdict())

    @classmethod
    def from_segments(cls, ident, region, size, rotation, quality, format, path=''):
        size_param = SizeParameter.from_uri_value(size)
        if not size_param.valid():
            raise SyntaxException('Size syntax "%s" is not valid' % (size,))

        if quality not in constants.QUALITIES:
            raise SyntaxException('"%s" is not a IIIF quality' % (quality,))

        if format not in constants.FORMATS_BY_EXTENSION:
            raise SyntaxException('"%s" is not a IIIF format' % (format,))

        request = cls(
            ident=Identifier(ident),
            region=RegionParameter.from_uri_value(region),
            size=size_param,
            rotation=RotationParameter.from_uri_value(rotation),
            quality=quality,
            fmt=format,
            path=path,
        )
        logger.debug('Parsed image request %s', request.request_path)
        return request

    @property
    def media_type(self):
        return constants.FORMATS_BY_EXTENSION[self.fmt]

    @property
    def request_path(self):
        p = '/'.join((
            self.ident.url_segment,
            self.region.uri_value,
            self.size.uri_value,
            self.rotation.uri_value,
            self.quality
        ))
        return '%s.%s' % (p, self.fmt)

    def canonical_request_path(self, width, height):
        """The canonical form of this request against a width x height
        source, see http://iiif.io/api/image/2.1/#canonical-uri-syntax
        """
        region_box = self.region.resolve(width, height)
        p = '/'.join((
            self.ident.url_segment,
            self.region.canonical_uri_value(width, height),
            self.size.canonical_uri_value(region_box.w, region_box.h),
            self.rotation.canonical_uri_value,
            self.quality
        ))
        return '%s.%s' % (p, self.fmt)
