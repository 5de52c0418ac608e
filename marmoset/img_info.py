from logging import getLogger
import json
from os import path

import attr

from marmoset.constants import CONTEXT, INFO_OVERRIDE_ID_TOKEN, PROTOCOL
from marmoset.marmoset_exception import InternalException

logger = getLogger(__name__)


@attr.s(slots=True)
class ImageInfo(object):
    '''Info about the image.
    See: <http://iiif.io/api/image/2.1/#image-information>

    Slots:
        ident (str): the full URL of the image, used as "@id"
        width (int)
        height (int)
        profile (list): compliance level URI and description, see
            FeatureSet.profile()
        tiles [{}]
    '''
    ident = attr.ib()
    width = attr.ib()
    height = attr.ib()
    profile = attr.ib()
    tiles = attr.ib(default=attr.Factory(list))

    @classmethod
    def from_resource(cls, features, resource, uri):
        '''
        Args:
            features (FeatureSet)
            resource (ImageResource): an opened resource
            uri (str): the URL of the resource, without "/info.json"
        '''
        width, height = resource.dimensions
        return cls(
            ident=uri,
            width=width,
            height=height,
            profile=features.profile(),
            tiles=features.tiles(),
        )

    def to_dict(self):
        d = {}
        d['@context'] = CONTEXT
        d['@id'] = self.ident
        d['protocol'] = PROTOCOL
        d['width'] = self.width
        d['height'] = self.height
        if self.tiles:
            d['tiles'] = self.tiles
        d['profile'] = self.profile
        return d

    def to_iiif_json(self):
        try:
            return json.dumps(self.to_dict()).encode('utf-8')
        except (TypeError, ValueError) as err:
            logger.error('Unable to serialize info for %s: %r', self.ident, err)
            raise InternalException('Unable to build info.json')


class InfoOverrideStore(object):
    """Hand-written info.json documents that replace the generated ones.

    An override lives next to its source image, at the source path plus
    ``suffix`` (e.g. ``/images/abc.jp2-info.json``). The first ``%ID%`` in
    the file is replaced with the URL of the image; everything else is
    served as-is.
    """

    def __init__(self, resolver, suffix='-info.json'):
        self.resolver = resolver
        self.suffix = suffix

    def override_file_path(self, ident):
        for directory in self.resolver.source_roots:
            fp = self.resolver.file_path_under(directory, ident)
            if fp is not None and path.isfile(fp + self.suffix):
                return fp + self.suffix

    def load(self, ident, uri):
        '''
        Returns:
            bytes, or None if there is no override for ``ident``.
        Raises:
            InternalException if the override exists but can't be read.
        '''
        fp = self.override_file_path(ident)
        if fp is None:
            return None
        try:
            with open(fp, 'rb') as f:
                data = f.read()
        except OSError as err:
            logger.error('Unable to read info.json override %s: %r', fp, err)
            raise InternalException('Unable to read info.json override')
        logger.debug('Serving info.json override %s', fp)
        return data.replace(INFO_OVERRIDE_ID_TOKEN, uri.encode('utf-8'), 1)
