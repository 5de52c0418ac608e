# constants.py
# -*- coding: utf-8 -*-

import re

PROTOCOL = 'http://iiif.io/api/image'
CONTEXT = 'http://iiif.io/api/image/2/context.json'

COMPLIANCE_LEVELS = (
    'http://iiif.io/api/image/2/level0.json',
    'http://iiif.io/api/image/2/level1.json',
    'http://iiif.io/api/image/2/level2.json',
)

JSON_MEDIA_TYPE = 'application/json'
JSONLD_MEDIA_TYPE = 'application/ld+json'

QUALITIES = ('default', 'color', 'gray', 'bitonal')

__formats = (
    ('gif', 'image/gif'),
    ('jp2', 'image/jp2'),
    ('jpg', 'image/jpeg'),
    ('pdf', 'application/pdf'),
    ('png', 'image/png'),
    ('tif', 'image/tiff'),
    ('webp', 'image/webp'),
)

FORMATS_BY_EXTENSION = dict(__formats)

FORMATS_BY_MEDIA_TYPE = dict([(f[1], f[0]) for f in __formats])

# Placeholder replaced with the resource URL in info.json override files.
INFO_OVERRIDE_ID_TOKEN = b'%ID%'

_IDENT = r'(?P<ident>.+)'
_REGION = r'(?P<region>[^/]+)'
_SIZE = r'(?P<size>[^/]+)'
_ROTATION = r'(?P<rotation>[^/]+)'
_QUALITY = r'(?P<quality>[^/.]+)'
_FORMAT = r'(?P<format>[^/.]+)'

_IMAGE_REQUEST = r'^/%s/%s/%s/%s/%s\.%s$' % (
    _IDENT, _REGION, _SIZE, _ROTATION, _QUALITY, _FORMAT
)
IMAGE_RE = re.compile(_IMAGE_REQUEST)

_INFO_REQUEST = r'^/%s/info\.json$' % (_IDENT,)
INFO_RE = re.compile(_INFO_REQUEST)

# An identifier followed by four more segments looks like an image request,
# even if the last segment is missing its format.
LOOSER_IMAGE_RE = re.compile(r'^/%s(/[^/]+){4}$' % (_IDENT,))
