# -*- encoding: utf-8
"""
The capabilities of the server, as one flat record of flags.

The same ``FeatureSet`` decides whether an image request can be served
(``check``) and describes the server in info.json (``profile``); both read
the flags through ``required_features`` and ``enabled``, so what we accept
and what we advertise can't drift apart.
"""

from logging import getLogger

import attr

from marmoset.constants import COMPLIANCE_LEVELS
from marmoset.marmoset_exception import ConfigError, UnsupportedFeatureException
from marmoset.parameters import (
    BEST_FIT_MODE, EXACT_MODE, HEIGHT_MODE, PCT_MODE, PIXEL_MODE,
    SQUARE_MODE, WIDTH_MODE,
)

logger = getLogger(__name__)

FEATURE = 'feature'
QUALITY = 'quality'
FORMAT = 'format'


def _flag(name, kind=FEATURE):
    return attr.ib(default=False, converter=bool, metadata={'iiif': name, 'kind': kind})


REGION_FEATURES = {
    PIXEL_MODE: 'regionByPx',
    PCT_MODE: 'regionByPct',
    SQUARE_MODE: 'regionSquare',
}

SIZE_FEATURES = {
    WIDTH_MODE: 'sizeByW',
    HEIGHT_MODE: 'sizeByH',
    PCT_MODE: 'sizeByPct',
    EXACT_MODE: 'sizeByForcedWh',
    BEST_FIT_MODE: 'sizeByWh',
}

# Features implied by each compliance level, see
# http://iiif.io/api/image/2.0/compliance/
_LEVEL1_FEATURES = frozenset([
    'regionByPx', 'sizeByW', 'sizeByH', 'sizeByPct',
    'baseUriRedirect', 'cors', 'jsonldMediaType',
])
_LEVEL2_FEATURES = _LEVEL1_FEATURES | frozenset([
    'regionByPct', 'sizeByForcedWh', 'sizeByWh', 'rotationBy90s',
])

LEVEL_REQUIREMENTS = (
    (frozenset(), frozenset(['default']), frozenset(['jpg'])),
    (_LEVEL1_FEATURES, frozenset(['default']), frozenset(['jpg'])),
    (_LEVEL2_FEATURES, frozenset(['default', 'color', 'gray', 'bitonal']), frozenset(['jpg', 'png'])),
)


@attr.s(slots=True, frozen=True)
class TileSize(object):
    width = attr.ib(converter=int)
    scale_factors = attr.ib(converter=tuple)

    def to_dict(self):
        return {'width': self.width, 'scaleFactors': list(self.scale_factors)}


@attr.s(slots=True, frozen=True)
class FeatureSet(object):
    """Which parts of the IIIF Image API this server handles.

    Attribute names are the snake case form of the IIIF feature names; the
    IIIF name of each flag is kept in its attrs metadata.
    """
    region_by_px = _flag('regionByPx')
    region_by_pct = _flag('regionByPct')
    region_square = _flag('regionSquare')

    size_by_w = _flag('sizeByW')
    size_by_h = _flag('sizeByH')
    size_by_pct = _flag('sizeByPct')
    size_by_forced_wh = _flag('sizeByForcedWh')
    size_by_wh = _flag('sizeByWh')
    size_above_full = _flag('sizeAboveFull')

    rotation_by_90s = _flag('rotationBy90s')
    rotation_arbitrary = _flag('rotationArbitrary')
    mirroring = _flag('mirroring')

    default = _flag('default', QUALITY)
    color = _flag('color', QUALITY)
    gray = _flag('gray', QUALITY)
    bitonal = _flag('bitonal', QUALITY)

    jpg = _flag('jpg', FORMAT)
    png = _flag('png', FORMAT)
    gif = _flag('gif', FORMAT)
    tif = _flag('tif', FORMAT)
    jp2 = _flag('jp2', FORMAT)
    pdf = _flag('pdf', FORMAT)
    webp = _flag('webp', FORMAT)

    base_uri_redirect = _flag('baseUriRedirect')
    cors = _flag('cors')
    jsonld_media_type = _flag('jsonldMediaType')
    profile_link_header = _flag('profileLinkHeader')
    canonical_link_header = _flag('canonicalLinkHeader')

    tile_sizes = attr.ib(default=(), converter=tuple)

    @staticmethod
    def flag_fields():
        return [f for f in attr.fields(FeatureSet) if 'iiif' in f.metadata]

    @staticmethod
    def names(kind=None):
        return [
            f.metadata['iiif'] for f in FeatureSet.flag_fields()
            if kind is None or f.metadata['kind'] == kind
        ]

    @classmethod
    def _from_names(cls, names, tile_sizes=()):
        names = set(names)
        kwargs = dict(
            (f.name, f.metadata['iiif'] in names) for f in cls.flag_fields()
        )
        return cls(tile_sizes=tile_sizes, **kwargs)

    @classmethod
    def level0(cls, tile_sizes=()):
        features, qualities, formats = LEVEL_REQUIREMENTS[0]
        return cls._from_names(features | qualities | formats, tile_sizes)

    @classmethod
    def level1(cls, tile_sizes=()):
        features, qualities, formats = LEVEL_REQUIREMENTS[1]
        return cls._from_names(features | qualities | formats, tile_sizes)

    @classmethod
    def level2(cls, tile_sizes=()):
        features, qualities, formats = LEVEL_REQUIREMENTS[2]
        return cls._from_names(features | qualities | formats, tile_sizes)

    @classmethod
    def from_config(cls, config, tile_sizes=()):
        """Build a feature set from the [features] config section.

        ``level`` picks a preset (default 2); any IIIF feature name in the
        section then switches that feature on or off.
        """
        config = dict(config)
        configured_level = config.pop('level', 2)
        presets = (cls.level0, cls.level1, cls.level2)
        try:
            level = int(configured_level)
        except (ValueError, TypeError):
            level = None
        if level not in (0, 1, 2):
            raise ConfigError('features.level=%r, expected one of 0/1/2' % (configured_level,))
        base = presets[level](tile_sizes)

        by_iiif_name = dict((f.metadata['iiif'], f.name) for f in cls.flag_fields())
        unknown = [k for k in config if k not in by_iiif_name]
        if unknown:
            raise ConfigError('Unknown features in config: %s' % ', '.join(sorted(unknown)))

        overrides = dict((by_iiif_name[k], v) for k, v in config.items())
        features = attr.evolve(base, **overrides)
        logger.debug('Enabled features: %s', ', '.join(sorted(features.enabled())))
        return features

    def enabled(self, kind=None):
        return set(
            f.metadata['iiif'] for f in FeatureSet.flag_fields()
            if getattr(self, f.name) and (kind is None or f.metadata['kind'] == kind)
        )

    def is_enabled(self, name):
        return name in self.enabled()

    def required_features(self, image_request):
        """The names of the features an image request depends on."""
        required = set()
        region_feature = REGION_FEATURES.get(image_request.region.mode)
        if region_feature:
            required.add(region_feature)
        size_feature = SIZE_FEATURES.get(image_request.size.mode)
        if size_feature:
            required.add(size_feature)

        rotation = image_request.rotation
        if rotation.mirror:
            required.add('mirroring')
        if rotation.degrees != 0:
            required.add('rotationBy90s' if rotation.by_90s else 'rotationArbitrary')

        required.add(image_request.quality)
        required.add(image_request.fmt)
        return required

    def unsupported_features(self, image_request):
        return sorted(self.required_features(image_request) - self.enabled())

    def supported(self, image_request):
        return not self.unsupported_features(image_request)

    def check(self, image_request):
        """
        Raises:
            UnsupportedFeatureException naming the first missing feature.
        """
        missing = self.unsupported_features(image_request)
        if missing:
            logger.info('%s needs unsupported features: %s',
                image_request.request_path, ', '.join(missing))
            raise UnsupportedFeatureException(
                'Feature not supported: %s' % (missing[0],)
            )

    def check_size(self, region_w, region_h, target_w, target_h):
        """Requests for more pixels than the region has need sizeAboveFull."""
        if self.size_above_full:
            return
        if target_w > region_w or target_h > region_h:
            raise UnsupportedFeatureException('Feature not supported: sizeAboveFull')

    @property
    def level(self):
        """The highest compliance level whose requirements are all met.

        Level 0 is reported even when its requirements aren't met: there's
        nothing lower to claim.
        """
        features = self.enabled(FEATURE)
        qualities = self.enabled(QUALITY)
        formats = self.enabled(FORMAT)
        level = 0
        for n, (f, q, fmt) in enumerate(LEVEL_REQUIREMENTS):
            if f <= features and q <= qualities and fmt <= formats:
                level = n
        return level

    def profile(self):
        """The "profile" entry of info.json."""
        level = self.level
        level_features = LEVEL_REQUIREMENTS[level][0]
        description = {
            'formats': [n for n in self.names(FORMAT) if n in self.enabled(FORMAT)],
            'qualities': [n for n in self.names(QUALITY) if n in self.enabled(QUALITY)],
            'supports': [
                n for n in self.names(FEATURE)
                if n in self.enabled(FEATURE) and n not in level_features
            ],
        }
        return [COMPLIANCE_LEVELS[level], description]

    def advertised(self):
        """Every feature name a client can learn about from ``profile()``."""
        compliance_uri, description = self.profile()
        level = COMPLIANCE_LEVELS.index(compliance_uri)
        advertised = set(LEVEL_REQUIREMENTS[level][0])
        for key in ('formats', 'qualities', 'supports'):
            advertised.update(description[key])
        return advertised

    def tiles(self):
        return [t.to_dict() for t in self.tile_sizes]
