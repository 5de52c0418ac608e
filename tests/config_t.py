# -*- encoding: utf-8 -*-

import pytest

from marmoset.config import (
    DEFAULT_SCALE_FACTORS, parse_address, read_config, tile_sizes_from_config,
    validate_config,
)
from marmoset.features import TileSize
from marmoset.marmoset_exception import ConfigError
from tests.conftest import CONFIG_FP


MINIMAL_CONFIG = """
[marmoset.Marmoset]
iiif_url = 'http://example.org/iiif'

[resolver]
impl = 'marmoset.resolver.SimpleFSResolver'
src_img_root = '${MARMOSET_TEST_ROOT}/images'

[transforms]

[features]

[logging]
log_to = 'console'
log_level = 'INFO'
format = '%(message)s'
"""


def _valid_config():
    return {
        'marmoset.Marmoset': {'iiif_url': 'http://example.org/iiif'},
        'resolver': {'impl': 'marmoset.resolver.SimpleFSResolver', 'src_img_root': '/images'},
        'transforms': {},
        'features': {},
        'logging': {'log_to': 'console', 'log_level': 'INFO', 'format': '%(message)s'},
    }


class TestReadConfig(object):

    def test_packaged_config_is_valid(self):
        config = read_config(CONFIG_FP)
        assert config['marmoset.Marmoset']['iiif_url'].startswith('http')
        assert config['features']['level'] == 2

    def test_environment_variables_are_interpolated(self, tmpdir, monkeypatch):
        monkeypatch.setenv('MARMOSET_TEST_ROOT', '/srv/marmoset')
        fp = tmpdir.join('marmoset.conf')
        fp.write(MINIMAL_CONFIG)
        config = read_config(str(fp))
        assert config['resolver']['src_img_root'] == '/srv/marmoset/images'


class TestValidateConfig(object):

    def test_valid_config_is_okay(self):
        validate_config(_valid_config())

    @pytest.mark.parametrize('section', [
        'marmoset.Marmoset', 'resolver', 'transforms', 'features', 'logging'
    ])
    def test_missing_section_is_configerror(self, section):
        config = _valid_config()
        del config[section]
        with pytest.raises(ConfigError) as err:
            validate_config(config)
        assert 'Missing config sections: %s' % (section,) in str(err.value)

    @pytest.mark.parametrize('section, key', [
        ('marmoset.Marmoset', 'iiif_url'),
        ('resolver', 'impl'),
        ('logging', 'log_to'),
    ])
    def test_missing_key_is_configerror(self, section, key):
        config = _valid_config()
        del config[section][key]
        with pytest.raises(ConfigError) as err:
            validate_config(config)
        assert key in str(err.value)

    @pytest.mark.parametrize('iiif_url', [
        '/iiif', 'ftp://example.org/iiif', 'example.org/iiif', 'http://',
    ])
    def test_iiif_url_must_be_absolute_http(self, iiif_url):
        config = _valid_config()
        config['marmoset.Marmoset']['iiif_url'] = iiif_url
        with pytest.raises(ConfigError) as err:
            validate_config(config)
        assert 'iiif_url' in str(err.value)

    def test_resolver_without_a_root_is_configerror(self):
        config = _valid_config()
        del config['resolver']['src_img_root']
        with pytest.raises(ConfigError):
            validate_config(config)

    def test_resolver_with_several_roots_is_okay(self):
        config = _valid_config()
        del config['resolver']['src_img_root']
        config['resolver']['src_img_roots'] = ['/a', '/b']
        validate_config(config)


class TestTileSizes(object):

    def test_tile_sizes(self):
        tiles = tile_sizes_from_config({'tile_widths': [256, 512], 'tile_scale_factors': [1, 2]})
        assert tiles == (TileSize(256, [1, 2]), TileSize(512, [1, 2]))

    def test_default_scale_factors(self):
        tiles = tile_sizes_from_config({'tile_widths': [256]})
        assert tiles[0].scale_factors == tuple(DEFAULT_SCALE_FACTORS)

    def test_no_tile_widths_means_no_tiles(self):
        assert tile_sizes_from_config({}) == ()


@pytest.mark.parametrize('address, expected', [
    ('localhost:12415', ('localhost', 12415)),
    ('0.0.0.0:80', ('0.0.0.0', 80)),
    (':8080', ('localhost', 8080)),
])
def test_parse_address(address, expected):
    assert parse_address(address) == expected


@pytest.mark.parametrize('address', ['localhost', 'localhost:http', ''])
def test_bad_address_is_configerror(address):
    with pytest.raises(ConfigError):
        parse_address(address)
