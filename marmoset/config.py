# -*- encoding: utf-8 -*-
"""
Reading and checking the configuration file, ``etc/marmoset.conf``.
"""

import os
from os import path
from urllib.parse import urlsplit

from configobj import ConfigObj

from marmoset.features import TileSize
from marmoset.marmoset_exception import ConfigError

MANDATORY_SECTIONS = {
    'marmoset.Marmoset': ['iiif_url'],
    'resolver': ['impl'],
    'transforms': [],
    'features': [],
    'logging': ['log_to', 'log_level', 'format'],
}

DEFAULT_SCALE_FACTORS = [1, 2, 4, 8, 16, 32]


def default_config_path():
    project_dp = path.dirname(path.dirname(path.realpath(__file__)))
    return path.join(project_dp, 'etc', 'marmoset.conf')


def read_config(config_file_path):
    config = ConfigObj(config_file_path, unrepr=True, interpolation='template')
    # add the OS environment variables as the DEFAULT section to support
    # interpolating their values into other keys
    # make a copy of the os.environ dictionary so that the config object can't
    # inadvertently modify the environment
    config['DEFAULT'] = {key: val for (key, val) in os.environ.items() if key not in ('PS1',)}
    validate_config(config)
    return config


def validate_config(config):
    missing = [s for s in MANDATORY_SECTIONS if s not in config]
    if missing:
        raise ConfigError('Missing config sections: %s' % ', '.join(missing))

    for section, keys in MANDATORY_SECTIONS.items():
        missing_keys = [k for k in keys if k not in config[section]]
        if missing_keys:
            raise ConfigError(
                'Missing mandatory %s parameters: %r' %
                (section, ','.join(missing_keys))
            )

    iiif_url = urlsplit(config['marmoset.Marmoset']['iiif_url'])
    if iiif_url.scheme not in ('http', 'https') or not iiif_url.netloc:
        raise ConfigError(
            'iiif_url=%r is not an absolute http(s) URL' %
            config['marmoset.Marmoset']['iiif_url']
        )

    resolver_config = config['resolver']
    if 'src_img_root' not in resolver_config and 'src_img_roots' not in resolver_config:
        raise ConfigError('resolver needs one of src_img_root/src_img_roots')


def tile_sizes_from_config(config):
    '''The tile geometries advertised in info.json, from the
    [marmoset.Marmoset] section.
    '''
    scale_factors = config.get('tile_scale_factors', DEFAULT_SCALE_FACTORS)
    return tuple(
        TileSize(width=w, scale_factors=scale_factors)
        for w in config.get('tile_widths', [])
    )


def parse_address(address):
    '''Split "host:port" into ('host', port).'''
    host, sep, port = address.rpartition(':')
    if not sep or not port.isdigit():
        raise ConfigError('address=%r, expected host:port' % (address,))
    return (host or 'localhost', int(port))
