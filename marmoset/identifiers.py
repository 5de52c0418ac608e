# -*- encoding: utf-8
"""
Utilities for dealing with identifiers.
"""

import hashlib
import os
from urllib.parse import quote

import attr

from marmoset.marmoset_exception import ConfigError, SyntaxException


def _not_empty(instance, attribute, value):
    if not value:
        raise SyntaxException('Identifiers must not be empty')


@attr.s(slots=True, frozen=True)
class Identifier(object):
    """The identifier slice of a IIIF URI.

    The value has already been URL-decoded (once, by the WSGI server), so it
    is never unquoted again here.
    """
    value = attr.ib(validator=_not_empty)

    def __str__(self):
        return self.value

    @property
    def url_segment(self):
        """The identifier as it appears in URLs we hand back to clients."""
        return quote(self.value, safe='')


class IdentityPathMapper(object):
    """The decoded identifier is the path of the source, relative to the
    source root.
    """

    def relative_path(self, ident):
        return ident.value


class ShardedPathMapper(object):
    """
    Spreads sources over a fan-out of directories based on a hash of
    their identifier.
    """

    @staticmethod
    def shard_directory_name(ident):
        # Get the MD5 hash of the identifier, then we create the top-level
        # directory as 2 digits, and take pieces of 3 digits for each
        # subsequent directory.
        #
        # For example, '12345678' becomes '12/345/678'.
        ident_hash = hashlib.md5(ident.value.encode('utf8')).hexdigest()
        dirnames = [ident_hash[0:2]] + [ident_hash[i:i+3] for i in range(2, len(ident_hash), 3)]
        return os.path.join(*dirnames)

    def relative_path(self, ident):
        return os.path.join(
            ShardedPathMapper.shard_directory_name(ident),
            ident.url_segment
        )


PATH_MAPPERS = {
    'identity': IdentityPathMapper,
    'sharded': ShardedPathMapper,
}


def path_mapper_from_config(name):
    try:
        return PATH_MAPPERS[name]()
    except KeyError:
        raise ConfigError(
            'path_mapping=%r, expected one of %s' %
            (name, '/'.join(sorted(PATH_MAPPERS)))
        )
