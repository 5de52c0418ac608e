# -*- encoding: utf-8

from hypothesis import given
from hypothesis.strategies import text
import pytest

from marmoset.identifiers import (
    Identifier, IdentityPathMapper, ShardedPathMapper, path_mapper_from_config,
)
from marmoset.marmoset_exception import ConfigError, SyntaxException


class TestIdentifier(object):

    def test_empty_identifier_is_syntaxexception(self):
        with pytest.raises(SyntaxException):
            Identifier('')

    @given(text(min_size=1))
    def test_url_segment_has_no_slashes(self, value):
        assert '/' not in Identifier(value).url_segment

    def test_url_segment_is_quoted_once(self):
        assert Identifier('a/b c%2F').url_segment == 'a%2Fb%20c%252F'

    def test_str_is_the_decoded_value(self):
        assert str(Identifier('01/02/0001.jp2')) == '01/02/0001.jp2'


class TestIdentityPathMapper(object):

    def test_relative_path_is_the_identifier(self):
        mapper = IdentityPathMapper()
        assert mapper.relative_path(Identifier('01/02/0001.jp2')) == '01/02/0001.jp2'


class TestShardedPathMapper(object):

    mapper = ShardedPathMapper()

    @pytest.mark.parametrize('ident, expected_directory', [
        ('0001.jpg', '71/d50/39c/f12/091/40b/910/5a4/696/b0b/155'),
        ('example.png', '89/51d/ba4/39b/1aa/07c/688/6dc/bc3/87a/b32'),
    ])
    def test_shard_directory_name(self, ident, expected_directory):
        actual_directory = self.mapper.shard_directory_name(Identifier(ident))
        assert actual_directory == expected_directory

    def test_relative_path_ends_with_quoted_identifier(self):
        fp = self.mapper.relative_path(Identifier('a/b.jpg'))
        assert fp.endswith('/a%2Fb.jpg')

    @given(text(min_size=1), text(min_size=1))
    def test_distinct_identifiers_get_distinct_paths(self, a, b):
        if a != b:
            assert (self.mapper.relative_path(Identifier(a)) !=
                self.mapper.relative_path(Identifier(b)))


@pytest.mark.parametrize('name, cls', [
    ('identity', IdentityPathMapper),
    ('sharded', ShardedPathMapper),
])
def test_path_mapper_from_config(name, cls):
    assert isinstance(path_mapper_from_config(name), cls)


def test_unknown_path_mapper_is_configerror():
    with pytest.raises(ConfigError) as err:
        path_mapper_from_config('nope')
    assert 'path_mapping' in str(err.value)
