"""
`resolver` -- Resolve Identifiers to Image Paths
================================================
"""
from logging import getLogger
from os.path import abspath, isfile, join, sep

from marmoset.identifiers import path_mapper_from_config
from marmoset.img import ImageResource
from marmoset.marmoset_exception import ResourceNotFoundException

logger = getLogger(__name__)


class SimpleFSResolver(object):
    """
    Sources live under a root directory (or several), at the path the
    configured ``path_mapping`` gives for each identifier.
    """

    def __init__(self, config):
        self.config = config
        if 'src_img_roots' in self.config:
            self.source_roots = self.config['src_img_roots']
        else:
            self.source_roots = [self.config['src_img_root']]
        self.source_roots = [abspath(d) for d in self.source_roots]
        self.path_mapper = path_mapper_from_config(self.config.get('path_mapping', 'identity'))

    def raise_404_for_ident(self, ident):
        message = 'Source image not found for identifier: %s.' % (ident,)
        logger.warning(message)
        raise ResourceNotFoundException(message)

    def file_path_under(self, directory, ident):
        fp = abspath(join(directory, self.path_mapper.relative_path(ident)))
        if not fp.startswith(directory.rstrip(sep) + sep):
            logger.warning('Identifier %r points outside of %s', ident.value, directory)
            return None
        return fp

    def source_file_path(self, ident):
        for directory in self.source_roots:
            fp = self.file_path_under(directory, ident)
            if fp is not None and isfile(fp):
                return fp

    def is_resolvable(self, ident):
        return self.source_file_path(ident) is not None

    def resolve(self, ident):
        """
        Returns:
            ImageResource, not yet opened
        Raises:
            ResourceNotFoundException
        """
        source_fp = self.source_file_path(ident)
        if source_fp is None:
            self.raise_404_for_ident(ident)
        return ImageResource(ident, source_fp)
