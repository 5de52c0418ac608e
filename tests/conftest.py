import logging
from os import path

from PIL import Image
import pytest

from marmoset.features import FeatureSet, TileSize


PROJECT_DP = path.dirname(path.dirname(path.abspath(__file__)))
CONFIG_FP = path.join(PROJECT_DP, 'etc', 'marmoset.conf')


def make_image(fp, size=(200, 100), fmt=None, mode='RGB', color=(200, 30, 30)):
    """Write a solid image of the given size to ``fp``."""
    im = Image.new(mode, size, color)
    im.save(fp, format=fmt)
    im.close()
    return fp


@pytest.fixture
def reset_logger():
    """Start from an unconfigured logger, and reset it at the end of a test
    run."""
    logger = logging.getLogger()
    try:
        delattr(logger, 'handler_set')
    except AttributeError:
        pass
    yield

    # Note: we wrap ``logger.handlers`` and ``logger.filters`` in calls to
    # ``list()`` because they change size mid-iteration, and we want to ensure
    # that we really do delete every handler and filter.
    for h in list(logger.handlers):
        logger.removeHandler(h)
    for f in list(logger.filters):
        logger.removeFilter(f)

    try:
        delattr(logger, 'handler_set')
    except AttributeError:
        pass

    assert len(logger.handlers) == 0
    assert len(logger.filters) == 0


@pytest.fixture
def src_img_root(tmpdir):
    """A source root holding a 200x100 JPEG and a 100x200 PNG."""
    root = tmpdir.mkdir('images')
    make_image(str(root.join('wide.jpg')), size=(200, 100))
    make_image(str(root.join('tall.png')), size=(100, 200), mode='RGBA', color=(0, 0, 255, 255))
    return str(root)


@pytest.fixture
def level2_features():
    return FeatureSet.level2(tile_sizes=[TileSize(512, [1, 2, 4])])


@pytest.fixture
def all_features():
    names = FeatureSet.names()
    return FeatureSet._from_names(names)
