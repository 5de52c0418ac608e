#!/usr/bin/env python
# -*- coding: utf-8 -*-

from setuptools import setup
import marmoset
import os


VERSION = marmoset.__version__


def local_file(name):
    return os.path.relpath(os.path.join(os.path.dirname(__file__), name))


# We use requirements.txt so we can provide a deterministic set of packages
# to be installed, not the latest version that happens to be available.
with open(local_file('requirements.txt')) as f:
    install_requires = [line.strip() for line in f if line.strip()]


def _read(fname):
    with open(local_file(fname)) as f:
        return f.read()


setup(
    name='Marmoset',
    url='https://github.com/marmoset-iiif/marmoset',
    description=('IIIF Image API 2.1 image server with a configurable feature set'),
    long_description=_read('README.md'),
    long_description_content_type='text/markdown',
    license='Simplified BSD',
    version=VERSION,
    packages=['marmoset'],
    python_requires='>=3.7',
    install_requires=install_requires,
    extras_require={
        'test': ['pytest>=6.0', 'hypothesis>=4.0', 'mock>=2.0'],
    },
)
