# -*- encoding: utf-8
"""
Reads just enough of a JPEG 2000 (JP2) file to know its dimensions and how
many resolution levels its codestream holds.

Pillow opens JP2 files, but doesn't expose the number of decomposition
levels, which is what tells us how far a decode can be reduced.

Where appropriate, references are to ISO/IEC 15444-1:2000(E).
"""

import collections
import logging
import os
import struct

import attr

from marmoset.marmoset_exception import DecodeException

logger = logging.getLogger(__name__)

JP2_SIGNATURE = b'\x00\x00\x00\x0c\x6a\x50\x20\x20\x0d\x0a\x87\x0a'


@attr.s(slots=True, frozen=True)
class JP2Header(object):
    width = attr.ib()
    height = attr.ib()
    levels = attr.ib()

    @property
    def scale_factors(self):
        """Each resolution level halves the previous one."""
        return [pow(2, l) for l in range(0, self.levels + 1)]


class JP2ExtractionError(DecodeException):
    """Raised for errors when extracting data from a JP2 image."""
    pass


def _unpack(fmt, data, what):
    try:
        return struct.unpack(fmt, data)[0]
    except struct.error as err:
        raise JP2ExtractionError("Error reading %s: %r" % (what, err))


def _parse_length(jp2, box_name):
    """
    Internally, a JP2 is a series of boxes.  Within each box,
    the first 4 bytes are a length field, measuring the size of the box
    (including the length field itself).

    See § I.4.
    """
    return _unpack('>I', jp2.read(4), 'the length field in the %s box' % box_name)


def _read_jp2_until_match(jp2, match):
    """
    Continue to read bytes from ``jp2`` until ``match`` is encountered,
    at which point rewind so the stream starts just before ``match``.
    """
    window = collections.deque([], len(match))
    while b''.join(window) != match:
        b = jp2.read(1)
        if not b:
            raise JP2ExtractionError("Reached the end of the file looking for %r" % match)
        window.append(b)

    jp2.seek(-len(match), os.SEEK_CUR)


def check_signature_box(jp2):
    """
    The first 12 bytes of a JP2 file are the "JPEG 2000 Signature box",
    a fixed 12-byte string (see § I.5.1).
    """
    signature = jp2.read(12)
    if signature != JP2_SIGNATURE:
        raise JP2ExtractionError("Bad signature box: %r" % signature)


def check_file_type_box(jp2):
    """
    After the Signature box is the "File Type box" (see § I.5.2):

        0 - 3   Length
        4 - 7   Type, which must be 'ftyp'
        8 - 11  Brand, the only allowed value of which is 'jp2\\040'
        12+     Minor version and compatibility list, which we skip.
    """
    file_type_box_length = _parse_length(jp2, 'File Type')

    file_type = jp2.read(4)
    if file_type != b'ftyp':
        raise JP2ExtractionError("Bad type in the File Type box: %r" % file_type)

    file_brand = jp2.read(4)
    if file_brand != b'jp2\040':
        raise JP2ExtractionError("Bad brand in the File Type box: %r" % file_brand)

    # Length, type and brand are 12 bytes of the box.
    if file_type_box_length > 0:
        jp2.read(max(file_type_box_length - 12, 0))


def read_image_header_box(jp2):
    """
    The Image Header box (§ I.5.3.1) is always 22 bytes:

        0 - 3   Length (which is always 22)
        4 - 7   Type, which must be 'ihdr'
        8 - 11  Image area height, big endian uint
        12 - 15 Image area width, big endian uint
        16 - 21 Other fields we don't care about

    Returns (width, height).
    """
    header_box_length = _parse_length(jp2, 'Image Header')
    if header_box_length != 22:
        raise JP2ExtractionError(
            "Incorrect length in the Image Header box: %r" % header_box_length
        )

    header_box_type = jp2.read(4)
    if header_box_type != b'ihdr':
        raise JP2ExtractionError("Bad type in the Image Header box: %r" % header_box_type)

    height = _unpack('>I', jp2.read(4), 'the image height')
    width = _unpack('>I', jp2.read(4), 'the image width')
    jp2.read(22 - 16)
    return (width, height)


def read_decomposition_levels(jp2):
    """
    The COD marker segment (0xFF52, required, § A.6.1) holds the number of
    decomposition levels of the codestream:

        COD     Marker code, 2 bytes
        Lcod    2 bytes
        Scod    1 byte
        SGcod   4 bytes
        SPcod   starts with the number of decomposition levels, 1 byte
    """
    _read_jp2_until_match(jp2, b'\xFF\x52')
    jp2.read(2 + 2 + 1 + 4)
    return _unpack('>B', jp2.read(1), 'the number of decomposition levels')


def extract_jp2(jp2):
    """Read the header of the JP2 in the binary file-like object ``jp2``.

    Returns:
        JP2Header
    Raises:
        JP2ExtractionError
    """
    check_signature_box(jp2)
    check_file_type_box(jp2)

    # The JP2 Header superbox ('jp2h') may be anywhere after the File Type
    # box; its first child is always the Image Header box.
    _read_jp2_until_match(jp2, b'jp2h')
    jp2.read(4)
    width, height = read_image_header_box(jp2)

    levels = read_decomposition_levels(jp2)
    logger.debug('JP2 is %d x %d with %d levels', width, height, levels)
    return JP2Header(width=width, height=height, levels=levels)
