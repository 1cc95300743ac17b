# -*- coding: utf-8 -*-
import struct
import zlib

from cityhash import CityHash64

"""
Lookup hashes stored in .locres files.

Optimized files hash namespaces and keys with Unreal's StrCrc32, and
Optimized_CityHash64_UTF16 files use a 32 bit fold of CityHash64. Neither hash
is checked against the text when reading, so these are only needed on write
and when a new entry needs a source string hash.
"""


def _utf16_units(text):
    data = text.encode('utf-16-le', errors='surrogatepass')
    return struct.unpack('<{}H'.format(len(data) // 2), data)


def str_crc32(text):
    """
    Unreal's FCrc::StrCrc32.

    Every UTF-16 code unit is fed to the CRC as four little-endian bytes, so
    the result is the same as zlib.crc32 over the string widened to 32 bit
    characters. Hashing stops at the first NUL, like the C string version.

    Args:
        text (str): Namespace, key or source string.

    Returns:
        int: Unsigned 32 bit hash.
    """
    nul = text.find('\0')
    if nul >= 0:
        text = text[:nul]

    units = _utf16_units(text)
    wide = struct.pack('<{}I'.format(len(units)), *units)
    return zlib.crc32(wide) & 0xFFFFFFFF


def city_hash64_to_uint32(text):
    """
    CityHash64 of the UTF-16LE text folded to 32 bits the way Unreal's
    GetTypeHash(uint64) does: low + high * 23.

    Args:
        text (str): Namespace or key.

    Returns:
        int: Unsigned 32 bit hash, 0 for an empty string.
    """
    if not text:
        return 0

    h = CityHash64(text.encode('utf-16-le', errors='surrogatepass'))
    low = h & 0xFFFFFFFF
    high = (h >> 32) & 0xFFFFFFFF
    return (low + high * 23) & 0xFFFFFFFF
