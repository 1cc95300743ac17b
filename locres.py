# -*- coding: utf-8 -*-
import io
import struct
from collections import namedtuple
from enum import IntEnum

from locreshash import str_crc32, city_hash64_to_uint32

"""
Reader and writer for Unreal Engine localization resources (.locres).

Four layouts exist. Legacy files have no header and store every value inline.
Compact files add a magic header and a shared table of unique strings that
entries reference by index. Optimized files add namespace and key hashes, a
total entry count and per string reference counts. Optimized_CityHash64_UTF16
is laid out like Optimized but hashes with CityHash64 instead of StrCrc32.

All integers are little-endian.
"""

LOCRES_MAGIC = bytes([
    0x0E, 0x14, 0x74, 0x75, 0x67, 0x4A, 0x03, 0xFC,
    0x4A, 0x15, 0x90, 0x9D, 0xC3, 0x37, 0x7F, 0x1B,
])

NAMESPACE_SEPARATOR = '/'


# Errors ----------------------------------------------------------------------
class LocresError(Exception):
    """Base class for every .locres read or write failure."""


class StreamCapabilityError(LocresError, ValueError):
    pass


class NotSeekableError(StreamCapabilityError):
    pass


class NotReadableError(StreamCapabilityError):
    pass


class NotWritableError(StreamCapabilityError):
    pass


class UnrecognizedVersionError(LocresError):
    pass


class TruncatedDataError(LocresError):
    """A fixed size field or the string table lies past the end of the data."""


class MalformedStringError(LocresError):
    """A string length points past the end of the data."""


class MalformedIndexError(LocresError):
    """An entry references a string table slot that does not exist."""


class MalformedCountError(LocresError):
    pass


class InvalidSourceHashError(LocresError):
    pass


# Versions --------------------------------------------------------------------
class LocresVersion(IntEnum):
    Legacy = 0
    Compact = 1
    Optimized = 2
    Optimized_CityHash64_UTF16 = 3


# Which optional parts of the layout a version carries. fingerprint hashes
# namespaces and keys when has_hashes is set.
VersionCapabilities = namedtuple('VersionCapabilities', [
    'has_header',
    'has_string_table',
    'has_entry_count',
    'has_hashes',
    'has_refcounts',
    'fingerprint',
])

VERSION_CAPABILITIES = {
    LocresVersion.Legacy: VersionCapabilities(False, False, False, False, False, None),
    LocresVersion.Compact: VersionCapabilities(True, True, False, False, False, None),
    LocresVersion.Optimized: VersionCapabilities(True, True, True, True, True, str_crc32),
    LocresVersion.Optimized_CityHash64_UTF16: VersionCapabilities(True, True, True, True, True, city_hash64_to_uint32),
}


def parse_version(value):
    """
    Resolve a version given as a LocresVersion, its number or its name.

    Names are matched case-insensitively, so "optimized" and "Optimized"
    both work from the command line.

    Raises:
        UnrecognizedVersionError: if nothing matches.
    """
    if isinstance(value, LocresVersion):
        return value
    if isinstance(value, int):
        try:
            return LocresVersion(value)
        except ValueError:
            raise UnrecognizedVersionError("Unrecognized .locres version {}".format(value)) from None

    text = str(value).strip()
    if text.isdigit():
        return parse_version(int(text))
    for version in LocresVersion:
        if version.name.lower() == text.lower():
            return version
    raise UnrecognizedVersionError("Unrecognized .locres version '{}'".format(value))


def get_capabilities(version):
    return VERSION_CAPABILITIES[parse_version(version)]


# Read and write binary structs -----------------------------------------------
def readBytes(file, size):
    offset = file.tell()
    data = file.read(size)
    if len(data) != size:
        raise TruncatedDataError(
            "Expected {} bytes at offset {}, only {} available".format(size, offset, len(data)))
    return data


def remainingBytes(file):
    position = file.tell()
    end = file.seek(0, io.SEEK_END)
    file.seek(position)
    return end - position


def readUByte(file): return struct.unpack('<B', readBytes(file, 1))[0]


def readInt32(file): return struct.unpack('<i', readBytes(file, 4))[0]


def readUInt32(file): return struct.unpack('<I', readBytes(file, 4))[0]


def readInt64(file): return struct.unpack('<q', readBytes(file, 8))[0]


def writeUByte(file, value): file.write(struct.pack('<B', value))


def writeInt32(file, value): file.write(struct.pack('<i', value))


def writeUInt32(file, value): file.write(struct.pack('<I', value))


def writeInt64(file, value): file.write(struct.pack('<q', value))


def writeSourceHash(file, entry):
    if not 0 <= entry.source_hash <= 0xFFFFFFFF:
        raise InvalidSourceHashError(
            "Key '{}' has source hash {} outside the unsigned 32 bit range".format(entry.key, entry.source_hash))
    writeUInt32(file, entry.source_hash)


def readCount(file, what):
    count = readInt32(file)
    if count < 0:
        raise MalformedCountError("Negative {} count {} at offset {}".format(what, count, file.tell() - 4))
    return count


# Unreal strings --------------------------------------------------------------
class StringEncoding(IntEnum):
    AUTO = 0
    FORCE_UNICODE = 1
    FORCE_ASCII = 2


def encode_unreal_string(text, encoding=StringEncoding.AUTO):
    """
    Encode a string the way FString serializes itself.

    The text gets a NUL terminator. Pure ASCII text is stored one byte per
    character behind a positive int32 length. Anything else is stored as
    UTF-16LE behind the negated number of code units. Both lengths include
    the terminator, so an empty string still has a length of 1 or -1.

    Args:
        text (str): Text to encode.
        encoding (StringEncoding): AUTO picks ASCII when possible,
            FORCE_UNICODE always writes UTF-16LE, FORCE_ASCII drops every
            non-ASCII character and writes ASCII.

    Returns:
        bytes: Length prefix followed by the encoded characters.
    """
    if encoding == StringEncoding.FORCE_ASCII:
        text = ''.join(ch for ch in text if ord(ch) < 128)
    text += '\0'

    if encoding != StringEncoding.FORCE_UNICODE and text.isascii():
        data = text.encode('ascii')
        return struct.pack('<i', len(data)) + data

    data = text.encode('utf-16-le', errors='surrogatepass')
    return struct.pack('<i', -(len(data) // 2)) + data


def writeUnrealString(file, text, encoding=StringEncoding.AUTO):
    file.write(encode_unreal_string(text, encoding))


def readUnrealString(file):
    """
    Read a length-prefixed FString.

    Single byte text is decoded as Latin-1 so stray non-ASCII bytes never
    abort a read. A zero length is an empty string with nothing after it.

    Raises:
        MalformedStringError: if the length runs past the end of the data.
    """
    length = readInt32(file)
    if length == 0:
        return ''

    size = length if length > 0 else -length * 2
    offset = file.tell()
    available = remainingBytes(file)
    if size > available:
        raise MalformedStringError(
            "String at offset {} needs {} bytes, only {} available".format(offset, size, available))
    data = readBytes(file, size)

    if length > 0:
        text = data.decode('latin-1')
    else:
        text = data.decode('utf-16-le', errors='surrogatepass')

    if text.endswith('\0'):
        text = text[:-1]
    return text


# Document --------------------------------------------------------------------
TranslationRow = namedtuple('TranslationRow', ['key', 'source', 'target'])


def make_composite_key(namespace_name, key):
    """Key used by translation sheets: 'Namespace/Key', or just 'Key' without a namespace."""
    if namespace_name and namespace_name.strip():
        return namespace_name + NAMESPACE_SEPARATOR + key
    return key


def split_composite_key(composite_key):
    """Inverse of make_composite_key. The namespace ends at the first separator."""
    namespace_name, separator, key = composite_key.partition(NAMESPACE_SEPARATOR)
    if not separator:
        return '', composite_key
    return namespace_name, key


def ordinal_ignore_case(text):
    """
    Fold text for ordinal case-insensitive matching.

    Each character is upper-cased on its own and kept as is when its upper
    case form is more than one character, so "ß" never matches "SS".
    """
    folded = []
    for ch in text:
        upper = ch.upper()
        folded.append(upper if len(upper) == 1 else ch)
    return ''.join(folded)


class LocresEntry(object):
    __slots__ = ('key', 'value', 'source_hash')

    def __init__(self, key, value='', source_hash=0):
        self.key = key
        self.value = value
        self.source_hash = source_hash

    def __eq__(self, other):
        if not isinstance(other, LocresEntry):
            return NotImplemented
        return (self.key, self.value, self.source_hash) == (other.key, other.value, other.source_hash)

    def __repr__(self):
        return "LocresEntry({!r}, {!r}, 0x{:08X})".format(self.key, self.value, self.source_hash)


class LocresNamespace(list):
    """Ordered entries of one namespace. The name may be empty."""

    def __init__(self, name='', entries=()):
        super().__init__(entries)
        self.name = name

    def __eq__(self, other):
        if not isinstance(other, LocresNamespace):
            return NotImplemented
        return self.name == other.name and list.__eq__(self, other)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def add(self, key, value='', source_hash=0):
        entry = LocresEntry(key, value, source_hash)
        self.append(entry)
        return entry

    def __repr__(self):
        return "LocresNamespace({!r}, {})".format(self.name, list.__repr__(self))


class LocresDocument(list):
    """
    Namespaces of a .locres file in file order.

    version is the layout the document was read from and the default layout
    for encode_locres. Two documents compare equal when their namespaces do,
    whatever layout they came from.
    """

    def __init__(self, namespaces=(), version=LocresVersion.Compact):
        super().__init__(namespaces)
        self.version = parse_version(version)

    @property
    def total_count(self):
        return sum(len(namespace) for namespace in self)

    def get_namespace(self, name):
        for namespace in self:
            if namespace.name == name:
                return namespace
        return None

    def add_namespace(self, name):
        namespace = LocresNamespace(name)
        self.append(namespace)
        return namespace

    def iter_keyed_entries(self):
        """Yield (composite key, namespace, entry) for every entry in document order."""
        for namespace in self:
            for entry in namespace:
                yield make_composite_key(namespace.name, entry.key), namespace, entry

    def apply_translations(self, rows):
        """
        Replace values from translation rows and append the rows that match no entry.

        Rows without a key or a target are ignored. Keys match ordinally
        ignoring case, one character at a time, and the first row for a key
        wins. A row that matches no existing entry is added to the namespace
        named by its key prefix, with StrCrc32 of its source text as the
        source hash; if that namespace does not exist the row is reported as
        unused.

        Args:
            rows (iterable[TranslationRow]): Rows from a translation sheet.

        Returns:
            dict: 'total' entries visited, 'replaced' values, 'added' entries
            and the list of 'unused' keys.
        """
        pending = {}
        for row in rows:
            if not row.key or not row.target:
                continue
            pending.setdefault(ordinal_ignore_case(row.key), row)

        summary = {'total': 0, 'replaced': 0, 'added': 0, 'unused': []}
        for composite_key, namespace, entry in self.iter_keyed_entries():
            summary['total'] += 1
            row = pending.pop(ordinal_ignore_case(composite_key), None)
            if row is not None:
                entry.value = row.target
                summary['replaced'] += 1

        for row in pending.values():
            namespace_name, key = split_composite_key(row.key)
            namespace = self.get_namespace(namespace_name)
            if namespace is None:
                summary['unused'].append(row.key)
                continue
            namespace.add(key, row.target, str_crc32(row.source))
            summary['added'] += 1

        return summary

    def load(self, stream):
        """Replace the contents with a document decoded from stream."""
        document = decode_locres(stream)
        self[:] = document
        self.version = document.version

    def save(self, stream, version=None):
        encode_locres(self, stream, version)

    def __repr__(self):
        return "LocresDocument({}, version={})".format(list.__repr__(self), self.version.name)


# Decoder ---------------------------------------------------------------------
def read_string_table(file, offset, capabilities, start=0):
    """Read the shared string table at offset from start. Reference counts are discarded."""
    if offset < 0:
        raise TruncatedDataError("String table offset {} is negative".format(offset))
    file.seek(start + offset)

    count = readCount(file, "string table")
    strings = []
    for _ in range(count):
        strings.append(readUnrealString(file))
        if capabilities.has_refcounts:
            readInt32(file)
    return strings


def decode_locres(stream):
    """
    Decode a .locres document from a readable, seekable binary stream.

    The layout is detected from the magic header; a stream without it is
    read as Legacy from where it started. The string table offset is
    relative to that same position, as encode_locres writes it. Hashes,
    reference counts and the total entry count are skipped since they are
    recomputed on write.

    Args:
        stream: Binary stream positioned at the start of the .locres data.

    Returns:
        LocresDocument: The decoded document, tagged with its version.

    Raises:
        LocresError: on any malformed or truncated data. Nothing is returned
        for a file that fails part way.
    """
    if not stream.seekable():
        raise NotSeekableError("Stream must be seekable.")
    if not stream.readable():
        raise NotReadableError("Stream must be readable.")

    start = stream.tell()
    magic = stream.read(len(LOCRES_MAGIC))
    if magic == LOCRES_MAGIC:
        versionByte = readUByte(stream)
        try:
            version = LocresVersion(versionByte)
        except ValueError:
            raise UnrecognizedVersionError("Unrecognized .locres version byte {}".format(versionByte)) from None
    else:
        version = LocresVersion.Legacy
        stream.seek(start)

    capabilities = VERSION_CAPABILITIES[version]

    localizedStrings = None
    if capabilities.has_string_table:
        tableOffset = readInt64(stream)
        resumeOffset = stream.tell()
        localizedStrings = read_string_table(stream, tableOffset, capabilities, start)
        stream.seek(resumeOffset)

    if capabilities.has_entry_count:
        readInt32(stream)

    document = LocresDocument(version=version)
    namespaceCount = readCount(stream, "namespace")
    for _ in range(namespaceCount):
        if capabilities.has_hashes:
            readUInt32(stream)
        namespace = LocresNamespace(readUnrealString(stream))

        keyCount = readCount(stream, "key")
        for _ in range(keyCount):
            if capabilities.has_hashes:
                readUInt32(stream)
            key = readUnrealString(stream)
            sourceHash = readUInt32(stream)

            if capabilities.has_string_table:
                stringIndex = readInt32(stream)
                if not 0 <= stringIndex < len(localizedStrings):
                    raise MalformedIndexError(
                        "Key '{}' references string {} of {}".format(key, stringIndex, len(localizedStrings)))
                value = localizedStrings[stringIndex]
            else:
                value = readUnrealString(stream)

            namespace.append(LocresEntry(key, value, sourceHash))

        document.append(namespace)

    return document


def read_locres_file(locresFileName):
    with open(locresFileName, 'rb') as locresIn:
        return decode_locres(locresIn)


# Encoder ---------------------------------------------------------------------
class StringTable(object):
    """Unique localized strings in first-seen order with their reference counts."""

    def __init__(self):
        self.entries = []
        self._indexes = {}

    def add(self, text):
        index = self._indexes.get(text)
        if index is None:
            index = len(self.entries)
            self._indexes[text] = index
            self.entries.append([text, 1])
        else:
            self.entries[index][1] += 1
        return index

    def __len__(self):
        return len(self.entries)

    @classmethod
    def from_document(cls, document):
        table = cls()
        for namespace in document:
            for entry in namespace:
                table.add(entry.value)
        return table


def write_legacy_body(file, document):
    writeInt32(file, len(document))
    for namespace in document:
        # Legacy files always carry UTF-16 namespace names
        writeUnrealString(file, namespace.name, StringEncoding.FORCE_UNICODE)
        writeInt32(file, len(namespace))
        for entry in namespace:
            writeUnrealString(file, entry.key)
            writeSourceHash(file, entry)
            writeUnrealString(file, entry.value)


def write_indexed_body(file, document, capabilities, stringTable):
    """Write namespaces with table indexes instead of values. Returns the number of entries."""
    entryCount = 0
    writeInt32(file, len(document))
    for namespace in document:
        if capabilities.has_hashes:
            writeUInt32(file, capabilities.fingerprint(namespace.name))
        writeUnrealString(file, namespace.name)
        writeInt32(file, len(namespace))

        for entry in namespace:
            if capabilities.has_hashes:
                writeUInt32(file, capabilities.fingerprint(entry.key))
            writeUnrealString(file, entry.key)
            writeSourceHash(file, entry)
            writeInt32(file, stringTable.add(entry.value))
            entryCount += 1
    return entryCount


def write_string_table(file, stringTable, capabilities):
    writeInt32(file, len(stringTable))
    for text, refCount in stringTable.entries:
        writeUnrealString(file, text)
        if capabilities.has_refcounts:
            writeInt32(file, refCount)


def encode_locres_parts(document, version):
    """
    Serialize a document as a list of byte chunks to be written in order.

    The body goes to memory first so the string table offset and total entry
    count are known when the header is built; the output never needs a seek.
    """
    capabilities = VERSION_CAPABILITIES[version]

    body = io.BytesIO()
    if not capabilities.has_string_table:
        write_legacy_body(body, document)
        return [body.getvalue()]

    stringTable = StringTable()
    entryCount = write_indexed_body(body, document, capabilities, stringTable)

    table = io.BytesIO()
    write_string_table(table, stringTable, capabilities)

    headerSize = len(LOCRES_MAGIC) + 1 + 8
    if capabilities.has_entry_count:
        headerSize += 4

    header = io.BytesIO()
    header.write(LOCRES_MAGIC)
    writeUByte(header, version)
    writeInt64(header, headerSize + len(body.getbuffer()))
    if capabilities.has_entry_count:
        writeInt32(header, entryCount)

    return [header.getvalue(), body.getvalue(), table.getvalue()]


def encode_locres_bytes(document, version=None):
    version = document.version if version is None else parse_version(version)
    return b''.join(encode_locres_parts(document, version))


def encode_locres(document, stream, version=None):
    """
    Encode a document to a writable binary stream.

    Offsets in the header are relative to the first byte written. Nothing is
    written when the document cannot be encoded.

    Args:
        document (LocresDocument): Document to write.
        stream: Writable binary stream.
        version: Target layout, defaults to document.version.
    """
    if not stream.writable():
        raise NotWritableError("Stream must be writable.")

    version = document.version if version is None else parse_version(version)
    for chunk in encode_locres_parts(document, version):
        stream.write(chunk)


def write_locres_file(locresFileName, document, version=None):
    data = encode_locres_bytes(document, version)
    with open(locresFileName, 'wb') as locresOut:
        locresOut.write(data)
