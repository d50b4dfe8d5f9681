"""Low-level helpers for reading and rewriting PalmDB/MOBI containers."""

from __future__ import annotations

import enum
import struct

# PDB header offsets
UNIQUE_ID_SEED = 68
NUMBER_OF_PDB_RECORDS = 76
BOOK_LENGTH = 4
BOOK_RECORD_COUNT = 8
FIRST_PDB_RECORD = 78

# Record 0 offsets
LENGTH_OF_BOOK = 4
CRYPTO_TYPE = 12
MOBI_HEADER_BASE = 16
MOBI_HEADER_LENGTH = 20
MOBI_TYPE = 24
MOBI_VERSION = 36
FIRST_NON_TEXT = 80
TITLE_OFFSET = 84
FIRST_RESC_RECORD = 108
FIRST_CONTENT_INDEX = 192
LAST_CONTENT_INDEX = 194
KF8_FDST_INDEX = 192
FCIS_INDEX = 200
FLIS_INDEX = 208
SRCS_INDEX = 224
SRCS_COUNT = 228
PRIMARY_INDEX = 244
DATP_INDEX = 256
HUFF_OFFSET = 112
HUFF_TABLE_OFFSET = 120

# EXTH records of interest
EXTH_ASIN = 113
EXTH_START_READING = 116
EXTH_KF8_OFFSET = 121
EXTH_COVER_OFFSET = 201
EXTH_THUMB_OFFSET = 202
EXTH_THUMBNAIL_URI = 129
EXTH_CDE_TYPE = 501
EXTH_CDE_CONTENT_KEY = 504

_RADIX32_ALPHABET = b"0123456789ABCDEFGHJKMNPQRSTVWXYZ"

_APP0_MARKER = b"\xff\xe0"
_JFIF = b"JFIF\x00\x01\x02"


class JpegDPIUnits(enum.IntEnum):
    """Units of the density fields in a JFIF APP0 segment."""

    NO_UNITS = 0
    PX_PER_INCH = 1
    PX_PER_CM = 2


def _u32(value: int) -> bytes:
    return struct.pack(">I", value & 0xFFFFFFFF)


def _u16(value: int) -> bytes:
    return struct.pack(">H", value & 0xFFFF)


def convert_to_radix32(hex_id: str, minimum: int) -> bytes:
    """Encode a hexadecimal number in base 32, left-padded with zeros to ``minimum``."""
    number = int(hex_id, 16)
    if number == 0:
        return b"0000000000"
    negative = number < 0
    number = abs(number)

    digits = bytearray()
    while number > 0:
        number, mod = divmod(number, 32)
        digits.append(_RADIX32_ALPHABET[mod])
    if len(digits) < minimum:
        digits.extend(b"0" * (minimum - len(digits)))
    if negative:
        digits.append(ord("-"))
    digits.reverse()
    return bytes(digits)


def get_uint16(data: bytes, offset: int) -> int:
    """Read a big-endian unsigned 16-bit integer."""
    return struct.unpack_from(">H", data, offset)[0]


def get_int32(data: bytes, offset: int) -> int:
    """Read a big-endian signed 32-bit integer."""
    return struct.unpack_from(">i", data, offset)[0]


def put_int32(data: bytearray | None, offset: int, value: int) -> bytes:
    """Encode ``value`` as big-endian 32 bits, storing it into ``data`` at ``offset`` if ``data`` is not empty."""
    encoded = _u32(value)
    if data:
        data[offset:offset + 4] = encoded
    return encoded


def get_section_addr(data: bytes, secno: int) -> tuple[int, int]:
    """Return ``(start, end)`` byte offsets of section ``secno``."""
    nsec = get_uint16(data, NUMBER_OF_PDB_RECORDS)
    if secno < 0 or secno >= nsec:
        raise IndexError(f"secno {secno} is out of range [0, {nsec}]")
    start = get_int32(data, FIRST_PDB_RECORD + secno * 8)
    if secno == nsec - 1:
        end = len(data)
    else:
        end = get_int32(data, FIRST_PDB_RECORD + (secno + 1) * 8)
    return start, end


def _exth_params(rec0: bytes) -> tuple[int, int, int]:
    ebase = MOBI_HEADER_BASE + get_int32(rec0, MOBI_HEADER_LENGTH)
    return ebase, get_int32(rec0, ebase + 4), get_int32(rec0, ebase + 8)


def read_exth(rec0: bytes, recnum: int) -> list[bytes]:
    """Return the payloads of every EXTH record with id ``recnum``."""
    values: list[bytes] = []
    ebase, _, count = _exth_params(rec0)
    pos = ebase + 12
    for _ in range(max(count, 0)):
        exth_id = get_int32(rec0, pos)
        exth_len = get_int32(rec0, pos + 4)
        if exth_id == recnum:
            values.append(bytes(rec0[pos + 8:pos + exth_len]))
        pos += exth_len
    return values


def write_exth(rec0: bytes, recnum: int, data: bytes) -> bytes:
    """Replace the payload of the first EXTH record ``recnum``; return ``rec0`` unchanged if absent."""
    ebase, elen, count = _exth_params(rec0)
    pos = ebase + 12
    for _ in range(max(count, 0)):
        old_len = get_int32(rec0, pos + 4)
        if get_int32(rec0, pos) == recnum:
            dif = len(data) + 8 - old_len
            head = bytearray(rec0)
            if dif != 0:
                put_int32(head, TITLE_OFFSET, get_int32(head, TITLE_OFFSET) + dif)
            return b"".join((
                bytes(head[:ebase + 4]),
                _u32(elen + dif),
                _u32(count),
                bytes(rec0[ebase + 12:pos + 4]),
                _u32(len(data) + 8),
                bytes(data),
                bytes(rec0[pos + old_len:]),
            ))
        pos += old_len
    return bytes(rec0)


def add_exth(rec0: bytes, num: int, data: bytes) -> bytes:
    """Insert a new EXTH record ``num`` in front of the existing ones."""
    ebase, elen, count = _exth_params(rec0)
    size = 8 + len(data)
    out = bytearray()
    out += rec0[:ebase + 4]
    out += _u32(elen + size)
    out += _u32(count + 1)
    out += _u32(num)
    out += _u32(size)
    out += data
    out += rec0[ebase + 12:]
    put_int32(out, TITLE_OFFSET, get_int32(out, TITLE_OFFSET) + size)
    return bytes(out)


def del_exth(rec0: bytes, recnum: int) -> bytes:
    """Delete the first EXTH record ``recnum``; return ``rec0`` unchanged if absent."""
    ebase, elen, count = _exth_params(rec0)
    pos = ebase + 12
    for _ in range(max(count, 0)):
        size = get_int32(rec0, pos + 4)
        if get_int32(rec0, pos) == recnum:
            buf = bytearray(rec0)
            put_int32(buf, TITLE_OFFSET, get_int32(buf, TITLE_OFFSET) - size)
            buf = buf[:pos] + buf[pos + size:]
            return b"".join((
                bytes(buf[:ebase + 4]),
                _u32(elen - size),
                _u32(count - 1),
                bytes(buf[ebase + 12:]),
            ))
        pos += size
    return bytes(rec0)


def read_section(data: bytes, secno: int) -> bytes:
    """Return the contents of section ``secno``."""
    start, end = get_section_addr(data, secno)
    return bytes(data[start:end])


def _record_entry(data: bytes, index: int) -> tuple[int, int]:
    base = FIRST_PDB_RECORD + index * 8
    return get_int32(data, base), get_int32(data, base + 4)


def _padding(size: int) -> bytes:
    return b"\x00" * size if size > 0 else b""


def null_section(data: bytes, secno: int) -> bytes:
    """Make section ``secno`` zero-length without removing it from the record table."""
    nsec = get_uint16(data, NUMBER_OF_PDB_RECORDS)
    secstart, secend = get_section_addr(data, secno)
    zerosecstart, _ = get_section_addr(data, 0)
    dif = secend - secstart

    out = bytearray(data[:FIRST_PDB_RECORD])
    for i in range(nsec):
        ofs, flags = _record_entry(data, i)
        out += _u32(ofs if i <= secno else ofs - dif)
        out += _u32(flags)
    out += _padding(zerosecstart - (FIRST_PDB_RECORD + 8 * nsec))
    out += data[zerosecstart:secstart]
    out += data[secend:]
    return bytes(out)


def write_section(data: bytes, secno: int, secdata: bytes) -> bytes:
    """Replace section ``secno`` with ``secdata``, shifting later sections as needed."""
    nsec = get_uint16(data, NUMBER_OF_PDB_RECORDS)
    secstart, secend = get_section_addr(data, secno)
    zerosecstart, _ = get_section_addr(data, 0)
    dif = len(secdata) - (secend - secstart)

    out = bytearray(data[:UNIQUE_ID_SEED])
    out += _u32(2 * nsec + 1)
    out += data[UNIQUE_ID_SEED + 4:NUMBER_OF_PDB_RECORDS]
    out += _u16(nsec)
    for i in range(secno):
        ofs, flags = _record_entry(data, i)
        out += _u32(ofs) + _u32(flags)
    out += _u32(secstart) + _u32(2 * secno)
    for i in range(secno + 1, nsec):
        ofs, flags = _record_entry(data, i)
        out += _u32(ofs + dif) + _u32(flags)
    out += _padding(zerosecstart - (FIRST_PDB_RECORD + 8 * nsec))
    out += data[zerosecstart:secstart]
    out += secdata
    out += data[secend:]
    return bytes(out)


def delete_section_range(data: bytes, firstsec: int, lastsec: int) -> bytes:
    """Remove sections ``firstsec`` through ``lastsec`` inclusive."""
    firstsecstart, _ = get_section_addr(data, firstsec)
    _, lastsecend = get_section_addr(data, lastsec)
    zerosecstart, _ = get_section_addr(data, 0)
    removed = lastsec - firstsec + 1
    dif = lastsecend - firstsecstart + 8 * removed
    nsec = get_uint16(data, NUMBER_OF_PDB_RECORDS)

    out = bytearray(data[:UNIQUE_ID_SEED])
    out += _u32(2 * (nsec - removed) + 1)
    out += data[UNIQUE_ID_SEED + 4:NUMBER_OF_PDB_RECORDS]
    out += _u16(nsec - removed)
    newstart = zerosecstart - 8 * removed

    for i in range(firstsec):
        ofs, flags = _record_entry(data, i)
        out += _u32(ofs - 8 * removed) + _u32(flags)
    for i in range(lastsec + 1, nsec):
        ofs, _ = _record_entry(data, i)
        out += _u32(ofs - dif) + _u32(2 * (i - removed))
    out += _padding(newstart - (FIRST_PDB_RECORD + 8 * (nsec - removed)))
    out += data[zerosecstart:firstsecstart]
    out += data[lastsecend:]
    return bytes(out)


def insert_section_range(
    datasrc: bytes, firstsec: int, lastsec: int, datadst: bytes, targetsec: int
) -> bytes:
    """Insert sections ``firstsec``..``lastsec`` of ``datasrc`` into ``datadst`` before section ``targetsec``."""
    nsec = get_uint16(datadst, NUMBER_OF_PDB_RECORDS)
    zerosecstart, _ = get_section_addr(datadst, 0)
    insstart, _ = get_section_addr(datadst, targetsec)
    nins = lastsec - firstsec + 1
    srcstart, _ = get_section_addr(datasrc, firstsec)
    _, srcend = get_section_addr(datasrc, lastsec)
    newstart = zerosecstart + 8 * nins

    out = bytearray(datadst[:UNIQUE_ID_SEED])
    out += _u32(2 * (nsec + nins) + 1)
    out += datadst[UNIQUE_ID_SEED + 4:NUMBER_OF_PDB_RECORDS]
    out += _u16(nsec + nins)

    for i in range(targetsec):
        ofs, flags = _record_entry(datadst, i)
        out += _u32(ofs + 8 * nins) + _u32(flags)
    for i in range(nins):
        isrcstart, _ = get_section_addr(datasrc, firstsec + i)
        out += _u32(insstart + (isrcstart - srcstart) + 8 * nins)
        out += _u32(2 * (targetsec + i))
    dif = srcend - srcstart
    for i in range(targetsec, nsec):
        ofs, _ = _record_entry(datadst, i)
        out += _u32(ofs + dif + 8 * nins) + _u32(2 * (i + nins))
    out += _padding(newstart - (FIRST_PDB_RECORD + 8 * (nsec + nins)))
    out += datadst[zerosecstart:insstart]
    out += datasrc[srcstart:srcend]
    out += datadst[insstart:]
    return bytes(out)


def set_jpeg_dpi(
    data: bytes, units: JpegDPIUnits | int, xdensity: int, ydensity: int
) -> tuple[bytes, bool]:
    """Insert a JFIF APP0 segment with the given density unless one is present.

    Returns the resulting image data and whether a segment was added.
    """
    if bytes(data[2:4]) == _APP0_MARKER:
        return bytes(data), False
    segment = b"".join((
        _APP0_MARKER,
        _u16(0x10),
        _JFIF,
        struct.pack(">B", int(units) & 0xFF),
        _u16(xdensity),
        _u16(ydensity),
        _u16(0),
    ))
    return bytes(data[:2]) + segment + bytes(data[2:]), True