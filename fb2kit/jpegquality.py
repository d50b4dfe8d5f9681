"""Estimate the quality setting a JPEG image was encoded with."""

from __future__ import annotations

import io
import math
from typing import BinaryIO

_DQT_MARKER = 0xDB

# Sample quantization tables from the JPEG specification, in zigzag order.
_STD_LUMINANCE = (
    16, 11, 12, 14, 12, 10, 16, 14,
    13, 14, 18, 17, 16, 19, 24, 40,
    26, 24, 22, 22, 24, 49, 35, 37,
    29, 40, 58, 51, 61, 60, 57, 51,
    56, 55, 64, 72, 92, 78, 64, 68,
    87, 69, 55, 56, 80, 109, 81, 87,
    95, 98, 103, 104, 103, 62, 77, 113,
    121, 112, 100, 120, 92, 101, 103, 99,
)

_STD_CHROMINANCE = (
    17, 18, 18, 24, 21, 24, 47, 26,
    26, 47, 99, 66, 56, 66, 99, 99,
) + (99,) * 48

_DEFAULT_TABLES = (_STD_LUMINANCE, _STD_CHROMINANCE)


class JPEGQualityError(ValueError):
    """Raised when the JPEG data cannot be analysed."""


def _scale(value: int, reference: int) -> float:
    if reference == 0:
        return math.inf if value else math.nan
    return 100.0 * value / reference


def _read_marker(stream: BinaryIO) -> int:
    while True:
        mark = stream.read(2)
        if len(mark) < 2:
            return 0
        if mark[0] != 0xFF or mark[1] in (0xFF, 0x00):
            continue
        return 0xFF00 | mark[1]


def _quality_from_dqt(buf: bytes) -> int | None:
    size = len(buf)
    all_ones = True
    cumsf = 0.0
    reference: tuple[int, ...] = (0,) * 64
    pos = 0
    while pos < size:
        index = buf[pos] & 0x0F
        pos += 1
        if index < 2:
            reference = _DEFAULT_TABLES[index]
        if pos + 64 > size:
            raise JPEGQualityError("section DQT is too short")
        for ref, value in zip(reference, buf[pos:pos + 64]):
            cumsf += _scale(value, ref)
            if value != 1:
                all_ones = False
        pos += 64

        cumsf /= 64.0
        if all_ones:
            quality = 100.0
        elif cumsf <= 100.0:
            quality = (200.0 - cumsf) / 2.0
        else:
            quality = 5000.0 / cumsf

        if index == 0:
            if not math.isfinite(quality):
                raise JPEGQualityError("wrong size for quantization table")
            return int(quality + 0.5)
    return None


def quality_from_stream(stream: BinaryIO) -> int:
    """Return the estimated quality of the JPEG in a seekable binary stream."""
    stream.seek(0)
    sign = stream.read(2)
    if not sign:
        raise JPEGQualityError("invalid JPEG header")
    if len(sign) < 2:
        sign += b"\x00"
    if sign[0] != 0xFF and sign[1] != 0xD8:
        raise JPEGQualityError("invalid JPEG header")

    while True:
        mark = _read_marker(stream)
        if mark == 0:
            raise JPEGQualityError("invalid JPEG header")

        header = stream.read(2)
        if len(header) < 2:
            raise JPEGQualityError("unexpected end of JPEG data")
        length = ((header[0] << 8) | header[1]) - 2
        if length < 0:
            raise JPEGQualityError("short segment length")

        if mark & 0xFF != _DQT_MARKER:
            stream.seek(length, io.SEEK_CUR)
            continue

        if length % 65:
            raise JPEGQualityError("wrong size for quantization table")

        table = stream.read(length)
        if length and not table:
            raise JPEGQualityError("unexpected end of JPEG data")

        quality = _quality_from_dqt(table)
        if quality is not None:
            return quality


def quality_from_bytes(data: bytes) -> int:
    """Return the estimated quality of the JPEG held in ``data``."""
    return quality_from_stream(io.BytesIO(data))