import io

import pytest
from PIL import Image

from fb2kit.jpegquality import JPEGQualityError, quality_from_bytes, quality_from_stream

STD_LUMINANCE = bytes([
    16, 11, 12, 14, 12, 10, 16, 14,
    13, 14, 18, 17, 16, 19, 24, 40,
    26, 24, 22, 22, 24, 49, 35, 37,
    29, 40, 58, 51, 61, 60, 57, 51,
    56, 55, 64, 72, 92, 78, 64, 68,
    87, 69, 55, 56, 80, 109, 81, 87,
    95, 98, 103, 104, 103, 62, 77, 113,
    121, 112, 100, 120, 92, 101, 103, 99,
])


def dqt_image(table: bytes, index: int = 0) -> bytes:
    return b"\xff\xd8\xff\xdb\x00\x43" + bytes([index]) + table + b"\xff\xd9"


def encode(quality: int) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (16, 16), (120, 30, 200)).save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


@pytest.mark.parametrize("quality", [50, 75, 90])
def test_pillow_round_trip(quality):
    assert abs(quality_from_bytes(encode(quality)) - quality) <= 1


def test_all_ones_table_is_100():
    assert quality_from_bytes(dqt_image(b"\x01" * 64)) == 100


def test_pillow_top_quality():
    assert quality_from_bytes(encode(100)) == 100


def test_standard_table_is_50():
    assert quality_from_bytes(dqt_image(STD_LUMINANCE)) == 50


def test_stream_rewound_before_reading():
    data = encode(75)
    stream = io.BytesIO(data)
    stream.seek(10)
    assert quality_from_stream(stream) == quality_from_bytes(data)


def test_empty_data():
    with pytest.raises(JPEGQualityError):
        quality_from_bytes(b"")


def test_bad_header():
    with pytest.raises(JPEGQualityError, match="invalid JPEG header"):
        quality_from_bytes(b"\x00\x00\x00\x00")


def test_no_quantization_table():
    with pytest.raises(JPEGQualityError):
        quality_from_bytes(b"\xff\xd8\xff\xd9")


def test_short_segment():
    with pytest.raises(JPEGQualityError, match="short segment length"):
        quality_from_bytes(b"\xff\xd8\xff\xe0\x00\x01")


def test_wrong_table_size():
    with pytest.raises(JPEGQualityError, match="wrong size"):
        quality_from_bytes(b"\xff\xd8\xff\xdb\x00\x05\x00\x01\x02")


def test_truncated_table():
    data = b"\xff\xd8\xff\xdb\x00\x43\x00" + b"\x01" * 9
    with pytest.raises(JPEGQualityError, match="too short"):
        quality_from_bytes(data)


def test_chrominance_only_then_eof():
    with pytest.raises(JPEGQualityError):
        quality_from_bytes(b"\xff\xd8\xff\xdb\x00\x43\x01" + b"\x02" * 64)