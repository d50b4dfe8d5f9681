import io
import json
import struct
import uuid

import pytest
from PIL import Image

from fb2kit.mobi.splitter import Splitter
from fb2kit.mobi.utils import (
    EXTH_ASIN,
    EXTH_CDE_CONTENT_KEY,
    EXTH_CDE_TYPE,
    EXTH_COVER_OFFSET,
    EXTH_KF8_OFFSET,
    EXTH_START_READING,
    EXTH_THUMB_OFFSET,
    EXTH_THUMBNAIL_URI,
    FCIS_INDEX,
    FIRST_NON_TEXT,
    FIRST_RESC_RECORD,
    FLIS_INDEX,
    DATP_INDEX,
    HUFF_TABLE_OFFSET,
    KF8_FDST_INDEX,
    LAST_CONTENT_INDEX,
    MOBI_VERSION,
    NUMBER_OF_PDB_RECORDS,
    SRCS_COUNT,
    SRCS_INDEX,
    convert_to_radix32,
    get_int32,
    get_uint16,
    read_exth,
    read_section,
)

BOOK_ID = uuid.UUID("12345678-1234-5678-1234-567812345678")
ASIN = "TESTASIN00"


def _i32(value):
    return struct.pack(">i", value)


def _rec0(version=6, exth=(), ints=None, shorts=None, flags=None):
    header_len = 248
    body = bytearray(16 + header_len)
    struct.pack_into(">H", body, 0, 1)
    body[16:20] = b"MOBI"
    struct.pack_into(">i", body, 20, header_len)
    struct.pack_into(">i", body, MOBI_VERSION, version)
    values = {
        FIRST_NON_TEXT: 1,
        FIRST_RESC_RECORD: 1,
        SRCS_INDEX: -1,
        SRCS_COUNT: 0,
        FCIS_INDEX: -1,
        FLIS_INDEX: -1,
        DATP_INDEX: -1,
        HUFF_TABLE_OFFSET: -1,
    }
    values.update(ints or {})
    for offset, value in values.items():
        struct.pack_into(">i", body, offset, value)
    for offset, value in (shorts or {}).items():
        struct.pack_into(">H", body, offset, value)
    if flags is not None:
        struct.pack_into(">I", body, 0x80, flags)
    records = b"".join(struct.pack(">II", rid, 8 + len(p)) + p for rid, p in exth)
    block = b"EXTH" + struct.pack(">II", 12 + len(records), len(exth)) + records
    struct.pack_into(">i", body, 84, len(body) + len(block))
    return bytes(body) + block + b"Book"


def _pdb(sections, name=b"Test Book"):
    count = len(sections)
    header = bytearray(78)
    header[: len(name)] = name
    header[60:68] = b"BOOKMOBI"
    struct.pack_into(">I", header, 68, 2 * count - 1)
    struct.pack_into(">H", header, 76, count)
    table = bytearray()
    offset = 78 + 8 * count + 2
    for index, section in enumerate(sections):
        table += struct.pack(">II", offset, 2 * index)
        offset += len(section)
    return bytes(header) + bytes(table) + b"\x00\x00" + b"".join(sections)


def _page_section(page_map, offsets):
    pmstr = json.dumps({"description": "d", "pageMap": page_map}).encode()
    head = bytearray(0x14)
    head[:4] = b"PAGE"
    struct.pack_into(">H", head, 0x0A, 1)
    struct.pack_into(">i", head, 0x10, 0)
    tail = struct.pack(">HHHH", 0, len(pmstr), len(offsets), 32) + pmstr
    tail += b"".join(struct.pack(">i", o) for o in offsets)
    return bytes(head) + tail


def _jpeg(size):
    buf = io.BytesIO()
    Image.new("RGB", size, "red").save(buf, format="JPEG")
    return buf.getvalue()


def _write(tmp_path, sections, name="book.mobi"):
    path = tmp_path / name
    path.write_bytes(_pdb(sections))
    return path


def _combo_sections(kf_exth=(), page=None, rec0_ints=None):
    rec0 = _rec0(exth=[(EXTH_KF8_OFFSET, _i32(3))], ints=rec0_ints)
    middle = page if page is not None else b"more"
    kfrec0 = _rec0(version=8, exth=list(kf_exth))
    return [rec0, b"text" * 4, middle, kfrec0]


def test_combo_non_personal_adds_type_and_keys(tmp_path):
    kf_exth = [(EXTH_START_READING, _i32(1)), (EXTH_START_READING, _i32(2))]
    path = _write(tmp_path, _combo_sections(kf_exth))
    s = Splitter(path, BOOK_ID, ASIN, True, True, False)

    assert s.acr == b"Test Book"
    assert get_uint16(s.result, NUMBER_OF_PDB_RECORDS) == 4
    assert read_section(s.result, 1) == b"text" * 4

    rec0 = read_section(s.result, 0)
    assert read_exth(rec0, EXTH_CDE_TYPE) == [b"EBOK"]
    assert read_exth(rec0, EXTH_ASIN) == [ASIN.encode()]

    kf = read_section(s.result, 3)
    assert read_exth(kf, EXTH_START_READING) == [_i32(2)]
    assert read_exth(kf, EXTH_CDE_TYPE) == [b"EBOK"]
    assert read_exth(kf, EXTH_CDE_CONTENT_KEY) == [ASIN.encode()]
    assert s.cdetype == b"EBOK"


def test_combo_personal_keeps_records(tmp_path):
    path = _write(tmp_path, _combo_sections())
    s = Splitter(path, BOOK_ID, "", True, False, False)

    assert s.cdetype == b"PDOC"
    assert s.cdekey == convert_to_radix32(BOOK_ID.hex, 10)
    assert read_exth(read_section(s.result, 0), EXTH_CDE_TYPE) == []
    assert read_exth(read_section(s.result, 3), EXTH_CDE_TYPE) == []


def test_combo_nulls_srcs_sections(tmp_path):
    sections = _combo_sections(rec0_ints={SRCS_INDEX: 1, SRCS_COUNT: 1})
    path = _write(tmp_path, sections)
    s = Splitter(path, BOOK_ID, ASIN, True, False, False)

    assert read_section(s.result, 1) == b""
    assert read_section(s.result, 2) == b"more"
    rec0 = read_section(s.result, 0)
    assert get_int32(rec0, SRCS_INDEX) == -1
    assert get_int32(rec0, SRCS_COUNT) == 0


def test_combo_cover_without_thumbnail_uses_cover(tmp_path):
    kf_exth = [(EXTH_COVER_OFFSET, _i32(0))]
    path = _write(tmp_path, _combo_sections(kf_exth))
    s = Splitter(path, BOOK_ID, ASIN, True, False, False)

    kf = read_section(s.result, 3)
    assert read_exth(kf, EXTH_THUMB_OFFSET) == [_i32(0)]
    assert read_exth(kf, EXTH_THUMBNAIL_URI) == [b"kindle:embed:0000000000"]


def test_combo_thumbnail_resized(tmp_path):
    rec0 = _rec0(exth=[(EXTH_KF8_OFFSET, _i32(4))], ints={FIRST_RESC_RECORD: 2})
    kfrec0 = _rec0(
        version=8,
        exth=[(EXTH_COVER_OFFSET, _i32(0)), (EXTH_THUMB_OFFSET, _i32(1))],
    )
    sections = [rec0, b"text", _jpeg((600, 800)), _jpeg((60, 80)), kfrec0]
    path = _write(tmp_path, sections)
    s = Splitter(path, BOOK_ID, ASIN, True, False, False)

    with Image.open(io.BytesIO(read_section(s.result, 3))) as thumb:
        assert thumb.size == (330, 470)
    uri = read_exth(read_section(s.result, 4), EXTH_THUMBNAIL_URI)
    assert len(uri) == 1
    assert uri[0].startswith(b"kindle:embed:")


def test_page_map_round_trip(tmp_path):
    page = _page_section("(1,a,1)", [0, 100])
    path = _write(tmp_path, _combo_sections(page=page))
    s = Splitter(path, BOOK_ID, ASIN, True, True, False)

    data = s.pagedata
    assert struct.unpack_from(">HH", data, 0) == (1, 1)
    first, clen = struct.unpack_from(">II", data, 4)
    assert first == 12 + clen
    content = json.loads(data[12:12 + clen])
    assert content["contentGuid"] == BOOK_ID.hex[:8]
    assert content["asin"] == ASIN
    assert content["cdeType"] == "EBOK"

    pos = 12 + clen
    _, plen, count, bits = struct.unpack_from(">HHHH", data, pos)
    assert count == 2
    assert bits == 32
    page_header = json.loads(data[pos + 8:pos + 8 + plen])
    assert page_header == {"asin": ASIN, "pageMap": "(1,a,1)"}
    assert struct.unpack(">II", data[-8:]) == (0, 100)

    out = tmp_path / "out" / "book.azw3"
    out.parent.mkdir()
    s.save_page_map(out, True)
    assert (out.parent / "book.sdr" / "book.apnx").read_bytes() == data
    s.save_page_map(out, False)
    assert (out.parent / "book.apnx").read_bytes() == data


def _kf8_sections(kf_exth):
    rec0 = _rec0(
        exth=[(EXTH_KF8_OFFSET, _i32(3))],
        ints={FIRST_RESC_RECORD: 2},
        shorts={LAST_CONTENT_INDEX: 2},
    )
    kfrec0 = _rec0(
        version=8,
        exth=[(125, _i32(0))] + list(kf_exth),
        ints={FIRST_RESC_RECORD: 1, KF8_FDST_INDEX: 5},
        flags=0xFFFF0050,
    )
    return [rec0, b"text", b"IMG!", kfrec0, b"kf8 text"]


def test_kf8_moves_resources(tmp_path):
    path = _write(tmp_path, _kf8_sections([]))
    s = Splitter(path, BOOK_ID, ASIN, False, False, True)

    assert get_uint16(s.result, NUMBER_OF_PDB_RECORDS) == 3
    assert read_section(s.result, 1) == b"IMG!"
    assert read_section(s.result, 2) == b"kf8 text"

    kf = read_section(s.result, 0)
    assert get_int32(kf, KF8_FDST_INDEX) == 6
    assert get_int32(kf, FCIS_INDEX) == -1
    flags = struct.unpack_from(">I", kf, 0x80)[0]
    assert flags & 0xFFFFE000 == 0
    assert flags & 0x0800
    assert get_int32(read_exth(kf, 125)[0], 0) == 1
    assert read_exth(kf, EXTH_CDE_TYPE) == [b"PDOC"]
    assert read_exth(kf, EXTH_CDE_CONTENT_KEY) == [ASIN.encode()]
    assert read_exth(kf, EXTH_ASIN) == [ASIN.encode()]
    assert s.cdetype == b"PDOC"


def test_kf8_without_forced_asin(tmp_path):
    path = _write(tmp_path, _kf8_sections([]))
    s = Splitter(path, BOOK_ID, "", False, True, False)

    kf = read_section(s.result, 0)
    assert read_exth(kf, EXTH_ASIN) == []
    assert read_exth(kf, EXTH_CDE_TYPE) == [b"EBOK"]
    assert s.cdekey == convert_to_radix32(BOOK_ID.hex, 10)


def test_save_result_round_trip(tmp_path):
    path = _write(tmp_path, _kf8_sections([]))
    s = Splitter(path, BOOK_ID, ASIN, False, False, False)
    out = tmp_path / "result.azw3"
    s.save_result(out)
    assert out.read_bytes() == s.result


@pytest.mark.parametrize("combo", [True, False])
def test_version_eight_produces_nothing(tmp_path, combo):
    rec0 = _rec0(version=8, exth=[(EXTH_KF8_OFFSET, _i32(1))])
    path = _write(tmp_path, [rec0, _rec0(version=8)])
    s = Splitter(path, BOOK_ID, ASIN, combo, False, False)

    assert s.result == b""
    with pytest.raises(ValueError):
        s.save_result(tmp_path / "x.mobi")
    s.save_page_map(tmp_path / "x.mobi", False)
    assert not (tmp_path / "x.apnx").exists()


def test_missing_kf8_offset_produces_nothing(tmp_path):
    path = _write(tmp_path, [_rec0(), b"text"])
    s = Splitter(path, BOOK_ID, ASIN, True, False, False)
    assert s.result == b""


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        Splitter(tmp_path / "absent.mobi", BOOK_ID, ASIN, True, False, False)