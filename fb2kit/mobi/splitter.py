"""Split kindlegen output into a lean KF8 book or tidy a combo MOBI, and build its page map."""

from __future__ import annotations

import io
import json
import logging
import struct
import uuid
from pathlib import Path

from PIL import Image, ImageOps

from .utils import (
    DATP_INDEX,
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
    HUFF_TABLE_OFFSET,
    KF8_FDST_INDEX,
    LAST_CONTENT_INDEX,
    MOBI_VERSION,
    NUMBER_OF_PDB_RECORDS,
    SRCS_COUNT,
    SRCS_INDEX,
    JpegDPIUnits,
    add_exth,
    convert_to_radix32,
    del_exth,
    delete_section_range,
    get_int32,
    get_uint16,
    insert_section_range,
    null_section,
    put_int32,
    read_exth,
    read_section,
    set_jpeg_dpi,
    write_exth,
    write_section,
)

log = logging.getLogger(__name__)

_ACR_ALPHABET = "- ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
_THUMB_SIZE = (330, 470)
_EXTH_RESOURCE_COUNT = 125


def _sanitize_acr(header: bytes) -> bytes:
    text = bytes(header).decode("utf-8", errors="replace")
    kept = (ch if ch in _ACR_ALPHABET else "_" for ch in text if ch != "\x00")
    return "".join(kept).encode("ascii")


def _kf8_record(data: bytes, rec0: bytes) -> tuple[int, bytes]:
    kf8, kfrec0 = 0, b""
    offsets = read_exth(rec0, EXTH_KF8_OFFSET)
    if offsets:
        # only the first KF8 offset matters - there should only be one
        kf8 = get_int32(offsets[0], 0)
        if kf8 >= 0:
            kfrec0 = read_section(data, kf8)
    return kf8, kfrec0


def _find_page_data(data: bytes, rec0: bytes) -> bytes:
    first = get_int32(rec0, FIRST_NON_TEXT)
    count = get_uint16(data, NUMBER_OF_PDB_RECORDS)
    found = b""
    if first >= 0 and count > 0:
        for index in range(first, count):
            section = read_section(data, index)
            if section[:4] == b"PAGE":
                found = section
    return found


def _keep_last_start_reading(kfrec0: bytes) -> bytes:
    # KG 2.5 carries over the mobi7 Start Reading offset, which points at garbage in the mobi8 part
    for _ in range(len(read_exth(kfrec0, EXTH_START_READING)) - 1):
        kfrec0 = del_exth(kfrec0, EXTH_START_READING)
    return kfrec0


def _make_thumbnail(cover: bytes) -> bytes | None:
    try:
        with Image.open(io.BytesIO(cover)) as img:
            img.load()
            thumb = ImageOps.fit(img, _THUMB_SIZE, method=Image.Resampling.LANCZOS)
    except (OSError, ValueError):
        return None
    if thumb.mode not in ("RGB", "L"):
        thumb = thumb.convert("RGB")
    buf = io.BytesIO()
    try:
        thumb.save(buf, format="JPEG", quality=75)
    except (OSError, ValueError) as exc:
        log.error("Unable to encode processed thumbnail, skipping: %s", exc)
        return None
    data, added = set_jpeg_dpi(buf.getvalue(), JpegDPIUnits.PX_PER_INCH, 300, 300)
    if added:
        log.debug("Inserting JFIF APP0 marker segment into thumbnail")
    return data


def _thumbnail_uri(index: int) -> bytes:
    encoded = struct.pack("<I", index & 0xFFFFFFFF).hex()
    return b"kindle:embed:" + convert_to_radix32(encoded, 4)


class Splitter:
    """Post-processes a kindlegen MOBI file into the final book and APNX page map."""

    def __init__(self, fname, book_id, asin, combo, non_personal, force_asin):
        data = Path(fname).read_bytes()
        if not isinstance(book_id, uuid.UUID):
            book_id = uuid.UUID(str(book_id))

        self.combo: bool = bool(combo)
        self.content_guid: str = book_id.hex[:8]
        self.acr: bytes = b""
        self.asin: bytes = b""
        self.cdetype: bytes = b""
        self.cdekey: bytes = b""
        self.pagedata: bytes = b""
        self.result: bytes = b""

        ident = asin.encode() if asin else convert_to_radix32(book_id.hex, 10)
        if self.combo:
            self._produce_combo(data, ident, non_personal)
        else:
            self._produce_kf8(data, ident, non_personal, force_asin)

    def save_result(self, fname) -> None:
        """Write the processed book to ``fname``."""
        if not self.result:
            raise ValueError("nothing to save")
        Path(fname).write_bytes(self.result)

    def save_page_map(self, fname, eink) -> None:
        """Write the APNX page map next to ``fname`` (inside a .sdr directory for e-ink devices)."""
        if not self.result:
            log.debug("Page map does not exist, ignoring")
            return
        path = Path(fname)
        directory = path.parent
        base = path.stem
        if eink:
            directory = directory / (base + ".sdr")
            try:
                directory.mkdir(mode=0o700, parents=True, exist_ok=True)
            except OSError as exc:
                raise OSError(f"unable to create pagemap directory: {exc}") from exc
        (directory / (base + ".apnx")).write_bytes(self.pagedata)

    def _produce_combo(self, data: bytes, ident: bytes, non_personal: bool) -> None:
        rec0 = bytearray(read_section(data, 0))
        if get_int32(rec0, MOBI_VERSION) == 8:
            return
        kf8, kfrec0 = _kf8_record(data, rec0)
        if kf8 < 0 or not kfrec0:
            return

        self.acr = _sanitize_acr(data[:32])
        pdata = _find_page_data(data, rec0)

        result = bytes(data)
        srcs, count = get_int32(rec0, SRCS_INDEX), get_int32(rec0, SRCS_COUNT)
        if srcs >= 0 and count > 0:
            for index in range(srcs, srcs + count):
                result = null_section(result, index)
            put_int32(rec0, SRCS_INDEX, -1)
            put_int32(rec0, SRCS_COUNT, 0)

        asin = read_exth(rec0, EXTH_ASIN)
        self.asin = asin[0] if asin else ident
        rec0_out = bytes(rec0)
        if non_personal:
            rec0_out = add_exth(rec0_out, EXTH_CDE_TYPE, b"EBOK")
            if not asin:
                rec0_out = add_exth(rec0_out, EXTH_ASIN, self.asin)
        result = write_section(result, 0, rec0_out)

        kfrec0 = _keep_last_start_reading(kfrec0)
        first_image = get_int32(rec0_out, FIRST_RESC_RECORD)
        kfrec0, result = self._fix_thumbnail(data, result, kfrec0, first_image)

        cdekey = read_exth(kfrec0, EXTH_CDE_CONTENT_KEY)
        self.cdekey = cdekey[0] if cdekey else ident
        if non_personal:
            self.cdetype = b"EBOK"
            kfrec0 = add_exth(kfrec0, EXTH_CDE_TYPE, self.cdetype)
            if not cdekey:
                kfrec0 = add_exth(kfrec0, EXTH_CDE_CONTENT_KEY, self.cdekey)
        else:
            self.cdetype = b"PDOC"
        self.result = write_section(result, kf8, kfrec0)

        self._process_page_data(pdata)

    def _produce_kf8(self, data: bytes, ident: bytes, non_personal: bool, force_asin: bool) -> None:
        rec0 = read_section(data, 0)
        if get_int32(rec0, MOBI_VERSION) == 8:
            return
        kf8, kfrec0 = _kf8_record(data, rec0)
        if kf8 < 0 or not kfrec0:
            return

        asin = read_exth(rec0, EXTH_ASIN)
        self.asin = asin[0] if asin else ident
        self.acr = _sanitize_acr(data[:32])
        pdata = _find_page_data(data, rec0)

        first_image = get_int32(rec0, FIRST_RESC_RECORD)
        last_image = get_uint16(rec0, LAST_CONTENT_INDEX)
        shift = last_image - first_image + 1

        result = delete_section_range(data, 0, kf8 - 1)
        target = get_int32(kfrec0, FIRST_RESC_RECORD)
        result = insert_section_range(data, first_image, last_image, result, target)
        kfrec0 = read_section(result, 0)

        kfrec0 = _keep_last_start_reading(kfrec0)
        kfrec0 = write_exth(kfrec0, _EXTH_RESOURCE_COUNT, put_int32(None, 0, shift))

        # reset header flags: keep low 13 bits, mark resources as shared
        flags = struct.unpack_from(">I", kfrec0, 0x80)[0]
        flags = (flags & 0x1FFF) | 0x0800
        kfrec0 = bytearray(kfrec0[:0x80] + struct.pack(">I", flags) + kfrec0[0x84:])

        for offset in (KF8_FDST_INDEX, FCIS_INDEX, FLIS_INDEX, DATP_INDEX, HUFF_TABLE_OFFSET):
            value = get_int32(kfrec0, offset)
            if value >= 0:
                put_int32(kfrec0, offset, value + shift)

        kfrec0, result = self._fix_thumbnail(data, result, bytes(kfrec0), target)

        self.cdetype = b"EBOK" if non_personal else b"PDOC"
        kfrec0 = add_exth(kfrec0, EXTH_CDE_TYPE, self.cdetype)
        cdetype = read_exth(kfrec0, EXTH_CDE_TYPE)
        if cdetype:
            self.cdetype = cdetype[0]

        cdekey = read_exth(kfrec0, EXTH_CDE_CONTENT_KEY)
        if cdekey:
            self.cdekey = cdekey[0]
        else:
            self.cdekey = ident
            kfrec0 = add_exth(kfrec0, EXTH_CDE_CONTENT_KEY, self.cdekey)
        if force_asin and not read_exth(kfrec0, EXTH_ASIN):
            kfrec0 = add_exth(kfrec0, EXTH_ASIN, self.cdekey)
        self.result = write_section(result, 0, kfrec0)

        self._process_page_data(pdata)

    def _fix_thumbnail(
        self, data: bytes, result: bytes, kfrec0: bytes, base: int
    ) -> tuple[bytes, bytes]:
        covers = read_exth(kfrec0, EXTH_COVER_OFFSET)
        cover_index = get_int32(covers[0], 0) + base if covers else -1
        thumbs = read_exth(kfrec0, EXTH_THUMB_OFFSET)
        thumb_index = get_int32(thumbs[0], 0) + base if thumbs else -1

        if cover_index < 0:
            return kfrec0, result

        if thumb_index >= 0:
            thumb = _make_thumbnail(read_section(data, cover_index))
            if thumb is not None:
                result = write_section(result, thumb_index, thumb)
        else:
            # old trick: point the thumbnail at the cover image as a last resort
            kfrec0 = add_exth(kfrec0, EXTH_THUMB_OFFSET, covers[0])
            thumb_index = cover_index

        if read_exth(kfrec0, EXTH_THUMBNAIL_URI):
            kfrec0 = del_exth(kfrec0, EXTH_THUMBNAIL_URI)
        kfrec0 = add_exth(kfrec0, EXTH_THUMBNAIL_URI, _thumbnail_uri(thumb_index - base))
        return kfrec0, result

    def _process_page_data(self, data: bytes) -> None:
        if not data:
            return

        # some kindlegen versions add an extra header word; the version field accounts for it
        ver = get_uint16(data, 0x0A)
        revlen = get_int32(data, 0x10 + (ver - 1) * 4)
        ofs = 0x14 + (ver - 1) * 4 + revlen
        pmlen = get_uint16(data, ofs + 2)
        pmnn = get_uint16(data, ofs + 4)
        pmbits = get_uint16(data, ofs + 6)
        pmstr = data[ofs + 8:ofs + 8 + pmlen]
        pmoff = data[ofs + 8 + pmlen:]

        read_word, word_size = (get_uint16, 2) if pmbits == 16 else (get_int32, 4)
        offsets = [read_word(pmoff, i * word_size) for i in range(pmnn)]

        try:
            parsed = json.loads(pmstr)
            if parsed is None:
                parsed = {}
            if not isinstance(parsed, dict):
                raise ValueError("page map data is not an object")
            page_map = parsed.get("pageMap", "")
            if page_map is None:
                page_map = ""
            if not isinstance(page_map, str):
                raise ValueError("pageMap is not a string")
        except ValueError as exc:
            log.warning("Unable to parse page map data, ignoring: %s", exc)
            return

        asin = self.cdekey or self.asin
        guid = self.content_guid.encode()
        if self.combo:
            content_header = (
                b'{"contentGuid":"' + guid + b'","asin":"' + asin
                + b'","cdeType":"' + self.cdetype + b'","fileRevisionId":"1"}'
            )
        else:
            content_header = (
                b'{"contentGuid":"' + guid + b'","asin":"' + asin
                + b'","cdeType":"' + self.cdetype
                + b'","format":"MOBI_8","fileRevisionId":"1","acr":"' + self.acr + b'"}'
            )
        page_header = b'{"asin":"' + asin + b'","pageMap":"' + page_map.encode() + b'"}'

        out = bytearray()
        out += struct.pack(">HHII", 1, 1, (12 + len(content_header)) & 0xFFFFFFFF, len(content_header))
        out += content_header
        out += struct.pack(
            ">HHHH", 1, len(page_header) & 0xFFFF, pmnn & 0xFFFF, 32
        )
        out += page_header
        for value in offsets:
            out += struct.pack(">I", value & 0xFFFFFFFF)
        self.pagedata = bytes(out)