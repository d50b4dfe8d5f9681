"""Extract a cover thumbnail from a MOBI/AZW3 book the way Kindle devices expect it."""

from __future__ import annotations

import io
import logging
from pathlib import Path

from PIL import Image, ImageOps

from .utils import (
    CRYPTO_TYPE,
    EXTH_ASIN,
    EXTH_CDE_CONTENT_KEY,
    EXTH_CDE_TYPE,
    EXTH_COVER_OFFSET,
    EXTH_KF8_OFFSET,
    EXTH_THUMB_OFFSET,
    FIRST_RESC_RECORD,
    JpegDPIUnits,
    get_int32,
    get_uint16,
    read_exth,
    read_section,
    set_jpeg_dpi,
)

log = logging.getLogger(__name__)

_ACR_ALPHABET = "- ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"


def _acr(header: bytes) -> bytes:
    text = bytes(header).decode("utf-8", errors="replace")
    return "".join(
        ch if ch in _ACR_ALPHABET else "_" for ch in text if ch != "\x00"
    ).encode("ascii")


def _decode(data: bytes) -> Image.Image | None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.copy()
    except (OSError, ValueError) as exc:
        log.debug("Unable to decode image: %s", exc)
        return None


def _encode_jpeg(img: Image.Image) -> bytes | None:
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buf = io.BytesIO()
    try:
        img.save(buf, format="JPEG", quality=75)
    except (OSError, ValueError) as exc:
        log.debug("Unable to encode thumbnail: %s", exc)
        return None
    data, _ = set_jpeg_dpi(buf.getvalue(), JpegDPIUnits.PX_PER_INCH, 300, 300)
    return data


def _first(values: list[bytes]) -> bytes | None:
    return values[0] if values else None


class Reader:
    """Parses a MOBI file and prepares a thumbnail of its cover."""

    def __init__(self, fname, width, height, stretch):
        self.fname = str(fname)
        self.width = width
        self.height = height
        self.stretch = bool(stretch)
        self.acr: bytes = b""
        self.asin: bytes = b""
        self.cdetype: bytes = b""
        self.cdekey: bytes = b""
        self.thumbnail: bytes = b""
        self._produce_thumbnail(Path(fname).read_bytes())

    def save_result(self, directory) -> bool:
        """Save the thumbnail into ``directory``; return False when there is nothing to save."""
        if not self.thumbnail:
            log.debug("Nothing to save - no cover or thumbnail extracted: %s", self.fname)
            return False

        asin = self.cdekey or self.asin
        if not asin:
            log.debug("Nothing to save - document has no ASIN: %s", self.fname)
            return False

        name = "thumbnail_" + asin.decode("utf-8", errors="replace") + "_" \
            + self.cdetype.decode("utf-8", errors="replace") + "_portrait.jpg"
        target = Path(directory) / name
        if target.exists():
            log.debug("Overwriting existing thumbnail %s", target)
        target.write_bytes(self.thumbnail)
        log.debug("Thumbnail created for %s: %s", self.fname, target)
        return True

    def _read_ids(self, rec0: bytes) -> None:
        asin = _first(read_exth(rec0, EXTH_ASIN))
        if asin is not None:
            self.asin = asin
        cdetype = _first(read_exth(rec0, EXTH_CDE_TYPE))
        if cdetype is not None:
            self.cdetype = cdetype
        cdekey = _first(read_exth(rec0, EXTH_CDE_CONTENT_KEY))
        if cdekey is not None:
            self.cdekey = cdekey

    def _produce_thumbnail(self, data: bytes) -> None:
        rec0 = read_section(data, 0)
        if get_uint16(rec0, CRYPTO_TYPE) != 0:
            log.debug("Encrypted book: %s", self.fname)
            return

        kf8, kfrec0 = 0, b""
        offsets = read_exth(rec0, EXTH_KF8_OFFSET)
        if offsets:
            # only the first KF8 offset matters - there should only be one
            kf8 = get_int32(offsets[0], 0)
            if kf8 >= 0:
                kfrec0 = read_section(data, kf8)
        combo = bool(kfrec0) and kf8 >= 0

        self.acr = _acr(data[:32])
        self._read_ids(rec0)

        first_image = get_int32(rec0, FIRST_RESC_RECORD)
        cover = _first(read_exth(rec0, EXTH_COVER_OFFSET))
        cover_index = get_int32(cover, 0) + first_image if cover is not None else -1
        thumb = _first(read_exth(rec0, EXTH_THUMB_OFFSET))
        thumb_index = get_int32(thumb, 0) + first_image if thumb is not None else -1

        if cover_index >= 0:
            self.thumbnail = self._make_thumbnail(data, cover_index, thumb_index) or b""

        if combo:
            # always prefer data from KF8
            self._read_ids(kfrec0)

    def _make_thumbnail(self, data: bytes, cover_index: int, thumb_index: int) -> bytes | None:
        img = _decode(read_section(data, thumb_index)) if thumb_index >= 0 else None
        if (
            img is not None
            and (img.width > self.width or img.height > self.height)
            and not self.stretch
        ):
            return _encode_jpeg(img)

        cover = _decode(read_section(data, cover_index))
        if cover is None:
            log.debug("Unable to decode extracted cover: %s", self.fname)
            return None
        fitted = ImageOps.fit(
            cover, (self.width, self.height), method=Image.Resampling.LANCZOS
        )
        return _encode_jpeg(fitted)