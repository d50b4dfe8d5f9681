"""Files produced during conversion and small file helpers."""

from __future__ import annotations

import enum
import os
import shutil
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field


class TransientFlags(enum.IntFlag):
    """Where a generated file must not be listed."""

    NONE = 0
    NOT_FOR_MANIFEST = 1
    NOT_FOR_SPINE = 2


@dataclass
class DataFile:
    """A file that needs saving: raw bytes or an XML document."""

    id: str = ""
    fname: str = ""
    relpath: str = ""
    transient: TransientFlags = TransientFlags.NONE
    ct: str = ""
    data: bytes = b""
    doc: ET.ElementTree | ET.Element | None = field(default=None, repr=False)

    def __str__(self) -> str:
        return f"<<id: {self.id}, fname: {self.fname}, relpath: {self.relpath}, ct: {self.ct}>>"

    def flush(self, path) -> None:
        """Write the file under ``path``/``relpath``; nothing happens when there is no content."""
        if not self.fname or (not self.data and self.doc is None):
            return

        directory = os.path.join(os.fspath(path), self.relpath)
        try:
            os.makedirs(directory, mode=0o700, exist_ok=True)
        except OSError as exc:
            raise OSError(f"unable to create content directory: {exc}") from exc

        target = os.path.join(directory, self.fname)
        if self.doc is not None:
            tree = self.doc if isinstance(self.doc, ET.ElementTree) else ET.ElementTree(self.doc)
            try:
                tree.write(target, encoding="UTF-8", xml_declaration=True)
            except OSError as exc:
                raise OSError(f"unable to flush XML content to {target}: {exc}") from exc
            return

        try:
            with open(target, "wb") as out:
                out.write(self.data)
        except OSError as exc:
            raise OSError(f"unable to save data to {target}: {exc}") from exc


_SUPPORTED_IMAGES = ("gif", "bmp", "jpeg", "png")


def is_image_supported(fmt) -> bool:
    """Return True if the image format needs no conversion."""
    kind = str(fmt).removeprefix(".").casefold()
    return kind in _SUPPORTED_IMAGES


def copy_file(src, dst) -> None:
    """Copy ``src`` to ``dst`` without any checks."""
    shutil.copyfile(src, dst)