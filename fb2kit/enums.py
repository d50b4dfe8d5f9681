"""Option enumerations used when converting books."""

from __future__ import annotations

import enum


class _LabeledEnum(enum.IntEnum):
    """Integer enum whose members carry a user-facing label."""

    def __new__(cls, value: int, label: str):
        obj = int.__new__(cls, value)
        obj._value_ = value
        obj.label = label
        return obj

    def __str__(self) -> str:
        return self.label


def _parse_label(cls, value):
    """Return the member of ``cls`` whose label matches ``value`` ignoring case."""
    wanted = str(value).casefold()
    for member in cls:
        if member.label.casefold() == wanted:
            return member
    raise ValueError(f"unsupported {cls.__name__} value: {value!r}")


class OutputFmt(_LabeledEnum):
    """Requested output format."""

    EPUB = 0, "epub"
    KEPUB = 1, "kepub"
    AZW3 = 2, "azw3"
    MOBI = 3, "mobi"

    @classmethod
    def parse(cls, value):
        """Return the output format named by ``value`` (case insensitive)."""
        return _parse_label(cls, value)


class NotesFmt(_LabeledEnum):
    """Presentation of notes."""

    DEFAULT = 0, "default"
    INLINE = 1, "inline"
    BLOCK = 2, "block"
    FLOAT = 3, "float"
    FLOAT_OLD = 4, "float-old"
    FLOAT_NEW = 5, "float-new"
    FLOAT_NEW_MORE = 6, "float-new-more"

    @classmethod
    def parse(cls, value):
        """Return the notes format named by ``value`` (case insensitive)."""
        return _parse_label(cls, value)


class TOCPlacement(_LabeledEnum):
    """Placement of the TOC page."""

    NONE = 0, "none"
    BEFORE = 1, "before"
    AFTER = 2, "after"

    @classmethod
    def parse(cls, value):
        """Return the TOC placement named by ``value`` (case insensitive)."""
        return _parse_label(cls, value)


class TOCType(_LabeledEnum):
    """Kind of generated TOC."""

    NORMAL = 0, "normal"
    KINDLE = 1, "kindle"
    FLAT = 2, "flat"

    @classmethod
    def parse(cls, value):
        """Return the TOC type named by ``value`` (case insensitive)."""
        return _parse_label(cls, value)


class APNXGeneration(_LabeledEnum):
    """Where to place the APNX page map (Kindle only)."""

    NONE = 0, "none"
    EINK = 1, "eink"
    APP = 2, "app"

    @classmethod
    def parse(cls, value):
        """Return the APNX option named by ``value`` (case insensitive)."""
        return _parse_label(cls, value)


class StampPlacement(_LabeledEnum):
    """How to stamp the cover."""

    NONE = 0, "none"
    TOP = 1, "top"
    MIDDLE = 2, "middle"
    BOTTOM = 3, "bottom"

    @classmethod
    def parse(cls, value):
        """Return the stamp placement named by ``value`` (case insensitive)."""
        return _parse_label(cls, value)


class CoverProcessing(_LabeledEnum):
    """How the cover image is resized."""

    NONE = 0, "none"
    KEEP_AR = 1, "keepAR"
    STRETCH = 2, "stretch"

    @classmethod
    def parse(cls, value):
        """Return the cover processing mode named by ``value`` (case insensitive)."""
        return _parse_label(cls, value)