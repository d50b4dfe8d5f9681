# fb2kit

Building blocks for turning FictionBook content into EPUB, KEPUB and Kindle
(MOBI/AZW3) books: hyphenation, JPEG quality detection, MOBI record
manipulation, Kindle post-processing and EPUB packaging.

## What is inside

- `fb2kit.trie` — `Trie`, a character-indexed trie. Besides plain strings
  (`add_string`, `add_value`, `remove`, `contains`, `get_value`, `members`,
  `size`) it stores TeX hyphenation patterns such as `hy3phe2n5a4t2io2n`
  (`add_pattern_string`) and finds every member that is a prefix of a string
  (`all_substrings`, `all_substrings_and_values`, the latter returning
  `(prefix, value)` pairs). `get_value` raises `KeyError` for absent strings.
- `fb2kit.hyphenator` — `Hyphenator`, TeX-style hyphenation. `load_dictionary`
  takes a language name plus pattern and exception lines (a string or any
  iterable of lines, such as an open text file); `hyphenate` inserts the given
  hyphen string at every allowed break. Words listed as exceptions are
  hyphenated as the exception list says. Calling `hyphenate` before any
  dictionary is loaded raises `RuntimeError`.
- `fb2kit.jpegquality` — `quality_from_bytes` and `quality_from_stream`
  estimate the quality level a JPEG was saved with from its luminance
  quantization table. Malformed data raises `JPEGQualityError`
  (a `ValueError`).
- `fb2kit.mobi.utils` — low-level PalmDB/MOBI helpers: reading, writing,
  nulling, deleting and inserting sections; reading, adding, replacing and
  deleting EXTH records; `convert_to_radix32`; and `set_jpeg_dpi`, which
  inserts a JFIF APP0 segment (units from `JpegDPIUnits`) when an image lacks
  one.
- `fb2kit.mobi.splitter` — `Splitter(fname, book_id, asin, combo,
  non_personal, force_asin)` post-processes a combined MOBI file produced by a
  Kindle compiler. With `combo=True` it keeps the combined book, drops source
  records and fixes identifiers; with `combo=False` it extracts a standalone
  KF8 (AZW3) book. It regenerates the cover thumbnail (330×470) and builds an
  APNX page map when the file carries page data. `save_result` writes the book
  (raising `ValueError` when nothing was produced) and `save_page_map` writes
  `<name>.apnx`, inside `<name>.sdr/` when `eink` is true.
- `fb2kit.mobi.reader` — `Reader(fname, width, height, stretch)` prepares a
  cover thumbnail of a Kindle book; `save_result(directory)` writes it as
  `thumbnail_<ASIN>_<type>_portrait.jpg` and returns whether anything was
  written. Encrypted books are left alone.
- `fb2kit.enums` — option enums `OutputFmt`, `NotesFmt`, `TOCPlacement`,
  `TOCType`, `APNXGeneration`, `StampPlacement` and `CoverProcessing`. Each has
  a case-insensitive `parse` classmethod that raises `ValueError` for unknown
  names; `str()` of a member gives its label (for example `"float-new"`).
- `fb2kit.files` — `DataFile`, a generated file holding either bytes or an
  `xml.etree.ElementTree` document, with `flush(path)` writing it under
  `path/relpath`; `TransientFlags`; `copy_file`; and `is_image_supported`,
  true for gif, bmp, jpeg and png.
- `fb2kit.epub` — `write_epub(tmp_dir, fname)` zips a prepared working
  directory with the `mimetype` entry stored first and uncompressed (files
  lying directly in the directory are otherwise left out);
  `finalize_epub(tmp_dir, fname, overwrite)` also creates the output directory
  and refuses to replace an existing file unless `overwrite` is true
  (`FileExistsError`).

## Installation

```
pip install fb2kit
```

## Examples

Hyphenation (the dictionary files are not included with the package):

```python
from fb2kit.hyphenator import Hyphenator

h = Hyphenator()
with open("hyph-en-us.pat.txt", encoding="utf-8") as pat, \
     open("hyph-en-us.hyp.txt", encoding="utf-8") as exc:
    h.load_dictionary("en-us", pat, exc)

print(h.hyphenate("Formatting issues", "\u00ad"))
```

JPEG quality:

```python
from fb2kit.jpegquality import quality_from_bytes

with open("cover.jpg", "rb") as f:
    print(quality_from_bytes(f.read()))
```

Option parsing:

```python
from fb2kit.enums import OutputFmt, NotesFmt

OutputFmt.parse("EPUB")        # OutputFmt.EPUB
str(NotesFmt.FLOAT_NEW)        # "float-new"
```

Post-processing Kindle compiler output into an AZW3 book with a page map:

```python
import uuid
from fb2kit.mobi.splitter import Splitter

s = Splitter("book.mobi", uuid.uuid4(), "", False, True, False)
s.save_result("book.azw3")
s.save_page_map("book.azw3", True)
```

Packing an EPUB from a prepared directory (containing `mimetype`,
`META-INF/` and `OEBPS/`):

```python
from fb2kit.epub import finalize_epub

finalize_epub("work", "out/book.epub", overwrite=True)
```

## What it does not do

fb2kit provides the pieces, not a converter. It does not parse FictionBook
documents, generate XHTML, NCX, OPF or page-map files, process stylesheets,
resize or stamp covers, run a Kindle compiler, or send books by e-mail. It has
no command-line tool and ships no hyphenation dictionaries.

## Running the tests

```
pip install -e ".[test]"
pytest
```