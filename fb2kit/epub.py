"""Pack a prepared book directory into an EPUB container."""

from __future__ import annotations

import logging
import os
import shutil
import time
import zipfile
from pathlib import Path
from typing import Iterator

log = logging.getLogger(__name__)


def _walk(directory: str) -> Iterator[str]:
    """Yield regular files depth-first in lexical order."""
    for entry in sorted(os.scandir(directory), key=lambda e: e.name):
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(entry.path)
        elif entry.is_file(follow_symlinks=False):
            yield entry.path


def _add(archive: zipfile.ZipFile, info: zipfile.ZipInfo, path: str) -> None:
    with open(path, "rb") as src, archive.open(info, "w") as dst:
        shutil.copyfileobj(src, dst)


def write_epub(tmp_dir, fname) -> None:
    """Zip ``tmp_dir`` into ``fname`` with an uncompressed ``mimetype`` entry first.

    Files lying directly in ``tmp_dir`` other than ``mimetype`` are left out.
    """
    root = os.path.abspath(os.fspath(tmp_dir))
    target = os.path.abspath(os.fspath(fname))

    mimetype = os.path.join(root, "mimetype")
    if not os.path.isfile(mimetype):
        raise FileNotFoundError(f"unable to find mimetype file: {mimetype}")

    stamp = time.localtime()[:6]
    with zipfile.ZipFile(target, "w") as archive:
        # no timestamp on mimetype, it spoils epubcheck magic
        info = zipfile.ZipInfo("mimetype")
        info.compress_type = zipfile.ZIP_STORED
        _add(archive, info, mimetype)

        for path in _walk(root):
            if os.path.abspath(path) == target:
                continue
            if os.path.dirname(path) == root:
                continue
            rel = os.path.relpath(path, root).replace(os.sep, "/")
            info = zipfile.ZipInfo(rel, date_time=stamp)
            info.compress_type = zipfile.ZIP_DEFLATED
            _add(archive, info, path)


def finalize_epub(tmp_dir, fname, overwrite) -> None:
    """Produce the EPUB ``fname`` from ``tmp_dir``, replacing an existing file only if ``overwrite``."""
    path = Path(fname)
    if path.exists():
        if not overwrite:
            raise FileExistsError(f"output file already exists: {fname}")
        log.warning("Overwriting existing file %s", fname)
        path.unlink()
    else:
        try:
            path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as exc:
            raise OSError(f"unable to create output directory: {exc}") from exc
    write_epub(tmp_dir, fname)