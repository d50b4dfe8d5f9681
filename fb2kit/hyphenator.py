"""TeX-style hyphenation driven by pattern and exception dictionaries."""

from __future__ import annotations

from typing import Iterable, Iterator

from .trie import Trie


def _lines(source: Iterable[str] | str) -> Iterator[str]:
    if isinstance(source, str):
        source = source.splitlines()
    for line in source:
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        yield line


def _is_ident_start(ch: str) -> bool:
    return ch == "_" or ch.isalpha()


def _is_ident_part(ch: str) -> bool:
    return ch == "_" or ch.isalpha() or ch.isdecimal()


def _tokens(s: str) -> Iterator[tuple[bool, str]]:
    """Split text into identifiers (words) and single other characters."""
    i, n = 0, len(s)
    while i < n:
        if _is_ident_start(s[i]):
            j = i + 1
            while j < n and _is_ident_part(s[j]):
                j += 1
            yield True, s[i:j]
            i = j
        else:
            yield False, s[i]
            i += 1


class Hyphenator:
    """Hyphenates text using patterns loaded for one language at a time."""

    def __init__(self) -> None:
        self._patterns: Trie | None = None
        self._exceptions: dict[str, str] = {}
        self.language: str = ""

    def load_dictionary(
        self,
        language: str,
        patterns: Iterable[str] | str,
        exceptions: Iterable[str] | str,
    ) -> None:
        """Load patterns and exceptions, given as lines, unless already loaded for ``language``."""
        if self.language != language:
            self._patterns = None
            self._exceptions = {}
            self.language = language

        if self._patterns is not None and self._patterns.size() != 0:
            return

        trie = Trie()
        for line in _lines(patterns):
            trie.add_pattern_string(line)
        self._patterns = trie

        self._exceptions = {line.replace("-", ""): line for line in _lines(exceptions)}

    def _hyphenate_word(self, word: str, hyphen: str) -> str:
        assert self._patterns is not None
        test = "." + word + "."
        levels = [0] * len(test)

        for index in range(len(test)):
            for prefix, values in self._patterns.all_substrings_and_values(test[index:]):
                start = index - (len(values) - len(prefix))
                for offset, value in enumerate(values):
                    pos = start + offset
                    if pos >= 0 and value > levels[pos]:
                        levels[pos] = value

        markers = levels[1:-1]
        out: list[str] = []
        for pos, ch in enumerate(word):
            out.append(ch)
            if 1 <= pos < len(markers) - 2 and markers[pos] % 2:
                out.append(hyphen)
        return "".join(out)

    def hyphenate(self, s: str, hyphen: str) -> str:
        """Return ``s`` with ``hyphen`` inserted at every allowed break."""
        if self._patterns is None:
            raise RuntimeError("no hyphenation dictionary loaded")

        out: list[str] = []
        for is_word, token in _tokens(s):
            if not is_word:
                out.append(token)
                continue
            exception = self._exceptions.get(token, "")
            if exception:
                if hyphen != "-":
                    exception = exception.replace("-", hyphen)
                out.append(exception)
            else:
                out.append(self._hyphenate_word(token, hyphen))
        return "".join(out)