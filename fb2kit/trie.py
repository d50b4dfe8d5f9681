"""Rune-indexed trie used to store TeX-style hyphenation patterns."""

from __future__ import annotations

from typing import Any, Iterator


class Trie:
    """A trie keyed by characters; every node is itself a ``Trie``."""

    __slots__ = ("leaf", "value", "children")

    def __init__(self) -> None:
        self.leaf: bool = False
        self.value: Any = None
        self.children: dict[str, Trie] = {}

    def _add(self, s: str) -> Trie:
        node = self
        for ch in s:
            child = node.children.get(ch)
            if child is None:
                child = Trie()
                node.children[ch] = child
            node = child
        node.leaf = True
        return node

    def _find(self, s: str) -> Trie | None:
        node = self
        for ch in s:
            node = node.children.get(ch)
            if node is None:
                return None
        return node if node.leaf else None

    def _remove(self, s: str) -> bool:
        if not s:
            self.value = None
            self.leaf = False
            return not self.children
        child = self.children.get(s[0])
        if child is not None and child._remove(s[1:]):
            del self.children[s[0]]
        return not self.children

    def add_string(self, s: str) -> None:
        """Add ``s`` to the trie; adding an existing string changes nothing."""
        if s:
            self._add(s)

    def add_value(self, s: str, value: Any) -> None:
        """Add ``s`` with an associated value, replacing any previous value."""
        if s:
            self._add(s).value = value

    def add_pattern_string(self, s: str) -> None:
        """Add a TeX pattern such as ``.hy2p``; the stored value is a list of ints."""
        chars = list(s)
        values: list[int] = []
        for pos, ch in enumerate(chars):
            if ch.isdecimal():
                if pos == 0:
                    values.append(int(ch))
                continue
            following = chars[pos + 1] if pos + 1 < len(chars) else ""
            values.append(int(following) if following.isdecimal() else 0)

        pure = "".join(ch for ch in chars if not ch.isdecimal())
        if pure:
            self._add(pure).value = values

    def remove(self, s: str) -> bool:
        """Remove ``s``; return True if the trie is empty afterwards."""
        if not s:
            return not self.children
        return self._remove(s)

    def contains(self, s: str) -> bool:
        """Return True if ``s`` is a member string."""
        if not s:
            return False
        return self._find(s) is not None

    def __contains__(self, s: object) -> bool:
        return isinstance(s, str) and self.contains(s)

    def get_value(self, s: str) -> Any:
        """Return the value stored for ``s``; raise KeyError if it is absent."""
        leaf = self._find(s) if s else None
        if leaf is None:
            raise KeyError(s)
        return leaf.value

    def _iter_members(self, prefix: str) -> Iterator[str]:
        if self.leaf:
            yield prefix
        for ch, child in self.children.items():
            yield from child._iter_members(prefix + ch)

    def members(self) -> list[str]:
        """Return all member strings in sorted order."""
        return sorted(self._iter_members(""))

    def size(self) -> int:
        """Count all nodes, not including the root."""
        return sum(1 + child.size() for child in self.children.values())

    def all_substrings(self, s: str) -> list[str]:
        """Return every member string that is a prefix of ``s``."""
        return [prefix for prefix, _ in self.all_substrings_and_values(s)]

    def all_substrings_and_values(self, s: str) -> list[tuple[str, Any]]:
        """Return ``(prefix, value)`` for every member string that is a prefix of ``s``."""
        found: list[tuple[str, Any]] = []
        node = self
        for pos, ch in enumerate(s):
            child = node.children.get(ch)
            if child is None:
                break
            if child.leaf:
                found.append((s[: pos + 1], child.value))
            node = child
        return found