"""
Ordered, case-insensitive header multimap.

HTTP allows a header name to repeat, so every name maps to a list of values.
Names compare case-insensitively; the spelling of the first occurrence is the
one written back out.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping


class HeaderMultiMap:
    def __init__(self, pairs: Iterable[tuple[str, str]] | None = None) -> None:
        self._names: dict[str, str] = {}
        self._values: dict[str, list[str]] = {}
        for name, value in pairs or ():
            self.add(name, value)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> HeaderMultiMap:
        return cls(pairs)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]] | None) -> HeaderMultiMap:
        headers = cls()
        headers.merge(mapping or {})
        return headers

    def add(self, name: str, value: str) -> None:
        key = name.lower()
        if key not in self._values:
            self._names[key] = name
            self._values[key] = []
        self._values[key].append(value)

    def set(self, name: str, value: str | Iterable[str]) -> None:
        values = [value] if isinstance(value, str) else list(value)
        key = name.lower()
        if not values:
            self.remove(name)
            return
        self._names.setdefault(key, name)
        self._values[key] = values

    def get(self, name: str, default: str | None = None) -> str | None:
        values = self._values.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> list[str]:
        return list(self._values.get(name.lower(), []))

    def remove(self, name: str) -> None:
        key = name.lower()
        self._names.pop(key, None)
        self._values.pop(key, None)

    def merge(self, mapping: Mapping[str, Iterable[str]] | HeaderMultiMap, replace: bool = True) -> None:
        """Copy ``mapping`` in; with ``replace`` each incoming name overrides existing values."""
        items = mapping.grouped() if isinstance(mapping, HeaderMultiMap) else mapping.items()
        for name, values in items:
            values = [values] if isinstance(values, str) else list(values)
            if replace:
                self.set(name, values)
            else:
                for value in values:
                    self.add(name, value)

    def grouped(self) -> list[tuple[str, list[str]]]:
        return [(self._names[key], list(values)) for key, values in self._values.items()]

    def items(self) -> list[tuple[str, str]]:
        return [(self._names[key], value) for key, values in self._values.items() for value in values]

    def names(self) -> list[str]:
        return [self._names[key] for key in self._values]

    def copy(self) -> HeaderMultiMap:
        return HeaderMultiMap(self.items())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeaderMultiMap):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"HeaderMultiMap({self.items()!r})"
