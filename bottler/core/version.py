from __future__ import annotations

import re
from dataclasses import dataclass


_VERSION_RE = re.compile(r"(\d+(?:\.\d+)*)")


@dataclass(frozen=True, slots=True, order=True)
class ToolVersion:
    parts: tuple[int, ...]

    def __str__(self) -> str:
        return ".".join(str(p) for p in self.parts)

    def at_least(self, other: ToolVersion) -> bool:
        width = max(len(self.parts), len(other.parts))
        mine = self.parts + (0,) * (width - len(self.parts))
        theirs = other.parts + (0,) * (width - len(other.parts))
        return mine >= theirs


def parse_version(text: str) -> ToolVersion | None:
    """Parse the first dotted number in text ("hub version 2.14.2" -> 2.14.2)."""
    m = _VERSION_RE.search(text)
    if m is None:
        return None
    return ToolVersion(tuple(int(p) for p in m.group(1).split(".")))
