"""Line-granularity v3 source maps for generated CSS."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Optional

_BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"


def encode_vlq(value: int) -> str:
    """Encode one integer as a base64 VLQ segment field."""
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    encoded = ""
    while True:
        digit = vlq & 0b11111
        vlq >>= 5
        if vlq:
            digit |= 0b100000
        encoded += _BASE64[digit]
        if not vlq:
            return encoded


@dataclass
class SourceMapBuilder:
    """Collects ``generated line -> (source, source line)`` mappings.

    Only the first column of each generated line is mapped, which is enough
    for browser devtools to show the originating block for every rule.
    """

    file: str
    sources: list[str] = field(default_factory=list)
    sources_content: list[Optional[str]] = field(default_factory=list)
    _lines: list[Optional[tuple[int, int]]] = field(default_factory=list)

    def add_source(self, filename: str, content: Optional[str] = None) -> int:
        if filename in self.sources:
            return self.sources.index(filename)
        self.sources.append(filename)
        self.sources_content.append(content)
        return len(self.sources) - 1

    def add_line(self, source_index: Optional[int], source_line: int) -> None:
        """Record the next generated line; ``source_index=None`` leaves it unmapped."""
        if source_index is None or source_line <= 0:
            self._lines.append(None)
        else:
            self._lines.append((source_index, source_line - 1))

    def mappings(self) -> str:
        groups: list[str] = []
        prev_source = 0
        prev_line = 0
        for mapping in self._lines:
            if mapping is None:
                groups.append("")
                continue
            source, line = mapping
            # generated column, source index, source line, source column
            groups.append(
                encode_vlq(0)
                + encode_vlq(source - prev_source)
                + encode_vlq(line - prev_line)
                + encode_vlq(0)
            )
            prev_source, prev_line = source, line
        return ";".join(groups)

    def to_dict(self) -> dict:
        return {
            "version": 3,
            "file": self.file,
            "sources": list(self.sources),
            "sourcesContent": list(self.sources_content),
            "names": [],
            "mappings": self.mappings(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
