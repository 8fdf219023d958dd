"""
Compression modes shared by the key mapper and the payload codec.

The mode is chosen once per session and applies to both the physical key
and the stored bytes.
"""

from __future__ import annotations

from enum import Enum


class CompressionType(str, Enum):
    NONE = "none"
    GZIP = "gzip"

    @classmethod
    def parse(cls, value: "str | CompressionType") -> "CompressionType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown compression type {value!r} (expected one of: {choices})")
