"""Logical -> physical key mapping."""

from __future__ import annotations

from forgecore.cache.compression import CompressionType

# Appended by the consumer to every key it stores gzip-compressed
GZIP_KEY_SUFFIX = ".gz"


def physical_key(logical_key: str, compression: CompressionType) -> str:
    """
    Return the key actually used against the store.

    A wrong suffix doesn't produce a format error, the store simply reports
    the key as missing, so this has to match the consumer exactly.
    """
    if not logical_key:
        raise ValueError("Logical key must be a non-empty string")

    if CompressionType.parse(compression) is CompressionType.GZIP:
        return logical_key + GZIP_KEY_SUFFIX
    return logical_key
