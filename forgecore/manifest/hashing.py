"""
Cache entry hashing.

The consumer seals each entry with FNV-1a/64 over the JSON encoding of the
entry with its hash field blanked, then URL-safe base64 (padded). There is
no key involved: anyone who can write the entry can reseal it.
"""

from __future__ import annotations

import base64

from forgecore.cache.codec import PayloadCodec
from forgecore.manifest.models import CachedManifestResponse


FNV64_OFFSET_BASIS = 0xCBF29CE484222325
FNV64_PRIME = 0x100000001B3
_MASK64 = 0xFFFFFFFFFFFFFFFF


def fnv1a_64(data: bytes) -> int:
    """64-bit FNV-1a."""
    h = FNV64_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV64_PRIME) & _MASK64
    return h


def canonical_bytes(entry: CachedManifestResponse) -> bytes:
    """The exact bytes the hash covers: the entry with its hash cleared."""
    unsealed = entry.shallow_copy()
    unsealed.cache_entry_hash = ""
    return PayloadCodec.encode_json(unsealed)


def encode_digest(value: int) -> str:
    """Big-endian 8 bytes, URL-safe base64 with padding."""
    return base64.urlsafe_b64encode(value.to_bytes(8, "big")).decode("ascii")


def generate_cache_entry_hash(entry: CachedManifestResponse) -> str:
    return encode_digest(fnv1a_64(canonical_bytes(entry)))


def verify_cache_entry_hash(entry: CachedManifestResponse) -> bool:
    """True when the stored hash matches the entry's content."""
    return entry.cache_entry_hash == generate_cache_entry_hash(entry)
