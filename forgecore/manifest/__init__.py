"""Cached manifest entry model and integrity hash."""

from forgecore.manifest.models import CachedManifestResponse, ManifestResponse
from forgecore.manifest.hashing import generate_cache_entry_hash, verify_cache_entry_hash

__all__ = [
    "CachedManifestResponse",
    "ManifestResponse",
    "generate_cache_entry_hash",
    "verify_cache_entry_hash",
]
