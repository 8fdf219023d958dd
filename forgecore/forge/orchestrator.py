"""
forgecore/forge/orchestrator.py
The Forge Orchestrator.
Fetch one cached manifest entry, swap a manifest, reseal it, write it back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from forgecore.cache.store import RedisCacheStore
from forgecore.errors import ForgeStepError, FragmentIndexError
from forgecore.forge.spinner import Spinner
from forgecore.manifest.hashing import generate_cache_entry_hash, verify_cache_entry_hash
from forgecore.manifest.models import CachedManifestResponse

logger = logging.getLogger(__name__)


class ForgeState(str, Enum):
    START = "start"
    FETCH = "fetch"
    MUTATE = "mutate"
    RECOMPUTE = "recompute"
    WRITE = "write"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ForgeResult:
    logical_key: str
    physical_key: str
    fragment_index: int
    previous_hash: str
    new_hash: str
    previous_hash_valid: bool


def replace_fragment(entry: CachedManifestResponse, index: int, replacement: str) -> str:
    """
    Overwrite manifest `index` in place and return the old value.

    Only existing positions can be replaced; the list is never extended and
    negative indices are not accepted.
    """
    response = entry.manifest_response
    count = len(response.manifests) if response is not None else 0
    if index < 0 or index >= count:
        raise FragmentIndexError(
            f"Manifest index {index} out of range (entry holds {count} manifest(s))",
            details={"index": index, "count": count},
        )
    previous = response.manifests[index]
    response.manifests[index] = replacement
    return previous


class ForgeOrchestrator:
    """
    Runs START -> FETCH -> MUTATE -> RECOMPUTE -> WRITE -> DONE once.

    Any failing step moves to FAILED and raises ForgeStepError; nothing is
    retried, and the store is only written in WRITE.
    """

    def __init__(
        self,
        store: RedisCacheStore,
        fragment_index: int = 0,
        spinner: Optional[Spinner] = None,
    ):
        self.store = store
        self.fragment_index = fragment_index
        self.spinner = spinner
        self.state = ForgeState.START
        self.history: List[ForgeState] = [ForgeState.START]

    def _enter(self, state: ForgeState) -> None:
        logger.debug(f"[Forge] {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    async def run(self, logical_key: str, replacement: str) -> ForgeResult:
        if self.state is not ForgeState.START:
            raise RuntimeError(f"Forge already ran (state: {self.state.value})")

        if self.spinner is not None:
            self.spinner.start()
        try:
            return await self._run(logical_key, replacement)
        finally:
            if self.spinner is not None:
                await self.spinner.stop()

    async def _run(self, logical_key: str, replacement: str) -> ForgeResult:
        # Phase 1: Fetch
        self._enter(ForgeState.FETCH)
        try:
            physical = self.store.key_for(logical_key)
            entry = await self.store.get(logical_key, CachedManifestResponse)
            previous_hash = entry.cache_entry_hash
            previous_valid = verify_cache_entry_hash(entry)
        except Exception as e:
            self._fail(e)
            raise ForgeStepError(ForgeState.FETCH.value, e) from e

        if previous_valid:
            logger.info(f"[Forge] Fetched {physical}, stored hash {previous_hash} is consistent")
        else:
            logger.warning(f"[Forge] Fetched {physical}, stored hash {previous_hash!r} does not match its content")

        # Phase 2: Mutate
        self._enter(ForgeState.MUTATE)
        try:
            replace_fragment(entry, self.fragment_index, replacement)
        except FragmentIndexError as e:
            self._fail(e)
            raise ForgeStepError(ForgeState.MUTATE.value, e) from e

        # Phase 3: Recompute
        self._enter(ForgeState.RECOMPUTE)
        try:
            entry.cache_entry_hash = generate_cache_entry_hash(entry)
        except Exception as e:
            self._fail(e)
            raise ForgeStepError(ForgeState.RECOMPUTE.value, e) from e

        # Phase 4: Write
        self._enter(ForgeState.WRITE)
        try:
            await self.store.set(logical_key, entry)
        except Exception as e:
            self._fail(e)
            raise ForgeStepError(ForgeState.WRITE.value, e) from e

        self._enter(ForgeState.DONE)
        logger.info(f"[Forge] Rewrote {physical}: {previous_hash} -> {entry.cache_entry_hash}")
        return ForgeResult(
            logical_key=logical_key,
            physical_key=physical,
            fragment_index=self.fragment_index,
            previous_hash=previous_hash,
            new_hash=entry.cache_entry_hash,
            previous_hash_valid=previous_valid,
        )

    def _fail(self, error: BaseException) -> None:
        logger.error(f"[Forge] {self.state.value} failed: {error}")
        self._enter(ForgeState.FAILED)
