import io

import pytest
from redis import exceptions as redis_exc

from forgecore.cache.compression import CompressionType
from forgecore.cache.store import RedisCacheStore
from forgecore.errors import (
    CacheMissError,
    DecodeError,
    EncodeError,
    ForgeStepError,
    FragmentIndexError,
    StoreUnavailableError,
)
from forgecore.forge import orchestrator as orchestrator_module
from forgecore.forge.orchestrator import ForgeOrchestrator, ForgeState, replace_fragment
from forgecore.forge.spinner import Spinner
from forgecore.manifest.hashing import generate_cache_entry_hash
from forgecore.manifest.models import CachedManifestResponse, ManifestResponse

KEY = "mfst|argocd.argoproj.io/instance|guestbook|abc123|default"


def _sealed(manifests):
    entry = CachedManifestResponse(
        manifest_response=ManifestResponse(manifests=list(manifests), namespace="default", revision="abc123"),
        number_of_cached_responses_returned=1,
    )
    entry.cache_entry_hash = generate_cache_entry_hash(entry)
    return entry


async def _seed(fake_redis, entry, mode=CompressionType.GZIP):
    await RedisCacheStore(fake_redis, compression=mode).set(KEY, entry)
    fake_redis.set_calls.clear()


@pytest.mark.anyio
async def test_forge_end_to_end(fake_redis):
    original = _sealed(["manifestA"])
    h0 = original.cache_entry_hash
    await _seed(fake_redis, original)

    store = RedisCacheStore(fake_redis, compression=CompressionType.GZIP)
    orchestrator = ForgeOrchestrator(store, fragment_index=0)
    result = await orchestrator.run(KEY, "manifestB")

    stored = await store.get(KEY, CachedManifestResponse)
    assert stored.manifests == ["manifestB"]
    assert stored.cache_entry_hash == generate_cache_entry_hash(stored)
    assert stored.cache_entry_hash != h0

    # Nothing but the one manifest and the hash changed
    assert stored.model_copy(update={"cache_entry_hash": "", "manifest_response": None}) == \
        original.model_copy(update={"cache_entry_hash": "", "manifest_response": None})
    assert stored.manifest_response.revision == "abc123"

    assert result.physical_key == KEY + ".gz"
    assert result.previous_hash == h0
    assert result.previous_hash_valid is True
    assert result.new_hash == stored.cache_entry_hash
    assert orchestrator.state is ForgeState.DONE
    assert orchestrator.history == [
        ForgeState.START,
        ForgeState.FETCH,
        ForgeState.MUTATE,
        ForgeState.RECOMPUTE,
        ForgeState.WRITE,
        ForgeState.DONE,
    ]
    assert len(fake_redis.set_calls) == 1


@pytest.mark.anyio
async def test_forge_replaces_only_selected_index(fake_redis):
    await _seed(fake_redis, _sealed(["a", "b", "c"]), mode=CompressionType.NONE)
    store = RedisCacheStore(fake_redis, compression=CompressionType.NONE)

    await ForgeOrchestrator(store, fragment_index=1).run(KEY, "evil")

    stored = await store.get(KEY, CachedManifestResponse)
    assert stored.manifests == ["a", "evil", "c"]
    assert list(fake_redis.data) == [KEY]


@pytest.mark.anyio
async def test_forge_reseals_tampered_entry(fake_redis):
    entry = _sealed(["manifestA"])
    entry.cache_entry_hash = "not-valid"
    await _seed(fake_redis, entry)
    store = RedisCacheStore(fake_redis)

    result = await ForgeOrchestrator(store).run(KEY, "manifestB")

    assert result.previous_hash_valid is False
    stored = await store.get(KEY, CachedManifestResponse)
    assert stored.cache_entry_hash == generate_cache_entry_hash(stored)


@pytest.mark.anyio
async def test_out_of_range_index_never_writes(fake_redis):
    await _seed(fake_redis, _sealed(["manifestA"]))
    before = dict(fake_redis.data)
    orchestrator = ForgeOrchestrator(RedisCacheStore(fake_redis), fragment_index=1)

    with pytest.raises(ForgeStepError) as exc_info:
        await orchestrator.run(KEY, "manifestB")

    err = exc_info.value
    assert err.step == "mutate"
    assert isinstance(err.cause, FragmentIndexError)
    assert isinstance(err.cause, IndexError)
    assert err.exit_code == FragmentIndexError.exit_code
    assert fake_redis.set_calls == []
    assert fake_redis.data == before
    assert orchestrator.state is ForgeState.FAILED


@pytest.mark.anyio
async def test_missing_key_fails_fetch(fake_redis):
    orchestrator = ForgeOrchestrator(RedisCacheStore(fake_redis))
    with pytest.raises(ForgeStepError) as exc_info:
        await orchestrator.run(KEY, "manifestB")

    assert exc_info.value.step == "fetch"
    assert isinstance(exc_info.value.__cause__, CacheMissError)
    assert orchestrator.history == [ForgeState.START, ForgeState.FETCH, ForgeState.FAILED]
    assert fake_redis.set_calls == []


@pytest.mark.anyio
async def test_decode_failure_fails_fetch(fake_redis):
    fake_redis.data[KEY + ".gz"] = b"not gzip at all"
    with pytest.raises(ForgeStepError) as exc_info:
        await ForgeOrchestrator(RedisCacheStore(fake_redis)).run(KEY, "manifestB")
    assert isinstance(exc_info.value.cause, DecodeError)


@pytest.mark.anyio
async def test_forge_reseals_entry_with_lone_surrogate_escape(fake_redis):
    fake_redis.data[KEY] = (
        b'{"cacheEntryHash":"x","manifestResponse":{"manifests":["a"]},"mostRecentError":"\\ud800"}\n'
    )
    store = RedisCacheStore(fake_redis, compression=CompressionType.NONE)
    orchestrator = ForgeOrchestrator(store)

    result = await orchestrator.run(KEY, "manifestB")

    assert result.previous_hash_valid is False
    assert orchestrator.state is ForgeState.DONE
    stored = await store.get(KEY, CachedManifestResponse)
    assert stored.most_recent_error == "\ufffd"
    assert stored.manifests == ["manifestB"]
    assert stored.cache_entry_hash == generate_cache_entry_hash(stored)


@pytest.mark.anyio
async def test_hash_check_failure_fails_fetch(fake_redis, monkeypatch):
    await _seed(fake_redis, _sealed(["manifestA"]))

    def broken_verify(entry):
        raise EncodeError("cannot encode entry")

    monkeypatch.setattr(orchestrator_module, "verify_cache_entry_hash", broken_verify)
    orchestrator = ForgeOrchestrator(RedisCacheStore(fake_redis))
    with pytest.raises(ForgeStepError) as exc_info:
        await orchestrator.run(KEY, "manifestB")

    assert exc_info.value.step == "fetch"
    assert isinstance(exc_info.value.cause, EncodeError)
    assert exc_info.value.exit_code == EncodeError.exit_code
    assert orchestrator.history == [ForgeState.START, ForgeState.FETCH, ForgeState.FAILED]
    assert fake_redis.set_calls == []


@pytest.mark.anyio
async def test_write_failure_is_reported(fake_redis):
    await _seed(fake_redis, _sealed(["manifestA"]))

    async def broken_set(name, value, px=None):
        raise redis_exc.ConnectionError("connection reset")

    fake_redis.set = broken_set
    orchestrator = ForgeOrchestrator(RedisCacheStore(fake_redis))
    with pytest.raises(ForgeStepError) as exc_info:
        await orchestrator.run(KEY, "manifestB")

    assert exc_info.value.step == "write"
    assert isinstance(exc_info.value.cause, StoreUnavailableError)
    assert orchestrator.history[-2:] == [ForgeState.WRITE, ForgeState.FAILED]


@pytest.mark.anyio
async def test_single_shot(fake_redis):
    await _seed(fake_redis, _sealed(["manifestA"]))
    orchestrator = ForgeOrchestrator(RedisCacheStore(fake_redis))
    await orchestrator.run(KEY, "manifestB")
    with pytest.raises(RuntimeError):
        await orchestrator.run(KEY, "manifestC")


@pytest.mark.anyio
@pytest.mark.parametrize("seed", [True, False])
async def test_spinner_cancelled_on_done_and_failed(fake_redis, seed):
    if seed:
        await _seed(fake_redis, _sealed(["manifestA"]))
    stream = io.StringIO()
    spinner = Spinner(delay=0.001, stream=stream)
    orchestrator = ForgeOrchestrator(RedisCacheStore(fake_redis), spinner=spinner)

    if seed:
        await orchestrator.run(KEY, "manifestB")
    else:
        with pytest.raises(ForgeStepError):
            await orchestrator.run(KEY, "manifestB")

    assert not spinner.running
    assert spinner._task is None


def test_replace_fragment_rejects_missing_response():
    with pytest.raises(FragmentIndexError):
        replace_fragment(CachedManifestResponse(), 0, "x")


def test_replace_fragment_rejects_negative_index():
    entry = _sealed(["a"])
    with pytest.raises(FragmentIndexError):
        replace_fragment(entry, -1, "x")
    assert entry.manifests == ["a"]


def test_replace_fragment_returns_previous():
    entry = _sealed(["a", "b"])
    assert replace_fragment(entry, 1, "x") == "b"
    assert entry.manifests == ["a", "x"]
