"""
Redis cache store adapter.

Reads and writes single cache values the way the repo-server's cache layer
does: physical key from the key mapper, bytes from the payload codec, plain
GET and unconditional SET with an expiry.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Type

import redis.asyncio as aioredis
from redis import exceptions as redis_exc

from forgecore.base.config import RedisConfig, CacheConfig
from forgecore.cache.codec import ModelT, PayloadCodec
from forgecore.cache.compression import CompressionType
from forgecore.cache.keys import physical_key
from forgecore.errors import CacheMissError, StoreCommandError, StoreUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600.0


def normalize_ttl(expiration: float) -> Optional[float]:
    """
    Apply the consumer's cache-library TTL rules.

    Returns seconds, or None for "no expiry":
    - negative: no expiry
    - zero: one hour
    - under a second: one hour (too small to be intended)
    """
    if expiration < 0:
        return None
    if expiration == 0:
        return DEFAULT_TTL_SECONDS
    if expiration < 1:
        logger.warning(
            f"[CacheStore] TTL {expiration}s is below one second, using {DEFAULT_TTL_SECONDS:.0f}s"
        )
        return DEFAULT_TTL_SECONDS
    return expiration


class RedisCacheStore:
    """
    Get/set of one logical key against Redis.

    The client is owned by the store: construct one per run (or use
    `from_config`) and release it with `close()` or `async with`.
    """

    def __init__(
        self,
        client: Any,
        expiration: float = DEFAULT_TTL_SECONDS,
        compression: CompressionType = CompressionType.GZIP,
    ):
        self.client = client
        self.expiration = expiration
        self.compression = CompressionType.parse(compression)
        self.codec = PayloadCodec(self.compression)

    @classmethod
    def from_config(cls, redis_config: RedisConfig, cache_config: CacheConfig) -> "RedisCacheStore":
        client = aioredis.Redis(
            host=redis_config.host,
            port=redis_config.port,
            db=redis_config.db,
            password=redis_config.password or None,
            socket_timeout=redis_config.socket_timeout,
        )
        return cls(
            client,
            expiration=cache_config.expiration_seconds,
            compression=cache_config.compression,
        )

    async def __aenter__(self) -> "RedisCacheStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Release the client's connections. Safe to call multiple times."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    def key_for(self, logical_key: str) -> str:
        return physical_key(logical_key, self.compression)

    async def set(self, logical_key: str, obj: Any) -> None:
        """
        Encode `obj` and overwrite the value at the mapped key.

        Raises:
            EncodeError, StoreUnavailableError, StoreCommandError
        """
        value = self.codec.marshal(obj)
        key = self.key_for(logical_key)
        ttl = normalize_ttl(self.expiration)

        kwargs = {}
        if ttl is not None:
            kwargs["px"] = int(ttl * 1000)

        logger.debug(f"[CacheStore] SET {key} ({len(value)} bytes, ttl={ttl})")
        await self._call("SET", key, self._client().set(key, value, **kwargs))

    async def get(self, logical_key: str, model_type: Type[ModelT]) -> ModelT:
        """
        Fetch and decode the value at the mapped key.

        Raises:
            CacheMissError: the key is absent
            StoreUnavailableError, StoreCommandError: the store call failed
            DecodeError: the value doesn't decode under the active mode
        """
        key = self.key_for(logical_key)
        data = await self._call("GET", key, self._client().get(key))
        if data is None:
            raise CacheMissError(
                f"Key {key!r} not found in store",
                details={"physical_key": key, "compression": self.compression.value},
            )

        logger.debug(f"[CacheStore] GET {key} ({len(data)} bytes)")
        return self.codec.unmarshal(data, model_type)

    def _client(self) -> Any:
        if self.client is None:
            raise StoreUnavailableError("Cache store used after close()")
        return self.client

    @staticmethod
    async def _call(command: str, key: str, awaitable: Any) -> Any:
        try:
            return await awaitable
        except redis_exc.AuthenticationError as e:
            raise StoreCommandError(
                f"{command} {key!r} rejected: {e}", details={"command": command}
            ) from e
        except (redis_exc.ConnectionError, redis_exc.TimeoutError, OSError) as e:
            raise StoreUnavailableError(
                f"{command} {key!r} failed, store unreachable: {e}", details={"command": command}
            ) from e
        except redis_exc.RedisError as e:
            raise StoreCommandError(
                f"{command} {key!r} failed: {e}", details={"command": command}
            ) from e
