# ============================================================================
# forgecore/base/config.py
# Forge Configuration Management
# ============================================================================
#
# PURPOSE:
# Every knob the forge exposes lives here: where Redis is, how entries are
# compressed and expired, and how logging behaves. The CLI builds one
# ForgeConfig (environment first, then flags) and hands the pieces to the
# core explicitly; nothing in the core reads the global.
#
# KEY CONCEPTS:
# 1. Dataclasses: frozen containers so a running forge can't drift
# 2. Environment Variables: ARGOFORGE_* overrides (e.g. ARGOFORGE_REDIS_ADDR)
# 3. Consumer Defaults: compression and TTL mirror the repo-server defaults
#
# ============================================================================

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from forgecore.cache.compression import CompressionType

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ============================================================================
# Redis Connection Configuration
# ============================================================================

@dataclass(frozen=True)
class RedisConfig:
    # host:port of the store (the repo-server's Redis is usually argocd-redis:6379)
    addr: str = "localhost:6379"

    # Empty string means no AUTH
    password: str = ""

    db: int = 0

    # Seconds; None keeps the client library's blocking default
    socket_timeout: Optional[float] = None

    @property
    def host(self) -> str:
        host, _, _ = self.addr.rpartition(":")
        return host or self.addr

    @property
    def port(self) -> int:
        _, sep, port = self.addr.rpartition(":")
        if not sep:
            return 6379
        try:
            return int(port)
        except ValueError:
            raise ValueError(f"Invalid Redis address {self.addr!r}: port must be an integer")


# ============================================================================
# Cache Entry Configuration
# ============================================================================
# Must agree with the consumer: a mismatched compression mode addresses a
# different physical key and a different byte format.

@dataclass(frozen=True)
class CacheConfig:
    compression: CompressionType = CompressionType.GZIP

    # TTL applied to the rewritten entry (repo-server default is 24h, the
    # forge keeps it short)
    expiration_seconds: float = 3600.0


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # None disables the rotating file handler
    file_path: Optional[Path] = None
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass(frozen=True)
class ForgeConfig:
    redis: RedisConfig = field(default_factory=RedisConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    log: LogConfig = field(default_factory=LogConfig)

    # Which manifest fragment gets replaced
    fragment_index: int = 0

    # Cosmetic progress indicator
    spinner_enabled: bool = True
    spinner_delay: float = 0.3

    @classmethod
    def from_env(cls) -> "ForgeConfig":
        redis = RedisConfig(
            addr=os.getenv("ARGOFORGE_REDIS_ADDR", "localhost:6379"),
            password=os.getenv("ARGOFORGE_REDIS_PASSWORD", ""),
            db=int(os.getenv("ARGOFORGE_REDIS_DB", "0")),
            socket_timeout=_optional_float(os.getenv("ARGOFORGE_REDIS_TIMEOUT")),
        )

        cache = CacheConfig(
            compression=CompressionType.parse(os.getenv("ARGOFORGE_COMPRESSION", "gzip")),
            expiration_seconds=float(os.getenv("ARGOFORGE_TTL", "3600")),
        )

        log_file = os.getenv("ARGOFORGE_LOG_FILE")
        log = LogConfig(
            level=os.getenv("ARGOFORGE_LOG_LEVEL", "INFO"),
            file_path=Path(log_file) if log_file else None,
        )

        return cls(
            redis=redis,
            cache=cache,
            log=log,
            fragment_index=int(os.getenv("ARGOFORGE_FRAGMENT_INDEX", "0")),
            spinner_enabled=os.getenv("ARGOFORGE_SPINNER", "true").lower() == "true",
        )


def _optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or raw == "":
        return None
    return float(raw)


# ============================================================================
# Process-wide Default
# ============================================================================
# Only the CLI touches these; core objects take their config as arguments.

_config: Optional[ForgeConfig] = None


def get_config() -> ForgeConfig:
    """
    Get the process-wide configuration, loading it from the environment on
    first use.
    """
    global _config
    if _config is None:
        _config = ForgeConfig.from_env()
    return _config


def set_config(config: ForgeConfig) -> None:
    """Replace the process-wide configuration (CLI overrides, tests)."""
    global _config
    _config = config


def parse_log_level(name: str) -> int:
    """Map a level name to its logging constant, rejecting unknown names."""
    normalized = name.strip().upper()
    if normalized not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {name!r} (expected one of: {', '.join(LOG_LEVELS)})")
    return getattr(logging, normalized)


def setup_logging(config: Optional[ForgeConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Sets up console logging plus an optional rotating log file.
    Call this once at application startup.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_path is not None:
        from logging.handlers import RotatingFileHandler
        cfg.log.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log.file_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=parse_log_level(cfg.log.level),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
