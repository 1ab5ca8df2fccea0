"""
ghupgrade Upgrade Subsystem

Resolves the latest GitHub release of each registered module and downloads
module archives, shielding the caller from network failures.

Core Components:
- interfaces: Data structures and collaborator interfaces
- cache: Response caching keyed by request URL
- breaker: Per-endpoint circuit breakers
- fetcher: HTTP access to release endpoints and assets
- resolver: Release payload to ReleaseRecord translation
- providers: Sources of registered repositories
- files: Atomic writes and archive handling
- manager: Pipeline coordination and the listing snapshot
"""

from .breaker import CircuitBreaker, CircuitBreakerRegistry
from .cache import FileResponseCache, MemoryResponseCache, ResponseCache
from .fetcher import ReleaseFetcher
from .files import ZipArchiveHandler
from .interfaces import (
    ArchiveHandler,
    Asset,
    BreakerState,
    CachedEntry,
    CircuitState,
    DownloadResult,
    RawRelease,
    ReleaseRecord,
    RepositoryProvider,
    RepositoryRef,
)
from .manager import UpgradeManager
from .providers import ConfigRepositoryProvider, StaticRepositoryProvider
from .resolver import ReleaseResolver

__all__ = [
    # Interfaces
    "ArchiveHandler",
    "Asset",
    "BreakerState",
    "CachedEntry",
    "CircuitState",
    "DownloadResult",
    "RawRelease",
    "ReleaseRecord",
    "RepositoryProvider",
    "RepositoryRef",
    # Caching
    "ResponseCache",
    "MemoryResponseCache",
    "FileResponseCache",
    # Resilience
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    # Pipeline
    "ReleaseFetcher",
    "ReleaseResolver",
    "StaticRepositoryProvider",
    "ConfigRepositoryProvider",
    "ZipArchiveHandler",
    "UpgradeManager",
]
