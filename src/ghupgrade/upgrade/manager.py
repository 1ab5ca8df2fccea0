"""
Upgrade pipeline orchestrator.

Resolves the latest release of every registered module through the circuit
breaker, persists the resulting listing as a snapshot, and downloads one
module's archive on request, handing it to the archive handler.
"""

import json
import os
from typing import Any, Dict, Iterable, List, Optional

import platformdirs

from ghupgrade.constants import (
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_INSTANCE_NAME,
    DOWNLOADS_DIR_NAME,
    ERROR_TYPE_DOWNLOAD,
    ERROR_TYPE_EXTRACTION,
    ERROR_TYPE_FILESYSTEM,
    GITHUB_RELEASE_ENDPOINT,
    INSTALL_DIR_NAME,
    NOT_FOUND_SENTINEL,
    SNAPSHOT_DIR_NAME,
    ZIP_EXTENSION,
)
from ghupgrade.exceptions import ArchiveError, PayloadError
from ghupgrade.log_utils import logger
from ghupgrade.utils import TokenResolver, identity_hash

from .breaker import CircuitBreakerRegistry
from .cache import FileResponseCache, MemoryResponseCache, ResponseCache
from .fetcher import ReleaseFetcher
from .files import ZipArchiveHandler, _atomic_write_json, cleanup_file, write_staged_archive
from .interfaces import (
    ArchiveHandler,
    DownloadResult,
    RawRelease,
    ReleaseRecord,
    RepositoryProvider,
    RepositoryRef,
)
from .providers import ConfigRepositoryProvider
from .resolver import ReleaseResolver


class UpgradeManager:
    """
    Coordinates release resolution and module downloads.

    This class owns:
    - The per-endpoint circuit breaker registry
    - The fetcher (and through it the response cache)
    - The listing snapshot for this instance
    """

    def __init__(
        self,
        config: Dict[str, Any],
        breaker: Optional[CircuitBreakerRegistry] = None,
        fetcher: Optional[ReleaseFetcher] = None,
        resolver: Optional[ReleaseResolver] = None,
        archive_handler: Optional[ArchiveHandler] = None,
        repository_provider: Optional[RepositoryProvider] = None,
    ):
        """
        Create an UpgradeManager from configuration, building any collaborator not supplied.

        Parameters:
            config (Dict[str, Any]): Loaded configuration (see ghupgrade.config).
            breaker (CircuitBreakerRegistry | None): Gate for release API calls; defaults to a registry over `fetcher.request`.
            fetcher (ReleaseFetcher | None): HTTP layer; defaults to one with a file-backed response cache
                (in-memory when USE_RESPONSE_CACHE is off).
            resolver (ReleaseResolver | None): Payload resolver.
            archive_handler (ArchiveHandler | None): Installer for downloaded archives; defaults to extracting into INSTALL_DIR.
            repository_provider (RepositoryProvider | None): Source of repositories for `check_for_updates`.
        """
        self.config = config
        self.cache_dir = config.get("CACHE_DIR") or platformdirs.user_cache_dir("ghupgrade")
        self.download_dir = config.get("DOWNLOAD_DIR") or os.path.join(
            self.cache_dir, DOWNLOADS_DIR_NAME
        )

        if fetcher is None:
            cache: ResponseCache
            if config.get("USE_RESPONSE_CACHE", True):
                cache = FileResponseCache(self.cache_dir)
            else:
                cache = MemoryResponseCache()
            fetcher = ReleaseFetcher(
                cache=cache,
                token_resolver=TokenResolver.from_config(config),
                debug_mode=bool(config.get("DEBUG_MODE", False)),
                ca_bundle=config.get("CA_BUNDLE"),
                download_timeout=config.get("DOWNLOAD_TIMEOUT", DEFAULT_DOWNLOAD_TIMEOUT),
            )
        self.fetcher = fetcher
        self.breaker = breaker or CircuitBreakerRegistry(self.fetcher.request)
        self.resolver = resolver or ReleaseResolver()

        if archive_handler is None:
            install_dir = config.get("INSTALL_DIR") or os.path.join(
                platformdirs.user_data_dir("ghupgrade"), INSTALL_DIR_NAME
            )
            archive_handler = ZipArchiveHandler(install_dir)
        self.archive_handler = archive_handler
        self.repository_provider = repository_provider or ConfigRepositoryProvider(config)

        instance_name = str(config.get("INSTANCE_NAME") or DEFAULT_INSTANCE_NAME)
        self.snapshot_path = os.path.join(
            self.cache_dir, SNAPSHOT_DIR_NAME, f"{identity_hash(instance_name)}.json"
        )

    @staticmethod
    def get_latest_release_url(repository_id: str) -> str:
        return GITHUB_RELEASE_ENDPOINT.format(repository=repository_id)

    def get_module_download_path(self, module_name: str) -> str:
        """Staging path for a module archive: `{download_dir}/{module}.zip`."""
        return os.path.join(self.download_dir, f"{module_name}{ZIP_EXTENSION}")

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _decode_payload(self, endpoint: str, body: Any) -> Dict[str, Any]:
        """
        Decode a release API body.

        Raises:
            PayloadError: If the body is not JSON or not a JSON object.
        """
        if not body:
            raise PayloadError("Empty response body", field="body", value=endpoint)
        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise PayloadError("Malformed JSON in release response", value=endpoint, details=str(e)) from e
        if not isinstance(payload, dict):
            raise PayloadError(
                "Unexpected release payload shape",
                value=endpoint,
                details=f"expected object, got {type(payload).__name__}",
            )
        return payload

    def _get_response(self, endpoint: str) -> Dict[str, Any]:
        """
        Fetch a release endpoint through the circuit breaker.

        The fetcher's cached `request` is the breaker's primary path and an
        uncached `fetch` of the same URL is its fallback. Malformed payloads
        come back as an empty mapping.
        """
        headers = self.fetcher.build_headers()
        timeout = self.breaker.timeout

        def fallback() -> bytes:
            return self.fetcher.fetch(endpoint, headers, timeout=timeout)

        body = self.breaker.call(endpoint, headers, fallback)
        try:
            return self._decode_payload(endpoint, body)
        except PayloadError as e:
            logger.debug(f"Treating response from {endpoint} as empty: {e}")
            return {}

    def get_latest_release(self, repository: RepositoryRef) -> Optional[ReleaseRecord]:
        """
        Resolve the latest release of one repository.

        Returns:
            Optional[ReleaseRecord]: The release record, or None when there is no usable release.
        """
        endpoint = self.get_latest_release_url(repository.repository_id)
        payload = self._get_response(endpoint)
        raw_release = RawRelease.from_payload(payload)
        if raw_release is None:
            logger.debug(f"No release information for {repository.repository_id}")
            return None
        return self.resolver.resolve(raw_release, repository.module_name)

    def resolve_all(self, repositories: Iterable[RepositoryRef]) -> List[ReleaseRecord]:
        """
        Resolve every repository in order and overwrite the snapshot with the results.

        Repositories without a usable release are left out. The snapshot is
        written once, after the whole pass, even when the result is empty.

        Returns:
            List[ReleaseRecord]: Records in repository order.
        """
        records: List[ReleaseRecord] = []
        for repository in repositories:
            logger.info(f"Checking {repository.module_name} ({repository.repository_id})")
            record = self.get_latest_release(repository)
            if record is None:
                continue
            logger.info(f"{record.module_name}: latest release {record.version_available}")
            records.append(record)

        self._write_snapshot(records)
        return records

    def check_for_updates(self) -> List[ReleaseRecord]:
        """Resolve every repository the configured provider registers."""
        return self.resolve_all(self.repository_provider.get_all())

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def _write_snapshot(self, records: List[ReleaseRecord]) -> bool:
        try:
            os.makedirs(os.path.dirname(self.snapshot_path), exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create snapshot directory for {self.snapshot_path}: {e}")
            return False
        written = _atomic_write_json(self.snapshot_path, [r.to_dict() for r in records])
        if written:
            logger.debug(f"Saved {len(records)} modules to {self.snapshot_path}")
        return written

    def read_snapshot(self) -> List[ReleaseRecord]:
        """
        Return the last persisted listing without any network activity.

        Returns:
            List[ReleaseRecord]: Snapshot records, or an empty list if none exists or it cannot be read.
        """
        if not os.path.exists(self.snapshot_path):
            return []
        try:
            with open(self.snapshot_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (IOError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Could not read snapshot {self.snapshot_path}: {e}")
            return []

        if not isinstance(data, list):
            return []

        records = []
        for item in data:
            if not isinstance(item, dict):
                continue
            try:
                records.append(ReleaseRecord.from_dict(item))
            except (KeyError, TypeError) as e:
                logger.debug(f"Skipping malformed snapshot entry: {e}")
        return records

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    @staticmethod
    def _is_missing(content: bytes) -> bool:
        return not content or content.strip() == NOT_FOUND_SENTINEL

    def download(self, module_name: str) -> DownloadResult:
        """
        Download and install the snapshot's release of one module.

        The archive URL is tried first. An empty or "Not Found" body triggers
        exactly one retry against the asset API URL with octet-stream headers
        and authorization. The archive is staged, handed to the archive
        handler, and the staged file is removed whatever the outcome.

        Returns:
            DownloadResult: Outcome; `was_skipped` when the module has no snapshot entry.
        """
        record = next(
            (r for r in self.read_snapshot() if r.module_name == module_name), None
        )
        if record is None:
            logger.info(f"No pending update for {module_name}")
            return DownloadResult(success=True, module_name=module_name, was_skipped=True)

        if os.path.basename(module_name) != module_name or module_name in ("", ".", ".."):
            return DownloadResult(
                success=False,
                module_name=module_name,
                error_message="Unsafe module name; aborting to avoid path traversal",
                error_type=ERROR_TYPE_FILESYSTEM,
            )

        download_url = record.archive_url
        content = self.fetcher.fetch(
            download_url, self.fetcher.build_headers(download_mode=True)
        )
        if self._is_missing(content):
            logger.info(
                f"Archive URL for {module_name} returned no content; retrying via asset URL"
            )
            download_url = record.asset_url
            content = b""
            if download_url:
                content = self.fetcher.fetch(
                    download_url,
                    self.fetcher.build_headers(download_mode=True, force_auth=True),
                )

        if self._is_missing(content):
            logger.error(f"Failed to download {module_name} {record.version_available}")
            return DownloadResult(
                success=False,
                module_name=module_name,
                download_url=download_url or record.archive_url,
                error_message="Both archive and asset URLs returned no content",
                error_type=ERROR_TYPE_DOWNLOAD,
            )

        staged_path = self.get_module_download_path(module_name)
        if not write_staged_archive(staged_path, content):
            return DownloadResult(
                success=False,
                module_name=module_name,
                file_path=staged_path,
                download_url=download_url,
                error_message=f"Could not write {staged_path}",
                error_type=ERROR_TYPE_FILESYSTEM,
            )

        error_message = None
        try:
            installed = self.archive_handler.handle(staged_path)
            if not installed:
                error_message = "Archive handler reported failure"
        except ArchiveError as e:
            installed = False
            error_message = str(e)
        finally:
            cleanup_file(staged_path)

        if installed:
            logger.info(f"Installed {module_name} {record.version_available}")
        else:
            logger.error(f"Could not install {module_name}: {error_message}")

        return DownloadResult(
            success=installed,
            module_name=module_name,
            file_path=staged_path,
            download_url=download_url,
            error_message=error_message,
            error_type=None if installed else ERROR_TYPE_EXTRACTION,
        )

    def clear_cache(self) -> bool:
        """Drop every cached API response."""
        if self.fetcher.cache is None:
            return True
        return self.fetcher.cache.clear()

    def close(self) -> None:
        self.fetcher.close()
