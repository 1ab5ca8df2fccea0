"""
Core Interfaces for the ghupgrade upgrade pipeline

This module defines the data structures passed between the pipeline stages
and the abstract collaborators (repository provider, archive handler) that
the pipeline delegates to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

Pathish = Union[str, Path]


@dataclass(frozen=True)
class RepositoryRef:
    """A module registered for upgrades and the GitHub repository it is released from."""

    module_name: str
    """Module name; must match the release asset's base filename exactly"""

    repository_id: str
    """GitHub repository in 'owner/repo' form"""


@dataclass
class Asset:
    """Represents a downloadable asset from a release."""

    name: str
    """The filename of the asset"""

    content_type: str
    """MIME type of the asset"""

    download_url: str
    """Public browser download URL"""

    api_url: str
    """API URL of the asset (requires octet-stream Accept header)"""

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "Asset":
        return cls(
            name=str(data.get("name") or ""),
            content_type=str(data.get("content_type") or ""),
            download_url=str(data.get("browser_download_url") or ""),
            api_url=str(data.get("url") or ""),
        )


@dataclass
class RawRelease:
    """The latest-release payload as returned by GitHub, reduced to the fields we use."""

    tag_name: str
    body: str = ""
    assets: List[Asset] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> Optional["RawRelease"]:
        """
        Build a RawRelease from a decoded JSON mapping.

        Returns None when the payload has no usable tag name (for example the
        `{"message": "Not Found"}` body GitHub returns for unknown repositories).
        Malformed asset entries are skipped.
        """
        tag_name = data.get("tag_name")
        if not isinstance(tag_name, str) or not tag_name.strip():
            return None

        body = data.get("body")
        assets_data = data.get("assets")
        assets = []
        if isinstance(assets_data, list):
            assets = [Asset.from_payload(a) for a in assets_data if isinstance(a, dict)]

        return cls(
            tag_name=tag_name,
            body=body if isinstance(body, str) else "",
            assets=assets,
        )


@dataclass(frozen=True)
class ReleaseRecord:
    """Normalized release information for one module; the unit stored in the snapshot."""

    module_name: str
    version_available: str
    archive_url: str
    asset_url: str
    changelog: Optional[Dict[str, List[str]]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the snapshot wire names."""
        return {
            "name": self.module_name,
            "version_available": self.version_available,
            "archive_url": self.archive_url,
            "asset_url": self.asset_url,
            "changeLog": self.changelog,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReleaseRecord":
        changelog = data.get("changeLog")
        return cls(
            module_name=data["name"],
            version_available=data.get("version_available") or "",
            archive_url=data.get("archive_url") or "",
            asset_url=data.get("asset_url") or "",
            changelog=changelog if isinstance(changelog, dict) else None,
        )


@dataclass
class CachedEntry:
    """A stored HTTP 200 response, keyed by its exact request URL."""

    headers: Dict[str, List[str]]
    body: str
    stored_at: datetime


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


@dataclass
class CircuitState:
    """In-memory circuit breaker state for one upstream identifier."""

    failure_count: int = 0
    state: BreakerState = BreakerState.CLOSED
    opened_at: Optional[float] = None


@dataclass
class DownloadResult:
    """Result of a module download."""

    success: bool
    """Whether the download (and hand-off) succeeded"""

    module_name: str
    """Module that was requested"""

    file_path: Optional[Pathish] = None
    """Staging path the archive was written to (removed after hand-off)"""

    download_url: Optional[str] = None
    """URL the archive was finally fetched from"""

    error_message: Optional[str] = None
    """Error message (if failed)"""

    error_type: Optional[str] = None
    """Type/category of error (download, extraction, filesystem)"""

    was_skipped: bool = False
    """Whether no pending release was found for the module"""


class RepositoryProvider(ABC):
    """
    Supplies the repositories to check for upgrades.

    Implementations must return repositories in a deterministic order so
    successive snapshots are reproducible.
    """

    @abstractmethod
    def get_all(self) -> List[RepositoryRef]:
        """
        Return every registered repository, in a stable order.

        Returns:
            List[RepositoryRef]: Registered module/repository pairs.
        """


class ArchiveHandler(ABC):
    """
    Installs a downloaded module archive.

    The pipeline hands a staged zip path to `handle` and removes the file
    afterwards regardless of the outcome; failures are not retried.
    """

    @abstractmethod
    def handle(self, staged_archive_path: Pathish) -> bool:
        """
        Extract and install the archive at the given path.

        Parameters:
            staged_archive_path (Pathish): Path to the downloaded zip file.

        Returns:
            bool: `True` if the archive was installed, `False` otherwise.

        Raises:
            ExtractionError: If the archive is corrupt or unsafe to extract.
        """
