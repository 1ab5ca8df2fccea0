"""
Release resolution: turns a GitHub latest-release payload into a ReleaseRecord.
"""

import re
from typing import Dict, List, Optional

from ghupgrade.constants import FULL_CHANGELOG_MARKER, ZIP_CONTENT_TYPE, ZIP_EXTENSION
from ghupgrade.log_utils import logger

from .interfaces import Asset, RawRelease, ReleaseRecord

_LINE_SPLIT_RX = re.compile(r"\r\n|\n|\r")
_FULL_CHANGELOG_LABEL_RX = re.compile(r"^\s*Full Changelog\s*:?\s*")


class ReleaseResolver:
    """
    Selects the module archive from a release and extracts its changelog.

    An asset belongs to a module when its content type is exactly
    `application/zip` and its filename without the `.zip` suffix equals the
    module name (case-sensitive).
    """

    @staticmethod
    def normalize_version(tag_name: str) -> str:
        """Strip a single leading 'v' or 'V' from a release tag."""
        if tag_name[:1] in ("v", "V"):
            return tag_name[1:]
        return tag_name

    @staticmethod
    def _asset_base_name(asset: Asset) -> str:
        if asset.name.endswith(ZIP_EXTENSION):
            return asset.name[: -len(ZIP_EXTENSION)]
        return asset.name

    def find_module_asset(
        self, raw_release: RawRelease, module_name: str
    ) -> Optional[Asset]:
        """Return the first asset matching the module naming rule, in payload order."""
        for asset in raw_release.assets:
            if (
                asset.content_type == ZIP_CONTENT_TYPE
                and self._asset_base_name(asset) == module_name
            ):
                return asset
        return None

    def select_archive_url(self, raw_release: RawRelease, module_name: str) -> str:
        asset = self.find_module_asset(raw_release, module_name)
        return asset.download_url if asset else ""

    def select_asset_url(self, raw_release: RawRelease, module_name: str) -> str:
        asset = self.find_module_asset(raw_release, module_name)
        return asset.api_url if asset else ""

    @staticmethod
    def extract_changelog(body: str, version: str) -> Optional[Dict[str, List[str]]]:
        """
        Build the changelog mapping from a release body.

        The list for `version` starts with an empty slot, followed by every
        bullet line (lines starting with '-', all '-' removed, whitespace
        trimmed) in order. A `**Full Changelog**` line is appended last, once,
        wherever it appears in the body.

        Returns:
            Optional[Dict[str, List[str]]]: `{version: [...]}`, or None for an empty body.
        """
        if not body:
            return None

        entries: List[str] = [""]
        full_changelog = ""
        for line in _LINE_SPLIT_RX.split(body):
            if line.startswith("-"):
                entries.append(line.replace("-", "").strip())
            elif line.startswith(FULL_CHANGELOG_MARKER):
                text = line.replace("**", "")
                full_changelog = _FULL_CHANGELOG_LABEL_RX.sub("", text).strip() or text.strip()

        if full_changelog:
            entries.append(full_changelog)

        return {version: entries}

    def resolve(self, raw_release: RawRelease, module_name: str) -> Optional[ReleaseRecord]:
        """
        Resolve a raw release for one module.

        Returns:
            Optional[ReleaseRecord]: The normalized record, or None when the
            release has no zip asset named after the module.
        """
        version = self.normalize_version(raw_release.tag_name)
        asset = self.find_module_asset(raw_release, module_name)
        if asset is None or not asset.download_url:
            logger.debug(
                f"No {ZIP_CONTENT_TYPE} asset named {module_name}{ZIP_EXTENSION} in release {raw_release.tag_name}"
            )
            return None

        return ReleaseRecord(
            module_name=module_name,
            version_available=version,
            archive_url=asset.download_url,
            asset_url=asset.api_url,
            changelog=self.extract_changelog(raw_release.body, version),
        )
