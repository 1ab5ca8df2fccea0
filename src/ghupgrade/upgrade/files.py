"""
File operations for the upgrade pipeline.

Atomic writes for the cache and snapshot files, staged-archive helpers, and
the default zip archive handler.
"""

import json
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Callable, List, Tuple

from ghupgrade.exceptions import ExtractionError
from ghupgrade.log_utils import logger

from .interfaces import ArchiveHandler, Pathish


def _atomic_write(
    file_path: str,
    writer_func: Callable[[Any], None],
    suffix: str = ".tmp",
    binary: bool = False,
) -> bool:
    """
    Replace `file_path` with whatever `writer_func` writes, all or nothing.

    The content goes to a sibling temp file first and is moved over the
    target with `os.replace`, so readers see either the old or the new file.

    Returns:
        bool: `True` once the new content is in place, `False` if anything failed (the target is then untouched).
    """
    directory = os.path.dirname(file_path) or "."
    try:
        fd, tmp_name = tempfile.mkstemp(dir=directory, prefix="tmp-", suffix=suffix)
    except OSError as e:
        logger.error(f"Could not create temporary file for {file_path}: {e}")
        return False

    mode = "wb" if binary else "w"
    encoding = None if binary else "utf-8"
    try:
        with os.fdopen(fd, mode, encoding=encoding) as handle:
            writer_func(handle)
        os.replace(tmp_name, file_path)
        return True
    except (OSError, UnicodeEncodeError, TypeError, ValueError) as e:
        logger.error(f"Could not write to {file_path}: {e}")
        return False
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError:
                pass


def _atomic_write_json(file_path: str, data: Any) -> bool:
    """Atomically write `data` as indented JSON."""
    return _atomic_write(
        file_path, lambda handle: json.dump(data, handle, indent=2), suffix=".json"
    )


def write_staged_archive(file_path: Pathish, content: bytes) -> bool:
    """
    Write downloaded archive bytes to the staging path, creating the directory if needed.

    Returns:
        bool: `True` if the archive is in place, `False` otherwise.
    """
    target = Path(file_path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create download directory {target.parent}: {e}")
        return False
    return _atomic_write(str(target), lambda f: f.write(content), suffix=".part", binary=True)


def cleanup_file(file_path: Pathish) -> bool:
    """
    Delete the file at the given path if present.

    Returns:
        bool: `True` if the file is gone afterwards, `False` if removal failed.
    """
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
        return True
    except OSError as e:
        logger.error(f"Failed to delete file {file_path}. Reason: {e}")
        return False


def _is_within_base(base_dir: str, candidate: str) -> bool:
    # commonpath raises ValueError for paths on different drives
    try:
        return os.path.commonpath([base_dir, candidate]) == base_dir
    except ValueError:
        return False


def safe_extract_path(extract_dir: str, member_name: str) -> str:
    """
    Map an archive member name to its absolute target path under `extract_dir`.

    Symlinks and `..` segments are resolved before the check.

    Raises:
        ValueError: If the member would be written outside `extract_dir`.
    """
    base = os.path.realpath(extract_dir)
    target = os.path.realpath(os.path.join(base, member_name))
    if not _is_within_base(base, target):
        raise ValueError(f"Member '{member_name}' escapes install directory '{extract_dir}'")
    return target


class ZipArchiveHandler(ArchiveHandler):
    """
    Default archive handler: unpacks a module zip into the install directory.

    Module archives carry their own top-level folder (`<module>/...`), so
    members are extracted relative to `install_dir` unchanged.
    """

    def __init__(self, install_dir: Pathish):
        self.install_dir = str(install_dir)

    def handle(self, staged_archive_path: Pathish) -> bool:
        archive_path = str(staged_archive_path)
        try:
            with zipfile.ZipFile(archive_path, "r") as zip_ref:
                bad_member = zip_ref.testzip()
                if bad_member is not None:
                    raise ExtractionError(
                        "Archive integrity check failed",
                        archive_path=archive_path,
                        details=f"first bad member: {bad_member}",
                    )
                members = self._plan_members(zip_ref, archive_path)
                os.makedirs(self.install_dir, exist_ok=True)
                for file_info, extract_path in members:
                    os.makedirs(os.path.dirname(extract_path), exist_ok=True)
                    with (
                        zip_ref.open(file_info) as source,
                        open(extract_path, "wb") as target,
                    ):
                        shutil.copyfileobj(source, target)
                    logger.debug(f"Extracted {file_info.filename} to {extract_path}")
        except zipfile.BadZipFile as e:
            raise ExtractionError(
                "Downloaded file is not a valid zip archive",
                archive_path=archive_path,
                details=str(e),
            ) from e
        except OSError as e:
            raise ExtractionError(
                f"Could not extract archive into {self.install_dir}",
                archive_path=archive_path,
                details=str(e),
            ) from e

        logger.info(f"Installed {len(members)} files from {os.path.basename(archive_path)}")
        return True

    def _plan_members(
        self, zip_ref: zipfile.ZipFile, archive_path: str
    ) -> List[Tuple[zipfile.ZipInfo, str]]:
        """
        Resolve every file member to its target path before writing anything.

        Raises:
            ExtractionError: If any member would land outside the install directory.
        """
        planned = []
        for file_info in zip_ref.infolist():
            if file_info.is_dir():
                continue
            try:
                extract_path = safe_extract_path(self.install_dir, file_info.filename)
            except ValueError as e:
                raise ExtractionError(
                    "Archive contains an unsafe member",
                    archive_path=archive_path,
                    details=str(e),
                ) from e
            planned.append((file_info, extract_path))
        return planned
