"""
Build-avoidance fingerprint cache.

Keeps SHA-1 fingerprints of the inputs to extension download and dependency
resolution in ``bld.cache`` so those steps can be skipped when nothing
changed. Local artifacts that feed the extensions decision are recorded in a
ledger of last-modified timestamps, since their identifiers alone do not
reveal that a locally built jar was rebuilt.

The cache is local to one build directory and one process; concurrent
writers race and the last one wins.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from bldkit import properties
from bldkit.exceptions import CacheWriteError
from bldkit.models import (
    Absent,
    CacheLoad,
    CacheRecord,
    DependencyScopes,
    LedgerEntry,
    Loaded,
    Repository,
    VersionResolution,
)

logger = logging.getLogger(__name__)

BLD_CACHE = "bld.cache"

_SUFFIX_HASH = ".hash"
_SUFFIX_LOCAL = ".local"

# obsolete per-file hashes from earlier cache layouts
WRAPPER_PROPERTIES_HASH = "bld-wrapper.properties" + _SUFFIX_HASH
BLD_BUILD_HASH = "bld-build" + _SUFFIX_HASH

PROPERTY_EXTENSIONS_HASH = "bld.extensions" + _SUFFIX_HASH
PROPERTY_EXTENSIONS_LOCAL = "bld.extensions" + _SUFFIX_LOCAL
PROPERTY_DEPENDENCIES_HASH = "bld.dependencies" + _SUFFIX_HASH


def _digest(fingerprint: str) -> str:
    return hashlib.sha1(fingerprint.encode("utf-8")).hexdigest()


def _flag(value: bool) -> str:
    return "true" if value else "false"


def load_record(path: Path) -> CacheLoad:
    """
    Read a cache file.

    Returns:
        ``Loaded`` with the stored properties, or ``Absent`` when the file is
        missing, unreadable or corrupt.
    """
    if not path.exists():
        return Absent(f"{path} does not exist")
    try:
        text = path.read_text(encoding=properties.ENCODING)
        return Loaded(properties.loads(text))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable build cache {path}: {e}")
        return Absent(str(e))


class FingerprintCache:
    """
    Fingerprints for the extensions and dependencies domains, sharing one file.

    Fingerprints are computed in memory during a session and only persisted by
    ``write_cache``.
    """

    def __init__(self, lib_dir: Union[str, Path], resolution: Optional[VersionResolution] = None) -> None:
        self.lib_dir = Path(lib_dir)
        self.cache_file = self.lib_dir / BLD_CACHE
        self._resolution = resolution or VersionResolution()
        self._extensions_hash: Optional[str] = None
        self._dependencies_hash: Optional[str] = None

        for legacy in (WRAPPER_PROPERTIES_HASH, BLD_BUILD_HASH):
            try:
                (self.lib_dir / legacy).unlink(missing_ok=True)
            except OSError as e:
                logger.debug(f"Could not remove legacy cache file {legacy}: {e}")

        self.load_result = load_record(self.cache_file)
        self._record: CacheRecord = {}
        if isinstance(self.load_result, Loaded):
            self._record = dict(self.load_result.record)

    @property
    def extensions_hash(self) -> Optional[str]:
        return self._extensions_hash

    @property
    def dependencies_hash(self) -> Optional[str]:
        return self._dependencies_hash

    @property
    def record(self) -> CacheRecord:
        return dict(self._record)

    def fingerprint_extensions(
        self,
        repositories: Iterable[Union[str, Repository]],
        extensions: Iterable[str],
        download_sources: bool,
        download_javadoc: bool,
    ) -> str:
        """Compute and remember the extensions-domain fingerprint."""
        fingerprint = "\n".join(
            [
                "\n".join(self._resolution.fingerprint_lines()),
                "\n".join(str(r) for r in repositories),
                "\n".join(extensions),
                _flag(download_sources),
                _flag(download_javadoc),
            ]
        )
        self._extensions_hash = _digest(fingerprint)
        logger.debug(f"Extensions fingerprint {self._extensions_hash}")
        return self._extensions_hash

    def fingerprint_dependencies(
        self,
        repositories: Iterable[Union[str, Repository]],
        dependencies: DependencyScopes,
        download_sources: bool,
        download_javadoc: bool,
    ) -> str:
        """Compute and remember the dependencies-domain fingerprint."""
        parts = ["\n".join(self._resolution.fingerprint_lines())]
        for repository in repositories:
            parts.append(f"{repository}\n")
        for scope, scoped in dependencies.items():
            parts.append(f"{scope}\n")
            for dependency in scoped or ():
                parts.append(f"{dependency}\n")
        parts.append(f"{_flag(download_sources)}\n{_flag(download_javadoc)}\n")

        self._dependencies_hash = _digest("".join(parts))
        logger.debug(f"Dependencies fingerprint {self._dependencies_hash}")
        return self._dependencies_hash

    def is_extension_hash_valid(self) -> bool:
        if not self._matches_stored(self._extensions_hash, PROPERTY_EXTENSIONS_HASH):
            return False
        return self._ledger_is_current()

    def is_dependencies_hash_valid(self) -> bool:
        return self._matches_stored(self._dependencies_hash, PROPERTY_DEPENDENCIES_HASH)

    def _matches_stored(self, computed: Optional[str], key: str) -> bool:
        if computed is None:
            return False
        if not self.cache_file.exists() or not self._record:
            return False
        return computed == self._record.get(key)

    def _ledger_is_current(self) -> bool:
        ledger = self._record.get(PROPERTY_EXTENSIONS_LOCAL, "")
        for line in ledger.split("\n"):
            if not line:
                continue
            entry = LedgerEntry.parse(line)
            if entry is None:
                logger.debug(f"Malformed ledger line {line!r}")
                return False
            if not _unchanged(entry):
                logger.info(f"Local artifact changed since last build: {entry.path}")
                return False
        return True

    def write_cache(self, local_artifacts: Optional[Iterable[Union[str, Path]]] = None) -> None:
        """
        Persist the fingerprints computed this session.

        Domains that were not fingerprinted keep their stored value. When
        ``local_artifacts`` is given the ledger is rebuilt from the artifacts
        that currently exist and are readable.

        Raises:
            CacheWriteError: If the cache file cannot be written.
        """
        if self._extensions_hash is not None:
            self._record[PROPERTY_EXTENSIONS_HASH] = self._extensions_hash

        if local_artifacts is not None:
            entries = [_ledger_entry(Path(artifact)) for artifact in local_artifacts]
            self._record[PROPERTY_EXTENSIONS_LOCAL] = "\n".join(str(e) for e in entries if e is not None)

        if self._dependencies_hash is not None:
            self._record[PROPERTY_DEPENDENCIES_HASH] = self._dependencies_hash

        try:
            self.lib_dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self.cache_file.with_suffix(self.cache_file.suffix + ".tmp")
            tmp_path.write_text(properties.dumps(self._record), encoding=properties.ENCODING)
            tmp_path.replace(self.cache_file)
        except OSError as e:
            raise CacheWriteError(f"Unable to write build cache {self.cache_file}: {e}") from e
        logger.debug(f"Wrote build cache {self.cache_file}")


def _readable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.R_OK)


def _ledger_entry(path: Path) -> Optional[LedgerEntry]:
    if not _readable_file(path):
        return None
    try:
        return LedgerEntry.for_file(path)
    except OSError as e:
        logger.debug(f"Leaving {path} out of the ledger: {e}")
        return None


def _unchanged(entry: LedgerEntry) -> bool:
    path = Path(entry.path)
    if not _readable_file(path):
        return False
    try:
        return LedgerEntry.for_file(path).timestamp == entry.timestamp
    except OSError:
        return False
