"""Content-hash cache for the unpacked runtime-support archive.

The runtime library archive is unpacked once into the work directory and
reused by later builds as long as the archive bytes do not change.

Cache Structure:
    <workdir>/
    └── lib/                    # Unpacked archive contents
        ├── jarhash             # SHA256 of the archive the tree came from
        ├── sources.json        # Source classification manifest
        ├── gc/{collector}/     # Collector-specific sources
        ├── optional/           # Sources compiled only when linked against
        └── ...                 # Unconditional sources

The tree is valid iff it exists AND the marker holds the current archive
hash. refresh() always runs delete, extract, write marker, in that order;
if the process dies after extraction but before the marker is written, the
next check sees a stale tree. A crash while the marker itself is being
written is not detected.
"""

import hashlib
import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

from .downloader import extract_archive

logger = logging.getLogger(__name__)

MARKER_NAME = "jarhash"


class ContentCache:
    """Tracks whether an unpacked archive matches the archive on disk.

    Example usage:
        cache = ContentCache(nativelib_jar, workdir / "lib")
        if not cache.is_current():
            cache.refresh()
    """

    def __init__(
        self,
        archive_path: Path,
        unpacked_dir: Path,
        marker_path: Optional[Path] = None,
        chunk_size: int = 65536,
    ):
        """Initialize content cache.

        Args:
            archive_path: Archive whose contents are unpacked
            unpacked_dir: Directory holding the unpacked contents
            marker_path: File storing the archive hash (defaults to
                unpacked_dir/jarhash)
            chunk_size: Read size used while hashing
        """
        self.archive_path = Path(archive_path)
        self.unpacked_dir = Path(unpacked_dir)
        self.marker_path = Path(marker_path) if marker_path else self.unpacked_dir / MARKER_NAME
        self.chunk_size = chunk_size

    @staticmethod
    def hash_file(path: Path, chunk_size: int = 65536) -> str:
        """SHA256 of a file's contents as a hex string."""
        sha256 = hashlib.sha256()
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                sha256.update(chunk)
        return sha256.hexdigest()

    def fingerprint(self) -> bytes:
        """Current archive hash, in the form stored in the marker."""
        return self.hash_file(self.archive_path, self.chunk_size).encode("ascii")

    def is_current(self) -> bool:
        """Check whether the unpacked tree was produced from this archive."""
        if not self.unpacked_dir.exists() or not self.marker_path.exists():
            return False
        return self.marker_path.read_bytes() == self.fingerprint()

    def refresh(self, before_marker: Optional[Callable[[Path], None]] = None) -> None:
        """Re-unpack the archive and record its hash.

        Args:
            before_marker: Called with the unpacked directory after
                extraction and before the marker is written
        """
        fingerprint = self.fingerprint()

        if self.unpacked_dir.exists():
            logger.info("Removing stale %s", self.unpacked_dir)
            shutil.rmtree(self.unpacked_dir)

        logger.info("Unpacking %s into %s", self.archive_path.name, self.unpacked_dir)
        extract_archive(self.archive_path, self.unpacked_dir)

        if before_marker is not None:
            before_marker(self.unpacked_dir)

        self.marker_path.parent.mkdir(parents=True, exist_ok=True)
        self.marker_path.write_bytes(fingerprint)

    def ensure(self, before_marker: Optional[Callable[[Path], None]] = None) -> bool:
        """Refresh only when stale.

        Returns:
            True if the archive was (re-)unpacked
        """
        if self.is_current():
            logger.debug("%s is current", self.unpacked_dir)
            return False
        self.refresh(before_marker)
        return True
