"""Artifact downloader with progress tracking.

This module handles downloading jars, POMs and tool manifests over HTTP,
and extracting jar/zip archives.
"""

import zipfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from tqdm import tqdm


class DownloadError(Exception):
    """Raised when download fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ExtractionError(Exception):
    """Raised when archive extraction fails."""

    pass


def extract_archive(archive_path: Path, dest_dir: Path) -> Path:
    """Extract an archive file.

    Supports .jar and .zip.

    Args:
        archive_path: Path to the archive file
        dest_dir: Destination directory for extraction

    Returns:
        Path to the extracted directory

    Raises:
        ExtractionError: If extraction fails
    """
    archive_path = Path(archive_path)
    dest_dir = Path(dest_dir)

    if not archive_path.exists():
        raise ExtractionError(f"Archive not found: {archive_path}")

    dest_dir.mkdir(parents=True, exist_ok=True)

    try:
        if archive_path.suffix in (".jar", ".zip"):
            with zipfile.ZipFile(archive_path, "r") as zip_file:
                zip_file.extractall(dest_dir)
        else:
            raise ExtractionError(f"Unsupported archive format: {archive_path.suffix}")
    except ExtractionError:
        raise
    except (OSError, zipfile.BadZipFile) as e:
        raise ExtractionError(f"Failed to extract {archive_path}: {e}")

    return dest_dir


class PackageDownloader:
    """Downloads artifacts with progress tracking."""

    def __init__(self, chunk_size: int = 8192, timeout: int = 30):
        """Initialize downloader.

        Args:
            chunk_size: Size of chunks for downloading
            timeout: Per-request timeout in seconds
        """
        self.chunk_size = chunk_size
        self.timeout = timeout

    def fetch_text(self, url: str) -> str:
        """Fetch a small text document.

        Raises:
            DownloadError: If the request fails
        """
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise DownloadError(f"Failed to fetch {url}: {e}", status_code=status)
        except requests.RequestException as e:
            raise DownloadError(f"Failed to fetch {url}: {e}")
        return response.text

    def download(
        self,
        url: str,
        dest_path: Path,
        show_progress: bool = True,
    ) -> Path:
        """Download a file from a URL.

        Args:
            url: URL to download from
            dest_path: Destination file path
            show_progress: Whether to show progress bar

        Returns:
            Path to the downloaded file

        Raises:
            DownloadError: If download fails
        """
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)

        # Use temporary file during download
        temp_file = dest_path.with_suffix(dest_path.suffix + ".tmp")

        try:
            response = requests.get(url, stream=True, timeout=self.timeout)
            response.raise_for_status()

            total_size = int(response.headers.get("content-length", 0))

            progress_bar = None
            if show_progress and total_size > 0:
                filename = Path(urlparse(url).path).name
                progress_bar = tqdm(
                    total=total_size,
                    unit="B",
                    unit_scale=True,
                    unit_divisor=1024,
                    desc=f"Downloading {filename}",
                )

            with open(temp_file, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        f.write(chunk)
                        if progress_bar:
                            progress_bar.update(len(chunk))

            if progress_bar:
                progress_bar.close()

            if dest_path.exists():
                dest_path.unlink()
            temp_file.rename(dest_path)

            return dest_path

        except requests.HTTPError as e:
            if temp_file.exists():
                temp_file.unlink()
            status = e.response.status_code if e.response is not None else None
            raise DownloadError(f"Failed to download {url}: {e}", status_code=status)

        except requests.RequestException as e:
            if temp_file.exists():
                temp_file.unlink()
            raise DownloadError(f"Failed to download {url}: {e}")

        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise
