# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Streaming a drive response body to disk.

Key Features:

- **Atomic Writes** - Streams to <filename>.part and renames on success, so a
  partially downloaded file never appears under its final name.
- **Stream Hashing** - SHA-1 (the drive's content digest) is computed while
  writing, avoiding a second pass over the file.
- **Filename Detection** - Content-Disposition wins, then the caller's
  preferred name, then the URL path.

Constants:

- DEFAULT_CHUNK (int): Stream chunk size (1 MiB).
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from urllib.parse import unquote, urlparse

import requests

from micloud.exceptions import NetworkError
from micloud.logging import get_global_logger

DEFAULT_CHUNK = 1024 * 1024


def _filename_from_cd(content_disposition: str) -> str | None:
    """
    Extract a filename from a Content-Disposition header if present.

    Example header:
      'attachment; filename="report.pdf"'
    """
    if not content_disposition:
        return None
    parts = [s.strip() for s in content_disposition.split(";")]
    for part in parts:
        if part.lower().startswith("filename="):
            value = part.split("=", 1)[1].strip().strip('"')
            return unquote(value) or None
    return None


def _filename_from_url(url: str) -> str:
    name = Path(urlparse(url).path).name
    return name or "download.bin"


def save_stream(
    response: requests.Response,
    destination_folder: Path,
    *,
    filename: str | None = None,
) -> tuple[Path, str]:
    """Write a streaming response to destination_folder atomically.

    Args:
        response: Response opened with stream=True. Closed on return.
        destination_folder: Folder to save into (created if missing).
        filename: Preferred file name when the server sends no
            Content-Disposition.

    Returns:
        A tuple (file_path, sha1_hex).

    Raises:
        NetworkError: If the stream breaks before completion. The .part file
            is removed.
        OSError: If the local write fails. The .part file is removed.
    """
    logger = get_global_logger()
    destination_folder = Path(destination_folder)
    destination_folder.mkdir(parents=True, exist_ok=True)

    cd_name = _filename_from_cd(response.headers.get("Content-Disposition", ""))
    name = cd_name or filename or _filename_from_url(response.url)
    target = destination_folder / Path(name).name
    tmp = target.with_suffix(target.suffix + ".part")
    total_size = int(response.headers.get("Content-Length", "0") or 0)

    logger.verbose("FILE", f"Downloading to: {tmp}")

    sha = hashlib.sha1()
    downloaded = 0
    try:
        with tmp.open("wb") as f:
            for chunk in response.iter_content(chunk_size=DEFAULT_CHUNK):
                if not chunk:
                    continue
                f.write(chunk)
                sha.update(chunk)
                downloaded += len(chunk)
                if total_size:
                    logger.progress(downloaded, total_size, "Downloading bytes")
    except requests.RequestException as err:
        tmp.unlink(missing_ok=True)
        raise NetworkError(f"download interrupted for {target.name}: {err}") from err
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    finally:
        response.close()

    logger.verbose("FILE", f"Atomic rename: {tmp.name} -> {target.name}")
    tmp.replace(target)
    return target, sha.hexdigest()
