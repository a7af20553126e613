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

"""Content digests for files and in-memory blocks.

The drive identifies content by SHA-1 (whole file and each block) and MD5
(each block). Digests are lowercase hex strings.

For multi-block files the whole-file and per-block digests come from
separate passes. A single-block file is hashed once with file_digests(),
which serves both.
"""

from __future__ import annotations

from collections.abc import Iterable
import hashlib
from pathlib import Path

from micloud.exceptions import DigestError

SUPPORTED_ALGORITHMS = ("sha1", "md5")

# Read size when streaming a whole file through the hashers.
READ_CHUNK = 1024 * 1024


def _new_hasher(algorithm: str):
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(
            f"Unsupported digest algorithm: {algorithm!r}. "
            f"Must be one of {', '.join(SUPPORTED_ALGORITHMS)}"
        )
    return hashlib.new(algorithm)


def bytes_digest(data: bytes, algorithm: str) -> str:
    """Return the hex digest of an in-memory byte slice."""
    h = _new_hasher(algorithm)
    h.update(data)
    return h.hexdigest()


def file_digests(path: Path, algorithms: Iterable[str]) -> dict[str, str]:
    """Hash a whole file with several algorithms in a single pass.

    Args:
        path: File to read to exhaustion.
        algorithms: Algorithm names ("sha1", "md5").

    Returns:
        Mapping of algorithm name to hex digest.

    Raises:
        ValueError: On an unsupported algorithm.
        DigestError: If the file cannot be read.
    """
    hashers = {name: _new_hasher(name) for name in algorithms}
    try:
        with Path(path).open("rb") as f:
            while True:
                chunk = f.read(READ_CHUNK)
                if not chunk:
                    break
                for h in hashers.values():
                    h.update(chunk)
    except OSError as err:
        raise DigestError(f"cannot read {path}: {err}") from err
    return {name: h.hexdigest() for name, h in hashers.items()}


def file_digest(path: Path, algorithm: str) -> str:
    """Return the hex digest of a whole file."""
    return file_digests(path, (algorithm,))[algorithm]
