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

"""Block partitioning and per-block digests.

A file is split into fixed-size blocks of CHUNK_SIZE bytes; the last block
holds the remaining tail. Each block is described by a BlockDescriptor
carrying its byte range and both digests the drive asks for.

Invariants of compute_blocks():

- Descriptors are ordered by index and contiguous: block i starts at
  i * chunk_size.
- The last descriptor ends exactly at the file size; no two overlap.
- A block that cannot be read aborts the whole pass with DigestError. A
  block is never skipped, so a manifest is either complete or not produced.

Files no larger than one chunk are a single block whose digests are the
whole-file digests, computed in one read of the file.

Example:
    >>> from pathlib import Path
    >>> from micloud.upload.chunker import SourceFile, compute_blocks
    >>> source = SourceFile.from_path(Path("video.mp4"))
    >>> blocks = compute_blocks(source)
    >>> [b.length for b in blocks]
    [4194304, 4194304, 2097152]
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from pathlib import Path
from typing import BinaryIO

from micloud.exceptions import DigestError, SizeLimitExceeded
from micloud.logging import get_global_logger

from .digest import bytes_digest, file_digests

CHUNK_SIZE = 4 * 1024 * 1024
MAX_FILE_SIZE = 4 * 1024 * 1024 * 1024


@dataclass(frozen=True)
class SourceFile:
    """A local file selected for upload.

    Attributes:
        path: Absolute path of the file as given (symlinks are not resolved).
        size: Size in bytes, validated against the size ceiling.
        name: Base name used as the remote file name.
    """

    path: Path
    size: int
    name: str

    @classmethod
    def from_path(cls, path: Path) -> SourceFile:
        """Stat a file and validate its size before any hashing.

        Raises:
            DigestError: If the path cannot be stat'ed or is not a regular file.
            SizeLimitExceeded: If the file is empty or too large.
        """
        # The remote name is the one the caller used, even for a symlink.
        path = Path(path).absolute()
        try:
            stat = path.stat()
        except OSError as err:
            raise DigestError(f"cannot stat {path}: {err}") from err
        if not path.is_file():
            raise DigestError(f"not a regular file: {path}")
        validate_file_size(stat.st_size)
        return cls(path=path, size=stat.st_size, name=path.name)


@dataclass(frozen=True)
class BlockDescriptor:
    """One block of the source file.

    Attributes:
        index: Zero-based block ordinal.
        offset: Byte offset of the block in the file.
        length: Block length in bytes.
        sha1: SHA-1 of the block content.
        md5: MD5 of the block content.
    """

    index: int
    offset: int
    length: int
    sha1: str
    md5: str


def validate_file_size(size: int) -> None:
    """Reject empty files and files not strictly below MAX_FILE_SIZE."""
    if size <= 0:
        raise SizeLimitExceeded("file is empty")
    if size >= MAX_FILE_SIZE:
        raise SizeLimitExceeded(
            f"file is {size} bytes; files must be smaller than {MAX_FILE_SIZE} bytes (4 GiB)"
        )


def block_count(size: int, chunk_size: int = CHUNK_SIZE) -> int:
    return math.ceil(size / chunk_size)


def block_range(index: int, size: int, chunk_size: int = CHUNK_SIZE) -> tuple[int, int]:
    """Return (offset, length) of block index in a file of the given size.

    Raises:
        ValueError: If index is outside the file.
    """
    if index < 0 or index >= block_count(size, chunk_size):
        raise ValueError(f"block index {index} out of range for {size} bytes")
    offset = index * chunk_size
    return offset, min(chunk_size, size - offset)


def read_block(
    fh: BinaryIO, index: int, size: int, chunk_size: int = CHUNK_SIZE
) -> bytes:
    """Seek to block index and read exactly its byte range.

    Raises:
        DigestError: On read errors or a short read (file changed on disk).
    """
    offset, length = block_range(index, size, chunk_size)
    try:
        fh.seek(offset)
        data = fh.read(length)
    except OSError as err:
        raise DigestError(f"cannot read block {index} at offset {offset}: {err}") from err
    if len(data) != length:
        raise DigestError(
            f"short read for block {index}: expected {length} bytes, got {len(data)}"
        )
    return data


def compute_blocks(
    source: SourceFile,
    chunk_size: int = CHUNK_SIZE,
    *,
    digests: dict[str, str] | None = None,
) -> list[BlockDescriptor]:
    """Split a file into blocks and digest each one.

    Args:
        source: Validated source file.
        chunk_size: Block size in bytes.
        digests: Whole-file {"sha1", "md5"} digests already computed by the
            caller. Only used when the file is a single block, which then
            needs no read at all.

    Returns:
        Ordered, contiguous list of BlockDescriptor covering the whole file.

    Raises:
        DigestError: If any block cannot be read.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    if source.size <= chunk_size:
        if digests is None:
            digests = file_digests(source.path, ("sha1", "md5"))
        return [
            BlockDescriptor(
                index=0,
                offset=0,
                length=source.size,
                sha1=digests["sha1"],
                md5=digests["md5"],
            )
        ]

    logger = get_global_logger()
    count = block_count(source.size, chunk_size)
    logger.verbose("CHUNK", f"Splitting {source.name} into {count} block(s)")

    blocks: list[BlockDescriptor] = []
    try:
        with source.path.open("rb") as fh:
            for index in range(count):
                data = read_block(fh, index, source.size, chunk_size)
                blocks.append(
                    BlockDescriptor(
                        index=index,
                        offset=index * chunk_size,
                        length=len(data),
                        sha1=bytes_digest(data, "sha1"),
                        md5=bytes_digest(data, "md5"),
                    )
                )
                logger.debug("CHUNK", f"Block {index}: {len(data)} bytes sha1={blocks[-1].sha1}")
    except OSError as err:
        raise DigestError(f"cannot open {source.path}: {err}") from err
    return blocks
