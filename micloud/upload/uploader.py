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

"""Block transfer to the assigned storage node.

Blocks are handled one at a time in ascending index order. A block the
drive already holds costs no network call: its commit token is reused. A
block that needs upload is re-read from the source file by index and posted
as raw bytes:

    POST <node_url>/upload_block_chunk?chunk_pos=0&file_meta=<t>&block_meta=<t>
    Content-Type: application/octet-stream

Only a response with stat == "BLOCK_COMPLETED" is accepted. Anything else
(transport failure, other status, missing commit_meta) raises
BlockUploadError and aborts the whole upload; nothing is retried and no
resume point is kept.

The file handle's read cursor is shared across blocks and repositioned before
every read, so transfers must stay sequential.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import BinaryIO

from micloud.exceptions import BlockUploadError, NetworkError
from micloud.io.session import DriveSession
from micloud.logging import get_global_logger

from .chunker import CHUNK_SIZE, read_block
from .negotiator import BlockExists, BlockInfo, BlocksNeeded

BLOCK_COMPLETED = "BLOCK_COMPLETED"
UPLOAD_PATH = "/upload_block_chunk"

ProgressCallback = Callable[[int, int], None]


def upload_block(
    drive: DriveSession,
    fh: BinaryIO,
    index: int,
    file_size: int,
    node_url: str,
    file_meta: str,
    info: BlockInfo,
    chunk_size: int = CHUNK_SIZE,
) -> tuple[str, bool]:
    """Make one block available on the node and return its commit token.

    Args:
        drive: Transport used for the transfer.
        fh: Source file opened in binary mode.
        index: Block index; its byte range is recomputed from chunk_size.
        file_size: Size of the source file in bytes.
        node_url: Storage node chosen during negotiation.
        file_meta: File-level meta token from negotiation.
        info: Negotiated state of this block.
        chunk_size: Block size in bytes.

    Returns:
        A tuple (commit_meta, transferred) where transferred is False when
            the block already existed on the drive.

    Raises:
        BlockUploadError: On any transfer failure or non-completed status.
        DigestError: If the block cannot be read from the source file.
    """
    if isinstance(info, BlockExists):
        return info.commit_meta, False

    data = read_block(fh, index, file_size, chunk_size)
    url = node_url.rstrip("/") + UPLOAD_PATH
    params = {"chunk_pos": "0", "file_meta": file_meta, "block_meta": info.block_meta}
    try:
        document = drive.post_bytes(url, data, params=params)
    except NetworkError as err:
        raise BlockUploadError(f"block {index} transfer failed: {err}", index=index) from err

    stat = document.get("stat")
    if stat != BLOCK_COMPLETED:
        description = document.get("description") or document.get("msg")
        raise BlockUploadError(
            f"block {index} not completed (stat={stat!r})",
            index=index,
            description=str(description) if description else None,
        )
    commit_meta = document.get("commit_meta")
    if not commit_meta:
        raise BlockUploadError(f"block {index} completed without commit_meta", index=index)
    return str(commit_meta), True


def upload_blocks(
    drive: DriveSession,
    fh: BinaryIO,
    file_size: int,
    negotiated: BlocksNeeded,
    chunk_size: int = CHUNK_SIZE,
    progress: ProgressCallback | None = None,
) -> list[tuple[str, bool]]:
    """Run upload_block for every negotiated block, in order.

    Returns:
        One (commit_meta, transferred) tuple per block, in block order.

    Raises:
        BlockUploadError: At the first failing block; later blocks are not sent.
        DigestError: If a block cannot be read.
    """
    logger = get_global_logger()
    total = len(negotiated.blocks)
    results: list[tuple[str, bool]] = []
    for index, info in enumerate(negotiated.blocks):
        commit_meta, transferred = upload_block(
            drive,
            fh,
            index,
            file_size,
            negotiated.node_url,
            negotiated.file_meta,
            info,
            chunk_size,
        )
        results.append((commit_meta, transferred))
        logger.debug(
            "UPLOAD",
            f"Block {index}: {'uploaded' if transferred else 'already on drive'}",
        )
        logger.progress(index + 1, total, "Uploading blocks")
        if progress is not None:
            progress(index + 1, total)
    return results
