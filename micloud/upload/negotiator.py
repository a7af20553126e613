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

"""Upload negotiation: which content does the drive already hold?

The manifest is posted to the create_file endpoint. The answer decides the
rest of the pipeline and is returned as a tagged result:

- FileAlreadyExists: the drive has the whole file. No block is transferred;
  the commit only carries the upload reference.
- BlocksNeeded: the drive assigned storage nodes and returned one entry per
  block, in manifest order. Each entry is either BlockExists (a commit token
  is already available) or BlockNeedsUpload (a block meta token to transfer
  with).

Response fields are read explicitly; an absent field the protocol requires
is a NegotiationError, never a silent default.

Response shape (blocks needed):

    {"result": "ok",
     "data": {"storage": {"exists": false, "uploadId": "...",
              "kss": {"node_urls": ["https://node"], "file_meta": "...",
                      "secure_key": "...", "contentCacheKey": "...",
                      "block_metas": [{"is_existed": 1, "commit_meta": "..."},
                                      {"block_meta": "..."}]}}}}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from micloud.exceptions import NegotiationError, NetworkError, NoAvailableNodeError
from micloud.io.response import MISSING, find_str, find_value, result_error
from micloud.io.session import DriveSession
from micloud.logging import get_global_logger

from .manifest import UploadManifest


@dataclass(frozen=True)
class BlockExists:
    """The drive already holds this block; commit_meta can be reused as-is."""

    commit_meta: str


@dataclass(frozen=True)
class BlockNeedsUpload:
    """The block must be transferred using this block meta token."""

    block_meta: str


BlockInfo = BlockExists | BlockNeedsUpload


@dataclass(frozen=True)
class FileAlreadyExists:
    """The drive already holds the whole file."""

    upload_id: str


@dataclass(frozen=True)
class BlocksNeeded:
    """The drive needs (some of) the blocks.

    Attributes:
        node_url: Storage node selected for block transfers (first offered).
        node_urls: All node addresses offered, echoed back on commit.
        file_meta: File-level meta token sent with every block transfer.
        secure_key: Session key echoed back on commit.
        content_cache_key: Cache key echoed back on commit.
        upload_id: Upload reference echoed back on commit.
        blocks: One entry per manifest block, in manifest order.
    """

    node_url: str
    node_urls: tuple[str, ...]
    file_meta: str
    secure_key: str
    content_cache_key: str
    upload_id: str
    blocks: tuple[BlockInfo, ...]

    @property
    def pending_count(self) -> int:
        return sum(1 for b in self.blocks if isinstance(b, BlockNeedsUpload))


NegotiationResult = FileAlreadyExists | BlocksNeeded


def _flag(flag: Any) -> bool:
    # Only true and 1, or their string forms, mean set.
    if isinstance(flag, str):
        return flag.strip().lower() in ("1", "true")
    return flag is True or (type(flag) is int and flag == 1)


def _parse_block(position: int, entry: Any) -> BlockInfo:
    if not isinstance(entry, dict):
        raise NegotiationError(f"block entry {position} is not an object: {entry!r}")
    if _flag(entry.get("is_existed")):
        commit_meta = entry.get("commit_meta")
        if not commit_meta:
            raise NegotiationError(
                f"block {position} is marked existing but has no commit_meta"
            )
        return BlockExists(commit_meta=str(commit_meta))
    block_meta = entry.get("block_meta")
    if not block_meta:
        raise NegotiationError(f"block {position} needs upload but has no block_meta")
    return BlockNeedsUpload(block_meta=str(block_meta))


def parse_negotiation(document: dict[str, Any], block_count: int) -> NegotiationResult:
    """Interpret a negotiation response document.

    Args:
        document: Decoded JSON response.
        block_count: Number of blocks in the manifest that was sent.

    Returns:
        FileAlreadyExists or BlocksNeeded.

    Raises:
        NegotiationError: On a non-"ok" result or a malformed response.
        NoAvailableNodeError: If no storage node address is offered.
    """
    error = result_error(document)
    if error is not None:
        raise NegotiationError(f"upload negotiation rejected: {error}", description=error)

    if _flag(find_value(document, "data.storage.exists")):
        upload_id = find_str(document, "data.storage.uploadId")
        if not upload_id:
            raise NegotiationError("file exists but the response has no uploadId")
        return FileAlreadyExists(upload_id=upload_id)

    kss = find_value(document, "data.storage.kss")
    if not isinstance(kss, dict):
        raise NegotiationError("response has neither an existing upload nor kss data")

    node_urls = kss.get("node_urls") or []
    if not isinstance(node_urls, list) or not node_urls or not node_urls[0]:
        raise NoAvailableNodeError("no available storage node in negotiation response")

    file_meta = kss.get("file_meta")
    if not file_meta:
        raise NegotiationError("negotiation response has no file_meta")

    block_metas = kss.get("block_metas")
    if not isinstance(block_metas, list):
        raise NegotiationError("negotiation response has no block_metas list")
    if len(block_metas) != block_count:
        raise NegotiationError(
            f"negotiation returned {len(block_metas)} block entries for {block_count} block(s)"
        )

    upload_id = find_value(document, "data.storage.uploadId")
    return BlocksNeeded(
        node_url=str(node_urls[0]),
        node_urls=tuple(str(u) for u in node_urls),
        file_meta=str(file_meta),
        secure_key=str(kss.get("secure_key") or ""),
        content_cache_key=str(kss.get("contentCacheKey") or ""),
        upload_id="" if upload_id is MISSING or upload_id is None else str(upload_id),
        blocks=tuple(_parse_block(i, entry) for i, entry in enumerate(block_metas)),
    )


def negotiate(drive: DriveSession, manifest: UploadManifest) -> NegotiationResult:
    """Submit the upload manifest and interpret the drive's answer.

    Raises:
        NegotiationError: On transport failure, rejection or malformed response.
        NoAvailableNodeError: If no storage node address is offered.
    """
    logger = get_global_logger()
    url = drive.endpoint("create_file")
    logger.verbose("NEGOTIATE", f"Submitting manifest ({len(manifest.blocks)} block(s))")
    try:
        document = drive.post_form(url, {"data": manifest.to_json()})
    except NetworkError as err:
        raise NegotiationError(f"upload negotiation failed: {err}") from err

    result = parse_negotiation(document, len(manifest.blocks))
    if isinstance(result, FileAlreadyExists):
        logger.verbose("NEGOTIATE", "Drive already holds this file")
    else:
        logger.verbose(
            "NEGOTIATE",
            f"Node {result.node_url}: {result.pending_count} of "
            f"{len(result.blocks)} block(s) to upload",
        )
    return result
