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

"""Upload and commit manifests and their wire payloads.

UploadManifest is what negotiation sends: name, size, whole-file SHA-1 and
the block list. FinalManifest is what the commit sends, in one of two forms:

- ExistingUploadCommit: the drive already holds the whole file; only the
  upload reference is sent.
- BlocksCommit: the full record of node, keys and ordered commit tokens.

Payload shapes:

    negotiation: {"content": {"name", "storage": {"size", "sha1",
                  "kss": {"block_infos": [{"blob": {}, "sha1", "md5", "size"}]}}}}
    commit:      {"content": {"name", "storage": {"size", "sha1", "kss": {...},
                  "uploadId", "exists": false}}}
                 {"content": {"name", "storage": {"uploadId", "exists": true}}}
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any

from micloud.logging import get_global_logger

from .chunker import CHUNK_SIZE, BlockDescriptor, SourceFile, compute_blocks
from .digest import file_digest, file_digests


@dataclass(frozen=True)
class UploadManifest:
    """Description of a file sent once to the negotiation endpoint."""

    name: str
    size: int
    sha1: str
    blocks: tuple[BlockDescriptor, ...]

    def to_payload(self) -> dict[str, Any]:
        return {
            "content": {
                "name": self.name,
                "storage": {
                    "size": self.size,
                    "sha1": self.sha1,
                    "kss": {
                        "block_infos": [
                            {
                                "blob": {},
                                "sha1": block.sha1,
                                "md5": block.md5,
                                "size": block.length,
                            }
                            for block in self.blocks
                        ]
                    },
                },
            }
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), separators=(",", ":"))


def build_manifest(source: SourceFile, chunk_size: int = CHUNK_SIZE) -> UploadManifest:
    """Compute the whole-file SHA-1 and the block list of a source file.

    A file no larger than one chunk is read once: its SHA-1 and MD5 serve as
    both the whole-file digest and the single block's digests. Larger files
    get an independent whole-file pass before the per-block pass.

    Raises:
        DigestError: If the file cannot be read.
    """
    logger = get_global_logger()
    if source.size <= chunk_size:
        digests = file_digests(source.path, ("sha1", "md5"))
        sha1 = digests["sha1"]
        blocks = compute_blocks(source, chunk_size, digests=digests)
    else:
        sha1 = file_digest(source.path, "sha1")
        blocks = compute_blocks(source, chunk_size)
    logger.verbose("CHUNK", f"SHA-1: {sha1}")
    return UploadManifest(
        name=source.name, size=source.size, sha1=sha1, blocks=tuple(blocks)
    )


@dataclass(frozen=True)
class ExistingUploadCommit:
    """Commit of a file the drive already holds in full."""

    name: str
    upload_id: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "content": {
                "name": self.name,
                "storage": {"uploadId": self.upload_id, "exists": True},
            }
        }


@dataclass(frozen=True)
class BlocksCommit:
    """Commit of a file whose blocks are now all held by a storage node."""

    name: str
    size: int
    sha1: str
    node_urls: tuple[str, ...]
    secure_key: str
    content_cache_key: str
    file_meta: str
    upload_id: str
    commit_metas: tuple[str, ...]

    def to_payload(self) -> dict[str, Any]:
        return {
            "content": {
                "name": self.name,
                "storage": {
                    "size": self.size,
                    "sha1": self.sha1,
                    "kss": {
                        "stat": "OK",
                        "node_urls": list(self.node_urls),
                        "secure_key": self.secure_key,
                        "contentCacheKey": self.content_cache_key,
                        "file_meta": self.file_meta,
                        "commit_metas": [
                            {"commit_meta": meta} for meta in self.commit_metas
                        ],
                    },
                    "uploadId": self.upload_id,
                    "exists": False,
                },
            }
        }


FinalManifest = ExistingUploadCommit | BlocksCommit
