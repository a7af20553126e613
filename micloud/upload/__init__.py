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

"""Chunked, deduplicating upload pipeline.

Stages, in the order they run:

digest : module
    SHA-1 / MD5 of whole files and in-memory blocks.
chunker : module
    Size validation, block partitioning and exact block reads.
manifest : module
    UploadManifest (sent to negotiation) and FinalManifest (sent on commit).
negotiator : module
    Asks the drive which content it already holds; tagged result.
uploader : module
    Sequential transfer of the blocks the drive is missing.
commit : module
    Registers the content as a named file in a folder.

The stages are wired together by micloud.core.upload_file().
"""

from .chunker import (
    CHUNK_SIZE,
    MAX_FILE_SIZE,
    BlockDescriptor,
    SourceFile,
    block_count,
    block_range,
    compute_blocks,
    read_block,
    validate_file_size,
)
from .commit import build_final_manifest, commit_file
from .digest import bytes_digest, file_digest, file_digests
from .manifest import (
    BlocksCommit,
    ExistingUploadCommit,
    FinalManifest,
    UploadManifest,
    build_manifest,
)
from .negotiator import (
    BlockExists,
    BlockNeedsUpload,
    BlocksNeeded,
    FileAlreadyExists,
    NegotiationResult,
    negotiate,
    parse_negotiation,
)
from .uploader import upload_block, upload_blocks

__all__ = [
    "CHUNK_SIZE",
    "MAX_FILE_SIZE",
    "BlockDescriptor",
    "BlockExists",
    "BlockNeedsUpload",
    "BlocksCommit",
    "BlocksNeeded",
    "ExistingUploadCommit",
    "FileAlreadyExists",
    "FinalManifest",
    "NegotiationResult",
    "SourceFile",
    "UploadManifest",
    "block_count",
    "block_range",
    "build_final_manifest",
    "build_manifest",
    "bytes_digest",
    "commit_file",
    "compute_blocks",
    "file_digest",
    "file_digests",
    "negotiate",
    "parse_negotiation",
    "read_block",
    "upload_block",
    "upload_blocks",
    "validate_file_size",
]
