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

"""Public API return types for micloud.

This module defines dataclasses for return values from public API functions:
the outcome of an upload and the entries of a folder listing.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

Example:
    Using result types:
        ```python
        from pathlib import Path
        from micloud.core import upload_file
        from micloud.results import UploadResult

        result: UploadResult = upload_file(Path("notes.pdf"), "0", drive)
        print(result.file_id)  # Attribute access, not dict access
        ```

Note:
    Only public API return types belong in this module. Pipeline types
    (like BlockDescriptor or NegotiationResult) stay co-located with the
    upload stages that produce them.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class UploadResult:
    """Result from uploading a file.

    Attributes:
        file_id: Identifier of the newly created remote file.
        name: Remote file name.
        size: File size in bytes.
        sha1: Whole-file SHA-1 (lowercase hex).
        block_count: Number of blocks the file was split into.
        uploaded_blocks: Blocks physically transferred to the storage node.
        reused_blocks: Blocks the drive already held (no transfer).
        deduplicated: True when the drive already had the whole file.
        status: Always "success" for a committed upload.
    """

    file_id: str
    name: str
    size: int
    sha1: str
    block_count: int
    uploaded_blocks: int
    reused_blocks: int
    deduplicated: bool
    status: str


@dataclass(frozen=True)
class FolderEntry:
    """One entry of a folder listing.

    Attributes:
        id: Remote identifier.
        name: Display name.
        type: "file" or "folder".
        size: Size in bytes (0 for folders).
        modify_time: Server modification timestamp in milliseconds, if sent.
    """

    id: str
    name: str
    type: str
    size: int
    modify_time: int | None = None

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"
